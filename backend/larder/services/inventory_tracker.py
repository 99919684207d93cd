from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from larder.core.clock import Clock, to_naive_utc, utcnow
from larder.core.config import settings
from larder.core.constants import InventoryStatus, UsageReason, WasteReason
from larder.core.errors import (
    InsufficientStockError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from larder.core.logging import log_event
from larder.models.inventory import InventoryItem
from larder.repositories.base import transaction
from larder.repositories.catalog import CatalogRepository
from larder.repositories.inventory import InventoryRepository
from larder.schemas.common import parse_payload
from larder.schemas.inventory import (
    InventoryFilter,
    InventoryItemCreate,
    InventoryItemDetailRead,
    InventoryItemRead,
    InventoryItemUpdate,
    InventoryPage,
    InventoryStatsRead,
    RecipeIngredientUse,
    RecipeUsageResultRead,
    SkippedIngredientRead,
    UsedIngredientRead,
    WasteLogRead,
)
from larder.services.status_classifier import apply_classification
from larder.services.units import QUANTITY_TOLERANCE, convert_amount, round_quantity

logger = logging.getLogger("larder.inventory")

_REQUIRED_FIELDS = ("quantity", "unit", "storage_location")


def waste_cost(item: InventoryItem, wasted_quantity: float) -> float | None:
    if item.purchase_price is None or item.original_quantity <= 0:
        return None
    return round(item.purchase_price / item.original_quantity * wasted_quantity, 2)


def _validate_amount(amount: object) -> float:
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise ValidationError("Amount must be a number.")
    if amount <= 0:
        raise ValidationError("Amount must be greater than zero.")
    return float(amount)


def _parse_reason(reason: UsageReason | str) -> UsageReason:
    try:
        return UsageReason(reason)
    except ValueError as exc:
        raise ValidationError(f"Unknown usage reason: {reason}") from exc


class InventoryTracker:
    """Create, mutate and query a member's inventory, keeping derived status current."""

    def __init__(
        self,
        inventory: InventoryRepository,
        catalog: CatalogRepository,
        *,
        clock: Clock = utcnow,
    ) -> None:
        self.inventory = inventory
        self.catalog = catalog
        self.clock = clock

    @property
    def db(self):
        return self.inventory.db

    def _classify(self, item: InventoryItem) -> bool:
        return apply_classification(item, self.clock(), expiring_window_days=settings.expiring_window_days)

    def _owned_item(self, item_id: int, member_id: int) -> InventoryItem:
        item = self.inventory.get(item_id)
        if item is None:
            raise NotFoundError("Inventory item", item_id)
        if item.member_id != member_id:
            raise PermissionDeniedError(f"Inventory item {item_id} does not belong to member {member_id}.")
        return item

    def _ensure_member(self, member_id: int) -> None:
        if not self.catalog.member_exists(member_id):
            raise NotFoundError("Member", member_id)

    def _detail(self, item_id: int) -> InventoryItemDetailRead:
        item = self.inventory.get(item_id, with_details=True, include_deleted=True)
        if item is None:
            raise NotFoundError("Inventory item", item_id)
        return InventoryItemDetailRead.model_validate(item)

    def create_item(self, member_id: int, payload: InventoryItemCreate | dict[str, Any]) -> InventoryItemDetailRead:
        data = parse_payload(InventoryItemCreate, payload)
        unit = data.unit.strip()
        if not unit:
            raise ValidationError("Unit is required.")

        self._ensure_member(member_id)
        if self.catalog.get_food(data.food_id) is None:
            raise NotFoundError("Food", data.food_id)

        now = self.clock()
        values = data.model_dump()
        values.update(
            member_id=member_id,
            unit=unit,
            original_quantity=data.quantity,
            storage_location=data.storage_location.value,
            expiry_date=to_naive_utc(data.expiry_date) if data.expiry_date else None,
            production_date=to_naive_utc(data.production_date) if data.production_date else None,
            created_at=now,
            updated_at=now,
        )

        with transaction(self.db, "inventory.create_item"):
            item = self.inventory.create(values)
            self._classify(item)

        log_event(
            logger,
            logging.INFO,
            "inventory_item_created",
            item_id=item.id,
            member_id=member_id,
            food_id=data.food_id,
            quantity=data.quantity,
            status=item.status,
        )
        return self._detail(item.id)

    def update_item(
        self,
        item_id: int,
        member_id: int,
        payload: InventoryItemUpdate | dict[str, Any],
    ) -> InventoryItemDetailRead:
        data = parse_payload(InventoryItemUpdate, payload)
        changes = data.model_dump(exclude_unset=True)
        for field in _REQUIRED_FIELDS:
            if field in changes and changes[field] is None:
                raise ValidationError(f"{field} cannot be cleared.")
        if "unit" in changes:
            changes["unit"] = changes["unit"].strip()
            if not changes["unit"]:
                raise ValidationError("Unit is required.")
        if changes.get("storage_location") is not None:
            changes["storage_location"] = data.storage_location.value
        for field in ("expiry_date", "production_date"):
            if changes.get(field) is not None:
                changes[field] = to_naive_utc(changes[field])

        item = self._owned_item(item_id, member_id)
        previous_status = item.status

        with transaction(self.db, "inventory.update_item"):
            changes["updated_at"] = self.clock()
            self.inventory.update(item, changes)
            self._classify(item)

        log_event(
            logger,
            logging.INFO,
            "inventory_item_updated",
            item_id=item_id,
            member_id=member_id,
            fields=sorted(key for key in changes if key != "updated_at"),
            previous_status=previous_status,
            status=item.status,
        )
        return self._detail(item_id)

    def delete_item(self, item_id: int, member_id: int) -> None:
        item = self._owned_item(item_id, member_id)
        with transaction(self.db, "inventory.delete_item"):
            self.inventory.soft_delete(item, self.clock())
        log_event(logger, logging.INFO, "inventory_item_deleted", item_id=item_id, member_id=member_id)

    def get_item(self, item_id: int, member_id: int) -> InventoryItemDetailRead:
        item = self._owned_item(item_id, member_id)
        if self._classify(item):
            with transaction(self.db, "inventory.get_item"):
                self.inventory.update(item, {})
        return self._detail(item_id)

    def refresh_member_statuses(self, member_id: int) -> int:
        """Reclassify every active item of a member and return how many changed."""
        changed = 0
        with transaction(self.db, "inventory.refresh_member_statuses"):
            for item in self.inventory.list_active(member_id):
                if self._classify(item):
                    changed += 1
        return changed

    def list_items(self, member_id: int, filters: InventoryFilter | dict[str, Any] | None = None) -> InventoryPage:
        query = parse_payload(InventoryFilter, filters or {})
        self.refresh_member_statuses(member_id)

        now = self.clock()
        items, total = self.inventory.list_items(
            member_id,
            query,
            now=now,
            expiring_until=now + timedelta(days=settings.expiring_window_days),
        )
        return InventoryPage(
            items=[InventoryItemRead.model_validate(item) for item in items],
            total=total,
            limit=query.limit,
            offset=query.offset,
        )

    def use_item(
        self,
        item_id: int,
        member_id: int,
        amount: float,
        reason: UsageReason | str = UsageReason.COOKING,
        *,
        meal_id: int | None = None,
        recipe_id: int | None = None,
        notes: str | None = None,
    ) -> InventoryItemDetailRead:
        amount = _validate_amount(amount)
        usage_reason = _parse_reason(reason)
        self._owned_item(item_id, member_id)

        now = self.clock()
        with transaction(self.db, "inventory.use_item"):
            usage = self.inventory.record_usage(
                item_id=item_id,
                member_id=member_id,
                amount=amount,
                reason=usage_reason.value,
                used_at=now,
                meal_id=meal_id,
                recipe_id=recipe_id,
                notes=notes,
            )
            item = self.inventory.reload(item_id)
            if item is None:
                raise NotFoundError("Inventory item", item_id)
            if usage is None:
                shortfall = round_quantity(amount - item.quantity)
                raise InsufficientStockError(
                    f"Requested {amount} {item.unit} but only {item.quantity} {item.unit} available.",
                    shortfall=shortfall,
                )

            self._classify(item)
            depleted = item.quantity <= 0
            if depleted and settings.soft_delete_depleted_items:
                self.inventory.soft_delete(item, now)

        log_event(
            logger,
            logging.INFO,
            "inventory_item_used",
            item_id=item_id,
            member_id=member_id,
            amount=amount,
            reason=usage_reason.value,
            remaining=item.quantity,
            status=item.status,
        )
        return self._detail(item_id)

    def record_waste(
        self,
        item_id: int,
        member_id: int,
        amount: float,
        reason: WasteReason | str = WasteReason.OTHER,
        *,
        notes: str | None = None,
        preventable: bool = False,
        prevention_tip: str | None = None,
    ) -> WasteLogRead:
        amount = _validate_amount(amount)
        try:
            waste_reason = WasteReason(reason)
        except ValueError as exc:
            raise ValidationError(f"Unknown waste reason: {reason}") from exc

        item = self._owned_item(item_id, member_id)
        now = self.clock()
        with transaction(self.db, "inventory.record_waste"):
            if not self.inventory.decrement(item_id, amount, now):
                raise InsufficientStockError(
                    f"Cannot discard {amount} {item.unit}; only {item.quantity} {item.unit} available.",
                    shortfall=round_quantity(amount - item.quantity),
                )
            item = self.inventory.reload(item_id)
            waste_log = self.inventory.create_waste_log(
                {
                    "item_id": item_id,
                    "member_id": member_id,
                    "wasted_quantity": amount,
                    "waste_reason": waste_reason.value,
                    "estimated_cost": waste_cost(item, amount),
                    "notes": notes,
                    "preventable": preventable,
                    "prevention_tip": prevention_tip,
                    "created_at": now,
                }
            )
            self._classify(item)

        log_event(
            logger,
            logging.INFO,
            "inventory_waste_recorded",
            item_id=item_id,
            member_id=member_id,
            amount=amount,
            reason=waste_reason.value,
            estimated_cost=waste_log.estimated_cost,
        )
        return WasteLogRead.model_validate(waste_log)

    def use_for_recipe(
        self,
        member_id: int,
        ingredients: list[RecipeIngredientUse | dict[str, Any]],
        recipe_name: str,
        *,
        recipe_id: int | None = None,
    ) -> RecipeUsageResultRead:
        """Draw each ingredient from the soonest-expiring item that can cover it on its own.

        Ingredients without such an item are reported as skipped; the rest still go through.
        """
        self._ensure_member(member_id)
        requests = [parse_payload(RecipeIngredientUse, ingredient) for ingredient in ingredients]
        result = RecipeUsageResultRead(recipe_name=recipe_name)

        for request in requests:
            chosen: InventoryItem | None = None
            required_in_item_unit = request.quantity
            for candidate in self.inventory.list_fefo_candidates(member_id, request.food_id):
                required = (
                    convert_amount(request.quantity, request.unit, candidate.unit)
                    if request.unit
                    else request.quantity
                )
                if required is None:
                    continue
                if candidate.quantity + QUANTITY_TOLERANCE >= required:
                    chosen = candidate
                    required_in_item_unit = min(required, candidate.quantity)
                    break

            if chosen is None:
                result.skipped.append(
                    SkippedIngredientRead(
                        food_id=request.food_id,
                        required_quantity=request.quantity,
                        reason="No single item has enough stock.",
                    )
                )
                continue

            try:
                updated = self.use_item(
                    chosen.id,
                    member_id,
                    required_in_item_unit,
                    UsageReason.RECIPE,
                    recipe_id=recipe_id,
                    notes=f"Used for recipe: {recipe_name}",
                )
            except InsufficientStockError as exc:
                result.skipped.append(
                    SkippedIngredientRead(
                        food_id=request.food_id,
                        required_quantity=request.quantity,
                        reason=exc.detail,
                    )
                )
                continue

            result.used.append(
                UsedIngredientRead(
                    food_id=request.food_id,
                    item_id=updated.id,
                    used_quantity=round_quantity(required_in_item_unit),
                    unit=updated.unit,
                    remaining_quantity=round_quantity(updated.quantity),
                    status=updated.status,
                )
            )

        log_event(
            logger,
            logging.INFO,
            "inventory_recipe_usage",
            member_id=member_id,
            recipe_name=recipe_name,
            used=len(result.used),
            skipped=len(result.skipped),
        )
        return result

    def get_stats(self, member_id: int) -> InventoryStatsRead:
        self.refresh_member_statuses(member_id)
        by_status = self.inventory.status_counts(member_id)
        total, categories, value = self.inventory.aggregate_stats(member_id)
        return InventoryStatsRead(
            total_items=total,
            fresh_items=by_status.get(InventoryStatus.FRESH.value, 0),
            expiring_items=by_status.get(InventoryStatus.EXPIRING.value, 0),
            expired_items=by_status.get(InventoryStatus.EXPIRED.value, 0),
            low_stock_items=by_status.get(InventoryStatus.LOW_STOCK.value, 0),
            out_of_stock_items=by_status.get(InventoryStatus.OUT_OF_STOCK.value, 0),
            total_categories=categories,
            estimated_value=round(value, 2),
            by_location=self.inventory.location_counts(member_id),
        )

    def purge_expired_items(self, member_id: int, older_than_days: int | None = None) -> int:
        days = settings.expired_item_purge_days if older_than_days is None else older_than_days
        now = self.clock()
        cutoff = now - timedelta(days=days)

        with transaction(self.db, "inventory.purge_expired_items"):
            items = self.inventory.list_expired_before(member_id, cutoff)
            for item in items:
                self.inventory.soft_delete(item, now)

        log_event(logger, logging.INFO, "inventory_expired_purged", member_id=member_id, count=len(items))
        return len(items)
