from __future__ import annotations

import logging
import threading
from collections import defaultdict
from datetime import timedelta
from typing import Any

from larder.core.clock import Clock, to_naive_utc, utcnow
from larder.core.config import settings
from larder.core.constants import PRIORITY_RANK, Priority, StorageLocation
from larder.core.errors import NotFoundError, PermissionDeniedError, ValidationError
from larder.core.logging import log_event
from larder.models.inventory import InventoryItem
from larder.repositories.base import transaction, unit_failure
from larder.repositories.catalog import CatalogRepository
from larder.repositories.inventory import InventoryRepository
from larder.repositories.shopping import ShoppingRepository
from larder.schemas.common import BatchReportRead, parse_payload
from larder.schemas.shopping import (
    InventoryShoppingListRead,
    OptimizedItemRead,
    PurchasedItem,
    ShoppingListOptimizationRead,
    ShoppingSuggestionRead,
    ShoppingSyncRead,
)
from larder.services.status_classifier import apply_classification
from larder.services.units import QUANTITY_TOLERANCE, canonical_unit, convert_amount, round_quantity

logger = logging.getLogger("larder.shopping")

SOURCE_LOW_STOCK = "LOW_STOCK"
SOURCE_FREQUENT_USAGE = "FREQUENT_USAGE"
SOURCE_SEASONAL = "SEASONAL"

_SPRING = [("Spinach", 0.5, "kg"), ("Asparagus", 0.5, "kg"), ("Strawberry", 1.0, "kg")]
_SUMMER = [("Tomato", 1.0, "kg"), ("Cucumber", 1.0, "kg"), ("Watermelon", 1.0, "pcs")]
_AUTUMN = [("Pumpkin", 1.0, "pcs"), ("Apple", 1.0, "kg"), ("Sweet Potato", 1.0, "kg")]
_WINTER = [("Cabbage", 1.0, "pcs"), ("Orange", 1.0, "kg"), ("Carrot", 1.0, "kg")]

SEASONAL_FOODS: dict[int, list[tuple[str, float, str]]] = {
    1: _WINTER,
    2: _WINTER,
    3: _SPRING,
    4: _SPRING,
    5: _SPRING,
    6: _SUMMER,
    7: _SUMMER,
    8: _SUMMER,
    9: _AUTUMN,
    10: _AUTUMN,
    11: _AUTUMN,
    12: _WINTER,
}

# Days until a restocked item without a printed date is assumed to expire.
_SHELF_LIFE_DAYS: dict[str, int] = {
    "VEGETABLES": 5,
    "FRUITS": 7,
    "PROTEIN": 3,
    "MEAT": 3,
    "SEAFOOD": 2,
    "DAIRY": 10,
    "GRAINS": 30,
}
_DEFAULT_SHELF_LIFE_DAYS = 7

_DEFAULT_LOCATIONS: dict[str, StorageLocation] = {
    "GRAINS": StorageLocation.PANTRY,
    "FROZEN": StorageLocation.FREEZER,
}


def dedupe_suggestions(suggestions: list[ShoppingSuggestionRead]) -> list[ShoppingSuggestionRead]:
    """Keep the highest-priority suggestion per food, then order by priority.

    On equal priority the earlier source wins, and the final sort is stable.
    """
    best: dict[int, ShoppingSuggestionRead] = {}
    order: list[int] = []
    for suggestion in suggestions:
        current = best.get(suggestion.food_id)
        if current is None:
            best[suggestion.food_id] = suggestion
            order.append(suggestion.food_id)
        elif PRIORITY_RANK[suggestion.priority] > PRIORITY_RANK[current.priority]:
            best[suggestion.food_id] = suggestion

    merged = [best[food_id] for food_id in order]
    merged.sort(key=lambda suggestion: -PRIORITY_RANK[suggestion.priority])
    return merged


def restock_quantity(quantity: float, threshold: float) -> float:
    if quantity <= 0:
        return threshold * 2
    return max(threshold * 2 - quantity, 0.0)


def _stock_in_unit(items: list[InventoryItem], unit: str) -> float:
    total = 0.0
    for item in items:
        converted = convert_amount(item.quantity, item.unit, unit)
        if converted is not None:
            total += converted
    return total


def _unit_price(items: list[InventoryItem], unit: str) -> float | None:
    # Most recent priced purchase of the food, expressed per ``unit``.
    priced = [item for item in items if item.purchase_price is not None and item.original_quantity > 0]
    for item in sorted(priced, key=lambda candidate: candidate.created_at, reverse=True):
        per_item_unit = item.purchase_price / item.original_quantity
        one_unit = convert_amount(1.0, unit, item.unit)
        if one_unit is not None:
            return per_item_unit * one_unit
    return None


def restocked_price(item: InventoryItem, quantity: float, price: float | None) -> float | None:
    """Total price of ``item`` once ``quantity`` more is bought for ``price``.

    ``purchase_price`` always covers ``original_quantity``. An unpriced side
    is assumed to cost the same per unit as the priced one.
    """
    if item.purchase_price is None or item.original_quantity <= 0:
        if price is None:
            return None
        return round(price / quantity * (item.original_quantity + quantity), 2)
    if price is None:
        return round(item.purchase_price / item.original_quantity * (item.original_quantity + quantity), 2)
    return round(item.purchase_price + price, 2)


def merge_usage(rows: list[tuple[int, str, int, float]], limit: int) -> list[tuple[int, int, float, str]]:
    """Fold per-unit usage rows into (food_id, usage count, total used, unit), most used first.

    Totals are expressed in the unit used most often for that food. Usage in a
    unit that cannot be converted to it is left out of both count and total.
    """
    by_food: dict[int, list[tuple[str, int, float]]] = defaultdict(list)
    for food_id, unit, count, total in rows:
        by_food[food_id].append((unit, count, total))

    merged: list[tuple[int, int, float, str]] = []
    for food_id, groups in by_food.items():
        unit = max(groups, key=lambda group: group[1])[0]
        usage_count = 0
        total_used = 0.0
        for group_unit, count, total in groups:
            converted = convert_amount(total, group_unit, unit)
            if converted is None:
                continue
            usage_count += count
            total_used += converted
        merged.append((food_id, usage_count, total_used, unit))

    merged.sort(key=lambda row: (-row[1], row[0]))
    return merged[:limit]


def _price_for(items: list[InventoryItem], quantity: float, unit: str) -> float | None:
    unit_price = _unit_price(items, unit)
    if unit_price is None:
        return None
    return round(unit_price * quantity, 2)


class InventoryShoppingIntegration:
    def __init__(
        self,
        inventory: InventoryRepository,
        catalog: CatalogRepository,
        shopping: ShoppingRepository,
        *,
        clock: Clock = utcnow,
    ) -> None:
        self.inventory = inventory
        self.catalog = catalog
        self.shopping = shopping
        self.clock = clock

    @property
    def db(self):
        return self.inventory.db

    def _items_by_food(self, member_id: int) -> dict[int, list[InventoryItem]]:
        grouped: dict[int, list[InventoryItem]] = defaultdict(list)
        for item in self.inventory.list_active(member_id):
            grouped[item.food_id].append(item)
        return grouped

    def _low_stock_suggestions(self, items_by_food: dict[int, list[InventoryItem]]) -> list[ShoppingSuggestionRead]:
        suggestions: list[ShoppingSuggestionRead] = []
        for items in items_by_food.values():
            for item in items:
                if item.min_stock_threshold is None or item.quantity > item.min_stock_threshold:
                    continue
                quantity = restock_quantity(item.quantity, item.min_stock_threshold)
                if quantity <= 0:
                    continue
                suggestions.append(
                    ShoppingSuggestionRead(
                        food_id=item.food_id,
                        food_name=item.food.name,
                        category=item.food.category,
                        suggested_quantity=round_quantity(quantity),
                        unit=item.unit,
                        priority=Priority.HIGH,
                        source=SOURCE_LOW_STOCK,
                        reason=f"Stock is at {item.quantity} {item.unit}, threshold is {item.min_stock_threshold}.",
                        current_quantity=item.quantity,
                        estimated_price=_price_for(items, quantity, item.unit),
                    )
                )
        return suggestions

    def _frequent_usage_suggestions(
        self,
        member_id: int,
        items_by_food: dict[int, list[InventoryItem]],
    ) -> list[ShoppingSuggestionRead]:
        since = self.clock() - timedelta(days=settings.usage_history_window_days)
        aggregates = merge_usage(self.inventory.usage_aggregates(member_id, since), settings.frequent_usage_limit)
        foods = self.catalog.get_foods([food_id for food_id, _, _, _ in aggregates])

        suggestions: list[ShoppingSuggestionRead] = []
        for food_id, usage_count, total_used, unit in aggregates:
            food = foods.get(food_id)
            if food is None or usage_count == 0:
                continue
            weekly_usage = total_used / usage_count * 7
            items = items_by_food.get(food_id, [])
            stock = _stock_in_unit(items, unit)
            if weekly_usage <= stock:
                continue
            quantity = weekly_usage * 2
            suggestions.append(
                ShoppingSuggestionRead(
                    food_id=food_id,
                    food_name=food.name,
                    category=food.category,
                    suggested_quantity=round_quantity(quantity),
                    unit=unit,
                    priority=Priority.MEDIUM,
                    source=SOURCE_FREQUENT_USAGE,
                    reason=f"Used {usage_count} times recently; about {round_quantity(weekly_usage)} {unit} per week.",
                    current_quantity=round_quantity(stock),
                    estimated_price=_price_for(items, quantity, unit),
                )
            )
        return suggestions

    def _seasonal_suggestions(self, items_by_food: dict[int, list[InventoryItem]]) -> list[ShoppingSuggestionRead]:
        month = self.clock().month
        suggestions: list[ShoppingSuggestionRead] = []
        for name, quantity, unit in SEASONAL_FOODS.get(month, []):
            food = self.catalog.find_food_by_name(name)
            if food is None:
                continue
            items = items_by_food.get(food.id, [])
            stock = _stock_in_unit(items, unit)
            if stock >= quantity:
                continue
            suggestions.append(
                ShoppingSuggestionRead(
                    food_id=food.id,
                    food_name=food.name,
                    category=food.category,
                    suggested_quantity=quantity,
                    unit=unit,
                    priority=Priority.LOW,
                    source=SOURCE_SEASONAL,
                    reason=f"{food.name} is in season.",
                    current_quantity=round_quantity(stock),
                    estimated_price=_price_for(items, quantity, unit),
                )
            )
        return suggestions

    def generate_suggestions(self, member_id: int) -> list[ShoppingSuggestionRead]:
        items_by_food = self._items_by_food(member_id)
        suggestions = [
            *self._low_stock_suggestions(items_by_food),
            *self._frequent_usage_suggestions(member_id, items_by_food),
            *self._seasonal_suggestions(items_by_food),
        ]
        merged = dedupe_suggestions(suggestions)
        log_event(
            logger,
            logging.INFO,
            "shopping_suggestions_generated",
            member_id=member_id,
            candidates=len(suggestions),
            suggestions=len(merged),
        )
        return merged

    def optimize_shopping_list(self, member_id: int, list_id: int) -> ShoppingListOptimizationRead:
        """Trim a pending list against current stock and top it up with fresh suggestions."""
        shopping_list = self.shopping.get_list(list_id)
        if shopping_list is None:
            raise NotFoundError("Shopping list", list_id)
        if shopping_list.member_id != member_id:
            raise PermissionDeniedError(f"Shopping list {list_id} does not belong to member {member_id}.")

        items_by_food = self._items_by_food(member_id)
        rows: list[OptimizedItemRead] = []
        for listed in shopping_list.items:
            if listed.is_purchased:
                continue
            items = items_by_food.get(listed.food_id, [])
            stock = _stock_in_unit(items, listed.unit)
            thresholds = [item.min_stock_threshold for item in items if item.min_stock_threshold is not None]
            minimum = max(thresholds) if thresholds else 0.0
            surplus = stock - minimum

            if surplus + QUANTITY_TOLERANCE >= listed.amount:
                action, optimized, reason = "REMOVE", 0.0, f"Stock covers the minimum with {round_quantity(surplus)} to spare."
            elif surplus > 0:
                optimized = round_quantity(listed.amount - surplus)
                action, reason = "REDUCE", f"Existing surplus of {round_quantity(surplus)} {listed.unit} reduces the need."
            else:
                action, optimized, reason = "KEEP", listed.amount, "Stock is at or below the minimum."

            original_price = listed.estimated_price or 0.0
            optimized_price = original_price * optimized / listed.amount if listed.amount > 0 else 0.0
            rows.append(
                OptimizedItemRead(
                    shopping_item_id=listed.id,
                    food_id=listed.food_id,
                    food_name=listed.food.name,
                    original_amount=listed.amount,
                    optimized_amount=optimized,
                    unit=listed.unit,
                    action=action,
                    reason=reason,
                    original_price=round(original_price, 2),
                    optimized_price=round(optimized_price, 2),
                )
            )

        listed_foods = {listed.food_id for listed in shopping_list.items}
        additional = [
            suggestion for suggestion in self.generate_suggestions(member_id) if suggestion.food_id not in listed_foods
        ][:5]

        original_cost = round(sum(row.original_price for row in rows), 2)
        optimized_cost = round(sum(row.optimized_price for row in rows), 2)
        log_event(
            logger,
            logging.INFO,
            "shopping_list_optimized",
            member_id=member_id,
            list_id=list_id,
            removed=sum(1 for row in rows if row.action == "REMOVE"),
            reduced=sum(1 for row in rows if row.action == "REDUCE"),
            additional=len(additional),
        )
        return ShoppingListOptimizationRead(
            list_id=list_id,
            items=rows,
            additional_suggestions=additional,
            original_cost=original_cost,
            optimized_cost=optimized_cost,
            savings=round(original_cost - optimized_cost, 2),
        )

    def create_inventory_based_shopping_list(self, member_id: int, name: str | None = None) -> InventoryShoppingListRead:
        if not self.catalog.member_exists(member_id):
            raise NotFoundError("Member", member_id)

        suggestions = self.generate_suggestions(member_id)
        if not suggestions:
            raise ValidationError("Inventory is well stocked; there is nothing to suggest.")

        now = self.clock()
        estimated_cost = round(sum(suggestion.estimated_price or 0.0 for suggestion in suggestions), 2)
        budget = round(estimated_cost * 1.2, 2)
        list_name = name or f"Restock {now:%Y-%m-%d}"

        with transaction(self.db, "shopping.create_inventory_based_list"):
            shopping_list = self.shopping.create_list(
                member_id=member_id,
                name=list_name,
                budget=budget,
                estimated_cost=estimated_cost,
                notes="Generated from inventory levels and usage history.",
                created_at=now,
                items=[
                    {
                        "food_id": suggestion.food_id,
                        "amount": suggestion.suggested_quantity,
                        "unit": suggestion.unit,
                        "category": suggestion.category,
                        "estimated_price": suggestion.estimated_price,
                    }
                    for suggestion in suggestions
                ],
            )

        log_event(
            logger,
            logging.INFO,
            "shopping_list_created",
            member_id=member_id,
            list_id=shopping_list.id,
            items=len(suggestions),
            estimated_cost=estimated_cost,
        )
        return InventoryShoppingListRead(
            list_id=shopping_list.id,
            name=list_name,
            budget=budget,
            estimated_cost=estimated_cost,
            item_count=len(suggestions),
            suggestions=suggestions,
        )

    def _sync_purchase(self, member_id: int, purchase: PurchasedItem) -> tuple[int, bool]:
        now = self.clock()
        food = self.catalog.get_food(purchase.food_id)
        if food is None:
            raise NotFoundError("Food", purchase.food_id)

        expiry_date = to_naive_utc(purchase.expiry_date) if purchase.expiry_date else None
        with transaction(self.db, "shopping.sync_purchase"):
            existing = next(
                (
                    item
                    for item in self.inventory.list_active(member_id, food_id=purchase.food_id)
                    if canonical_unit(item.unit) == canonical_unit(purchase.unit)
                ),
                None,
            )
            if existing is not None:
                changes: dict[str, Any] = {
                    "quantity": existing.quantity + purchase.quantity,
                    "original_quantity": existing.original_quantity + purchase.quantity,
                    "purchase_price": restocked_price(existing, purchase.quantity, purchase.price),
                    "updated_at": now,
                }
                if expiry_date is not None:
                    changes["expiry_date"] = expiry_date
                item = self.inventory.update(existing, changes)
                created = False
            else:
                if expiry_date is None:
                    shelf_life = _SHELF_LIFE_DAYS.get(food.category, _DEFAULT_SHELF_LIFE_DAYS)
                    expiry_date = now + timedelta(days=shelf_life)
                location = purchase.storage_location or _DEFAULT_LOCATIONS.get(food.category, StorageLocation.REFRIGERATOR)
                item = self.inventory.create(
                    {
                        "member_id": member_id,
                        "food_id": purchase.food_id,
                        "quantity": purchase.quantity,
                        "original_quantity": purchase.quantity,
                        "unit": purchase.unit.strip(),
                        "purchase_price": purchase.price,
                        "purchase_source": "shopping_list",
                        "expiry_date": expiry_date,
                        "storage_location": location.value,
                        "created_at": now,
                        "updated_at": now,
                    }
                )
                created = True
            apply_classification(item, now, expiring_window_days=settings.expiring_window_days)

            if purchase.shopping_item_id is not None:
                shopping_item = self.shopping.get_item(purchase.shopping_item_id)
                if shopping_item is None:
                    raise NotFoundError("Shopping item", purchase.shopping_item_id)
                if shopping_item.shopping_list.member_id != member_id:
                    raise PermissionDeniedError(
                        f"Shopping item {purchase.shopping_item_id} does not belong to member {member_id}."
                    )
                self.shopping.mark_item_purchased(shopping_item, now)
                self.shopping.complete_list_if_done(shopping_item.list_id)

        return item.id, created

    def sync_purchases_to_inventory(
        self,
        member_id: int,
        purchases: list[PurchasedItem | dict[str, Any]],
        cancel_event: threading.Event | None = None,
    ) -> ShoppingSyncRead:
        """Restock inventory from purchases, one commit per purchase.

        Failures are reported by the purchase's position in ``purchases``.
        """
        if not self.catalog.member_exists(member_id):
            raise NotFoundError("Member", member_id)

        result = ShoppingSyncRead(report=BatchReportRead())
        for index, raw in enumerate(purchases):
            if cancel_event is not None and cancel_event.is_set():
                result.report.cancelled = True
                break
            try:
                purchase = parse_payload(PurchasedItem, raw)
                item_id, created = self._sync_purchase(member_id, purchase)
            except Exception as exc:
                error = unit_failure(self.db, exc)
                result.report.add_failure(index, error)
                log_event(logger, logging.WARNING, "shopping_sync_failed", member_id=member_id, index=index, error=error)
                continue

            result.report.add_success(changed=True)
            if created:
                result.created_item_ids.append(item_id)
            else:
                result.updated_item_ids.append(item_id)

        log_event(
            logger,
            logging.INFO,
            "shopping_sync_completed",
            member_id=member_id,
            created=len(result.created_item_ids),
            updated=len(result.updated_item_ids),
            failed=result.report.failed,
        )
        return result
