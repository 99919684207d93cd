from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.orm import joinedload, selectinload

from larder.models.food import Food
from larder.models.inventory import InventoryItem, InventoryUsage, WasteLog
from larder.repositories.base import SqlRepository
from larder.schemas.inventory import InventoryFilter


def _active():
    return InventoryItem.deleted_at.is_(None)


class InventoryRepository(SqlRepository):
    def create(self, values: dict[str, Any]) -> InventoryItem:
        with self._guard("inventory.create"):
            item = InventoryItem(**values)
            self.db.add(item)
            self.db.flush()
            return item

    def get(
        self,
        item_id: int,
        *,
        with_details: bool = False,
        include_deleted: bool = False,
    ) -> InventoryItem | None:
        with self._guard("inventory.get"):
            stmt = select(InventoryItem).where(InventoryItem.id == item_id)
            if not include_deleted:
                stmt = stmt.where(_active())
            if with_details:
                stmt = stmt.options(
                    joinedload(InventoryItem.food),
                    selectinload(InventoryItem.usages),
                    selectinload(InventoryItem.waste_logs),
                ).execution_options(populate_existing=True)
            return self.db.scalars(stmt).first()

    def reload(self, item_id: int) -> InventoryItem | None:
        with self._guard("inventory.reload"):
            return self.db.get(InventoryItem, item_id, populate_existing=True)

    def update(self, item: InventoryItem, values: dict[str, Any]) -> InventoryItem:
        with self._guard("inventory.update"):
            for key, value in values.items():
                setattr(item, key, value)
            self.db.add(item)
            self.db.flush()
            return item

    def soft_delete(self, item: InventoryItem, deleted_at: datetime) -> None:
        with self._guard("inventory.soft_delete"):
            item.deleted_at = deleted_at
            self.db.add(item)
            self.db.flush()

    def list_items(
        self,
        member_id: int,
        filters: InventoryFilter,
        *,
        now: datetime,
        expiring_until: datetime,
    ) -> tuple[list[InventoryItem], int]:
        with self._guard("inventory.list"):
            query = (
                self.db.query(InventoryItem)
                .join(Food, InventoryItem.food_id == Food.id)
                .filter(InventoryItem.member_id == member_id, _active())
            )
            if filters.status is not None:
                query = query.filter(InventoryItem.status == filters.status.value)
            if filters.storage_location is not None:
                query = query.filter(InventoryItem.storage_location == filters.storage_location.value)
            if filters.category:
                query = query.filter(Food.category == filters.category)
            if filters.expiring:
                query = query.filter(
                    InventoryItem.expiry_date.is_not(None),
                    InventoryItem.expiry_date >= now,
                    InventoryItem.expiry_date <= expiring_until,
                )
            if filters.expired:
                query = query.filter(InventoryItem.expiry_date.is_not(None), InventoryItem.expiry_date < now)
            if filters.low_stock:
                query = query.filter(InventoryItem.is_low_stock.is_(True))

            total = query.count()
            items = (
                query.options(joinedload(InventoryItem.food))
                .order_by(
                    InventoryItem.expiry_date.is_(None),
                    InventoryItem.expiry_date.asc(),
                    InventoryItem.created_at.desc(),
                    InventoryItem.id.desc(),
                )
                .offset(filters.offset)
                .limit(filters.limit)
                .all()
            )
            return items, total

    def list_active(
        self,
        member_id: int | None = None,
        *,
        with_expiry_only: bool = False,
        food_id: int | None = None,
    ) -> list[InventoryItem]:
        with self._guard("inventory.list_active"):
            query = self.db.query(InventoryItem).options(joinedload(InventoryItem.food)).filter(_active())
            if member_id is not None:
                query = query.filter(InventoryItem.member_id == member_id)
            if with_expiry_only:
                query = query.filter(InventoryItem.expiry_date.is_not(None))
            if food_id is not None:
                query = query.filter(InventoryItem.food_id == food_id)
            return query.order_by(InventoryItem.id).all()

    def list_active_ids(self, *, with_expiry_only: bool = False) -> list[int]:
        with self._guard("inventory.list_active_ids"):
            stmt = select(InventoryItem.id).where(_active())
            if with_expiry_only:
                stmt = stmt.where(InventoryItem.expiry_date.is_not(None))
            return list(self.db.scalars(stmt.order_by(InventoryItem.id)))

    def list_low_stock(self, member_id: int) -> list[InventoryItem]:
        with self._guard("inventory.list_low_stock"):
            return (
                self.db.query(InventoryItem)
                .options(joinedload(InventoryItem.food))
                .filter(
                    InventoryItem.member_id == member_id,
                    _active(),
                    InventoryItem.is_low_stock.is_(True),
                )
                .order_by(InventoryItem.quantity.asc(), InventoryItem.id)
                .all()
            )

    def list_fefo_candidates(self, member_id: int, food_id: int) -> list[InventoryItem]:
        """Active stock of one food, soonest expiry first, undated stock last, oldest first on ties."""
        with self._guard("inventory.list_fefo_candidates"):
            return (
                self.db.query(InventoryItem)
                .filter(
                    InventoryItem.member_id == member_id,
                    InventoryItem.food_id == food_id,
                    InventoryItem.quantity > 0,
                    _active(),
                )
                .order_by(
                    InventoryItem.expiry_date.is_(None),
                    InventoryItem.expiry_date.asc(),
                    InventoryItem.created_at.asc(),
                    InventoryItem.id.asc(),
                )
                .all()
            )

    def list_expired_before(self, member_id: int, cutoff: datetime) -> list[InventoryItem]:
        with self._guard("inventory.list_expired_before"):
            return (
                self.db.query(InventoryItem)
                .filter(
                    InventoryItem.member_id == member_id,
                    _active(),
                    InventoryItem.expiry_date.is_not(None),
                    InventoryItem.expiry_date < cutoff,
                )
                .all()
            )

    def count_active(self, member_id: int) -> int:
        with self._guard("inventory.count_active"):
            return (
                self.db.query(func.count(InventoryItem.id))
                .filter(InventoryItem.member_id == member_id, _active())
                .scalar()
                or 0
            )

    def decrement(self, item_id: int, amount: float, used_at: datetime) -> bool:
        """Subtract ``amount`` only while enough stock remains.

        This is one conditional UPDATE, so two concurrent calls can never both
        draw on stock that only covers one of them.
        """
        with self._guard("inventory.decrement"):
            result = self.db.execute(
                update(InventoryItem)
                .where(
                    InventoryItem.id == item_id,
                    _active(),
                    InventoryItem.quantity >= amount,
                )
                .values(
                    quantity=InventoryItem.quantity - amount,
                    last_used_at=used_at,
                    updated_at=used_at,
                )
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    def record_usage(
        self,
        *,
        item_id: int,
        member_id: int,
        amount: float,
        reason: str,
        used_at: datetime,
        meal_id: int | None = None,
        recipe_id: int | None = None,
        notes: str | None = None,
    ) -> InventoryUsage | None:
        """Decrement stock and append the usage event, or return None when stock is short."""
        if not self.decrement(item_id, amount, used_at):
            return None

        with self._guard("inventory.record_usage"):
            usage = InventoryUsage(
                item_id=item_id,
                member_id=member_id,
                used_quantity=amount,
                reason=reason,
                meal_id=meal_id,
                recipe_id=recipe_id,
                notes=notes,
                created_at=used_at,
            )
            self.db.add(usage)
            self.db.flush()
            return usage

    def status_counts(self, member_id: int) -> dict[str, int]:
        with self._guard("inventory.status_counts"):
            rows = (
                self.db.query(InventoryItem.status, func.count(InventoryItem.id))
                .filter(InventoryItem.member_id == member_id, _active())
                .group_by(InventoryItem.status)
                .all()
            )
            return {status: count for status, count in rows}

    def location_counts(self, member_id: int) -> dict[str, int]:
        with self._guard("inventory.location_counts"):
            rows = (
                self.db.query(InventoryItem.storage_location, func.count(InventoryItem.id))
                .filter(InventoryItem.member_id == member_id, _active())
                .group_by(InventoryItem.storage_location)
                .all()
            )
            return {location: count for location, count in rows}

    def aggregate_stats(self, member_id: int) -> tuple[int, int, float]:
        """Return (item count, distinct food categories, summed purchase price)."""
        with self._guard("inventory.aggregate_stats"):
            total, categories, value = (
                self.db.query(
                    func.count(InventoryItem.id),
                    func.count(func.distinct(Food.category)),
                    func.coalesce(func.sum(InventoryItem.purchase_price), 0.0),
                )
                .join(Food, InventoryItem.food_id == Food.id)
                .filter(InventoryItem.member_id == member_id, _active())
                .one()
            )
            return int(total or 0), int(categories or 0), float(value or 0.0)

    def create_waste_log(self, values: dict[str, Any]) -> WasteLog:
        with self._guard("inventory.create_waste_log"):
            waste_log = WasteLog(**values)
            self.db.add(waste_log)
            self.db.flush()
            return waste_log

    def list_waste_logs(self, member_id: int, since: datetime) -> list[WasteLog]:
        with self._guard("inventory.list_waste_logs"):
            return (
                self.db.query(WasteLog)
                .options(joinedload(WasteLog.item).joinedload(InventoryItem.food))
                .filter(WasteLog.member_id == member_id, WasteLog.created_at >= since)
                .order_by(WasteLog.created_at.asc(), WasteLog.id.asc())
                .all()
            )

    def usage_aggregates(self, member_id: int, since: datetime) -> list[tuple[int, str, int, float]]:
        """Return (food_id, unit, usage count, total used) per food and item unit."""
        with self._guard("inventory.usage_aggregates"):
            usage_count = func.count(InventoryUsage.id)
            rows = (
                self.db.query(
                    InventoryItem.food_id,
                    InventoryItem.unit,
                    usage_count,
                    func.sum(InventoryUsage.used_quantity),
                )
                .select_from(InventoryUsage)
                .join(InventoryItem, InventoryUsage.item_id == InventoryItem.id)
                .filter(InventoryUsage.member_id == member_id, InventoryUsage.created_at >= since)
                .group_by(InventoryItem.food_id, InventoryItem.unit)
                .order_by(InventoryItem.food_id.asc(), usage_count.desc(), InventoryItem.unit.asc())
                .all()
            )
            return [(food_id, unit, int(count), float(total or 0.0)) for food_id, unit, count, total in rows]

    def member_ids_with_expiry_before(self, cutoff: datetime) -> list[int]:
        with self._guard("inventory.member_ids_with_expiry_before"):
            rows = (
                self.db.query(InventoryItem.member_id)
                .filter(
                    _active(),
                    InventoryItem.quantity > 0,
                    InventoryItem.expiry_date.is_not(None),
                    InventoryItem.expiry_date <= cutoff,
                )
                .distinct()
                .order_by(InventoryItem.member_id)
                .all()
            )
            return [member_id for (member_id,) in rows]
