from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy.orm import joinedload, selectinload

from larder.models.shopping import ShoppingItem, ShoppingList
from larder.repositories.base import SqlRepository


class ShoppingRepository(SqlRepository):
    def get_list(self, list_id: int) -> ShoppingList | None:
        with self._guard("shopping.get_list"):
            return (
                self.db.query(ShoppingList)
                .options(selectinload(ShoppingList.items).joinedload(ShoppingItem.food))
                .filter(ShoppingList.id == list_id)
                .first()
            )

    def create_list(
        self,
        *,
        member_id: int,
        name: str,
        budget: float | None,
        estimated_cost: float | None,
        items: list[dict[str, Any]],
        notes: str | None = None,
        created_at: datetime | None = None,
    ) -> ShoppingList:
        with self._guard("shopping.create_list"):
            shopping_list = ShoppingList(
                member_id=member_id,
                name=name,
                budget=budget,
                estimated_cost=estimated_cost,
                notes=notes,
                items=[ShoppingItem(**values) for values in items],
            )
            if created_at is not None:
                shopping_list.created_at = created_at
            self.db.add(shopping_list)
            self.db.flush()
            return shopping_list

    def get_item(self, item_id: int) -> ShoppingItem | None:
        with self._guard("shopping.get_item"):
            return self.db.get(ShoppingItem, item_id)

    def mark_item_purchased(self, item: ShoppingItem, purchased_at: datetime) -> ShoppingItem:
        with self._guard("shopping.mark_item_purchased"):
            item.is_purchased = True
            item.purchased_at = purchased_at
            self.db.add(item)
            self.db.flush()
            return item

    def complete_list_if_done(self, list_id: int) -> bool:
        with self._guard("shopping.complete_list_if_done"):
            shopping_list = self.db.get(ShoppingList, list_id)
            if shopping_list is None or not shopping_list.items:
                return False
            if not all(item.is_purchased for item in shopping_list.items):
                return False
            shopping_list.status = "COMPLETED"
            self.db.add(shopping_list)
            self.db.flush()
            return True
