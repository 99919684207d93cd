from datetime import datetime

from pydantic import BaseModel, Field

from larder.core.constants import Priority, StorageLocation
from larder.schemas.common import BatchReportRead


class ShoppingSuggestionRead(BaseModel):
    food_id: int
    food_name: str
    category: str
    suggested_quantity: float
    unit: str
    priority: Priority
    source: str
    reason: str
    current_quantity: float
    estimated_price: float | None = None


class OptimizedItemRead(BaseModel):
    shopping_item_id: int
    food_id: int
    food_name: str
    original_amount: float
    optimized_amount: float
    unit: str
    action: str
    reason: str
    original_price: float
    optimized_price: float


class ShoppingListOptimizationRead(BaseModel):
    list_id: int
    items: list[OptimizedItemRead] = Field(default_factory=list)
    additional_suggestions: list[ShoppingSuggestionRead] = Field(default_factory=list)
    original_cost: float
    optimized_cost: float
    savings: float


class InventoryShoppingListRead(BaseModel):
    list_id: int
    name: str
    budget: float
    estimated_cost: float
    item_count: int
    suggestions: list[ShoppingSuggestionRead] = Field(default_factory=list)


class PurchasedItem(BaseModel):
    food_id: int = Field(gt=0)
    quantity: float = Field(gt=0)
    unit: str = Field(min_length=1, max_length=20)
    price: float | None = Field(default=None, ge=0)
    expiry_date: datetime | None = None
    storage_location: StorageLocation | None = None
    shopping_item_id: int | None = Field(default=None, gt=0)


class ShoppingSyncRead(BaseModel):
    report: BatchReportRead
    updated_item_ids: list[int] = Field(default_factory=list)
    created_item_ids: list[int] = Field(default_factory=list)
