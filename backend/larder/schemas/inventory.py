from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from larder.core.constants import InventoryStatus, StorageLocation, UsageReason, WasteReason


class FoodRead(BaseModel):
    id: int
    name: str
    name_en: str | None = None
    category: str

    model_config = ConfigDict(from_attributes=True)


class InventoryItemCreate(BaseModel):
    food_id: int = Field(gt=0)
    quantity: float = Field(gt=0)
    unit: str = Field(min_length=1, max_length=20)
    purchase_price: float | None = Field(default=None, ge=0)
    purchase_source: str | None = Field(default=None, max_length=120)
    expiry_date: datetime | None = None
    production_date: datetime | None = None
    min_stock_threshold: float | None = Field(default=None, ge=0)
    storage_location: StorageLocation = StorageLocation.REFRIGERATOR
    storage_notes: str | None = None
    barcode: str | None = Field(default=None, max_length=64)
    brand: str | None = Field(default=None, max_length=80)


class InventoryItemUpdate(BaseModel):
    quantity: float | None = Field(default=None, ge=0)
    unit: str | None = Field(default=None, min_length=1, max_length=20)
    purchase_price: float | None = Field(default=None, ge=0)
    purchase_source: str | None = Field(default=None, max_length=120)
    expiry_date: datetime | None = None
    production_date: datetime | None = None
    min_stock_threshold: float | None = Field(default=None, ge=0)
    storage_location: StorageLocation | None = None
    storage_notes: str | None = None
    barcode: str | None = Field(default=None, max_length=64)
    brand: str | None = Field(default=None, max_length=80)


class InventoryUsageRead(BaseModel):
    id: int
    item_id: int
    member_id: int
    used_quantity: float
    reason: UsageReason
    meal_id: int | None = None
    recipe_id: int | None = None
    notes: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class WasteLogRead(BaseModel):
    id: int
    item_id: int
    member_id: int
    wasted_quantity: float
    waste_reason: WasteReason
    estimated_cost: float | None = None
    notes: str | None = None
    preventable: bool
    prevention_tip: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class InventoryItemRead(BaseModel):
    id: int
    member_id: int
    food_id: int
    quantity: float
    original_quantity: float
    unit: str
    purchase_price: float | None = None
    purchase_source: str | None = None
    expiry_date: datetime | None = None
    production_date: datetime | None = None
    days_to_expiry: int | None = None
    status: InventoryStatus
    is_low_stock: bool
    min_stock_threshold: float | None = None
    storage_location: StorageLocation
    storage_notes: str | None = None
    barcode: str | None = None
    brand: str | None = None
    last_used_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    food: FoodRead | None = None

    model_config = ConfigDict(from_attributes=True)


class InventoryItemDetailRead(InventoryItemRead):
    usages: list[InventoryUsageRead] = Field(default_factory=list)
    waste_logs: list[WasteLogRead] = Field(default_factory=list)


class InventoryFilter(BaseModel):
    status: InventoryStatus | None = None
    storage_location: StorageLocation | None = None
    category: str | None = None
    expiring: bool = False
    expired: bool = False
    low_stock: bool = False
    limit: int = Field(default=50, ge=1, le=200)
    offset: int = Field(default=0, ge=0)


class InventoryPage(BaseModel):
    items: list[InventoryItemRead]
    total: int
    limit: int
    offset: int


class RecipeIngredientUse(BaseModel):
    food_id: int = Field(gt=0)
    quantity: float = Field(gt=0)
    unit: str | None = Field(default=None, max_length=20)


class UsedIngredientRead(BaseModel):
    food_id: int
    item_id: int
    used_quantity: float
    unit: str
    remaining_quantity: float
    status: InventoryStatus


class SkippedIngredientRead(BaseModel):
    food_id: int
    required_quantity: float
    reason: str


class RecipeUsageResultRead(BaseModel):
    recipe_name: str
    used: list[UsedIngredientRead] = Field(default_factory=list)
    skipped: list[SkippedIngredientRead] = Field(default_factory=list)


class InventoryStatsRead(BaseModel):
    total_items: int
    fresh_items: int
    expiring_items: int
    expired_items: int
    low_stock_items: int
    out_of_stock_items: int
    total_categories: int
    estimated_value: float
    by_location: dict[str, int] = Field(default_factory=dict)
