from datetime import date, datetime

from pydantic import BaseModel, Field

from larder.core.constants import InventoryStatus, StorageLocation
from larder.schemas.common import BatchReportRead
from larder.schemas.notification import NotificationJobRead


class ExpiryAlertRead(BaseModel):
    item_id: int
    food_id: int
    food_name: str
    category: str
    quantity: float
    unit: str
    expiry_date: datetime | None = None
    days_to_expiry: int | None = None
    status: InventoryStatus
    storage_location: StorageLocation
    estimated_value: float


class ExpirySummaryRead(BaseModel):
    member_id: int
    expired_items: list[ExpiryAlertRead] = Field(default_factory=list)
    expiring_items: list[ExpiryAlertRead] = Field(default_factory=list)
    expired_count: int
    expiring_count: int
    expired_value: float
    expiring_value: float
    total_value: float
    recommendations: list[str] = Field(default_factory=list)


class DailyCountRead(BaseModel):
    day: date
    expired_count: int
    waste_count: int


class WasteCategoryRead(BaseModel):
    category: str
    count: int
    quantity: float
    value: float


class ExpiryTrendRead(BaseModel):
    member_id: int
    days: int
    daily: list[DailyCountRead] = Field(default_factory=list)
    top_waste_categories: list[WasteCategoryRead] = Field(default_factory=list)
    total_waste_events: int
    total_active_items: int
    waste_rate: float


class ExpiredHandlingRead(BaseModel):
    report: BatchReportRead
    waste_log_ids: list[int] = Field(default_factory=list)
    total_wasted_cost: float = 0.0


class ExpirySweepRead(BaseModel):
    refresh: BatchReportRead
    notifications: BatchReportRead
    notifications_created: int = 0


class MaintenanceRunRead(BaseModel):
    sweep: ExpirySweepRead
    notifications: NotificationJobRead
    notifications_cleaned: int = 0
