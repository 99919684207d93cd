from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from larder.core.constants import NotificationFrequency, NotificationType, Priority
from larder.schemas.common import BatchReportRead


class NotificationConfigRead(BaseModel):
    id: int
    member_id: int
    expiry_alert_enabled: bool
    expiry_advance_days: list[int]
    expiry_alert_frequency: NotificationFrequency
    low_stock_alert_enabled: bool
    low_stock_threshold: float
    low_stock_alert_frequency: NotificationFrequency
    waste_report_enabled: bool
    waste_report_frequency: NotificationFrequency
    usage_reminder_enabled: bool
    usage_reminder_frequency: NotificationFrequency
    purchase_suggestion_enabled: bool
    purchase_suggestion_frequency: NotificationFrequency

    model_config = ConfigDict(from_attributes=True)


class NotificationConfigUpdate(BaseModel):
    expiry_alert_enabled: bool | None = None
    expiry_advance_days: list[int] | None = Field(default=None, min_length=1, max_length=10)
    expiry_alert_frequency: NotificationFrequency | None = None
    low_stock_alert_enabled: bool | None = None
    low_stock_threshold: float | None = Field(default=None, ge=0)
    low_stock_alert_frequency: NotificationFrequency | None = None
    waste_report_enabled: bool | None = None
    waste_report_frequency: NotificationFrequency | None = None
    usage_reminder_enabled: bool | None = None
    usage_reminder_frequency: NotificationFrequency | None = None
    purchase_suggestion_enabled: bool | None = None
    purchase_suggestion_frequency: NotificationFrequency | None = None


class NotificationCreate(BaseModel):
    type: NotificationType
    title: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1)
    priority: Priority = Priority.MEDIUM
    data: dict[str, Any] | None = None
    dedup_key: str | None = Field(default=None, max_length=64)
    scheduled_for: datetime | None = None
    expires_at: datetime | None = None


class NotificationRead(BaseModel):
    id: int
    member_id: int
    type: NotificationType
    title: str
    message: str
    priority: Priority
    data: dict[str, Any] | None = None
    dedup_key: str | None = None
    is_read: bool
    read_at: datetime | None = None
    scheduled_for: datetime | None = None
    expires_at: datetime | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class NotificationFilter(BaseModel):
    type: NotificationType | None = None
    priority: Priority | None = None
    is_read: bool | None = None
    limit: int = Field(default=20, ge=1, le=100)
    offset: int = Field(default=0, ge=0)


class NotificationPage(BaseModel):
    items: list[NotificationRead]
    total: int
    unread_count: int
    limit: int
    offset: int


class NotificationSummaryRead(BaseModel):
    total_unread: int
    high: int
    medium: int
    low: int


class NotificationRunRead(BaseModel):
    member_id: int
    created: list[NotificationRead] = Field(default_factory=list)
    deduplicated: int = 0
    skipped_families: list[NotificationType] = Field(default_factory=list)


class NotificationJobRead(BaseModel):
    report: BatchReportRead
    created_count: int = 0
