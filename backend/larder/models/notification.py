from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from larder.core.constants import NotificationFrequency, Priority
from larder.core.database import Base

if TYPE_CHECKING:
    from larder.models.member import Member


class NotificationConfig(Base):
    __tablename__ = "notification_configs"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    member_id: Mapped[int] = mapped_column(
        ForeignKey("members.id", ondelete="CASCADE"), nullable=False, unique=True, index=True
    )

    expiry_alert_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    expiry_advance_days: Mapped[list[int]] = mapped_column(JSON, default=lambda: [3, 7], nullable=False)
    expiry_alert_frequency: Mapped[str] = mapped_column(String(20), default=NotificationFrequency.DAILY.value)

    low_stock_alert_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    low_stock_threshold: Mapped[float] = mapped_column(Float, default=1.0)
    low_stock_alert_frequency: Mapped[str] = mapped_column(String(20), default=NotificationFrequency.IMMEDIATE.value)

    waste_report_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    waste_report_frequency: Mapped[str] = mapped_column(String(20), default=NotificationFrequency.WEEKLY.value)

    usage_reminder_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    usage_reminder_frequency: Mapped[str] = mapped_column(String(20), default=NotificationFrequency.DAILY.value)

    purchase_suggestion_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    purchase_suggestion_frequency: Mapped[str] = mapped_column(String(20), default=NotificationFrequency.WEEKLY.value)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    member: Mapped[Member] = relationship(back_populates="notification_config")


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    member_id: Mapped[int] = mapped_column(ForeignKey("members.id", ondelete="CASCADE"), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[str] = mapped_column(String(10), default=Priority.MEDIUM.value, nullable=False)
    data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    dedup_key: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    read_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    scheduled_for: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    member: Mapped[Member] = relationship(back_populates="notifications")
