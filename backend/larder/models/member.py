from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from larder.core.database import Base

if TYPE_CHECKING:
    from larder.models.inventory import InventoryItem
    from larder.models.notification import Notification, NotificationConfig


class Member(Base):
    __tablename__ = "members"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(80), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    inventory_items: Mapped[list[InventoryItem]] = relationship(back_populates="member")
    notifications: Mapped[list[Notification]] = relationship(back_populates="member")
    notification_config: Mapped[NotificationConfig | None] = relationship(back_populates="member", uselist=False)
