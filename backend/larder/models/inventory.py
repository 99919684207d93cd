from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from larder.core.constants import InventoryStatus, StorageLocation
from larder.core.database import Base

if TYPE_CHECKING:
    from larder.models.food import Food
    from larder.models.member import Member


class InventoryItem(Base):
    __tablename__ = "inventory_items"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    member_id: Mapped[int] = mapped_column(ForeignKey("members.id", ondelete="CASCADE"), nullable=False, index=True)
    food_id: Mapped[int] = mapped_column(ForeignKey("foods.id"), nullable=False, index=True)
    quantity: Mapped[float] = mapped_column(Float, nullable=False)
    original_quantity: Mapped[float] = mapped_column(Float, nullable=False)
    unit: Mapped[str] = mapped_column(String(20), nullable=False)
    purchase_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    purchase_source: Mapped[str | None] = mapped_column(String(120), nullable=True)
    expiry_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, index=True)
    production_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    days_to_expiry: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=InventoryStatus.FRESH.value, nullable=False, index=True)
    is_low_stock: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    min_stock_threshold: Mapped[float | None] = mapped_column(Float, nullable=True)
    storage_location: Mapped[str] = mapped_column(String(20), default=StorageLocation.REFRIGERATOR.value, nullable=False)
    storage_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    barcode: Mapped[str | None] = mapped_column(String(64), nullable=True)
    brand: Mapped[str | None] = mapped_column(String(80), nullable=True)
    last_used_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, index=True)

    member: Mapped[Member] = relationship(back_populates="inventory_items")
    food: Mapped[Food] = relationship()
    usages: Mapped[list[InventoryUsage]] = relationship(
        back_populates="item",
        cascade="all, delete-orphan",
        order_by="InventoryUsage.created_at.desc()",
    )
    waste_logs: Mapped[list[WasteLog]] = relationship(
        back_populates="item",
        cascade="all, delete-orphan",
        order_by="WasteLog.created_at.desc()",
    )


class InventoryUsage(Base):
    __tablename__ = "inventory_usages"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    item_id: Mapped[int] = mapped_column(ForeignKey("inventory_items.id", ondelete="CASCADE"), nullable=False, index=True)
    member_id: Mapped[int] = mapped_column(ForeignKey("members.id", ondelete="CASCADE"), nullable=False, index=True)
    used_quantity: Mapped[float] = mapped_column(Float, nullable=False)
    reason: Mapped[str] = mapped_column(String(20), nullable=False)
    meal_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    recipe_id: Mapped[int | None] = mapped_column(ForeignKey("recipes.id", ondelete="SET NULL"), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    item: Mapped[InventoryItem] = relationship(back_populates="usages")


class WasteLog(Base):
    __tablename__ = "waste_logs"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    item_id: Mapped[int] = mapped_column(ForeignKey("inventory_items.id", ondelete="CASCADE"), nullable=False, index=True)
    member_id: Mapped[int] = mapped_column(ForeignKey("members.id", ondelete="CASCADE"), nullable=False, index=True)
    wasted_quantity: Mapped[float] = mapped_column(Float, nullable=False)
    waste_reason: Mapped[str] = mapped_column(String(20), nullable=False)
    estimated_cost: Mapped[float | None] = mapped_column(Float, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    preventable: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    prevention_tip: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    item: Mapped[InventoryItem] = relationship(back_populates="waste_logs")
