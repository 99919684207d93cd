"""Pure freshness and stock classification for inventory items.

Nothing in this module touches storage. Every function takes ``now`` explicitly
so the same inputs always classify the same way.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from larder.core.constants import InventoryStatus

EXPIRING_WINDOW_DAYS = 3
_SECONDS_PER_DAY = 86400


class Classifiable(Protocol):
    quantity: float
    expiry_date: datetime | None
    min_stock_threshold: float | None
    status: str
    days_to_expiry: int | None
    is_low_stock: bool


@dataclass(frozen=True)
class Classification:
    status: InventoryStatus
    days_to_expiry: int | None
    is_low_stock: bool


def days_to_expiry(expiry_date: datetime | None, now: datetime) -> int | None:
    if expiry_date is None:
        return None
    return math.ceil((expiry_date - now).total_seconds() / _SECONDS_PER_DAY)


def is_low_stock(quantity: float, min_stock_threshold: float | None) -> bool:
    return min_stock_threshold is not None and quantity <= min_stock_threshold


def classify(
    quantity: float,
    expiry_date: datetime | None,
    min_stock_threshold: float | None,
    now: datetime,
    *,
    expiring_window_days: int = EXPIRING_WINDOW_DAYS,
) -> Classification:
    days = days_to_expiry(expiry_date, now)
    low_stock = is_low_stock(quantity, min_stock_threshold)

    # Zero stock wins over expiry, so an emptied expired batch reads OUT_OF_STOCK.
    if quantity <= 0:
        status = InventoryStatus.OUT_OF_STOCK
    elif low_stock:
        status = InventoryStatus.LOW_STOCK
    elif days is not None and days < 0:
        status = InventoryStatus.EXPIRED
    elif days is not None and days <= expiring_window_days:
        status = InventoryStatus.EXPIRING
    else:
        status = InventoryStatus.FRESH

    return Classification(status=status, days_to_expiry=days, is_low_stock=low_stock)


def apply_classification(
    item: Classifiable,
    now: datetime,
    *,
    expiring_window_days: int = EXPIRING_WINDOW_DAYS,
) -> bool:
    """Stamp status, days_to_expiry and is_low_stock onto ``item``.

    Returns True when any of the three fields changed.
    """
    result = classify(
        item.quantity,
        item.expiry_date,
        item.min_stock_threshold,
        now,
        expiring_window_days=expiring_window_days,
    )
    changed = (
        item.status != result.status.value
        or item.days_to_expiry != result.days_to_expiry
        or item.is_low_stock != result.is_low_stock
    )
    item.status = result.status.value
    item.days_to_expiry = result.days_to_expiry
    item.is_low_stock = result.is_low_stock
    return changed
