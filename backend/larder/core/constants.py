from enum import Enum


class InventoryStatus(str, Enum):
    FRESH = "FRESH"
    EXPIRING = "EXPIRING"
    EXPIRED = "EXPIRED"
    LOW_STOCK = "LOW_STOCK"
    OUT_OF_STOCK = "OUT_OF_STOCK"


class StorageLocation(str, Enum):
    REFRIGERATOR = "REFRIGERATOR"
    FREEZER = "FREEZER"
    PANTRY = "PANTRY"
    ROOM_TEMP = "ROOM_TEMP"
    OTHER = "OTHER"


class UsageReason(str, Enum):
    COOKING = "COOKING"
    EATING = "EATING"
    RECIPE = "RECIPE"
    EXPIRED = "EXPIRED"
    DAMAGED = "DAMAGED"
    OTHER = "OTHER"


class WasteReason(str, Enum):
    EXPIRED = "EXPIRED"
    SPOILED = "SPOILED"
    OVERSTOCK = "OVERSTOCK"
    DAMAGED = "DAMAGED"
    DISLIKED = "DISLIKED"
    OTHER = "OTHER"


class NotificationType(str, Enum):
    EXPIRY_ALERT = "EXPIRY_ALERT"
    LOW_STOCK_ALERT = "LOW_STOCK_ALERT"
    WASTE_REPORT = "WASTE_REPORT"
    PURCHASE_SUGGESTION = "PURCHASE_SUGGESTION"
    USAGE_REMINDER = "USAGE_REMINDER"


class Priority(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class NotificationFrequency(str, Enum):
    IMMEDIATE = "IMMEDIATE"
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"


class StockCoverage(str, Enum):
    SUFFICIENT = "SUFFICIENT"
    INSUFFICIENT = "INSUFFICIENT"
    OUT_OF_STOCK = "OUT_OF_STOCK"


PRIORITY_RANK: dict[Priority, int] = {
    Priority.HIGH: 3,
    Priority.MEDIUM: 2,
    Priority.LOW: 1,
}

FREQUENCY_DAYS: dict[NotificationFrequency, int] = {
    NotificationFrequency.IMMEDIATE: 0,
    NotificationFrequency.DAILY: 1,
    NotificationFrequency.WEEKLY: 7,
    NotificationFrequency.MONTHLY: 30,
}
