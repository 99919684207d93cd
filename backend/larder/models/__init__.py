from larder.models.food import Food
from larder.models.inventory import InventoryItem, InventoryUsage, WasteLog
from larder.models.member import Member
from larder.models.notification import Notification, NotificationConfig
from larder.models.recipe import Recipe, RecipeHistory, RecipeIngredient
from larder.models.shopping import ShoppingItem, ShoppingList

__all__ = [
    "Food",
    "InventoryItem",
    "InventoryUsage",
    "Member",
    "Notification",
    "NotificationConfig",
    "Recipe",
    "RecipeHistory",
    "RecipeIngredient",
    "ShoppingItem",
    "ShoppingList",
    "WasteLog",
]
