from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session

from larder.core.clock import Clock, utcnow
from larder.repositories.catalog import CatalogRepository
from larder.repositories.inventory import InventoryRepository
from larder.repositories.notification import NotificationConfigRepository, NotificationRepository
from larder.repositories.shopping import ShoppingRepository
from larder.services.expiry_monitor import ExpiryMonitor
from larder.services.inventory_notification import InventoryNotificationService
from larder.services.inventory_tracker import InventoryTracker
from larder.services.recipe_integration import InventoryRecipeIntegration
from larder.services.shopping_integration import InventoryShoppingIntegration


@dataclass
class InventoryServices:
    tracker: InventoryTracker
    expiry: ExpiryMonitor
    notifications: InventoryNotificationService
    recipes: InventoryRecipeIntegration
    shopping: InventoryShoppingIntegration


def build_services(db: Session, *, clock: Clock = utcnow) -> InventoryServices:
    """Wire every service around one session. Build a fresh set per unit of work."""
    inventory = InventoryRepository(db)
    catalog = CatalogRepository(db)

    expiry = ExpiryMonitor(inventory, clock=clock)
    shopping = InventoryShoppingIntegration(inventory, catalog, ShoppingRepository(db), clock=clock)
    notifications = InventoryNotificationService(
        NotificationRepository(db),
        NotificationConfigRepository(db),
        inventory,
        catalog,
        expiry,
        shopping,
        clock=clock,
    )
    return InventoryServices(
        tracker=InventoryTracker(inventory, catalog, clock=clock),
        expiry=expiry,
        notifications=notifications,
        recipes=InventoryRecipeIntegration(inventory, catalog, clock=clock),
        shopping=shopping,
    )
