from __future__ import annotations

import logging
import threading
from collections import defaultdict
from datetime import date, datetime, time, timedelta
from typing import TYPE_CHECKING

from larder.core.clock import Clock, utcnow
from larder.core.config import settings
from larder.core.constants import StorageLocation, WasteReason
from larder.core.errors import NotFoundError, PermissionDeniedError
from larder.core.logging import log_event
from larder.models.inventory import InventoryItem
from larder.repositories.base import transaction, unit_failure
from larder.repositories.inventory import InventoryRepository
from larder.schemas.common import BatchReportRead
from larder.schemas.expiry import (
    DailyCountRead,
    ExpiredHandlingRead,
    ExpiryAlertRead,
    ExpirySummaryRead,
    ExpirySweepRead,
    ExpiryTrendRead,
    WasteCategoryRead,
)
from larder.services.inventory_tracker import waste_cost
from larder.services.status_classifier import apply_classification, days_to_expiry

if TYPE_CHECKING:
    from larder.services.inventory_notification import InventoryNotificationService

logger = logging.getLogger("larder.expiry")

_PREVENTION_TIPS: dict[str, str] = {
    StorageLocation.REFRIGERATOR.value: "Keep the refrigerator at or below 4°C and move older items to the front.",
    StorageLocation.FREEZER.value: "Freeze portions before they expire; freezing extends shelf life considerably.",
    StorageLocation.PANTRY.value: "Store pantry goods somewhere cool, dry and ventilated, and rotate older stock forward.",
}
_DEFAULT_PREVENTION_TIP = "Buy smaller quantities and plan meals around what is already in stock."


def prevention_tip(storage_location: str) -> str:
    return _PREVENTION_TIPS.get(storage_location, _DEFAULT_PREVENTION_TIP)


def estimated_value(item: InventoryItem) -> float:
    # Pro-rated by what is left of the original purchase.
    if item.purchase_price is None or item.original_quantity <= 0:
        return 0.0
    return round(item.purchase_price * item.quantity / item.original_quantity, 2)


def build_recommendations(expired: list[ExpiryAlertRead], expiring: list[ExpiryAlertRead]) -> list[str]:
    """Fixed rule table. Every rule that matches contributes, in a stable order."""
    recommendations: list[str] = []
    if expired:
        recommendations.append(f"Dispose of {len(expired)} expired item(s) promptly.")
        recommendations.append("Check storage conditions to keep other items from spoiling.")
    if expiring:
        recommendations.append(f"Use the {len(expiring)} item(s) expiring soon first.")
        recommendations.append("Consider batch-cooking a recipe that uses the expiring ingredients.")

    locations = {alert.storage_location for alert in [*expired, *expiring]}
    if StorageLocation.REFRIGERATOR in locations:
        recommendations.append("Verify the refrigerator temperature stays below 4°C.")
    if StorageLocation.PANTRY in locations:
        recommendations.append("Periodically inspect shelf-stable goods in the pantry.")
    return recommendations


def _to_alert(item: InventoryItem, now: datetime) -> ExpiryAlertRead:
    return ExpiryAlertRead(
        item_id=item.id,
        food_id=item.food_id,
        food_name=item.food.name,
        category=item.food.category,
        quantity=item.quantity,
        unit=item.unit,
        expiry_date=item.expiry_date,
        days_to_expiry=days_to_expiry(item.expiry_date, now),
        status=item.status,
        storage_location=item.storage_location,
        estimated_value=estimated_value(item),
    )


class ExpiryMonitor:
    def __init__(self, inventory: InventoryRepository, *, clock: Clock = utcnow) -> None:
        self.inventory = inventory
        self.clock = clock

    @property
    def db(self):
        return self.inventory.db

    def _refresh_item(self, item_id: int) -> bool:
        with transaction(self.db, "expiry.refresh_item"):
            item = self.inventory.get(item_id)
            if item is None:
                return False
            return apply_classification(item, self.clock(), expiring_window_days=settings.expiring_window_days)

    def refresh_all_statuses(self, cancel_event: threading.Event | None = None) -> BatchReportRead:
        """Reclassify every active item that has an expiry date, one commit per item."""
        report = BatchReportRead()
        for item_id in self.inventory.list_active_ids(with_expiry_only=True):
            if cancel_event is not None and cancel_event.is_set():
                report.cancelled = True
                break
            try:
                changed = self._refresh_item(item_id)
            except Exception as exc:
                error = unit_failure(self.db, exc)
                report.add_failure(item_id, error)
                log_event(logger, logging.WARNING, "expiry_refresh_item_failed", item_id=item_id, error=error)
                continue
            report.add_success(changed=changed)

        log_event(
            logger,
            logging.INFO,
            "expiry_refresh_completed",
            processed=report.processed,
            changed=report.changed,
            failed=report.failed,
            cancelled=report.cancelled,
        )
        return report

    def get_expiry_summary(self, member_id: int, expiring_within_days: int | None = None) -> ExpirySummaryRead:
        window = settings.expiring_window_days if expiring_within_days is None else expiring_within_days
        now = self.clock()

        with transaction(self.db, "expiry.get_expiry_summary"):
            items = self.inventory.list_active(member_id, with_expiry_only=True)
            for item in items:
                apply_classification(item, now, expiring_window_days=settings.expiring_window_days)

        expired: list[ExpiryAlertRead] = []
        expiring: list[ExpiryAlertRead] = []
        for item in items:
            if item.quantity <= 0:
                continue
            days = days_to_expiry(item.expiry_date, now)
            if days is None:
                continue
            if days < 0:
                expired.append(_to_alert(item, now))
            elif days <= window:
                expiring.append(_to_alert(item, now))

        expired.sort(key=lambda alert: (alert.expiry_date, alert.item_id))
        expiring.sort(key=lambda alert: (alert.expiry_date, alert.item_id))
        expired_value = round(sum(alert.estimated_value for alert in expired), 2)
        expiring_value = round(sum(alert.estimated_value for alert in expiring), 2)

        return ExpirySummaryRead(
            member_id=member_id,
            expired_items=expired,
            expiring_items=expiring,
            expired_count=len(expired),
            expiring_count=len(expiring),
            expired_value=expired_value,
            expiring_value=expiring_value,
            total_value=round(expired_value + expiring_value, 2),
            recommendations=build_recommendations(expired, expiring),
        )

    def get_expiry_trends(self, member_id: int, days: int | None = None) -> ExpiryTrendRead:
        window = settings.expiry_trend_window_days if days is None else days
        if window < 1:
            window = 1
        now = self.clock()
        first_day = (now - timedelta(days=window - 1)).date()
        waste_logs = self.inventory.list_waste_logs(member_id, datetime.combine(first_day, time.min))

        expired_by_day: dict[date, int] = defaultdict(int)
        waste_by_day: dict[date, int] = defaultdict(int)
        categories: dict[str, WasteCategoryRead] = {}
        for waste_log in waste_logs:
            day = waste_log.created_at.date()
            waste_by_day[day] += 1
            if waste_log.waste_reason == WasteReason.EXPIRED.value:
                expired_by_day[day] += 1

            category = waste_log.item.food.category
            entry = categories.setdefault(category, WasteCategoryRead(category=category, count=0, quantity=0.0, value=0.0))
            entry.count += 1
            entry.quantity = round(entry.quantity + waste_log.wasted_quantity, 4)
            entry.value = round(entry.value + (waste_log.estimated_cost or 0.0), 2)

        daily = [
            DailyCountRead(
                day=first_day + timedelta(days=offset),
                expired_count=expired_by_day.get(first_day + timedelta(days=offset), 0),
                waste_count=waste_by_day.get(first_day + timedelta(days=offset), 0),
            )
            for offset in range(window)
        ]
        top_categories = sorted(categories.values(), key=lambda entry: (-entry.count, entry.category))[:5]

        total_active = self.inventory.count_active(member_id)
        waste_rate = round(len(waste_logs) / total_active * 100, 2) if total_active else 0.0

        return ExpiryTrendRead(
            member_id=member_id,
            days=window,
            daily=daily,
            top_waste_categories=top_categories,
            total_waste_events=len(waste_logs),
            total_active_items=total_active,
            waste_rate=waste_rate,
        )

    def _handle_expired_item(self, item_id: int, member_id: int) -> tuple[int | None, float]:
        now = self.clock()
        with transaction(self.db, "expiry.handle_expired_item"):
            item = self.inventory.get(item_id)
            if item is None:
                raise NotFoundError("Inventory item", item_id)
            if item.member_id != member_id:
                raise PermissionDeniedError(f"Inventory item {item_id} does not belong to member {member_id}.")

            wasted = item.quantity
            waste_log_id: int | None = None
            cost = waste_cost(item, wasted) if wasted > 0 else None
            if wasted > 0:
                waste_log = self.inventory.create_waste_log(
                    {
                        "item_id": item.id,
                        "member_id": member_id,
                        "wasted_quantity": wasted,
                        "waste_reason": WasteReason.EXPIRED.value,
                        "estimated_cost": cost,
                        "preventable": True,
                        "prevention_tip": prevention_tip(item.storage_location),
                        "created_at": now,
                    }
                )
                waste_log_id = waste_log.id

            self.inventory.update(item, {"quantity": 0.0, "updated_at": now})
            apply_classification(item, now, expiring_window_days=settings.expiring_window_days)
            return waste_log_id, cost or 0.0

    def handle_expired_items(
        self,
        member_id: int,
        item_ids: list[int],
        cancel_event: threading.Event | None = None,
    ) -> ExpiredHandlingRead:
        """Write off confirmed-expired items: log the waste, zero the stock, mark OUT_OF_STOCK."""
        result = ExpiredHandlingRead(report=BatchReportRead())
        total_cost = 0.0
        for item_id in item_ids:
            if cancel_event is not None and cancel_event.is_set():
                result.report.cancelled = True
                break
            try:
                waste_log_id, cost = self._handle_expired_item(item_id, member_id)
            except Exception as exc:
                error = unit_failure(self.db, exc)
                result.report.add_failure(item_id, error)
                log_event(
                    logger,
                    logging.WARNING,
                    "expired_item_handling_failed",
                    item_id=item_id,
                    member_id=member_id,
                    error=error,
                )
                continue

            result.report.add_success(changed=True)
            if waste_log_id is not None:
                result.waste_log_ids.append(waste_log_id)
            total_cost += cost

        result.total_wasted_cost = round(total_cost, 2)
        log_event(
            logger,
            logging.INFO,
            "expired_items_handled",
            member_id=member_id,
            succeeded=result.report.succeeded,
            failed=result.report.failed,
            total_wasted_cost=result.total_wasted_cost,
        )
        return result

    def run_sweep(
        self,
        notifications: InventoryNotificationService,
        cancel_event: threading.Event | None = None,
    ) -> ExpirySweepRead:
        """Refresh every status, then raise expiry notifications for each member with expiring stock."""
        refresh = self.refresh_all_statuses(cancel_event)
        notification_report = BatchReportRead()
        created = 0
        if refresh.cancelled:
            notification_report.cancelled = True
            return ExpirySweepRead(refresh=refresh, notifications=notification_report)

        horizon = self.clock() + timedelta(days=settings.expiry_notification_horizon_days)
        for member_id in self.inventory.member_ids_with_expiry_before(horizon):
            if cancel_event is not None and cancel_event.is_set():
                notification_report.cancelled = True
                break
            try:
                run = notifications.generate_expiry_notifications(member_id, respect_cadence=True)
            except Exception as exc:
                error = unit_failure(self.db, exc)
                notification_report.add_failure(member_id, error)
                log_event(logger, logging.WARNING, "expiry_notification_failed", member_id=member_id, error=error)
                continue
            notification_report.add_success(changed=bool(run.created))
            created += len(run.created)

        log_event(
            logger,
            logging.INFO,
            "expiry_sweep_completed",
            members=notification_report.processed,
            notifications_created=created,
            failed=notification_report.failed,
        )
        return ExpirySweepRead(refresh=refresh, notifications=notification_report, notifications_created=created)
