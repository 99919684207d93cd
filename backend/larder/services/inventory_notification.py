from __future__ import annotations

import hashlib
import json
import logging
import threading
from collections import defaultdict
from datetime import timedelta
from typing import Any

from larder.core.clock import Clock, utcnow
from larder.core.config import settings
from larder.core.constants import (
    FREQUENCY_DAYS,
    NotificationFrequency,
    NotificationType,
    Priority,
)
from larder.core.errors import NotFoundError, PermissionDeniedError, ValidationError
from larder.core.logging import log_event
from larder.models.notification import Notification, NotificationConfig
from larder.repositories.base import transaction, unit_failure
from larder.repositories.catalog import CatalogRepository
from larder.repositories.inventory import InventoryRepository
from larder.repositories.notification import NotificationConfigRepository, NotificationRepository
from larder.schemas.common import BatchReportRead, parse_payload
from larder.schemas.expiry import ExpiryAlertRead
from larder.schemas.notification import (
    NotificationConfigRead,
    NotificationConfigUpdate,
    NotificationCreate,
    NotificationFilter,
    NotificationJobRead,
    NotificationPage,
    NotificationRead,
    NotificationRunRead,
    NotificationSummaryRead,
)
from larder.services.expiry_monitor import ExpiryMonitor
from larder.services.shopping_integration import InventoryShoppingIntegration

logger = logging.getLogger("larder.notifications")

DEFAULT_CONFIG: dict[str, Any] = {
    "expiry_alert_enabled": True,
    "expiry_advance_days": [3, 7],
    "expiry_alert_frequency": NotificationFrequency.DAILY.value,
    "low_stock_alert_enabled": True,
    "low_stock_threshold": 1.0,
    "low_stock_alert_frequency": NotificationFrequency.IMMEDIATE.value,
    "waste_report_enabled": True,
    "waste_report_frequency": NotificationFrequency.WEEKLY.value,
    "usage_reminder_enabled": False,
    "usage_reminder_frequency": NotificationFrequency.DAILY.value,
    "purchase_suggestion_enabled": True,
    "purchase_suggestion_frequency": NotificationFrequency.WEEKLY.value,
}


def dedup_key(family: NotificationType, kind: str, identities: list[int]) -> str:
    """Content signature of the condition a notification describes.

    Two candidates with the same family, kind and set of identities describe
    the same condition, whatever order the identities arrive in.
    """
    signature = json.dumps(
        {"family": family.value, "kind": kind, "ids": sorted(set(identities))},
        sort_keys=True,
    )
    return hashlib.sha256(signature.encode("utf-8")).hexdigest()


def _name_list(names: list[str], limit: int) -> str:
    shown = ", ".join(names[:limit])
    if len(names) > limit:
        shown += f" and {len(names) - limit} more"
    return shown


def _expiry_candidate(kind: str, alerts: list[ExpiryAlertRead], limit: int) -> NotificationCreate:
    total_value = round(sum(alert.estimated_value for alert in alerts), 2)
    if kind == "expired":
        title = "Ingredients have expired"
        names = [alert.food_name for alert in alerts]
        message = f"{len(alerts)} item(s) have expired: {_name_list(names, limit)}. Please dispose of them."
    else:
        title = "Ingredients expiring soon"
        names = [f"{alert.food_name} ({alert.days_to_expiry} day(s))" for alert in alerts]
        message = f"{len(alerts)} item(s) expire soon: {_name_list(names, limit)}. Use them first."

    return NotificationCreate(
        type=NotificationType.EXPIRY_ALERT,
        title=title,
        message=message,
        priority=Priority.HIGH,
        data={
            "kind": kind,
            "items": [alert.model_dump(mode="json") for alert in alerts],
            "total_value": total_value,
        },
        dedup_key=dedup_key(NotificationType.EXPIRY_ALERT, kind, [alert.item_id for alert in alerts]),
    )


class InventoryNotificationService:
    def __init__(
        self,
        notifications: NotificationRepository,
        configs: NotificationConfigRepository,
        inventory: InventoryRepository,
        catalog: CatalogRepository,
        expiry: ExpiryMonitor,
        shopping: InventoryShoppingIntegration,
        *,
        clock: Clock = utcnow,
    ) -> None:
        self.notifications = notifications
        self.configs = configs
        self.inventory = inventory
        self.catalog = catalog
        self.expiry = expiry
        self.shopping = shopping
        self.clock = clock

    @property
    def db(self):
        return self.notifications.db

    def _ensure_config(self, member_id: int) -> NotificationConfig:
        config = self.configs.get_by_member(member_id)
        if config is not None:
            return config
        if not self.catalog.member_exists(member_id):
            raise NotFoundError("Member", member_id)
        with transaction(self.db, "notifications.create_default_config"):
            config = self.configs.upsert(member_id, dict(DEFAULT_CONFIG))
        log_event(logger, logging.INFO, "notification_config_created", member_id=member_id)
        return config

    def get_config(self, member_id: int) -> NotificationConfigRead:
        return NotificationConfigRead.model_validate(self._ensure_config(member_id))

    def update_config(
        self,
        member_id: int,
        payload: NotificationConfigUpdate | dict[str, Any],
    ) -> NotificationConfigRead:
        data = parse_payload(NotificationConfigUpdate, payload)
        changes = {key: value for key, value in data.model_dump(exclude_unset=True).items() if value is not None}
        if "expiry_advance_days" in changes:
            if any(day < 0 for day in changes["expiry_advance_days"]):
                raise ValidationError("Advance days cannot be negative.")
            changes["expiry_advance_days"] = sorted(set(changes["expiry_advance_days"]))
        for key, value in changes.items():
            if isinstance(value, NotificationFrequency):
                changes[key] = value.value

        self._ensure_config(member_id)
        with transaction(self.db, "notifications.update_config"):
            config = self.configs.upsert(member_id, changes)
        log_event(logger, logging.INFO, "notification_config_updated", member_id=member_id, fields=sorted(changes))
        return NotificationConfigRead.model_validate(config)

    def _expiry_candidates(self, member_id: int, config: NotificationConfig) -> list[NotificationCreate]:
        window = max(config.expiry_advance_days or [settings.expiring_window_days])
        summary = self.expiry.get_expiry_summary(member_id, expiring_within_days=window)
        limit = settings.notification_preview_items

        candidates: list[NotificationCreate] = []
        if summary.expiring_items:
            candidates.append(_expiry_candidate("expiring", summary.expiring_items, limit))
        if summary.expired_items:
            candidates.append(_expiry_candidate("expired", summary.expired_items, limit))
        return candidates

    def _low_stock_candidates(self, member_id: int) -> list[NotificationCreate]:
        # Only items with their own threshold can be low on stock.
        low_items = self.inventory.list_low_stock(member_id)
        if not low_items:
            return []

        names = [f"{item.food.name} ({item.quantity} {item.unit})" for item in low_items]
        return [
            NotificationCreate(
                type=NotificationType.LOW_STOCK_ALERT,
                title="Ingredients running low",
                message=(
                    f"{len(low_items)} item(s) are running low: "
                    f"{_name_list(names, settings.notification_preview_items)}. Consider restocking."
                ),
                priority=Priority.MEDIUM,
                data={
                    "items": [
                        {
                            "item_id": item.id,
                            "food_id": item.food_id,
                            "food_name": item.food.name,
                            "quantity": item.quantity,
                            "unit": item.unit,
                            "min_stock_threshold": item.min_stock_threshold,
                        }
                        for item in low_items[:10]
                    ],
                    "total_count": len(low_items),
                },
                dedup_key=dedup_key(NotificationType.LOW_STOCK_ALERT, "low_stock", [item.id for item in low_items]),
            )
        ]

    def _waste_report_candidates(self, member_id: int) -> list[NotificationCreate]:
        days = settings.waste_report_window_days
        since = self.clock() - timedelta(days=days)
        waste_logs = self.inventory.list_waste_logs(member_id, since)
        if not waste_logs:
            return []

        by_food: dict[str, float] = defaultdict(float)
        for waste_log in waste_logs:
            by_food[waste_log.item.food.name] += waste_log.wasted_quantity
        top = sorted(by_food.items(), key=lambda entry: (-entry[1], entry[0]))[:3]
        total_cost = round(sum(waste_log.estimated_cost or 0.0 for waste_log in waste_logs), 2)
        top_text = ", ".join(f"{name} ({round(quantity, 2)})" for name, quantity in top)

        return [
            NotificationCreate(
                type=NotificationType.WASTE_REPORT,
                title=f"Food waste report: last {days} days",
                message=(
                    f"{len(waste_logs)} waste record(s) worth about {total_cost:.2f}. "
                    f"Most wasted: {top_text}."
                ),
                priority=Priority.MEDIUM,
                data={
                    "days": days,
                    "total_records": len(waste_logs),
                    "total_cost": total_cost,
                    "top_items": [{"food_name": name, "quantity": round(quantity, 4)} for name, quantity in top],
                },
                dedup_key=dedup_key(NotificationType.WASTE_REPORT, "window", [waste_log.id for waste_log in waste_logs]),
            )
        ]

    def _purchase_candidates(self, member_id: int) -> list[NotificationCreate]:
        suggestions = self.shopping.generate_suggestions(member_id)
        urgent = [suggestion for suggestion in suggestions if suggestion.priority == Priority.HIGH][:3]
        if not urgent:
            return []

        names = ", ".join(f"{suggestion.food_name} ({suggestion.suggested_quantity} {suggestion.unit})" for suggestion in urgent)
        return [
            NotificationCreate(
                type=NotificationType.PURCHASE_SUGGESTION,
                title="Shopping suggestions",
                message=f"Consider buying: {names}.",
                priority=Priority.LOW,
                data={
                    "suggestions": [suggestion.model_dump(mode="json") for suggestion in urgent],
                    "total_suggestions": len(suggestions),
                },
                dedup_key=dedup_key(
                    NotificationType.PURCHASE_SUGGESTION,
                    "restock",
                    [suggestion.food_id for suggestion in urgent],
                ),
            )
        ]

    def _cadence_allows(self, member_id: int, family: NotificationType, frequency: str) -> bool:
        days = FREQUENCY_DAYS.get(NotificationFrequency(frequency), 0)
        if days == 0:
            return True
        last = self.notifications.latest_created_at(member_id, family.value)
        return last is None or self.clock() - last >= timedelta(days=days)

    def _persist(self, run: NotificationRunRead, candidates: list[NotificationCreate]) -> None:
        fresh: list[NotificationCreate] = []
        for candidate in candidates:
            if candidate.dedup_key and self.notifications.find_unread_by_dedup_key(
                run.member_id, candidate.type.value, candidate.dedup_key
            ):
                run.deduplicated += 1
                continue
            fresh.append(candidate)

        if fresh:
            created = self.notifications.create_many(run.member_id, fresh, self.clock())
            run.created.extend(NotificationRead.model_validate(notification) for notification in created)

    def _generate(
        self,
        member_id: int,
        families: list[NotificationType],
        *,
        respect_cadence: bool,
    ) -> NotificationRunRead:
        config = self._ensure_config(member_id)
        rules = {
            NotificationType.EXPIRY_ALERT: (
                config.expiry_alert_enabled,
                config.expiry_alert_frequency,
                lambda: self._expiry_candidates(member_id, config),
            ),
            NotificationType.LOW_STOCK_ALERT: (
                config.low_stock_alert_enabled,
                config.low_stock_alert_frequency,
                lambda: self._low_stock_candidates(member_id),
            ),
            NotificationType.WASTE_REPORT: (
                config.waste_report_enabled,
                config.waste_report_frequency,
                lambda: self._waste_report_candidates(member_id),
            ),
            NotificationType.PURCHASE_SUGGESTION: (
                config.purchase_suggestion_enabled,
                config.purchase_suggestion_frequency,
                lambda: self._purchase_candidates(member_id),
            ),
        }

        run = NotificationRunRead(member_id=member_id)
        candidates: list[NotificationCreate] = []
        for family in families:
            enabled, frequency, build = rules[family]
            if not enabled or (respect_cadence and not self._cadence_allows(member_id, family, frequency)):
                run.skipped_families.append(family)
                continue
            candidates.extend(build())

        with transaction(self.db, "notifications.generate"):
            self._persist(run, candidates)

        log_event(
            logger,
            logging.INFO,
            "notifications_generated",
            member_id=member_id,
            created=len(run.created),
            deduplicated=run.deduplicated,
            skipped_families=[family.value for family in run.skipped_families],
        )
        return run

    def generate_expiry_notifications(self, member_id: int, *, respect_cadence: bool = False) -> NotificationRunRead:
        return self._generate(member_id, [NotificationType.EXPIRY_ALERT], respect_cadence=respect_cadence)

    def generate_low_stock_notifications(self, member_id: int, *, respect_cadence: bool = False) -> NotificationRunRead:
        return self._generate(member_id, [NotificationType.LOW_STOCK_ALERT], respect_cadence=respect_cadence)

    def generate_waste_report(self, member_id: int, *, respect_cadence: bool = False) -> NotificationRunRead:
        return self._generate(member_id, [NotificationType.WASTE_REPORT], respect_cadence=respect_cadence)

    def generate_purchase_suggestions(self, member_id: int, *, respect_cadence: bool = False) -> NotificationRunRead:
        return self._generate(member_id, [NotificationType.PURCHASE_SUGGESTION], respect_cadence=respect_cadence)

    def generate_all(self, member_id: int, *, respect_cadence: bool = False) -> NotificationRunRead:
        return self._generate(
            member_id,
            [
                NotificationType.EXPIRY_ALERT,
                NotificationType.LOW_STOCK_ALERT,
                NotificationType.WASTE_REPORT,
                NotificationType.PURCHASE_SUGGESTION,
            ],
            respect_cadence=respect_cadence,
        )

    def run_scheduled_job(self, cancel_event: threading.Event | None = None) -> NotificationJobRead:
        """Generate every family for each member with a config, isolating failures per member."""
        job = NotificationJobRead(report=BatchReportRead())
        for member_id in self.configs.list_member_ids():
            if cancel_event is not None and cancel_event.is_set():
                job.report.cancelled = True
                break
            try:
                run = self.generate_all(member_id, respect_cadence=True)
            except Exception as exc:
                error = unit_failure(self.db, exc)
                job.report.add_failure(member_id, error)
                log_event(logger, logging.WARNING, "notification_job_member_failed", member_id=member_id, error=error)
                continue
            job.report.add_success(changed=bool(run.created))
            job.created_count += len(run.created)

        log_event(
            logger,
            logging.INFO,
            "notification_job_completed",
            processed=job.report.processed,
            failed=job.report.failed,
            created=job.created_count,
            cancelled=job.report.cancelled,
        )
        return job

    def create_notification(
        self,
        member_id: int,
        payload: NotificationCreate | dict[str, Any],
    ) -> NotificationRead | None:
        """Persist one notification, or return None when an unread duplicate already exists."""
        candidate = parse_payload(NotificationCreate, payload)
        if not self.catalog.member_exists(member_id):
            raise NotFoundError("Member", member_id)

        run = NotificationRunRead(member_id=member_id)
        with transaction(self.db, "notifications.create"):
            self._persist(run, [candidate])
        return run.created[0] if run.created else None

    def list_notifications(
        self,
        member_id: int,
        filters: NotificationFilter | dict[str, Any] | None = None,
    ) -> NotificationPage:
        query = parse_payload(NotificationFilter, filters or {})
        items, total = self.notifications.list_items(member_id, query)
        return NotificationPage(
            items=[NotificationRead.model_validate(item) for item in items],
            total=total,
            unread_count=self.notifications.count_unread(member_id),
            limit=query.limit,
            offset=query.offset,
        )

    def get_summary(self, member_id: int) -> NotificationSummaryRead:
        by_priority = self.notifications.count_unread_by_priority(member_id)
        return NotificationSummaryRead(
            total_unread=sum(by_priority.values()),
            high=by_priority.get(Priority.HIGH.value, 0),
            medium=by_priority.get(Priority.MEDIUM.value, 0),
            low=by_priority.get(Priority.LOW.value, 0),
        )

    def _owned_notification(self, notification_id: int, member_id: int) -> Notification:
        notification = self.notifications.get(notification_id)
        if notification is None:
            raise NotFoundError("Notification", notification_id)
        if notification.member_id != member_id:
            raise PermissionDeniedError(f"Notification {notification_id} does not belong to member {member_id}.")
        return notification

    def mark_as_read(self, notification_id: int, member_id: int) -> NotificationRead:
        notification = self._owned_notification(notification_id, member_id)
        with transaction(self.db, "notifications.mark_read"):
            self.notifications.mark_read(notification, self.clock())
        return NotificationRead.model_validate(notification)

    def mark_all_as_read(self, member_id: int) -> int:
        with transaction(self.db, "notifications.mark_all_read"):
            count = self.notifications.mark_all_read(member_id, self.clock())
        log_event(logger, logging.INFO, "notifications_marked_read", member_id=member_id, count=count)
        return count

    def delete_notification(self, notification_id: int, member_id: int) -> None:
        notification = self._owned_notification(notification_id, member_id)
        with transaction(self.db, "notifications.delete"):
            self.notifications.delete(notification)

    def cleanup_old_notifications(self, days: int | None = None) -> int:
        retention = settings.notification_retention_days if days is None else days
        cutoff = self.clock() - timedelta(days=retention)
        with transaction(self.db, "notifications.cleanup"):
            deleted = self.notifications.delete_read_older_than(cutoff)
        log_event(logger, logging.INFO, "notifications_cleaned_up", deleted=deleted, cutoff=cutoff)
        return deleted
