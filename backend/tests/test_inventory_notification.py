from datetime import timedelta

import pytest

from larder.core.constants import NotificationFrequency, NotificationType, Priority
from larder.core.errors import DependencyFailure, NotFoundError, PermissionDeniedError, ValidationError
from larder.models.notification import NotificationConfig
from larder.services.inventory_notification import dedup_key


def _seed_expiry(add_item, member, foods, clock) -> None:
    add_item(member, foods["tomato"], purchase_price=4, expiry_date=clock.now + timedelta(days=2))
    add_item(member, foods["milk"], expiry_date=clock.now - timedelta(days=1, hours=1))


def test_dedup_key_ignores_identity_order() -> None:
    first = dedup_key(NotificationType.EXPIRY_ALERT, "expiring", [3, 1, 2])
    second = dedup_key(NotificationType.EXPIRY_ALERT, "expiring", [2, 3, 1, 1])

    assert first == second
    assert len(first) == 64
    assert first != dedup_key(NotificationType.EXPIRY_ALERT, "expired", [1, 2, 3])
    assert first != dedup_key(NotificationType.LOW_STOCK_ALERT, "expiring", [1, 2, 3])


def test_config_is_created_lazily_with_defaults(services, member) -> None:
    config = services.notifications.get_config(member.id)

    assert config.member_id == member.id
    assert config.expiry_alert_enabled is True
    assert config.expiry_advance_days == [3, 7]
    assert config.expiry_alert_frequency == NotificationFrequency.DAILY
    assert config.low_stock_threshold == 1.0
    assert config.waste_report_frequency == NotificationFrequency.WEEKLY
    assert config.usage_reminder_enabled is False
    assert services.notifications.get_config(member.id).id == config.id

    with pytest.raises(NotFoundError):
        services.notifications.get_config(9999)


def test_update_config_normalises_advance_days(services, member) -> None:
    config = services.notifications.update_config(
        member.id,
        {"expiry_advance_days": [7, 1, 7], "waste_report_frequency": "MONTHLY", "low_stock_alert_enabled": False},
    )

    assert config.expiry_advance_days == [1, 7]
    assert config.waste_report_frequency == NotificationFrequency.MONTHLY
    assert config.low_stock_alert_enabled is False
    assert config.expiry_alert_enabled is True

    with pytest.raises(ValidationError):
        services.notifications.update_config(member.id, {"expiry_advance_days": [-1]})
    with pytest.raises(ValidationError):
        services.notifications.update_config(member.id, {"waste_report_frequency": "HOURLY"})


def test_expiry_notifications_are_idempotent(services, member, foods, add_item, clock) -> None:
    _seed_expiry(add_item, member, foods, clock)

    run = services.notifications.generate_expiry_notifications(member.id)

    assert len(run.created) == 2
    assert {notification.title for notification in run.created} == {
        "Ingredients expiring soon",
        "Ingredients have expired",
    }
    assert all(notification.priority == Priority.HIGH for notification in run.created)
    expiring = next(notification for notification in run.created if notification.data["kind"] == "expiring")
    assert "Tomato (2 day(s))" in expiring.message
    assert expiring.data["total_value"] == pytest.approx(4.0)

    repeat = services.notifications.generate_expiry_notifications(member.id)
    assert repeat.created == []
    assert repeat.deduplicated == 2
    assert services.notifications.get_summary(member.id).total_unread == 2


def test_read_notifications_do_not_block_new_alerts(services, member, foods, add_item, clock) -> None:
    _seed_expiry(add_item, member, foods, clock)
    services.notifications.generate_expiry_notifications(member.id)

    assert services.notifications.mark_all_as_read(member.id) == 2
    assert services.notifications.get_summary(member.id).total_unread == 0

    run = services.notifications.generate_expiry_notifications(member.id)
    assert len(run.created) == 2


def test_advance_days_bound_the_expiring_window(services, member, foods, add_item, clock) -> None:
    add_item(member, foods["tomato"], expiry_date=clock.now + timedelta(days=5))
    services.notifications.update_config(member.id, {"expiry_advance_days": [1]})

    assert services.notifications.generate_expiry_notifications(member.id).created == []

    services.notifications.update_config(member.id, {"expiry_advance_days": [1, 5]})
    assert len(services.notifications.generate_expiry_notifications(member.id).created) == 1


def test_disabled_family_is_skipped(services, member, foods, add_item, clock) -> None:
    _seed_expiry(add_item, member, foods, clock)
    services.notifications.update_config(member.id, {"expiry_alert_enabled": False})

    run = services.notifications.generate_expiry_notifications(member.id)

    assert run.created == []
    assert run.skipped_families == [NotificationType.EXPIRY_ALERT]


def test_low_stock_notification_previews_five_names(services, member, foods, add_item) -> None:
    for _ in range(6):
        add_item(member, foods["flour"], quantity=2, min_stock_threshold=5)
    add_item(member, foods["cheese"], quantity=0.5, min_stock_threshold=1)
    add_item(member, foods["milk"], quantity=0.5)

    run = services.notifications.generate_low_stock_notifications(member.id)

    assert len(run.created) == 1
    notification = run.created[0]
    assert notification.type == NotificationType.LOW_STOCK_ALERT
    assert notification.priority == Priority.MEDIUM
    assert notification.message.startswith("7 item(s) are running low: Cheese (0.5 pcs)")
    assert "and 2 more" in notification.message
    assert notification.data["total_count"] == 7


def test_items_without_a_threshold_never_raise_low_stock_alerts(services, member, foods, add_item) -> None:
    add_item(member, foods["cheese"], quantity=1)
    depleted = add_item(member, foods["milk"], quantity=2)
    services.tracker.use_item(depleted.id, member.id, 2)

    run = services.notifications.generate_low_stock_notifications(member.id)

    assert run.created == []
    assert run.deduplicated == 0


def test_waste_report_lists_top_wasted_foods(services, member, foods, add_item) -> None:
    assert services.notifications.generate_waste_report(member.id).created == []

    cheese = add_item(member, foods["cheese"], purchase_price=10)
    milk = add_item(member, foods["milk"])
    services.tracker.record_waste(cheese.id, member.id, 3, "SPOILED")
    services.tracker.record_waste(milk.id, member.id, 1, "EXPIRED")

    run = services.notifications.generate_waste_report(member.id)

    notification = run.created[0]
    assert notification.title == "Food waste report: last 30 days"
    assert notification.priority == Priority.MEDIUM
    assert notification.data["total_records"] == 2
    assert notification.data["total_cost"] == pytest.approx(3.0)
    assert [entry["food_name"] for entry in notification.data["top_items"]] == ["Cheese", "Milk"]


def test_purchase_suggestions_only_cover_urgent_restocks(services, member, foods, add_item) -> None:
    assert services.notifications.generate_purchase_suggestions(member.id).created == []

    add_item(member, foods["eggs"], quantity=1, min_stock_threshold=3)
    run = services.notifications.generate_purchase_suggestions(member.id)

    notification = run.created[0]
    assert notification.title == "Shopping suggestions"
    assert notification.priority == Priority.LOW
    assert "Eggs" in notification.message
    assert [entry["food_name"] for entry in notification.data["suggestions"]] == ["Eggs"]


def test_create_list_and_manage_notifications(services, member, other_member) -> None:
    payload = {"type": "USAGE_REMINDER", "title": "Plan meals", "message": "Plan this week's meals.", "priority": "LOW"}
    first = services.notifications.create_notification(member.id, payload)
    assert first is not None
    services.notifications.create_notification(
        member.id,
        {"type": "WASTE_REPORT", "title": "Weekly waste", "message": "No waste this week.", "priority": "HIGH"},
    )

    page = services.notifications.list_notifications(member.id)
    assert page.total == 2
    assert page.unread_count == 2
    assert services.notifications.list_notifications(member.id, {"priority": "HIGH"}).total == 1

    read = services.notifications.mark_as_read(first.id, member.id)
    assert read.is_read is True
    assert read.read_at is not None
    assert services.notifications.get_summary(member.id).low == 0
    assert services.notifications.list_notifications(member.id, {"is_read": False}).total == 1

    with pytest.raises(PermissionDeniedError):
        services.notifications.mark_as_read(first.id, other_member.id)
    with pytest.raises(PermissionDeniedError):
        services.notifications.delete_notification(first.id, other_member.id)

    services.notifications.delete_notification(first.id, member.id)
    with pytest.raises(NotFoundError):
        services.notifications.mark_as_read(first.id, member.id)
    with pytest.raises(ValidationError):
        services.notifications.create_notification(member.id, {"type": "EXPIRY_ALERT", "title": "", "message": "x"})


def test_explicit_dedup_key_suppresses_duplicates(services, member) -> None:
    payload = {"type": "EXPIRY_ALERT", "title": "Milk", "message": "Milk expires", "dedup_key": "milk-1"}

    assert services.notifications.create_notification(member.id, payload) is not None
    assert services.notifications.create_notification(member.id, payload) is None
    assert services.notifications.list_notifications(member.id).total == 1


def test_cleanup_keeps_unread_notifications(services, member, clock) -> None:
    start = clock.now
    clock.advance(days=-40)
    old_read = services.notifications.create_notification(
        member.id, {"type": "WASTE_REPORT", "title": "Old", "message": "Old report"}
    )
    services.notifications.create_notification(
        member.id, {"type": "LOW_STOCK_ALERT", "title": "Old unread", "message": "Still unread"}
    )
    services.notifications.mark_as_read(old_read.id, member.id)
    clock.now = start
    recent = services.notifications.create_notification(
        member.id, {"type": "WASTE_REPORT", "title": "New", "message": "New report"}
    )
    services.notifications.mark_as_read(recent.id, member.id)

    assert services.notifications.cleanup_old_notifications() == 1

    titles = {notification.title for notification in services.notifications.list_notifications(member.id).items}
    assert titles == {"Old unread", "New"}


def test_scheduled_job_isolates_member_failures(services, member, other_member, foods, add_item, clock, monkeypatch) -> None:
    _seed_expiry(add_item, member, foods, clock)
    _seed_expiry(add_item, other_member, foods, clock)
    services.notifications.get_config(member.id)
    services.notifications.get_config(other_member.id)
    original = services.notifications.generate_all

    def flaky(member_id: int, *, respect_cadence: bool = False):
        if member_id == member.id:
            raise DependencyFailure("notifications.generate", RuntimeError("connection reset"))
        return original(member_id, respect_cadence=respect_cadence)

    monkeypatch.setattr(services.notifications, "generate_all", flaky)
    job = services.notifications.run_scheduled_job()

    assert job.report.processed == 2
    assert job.report.failed == 1
    assert job.report.errors[0].unit_id == member.id
    assert job.created_count > 0
    assert services.notifications.get_summary(other_member.id).total_unread == job.created_count
    assert services.notifications.get_summary(member.id).total_unread == 0


def test_scheduled_job_respects_cadence(services, member, foods, add_item, clock) -> None:
    _seed_expiry(add_item, member, foods, clock)
    services.notifications.get_config(member.id)

    first = services.notifications.run_scheduled_job()
    assert first.created_count == 2

    services.notifications.mark_all_as_read(member.id)
    clock.advance(hours=6)
    run = services.notifications.generate_all(member.id, respect_cadence=True)
    assert NotificationType.EXPIRY_ALERT in run.skipped_families
    assert run.created == []

    clock.advance(days=1)
    assert services.notifications.run_scheduled_job().created_count == 2


def test_scheduled_job_survives_a_corrupt_stored_cadence(db, services, member, other_member, foods, add_item, clock) -> None:
    _seed_expiry(add_item, member, foods, clock)
    _seed_expiry(add_item, other_member, foods, clock)
    services.notifications.get_config(member.id)
    services.notifications.get_config(other_member.id)
    db.query(NotificationConfig).filter(NotificationConfig.member_id == member.id).update(
        {"expiry_alert_frequency": "HOURLY"}
    )
    db.commit()

    job = services.notifications.run_scheduled_job()

    assert job.report.processed == 2
    assert job.report.failed == 1
    assert job.report.errors[0].unit_id == member.id
    assert job.report.errors[0].error.startswith("ValueError")
    assert job.created_count == 2
    assert services.notifications.get_summary(other_member.id).total_unread == 2
