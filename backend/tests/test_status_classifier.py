from datetime import datetime, timedelta
from types import SimpleNamespace

from larder.core.constants import InventoryStatus
from larder.services.status_classifier import apply_classification, classify, days_to_expiry, is_low_stock

NOW = datetime(2026, 10, 18, 12, 0, 0)


def test_days_to_expiry_rounds_partial_days_up() -> None:
    assert days_to_expiry(None, NOW) is None
    assert days_to_expiry(NOW + timedelta(hours=1), NOW) == 1
    assert days_to_expiry(NOW + timedelta(days=3), NOW) == 3
    assert days_to_expiry(NOW - timedelta(days=1, hours=1), NOW) == -1


def test_zero_quantity_is_out_of_stock_even_when_expired() -> None:
    result = classify(0, NOW - timedelta(days=5), 2, NOW)

    assert result.status == InventoryStatus.OUT_OF_STOCK
    assert result.is_low_stock is True
    assert result.days_to_expiry == -5


def test_low_stock_takes_precedence_over_expiry() -> None:
    result = classify(2, NOW + timedelta(days=1), 3, NOW)

    assert result.status == InventoryStatus.LOW_STOCK
    assert result.is_low_stock is True


def test_expiry_bands() -> None:
    assert classify(5, NOW - timedelta(days=2), None, NOW).status == InventoryStatus.EXPIRED
    assert classify(5, NOW + timedelta(days=3), None, NOW).status == InventoryStatus.EXPIRING
    assert classify(5, NOW + timedelta(days=4), None, NOW).status == InventoryStatus.FRESH
    assert classify(5, None, None, NOW).status == InventoryStatus.FRESH


def test_expiring_window_is_configurable() -> None:
    expiry = NOW + timedelta(days=5)

    assert classify(5, expiry, None, NOW).status == InventoryStatus.FRESH
    assert classify(5, expiry, None, NOW, expiring_window_days=7).status == InventoryStatus.EXPIRING


def test_low_stock_flag_requires_a_threshold() -> None:
    assert is_low_stock(0, None) is False
    assert is_low_stock(3, 3) is True
    assert is_low_stock(3.5, 3) is False


def test_classification_is_deterministic() -> None:
    expiry = NOW + timedelta(days=2)
    assert classify(4, expiry, 1, NOW) == classify(4, expiry, 1, NOW)


def test_apply_classification_reports_changes_once() -> None:
    item = SimpleNamespace(
        quantity=4.0,
        expiry_date=NOW + timedelta(days=2),
        min_stock_threshold=None,
        status=InventoryStatus.FRESH.value,
        days_to_expiry=None,
        is_low_stock=False,
    )

    assert apply_classification(item, NOW) is True
    assert item.status == InventoryStatus.EXPIRING.value
    assert item.days_to_expiry == 2
    assert apply_classification(item, NOW) is False
