from datetime import timedelta

import pytest

from larder.core.constants import InventoryStatus, Priority, StorageLocation
from larder.core.errors import NotFoundError, PermissionDeniedError, ValidationError
from larder.models.inventory import InventoryItem
from larder.repositories.shopping import ShoppingRepository
from larder.schemas.shopping import ShoppingSuggestionRead
from larder.services.expiry_monitor import estimated_value
from larder.services.shopping_integration import (
    SOURCE_FREQUENT_USAGE,
    SOURCE_LOW_STOCK,
    SOURCE_SEASONAL,
    dedupe_suggestions,
    merge_usage,
    restock_quantity,
    restocked_price,
)


def _suggestion(food_id: int, priority: Priority, source: str) -> ShoppingSuggestionRead:
    return ShoppingSuggestionRead(
        food_id=food_id,
        food_name=f"Food {food_id}",
        category="OTHER",
        suggested_quantity=1,
        unit="pcs",
        priority=priority,
        source=source,
        reason="test",
        current_quantity=0,
    )


def test_restock_quantity_targets_twice_the_threshold() -> None:
    assert restock_quantity(0, 3) == 6
    assert restock_quantity(1, 3) == 5
    assert restock_quantity(7, 3) == 0


def test_dedupe_keeps_highest_priority_per_food() -> None:
    merged = dedupe_suggestions(
        [
            _suggestion(1, Priority.MEDIUM, SOURCE_FREQUENT_USAGE),
            _suggestion(2, Priority.LOW, SOURCE_SEASONAL),
            _suggestion(1, Priority.HIGH, SOURCE_LOW_STOCK),
            _suggestion(3, Priority.MEDIUM, SOURCE_FREQUENT_USAGE),
            _suggestion(3, Priority.MEDIUM, SOURCE_SEASONAL),
        ]
    )

    assert [(item.food_id, item.priority) for item in merged] == [
        (1, Priority.HIGH),
        (3, Priority.MEDIUM),
        (2, Priority.LOW),
    ]
    assert merged[1].source == SOURCE_FREQUENT_USAGE


def test_suggestions_merge_low_stock_usage_and_season(services, member, foods, add_item) -> None:
    eggs = add_item(member, foods["eggs"], min_stock_threshold=3, purchase_price=20)
    for _ in range(3):
        services.tracker.use_item(eggs.id, member.id, 3)
    milk = add_item(member, foods["milk"], unit="l")
    for _ in range(3):
        services.tracker.use_item(milk.id, member.id, 2)

    suggestions = services.shopping.generate_suggestions(member.id)

    assert [(item.food_name, item.priority, item.source) for item in suggestions] == [
        ("Eggs", Priority.HIGH, SOURCE_LOW_STOCK),
        ("Milk", Priority.MEDIUM, SOURCE_FREQUENT_USAGE),
        ("Apple", Priority.LOW, SOURCE_SEASONAL),
    ]
    eggs_row, milk_row, apple_row = suggestions
    assert eggs_row.suggested_quantity == 5
    assert eggs_row.estimated_price == pytest.approx(10.0)
    assert milk_row.suggested_quantity == pytest.approx(28)
    assert milk_row.current_quantity == pytest.approx(4)
    assert apple_row.unit == "kg"
    assert apple_row.estimated_price is None


def test_merge_usage_converts_to_the_most_used_unit() -> None:
    rows = [
        (1, "l", 2, 4.0),
        (1, "ml", 1, 500.0),
        (1, "pcs", 1, 3.0),
        (2, "pcs", 5, 10.0),
    ]

    assert merge_usage(rows, limit=10) == [(2, 5, 10.0, "pcs"), (1, 3, pytest.approx(4.5), "l")]
    assert merge_usage(rows, limit=1) == [(2, 5, 10.0, "pcs")]


def test_usage_suggestion_sums_usage_across_units(services, member, foods, add_item) -> None:
    litres = add_item(member, foods["milk"], quantity=5, unit="l")
    millilitres = add_item(member, foods["milk"], quantity=1000, unit="ml")
    services.tracker.use_item(litres.id, member.id, 2)
    services.tracker.use_item(litres.id, member.id, 2)
    services.tracker.use_item(millilitres.id, member.id, 500)

    milk = next(item for item in services.shopping.generate_suggestions(member.id) if item.food_name == "Milk")

    assert milk.source == SOURCE_FREQUENT_USAGE
    assert milk.unit == "l"
    assert milk.current_quantity == pytest.approx(1.5)
    assert milk.suggested_quantity == pytest.approx(21)


def test_seasonal_suggestion_disappears_once_stocked(services, member, foods, add_item) -> None:
    add_item(member, foods["apple"], quantity=1500, unit="g")

    assert services.shopping.generate_suggestions(member.id) == []


def test_optimize_shopping_list_trims_against_stock(db, services, member, other_member, foods, add_item, clock) -> None:
    add_item(member, foods["eggs"], quantity=4, min_stock_threshold=2)
    add_item(member, foods["flour"], quantity=1000, unit="g")
    shopping_list = ShoppingRepository(db).create_list(
        member_id=member.id,
        name="Weekend",
        budget=30,
        estimated_cost=23,
        created_at=clock.now,
        items=[
            {"food_id": foods["eggs"].id, "amount": 5, "unit": "pcs", "estimated_price": 10.0},
            {"food_id": foods["flour"].id, "amount": 0.5, "unit": "kg", "estimated_price": 5.0},
            {"food_id": foods["cheese"].id, "amount": 2, "unit": "pcs", "estimated_price": 8.0},
        ],
    )
    db.commit()

    result = services.shopping.optimize_shopping_list(member.id, shopping_list.id)

    assert [(row.food_name, row.action, row.optimized_amount) for row in result.items] == [
        ("Eggs", "REDUCE", 3),
        ("Flour", "REMOVE", 0),
        ("Cheese", "KEEP", 2),
    ]
    assert result.items[0].optimized_price == pytest.approx(6.0)
    assert result.original_cost == pytest.approx(23.0)
    assert result.optimized_cost == pytest.approx(14.0)
    assert result.savings == pytest.approx(9.0)
    assert [suggestion.food_name for suggestion in result.additional_suggestions] == ["Apple"]

    with pytest.raises(PermissionDeniedError):
        services.shopping.optimize_shopping_list(other_member.id, shopping_list.id)
    with pytest.raises(NotFoundError):
        services.shopping.optimize_shopping_list(member.id, 9999)


def test_inventory_based_list_budgets_a_margin(db, services, member, foods, add_item) -> None:
    add_item(member, foods["eggs"], quantity=1, min_stock_threshold=3, purchase_price=2)

    created = services.shopping.create_inventory_based_shopping_list(member.id)

    assert created.name == "Restock 2026-10-18"
    assert created.item_count == 2
    assert created.estimated_cost == pytest.approx(10.0)
    assert created.budget == pytest.approx(12.0)
    stored = ShoppingRepository(db).get_list(created.list_id)
    assert [item.food.name for item in stored.items] == ["Eggs", "Apple"]
    assert stored.status == "PENDING"


def test_inventory_based_list_needs_suggestions(services, member, foods, add_item) -> None:
    add_item(member, foods["apple"], quantity=2, unit="kg")

    with pytest.raises(ValidationError):
        services.shopping.create_inventory_based_shopping_list(member.id)


def test_sync_purchases_restocks_and_isolates_failures(db, services, member, foods, add_item, clock) -> None:
    eggs = add_item(member, foods["eggs"], quantity=1, min_stock_threshold=3, purchase_price=2)
    shopping_list = ShoppingRepository(db).create_list(
        member_id=member.id,
        name="Top up",
        budget=None,
        estimated_cost=None,
        created_at=clock.now,
        items=[{"food_id": foods["eggs"].id, "amount": 6, "unit": "pcs"}],
    )
    db.commit()
    shopping_item_id = shopping_list.items[0].id

    result = services.shopping.sync_purchases_to_inventory(
        member.id,
        [
            {"food_id": foods["eggs"].id, "quantity": 6, "unit": "pcs", "price": 3, "shopping_item_id": shopping_item_id},
            {"food_id": foods["cheese"].id, "quantity": 1, "unit": "pcs"},
            {"food_id": 9999, "quantity": 1, "unit": "pcs"},
            {"food_id": foods["flour"].id, "quantity": 0, "unit": "kg"},
            {"food_id": foods["flour"].id, "quantity": 1, "unit": "kg"},
        ],
    )

    assert result.report.succeeded == 3
    assert [failure.unit_id for failure in result.report.errors] == [2, 3]
    assert result.updated_item_ids == [eggs.id]
    assert len(result.created_item_ids) == 2

    restocked = services.tracker.get_item(eggs.id, member.id)
    assert restocked.quantity == 7
    assert restocked.purchase_price == pytest.approx(5.0)
    assert restocked.status == InventoryStatus.FRESH

    cheese = services.tracker.get_item(result.created_item_ids[0], member.id)
    assert cheese.expiry_date == clock.now + timedelta(days=10)
    assert cheese.storage_location == StorageLocation.REFRIGERATOR
    flour = services.tracker.get_item(result.created_item_ids[1], member.id)
    assert flour.storage_location == StorageLocation.PANTRY

    stored = ShoppingRepository(db).get_list(shopping_list.id)
    assert stored.status == "COMPLETED"
    assert stored.items[0].is_purchased is True

    with pytest.raises(NotFoundError):
        services.shopping.sync_purchases_to_inventory(9999, [])


def test_restocked_price_keeps_the_unit_price() -> None:
    priced = InventoryItem(quantity=4, original_quantity=10, unit="pcs", purchase_price=20)
    unpriced = InventoryItem(quantity=4, original_quantity=10, unit="pcs", purchase_price=None)

    assert restocked_price(priced, 10, 20) == pytest.approx(40.0)
    assert restocked_price(priced, 5, None) == pytest.approx(30.0)
    assert restocked_price(unpriced, 5, 15) == pytest.approx(45.0)
    assert restocked_price(unpriced, 5, None) is None


def test_waste_after_restock_costs_the_unit_price(services, member, foods, add_item) -> None:
    eggs = add_item(member, foods["eggs"], quantity=10, purchase_price=20)

    services.shopping.sync_purchases_to_inventory(
        member.id, [{"food_id": foods["eggs"].id, "quantity": 10, "unit": "pcs", "price": 20}]
    )

    restocked = services.tracker.get_item(eggs.id, member.id)
    assert restocked.quantity == 20
    assert restocked.original_quantity == 20
    assert restocked.purchase_price == pytest.approx(40.0)

    waste = services.tracker.record_waste(eggs.id, member.id, 1, "SPOILED")
    assert waste.estimated_cost == pytest.approx(2.0)

    item = services.tracker.inventory.reload(eggs.id)
    assert estimated_value(item) == pytest.approx(38.0)
