from datetime import timedelta

import pytest

from larder.core.constants import InventoryStatus, StockCoverage
from larder.core.errors import InsufficientStockError, NotFoundError, ValidationError
from larder.models.recipe import Recipe, RecipeIngredient
from larder.services.recipe_integration import classify_coverage, match_score


@pytest.fixture
def cookbook(db, foods, omelette) -> dict[str, Recipe]:
    pancakes = Recipe(
        name="Pancakes",
        category="BREAKFAST",
        prep_time=10,
        cook_time=15,
        servings=4,
        ingredients=[
            RecipeIngredient(food_id=foods["flour"].id, amount=200, unit="g"),
            RecipeIngredient(food_id=foods["milk"].id, amount=300, unit="ml"),
            RecipeIngredient(food_id=foods["eggs"].id, amount=2, unit="pcs"),
        ],
    )
    salad = Recipe(
        name="Tomato salad",
        category="SALAD",
        servings=2,
        ingredients=[RecipeIngredient(food_id=foods["tomato"].id, amount=2, unit="pcs")],
    )
    water = Recipe(name="Glass of water", category="DRINK", servings=1)
    db.add_all([pancakes, salad, water])
    db.commit()
    return {"omelette": omelette, "pancakes": pancakes, "salad": salad, "water": water}


def test_match_score_rounds_half_up() -> None:
    assert match_score(1, 8) == 13
    assert match_score(2, 3) == 67
    assert match_score(3, 3) == 100
    assert match_score(0, 0) == 0


def test_classify_coverage_bands() -> None:
    assert classify_coverage(3, 3) == StockCoverage.SUFFICIENT
    assert classify_coverage(3, 1) == StockCoverage.INSUFFICIENT
    assert classify_coverage(3, 0) == StockCoverage.OUT_OF_STOCK


def test_match_score_grows_with_stock(services, member, foods, omelette, add_item) -> None:
    empty = services.recipes.get_recipe_match(member.id, omelette.id)
    assert empty.match_score == 0
    assert empty.can_cook is False
    assert [row.coverage for row in empty.missing] == [StockCoverage.OUT_OF_STOCK, StockCoverage.OUT_OF_STOCK]

    add_item(member, foods["eggs"], quantity=6)
    partial = services.recipes.get_recipe_match(member.id, omelette.id)
    assert partial.match_score == 50
    assert [row.food_name for row in partial.missing] == ["Milk"]

    add_item(member, foods["milk"], quantity=1, unit="l")
    full = services.recipes.get_recipe_match(member.id, omelette.id)
    assert full.match_score == 100
    assert full.can_cook is True
    assert full.missing == []
    assert full.ingredients[1].available == pytest.approx(1000)


def test_match_ignores_expired_stock(services, member, foods, omelette, add_item, clock) -> None:
    add_item(member, foods["eggs"], quantity=6)
    add_item(member, foods["milk"], quantity=1, unit="l", expiry_date=clock.now - timedelta(days=2))

    match = services.recipes.get_recipe_match(member.id, omelette.id)

    assert match.match_score == 50
    assert match.missing[0].coverage == StockCoverage.OUT_OF_STOCK


def test_match_scales_with_servings(services, member, foods, omelette, add_item) -> None:
    add_item(member, foods["eggs"], quantity=5)
    add_item(member, foods["milk"], quantity=1, unit="l")

    match = services.recipes.get_recipe_match(member.id, omelette.id, servings=4)

    assert match.servings == 4
    assert match.ingredients[0].required == 12
    assert match.ingredients[0].coverage == StockCoverage.INSUFFICIENT
    assert match.ingredients[0].shortage == 7
    assert match.ingredients[1].required == 800
    assert match.ingredients[1].coverage == StockCoverage.SUFFICIENT
    with pytest.raises(ValidationError):
        services.recipes.get_recipe_match(member.id, omelette.id, servings=0)
    with pytest.raises(NotFoundError):
        services.recipes.get_recipe_match(member.id, 9999)


def test_cook_recipe_reports_every_shortage_and_debits_nothing(services, member, foods, omelette, add_item) -> None:
    eggs = add_item(member, foods["eggs"], quantity=2)

    with pytest.raises(InsufficientStockError) as exc_info:
        services.recipes.cook_recipe(member.id, omelette.id)

    shortages = exc_info.value.shortages
    assert [shortage["food_name"] for shortage in shortages] == ["Eggs", "Milk"]
    assert shortages[0]["shortage"] == 1
    assert shortages[1]["shortage"] == 200
    assert services.tracker.get_item(eggs.id, member.id).quantity == 2


def test_cook_recipe_debits_soonest_expiry_first(services, member, foods, omelette, add_item, clock) -> None:
    early = add_item(member, foods["eggs"], quantity=2, expiry_date=clock.now + timedelta(days=2))
    late = add_item(member, foods["eggs"], quantity=6, expiry_date=clock.now + timedelta(days=20))
    milk = add_item(member, foods["milk"], quantity=1, unit="l", expiry_date=clock.now + timedelta(days=5))

    result = services.recipes.cook_recipe(member.id, omelette.id)

    assert result.servings == 1
    assert result.warnings == []
    assert [(row.item_id, row.used_quantity) for row in result.consumed] == [
        (early.id, 2),
        (late.id, 1),
        (milk.id, pytest.approx(0.2)),
    ]
    assert result.consumed[0].status == InventoryStatus.OUT_OF_STOCK
    assert services.tracker.get_item(late.id, member.id).quantity == 5
    assert services.tracker.get_item(milk.id, member.id).quantity == pytest.approx(0.8)

    stats = services.recipes.get_inventory_recipe_stats(member.id)
    assert [cook.recipe_name for cook in stats.recent_cooks] == ["Omelette"]
    assert stats.recent_cooks[0].cooked_at == clock.now


def test_cook_recipe_warns_about_expired_stock(services, member, foods, omelette, add_item, clock) -> None:
    add_item(member, foods["eggs"], quantity=3, expiry_date=clock.now - timedelta(days=1, hours=1))
    add_item(member, foods["milk"], quantity=500, unit="ml")

    result = services.recipes.cook_recipe(member.id, omelette.id)

    assert len(result.warnings) == 1
    assert result.warnings[0].startswith("Eggs")


def test_cook_recipe_rejects_bad_requests(services, member, cookbook) -> None:
    with pytest.raises(ValidationError):
        services.recipes.cook_recipe(member.id, cookbook["water"].id)
    with pytest.raises(ValidationError):
        services.recipes.cook_recipe(member.id, cookbook["omelette"].id, servings=0)
    with pytest.raises(NotFoundError):
        services.recipes.cook_recipe(member.id, 9999)
    with pytest.raises(NotFoundError):
        services.recipes.cook_recipe(9999, cookbook["omelette"].id)


def test_recommendations_partition_recipes(services, member, foods, cookbook, add_item) -> None:
    add_item(member, foods["eggs"], quantity=6)
    add_item(member, foods["milk"], quantity=1, unit="l")

    recommendations = services.recipes.get_recommendations(member.id)

    assert [match.recipe_name for match in recommendations.can_cook] == ["Omelette"]
    assert [match.recipe_name for match in recommendations.partially_available] == ["Pancakes"]
    assert recommendations.partially_available[0].match_score == 67
    assert {match.recipe_name for match in recommendations.unavailable} == {"Tomato salad", "Glass of water"}
    assert recommendations.total_recipes == 4
    breakfast = next(entry for entry in recommendations.categories if entry.category == "BREAKFAST")
    assert (breakfast.total, breakfast.can_cook, breakfast.partially_available) == (2, 1, 1)

    strict = services.recipes.get_recommendations(member.id, {"require_all": True})
    assert strict.partially_available == []
    assert strict.unavailable == []
    assert strict.can_cook_count == 1

    salads = services.recipes.get_recommendations(member.id, {"category": "SALAD"})
    assert salads.total_recipes == 1


def test_recipe_shopping_list_prices_the_shortage(services, member, foods, omelette, add_item) -> None:
    add_item(member, foods["eggs"], quantity=1)

    shopping = services.recipes.generate_recipe_shopping_list(member.id, omelette.id)

    assert [(item.food_name, item.need_to_buy) for item in shopping.items] == [("Eggs", 2), ("Milk", 200)]
    assert shopping.items[0].estimated_price == pytest.approx(24.0)
    assert shopping.items[0].category == "PROTEIN"
    assert shopping.total_estimated_price == pytest.approx(sum(item.estimated_price for item in shopping.items))


def test_cook_recipe_multiplies_amounts_by_servings(services, member, foods, omelette, add_item) -> None:
    eggs = add_item(member, foods["eggs"], quantity=100)
    milk = add_item(member, foods["milk"], quantity=1, unit="l")

    result = services.recipes.cook_recipe(member.id, omelette.id, servings=2)

    assert result.servings == 2
    assert [(row.item_id, row.used_quantity) for row in result.consumed] == [
        (eggs.id, 6),
        (milk.id, pytest.approx(0.4)),
    ]
    assert services.tracker.get_item(eggs.id, member.id).quantity == 94
    assert services.tracker.get_item(milk.id, member.id).quantity == pytest.approx(0.6)


def test_cook_recipe_sums_rows_naming_the_same_food(db, services, member, foods, add_item) -> None:
    custard = Recipe(
        name="Custard",
        category="DESSERT",
        servings=2,
        ingredients=[
            RecipeIngredient(food_id=foods["eggs"].id, amount=2, unit="pcs"),
            RecipeIngredient(food_id=foods["milk"].id, amount=0.5, unit="l"),
            RecipeIngredient(food_id=foods["eggs"].id, amount=2, unit="pcs"),
        ],
    )
    db.add(custard)
    db.commit()
    eggs = add_item(member, foods["eggs"], quantity=3)
    add_item(member, foods["milk"], quantity=1, unit="l")

    match = services.recipes.get_recipe_match(member.id, custard.id)
    assert match.total_ingredients == 2
    assert match.ingredients[0].required == 4

    with pytest.raises(InsufficientStockError) as exc_info:
        services.recipes.cook_recipe(member.id, custard.id)

    assert exc_info.value.shortages == [
        {"food_id": foods["eggs"].id, "food_name": "Eggs", "required": 4, "available": 3, "shortage": 1, "unit": "pcs"}
    ]
    assert services.tracker.get_item(eggs.id, member.id).quantity == 3
