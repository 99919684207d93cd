from __future__ import annotations

import logging
import math
from collections import defaultdict
from dataclasses import dataclass
from typing import Any

from larder.core.clock import Clock, utcnow
from larder.core.config import settings
from larder.core.constants import StockCoverage, UsageReason
from larder.core.errors import InsufficientStockError, NotFoundError, ValidationError
from larder.core.logging import log_event
from larder.models.inventory import InventoryItem
from larder.models.recipe import Recipe
from larder.repositories.base import transaction
from larder.repositories.catalog import CatalogRepository
from larder.repositories.inventory import InventoryRepository
from larder.schemas.common import parse_payload
from larder.schemas.recipe import (
    ConsumedItemRead,
    CookRecipeResultRead,
    IngredientCoverageRead,
    RecipeCategoryStatRead,
    RecipeCookRead,
    RecipeMatchRead,
    RecipeRecommendationFilter,
    RecipeRecommendationRead,
    RecipeShoppingItemRead,
    RecipeShoppingListRead,
    RecipeStatsRead,
)
from larder.services.status_classifier import apply_classification, days_to_expiry
from larder.services.units import QUANTITY_TOLERANCE, convert_amount, round_quantity

logger = logging.getLogger("larder.recipes")

# Flat per-unit price used when estimating what a missing ingredient costs.
_ESTIMATED_PRICE_PER_UNIT = 12.0


@dataclass
class _Requirement:
    food_id: int
    food_name: str
    unit: str
    amount: float


def match_score(sufficient: int, total: int) -> int:
    if total == 0:
        return 0
    # Half-up rounding, so 12.5 scores 13.
    return int(math.floor(100 * sufficient / total + 0.5))


def classify_coverage(required: float, available: float) -> StockCoverage:
    if available + QUANTITY_TOLERANCE >= required:
        return StockCoverage.SUFFICIENT
    if available <= QUANTITY_TOLERANCE:
        return StockCoverage.OUT_OF_STOCK
    return StockCoverage.INSUFFICIENT


def available_in_unit(items: list[InventoryItem], unit: str) -> float:
    total = 0.0
    for item in items:
        converted = convert_amount(item.quantity, item.unit, unit)
        if converted is not None:
            total += converted
    return total


def _requirements(recipe: Recipe, servings: int) -> list[_Requirement]:
    """Ingredient amounts times ``servings``, one row per food.

    Rows listing the same food are summed in the unit of the first row. A row
    whose unit cannot be converted to it stays separate.
    """
    merged: list[_Requirement] = []
    for ingredient in recipe.ingredients:
        amount = ingredient.amount * servings
        for requirement in merged:
            if requirement.food_id != ingredient.food_id:
                continue
            converted = convert_amount(amount, ingredient.unit, requirement.unit)
            if converted is not None:
                requirement.amount += converted
                break
        else:
            merged.append(
                _Requirement(
                    food_id=ingredient.food_id,
                    food_name=ingredient.food.name,
                    unit=ingredient.unit,
                    amount=amount,
                )
            )
    return merged


def build_match(
    recipe: Recipe,
    stock: dict[int, list[InventoryItem]],
    servings: int = 1,
) -> RecipeMatchRead:
    coverage_rows: list[IngredientCoverageRead] = []
    for requirement in _requirements(recipe, servings):
        available = available_in_unit(stock.get(requirement.food_id, []), requirement.unit)
        coverage = classify_coverage(requirement.amount, available)
        coverage_rows.append(
            IngredientCoverageRead(
                food_id=requirement.food_id,
                food_name=requirement.food_name,
                required=round_quantity(requirement.amount),
                available=round_quantity(available),
                unit=requirement.unit,
                shortage=round_quantity(max(requirement.amount - available, 0.0))
                if coverage != StockCoverage.SUFFICIENT
                else 0.0,
                coverage=coverage,
            )
        )

    sufficient = sum(1 for row in coverage_rows if row.coverage == StockCoverage.SUFFICIENT)
    total = len(coverage_rows)
    return RecipeMatchRead(
        recipe_id=recipe.id,
        recipe_name=recipe.name,
        category=recipe.category,
        difficulty=recipe.difficulty,
        prep_time=recipe.prep_time,
        cook_time=recipe.cook_time,
        servings=servings,
        match_score=match_score(sufficient, total),
        can_cook=total > 0 and sufficient == total,
        sufficient_count=sufficient,
        total_ingredients=total,
        ingredients=coverage_rows,
        missing=[row for row in coverage_rows if row.coverage != StockCoverage.SUFFICIENT],
    )


def _category_stats(matches: list[RecipeMatchRead]) -> list[RecipeCategoryStatRead]:
    stats: dict[str, RecipeCategoryStatRead] = {}
    for match in matches:
        entry = stats.setdefault(
            match.category,
            RecipeCategoryStatRead(category=match.category, total=0, can_cook=0, partially_available=0),
        )
        entry.total += 1
        if match.can_cook:
            entry.can_cook += 1
        elif match.sufficient_count > 0:
            entry.partially_available += 1
    return sorted(stats.values(), key=lambda entry: (-entry.total, entry.category))


class InventoryRecipeIntegration:
    def __init__(
        self,
        inventory: InventoryRepository,
        catalog: CatalogRepository,
        *,
        clock: Clock = utcnow,
    ) -> None:
        self.inventory = inventory
        self.catalog = catalog
        self.clock = clock

    @property
    def db(self):
        return self.inventory.db

    def stock_snapshot(self, member_id: int) -> dict[int, list[InventoryItem]]:
        """Usable stock per food: active, non-empty and not past its expiry date."""
        now = self.clock()
        snapshot: dict[int, list[InventoryItem]] = defaultdict(list)
        for item in self.inventory.list_active(member_id):
            if item.quantity <= 0:
                continue
            days = days_to_expiry(item.expiry_date, now)
            if days is not None and days < 0:
                continue
            snapshot[item.food_id].append(item)
        return snapshot

    def _recipe(self, recipe_id: int) -> Recipe:
        recipe = self.catalog.get_recipe(recipe_id)
        if recipe is None:
            raise NotFoundError("Recipe", recipe_id)
        return recipe

    def get_recipe_match(self, member_id: int, recipe_id: int, servings: int = 1) -> RecipeMatchRead:
        if servings < 1:
            raise ValidationError("Servings must be at least 1.")
        return build_match(self._recipe(recipe_id), self.stock_snapshot(member_id), servings)

    def get_recommendations(
        self,
        member_id: int,
        filters: RecipeRecommendationFilter | dict[str, Any] | None = None,
    ) -> RecipeRecommendationRead:
        query = parse_payload(RecipeRecommendationFilter, filters or {})
        stock = self.stock_snapshot(member_id)
        matches = [build_match(recipe, stock) for recipe in self.catalog.list_recipes(query)]

        can_cook = [match for match in matches if match.can_cook]
        partial = [match for match in matches if not match.can_cook and match.sufficient_count > 0]
        unavailable = [match for match in matches if match.sufficient_count == 0]
        for group in (can_cook, partial, unavailable):
            group.sort(key=lambda match: (-match.match_score, match.recipe_id))

        log_event(
            logger,
            logging.INFO,
            "recipe_recommendations_built",
            member_id=member_id,
            recipes=len(matches),
            can_cook=len(can_cook),
            partial=len(partial),
        )
        return RecipeRecommendationRead(
            can_cook=can_cook,
            partially_available=[] if query.require_all else partial,
            unavailable=[] if query.require_all else unavailable,
            total_recipes=len(matches),
            can_cook_count=len(can_cook),
            partial_count=len(partial),
            unavailable_count=len(unavailable),
            categories=_category_stats(matches),
        )

    def cook_recipe(self, member_id: int, recipe_id: int, servings: int = 1) -> CookRecipeResultRead:
        """Debit every ingredient of a recipe, soonest-expiring stock first, all or nothing.

        Each ingredient amount is multiplied by ``servings`` and rows naming the
        same food are checked together. Every shortage is collected before
        anything is debited. Expired stock can be consumed, but each such item
        adds a warning to the result.
        """
        if servings < 1:
            raise ValidationError("Servings must be at least 1.")
        if not self.catalog.member_exists(member_id):
            raise NotFoundError("Member", member_id)
        recipe = self._recipe(recipe_id)
        if not recipe.ingredients:
            raise ValidationError(f"Recipe {recipe_id} has no ingredients.")

        plan: list[tuple[_Requirement, list[InventoryItem]]] = []
        shortages: list[dict[str, Any]] = []
        for requirement in _requirements(recipe, servings):
            candidates = self.inventory.list_fefo_candidates(member_id, requirement.food_id)
            available = available_in_unit(candidates, requirement.unit)
            if classify_coverage(requirement.amount, available) != StockCoverage.SUFFICIENT:
                shortages.append(
                    {
                        "food_id": requirement.food_id,
                        "food_name": requirement.food_name,
                        "required": round_quantity(requirement.amount),
                        "available": round_quantity(available),
                        "shortage": round_quantity(requirement.amount - available),
                        "unit": requirement.unit,
                    }
                )
            plan.append((requirement, candidates))

        if shortages:
            log_event(
                logger,
                logging.WARNING,
                "recipe_cook_rejected",
                member_id=member_id,
                recipe_id=recipe_id,
                shortages=shortages,
            )
            raise InsufficientStockError(
                f"Not enough stock to cook {recipe.name}: "
                + ", ".join(shortage["food_name"] for shortage in shortages),
                shortfall=round_quantity(sum(shortage["shortage"] for shortage in shortages)),
                shortages=shortages,
            )

        now = self.clock()
        consumed: list[ConsumedItemRead] = []
        warnings: list[str] = []
        with transaction(self.db, "recipes.cook_recipe"):
            for requirement, candidates in plan:
                remaining = requirement.amount
                for candidate in candidates:
                    if remaining <= QUANTITY_TOLERANCE:
                        break
                    in_recipe_unit = convert_amount(candidate.quantity, candidate.unit, requirement.unit)
                    if in_recipe_unit is None or in_recipe_unit <= 0:
                        continue
                    take = min(in_recipe_unit, remaining)
                    debit = convert_amount(take, requirement.unit, candidate.unit)
                    debit = min(debit, candidate.quantity)

                    days = days_to_expiry(candidate.expiry_date, now)
                    if days is not None and days < 0:
                        warnings.append(f"{requirement.food_name} (item {candidate.id}) was already expired when used.")

                    usage = self.inventory.record_usage(
                        item_id=candidate.id,
                        member_id=member_id,
                        amount=debit,
                        reason=UsageReason.RECIPE.value,
                        used_at=now,
                        recipe_id=recipe.id,
                        notes=f"Cooked {recipe.name} for {servings}",
                    )
                    if usage is None:
                        raise InsufficientStockError(
                            f"Stock of {requirement.food_name} changed while cooking {recipe.name}.",
                            shortfall=round_quantity(remaining),
                        )
                    item = self.inventory.reload(candidate.id)
                    apply_classification(item, now, expiring_window_days=settings.expiring_window_days)
                    consumed.append(
                        ConsumedItemRead(
                            item_id=item.id,
                            food_id=item.food_id,
                            used_quantity=round_quantity(debit),
                            unit=item.unit,
                            remaining_quantity=round_quantity(item.quantity),
                            status=item.status,
                        )
                    )
                    remaining -= take

            history = self.catalog.add_cook_history(member_id, recipe.id, servings, now)

        log_event(
            logger,
            logging.INFO,
            "recipe_cooked",
            member_id=member_id,
            recipe_id=recipe_id,
            servings=servings,
            items=len(consumed),
            warnings=len(warnings),
        )
        return CookRecipeResultRead(
            recipe_id=recipe.id,
            recipe_name=recipe.name,
            servings=servings,
            consumed=consumed,
            warnings=warnings,
            history_id=history.id,
        )

    def generate_recipe_shopping_list(
        self,
        member_id: int,
        recipe_id: int,
        servings: int = 1,
    ) -> RecipeShoppingListRead:
        match = self.get_recipe_match(member_id, recipe_id, servings)
        foods = self.catalog.get_foods([row.food_id for row in match.missing])
        items = [
            RecipeShoppingItemRead(
                food_id=row.food_id,
                food_name=row.food_name,
                category=foods[row.food_id].category if row.food_id in foods else "OTHER",
                need_to_buy=row.shortage,
                unit=row.unit,
                estimated_price=round(row.shortage * _ESTIMATED_PRICE_PER_UNIT, 2),
            )
            for row in match.missing
        ]
        return RecipeShoppingListRead(
            recipe_id=match.recipe_id,
            recipe_name=match.recipe_name,
            servings=match.servings,
            items=items,
            total_estimated_price=round(sum(item.estimated_price for item in items), 2),
        )

    def get_inventory_recipe_stats(self, member_id: int) -> RecipeStatsRead:
        recommendations = self.get_recommendations(member_id, RecipeRecommendationFilter(limit=500))
        recent = self.catalog.recent_cook_history(member_id, limit=10)
        return RecipeStatsRead(
            total_recipes=recommendations.total_recipes,
            can_cook_count=recommendations.can_cook_count,
            partial_count=recommendations.partial_count,
            unavailable_count=recommendations.unavailable_count,
            top_categories=recommendations.categories[:5],
            recent_cooks=[
                RecipeCookRead(
                    recipe_id=history.recipe_id,
                    recipe_name=history.recipe.name,
                    servings=history.servings,
                    cooked_at=history.cooked_at,
                )
                for history in recent
            ],
        )
