from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, or_
from sqlalchemy.orm import joinedload, selectinload

from larder.models.food import Food
from larder.models.member import Member
from larder.models.recipe import Recipe, RecipeHistory, RecipeIngredient
from larder.repositories.base import SqlRepository
from larder.schemas.recipe import RecipeRecommendationFilter


class CatalogRepository(SqlRepository):
    """Read access to the food catalog, the recipe catalog and the member directory."""

    def member_exists(self, member_id: int) -> bool:
        with self._guard("catalog.member_exists"):
            return self.db.get(Member, member_id) is not None

    def get_food(self, food_id: int) -> Food | None:
        with self._guard("catalog.get_food"):
            return self.db.get(Food, food_id)

    def get_foods(self, food_ids: list[int]) -> dict[int, Food]:
        if not food_ids:
            return {}
        with self._guard("catalog.get_foods"):
            foods = self.db.query(Food).filter(Food.id.in_(set(food_ids))).all()
            return {food.id: food for food in foods}

    def find_food_by_name(self, name: str) -> Food | None:
        lowered = name.strip().lower()
        with self._guard("catalog.find_food_by_name"):
            return (
                self.db.query(Food)
                .filter(or_(func.lower(Food.name) == lowered, func.lower(Food.name_en) == lowered))
                .order_by(Food.id)
                .first()
            )

    def get_recipe(self, recipe_id: int) -> Recipe | None:
        with self._guard("catalog.get_recipe"):
            return (
                self.db.query(Recipe)
                .options(selectinload(Recipe.ingredients).joinedload(RecipeIngredient.food))
                .filter(Recipe.id == recipe_id)
                .first()
            )

    def list_recipes(self, filters: RecipeRecommendationFilter) -> list[Recipe]:
        with self._guard("catalog.list_recipes"):
            query = (
                self.db.query(Recipe)
                .options(selectinload(Recipe.ingredients).joinedload(RecipeIngredient.food))
                .filter(Recipe.status == "PUBLISHED")
            )
            if filters.category:
                query = query.filter(Recipe.category == filters.category)
            if filters.difficulty:
                query = query.filter(Recipe.difficulty == filters.difficulty)
            if filters.max_prep_time is not None:
                query = query.filter(Recipe.prep_time <= filters.max_prep_time)
            if filters.min_servings is not None:
                query = query.filter(Recipe.servings >= filters.min_servings)
            if filters.max_servings is not None:
                query = query.filter(Recipe.servings <= filters.max_servings)
            return query.order_by(Recipe.id).limit(filters.limit).all()

    def add_cook_history(self, member_id: int, recipe_id: int, servings: int, cooked_at: datetime) -> RecipeHistory:
        with self._guard("catalog.add_cook_history"):
            history = RecipeHistory(
                member_id=member_id,
                recipe_id=recipe_id,
                servings=servings,
                cooked_at=cooked_at,
            )
            self.db.add(history)
            self.db.flush()
            return history

    def recent_cook_history(self, member_id: int, limit: int = 10) -> list[RecipeHistory]:
        with self._guard("catalog.recent_cook_history"):
            return (
                self.db.query(RecipeHistory)
                .options(joinedload(RecipeHistory.recipe))
                .filter(RecipeHistory.member_id == member_id)
                .order_by(RecipeHistory.cooked_at.desc(), RecipeHistory.id.desc())
                .limit(limit)
                .all()
            )
