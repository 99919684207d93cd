from datetime import datetime

from pydantic import BaseModel, Field

from larder.core.constants import InventoryStatus, StockCoverage


class IngredientCoverageRead(BaseModel):
    food_id: int
    food_name: str
    required: float
    available: float
    unit: str
    shortage: float
    coverage: StockCoverage


class RecipeMatchRead(BaseModel):
    recipe_id: int
    recipe_name: str
    category: str
    difficulty: str
    prep_time: int
    cook_time: int
    servings: int
    match_score: int
    can_cook: bool
    sufficient_count: int
    total_ingredients: int
    ingredients: list[IngredientCoverageRead] = Field(default_factory=list)
    missing: list[IngredientCoverageRead] = Field(default_factory=list)


class RecipeRecommendationFilter(BaseModel):
    category: str | None = None
    difficulty: str | None = None
    max_prep_time: int | None = Field(default=None, ge=0)
    min_servings: int | None = Field(default=None, ge=1)
    max_servings: int | None = Field(default=None, ge=1)
    require_all: bool = False
    limit: int = Field(default=50, ge=1, le=500)


class RecipeCategoryStatRead(BaseModel):
    category: str
    total: int
    can_cook: int
    partially_available: int


class RecipeRecommendationRead(BaseModel):
    can_cook: list[RecipeMatchRead] = Field(default_factory=list)
    partially_available: list[RecipeMatchRead] = Field(default_factory=list)
    unavailable: list[RecipeMatchRead] = Field(default_factory=list)
    total_recipes: int
    can_cook_count: int
    partial_count: int
    unavailable_count: int
    categories: list[RecipeCategoryStatRead] = Field(default_factory=list)


class ConsumedItemRead(BaseModel):
    item_id: int
    food_id: int
    used_quantity: float
    unit: str
    remaining_quantity: float
    status: InventoryStatus


class CookRecipeResultRead(BaseModel):
    recipe_id: int
    recipe_name: str
    servings: int
    consumed: list[ConsumedItemRead] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    history_id: int


class RecipeShoppingItemRead(BaseModel):
    food_id: int
    food_name: str
    category: str
    need_to_buy: float
    unit: str
    estimated_price: float


class RecipeShoppingListRead(BaseModel):
    recipe_id: int
    recipe_name: str
    servings: int
    items: list[RecipeShoppingItemRead] = Field(default_factory=list)
    total_estimated_price: float


class RecipeCookRead(BaseModel):
    recipe_id: int
    recipe_name: str
    servings: int
    cooked_at: datetime


class RecipeStatsRead(BaseModel):
    total_recipes: int
    can_cook_count: int
    partial_count: int
    unavailable_count: int
    top_categories: list[RecipeCategoryStatRead] = Field(default_factory=list)
    recent_cooks: list[RecipeCookRead] = Field(default_factory=list)
