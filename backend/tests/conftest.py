from collections.abc import Callable, Generator
from datetime import datetime, timedelta
from typing import Any

import pytest
from sqlalchemy.orm import Session, sessionmaker

from larder.container import InventoryServices, build_services
from larder.core.database import Base, build_engine, build_session_factory, create_tables
from larder.models.food import Food
from larder.models.member import Member
from larder.models.recipe import Recipe, RecipeIngredient
from larder.schemas.inventory import InventoryItemDetailRead

NOW = datetime(2026, 10, 18, 12, 0, 0)


class FrozenClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def session_factory() -> Generator[sessionmaker[Session], None, None]:
    engine = build_engine("sqlite://")
    create_tables(engine)
    yield build_session_factory(engine)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(NOW)


@pytest.fixture
def services(db: Session, clock: FrozenClock) -> InventoryServices:
    return build_services(db, clock=clock)


@pytest.fixture
def member(db: Session) -> Member:
    member = Member(name="Robin", email="robin@example.com")
    db.add(member)
    db.commit()
    return member


@pytest.fixture
def other_member(db: Session) -> Member:
    member = Member(name="Sam", email="sam@example.com")
    db.add(member)
    db.commit()
    return member


@pytest.fixture
def foods(db: Session) -> dict[str, Food]:
    catalog = {
        "milk": Food(name="Milk", category="DAIRY"),
        "eggs": Food(name="Eggs", category="PROTEIN"),
        "flour": Food(name="Flour", category="GRAINS"),
        "tomato": Food(name="Tomato", category="VEGETABLES"),
        "apple": Food(name="Apple", category="FRUITS"),
        "cheese": Food(name="Cheese", category="DAIRY"),
    }
    db.add_all(catalog.values())
    db.commit()
    return catalog


@pytest.fixture
def omelette(db: Session, foods: dict[str, Food]) -> Recipe:
    recipe = Recipe(
        name="Omelette",
        category="BREAKFAST",
        difficulty="EASY",
        prep_time=5,
        cook_time=10,
        servings=2,
        ingredients=[
            RecipeIngredient(food_id=foods["eggs"].id, amount=3, unit="pcs"),
            RecipeIngredient(food_id=foods["milk"].id, amount=200, unit="ml"),
        ],
    )
    db.add(recipe)
    db.commit()
    return recipe


@pytest.fixture
def add_item(services: InventoryServices, clock: FrozenClock) -> Callable[..., InventoryItemDetailRead]:
    def _add(member: Member, food: Food, **overrides: Any) -> InventoryItemDetailRead:
        payload: dict[str, Any] = {
            "food_id": food.id,
            "quantity": 10,
            "unit": "pcs",
            "expiry_date": clock.now + timedelta(days=10),
        }
        payload.update(overrides)
        return services.tracker.create_item(member.id, payload)

    return _add
