from __future__ import annotations

_UNIT_FACTORS_TO_BASE: dict[str, tuple[str, float]] = {
    "g": ("mass", 1.0),
    "kg": ("mass", 1000.0),
    "mg": ("mass", 0.001),
    "jin": ("mass", 500.0),
    "oz": ("mass", 28.3495),
    "lb": ("mass", 453.592),
    "ml": ("volume", 1.0),
    "l": ("volume", 1000.0),
    "tsp": ("volume", 4.92892),
    "tbsp": ("volume", 14.7868),
    "cup": ("volume", 240.0),
    "floz": ("volume", 29.5735),
    "pcs": ("count", 1.0),
    "pack": ("count", 1.0),
    "bottle": ("count", 1.0),
    "box": ("count", 1.0),
    "bag": ("count", 1.0),
}

_UNIT_ALIASES: dict[str, str] = {
    "gram": "g",
    "grams": "g",
    "kilogram": "kg",
    "kilograms": "kg",
    "milligram": "mg",
    "milligrams": "mg",
    "ounce": "oz",
    "ounces": "oz",
    "pound": "lb",
    "pounds": "lb",
    "liter": "l",
    "liters": "l",
    "litre": "l",
    "litres": "l",
    "milliliter": "ml",
    "milliliters": "ml",
    "teaspoon": "tsp",
    "teaspoons": "tsp",
    "tablespoon": "tbsp",
    "tablespoons": "tbsp",
    "cups": "cup",
    "fl oz": "floz",
    "piece": "pcs",
    "pieces": "pcs",
    "pc": "pcs",
    "each": "pcs",
    "unit": "pcs",
    "units": "pcs",
    "packs": "pack",
    "bottles": "bottle",
    "boxes": "box",
    "bags": "bag",
}

QUANTITY_TOLERANCE = 0.0001


def canonical_unit(unit: str) -> str:
    lowered = unit.strip().lower()
    return _UNIT_ALIASES.get(lowered, lowered)


def convert_amount(amount: float, from_unit: str, to_unit: str) -> float | None:
    """Convert between units of the same dimension, or return None when they are incompatible.

    Count units only convert to themselves: a bag and a box are not interchangeable.
    """
    from_canonical = canonical_unit(from_unit)
    to_canonical = canonical_unit(to_unit)

    if from_canonical == to_canonical:
        return amount

    from_meta = _UNIT_FACTORS_TO_BASE.get(from_canonical)
    to_meta = _UNIT_FACTORS_TO_BASE.get(to_canonical)
    if not from_meta or not to_meta:
        return None

    from_group, from_factor = from_meta
    to_group, to_factor = to_meta
    if from_group != to_group or from_group == "count":
        return None

    return amount * from_factor / to_factor


def round_quantity(value: float) -> float:
    return round(value, 4)
