from __future__ import annotations

import datetime as dt
from decimal import Decimal, ROUND_HALF_UP

from .models import Food, FoodEntry


def round_half_up(value: float, precision: int = 0) -> float:
    """Round with Decimal ROUND_HALF_UP so 2.5 -> 3, unlike builtin round()."""
    if value == 0.0:
        return 0.0
    exp = Decimal(1) if precision == 0 else Decimal("0." + "0" * (precision - 1) + "1")
    return float(Decimal(str(value)).quantize(exp, rounding=ROUND_HALF_UP))


def round_macro(value: float) -> float:
    """Grams are kept to 2 decimal places."""
    return round_half_up(value, 2)


def snapshot_entry(
    food: Food,
    servings: float,
    meal_type: str,
    timestamp: dt.datetime,
) -> FoodEntry:
    """
    Build an unsaved FoodEntry carrying a point-in-time copy of the food's
    nutrition scaled by servings.

    calories are rounded half-up to a whole number, macros to 0.01 g.
    """
    if servings <= 0:
        raise ValueError("servings must be positive")
    return FoodEntry(
        food_id=food.id,
        food_name=food.name,
        servings=servings,
        calories=int(round_half_up(food.calories * servings)),
        protein=round_macro(food.protein * servings),
        carbs=round_macro(food.carbs * servings),
        fat=round_macro(food.fat * servings),
        timestamp=timestamp,
        meal_type=meal_type,
    )
