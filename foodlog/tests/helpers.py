import datetime as dt
import queue

import pytest

from foodlog.domain.models import Food, FoodEntry


def make_food(**kw) -> Food:
    data = dict(
        name="Banana",
        calories=105,
        protein=1.3,
        carbs=27,
        fat=0.3,
        serving_size=1,
        serving_unit="medium",
    )
    data.update(kw)
    return Food(**data)


def make_entry(**kw) -> FoodEntry:
    data = dict(
        food_id=1,
        food_name="Banana",
        servings=2,
        calories=210,
        protein=2.6,
        carbs=54,
        fat=0.6,
        timestamp=dt.datetime(2024, 1, 1, 8, 0, 0),
        meal_type="breakfast",
    )
    data.update(kw)
    return FoodEntry(**data)


class Collector:
    """on_next/on_error sink for live query subscriptions."""

    def __init__(self):
        self.items: queue.Queue = queue.Queue()
        self.errors: queue.Queue = queue.Queue()

    def on_next(self, value):
        self.items.put(value)

    def on_error(self, err):
        self.errors.put(err)

    def next(self, timeout: float = 5.0):
        return self.items.get(timeout=timeout)

    def assert_silent(self, wait: float = 0.3):
        with pytest.raises(queue.Empty):
            self.items.get(timeout=wait)
