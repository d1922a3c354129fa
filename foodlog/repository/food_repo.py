from __future__ import annotations

from typing import Iterable

from ..codec import FOOD_CODEC
from ..domain.models import Food
from ..invalidation import LiveQuery
from .base import TableAccessObject


class FoodDao(TableAccessObject[Food]):
    codec = FOOD_CODEC
    order_by = "name ASC"

    def search(self, query: str) -> LiveQuery[Food]:
        # LIKE is ASCII case-insensitive in SQLite by default
        return self.live(
            "SELECT * FROM foods WHERE name LIKE '%' || ? || '%' ORDER BY name ASC",
            (query,),
        )

    def insert_all(self, foods: Iterable[Food]) -> list[int]:
        """Insert several foods in one transaction; either all land or none do."""
        with self.store.transaction():
            return [self.insert(f) for f in foods]
