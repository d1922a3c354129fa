"""foodlog: typed SQLite access layer for a food diary.

    store = open_store("diary.db")
    foods = FoodDao(store)
    food_id = foods.insert(Food(name="Banana", calories=105, protein=1.3, carbs=27,
                                fat=0.3, serving_size=1, serving_unit="medium"))
    sub = foods.get_all().subscribe(print)
"""
from __future__ import annotations

from .db import CancelToken, Store, open_store
from .domain.models import Food, FoodEntry, UNASSIGNED_ID
from .errors import (
    DataIntegrityError,
    FoodLogError,
    OperationCancelled,
    SchemaMismatchError,
    StorageError,
)
from .repository import FoodDao, FoodEntryDao

__version__ = "0.1.0"

__all__ = [
    "CancelToken",
    "DataIntegrityError",
    "Food",
    "FoodDao",
    "FoodEntry",
    "FoodEntryDao",
    "FoodLogError",
    "OperationCancelled",
    "SchemaMismatchError",
    "Store",
    "StorageError",
    "UNASSIGNED_ID",
    "open_store",
]
