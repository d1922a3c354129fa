"""Repository layer: typed table access objects over the shared Store.

Keep DAOs thin; SQL text lives here or in the statement cache, never in services.
"""
from __future__ import annotations

from .food_repo import FoodDao
from .food_entry_repo import FoodEntryDao

__all__ = ["FoodDao", "FoodEntryDao"]
