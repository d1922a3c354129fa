from __future__ import annotations

# foodlog/services/diary_svc.py
import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from ..config import get_config
from ..domain.models import Food, FoodEntry
from ..domain.nutrition import round_macro, snapshot_entry
from ..repository.food_entry_repo import FoodEntryDao

logger = logging.getLogger(__name__)


@dataclass
class MacroTotals:
    calories: int = 0
    protein: float = 0.0
    carbs: float = 0.0
    fat: float = 0.0

    def add(self, entry: FoodEntry) -> None:
        self.calories += entry.calories
        self.protein = round_macro(self.protein + entry.protein)
        self.carbs = round_macro(self.carbs + entry.carbs)
        self.fat = round_macro(self.fat + entry.fat)


@dataclass
class DailyTotals:
    day: dt.date
    total: MacroTotals = field(default_factory=MacroTotals)
    by_meal: Dict[str, MacroTotals] = field(default_factory=dict)
    entry_count: int = 0


def log_food(
    entry_dao: FoodEntryDao,
    food: Food,
    servings: float,
    meal_type: str,
    timestamp: Optional[dt.datetime] = None,
) -> FoodEntry:
    """Snapshot the food's nutrition for `servings` and store it as a new entry."""
    if not food.id:
        raise ValueError("food must be saved before it can be logged")
    ts = timestamp or dt.datetime.now().replace(microsecond=0)
    entry = snapshot_entry(food, servings, meal_type, ts)
    new_id = entry_dao.insert(entry)
    logger.info("logged %s x%s as entry %s (%s)", food.name, servings, new_id, meal_type)
    return entry.model_copy(update={"id": new_id})


def daily_totals(entry_dao: FoodEntryDao, day: dt.date) -> DailyTotals:
    out = DailyTotals(day=day)
    for entry in entry_dao.get_by_date(day).fetch():
        out.total.add(entry)
        out.by_meal.setdefault(entry.meal_type, MacroTotals()).add(entry)
        out.entry_count += 1
    return out


def recent_entries(entry_dao: FoodEntryDao, limit: Optional[int] = None) -> list[FoodEntry]:
    """Latest entry per food, for quick re-logging. Defaults to config recent_limit."""
    if limit is None:
        limit = get_config()["recent_limit"]
    return entry_dao.get_recent(limit).fetch()
