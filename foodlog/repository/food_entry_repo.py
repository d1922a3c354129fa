from __future__ import annotations

import datetime as dt

from ..codec import FOOD_ENTRY_CODEC, format_timestamp
from ..domain.models import FoodEntry
from ..invalidation import LiveQuery
from .base import TableAccessObject


class FoodEntryDao(TableAccessObject[FoodEntry]):
    codec = FOOD_ENTRY_CODEC
    order_by = "timestamp DESC"

    def get_by_date(self, day: dt.date) -> LiveQuery[FoodEntry]:
        """Entries logged on the given calendar day, newest first."""
        start = dt.datetime.combine(day, dt.time.min)
        end = start + dt.timedelta(days=1)
        return self.live(
            "SELECT * FROM food_entries WHERE timestamp >= ? AND timestamp < ? ORDER BY timestamp DESC",
            (format_timestamp(start), format_timestamp(end)),
        )

    def get_recent(self, limit: int = 20) -> LiveQuery[FoodEntry]:
        """Latest entry per foodId, newest first."""
        return self.live(
            """
            SELECT fe.* FROM food_entries fe
            WHERE fe.id = (
                SELECT f2.id FROM food_entries f2
                WHERE f2.foodId = fe.foodId
                ORDER BY f2.timestamp DESC, f2.id DESC
                LIMIT 1
            )
            ORDER BY fe.timestamp DESC
            LIMIT ?
            """,
            (int(limit),),
        )
