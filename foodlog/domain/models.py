from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, ConfigDict, Field, field_validator

# id value meaning "let the store assign one"
UNASSIGNED_ID = 0


class Food(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int = Field(default=UNASSIGNED_ID, ge=0)
    name: str = Field(min_length=1)
    calories: int = Field(ge=0)
    protein: float = Field(ge=0)
    carbs: float = Field(ge=0)
    fat: float = Field(ge=0)
    serving_size: float = Field(gt=0)
    serving_unit: str


class FoodEntry(BaseModel):
    """One logged portion of a food.

    food_name and the macro fields are copied from the Food at logging time and
    are never refreshed from the foods table; food_id is informational only.
    """

    model_config = ConfigDict(frozen=True)

    id: int = Field(default=UNASSIGNED_ID, ge=0)
    food_id: int
    food_name: str
    servings: float = Field(gt=0)
    calories: int = Field(ge=0)
    protein: float = Field(ge=0)
    carbs: float = Field(ge=0)
    fat: float = Field(ge=0)
    timestamp: dt.datetime
    meal_type: str

    @field_validator("timestamp")
    @classmethod
    def timestamp_is_local(cls, value: dt.datetime) -> dt.datetime:
        # stored as ISO local text; an offset would break text ordering
        if value.tzinfo is not None:
            raise ValueError("timestamp must be a naive local date-time")
        return value
