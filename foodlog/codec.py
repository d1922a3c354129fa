"""Row codec: typed records <-> ordered SQLite column values.

Each entity kind is described by an EntityCodec: the table name, the record
class and an ordered tuple of ColumnSpec. Statements, schema DDL and
row decoding are all generated from that one table, so the column order is
defined in exactly one place.
"""
from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass
from typing import Any, Generic, Sequence, Type, TypeVar

from pydantic import BaseModel, ValidationError

from .domain.models import Food, FoodEntry
from .errors import DataIntegrityError

INTEGER = "INTEGER"
REAL = "REAL"
TEXT = "TEXT"
DATETIME = "DATETIME"  # logical type, stored as TEXT

R = TypeVar("R", bound=BaseModel)


# ISO local date-time: T separator, no offset, seconds and fraction optional on read
_LOCAL_DATETIME = re.compile(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}(:\d{2}(\.\d{1,6})?)?")


def format_timestamp(value: dt.datetime | None) -> str | None:
    # e.g. 2024-01-01T08:00:00 (microseconds only when non-zero)
    if value is None:
        return None
    if value.tzinfo is not None:
        raise ValueError("timestamps are stored as local date-time without offset")
    return value.isoformat(timespec="microseconds" if value.microsecond else "seconds")


def parse_timestamp(value: Any) -> dt.datetime | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"expected ISO date-time text, got {type(value).__name__}")
    if not _LOCAL_DATETIME.fullmatch(value):
        raise ValueError(f"not an ISO local date-time: {value!r}")
    if "." in value:
        fmt = "%Y-%m-%dT%H:%M:%S.%f"
    elif value.count(":") == 2:
        fmt = "%Y-%m-%dT%H:%M:%S"
    else:
        fmt = "%Y-%m-%dT%H:%M"
    return dt.datetime.strptime(value, fmt)


@dataclass(frozen=True)
class ColumnSpec:
    field: str
    column: str
    type: str
    not_null: bool = True
    primary_key: bool = False

    @property
    def storage_type(self) -> str:
        return TEXT if self.type == DATETIME else self.type

    def to_storage(self, value: Any) -> Any:
        if value is None:
            return None
        if self.type == DATETIME:
            return format_timestamp(value)
        if self.type == INTEGER:
            return int(value)
        if self.type == REAL:
            return float(value)
        return str(value)

    def from_storage(self, value: Any) -> Any:
        if value is None:
            return None
        if self.type == DATETIME:
            return parse_timestamp(value)
        if self.type == REAL:
            return float(value)
        return value


class EntityCodec(Generic[R]):
    def __init__(self, table: str, record_type: Type[R], columns: Sequence[ColumnSpec]):
        pks = [c for c in columns if c.primary_key]
        if len(pks) != 1:
            raise ValueError(f"{table}: exactly one primary key column required")
        self.table = table
        self.record_type = record_type
        self.columns = tuple(columns)
        self.pk = pks[0]

    @property
    def column_names(self) -> list[str]:
        return [c.column for c in self.columns]

    def encode(self, record: R) -> tuple:
        return tuple(c.to_storage(getattr(record, c.field)) for c in self.columns)

    def decode(self, row) -> R:
        """Build a record from a sqlite3.Row (or any mapping keyed by column name)."""
        row_id = _safe_get(row, self.pk.column)
        values = {}
        for c in self.columns:
            raw = row[c.column]
            if raw is None and c.not_null:
                raise DataIntegrityError(
                    f"{self.table}.{c.column} is NULL but required", self.table, row_id
                )
            try:
                values[c.field] = c.from_storage(raw)
            except (ValueError, TypeError) as e:
                raise DataIntegrityError(
                    f"{self.table}.{c.column}: cannot decode {raw!r}: {e}", self.table, row_id
                ) from e
        try:
            return self.record_type(**values)
        except ValidationError as e:
            raise DataIntegrityError(
                f"{self.table} row {row_id} violates {self.record_type.__name__} constraints: {e}",
                self.table,
                row_id,
            ) from e

    def decode_all(self, rows) -> list[R]:
        return [self.decode(r) for r in rows]


def _safe_get(row, key):
    try:
        return row[key]
    except (IndexError, KeyError):
        return None


FOOD_CODEC: EntityCodec[Food] = EntityCodec(
    "foods",
    Food,
    (
        ColumnSpec("id", "id", INTEGER, primary_key=True),
        ColumnSpec("name", "name", TEXT),
        ColumnSpec("calories", "calories", INTEGER),
        ColumnSpec("protein", "protein", REAL),
        ColumnSpec("carbs", "carbs", REAL),
        ColumnSpec("fat", "fat", REAL),
        ColumnSpec("serving_size", "servingSize", REAL),
        ColumnSpec("serving_unit", "servingUnit", TEXT),
    ),
)

FOOD_ENTRY_CODEC: EntityCodec[FoodEntry] = EntityCodec(
    "food_entries",
    FoodEntry,
    (
        ColumnSpec("id", "id", INTEGER, primary_key=True),
        ColumnSpec("food_id", "foodId", INTEGER),
        ColumnSpec("food_name", "foodName", TEXT),
        ColumnSpec("servings", "servings", REAL),
        ColumnSpec("calories", "calories", INTEGER),
        ColumnSpec("protein", "protein", REAL),
        ColumnSpec("carbs", "carbs", REAL),
        ColumnSpec("fat", "fat", REAL),
        ColumnSpec("timestamp", "timestamp", DATETIME),
        ColumnSpec("meal_type", "mealType", TEXT),
    ),
)

CODECS: dict[str, EntityCodec] = {c.table: c for c in (FOOD_CODEC, FOOD_ENTRY_CODEC)}
