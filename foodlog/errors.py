"""Error taxonomy for the storage layer.

Everything raised across the store/repository seam derives from FoodLogError,
so callers can catch one type when they do not care about the cause.
"""
from __future__ import annotations


class FoodLogError(Exception):
    pass


class StorageError(FoodLogError):
    """The SQLite engine failed while running a statement (I/O, lock, constraint, corruption)."""


class DataIntegrityError(FoodLogError):
    """A stored row does not decode into a valid record."""

    def __init__(self, message: str, table: str | None = None, row_id: int | None = None):
        super().__init__(message)
        self.table = table
        self.row_id = row_id


class SchemaMismatchError(FoodLogError):
    """The opened database does not have the shape this library expects."""

    def __init__(self, validation):
        self.validation = validation
        super().__init__(validation.describe())


class OperationCancelled(FoodLogError):
    pass
