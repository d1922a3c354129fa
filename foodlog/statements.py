from __future__ import annotations

import threading
from dataclasses import dataclass

from .codec import EntityCodec


@dataclass(frozen=True)
class EntityStatements:
    """Prepared write statement text for one table plus its bind order."""

    codec: EntityCodec
    insert_sql: str
    update_sql: str
    delete_sql: str

    def bind_insert(self, record) -> tuple:
        # nullif(?, 0) on the pk slot lets SQLite assign the id for the sentinel
        return self.codec.encode(record)

    def bind_update(self, record) -> tuple:
        values = self.codec.encode(record)
        return values + (getattr(record, self.codec.pk.field),)

    def bind_delete(self, record) -> tuple:
        return (getattr(record, self.codec.pk.field),)


def _quote(name: str) -> str:
    return f"`{name}`"


def build_statements(codec: EntityCodec) -> EntityStatements:
    table = _quote(codec.table)
    cols = ",".join(_quote(c) for c in codec.column_names)
    placeholders = ",".join("nullif(?, 0)" if c.primary_key else "?" for c in codec.columns)
    assignments = ",".join(f"{_quote(c)} = ?" for c in codec.column_names)
    pk = _quote(codec.pk.column)
    return EntityStatements(
        codec=codec,
        insert_sql=f"INSERT OR REPLACE INTO {table} ({cols}) VALUES ({placeholders})",
        update_sql=f"UPDATE OR ABORT {table} SET {assignments} WHERE {pk} = ?",
        delete_sql=f"DELETE FROM {table} WHERE {pk} = ?",
    )


class StatementCache:
    """Builds statement text once per table and shares it across threads.

    The cached objects are immutable; parameters are bound per call into a
    fresh tuple, never stored on the statement.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._by_table: dict[str, EntityStatements] = {}

    def for_codec(self, codec: EntityCodec) -> EntityStatements:
        with self._lock:
            st = self._by_table.get(codec.table)
            if st is None:
                st = build_statements(codec)
                self._by_table[codec.table] = st
            return st

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_table)
