"""Schema registry: expected table shapes and validation of an opened DB.

Expected shapes come from the codec tables. The database also carries a
bookkeeping row (schema_master) with a hash of the canonical DDL and
PRAGMA user_version pinned to SCHEMA_VERSION, so a file created by a
different build is rejected even when the column lists happen to match.
"""
from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from sqlite3 import Connection
from typing import Iterable, Optional

from .codec import CODECS, EntityCodec

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
MASTER_TABLE = "schema_master"
MASTER_ROW_ID = 42


@dataclass(frozen=True)
class ColumnInfo:
    name: str
    type: str
    not_null: bool
    pk: int  # 1-based position in the primary key, 0 if not part of it

    def __str__(self) -> str:
        flags = " NOT NULL" if self.not_null else ""
        pk = f" PK{self.pk}" if self.pk else ""
        return f"{self.name} {self.type}{flags}{pk}"


@dataclass(frozen=True)
class TableSchema:
    name: str
    columns: tuple[ColumnInfo, ...]
    autoincrement: bool = True

    @classmethod
    def from_codec(cls, codec: EntityCodec) -> "TableSchema":
        return cls(
            name=codec.table,
            columns=tuple(
                ColumnInfo(c.column, c.storage_type, c.not_null, 1 if c.primary_key else 0)
                for c in codec.columns
            ),
        )

    def ddl(self) -> str:
        parts = []
        for c in self.columns:
            col = f"`{c.name}` {c.type}"
            if c.pk:
                col += " PRIMARY KEY AUTOINCREMENT" if self.autoincrement else " PRIMARY KEY"
            if c.not_null:
                col += " NOT NULL"
            parts.append(col)
        return f"CREATE TABLE IF NOT EXISTS `{self.name}` ({', '.join(parts)})"

    def column_map(self) -> dict[str, ColumnInfo]:
        return {c.name: c for c in self.columns}


@dataclass(frozen=True)
class TableMismatch:
    table: str
    expected: str
    found: str

    def __str__(self) -> str:
        return f"{self.table}:\n Expected:\n  {self.expected}\n Found:\n  {self.found}"


@dataclass
class SchemaValidation:
    mismatches: list[TableMismatch] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.mismatches

    def describe(self) -> str:
        if self.ok:
            return "schema ok"
        return "schema mismatch:\n" + "\n".join(str(m) for m in self.mismatches)


def read_table(conn: Connection, table: str) -> Optional[tuple[ColumnInfo, ...]]:
    rows = conn.execute(f"PRAGMA table_info(`{table}`)").fetchall()
    if not rows:
        return None
    # PRAGMA table_info: cid, name, type, notnull, dflt_value, pk
    return tuple(
        ColumnInfo(r[1], (r[2] or "").upper(), bool(r[3]), int(r[5])) for r in rows
    )


def _format_columns(cols: Iterable[ColumnInfo]) -> str:
    return ", ".join(str(c) for c in sorted(cols, key=lambda c: c.name))


class SchemaRegistry:
    def __init__(self, tables: Iterable[TableSchema], version: int = SCHEMA_VERSION):
        self.tables = tuple(tables)
        self.version = version

    @classmethod
    def default(cls) -> "SchemaRegistry":
        return cls(TableSchema.from_codec(c) for c in CODECS.values())

    @property
    def identity_hash(self) -> str:
        canonical = "\n".join(t.ddl() for t in self.tables)
        return hashlib.md5(canonical.encode("utf-8")).hexdigest()

    def is_fresh(self, conn: Connection) -> bool:
        user_version = conn.execute("PRAGMA user_version").fetchone()[0]
        if user_version:
            return False
        n = conn.execute(
            "SELECT COUNT(1) FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'"
        ).fetchone()[0]
        return n == 0

    def create_all(self, conn: Connection) -> None:
        """Create every table and stamp the bookkeeping row. Caller owns the transaction."""
        for t in self.tables:
            conn.execute(t.ddl())
        conn.execute(
            f"CREATE TABLE IF NOT EXISTS {MASTER_TABLE} (id INTEGER PRIMARY KEY, identity_hash TEXT)"
        )
        conn.execute(
            f"INSERT OR REPLACE INTO {MASTER_TABLE} (id, identity_hash) VALUES (?, ?)",
            (MASTER_ROW_ID, self.identity_hash),
        )
        # PRAGMA does not take bound parameters
        conn.execute(f"PRAGMA user_version = {int(self.version)}")
        logger.info("created schema v%s (%s)", self.version, self.identity_hash)

    def validate(self, conn: Connection) -> SchemaValidation:
        result = SchemaValidation()
        self._check_master(conn, result)
        for t in self.tables:
            found = read_table(conn, t.name)
            expected = t.column_map()
            if found is None:
                result.mismatches.append(
                    TableMismatch(t.name, _format_columns(expected.values()), "<missing table>")
                )
                continue
            if {c.name: c for c in found} != expected:
                result.mismatches.append(
                    TableMismatch(t.name, _format_columns(expected.values()), _format_columns(found))
                )
        return result

    def _check_master(self, conn: Connection, result: SchemaValidation) -> None:
        user_version = conn.execute("PRAGMA user_version").fetchone()[0]
        if user_version != self.version:
            result.mismatches.append(
                TableMismatch(MASTER_TABLE, f"version {self.version}", f"version {user_version}")
            )
        if read_table(conn, MASTER_TABLE) is None:
            result.mismatches.append(
                TableMismatch(MASTER_TABLE, f"identity_hash {self.identity_hash}", "<missing table>")
            )
            return
        row = conn.execute(
            f"SELECT identity_hash FROM {MASTER_TABLE} WHERE id = ?", (MASTER_ROW_ID,)
        ).fetchone()
        found_hash = row[0] if row else None
        if found_hash != self.identity_hash:
            result.mismatches.append(
                TableMismatch(
                    MASTER_TABLE,
                    f"identity_hash {self.identity_hash}",
                    f"identity_hash {found_hash}",
                )
            )
