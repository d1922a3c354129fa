from __future__ import annotations

import logging
from typing import Generic, Optional, Sequence, TypeVar

from pydantic import BaseModel

from ..codec import EntityCodec
from ..db import CancelToken, Store
from ..invalidation import LiveQuery

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=BaseModel)


class TableAccessObject(Generic[R]):
    """CRUD for one entity family. Writes run in a transaction; reads do not."""

    codec: EntityCodec
    order_by: str

    def __init__(self, store: Store):
        self.store = store
        self.statements = store.statements.for_codec(self.codec)

    @property
    def table(self) -> str:
        return self.codec.table

    def insert(self, record: R) -> int:
        with self.store.transaction() as tx:
            cur = tx.execute(self.statements.insert_sql, self.statements.bind_insert(record), table=self.table)
            return int(cur.lastrowid)

    def update(self, record: R) -> None:
        with self.store.transaction() as tx:
            cur = tx.execute(self.statements.update_sql, self.statements.bind_update(record), table=self.table)
            if cur.rowcount == 0:
                logger.debug("update %s id=%s matched no row", self.table, record.id)

    def delete(self, record: R) -> None:
        with self.store.transaction() as tx:
            tx.execute(self.statements.delete_sql, self.statements.bind_delete(record), table=self.table)

    def get_by_id(self, id: int, cancel: Optional[CancelToken] = None) -> Optional[R]:
        rows = self.store.query(
            f"SELECT * FROM `{self.table}` WHERE `{self.codec.pk.column}` = ?", (id,), cancel=cancel
        )
        if not rows:
            return None
        return self.codec.decode(rows[0])

    def get_all(self) -> LiveQuery[R]:
        return self.live(f"SELECT * FROM `{self.table}` ORDER BY {self.order_by}")

    def live(self, sql: str, params: Sequence = ()) -> LiveQuery[R]:
        return LiveQuery(self.store, sql, params, {self.table}, self.codec.decode)
