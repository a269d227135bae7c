from __future__ import annotations

import logging

from ..db import Connection, Database
from ..domain.labels import MAX_LABEL_VALUE, label_range
from ..errors import BadRequestError, InternalServerError
from .query_builder import QueryBuilder

logger = logging.getLogger(__name__)


class LabelAllocator:
    """
    标签分配器：单行计数器 label_counter(id=1) 是唯一的真相来源。

    一次分配 = 一条带上限条件的 UPDATE ... RETURNING，在事务内完成；
    行锁（PG）/ 写锁（SQLite）把并发调用串行化，不做进程内加锁，也不缓存计数值。
    """

    def __init__(self, db: Database):
        self.db = db

    async def allocate(self, quantity: int, conn: Connection | None = None) -> list[str]:
        if quantity < 1:
            raise BadRequestError("quantity must be >= 1")
        if conn is not None:
            return await self._allocate(conn, quantity)
        async with self.db.transaction() as tx:
            return await self._allocate(tx, quantity)

    async def _allocate(self, conn: Connection, quantity: int) -> list[str]:
        qb = QueryBuilder(conn.dialect)
        q1 = qb.bind(quantity)
        q2 = qb.bind(quantity)
        cap = qb.bind(MAX_LABEL_VALUE)
        sql = (
            f"UPDATE label_counter SET current_value = current_value + {q1} "
            f"WHERE id = 1 AND current_value + {q2} <= {cap} "
            "RETURNING current_value"
        )
        row = await conn.fetch_one(sql, qb.params)
        if row is None:
            current = await conn.fetch_value("SELECT current_value FROM label_counter WHERE id = 1")
            if current is None:
                raise InternalServerError("label counter row is missing")
            logger.warning("label space exhausted: current=%s requested=%s", current, quantity)
            raise BadRequestError("Not enough label IDs available")
        end = int(row["current_value"])
        return label_range(end - quantity + 1, quantity)

    async def current_value(self) -> int:
        async with self.db.transaction() as conn:
            v = await conn.fetch_value("SELECT current_value FROM label_counter WHERE id = 1")
        if v is None:
            raise InternalServerError("label counter row is missing")
        return int(v)
