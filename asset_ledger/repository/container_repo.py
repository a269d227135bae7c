from __future__ import annotations

import datetime as dt
from typing import Any, Sequence

from ..db import Connection
from ..dialects import Dialect
from .query_builder import Page, Predicate, QueryBuilder, SortSpec, build_list, build_update

CONTAINER_COLUMNS = (
    "id", "name", "description", "location", "image_url",
    "is_disposed", "created_at", "updated_at",
)
UPDATABLE_COLUMNS = ("name", "description", "location", "image_url", "is_disposed")
SEARCH_COLUMNS = ("c.id", "c.name", "c.description", "c.location")

CONTAINER_SORT = SortSpec(
    allowed={
        "name": "c.name",
        "location": "c.location",
        "item_count": "item_count",
        "created_at": "c.created_at",
        "updated_at": "c.updated_at",
        "is_disposed": "c.is_disposed",
    },
    tiebreak="c.id",
)

_SELECT = "SELECT " + ", ".join(CONTAINER_COLUMNS) + " FROM containers"


def occupancy_condition(dialect: Dialect, container_expr: str) -> str:
    """在容器中、未报废的物品"""
    f = dialect.bool_literal(False)
    return (
        f"i.container_id = {container_expr} AND i.storage_type = 'container' "
        f"AND (i.is_disposed IS NULL OR i.is_disposed = {f})"
    )


def _select_with_count(dialect: Dialect) -> str:
    cols = ", ".join(f"c.{c}" for c in CONTAINER_COLUMNS)
    return (
        f"SELECT {cols}, "
        f"(SELECT COUNT(*) FROM items i WHERE {occupancy_condition(dialect, 'c.id')}) AS item_count "
        "FROM containers c"
    )


async def insert_container(conn: Connection, container_id: str, fields: dict[str, Any], now: dt.datetime) -> None:
    qb = QueryBuilder(conn.dialect)
    values = [
        container_id, fields["name"], fields.get("description"), fields["location"],
        fields.get("image_url"), False, now, now,
    ]
    await conn.execute(
        f"INSERT INTO containers ({', '.join(CONTAINER_COLUMNS)}) VALUES ({qb.bind_many(values)})",
        qb.params,
    )


async def get_container(conn: Connection, container_id: str) -> dict | None:
    qb = QueryBuilder(conn.dialect)
    return await conn.fetch_one(f"{_SELECT} WHERE id = {qb.bind(container_id)}", qb.params)


async def get_container_with_count(conn: Connection, container_id: str) -> dict | None:
    qb = QueryBuilder(conn.dialect)
    return await conn.fetch_one(
        f"{_select_with_count(conn.dialect)} WHERE c.id = {qb.bind(container_id)}", qb.params
    )


async def list_containers(
    conn: Connection,
    predicates: Sequence[Predicate],
    sort_by: str | None,
    sort_order: str | None,
    page: Page,
) -> tuple[list[dict], int]:
    data, count = build_list(
        conn.dialect, _select_with_count(conn.dialect), "SELECT COUNT(*) FROM containers c",
        predicates, CONTAINER_SORT, sort_by, sort_order, page,
    )
    rows = await conn.fetch_all(data.sql, data.params)
    total = await conn.fetch_value(count.sql, count.params)
    return rows, int(total or 0)


async def list_by_location(conn: Connection, location: str) -> list[dict]:
    qb = QueryBuilder(conn.dialect)
    f = conn.dialect.bool_literal(False)
    return await conn.fetch_all(
        f"{_select_with_count(conn.dialect)} WHERE c.location = {qb.bind(location)} "
        f"AND (c.is_disposed IS NULL OR c.is_disposed = {f}) ORDER BY c.name ASC, c.id ASC",
        qb.params,
    )


async def get_updated_at(conn: Connection, container_id: str):
    qb = QueryBuilder(conn.dialect)
    return await conn.fetch_value(
        f"SELECT updated_at FROM containers WHERE id = {qb.bind(container_id)}", qb.params
    )


async def update_container(conn: Connection, container_id: str, fields: dict[str, Any], touch: dt.datetime) -> int:
    stmt = build_update(conn.dialect, "containers", fields, UPDATABLE_COLUMNS, "id", container_id, touch)
    return await conn.execute(stmt.sql, stmt.params)


async def delete_container(conn: Connection, container_id: str) -> int:
    qb = QueryBuilder(conn.dialect)
    return await conn.execute(f"DELETE FROM containers WHERE id = {qb.bind(container_id)}", qb.params)


async def existing_ids(conn: Connection, ids: Sequence[str]) -> set[str]:
    qb = QueryBuilder(conn.dialect)
    rows = await conn.fetch_all(f"SELECT id FROM containers WHERE id IN ({qb.bind_many(ids)})", qb.params)
    return {r["id"] for r in rows}


async def occupied_ids(conn: Connection, ids: Sequence[str]) -> set[str]:
    """ids 中仍装有未报废物品的容器"""
    qb = QueryBuilder(conn.dialect)
    f = conn.dialect.bool_literal(False)
    rows = await conn.fetch_all(
        "SELECT DISTINCT i.container_id AS id FROM items i "
        f"WHERE i.container_id IN ({qb.bind_many(ids)}) AND i.storage_type = 'container' "
        f"AND (i.is_disposed IS NULL OR i.is_disposed = {f})",
        qb.params,
    )
    return {r["id"] for r in rows}


async def delete_many(conn: Connection, ids: Sequence[str]) -> int:
    qb = QueryBuilder(conn.dialect)
    return await conn.execute(f"DELETE FROM containers WHERE id IN ({qb.bind_many(ids)})", qb.params)


async def set_disposed_many(conn: Connection, ids: Sequence[str], value: bool, touch: dt.datetime) -> int:
    qb = QueryBuilder(conn.dialect)
    sql = (
        f"UPDATE containers SET is_disposed = {qb.bind(value)}, updated_at = {qb.bind(touch)} "
        f"WHERE id IN ({qb.bind_many(ids)})"
    )
    return await conn.execute(sql, qb.params)


async def list_ids_in(conn: Connection, codes: Sequence[str]) -> list[dict]:
    if not codes:
        return []
    qb = QueryBuilder(conn.dialect)
    return await conn.fetch_all(
        f"SELECT id, name FROM containers WHERE id IN ({qb.bind_many(codes)})", qb.params
    )


async def list_ids_between(conn: Connection, first: str, last: str) -> list[dict]:
    qb = QueryBuilder(conn.dialect)
    col = "id" + conn.dialect.binary_collation
    lo, hi = qb.bind(first), qb.bind(last)
    return await conn.fetch_all(
        f"SELECT id, name FROM containers WHERE {col} >= {lo} AND {col} <= {hi}", qb.params
    )


async def max_updated_at(conn: Connection, ids: Sequence[str]):
    qb = QueryBuilder(conn.dialect)
    return await conn.fetch_value(
        f"SELECT MAX(updated_at) FROM containers WHERE id IN ({qb.bind_many(ids)})", qb.params
    )
