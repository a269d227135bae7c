from __future__ import annotations

import datetime as dt
from typing import Any, Sequence

from ..db import Connection
from .query_builder import Page, Predicate, QueryBuilder, SortSpec, build_list, build_update

COLOR_COLUMNS = ("id", "name", "hex_code", "description", "created_at", "updated_at")
UPDATABLE_COLUMNS = ("name", "hex_code", "description")
SEARCH_COLUMNS = ("name", "description")

COLOR_SORT = SortSpec(
    allowed={"name": "name", "created_at": "created_at", "updated_at": "updated_at"},
    tiebreak="id",
)

_SELECT = "SELECT " + ", ".join(COLOR_COLUMNS) + " FROM cable_colors"


async def insert_color(conn: Connection, fields: dict[str, Any], now: dt.datetime) -> int:
    qb = QueryBuilder(conn.dialect)
    values = [fields["name"], fields.get("hex_code"), fields.get("description"), now, now]
    new_id = await conn.fetch_value(
        "INSERT INTO cable_colors (name, hex_code, description, created_at, updated_at) "
        f"VALUES ({qb.bind_many(values)}) RETURNING id",
        qb.params,
    )
    return int(new_id)


async def get_color(conn: Connection, color_id: int) -> dict | None:
    qb = QueryBuilder(conn.dialect)
    return await conn.fetch_one(f"{_SELECT} WHERE id = {qb.bind(color_id)}", qb.params)


async def name_taken(conn: Connection, name: str, exclude_id: int | None = None) -> bool:
    qb = QueryBuilder(conn.dialect)
    sql = f"SELECT COUNT(*) FROM cable_colors WHERE name = {qb.bind(name)}"
    if exclude_id is not None:
        sql += f" AND id <> {qb.bind(exclude_id)}"
    return int(await conn.fetch_value(sql, qb.params) or 0) > 0


async def list_colors(
    conn: Connection,
    predicates: Sequence[Predicate],
    sort_by: str | None,
    sort_order: str | None,
    page: Page,
) -> tuple[list[dict], int]:
    data, count = build_list(
        conn.dialect, _SELECT, "SELECT COUNT(*) FROM cable_colors",
        predicates, COLOR_SORT, sort_by, sort_order, page,
    )
    rows = await conn.fetch_all(data.sql, data.params)
    total = await conn.fetch_value(count.sql, count.params)
    return rows, int(total or 0)


async def get_updated_at(conn: Connection, color_id: int):
    qb = QueryBuilder(conn.dialect)
    return await conn.fetch_value(f"SELECT updated_at FROM cable_colors WHERE id = {qb.bind(color_id)}", qb.params)


async def update_color(conn: Connection, color_id: int, fields: dict[str, Any], touch: dt.datetime) -> int:
    stmt = build_update(conn.dialect, "cable_colors", fields, UPDATABLE_COLUMNS, "id", color_id, touch)
    return await conn.execute(stmt.sql, stmt.params)


async def delete_color(conn: Connection, color_id: int) -> int:
    qb = QueryBuilder(conn.dialect)
    return await conn.execute(f"DELETE FROM cable_colors WHERE id = {qb.bind(color_id)}", qb.params)
