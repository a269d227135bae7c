from __future__ import annotations

import datetime as dt
from typing import Any, Sequence

from ..db import Connection
from .query_builder import Page, Predicate, QueryBuilder, SortSpec, build_list, build_update

ITEM_COLUMNS = (
    "id", "name", "label_id", "model_number", "remarks", "purchase_year",
    "purchase_amount", "durability_years", "is_depreciation_target",
    "connection_names", "cable_color_pattern", "storage_location",
    "container_id", "storage_type", "is_on_loan", "qr_code_type",
    "is_disposed", "image_url", "created_at", "updated_at",
)

# 通过 update 可写的列（is_on_loan / is_disposed 由借出、报废流程维护）
UPDATABLE_COLUMNS = (
    "name", "label_id", "model_number", "remarks", "purchase_year",
    "purchase_amount", "durability_years", "is_depreciation_target",
    "connection_names", "cable_color_pattern", "storage_location",
    "container_id", "storage_type", "qr_code_type", "image_url",
)

SEARCH_COLUMNS = ("name", "label_id", "model_number", "remarks")

ITEM_SORT = SortSpec(
    allowed={
        "name": "name",
        "label_id": "label_id",
        "created_at": "created_at",
        "updated_at": "updated_at",
        "is_disposed": "is_disposed",
    },
    tiebreak="id",
)

_SELECT = "SELECT " + ", ".join(ITEM_COLUMNS) + " FROM items"


async def insert_item(conn: Connection, fields: dict[str, Any], now: dt.datetime) -> int:
    cols = [c for c in UPDATABLE_COLUMNS if fields.get(c) is not None]
    values = [fields[c] for c in cols]
    defaults = {
        "is_depreciation_target": False,
        "storage_type": "location",
        "is_on_loan": False,
        "is_disposed": False,
        "created_at": now,
        "updated_at": now,
    }
    for c, v in defaults.items():
        if c not in cols:
            cols.append(c)
            values.append(v)
    qb = QueryBuilder(conn.dialect)
    binds = qb.bind_many(values)
    new_id = await conn.fetch_value(
        f"INSERT INTO items ({', '.join(cols)}) VALUES ({binds}) RETURNING id",
        qb.params,
    )
    return int(new_id)


async def get_item(conn: Connection, item_id: int) -> dict | None:
    qb = QueryBuilder(conn.dialect)
    return await conn.fetch_one(f"{_SELECT} WHERE id = {qb.bind(item_id)}", qb.params)


async def get_item_by_label(conn: Connection, label_id: str) -> dict | None:
    qb = QueryBuilder(conn.dialect)
    return await conn.fetch_one(f"{_SELECT} WHERE label_id = {qb.bind(label_id)}", qb.params)


async def list_items(
    conn: Connection,
    predicates: Sequence[Predicate],
    sort_by: str | None,
    sort_order: str | None,
    page: Page,
) -> tuple[list[dict], int]:
    data, count = build_list(
        conn.dialect, _SELECT, "SELECT COUNT(*) FROM items",
        predicates, ITEM_SORT, sort_by, sort_order, page,
    )
    rows = await conn.fetch_all(data.sql, data.params)
    total = await conn.fetch_value(count.sql, count.params)
    return rows, int(total or 0)


async def get_updated_at(conn: Connection, item_id: int):
    qb = QueryBuilder(conn.dialect)
    return await conn.fetch_value(f"SELECT updated_at FROM items WHERE id = {qb.bind(item_id)}", qb.params)


async def update_item(conn: Connection, item_id: int, fields: dict[str, Any], touch: dt.datetime) -> int:
    stmt = build_update(conn.dialect, "items", fields, UPDATABLE_COLUMNS, "id", item_id, touch)
    return await conn.execute(stmt.sql, stmt.params)


async def set_disposed(conn: Connection, item_id: int, value: bool, touch: dt.datetime) -> int:
    qb = QueryBuilder(conn.dialect)
    sql = (
        f"UPDATE items SET is_disposed = {qb.bind(value)}, updated_at = {qb.bind(touch)} "
        f"WHERE id = {qb.bind(item_id)}"
    )
    return await conn.execute(sql, qb.params)


async def mark_on_loan(conn: Connection, item_id: int, touch: dt.datetime) -> int:
    """Guarded flip: only an existing, not-on-loan, not-disposed item is updated."""
    qb = QueryBuilder(conn.dialect)
    f = conn.dialect.bool_literal(False)
    sql = (
        f"UPDATE items SET is_on_loan = {conn.dialect.bool_literal(True)}, updated_at = {qb.bind(touch)} "
        f"WHERE id = {qb.bind(item_id)} "
        f"AND (is_on_loan IS NULL OR is_on_loan = {f}) "
        f"AND (is_disposed IS NULL OR is_disposed = {f})"
    )
    return await conn.execute(sql, qb.params)


async def clear_on_loan(conn: Connection, item_id: int, touch: dt.datetime) -> int:
    qb = QueryBuilder(conn.dialect)
    sql = (
        f"UPDATE items SET is_on_loan = {conn.dialect.bool_literal(False)}, updated_at = {qb.bind(touch)} "
        f"WHERE id = {qb.bind(item_id)}"
    )
    return await conn.execute(sql, qb.params)


async def delete_item(conn: Connection, item_id: int) -> int:
    qb = QueryBuilder(conn.dialect)
    return await conn.execute(f"DELETE FROM items WHERE id = {qb.bind(item_id)}", qb.params)


async def count_active_loans(conn: Connection, item_id: int) -> int:
    qb = QueryBuilder(conn.dialect)
    v = await conn.fetch_value(
        f"SELECT COUNT(*) FROM loans WHERE item_id = {qb.bind(item_id)} AND return_date IS NULL",
        qb.params,
    )
    return int(v or 0)


async def label_owner_count(conn: Connection, label_id: str, exclude_item_id: int | None = None) -> int:
    """items + containers 中已占用该标签的行数"""
    qb = QueryBuilder(conn.dialect)
    item_sql = f"SELECT COUNT(*) FROM items WHERE label_id = {qb.bind(label_id)}"
    if exclude_item_id is not None:
        item_sql += f" AND id <> {qb.bind(exclude_item_id)}"
    n_items = await conn.fetch_value(item_sql, qb.params)
    qb2 = QueryBuilder(conn.dialect)
    n_containers = await conn.fetch_value(
        f"SELECT COUNT(*) FROM containers WHERE id = {qb2.bind(label_id)}", qb2.params
    )
    return int(n_items or 0) + int(n_containers or 0)


async def list_connection_names_raw(conn: Connection) -> list[tuple[Any, Any]]:
    rows = await conn.fetch_all(
        "SELECT id, connection_names FROM items WHERE connection_names IS NOT NULL"
    )
    return [(r["id"], r["connection_names"]) for r in rows]


async def list_storage_locations(conn: Connection) -> list[str]:
    rows = await conn.fetch_all(
        "SELECT DISTINCT storage_location FROM items "
        "WHERE storage_location IS NOT NULL AND storage_location <> '' "
        "ORDER BY storage_location"
    )
    return [r["storage_location"] for r in rows]


async def list_labels_between(conn: Connection, first: str, last: str) -> list[dict]:
    """items whose label_id lies in [first, last]; 4-char codes sort like their values"""
    qb = QueryBuilder(conn.dialect)
    col = "label_id" + conn.dialect.binary_collation
    lo, hi = qb.bind(first), qb.bind(last)
    return await conn.fetch_all(
        f"SELECT label_id, name FROM items WHERE {col} >= {lo} AND {col} <= {hi}", qb.params
    )


async def list_by_label(conn: Connection, label_id: str) -> list[dict]:
    qb = QueryBuilder(conn.dialect)
    return await conn.fetch_all(
        f"SELECT id, name, label_id FROM items WHERE label_id = {qb.bind(label_id)}", qb.params
    )
