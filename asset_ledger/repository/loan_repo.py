from __future__ import annotations

import datetime as dt
from typing import Any, Sequence

from ..db import Connection
from .query_builder import Page, Predicate, QueryBuilder, SortSpec, build_list

LOAN_COLUMNS = (
    "id", "item_id", "student_number", "student_name", "organization",
    "loan_date", "return_date", "remarks", "created_at", "updated_at",
)
SEARCH_COLUMNS = ("l.student_number", "l.student_name", "l.organization", "i.name", "i.label_id")

LOAN_SORT = SortSpec(
    allowed={
        "loan_date": "l.loan_date",
        "return_date": "l.return_date",
        "student_name": "l.student_name",
        "created_at": "l.created_at",
        "updated_at": "l.updated_at",
    },
    tiebreak="l.id",
)

_SELECT = "SELECT " + ", ".join(LOAN_COLUMNS) + " FROM loans"
_SELECT_JOINED = (
    "SELECT " + ", ".join(f"l.{c}" for c in LOAN_COLUMNS)
    + ", i.name AS item_name, i.label_id AS item_label_id "
    "FROM loans l JOIN items i ON i.id = l.item_id"
)


async def insert_loan(conn: Connection, fields: dict[str, Any], now: dt.datetime) -> int:
    qb = QueryBuilder(conn.dialect)
    values = [
        fields["item_id"], fields["student_number"], fields["student_name"],
        fields.get("organization"), now, fields.get("remarks"), now, now,
    ]
    new_id = await conn.fetch_value(
        "INSERT INTO loans (item_id, student_number, student_name, organization, loan_date, remarks, "
        f"created_at, updated_at) VALUES ({qb.bind_many(values)}) RETURNING id",
        qb.params,
    )
    return int(new_id)


async def get_loan(conn: Connection, loan_id: int) -> dict | None:
    qb = QueryBuilder(conn.dialect)
    return await conn.fetch_one(f"{_SELECT} WHERE id = {qb.bind(loan_id)}", qb.params)


async def get_loan_with_item(conn: Connection, loan_id: int) -> dict | None:
    qb = QueryBuilder(conn.dialect)
    return await conn.fetch_one(f"{_SELECT_JOINED} WHERE l.id = {qb.bind(loan_id)}", qb.params)


async def list_loans(
    conn: Connection,
    predicates: Sequence[Predicate],
    sort_by: str | None,
    sort_order: str | None,
    page: Page,
) -> tuple[list[dict], int]:
    data, count = build_list(
        conn.dialect, _SELECT_JOINED,
        "SELECT COUNT(*) FROM loans l JOIN items i ON i.id = l.item_id",
        predicates, LOAN_SORT, sort_by, sort_order, page,
    )
    rows = await conn.fetch_all(data.sql, data.params)
    total = await conn.fetch_value(count.sql, count.params)
    return rows, int(total or 0)


async def mark_returned(
    conn: Connection,
    loan_id: int,
    return_date: dt.datetime,
    remarks: str | None,
    touch: dt.datetime,
) -> int:
    """Guarded one-way transition: only an active loan row is updated."""
    qb = QueryBuilder(conn.dialect)
    sets = [f"return_date = {qb.bind(return_date)}"]
    if remarks is not None:
        sets.append(f"remarks = {qb.bind(remarks)}")
    sets.append(f"updated_at = {qb.bind(touch)}")
    sql = f"UPDATE loans SET {', '.join(sets)} WHERE id = {qb.bind(loan_id)} AND return_date IS NULL"
    return await conn.execute(sql, qb.params)
