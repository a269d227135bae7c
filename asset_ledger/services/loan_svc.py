from __future__ import annotations

import datetime as dt
import logging

from ..db import get_database
from ..domain.timeutil import utcnow
from ..errors import BadRequestError, ConflictError, NotFoundError
from ..models import LoanWithItem, PageResult
from ..repository import item_repo, loan_repo
from ..repository.mappers import loan_with_item_from_row, to_bool
from ..repository.query_builder import Eq, IsNull, Page, Search
from ..schemas import LoanCreate, LoanFilters
from .utils import present_fields, to_page_result, touch_after

logger = logging.getLogger(__name__)


async def create_loan(req: LoanCreate) -> LoanWithItem:
    """
    借出：物品标记 + 借出记录在同一事务内写入。
    物品标记用带条件的 UPDATE，两个并发借出请求只有一个能改到行。
    """
    db = get_database()
    data = present_fields(req)
    item_id = req.item_id
    async with db.transaction() as conn:
        item = await item_repo.get_item(conn, item_id)
        if item is None:
            raise NotFoundError(f"Item with id {item_id} not found")
        now = utcnow()
        flipped = await item_repo.mark_on_loan(conn, item_id, touch_after(item["updated_at"]))
        if flipped == 0:
            item = await item_repo.get_item(conn, item_id)
            if item is None:
                raise NotFoundError(f"Item with id {item_id} not found")
            if to_bool(item["is_disposed"]):
                logger.warning("refused loan for item %s: disposed", item_id)
                raise BadRequestError("Item is disposed and cannot be loaned")
            logger.warning("refused loan for item %s: already on loan", item_id)
            raise ConflictError("Item is already on loan")
        loan_id = await loan_repo.insert_loan(conn, data, now)
    logger.info("loan created id=%s item=%s student=%s", loan_id, item_id, req.student_number)
    return await get_loan(loan_id)


async def get_loan(loan_id: int) -> LoanWithItem:
    db = get_database()
    async with db.transaction() as conn:
        row = await loan_repo.get_loan_with_item(conn, loan_id)
    if row is None:
        raise NotFoundError(f"Loan with id {loan_id} not found")
    return loan_with_item_from_row(row)


async def return_loan(
    loan_id: int,
    return_date: dt.datetime | None = None,
    remarks: str | None = None,
) -> LoanWithItem:
    """归还是单向的：已归还的记录再次归还会被拒绝。"""
    db = get_database()
    async with db.transaction() as conn:
        loan = await loan_repo.get_loan(conn, loan_id)
        if loan is None:
            raise NotFoundError(f"Loan with id {loan_id} not found")
        when = return_date or utcnow()
        n = await loan_repo.mark_returned(conn, loan_id, when, remarks, touch_after(loan["updated_at"]))
        if n == 0:
            logger.warning("refused return for loan %s: already returned", loan_id)
            raise BadRequestError("Loan has already been returned")
        item_id = loan["item_id"]
        prev = await item_repo.get_updated_at(conn, item_id)
        await item_repo.clear_on_loan(conn, item_id, touch_after(prev))
    logger.info("loan returned id=%s item=%s", loan_id, item_id)
    return await get_loan(loan_id)


def loan_predicates(filters: LoanFilters | None) -> list:
    if filters is None:
        return []
    preds = []
    if filters.item_id is not None:
        preds.append(Eq("l.item_id", filters.item_id))
    if filters.student_number:
        preds.append(Eq("l.student_number", filters.student_number))
    if filters.active_only is not None:
        # True -> 未归还；False -> 已归还
        preds.append(IsNull("l.return_date", negate=not filters.active_only))
    if filters.search:
        preds.append(Search(loan_repo.SEARCH_COLUMNS, filters.search))
    return preds


async def list_loans(
    filters: LoanFilters | None = None,
    sort_by: str | None = None,
    sort_order: str | None = None,
    page: int = 1,
    per_page: int = 20,
) -> PageResult:
    db = get_database()
    pg = Page(page, per_page)
    async with db.transaction() as conn:
        rows, total = await loan_repo.list_loans(conn, loan_predicates(filters), sort_by, sort_order, pg)
    return to_page_result(rows, total, pg, loan_with_item_from_row)
