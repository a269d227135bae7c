from __future__ import annotations

# asset_ledger/services/utils.py
import datetime as dt
from typing import Any, Callable, Iterable

from ..domain.timeutil import next_timestamp
from ..models import PageResult
from ..repository.mappers import to_utc
from ..repository.query_builder import Page


def touch_after(previous_raw: Any) -> dt.datetime:
    """下一个 updated_at：严格大于库里已存的值"""
    return next_timestamp(to_utc(previous_raw))


def to_page_result(rows: Iterable[dict], total: int, page: Page, mapper: Callable) -> PageResult:
    return PageResult(items=[mapper(r) for r in rows], total=total, page=page.page, per_page=page.per_page)


def present_fields(model) -> dict:
    """pydantic 请求体中显式给出且非 None 的字段"""
    return {k: v for k, v in model.model_dump(exclude_unset=True).items() if v is not None}
