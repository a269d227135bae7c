from __future__ import annotations

import logging
import re

from ..db import get_database
from ..domain.timeutil import utcnow
from ..errors import BadRequestError, ConflictError, NotFoundError
from ..models import CableColor, PageResult
from ..repository import cable_color_repo
from ..repository.mappers import cable_color_from_row
from ..repository.query_builder import Page, Search
from ..schemas import HEX_PATTERN, CableColorCreate, CableColorUpdate
from .utils import present_fields, to_page_result, touch_after

logger = logging.getLogger(__name__)

_HEX_RE = re.compile(HEX_PATTERN)


def _check_hex(hex_code: str | None) -> None:
    if hex_code is not None and not _HEX_RE.match(hex_code):
        raise BadRequestError(f"Invalid hex code '{hex_code}': expected #RRGGBB")


async def create_color(req: CableColorCreate) -> CableColor:
    db = get_database()
    data = present_fields(req)
    _check_hex(data.get("hex_code"))
    async with db.transaction() as conn:
        if await cable_color_repo.name_taken(conn, data["name"]):
            raise ConflictError(f"Cable color '{data['name']}' already exists")
        new_id = await cable_color_repo.insert_color(conn, data, utcnow())
    logger.info("cable color created id=%s name=%s", new_id, data["name"])
    return await get_color(new_id)


async def get_color(color_id: int) -> CableColor:
    db = get_database()
    async with db.transaction() as conn:
        row = await cable_color_repo.get_color(conn, color_id)
    if row is None:
        raise NotFoundError(f"Cable color with id {color_id} not found")
    return cable_color_from_row(row)


async def list_colors(
    search: str | None = None,
    sort_by: str | None = None,
    sort_order: str | None = None,
    page: int = 1,
    per_page: int = 20,
) -> PageResult:
    db = get_database()
    pg = Page(page, per_page)
    preds = [Search(cable_color_repo.SEARCH_COLUMNS, search)] if search else []
    async with db.transaction() as conn:
        rows, total = await cable_color_repo.list_colors(conn, preds, sort_by, sort_order, pg)
    return to_page_result(rows, total, pg, cable_color_from_row)


async def update_color(color_id: int, req: CableColorUpdate) -> CableColor:
    db = get_database()
    data = present_fields(req)
    _check_hex(data.get("hex_code"))
    async with db.transaction() as conn:
        prev = await cable_color_repo.get_updated_at(conn, color_id)
        if prev is None:
            raise NotFoundError(f"Cable color with id {color_id} not found")
        if data.get("name") and await cable_color_repo.name_taken(conn, data["name"], exclude_id=color_id):
            raise ConflictError(f"Cable color '{data['name']}' already exists")
        await cable_color_repo.update_color(conn, color_id, data, touch_after(prev))
    logger.info("cable color updated id=%s fields=%s", color_id, sorted(data))
    return await get_color(color_id)


async def delete_color(color_id: int) -> None:
    db = get_database()
    async with db.transaction() as conn:
        n = await cable_color_repo.delete_color(conn, color_id)
    if n == 0:
        raise NotFoundError(f"Cable color with id {color_id} not found")
    logger.info("cable color deleted id=%s", color_id)
