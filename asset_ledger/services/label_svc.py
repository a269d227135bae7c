from __future__ import annotations

import logging
from typing import Any

from ..db import Connection, Database, get_database
from ..domain.labels import MAX_LABEL_VALUE, decode_label, encode_label, is_label
from ..errors import BadRequestError
from ..models import PageResult
from ..repository import container_repo, item_repo
from ..repository.label_repo import LabelAllocator
from ..repository.query_builder import Page

logger = logging.getLogger(__name__)

MAX_GENERATE = 1000
RECORD_TYPES = ("qr", "barcode", "nothing")


async def generate_labels(quantity: int, record_type: str = "qr") -> list[str]:
    """
    预留一批连续标签（打印用）。
    record_type 只决定打印样式，不写库。
    """
    if quantity < 1 or quantity > MAX_GENERATE:
        raise BadRequestError(f"Quantity must be between 1 and {MAX_GENERATE}")
    if record_type not in RECORD_TYPES:
        raise BadRequestError("Invalid record type")
    codes = await LabelAllocator(get_database()).allocate(quantity)
    logger.info("labels generated %s..%s (%s, %s)", codes[0], codes[-1], quantity, record_type)
    return codes


async def next_free_label(db: Database, conn: Connection) -> str:
    """从计数器取号；跳过已被手工占用的标签（物品可自带 label_id）。"""
    allocator = LabelAllocator(db)
    while True:
        code = (await allocator.allocate(1, conn))[0]
        if await item_repo.label_owner_count(conn, code) == 0:
            return code
        logger.warning("allocated label %s already taken, drawing again", code)


async def counter_status() -> dict[str, Any]:
    current = await LabelAllocator(get_database()).current_value()
    return {
        "current_value": current,
        "last_label": encode_label(current) if current else None,
        "remaining": MAX_LABEL_VALUE - current,
    }


async def label_page(page: int = 1, per_page: int = 100) -> PageResult:
    """按 0000..ZZZZ 顺序分页，标注每个标签是否被物品 / 容器占用"""
    pg = Page(page, per_page)
    first = pg.offset
    last = min(first + pg.per_page, MAX_LABEL_VALUE + 1)
    codes = [encode_label(n) for n in range(first, last)]
    if not codes:
        return PageResult(items=[], total=MAX_LABEL_VALUE + 1, page=pg.page, per_page=pg.per_page)
    db = get_database()
    async with db.transaction() as conn:
        item_rows = await item_repo.list_labels_between(conn, codes[0], codes[-1])
        container_rows = await container_repo.list_ids_between(conn, codes[0], codes[-1])
    used: dict[str, dict[str, Any]] = {}
    for r in container_rows:
        used[r["id"]] = {"item_name": r["name"], "kind": "container"}
    for r in item_rows:
        used[r["label_id"]] = {"item_name": r["name"], "kind": "item"}
    entries = []
    for code in codes:
        hit = used.get(code)
        entries.append({
            "id": code,
            "used": hit is not None,
            "item_name": hit["item_name"] if hit else None,
            "kind": hit["kind"] if hit else None,
        })
    return PageResult(items=entries, total=MAX_LABEL_VALUE + 1, page=pg.page, per_page=pg.per_page)


async def check_global_id(code: str) -> dict[str, Any]:
    if not is_label(code):
        raise BadRequestError(f"Invalid label id '{code}'")
    db = get_database()
    async with db.transaction() as conn:
        items = await item_repo.list_by_label(conn, code)
        containers = await container_repo.list_ids_in(conn, [code])
    found_in: list[str] = []
    duplicates: list[dict[str, str]] = []
    if items:
        found_in.append("items")
        duplicates += [{"name": r["name"], "item_type": "item"} for r in items]
    if containers:
        found_in.append("containers")
        duplicates += [{"name": r["name"], "item_type": "container"} for r in containers]
    return {
        "id": code,
        "value": decode_label(code),
        "exists": bool(found_in),
        "found_in": found_in,
        "duplicates": duplicates,
    }
