from __future__ import annotations

import logging

from ..db import get_database
from ..domain.labels import is_label
from ..domain.timeutil import utcnow
from ..errors import BadRequestError, ConflictError, NotFoundError
from ..models import Item, PageResult
from ..repository import container_repo, item_repo
from ..repository.mappers import item_from_row, to_string_list
from ..repository.query_builder import BoolIs, Eq, Page, Search
from ..schemas import ItemCreate, ItemFilters, ItemUpdate
from .label_svc import next_free_label
from .utils import present_fields, to_page_result, touch_after

logger = logging.getLogger(__name__)


def _not_found(item_id) -> NotFoundError:
    return NotFoundError(f"Item with id {item_id} not found")


async def _check_label_free(conn, label_id: str, exclude_item_id: int | None = None) -> None:
    if not is_label(label_id):
        raise BadRequestError(f"Invalid label id '{label_id}': expected 4 characters of 0-9 / A-Z")
    if await item_repo.label_owner_count(conn, label_id, exclude_item_id) > 0:
        logger.warning("label %s already in use", label_id)
        raise ConflictError(f"Label ID '{label_id}' is already in use")


async def _check_container_ref(conn, data: dict) -> None:
    if data.get("storage_type") == "container" and not data.get("container_id"):
        raise BadRequestError("container_id is required when storage_type is 'container'")
    cid = data.get("container_id")
    if cid and await container_repo.get_container(conn, cid) is None:
        raise BadRequestError(f"Container with id {cid} not found")


async def create_item(req: ItemCreate) -> Item:
    db = get_database()
    data = present_fields(req)
    async with db.transaction() as conn:
        if data.get("label_id"):
            await _check_label_free(conn, data["label_id"])
        else:
            # 未指定标签时从计数器取一个，与插入同一事务
            data["label_id"] = await next_free_label(db, conn)
        await _check_container_ref(conn, data)
        new_id = await item_repo.insert_item(conn, data, utcnow())
    logger.info("item created id=%s label=%s", new_id, data["label_id"])
    return await get_item(new_id)


async def get_item(item_id: int) -> Item:
    db = get_database()
    async with db.transaction() as conn:
        row = await item_repo.get_item(conn, item_id)
    if row is None:
        raise _not_found(item_id)
    return item_from_row(row, db.strict_json)


async def get_item_by_label(label_id: str) -> Item:
    db = get_database()
    async with db.transaction() as conn:
        row = await item_repo.get_item_by_label(conn, label_id)
    if row is None:
        raise NotFoundError(f"Item with label_id {label_id} not found")
    return item_from_row(row, db.strict_json)


def item_predicates(filters: ItemFilters | None) -> list:
    if filters is None:
        return []
    preds = []
    if filters.search:
        preds.append(Search(item_repo.SEARCH_COLUMNS, filters.search))
    if filters.is_on_loan is not None:
        preds.append(BoolIs("is_on_loan", filters.is_on_loan))
    if filters.is_disposed is not None:
        preds.append(BoolIs("is_disposed", filters.is_disposed))
    if filters.container_id:
        preds.append(Eq("container_id", filters.container_id))
    if filters.storage_type:
        preds.append(Eq("storage_type", filters.storage_type))
    return preds


async def list_items(
    filters: ItemFilters | None = None,
    sort_by: str | None = None,
    sort_order: str | None = None,
    page: int = 1,
    per_page: int = 20,
) -> PageResult:
    db = get_database()
    pg = Page(page, per_page)
    async with db.transaction() as conn:
        rows, total = await item_repo.list_items(conn, item_predicates(filters), sort_by, sort_order, pg)
    return to_page_result(rows, total, pg, lambda r: item_from_row(r, db.strict_json))


async def update_item(item_id: int, req: ItemUpdate) -> Item:
    db = get_database()
    data = present_fields(req)
    async with db.transaction() as conn:
        current = await item_repo.get_item(conn, item_id)
        if current is None:
            raise _not_found(item_id)
        if data.get("label_id") and data["label_id"] != current["label_id"]:
            await _check_label_free(conn, data["label_id"], exclude_item_id=item_id)
        if "storage_type" in data or "container_id" in data:
            merged = {
                "storage_type": data.get("storage_type", current["storage_type"]),
                "container_id": data.get("container_id", current["container_id"]),
            }
            await _check_container_ref(conn, merged)
        await item_repo.update_item(conn, item_id, data, touch_after(current["updated_at"]))
    logger.info("item updated id=%s fields=%s", item_id, sorted(data))
    return await get_item(item_id)


async def delete_item(item_id: int) -> None:
    db = get_database()
    async with db.transaction() as conn:
        row = await item_repo.get_item(conn, item_id)
        if row is None:
            raise _not_found(item_id)
        item = item_from_row(row, strict_json=False)
        if item.is_on_loan:
            logger.warning("refused to delete item %s: on loan", item_id)
            raise ConflictError("Cannot delete item that is currently on loan")
        if await item_repo.count_active_loans(conn, item_id) > 0:
            logger.warning("refused to delete item %s: active loan rows", item_id)
            raise ConflictError("Cannot delete item with active loans")
        await item_repo.delete_item(conn, item_id)
    logger.info("item deleted id=%s", item_id)


async def _set_disposed(item_id: int, value: bool) -> Item:
    db = get_database()
    async with db.transaction() as conn:
        prev = await item_repo.get_updated_at(conn, item_id)
        if prev is None:
            raise _not_found(item_id)
        await item_repo.set_disposed(conn, item_id, value, touch_after(prev))
    logger.info("item %s id=%s", "disposed" if value else "undisposed", item_id)
    return await get_item(item_id)


async def dispose_item(item_id: int) -> Item:
    # 借出中的物品也允许报废
    return await _set_disposed(item_id, True)


async def undispose_item(item_id: int) -> Item:
    return await _set_disposed(item_id, False)


async def connection_name_suggestions() -> list[str]:
    db = get_database()
    async with db.transaction() as conn:
        raw = await item_repo.list_connection_names_raw(conn)
    names: set[str] = set()
    for rid, value in raw:
        for n in to_string_list(value, "connection_names", rid, db.strict_json) or []:
            if n:
                names.add(n)
    return sorted(names)


async def storage_location_suggestions() -> list[str]:
    db = get_database()
    async with db.transaction() as conn:
        locations = await item_repo.list_storage_locations(conn)
    return sorted(set(locations))
