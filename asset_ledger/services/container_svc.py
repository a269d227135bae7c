from __future__ import annotations

import logging
from typing import Sequence

from ..db import get_database
from ..domain.timeutil import utcnow
from ..errors import BadRequestError, ConflictError, NotFoundError
from ..models import ContainerWithCount, PageResult
from ..repository import container_repo
from ..repository.mappers import container_with_count_from_row
from ..repository.query_builder import BoolIs, Eq, Page, Search
from ..schemas import ContainerCreate, ContainerFilters, ContainerUpdate
from .label_svc import next_free_label
from .utils import present_fields, to_page_result, touch_after

logger = logging.getLogger(__name__)

OCCUPIED_MESSAGE = "Cannot delete container with items. Move or remove items first."


def _not_found(container_id) -> NotFoundError:
    return NotFoundError(f"Container with id {container_id} not found")


async def create_container(req: ContainerCreate) -> ContainerWithCount:
    db = get_database()
    data = present_fields(req)
    async with db.transaction() as conn:
        # 容器 id 与物品标签共用同一计数器
        container_id = await next_free_label(db, conn)
        await container_repo.insert_container(conn, container_id, data, utcnow())
    logger.info("container created id=%s", container_id)
    return await get_container(container_id)


async def get_container(container_id: str) -> ContainerWithCount:
    db = get_database()
    async with db.transaction() as conn:
        row = await container_repo.get_container_with_count(conn, container_id)
    if row is None:
        raise _not_found(container_id)
    return container_with_count_from_row(row)


async def container_exists(container_id: str) -> bool:
    db = get_database()
    async with db.transaction() as conn:
        return await container_repo.get_container(conn, container_id) is not None


def container_predicates(filters: ContainerFilters | None) -> list:
    filters = filters or ContainerFilters()
    preds = []
    if filters.search:
        preds.append(Search(container_repo.SEARCH_COLUMNS, filters.search))
    if filters.location:
        preds.append(Eq("c.location", filters.location))
    if filters.is_disposed is not None:
        preds.append(BoolIs("c.is_disposed", filters.is_disposed))
    elif not filters.include_disposed:
        preds.append(BoolIs("c.is_disposed", False))
    return preds


async def list_containers(
    filters: ContainerFilters | None = None,
    sort_by: str | None = None,
    sort_order: str | None = None,
    page: int = 1,
    per_page: int = 20,
) -> PageResult:
    db = get_database()
    pg = Page(page, per_page)
    async with db.transaction() as conn:
        rows, total = await container_repo.list_containers(
            conn, container_predicates(filters), sort_by, sort_order, pg
        )
    return to_page_result(rows, total, pg, container_with_count_from_row)


async def containers_by_location(location: str) -> list[ContainerWithCount]:
    db = get_database()
    async with db.transaction() as conn:
        rows = await container_repo.list_by_location(conn, location)
    return [container_with_count_from_row(r) for r in rows]


async def update_container(container_id: str, req: ContainerUpdate) -> ContainerWithCount:
    db = get_database()
    data = present_fields(req)
    async with db.transaction() as conn:
        prev = await container_repo.get_updated_at(conn, container_id)
        if prev is None:
            raise _not_found(container_id)
        if data.get("is_disposed") is True and await container_repo.occupied_ids(conn, [container_id]):
            logger.warning("refused to dispose container %s: still holds items", container_id)
            raise ConflictError("Cannot dispose container with items. Move or remove items first.")
        await container_repo.update_container(conn, container_id, data, touch_after(prev))
    logger.info("container updated id=%s fields=%s", container_id, sorted(data))
    return await get_container(container_id)


async def delete_container(container_id: str) -> None:
    db = get_database()
    async with db.transaction() as conn:
        if await container_repo.get_container(conn, container_id) is None:
            raise _not_found(container_id)
        if await container_repo.occupied_ids(conn, [container_id]):
            logger.warning("refused to delete container %s: still holds items", container_id)
            raise ConflictError(OCCUPIED_MESSAGE)
        await container_repo.delete_container(conn, container_id)
    logger.info("container deleted id=%s", container_id)


async def _check_batch(conn, ids: Sequence[str]) -> list[str]:
    """去重 + 存在性检查；有一个 id 不存在则整批拒绝"""
    if not ids:
        raise BadRequestError("No container ids given")
    unique = list(dict.fromkeys(ids))
    found = await container_repo.existing_ids(conn, unique)
    missing = [i for i in unique if i not in found]
    if missing:
        raise NotFoundError(f"Containers not found: {', '.join(missing)}")
    return unique


async def bulk_delete(ids: Sequence[str]) -> int:
    db = get_database()
    async with db.transaction() as conn:
        unique = await _check_batch(conn, ids)
        occupied = await container_repo.occupied_ids(conn, unique)
        if occupied:
            names = ", ".join(sorted(occupied))
            logger.warning("refused bulk delete: occupied containers %s", names)
            raise ConflictError(f"Cannot delete containers with items: {names}")
        n = await container_repo.delete_many(conn, unique)
    logger.info("containers deleted count=%s", n)
    return n


async def bulk_update_disposed_status(ids: Sequence[str], is_disposed: bool) -> int:
    db = get_database()
    async with db.transaction() as conn:
        unique = await _check_batch(conn, ids)
        if is_disposed:
            occupied = await container_repo.occupied_ids(conn, unique)
            if occupied:
                names = ", ".join(sorted(occupied))
                logger.warning("refused bulk dispose: occupied containers %s", names)
                raise ConflictError(f"Cannot dispose containers with items: {names}")
        touch = touch_after(await container_repo.max_updated_at(conn, unique))
        n = await container_repo.set_disposed_many(conn, unique, is_disposed, touch)
    logger.info("containers disposed=%s count=%s", is_disposed, n)
    return n
