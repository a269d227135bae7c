from __future__ import annotations

from typing import Optional

from fastapi import APIRouter

from ..schemas import BulkDisposed, BulkIds, ContainerCreate, ContainerFilters, ContainerUpdate
from ..services import container_svc

router = APIRouter(prefix="/api/v1/containers", tags=["containers"])


@router.post("", status_code=201)
async def api_container_create(body: ContainerCreate):
    return await container_svc.create_container(body)


@router.get("")
async def api_container_list(
    search: Optional[str] = None,
    location: Optional[str] = None,
    is_disposed: Optional[bool] = None,
    include_disposed: bool = False,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
    page: int = 1,
    per_page: int = 20,
):
    filters = ContainerFilters(
        search=search, location=location, is_disposed=is_disposed, include_disposed=include_disposed
    )
    result = await container_svc.list_containers(filters, sort_by, sort_order, page, per_page)
    return result.to_dict()


@router.get("/by-location/{location}")
async def api_container_by_location(location: str):
    return {"items": await container_svc.containers_by_location(location)}


@router.post("/bulk-delete")
async def api_container_bulk_delete(body: BulkIds):
    n = await container_svc.bulk_delete(body.ids)
    return {"deleted": n}


@router.post("/bulk-disposed")
async def api_container_bulk_disposed(body: BulkDisposed):
    n = await container_svc.bulk_update_disposed_status(body.ids, body.is_disposed)
    return {"updated": n}


@router.get("/{container_id}")
async def api_container_get(container_id: str):
    return await container_svc.get_container(container_id)


@router.get("/{container_id}/exists")
async def api_container_exists(container_id: str):
    return {"exists": await container_svc.container_exists(container_id)}


@router.put("/{container_id}")
async def api_container_update(container_id: str, body: ContainerUpdate):
    return await container_svc.update_container(container_id, body)


@router.delete("/{container_id}")
async def api_container_delete(container_id: str):
    await container_svc.delete_container(container_id)
    return {"message": "ok"}
