from __future__ import annotations

from typing import Optional

from fastapi import APIRouter

from ..schemas import ItemCreate, ItemFilters, ItemUpdate, StorageType
from ..services import item_svc

router = APIRouter(prefix="/api/v1/items", tags=["items"])


@router.post("", status_code=201)
async def api_item_create(body: ItemCreate):
    return await item_svc.create_item(body)


@router.get("")
async def api_item_list(
    search: Optional[str] = None,
    is_on_loan: Optional[bool] = None,
    is_disposed: Optional[bool] = None,
    container_id: Optional[str] = None,
    storage_type: Optional[StorageType] = None,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
    page: int = 1,
    per_page: int = 20,
):
    filters = ItemFilters(
        search=search,
        is_on_loan=is_on_loan,
        is_disposed=is_disposed,
        container_id=container_id,
        storage_type=storage_type,
    )
    result = await item_svc.list_items(filters, sort_by, sort_order, page, per_page)
    return result.to_dict()


@router.get("/suggestions/connection_names")
async def api_item_connection_names():
    return {"suggestions": await item_svc.connection_name_suggestions()}


@router.get("/suggestions/storage_locations")
async def api_item_storage_locations():
    return {"suggestions": await item_svc.storage_location_suggestions()}


@router.get("/by-label/{label_id}")
async def api_item_by_label(label_id: str):
    return await item_svc.get_item_by_label(label_id)


@router.get("/{item_id}")
async def api_item_get(item_id: int):
    return await item_svc.get_item(item_id)


@router.put("/{item_id}")
async def api_item_update(item_id: int, body: ItemUpdate):
    return await item_svc.update_item(item_id, body)


@router.delete("/{item_id}")
async def api_item_delete(item_id: int):
    await item_svc.delete_item(item_id)
    return {"message": "ok"}


@router.post("/{item_id}/dispose")
async def api_item_dispose(item_id: int):
    return await item_svc.dispose_item(item_id)


@router.post("/{item_id}/undispose")
async def api_item_undispose(item_id: int):
    return await item_svc.undispose_item(item_id)
