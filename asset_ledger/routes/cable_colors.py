from __future__ import annotations

from typing import Optional

from fastapi import APIRouter

from ..schemas import CableColorCreate, CableColorUpdate
from ..services import cable_color_svc

router = APIRouter(prefix="/api/v1/cable_colors", tags=["cable_colors"])


@router.post("", status_code=201)
async def api_color_create(body: CableColorCreate):
    return await cable_color_svc.create_color(body)


@router.get("")
async def api_color_list(
    search: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
    page: int = 1,
    per_page: int = 20,
):
    result = await cable_color_svc.list_colors(search, sort_by, sort_order, page, per_page)
    return result.to_dict()


@router.get("/{color_id}")
async def api_color_get(color_id: int):
    return await cable_color_svc.get_color(color_id)


@router.put("/{color_id}")
async def api_color_update(color_id: int, body: CableColorUpdate):
    return await cable_color_svc.update_color(color_id, body)


@router.delete("/{color_id}")
async def api_color_delete(color_id: int):
    await cable_color_svc.delete_color(color_id)
    return {"message": "ok"}
