from __future__ import annotations

from fastapi import APIRouter

from ..schemas import GenerateLabels
from ..services import label_svc

router = APIRouter(prefix="/api/v1", tags=["labels"])


@router.post("/labels/generate")
async def api_labels_generate(body: GenerateLabels):
    codes = await label_svc.generate_labels(body.quantity, body.record_type)
    return {"visible_ids": codes}


@router.get("/labels")
async def api_labels_page(page: int = 1, per_page: int = 100):
    result = await label_svc.label_page(page, per_page)
    return result.to_dict()


@router.get("/labels/status")
async def api_labels_status():
    return await label_svc.counter_status()


@router.get("/ids/{code}/check")
async def api_check_global_id(code: str):
    return await label_svc.check_global_id(code)
