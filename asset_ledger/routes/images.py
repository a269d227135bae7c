from __future__ import annotations

from fastapi import APIRouter, Body, File, UploadFile

from ..services import image_svc

router = APIRouter(prefix="/api/v1/images", tags=["images"])


@router.post("/upload", status_code=201)
async def api_image_upload(file: UploadFile = File(...)):
    data = await file.read()
    url = await image_svc.upload_image(data, file.filename or "", file.content_type)
    return {"url": url}


@router.post("/delete")
async def api_image_delete(url: str = Body(..., embed=True)):
    await image_svc.delete_image(url)
    return {"message": "ok"}
