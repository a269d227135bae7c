from __future__ import annotations

import logging
import os

from ..errors import BadRequestError
from .storage_svc import BlobStorage, get_storage

logger = logging.getLogger(__name__)

IMAGE_CONTENT_TYPES = {"image/jpeg", "image/png", "image/gif", "image/webp"}
IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}


def is_image(filename: str | None, content_type: str | None) -> bool:
    if content_type and content_type.lower() in IMAGE_CONTENT_TYPES:
        return True
    ext = os.path.splitext(filename or "")[1].lower()
    return ext in IMAGE_EXTENSIONS


async def upload_image(
    data: bytes,
    filename: str,
    content_type: str | None,
    storage: BlobStorage | None = None,
) -> str:
    storage = storage or get_storage()
    if not data:
        raise BadRequestError("Empty upload")
    if not is_image(filename, content_type):
        raise BadRequestError("Only image files (jpeg, png, gif, webp) are allowed")
    limit = storage.max_file_size_bytes()
    if len(data) > limit:
        raise BadRequestError(f"File too large: {len(data)} bytes (max {limit})")
    url = await storage.upload(data, filename, content_type or "application/octet-stream")
    logger.info("image uploaded %s", url)
    return url


async def delete_image(url: str, storage: BlobStorage | None = None) -> None:
    await (storage or get_storage()).delete(url)
