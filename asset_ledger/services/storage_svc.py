from __future__ import annotations

import asyncio
import logging
import os
import uuid
from pathlib import Path

from ..config import Settings
from ..errors import ConfigError, LocalIOError, StorageError

logger = logging.getLogger(__name__)


class BlobStorage:
    """upload / delete 两个操作 + 单文件大小上限"""

    async def upload(self, data: bytes, filename: str, content_type: str) -> str:
        raise NotImplementedError

    async def delete(self, url: str) -> None:
        raise NotImplementedError

    def max_file_size_bytes(self) -> int:
        raise NotImplementedError


class LocalStorage(BlobStorage):
    def __init__(self, root: str, base_url: str, max_file_size_mb: int = 5):
        self.root = Path(root).resolve()
        self.base_url = base_url.rstrip("/")
        self.max_file_size_mb = max_file_size_mb

    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024

    @property
    def url_prefix(self) -> str:
        return f"{self.base_url}/uploads/"

    async def upload(self, data: bytes, filename: str, content_type: str) -> str:
        name = os.path.basename(filename or "")
        if not name or name in (".", ".."):
            raise StorageError("Invalid file name")
        key = uuid.uuid4().hex
        target = self.root / key / name
        try:
            await asyncio.to_thread(_write_file, target, data)
        except OSError as e:
            raise LocalIOError(f"Failed to write {target}: {e}") from e
        logger.info("stored %s (%s, %d bytes)", target, content_type, len(data))
        return f"{self.url_prefix}{key}/{name}"

    def path_for(self, url: str) -> Path:
        if not url.startswith(self.url_prefix):
            raise StorageError(f"URL is not served by this storage: {url}")
        rel = url[len(self.url_prefix):]
        target = (self.root / rel).resolve()
        if self.root not in target.parents:
            raise StorageError(f"Invalid storage URL: {url}")
        return target

    async def delete(self, url: str) -> None:
        target = self.path_for(url)
        try:
            await asyncio.to_thread(_remove_file, target)
        except OSError as e:
            raise LocalIOError(f"Failed to delete {target}: {e}") from e
        logger.info("deleted %s", target)


def _write_file(target: Path, data: bytes) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "wb") as f:
        f.write(data)


def _remove_file(target: Path) -> None:
    if target.exists():
        target.unlink()
    parent = target.parent
    if parent.exists() and not any(parent.iterdir()):
        parent.rmdir()


def build_storage(settings: Settings) -> BlobStorage:
    st = settings.storage
    if st.type == "local":
        if not st.local_path:
            raise ConfigError("Local storage path is not configured")
        return LocalStorage(st.local_path, settings.base_url, st.max_file_size_mb)
    if st.type == "s3":
        raise ConfigError("S3 storage backend is not available; use STORAGE_TYPE=local")
    raise ConfigError(f"Unknown storage type: {st.type}")


_storage: BlobStorage | None = None


def init_storage(settings: Settings) -> BlobStorage:
    global _storage
    _storage = build_storage(settings)
    return _storage


def get_storage() -> BlobStorage:
    if _storage is None:
        raise ConfigError("Storage not initialized")
    return _storage
