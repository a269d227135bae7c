import pytest

from asset_ledger.config import Settings
from asset_ledger.errors import BadRequestError, ConfigError, StorageError
from asset_ledger.services import image_svc
from asset_ledger.services.storage_svc import LocalStorage, build_storage

pytestmark = pytest.mark.asyncio

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


@pytest.fixture()
def storage(tmp_path):
    return LocalStorage(str(tmp_path / "uploads"), "http://localhost:8080", max_file_size_mb=1)


async def test_upload_and_delete(storage):
    url = await storage.upload(PNG, "photo.png", "image/png")
    assert url.startswith("http://localhost:8080/uploads/") and url.endswith("/photo.png")
    path = storage.path_for(url)
    assert path.read_bytes() == PNG

    await storage.delete(url)
    assert not path.exists()
    assert not path.parent.exists()


async def test_upload_strips_directories(storage):
    url = await storage.upload(PNG, "../../etc/evil.png", "image/png")
    assert url.endswith("/evil.png")
    assert storage.root in storage.path_for(url).parents


async def test_foreign_or_traversal_urls_are_rejected(storage):
    with pytest.raises(StorageError):
        storage.path_for("http://elsewhere/uploads/x/y.png")
    with pytest.raises(StorageError):
        storage.path_for("http://localhost:8080/uploads/../../secret.txt")


async def test_image_validation(storage):
    with pytest.raises(BadRequestError, match="Empty"):
        await image_svc.upload_image(b"", "a.png", "image/png", storage=storage)
    with pytest.raises(BadRequestError, match="image"):
        await image_svc.upload_image(b"hello", "notes.txt", "text/plain", storage=storage)
    with pytest.raises(BadRequestError, match="too large"):
        await image_svc.upload_image(b"x" * (1024 * 1024 + 1), "big.jpg", "image/jpeg", storage=storage)
    url = await image_svc.upload_image(PNG, "ok.png", None, storage=storage)
    await image_svc.delete_image(url, storage=storage)


async def test_build_storage_backends(tmp_path):
    s = Settings()
    s.storage.local_path = str(tmp_path)
    assert isinstance(build_storage(s), LocalStorage)
    s.storage.type = "s3"
    with pytest.raises(ConfigError):
        build_storage(s)
