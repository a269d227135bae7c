import os
import sys
from pathlib import Path

import pytest
import pytest_asyncio

# Ensure project root on sys.path
_THIS_DIR = Path(__file__).resolve().parent
_PROJECT_ROOT = _THIS_DIR.parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

from asset_ledger import db as db_module  # noqa: E402

SEED_COLORS = ("red", "yellow", "green", "blue", "white", "gray", "black", "skyblue", "pink")


def sqlite_url(tmp_path) -> str:
    return f"sqlite://{tmp_path / 'ledger_test.db'}"


@pytest.fixture(params=["sqlite", "postgres"])
def database_url(request, tmp_path):
    """每个测试一个全新的 SQLite 文件；设置了 TEST_POSTGRES_URL 时再跑一遍 PostgreSQL。"""
    if request.param == "sqlite":
        return sqlite_url(tmp_path)
    url = os.environ.get("TEST_POSTGRES_URL")
    if not url:
        pytest.skip("TEST_POSTGRES_URL not set")
    return url


async def _reset_postgres(database):
    async with database.transaction() as conn:
        await conn.execute("TRUNCATE loans, items, containers RESTART IDENTITY CASCADE")
        await conn.execute("UPDATE label_counter SET current_value = 0 WHERE id = 1")
        names = ", ".join(f"'{n}'" for n in SEED_COLORS)
        await conn.execute(f"DELETE FROM cable_colors WHERE name NOT IN ({names})")


@pytest_asyncio.fixture
async def db(database_url):
    database = db_module.init_database(database_url)
    try:
        await database.migrate()
        if database.dialect.name == "postgres":
            await _reset_postgres(database)
        yield database
    finally:
        await db_module.close_database()


@pytest.fixture()
def client(tmp_path, monkeypatch):
    # Point the app to a temp SQLite DB and temp upload dir
    monkeypatch.setenv("DATABASE_URL", sqlite_url(tmp_path))
    monkeypatch.setenv("LOCAL_STORAGE_PATH", str(tmp_path / "uploads"))
    monkeypatch.setenv("ASSET_LEDGER_CONFIG", str(tmp_path / "missing.yaml"))
    from fastapi.testclient import TestClient
    from asset_ledger.api import app

    with TestClient(app) as c:
        yield c
