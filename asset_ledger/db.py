from __future__ import annotations

# asset_ledger/db.py
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Sequence

from sqlalchemy import event
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from .dialects import Dialect, PostgresDialect, SqliteDialect
from .domain.timeutil import utcnow
from .errors import ConfigError, ConflictError

logger = logging.getLogger(__name__)

# 连接池：两种后端都是最多 10 个连接，不允许溢出
POOL_SIZE = 10
MAX_OVERFLOW = 0
SQLITE_BUSY_TIMEOUT_SECONDS = 30

MIGRATIONS_ROOT = Path(__file__).resolve().parent / "migrations"

_UNIQUE_MARKERS = ("unique constraint", "duplicate key", "uniqueviolation")


def _is_unique_violation(exc: IntegrityError) -> bool:
    text = str(exc.orig if exc.orig is not None else exc).lower()
    return any(m in text for m in _UNIQUE_MARKERS)


class Connection:
    """One pooled connection inside an open transaction."""

    def __init__(self, raw: AsyncConnection, dialect: Dialect, strict_json: bool = True):
        self.raw = raw
        self.dialect = dialect
        self.strict_json = strict_json

    async def _run(self, sql: str, params: Sequence[Any]):
        try:
            return await self.raw.exec_driver_sql(sql, tuple(params))
        except IntegrityError as e:
            if _is_unique_violation(e):
                raise ConflictError("Duplicate value violates a unique constraint") from e
            raise

    async def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> list[dict]:
        result = await self._run(sql, params)
        return [dict(r) for r in result.mappings().all()]

    async def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> dict | None:
        result = await self._run(sql, params)
        row = result.mappings().first()
        return dict(row) if row is not None else None

    async def fetch_value(self, sql: str, params: Sequence[Any] = ()) -> Any:
        result = await self._run(sql, params)
        return result.scalar()

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Run a statement without a result set; returns the affected row count."""
        result = await self._run(sql, params)
        return result.rowcount


class Database:
    """
    Process-wide handle over one pooled engine and its dialect.
    Every unit of work runs inside `transaction()`: commit on normal exit,
    rollback when an exception escapes.
    """

    def __init__(self, engine: AsyncEngine, dialect: Dialect, strict_json: bool = True):
        self.engine = engine
        self.dialect = dialect
        self.strict_json = strict_json

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Connection]:
        async with self.engine.begin() as raw:
            yield Connection(raw, self.dialect, self.strict_json)

    async def migrate(self) -> list[str]:
        """Apply pending migrations in filename order; returns the versions applied."""
        folder = MIGRATIONS_ROOT / self.dialect.migrations_dir
        files = sorted(folder.glob("*.sql"))
        async with self.transaction() as conn:
            await conn.execute(
                "CREATE TABLE IF NOT EXISTS schema_migrations ("
                "version TEXT PRIMARY KEY, applied_at TEXT NOT NULL)"
            )
            rows = await conn.fetch_all("SELECT version FROM schema_migrations")
        done = {r["version"] for r in rows}

        applied: list[str] = []
        p = self.dialect.placeholder
        for path in files:
            version = path.stem
            if version in done:
                continue
            statements = split_sql(path.read_text(encoding="utf-8"))
            async with self.transaction() as conn:
                for stmt in statements:
                    await conn.execute(stmt)
                await conn.execute(
                    f"INSERT INTO schema_migrations (version, applied_at) VALUES ({p(1)}, {p(2)})",
                    (version, utcnow().isoformat()),
                )
            logger.info("applied migration %s (%s)", version, self.dialect.name)
            applied.append(version)
        return applied

    async def close(self) -> None:
        await self.engine.dispose()


def split_sql(script: str) -> list[str]:
    """Split a migration script into single statements. Scripts keep
    semicolons out of string literals."""
    lines = [ln for ln in script.splitlines() if not ln.strip().startswith("--")]
    return [s.strip() for s in "\n".join(lines).split(";") if s.strip()]


def _unicode_lower(value):
    return value.lower() if isinstance(value, str) else value


def _sqlite_on_connect(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys = ON")
    cursor.close()
    # 与 PostgreSQL ILIKE 一致的 Unicode 大小写折叠，供搜索使用
    dbapi_connection.create_function("unicode_lower", 1, _unicode_lower, deterministic=True)


def _sqlite_path(url: str) -> str:
    rest = url[len("sqlite:"):]
    if rest.startswith("//"):
        rest = rest[2:]
    return rest.split("?", 1)[0]


def connect(url: str, strict_json: bool = True) -> Database:
    """
    按 URL 前缀选择后端：
    - postgres:// / postgresql://  -> asyncpg
    - sqlite://<path>              -> aiosqlite（外键开启，忙等待 30 秒）
    """
    if not url:
        raise ConfigError("DATABASE_URL is empty")
    if url.startswith(("postgres://", "postgresql://")):
        sa_url = "postgresql+asyncpg://" + url.split("://", 1)[1]
        engine = create_async_engine(sa_url, pool_size=POOL_SIZE, max_overflow=MAX_OVERFLOW)
        logger.info("connecting to postgres")
        return Database(engine, PostgresDialect(), strict_json)
    if url.startswith("sqlite:"):
        path = _sqlite_path(url)
        connect_args = {"timeout": SQLITE_BUSY_TIMEOUT_SECONDS}
        if path in ("", ":memory:"):
            # 内存库只有单个共享连接，不走连接池参数
            engine = create_async_engine("sqlite+aiosqlite://", connect_args=connect_args)
        else:
            dirn = os.path.dirname(os.path.abspath(path))
            os.makedirs(dirn, exist_ok=True)
            engine = create_async_engine(
                f"sqlite+aiosqlite:///{path}",
                pool_size=POOL_SIZE,
                max_overflow=MAX_OVERFLOW,
                connect_args=connect_args,
            )
        event.listen(engine.sync_engine, "connect", _sqlite_on_connect)
        logger.info("connecting to sqlite at %s", path or ":memory:")
        return Database(engine, SqliteDialect(), strict_json)
    raise ConfigError(f"Unsupported database URL: {url}")


# ---- process-wide handle, set once at startup ----

_database: Database | None = None


def init_database(url: str, strict_json: bool = True) -> Database:
    global _database
    if _database is not None:
        raise ConfigError("Database already initialized")
    _database = connect(url, strict_json)
    return _database


def get_database() -> Database:
    if _database is None:
        raise ConfigError("Database not initialized")
    return _database


async def close_database() -> None:
    global _database
    db, _database = _database, None
    if db is not None:
        await db.close()
