from __future__ import annotations

# asset_ledger/config.py
import logging
import os
from dataclasses import dataclass, field

import yaml
from dotenv import load_dotenv

from .errors import ConfigError

# 配置解析顺序（高 -> 低）：
# 1) 环境变量（.env 会先被加载进环境）
# 2) YAML 配置文件：ASSET_LEDGER_CONFIG 指定，否则项目根 config.yaml
# 3) 内置默认值
_PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
_DEFAULT_CONFIG = os.path.join(_PROJECT_ROOT, "config.yaml")

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass
class DatabaseConfig:
    url: str = "sqlite://asset_ledger.db"
    strict_json_columns: bool = True


@dataclass
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 8080


@dataclass
class StorageConfig:
    type: str = "local"
    local_path: str = "./uploads"
    max_file_size_mb: int = 5


@dataclass
class LoggingConfig:
    level: str = "INFO"


@dataclass
class Settings:
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def base_url(self) -> str:
        return f"http://{self.server.host}:{self.server.port}"


def _read_config_yaml(path: str) -> dict:
    if not os.path.exists(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to read config file {path}: {e}") from e
    if not isinstance(cfg, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return cfg


def _as_bool(value, key: str) -> bool:
    if isinstance(value, bool):
        return value
    s = str(value).strip().lower()
    if s in _TRUE:
        return True
    if s in _FALSE:
        return False
    raise ConfigError(f"Invalid boolean for {key}: {value!r}")


def _as_int(value, key: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid integer for {key}: {value!r}")


def _section(cfg: dict, name: str) -> dict:
    sec = cfg.get(name) or {}
    if not isinstance(sec, dict):
        raise ConfigError(f"Config section '{name}' must be a mapping")
    return sec


def load_settings(config_path: str | None = None) -> Settings:
    load_dotenv()
    path = config_path or os.environ.get("ASSET_LEDGER_CONFIG") or _DEFAULT_CONFIG
    cfg = _read_config_yaml(path)

    s = Settings()
    db = _section(cfg, "database")
    server = _section(cfg, "server")
    storage = _section(cfg, "storage")
    log = _section(cfg, "logging")

    # YAML 层
    if db.get("url"):
        s.database.url = str(db["url"])
    if "strict_json_columns" in db:
        s.database.strict_json_columns = _as_bool(db["strict_json_columns"], "database.strict_json_columns")
    if server.get("host"):
        s.server.host = str(server["host"])
    if "port" in server:
        s.server.port = _as_int(server["port"], "server.port")
    if storage.get("type"):
        s.storage.type = str(storage["type"])
    local = storage.get("local") or {}
    if isinstance(local, dict) and local.get("path"):
        s.storage.local_path = str(local["path"])
    if "max_file_size_mb" in storage:
        s.storage.max_file_size_mb = _as_int(storage["max_file_size_mb"], "storage.max_file_size_mb")
    if log.get("level"):
        s.logging.level = str(log["level"])

    # 环境变量层
    env = os.environ
    if env.get("DATABASE_URL"):
        s.database.url = env["DATABASE_URL"]
    if env.get("STRICT_JSON_COLUMNS"):
        s.database.strict_json_columns = _as_bool(env["STRICT_JSON_COLUMNS"], "STRICT_JSON_COLUMNS")
    if env.get("SERVER_HOST"):
        s.server.host = env["SERVER_HOST"]
    if env.get("SERVER_PORT"):
        s.server.port = _as_int(env["SERVER_PORT"], "SERVER_PORT")
    if env.get("STORAGE_TYPE"):
        s.storage.type = env["STORAGE_TYPE"]
    if env.get("LOCAL_STORAGE_PATH"):
        s.storage.local_path = env["LOCAL_STORAGE_PATH"]
    if env.get("STORAGE_MAX_FILE_SIZE_MB"):
        s.storage.max_file_size_mb = _as_int(env["STORAGE_MAX_FILE_SIZE_MB"], "STORAGE_MAX_FILE_SIZE_MB")
    if env.get("LOG_LEVEL"):
        s.logging.level = env["LOG_LEVEL"]

    _validate(s)
    return s


def _validate(s: Settings) -> None:
    if not s.database.url.startswith(("postgres://", "postgresql://", "sqlite:")):
        raise ConfigError(f"Unsupported DATABASE_URL: {s.database.url}")
    if not (0 < s.server.port < 65536):
        raise ConfigError(f"Invalid server port: {s.server.port}")
    if s.storage.type not in ("local", "s3"):
        raise ConfigError(f"Unknown storage type: {s.storage.type}")
    if s.storage.max_file_size_mb <= 0:
        raise ConfigError("storage.max_file_size_mb must be positive")
    s.logging.level = s.logging.level.upper()
    if not isinstance(logging.getLevelName(s.logging.level), int):
        raise ConfigError(f"Unknown log level: {s.logging.level}")
