from __future__ import annotations

# asset_ledger/logs.py
import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """根日志器只配置一次；重复调用只调整 asset_ledger 的级别。"""
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=logging.WARNING, format=LOG_FORMAT)
    logging.getLogger("asset_ledger").setLevel(level.upper())
