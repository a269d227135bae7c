#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Asset ledger (PostgreSQL / SQLite)

Commands:
  init                Connect to DATABASE_URL and apply pending migrations
  labels              Reserve N sequential labels for printing
  label-status        Show the label counter and remaining capacity
  check-id            Report whether a label is used by an item and/or container
  serve               Run the HTTP API with uvicorn

Notes:
- Settings come from environment variables / .env first, then --config (YAML), then defaults.
- Labels are 4-char base-36 codes (0000-ZZZZ) shared by items and containers.
"""

import argparse
import asyncio
import json
import os
import sys

from asset_ledger.config import load_settings
from asset_ledger.db import close_database, init_database
from asset_ledger.errors import AppError
from asset_ledger.logs import setup_logging
from asset_ledger.services import label_svc


# ---------------- helpers ----------------

def _settings(args):
    if args.config:
        os.environ["ASSET_LEDGER_CONFIG"] = args.config
    settings = load_settings(args.config)
    setup_logging(settings.logging.level)
    return settings


async def _with_db(settings, fn):
    db = init_database(settings.database.url, settings.database.strict_json_columns)
    try:
        await db.migrate()
        return await fn()
    finally:
        await close_database()


# ---------------- commands ----------------

def cmd_init(args):
    settings = _settings(args)

    async def run():
        db = init_database(settings.database.url, settings.database.strict_json_columns)
        try:
            return await db.migrate()
        finally:
            await close_database()

    applied = asyncio.run(run())
    if applied:
        print("Applied migrations:")
        for v in applied:
            print(f"  {v}")
    else:
        print("Database is up to date.")


def cmd_labels(args):
    settings = _settings(args)
    codes = asyncio.run(_with_db(settings, lambda: label_svc.generate_labels(args.quantity, args.record_type)))
    for c in codes:
        print(c)


def cmd_label_status(args):
    settings = _settings(args)
    status = asyncio.run(_with_db(settings, label_svc.counter_status))
    print(json.dumps(status, ensure_ascii=False, indent=2))


def cmd_check_id(args):
    settings = _settings(args)
    code = args.id.strip().upper()
    report = asyncio.run(_with_db(settings, lambda: label_svc.check_global_id(code)))
    print(json.dumps(report, ensure_ascii=False, indent=2))


def cmd_serve(args):
    import uvicorn

    settings = _settings(args)
    uvicorn.run(
        "asset_ledger.api:app",
        host=args.host or settings.server.host,
        port=args.port or settings.server.port,
        reload=args.reload,
    )


# ---------------- Entry ----------------

def main():
    parser = argparse.ArgumentParser(description="Asset ledger (PostgreSQL / SQLite)")
    parser.add_argument("--config", default=None, help="YAML config file (default: config.yaml)")
    sub = parser.add_subparsers()

    p_init = sub.add_parser("init", help="apply database migrations")
    p_init.set_defaults(func=cmd_init)

    p_labels = sub.add_parser("labels", help="reserve sequential labels")
    p_labels.add_argument("--quantity", "-n", required=True, type=int)
    p_labels.add_argument("--record-type", default="qr", choices=list(label_svc.RECORD_TYPES))
    p_labels.set_defaults(func=cmd_labels)

    p_status = sub.add_parser("label-status", help="show label counter")
    p_status.set_defaults(func=cmd_label_status)

    p_check = sub.add_parser("check-id", help="check whether a label is in use")
    p_check.add_argument("id", help="4-char label, e.g. 00A1")
    p_check.set_defaults(func=cmd_check_id)

    p_serve = sub.add_parser("serve", help="run the HTTP API")
    p_serve.add_argument("--host", default=None)
    p_serve.add_argument("--port", default=None, type=int)
    p_serve.add_argument("--reload", action="store_true")
    p_serve.set_defaults(func=cmd_serve)

    args = parser.parse_args()
    if not hasattr(args, "func"):
        parser.print_help()
        return
    try:
        args.func(args)
    except AppError as e:
        print(f"error: {e.message}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
