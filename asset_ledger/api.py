"""
FastAPI app entry point aggregating per-domain routers under asset_ledger/routes.
Keep as `uvicorn asset_ledger.api:app`.
"""
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import load_settings
from .db import close_database, init_database
from .errors import AppError
from .logs import setup_logging
from .routes.base import APP_NAME, APP_VERSION
from .services.storage_svc import init_storage

logger = logging.getLogger(__name__)

app = FastAPI(title=APP_NAME, version=APP_VERSION)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.on_event("startup")
async def on_startup():
    settings = load_settings()
    setup_logging(settings.logging.level)
    db = init_database(settings.database.url, settings.database.strict_json_columns)
    applied = await db.migrate()
    if applied:
        logger.info("migrations applied: %s", ", ".join(applied))
    init_storage(settings)
    app.state.settings = settings


@app.on_event("shutdown")
async def on_shutdown():
    await close_database()


# Include routers (split by business domain)
from .routes import base as base_routes
from .routes import items as items_routes
from .routes import containers as containers_routes
from .routes import loans as loans_routes
from .routes import cable_colors as cable_colors_routes
from .routes import labels as labels_routes
from .routes import images as images_routes

app.include_router(base_routes.router)
app.include_router(items_routes.router)
app.include_router(containers_routes.router)
app.include_router(loans_routes.router)
app.include_router(cable_colors_routes.router)
app.include_router(labels_routes.router)
app.include_router(images_routes.router)
