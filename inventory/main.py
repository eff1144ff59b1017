# ---------------------------------------------------------
# inventory/main.py
# Inventory & borrowing backend
#
# Run: uvicorn inventory.main:create_app --factory --reload (from repo root)
#  or: python -m inventory.main
#
# - FastAPI + SQLite (dev) / PostgreSQL (DATABASE_URL)
# - /api/items       : item directory + audit log
# - /api/borrowings  : pending -> approved -> returned lifecycle
# - /api/users, /api/permissions, /api/lookup : administration
# - /api/upload      : item photos, served back under /uploads
# ---------------------------------------------------------

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Dict, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from inventory import (
    routes_auth,
    routes_borrowings,
    routes_items,
    routes_lookup,
    routes_permissions,
    routes_upload,
    routes_users,
)
from inventory.config import Settings, load_settings
from inventory.db import DB_ERRORS, Database
from inventory.errors import InventoryError, Unauthorized
from inventory.migrate import run_migrations
from inventory.storage import LocalFileStorage, ObjectStorage

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    """DEBUG in dev, INFO elsewhere. Leaves handlers alone if already configured."""
    level = logging.DEBUG if settings.is_dev else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logging.getLogger("inventory").setLevel(level)


# ---------------------------------------------------------
# Error rendering
# ---------------------------------------------------------
def inventory_error_handler(request: Request, exc: InventoryError) -> JSONResponse:
    # 401s keep the {"message": ...} shape browser clients already expect
    key = "message" if isinstance(exc, Unauthorized) else "error"
    return JSONResponse(status_code=exc.status_code, content={key: exc.message})


def database_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("[DB] Unhandled database error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"error": "Database error"})


# ---------------------------------------------------------
# App factory
# ---------------------------------------------------------
def create_app(settings: Optional[Settings] = None, storage: Optional[ObjectStorage] = None) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Configuration; read from the environment when omitted
        storage: Upload backend; LocalFileStorage(settings) when omitted
    """
    settings = settings or load_settings()
    configure_logging(settings)

    db = Database(settings)
    run_migrations(db, settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        db.dispose()

    app = FastAPI(title="Inventory Backend", version="0.1", lifespan=lifespan)
    app.state.settings = settings
    app.state.db = db
    app.state.storage = storage or LocalFileStorage(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,  # the session cookie must cross origins
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(InventoryError, inventory_error_handler)
    for error_class in DB_ERRORS:
        app.add_exception_handler(error_class, database_error_handler)

    app.include_router(routes_auth.router)
    app.include_router(routes_users.router)
    app.include_router(routes_items.router)
    app.include_router(routes_lookup.router)
    app.include_router(routes_upload.router)
    app.include_router(routes_permissions.router)
    app.include_router(routes_borrowings.router)

    @app.get("/health")
    def health() -> Dict[str, str]:
        return {"status": "ok"}

    upload_dir = Path(settings.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    app.mount("/uploads", StaticFiles(directory=str(upload_dir)), name="uploads")

    logger.info("[APP] Started in %s mode", settings.env)
    return app


def main() -> None:
    port = int(os.getenv("PORT", "8080"))
    uvicorn.run("inventory.main:create_app", factory=True, host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
