from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from inventario.auth import ensure_user
from inventario.db import Base, engine, get_session
from inventario.errors import InventoryError
from inventario.logging_config import configure_logging
from inventario.models import ROLE_MANAGER
from inventario.routers.auth import router as auth_router
from inventario.routers.health import router as health_router
from inventario.routers.inventory import router as inventory_router
from inventario.routers.products import router as products_router
from inventario.utils import get_session_secret

logger = logging.getLogger(__name__)


def _run_startup_tasks() -> None:
    """Crea las tablas y asegura la cuenta de gerente inicial."""
    Base.metadata.create_all(bind=engine)

    db = get_session()
    try:
        ensure_user(
            db,
            username=os.getenv("MANAGER_USERNAME", "manager"),
            password=os.getenv("MANAGER_PASSWORD", "manager"),
            role=ROLE_MANAGER,
        )
    finally:
        db.close()
    logger.info("startup tasks done")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifecycle manager para FastAPI."""
    configure_logging()
    _run_startup_tasks()
    yield


def create_app(run_startup: bool = True) -> FastAPI:
    app = FastAPI(title="Inventario", lifespan=lifespan if run_startup else None)

    @app.exception_handler(InventoryError)
    async def inventory_error_handler(request: Request, exc: InventoryError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.code, "detail": exc.message},
        )

    app.add_middleware(
        SessionMiddleware,
        secret_key=get_session_secret(),
        session_cookie="inventario_session",
        max_age=60 * 60 * 24 * 7,
        same_site="lax",
        https_only=os.getenv("SESSION_HTTPS_ONLY", "0") == "1",
    )

    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(products_router)
    app.include_router(inventory_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "inventario.main:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("RELOAD", "1") == "1",
    )
