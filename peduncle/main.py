from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from .core import db
from .core.config import Settings, load_settings
from .core.errors import ServiceError, service_error_handler
from .users.router import router as users_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # One pool per process, shared by every request.
    app.state.pool = await db.init_pool(app.state.settings.pg)
    try:
        yield
    finally:
        await db.close_pool(app.state.pool)
        app.state.pool = None


def create_app(settings: Settings | None = None) -> FastAPI:
    app = FastAPI(title="peduncle", lifespan=lifespan)
    app.state.settings = settings or load_settings()
    app.state.pool = None

    app.add_exception_handler(ServiceError, service_error_handler)
    app.include_router(users_router, tags=["users"])
    return app


def run() -> None:
    settings = load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    host, port = settings.bind
    app = create_app(settings)

    logger.info("server running at http://%s/", settings.server_addr)
    uvicorn.run(app, host=host, port=port, log_level=settings.log_level.lower())

