from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from coachbook.api.v1.router import api_router
from coachbook.core.errors import register_error_handlers
from coachbook.core.settings import get_settings
from coachbook.db.session import dispose_engine, get_db

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("CoachBook API starting")
    yield
    await dispose_engine()


def create_app() -> FastAPI:
    settings = get_settings()

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="CoachBook API", lifespan=lifespan)

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    register_error_handlers(app)

    @app.get("/health")
    async def health():
        return {"ok": True}

    @app.get("/health/db")
    async def health_db(db: AsyncSession = Depends(get_db)):
        await db.execute(text("SELECT 1"))
        return {"ok": True}

    app.include_router(api_router, prefix="/api/v1")

    return app


app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run("coachbook.main:app", host="0.0.0.0", port=settings.port, log_level=settings.log_level.lower())
