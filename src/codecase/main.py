"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from redis.exceptions import RedisError

from codecase.admin.router import router as admin_router
from codecase.config import get_settings
from codecase.database import close_db, init_db
from codecase.health.router import router as health_router
from codecase.middleware import setup_middleware
from codecase.progress.router import router as progress_router
from codecase.redis_client import close_redis, get_redis, init_redis

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)
    try:
        await get_redis().ping()
    except RedisError:
        logger.warning("Redis unreachable at startup; events and rate limiting degrade", exc_info=True)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="CodeCase Progression API",
        description="Points, hints, daily streaks, referrals and achievements for CodeCase detectives",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(progress_router)
    app.include_router(admin_router)

    return app


app = create_app()
