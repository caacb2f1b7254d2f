#!/usr/bin/env python3
"""
FastAPI Application Entry Point

Configures the badge storage service: lifespan-owned ServiceContainer,
request-id and HTTP cache middleware, cache administration and health
routes.

Author: System Architect
Date: 2026-01-12
"""

from collections.abc import Sequence
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from badge_store.application.accessors.base import Fetcher
from badge_store.application.container import ServiceContainer
from badge_store.application.middleware.http_cache import (
    CacheInvalidationMiddleware,
    HttpCacheMiddleware,
    InvalidationRule,
)
from badge_store.application.middleware.request_id import RequestIdMiddleware
from badge_store.application.routes.cache_admin import health_router
from badge_store.application.routes.cache_admin import router as cache_router
from badge_store.core.config.constants import HEADER_REQUEST_ID, Stage
from badge_store.core.config.settings import Settings, get_settings
from badge_store.core.exceptions import BadgeStoreError, RecordValidationError, UpstreamFetchError, ValidationError
from badge_store.core.logging.logger import get_logger, get_request_id, setup_logging

logger = get_logger(__name__)


def create_app(
    settings: Settings | None = None,
    container: ServiceContainer | None = None,
    fetchers: dict[str, Fetcher] | None = None,
    invalidation_rules: Sequence[InvalidationRule] = (),
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Configuration (defaults to get_settings())
        container: Pre-built container; built from settings on startup if omitted
        fetchers: Upstream fetchers per platform for the accessors
        invalidation_rules: Cache invalidation after successful writes
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(log_level=settings.logging.LOG_LEVEL, log_format=settings.logging.LOG_FORMAT)
        logger.info(
            "Starting badge storage service",
            stage=Stage.INITIALIZATION,
            environment=settings.app.ENVIRONMENT,
            version=settings.app.APP_VERSION,
        )

        services = container or ServiceContainer(settings, fetchers=fetchers)
        await services.start()
        app.state.container = services
        try:
            yield
        finally:
            logger.info("Shutting down application", stage=Stage.SHUTDOWN)
            await services.close()
            app.state.container = None
            logger.info("Application shutdown complete", stage=Stage.SHUTDOWN)

    app = FastAPI(
        title=settings.app.APP_NAME,
        version=settings.app.APP_VERSION,
        description="Multi-tier cache and persistent storage for stats badges",
        lifespan=lifespan,
    )

    # Last added runs first: request id wraps everything, then the HTTP cache.
    if invalidation_rules:
        app.add_middleware(CacheInvalidationMiddleware, rules=invalidation_rules)
    app.add_middleware(HttpCacheMiddleware, settings=settings.http_cache)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(health_router)
    app.include_router(cache_router)

    @app.get("/", tags=["Root"])
    async def root():
        return {
            "name": settings.app.APP_NAME,
            "version": settings.app.APP_VERSION,
            "environment": settings.app.ENVIRONMENT,
            "health": "/health",
        }

    def tag_request(exc: BadgeStoreError) -> BadgeStoreError:
        if exc.request_id is None:
            exc.request_id = get_request_id()
        return exc

    async def validation_exception_handler(request: Request, exc: BadgeStoreError):
        return JSONResponse(status_code=400, content=tag_request(exc).to_dict())

    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(RecordValidationError, validation_exception_handler)

    @app.exception_handler(UpstreamFetchError)
    async def upstream_exception_handler(request: Request, exc: UpstreamFetchError):
        logger.warning("Upstream fetch failed", error=exc.message, details=exc.details)
        return JSONResponse(status_code=502, content=tag_request(exc).to_dict())

    @app.exception_handler(BadgeStoreError)
    async def badge_store_exception_handler(request: Request, exc: BadgeStoreError):
        tag_request(exc)
        logger.error(f"Storage exception: {exc.message}", error_type=type(exc).__name__)
        return JSONResponse(
            status_code=500,
            content=exc.to_dict(),
            headers={HEADER_REQUEST_ID: exc.request_id or ""},
        )

    return app


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        create_app(settings),
        host=settings.app.API_HOST,
        port=settings.app.API_PORT,
        log_level=settings.logging.LOG_LEVEL.lower(),
    )
