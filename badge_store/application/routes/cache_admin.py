"""
Cache Administration and Health Routes

    GET    /cache/stats     cache hit/miss counters and background queue metrics
    GET    /cache/status    storage status + per-backend connection status
    DELETE /cache           exactly one of all=true | group=... | pattern=...
    GET    /health          overall health (200 unless storage is unavailable)

All destructive calls are idempotent: clearing nothing returns a count of 0.

Author: System Architect
Date: 2026-01-12
"""

from datetime import datetime, timezone
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from badge_store.application.container import ServiceContainer
from badge_store.core.config.constants import Stage
from badge_store.core.logging.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/cache", tags=["Cache"])
health_router = APIRouter(tags=["Health"])


def get_container(request: Request) -> ServiceContainer:
    """Container created by the application lifespan."""
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise HTTPException(status_code=503, detail="Service is starting up")
    return container


ContainerDep = Annotated[ServiceContainer, Depends(get_container)]


class CacheClearResponse(BaseModel):
    status: str
    action: str
    deleted_count: int
    message: str


@router.get("/stats")
async def cache_stats(container: ContainerDep) -> dict[str, Any]:
    return {
        "status": "success",
        "data": {
            "backend": container.cache.name,
            **container.cache.get_stats().to_dict(),
            "background_queue": container.queue.metrics(),
        },
    }


@router.get("/status")
async def storage_status(container: ContainerDep) -> dict[str, Any]:
    return {
        "status": "success",
        "data": {
            "storage": container.storage.get_storage_status(),
            "connections": container.connection_status(),
        },
    }


@router.delete("", response_model=CacheClearResponse)
async def clear_cache(
    container: ContainerDep,
    all: Annotated[bool, Query(description="Drop every cache entry")] = False,
    group: Annotated[str | None, Query(description="Key group to clear, e.g. github")] = None,
    pattern: Annotated[str | None, Query(description="Substring or regex of keys to delete")] = None,
) -> CacheClearResponse:
    """
    Manual cache invalidation.

    Exactly one of ``all``, ``group`` or ``pattern`` must be given.
    """
    chosen = [name for name, given in (("all", all), ("group", group), ("pattern", pattern)) if given]
    if len(chosen) != 1:
        raise HTTPException(
            status_code=400,
            detail="Specify exactly one of: all=true, group=<name>, pattern=<pattern>",
        )

    cache = container.cache
    if all:
        keys_before = cache.get_stats().key_count
        if not await cache.clear():
            logger.warning("Manual cache clear failed", stage=Stage.CACHE_CLEAR, backend=cache.name)
            return JSONResponse(
                status_code=503,
                content=CacheClearResponse(
                    status="error",
                    action="clear_all",
                    deleted_count=0,
                    message="Cache backend did not confirm the clear",
                ).model_dump(),
            )
        deleted, action, message = keys_before, "clear_all", "All cache entries cleared"
    elif group:
        deleted = await cache.clear_group(group)
        action, message = "clear_group", f"Cache group '{group}' cleared"
    else:
        deleted = await cache.delete_by_pattern(pattern)
        action, message = "delete_by_pattern", f"Cache entries matching '{pattern}' deleted"

    logger.info("Manual cache invalidation", stage=Stage.CACHE_CLEAR, action=action, deleted_count=deleted)
    return CacheClearResponse(status="success", action=action, deleted_count=deleted, message=message)


@health_router.get("/health")
async def health(container: ContainerDep) -> JSONResponse:
    report = await container.health()
    report["timestamp"] = datetime.now(timezone.utc).isoformat()
    status_code = 503 if report["status"] == "unhealthy" else 200
    return JSONResponse(status_code=status_code, content=report)
