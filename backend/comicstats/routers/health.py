# backend/comicstats/routers/health.py
"""
Health check endpoints for Redis and the view ingestion queue.
"""

from fastapi import APIRouter, Depends, HTTPException
from typing import Dict, Any
import logging

from comicstats.deps import get_context
from comicstats.services.context import StatsContext

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/health",
    tags=["Health Checks"],
)


def _queue_status(ctx: StatsContext) -> Dict[str, Any]:
    return {
        "status": "healthy" if ctx.queue.running else "unhealthy",
        "pending": ctx.queue.pending,
        "dead_letters": len(ctx.queue.dead_letters),
    }


@router.get("/redis")
def health_redis(ctx: StatsContext = Depends(get_context)) -> Dict[str, Any]:
    """
    Health check for the Redis connection.
    """
    if not ctx.store.ping():
        logger.error(f"Redis health check failed: {ctx.store.last_error}")
        raise HTTPException(status_code=503, detail="Redis ping failed")
    return {"status": "healthy", "service": "redis", "state": ctx.store.state.value}


@router.get("/")
def health_overall(ctx: StatsContext = Depends(get_context)) -> Dict[str, Any]:
    """
    Overall health check for all services.
    """
    services: Dict[str, Any] = {}

    redis_healthy = ctx.store.ping()
    services["redis"] = {"status": "healthy" if redis_healthy else "unhealthy", "state": ctx.store.state.value}
    if not redis_healthy and ctx.store.last_error is not None:
        services["redis"]["last_error"] = ctx.store.last_error.kind

    services["view_queue"] = _queue_status(ctx)

    overall_healthy = all(s["status"] == "healthy" for s in services.values())
    payload = {
        "status": "healthy" if overall_healthy else "unhealthy",
        "services": services,
        "overall_healthy": overall_healthy,
    }
    if not overall_healthy:
        raise HTTPException(status_code=503, detail=payload)
    return payload
