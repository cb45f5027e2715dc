"""
Health Check Endpoints

Basic, detailed, liveness and readiness probes reporting the metadata store
and cache status.
"""

import time
from datetime import datetime, timezone
from typing import Union

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from structlog import get_logger

from ..cache.rate_limiter import RateLimiter
from ..cache.redis_cache import CacheLayer
from ..config import get_config
from ..errors import ErrorCode, UnavailableError
from ..shared_services.dependencies import get_cache_layer, get_rate_limiter, get_tenant_db_service
from ..tenant_management.db_service import TenantDBService
from .responses import error_response, success_response

config = get_config()
logger = get_logger()

router = APIRouter(prefix="/health", tags=["Platform"])

_started_at = time.monotonic()


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def format_uptime(seconds: float) -> str:
    """Format uptime as e.g. ``1d 2h 3m 4s``."""
    days, remainder = divmod(int(seconds), 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes, secs = divmod(remainder, 60)

    parts = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    parts.append(f"{secs}s")
    return " ".join(parts)


@router.get("", summary="Health check")
async def health_check() -> dict:
    """Basic health check endpoint."""
    return success_response("Server is running", {"status": "healthy", "timestamp": _timestamp()})


@router.get("/detailed", summary="Detailed health check")
async def detailed_health_check(
    tenant_db_service: TenantDBService = Depends(get_tenant_db_service),
    cache: CacheLayer = Depends(get_cache_layer),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
) -> JSONResponse:
    """Health check with metadata store and cache status."""
    mongo_connected = await tenant_db_service.ping()
    redis_stats = await cache.stats()

    organizations = None
    if mongo_connected:
        try:
            organizations = await tenant_db_service.count()
        except UnavailableError:
            mongo_connected = False

    uptime = time.monotonic() - _started_at

    # An unconfigured cache is not a degradation
    cache_ok = redis_stats["connected"] or not config.redis_url
    is_healthy = mongo_connected and cache_ok

    data = {
        "status": "healthy" if is_healthy else "degraded",
        "timestamp": _timestamp(),
        "environment": config.environment.value,
        "uptime": {"seconds": int(uptime), "formatted": format_uptime(uptime)},
        "services": {
            "mongodb": {
                "status": "connected" if mongo_connected else "disconnected",
                "connected": mongo_connected,
                "organizations": organizations,
            },
            "redis": redis_stats,
        },
        "rate_limiting": {"active": rate_limiter.is_active()},
    }

    if not is_healthy:
        logger.warning("health_check_degraded", mongodb=mongo_connected, redis=redis_stats["status"])

    return JSONResponse(
        status_code=status.HTTP_200_OK if is_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "success": is_healthy,
            "message": "All systems operational" if is_healthy else "Some services degraded",
            "data": data,
        },
    )


@router.get("/live", summary="Liveness probe")
async def liveness_probe() -> dict:
    """The process is up."""
    return success_response("alive", {"timestamp": _timestamp()})


@router.get("/ready", summary="Readiness probe", response_model=None)
async def readiness_probe(
    tenant_db_service: TenantDBService = Depends(get_tenant_db_service),
) -> Union[dict, JSONResponse]:
    """Ready when the metadata store answers; the cache is optional."""
    if await tenant_db_service.ping():
        return success_response("ready", {"timestamp": _timestamp()})

    return error_response(
        "not ready",
        ErrorCode.NOT_READY,
        {"mongodb": "disconnected"},
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
    )
