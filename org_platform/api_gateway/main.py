"""
Main FastAPI Application

Organization Platform API with:
- Organization lifecycle endpoints
- Admin authentication
- Redis-backed caching and rate limiting (optional)
- Health checks
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from structlog import get_logger

from ..auth.api_router import router as auth_router
from ..cache.rate_limiter import RateLimiter, build_admission_classes
from ..cache.redis_cache import CacheLayer
from ..config import get_config
from ..errors import ErrorCode, PlatformError, RateLimitedError, UnavailableError
from ..logging_config import configure_logging
from ..tenant_management.api_router import router as tenant_router
from ..tenant_management.db_service import TenantDBService, create_mongo_client
from ..tenant_management.lifecycle import TenantLifecycleManager
from ..tenant_management.partitions import MongoPartitionProvisioner
from .health import router as health_router
from .responses import error_response

config = get_config()
logger = get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Owns the MongoDB client and the cache layer for the process.
    """
    # Startup
    logger.info("starting_org_platform", environment=config.environment.value)

    mongo_client = create_mongo_client()
    platform_db = mongo_client[config.platform_mongo_db_name]
    partition_db = mongo_client[config.get_partition_db_name()]

    tenant_db_service = TenantDBService(platform_db)
    try:
        await tenant_db_service.ensure_indexes()
    except UnavailableError:
        # Readiness probe reports the store until it comes up
        logger.error("platform_indexes_not_ensured")

    cache = CacheLayer(config.redis_url, config.redis_connect_timeout_seconds)
    await cache.connect()

    app.state.mongo_client = mongo_client
    app.state.tenant_db_service = tenant_db_service
    app.state.cache = cache
    app.state.rate_limiter = RateLimiter(cache)
    app.state.admission_classes = build_admission_classes(config)
    app.state.lifecycle_manager = TenantLifecycleManager(
        tenant_db_service,
        MongoPartitionProvisioner(partition_db),
        cache,
        cache_ttl_seconds=config.cache_ttl_seconds,
    )

    logger.info("platform_initialized", cache_state=cache.state.value)

    yield

    # Shutdown
    logger.info("shutting_down_platform")
    await cache.close()
    mongo_client.close()
    logger.info("platform_shutdown_complete")


async def platform_error_handler(request: Request, exc: PlatformError):
    """Typed platform errors map onto their stable code."""
    headers = None
    if isinstance(exc, RateLimitedError):
        headers = {"Retry-After": str(exc.retry_after)}

    if exc.status_code >= 500:
        logger.error("platform_error", path=request.url.path, code=exc.code.value, error=exc.message)

    return error_response(exc.message, exc.code, exc.details, exc.status_code, headers=headers)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Request validation failures, one message per field."""
    details = {}
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"] if part not in ("body", "query", "header"))
        details[field or "body"] = error["msg"]

    return error_response(
        "Validation failed",
        ErrorCode.VALIDATION_ERROR,
        details,
        status.HTTP_400_BAD_REQUEST,
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    """Routing errors (unknown path, wrong method) in the standard envelope."""
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        return error_response(
            "Resource not found",
            ErrorCode.NOT_FOUND,
            {"path": request.url.path},
            status.HTTP_404_NOT_FOUND,
        )
    return error_response(str(exc.detail), ErrorCode.SERVER_ERROR, {}, exc.status_code)


async def server_error_handler(request: Request, exc: Exception):
    """Custom 500 handler."""
    logger.error("internal_server_error", path=request.url.path, error=str(exc))
    return error_response(
        "Internal server error",
        ErrorCode.SERVER_ERROR,
        {},
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def create_app() -> FastAPI:
    """
    Build the FastAPI application.

    Returns:
        Configured application
    """
    configure_logging(config.log_level, config.log_json)

    app = FastAPI(
        title="Organization Platform",
        description="Multi-tenant organization management with per-organization storage partitions",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if not config.is_production else None,
        redoc_url="/redoc" if not config.is_production else None,
        openapi_url="/openapi.json" if not config.is_production else None,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.get_allowed_origins_list(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    app.add_exception_handler(PlatformError, platform_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, server_error_handler)

    # Include routers
    app.include_router(health_router)
    app.include_router(tenant_router)
    app.include_router(auth_router)

    @app.get("/", tags=["Platform"], summary="Root endpoint")
    async def root():
        """Root endpoint with API information."""
        return {
            "name": "Organization Platform",
            "version": "0.1.0",
            "environment": config.environment.value,
            "docs_url": "/docs" if not config.is_production else None,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "org_platform.api_gateway.main:app",
        host="0.0.0.0",
        port=8000,
        reload=config.is_local,
        log_level=config.log_level.lower(),
    )
