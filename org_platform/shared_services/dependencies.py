"""
Shared Service Dependencies

FastAPI dependencies that hand out the process-wide components created in the
application lifespan. Tests replace them through ``app.dependency_overrides``.
"""

from fastapi import Request

from ..cache.rate_limiter import AdmissionClass, RateLimiter, build_admission_classes
from ..cache.redis_cache import CacheLayer
from ..tenant_management.db_service import TenantDBService
from ..tenant_management.lifecycle import TenantLifecycleManager


def get_cache_layer(request: Request) -> CacheLayer:
    """Dependency to get the shared cache layer."""
    return request.app.state.cache


def get_rate_limiter(request: Request) -> RateLimiter:
    """Dependency to get the shared rate limiter."""
    return request.app.state.rate_limiter


def get_admission_classes(request: Request) -> dict[str, AdmissionClass]:
    """Dependency to get the configured admission classes."""
    classes = getattr(request.app.state, "admission_classes", None)
    return classes or build_admission_classes()


def get_tenant_db_service(request: Request) -> TenantDBService:
    """Dependency to get the organization metadata service."""
    return request.app.state.tenant_db_service


def get_lifecycle_manager(request: Request) -> TenantLifecycleManager:
    """Dependency to get the organization lifecycle manager."""
    return request.app.state.lifecycle_manager
