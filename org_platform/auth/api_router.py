"""
Admin Authentication API Router

REST API endpoint for organization admin login.
"""

from fastapi import APIRouter, Depends, status
from structlog import get_logger

from ..api_gateway.rate_limit import rate_limit
from ..api_gateway.responses import success_response
from ..shared_services.dependencies import get_lifecycle_manager
from ..tenant_management.lifecycle import TenantLifecycleManager
from ..tenant_management.schema import AdminLoginRequest

logger = get_logger()

router = APIRouter(prefix="/admin", tags=["Authentication"])


@router.post(
    "/login",
    status_code=status.HTTP_200_OK,
    summary="Admin login",
    description="Authenticate an organization admin and return a bearer token",
    dependencies=[Depends(rate_limit("auth"))],
)
async def login(
    login_request: AdminLoginRequest,
    lifecycle_manager: TenantLifecycleManager = Depends(get_lifecycle_manager),
) -> dict:
    """Authenticate admin and return JWT token."""
    result = await lifecycle_manager.admin_login(login_request.email, login_request.password)
    return success_response("Login successful", result)
