"""
Organization Management API Router

REST API endpoints for organization CRUD operations.
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, status
from structlog import get_logger

from ..api_gateway.rate_limit import rate_limit
from ..api_gateway.responses import success_response
from ..auth.dependencies import get_current_admin, require_organization_scope
from ..auth.security import AdminClaims
from ..errors import OrganizationNameRequiredError
from ..shared_services.dependencies import get_lifecycle_manager
from .lifecycle import TenantLifecycleManager
from .schema import TenantCreateRequest, TenantDeleteRequest, TenantUpdateRequest

logger = get_logger()

router = APIRouter(prefix="/org", tags=["Organization Management"])


@router.post(
    "/create",
    status_code=status.HTTP_201_CREATED,
    summary="Create organization",
    description="Provision a new organization with its admin account and storage partition",
    dependencies=[Depends(rate_limit("create"))],
)
async def create_organization(
    request: TenantCreateRequest,
    lifecycle_manager: TenantLifecycleManager = Depends(get_lifecycle_manager),
) -> dict:
    """
    Create and provision a new organization.

    This endpoint:
    1. Checks name and email availability
    2. Creates the organization record
    3. Provisions the storage partition
    4. Caches the organization projection
    """
    logger.info("creating_organization", organization_name=request.organization_name)

    organization = await lifecycle_manager.create(
        request.organization_name, request.email, request.password
    )
    return success_response("Organization created successfully", organization)


@router.get(
    "/get",
    summary="Get organization",
    description="Retrieve organization metadata by name",
    dependencies=[Depends(rate_limit("read"))],
)
async def get_organization(
    organization_name: Optional[str] = Query(default=None),
    lifecycle_manager: TenantLifecycleManager = Depends(get_lifecycle_manager),
) -> dict:
    """Get organization details by name."""
    if not organization_name or not organization_name.strip():
        raise OrganizationNameRequiredError()

    organization = await lifecycle_manager.read(organization_name)
    return success_response("Organization retrieved successfully", organization)


@router.put(
    "/update",
    summary="Update organization",
    description="Rename the organization or change its admin email or password",
    dependencies=[Depends(rate_limit("general"))],
)
async def update_organization(
    request: TenantUpdateRequest,
    admin: AdminClaims = Depends(get_current_admin),
    lifecycle_manager: TenantLifecycleManager = Depends(get_lifecycle_manager),
) -> dict:
    """Update organization; requires the organization's own admin."""
    require_organization_scope(admin, request.organization_name, "update")

    organization = await lifecycle_manager.update(
        request.organization_name,
        new_organization_name=request.new_organization_name,
        email=request.email,
        password=request.password,
    )
    return success_response("Organization updated successfully", organization)


@router.delete(
    "/delete",
    summary="Delete organization",
    description="Delete the organization and drop its storage partition",
    dependencies=[Depends(rate_limit("general"))],
)
async def delete_organization(
    request: TenantDeleteRequest = Body(...),
    admin: AdminClaims = Depends(get_current_admin),
    lifecycle_manager: TenantLifecycleManager = Depends(get_lifecycle_manager),
) -> dict:
    """Delete organization; requires the organization's own admin."""
    require_organization_scope(admin, request.organization_name, "delete")

    result = await lifecycle_manager.delete(request.organization_name)
    return success_response("Organization deleted successfully", result)
