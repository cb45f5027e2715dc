"""
Authentication Dependencies

FastAPI dependencies for the authenticated organization admin.
"""

from typing import Optional

from fastapi import Header
from structlog import get_logger

from ..errors import TokenInvalidError, TokenMissingError, UnauthorizedError
from .security import AdminClaims, verify_access_token

logger = get_logger()


async def get_current_admin(
    authorization: Optional[str] = Header(default=None),
) -> AdminClaims:
    """
    Get the authenticated admin from the bearer token.

    Args:
        authorization: Authorization header

    Returns:
        Verified admin claims

    Raises:
        TokenMissingError: If the header is absent
        TokenInvalidError: If the header is not a bearer token or fails verification
        TokenExpiredError: If the token has expired
    """
    if not authorization:
        raise TokenMissingError()

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise TokenInvalidError("Invalid authorization format. Use: Bearer <token>")

    return verify_access_token(token.strip())


def require_organization_scope(admin: AdminClaims, organization_name: str, action: str) -> None:
    """
    Ensure the admin acts on its own organization.

    Raises:
        UnauthorizedError: If the target organization belongs to someone else
    """
    if admin.organization_name != organization_name.strip().lower():
        logger.warning(
            "organization_scope_violation",
            admin_id=admin.admin_id,
            admin_organization=admin.organization_name,
            target_organization=organization_name,
            action=action,
        )
        raise UnauthorizedError(f"You are not authorized to {action} this organization")
