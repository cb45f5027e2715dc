"""
Authentication Module

Admin authentication with JWT and password hashing.
"""

from .dependencies import get_current_admin, require_organization_scope
from .security import (
    AdminClaims,
    create_access_token,
    create_admin_token,
    get_password_hash,
    verify_access_token,
    verify_password,
)

__all__ = [
    "AdminClaims",
    "create_access_token",
    "create_admin_token",
    "get_password_hash",
    "verify_access_token",
    "verify_password",
    "get_current_admin",
    "require_organization_scope",
]
