"""
Organization Management API Schemas

Request and response models for organization and admin endpoints.
"""

from typing import Optional

from pydantic import BaseModel, EmailStr, Field

ORGANIZATION_NAME_PATTERN = r"^[a-zA-Z0-9_-]+$"


class TenantCreateRequest(BaseModel):
    """Request model for creating a new organization."""

    organization_name: str = Field(
        ...,
        min_length=2,
        max_length=50,
        pattern=ORGANIZATION_NAME_PATTERN,
        description="Letters, numbers, underscores and hyphens only",
    )
    email: EmailStr = Field(..., description="Admin email")
    password: str = Field(..., min_length=6, max_length=100, description="Admin password")

    class Config:
        json_schema_extra = {
            "example": {
                "organization_name": "acme",
                "email": "admin@acme.com",
                "password": "secret123",
            }
        }


class TenantUpdateRequest(BaseModel):
    """Request model for renaming or updating an organization."""

    organization_name: str = Field(..., min_length=2, description="Current organization name")
    new_organization_name: Optional[str] = Field(
        default=None,
        min_length=2,
        max_length=50,
        pattern=ORGANIZATION_NAME_PATTERN,
    )
    email: Optional[EmailStr] = Field(default=None)
    password: Optional[str] = Field(default=None, min_length=6, max_length=100)


class TenantDeleteRequest(BaseModel):
    """Request model for deleting an organization."""

    organization_name: str = Field(..., min_length=2)


class AdminLoginRequest(BaseModel):
    """Request model for admin login."""

    email: EmailStr
    password: str = Field(..., min_length=1)


class AdminIdentity(BaseModel):
    """Authenticated admin details."""

    admin_id: str
    email: str
    organization_name: str


class AdminLoginResponse(BaseModel):
    """Response model for a successful admin login."""

    token: str
    admin: AdminIdentity


class TenantDeletedResponse(BaseModel):
    """Response model for organization deletion."""

    organization_name: str
    deleted: bool
