"""
Organization Data Models

Defines the organization (tenant) record stored in the platform database and
the cache-safe projection served to clients.
"""

from datetime import datetime, timezone
from uuid import uuid4

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    """Current UTC time truncated to the millisecond precision MongoDB stores."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def generate_tenant_id() -> str:
    return f"tenant_{uuid4().hex}"


def generate_admin_id() -> str:
    return uuid4().hex


class TenantAdmin(BaseModel):
    """The single admin account of an organization."""

    admin_id: str = Field(default_factory=generate_admin_id, description="Opaque admin identifier")
    email: str = Field(..., description="Case-folded admin email, globally unique")
    password_hash: str = Field(..., description="One-way credential hash")


class AdminProjection(BaseModel):
    """Admin fields safe to cache and return."""

    admin_id: str
    email: str


class TenantProjection(BaseModel):
    """
    Cache-safe subset of a tenant record.

    Excludes the credential hash and the concurrency version.
    """

    tenant_id: str
    organization_name: str
    partition_id: str
    admin: AdminProjection
    created_at: datetime
    updated_at: datetime


class Tenant(BaseModel):
    """
    Organization record.

    Stored in the platform database. Owns exactly one storage partition.
    """

    tenant_id: str = Field(default_factory=generate_tenant_id, description="Unique tenant identifier")
    organization_name: str = Field(..., description="Case-folded organization name")
    partition_id: str = Field(..., description="Storage partition backing this organization")
    admin: TenantAdmin

    # Metadata
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    version: int = Field(default=1, ge=1, description="Optimistic concurrency version")

    def to_projection(self) -> TenantProjection:
        """Build the cache-safe projection."""
        return TenantProjection(
            tenant_id=self.tenant_id,
            organization_name=self.organization_name,
            partition_id=self.partition_id,
            admin=AdminProjection(admin_id=self.admin.admin_id, email=self.admin.email),
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    class Config:
        """Pydantic configuration."""

        json_schema_extra = {
            "example": {
                "tenant_id": "tenant_5f2c0d6f4e6a4c0c9e8e0c1a2b3c4d5e",
                "organization_name": "acme",
                "partition_id": "org_acme",
                "admin": {
                    "admin_id": "0f8fad5bd9cb469fa16570867728950e",
                    "email": "admin@acme.com",
                },
                "version": 1,
            }
        }
