"""
Organization Management Module

Handles organization provisioning, partition lifecycle and admin login.
"""

from .lifecycle import TenantLifecycleManager
from .models import Tenant, TenantAdmin, TenantProjection
from .partitions import MongoPartitionProvisioner, PartitionProvisioner, generate_partition_id
from .schema import (
    AdminLoginRequest,
    AdminLoginResponse,
    TenantCreateRequest,
    TenantDeleteRequest,
    TenantUpdateRequest,
)

__all__ = [
    "Tenant",
    "TenantAdmin",
    "TenantProjection",
    "TenantLifecycleManager",
    "PartitionProvisioner",
    "MongoPartitionProvisioner",
    "generate_partition_id",
    "TenantCreateRequest",
    "TenantUpdateRequest",
    "TenantDeleteRequest",
    "AdminLoginRequest",
    "AdminLoginResponse",
]
