"""
Organization Lifecycle Management

Coordinates the metadata store, the partition provisioner and the cache
across create, read, update (rename), delete and admin login:
1. The metadata store is the source of truth for existence
2. Partitions are provisioned, migrated and dropped around it
3. The cache only ever holds disposable projections

Multi-step operations run as sagas; no lock is held across their steps.
"""

from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError
from structlog import get_logger

from ..auth.security import create_admin_token, dummy_verify, get_password_hash, verify_password
from ..cache.redis_cache import CacheLayer, org_cache_key
from ..config import get_config
from ..errors import (
    AlreadyExistsError,
    ConcurrentModificationError,
    InvalidCredentialsError,
    NotFoundError,
)
from .db_service import TenantDBService
from .models import Tenant, TenantAdmin, TenantProjection
from .partitions import PartitionProvisioner, generate_partition_id
from .saga import Saga
from .schema import AdminIdentity, AdminLoginResponse, TenantDeletedResponse

logger = get_logger()


def _normalize(value: str) -> str:
    return value.strip().lower()


class TenantLifecycleManager:
    """Orchestrates organization lifecycle operations."""

    def __init__(
        self,
        tenant_db_service: TenantDBService,
        partitions: PartitionProvisioner,
        cache: CacheLayer,
        cache_ttl_seconds: Optional[int] = None,
    ):
        """
        Initialize lifecycle manager.

        Args:
            tenant_db_service: Metadata store
            partitions: Partition provisioner
            cache: Shared cache layer
            cache_ttl_seconds: Projection TTL (defaults to config value)
        """
        self.tenant_db_service = tenant_db_service
        self.partitions = partitions
        self.cache = cache
        self.cache_ttl_seconds = cache_ttl_seconds or get_config().cache_ttl_seconds

    async def _cache_projection(self, projection: TenantProjection) -> bool:
        return await self.cache.set(
            org_cache_key(projection.organization_name),
            projection.model_dump(mode="json"),
            self.cache_ttl_seconds,
        )

    async def _invalidate_cache(self, organization_name: str) -> bool:
        return await self.cache.delete(org_cache_key(organization_name))

    async def _load(self, organization_name: str) -> Tenant:
        tenant = await self.tenant_db_service.get_by_name(organization_name)
        if tenant is None:
            raise NotFoundError()
        return tenant

    async def create(self, organization_name: str, email: str, password: str) -> TenantProjection:
        """
        Provision a new organization with its admin and partition.

        Args:
            organization_name: Requested organization name
            email: Admin email
            password: Admin password (plain text)

        Returns:
            Projection of the created organization

        Raises:
            AlreadyExistsError: If the name or the admin email is taken
        """
        name = _normalize(organization_name)
        email = _normalize(email)

        logger.info("starting_tenant_provisioning", organization_name=name)

        # One disjunctive lookup so that name and email are checked together
        existing = await self.tenant_db_service.find_by_name_or_email(name, email)
        if existing is not None:
            if existing.organization_name == name:
                raise AlreadyExistsError("Organization with this name already exists")
            raise AlreadyExistsError("Email is already registered")

        partition_id = generate_partition_id(name)
        tenant = Tenant(
            organization_name=name,
            partition_id=partition_id,
            admin=TenantAdmin(email=email, password_hash=get_password_hash(password)),
        )
        projection = tenant.to_projection()

        saga = Saga(
            "create_tenant",
            {"organization_name": name, "tenant_id": tenant.tenant_id, "partition_id": partition_id},
        )
        saga.add_step(
            "insert_metadata",
            lambda: self.tenant_db_service.insert(tenant),
            compensation=lambda: self.tenant_db_service.delete(tenant.tenant_id),
        )
        saga.add_step(
            "provision_partition",
            lambda: self.partitions.create(partition_id),
            compensation=lambda: self.partitions.drop(partition_id),
        )
        saga.add_step("cache_projection", lambda: self._cache_projection(projection))
        await saga.execute()

        logger.info("tenant_provisioning_completed", organization_name=name, partition_id=partition_id)
        return projection

    async def read(self, organization_name: str) -> TenantProjection:
        """
        Get an organization projection, served from cache when possible.

        Raises:
            NotFoundError: If the organization does not exist
        """
        name = _normalize(organization_name)

        cached = await self.cache.get(org_cache_key(name))
        if cached.is_hit:
            try:
                return TenantProjection.model_validate(cached.value)
            except PydanticValidationError:
                logger.warning("cache_entry_invalid", organization_name=name)

        tenant = await self._load(name)
        projection = tenant.to_projection()
        await self._cache_projection(projection)
        return projection

    async def update(
        self,
        organization_name: str,
        new_organization_name: Optional[str] = None,
        email: Optional[str] = None,
        password: Optional[str] = None,
    ) -> TenantProjection:
        """
        Rename an organization and/or change its admin email or password.

        Order: invalidate cache, migrate partition, commit metadata,
        populate cache. A crash mid-way leaves a cache miss, never a cached
        reference to a dropped partition.

        Raises:
            NotFoundError: If the organization does not exist
            AlreadyExistsError: If the new name or email is taken
            ConcurrentModificationError: If the record changed since it was loaded
        """
        current = await self._load(_normalize(organization_name))

        updates: dict[str, Any] = {}
        renamed = False
        new_partition_id = current.partition_id

        if new_organization_name and _normalize(new_organization_name) != current.organization_name:
            new_name = _normalize(new_organization_name)
            conflict = await self.tenant_db_service.find_conflict(
                organization_name=new_name, exclude_tenant_id=current.tenant_id
            )
            if conflict is not None:
                raise AlreadyExistsError("Organization with this name already exists")

            new_partition_id = generate_partition_id(new_name)
            updates["organization_name"] = new_name
            updates["partition_id"] = new_partition_id
            renamed = True

        if email and _normalize(email) != current.admin.email:
            new_email = _normalize(email)
            conflict = await self.tenant_db_service.find_conflict(
                email=new_email, exclude_tenant_id=current.tenant_id
            )
            if conflict is not None:
                raise AlreadyExistsError("Email is already registered")
            updates["admin.email"] = new_email

        if password:
            updates["admin.password_hash"] = get_password_hash(password)

        if not updates:
            return await self.read(current.organization_name)

        committed: dict[str, Tenant] = {}

        async def commit_metadata() -> Tenant:
            updated = await self.tenant_db_service.update(current.tenant_id, current.version, updates)
            if updated is None:
                raise ConcurrentModificationError()
            committed["tenant"] = updated
            return updated

        saga = Saga(
            "update_tenant",
            {
                "organization_name": current.organization_name,
                "tenant_id": current.tenant_id,
                "fields": sorted(updates),
            },
        )
        saga.add_step("invalidate_cache", lambda: self._invalidate_cache(current.organization_name))
        if renamed:
            saga.add_step(
                "migrate_partition",
                lambda: self.partitions.migrate(current.partition_id, new_partition_id),
                compensation=lambda: self.partitions.migrate(new_partition_id, current.partition_id),
            )
        saga.add_step("commit_metadata", commit_metadata)
        saga.add_step(
            "cache_projection",
            lambda: self._cache_projection(committed["tenant"].to_projection()),
        )
        if renamed:
            # A concurrent read may have re-cached the old name mid-saga
            saga.add_step("invalidate_previous_cache", lambda: self._invalidate_cache(current.organization_name))
        await saga.execute()

        updated = committed["tenant"]
        logger.info(
            "tenant_updated",
            tenant_id=updated.tenant_id,
            organization_name=updated.organization_name,
            fields=sorted(updates),
        )
        return updated.to_projection()

    async def delete(self, organization_name: str) -> TenantDeletedResponse:
        """
        Deprovision an organization and its partition.

        Order: invalidate cache, drop partition, delete metadata.

        Raises:
            NotFoundError: If the organization does not exist
        """
        tenant = await self._load(_normalize(organization_name))

        logger.info("starting_tenant_deprovisioning", organization_name=tenant.organization_name)

        saga = Saga(
            "delete_tenant",
            {
                "organization_name": tenant.organization_name,
                "tenant_id": tenant.tenant_id,
                "partition_id": tenant.partition_id,
            },
        )
        saga.add_step("invalidate_cache", lambda: self._invalidate_cache(tenant.organization_name))
        saga.add_step("drop_partition", lambda: self.partitions.drop(tenant.partition_id))
        saga.add_step("delete_metadata", lambda: self.tenant_db_service.delete(tenant.tenant_id))
        await saga.execute()

        logger.info("tenant_deprovisioned", organization_name=tenant.organization_name)
        return TenantDeletedResponse(organization_name=tenant.organization_name, deleted=True)

    async def admin_login(self, email: str, password: str) -> AdminLoginResponse:
        """
        Authenticate an organization admin.

        Raises:
            InvalidCredentialsError: If the email is unknown or the password is wrong
        """
        tenant = await self.tenant_db_service.get_by_email(_normalize(email))

        if tenant is None:
            dummy_verify()
            logger.warning("admin_login_failed")
            raise InvalidCredentialsError()

        if not verify_password(password, tenant.admin.password_hash):
            logger.warning("admin_login_failed")
            raise InvalidCredentialsError()

        token = create_admin_token(tenant.admin.admin_id, tenant.organization_name)
        logger.info("admin_login_succeeded", admin_id=tenant.admin.admin_id)

        return AdminLoginResponse(
            token=token,
            admin=AdminIdentity(
                admin_id=tenant.admin.admin_id,
                email=tenant.admin.email,
                organization_name=tenant.organization_name,
            ),
        )
