"""
Organization Database Service

Handles metadata operations for organizations in the platform database.
This is the authoritative record of which organizations exist.
"""

from contextlib import contextmanager
from typing import Any, Iterator, Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, IndexModel, ReturnDocument
from pymongo.errors import ConnectionFailure, DuplicateKeyError, PyMongoError
from structlog import get_logger

from ..config import get_config
from ..errors import AlreadyExistsError, UnavailableError
from .models import Tenant, utc_now

config = get_config()
logger = get_logger()


def create_mongo_client() -> AsyncIOMotorClient:
    """Create the platform MongoDB client from configuration."""
    return AsyncIOMotorClient(
        config.platform_mongo_db_url,
        tz_aware=True,
        serverSelectionTimeoutMS=config.mongo_server_selection_timeout_ms,
    )


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    """Translate driver connectivity failures into UnavailableError."""
    try:
        yield
    except ConnectionFailure as e:
        logger.error("metadata_store_unavailable", operation=operation, error=str(e))
        raise UnavailableError("Metadata store is unavailable") from e


def _duplicate_key_error(e: DuplicateKeyError) -> AlreadyExistsError:
    if "admin.email" in str(e):
        return AlreadyExistsError("Email is already registered")
    if "partition_id" in str(e):
        return AlreadyExistsError("Partition for this organization already exists")
    return AlreadyExistsError("Organization with this name already exists")


class TenantDBService:
    """
    Database service for organization metadata.

    Operates on the platform database, not on organization partitions.
    Uniqueness of name, partition and admin email is enforced by indexes.
    """

    def __init__(self, db: Optional[AsyncIOMotorDatabase] = None):
        """
        Initialize organization database service.

        Args:
            db: Optional database instance. If not provided, creates new connection.
        """
        if db is None:
            client = create_mongo_client()
            self.db = client[config.platform_mongo_db_name]
        else:
            self.db = db

        self.collection = self.db["organizations"]

    async def ensure_indexes(self) -> None:
        """Create the unique indexes backing the uniqueness invariants."""
        indexes = [
            IndexModel([("tenant_id", ASCENDING)], unique=True),
            IndexModel([("organization_name", ASCENDING)], unique=True),
            IndexModel([("partition_id", ASCENDING)], unique=True),
            IndexModel([("admin.email", ASCENDING)], unique=True),
            IndexModel([("created_at", ASCENDING)]),
        ]
        with _store_errors("ensure_indexes"):
            await self.collection.create_indexes(indexes)

    async def insert(self, tenant: Tenant) -> Tenant:
        """
        Insert a new organization record.

        Args:
            tenant: Organization to insert

        Returns:
            Inserted organization

        Raises:
            AlreadyExistsError: If name, partition or admin email is taken
        """
        tenant_dict = tenant.model_dump()

        with _store_errors("insert"):
            try:
                await self.collection.insert_one(tenant_dict)
            except DuplicateKeyError as e:
                raise _duplicate_key_error(e) from e

        return tenant

    async def _find_one(self, query: dict[str, Any], operation: str) -> Optional[Tenant]:
        with _store_errors(operation):
            tenant_dict = await self.collection.find_one(query)
        if tenant_dict:
            return Tenant(**tenant_dict)
        return None

    async def get_by_name(self, organization_name: str) -> Optional[Tenant]:
        """
        Get organization by name.

        Args:
            organization_name: Organization name (any case)

        Returns:
            Organization if found, None otherwise
        """
        return await self._find_one(
            {"organization_name": organization_name.strip().lower()}, "get_by_name"
        )

    async def get_by_email(self, email: str) -> Optional[Tenant]:
        """
        Get organization by admin email.

        Args:
            email: Admin email (any case)

        Returns:
            Organization if found, None otherwise
        """
        return await self._find_one({"admin.email": email.strip().lower()}, "get_by_email")

    async def find_by_name_or_email(self, organization_name: str, email: str) -> Optional[Tenant]:
        """
        Single disjunctive lookup on organization name or admin email.

        Returns:
            The first colliding organization, None if neither is taken
        """
        return await self.find_conflict(organization_name=organization_name, email=email)

    async def find_conflict(
        self,
        organization_name: Optional[str] = None,
        email: Optional[str] = None,
        exclude_tenant_id: Optional[str] = None,
    ) -> Optional[Tenant]:
        """
        Find another organization holding the given name or admin email.

        Args:
            organization_name: Name to check
            email: Admin email to check
            exclude_tenant_id: Organization to ignore (the one being updated)

        Returns:
            Colliding organization if any
        """
        clauses: list[dict[str, Any]] = []
        if organization_name:
            clauses.append({"organization_name": organization_name.strip().lower()})
        if email:
            clauses.append({"admin.email": email.strip().lower()})
        if not clauses:
            return None

        query: dict[str, Any] = {"$or": clauses}
        if exclude_tenant_id:
            query["tenant_id"] = {"$ne": exclude_tenant_id}

        return await self._find_one(query, "find_conflict")

    async def update(
        self,
        tenant_id: str,
        expected_version: int,
        update_data: dict[str, Any],
    ) -> Optional[Tenant]:
        """
        Partially update an organization if it is still at the expected version.

        Args:
            tenant_id: Organization identifier
            expected_version: Version loaded before the update
            update_data: Dictionary of fields to set (dotted paths allowed)

        Returns:
            Updated organization, None if missing or modified concurrently

        Raises:
            AlreadyExistsError: If the update collides with another organization
        """
        update_data = {**update_data, "updated_at": utc_now()}

        with _store_errors("update"):
            try:
                result = await self.collection.find_one_and_update(
                    {"tenant_id": tenant_id, "version": expected_version},
                    {"$set": update_data, "$inc": {"version": 1}},
                    return_document=ReturnDocument.AFTER,
                )
            except DuplicateKeyError as e:
                raise _duplicate_key_error(e) from e

        if result:
            return Tenant(**result)
        return None

    async def delete(self, tenant_id: str) -> bool:
        """
        Permanently delete an organization record.

        Args:
            tenant_id: Organization identifier

        Returns:
            True if deleted, False if not found
        """
        with _store_errors("delete"):
            result = await self.collection.delete_one({"tenant_id": tenant_id})
        return result.deleted_count > 0

    async def count(self) -> int:
        """Number of organizations."""
        with _store_errors("count"):
            return await self.collection.count_documents({})

    async def ping(self) -> bool:
        """
        Check connectivity to the metadata store.

        Returns:
            True if the server answered
        """
        try:
            await self.db.command("ping")
            return True
        except PyMongoError as e:
            logger.warning("metadata_store_ping_failed", error=str(e))
            return False
