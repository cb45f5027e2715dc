"""
Organization Partition Provisioning

Each organization owns one dynamically provisioned storage partition. The
lifecycle manager only sees the PartitionProvisioner capability; the MongoDB
adapter stores every partition as a collection of the partition database.
"""

import re
from typing import Protocol, runtime_checkable

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import CollectionInvalid
from structlog import get_logger

from ..config import get_config
from ..errors import PartitionAlreadyExistsError

logger = get_logger()

_UNSAFE_PARTITION_CHARS = re.compile(r"[^a-z0-9_-]")


def generate_partition_id(organization_name: str, prefix: str = "") -> str:
    """
    Derive the partition identifier for an organization.

    Args:
        organization_name: Organization name (any case)
        prefix: Partition prefix, defaults to the configured one

    Returns:
        Partition id in the form ``org_<sanitized name>``
    """
    prefix = prefix or get_config().partition_prefix
    return f"{prefix}{_UNSAFE_PARTITION_CHARS.sub('_', organization_name.lower())}"


@runtime_checkable
class PartitionProvisioner(Protocol):
    """Capability interface for per-organization storage partitions."""

    async def exists(self, partition_id: str) -> bool:
        ...

    async def create(self, partition_id: str) -> None:
        ...

    async def drop(self, partition_id: str) -> bool:
        ...

    async def migrate(self, old_partition_id: str, new_partition_id: str) -> int:
        ...


class MongoPartitionProvisioner:
    """
    Partition provisioner backed by MongoDB collections.

    None of the operations are transactional. Concurrent creates of the same
    partition are serialized upstream by the metadata store's unique index.
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        """
        Initialize provisioner.

        Args:
            db: Database holding the partitions
        """
        self.db = db

    async def exists(self, partition_id: str) -> bool:
        names = await self.db.list_collection_names(filter={"name": partition_id})
        return len(names) > 0

    async def create(self, partition_id: str) -> None:
        """
        Create a new partition.

        Raises:
            PartitionAlreadyExistsError: If the partition is already present
        """
        if await self.exists(partition_id):
            raise PartitionAlreadyExistsError(f"Partition {partition_id} already exists")

        try:
            await self.db.create_collection(partition_id)
        except CollectionInvalid:
            raise PartitionAlreadyExistsError(f"Partition {partition_id} already exists")

        logger.info("partition_created", partition_id=partition_id)

    async def drop(self, partition_id: str) -> bool:
        """
        Drop a partition. Dropping an absent partition is a no-op.

        Returns:
            True if a partition was dropped, False if it did not exist
        """
        if not await self.exists(partition_id):
            logger.info("partition_drop_skipped", partition_id=partition_id, reason="not_found")
            return False

        await self.db.drop_collection(partition_id)
        logger.warning("partition_dropped", partition_id=partition_id)
        return True

    async def migrate(self, old_partition_id: str, new_partition_id: str) -> int:
        """
        Move every record from one partition to another.

        Reads all records from the old partition, creates the new one,
        bulk-copies and drops the old partition.

        Args:
            old_partition_id: Source partition
            new_partition_id: Destination partition (must not exist)

        Returns:
            Number of records moved
        """
        logger.info(
            "starting_partition_migration",
            source=old_partition_id,
            destination=new_partition_id,
        )

        cursor = self.db[old_partition_id].find({})
        documents = await cursor.to_list(length=None)

        await self.create(new_partition_id)

        if documents:
            await self.db[new_partition_id].insert_many(documents)

        await self.drop(old_partition_id)

        logger.info(
            "partition_migration_completed",
            source=old_partition_id,
            destination=new_partition_id,
            count=len(documents),
        )
        return len(documents)
