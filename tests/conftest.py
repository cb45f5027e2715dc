"""Shared test fixtures with in-memory collaborators."""

import os

# Cheap hashing and a fixed secret before any platform module reads config
os.environ.setdefault("PASSWORD_HASH_TIME_COST", "1")
os.environ.setdefault("PASSWORD_HASH_MEMORY_COST", "1024")
os.environ.setdefault("PASSWORD_HASH_PARALLELISM", "1")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("LOG_JSON", "true")
os.environ.pop("REDIS_URL", None)

import fnmatch
import time
from typing import Any, Optional

import pytest
import pytest_asyncio

from org_platform.cache.rate_limiter import RateLimiter
from org_platform.cache.redis_cache import CacheLayer
from org_platform.errors import AlreadyExistsError, PartitionAlreadyExistsError, UnavailableError
from org_platform.tenant_management.lifecycle import TenantLifecycleManager
from org_platform.tenant_management.models import Tenant, utc_now


class InMemoryTenantStore:
    """Metadata store double enforcing the same unique fields as the indexes."""

    def __init__(self, events: Optional[list] = None):
        self.records: dict[str, dict[str, Any]] = {}
        self.available = True
        self.calls: list[str] = []
        self.events = events if events is not None else []

    def _check_available(self) -> None:
        if not self.available:
            raise UnavailableError("Metadata store is unavailable")

    def _violates_uniqueness(self, candidate: dict[str, Any], tenant_id: str) -> Optional[str]:
        for other_id, other in self.records.items():
            if other_id == tenant_id:
                continue
            if other["organization_name"] == candidate["organization_name"]:
                return "Organization with this name already exists"
            if other["partition_id"] == candidate["partition_id"]:
                return "Partition for this organization already exists"
            if other["admin"]["email"] == candidate["admin"]["email"]:
                return "Email is already registered"
        return None

    async def ensure_indexes(self) -> None:
        self._check_available()

    async def insert(self, tenant: Tenant) -> Tenant:
        self.calls.append("insert")
        self.events.append(("store.insert", tenant.tenant_id))
        self._check_available()
        candidate = tenant.model_dump()
        conflict = self._violates_uniqueness(candidate, tenant.tenant_id)
        if conflict or tenant.tenant_id in self.records:
            raise AlreadyExistsError(conflict)
        self.records[tenant.tenant_id] = candidate
        return tenant

    def _find(self, predicate) -> Optional[Tenant]:
        self._check_available()
        for record in self.records.values():
            if predicate(record):
                return Tenant(**record)
        return None

    async def get_by_name(self, organization_name: str) -> Optional[Tenant]:
        name = organization_name.strip().lower()
        return self._find(lambda r: r["organization_name"] == name)

    async def get_by_email(self, email: str) -> Optional[Tenant]:
        email = email.strip().lower()
        return self._find(lambda r: r["admin"]["email"] == email)

    async def find_by_name_or_email(self, organization_name: str, email: str) -> Optional[Tenant]:
        self.calls.append("find_by_name_or_email")
        return await self.find_conflict(organization_name=organization_name, email=email)

    async def find_conflict(
        self,
        organization_name: Optional[str] = None,
        email: Optional[str] = None,
        exclude_tenant_id: Optional[str] = None,
    ) -> Optional[Tenant]:
        name = organization_name.strip().lower() if organization_name else None
        email = email.strip().lower() if email else None

        def matches(record):
            if record["tenant_id"] == exclude_tenant_id:
                return False
            return (name is not None and record["organization_name"] == name) or (
                email is not None and record["admin"]["email"] == email
            )

        return self._find(matches)

    async def update(self, tenant_id: str, expected_version: int, update_data: dict[str, Any]) -> Optional[Tenant]:
        self.calls.append("update")
        self.events.append(("store.update", tenant_id))
        self._check_available()
        record = self.records.get(tenant_id)
        if record is None or record["version"] != expected_version:
            return None

        candidate = {**record, "admin": dict(record["admin"])}
        for path, value in update_data.items():
            target = candidate
            *parents, leaf = path.split(".")
            for parent in parents:
                target = target[parent]
            target[leaf] = value
        candidate["updated_at"] = utc_now()
        candidate["version"] = record["version"] + 1

        conflict = self._violates_uniqueness(candidate, tenant_id)
        if conflict:
            raise AlreadyExistsError(conflict)

        self.records[tenant_id] = candidate
        return Tenant(**candidate)

    async def delete(self, tenant_id: str) -> bool:
        self.calls.append("delete")
        self.events.append(("store.delete", tenant_id))
        self._check_available()
        return self.records.pop(tenant_id, None) is not None

    async def count(self) -> int:
        self._check_available()
        return len(self.records)

    async def ping(self) -> bool:
        return self.available


class InMemoryPartitionProvisioner:
    """Partition provisioner double keeping records per partition."""

    def __init__(self, events: Optional[list] = None):
        self.partitions: dict[str, list[dict[str, Any]]] = {}
        self.calls: list[tuple[str, ...]] = []
        self.fail_on: set[str] = set()
        self.events = events if events is not None else []

    def _record(self, operation: str, *partition_ids: str) -> None:
        self.calls.append((operation, *partition_ids))
        self.events.append((f"partition.{operation}", *partition_ids))

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_on:
            raise RuntimeError(f"partition {operation} failed")

    async def exists(self, partition_id: str) -> bool:
        return partition_id in self.partitions

    async def create(self, partition_id: str) -> None:
        self._record("create", partition_id)
        self._maybe_fail("create")
        if partition_id in self.partitions:
            raise PartitionAlreadyExistsError(f"Partition {partition_id} already exists")
        self.partitions[partition_id] = []

    async def drop(self, partition_id: str) -> bool:
        self._record("drop", partition_id)
        self._maybe_fail("drop")
        return self.partitions.pop(partition_id, None) is not None

    async def migrate(self, old_partition_id: str, new_partition_id: str) -> int:
        self._record("migrate", old_partition_id, new_partition_id)
        self._maybe_fail("migrate")
        documents = list(self.partitions.get(old_partition_id, []))
        await self.create(new_partition_id)
        self.partitions[new_partition_id].extend(documents)
        await self.drop(old_partition_id)
        return len(documents)


class FakePipeline:
    def __init__(self, redis: "FakeRedis"):
        self.redis = redis
        self.commands: list[tuple[str, tuple]] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    def incr(self, key):
        self.commands.append(("incr", (key,)))
        return self

    def expire(self, key, seconds):
        self.commands.append(("expire", (key, seconds)))
        return self

    async def execute(self):
        self.redis._raise_if_failing()
        results = []
        for name, args in self.commands:
            results.append(await getattr(self.redis, name)(*args))
        self.commands = []
        return results


class FakeRedis:
    """Minimal asyncio Redis double with expiry bookkeeping."""

    def __init__(self, events: Optional[list] = None):
        self.data: dict[str, str] = {}
        self.expiry: dict[str, float] = {}
        self.failure: Optional[Exception] = None
        self.closed = False
        self.events = events if events is not None else []

    def _raise_if_failing(self) -> None:
        if self.failure is not None:
            raise self.failure

    def _purge(self, key: str) -> None:
        deadline = self.expiry.get(key)
        if deadline is not None and deadline <= time.monotonic():
            self.data.pop(key, None)
            self.expiry.pop(key, None)

    async def ping(self):
        self._raise_if_failing()
        return True

    async def get(self, key):
        self._raise_if_failing()
        self._purge(key)
        return self.data.get(key)

    async def setex(self, key, seconds, value):
        self._raise_if_failing()
        self.events.append(("cache.set", key))
        self.data[key] = value
        self.expiry[key] = time.monotonic() + seconds
        return True

    async def delete(self, *keys):
        self._raise_if_failing()
        removed = 0
        for key in keys:
            self.events.append(("cache.delete", key))
            if self.data.pop(key, None) is not None:
                removed += 1
            self.expiry.pop(key, None)
        return removed

    async def scan_iter(self, match=None):
        self._raise_if_failing()
        for key in list(self.data):
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key

    async def ttl(self, key):
        self._raise_if_failing()
        self._purge(key)
        if key not in self.data:
            return -2
        deadline = self.expiry.get(key)
        if deadline is None:
            return -1
        return max(0, int(round(deadline - time.monotonic())))

    async def incr(self, key):
        self._raise_if_failing()
        self._purge(key)
        value = int(self.data.get(key, 0)) + 1
        self.data[key] = str(value)
        return value

    async def expire(self, key, seconds):
        self._raise_if_failing()
        if key not in self.data:
            return False
        self.expiry[key] = time.monotonic() + seconds
        return True

    def pipeline(self, transaction=True):
        return FakePipeline(self)

    async def info(self, section=None):
        self._raise_if_failing()
        return {
            "uptime_in_seconds": 42,
            "connected_clients": 1,
            "used_memory_human": "1.00M",
        }

    async def aclose(self):
        self.closed = True


@pytest.fixture
def events() -> list:
    """Call log shared by the store, partition and Redis doubles."""
    return []


@pytest.fixture
def fake_redis(events) -> FakeRedis:
    """Provide an in-memory Redis client."""
    return FakeRedis(events)


@pytest_asyncio.fixture
async def cache(fake_redis) -> CacheLayer:
    """Provide a connected cache layer."""
    layer = CacheLayer("redis://fake:6379/0", client=fake_redis)
    await layer.connect()
    return layer


@pytest_asyncio.fixture
async def disconnected_cache() -> CacheLayer:
    """Provide a cache layer with no Redis configured."""
    layer = CacheLayer(None)
    await layer.connect()
    return layer


@pytest.fixture
def tenant_store(events) -> InMemoryTenantStore:
    return InMemoryTenantStore(events)


@pytest.fixture
def partitions(events) -> InMemoryPartitionProvisioner:
    return InMemoryPartitionProvisioner(events)


@pytest.fixture
def lifecycle_manager(tenant_store, partitions, cache) -> TenantLifecycleManager:
    """Lifecycle manager over in-memory stores and a connected cache."""
    return TenantLifecycleManager(tenant_store, partitions, cache, cache_ttl_seconds=300)


@pytest.fixture
def rate_limiter(cache) -> RateLimiter:
    return RateLimiter(cache)
