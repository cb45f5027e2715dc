"""
Redis Cache Layer

Best-effort look-aside cache for organization projections. The layer owns its
connectivity state and degrades to a silent no-op whenever Redis is not
reachable, so callers never fail because the cache is down.
"""

import asyncio
import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from redis import asyncio as aioredis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError
from structlog import get_logger

logger = get_logger()

ORG_CACHE_PREFIX = "org:"


def org_cache_key(organization_name: str) -> str:
    """Cache key for an organization projection."""
    return f"{ORG_CACHE_PREFIX}{organization_name.lower()}"


class ConnectionState(str, Enum):
    """Cache connectivity lifecycle."""

    UNINITIALIZED = "uninitialized"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class CacheStatus(str, Enum):
    HIT = "hit"
    MISS = "miss"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class CacheResult:
    """
    Outcome of a cache read.

    Keeps "no data" (MISS) apart from "cache down" (UNAVAILABLE).
    """

    status: CacheStatus
    value: Any = None

    @classmethod
    def hit(cls, value: Any) -> "CacheResult":
        return cls(CacheStatus.HIT, value)

    @classmethod
    def miss(cls) -> "CacheResult":
        return cls(CacheStatus.MISS)

    @classmethod
    def unavailable(cls) -> "CacheResult":
        return cls(CacheStatus.UNAVAILABLE)

    @property
    def is_hit(self) -> bool:
        return self.status == CacheStatus.HIT

    @property
    def is_unavailable(self) -> bool:
        return self.status == CacheStatus.UNAVAILABLE


class CacheLayer:
    """
    Redis-backed cache with an explicit connection lifecycle.

    Exactly one connection attempt is made by ``connect()``. A connection
    error raised by any later operation moves the layer to DISCONNECTED;
    reconnecting is not attempted here.
    """

    def __init__(
        self,
        redis_url: Optional[str],
        connect_timeout: float = 5.0,
        client: Optional[aioredis.Redis] = None,
    ):
        """
        Initialize the cache layer.

        Args:
            redis_url: Redis connection URL, None disables the cache
            connect_timeout: Seconds allowed for the initial connection attempt
            client: Optional pre-built Redis client
        """
        self.redis_url = redis_url
        self.connect_timeout = connect_timeout
        self._client = client
        self._state = ConnectionState.UNINITIALIZED

    @property
    def state(self) -> ConnectionState:
        return self._state

    def is_connected(self) -> bool:
        """Liveness check consulted before every operation."""
        return self._state == ConnectionState.CONNECTED and self._client is not None

    async def connect(self) -> ConnectionState:
        """
        Make the single connection attempt.

        Returns:
            Resulting connection state
        """
        if self._state != ConnectionState.UNINITIALIZED:
            return self._state

        if not self.redis_url and self._client is None:
            logger.info("redis_not_configured", detail="running without cache")
            self._state = ConnectionState.DISCONNECTED
            return self._state

        self._state = ConnectionState.CONNECTING

        try:
            if self._client is None:
                self._client = aioredis.from_url(
                    self.redis_url,
                    decode_responses=True,
                    socket_connect_timeout=self.connect_timeout,
                    retry_on_timeout=False,
                )
            await asyncio.wait_for(self._client.ping(), timeout=self.connect_timeout)
        except (RedisError, OSError, ValueError, asyncio.TimeoutError) as e:
            # ValueError: malformed URL rejected by from_url
            logger.warning("redis_unavailable", error=str(e), detail="running without cache")
            await self._release_client()
            self._state = ConnectionState.DISCONNECTED
            return self._state

        self._state = ConnectionState.CONNECTED
        logger.info("redis_connected")
        return self._state

    async def close(self) -> None:
        """Release the client at shutdown."""
        await self._release_client()
        self._state = ConnectionState.DISCONNECTED
        logger.info("redis_connection_closed")

    async def _release_client(self) -> None:
        if self._client is None:
            return
        try:
            await self._client.aclose()
        except (RedisError, OSError) as e:
            logger.debug("redis_close_error", error=str(e))
        self._client = None

    def _handle_error(self, operation: str, key: str, error: Exception) -> None:
        """Connection errors are the connection-lost signal."""
        if isinstance(error, (RedisConnectionError, RedisTimeoutError)):
            if self._state == ConnectionState.CONNECTED:
                logger.warning("redis_connection_lost", operation=operation, error=str(error))
            self._state = ConnectionState.DISCONNECTED
        else:
            logger.warning("cache_operation_error", operation=operation, key=key, error=str(error))

    async def get(self, key: str) -> CacheResult:
        """
        Read and decode a cached value.

        Args:
            key: Cache key

        Returns:
            HIT with the decoded value, MISS, or UNAVAILABLE
        """
        if not self.is_connected():
            return CacheResult.unavailable()

        try:
            data = await self._client.get(key)
        except RedisError as e:
            self._handle_error("get", key, e)
            return CacheResult.unavailable()

        if data is None:
            return CacheResult.miss()

        try:
            return CacheResult.hit(json.loads(data))
        except ValueError:
            logger.warning("cache_decode_error", key=key)
            return CacheResult.miss()

    async def set(self, key: str, value: Any, ttl_seconds: int) -> bool:
        """
        Store a JSON-encoded value with expiry.

        Returns:
            True if the write was performed
        """
        if not self.is_connected():
            return False

        try:
            await self._client.setex(key, ttl_seconds, json.dumps(value))
            return True
        except RedisError as e:
            self._handle_error("set", key, e)
            return False

    async def delete(self, key: str) -> bool:
        """Remove one key. Returns True if the delete was performed."""
        if not self.is_connected():
            return False

        try:
            await self._client.delete(key)
            return True
        except RedisError as e:
            self._handle_error("delete", key, e)
            return False

    async def delete_by_prefix(self, prefix: str) -> bool:
        """Remove every key starting with ``prefix``."""
        if not self.is_connected():
            return False

        # Glob metacharacters in the prefix must match literally
        pattern = re.sub(r"([*?\[\]\\])", r"\\\1", prefix) + "*"
        try:
            keys = [key async for key in self._client.scan_iter(match=pattern)]
            if keys:
                await self._client.delete(*keys)
            return True
        except RedisError as e:
            self._handle_error("delete_by_prefix", prefix, e)
            return False

    async def get_counter(self, key: str) -> Optional[int]:
        """
        Read an integer counter.

        Returns:
            Counter value (0 when absent), None if the cache is unavailable
        """
        if not self.is_connected():
            return None

        try:
            current = await self._client.get(key)
        except RedisError as e:
            self._handle_error("get_counter", key, e)
            return None

        try:
            return int(current) if current is not None else 0
        except ValueError:
            logger.warning("cache_counter_corrupt", key=key)
            return 0

    async def ttl(self, key: str) -> Optional[int]:
        """Remaining time to live in seconds, None when unknown."""
        if not self.is_connected():
            return None

        try:
            remaining = await self._client.ttl(key)
        except RedisError as e:
            self._handle_error("ttl", key, e)
            return None

        return remaining if remaining is not None and remaining >= 0 else None

    async def increment_with_expiry(self, key: str, ttl_seconds: int) -> Optional[int]:
        """
        Increment a counter and (re)assign its expiry in one MULTI block.

        Returns:
            New counter value, None if the operation was not performed
        """
        if not self.is_connected():
            return None

        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.incr(key)
                pipe.expire(key, ttl_seconds)
                count, _ = await pipe.execute()
            return int(count)
        except RedisError as e:
            self._handle_error("increment_with_expiry", key, e)
            return None

    async def ping(self) -> bool:
        """Liveness probe."""
        if not self.is_connected():
            return False

        try:
            return bool(await self._client.ping())
        except RedisError as e:
            self._handle_error("ping", "", e)
            return False

    async def stats(self) -> dict[str, Any]:
        """
        Connection status and server statistics for health monitoring.

        Returns:
            Dictionary with connected flag, status and optional stats
        """
        if not self.is_connected():
            return {"connected": False, "status": self._state.value}

        try:
            server = await self._client.info("server")
            clients = await self._client.info("clients")
            memory = await self._client.info("memory")
        except RedisError as e:
            self._handle_error("stats", "", e)
            return {"connected": False, "status": "error", "error": str(e)}

        return {
            "connected": True,
            "status": ConnectionState.CONNECTED.value,
            "stats": {
                "uptime": server.get("uptime_in_seconds", "unknown"),
                "connected_clients": clients.get("connected_clients", "unknown"),
                "used_memory": memory.get("used_memory_human", "unknown"),
            },
        }
