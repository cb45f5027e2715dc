"""
Distributed Rate Limiter

Fixed-window admission control on top of the cache layer. When the cache is
unavailable every request is admitted (fail-open).
"""

from dataclasses import dataclass
from typing import Optional

from structlog import get_logger

from ..config import PlatformConfig, get_config
from .redis_cache import CacheLayer

logger = get_logger()


@dataclass(frozen=True)
class AdmissionClass:
    """A named category of operation with its own window and threshold."""

    name: str
    window_seconds: int
    limit: int
    key_prefix: str
    message: str = "Too many requests, please try again later"

    def key_for(self, client_id: str) -> str:
        return f"{self.key_prefix}{client_id}"


@dataclass(frozen=True)
class AdmissionDecision:
    """Result of one admission check."""

    allowed: bool
    limit: int
    remaining: int
    retry_after: int = 0
    enforced: bool = True


def build_admission_classes(config: Optional[PlatformConfig] = None) -> dict[str, AdmissionClass]:
    """
    Build the admission classes from configuration.

    Args:
        config: Platform configuration (defaults to the cached config)

    Returns:
        Mapping of class name to admission class
    """
    config = config or get_config()
    return {
        "auth": AdmissionClass(
            name="auth",
            window_seconds=config.rate_limit_auth_window_seconds,
            limit=config.rate_limit_auth_max,
            key_prefix="rl:auth:",
            message="Too many login attempts, please try again later",
        ),
        "create": AdmissionClass(
            name="create",
            window_seconds=config.rate_limit_create_window_seconds,
            limit=config.rate_limit_create_max,
            key_prefix="rl:create:",
            message="Too many organizations created, please try again later",
        ),
        "read": AdmissionClass(
            name="read",
            window_seconds=config.rate_limit_read_window_seconds,
            limit=config.rate_limit_read_max,
            key_prefix="rl:read:",
        ),
        "general": AdmissionClass(
            name="general",
            window_seconds=config.rate_limit_general_window_seconds,
            limit=config.rate_limit_general_max,
            key_prefix="rl:general:",
        ),
    }


class RateLimiter:
    """Fixed-window counter per admission class and client identity."""

    def __init__(self, cache: CacheLayer):
        """
        Initialize rate limiter.

        Args:
            cache: Shared cache layer
        """
        self.cache = cache

    def is_active(self) -> bool:
        """Rate limiting is only enforced while the cache is connected."""
        return self.cache.is_connected()

    def _admit_unenforced(self, admission_class: AdmissionClass) -> AdmissionDecision:
        return AdmissionDecision(
            allowed=True,
            limit=admission_class.limit,
            remaining=admission_class.limit,
            enforced=False,
        )

    async def check(self, admission_class: AdmissionClass, client_id: str) -> AdmissionDecision:
        """
        Check and count one request.

        Args:
            admission_class: Class the request belongs to
            client_id: Client network identity

        Returns:
            Admission decision
        """
        if not self.cache.is_connected():
            return self._admit_unenforced(admission_class)

        key = admission_class.key_for(client_id)

        count = await self.cache.get_counter(key)
        if count is None:
            return self._admit_unenforced(admission_class)

        if count >= admission_class.limit:
            ttl = await self.cache.ttl(key)
            retry_after = ttl if ttl is not None else admission_class.window_seconds
            logger.warning(
                "rate_limit_exceeded",
                admission_class=admission_class.name,
                client=client_id,
                count=count,
                retry_after=retry_after,
            )
            return AdmissionDecision(
                allowed=False,
                limit=admission_class.limit,
                remaining=0,
                retry_after=retry_after,
            )

        new_count = await self.cache.increment_with_expiry(key, admission_class.window_seconds)
        if new_count is None:
            return self._admit_unenforced(admission_class)

        return AdmissionDecision(
            allowed=True,
            limit=admission_class.limit,
            remaining=max(0, admission_class.limit - new_count),
        )
