"""
Cache Module

Redis cache layer with its connectivity state machine, and the distributed
rate limiter built on top of it.
"""

from .rate_limiter import AdmissionClass, AdmissionDecision, RateLimiter, build_admission_classes
from .redis_cache import CacheLayer, CacheResult, CacheStatus, ConnectionState, org_cache_key

__all__ = [
    "AdmissionClass",
    "AdmissionDecision",
    "CacheLayer",
    "CacheResult",
    "CacheStatus",
    "ConnectionState",
    "RateLimiter",
    "build_admission_classes",
    "org_cache_key",
]
