"""
Rate Limiting Dependencies

Per-admission-class FastAPI dependencies. Rate limiting is silently disabled
while the cache is unavailable.
"""

from typing import Callable

from fastapi import Depends, Request, Response
from structlog import get_logger

from ..cache.rate_limiter import AdmissionClass, AdmissionDecision, RateLimiter
from ..errors import RateLimitedError
from ..shared_services.dependencies import get_admission_classes, get_rate_limiter

logger = get_logger()


def get_client_id(request: Request) -> str:
    """
    Identify the client by network address.

    Args:
        request: HTTP request

    Returns:
        Socket peer address, first X-Forwarded-For hop, or "unknown"
    """
    if request.client and request.client.host:
        return request.client.host

    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()

    return "unknown"


def rate_limit(class_name: str) -> Callable:
    """
    Dependency factory enforcing one admission class.

    Example:
        @router.post("/login", dependencies=[Depends(rate_limit("auth"))])

    Args:
        class_name: Admission class name (auth, create, read, general)

    Returns:
        Dependency function
    """

    async def admission_checker(
        request: Request,
        response: Response,
        limiter: RateLimiter = Depends(get_rate_limiter),
        admission_classes: dict[str, AdmissionClass] = Depends(get_admission_classes),
    ) -> AdmissionDecision:
        admission_class = admission_classes.get(class_name) or admission_classes["general"]
        decision = await limiter.check(admission_class, get_client_id(request))

        if decision.enforced:
            response.headers["X-RateLimit-Limit"] = str(decision.limit)
            response.headers["X-RateLimit-Remaining"] = str(decision.remaining)

        if not decision.allowed:
            raise RateLimitedError(
                admission_class.message,
                details={
                    "retry_after_seconds": decision.retry_after,
                    "limit": decision.limit,
                    "window_seconds": admission_class.window_seconds,
                },
                retry_after=decision.retry_after,
            )

        return decision

    return admission_checker
