"""Fixtures for HTTP-level tests against the FastAPI application."""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from org_platform.api_gateway.main import create_app
from org_platform.cache.rate_limiter import AdmissionClass, RateLimiter


@pytest.fixture
def admission_classes() -> dict[str, AdmissionClass]:
    """Small limits so tests can exhaust a window."""
    return {
        "auth": AdmissionClass("auth", 900, 3, "rl:auth:", "Too many login attempts, please try again later"),
        "create": AdmissionClass("create", 3600, 3, "rl:create:", "Too many organizations created, please try again later"),
        "read": AdmissionClass("read", 900, 50, "rl:read:"),
        "general": AdmissionClass("general", 900, 50, "rl:general:"),
    }


@pytest.fixture
def app(tenant_store, cache, lifecycle_manager, admission_classes):
    """
    Application wired to in-memory collaborators.

    ASGITransport does not run the lifespan, so state is populated here.
    """
    application = create_app()
    application.state.tenant_db_service = tenant_store
    application.state.cache = cache
    application.state.rate_limiter = RateLimiter(cache)
    application.state.admission_classes = admission_classes
    application.state.lifecycle_manager = lifecycle_manager
    return application


@pytest_asyncio.fixture
async def client(app):
    """Async HTTP client for the application."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def acme_payload() -> dict:
    return {"organization_name": "Acme", "email": "admin@acme.com", "password": "secret1"}


async def login_headers(client: AsyncClient, email: str = "admin@acme.com", password: str = "secret1") -> dict:
    response = await client.post("/admin/login", json={"email": email, "password": password})
    token = response.json()["data"]["token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(client):
    """Coroutine factory returning bearer headers for an admin."""
    return lambda **kwargs: login_headers(client, **kwargs)
