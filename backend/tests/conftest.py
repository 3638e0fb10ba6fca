"""
Pytest configuration and shared fixtures.

The database platform is replaced by an in-memory FakePlatformClient
installed on `app.state.platform`; ASGITransport does not run the
lifespan, so no engine is ever created. Sessions are real platform-style
JWTs signed with the test secret.
"""
import os

# Set test environment BEFORE importing application modules
os.environ["PLATFORM_JWT_SECRET"] = "test-platform-jwt-secret-0123456789abcdef"
os.environ["ROOT_DOMAIN"] = "vectordb.test"
os.environ["PROVISION_SCHEMA"] = "false"
os.environ["DEBUG"] = "false"

import pytest
from datetime import datetime
from typing import AsyncGenerator, Callable, List, Optional
from uuid import uuid4
from httpx import AsyncClient, ASGITransport

from vectordb.main import app
from vectordb.core.config import settings
from vectordb.core.security import api_key_display_prefix, generate_api_key, hash_api_key
from vectordb.models import ApiKey, Organization, UserProfile

from fakes import FakePlatformClient, auth_headers, make_session_token, seed_organization

assert settings.ROOT_DOMAIN == "vectordb.test", f"Expected ROOT_DOMAIN=vectordb.test, got {settings.ROOT_DOMAIN}"


@pytest.fixture
def platform() -> FakePlatformClient:
    """Fresh in-memory platform, installed on the app for one test."""
    fake = FakePlatformClient()
    app.state.platform = fake
    yield fake
    app.state.platform = None


@pytest.fixture
def organization(platform: FakePlatformClient) -> Organization:
    """Organization 'acme' with an active subscription."""
    return seed_organization(platform, "acme", custom_domain="docs.acme.com")


@pytest.fixture
def other_organization(platform: FakePlatformClient) -> Organization:
    """A second tenant, used to check isolation."""
    return seed_organization(platform, "globex")


@pytest.fixture
def make_user(platform: FakePlatformClient) -> Callable[..., UserProfile]:
    def _make_user(organization: Organization, role: str = "viewer") -> UserProfile:
        return platform.add(
            UserProfile(id=uuid4(), organization_id=organization.id, role=role)
        )
    return _make_user


@pytest.fixture
def admin_user(make_user, organization) -> UserProfile:
    return make_user(organization, "admin")


@pytest.fixture
def editor_user(make_user, organization) -> UserProfile:
    return make_user(organization, "editor")


@pytest.fixture
def viewer_user(make_user, organization) -> UserProfile:
    return make_user(organization, "viewer")


@pytest.fixture
def admin_headers(admin_user: UserProfile) -> dict:
    return auth_headers(make_session_token(admin_user.id))


@pytest.fixture
def editor_headers(editor_user: UserProfile) -> dict:
    return auth_headers(make_session_token(editor_user.id))


@pytest.fixture
def viewer_headers(viewer_user: UserProfile) -> dict:
    return auth_headers(make_session_token(viewer_user.id))


@pytest.fixture
def make_api_key(platform: FakePlatformClient) -> Callable[..., str]:
    """Store an API key row and return its plaintext."""
    def _make_api_key(
        organization: Organization,
        permissions: Optional[List[str]] = None,
        expires_at: Optional[datetime] = None,
    ) -> str:
        secret = generate_api_key()
        platform.add(
            ApiKey(
                organization_id=organization.id,
                name="Test key",
                key_hash=hash_api_key(secret),
                key_prefix=api_key_display_prefix(secret),
                permissions=permissions if permissions is not None else ["read", "search"],
                expires_at=expires_at,
            )
        )
        return secret
    return _make_api_key


@pytest.fixture
async def client(platform: FakePlatformClient) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client on a platform host: the tenant comes from credentials."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest.fixture
async def tenant_client(platform: FakePlatformClient, organization: Organization) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client on the organization's subdomain."""
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url=f"http://{organization.slug}.{settings.ROOT_DOMAIN}",
    ) as client:
        yield client
