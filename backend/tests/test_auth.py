"""
Authentication tests.

Unit tests for session verification and API key helpers, plus endpoint
tests for each credential path and its failure messages.
"""
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import jwt
import pytest

from vectordb.core.config import settings
from vectordb.core.security import (
    api_key_display_prefix,
    decode_session_token,
    generate_api_key,
    hash_api_key,
    verify_api_key,
)
from vectordb.models import ApiKey

from fakes import auth_headers, make_session_token


class TestSessionTokens:
    """Test platform session verification."""

    def test_decode_valid_token(self):
        user_id = uuid4()
        payload = decode_session_token(make_session_token(user_id))

        assert payload.sub == str(user_id)
        assert payload.role == "authenticated"
        assert payload.exp > datetime.now(timezone.utc)

    def test_expired_token_rejected(self):
        token = make_session_token(uuid4(), expires_in=timedelta(minutes=-5))

        with pytest.raises(jwt.ExpiredSignatureError):
            decode_session_token(token)

    def test_wrong_secret_rejected(self):
        token = make_session_token(uuid4(), secret="another-secret-entirely-0123456789abcdef")

        with pytest.raises(jwt.InvalidTokenError):
            decode_session_token(token)

    def test_wrong_audience_rejected(self):
        token = make_session_token(uuid4(), audience="anon")

        with pytest.raises(jwt.InvalidTokenError):
            decode_session_token(token)


class TestApiKeyHelpers:
    """Test API key generation and hashing."""

    def test_generated_key_has_prefix(self):
        key = generate_api_key()

        assert key.startswith(settings.API_KEY_PREFIX)
        assert len(key) > len(settings.API_KEY_PREFIX) + 32

    def test_generated_keys_are_unique(self):
        assert generate_api_key() != generate_api_key()

    def test_hash_is_stable_sha256(self):
        key = generate_api_key()

        assert hash_api_key(key) == hash_api_key(key)
        assert len(hash_api_key(key)) == 64
        assert hash_api_key(key) != key

    def test_verify_api_key(self):
        key = generate_api_key()

        assert verify_api_key(key, hash_api_key(key))
        assert not verify_api_key(key + "x", hash_api_key(key))

    def test_display_prefix(self):
        key = generate_api_key()

        assert api_key_display_prefix(key) == key[:len(settings.API_KEY_PREFIX) + 6]


class TestAuthenticationEndpoints:
    """Credential handling on a protected endpoint."""

    async def test_no_credentials(self, client):
        response = await client.get("/api/documents")

        assert response.status_code == 401
        assert response.json()["detail"] == "Authentication required"

    async def test_session_bearer(self, client, viewer_headers):
        response = await client.get("/api/documents", headers=viewer_headers)

        assert response.status_code == 200

    async def test_session_cookie(self, client, viewer_user):
        cookie = f"{settings.SESSION_COOKIE_NAME}={make_session_token(viewer_user.id)}"

        response = await client.get("/api/documents", headers={"Cookie": cookie})

        assert response.status_code == 200

    async def test_expired_session(self, client, viewer_user):
        token = make_session_token(viewer_user.id, expires_in=timedelta(minutes=-5))

        response = await client.get("/api/documents", headers=auth_headers(token))

        assert response.status_code == 401
        assert response.json()["detail"] == "Session has expired"

    async def test_invalid_session(self, client):
        response = await client.get("/api/documents", headers=auth_headers("not-a-jwt"))

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid session"

    async def test_session_without_profile(self, client, platform):
        response = await client.get(
            "/api/documents", headers=auth_headers(make_session_token(uuid4()))
        )

        assert response.status_code == 401

    async def test_valid_api_key(self, client, organization, make_api_key, platform):
        key = make_api_key(organization)

        response = await client.get("/api/documents", headers={"X-API-Key": key})

        assert response.status_code == 200
        stored = platform.rows(ApiKey)[0]
        assert stored.last_used_at is not None

    async def test_unknown_api_key(self, client, organization):
        response = await client.get("/api/documents", headers={"X-API-Key": "vdb_nope"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid API key"

    async def test_expired_api_key(self, client, organization, make_api_key, platform):
        key = make_api_key(
            organization, expires_at=datetime.now(timezone.utc) - timedelta(days=1)
        )

        response = await client.get("/api/documents", headers={"X-API-Key": key})

        assert response.status_code == 401
        assert response.json()["detail"] == "API key expired"
        assert platform.rows(ApiKey)[0].last_used_at is None

    async def test_api_key_wins_over_stale_session_cookie(self, client, organization, viewer_user, make_api_key):
        key = make_api_key(organization)
        stale = make_session_token(viewer_user.id, expires_in=timedelta(minutes=-5))

        response = await client.get(
            "/api/documents",
            headers={"X-API-Key": key, "Cookie": f"{settings.SESSION_COOKIE_NAME}={stale}"},
        )

        assert response.status_code == 200

    async def test_api_key_wins_over_invalid_bearer(self, client, organization, make_api_key):
        key = make_api_key(organization)

        response = await client.get(
            "/api/documents",
            headers={"X-API-Key": key, **auth_headers("not-a-jwt")},
        )

        assert response.status_code == 200
