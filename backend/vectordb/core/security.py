"""
Security utilities for platform sessions and API keys.

Sessions are issued by the platform's auth service as signed JWTs; this
module only verifies them. API keys are generated here, shown once, and
stored as SHA-256 digests.
"""
from datetime import datetime, timezone
from typing import Optional
import hashlib
import hmac
import secrets
import jwt
from pydantic import BaseModel

from vectordb.core.config import settings


class SessionPayload(BaseModel):
    """Claims of a platform session token."""
    sub: str                    # platform auth user id
    email: Optional[str] = None
    role: str = "authenticated"
    exp: datetime
    iat: Optional[datetime] = None


def decode_session_token(token: str) -> SessionPayload:
    """
    Decode and validate a platform session token.

    Args:
        token: The JWT from the Authorization header or session cookie

    Returns:
        SessionPayload with decoded claims.

    Raises:
        jwt.ExpiredSignatureError: If token has expired
        jwt.InvalidTokenError: If token is invalid
    """
    payload = jwt.decode(
        token,
        settings.PLATFORM_JWT_SECRET,
        algorithms=[settings.PLATFORM_JWT_ALGORITHM],
        audience=settings.PLATFORM_JWT_AUDIENCE,
        options={"require": ["sub", "exp"]},
    )

    return SessionPayload(
        sub=payload["sub"],
        email=payload.get("email"),
        role=payload.get("role", "authenticated"),
        exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc) if "iat" in payload else None,
    )


def generate_api_key() -> str:
    """
    Generate a new API key secret.

    Returns:
        Key in the form "{API_KEY_PREFIX}{random}".
    """
    return f"{settings.API_KEY_PREFIX}{secrets.token_urlsafe(32)}"


def hash_api_key(key: str) -> str:
    """Digest stored in place of the key itself."""
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def api_key_display_prefix(key: str) -> str:
    """First characters of a key, kept so users can tell keys apart."""
    return key[: len(settings.API_KEY_PREFIX) + 6]


def verify_api_key(key: str, key_hash: str) -> bool:
    """Constant-time comparison of a presented key against a stored digest."""
    return hmac.compare_digest(hash_api_key(key), key_hash)
