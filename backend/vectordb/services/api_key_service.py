"""
API key issuance and verification.
"""
from datetime import datetime, timezone
from typing import List, Optional, Tuple
from uuid import UUID
import logging

from fastapi import HTTPException, status

from vectordb.core.security import (
    api_key_display_prefix,
    generate_api_key,
    hash_api_key,
    verify_api_key,
)
from vectordb.db.platform import PlatformClient
from vectordb.models.access import ApiKey

logger = logging.getLogger(__name__)

DEFAULT_PERMISSIONS = ["read", "search"]
ALLOWED_PERMISSIONS = {"read", "search", "write"}


class ApiKeyService:
    """Create, list and authenticate an organization's API keys."""

    def __init__(self, platform: PlatformClient):
        self.platform = platform

    async def authenticate(self, key: str) -> ApiKey:
        """
        Resolve a presented key to its stored row.

        Raises:
            HTTPException: 401 if the key is unknown or expired.
        """
        key_hash = hash_api_key(key)
        api_key = await self.platform.fetch_one(ApiKey, {"key_hash": key_hash})

        if not api_key or not verify_api_key(key, api_key.key_hash):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid API key",
            )

        now = datetime.now(timezone.utc)
        if api_key.expires_at and api_key.expires_at < now:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="API key expired",
            )

        await self.platform.update(ApiKey, {"id": api_key.id}, {"last_used_at": now})
        api_key.last_used_at = now
        return api_key

    async def create_key(
        self,
        organization_id: str,
        name: str,
        permissions: Optional[List[str]] = None,
        expires_at: Optional[datetime] = None,
        created_by: Optional[str] = None,
    ) -> Tuple[ApiKey, str]:
        """
        Issue a new key.

        Returns:
            (stored row, plaintext key). The plaintext is not kept anywhere.
        """
        permissions = list(dict.fromkeys(permissions or DEFAULT_PERMISSIONS))
        unknown = set(permissions) - ALLOWED_PERMISSIONS
        if unknown:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unknown permissions: {', '.join(sorted(unknown))}",
            )

        secret = generate_api_key()
        api_key = await self.platform.insert(
            ApiKey(
                organization_id=UUID(str(organization_id)),
                name=name,
                key_hash=hash_api_key(secret),
                key_prefix=api_key_display_prefix(secret),
                permissions=permissions,
                expires_at=expires_at,
                created_by=UUID(str(created_by)) if created_by else None,
            )
        )
        logger.info(f"Created API key {api_key.id} for organization {organization_id}")
        return api_key, secret

    async def list_keys(self, organization_id: str) -> List[ApiKey]:
        return await self.platform.fetch_all(
            ApiKey,
            {"organization_id": UUID(str(organization_id))},
            order_by="created_at",
            descending=True,
        )

    async def get_key(self, organization_id: str, key_id: str) -> ApiKey:
        api_key = None
        try:
            api_key = await self.platform.fetch_one(
                ApiKey,
                {"id": UUID(str(key_id)), "organization_id": UUID(str(organization_id))},
            )
        except ValueError:
            pass
        if not api_key:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="API key not found",
            )
        return api_key

    async def revoke_key(self, organization_id: str, key_id: str) -> None:
        api_key = await self.get_key(organization_id, key_id)
        await self.platform.delete(
            ApiKey, {"id": api_key.id, "organization_id": api_key.organization_id}
        )
        logger.info(f"Revoked API key {api_key.id}")
