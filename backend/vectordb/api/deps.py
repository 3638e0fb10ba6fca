"""
FastAPI dependencies for authentication and authorization.

A request is authenticated either by an `X-API-Key` header or by a
platform session token (Bearer header or session cookie). Both resolve to
a Principal: the organization acted on and the role acted as.
"""
from dataclasses import dataclass, field
from typing import Callable, List, Optional
from uuid import UUID
from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import jwt

from vectordb.core.config import settings
from vectordb.core.permissions import Action, Role, api_key_can, can, role_for_api_key
from vectordb.core.security import decode_session_token
from vectordb.core.tenant import TenantContext, get_current_tenant
from vectordb.db.platform import PlatformClient, get_platform
from vectordb.models.organization import UserProfile
from vectordb.services.api_key_service import ApiKeyService

# HTTP Bearer token authentication
security = HTTPBearer(auto_error=False)


@dataclass
class Principal:
    """Who is calling, for which organization, in which role."""
    organization_id: str
    role: Role
    via: str                                  # "session" or "api_key"
    user_id: Optional[str] = None
    api_key_id: Optional[str] = None
    permissions: List[str] = field(default_factory=list)

    def allows(self, action: Action) -> bool:
        """Role check, narrowed by the key's own permissions for API keys."""
        if not can(self.role, action):
            return False
        if self.via == "api_key":
            return api_key_can(self.permissions, action)
        return True


def _request_tenant(request: Request) -> Optional[TenantContext]:
    return getattr(request.state, "tenant", None) or get_current_tenant()


def ensure_same_tenant(request: Request, principal: Principal) -> None:
    """Reject credentials of another organization when the host named one."""
    tenant = _request_tenant(request)
    if tenant and tenant.organization_id != principal.organization_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Credential is not valid for this organization",
        )


async def get_api_key_principal(
    x_api_key: Optional[str] = Header(default=None, alias="X-API-Key"),
    platform: PlatformClient = Depends(get_platform),
) -> Optional[Principal]:
    """
    Authenticate the X-API-Key header.

    Returns None if no key was sent, raises HTTPException if it is invalid or expired.
    """
    if not x_api_key:
        return None

    api_key = await ApiKeyService(platform).authenticate(x_api_key)
    return Principal(
        organization_id=str(api_key.organization_id),
        role=role_for_api_key(api_key.permissions),
        via="api_key",
        api_key_id=str(api_key.id),
        permissions=list(api_key.permissions or []),
    )


async def get_session_principal(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    platform: PlatformClient = Depends(get_platform),
) -> Optional[Principal]:
    """
    Authenticate a platform session from the Authorization header or cookie.

    Returns None if no token was sent.
    """
    token = credentials.credentials if credentials else request.cookies.get(settings.SESSION_COOKIE_NAME)
    if not token:
        return None

    try:
        payload = decode_session_token(token)
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid session",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user_id = UUID(payload.sub)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid session",
            headers={"WWW-Authenticate": "Bearer"},
        )

    profile = await platform.fetch_one(UserProfile, {"id": user_id})
    if not profile:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User profile not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return Principal(
        organization_id=str(profile.organization_id),
        role=Role(profile.role),
        via="session",
        user_id=str(profile.id),
    )


async def get_current_principal(
    request: Request,
    api_key_principal: Optional[Principal] = Depends(get_api_key_principal),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    platform: PlatformClient = Depends(get_platform),
) -> Principal:
    """
    Get the authenticated caller with tenant validation.

    An API key wins over a session when both are sent; the session token
    is then not even decoded. When the host resolved an organization, the
    credential must belong to it.
    """
    principal = api_key_principal
    if principal is None:
        principal = await get_session_principal(request, credentials, platform)
    if not principal:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    ensure_same_tenant(request, principal)
    return principal


def require_capability(action: Action) -> Callable:
    """
    Dependency factory: the caller's role must allow `action`.

    Usage:
        @router.delete("/{id}")
        async def delete_item(principal: Principal = Depends(require_capability(Action.DELETE))):
            ...
    """
    async def dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        if not principal.allows(action):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return principal

    return dependency

