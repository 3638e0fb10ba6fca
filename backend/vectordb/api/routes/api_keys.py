"""
API key management endpoints (admin only).
"""
from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from vectordb.api.deps import Principal, require_capability
from vectordb.api.schemas import ErrorResponse
from vectordb.core.permissions import Action
from vectordb.db.platform import PlatformClient, get_platform
from vectordb.models.access import ApiKey
from vectordb.services.api_key_service import DEFAULT_PERMISSIONS, ApiKeyService

router = APIRouter()


class ApiKeyResponse(BaseModel):
    """API key metadata. The secret itself is never returned here."""
    id: str
    name: str = Field(examples=["Chatbot"])
    key_prefix: str = Field(examples=["vdb_Xk3f9a"])
    permissions: List[str] = Field(examples=[["read", "search"]])
    expires_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class CreatedApiKeyResponse(ApiKeyResponse):
    """Returned once, at creation: includes the plaintext key."""
    key: str = Field(examples=["vdb_Xk3f9a..."])


class CreateApiKeyRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255, examples=["Chatbot"])
    permissions: List[str] = Field(default_factory=lambda: list(DEFAULT_PERMISSIONS))
    expires_at: Optional[datetime] = None


def _key_to_response(api_key: ApiKey) -> ApiKeyResponse:
    return ApiKeyResponse(
        id=str(api_key.id),
        name=api_key.name,
        key_prefix=api_key.key_prefix,
        permissions=list(api_key.permissions or []),
        expires_at=api_key.expires_at,
        last_used_at=api_key.last_used_at,
        created_at=api_key.created_at,
    )


@router.get("", response_model=List[ApiKeyResponse])
async def list_api_keys(
    principal: Principal = Depends(require_capability(Action.MANAGE_API_KEYS)),
    platform: PlatformClient = Depends(get_platform),
):
    keys = await ApiKeyService(platform).list_keys(principal.organization_id)
    return [_key_to_response(k) for k in keys]


@router.post(
    "",
    response_model=CreatedApiKeyResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
async def create_api_key(
    request: CreateApiKeyRequest,
    principal: Principal = Depends(require_capability(Action.MANAGE_API_KEYS)),
    platform: PlatformClient = Depends(get_platform),
):
    """
    Issue an API key.

    The plaintext key is in this response only; store it now.
    """
    api_key, secret = await ApiKeyService(platform).create_key(
        organization_id=principal.organization_id,
        name=request.name.strip(),
        permissions=request.permissions,
        expires_at=request.expires_at,
        created_by=principal.user_id,
    )
    return CreatedApiKeyResponse(**_key_to_response(api_key).model_dump(), key=secret)


@router.get("/{key_id}", response_model=ApiKeyResponse, responses={404: {"model": ErrorResponse}})
async def get_api_key(
    key_id: str,
    principal: Principal = Depends(require_capability(Action.MANAGE_API_KEYS)),
    platform: PlatformClient = Depends(get_platform),
):
    api_key = await ApiKeyService(platform).get_key(principal.organization_id, key_id)
    return _key_to_response(api_key)


@router.delete("/{key_id}", status_code=status.HTTP_204_NO_CONTENT, responses={404: {"model": ErrorResponse}})
async def delete_api_key(
    key_id: str,
    principal: Principal = Depends(require_capability(Action.MANAGE_API_KEYS)),
    platform: PlatformClient = Depends(get_platform),
):
    await ApiKeyService(platform).revoke_key(principal.organization_id, key_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
