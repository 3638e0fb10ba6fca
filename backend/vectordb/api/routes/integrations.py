"""
Chatbot integration endpoints.

Authenticated by API key only. Responses always carry a `success` flag,
errors included, since chatbot platforms branch on it.
"""
from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from typing import List, Optional
from uuid import UUID
import logging

from vectordb.api.deps import ensure_same_tenant, get_api_key_principal
from vectordb.api.routes.documents import SearchHit
from vectordb.core.config import settings
from vectordb.core.permissions import Action
from vectordb.db.platform import PlatformClient, PlatformError, get_platform
from vectordb.services.document_service import DocumentService

logger = logging.getLogger(__name__)

router = APIRouter()


class ManyChatRequest(BaseModel):
    query: str = Field(examples=["What are your opening hours?"])
    collection_id: Optional[UUID] = None
    category_ids: Optional[List[UUID]] = None
    limit: int = Field(default=settings.INTEGRATION_SEARCH_LIMIT, ge=1, le=50)
    threshold: float = Field(default=settings.SEARCH_DEFAULT_THRESHOLD, ge=0.0, le=1.0)


class ManyChatResponse(BaseModel):
    success: bool
    results: List[SearchHit] = Field(default_factory=list)
    error: Optional[str] = None


def _failure(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ManyChatResponse(success=False, error=message).model_dump(),
    )


@router.post("/manychat", response_model=ManyChatResponse)
async def manychat_search(
    body: ManyChatRequest,
    request: Request,
    x_api_key: Optional[str] = Header(default=None, alias="X-API-Key"),
    platform: PlatformClient = Depends(get_platform),
):
    """
    Search for a ManyChat flow.

    Same quota and ranking as document search, with a smaller default limit.
    """
    if not x_api_key:
        return _failure(status.HTTP_401_UNAUTHORIZED, "API key required")

    try:
        principal = await get_api_key_principal(x_api_key, platform)
        ensure_same_tenant(request, principal)
        if not principal.allows(Action.SEARCH):
            return _failure(status.HTTP_403_FORBIDDEN, "Insufficient permissions")

        hits = await DocumentService(platform, principal.organization_id).search(
            query=body.query,
            collection_id=body.collection_id,
            category_ids=body.category_ids,
            limit=body.limit,
            threshold=body.threshold,
        )
    except HTTPException as e:
        return _failure(e.status_code, e.detail)
    except PlatformError as e:
        logger.error(f"ManyChat search failed: {e}", exc_info=True)
        return _failure(status.HTTP_500_INTERNAL_SERVER_ERROR, "Search failed")

    return ManyChatResponse(success=True, results=[SearchHit(**hit) for hit in hits])
