"""
Document management and search API endpoints.
"""
from fastapi import APIRouter, HTTPException, Depends, Query, Response, status
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from uuid import UUID
from datetime import datetime
import logging

from vectordb.api.deps import Principal, require_capability
from vectordb.api.schemas import ErrorResponse
from vectordb.core.config import settings
from vectordb.core.permissions import Action
from vectordb.db.platform import PlatformClient, PlatformError, get_platform
from vectordb.services.document_service import DocumentService

logger = logging.getLogger(__name__)

router = APIRouter()


# Schemas

class CategoryRef(BaseModel):
    id: str
    name: str
    color: str = Field(examples=["#6366f1"])


class DocumentResponse(BaseModel):
    """Document with its categories."""
    id: str = Field(examples=["a1b2c3d4-e5f6-7890-abcd-ef1234567890"])
    organization_id: str
    collection_id: Optional[str] = None
    title: str = Field(examples=["Return policy"])
    content: str = Field(examples=["Items can be returned within 30 days."])
    external_id: Optional[str] = Field(default=None, examples=["sku-1234"])
    metadata: Dict[str, Any] = Field(default_factory=dict)
    categories: List[CategoryRef] = Field(default_factory=list)
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DocumentListResponse(BaseModel):
    """Page of documents."""
    documents: List[DocumentResponse]
    total: int = Field(examples=[42])
    page: int = Field(examples=[1])
    limit: int = Field(examples=[20])


class CreateDocumentRequest(BaseModel):
    """Request to create a document."""
    title: str = Field(min_length=1, max_length=500, examples=["Return policy"])
    content: str = Field(min_length=1, examples=["Items can be returned within 30 days."])
    collection_id: Optional[UUID] = None
    external_id: Optional[str] = Field(default=None, max_length=255)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    categories: List[UUID] = Field(default_factory=list)


class UpdateDocumentRequest(BaseModel):
    """Request to update a document; omitted fields keep their value."""
    title: Optional[str] = Field(default=None, min_length=1, max_length=500)
    content: Optional[str] = Field(default=None, min_length=1)
    collection_id: Optional[UUID] = None
    external_id: Optional[str] = Field(default=None, max_length=255)
    metadata: Optional[Dict[str, Any]] = None
    categories: Optional[List[UUID]] = None


class BatchCreateRequest(BaseModel):
    documents: List[CreateDocumentRequest] = Field(min_length=1)


class BatchCreateResponse(BaseModel):
    documents: List[DocumentResponse]
    count: int


class SearchRequest(BaseModel):
    """Similarity search request."""
    query: str = Field(min_length=1, examples=["How do I return an item?"])
    collection_id: Optional[UUID] = None
    category_ids: Optional[List[UUID]] = None
    limit: int = Field(default=settings.SEARCH_DEFAULT_LIMIT, ge=1, le=50)
    threshold: float = Field(default=settings.SEARCH_DEFAULT_THRESHOLD, ge=0.0, le=1.0)


class SearchHit(BaseModel):
    id: str
    title: str
    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    similarity: float = Field(examples=[0.83])


class SearchResponse(BaseModel):
    query: str
    results: List[SearchHit]
    count: int


def _service(principal: Principal, platform: PlatformClient) -> DocumentService:
    return DocumentService(platform, principal.organization_id, user_id=principal.user_id)


def _platform_failure(message: str, e: PlatformError) -> HTTPException:
    logger.error(f"{message}: {e}", exc_info=True)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=message,
    )


# Endpoints

@router.get("", response_model=DocumentListResponse)
async def list_documents(
    collection_id: Optional[UUID] = None,
    category_id: Optional[UUID] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    principal: Principal = Depends(require_capability(Action.VIEW)),
    platform: PlatformClient = Depends(get_platform),
):
    """
    List the organization's documents, newest first.

    Optionally filtered by collection or category.
    """
    documents, total = await _service(principal, platform).list_documents(
        collection_id=collection_id,
        category_id=category_id,
        page=page,
        limit=limit,
    )
    return DocumentListResponse(
        documents=[DocumentResponse(**doc) for doc in documents],
        total=total,
        page=page,
        limit=limit,
    )


@router.post(
    "",
    response_model=DocumentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def create_document(
    request: CreateDocumentRequest,
    principal: Principal = Depends(require_capability(Action.EDIT)),
    platform: PlatformClient = Depends(get_platform),
):
    """
    Create a document.

    Counts against the plan's record limit. The embedding is generated
    by the database.
    """
    try:
        document = await _service(principal, platform).create_document(
            title=request.title,
            content=request.content,
            collection_id=request.collection_id,
            external_id=request.external_id,
            metadata=request.metadata,
            categories=request.categories,
        )
    except PlatformError as e:
        raise _platform_failure("Failed to create document", e)

    return DocumentResponse(**document)


@router.post(
    "/search",
    response_model=SearchResponse,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def search_documents(
    request: SearchRequest,
    principal: Principal = Depends(require_capability(Action.SEARCH)),
    platform: PlatformClient = Depends(get_platform),
):
    """
    Semantic search over the organization's documents.

    Counts against the plan's monthly query limit.
    """
    try:
        hits = await _service(principal, platform).search(
            query=request.query,
            collection_id=request.collection_id,
            category_ids=request.category_ids,
            limit=request.limit,
            threshold=request.threshold,
        )
    except PlatformError as e:
        raise _platform_failure("Search failed", e)

    return SearchResponse(
        query=request.query,
        results=[SearchHit(**hit) for hit in hits],
        count=len(hits),
    )


@router.post(
    "/batch",
    response_model=BatchCreateResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def batch_create_documents(
    request: BatchCreateRequest,
    principal: Principal = Depends(require_capability(Action.EDIT)),
    platform: PlatformClient = Depends(get_platform),
):
    """
    Create many documents in one request.

    The whole batch must fit in the remaining record quota.
    """
    try:
        documents = await _service(principal, platform).batch_create_documents(
            [item.model_dump() for item in request.documents]
        )
    except PlatformError as e:
        raise _platform_failure("Failed to create documents", e)

    return BatchCreateResponse(
        documents=[DocumentResponse(**doc) for doc in documents],
        count=len(documents),
    )


@router.get("/{document_id}", response_model=DocumentResponse, responses={404: {"model": ErrorResponse}})
async def get_document(
    document_id: str,
    principal: Principal = Depends(require_capability(Action.VIEW)),
    platform: PlatformClient = Depends(get_platform),
):
    """Get a single document."""
    document = await _service(principal, platform).get_document(document_id)
    return DocumentResponse(**document)


@router.put(
    "/{document_id}",
    response_model=DocumentResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def update_document(
    document_id: str,
    request: UpdateDocumentRequest,
    principal: Principal = Depends(require_capability(Action.EDIT)),
    platform: PlatformClient = Depends(get_platform),
):
    """Update a document. Changing the content regenerates its embedding."""
    try:
        document = await _service(principal, platform).update_document(
            document_id,
            title=request.title,
            content=request.content,
            collection_id=request.collection_id,
            external_id=request.external_id,
            metadata=request.metadata,
            categories=request.categories,
        )
    except PlatformError as e:
        raise _platform_failure("Failed to update document", e)

    return DocumentResponse(**document)


@router.delete(
    "/{document_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
)
async def delete_document(
    document_id: str,
    principal: Principal = Depends(require_capability(Action.DELETE)),
    platform: PlatformClient = Depends(get_platform),
):
    """Delete a document. Frees one record in the current month's usage."""
    try:
        await _service(principal, platform).delete_document(document_id)
    except PlatformError as e:
        raise _platform_failure("Failed to delete document", e)

    return Response(status_code=status.HTTP_204_NO_CONTENT)
