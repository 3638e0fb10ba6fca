"""
Collection management API endpoints.
"""
from fastapi import APIRouter, HTTPException, Depends, Response, status
from pydantic import BaseModel, Field
from typing import List, Optional
from uuid import UUID
from datetime import datetime
import logging

from vectordb.api.deps import Principal, require_capability
from vectordb.api.schemas import ErrorResponse
from vectordb.core.permissions import Action
from vectordb.db.platform import PlatformClient, get_platform
from vectordb.models.document import Collection, Document

logger = logging.getLogger(__name__)

router = APIRouter()


class CollectionResponse(BaseModel):
    id: str
    name: str = Field(examples=["Help center"])
    description: Optional[str] = None
    document_count: Optional[int] = None
    created_at: Optional[datetime] = None


class CreateCollectionRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255, examples=["Help center"])
    description: Optional[str] = None


class UpdateCollectionRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None


def _collection_to_response(collection: Collection, document_count: Optional[int] = None) -> CollectionResponse:
    return CollectionResponse(
        id=str(collection.id),
        name=collection.name,
        description=collection.description,
        document_count=document_count,
        created_at=collection.created_at,
    )


async def _get_owned_collection(
    platform: PlatformClient, principal: Principal, collection_id: str
) -> Collection:
    collection = None
    try:
        collection = await platform.fetch_one(
            Collection,
            {"id": UUID(collection_id), "organization_id": UUID(principal.organization_id)},
        )
    except ValueError:
        pass
    if not collection:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Collection not found",
        )
    return collection


@router.get("", response_model=List[CollectionResponse])
async def list_collections(
    principal: Principal = Depends(require_capability(Action.VIEW)),
    platform: PlatformClient = Depends(get_platform),
):
    """List the organization's collections by name."""
    collections = await platform.fetch_all(
        Collection,
        {"organization_id": UUID(principal.organization_id)},
        order_by="name",
    )
    return [_collection_to_response(c) for c in collections]


@router.post("", response_model=CollectionResponse, status_code=status.HTTP_201_CREATED)
async def create_collection(
    request: CreateCollectionRequest,
    principal: Principal = Depends(require_capability(Action.EDIT)),
    platform: PlatformClient = Depends(get_platform),
):
    collection = await platform.insert(
        Collection(
            organization_id=UUID(principal.organization_id),
            name=request.name.strip(),
            description=request.description,
        )
    )
    logger.info(f"Created collection {collection.id}")
    return _collection_to_response(collection, document_count=0)


@router.get("/{collection_id}", response_model=CollectionResponse, responses={404: {"model": ErrorResponse}})
async def get_collection(
    collection_id: str,
    principal: Principal = Depends(require_capability(Action.VIEW)),
    platform: PlatformClient = Depends(get_platform),
):
    """Get a collection with its document count."""
    collection = await _get_owned_collection(platform, principal, collection_id)
    document_count = await platform.count(
        Document,
        {"organization_id": collection.organization_id, "collection_id": collection.id},
    )
    return _collection_to_response(collection, document_count=document_count)


@router.put("/{collection_id}", response_model=CollectionResponse, responses={404: {"model": ErrorResponse}})
async def update_collection(
    collection_id: str,
    request: UpdateCollectionRequest,
    principal: Principal = Depends(require_capability(Action.EDIT)),
    platform: PlatformClient = Depends(get_platform),
):
    collection = await _get_owned_collection(platform, principal, collection_id)

    values = request.model_dump(exclude_none=True)
    if not values:
        return _collection_to_response(collection)

    updated = await platform.update(
        Collection,
        {"id": collection.id, "organization_id": collection.organization_id},
        values,
    )
    return _collection_to_response(updated or collection)


@router.delete("/{collection_id}", status_code=status.HTTP_204_NO_CONTENT, responses={404: {"model": ErrorResponse}})
async def delete_collection(
    collection_id: str,
    principal: Principal = Depends(require_capability(Action.DELETE)),
    platform: PlatformClient = Depends(get_platform),
):
    """Delete a collection. Its documents stay, detached from it."""
    collection = await _get_owned_collection(platform, principal, collection_id)
    await platform.delete(
        Collection, {"id": collection.id, "organization_id": collection.organization_id}
    )
    logger.info(f"Deleted collection {collection.id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
