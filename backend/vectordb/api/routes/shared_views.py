"""
Shared view management API endpoints.

A shared view is a named, filtered projection of the organization's
documents; public views are served by the routes in `public.py`.
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
from vectordb.models.access import SharedView
from vectordb.models.document import Category, Collection

logger = logging.getLogger(__name__)

router = APIRouter()

SLUG_PATTERN = r"^[a-z0-9-]+$"


class SharedViewResponse(BaseModel):
    id: str
    name: str = Field(examples=["Public FAQ"])
    slug: str = Field(examples=["public-faq"])
    collection_id: Optional[str] = None
    filter_categories: List[str] = Field(default_factory=list)
    is_public: bool
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None


class CreateSharedViewRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255, examples=["Public FAQ"])
    slug: str = Field(min_length=1, max_length=100, pattern=SLUG_PATTERN, examples=["public-faq"])
    collection_id: Optional[str] = None
    filter_categories: List[str] = Field(default_factory=list)
    is_public: bool = False


class UpdateSharedViewRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    slug: Optional[str] = Field(default=None, min_length=1, max_length=100, pattern=SLUG_PATTERN)
    collection_id: Optional[str] = None
    filter_categories: Optional[List[str]] = None
    is_public: Optional[bool] = None


def view_to_response(view: SharedView) -> SharedViewResponse:
    return SharedViewResponse(
        id=str(view.id),
        name=view.name,
        slug=view.slug,
        collection_id=str(view.collection_id) if view.collection_id else None,
        filter_categories=[str(c) for c in view.filter_categories or []],
        is_public=view.is_public,
        created_by=str(view.created_by) if view.created_by else None,
        created_at=view.created_at,
    )


def _parse_uuid(value: str, label: str) -> UUID:
    try:
        return UUID(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {label}: {value}",
        )


async def _validate_filters(
    platform: PlatformClient,
    organization_id: UUID,
    collection_id: Optional[str],
    filter_categories: Optional[List[str]],
) -> dict:
    """Resolve filter ids, rejecting any that belong to another organization."""
    values = {}

    if collection_id is not None:
        collection_uuid = _parse_uuid(collection_id, "collection id")
        collection = await platform.fetch_one(
            Collection, {"id": collection_uuid, "organization_id": organization_id}
        )
        if not collection:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Collection not found",
            )
        values["collection_id"] = collection_uuid

    if filter_categories is not None:
        category_uuids = list(dict.fromkeys(_parse_uuid(c, "category id") for c in filter_categories))
        if category_uuids:
            found = await platform.fetch_all(
                Category, {"id": category_uuids, "organization_id": organization_id}
            )
            if len(found) != len(category_uuids):
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="One or more categories not found",
                )
        values["filter_categories"] = category_uuids

    return values


async def _ensure_slug_available(
    platform: PlatformClient, organization_id: UUID, slug: str, exclude_id: Optional[UUID] = None
) -> None:
    existing = await platform.fetch_one(
        SharedView, {"organization_id": organization_id, "slug": slug}
    )
    if existing and existing.id != exclude_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A shared view with this slug already exists",
        )


async def _get_owned_view(
    platform: PlatformClient, principal: Principal, view_id: str
) -> SharedView:
    view = None
    try:
        view = await platform.fetch_one(
            SharedView,
            {"id": UUID(view_id), "organization_id": UUID(principal.organization_id)},
        )
    except ValueError:
        pass
    if not view:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Shared view not found",
        )
    return view


@router.get("", response_model=List[SharedViewResponse])
async def list_shared_views(
    principal: Principal = Depends(require_capability(Action.VIEW)),
    platform: PlatformClient = Depends(get_platform),
):
    views = await platform.fetch_all(
        SharedView,
        {"organization_id": UUID(principal.organization_id)},
        order_by="created_at",
        descending=True,
    )
    return [view_to_response(v) for v in views]


@router.post(
    "",
    response_model=SharedViewResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
async def create_shared_view(
    request: CreateSharedViewRequest,
    principal: Principal = Depends(require_capability(Action.EDIT)),
    platform: PlatformClient = Depends(get_platform),
):
    """
    Create a shared view.

    The slug must be unique within the organization.
    """
    organization_id = UUID(principal.organization_id)
    await _ensure_slug_available(platform, organization_id, request.slug)
    filters = await _validate_filters(
        platform, organization_id, request.collection_id, request.filter_categories
    )

    view = await platform.insert(
        SharedView(
            organization_id=organization_id,
            name=request.name.strip(),
            slug=request.slug,
            is_public=request.is_public,
            created_by=UUID(principal.user_id) if principal.user_id else None,
            **filters,
        )
    )
    logger.info(f"Created shared view {view.id} ({view.slug})")
    return view_to_response(view)


@router.get("/{view_id}", response_model=SharedViewResponse, responses={404: {"model": ErrorResponse}})
async def get_shared_view(
    view_id: str,
    principal: Principal = Depends(require_capability(Action.VIEW)),
    platform: PlatformClient = Depends(get_platform),
):
    view = await _get_owned_view(platform, principal, view_id)
    return view_to_response(view)


@router.put(
    "/{view_id}",
    response_model=SharedViewResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def update_shared_view(
    view_id: str,
    request: UpdateSharedViewRequest,
    principal: Principal = Depends(require_capability(Action.EDIT)),
    platform: PlatformClient = Depends(get_platform),
):
    view = await _get_owned_view(platform, principal, view_id)

    values = request.model_dump(
        exclude_none=True, exclude={"collection_id", "filter_categories"}
    )
    if "slug" in values and values["slug"] != view.slug:
        await _ensure_slug_available(platform, view.organization_id, values["slug"], exclude_id=view.id)
    values.update(
        await _validate_filters(
            platform, view.organization_id, request.collection_id, request.filter_categories
        )
    )
    if not values:
        return view_to_response(view)

    updated = await platform.update(
        SharedView,
        {"id": view.id, "organization_id": view.organization_id},
        values,
    )
    return view_to_response(updated or view)


@router.delete("/{view_id}", status_code=status.HTTP_204_NO_CONTENT, responses={404: {"model": ErrorResponse}})
async def delete_shared_view(
    view_id: str,
    principal: Principal = Depends(require_capability(Action.DELETE)),
    platform: PlatformClient = Depends(get_platform),
):
    view = await _get_owned_view(platform, principal, view_id)
    await platform.delete(
        SharedView, {"id": view.id, "organization_id": view.organization_id}
    )
    logger.info(f"Deleted shared view {view.id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
