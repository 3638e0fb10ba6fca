"""
Category management API endpoints.
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
from vectordb.models.document import Category

logger = logging.getLogger(__name__)

router = APIRouter()

COLOR_PATTERN = r"^#[0-9a-fA-F]{6}$"


class CategoryResponse(BaseModel):
    id: str
    name: str = Field(examples=["Billing"])
    color: str = Field(examples=["#6366f1"])
    created_at: Optional[datetime] = None


class CreateCategoryRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100, examples=["Billing"])
    color: str = Field(default="#6366f1", pattern=COLOR_PATTERN)


class UpdateCategoryRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    color: Optional[str] = Field(default=None, pattern=COLOR_PATTERN)


def _category_to_response(category: Category) -> CategoryResponse:
    return CategoryResponse(
        id=str(category.id),
        name=category.name,
        color=category.color,
        created_at=category.created_at,
    )


async def _get_owned_category(
    platform: PlatformClient, principal: Principal, category_id: str
) -> Category:
    category = None
    try:
        category = await platform.fetch_one(
            Category,
            {"id": UUID(category_id), "organization_id": UUID(principal.organization_id)},
        )
    except ValueError:
        pass
    if not category:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Category not found",
        )
    return category


@router.get("", response_model=List[CategoryResponse])
async def list_categories(
    principal: Principal = Depends(require_capability(Action.VIEW)),
    platform: PlatformClient = Depends(get_platform),
):
    """List the organization's categories by name."""
    categories = await platform.fetch_all(
        Category,
        {"organization_id": UUID(principal.organization_id)},
        order_by="name",
    )
    return [_category_to_response(c) for c in categories]


@router.post("", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(
    request: CreateCategoryRequest,
    principal: Principal = Depends(require_capability(Action.EDIT)),
    platform: PlatformClient = Depends(get_platform),
):
    category = await platform.insert(
        Category(
            organization_id=UUID(principal.organization_id),
            name=request.name.strip(),
            color=request.color,
        )
    )
    logger.info(f"Created category {category.id}")
    return _category_to_response(category)


@router.get("/{category_id}", response_model=CategoryResponse, responses={404: {"model": ErrorResponse}})
async def get_category(
    category_id: str,
    principal: Principal = Depends(require_capability(Action.VIEW)),
    platform: PlatformClient = Depends(get_platform),
):
    category = await _get_owned_category(platform, principal, category_id)
    return _category_to_response(category)


@router.put("/{category_id}", response_model=CategoryResponse, responses={404: {"model": ErrorResponse}})
async def update_category(
    category_id: str,
    request: UpdateCategoryRequest,
    principal: Principal = Depends(require_capability(Action.EDIT)),
    platform: PlatformClient = Depends(get_platform),
):
    category = await _get_owned_category(platform, principal, category_id)

    values = request.model_dump(exclude_none=True)
    if not values:
        return _category_to_response(category)

    updated = await platform.update(
        Category,
        {"id": category.id, "organization_id": category.organization_id},
        values,
    )
    return _category_to_response(updated or category)


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT, responses={404: {"model": ErrorResponse}})
async def delete_category(
    category_id: str,
    principal: Principal = Depends(require_capability(Action.DELETE)),
    platform: PlatformClient = Depends(get_platform),
):
    """Delete a category. Documents keep existing; only the links go."""
    category = await _get_owned_category(platform, principal, category_id)
    await platform.delete(
        Category, {"id": category.id, "organization_id": category.organization_id}
    )
    logger.info(f"Deleted category {category.id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
