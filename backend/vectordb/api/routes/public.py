"""
Public, unauthenticated access to shared views.

Mounted outside the API prefix:
    /shared/{slug}              organization taken from the host
    /shared/{org_slug}/{slug}   organization named in the path
"""
from fastapi import APIRouter, HTTPException, Depends, Request, status
from pydantic import BaseModel
from typing import List, Optional
from uuid import UUID
import logging

from vectordb.api.routes.documents import DocumentResponse
from vectordb.api.routes.shared_views import SharedViewResponse, view_to_response
from vectordb.api.schemas import ErrorResponse
from vectordb.db.platform import PlatformClient, get_platform
from vectordb.middleware.tenant import get_tenant_from_request
from vectordb.models.access import SharedView
from vectordb.models.organization import Organization
from vectordb.services.document_service import DocumentService

logger = logging.getLogger(__name__)

router = APIRouter()


class PublicOrganization(BaseModel):
    name: str
    slug: str
    logo_url: Optional[str] = None


class PublicSharedViewResponse(BaseModel):
    organization: PublicOrganization
    view: SharedViewResponse
    documents: List[DocumentResponse]


def _not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="Shared view not found",
    )


async def _render_view(
    platform: PlatformClient, organization: Optional[Organization], slug: str
) -> PublicSharedViewResponse:
    if not organization:
        raise _not_found()

    view = await platform.fetch_one(
        SharedView,
        {"organization_id": organization.id, "slug": slug, "is_public": True},
    )
    if not view:
        raise _not_found()

    documents = await DocumentService(platform, str(organization.id)).documents_for_view(view)
    return PublicSharedViewResponse(
        organization=PublicOrganization(
            name=organization.name,
            slug=organization.slug,
            logo_url=organization.logo_url,
        ),
        view=view_to_response(view),
        documents=[DocumentResponse(**doc) for doc in documents],
    )


@router.get("/{slug}", response_model=PublicSharedViewResponse, responses={404: {"model": ErrorResponse}})
async def get_shared_view_for_host(
    slug: str,
    request: Request,
    platform: PlatformClient = Depends(get_platform),
):
    """Public shared view of the organization serving this host."""
    tenant = get_tenant_from_request(request)
    if not tenant:
        raise _not_found()

    organization = await platform.fetch_one(
        Organization, {"id": UUID(tenant.organization_id)}
    )
    return await _render_view(platform, organization, slug)


@router.get("/{org_slug}/{slug}", response_model=PublicSharedViewResponse, responses={404: {"model": ErrorResponse}})
async def get_shared_view(
    org_slug: str,
    slug: str,
    platform: PlatformClient = Depends(get_platform),
):
    """Public shared view addressed by organization slug."""
    organization = await platform.fetch_one(Organization, {"slug": org_slug})
    return await _render_view(platform, organization, slug)
