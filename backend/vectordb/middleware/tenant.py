"""
Tenant resolution middleware for FastAPI.

Resolves the organization from the request host (subdomain or custom
domain) and sets the tenant context for the duration of each request.
"""
from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from typing import Callable, Optional, Set
import logging

from vectordb.core.config import settings
from vectordb.core.tenant import (
    HostKind,
    TenantContext,
    classify_host,
    is_valid_slug,
    set_current_tenant,
)
from vectordb.db.platform import PlatformError
from vectordb.models.organization import Organization

logger = logging.getLogger(__name__)


class TenantMiddleware(BaseHTTPMiddleware):
    """
    Middleware to resolve the organization from the host header.

    Hosts owned by the platform itself carry no tenant; credentials then
    decide the organization. A host that names an unknown organization
    gets a 404 before any route runs.
    """

    # Paths that don't require tenant context
    EXCLUDED_PATHS: Set[str] = {
        "/health",
        "/healthz",
        "/ready",
        "/docs",
        "/redoc",
        "/openapi.json",
    }

    def __init__(self, app, root_domain: Optional[str] = None, platform_hosts=None):
        """
        Initialize tenant middleware.

        Args:
            app: The FastAPI application
            root_domain: Root domain for subdomain extraction (default from settings)
            platform_hosts: Hosts never treated as custom domains (default from settings)
        """
        super().__init__(app)
        self.root_domain = root_domain or settings.ROOT_DOMAIN
        self.platform_hosts = platform_hosts if platform_hosts is not None else settings.PLATFORM_HOSTS

    async def dispatch(
        self, request: Request, call_next: Callable
    ) -> Response:
        if request.url.path in self.EXCLUDED_PATHS:
            return await call_next(request)

        host = request.headers.get("host", "")
        classified = classify_host(host, self.root_domain, self.platform_hosts)
        if classified is None:
            return await call_next(request)

        kind, value = classified
        try:
            tenant_context = await self._resolve_tenant(request, kind, value)
        except PlatformError as e:
            logger.error(f"Error resolving organization for host '{host}': {e}", exc_info=True)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"detail": "Error resolving organization"},
            )

        if tenant_context is None:
            logger.info(f"No organization for host '{host}'")
            return JSONResponse(
                status_code=status.HTTP_404_NOT_FOUND,
                content={"detail": "Organization not found"},
            )

        set_current_tenant(tenant_context)
        request.state.tenant = tenant_context

        try:
            response = await call_next(request)

            response.headers["X-Organization-Id"] = tenant_context.organization_id
            response.headers["X-Organization-Slug"] = tenant_context.organization_slug

            return response
        finally:
            # Always clear tenant context after request
            set_current_tenant(None)

    async def _resolve_tenant(
        self, request: Request, kind: HostKind, value: str
    ) -> Optional[TenantContext]:
        """
        Look up the organization named by the host.

        Returns:
            TenantContext, or None when no organization matches.
        """
        platform = request.app.state.platform

        if kind == HostKind.SUBDOMAIN:
            if not is_valid_slug(value):
                return None
            organization = await platform.fetch_one(Organization, {"slug": value})
        else:
            organization = await platform.fetch_one(Organization, {"custom_domain": value})

        if not organization:
            return None

        return TenantContext(
            organization_id=str(organization.id),
            organization_slug=organization.slug,
            custom_domain=organization.custom_domain,
        )


def get_tenant_from_request(request: Request) -> Optional[TenantContext]:
    """Tenant resolved from the host, or None on platform hosts."""
    return getattr(request.state, "tenant", None)
