"""
Tenant context management using contextvars for thread-safe async operations.

An organization is the tenant boundary. The context is resolved from the
request host (subdomain or custom domain) by the tenant middleware and is
cleared once the request finishes.
"""
from contextvars import ContextVar
from dataclasses import dataclass
from enum import Enum
from ipaddress import ip_address
from typing import Iterable, Optional, Tuple
import re


@dataclass(frozen=True)
class TenantContext:
    """Immutable tenant context for the current request."""
    organization_id: str
    organization_slug: str
    custom_domain: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        """Check if tenant context has all required fields."""
        return bool(self.organization_id and self.organization_slug)


class HostKind(str, Enum):
    """How a request host identifies its organization."""
    SUBDOMAIN = "subdomain"
    CUSTOM_DOMAIN = "custom_domain"


# Context variable for tenant - thread-safe for async operations
_current_tenant: ContextVar[Optional[TenantContext]] = ContextVar(
    "current_tenant", default=None
)


def get_current_tenant() -> Optional[TenantContext]:
    """
    Get the current tenant context.

    Returns:
        TenantContext if set, None otherwise.
    """
    return _current_tenant.get()


def set_current_tenant(tenant: Optional[TenantContext]) -> None:
    """
    Set the current tenant context.

    Args:
        tenant: TenantContext to set, or None to clear.
    """
    _current_tenant.set(tenant)


def normalize_host(host: str) -> str:
    """Lowercase a host header value and strip its port."""
    if not host:
        return ""
    host = host.strip().lower()
    if host.startswith("["):
        # IPv6 literal, e.g. "[::1]:8000"
        return host.split("]")[0] + "]"
    return host.split(":")[0].rstrip(".")


def classify_host(
    host: str,
    root_domain: str,
    platform_hosts: Iterable[str] = (),
) -> Optional[Tuple[HostKind, str]]:
    """
    Decide how a request host maps to an organization.

    Returns:
        (HostKind.SUBDOMAIN, label) for any host under the root domain or
        ".localhost" (the label is not checked here and may not be a slug),
        (HostKind.CUSTOM_DOMAIN, host) for any foreign host,
        None for the root domain, platform hosts and IP addresses.
    """
    host = normalize_host(host)
    if not host:
        return None

    root_domain = root_domain.lower()
    if host == root_domain or host in {h.lower() for h in platform_hosts}:
        return None
    if _is_ip_address(host):
        return None

    for suffix in (".localhost", f".{root_domain}"):
        if host.endswith(suffix):
            return HostKind.SUBDOMAIN, host[:-len(suffix)]

    return HostKind.CUSTOM_DOMAIN, host


def is_valid_slug(slug: str) -> bool:
    """
    Validate slug format.

    Valid slugs:
    - Lowercase alphanumeric and hyphens only
    - Cannot start or end with hyphen
    - 1-63 characters
    """
    if not slug or len(slug) > 63:
        return False

    # RFC 1123 compliant label
    pattern = r'^[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?$'
    return bool(re.match(pattern, slug))


def _is_ip_address(host: str) -> bool:
    try:
        ip_address(host.strip("[]"))
    except ValueError:
        return False
    return True
