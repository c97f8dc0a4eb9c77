"""
Tenant resolution strategy chain.

For every inbound request the resolver tries, in order:

1. the request host's subdomain, looked up in the tenant registry and only
   accepted while the tenant and its subscription are active;
2. the tenant claim of the caller's verified bearer token;
3. an explicit tenant header, for machine-to-machine callers.

The first strategy that yields a well-formed identity wins. Malformed values
count as absent and resolution falls through to the next strategy.
"""

import uuid
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol, Sequence

from inventory_hub.monitoring import get_metrics
from inventory_hub.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ResolvedTenant:
    """Outcome of a successful resolution."""
    tenant_id: uuid.UUID
    strategy: str


class SubdomainLookup(Protocol):
    """The part of the tenant registry the subdomain strategy needs."""

    def get_by_subdomain(self, subdomain: str) -> Optional[Any]:
        ...


def parse_tenant_id(value: Any) -> Optional[uuid.UUID]:
    """Parse a tenant identity, returning None for anything malformed."""
    if value is None:
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value).strip())
    except (ValueError, AttributeError, TypeError):
        return None


def extract_subdomain(host: Optional[str]) -> Optional[str]:
    """
    Extract the candidate subdomain from a host.

    Example: acme.inventoryhub.com -> acme. Hosts with two labels or fewer
    (inventoryhub.com, localhost) carry no subdomain.
    """
    if not host:
        return None

    hostname = host.strip().lower()
    # Drop the port; bracketed IPv6 literals never carry a subdomain
    if hostname.startswith("["):
        return None
    hostname = hostname.split(":", 1)[0]

    parts = hostname.split(".")
    if len(parts) > 2 and parts[0]:
        return parts[0]
    return None


class ResolutionStrategy:
    """One link of the resolution chain."""

    name = "base"

    def resolve(
        self,
        host: Optional[str],
        claims: Optional[Mapping[str, Any]],
        headers: Mapping[str, str],
    ) -> Optional[uuid.UUID]:
        raise NotImplementedError


class SubdomainStrategy(ResolutionStrategy):
    """Resolve from the request host against the tenant registry."""

    name = "subdomain"

    def __init__(self, registry: SubdomainLookup):
        self.registry = registry

    def resolve(self, host, claims, headers):
        subdomain = extract_subdomain(host)
        if not subdomain:
            return None

        tenant = self.registry.get_by_subdomain(subdomain)
        if tenant is None:
            logger.debug(f"No tenant registered for subdomain '{subdomain}'")
            return None

        if not tenant.is_subscription_active():
            logger.info(
                f"Subdomain '{subdomain}' belongs to inactive or expired tenant {tenant.id}, "
                f"falling through"
            )
            return None

        return tenant.id


class ClaimStrategy(ResolutionStrategy):
    """Resolve from the tenant claim of an already verified credential."""

    name = "claim"

    def __init__(self, claim_name: str = "tenant_id"):
        self.claim_name = claim_name

    def resolve(self, host, claims, headers):
        if not claims:
            return None
        return parse_tenant_id(claims.get(self.claim_name))


class HeaderStrategy(ResolutionStrategy):
    """Resolve from an explicit tenant header."""

    name = "header"

    def __init__(self, header_name: str = "X-Tenant-Id"):
        self.header_name = header_name.lower()

    def resolve(self, host, claims, headers):
        if not headers:
            return None
        value = None
        for key, header_value in headers.items():
            if key.lower() == self.header_name:
                value = header_value
                break
        return parse_tenant_id(value)


class TenantResolver:
    """
    Ordered strategy chain deriving the tenant of a request.

    Usage:
        resolver = TenantResolver.default(registry)
        resolved = resolver.resolve(request.url.hostname, claims, request.headers)
    """

    def __init__(self, strategies: Sequence[ResolutionStrategy]):
        self.strategies = list(strategies)

    @classmethod
    def default(
        cls,
        registry: SubdomainLookup,
        claim_name: str = "tenant_id",
        header_name: str = "X-Tenant-Id",
    ) -> "TenantResolver":
        return cls([
            SubdomainStrategy(registry),
            ClaimStrategy(claim_name),
            HeaderStrategy(header_name),
        ])

    def resolve(
        self,
        host: Optional[str],
        claims: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Optional[ResolvedTenant]:
        """Return the first strategy's answer, or None when unresolved."""
        headers = headers or {}
        metrics = get_metrics()

        for strategy in self.strategies:
            tenant_id = strategy.resolve(host, claims, headers)
            if tenant_id is not None:
                logger.debug(f"Resolved tenant {tenant_id} via {strategy.name}")
                metrics.tenant_resolutions.labels(outcome=strategy.name).inc()
                return ResolvedTenant(tenant_id=tenant_id, strategy=strategy.name)

        metrics.tenant_resolutions.labels(outcome="unresolved").inc()
        return None
