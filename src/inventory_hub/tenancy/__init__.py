"""
Tenant context and isolation engine.

Components:
- TenantResolver: derives the tenant of a request (subdomain, claim, header)
- TenantContext: request-scoped, single-write tenant identity
- TenantSession / IsolationGate: tenant filtering and stamping in the ORM
- QuotaEnforcer / FixedWindowRateLimiter: tier limits and API rate limits
- AuditRecorder: audit trail written in the same flush as the change
- TenantRegistry: tenant signup and subscription lifecycle
"""

from .context import TenantContext
from .resolver import TenantResolver, ResolvedTenant, extract_subdomain, parse_tenant_id
from .rate_limiter import (
    FixedWindowRateLimiter,
    InMemoryCounterBackend,
    RedisCounterBackend,
    RateLimitResult,
    create_rate_limiter,
)
from .quota import QuotaEnforcer, QuotaDecision, ResourceKind
from .isolation import IsolationGate, soft_delete
from .audit import AuditRecorder, serialize_value
from .session import TenantSession
from .registry import TenantRegistry, TenantUsage

__all__ = [
    "TenantContext",
    "TenantResolver",
    "ResolvedTenant",
    "extract_subdomain",
    "parse_tenant_id",
    "FixedWindowRateLimiter",
    "InMemoryCounterBackend",
    "RedisCounterBackend",
    "RateLimitResult",
    "create_rate_limiter",
    "QuotaEnforcer",
    "QuotaDecision",
    "ResourceKind",
    "IsolationGate",
    "soft_delete",
    "AuditRecorder",
    "serialize_value",
    "TenantSession",
    "TenantRegistry",
    "TenantUsage",
]
