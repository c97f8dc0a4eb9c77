"""
Subscription quota enforcement.

Three resources are limited per tenant, all derived from the subscription
tier:

- user: active (not soft-deleted) users
- product: active (not soft-deleted) products
- api_call_per_minute: requests in the current UTC minute

Count quotas are checked when the (N+1)-th row is about to be created, never
retroactively. A tenant that is already over its limit keeps its rows but
cannot create more until usage drops or the tier is upgraded.
"""

import enum
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from inventory_hub.database.models import Product, Tenant, User
from inventory_hub.monitoring import get_metrics
from inventory_hub.tenancy.rate_limiter import FixedWindowRateLimiter
from inventory_hub.utils.exceptions import ConfigurationError, NotFoundError, QuotaExceededError
from inventory_hub.utils.logger import get_logger

logger = get_logger(__name__)


class ResourceKind(str, enum.Enum):
    """Quota-limited resources."""
    USER = "user"
    PRODUCT = "product"
    API_CALL_PER_MINUTE = "api_call_per_minute"


_COUNTED_MODELS = {
    ResourceKind.USER: User,
    ResourceKind.PRODUCT: Product,
}


@dataclass(frozen=True)
class QuotaDecision:
    """
    Result of a quota check.

    ``limit`` is None when the tier puts no ceiling on the resource.
    """
    allowed: bool
    resource: ResourceKind
    current: int
    limit: Optional[int]
    reset_at: Optional[int] = None
    retry_after: Optional[int] = None

    def to_error(self) -> QuotaExceededError:
        return QuotaExceededError(
            resource=self.resource.value,
            current=self.current,
            limit=self.limit,
            reset_at=self.reset_at,
            retry_after=self.retry_after,
        )


class QuotaEnforcer:
    """
    Checks a tenant's usage against its tier limits.

    Usage:
        enforcer = QuotaEnforcer(session)
        enforcer.enforce(tenant_id, ResourceKind.PRODUCT)   # raises when full
    """

    def __init__(self, session: Optional[Session] = None,
                 rate_limiter: Optional[FixedWindowRateLimiter] = None):
        self.session = session
        self.rate_limiter = rate_limiter

    def _require_session(self) -> Session:
        if self.session is None:
            raise ConfigurationError("QuotaEnforcer needs a database session for count quotas")
        return self.session

    def load_tenant(self, tenant_id: uuid.UUID) -> Tenant:
        tenant = self._require_session().get(Tenant, tenant_id)
        if tenant is None:
            raise NotFoundError("Tenant", tenant_id)
        return tenant

    def count_active(self, tenant_id: uuid.UUID, kind: ResourceKind) -> int:
        """Number of non-deleted rows of the resource owned by the tenant."""
        model = _COUNTED_MODELS[kind]
        statement = (
            select(func.count())
            .select_from(model)
            .where(model.tenant_id == tenant_id, model.is_deleted.is_(False))
        )
        session = self._require_session()
        with session.no_autoflush:
            return session.scalar(statement) or 0

    def check_quota(self, tenant_id: uuid.UUID, kind: ResourceKind, pending: int = 0) -> QuotaDecision:
        """
        Decide whether one more resource of ``kind`` may be created.

        Args:
            tenant_id: Tenant to check
            kind: Resource kind
            pending: Rows of the same kind already queued in the current save
                but not yet persisted

        For ``api_call_per_minute`` the check counts the call itself.
        """
        kind = ResourceKind(kind)
        tenant = self.load_tenant(tenant_id)
        limits = tenant.limits

        if kind is ResourceKind.API_CALL_PER_MINUTE:
            return self.check_rate(tenant_id, limits.api_rate_limit)

        limit = limits.max_users if kind is ResourceKind.USER else limits.max_products
        current = self.count_active(tenant_id, kind) + pending

        if limit is None:
            return QuotaDecision(allowed=True, resource=kind, current=current, limit=None)

        return QuotaDecision(allowed=current < limit, resource=kind, current=current, limit=limit)

    def check_rate(self, tenant_id: uuid.UUID, limit: int) -> QuotaDecision:
        """Count one API call against the tenant's per-minute limit."""
        if self.rate_limiter is None:
            raise ConfigurationError("QuotaEnforcer needs a rate limiter for API call quotas")

        result = self.rate_limiter.hit(tenant_id, limit)
        return QuotaDecision(
            allowed=result.allowed,
            resource=ResourceKind.API_CALL_PER_MINUTE,
            current=result.current,
            limit=result.limit,
            reset_at=result.reset_at,
            retry_after=result.retry_after,
        )

    def enforce(self, tenant_id: uuid.UUID, kind: ResourceKind, pending: int = 0) -> QuotaDecision:
        """Like check_quota, but raise QuotaExceededError on rejection."""
        decision = self.check_quota(tenant_id, kind, pending=pending)
        return self.raise_if_denied(tenant_id, decision)

    def enforce_rate(self, tenant_id: uuid.UUID, limit: int) -> QuotaDecision:
        """Like check_rate, but raise QuotaExceededError on rejection."""
        return self.raise_if_denied(tenant_id, self.check_rate(tenant_id, limit))

    def raise_if_denied(self, tenant_id: uuid.UUID, decision: QuotaDecision) -> QuotaDecision:
        if not decision.allowed:
            get_metrics().quota_rejections.labels(resource=decision.resource.value).inc()
            logger.warning(
                f"Quota exceeded for tenant {tenant_id}: "
                f"{decision.resource.value} {decision.current}/{decision.limit}"
            )
            raise decision.to_error()
        return decision
