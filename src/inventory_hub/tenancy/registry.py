"""
Tenant registry and subscription lifecycle.

The registry works on an unscoped session: it looks tenants up across the
whole registry (subdomain resolution, signup) and is the only code that
creates, upgrades, extends or deactivates Tenant rows.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_hub.database.models import SubscriptionTier, Tenant
from inventory_hub.tenancy.quota import QuotaEnforcer, ResourceKind
from inventory_hub.tenancy.rate_limiter import FixedWindowRateLimiter
from inventory_hub.utils import utcnow
from inventory_hub.utils.config import get_config
from inventory_hub.utils.exceptions import NotFoundError, TierChangeError, ValidationError
from inventory_hub.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class TenantUsage:
    """Current consumption of a tenant against its tier limits."""
    tenant_id: uuid.UUID
    tier: SubscriptionTier
    users: int
    products: int
    api_calls_this_minute: int
    max_users: Optional[int]
    max_products: Optional[int]
    api_rate_limit: int
    subscription_expires_at: datetime

    def to_dict(self) -> dict:
        return {
            "tenant_id": str(self.tenant_id),
            "tier": self.tier.value,
            "users": {"current": self.users, "limit": self.max_users},
            "products": {"current": self.products, "limit": self.max_products},
            "api_calls_per_minute": {
                "current": self.api_calls_this_minute,
                "limit": self.api_rate_limit,
            },
            "subscription_expires_at": self.subscription_expires_at.isoformat(),
        }


class TenantRegistry:
    """
    Registry of tenants and their subscriptions.

    Every mutating method commits its own transaction.
    """

    def __init__(self, session: Session):
        self.db = session
        self.config = get_config()

    # =========================================================================
    # Lookup
    # =========================================================================

    def get(self, tenant_id) -> Optional[Tenant]:
        """Tenant by id, including inactive and deactivated ones."""
        try:
            tenant_id = tenant_id if isinstance(tenant_id, uuid.UUID) else uuid.UUID(str(tenant_id))
        except ValueError:
            return None
        return self.db.get(Tenant, tenant_id)

    def get_by_subdomain(self, subdomain: str) -> Optional[Tenant]:
        """Active, non-deleted tenant registered under subdomain."""
        if not subdomain:
            return None
        statement = select(Tenant).where(
            Tenant.subdomain == subdomain.strip().lower(),
            Tenant.is_active.is_(True),
            Tenant.is_deleted.is_(False),
        )
        return self.db.scalars(statement).first()

    def _require(self, tenant_id) -> Tenant:
        tenant = self.get(tenant_id)
        if tenant is None or tenant.is_deleted:
            raise NotFoundError("Tenant", tenant_id)
        return tenant

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def create_tenant(
        self,
        name: str,
        subdomain: str,
        admin_email: str,
        tier: SubscriptionTier = SubscriptionTier.FREE,
        company_phone: Optional[str] = None,
    ) -> Tenant:
        """
        Sign up a new tenant.

        Args:
            name: Company name
            subdomain: Requested subdomain, stored lower-cased
            admin_email: Contact address of the signing administrator
            tier: Initial subscription tier

        Raises:
            ValidationError: Subdomain missing or already taken
        """
        normalized = (subdomain or "").strip().lower()
        if not normalized:
            raise ValidationError("Subdomain is required", field="subdomain")

        taken = self.db.scalars(select(Tenant.id).where(Tenant.subdomain == normalized)).first()
        if taken is not None:
            raise ValidationError("Subdomain already taken", field="subdomain", value=normalized)

        tier = SubscriptionTier(tier)
        tenant_id = uuid.uuid4()
        tenant = Tenant(
            id=tenant_id,
            name=name,
            subdomain=normalized,
            connection_string=self.config.tenant_connection_template.format(tenant_id=tenant_id),
            company_email=admin_email,
            company_phone=company_phone,
            subscription_tier=tier,
            subscription_expires_at=utcnow() + timedelta(days=self.config.subscription_term_days),
            is_active=True,
            created_by=admin_email,
        )
        tenant.update_limits_based_on_tier()

        self.db.add(tenant)
        self.db.commit()
        self.db.refresh(tenant)

        logger.info(f"Created tenant {tenant.id} ({normalized}) on tier {tier.value}")
        return tenant

    def upgrade_tier(self, tenant_id, new_tier: SubscriptionTier, actor_id: Optional[str] = None) -> Tenant:
        """
        Move a tenant to a strictly higher tier; limits apply immediately.

        Raises:
            TierChangeError: new_tier is the same as or lower than the current tier
        """
        tenant = self._require(tenant_id)
        new_tier = SubscriptionTier(new_tier)
        old_tier = tenant.subscription_tier

        if new_tier <= old_tier:
            raise TierChangeError(old_tier.value, new_tier.value)

        tenant.subscription_tier = new_tier
        tenant.update_limits_based_on_tier()
        tenant.updated_at = utcnow()
        tenant.updated_by = actor_id

        self.db.commit()
        logger.info(f"Tenant {tenant.id} upgraded from {old_tier.value} to {new_tier.value}")
        return tenant

    def extend_subscription(self, tenant_id, days: int, actor_id: Optional[str] = None) -> Tenant:
        """Extend from the later of now and the current expiry."""
        if days <= 0:
            raise ValidationError("Extension must be a positive number of days", field="days", value=days)

        tenant = self._require(tenant_id)
        now = utcnow()
        start = max(now, tenant.subscription_expires_at or now)
        tenant.subscription_expires_at = start + timedelta(days=days)
        tenant.updated_at = now
        tenant.updated_by = actor_id

        self.db.commit()
        logger.info(f"Tenant {tenant.id} subscription extended to {tenant.subscription_expires_at.isoformat()}")
        return tenant

    def deactivate(self, tenant_id, actor_id: Optional[str] = None) -> Tenant:
        """Soft delete a tenant; its rows stay in place but become unreachable."""
        tenant = self._require(tenant_id)
        now = utcnow()
        tenant.is_active = False
        tenant.is_deleted = True
        tenant.deleted_at = now
        tenant.deleted_by = actor_id

        self.db.commit()
        logger.warning(f"Tenant {tenant.id} deactivated by {actor_id or 'System'}")
        return tenant

    # =========================================================================
    # Usage
    # =========================================================================

    def get_usage(self, tenant_id, rate_limiter: Optional[FixedWindowRateLimiter] = None) -> TenantUsage:
        """Current users, products and API calls of a tenant against its limits."""
        tenant = self._require(tenant_id)
        counter = QuotaEnforcer(self.db)
        limits = tenant.limits

        return TenantUsage(
            tenant_id=tenant.id,
            tier=tenant.subscription_tier,
            users=counter.count_active(tenant.id, ResourceKind.USER),
            products=counter.count_active(tenant.id, ResourceKind.PRODUCT),
            api_calls_this_minute=rate_limiter.peek(tenant.id) if rate_limiter else 0,
            max_users=limits.max_users,
            max_products=limits.max_products,
            api_rate_limit=limits.api_rate_limit,
            subscription_expires_at=tenant.subscription_expires_at,
        )
