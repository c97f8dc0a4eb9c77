"""
Tenant model - an isolated customer account and its subscription.
"""

import enum
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import Column, String, Boolean, DateTime, Integer, Enum as SQLEnum, Uuid

from inventory_hub.utils import utcnow
from .base import Base, SoftDeleteMixin, TimestampMixin


class SubscriptionTier(str, enum.Enum):
    """Subscription plans, ordered by level."""
    FREE = "FREE"
    STARTER = "STARTER"
    PROFESSIONAL = "PROFESSIONAL"
    ENTERPRISE = "ENTERPRISE"

    @property
    def level(self) -> int:
        return _TIER_ORDER.index(self)

    def __lt__(self, other):
        if not isinstance(other, SubscriptionTier):
            return NotImplemented
        return self.level < other.level

    def __le__(self, other):
        if not isinstance(other, SubscriptionTier):
            return NotImplemented
        return self.level <= other.level

    def __gt__(self, other):
        if not isinstance(other, SubscriptionTier):
            return NotImplemented
        return self.level > other.level

    def __ge__(self, other):
        if not isinstance(other, SubscriptionTier):
            return NotImplemented
        return self.level >= other.level


_TIER_ORDER = [
    SubscriptionTier.FREE,
    SubscriptionTier.STARTER,
    SubscriptionTier.PROFESSIONAL,
    SubscriptionTier.ENTERPRISE,
]


@dataclass(frozen=True)
class TierLimits:
    """
    Resource ceilings of a subscription tier.

    None means unbounded.
    """
    max_users: Optional[int]
    max_products: Optional[int]
    api_rate_limit: int

    @classmethod
    def for_tier(cls, tier: SubscriptionTier) -> "TierLimits":
        return _TIER_LIMITS.get(SubscriptionTier(tier), _TIER_LIMITS[SubscriptionTier.FREE])


_TIER_LIMITS = {
    SubscriptionTier.FREE: TierLimits(max_users=1, max_products=10, api_rate_limit=60),
    SubscriptionTier.STARTER: TierLimits(max_users=5, max_products=100, api_rate_limit=300),
    SubscriptionTier.PROFESSIONAL: TierLimits(max_users=25, max_products=1000, api_rate_limit=1000),
    SubscriptionTier.ENTERPRISE: TierLimits(max_users=None, max_products=None, api_rate_limit=5000),
}


class Tenant(Base, SoftDeleteMixin, TimestampMixin):
    """
    Tenant registry record.

    The limit columns are a cache of TierLimits.for_tier(subscription_tier)
    and are recomputed on every tier change.
    """

    __tablename__ = "tenants"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    name = Column(String(200), nullable=False)
    subdomain = Column(String(100), nullable=False, unique=True, index=True)
    connection_string = Column(String(500), nullable=False)

    company_email = Column(String(255), nullable=True)
    company_phone = Column(String(50), nullable=True)

    subscription_tier = Column(
        SQLEnum(SubscriptionTier, name="subscription_tier"),
        nullable=False,
        default=SubscriptionTier.FREE,
    )
    subscription_expires_at = Column(DateTime, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    max_users = Column(Integer, nullable=True)
    max_products = Column(Integer, nullable=True)
    api_rate_limit = Column(Integer, nullable=False, default=60)

    def __repr__(self):
        return f"<Tenant(id={self.id}, name='{self.name}', subdomain='{self.subdomain}')>"

    @property
    def limits(self) -> TierLimits:
        return TierLimits.for_tier(self.subscription_tier)

    def is_subscription_active(self, now: Optional[datetime] = None) -> bool:
        """Active flag set, not soft-deleted and not yet expired."""
        now = now or utcnow()
        return bool(
            self.is_active
            and not self.is_deleted
            and self.subscription_expires_at is not None
            and self.subscription_expires_at > now
        )

    def update_limits_based_on_tier(self) -> None:
        limits = self.limits
        self.max_users = limits.max_users
        self.max_products = limits.max_products
        self.api_rate_limit = limits.api_rate_limit
