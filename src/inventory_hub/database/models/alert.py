"""
Alert and webhook configuration models.

Delivery of alerts and webhooks happens outside the tenant engine; these rows
only have to stay inside their tenant's boundary.
"""

import enum

from sqlalchemy import Column, String, Boolean, DateTime, Integer, Text, Uuid, JSON, Enum as SQLEnum

from inventory_hub.utils import utcnow
from .base import Base, TenantEntity


class AlertType(str, enum.Enum):
    LOW_STOCK = "LOW_STOCK"
    OUT_OF_STOCK = "OUT_OF_STOCK"
    EXPIRY_WARNING = "EXPIRY_WARNING"
    ORDER_PENDING = "ORDER_PENDING"
    SECURITY = "SECURITY"
    SYSTEM = "SYSTEM"


class AlertPriority(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class Alert(Base, TenantEntity):
    """Notification raised for a tenant."""

    __tablename__ = "alerts"

    type = Column(SQLEnum(AlertType, name="alert_type"), nullable=False)
    priority = Column(SQLEnum(AlertPriority, name="alert_priority"), nullable=False, default=AlertPriority.MEDIUM)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    related_entity_id = Column(Uuid, nullable=True)
    related_entity_type = Column(String(100), nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    triggered_at = Column(DateTime, default=utcnow, nullable=False)


class Webhook(Base, TenantEntity):
    """Outbound webhook subscription."""

    __tablename__ = "webhooks"

    name = Column(String(200), nullable=False)
    url = Column(String(2048), nullable=False)
    events = Column(JSON, nullable=False, default=list)
    secret = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    retry_count = Column(Integer, default=3, nullable=False)
    timeout_seconds = Column(Integer, default=30, nullable=False)

    def __repr__(self):
        return f"<Webhook(id={self.id}, tenant_id={self.tenant_id}, url='{self.url[:50]}', active={self.is_active})>"
