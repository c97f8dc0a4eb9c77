"""
SQLAlchemy database models for multi-tenant InventoryHub.

Models:
- Tenant: Registry record with subscription tier and limits
- User, Role, UserRole: Tenant members and their permissions
- Category, Supplier, Location, Product: Catalog
- Customer, Order, OrderItem: Sales
- StockMovement: Stock changes
- Alert, Webhook: Notifications configured per tenant
- AuditLog: Append-only mutation trail
"""

from .base import (
    Base,
    TimestampMixin,
    SoftDeleteMixin,
    TenantScopedMixin,
    AuditableMixin,
    TenantEntity,
)
from .tenant import Tenant, SubscriptionTier, TierLimits
from .user import User, Role, UserRole
from .catalog import Category, Supplier, Location, Product
from .sales import Customer, Order, OrderItem, OrderStatus
from .stock import StockMovement, MovementType
from .alert import Alert, AlertType, AlertPriority, Webhook
from .audit_log import AuditLog, AuditAction, SYSTEM_ACTOR

__all__ = [
    "Base",
    "TimestampMixin",
    "SoftDeleteMixin",
    "TenantScopedMixin",
    "AuditableMixin",
    "TenantEntity",
    "Tenant",
    "SubscriptionTier",
    "TierLimits",
    "User",
    "Role",
    "UserRole",
    "Category",
    "Supplier",
    "Location",
    "Product",
    "Customer",
    "Order",
    "OrderItem",
    "OrderStatus",
    "StockMovement",
    "MovementType",
    "Alert",
    "AlertType",
    "AlertPriority",
    "Webhook",
    "AuditLog",
    "AuditAction",
    "SYSTEM_ACTOR",
]
