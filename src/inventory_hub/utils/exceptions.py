"""
Custom exceptions for InventoryHub.

Defines the error taxonomy of the tenant engine: unresolved tenants, inactive
subscriptions, isolation violations, quota rejections and audit failures are
all distinct types so callers (and the error middleware) can tell them apart
from ordinary validation and not-found errors.
"""

from datetime import datetime
from typing import Optional, Dict, Any


class InventoryHubError(Exception):
    """Base exception for all InventoryHub errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize exception with message and optional details.

        Args:
            message: Error message
            details: Additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(InventoryHubError):
    """Raised when configuration is invalid or missing."""
    pass


class AuthenticationError(InventoryHubError):
    """Raised when authentication fails."""
    pass


class ValidationError(InventoryHubError):
    """Raised when data validation fails."""

    def __init__(self, message: str, field: Optional[str] = None,
                 value: Optional[Any] = None):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)

        super().__init__(message, details)
        self.field = field
        self.value = value


class NotFoundError(InventoryHubError):
    """Raised when a requested entity does not exist (or is not visible)."""

    def __init__(self, entity_type: str, entity_id: Optional[Any] = None):
        details = {"entity_type": entity_type}
        if entity_id is not None:
            details["entity_id"] = str(entity_id)

        super().__init__(f"{entity_type} not found", details)
        self.entity_type = entity_type
        self.entity_id = entity_id


class DatabaseError(InventoryHubError):
    """Raised when a database operation fails."""

    def __init__(self, message: str, operation: Optional[str] = None,
                 table: Optional[str] = None):
        details = {}
        if operation:
            details["operation"] = operation
        if table:
            details["table"] = table

        super().__init__(message, details)
        self.operation = operation
        self.table = table


class TenantResolutionError(InventoryHubError):
    """Raised when no strategy produced a valid, active tenant."""

    def __init__(self, message: str = "Unable to resolve tenant context",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class SubscriptionInactiveError(TenantResolutionError):
    """Raised when a tenant exists but is deactivated or its subscription expired."""

    def __init__(self, tenant_id: Any, expires_at: Optional[datetime] = None):
        details = {"tenant_id": str(tenant_id)}
        if expires_at is not None:
            details["expires_at"] = expires_at.isoformat()

        super().__init__("Tenant not found or subscription expired", details)
        self.tenant_id = tenant_id
        self.expires_at = expires_at


class TenantContextError(InventoryHubError):
    """
    Raised on misuse of the request tenant context.

    Reading the context before it was established, or binding it to a second
    tenant, is a programming error and must never fall back to a default.
    """
    pass


class IsolationViolationError(InventoryHubError):
    """Raised when an operation reaches outside the current tenant's boundary."""

    def __init__(self, message: str, operation: str,
                 entity_type: Optional[str] = None,
                 entity_id: Optional[Any] = None,
                 expected_tenant: Optional[Any] = None,
                 actual_tenant: Optional[Any] = None):
        details = {"operation": operation}
        if entity_type:
            details["entity_type"] = entity_type
        if entity_id is not None:
            details["entity_id"] = str(entity_id)
        if expected_tenant is not None:
            details["expected_tenant"] = str(expected_tenant)
        if actual_tenant is not None:
            details["actual_tenant"] = str(actual_tenant)

        super().__init__(message, details)
        self.operation = operation
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_tenant = expected_tenant
        self.actual_tenant = actual_tenant


class QuotaExceededError(InventoryHubError):
    """Raised when a tenant's usage would exceed its subscription limits."""

    def __init__(self, resource: str, current: int, limit: int,
                 reset_at: Optional[int] = None,
                 retry_after: Optional[int] = None):
        details = {"resource": resource, "current": current, "limit": limit}
        if reset_at is not None:
            details["reset_at"] = reset_at
        if retry_after is not None:
            details["retry_after"] = retry_after

        super().__init__(f"Quota exceeded for {resource}: {current}/{limit}", details)
        self.resource = resource
        self.current = current
        self.limit = limit
        self.reset_at = reset_at
        self.retry_after = retry_after


class TierChangeError(InventoryHubError):
    """Raised when a subscription tier change is not an upgrade."""

    def __init__(self, current_tier: str, requested_tier: str):
        super().__init__(
            "Can only upgrade to a higher tier",
            {"current_tier": current_tier, "requested_tier": requested_tier},
        )
        self.current_tier = current_tier
        self.requested_tier = requested_tier


class AuditRecordingError(InventoryHubError):
    """Raised when the audit trail for a save cannot be captured."""

    def __init__(self, message: str, entity_type: Optional[str] = None,
                 entity_id: Optional[Any] = None):
        details = {}
        if entity_type:
            details["entity_type"] = entity_type
        if entity_id is not None:
            details["entity_id"] = str(entity_id)

        super().__init__(message, details)
        self.entity_type = entity_type
        self.entity_id = entity_id
