"""
Request-scoped tenant context.

One TenantContext is created per request at the HTTP boundary, bound once to
the resolved tenant and then handed explicitly to everything downstream. It is
never stored globally and never shared between requests or threads.
"""

import uuid
from typing import Optional

from inventory_hub.database.models.audit_log import SYSTEM_ACTOR
from inventory_hub.utils.exceptions import TenantContextError
from inventory_hub.utils.logger import get_logger

logger = get_logger(__name__)

# Key under which a TenantSession keeps its context in Session.info
SESSION_INFO_KEY = "tenant_context"


class TenantContext:
    """
    Single-write, many-read cell holding the current tenant identity.

    Also carries the request metadata the data layer stamps onto rows and audit
    entries: the acting user, caller IP and user agent.

    Usage:
        context = TenantContext(actor_id=claims.get("sub"))
        context.set(tenant_id)
        session = open_tenant_session(context)
    """

    def __init__(
        self,
        actor_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ):
        self._tenant_id: Optional[uuid.UUID] = None
        self.actor_id = actor_id or SYSTEM_ACTOR
        self.ip_address = ip_address
        self.user_agent = user_agent
        self.strategy: Optional[str] = None

    @property
    def is_established(self) -> bool:
        return self._tenant_id is not None

    def set(self, tenant_id, strategy: Optional[str] = None) -> None:
        """
        Bind the context to a tenant.

        Binding again to the same tenant is a no-op. Binding to a different
        tenant raises TenantContextError instead of overwriting.
        """
        tenant_id = _as_uuid(tenant_id)

        if self._tenant_id is None:
            self._tenant_id = tenant_id
            self.strategy = strategy
            logger.debug(f"Tenant context established: {tenant_id} (via {strategy or 'explicit'})")
            return

        if self._tenant_id != tenant_id:
            logger.error(
                f"Attempt to rebind tenant context from {self._tenant_id} to {tenant_id}"
            )
            raise TenantContextError(
                "Tenant context already established for a different tenant",
                {"current_tenant": str(self._tenant_id), "requested_tenant": str(tenant_id)},
            )

    def get(self) -> uuid.UUID:
        """Return the bound tenant id; raises if the context was never established."""
        if self._tenant_id is None:
            raise TenantContextError("Tenant context not established")
        return self._tenant_id

    def __repr__(self):
        return f"<TenantContext(tenant={self._tenant_id}, actor={self.actor_id})>"


def _as_uuid(value) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    if not value:
        raise TenantContextError("Tenant identity must not be empty")
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise TenantContextError("Malformed tenant identity", {"value": str(value)})
