"""
Declarative base and shared column mixins.

TenantScopedMixin is the explicit "has tenant identity" capability: the
isolation gate recognizes tenant-scoped rows by type, never by looking up a
column name at runtime.
"""

import uuid
from typing import Optional

from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Uuid, event, inspect
from sqlalchemy.orm import declarative_base, declared_attr

from inventory_hub.utils import utcnow


Base = declarative_base()


class TimestampMixin:
    """Creation and modification bookkeeping, stamped by the isolation gate."""

    created_at = Column(DateTime, default=utcnow, nullable=False)
    created_by = Column(String(100), nullable=True)
    updated_at = Column(DateTime, nullable=True)
    updated_by = Column(String(100), nullable=True)


class SoftDeleteMixin:
    """Rows are flagged as deleted, never removed."""

    is_deleted = Column(Boolean, default=False, nullable=False, index=True)
    deleted_at = Column(DateTime, nullable=True)
    deleted_by = Column(String(100), nullable=True)


class TenantScopedMixin:
    """A row owned by exactly one tenant."""

    @declared_attr
    def tenant_id(cls):
        return Column(
            Uuid,
            ForeignKey("tenants.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )

    def get_tenant_id(self) -> Optional[uuid.UUID]:
        return self.tenant_id

    def set_tenant_id(self, tenant_id: uuid.UUID) -> None:
        self.tenant_id = tenant_id


class AuditableMixin:
    """Marker for entity kinds whose mutations are written to the audit trail."""

    # Columns that never appear in a modification diff
    __audit_exclude__ = frozenset({"updated_at", "updated_by", "deleted_at", "deleted_by", "is_deleted"})

    @classmethod
    def __declare_last__(cls):
        # Load the previous value on assignment even when the attribute was
        # expired, so modification diffs always carry the old value
        for prop in inspect(cls).column_attrs:
            event.listen(getattr(cls, prop.key), "set", _keep_old_value, active_history=True)


def _keep_old_value(target, value, oldvalue, initiator):
    pass


class TenantEntity(TenantScopedMixin, SoftDeleteMixin, TimestampMixin):
    """Standard business entity: tenant-owned, soft-deletable, timestamped."""

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
