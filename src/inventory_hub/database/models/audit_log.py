"""
AuditLog model - append-only record of one mutation.
"""

import enum
import uuid

from sqlalchemy import Column, String, DateTime, Uuid, JSON, Enum as SQLEnum, Index

from inventory_hub.utils import utcnow
from .base import Base, TenantScopedMixin


class AuditAction(str, enum.Enum):
    CREATED = "Created"
    MODIFIED = "Modified"
    DELETED = "Deleted"


SYSTEM_ACTOR = "System"


class AuditLog(Base, TenantScopedMixin):
    """
    Immutable audit entry.

    Written by the audit recorder in the same flush as the mutation it
    documents. The ORM refuses to update or delete existing entries.
    """

    __tablename__ = "audit_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    user_id = Column(String(100), nullable=False, default=SYSTEM_ACTOR)
    action = Column(SQLEnum(AuditAction, name="audit_action"), nullable=False)
    entity_type = Column(String(100), nullable=False)
    entity_id = Column(Uuid, nullable=True)

    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)

    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)

    timestamp = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_audit_logs_tenant_timestamp", "tenant_id", "timestamp"),
        Index("ix_audit_logs_entity", "entity_type", "entity_id"),
    )

    def __repr__(self):
        return f"<AuditLog({self.action.value} {self.entity_type}:{self.entity_id} by {self.user_id})>"
