"""
Audit trail capture.

The recorder inspects the pending changes of a TenantSession flush and adds
one AuditLog row per mutated auditable entity to that same flush. Audit rows
therefore commit, or roll back, together with the change they describe.

Existing AuditLog rows are append-only: the mapper refuses updates and deletes
through any session, and bulk UPDATE/DELETE statements against the table are
rejected.
"""

import enum
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import event, inspect
from sqlalchemy.orm import ORMExecuteState, Session

from inventory_hub.database.models import AuditableMixin, AuditAction, AuditLog, SoftDeleteMixin
from inventory_hub.monitoring import get_metrics
from inventory_hub.tenancy.context import TenantContext
from inventory_hub.utils import utcnow
from inventory_hub.utils.exceptions import AuditRecordingError, InventoryHubError
from inventory_hub.utils.logger import get_logger

logger = get_logger(__name__)


def serialize_value(value: Any) -> Any:
    """Convert a column value into something json.dumps accepts unchanged."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, dict):
        return {str(k): serialize_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [serialize_value(v) for v in value]
    return str(value)


class AuditRecorder:
    """
    Builds audit entries for the pending changes of a session.

    Usage:
        recorder = AuditRecorder(session.tenant_context)
        recorder.record(session)    # inside before_flush
    """

    def __init__(self, context: TenantContext):
        self.context = context

    def record(self, session: Session) -> List[AuditLog]:
        """Add audit rows for every pending auditable change to the session."""
        try:
            entries = self.collect(session)
        except InventoryHubError:
            raise
        except Exception as e:
            logger.error(f"Failed to capture audit trail: {e}")
            raise AuditRecordingError(f"Failed to capture audit trail: {e}") from e

        if entries:
            session.add_all(entries)
            metrics = get_metrics()
            for entry in entries:
                metrics.audit_entries.labels(action=entry.action.value).inc()
            logger.debug(f"Recorded {len(entries)} audit entries for tenant {self.context.get()}")

        return entries

    def collect(self, session: Session) -> List[AuditLog]:
        entries = []

        for obj in session.new:
            if isinstance(obj, AuditableMixin):
                entries.append(self._entry(obj, AuditAction.CREATED))

        for obj in session.dirty:
            if not isinstance(obj, AuditableMixin):
                continue
            if not session.is_modified(obj, include_collections=False):
                continue

            if self._was_soft_deleted(obj):
                entries.append(self._entry(obj, AuditAction.DELETED))
                continue

            old_values, new_values = self.diff(obj)
            if old_values or new_values:
                entries.append(self._entry(obj, AuditAction.MODIFIED, old_values, new_values))

        for obj in session.deleted:
            if isinstance(obj, AuditableMixin):
                entries.append(self._entry(obj, AuditAction.DELETED))

        return entries

    def diff(self, obj) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """
        Return (old_values, new_values) for the changed columns of obj.

        Bookkeeping columns listed in __audit_exclude__ never appear.
        """
        state = inspect(obj)
        exclude = getattr(obj, "__audit_exclude__", frozenset())
        old_values: Dict[str, Any] = {}
        new_values: Dict[str, Any] = {}

        for prop in state.mapper.column_attrs:
            key = prop.key
            if key in exclude:
                continue

            history = state.attrs[key].history
            if not history.has_changes():
                continue

            old = history.deleted[0] if history.deleted else None
            new = history.added[0] if history.added else None
            if old == new:
                continue

            old_values[key] = serialize_value(old)
            new_values[key] = serialize_value(new)

        return old_values, new_values

    def _was_soft_deleted(self, obj) -> bool:
        if not isinstance(obj, SoftDeleteMixin):
            return False
        history = inspect(obj).attrs.is_deleted.history
        return bool(history.added) and history.added[0] is True and not (
            history.deleted and history.deleted[0] is True
        )

    def _entry(
        self,
        obj,
        action: AuditAction,
        old_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None,
    ) -> AuditLog:
        return AuditLog(
            id=uuid.uuid4(),
            tenant_id=self.context.get(),
            user_id=self.context.actor_id,
            action=action,
            entity_type=type(obj).__name__,
            entity_id=getattr(obj, "id", None),
            old_values=old_values or None,
            new_values=new_values or None,
            ip_address=self.context.ip_address,
            user_agent=self.context.user_agent,
            timestamp=utcnow(),
        )


def reject_audit_log_bulk_writes(execute_state: ORMExecuteState) -> None:
    """Refuse ORM-enabled UPDATE/DELETE statements aimed at the audit table."""
    if not (execute_state.is_update or execute_state.is_delete):
        return
    mapper = execute_state.bind_mapper
    if mapper is not None and issubclass(mapper.class_, AuditLog):
        raise AuditRecordingError("Audit log entries are immutable", entity_type="AuditLog")


@event.listens_for(AuditLog, "before_update")
def _refuse_audit_update(mapper, connection, target):
    logger.error(f"Refused update of audit entry {target.id}")
    raise AuditRecordingError("Audit log entries are immutable", entity_type="AuditLog", entity_id=target.id)


@event.listens_for(AuditLog, "before_delete")
def _refuse_audit_delete(mapper, connection, target):
    logger.error(f"Refused delete of audit entry {target.id}")
    raise AuditRecordingError("Audit log entries are immutable", entity_type="AuditLog", entity_id=target.id)


@event.listens_for(Session, "do_orm_execute")
def _guard_audit_table(execute_state):
    reject_audit_log_bulk_writes(execute_state)
