"""
Tenant isolation gate.

Every TenantSession passes its statements and flushes through this module:

- reads, ORM updates and ORM deletes get the tenant filter (and the
  soft-delete filter) attached as loader criteria, so no query can see or
  touch another tenant's rows;
- new rows are stamped with the context tenant, and a row already carrying a
  different tenant is refused;
- modified and deleted rows must belong to the context tenant and may never
  have their tenant reassigned;
- soft-deletable rows are never hard deleted;
- bulk statements that would bypass the flush (ORM INSERT of tenant rows,
  UPDATE of audited rows) are refused.
"""

import uuid
from typing import Optional

from sqlalchemy import inspect
from sqlalchemy.orm import ORMExecuteState, Session, with_loader_criteria

from inventory_hub.database.models import (
    AuditableMixin,
    SoftDeleteMixin,
    TenantScopedMixin,
    TimestampMixin,
)
from inventory_hub.monitoring import get_metrics
from inventory_hub.tenancy.context import SESSION_INFO_KEY, TenantContext
from inventory_hub.utils import utcnow
from inventory_hub.utils.exceptions import IsolationViolationError, ValidationError
from inventory_hub.utils.logger import get_logger

logger = get_logger(__name__)


def _entity_name(obj) -> str:
    return type(obj).__name__


def _coerce_tenant(value) -> Optional[uuid.UUID]:
    if value is None or value == "":
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


class IsolationGate:
    """
    Enforces the tenant boundary for one session's context.

    Usage:
        gate = IsolationGate(session.tenant_context)
        gate.filter_statement(execute_state)
        gate.check_flush(session)
    """

    def __init__(self, context: TenantContext):
        self.context = context

    @property
    def tenant_id(self) -> uuid.UUID:
        return self.context.get()

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def filter_statement(self, execute_state: ORMExecuteState) -> None:
        """Attach the tenant and soft-delete criteria to an ORM statement."""
        if execute_state.is_insert:
            self._reject_bulk_insert(execute_state)
            return

        if not (execute_state.is_select or execute_state.is_update or execute_state.is_delete):
            return

        # Refreshing attributes of an object already in the session; the row
        # was filtered when the object was first loaded
        if execute_state.is_column_load:
            return

        if execute_state.is_delete:
            self._reject_bulk_hard_delete(execute_state)

        if execute_state.is_update:
            self._prepare_bulk_update(execute_state)

        tenant_id = self.tenant_id
        execute_state.statement = execute_state.statement.options(
            with_loader_criteria(
                TenantScopedMixin,
                lambda cls: cls.tenant_id == tenant_id,
                include_aliases=True,
            ),
            with_loader_criteria(
                SoftDeleteMixin,
                lambda cls: cls.is_deleted == False,  # noqa: E712
                include_aliases=True,
            ),
        )

    def _reject_bulk_hard_delete(self, execute_state: ORMExecuteState) -> None:
        mapper = execute_state.bind_mapper
        if mapper is not None and issubclass(mapper.class_, SoftDeleteMixin):
            raise ValidationError(
                f"{mapper.class_.__name__} rows are soft deleted; bulk DELETE is not allowed",
                field="is_deleted",
            )

    def _reject_bulk_insert(self, execute_state: ORMExecuteState) -> None:
        """
        Refuse ORM INSERT statements for tenant-scoped entities.

        New tenant rows go through session.add() so the flush stamps them,
        checks quotas and writes their audit entries. A statement naming a
        foreign tenant is reported as an isolation violation.
        """
        mapper = execute_state.bind_mapper
        if mapper is None or not issubclass(mapper.class_, TenantScopedMixin):
            return

        entity_type = mapper.class_.__name__
        rows = execute_state.parameters or []
        if isinstance(rows, dict):
            rows = [rows]

        current = self.tenant_id
        for row in rows:
            assigned = row.get("tenant_id")
            if assigned not in (None, "") and _coerce_tenant(assigned) != current:
                self._violation(
                    "Cannot create an entity for another tenant",
                    operation="create",
                    entity_type=entity_type,
                    entity_id=row.get("id"),
                    actual_tenant=assigned,
                )

        raise ValidationError(
            f"Bulk INSERT of {entity_type} is not allowed; add the rows to the session",
            field="tenant_id",
        )

    def _prepare_bulk_update(self, execute_state: ORMExecuteState) -> None:
        """Refuse bulk UPDATE of audited entities; stamp bookkeeping on the rest."""
        mapper = execute_state.bind_mapper
        if mapper is None:
            return

        entity = mapper.class_
        if issubclass(entity, AuditableMixin):
            raise ValidationError(
                f"{entity.__name__} changes are audited; bulk UPDATE is not allowed",
                field="updated_at",
            )

        if issubclass(entity, TimestampMixin):
            # executemany by primary key cannot take extra statement values
            if isinstance(execute_state.parameters, (list, tuple)):
                raise ValidationError(
                    f"Bulk UPDATE of {entity.__name__} by primary key is not allowed",
                    field="updated_at",
                )
            execute_state.statement = execute_state.statement.values(
                updated_at=utcnow(),
                updated_by=self.context.actor_id,
            )

    # ------------------------------------------------------------------
    # Write side
    # ------------------------------------------------------------------

    def check_flush(self, session: Session) -> None:
        """Stamp and verify every pending change of the session."""
        for obj in list(session.new):
            self.prepare_new(obj)

        for obj in list(session.dirty):
            if session.is_modified(obj, include_collections=False):
                self.prepare_modified(obj)

        for obj in list(session.deleted):
            self.check_deleted(obj)

    def prepare_new(self, obj) -> None:
        """Stamp tenant, primary key and creation bookkeeping onto a new row."""
        if isinstance(obj, TenantScopedMixin):
            current = self.tenant_id
            assigned = obj.get_tenant_id()
            if assigned is None or assigned == "":
                obj.set_tenant_id(current)
            elif _coerce_tenant(assigned) != current:
                self._violation(
                    "Cannot create an entity for another tenant",
                    operation="create",
                    obj=obj,
                    actual_tenant=assigned,
                )
            elif not isinstance(assigned, uuid.UUID):
                obj.set_tenant_id(current)

        if hasattr(type(obj), "id") and getattr(obj, "id", None) is None:
            obj.id = uuid.uuid4()

        if isinstance(obj, TimestampMixin):
            if obj.created_at is None:
                obj.created_at = utcnow()
            if not obj.created_by:
                obj.created_by = self.context.actor_id

    def prepare_modified(self, obj) -> None:
        """Verify ownership of a modified row and stamp update bookkeeping."""
        if isinstance(obj, TenantScopedMixin):
            history = inspect(obj).attrs.tenant_id.history
            if history.has_changes():
                persisted = history.deleted[0] if history.deleted else None
                self._violation(
                    "Tenant of an existing entity cannot be changed",
                    operation="update",
                    obj=obj,
                    actual_tenant=persisted,
                )
            self._check_owner(obj, "update")

        if isinstance(obj, TimestampMixin):
            obj.updated_at = utcnow()
            obj.updated_by = self.context.actor_id

    def check_deleted(self, obj) -> None:
        """Verify a hard delete is allowed for the row."""
        if isinstance(obj, TenantScopedMixin):
            self._check_owner(obj, "delete")

        if isinstance(obj, SoftDeleteMixin):
            raise ValidationError(
                f"{_entity_name(obj)} cannot be hard deleted; use soft_delete()",
                field="is_deleted",
            )

    def _check_owner(self, obj, operation: str) -> None:
        owner = obj.get_tenant_id()
        if _coerce_tenant(owner) != self.tenant_id:
            self._violation(
                f"Cannot {operation} an entity owned by another tenant",
                operation=operation,
                obj=obj,
                actual_tenant=owner,
            )

    def _violation(self, message: str, operation: str, actual_tenant, obj=None,
                   entity_type: Optional[str] = None, entity_id=None) -> None:
        if obj is not None:
            entity_type = _entity_name(obj)
            entity_id = getattr(obj, "id", None)
        get_metrics().isolation_violations.labels(operation=operation).inc()
        logger.error(
            f"ISOLATION VIOLATION [{operation}] {entity_type}:{entity_id} "
            f"context tenant={self.tenant_id} entity tenant={actual_tenant} "
            f"actor={self.context.actor_id}"
        )
        raise IsolationViolationError(
            message,
            operation=operation,
            entity_type=entity_type,
            entity_id=entity_id,
            expected_tenant=self.tenant_id,
            actual_tenant=actual_tenant,
        )


def soft_delete(session: Session, obj, actor_id: Optional[str] = None) -> None:
    """
    Flag a soft-deletable row as deleted.

    The change is flushed like any other update, so ownership is verified by
    the gate and the audit trail records it as a deletion.
    """
    if not isinstance(obj, SoftDeleteMixin):
        raise ValidationError(f"{_entity_name(obj)} does not support soft delete")

    if actor_id is None:
        context = session.info.get(SESSION_INFO_KEY)
        actor_id = context.actor_id if context is not None else None

    obj.is_deleted = True
    obj.deleted_at = utcnow()
    obj.deleted_by = actor_id
    session.add(obj)

