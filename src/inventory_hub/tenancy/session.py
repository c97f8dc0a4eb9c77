"""
TenantSession - the session class business code works through.

A TenantSession is opened with its TenantContext in ``Session.info`` (see
``open_tenant_session``). The listeners below run for every session of this
class and never for the unscoped sessions used by the tenant registry:

- do_orm_execute: tenant and soft-delete criteria on every ORM statement
- before_flush: isolation checks and stamping, count quotas for new users and
  products, then audit entries for the same flush
"""

from collections import Counter

from sqlalchemy import event
from sqlalchemy.orm import Session

from inventory_hub.database.models import Product, User
from inventory_hub.tenancy.audit import AuditRecorder
from inventory_hub.tenancy.context import SESSION_INFO_KEY, TenantContext
from inventory_hub.tenancy.isolation import IsolationGate
from inventory_hub.tenancy.quota import QuotaEnforcer, ResourceKind
from inventory_hub.utils.exceptions import TenantContextError

_QUOTA_KINDS = {
    User: ResourceKind.USER,
    Product: ResourceKind.PRODUCT,
}


class TenantSession(Session):
    """Session bound to exactly one tenant for its whole lifetime."""

    CONTEXT_KEY = SESSION_INFO_KEY

    @property
    def tenant_context(self) -> TenantContext:
        context = self.info.get(self.CONTEXT_KEY)
        if context is None:
            raise TenantContextError("TenantSession opened without a tenant context")
        return context

    @property
    def tenant_id(self):
        return self.tenant_context.get()


def _enforce_count_quotas(session: TenantSession) -> None:
    enforcer = QuotaEnforcer(session)
    tenant_id = session.tenant_id
    pending = Counter()

    for obj in list(session.new):
        kind = _QUOTA_KINDS.get(type(obj))
        if kind is None:
            continue
        enforcer.enforce(tenant_id, kind, pending=pending[kind])
        pending[kind] += 1


@event.listens_for(TenantSession, "do_orm_execute")
def _filter_by_tenant(execute_state):
    IsolationGate(execute_state.session.tenant_context).filter_statement(execute_state)


@event.listens_for(TenantSession, "before_flush")
def _guard_flush(session, flush_context, instances):
    context = session.tenant_context
    IsolationGate(context).check_flush(session)
    _enforce_count_quotas(session)
    AuditRecorder(context).record(session)
