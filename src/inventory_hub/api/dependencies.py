"""
FastAPI dependencies shared by the routes.

Session factories and the rate limiter come from ``app.state`` so the
application factory (and the tests) decide which database and counter store
a running app uses.
"""

import uuid
from typing import Any, Dict, Generator

from fastapi import Request
from sqlalchemy.orm import Session

from inventory_hub.database.connection import open_tenant_session
from inventory_hub.monitoring import get_metrics
from inventory_hub.tenancy.context import TenantContext
from inventory_hub.tenancy.session import TenantSession
from inventory_hub.utils.exceptions import (
    AuthenticationError,
    IsolationViolationError,
    TenantContextError,
)
from inventory_hub.utils.logger import get_logger

logger = get_logger(__name__)


def get_db(request: Request) -> Generator[Session, None, None]:
    """Unscoped session for registry and authentication work."""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_tenant_context(request: Request) -> TenantContext:
    """The request's TenantContext; it must have been established."""
    context = getattr(request.state, "tenant_context", None)
    if context is None or not context.is_established:
        raise TenantContextError("Tenant context not established")
    return context


def get_tenant_db(request: Request) -> Generator[TenantSession, None, None]:
    """
    Tenant-scoped session bound to the request's context.

    Usage:
        @router.get("")
        async def list_products(db: TenantSession = Depends(get_tenant_db)):
            ...
    """
    context = get_tenant_context(request)
    db = open_tenant_session(context, factory=request.app.state.tenant_session_factory)
    try:
        yield db
    finally:
        db.close()


def get_current_claims(request: Request) -> Dict[str, Any]:
    """Verified token claims; raises AuthenticationError for anonymous calls."""
    claims = getattr(request.state, "claims", None)
    if not claims or not claims.get("sub"):
        raise AuthenticationError("Could not validate credentials")
    return claims


def require_tenant_member(request: Request) -> Dict[str, Any]:
    """
    Claims of an authenticated caller belonging to the resolved tenant.

    A token issued for one tenant never acts on another, whichever strategy
    resolved the request.
    """
    claims = get_current_claims(request)
    context = get_tenant_context(request)
    claim_name = request.app.state.config.tenant_claim

    try:
        claimed_tenant = uuid.UUID(str(claims.get(claim_name)))
    except ValueError:
        raise AuthenticationError("Token carries no valid tenant")

    if claimed_tenant != context.get():
        get_metrics().isolation_violations.labels(operation="access").inc()
        logger.error(
            f"ISOLATION VIOLATION [access] user {claims.get('sub')} of tenant {claimed_tenant} "
            f"called {request.url.path} resolved to tenant {context.get()}"
        )
        raise IsolationViolationError(
            "Caller does not belong to this tenant",
            operation="access",
            expected_tenant=context.get(),
            actual_tenant=claimed_tenant,
        )
    return claims


def ensure_own_tenant(tenant_id: uuid.UUID, context: TenantContext) -> None:
    """Path tenant must be the request's own tenant."""
    if tenant_id != context.get():
        raise IsolationViolationError(
            "Cannot manage another tenant",
            operation="tenant_admin",
            entity_type="Tenant",
            entity_id=tenant_id,
            expected_tenant=context.get(),
            actual_tenant=tenant_id,
        )
