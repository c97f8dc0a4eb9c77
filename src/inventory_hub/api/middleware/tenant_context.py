"""
Tenant context middleware.

Creates the request's TenantContext, verifies the bearer token, runs the
tenant resolver once and loads the resolved tenant record. Requests to
non-exempt endpoints whose tenant is unknown, inactive or expired are
answered with 400 before any handler runs.
"""

from typing import Any, Dict, Optional

from fastapi import Request
from jose import JWTError
from starlette.middleware.base import BaseHTTPMiddleware

from inventory_hub.auth import get_jwt_manager
from inventory_hub.api.middleware.error_handler import tenant_rejection_response
from inventory_hub.tenancy.context import TenantContext
from inventory_hub.tenancy.registry import TenantRegistry
from inventory_hub.tenancy.resolver import TenantResolver
from inventory_hub.utils.config import get_config
from inventory_hub.utils.logger import get_logger

logger = get_logger(__name__)

# Endpoints served without a tenant: no resolution, no rejection, no rate count
EXEMPT_PREFIXES = ("/api/v1/auth/", "/api/v1/health/")
EXEMPT_PATHS = frozenset({
    "/", "/openapi.json", "/metrics", "/docs", "/docs/oauth2-redirect", "/redoc", "/api/v1/health",
})
# Tenant signup creates the tenant, so only its POST is served without one
EXEMPT_ENDPOINTS = frozenset({("POST", "/api/v1/tenants")})


def is_exempt(path: str, method: str = "GET") -> bool:
    normalized = path.rstrip("/") or "/"
    if normalized in EXEMPT_PATHS or (method.upper(), normalized) in EXEMPT_ENDPOINTS:
        return True
    return path.startswith(EXEMPT_PREFIXES)


def _bearer_claims(request: Request) -> Optional[Dict[str, Any]]:
    """Verified claims of the Authorization bearer token, or None."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None

    token = auth_header.split(" ", 1)[1].strip()
    try:
        return get_jwt_manager().verify_token(token, token_type="access")
    except JWTError:
        # Treated as anonymous; protected routes reject it
        return None


class TenantContextMiddleware(BaseHTTPMiddleware):
    """
    Middleware establishing the tenant of every request.

    Sets on request.state:
    - tenant_context: the TenantContext (always)
    - claims: verified token claims or None
    - api_rate_limit: the resolved tenant's requests-per-minute limit
    """

    async def dispatch(self, request: Request, call_next):
        config = get_config()
        claims = _bearer_claims(request)

        context = TenantContext(
            actor_id=claims.get("sub") if claims else None,
            ip_address=request.client.host if request.client else None,
            user_agent=request.headers.get("User-Agent"),
        )
        request.state.tenant_context = context
        request.state.claims = claims

        if is_exempt(request.url.path, request.method):
            return await call_next(request)

        session_factory = request.app.state.session_factory
        with session_factory() as db:
            registry = TenantRegistry(db)
            resolver = TenantResolver.default(
                registry,
                claim_name=config.tenant_claim,
                header_name=config.tenant_header,
            )
            resolved = resolver.resolve(request.headers.get("host"), claims, request.headers)

            if resolved is None:
                logger.warning(f"Unresolved tenant for {request.method} {request.url.path}")
                return tenant_rejection_response()

            tenant = registry.get(resolved.tenant_id)
            if tenant is None or not tenant.is_subscription_active():
                logger.warning(
                    f"Rejected request for tenant {resolved.tenant_id} (via {resolved.strategy}): "
                    f"not found, inactive or expired"
                )
                return tenant_rejection_response({"tenant_id": str(resolved.tenant_id)})

            api_rate_limit = tenant.limits.api_rate_limit

        context.set(resolved.tenant_id, strategy=resolved.strategy)
        request.state.api_rate_limit = api_rate_limit

        return await call_next(request)
