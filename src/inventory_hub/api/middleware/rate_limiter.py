"""
Per-tenant API rate limiting middleware.
"""

from fastapi import Request, status

from starlette.middleware.base import BaseHTTPMiddleware

from inventory_hub.api.middleware.error_handler import error_response, exception_response
from inventory_hub.api.middleware.tenant_context import is_exempt
from inventory_hub.tenancy.quota import QuotaEnforcer
from inventory_hub.utils.exceptions import QuotaExceededError
from inventory_hub.utils.logger import get_logger

logger = get_logger(__name__)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Counts every non-exempt request against the tenant's per-minute limit.

    Runs inside TenantContextMiddleware, so the tenant is already resolved and
    validated. Adds X-RateLimit-Limit, X-RateLimit-Remaining and
    X-RateLimit-Reset to every counted response, error answers included, and
    answers 429 with Retry-After once the window is used up.
    """

    async def dispatch(self, request: Request, call_next):
        if is_exempt(request.url.path, request.method):
            return await call_next(request)

        context = getattr(request.state, "tenant_context", None)
        limit = getattr(request.state, "api_rate_limit", None)
        if context is None or not context.is_established or limit is None:
            return await call_next(request)

        enforcer = QuotaEnforcer(rate_limiter=request.app.state.rate_limiter)
        try:
            decision = enforcer.enforce_rate(context.get(), limit)
        except QuotaExceededError as e:
            return self._rate_limit_response(e)

        try:
            response = await call_next(request)
        except Exception as e:
            response = exception_response(request, e)

        response.headers["X-RateLimit-Limit"] = str(decision.limit)
        response.headers["X-RateLimit-Remaining"] = str(max(0, decision.limit - decision.current))
        response.headers["X-RateLimit-Reset"] = str(decision.reset_at)

        return response

    def _rate_limit_response(self, error: QuotaExceededError):
        headers = {
            "X-RateLimit-Limit": str(error.limit),
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": str(error.reset_at),
            "Retry-After": str(error.retry_after),
        }
        return error_response(
            status.HTTP_429_TOO_MANY_REQUESTS,
            "Rate limit exceeded",
            f"API rate limit of {error.limit} requests per minute exceeded",
            {"limit": error.limit, "reset_at": error.reset_at, "retry_after": error.retry_after},
            headers=headers,
        )
