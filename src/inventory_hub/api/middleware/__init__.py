"""
FastAPI middleware components.
"""

from .tenant_context import TenantContextMiddleware, is_exempt
from .rate_limiter import RateLimitMiddleware
from .error_handler import ErrorHandlerMiddleware

__all__ = [
    "TenantContextMiddleware",
    "is_exempt",
    "RateLimitMiddleware",
    "ErrorHandlerMiddleware",
]
