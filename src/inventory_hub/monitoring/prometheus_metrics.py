"""
Prometheus metrics for the tenant engine.

Metrics exported:
- inventory_hub_requests_total: Total HTTP requests
- inventory_hub_request_duration_seconds: Request duration histogram
- inventory_hub_tenant_resolutions_total: Resolution outcomes by strategy
- inventory_hub_quota_rejections_total: Rejected operations by resource
- inventory_hub_isolation_violations_total: Blocked cross-tenant operations
- inventory_hub_audit_entries_total: Audit entries written by action
"""

import re
import time
import logging
from typing import Optional

from prometheus_client import (
    Counter,
    Histogram,
    generate_latest,
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
)
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

_UUID_RE = re.compile(
    r'[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}',
    re.IGNORECASE,
)


class PrometheusMetrics:
    """
    Prometheus metrics collector for InventoryHub.

    Uses its own registry so repeated application construction (tests,
    reloads) never collides with the process-wide default registry.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()

        self.requests_total = Counter(
            "inventory_hub_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=self.registry,
        )

        self.request_duration = Histogram(
            "inventory_hub_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0],
            registry=self.registry,
        )

        self.tenant_resolutions = Counter(
            "inventory_hub_tenant_resolutions_total",
            "Tenant resolution outcomes",
            ["outcome"],
            registry=self.registry,
        )

        self.quota_rejections = Counter(
            "inventory_hub_quota_rejections_total",
            "Operations rejected by tenant quotas",
            ["resource"],
            registry=self.registry,
        )

        self.isolation_violations = Counter(
            "inventory_hub_isolation_violations_total",
            "Operations blocked at the tenant isolation boundary",
            ["operation"],
            registry=self.registry,
        )

        self.audit_entries = Counter(
            "inventory_hub_audit_entries_total",
            "Audit entries recorded",
            ["action"],
            registry=self.registry,
        )

        logger.info("Prometheus metrics initialized")

    def track_request(self, method: str, endpoint: str, status_code: int, duration: float):
        self.requests_total.labels(
            method=method,
            endpoint=endpoint,
            status_code=status_code,
        ).inc()

        self.request_duration.labels(method=method, endpoint=endpoint).observe(duration)

    def export(self) -> bytes:
        return generate_latest(self.registry)


# Global metrics instance
_metrics: Optional[PrometheusMetrics] = None


def get_metrics() -> PrometheusMetrics:
    """Get global metrics instance."""
    global _metrics
    if _metrics is None:
        _metrics = PrometheusMetrics()
    return _metrics


class MetricsMiddleware(BaseHTTPMiddleware):
    """Collects request count and latency for every HTTP request."""

    def __init__(self, app):
        super().__init__(app)
        self.metrics = get_metrics()

    async def dispatch(self, request: Request, call_next):
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.time()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            self.metrics.track_request(
                method=request.method,
                endpoint=self._normalize_endpoint(request.url.path),
                status_code=status_code,
                duration=time.time() - start_time,
            )

    def _normalize_endpoint(self, path: str) -> str:
        """Replace ids with placeholders to keep label cardinality bounded."""
        path = _UUID_RE.sub('{uuid}', path)
        return re.sub(r'/\d+', '/{id}', path)


async def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint handler."""
    return Response(content=get_metrics().export(), media_type=CONTENT_TYPE_LATEST)
