"""
Health check endpoints for monitoring application status.

Provides:
- Basic health check
- Readiness check (database and rate limit counter store)
"""

import time
from typing import Dict, Any

from fastapi import APIRouter, Request, Response, status
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from inventory_hub.utils import utcnow
from inventory_hub.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("", status_code=status.HTTP_200_OK)
async def health_check() -> Dict[str, Any]:
    """
    Basic health check endpoint.

    Returns 200 if application is running.
    """
    return {
        "status": "healthy",
        "timestamp": utcnow().isoformat(),
        "service": "inventory-hub",
    }


@router.get("/ready", status_code=status.HTTP_200_OK)
async def readiness_check(request: Request, response: Response) -> Dict[str, Any]:
    """
    Readiness check endpoint.

    The counter store is reported but never fails readiness: the rate limiter
    lets requests through while it is down.
    """
    checks = {
        "database": _check_database(request),
        "rate_limit_store": _check_rate_limit_store(request),
    }

    healthy = checks["database"]["status"] == "healthy"
    if not healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": utcnow().isoformat(),
        "checks": checks,
    }


def _check_database(request: Request) -> Dict[str, Any]:
    start_time = time.time()

    try:
        with request.app.state.session_factory() as db:
            db.execute(text("SELECT 1"))

        return {
            "status": "healthy",
            "response_time_ms": round((time.time() - start_time) * 1000, 2),
        }

    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        return {
            "status": "unhealthy",
            "error": str(e)[:100],
            "response_time_ms": round((time.time() - start_time) * 1000, 2),
        }


def _check_rate_limit_store(request: Request) -> Dict[str, Any]:
    start_time = time.time()
    backend = request.app.state.rate_limiter.backend
    client = getattr(backend, "redis_client", None)
    if client is None:
        return {"status": "healthy", "backend": "memory"}

    try:
        client.ping()
        return {
            "status": "healthy",
            "backend": "redis",
            "response_time_ms": round((time.time() - start_time) * 1000, 2),
        }

    except RedisError as e:
        logger.error(f"Redis health check failed: {e}")
        return {
            "status": "degraded",
            "backend": "redis",
            "error": str(e)[:100],
        }
