"""
FastAPI application entry point for multi-tenant InventoryHub.
"""

# Load environment variables FIRST before any other imports
from pathlib import Path
from dotenv import load_dotenv

project_root = Path(__file__).parent.parent.parent.parent  # src/inventory_hub/api/main.py -> root
env_file = project_root / ".env"
if env_file.exists():
    load_dotenv(env_file)

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import sessionmaker

from inventory_hub import __version__
from inventory_hub.api.routes import auth, tenants, products, audit_logs, health
from inventory_hub.api.middleware import (
    ErrorHandlerMiddleware,
    RateLimitMiddleware,
    TenantContextMiddleware,
)
from inventory_hub.database import connection
from inventory_hub.monitoring import MetricsMiddleware, get_metrics, metrics_endpoint
from inventory_hub.tenancy.rate_limiter import FixedWindowRateLimiter, create_rate_limiter
from inventory_hub.utils.config import get_config
from inventory_hub.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    setup_logging()
    logger.info("🚀 Starting InventoryHub API...")
    logger.info(f"Configuration: {app.state.config.summary()}")

    get_metrics()
    logger.info("✅ Prometheus metrics initialized")

    logger.info("✅ API started successfully")

    yield

    logger.info("🛑 Shutting down InventoryHub API...")


def create_app(
    session_factory: Optional[sessionmaker] = None,
    tenant_session_factory: Optional[sessionmaker] = None,
    rate_limiter: Optional[FixedWindowRateLimiter] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        session_factory: Unscoped session factory (defaults to SessionLocal)
        tenant_session_factory: TenantSession factory (defaults to TenantSessionLocal)
        rate_limiter: API rate limiter (defaults to RATE_LIMIT_BACKEND)
    """
    config = get_config()

    app = FastAPI(
        title="InventoryHub API",
        description="Multi-tenant inventory management platform",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.session_factory = session_factory or connection.SessionLocal
    app.state.tenant_session_factory = tenant_session_factory or connection.TenantSessionLocal
    app.state.rate_limiter = rate_limiter or create_rate_limiter(
        config.rate_limit_backend, config.redis_url
    )

    # Last added runs first: CORS -> errors -> metrics -> tenant -> rate limit
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(TenantContextMiddleware)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins.split(","),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth.router, prefix="/api/v1/auth", tags=["Authentication"])
    app.include_router(tenants.router, prefix="/api/v1/tenants", tags=["Tenants"])
    app.include_router(products.router, prefix="/api/v1/products", tags=["Products"])
    app.include_router(audit_logs.router, prefix="/api/v1/audit-logs", tags=["Audit"])
    app.include_router(health.router, prefix="/api/v1/health", tags=["Health"])

    app.add_api_route("/metrics", metrics_endpoint, methods=["GET"], tags=["Monitoring"])

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint."""
        return {
            "name": "InventoryHub API",
            "version": __version__,
            "status": "operational",
            "docs": "/docs",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import os
    import uvicorn

    uvicorn.run(
        "inventory_hub.api.main:app",
        host=os.getenv("API_HOST", "0.0.0.0"),
        port=int(os.getenv("API_PORT", 8000)),
        reload=os.getenv("DEBUG", "false").lower() == "true",
    )
