"""
Database connection and session management.

Two session factories share one engine:

- SessionLocal: unscoped sessions for the tenant registry and authentication,
  which legitimately look across tenants (subdomain lookup, login by email).
- TenantSessionLocal: sessions of the TenantSession class, which carry a
  TenantContext and pass every query and flush through the isolation gate.
"""

from pathlib import Path
from typing import Optional

# Load .env before reading DATABASE_URL
from dotenv import load_dotenv
_env_file = Path(__file__).parent.parent.parent.parent / ".env"
if _env_file.exists():
    load_dotenv(_env_file, encoding='utf-8')

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from inventory_hub.tenancy.context import TenantContext
from inventory_hub.tenancy.session import TenantSession
from inventory_hub.utils.config import get_config
from inventory_hub.utils.logger import get_logger

logger = get_logger(__name__)


def build_engine(database_url: str, pool_size: int = 20, max_overflow: int = 10) -> Engine:
    """
    Create an engine for the given URL.

    SQLite (tests, local tooling) gets a single shared connection so an
    in-memory database survives across sessions and threads.
    """
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    return create_engine(
        database_url,
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
        echo=False,
    )


def build_session_factories(engine: Engine):
    """Return (unscoped factory, tenant-scoped factory) bound to engine."""
    session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    tenant_session_factory = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
        class_=TenantSession,
    )
    return session_factory, tenant_session_factory


_config = get_config()

engine = build_engine(
    _config.database_url,
    pool_size=_config.db_pool_size,
    max_overflow=_config.db_max_overflow,
)

SessionLocal, TenantSessionLocal = build_session_factories(engine)


def open_tenant_session(context: TenantContext, factory: Optional[sessionmaker] = None) -> TenantSession:
    """
    Open a tenant-scoped session bound to the given request context.

    The context is passed explicitly; the data layer never derives the tenant
    from transport state on its own.
    """
    factory = factory or TenantSessionLocal
    return factory(info={TenantSession.CONTEXT_KEY: context})


def init_db(bind: Optional[Engine] = None) -> None:
    """Initialize database - create all tables."""
    from inventory_hub.database.models import Base

    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=bind or engine)
    logger.info("Database tables created successfully")


def drop_db(bind: Optional[Engine] = None) -> None:
    """Drop all database tables (use with caution!)."""
    from inventory_hub.database.models import Base

    logger.warning("Dropping all database tables...")
    Base.metadata.drop_all(bind=bind or engine)
    logger.warning("All database tables dropped")
