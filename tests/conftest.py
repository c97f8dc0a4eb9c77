"""
Test configuration and fixtures for InventoryHub
"""
import os
import tempfile

# Settings are read once at import time; configure the test environment first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "inventory-hub-test-secret"
os.environ["RATE_LIMIT_BACKEND"] = "memory"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "inventory_hub_test_logs"))

import uuid
from datetime import timedelta
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from inventory_hub.api.main import create_app
from inventory_hub.auth.jwt_manager import create_access_token
from inventory_hub.auth.password import hash_password
from inventory_hub.database.connection import (
    build_engine,
    build_session_factories,
    drop_db,
    init_db,
    open_tenant_session,
)
from inventory_hub.database.models import SubscriptionTier, Tenant, User
from inventory_hub.monitoring import get_metrics
from inventory_hub.tenancy.context import TenantContext
from inventory_hub.tenancy.rate_limiter import FixedWindowRateLimiter, InMemoryCounterBackend
from inventory_hub.utils import utcnow

# 2023-11-14 22:13:00 UTC, the first second of a rate limit window
WINDOW_START = 1_699_999_980

TEST_PASSWORD = "TestPassword123!"


class FakeClock:
    """Controllable unix time source."""

    def __init__(self, now: float):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# =============================================================================
# Database
# =============================================================================

@pytest.fixture
def engine():
    """Fresh in-memory database per test"""
    engine = build_engine("sqlite://")
    init_db(bind=engine)
    yield engine
    drop_db(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factories(engine):
    """(unscoped factory, TenantSession factory)"""
    return build_session_factories(engine)


@pytest.fixture
def db_session(session_factories) -> Generator[Session, None, None]:
    """Unscoped session, as used by the tenant registry"""
    session = session_factories[0]()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def tenant_session(session_factories):
    """Open TenantSessions bound to a tenant: tenant_session(tenant_id, actor_id=...)"""
    opened = []

    def _open(tenant_id, actor_id="user-1", ip_address="10.0.0.1", user_agent="pytest"):
        context = TenantContext(actor_id=actor_id, ip_address=ip_address, user_agent=user_agent)
        context.set(tenant_id)
        session = open_tenant_session(context, factory=session_factories[1])
        opened.append(session)
        return session

    yield _open

    for session in opened:
        session.close()


# =============================================================================
# Tenants and users
# =============================================================================

@pytest.fixture
def tenant_factory(db_session):
    """Insert tenants directly into the registry"""

    def _create(
        subdomain: str,
        tier: SubscriptionTier = SubscriptionTier.STARTER,
        expires_in_days: int = 30,
        is_active: bool = True,
    ) -> Tenant:
        tenant_id = uuid.uuid4()
        tenant = Tenant(
            id=tenant_id,
            name=f"{subdomain.title()} Inc",
            subdomain=subdomain,
            connection_string=f"sqlite:///{tenant_id}",
            company_email=f"admin@{subdomain}.example.com",
            subscription_tier=tier,
            subscription_expires_at=utcnow() + timedelta(days=expires_in_days),
            is_active=is_active,
        )
        tenant.update_limits_based_on_tier()
        db_session.add(tenant)
        db_session.commit()
        db_session.refresh(tenant)
        return tenant

    return _create


@pytest.fixture
def tenant_a(tenant_factory) -> Tenant:
    return tenant_factory("acme")


@pytest.fixture
def tenant_b(tenant_factory) -> Tenant:
    return tenant_factory("globex")


@pytest.fixture
def user_factory(tenant_session):
    """Create a user inside a tenant through the isolation gate"""

    def _create(tenant: Tenant, email: str, password: str = TEST_PASSWORD) -> User:
        session = tenant_session(tenant.id, actor_id="System")
        user = User(email=email, password_hash=hash_password(password), full_name=email.split("@")[0])
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _create


@pytest.fixture
def bearer():
    """Authorization headers for a user: bearer(user, roles=None)"""

    def _headers(user: User, roles=None) -> dict:
        token = create_access_token(str(user.id), str(user.tenant_id), roles or [])
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def auth_headers(user_factory, tenant_a, bearer) -> dict:
    """Authorization headers of a member of tenant_a"""
    return bearer(user_factory(tenant_a, "owner@acme.example.com"))


# =============================================================================
# Rate limiting
# =============================================================================

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(WINDOW_START + 5)


@pytest.fixture
def rate_limiter(clock) -> FixedWindowRateLimiter:
    return FixedWindowRateLimiter(InMemoryCounterBackend(clock=clock), clock=clock)


# =============================================================================
# FastAPI Test Client
# =============================================================================

@pytest.fixture
def app(session_factories, rate_limiter):
    session_factory, tenant_session_factory = session_factories
    return create_app(
        session_factory=session_factory,
        tenant_session_factory=tenant_session_factory,
        rate_limiter=rate_limiter,
    )


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client


# =============================================================================
# Metrics
# =============================================================================

@pytest.fixture
def metric_value():
    """Read a sample from the global metrics registry (0 when absent)"""

    def _read(name: str, labels: dict) -> float:
        value = get_metrics().registry.get_sample_value(name, labels)
        return value or 0.0

    return _read
