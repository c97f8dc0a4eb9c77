"""
Tenant signup and subscription management routes.
"""

from typing import Any, Dict
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_hub.api.dependencies import (
    ensure_own_tenant,
    get_db,
    get_tenant_context,
    require_tenant_member,
)
from inventory_hub.api.schemas import (
    TenantCreate,
    TenantResponse,
    TenantSignupResponse,
    TierUpgradeRequest,
)
from inventory_hub.auth import create_access_token, hash_password
from inventory_hub.database.connection import open_tenant_session
from inventory_hub.database.models import Role, User, UserRole
from inventory_hub.tenancy.context import TenantContext
from inventory_hub.tenancy.registry import TenantRegistry
from inventory_hub.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()

ADMIN_ROLE = "Admin"


@router.post("", response_model=TenantSignupResponse, status_code=status.HTTP_201_CREATED)
async def create_tenant(
    data: TenantCreate,
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Sign up a new tenant.

    Creates:
    - Tenant registry record with a fresh subscription term
    - Administrator user with the Admin role
    """
    if db.scalars(select(User.id).where(User.email == data.admin_email)).first() is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")

    registry = TenantRegistry(db)
    tenant = registry.create_tenant(
        name=data.name,
        subdomain=data.subdomain,
        admin_email=data.admin_email,
        tier=data.tier,
        company_phone=data.company_phone,
    )

    context = TenantContext(
        actor_id=data.admin_email,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("User-Agent"),
    )
    context.set(tenant.id, strategy="signup")

    try:
        with open_tenant_session(context, factory=request.app.state.tenant_session_factory) as tenant_db:
            admin = User(
                email=data.admin_email,
                password_hash=hash_password(data.admin_password),
                full_name=data.name,
            )
            role = Role(name=ADMIN_ROLE, description="Tenant administrator", permissions=["*"])
            tenant_db.add_all([admin, role])
            tenant_db.flush()
            tenant_db.add(UserRole(user_id=admin.id, role_id=role.id))
            tenant_db.commit()
            admin_id = admin.id
    except Exception:
        logger.error(f"Signup of tenant {tenant.id} failed after registration; deactivating it")
        registry.deactivate(tenant.id, actor_id=data.admin_email)
        raise

    logger.info(f"Tenant signup complete: {tenant.subdomain} ({tenant.id})")
    return TenantSignupResponse(
        tenant=TenantResponse.model_validate(tenant),
        access_token=create_access_token(str(admin_id), str(tenant.id), [ADMIN_ROLE]),
    )


@router.post("/{tenant_id}/upgrade", response_model=TenantResponse)
async def upgrade_tenant(
    tenant_id: UUID,
    data: TierUpgradeRequest,
    claims: Dict[str, Any] = Depends(require_tenant_member),
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Upgrade the subscription tier; new limits apply from the next request."""
    ensure_own_tenant(tenant_id, context)
    tenant = TenantRegistry(db).upgrade_tier(tenant_id, data.tier, actor_id=claims["sub"])
    return TenantResponse.model_validate(tenant)


@router.get("/{tenant_id}/usage")
async def get_tenant_usage(
    tenant_id: UUID,
    request: Request,
    claims: Dict[str, Any] = Depends(require_tenant_member),
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Current usage against the tier limits."""
    ensure_own_tenant(tenant_id, context)
    usage = TenantRegistry(db).get_usage(tenant_id, rate_limiter=request.app.state.rate_limiter)
    return usage.to_dict()


@router.delete("/{tenant_id}")
async def deactivate_tenant(
    tenant_id: UUID,
    claims: Dict[str, Any] = Depends(require_tenant_member),
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Deactivate (soft delete) the tenant. Later requests are rejected."""
    ensure_own_tenant(tenant_id, context)
    TenantRegistry(db).deactivate(tenant_id, actor_id=claims["sub"])
    return {"message": "Tenant deactivated", "tenant_id": str(tenant_id)}
