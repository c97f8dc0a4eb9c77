"""
Authentication routes for login and member registration.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_hub.api.dependencies import get_current_claims, get_db
from inventory_hub.api.schemas import LoginRequest, RegisterRequest, TokenResponse
from inventory_hub.auth import create_access_token, get_jwt_manager, hash_password, verify_password
from inventory_hub.database.connection import open_tenant_session
from inventory_hub.database.models import User
from inventory_hub.tenancy.registry import TenantRegistry
from inventory_hub.utils import utcnow
from inventory_hub.utils.exceptions import AuthenticationError, SubscriptionInactiveError
from inventory_hub.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


def _token_response(user: User, roles) -> TokenResponse:
    manager = get_jwt_manager()
    return TokenResponse(
        access_token=create_access_token(str(user.id), str(user.tenant_id), roles),
        expires_in=int(manager.access_token_expire.total_seconds()),
        tenant_id=str(user.tenant_id),
        user_id=str(user.id),
    )


def _email_taken(db: Session, email: str) -> bool:
    return db.scalars(select(User.id).where(User.email == email)).first() is not None


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(
    data: RegisterRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Add a member to the caller's tenant.

    The new user counts against the tenant's user quota; on the Free tier the
    signup administrator already uses the only seat.
    """
    claims = get_current_claims(request)
    claim_name = request.app.state.config.tenant_claim

    tenant = TenantRegistry(db).get(claims.get(claim_name))
    if tenant is None or not tenant.is_subscription_active():
        raise SubscriptionInactiveError(claims.get(claim_name))

    if _email_taken(db, data.email):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")

    context = request.state.tenant_context
    context.set(tenant.id, strategy="claim")

    with open_tenant_session(context, factory=request.app.state.tenant_session_factory) as tenant_db:
        user = User(
            email=data.email,
            password_hash=hash_password(data.password),
            full_name=data.full_name,
        )
        tenant_db.add(user)
        tenant_db.commit()
        tenant_db.refresh(user)

        logger.info(f"Registered user {user.id} in tenant {tenant.id}")
        return _token_response(user, [])


@router.post("/login", response_model=TokenResponse)
async def login(
    data: LoginRequest,
    db: Session = Depends(get_db),
):
    """Exchange email and password for an access token."""
    user = db.scalars(
        select(User).where(User.email == data.email, User.is_deleted.is_(False))
    ).first()

    if user is None or not verify_password(data.password, user.password_hash):
        logger.warning(f"Failed login attempt for {data.email}")
        raise AuthenticationError("Incorrect email or password")

    if not user.is_active:
        raise AuthenticationError("User account is disabled")

    tenant = TenantRegistry(db).get(user.tenant_id)
    if tenant is None or not tenant.is_subscription_active():
        raise SubscriptionInactiveError(user.tenant_id, tenant.subscription_expires_at if tenant else None)

    roles = [
        assignment.role.name
        for assignment in user.role_assignments
        if not assignment.role.is_deleted
    ]

    # Login bookkeeping is not a tenant data change; written on the registry session
    user.last_login_at = utcnow()
    db.commit()

    logger.info(f"User {user.id} logged in (tenant {user.tenant_id})")
    return _token_response(user, roles)
