"""
Pydantic schemas for API request/response validation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Dict, Any
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from inventory_hub.database.models import AuditAction, SubscriptionTier


# Auth schemas
class RegisterRequest(BaseModel):
    """New member of the caller's tenant."""
    email: EmailStr
    password: str = Field(..., min_length=8, description="Password (min 8 characters)")
    full_name: Optional[str] = Field(None, max_length=255)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    """Authentication token response."""
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    tenant_id: str
    user_id: str


# Tenant schemas
class TenantCreate(BaseModel):
    """Tenant signup request."""
    name: str = Field(..., min_length=2, max_length=200)
    subdomain: str = Field(..., min_length=2, max_length=63, pattern=r"^[A-Za-z0-9][A-Za-z0-9-]*$")
    admin_email: EmailStr
    admin_password: str = Field(..., min_length=8)
    company_phone: Optional[str] = Field(None, max_length=50)
    tier: SubscriptionTier = SubscriptionTier.FREE


class TenantResponse(BaseModel):
    """Tenant information response."""
    id: UUID
    name: str
    subdomain: str
    company_email: Optional[str] = None
    subscription_tier: SubscriptionTier
    subscription_expires_at: datetime
    is_active: bool
    max_users: Optional[int] = None
    max_products: Optional[int] = None
    api_rate_limit: int
    created_at: datetime

    class Config:
        from_attributes = True


class TenantSignupResponse(BaseModel):
    tenant: TenantResponse
    access_token: str
    token_type: str = "bearer"


class TierUpgradeRequest(BaseModel):
    tier: SubscriptionTier


# Product schemas
class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    sku: str = Field(..., min_length=1, max_length=100)
    barcode: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    price: Decimal = Field(Decimal("0"), ge=0, max_digits=18, decimal_places=2)
    cost_price: Optional[Decimal] = Field(None, ge=0, max_digits=18, decimal_places=2)
    quantity_in_stock: int = Field(0, ge=0)
    reorder_level: int = Field(0, ge=0)
    category_id: Optional[UUID] = None
    supplier_id: Optional[UUID] = None


class ProductUpdate(BaseModel):
    """Partial product update; only fields sent are applied."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    sku: Optional[str] = Field(None, min_length=1, max_length=100)
    barcode: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0, max_digits=18, decimal_places=2)
    cost_price: Optional[Decimal] = Field(None, ge=0, max_digits=18, decimal_places=2)
    quantity_in_stock: Optional[int] = Field(None, ge=0)
    reorder_level: Optional[int] = Field(None, ge=0)
    category_id: Optional[UUID] = None
    supplier_id: Optional[UUID] = None


class ProductResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    name: str
    sku: str
    barcode: Optional[str] = None
    description: Optional[str] = None
    price: Decimal
    cost_price: Optional[Decimal] = None
    quantity_in_stock: int
    reorder_level: int
    category_id: Optional[UUID] = None
    supplier_id: Optional[UUID] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProductListResponse(BaseModel):
    """Paginated product list."""
    items: List[ProductResponse]
    total: int
    page: int
    page_size: int


# Audit schemas
class AuditLogResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    user_id: str
    action: AuditAction
    entity_type: str
    entity_id: Optional[UUID] = None
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    timestamp: datetime

    class Config:
        from_attributes = True


class AuditLogListResponse(BaseModel):
    items: List[AuditLogResponse]
    total: int
