"""
Product management routes.

All queries run on a TenantSession: rows of other tenants and soft-deleted
rows are invisible here, and a foreign product id answers 404 exactly like a
missing one.
"""

from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response
from sqlalchemy import func, or_, select

from inventory_hub.api.dependencies import get_tenant_db, require_tenant_member
from inventory_hub.api.schemas import (
    ProductCreate,
    ProductListResponse,
    ProductResponse,
    ProductUpdate,
)
from inventory_hub.database.models import Product
from inventory_hub.tenancy.isolation import soft_delete
from inventory_hub.tenancy.session import TenantSession
from inventory_hub.utils.exceptions import NotFoundError
from inventory_hub.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


def _get_product(db: TenantSession, product_id: UUID) -> Product:
    product = db.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product", product_id)
    return product


@router.get("", response_model=ProductListResponse)
async def list_products(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=200, description="Items per page"),
    search: Optional[str] = Query(None, description="Search by SKU or name"),
    low_stock_only: bool = Query(False, description="Show only products at or below reorder level"),
    claims: Dict[str, Any] = Depends(require_tenant_member),
    db: TenantSession = Depends(get_tenant_db),
):
    """List the tenant's products."""
    filters = []
    if search:
        pattern = f"%{search}%"
        filters.append(or_(Product.name.ilike(pattern), Product.sku.ilike(pattern)))
    if low_stock_only:
        filters.append(Product.quantity_in_stock <= Product.reorder_level)

    total = db.scalar(select(func.count()).select_from(Product).where(*filters)) or 0
    products = db.scalars(
        select(Product)
        .where(*filters)
        .order_by(Product.name)
        .offset((page - 1) * page_size)
        .limit(page_size)
    ).all()

    return ProductListResponse(
        items=[ProductResponse.model_validate(p) for p in products],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    data: ProductCreate,
    claims: Dict[str, Any] = Depends(require_tenant_member),
    db: TenantSession = Depends(get_tenant_db),
):
    """Create a product. Subject to the tier's product quota."""
    product = Product(**data.model_dump())
    db.add(product)
    db.commit()
    db.refresh(product)

    logger.info(f"Product {product.id} ({product.sku}) created in tenant {product.tenant_id}")
    return ProductResponse.model_validate(product)


@router.patch("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: UUID,
    data: ProductUpdate,
    claims: Dict[str, Any] = Depends(require_tenant_member),
    db: TenantSession = Depends(get_tenant_db),
):
    """Apply the sent fields to a product."""
    product = _get_product(db, product_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(product, field, value)

    db.commit()
    db.refresh(product)
    return ProductResponse.model_validate(product)


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
    product_id: UUID,
    claims: Dict[str, Any] = Depends(require_tenant_member),
    db: TenantSession = Depends(get_tenant_db),
):
    """Soft delete a product; it frees one product slot."""
    product = _get_product(db, product_id)
    soft_delete(db, product)
    db.commit()

    logger.info(f"Product {product_id} deleted")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
