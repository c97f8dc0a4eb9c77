"""
Catalog models: categories, suppliers, locations and products.
"""

from sqlalchemy import Column, String, Integer, Numeric, Text, ForeignKey, Index, Uuid, Boolean
from sqlalchemy.orm import relationship

from .base import Base, TenantEntity, AuditableMixin


class Category(Base, TenantEntity):
    """Product category."""

    __tablename__ = "categories"

    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)

    products = relationship("Product", back_populates="category")


class Supplier(Base, TenantEntity, AuditableMixin):
    """Goods supplier."""

    __tablename__ = "suppliers"

    name = Column(String(200), nullable=False)
    contact_email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)

    products = relationship("Product", back_populates="supplier")


class Location(Base, TenantEntity):
    """Warehouse or store location."""

    __tablename__ = "locations"

    name = Column(String(200), nullable=False)
    code = Column(String(50), nullable=True)
    address = Column(String(500), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)


class Product(Base, TenantEntity, AuditableMixin):
    """
    Catalog product. Counts against the tenant's product quota while not
    soft-deleted.
    """

    __tablename__ = "products"

    name = Column(String(200), nullable=False)
    sku = Column(String(100), nullable=False, index=True)
    barcode = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)

    price = Column(Numeric(18, 2), nullable=False, default=0)
    cost_price = Column(Numeric(18, 2), nullable=True)
    quantity_in_stock = Column(Integer, nullable=False, default=0)
    reorder_level = Column(Integer, nullable=False, default=0)

    category_id = Column(Uuid, ForeignKey("categories.id"), nullable=True)
    supplier_id = Column(Uuid, ForeignKey("suppliers.id"), nullable=True)

    category = relationship("Category", back_populates="products")
    supplier = relationship("Supplier", back_populates="products")

    __table_args__ = (
        Index("idx_products_tenant_sku", "tenant_id", "sku"),
        Index("idx_products_tenant_active", "tenant_id", "is_deleted"),
    )

    def __repr__(self):
        return f"<Product(id={self.id}, tenant={self.tenant_id}, sku={self.sku})>"
