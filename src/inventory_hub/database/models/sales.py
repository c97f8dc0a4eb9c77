"""
Sales models: customers, orders and order lines.
"""

import enum

from sqlalchemy import Column, String, Integer, Numeric, DateTime, ForeignKey, Uuid, Enum as SQLEnum
from sqlalchemy.orm import relationship

from inventory_hub.utils import utcnow
from .base import Base, TenantEntity, AuditableMixin


class OrderStatus(str, enum.Enum):
    """Order lifecycle states."""
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    SHIPPED = "SHIPPED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Customer(Base, TenantEntity, AuditableMixin):
    """Customer of a tenant."""

    __tablename__ = "customers"

    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)

    orders = relationship("Order", back_populates="customer")


class Order(Base, TenantEntity, AuditableMixin):
    """Sales order."""

    __tablename__ = "orders"

    order_number = Column(String(50), nullable=False, index=True)
    status = Column(SQLEnum(OrderStatus, name="order_status"), nullable=False, default=OrderStatus.PENDING)
    order_date = Column(DateTime, nullable=False, default=utcnow)
    total_amount = Column(Numeric(18, 2), nullable=False, default=0)

    customer_id = Column(Uuid, ForeignKey("customers.id"), nullable=True)

    customer = relationship("Customer", back_populates="orders")
    items = relationship("OrderItem", back_populates="order")


class OrderItem(Base, TenantEntity):
    """Order line."""

    __tablename__ = "order_items"

    order_id = Column(Uuid, ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(Uuid, ForeignKey("products.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(18, 2), nullable=False)

    order = relationship("Order", back_populates="items")
