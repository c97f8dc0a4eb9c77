"""
Stock movement model.
"""

import enum

from sqlalchemy import Column, String, Integer, ForeignKey, Uuid, Enum as SQLEnum

from .base import Base, TenantEntity, AuditableMixin


class MovementType(str, enum.Enum):
    """Kinds of stock movement."""
    IN = "IN"
    OUT = "OUT"
    TRANSFER = "TRANSFER"
    ADJUSTMENT = "ADJUSTMENT"


class StockMovement(Base, TenantEntity, AuditableMixin):
    """A change of on-hand quantity for a product at a location."""

    __tablename__ = "stock_movements"

    product_id = Column(Uuid, ForeignKey("products.id"), nullable=False, index=True)
    location_id = Column(Uuid, ForeignKey("locations.id"), nullable=True)
    movement_type = Column(SQLEnum(MovementType, name="movement_type"), nullable=False)
    quantity = Column(Integer, nullable=False)
    reference = Column(String(100), nullable=True)
    notes = Column(String(500), nullable=True)
