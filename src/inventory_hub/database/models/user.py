"""
User, role and role assignment models.
"""

import uuid

from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Index, Uuid, JSON, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import Base, TenantEntity, TenantScopedMixin


class User(Base, TenantEntity):
    """
    A member of a tenant. Counts against the tenant's user quota while not
    soft-deleted.
    """

    __tablename__ = "users"

    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    last_login_at = Column(DateTime, nullable=True)

    role_assignments = relationship("UserRole", back_populates="user", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_users_tenant_active", "tenant_id", "is_deleted"),
    )

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', tenant={self.tenant_id})>"


class Role(Base, TenantEntity):
    """Named permission set defined per tenant."""

    __tablename__ = "roles"

    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)
    permissions = Column(JSON, nullable=False, default=list)

    assignments = relationship("UserRole", back_populates="role")

    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_roles_tenant_name"),
    )


class UserRole(Base, TenantScopedMixin):
    """
    Many-to-many assignment of roles to users.

    A plain join row: removed with a hard delete rather than flagged.
    """

    __tablename__ = "user_roles"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role_id = Column(Uuid, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False, index=True)

    user = relationship("User", back_populates="role_assignments")
    role = relationship("Role", back_populates="assignments")

    __table_args__ = (
        UniqueConstraint("user_id", "role_id", name="uq_user_roles_user_role"),
    )
