"""Tenant, user and employee models"""

import uuid

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from mobile_auth.core.database import Base
from mobile_auth.core.clock import utcnow


def _uuid() -> str:
    return str(uuid.uuid4())


class Tenant(Base):
    """Customer organisation; only its status matters to mobile auth"""

    __tablename__ = "tenants"

    id = Column(String(36), primary_key=True, default=_uuid)
    slug = Column(String(64), unique=True, nullable=False)
    name = Column(String(255), nullable=False)
    status = Column(String(20), default="ACTIVE", nullable=False)
    plan = Column(String(20), default="BASIC", nullable=False)

    users = relationship("User", back_populates="tenant")


class User(Base):
    """User model for authentication and authorization"""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_uuid)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(100))
    last_name = Column(String(100))
    role = Column(String(32), default="EMPLOYEE", nullable=False, index=True)
    status = Column(String(32), default="ACTIVE", nullable=False)
    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    last_login_at = Column(DateTime)
    failed_login_attempts = Column(Integer, default=0, nullable=False)
    locked_until = Column(DateTime)
    # Refresh tokens created at or before this instant are dead (logout everywhere).
    mobile_sessions_valid_after = Column(DateTime, nullable=True)

    # Relationships
    tenant = relationship("Tenant", back_populates="users")
    employee = relationship("Employee", back_populates="user", uselist=False)
    mobile_devices = relationship("MobileDevice", back_populates="user", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_users_tenant', 'tenant_id'),
    )

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"

    @property
    def employee_id(self):
        return self.employee.id if self.employee else None

    def to_dict(self):
        """Convert to the mobile profile payload"""
        return {
            "id": self.id,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "role": self.role,
            "tenantId": self.tenant_id,
            "tenant": {
                "id": self.tenant.id,
                "slug": self.tenant.slug,
                "name": self.tenant.name,
                "status": self.tenant.status,
                "plan": self.tenant.plan,
            } if self.tenant else None,
            "employeeId": self.employee_id,
        }


class Employee(Base):
    """Employee record linked to a user account"""

    __tablename__ = "employees"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), unique=True, nullable=True)
    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    employee_number = Column(String(32), nullable=False)
    first_name = Column(String(100))
    last_name = Column(String(100))

    user = relationship("User", back_populates="employee")

    def to_dict(self):
        return {
            "id": self.id,
            "employeeNumber": self.employee_number,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "tenantId": self.tenant_id,
        }
