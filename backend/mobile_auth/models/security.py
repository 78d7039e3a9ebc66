"""Security-related persistence models for mobile clients."""

import uuid

from sqlalchemy import Column, String, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship

from mobile_auth.core.clock import utcnow
from mobile_auth.core.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class MobileDevice(Base):
    """One registered client installation, keyed by (user_id, device_id)."""

    __tablename__ = "mobile_devices"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    device_id = Column(String(200), nullable=False)
    platform = Column(String(64), nullable=True)
    name = Column(String(128), nullable=True)
    app_version = Column(String(64), nullable=True)
    last_seen_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    user = relationship("User", back_populates="mobile_devices")
    challenges = relationship("MobileChallenge", back_populates="device", cascade="all, delete-orphan")
    refresh_tokens = relationship("MobileRefreshToken", back_populates="device", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("user_id", "device_id", name="uq_mobile_devices_user_device"),
    )


class MobileChallenge(Base):
    """Single-use nonce bound to a user and one of their devices."""

    __tablename__ = "mobile_challenges"

    id = Column(String(36), primary_key=True, default=_uuid)
    nonce = Column(String(128), unique=True, nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    mobile_device_id = Column(String(36), ForeignKey("mobile_devices.id", ondelete="CASCADE"), nullable=False)
    expires_at = Column(DateTime, nullable=False)
    used_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    device = relationship("MobileDevice", back_populates="challenges")

    __table_args__ = (
        Index("idx_mobile_challenges_user_device", "user_id", "mobile_device_id"),
    )


class MobileRefreshToken(Base):
    """Refresh token record for rotation/revocation. Only the HMAC of the token is stored."""

    __tablename__ = "mobile_refresh_tokens"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    mobile_device_id = Column(String(36), ForeignKey("mobile_devices.id", ondelete="CASCADE"), nullable=False)
    family_id = Column(String(64), nullable=False, index=True)
    token_hash = Column(String(128), unique=True, nullable=False, index=True)
    replaced_by_id = Column(String(36), nullable=True)
    expires_at = Column(DateTime, nullable=False)
    revoked_at = Column(DateTime, nullable=True)
    user_agent = Column(String(512), nullable=True)
    ip_address = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    device = relationship("MobileDevice", back_populates="refresh_tokens")

    __table_args__ = (
        Index("idx_mobile_refresh_tokens_user_active", "user_id", "revoked_at"),
    )
