"""Narrow persistence interfaces for devices, challenges and refresh tokens.

Every state transition that must not race (consuming a nonce, rotating or
revoking a refresh token) is a single conditional UPDATE whose row count
tells the caller whether it won.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from mobile_auth.models.security import MobileChallenge, MobileDevice, MobileRefreshToken
from mobile_auth.models.user import User


class DeviceStore:
    def __init__(self, db: Session):
        self.db = db

    def find(self, user_id: str, device_id: str) -> Optional[MobileDevice]:
        return (
            self.db.query(MobileDevice)
            .filter(MobileDevice.user_id == user_id, MobileDevice.device_id == device_id)
            .first()
        )

    def get(self, record_id: str) -> Optional[MobileDevice]:
        return self.db.get(MobileDevice, record_id)

    def upsert(
        self,
        *,
        user_id: str,
        device_id: str,
        platform: Optional[str],
        name: Optional[str],
        app_version: Optional[str],
        seen_at: datetime,
    ) -> MobileDevice:
        device = self.find(user_id, device_id)
        if device is None:
            device = MobileDevice(user_id=user_id, device_id=device_id)
            self.db.add(device)
        device.platform = platform
        device.name = name
        device.app_version = app_version
        device.last_seen_at = seen_at
        self.db.flush()
        return device

    def touch(self, record_id: str, seen_at: datetime) -> None:
        self.db.query(MobileDevice).filter(MobileDevice.id == record_id).update(
            {MobileDevice.last_seen_at: seen_at}, synchronize_session=False
        )


class ChallengeStore:
    def __init__(self, db: Session):
        self.db = db

    def create(self, *, nonce: str, user_id: str, mobile_device_id: str, expires_at: datetime,
               created_at: datetime) -> MobileChallenge:
        challenge = MobileChallenge(
            nonce=nonce,
            user_id=user_id,
            mobile_device_id=mobile_device_id,
            expires_at=expires_at,
            created_at=created_at,
        )
        self.db.add(challenge)
        self.db.flush()
        return challenge

    def mark_used_if_unused(self, *, nonce: str, user_id: str, mobile_device_id: str,
                            now: datetime) -> bool:
        """Compare-and-swap ``used_at`` from NULL to ``now``.

        Only a live, unused challenge addressed to this user and device
        matches, so exactly one concurrent caller can see a row count of 1.
        """
        updated = (
            self.db.query(MobileChallenge)
            .filter(
                MobileChallenge.nonce == nonce,
                MobileChallenge.user_id == user_id,
                MobileChallenge.mobile_device_id == mobile_device_id,
                MobileChallenge.used_at.is_(None),
                MobileChallenge.expires_at > now,
            )
            .update({MobileChallenge.used_at: now}, synchronize_session=False)
        )
        return updated == 1


class RefreshTokenStore:
    def __init__(self, db: Session):
        self.db = db

    def create(self, **fields) -> MobileRefreshToken:
        record = MobileRefreshToken(**fields)
        self.db.add(record)
        self.db.flush()
        return record

    def find_by_hash(self, token_hash: str) -> Optional[MobileRefreshToken]:
        return (
            self.db.query(MobileRefreshToken)
            .filter(MobileRefreshToken.token_hash == token_hash)
            .first()
        )

    def revoke_if_active(self, record_id: str, now: datetime,
                         replaced_by_id: Optional[str] = None) -> bool:
        values = {MobileRefreshToken.revoked_at: now}
        if replaced_by_id is not None:
            values[MobileRefreshToken.replaced_by_id] = replaced_by_id
        updated = (
            self.db.query(MobileRefreshToken)
            .filter(MobileRefreshToken.id == record_id, MobileRefreshToken.revoked_at.is_(None))
            .update(values, synchronize_session=False)
        )
        return updated == 1

    def revoke_family(self, family_id: str, now: datetime) -> int:
        return (
            self.db.query(MobileRefreshToken)
            .filter(MobileRefreshToken.family_id == family_id, MobileRefreshToken.revoked_at.is_(None))
            .update({MobileRefreshToken.revoked_at: now}, synchronize_session=False)
        )

    def revoke_all_for_user(self, user_id: str, now: datetime) -> int:
        return (
            self.db.query(MobileRefreshToken)
            .filter(MobileRefreshToken.user_id == user_id, MobileRefreshToken.revoked_at.is_(None))
            .update({MobileRefreshToken.revoked_at: now}, synchronize_session=False)
        )

    def family(self, family_id: str) -> List[MobileRefreshToken]:
        return (
            self.db.query(MobileRefreshToken)
            .filter(MobileRefreshToken.family_id == family_id)
            .order_by(MobileRefreshToken.created_at.desc())
            .all()
        )

    def delete(self, record: MobileRefreshToken) -> None:
        self.db.delete(record)

    def forget_metadata(self, record: MobileRefreshToken) -> None:
        record.user_agent = None
        record.ip_address = None

    def set_user_watermark(self, user_id: str, now: datetime) -> None:
        self.db.query(User).filter(User.id == user_id).update(
            {User.mobile_sessions_valid_after: now}, synchronize_session=False
        )

    def user_watermark(self, user_id: str) -> Optional[datetime]:
        row = self.db.query(User.mobile_sessions_valid_after).filter(User.id == user_id).first()
        return row[0] if row else None
