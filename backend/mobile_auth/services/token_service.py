"""Refresh token issuance, rotation and revocation for mobile devices."""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.orm import Session

from mobile_auth.config import MobileAuthConfig
from mobile_auth.core.clock import naive_utc, utcnow
from mobile_auth.core.exceptions import ConfigurationError, RefreshTokenRejectedError
from mobile_auth.core.security import generate_opaque_token, hmac_token
from mobile_auth.services.stores import DeviceStore, RefreshTokenStore

logger = logging.getLogger(__name__)

REFRESH_TOKEN_BYTES = 48


@dataclass(frozen=True)
class IssuedRefreshToken:
    token: str
    expires_at: datetime
    record_id: str


@dataclass(frozen=True)
class RotatedRefreshToken:
    user_id: str
    device_record_id: str
    token: str
    expires_at: datetime


class RefreshTokenService:
    """Manage the refresh-token family lifecycle.

    Tokens are opaque random strings; only their HMAC is persisted. Each use
    rotates the token. Presenting a token that was already rotated away is
    treated as theft and kills the whole family.
    """

    def __init__(self, config: MobileAuthConfig, clock: Callable[[], datetime] = utcnow):
        if not config.refresh_token_secret:
            raise ConfigurationError("MOBILE_REFRESH_TOKEN_SECRET is not set")
        self._secret = config.refresh_token_secret
        self._ttl = timedelta(days=config.refresh_token_ttl_days)
        self._max_family_size = config.refresh_family_max_size
        self._clock = clock

    def hash_token(self, raw_token: str) -> str:
        return hmac_token(self._secret, raw_token)

    def expiry_for(self, now: datetime) -> datetime:
        return now + self._ttl

    def _create_record(
        self,
        store: RefreshTokenStore,
        *,
        user_id: str,
        device_record_id: str,
        family_id: str,
        now: datetime,
        user_agent: Optional[str],
        ip_address: Optional[str],
    ) -> IssuedRefreshToken:
        raw = generate_opaque_token(REFRESH_TOKEN_BYTES)
        expires_at = self.expiry_for(now)
        record = store.create(
            user_id=user_id,
            mobile_device_id=device_record_id,
            family_id=family_id,
            token_hash=self.hash_token(raw),
            expires_at=expires_at,
            user_agent=user_agent,
            ip_address=ip_address,
            created_at=now,
        )
        return IssuedRefreshToken(token=raw, expires_at=expires_at, record_id=record.id)

    def issue(
        self,
        db: Session,
        user_id: str,
        device_record_id: str,
        *,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> IssuedRefreshToken:
        """Start a new token family for a device and commit it."""
        issued = self._create_record(
            RefreshTokenStore(db),
            user_id=user_id,
            device_record_id=device_record_id,
            family_id=secrets.token_urlsafe(24),
            now=self._clock(),
            user_agent=user_agent,
            ip_address=ip_address,
        )
        db.commit()
        logger.info("Refresh token issued: user=%s record=%s", user_id, issued.record_id)
        return issued

    def _reject(self, db: Session, reason: str, record_id: Optional[str] = None) -> RefreshTokenRejectedError:
        db.commit()
        logger.info("Refresh token rejected: reason=%s record=%s", reason, record_id)
        return RefreshTokenRejectedError(reason)

    def rotate(
        self,
        db: Session,
        raw_token: str,
        device_id: str,
        *,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> RotatedRefreshToken:
        """
        Exchange a refresh token for a new one in the same family

        Raises:
            RefreshTokenRejectedError: invalid, revoked, expired, device_mismatch or reused
        """
        if not raw_token:
            raise RefreshTokenRejectedError("invalid")

        store = RefreshTokenStore(db)
        now = self._clock()
        record = store.find_by_hash(self.hash_token(raw_token))
        if record is None:
            raise RefreshTokenRejectedError("invalid")

        if record.revoked_at is not None:
            if record.replaced_by_id is not None:
                revoked = store.revoke_family(record.family_id, now)
                logger.warning(
                    "Refresh token reuse detected: user=%s record=%s family_revoked=%d",
                    record.user_id, record.id, revoked,
                )
                raise self._reject(db, "reused", record.id)
            raise RefreshTokenRejectedError("revoked")

        if naive_utc(record.expires_at) <= now:
            store.revoke_if_active(record.id, now)
            raise self._reject(db, "expired", record.id)

        watermark = store.user_watermark(record.user_id)
        if watermark is not None and naive_utc(record.created_at) < naive_utc(watermark):
            store.revoke_if_active(record.id, now)
            raise self._reject(db, "revoked", record.id)

        device = DeviceStore(db).get(record.mobile_device_id)
        if device is None or device.device_id != device_id:
            raise RefreshTokenRejectedError("device_mismatch")

        replacement = self._create_record(
            store,
            user_id=record.user_id,
            device_record_id=record.mobile_device_id,
            family_id=record.family_id,
            now=now,
            user_agent=user_agent,
            ip_address=ip_address,
        )
        if not store.revoke_if_active(record.id, now, replaced_by_id=replacement.record_id):
            # Another request rotated this token first.
            db.rollback()
            revoked = store.revoke_family(record.family_id, now)
            logger.warning(
                "Concurrent refresh token use: user=%s record=%s family_revoked=%d",
                record.user_id, record.id, revoked,
            )
            raise self._reject(db, "reused", record.id)

        DeviceStore(db).touch(record.mobile_device_id, now)

        self._prune_family(store, record.family_id, now)

        user_id = record.user_id
        device_record_id = record.mobile_device_id
        db.commit()
        logger.info("Refresh token rotated: user=%s record=%s", user_id, replacement.record_id)
        return RotatedRefreshToken(
            user_id=user_id,
            device_record_id=device_record_id,
            token=replacement.token,
            expires_at=replacement.expires_at,
        )

    def _prune_family(self, store: RefreshTokenStore, family_id: str, now: datetime) -> None:
        """Bound a family's footprint without losing reuse detection.

        Hashes of rotated-away tokens stay until they expire, so replaying an
        old stolen token still kills the family. Past the size bound only the
        client metadata is dropped.
        """
        family_tokens = store.family(family_id)
        for stale in family_tokens[self._max_family_size:]:
            if naive_utc(stale.expires_at) <= now:
                store.delete(stale)
            else:
                store.forget_metadata(stale)

    def revoke(self, db: Session, raw_token: str, device_id: str) -> bool:
        """Revoke one token presented by its device. Idempotent for already-revoked tokens."""
        if not raw_token:
            return False
        store = RefreshTokenStore(db)
        record = store.find_by_hash(self.hash_token(raw_token))
        if record is None:
            return False
        device = DeviceStore(db).get(record.mobile_device_id)
        if device is None or device.device_id != device_id:
            return False
        if record.revoked_at is None:
            store.revoke_if_active(record.id, self._clock())
            db.commit()
            logger.info("Refresh token revoked: user=%s record=%s", record.user_id, record.id)
        return True

    def owner_of(self, db: Session, raw_token: str) -> Optional[str]:
        """User id owning a token, if the token is known."""
        if not raw_token:
            return None
        record = RefreshTokenStore(db).find_by_hash(self.hash_token(raw_token))
        return record.user_id if record else None

    def revoke_all_for_user(self, db: Session, user_id: str) -> int:
        """Log a user out everywhere; returns how many active tokens were revoked."""
        store = RefreshTokenStore(db)
        now = self._clock()
        count = store.revoke_all_for_user(user_id, now)
        store.set_user_watermark(user_id, now)
        db.commit()
        logger.info("All refresh tokens revoked: user=%s count=%d", user_id, count)
        return count
