"""Single-use, time-boxed device challenges."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy.orm import Session

from mobile_auth.config import MobileAuthConfig
from mobile_auth.core.clock import utcnow
from mobile_auth.core.security import generate_opaque_token
from mobile_auth.services.stores import ChallengeStore

logger = logging.getLogger(__name__)

NONCE_BYTES = 24


@dataclass(frozen=True)
class IssuedChallenge:
    nonce: str
    expires_at: datetime


def issue_nonce() -> str:
    return generate_opaque_token(NONCE_BYTES)


class ChallengeService:
    """Issue and consume proof-of-possession nonces.

    Consumption answers with a bare boolean. Unknown, foreign, expired and
    already-used nonces are indistinguishable to the caller.
    """

    def __init__(self, config: MobileAuthConfig, clock: Callable[[], datetime] = utcnow):
        self._ttl = timedelta(seconds=config.challenge_ttl_seconds)
        self._clock = clock

    def expiry_for(self, now: datetime) -> datetime:
        return now + self._ttl

    def create_challenge(self, db: Session, user_id: str, device_record_id: str) -> IssuedChallenge:
        now = self._clock()
        nonce = issue_nonce()
        expires_at = self.expiry_for(now)
        ChallengeStore(db).create(
            nonce=nonce,
            user_id=user_id,
            mobile_device_id=device_record_id,
            expires_at=expires_at,
            created_at=now,
        )
        db.commit()
        logger.info("Challenge issued: user=%s device_record=%s", user_id, device_record_id)
        return IssuedChallenge(nonce=nonce, expires_at=expires_at)

    def consume_challenge(self, db: Session, nonce: str, user_id: str, device_record_id: str) -> bool:
        if not nonce:
            return False
        consumed = ChallengeStore(db).mark_used_if_unused(
            nonce=nonce,
            user_id=user_id,
            mobile_device_id=device_record_id,
            now=self._clock(),
        )
        if consumed:
            db.commit()
            logger.info("Challenge consumed: user=%s device_record=%s", user_id, device_record_id)
        else:
            db.rollback()
        return consumed
