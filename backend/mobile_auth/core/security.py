"""Security utilities - JWT access tokens, password hashing, opaque secrets"""

import base64
import hashlib
import hmac
import logging
import secrets
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

import bcrypt
from jose import JWTError, jwt

from mobile_auth.config import MobileAuthConfig
from mobile_auth.core.exceptions import ConfigurationError, InvalidTokenError

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"


@dataclass(frozen=True)
class MobileIdentity:
    """Who an access token is issued to."""

    user_id: str
    role: str
    tenant_id: Optional[str] = None
    employee_id: Optional[str] = None
    device_id: Optional[str] = None


@dataclass(frozen=True)
class AccessTokenClaims:
    """Verified contents of an access token."""

    user_id: str
    role: str
    tenant_id: Optional[str]
    employee_id: Optional[str]
    device_id: Optional[str]
    issued_at: datetime
    expires_at: datetime

    @property
    def identity(self) -> MobileIdentity:
        return MobileIdentity(
            user_id=self.user_id,
            role=self.role,
            tenant_id=self.tenant_id,
            employee_id=self.employee_id,
            device_id=self.device_id,
        )


def _optional_str(payload: Dict[str, Any], key: str) -> Optional[str]:
    value = payload.get(key)
    return value if isinstance(value, str) else None


class TokenCodec:
    """Sign and verify compact, expiring bearer tokens for mobile clients.

    The signing secret is required at construction time; a missing secret is a
    deployment error, not something a request can recover from.
    """

    def __init__(self, config: MobileAuthConfig, clock: Callable[[], float] = time.time):
        if not config.jwt_secret:
            raise ConfigurationError("MOBILE_JWT_SECRET is not set")
        self._secret = config.jwt_secret
        self._algorithm = config.jwt_algorithm
        self._default_ttl = config.access_token_ttl_seconds
        self._clock = clock

    def issue_access_token(self, identity: MobileIdentity, ttl_seconds: Optional[int] = None) -> str:
        """
        Create a signed access token

        Args:
            identity: Claims to embed
            ttl_seconds: Lifetime, defaults to the configured access token TTL

        Returns:
            str: Encoded JWT
        """
        ttl = self._default_ttl if ttl_seconds is None else ttl_seconds
        # NumericDate with millisecond precision so short TTLs expire on time.
        now = self._clock()

        to_encode = {
            "sub": identity.user_id,
            "role": identity.role,
            "tenant_id": identity.tenant_id,
            "employee_id": identity.employee_id,
            "device_id": identity.device_id,
            "typ": ACCESS_TOKEN_TYPE,
            "iat": round(now, 3),
            "exp": round(now + ttl, 3),
            "jti": secrets.token_urlsafe(16),
        }
        return jwt.encode(to_encode, self._secret, algorithm=self._algorithm)

    def verify_access_token(self, token: str) -> AccessTokenClaims:
        """
        Decode and verify an access token

        Raises:
            InvalidTokenError: on any structural, signature, algorithm, type,
                claim or expiry problem
        """
        if not token or not isinstance(token, str):
            raise InvalidTokenError()

        try:
            # Expiry is checked below against the injected clock.
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"verify_exp": False, "require_exp": True, "require_iat": True},
            )
        except JWTError:
            raise InvalidTokenError()

        if payload.get("typ") != ACCESS_TOKEN_TYPE:
            raise InvalidTokenError()

        iat = payload.get("iat")
        exp = payload.get("exp")
        if isinstance(iat, bool) or isinstance(exp, bool):
            raise InvalidTokenError()
        if not isinstance(iat, (int, float)) or not isinstance(exp, (int, float)):
            raise InvalidTokenError()
        if self._clock() >= exp:
            raise InvalidTokenError("Token has expired")

        user_id = _optional_str(payload, "sub")
        role = _optional_str(payload, "role")
        if not user_id or not role:
            raise InvalidTokenError("Invalid token payload")

        return AccessTokenClaims(
            user_id=user_id,
            role=role,
            tenant_id=_optional_str(payload, "tenant_id"),
            employee_id=_optional_str(payload, "employee_id"),
            device_id=_optional_str(payload, "device_id"),
            issued_at=datetime.fromtimestamp(iat, tz=timezone.utc),
            expires_at=datetime.fromtimestamp(exp, tz=timezone.utc),
        )


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against its hash

    Args:
        plain_password: Plain text password
        hashed_password: Hashed password

    Returns:
        bool: True if password matches
    """
    try:
        return bcrypt.checkpw(
            plain_password.encode('utf-8'),
            hashed_password.encode('utf-8')
        )
    except ValueError:
        # Stored hash is not a bcrypt hash.
        return False


def get_password_hash(password: str) -> str:
    """
    Hash a password using bcrypt

    Args:
        password: Plain text password

    Returns:
        str: Hashed password
    """
    return bcrypt.hashpw(
        password.encode('utf-8'),
        bcrypt.gensalt()
    ).decode('utf-8')


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def generate_opaque_token(num_bytes: int) -> str:
    """Random URL-safe token with ``num_bytes`` of entropy (unpadded base64url)."""
    return _b64url(secrets.token_bytes(num_bytes))


def hmac_token(secret: str, raw_token: str) -> str:
    """HMAC-SHA256 of a token, base64url encoded; what gets stored instead of the token."""
    digest = hmac.new(secret.encode("utf-8"), raw_token.encode("utf-8"), hashlib.sha256).digest()
    return _b64url(digest)
