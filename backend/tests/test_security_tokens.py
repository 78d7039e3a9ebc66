import base64
import json
import time

import pytest
from jose import jwt

from mobile_auth.config import MobileAuthConfig
from mobile_auth.core.exceptions import ConfigurationError, InvalidTokenError, UnauthorizedError
from mobile_auth.core.security import (
    MobileIdentity,
    TokenCodec,
    generate_opaque_token,
    get_password_hash,
    hmac_token,
    verify_password,
)


class FakeTime:
    def __init__(self, start=1_800_000_000.0):
        self.now = start

    def __call__(self):
        return self.now


IDENTITY = MobileIdentity(
    user_id="u1",
    role="EMPLOYEE",
    tenant_id="t1",
    employee_id="e1",
    device_id="device-0001-abcd",
)


def _b64(data: dict) -> str:
    return base64.urlsafe_b64encode(json.dumps(data).encode()).rstrip(b"=").decode()


def test_access_token_round_trip(config):
    codec = TokenCodec(config)
    claims = codec.verify_access_token(codec.issue_access_token(IDENTITY))
    assert claims.identity == IDENTITY
    lifetime = (claims.expires_at - claims.issued_at).total_seconds()
    assert lifetime == pytest.approx(config.access_token_ttl_seconds, abs=0.01)


def test_default_ttl_is_eight_hours(config):
    assert config.access_token_ttl_seconds == 8 * 60 * 60


def test_optional_claims_may_be_absent(config):
    codec = TokenCodec(config)
    claims = codec.verify_access_token(
        codec.issue_access_token(MobileIdentity(user_id="u2", role="SUPER_ADMIN"))
    )
    assert claims.tenant_id is None
    assert claims.employee_id is None
    assert claims.device_id is None


def test_token_expires_at_issued_at_plus_ttl(config):
    clock = FakeTime()
    codec = TokenCodec(config, clock=clock)
    token = codec.issue_access_token(IDENTITY, ttl_seconds=60)

    clock.now += 59
    assert codec.verify_access_token(token).user_id == "u1"

    clock.now += 1
    with pytest.raises(InvalidTokenError):
        codec.verify_access_token(token)


def test_end_to_end_one_second_token_expires():
    codec = TokenCodec(MobileAuthConfig(jwt_secret="e2e-secret", refresh_token_secret="x"))
    token = codec.issue_access_token(
        MobileIdentity(user_id="u1", role="EMPLOYEE", employee_id="e1", tenant_id="t1"),
        ttl_seconds=1,
    )

    claims = codec.verify_access_token(token)
    assert (claims.user_id, claims.role, claims.employee_id, claims.tenant_id) == ("u1", "EMPLOYEE", "e1", "t1")

    time.sleep(1.1)
    with pytest.raises(InvalidTokenError):
        codec.verify_access_token(token)


def test_rejects_token_signed_with_other_secret(config):
    other = TokenCodec(MobileAuthConfig(jwt_secret="a-completely-different-secret", refresh_token_secret="x"))
    with pytest.raises(UnauthorizedError):
        TokenCodec(config).verify_access_token(other.issue_access_token(IDENTITY))


def test_rejects_token_signed_with_other_algorithm(config):
    now = int(time.time())
    forged = jwt.encode(
        {"sub": "u1", "role": "EMPLOYEE", "typ": "access", "iat": now, "exp": now + 600},
        config.jwt_secret,
        algorithm="HS512",
    )
    with pytest.raises(InvalidTokenError):
        TokenCodec(config).verify_access_token(forged)


def test_rejects_unsigned_token(config):
    now = int(time.time())
    header = _b64({"alg": "none", "typ": "JWT"})
    payload = _b64({"sub": "u1", "role": "EMPLOYEE", "typ": "access", "iat": now, "exp": now + 600})
    with pytest.raises(InvalidTokenError):
        TokenCodec(config).verify_access_token(f"{header}.{payload}.")


def test_rejects_tampered_payload(config):
    codec = TokenCodec(config)
    header, _, signature = codec.issue_access_token(IDENTITY).split(".")
    now = int(time.time())
    payload = _b64({"sub": "admin", "role": "SUPER_ADMIN", "typ": "access", "iat": now, "exp": now + 600})
    with pytest.raises(InvalidTokenError):
        codec.verify_access_token(f"{header}.{payload}.{signature}")


@pytest.mark.parametrize("claims", [
    {"role": "EMPLOYEE"},
    {"sub": "u1"},
    {"sub": "u1", "role": 7},
    {"sub": "u1", "role": ""},
])
def test_rejects_validly_signed_partial_payloads(config, claims):
    now = int(time.time())
    token = jwt.encode(
        {**claims, "typ": "access", "iat": now, "exp": now + 600},
        config.jwt_secret,
        algorithm="HS256",
    )
    with pytest.raises(InvalidTokenError):
        TokenCodec(config).verify_access_token(token)


def test_rejects_token_without_expiry(config):
    token = jwt.encode(
        {"sub": "u1", "role": "EMPLOYEE", "typ": "access", "iat": int(time.time())},
        config.jwt_secret,
        algorithm="HS256",
    )
    with pytest.raises(InvalidTokenError):
        TokenCodec(config).verify_access_token(token)


def test_rejects_non_access_token_type(config):
    now = int(time.time())
    token = jwt.encode(
        {"sub": "u1", "role": "EMPLOYEE", "typ": "refresh", "iat": now, "exp": now + 600},
        config.jwt_secret,
        algorithm="HS256",
    )
    with pytest.raises(InvalidTokenError):
        TokenCodec(config).verify_access_token(token)


def test_non_string_optional_claims_are_dropped(config):
    now = int(time.time())
    token = jwt.encode(
        {"sub": "u1", "role": "EMPLOYEE", "tenant_id": 42, "employee_id": ["e1"],
         "typ": "access", "iat": now, "exp": now + 600},
        config.jwt_secret,
        algorithm="HS256",
    )
    claims = TokenCodec(config).verify_access_token(token)
    assert claims.tenant_id is None
    assert claims.employee_id is None


@pytest.mark.parametrize("garbage", ["", "not-a-jwt", "a.b.c"])
def test_rejects_garbage(config, garbage):
    with pytest.raises(InvalidTokenError):
        TokenCodec(config).verify_access_token(garbage)


def test_missing_secret_fails_at_construction():
    with pytest.raises(ConfigurationError):
        TokenCodec(MobileAuthConfig(jwt_secret="", refresh_token_secret="x"))


def test_password_hash_round_trip():
    hashed = get_password_hash("s3cret-pass")
    assert verify_password("s3cret-pass", hashed) is True
    assert verify_password("wrong", hashed) is False
    assert verify_password("s3cret-pass", "not-a-bcrypt-hash") is False


def test_opaque_tokens_are_url_safe_and_unique():
    tokens = {generate_opaque_token(24) for _ in range(50)}
    assert len(tokens) == 50
    for token in tokens:
        assert len(token) == 32
        assert "=" not in token and "+" not in token and "/" not in token


def test_hmac_token_depends_on_secret():
    assert hmac_token("a", "token") == hmac_token("a", "token")
    assert hmac_token("a", "token") != hmac_token("b", "token")
