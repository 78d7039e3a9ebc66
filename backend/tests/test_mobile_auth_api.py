import pytest
from fastapi.testclient import TestClient

from mobile_auth.core.database import get_db
from mobile_auth.main import app
from mobile_auth.models.audit import AuditEvent
from factories import DEVICE_ID, TEST_PASSWORD, create_user

AUTH = "/api/mobile/auth"
COOKIE = "mobile_refresh_token"
DEVICE = {"x-device-id": DEVICE_ID, "x-device-platform": "ios", "x-app-version": "1.4.0"}


@pytest.fixture
def client(session_factory):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def user(db):
    return create_user(db)


def _login(client, email="employee@example.com", password=TEST_PASSWORD, headers=DEVICE):
    return client.post(f"{AUTH}/login", json={"email": email, "password": password}, headers=headers)


def _bearer(response, device=DEVICE):
    return {**device, "authorization": f"Bearer {response.json()['data']['accessToken']}"}


def test_login_sets_refresh_cookie_only(client, user):
    response = _login(client, email="Employee@Example.com")
    assert response.status_code == 200

    data = response.json()["data"]
    assert data["tokenType"] == "bearer"
    assert data["expiresIn"] == 8 * 60 * 60
    assert data["user"]["email"] == "employee@example.com"
    assert "refreshToken" not in data

    cookie = response.headers["set-cookie"]
    assert cookie.startswith(f"{COOKIE}=")
    assert "HttpOnly" in cookie
    assert f"Path={AUTH}" in cookie
    assert "samesite=strict" in cookie.lower()
    assert "X-RateLimit-Limit" in response.headers


def test_login_requires_device_header(client, user):
    response = _login(client, headers={})
    assert response.status_code == 400
    assert response.json()["error"] == "Missing or invalid device"


def test_login_rejects_bad_password(client, user):
    response = _login(client, password="nope")
    assert response.status_code == 401
    assert response.json()["success"] is False


def test_login_payload_is_validated(client, user):
    response = client.post(f"{AUTH}/login", json={"email": "not-an-email"}, headers=DEVICE)
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid payload"


def test_profile_is_device_bound(client, user):
    headers = _bearer(_login(client))

    ok = client.get("/api/mobile/me", headers=headers)
    assert ok.status_code == 200
    assert ok.json()["data"]["id"] == user.id

    other_device = {**headers, "x-device-id": "device-9999-zzzz"}
    assert client.get("/api/mobile/me", headers=other_device).status_code == 401

    no_device = {k: v for k, v in headers.items() if k != "x-device-id"}
    assert client.get("/api/mobile/me", headers=no_device).status_code == 400

    assert client.get("/api/mobile/me", headers=DEVICE).status_code == 401


def test_employee_profile(client, db):
    create_user(db)
    response = client.get("/api/mobile/me/employee", headers=_bearer(_login(client)))
    assert response.status_code == 200
    assert response.json()["data"]["employeeNumber"] == "E-001"


def test_employee_profile_requires_employee_context(client, db):
    create_user(db, "admin@example.com", role="SUPER_ADMIN", with_tenant=False, with_employee=False)
    response = client.get("/api/mobile/me/employee", headers=_bearer(_login(client, "admin@example.com")))
    assert response.status_code == 400


def test_challenge_round_trip(client, user):
    headers = _bearer(_login(client))

    issued = client.post(f"{AUTH}/challenge", headers=headers)
    assert issued.status_code == 200
    nonce = issued.json()["data"]["nonce"]
    assert issued.json()["data"]["expiresAt"].endswith("Z")

    first = client.post(f"{AUTH}/challenge/verify", json={"nonce": nonce}, headers=headers)
    assert first.status_code == 200
    assert first.json()["data"]["verified"] is True

    second = client.post(f"{AUTH}/challenge/verify", json={"nonce": nonce}, headers=headers)
    assert second.status_code == 400


def test_refresh_rotates_and_detects_reuse(client, user, db):
    login = _login(client)
    original = client.cookies.get(COOKIE)

    refreshed = client.post(f"{AUTH}/refresh", headers=DEVICE)
    assert refreshed.status_code == 200
    assert refreshed.json()["data"]["accessToken"]
    rotated = client.cookies.get(COOKIE)
    assert rotated and rotated != original

    client.cookies.clear()
    replay = client.post(f"{AUTH}/refresh", json={"refreshToken": original}, headers=DEVICE)
    assert replay.status_code == 401
    assert replay.json()["error"] == "Invalid refresh token"

    # The whole family is gone, including the token issued by the rotation.
    after = client.post(f"{AUTH}/refresh", json={"refreshToken": rotated}, headers=DEVICE)
    assert after.status_code == 401

    assert client.get("/api/mobile/me", headers=_bearer(login)).status_code == 200
    actions = [event.action for event in db.query(AuditEvent).all()]
    assert "MOBILE_LOGIN" in actions
    assert "MOBILE_REFRESH" in actions


def test_refresh_from_another_device_is_rejected(client, user):
    _login(client)
    other = {**DEVICE, "x-device-id": "device-9999-zzzz"}
    assert client.post(f"{AUTH}/refresh", headers=other).status_code == 401


def test_refresh_without_token(client, user):
    assert client.post(f"{AUTH}/refresh", headers=DEVICE).status_code == 401


def test_logout_revokes_and_clears_cookie(client, user):
    _login(client)
    token = client.cookies.get(COOKIE)

    response = client.post(f"{AUTH}/logout", headers=DEVICE)
    assert response.status_code == 200
    assert response.json() == {"data": {"ok": True}}
    assert client.cookies.get(COOKIE) is None

    replay = client.post(f"{AUTH}/refresh", json={"refreshToken": token}, headers=DEVICE)
    assert replay.status_code == 401


def test_logout_requires_a_token(client, user):
    assert client.post(f"{AUTH}/logout", headers=DEVICE).status_code == 400


def test_logout_all_revokes_every_device(client, user):
    tablet = {**DEVICE, "x-device-id": "device-0002-efgh"}
    _login(client, headers=tablet)
    tablet_token = client.cookies.get(COOKIE)
    client.cookies.clear()
    phone = _login(client)

    response = client.post(f"{AUTH}/logout-all", headers=_bearer(phone))
    assert response.status_code == 200
    assert response.json()["data"] == {"ok": True, "revoked": 2}

    client.cookies.clear()
    replay = client.post(f"{AUTH}/refresh", json={"refreshToken": tablet_token}, headers=tablet)
    assert replay.status_code == 401


def test_lockout_after_repeated_failures(client, user):
    for _ in range(5):
        assert _login(client, password="wrong-password").status_code == 401

    locked = _login(client)
    assert locked.status_code == 403
    assert locked.json()["details"]["locked_until"]


def test_inactive_tenant_cannot_sign_in(client, db):
    create_user(db, "suspended@example.com", tenant_status="SUSPENDED")
    assert _login(client, "suspended@example.com").status_code == 403


def test_login_is_rate_limited(client, user):
    for _ in range(10):
        _login(client, password="wrong-password")

    limited = _login(client)
    assert limited.status_code == 429
    assert limited.headers["X-RateLimit-Remaining"] == "0"
    assert "X-RateLimit-Reset" in limited.headers


def test_health_and_metrics(client):
    health = client.get("/health")
    assert health.status_code == 200
    assert health.headers["Cache-Control"] == "no-store"

    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    assert "mobile_auth_http_requests_total" in metrics.text


def test_guard_failures_still_carry_rate_limit_headers(client, user):
    response = client.post(f"{AUTH}/logout-all", headers=DEVICE)
    assert response.status_code == 401
    assert response.headers["X-RateLimit-Limit"] == "20"
    assert response.headers["X-RateLimit-Remaining"] == "19"


def test_body_token_wins_over_stale_cookie(client, user):
    _login(client)
    stale = client.cookies.get(COOKIE)
    assert client.post(f"{AUTH}/refresh", headers=DEVICE).status_code == 200
    current = client.cookies.get(COOKIE)

    # Put the rotated-away token back in the jar; the body carries the live one.
    client.cookies.clear()
    client.cookies.set(COOKIE, stale)
    response = client.post(f"{AUTH}/refresh", json={"refreshToken": current}, headers=DEVICE)
    assert response.status_code == 200
