import os
import sys
import tempfile
from pathlib import Path

# Environment must be in place before mobile_auth.config is imported.
_test_tmp_dir = tempfile.mkdtemp(prefix="mobile_auth_test_")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("LOG_FILE", os.path.join(_test_tmp_dir, "app.log"))
os.environ.setdefault("MOBILE_JWT_SECRET", "test-jwt-secret-for-testing-only-do-not-use")
os.environ.setdefault("MOBILE_REFRESH_TOKEN_SECRET", "test-refresh-secret-for-testing-only-do-not-use")

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest  # noqa: E402

from mobile_auth.config import MobileAuthConfig  # noqa: E402
from mobile_auth.services.rate_limiter import rate_limiter  # noqa: E402
from factories import FakeClock, make_session_factory  # noqa: E402


@pytest.fixture
def session_factory():
    engine, factory = make_session_factory()
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def config():
    return MobileAuthConfig(
        jwt_secret="unit-test-jwt-secret-0123456789abcdef",
        refresh_token_secret="unit-test-refresh-secret-0123456789abcdef",
        refresh_family_max_size=5,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(autouse=True)
def reset_rate_limits():
    rate_limiter.reset()
    yield
    rate_limiter.reset()
