import math
import threading

import pytest

from mobile_auth.config import MobileAuthConfig
from mobile_auth.models.security import MobileChallenge
from mobile_auth.services.challenge_service import ChallengeService
from factories import FakeClock, create_device, create_user, make_session_factory


@pytest.fixture
def service(config, clock):
    return ChallengeService(config, clock=clock)


@pytest.fixture
def owner(db):
    user = create_user(db)
    device = create_device(db, user)
    return user, device


def test_nonce_shape_and_expiry(db, service, clock, owner):
    user, device = owner
    issued = service.create_challenge(db, user.id, device.id)

    assert len(issued.nonce) == 32
    assert (issued.expires_at - clock.now).total_seconds() == 120

    stored = db.query(MobileChallenge).filter(MobileChallenge.nonce == issued.nonce).one()
    assert stored.used_at is None
    assert stored.mobile_device_id == device.id


def test_nonces_are_unique(db, service, owner):
    user, device = owner
    nonces = {service.create_challenge(db, user.id, device.id).nonce for _ in range(20)}
    assert len(nonces) == 20


@pytest.mark.parametrize("ttl", [0, -5, math.nan, math.inf])
def test_unusable_ttl_falls_back_to_default(ttl):
    config = MobileAuthConfig(jwt_secret="x", refresh_token_secret="y", challenge_ttl_seconds=ttl)
    assert config.challenge_ttl_seconds == 120


def test_custom_ttl_is_honoured(db, clock, owner):
    user, device = owner
    config = MobileAuthConfig(jwt_secret="x", refresh_token_secret="y", challenge_ttl_seconds=30)
    issued = ChallengeService(config, clock=clock).create_challenge(db, user.id, device.id)
    assert (issued.expires_at - clock.now).total_seconds() == 30


def test_consume_succeeds_exactly_once(db, service, owner):
    user, device = owner
    nonce = service.create_challenge(db, user.id, device.id).nonce

    assert service.consume_challenge(db, nonce, user.id, device.id) is True
    assert service.consume_challenge(db, nonce, user.id, device.id) is False


def test_consume_rejects_foreign_user_and_device(db, service, owner):
    user, device = owner
    other_user = create_user(db, "other@example.com")
    other_device = create_device(db, user, device_id="device-0002-efgh")
    nonce = service.create_challenge(db, user.id, device.id).nonce

    assert service.consume_challenge(db, nonce, other_user.id, device.id) is False
    assert service.consume_challenge(db, nonce, user.id, other_device.id) is False
    # Failed attempts leave the challenge usable by its owner.
    assert service.consume_challenge(db, nonce, user.id, device.id) is True


def test_consume_unknown_or_empty_nonce(db, service, owner):
    user, device = owner
    assert service.consume_challenge(db, "does-not-exist", user.id, device.id) is False
    assert service.consume_challenge(db, "", user.id, device.id) is False


def test_challenge_is_dead_at_its_expiry(db, service, clock, owner):
    user, device = owner
    nonce = service.create_challenge(db, user.id, device.id).nonce

    clock.advance(120)
    assert service.consume_challenge(db, nonce, user.id, device.id) is False


def test_challenge_just_before_expiry_is_consumable(db, service, clock, owner):
    user, device = owner
    nonce = service.create_challenge(db, user.id, device.id).nonce

    clock.advance(119)
    assert service.consume_challenge(db, nonce, user.id, device.id) is True


def test_concurrent_consumers_have_a_single_winner(tmp_path, config):
    engine, factory = make_session_factory(f"sqlite:///{tmp_path / 'challenges.db'}")
    clock = FakeClock()
    service = ChallengeService(config, clock=clock)

    setup = factory()
    try:
        user = create_user(setup)
        device = create_device(setup, user)
        user_id, device_id = user.id, device.id
        nonce = service.create_challenge(setup, user_id, device_id).nonce
    finally:
        setup.close()

    workers = 8
    barrier = threading.Barrier(workers)
    results = []
    lock = threading.Lock()

    def consume():
        session = factory()
        try:
            barrier.wait()
            outcome = service.consume_challenge(session, nonce, user_id, device_id)
        finally:
            session.close()
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=consume) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    engine.dispose()

    assert len(results) == workers
    assert results.count(True) == 1
