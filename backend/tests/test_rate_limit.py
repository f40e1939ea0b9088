from fastapi.testclient import TestClient

from conftest import PASSWORD
from courierhub.config import settings
from courierhub.main import app
from courierhub.utils.rate_limit import FixedWindowLimiter


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_limiter_blocks_after_limit_until_window_resets():
    clock = FakeClock()
    limiter = FixedWindowLimiter(3, 60, clock=clock)
    assert [limiter.hit("ip-1")[0] for _ in range(3)] == [True, True, True]

    allowed, retry_after = limiter.hit("ip-1")
    assert not allowed and retry_after == 60
    # other keys have their own budget
    assert limiter.hit("ip-2")[0]

    clock.now += 45
    allowed, retry_after = limiter.hit("ip-1")
    assert not allowed and retry_after == 15

    clock.now += 15
    assert limiter.hit("ip-1")[0]


def test_limiter_reset():
    limiter = FixedWindowLimiter(1, 60, clock=FakeClock())
    limiter.hit("ip-1")
    assert not limiter.hit("ip-1")[0]
    limiter.reset("ip-1")
    assert limiter.hit("ip-1")[0]


def test_login_is_throttled_per_client(world):
    client = TestClient(app)
    attacker = {"X-Forwarded-For": "203.0.113.7"}
    for _ in range(settings.LOGIN_RATE_LIMIT):
        res = client.post(
            "/api/auth/login", json={"email": "mgr@alpha.example.com", "password": "guess-1234"}, headers=attacker
        )
        assert res.status_code == 401

    res = client.post(
        "/api/auth/login", json={"email": "mgr@alpha.example.com", "password": PASSWORD}, headers=attacker
    )
    assert res.status_code == 429
    assert int(res.headers["Retry-After"]) > 0

    res = client.post(
        "/api/auth/login",
        json={"email": "mgr@alpha.example.com", "password": PASSWORD},
        headers={"X-Forwarded-For": "198.51.100.2"},
    )
    assert res.status_code == 200
