import pytest
from fastapi.testclient import TestClient
from starlette.requests import Request

from caldav_bridge.main import create_app
from caldav_bridge.utils.rate_limit import FixedWindowRateLimiter, client_key


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def make_request(headers=None, client=("10.0.0.9", 1234)):
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(name.lower().encode(), value.encode()) for name, value in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


def test_limiter_counts_hits_per_key():
    """Test the remaining allowance and the limit"""
    limiter = FixedWindowRateLimiter(max_requests=2, window_seconds=60, clock=FakeClock())

    first = limiter.hit("a")
    second = limiter.hit("a")
    third = limiter.hit("a")

    assert (first.allowed, first.remaining) == (True, 1)
    assert (second.allowed, second.remaining) == (True, 0)
    assert (third.allowed, third.remaining) == (False, 0)
    assert limiter.hit("b").allowed


def test_limiter_window_resets():
    """Test that a new window starts after window_seconds"""
    clock = FakeClock()
    limiter = FixedWindowRateLimiter(max_requests=1, window_seconds=60, clock=clock)
    limiter.hit("a")

    clock.now = 45
    blocked = limiter.hit("a")
    assert not blocked.allowed
    assert blocked.reset_after == 15

    clock.now = 60
    assert limiter.hit("a").allowed


def test_result_headers():
    """Test the RateLimit-* header values"""
    limiter = FixedWindowRateLimiter(max_requests=5, window_seconds=900, clock=FakeClock())

    assert limiter.hit("a").headers() == {
        "RateLimit-Limit": "5",
        "RateLimit-Remaining": "4",
        "RateLimit-Reset": "900",
    }


@pytest.mark.parametrize("headers,client,expected", [
    ({"X-Forwarded-For": "203.0.113.7, 10.0.0.1"}, ("10.0.0.9", 1234), "203.0.113.7"),
    ({"X-Real-IP": "198.51.100.2"}, ("10.0.0.9", 1234), "198.51.100.2"),
    ({}, ("10.0.0.9", 1234), "10.0.0.9"),
    ({}, None, "127.0.0.1"),
])
def test_client_key(headers, client, expected):
    """Test which address identifies the client"""
    assert client_key(make_request(headers, client)) == expected


@pytest.fixture
def limited_client(settings, store, notifier, registry):
    limiter = FixedWindowRateLimiter(max_requests=2, window_seconds=900, clock=FakeClock())
    app = create_app(settings, store=store, webhook_registry=registry, notifier=notifier, rate_limiter=limiter)
    return TestClient(app)


def test_requests_over_the_limit_are_rejected(limited_client, auth):
    """Test the 429 response once the allowance is used up"""
    assert limited_client.get("/api/ping", headers=auth).status_code == 200
    response = limited_client.get("/api/ping", headers=auth)
    assert response.headers["RateLimit-Limit"] == "2"
    assert response.headers["RateLimit-Remaining"] == "0"

    response = limited_client.get("/api/ping", headers=auth)

    assert response.status_code == 429
    assert response.json() == {"error": "Too many requests, please try again later."}
    assert response.headers["Retry-After"] == "900"


def test_clients_are_limited_separately(limited_client, auth):
    """Test that forwarded addresses get their own allowance"""
    for _ in range(3):
        limited_client.get("/api/ping", headers=auth)

    response = limited_client.get("/api/ping", headers={**auth, "X-Forwarded-For": "203.0.113.7"})

    assert response.status_code == 200


def test_health_check_is_not_limited(limited_client):
    """Test that the health check never counts against the limit"""
    for _ in range(5):
        response = limited_client.get("/health")
        assert response.status_code == 200
        assert "RateLimit-Limit" not in response.headers


def test_unauthenticated_requests_count(limited_client):
    """Test that rejected API key attempts use up the allowance too"""
    for _ in range(2):
        assert limited_client.get("/api/ping").status_code == 401

    assert limited_client.get("/api/ping").status_code == 429
