from __future__ import annotations

import dataclasses

import fakeredis
import redis

from auth_service import wiring
from auth_service.security.rate_limiter import SlidingWindowRateLimiter
from auth_service.security.redis_rate_limiter import RedisSlidingWindowRateLimiter


class UnreachableRedis:
    def ping(self):
        raise redis.ConnectionError("connection refused")


def test_memory_backend_by_default(settings):
    assert isinstance(wiring.build_rate_limiter(settings), SlidingWindowRateLimiter)


def test_redis_backend_when_reachable(settings, monkeypatch):
    monkeypatch.setattr(wiring.redis, "from_url", lambda url: fakeredis.FakeStrictRedis())
    configured = dataclasses.replace(settings, rate_limit_backend="redis", redis_url="redis://cache:6379/0")
    assert isinstance(wiring.build_rate_limiter(configured), RedisSlidingWindowRateLimiter)


def test_unreachable_redis_falls_back_to_memory(settings, monkeypatch, caplog):
    monkeypatch.setattr(wiring.redis, "from_url", lambda url: UnreachableRedis())
    configured = dataclasses.replace(settings, rate_limit_backend="redis", redis_url="redis://cache:6379/0")

    limiter = wiring.build_rate_limiter(configured)

    assert isinstance(limiter, SlidingWindowRateLimiter)
    assert "falling back to in-memory" in caplog.text


def test_access_and_refresh_tokens_are_not_interchangeable(services, make_account, password):
    make_account()
    pair = services.sessions.login("user@example.com", password).value
    assert not services.sessions.authenticate(pair.refresh_token).ok
    assert not services.sessions.refresh(pair.access_token).ok
