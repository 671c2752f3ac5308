"""Explicit construction of the credential services."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

import redis

from .config import Settings
from .domain.contracts import CredentialStore, Notifier
from .domain.lifecycle import AccountLifecycleService
from .domain.refresh_tokens import RefreshTokenStore
from .domain.sessions import AuthSessionService
from .security.passwords import PasswordHasher
from .security.rate_limiter import RateLimiter, SlidingWindowRateLimiter
from .security.redis_rate_limiter import RedisSlidingWindowRateLimiter
from .security.token_generator import SecureTokenGenerator
from .security.tokens import ACCESS, REFRESH, AccessTokenCodec, utc_now

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Services:
    sessions: AuthSessionService
    lifecycle: AccountLifecycleService


def build_services(
    settings: Settings,
    store: CredentialStore,
    notifier: Notifier,
    clock: Callable[[], datetime] = utc_now,
) -> Services:
    """Build every credential component from ``settings`` and the two collaborators."""
    hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    access_codec = AccessTokenCodec(
        secret=settings.jwt_access_secret,
        ttl_seconds=settings.access_ttl_seconds,
        issuer=settings.jwt_issuer,
        token_type=ACCESS,
        clock=clock,
    )
    refresh_codec = AccessTokenCodec(
        secret=settings.jwt_refresh_secret,
        ttl_seconds=settings.refresh_ttl_seconds,
        issuer=settings.jwt_issuer,
        token_type=REFRESH,
        clock=clock,
    )
    refresh_tokens = RefreshTokenStore(store, refresh_codec, clock=clock)
    return Services(
        sessions=AuthSessionService(store, hasher, access_codec, refresh_tokens),
        lifecycle=AccountLifecycleService(
            store,
            hasher,
            SecureTokenGenerator(),
            notifier,
            settings,
            clock=clock,
        ),
    )


def build_rate_limiter(settings: Settings) -> RateLimiter:
    """Instantiate the configured rate limiter backend, preferring Redis when available."""
    if settings.rate_limit_backend == "redis" and settings.redis_url:
        client = redis.from_url(settings.redis_url)
        try:
            # ensure connectivity early to fail fast and fall back
            client.ping()
        except redis.RedisError as exc:
            logger.warning("redis rate limiter unavailable, falling back to in-memory: %s", exc)
        else:
            logger.info("rate limiter configured for redis backend")
            return RedisSlidingWindowRateLimiter(
                client,
                max_requests=settings.rate_limit_requests,
                window_seconds=settings.rate_limit_window_seconds,
            )

    logger.info("rate limiter using in-memory backend")
    return SlidingWindowRateLimiter(
        max_requests=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
