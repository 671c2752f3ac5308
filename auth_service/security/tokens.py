"""Issuing and verifying the service's signed bearer tokens."""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

import jwt

ACCESS = "access"
REFRESH = "refresh"


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


@dataclass(slots=True, frozen=True)
class TokenClaims:
    """Verified identity carried by an access or refresh token."""

    sub: str
    email: str
    issued_at: datetime
    expires_at: datetime


@dataclass(slots=True, frozen=True)
class IssuedToken:
    """Encoded token together with its absolute expiry."""

    token: str
    expires_at: datetime
    ttl_seconds: int


class TokenVerificationError(Exception):
    """Signals that a presented token must not be trusted.

    ``reason`` is one of ``invalid_signature``, ``expired`` or ``malformed``
    and is meant for logs only.
    """

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class AccessTokenCodec:
    """HS256 JWT codec bound to one secret, TTL and token class.

    The service builds two instances, one per token class, so a leaked access
    secret cannot mint refresh tokens.
    """

    def __init__(
        self,
        *,
        secret: str,
        ttl_seconds: int,
        issuer: str,
        token_type: str = ACCESS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._secret = secret
        self._ttl_seconds = ttl_seconds
        self._issuer = issuer
        self._token_type = token_type
        self._clock = clock

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    def issue(self, subject_id: str, email: str) -> IssuedToken:
        """Create a signed JWT for an authenticated account.

        Parameters
        ----------
        subject_id:
            Account identifier embedded in the ``sub`` claim.
        email:
            Account email embedded in the ``email`` claim.

        Returns
        -------
        IssuedToken
            The encoded JWT and its absolute expiry.
        """

        now = int(self._clock().timestamp())
        expires = now + self._ttl_seconds
        payload: dict[str, Any] = {
            "iss": self._issuer,
            "sub": subject_id,
            "email": email,
            "typ": self._token_type,
            "jti": secrets.token_urlsafe(16),
            "iat": now,
            "exp": expires,
        }
        token = jwt.encode(payload, self._secret, algorithm="HS256")
        return IssuedToken(
            token=token,
            expires_at=datetime.fromtimestamp(expires, tz=timezone.utc),
            ttl_seconds=self._ttl_seconds,
        )

    def verify(self, token: str) -> TokenClaims:
        """Decode and verify a JWT issued by this codec.

        Raises
        ------
        TokenVerificationError
            When the signature, issuer, token class or expiry check fails.
        """

        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=["HS256"],
                issuer=self._issuer,
                options={
                    "require": ["exp", "iat", "sub"],
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
        except jwt.InvalidSignatureError as exc:
            raise TokenVerificationError("invalid_signature") from exc
        except jwt.PyJWTError as exc:
            raise TokenVerificationError("malformed") from exc

        # Expiry is checked against the injected clock; the boundary instant is already expired.
        if int(payload["exp"]) <= int(self._clock().timestamp()):
            raise TokenVerificationError("expired")
        if payload.get("typ") != self._token_type:
            raise TokenVerificationError("malformed")
        return TokenClaims(
            sub=str(payload["sub"]),
            email=str(payload.get("email", "")),
            issued_at=datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc),
            expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc),
        )
