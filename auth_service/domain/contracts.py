"""Domain-level contracts shared by the services, the store and the HTTP layer."""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Generic, Mapping, Protocol, TypeVar

from .account import Account

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Failure categories a caller must handle."""

    unauthorized = "unauthorized"
    account_inactive = "account_inactive"
    not_found = "not_found"
    conflict = "conflict"
    internal = "internal"


@dataclass(slots=True, frozen=True)
class Failure:
    kind: ErrorKind
    message: str
    detail: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class Outcome(Generic[T]):
    """Result of a service operation: either ``value`` or ``error`` is meaningful."""

    value: T | None = None
    error: Failure | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T | None = None) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str, **detail: Any) -> "Outcome[T]":
        return cls(error=Failure(kind=kind, message=message, detail=detail))


def unauthorized(message: str = "invalid credentials") -> Outcome[Any]:
    return Outcome.failure(ErrorKind.unauthorized, message)


class TokenField(str, Enum):
    """Single-use token slots on the account record, named by their column."""

    activation = "activation_token"
    reset = "reset_token"
    refresh = "refresh_token"

    @property
    def expires_column(self) -> str:
        return f"{self.value}_expires_at"


@dataclass(slots=True, frozen=True)
class TokenGuard:
    """Makes an update conditional on a live, matching token.

    The update applies only when ``field`` still equals ``token`` and its
    expiry is strictly later than ``now``.
    """

    field: TokenField
    token: str
    now: datetime


@dataclass(slots=True)
class NewAccountInput:
    """Validated inputs required to create an inactive account."""

    email: str
    password_hash: str
    activation_token: str
    activation_token_expires_at: datetime
    role_id: str | None = None


class CredentialStoreError(Exception):
    """Low-level persistence failure surfaced by a CredentialStore."""


class DuplicateAccountError(CredentialStoreError):
    """Raised by ``create_account`` when the email is already registered."""


class CredentialStore(Protocol):
    """Persistence boundary for account credentials.

    Lookups by email are case-insensitive. Token lookups only return an
    account whose token is unexpired at ``now``.
    """

    def find_by_email(self, email: str) -> Account | None: ...

    def find_by_id(self, account_id: str) -> Account | None: ...

    def find_by_activation_token(self, token: str, now: datetime) -> Account | None: ...

    def find_by_reset_token(self, token: str, now: datetime) -> Account | None: ...

    def find_by_refresh_token(self, token: str, now: datetime) -> Account | None: ...

    def update_fields(
        self,
        account_id: str,
        fields: Mapping[str, Any],
        *,
        guard: TokenGuard | None = None,
    ) -> bool:
        """Apply ``fields`` to the account; return whether a row was updated."""
        ...

    def create_account(self, payload: NewAccountInput) -> Account: ...


class Notifier(Protocol):
    """Outbound email boundary; delivery is best-effort."""

    def send(self, to_email: str, subject: str, body_html: str) -> None: ...


def store_guarded(operation: str) -> Callable[[Callable[..., Outcome[T]]], Callable[..., Outcome[T]]]:
    """Turn a ``CredentialStoreError`` escaping ``operation`` into an ``internal`` outcome."""

    def decorator(func: Callable[..., Outcome[T]]) -> Callable[..., Outcome[T]]:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Outcome[T]:
            try:
                return func(*args, **kwargs)
            except CredentialStoreError:
                logger.exception("%s failed in the credential store", operation)
                return Outcome.failure(ErrorKind.internal, "internal error")

        return wrapper

    return decorator
