from __future__ import annotations

import dataclasses
import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

import pytest

from auth_service.config import Settings
from auth_service.domain.account import Account
from auth_service.domain.contracts import (
    CredentialStoreError,
    DuplicateAccountError,
    NewAccountInput,
    TokenField,
    TokenGuard,
)
from auth_service.security.passwords import PasswordHasher
from auth_service.wiring import Services, build_services


class FakeCredentialStore:
    """In-memory store mimicking the conditional updates of the Postgres repository."""

    def __init__(self) -> None:
        self._accounts: dict[str, Account] = {}
        self._lock = threading.Lock()
        self.fail_with: Exception | None = None
        self.updates: list[tuple[str, dict[str, Any]]] = []

    def add(self, account: Account) -> Account:
        self._accounts[account.account_id] = account
        return account

    def get(self, account_id: str) -> Account:
        return self._accounts[account_id]

    def find_by_email(self, email: str) -> Account | None:
        self._maybe_fail()
        for account in self._accounts.values():
            if account.email.lower() == email.lower():
                return dataclasses.replace(account)
        return None

    def find_by_id(self, account_id: str) -> Account | None:
        self._maybe_fail()
        account = self._accounts.get(account_id)
        return dataclasses.replace(account) if account else None

    def find_by_activation_token(self, token: str, now: datetime) -> Account | None:
        return self._find_by_token(TokenField.activation, token, now)

    def find_by_reset_token(self, token: str, now: datetime) -> Account | None:
        return self._find_by_token(TokenField.reset, token, now)

    def find_by_refresh_token(self, token: str, now: datetime) -> Account | None:
        return self._find_by_token(TokenField.refresh, token, now)

    def update_fields(
        self,
        account_id: str,
        fields: Mapping[str, Any],
        *,
        guard: TokenGuard | None = None,
    ) -> bool:
        self._maybe_fail()
        with self._lock:
            account = self._accounts.get(account_id)
            if account is None:
                return False
            if guard is not None and not self._token_live(account, guard.field, guard.token, guard.now):
                return False
            for name, value in fields.items():
                setattr(account, name, value)
            self.updates.append((account_id, dict(fields)))
            return True

    def create_account(self, payload: NewAccountInput) -> Account:
        self._maybe_fail()
        with self._lock:
            if any(a.email.lower() == payload.email.lower() for a in self._accounts.values()):
                raise DuplicateAccountError(payload.email)
            account = Account(
                account_id=str(uuid.uuid4()),
                email=payload.email,
                password_hash=payload.password_hash,
                created_at=datetime.now(timezone.utc),
                role_id=payload.role_id,
                activation_token=payload.activation_token,
                activation_token_expires_at=payload.activation_token_expires_at,
            )
            self._accounts[account.account_id] = account
            return dataclasses.replace(account)

    def _find_by_token(self, field: TokenField, token: str, now: datetime) -> Account | None:
        self._maybe_fail()
        for account in self._accounts.values():
            if self._token_live(account, field, token, now):
                return dataclasses.replace(account)
        return None

    @staticmethod
    def _token_live(account: Account, field: TokenField, token: str, now: datetime) -> bool:
        expires_at = getattr(account, field.expires_column)
        return getattr(account, field.value) == token and expires_at is not None and expires_at > now

    def _maybe_fail(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with


class FakeClock:
    """Controllable clock returning aware UTC datetimes."""

    def __init__(self) -> None:
        self.now = datetime.now(timezone.utc).replace(microsecond=0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class RecordingNotifier:
    def __init__(self) -> None:
        self.sent: list[tuple[str, str, str]] = []
        self.fail = False

    def send(self, to_email: str, subject: str, body_html: str) -> None:
        if self.fail:
            raise ConnectionError("smtp unavailable")
        self.sent.append((to_email, subject, body_html))


PASSWORD = "Sup3r-secret"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        jwt_access_secret="test-access-secret-0123456789abcdef",
        jwt_refresh_secret="test-refresh-secret-0123456789abcdef",
        bcrypt_rounds=4,
        frontend_url="https://site.example",
        rate_limit_requests=3,
        rate_limit_window_seconds=60,
    ).validate()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> FakeCredentialStore:
    return FakeCredentialStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def hasher(settings: Settings) -> PasswordHasher:
    return PasswordHasher(rounds=settings.bcrypt_rounds)


@pytest.fixture
def services(settings, store, notifier, clock) -> Services:
    return build_services(settings, store, notifier, clock=clock)


@pytest.fixture
def make_account(store: FakeCredentialStore, hasher: PasswordHasher):
    """Factory inserting an account directly into the fake store."""

    def factory(email: str = "user@example.com", password: str = PASSWORD, *, active: bool = True) -> Account:
        return store.add(
            Account(
                account_id=str(uuid.uuid4()),
                email=email,
                password_hash=hasher.hash(password),
                created_at=datetime.now(timezone.utc),
                is_active=active,
                role_id="role-user",
            )
        )

    return factory


@pytest.fixture
def broken_store(store: FakeCredentialStore) -> FakeCredentialStore:
    store.fail_with = CredentialStoreError("connection refused")
    return store


@pytest.fixture
def password() -> str:
    return PASSWORD
