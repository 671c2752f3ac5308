from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(slots=True)
class Account:
    """Persisted credential record for a single site user."""

    account_id: str
    email: str
    password_hash: str
    created_at: datetime
    is_active: bool = False
    role_id: str | None = None
    activation_token: str | None = None
    activation_token_expires_at: datetime | None = None
    reset_token: str | None = None
    reset_token_expires_at: datetime | None = None
    refresh_token: str | None = None
    refresh_token_expires_at: datetime | None = None


@dataclass(slots=True, frozen=True)
class ProfileView:
    """Outward view of an account with the password hash and all tokens removed."""

    account_id: str
    email: str
    is_active: bool
    role_id: str | None
    created_at: datetime

    @classmethod
    def from_account(cls, account: Account) -> "ProfileView":
        return cls(
            account_id=account.account_id,
            email=account.email,
            is_active=account.is_active,
            role_id=account.role_id,
            created_at=account.created_at,
        )
