"""Activation, password-reset and password-change workflows."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable

from .account import Account
from .contracts import (
    CredentialStore,
    DuplicateAccountError,
    ErrorKind,
    NewAccountInput,
    Notifier,
    Outcome,
    TokenField,
    TokenGuard,
    store_guarded,
    unauthorized,
)
from ..config import Settings
from ..mail_templates import activation_email, reset_password_email
from ..security.passwords import PasswordHasher
from ..security.token_generator import SecureTokenGenerator
from ..security.tokens import utc_now
from ..validation import normalize_email

logger = logging.getLogger(__name__)


class AccountLifecycleService:
    """Single-use token workflows that change an account's standing.

    Issuing a token overwrites any pending one of the same kind. Consuming a
    token is one conditional update keyed by the token, so two concurrent
    consumers of the same token cannot both succeed.
    """

    def __init__(
        self,
        store: CredentialStore,
        hasher: PasswordHasher,
        tokens: SecureTokenGenerator,
        notifier: Notifier,
        settings: Settings,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._hasher = hasher
        self._tokens = tokens
        self._notifier = notifier
        self._activation_ttl_seconds = settings.activation_ttl_seconds
        self._reset_ttl_seconds = settings.reset_ttl_seconds
        self._activation_ttl = timedelta(seconds=settings.activation_ttl_seconds)
        self._reset_ttl = timedelta(seconds=settings.reset_ttl_seconds)
        self._frontend_url = settings.frontend_url.rstrip("/")
        self._clock = clock

    @store_guarded("register")
    def register(self, email: str, password: str, role_id: str | None = None) -> Outcome[Account]:
        """Create an inactive account seeded with an activation token."""
        token = self._tokens.generate()
        payload = NewAccountInput(
            email=normalize_email(email),
            password_hash=self._hasher.hash(password),
            activation_token=token,
            activation_token_expires_at=self._clock() + self._activation_ttl,
            role_id=role_id,
        )
        try:
            account = self._store.create_account(payload)
        except DuplicateAccountError:
            logger.info("registration rejected: email already registered")
            return Outcome.failure(ErrorKind.conflict, "an account with this email already exists")

        logger.info("account %s registered", account.account_id)
        self._send_activation(account.email, token)
        return Outcome.success(account)

    @store_guarded("issue_activation")
    def issue_activation(self, account_id: str) -> Outcome[None]:
        """Replace the pending activation token and email the new link."""
        account = self._store.find_by_id(account_id)
        if account is None:
            return Outcome.failure(ErrorKind.not_found, f"account {account_id} not found")
        self._issue_activation(account)
        return Outcome.success()

    @store_guarded("resend_activation")
    def resend_activation(self, email: str) -> Outcome[None]:
        """Re-issue activation for an inactive account; reports success for any email."""
        account = self._store.find_by_email(normalize_email(email))
        if account is None or account.is_active:
            logger.info("activation resend skipped: no inactive account for the email")
            return Outcome.success()
        self._issue_activation(account)
        return Outcome.success()

    @store_guarded("consume_activation")
    def consume_activation(self, token: str) -> Outcome[Account]:
        """Activate the account holding ``token``.

        Unknown, expired and already-consumed tokens all fail as
        ``unauthorized``.
        """
        now = self._clock()
        account = self._store.find_by_activation_token(token, now)
        if account is None:
            logger.info("activation rejected: no live activation token matches")
            return unauthorized("invalid or expired activation token")

        activated = self._store.update_fields(
            account.account_id,
            {"is_active": True, "activation_token": None, "activation_token_expires_at": None},
            guard=TokenGuard(field=TokenField.activation, token=token, now=now),
        )
        if not activated:
            logger.info("activation rejected for account %s: token already consumed", account.account_id)
            return unauthorized("invalid or expired activation token")

        account.is_active = True
        account.activation_token = None
        account.activation_token_expires_at = None
        logger.info("account %s activated", account.account_id)
        return Outcome.success(account)

    @store_guarded("issue_reset")
    def issue_reset(self, email: str) -> Outcome[None]:
        """Start a password reset.

        The outcome is success whether or not the email is registered; a miss
        returns before any token is generated.
        """
        account = self._store.find_by_email(normalize_email(email))
        if account is None:
            logger.info("password reset requested for an unknown email")
            return Outcome.success()

        token = self._tokens.generate()
        self._store.update_fields(
            account.account_id,
            {"reset_token": token, "reset_token_expires_at": self._clock() + self._reset_ttl},
        )
        logger.info("password reset token issued for account %s", account.account_id)
        link = f"{self._frontend_url}/auth/update-password/?token={token}"
        self._notify(account.email, "Reset Your Password", reset_password_email(link, self._reset_ttl_seconds))
        return Outcome.success()

    @store_guarded("check_reset")
    def check_reset(self, token: str) -> Outcome[None]:
        """Report whether ``token`` is a live reset token without consuming it."""
        if self._store.find_by_reset_token(token, self._clock()) is None:
            logger.info("reset token check failed: no live reset token matches")
            return unauthorized("invalid or expired reset token")
        return Outcome.success()

    @store_guarded("consume_reset")
    def consume_reset(self, token: str, new_password: str) -> Outcome[None]:
        """Set a new password with a reset token and clear the token in the same update."""
        now = self._clock()
        account = self._store.find_by_reset_token(token, now)
        if account is None:
            logger.info("password reset rejected: no live reset token matches")
            return unauthorized("invalid or expired reset token")

        updated = self._store.update_fields(
            account.account_id,
            {
                "password_hash": self._hasher.hash(new_password),
                "reset_token": None,
                "reset_token_expires_at": None,
            },
            guard=TokenGuard(field=TokenField.reset, token=token, now=now),
        )
        if not updated:
            logger.info("password reset rejected for account %s: token already consumed", account.account_id)
            return unauthorized("invalid or expired reset token")
        logger.info("password reset completed for account %s", account.account_id)
        return Outcome.success()

    @store_guarded("change_password")
    def change_password(self, account_id: str, current_password: str, new_password: str) -> Outcome[None]:
        account = self._store.find_by_id(account_id)
        if account is None:
            self._hasher.dummy_verify(current_password)
            logger.info("password change rejected: account %s not found", account_id)
            return unauthorized()
        if not self._hasher.verify(current_password, account.password_hash):
            logger.info("password change rejected for account %s: wrong current password", account_id)
            return unauthorized()

        self._store.update_fields(account_id, {"password_hash": self._hasher.hash(new_password)})
        logger.info("password changed for account %s", account_id)
        return Outcome.success()

    def _issue_activation(self, account: Account) -> None:
        token = self._tokens.generate()
        self._store.update_fields(
            account.account_id,
            {
                "activation_token": token,
                "activation_token_expires_at": self._clock() + self._activation_ttl,
            },
        )
        logger.info("activation token issued for account %s", account.account_id)
        self._send_activation(account.email, token)

    def _send_activation(self, email: str, token: str) -> None:
        link = f"{self._frontend_url}/users/activate/{token}"
        self._notify(email, "Activate Your Account", activation_email(link, self._activation_ttl_seconds))

    def _notify(self, to_email: str, subject: str, body_html: str) -> None:
        # Delivery failures never fail the operation; the stored token is the result.
        try:
            self._notifier.send(to_email, subject, body_html)
        except Exception:
            logger.exception("failed to send %r email", subject)
