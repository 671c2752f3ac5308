"""Login, logout, refresh and profile workflows."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .account import Account, ProfileView
from .contracts import CredentialStore, ErrorKind, Outcome, store_guarded, unauthorized
from .refresh_tokens import RefreshTokenStore
from ..security.passwords import PasswordHasher
from ..security.tokens import AccessTokenCodec, TokenClaims, TokenVerificationError
from ..validation import normalize_email

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TokenPair:
    """Encapsulates the access/refresh token pair returned to API consumers."""

    access_token: str
    access_expires_in: int
    refresh_token: str
    refresh_expires_in: int


class AuthSessionService:
    """Session workflows over the credential store.

    A session is the pair of a short-lived access token and the single
    server-tracked refresh token on the account.
    """

    def __init__(
        self,
        store: CredentialStore,
        hasher: PasswordHasher,
        access_codec: AccessTokenCodec,
        refresh_tokens: RefreshTokenStore,
    ) -> None:
        """Store dependencies used to check credentials and mint tokens."""
        self._store = store
        self._hasher = hasher
        self._access_codec = access_codec
        self._refresh_tokens = refresh_tokens

    @store_guarded("login")
    def login(self, email: str, password: str) -> Outcome[TokenPair]:
        """Check credentials and open a session.

        Unknown emails and wrong passwords fail with the same ``unauthorized``
        outcome, and both pay for one bcrypt verification. Inactive accounts
        fail with ``account_inactive`` so the client can offer a resend.
        """
        account = self._store.find_by_email(normalize_email(email))
        if account is None:
            self._hasher.dummy_verify(password)
            logger.info("login rejected: unknown email")
            return unauthorized()

        if not account.is_active:
            logger.info("login rejected for account %s: account inactive", account.account_id)
            return Outcome.failure(
                ErrorKind.account_inactive,
                "Account is not active. Please check your email for activation instructions.",
                email=account.email,
                activation_token_expires_at=account.activation_token_expires_at,
            )

        if not self._hasher.verify(password, account.password_hash):
            logger.info("login rejected for account %s: wrong password", account.account_id)
            return unauthorized()

        logger.info("login succeeded for account %s", account.account_id)
        return Outcome.success(self._open_session(account))

    @store_guarded("logout")
    def logout(self, account_id: str) -> Outcome[None]:
        """Close the session; succeeds whether or not one was open."""
        self._refresh_tokens.revoke(account_id)
        return Outcome.success()

    @store_guarded("refresh")
    def refresh(self, presented_refresh_token: str) -> Outcome[TokenPair]:
        """Rotate a refresh token into a brand-new pair."""
        consumed = self._refresh_tokens.validate_and_consume(presented_refresh_token)
        if not consumed.ok:
            return Outcome(error=consumed.error)
        account = consumed.value
        assert account is not None
        return Outcome.success(self._open_session(account))

    @store_guarded("get_profile")
    def get_profile(self, account_id: str) -> Outcome[ProfileView]:
        account = self._store.find_by_id(account_id)
        if account is None:
            return Outcome.failure(ErrorKind.not_found, f"account {account_id} not found")
        return Outcome.success(ProfileView.from_account(account))

    def authenticate(self, access_token: str) -> Outcome[TokenClaims]:
        """Verify a bearer access token presented to a protected route."""
        try:
            return Outcome.success(self._access_codec.verify(access_token))
        except TokenVerificationError as exc:
            logger.info("access token rejected: %s", exc.reason)
            return unauthorized("invalid or expired access token")

    def _open_session(self, account: Account) -> TokenPair:
        access = self._access_codec.issue(account.account_id, account.email)
        refresh = self._refresh_tokens.issue(account)
        return TokenPair(
            access_token=access.token,
            access_expires_in=access.ttl_seconds,
            refresh_token=refresh.token,
            refresh_expires_in=refresh.ttl_seconds,
        )
