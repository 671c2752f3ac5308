"""Server-side binding of the single live refresh token per account."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from .account import Account
from .contracts import CredentialStore, Outcome, TokenField, TokenGuard, unauthorized
from ..security.tokens import AccessTokenCodec, IssuedToken, TokenVerificationError, utc_now

logger = logging.getLogger(__name__)

_CLEARED = {"refresh_token": None, "refresh_token_expires_at": None}


class RefreshTokenStore:
    """Issue, rotate and revoke the refresh token stored on an account.

    One account holds at most one refresh token; issuing overwrites the
    previous value, which is what makes rotation invalidate the old token.
    """

    def __init__(
        self,
        store: CredentialStore,
        codec: AccessTokenCodec,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._codec = codec
        self._clock = clock

    def issue(self, account: Account) -> IssuedToken:
        """Mint a refresh token for ``account`` and persist it over any prior one."""
        issued = self._codec.issue(account.account_id, account.email)
        self._store.update_fields(
            account.account_id,
            {"refresh_token": issued.token, "refresh_token_expires_at": issued.expires_at},
        )
        return issued

    def validate_and_consume(self, presented: str) -> Outcome[Account]:
        """Exchange ``presented`` for its account, clearing it from the store.

        Exactly one caller can consume a given token: the final clear is
        conditional on the stored value still matching, so a concurrent
        consumer that lost the race sees the same failure as an unknown token.
        """
        now = self._clock()
        account = self._store.find_by_refresh_token(presented, now)
        if account is None:
            logger.info("refresh rejected: no live session matches the presented token")
            return unauthorized("invalid or expired refresh token")

        try:
            self._codec.verify(presented)
        except TokenVerificationError as exc:
            logger.warning(
                "refresh rejected for account %s: %s; clearing stored token",
                account.account_id,
                exc.reason,
            )
            # Only the rejected token is cleared; a session issued since the lookup survives.
            self._store.update_fields(
                account.account_id,
                _CLEARED,
                guard=TokenGuard(field=TokenField.refresh, token=presented, now=now),
            )
            return unauthorized("invalid or expired refresh token")

        consumed = self._store.update_fields(
            account.account_id,
            _CLEARED,
            guard=TokenGuard(field=TokenField.refresh, token=presented, now=now),
        )
        if not consumed:
            logger.info("refresh rejected for account %s: token already consumed", account.account_id)
            return unauthorized("invalid or expired refresh token")
        return Outcome.success(account)

    def revoke(self, account_id: str) -> None:
        """Clear the refresh session; a no-op for unknown or already-logged-out accounts."""
        if not self._store.update_fields(account_id, _CLEARED):
            logger.info("revoke for account %s matched no record", account_id)
