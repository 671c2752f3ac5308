"""bcrypt-backed password hashing."""

from __future__ import annotations

import logging

import bcrypt

from ..validation import MAX_PASSWORD_BYTES

logger = logging.getLogger(__name__)


class PasswordHasher:
    """Hash and verify passwords with a fixed bcrypt work factor."""

    def __init__(self, rounds: int = 10) -> None:
        self._rounds = rounds
        # Verified against when the account does not exist, so a miss costs one bcrypt round trip.
        self._dummy_hash = bcrypt.hashpw(b"dummy-password", bcrypt.gensalt(rounds=rounds))

    @property
    def rounds(self) -> int:
        return self._rounds

    def hash(self, plaintext: str) -> str:
        """Return a salted bcrypt hash of ``plaintext``."""
        salt = bcrypt.gensalt(rounds=self._rounds)
        return bcrypt.hashpw(plaintext.encode("utf-8"), salt).decode("utf-8")

    def verify(self, plaintext: str, hashed: str) -> bool:
        """Return ``True`` when ``plaintext`` matches ``hashed``.

        Never raises: a mismatch, an over-long input or an unreadable stored
        hash all yield ``False``.
        """
        candidate = plaintext.encode("utf-8")
        if len(candidate) > MAX_PASSWORD_BYTES:
            # No stored hash can match: the password policy caps new passwords at this length.
            logger.info("password verification skipped: input exceeds %d bytes", MAX_PASSWORD_BYTES)
            return False
        try:
            return bcrypt.checkpw(candidate, hashed.encode("utf-8"))
        except ValueError:
            logger.warning("stored password hash could not be parsed")
            return False

    def dummy_verify(self, plaintext: str) -> bool:
        """Spend one verification on a throwaway hash; always ``False``."""
        try:
            bcrypt.checkpw(plaintext.encode("utf-8"), self._dummy_hash)
        except ValueError:
            pass
        return False
