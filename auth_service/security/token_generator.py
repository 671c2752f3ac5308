"""Opaque single-use tokens for activation and password-reset links."""

from __future__ import annotations

import hmac
import secrets

TOKEN_BYTES = 32


class SecureTokenGenerator:
    """Generate and compare unstructured bearer secrets."""

    def __init__(self, token_bytes: int = TOKEN_BYTES) -> None:
        self._token_bytes = token_bytes

    def generate(self) -> str:
        """Return ``token_bytes`` of CSPRNG output as lowercase hex."""
        return secrets.token_hex(self._token_bytes)

    @staticmethod
    def constant_time_equals(a: str, b: str) -> bool:
        """Compare two tokens without leaking the mismatch position.

        Inputs of different byte length compare unequal instead of raising.
        """
        left = a.encode("utf-8")
        right = b.encode("utf-8")
        if len(left) != len(right):
            return False
        return hmac.compare_digest(left, right)
