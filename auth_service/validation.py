"""Input checks applied before a request reaches the services."""

from __future__ import annotations

import re

MIN_PASSWORD_LENGTH = 8
# bcrypt only reads the first 72 bytes of its input.
MAX_PASSWORD_BYTES = 72

_LOWER = re.compile(r"[a-z]")
_UPPER = re.compile(r"[A-Z]")
_DIGIT_OR_SYMBOL = re.compile(r"[\d\W_]")


def password_problems(password: str) -> list[str]:
    """Return every policy rule ``password`` breaks; empty when acceptable."""
    problems: list[str] = []
    if len(password) < MIN_PASSWORD_LENGTH:
        problems.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long.")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        problems.append(f"Password must be at most {MAX_PASSWORD_BYTES} bytes long.")
    if not _LOWER.search(password) or not _UPPER.search(password) or not _DIGIT_OR_SYMBOL.search(password):
        problems.append(
            "Password too weak. Must contain uppercase, lowercase, and a number or special character."
        )
    return problems


def validate_new_password(password: str, confirm: str | None = None) -> str:
    """Return ``password`` if it satisfies the policy, else raise ``ValueError``."""
    problems = password_problems(password)
    if problems:
        raise ValueError(" ".join(problems))
    if confirm is not None and confirm != password:
        raise ValueError("Password confirmation does not match.")
    return password


def normalize_email(email: str) -> str:
    return email.strip().lower()
