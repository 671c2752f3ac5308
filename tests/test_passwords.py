from __future__ import annotations

from auth_service.security.passwords import PasswordHasher


def test_verify_accepts_the_hashed_password():
    hasher = PasswordHasher(rounds=4)
    hashed = hasher.hash("correct horse")
    assert hasher.verify("correct horse", hashed)


def test_verify_rejects_a_different_password():
    hasher = PasswordHasher(rounds=4)
    assert not hasher.verify("correct horse", hasher.hash("correct horse" + "x"))


def test_hash_is_salted_per_call():
    hasher = PasswordHasher(rounds=4)
    first = hasher.hash("same")
    second = hasher.hash("same")
    assert first != second
    assert hasher.verify("same", first) and hasher.verify("same", second)


def test_hash_uses_configured_cost():
    assert PasswordHasher(rounds=5).hash("pw").startswith("$2b$05$")


def test_verify_returns_false_for_garbage_hash():
    assert PasswordHasher(rounds=4).verify("pw", "not-a-bcrypt-hash") is False


def test_dummy_verify_never_matches():
    hasher = PasswordHasher(rounds=4)
    assert hasher.dummy_verify("dummy-password") is False


def test_overlong_password_is_rejected_without_blaming_the_hash(caplog):
    hasher = PasswordHasher(rounds=4)
    hashed = hasher.hash("correct horse")

    assert hasher.verify("x" * 100, hashed) is False
    assert "could not be parsed" not in caplog.text
