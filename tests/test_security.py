"""
Unit tests for password hashing, tokens and generated passwords.
"""
from datetime import timedelta

import pytest
from jose import JWTError

from watchtracker.core.security import (
    SYMBOLS,
    create_access_token,
    decode_access_token,
    generate_secure_password,
    hash_password,
    verify_password,
)


def test_hash_and_verify():
    hashed = hash_password("SecurePass123")

    assert hashed.startswith("$2")
    assert verify_password("SecurePass123", hashed)
    assert not verify_password("securepass123", hashed)


def test_verify_rejects_empty_values():
    assert not verify_password("", hash_password("x"))
    assert not verify_password("x", "")
    assert not verify_password("x", "not-a-hash")


def test_long_passwords_are_truncated_consistently():
    long_password = "é" * 50
    hashed = hash_password(long_password)

    assert verify_password(long_password, hashed)
    assert verify_password("é" * 36, hashed)


def test_token_round_trip():
    token = create_access_token({"sub": "trader", "id": 1})

    payload = decode_access_token(token)

    assert payload["sub"] == "trader"
    assert payload["id"] == 1
    assert "exp" in payload


def test_expired_token():
    token = create_access_token({"sub": "trader"}, expires_delta=timedelta(seconds=-1))

    with pytest.raises(JWTError):
        decode_access_token(token)


@pytest.mark.parametrize("length", [4, 12, 32])
def test_generate_secure_password(length):
    password = generate_secure_password(length)

    assert len(password) == length
    assert any(c.isupper() for c in password)
    assert any(c.islower() for c in password)
    assert any(c.isdigit() for c in password)
    assert any(c in SYMBOLS for c in password)


def test_generate_secure_password_minimum_length():
    with pytest.raises(ValueError):
        generate_secure_password(3)
