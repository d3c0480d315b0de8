"""Unit tests for token minting/verification and password hashing."""

from datetime import timedelta

import pytest
from jose import JWTError

from app.auth.security import (
    create_access_token,
    create_refresh_token,
    decode_access_token,
    hash_password,
    verify_password,
)


def test_access_token_round_trip() -> None:
    token = create_access_token(user_id=7, school_id=3, role="teacher")
    claims = decode_access_token(token)
    assert claims["user_id"] == 7
    assert claims["school_id"] == 3
    assert claims["role"] == "teacher"
    assert claims["sub"] == "7"
    assert claims["exp"] > claims["iat"]


def test_tampered_token_is_rejected() -> None:
    token = create_access_token(user_id=1, school_id=1, role="student")
    header, payload, signature = token.split(".")
    flipped = signature[:-2] + ("A" if signature[-2] != "A" else "B") + signature[-1]
    with pytest.raises(JWTError):
        decode_access_token(".".join([header, payload, flipped]))


def test_expired_token_is_rejected() -> None:
    token = create_access_token(user_id=1, school_id=1, role="admin", expires_delta=timedelta(seconds=-5))
    with pytest.raises(JWTError):
        decode_access_token(token)


def test_refresh_tokens_are_unique() -> None:
    first, expires_at = create_refresh_token(expires_delta=timedelta(hours=1))
    second, _ = create_refresh_token()
    assert first != second
    assert expires_at.tzinfo is not None


def test_password_hash_and_verify() -> None:
    hashed = hash_password("s3cret")
    assert hashed != "s3cret"
    assert verify_password("s3cret", hashed)
    assert not verify_password("wrong", hashed)


def test_verify_without_hash_fails() -> None:
    assert not verify_password("anything", None)
    assert not verify_password("anything", "not-a-bcrypt-hash")
