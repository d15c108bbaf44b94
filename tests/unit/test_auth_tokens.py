"""Unit tests for JWT handling and password hashing."""

from datetime import timedelta
from unittest.mock import patch

import pytest
from jose import jwt

from src.em_common.errors import InvalidCredentialsError, InvalidRefreshTokenError
from src.em_gateway.auth.jwt_handler import (
    create_access_token,
    create_refresh_token,
    decode_token,
)
from src.em_gateway.auth.password import hash_password, verify_password


def test_access_token_carries_role() -> None:
    payload = jwt.get_unverified_claims(create_access_token("user-123", "admin"))
    assert payload["sub"] == "user-123"
    assert payload["type"] == "access"
    assert payload["role"] == "admin"


def test_refresh_token_has_no_role() -> None:
    payload = jwt.get_unverified_claims(create_refresh_token("user-123"))
    assert payload["type"] == "refresh"
    assert "role" not in payload


def test_decode_round_trip() -> None:
    assert decode_token(create_access_token("user-abc"), expected_type="access")["sub"] == "user-abc"


def test_token_type_confusion_rejected() -> None:
    with pytest.raises(InvalidRefreshTokenError):
        decode_token(create_access_token("user-abc"), expected_type="refresh")
    with pytest.raises(InvalidCredentialsError):
        decode_token(create_refresh_token("user-abc"), expected_type="access")


def test_expired_access_token() -> None:
    with patch("src.em_gateway.auth.jwt_handler._ACCESS_EXPIRE", timedelta(seconds=-1)):
        token = create_access_token("user-abc")
    with pytest.raises(InvalidCredentialsError):
        decode_token(token, expected_type="access")


def test_tampered_token() -> None:
    token = create_access_token("user-abc")
    with pytest.raises(InvalidCredentialsError):
        decode_token(token[:-4] + "xxxx", expected_type="access")


def test_password_hash_round_trip() -> None:
    hashed = hash_password("MySecret1")
    assert hashed != "MySecret1"
    assert verify_password("MySecret1", hashed)
    assert not verify_password("WrongPass9", hashed)


def test_malformed_stored_hash_is_mismatch() -> None:
    assert verify_password("MySecret1", "not-a-bcrypt-hash") is False
