"""Unit tests for user registration, login and refresh (mocked DB)."""

import uuid
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from pydantic import ValidationError

from src.em_common.errors import (
    EmailExistsError,
    InvalidCredentialsError,
    InvalidRefreshTokenError,
    UserBannedError,
    UsernameExistsError,
)
from src.em_gateway.auth.jwt_handler import create_access_token, create_refresh_token
from src.em_gateway.user.db_models import UserModel
from src.em_gateway.user.schemas import RegisterRequest
from src.em_gateway.user.service import UserService


def _make_user(is_banned: bool = False, role: str = "user") -> UserModel:
    user = UserModel()
    user.id = uuid.uuid4()
    user.username = "alice"
    user.email = "alice@example.com"
    user.password_hash = "$2b$12$fakehash"
    user.role = role
    user.is_banned = is_banned
    user.verified = False
    return user


def _returns(user: UserModel | None) -> AsyncMock:
    result = MagicMock()
    result.scalar_one_or_none.return_value = user
    return AsyncMock(return_value=result)


@pytest.fixture
def service() -> UserService:
    return UserService()


class TestRegisterRequest:
    def test_valid(self) -> None:
        assert RegisterRequest(
            username="alice_01", email="alice@example.com", password="SecurePass1"
        ).username == "alice_01"

    @pytest.mark.parametrize(
        "username,email,password",
        [
            ("ab", "a@b.com", "SecurePass1"),
            ("alice!", "a@b.com", "SecurePass1"),
            ("alice", "not-an-email", "SecurePass1"),
            ("alice", "a@b.com", "Ab1"),
            ("alice", "a@b.com", "NoDigitPass"),
            ("alice", "a@b.com", "12345678"),
        ],
    )
    def test_invalid(self, username: str, email: str, password: str) -> None:
        with pytest.raises(ValidationError):
            RegisterRequest(username=username, email=email, password=password)


class TestRegister:
    async def test_duplicate_username(self, service: UserService) -> None:
        db = AsyncMock()
        db.execute = _returns(_make_user())
        with pytest.raises(UsernameExistsError):
            await service.register("alice", "new@example.com", "Pass1word", db)

    async def test_duplicate_email(self, service: UserService) -> None:
        none, found = MagicMock(), MagicMock()
        none.scalar_one_or_none.return_value = None
        found.scalar_one_or_none.return_value = _make_user()
        db = AsyncMock()
        db.execute = AsyncMock(side_effect=[none, found])
        with pytest.raises(EmailExistsError):
            await service.register("newuser", "alice@example.com", "Pass1word", db)

    async def test_new_user_is_unverified_with_zero_balance(self, service: UserService) -> None:
        db = AsyncMock()
        db.add = MagicMock()
        db.execute = _returns(None)

        with patch("src.em_gateway.user.service.hash_password", return_value="hashed"):
            user = await service.register("newuser", "new@example.com", "Pass1word", db)

        assert user.role == "user"
        assert user.verified is False
        assert user.is_banned is False
        assert user.balance == 0
        db.add.assert_called_once_with(user)


class TestLogin:
    async def test_unknown_user(self, service: UserService) -> None:
        db = AsyncMock()
        db.execute = _returns(None)
        with pytest.raises(InvalidCredentialsError):
            await service.login("nobody", "Pass1word", db)

    async def test_wrong_password(self, service: UserService) -> None:
        db = AsyncMock()
        db.execute = _returns(_make_user())
        with (
            patch("src.em_gateway.user.service.verify_password", return_value=False),
            pytest.raises(InvalidCredentialsError),
        ):
            await service.login("alice", "WrongPass1", db)

    async def test_banned(self, service: UserService) -> None:
        db = AsyncMock()
        db.execute = _returns(_make_user(is_banned=True))
        with (
            patch("src.em_gateway.user.service.verify_password", return_value=True),
            pytest.raises(UserBannedError),
        ):
            await service.login("alice", "Pass1word", db)

    async def test_success(self, service: UserService) -> None:
        db = AsyncMock()
        db.execute = _returns(_make_user(role="admin"))
        with patch("src.em_gateway.user.service.verify_password", return_value=True):
            user, access, refresh = await service.login("alice", "Pass1word", db)
        assert user.username == "alice"
        assert access != refresh


class TestRefresh:
    async def test_garbage_token(self, service: UserService) -> None:
        with pytest.raises(InvalidRefreshTokenError):
            await service.refresh("not.a.real.token", AsyncMock())

    async def test_access_token_rejected(self, service: UserService) -> None:
        with pytest.raises(InvalidRefreshTokenError):
            await service.refresh(create_access_token("user-123"), AsyncMock())

    async def test_banned_user_cannot_refresh(self, service: UserService) -> None:
        user = _make_user(is_banned=True)
        db = AsyncMock()
        db.execute = _returns(user)
        with pytest.raises(UserBannedError):
            await service.refresh(create_refresh_token(str(user.id)), db)


def test_register_request_lowercases_email() -> None:
    req = RegisterRequest(username="bob_7", email="Bob@Example.COM", password="SecurePass1")
    assert req.email == "bob@example.com"
