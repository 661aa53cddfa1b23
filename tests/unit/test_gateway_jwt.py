"""Tests for st_gateway.auth — token verification and role dependencies."""

from datetime import timedelta

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from jose import jwt

from config.settings import settings
from src.st_common.errors import AdminRequiredError, InvalidCredentialsError
from src.st_gateway.auth.dependencies import (
    CurrentUser,
    get_current_user,
    get_optional_user,
    require_admin,
)
from src.st_gateway.auth.jwt_handler import create_access_token, decode_token


def _bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


class TestDecodeToken:
    def test_round_trip_claims(self) -> None:
        payload = decode_token(create_access_token("artisan-1", role="artisan"))
        assert payload["sub"] == "artisan-1"
        assert payload["role"] == "artisan"
        assert payload["type"] == "access"

    def test_email_claim(self) -> None:
        payload = decode_token(create_access_token("p-1", role="patron", email="a@b.c"))
        assert payload["email"] == "a@b.c"

    def test_expired_raises(self) -> None:
        token = create_access_token("u-1", expires_in=timedelta(seconds=-1))
        with pytest.raises(InvalidCredentialsError):
            decode_token(token)

    def test_wrong_secret_raises(self) -> None:
        token = jwt.encode({"sub": "u-1", "type": "access"}, "other-secret", algorithm="HS256")
        with pytest.raises(InvalidCredentialsError):
            decode_token(token)

    def test_non_access_type_raises(self) -> None:
        token = jwt.encode(
            {"sub": "u-1", "type": "refresh"}, settings.JWT_SECRET, algorithm="HS256"
        )
        with pytest.raises(InvalidCredentialsError):
            decode_token(token)

    def test_garbage_raises(self) -> None:
        with pytest.raises(InvalidCredentialsError):
            decode_token("invalid.token.here")


class TestDependencies:
    async def test_current_user(self) -> None:
        user = await get_current_user(_bearer(create_access_token("a-1", role="artisan")))
        assert user == CurrentUser(id="a-1", role="artisan")

    async def test_missing_token_is_401(self) -> None:
        with pytest.raises(HTTPException) as exc:
            await get_current_user(None)
        assert exc.value.status_code == 401

    async def test_optional_user_without_token(self) -> None:
        assert await get_optional_user(None) is None

    async def test_optional_user_rejects_bad_token(self) -> None:
        with pytest.raises(HTTPException):
            await get_optional_user(_bearer("bad"))

    async def test_require_admin_passes_admin(self) -> None:
        admin = CurrentUser(id="adm", role="admin")
        assert await require_admin(admin) is admin

    async def test_require_admin_rejects_seller(self) -> None:
        with pytest.raises(AdminRequiredError):
            await require_admin(CurrentUser(id="a-1", role="artisan"))
