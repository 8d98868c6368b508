"""
Unit tests for authentication module.
"""

import pytest
from datetime import timedelta

from fastapi import HTTPException

from shared.auth import (
    create_access_token,
    decode_token,
    get_current_user,
    get_optional_user,
    require_admin,
    user_from_token,
)
from shared.auth.dependencies import User
from shared.auth.jwt import TokenData


class TestJWTTokens:
    """Tests for JWT token functions."""

    def test_create_access_token(self) -> None:
        """Test access token creation."""
        data = {"sub": "user123", "roles": ["member"]}
        token = create_access_token(data)

        assert isinstance(token, str)
        assert len(token) > 50

    def test_decode_access_token(self) -> None:
        """Test access token decoding."""
        data = {
            "sub": "user123",
            "roles": ["admin"],
            "email": "admin@canvango.test",
            "username": "admin",
        }
        token = create_access_token(data)

        decoded = decode_token(token, verify_type="access")

        assert decoded is not None
        assert decoded.sub == "user123"
        assert "admin" in decoded.roles
        assert decoded.email == "admin@canvango.test"
        assert decoded.username == "admin"
        assert decoded.token_type == "access"

    def test_decode_wrong_token_type(self) -> None:
        """Test that decoding with wrong type returns None."""
        access_token = create_access_token({"sub": "user123"})

        assert decode_token(access_token, verify_type="refresh") is None

    def test_decode_invalid_token(self) -> None:
        """Test that invalid token returns None."""
        assert decode_token("invalid.token.string") is None

    def test_decode_expired_token(self) -> None:
        token = create_access_token({"sub": "user123"}, expires_delta=timedelta(seconds=-5))

        assert decode_token(token) is None

    def test_decode_token_without_subject(self) -> None:
        token = create_access_token({"roles": ["member"]})

        assert decode_token(token) is None

    def test_token_with_custom_expiry(self) -> None:
        """Test token with custom expiration."""
        token = create_access_token({"sub": "user123"}, expires_delta=timedelta(minutes=5))

        assert decode_token(token) is not None


class TestTokenData:
    """Tests for TokenData model."""

    def test_token_data_required_fields(self) -> None:
        """Test TokenData requires sub and exp."""
        from datetime import datetime, UTC

        token_data = TokenData(sub="user123", exp=datetime.now(UTC))

        assert token_data.sub == "user123"
        assert token_data.roles == []
        assert token_data.token_type == "access"
        assert token_data.username is None


class TestAuthDependencies:
    """Tests for FastAPI auth dependencies."""

    def test_user_from_token(self) -> None:
        token = create_access_token({"sub": "user123", "roles": ["admin"]})

        user = user_from_token(token)

        assert user is not None
        assert user.id == "user123"
        assert user.is_admin is True

    def test_user_from_missing_token(self) -> None:
        assert user_from_token(None) is None

    @pytest.mark.asyncio
    async def test_optional_user_without_token(self) -> None:
        assert await get_optional_user(None) is None

    @pytest.mark.asyncio
    async def test_current_user_rejects_missing_token(self) -> None:
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(None)

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_require_admin_rejects_member(self) -> None:
        member = User(id="user123", roles=["member"])

        with pytest.raises(HTTPException) as exc_info:
            await require_admin(member)

        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_require_admin_accepts_admin(self) -> None:
        admin = User(id="admin1", roles=["admin"])

        assert await require_admin(admin) is admin
