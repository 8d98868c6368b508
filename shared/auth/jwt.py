"""
JWT Token Management
====================

Validates the bearer tokens issued by the storefront's auth provider.
Token issuance lives with the auth provider; `create_access_token` is kept
for service-to-service calls and tests.

Version: 0.1.0
"""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt
from pydantic import BaseModel, Field

from shared.config import settings
from shared.logging import get_logger


logger = get_logger(__name__)


class TokenData(BaseModel):
    """Decoded JWT token payload."""

    sub: str = Field(..., description="Subject (user ID)")
    roles: list[str] = Field(default_factory=list, description="User roles")
    exp: datetime = Field(..., description="Expiration time")
    iat: datetime = Field(default_factory=lambda: datetime.now(UTC), description="Issued at")
    token_type: str = Field(default="access", description="Token type")

    # Optional claims
    email: str | None = None
    username: str | None = None


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a JWT access token.

    Args:
        data: Payload data (must include 'sub' for user ID)
        expires_delta: Custom expiration time (default from settings)

    Returns:
        str: Encoded JWT token
    """
    to_encode = data.copy()
    now = datetime.now(UTC)
    expire = now + (
        expires_delta or timedelta(minutes=settings.jwt.access_token_expire_minutes)
    )

    to_encode.update({"exp": expire, "iat": now, "token_type": "access"})

    encoded_jwt = jwt.encode(
        to_encode,
        settings.jwt.secret_key.get_secret_value(),
        algorithm=settings.jwt.algorithm,
    )

    logger.debug(
        "access_token_created",
        sub=data.get("sub"),
        expires_at=expire.isoformat(),
    )

    return encoded_jwt


def decode_token(token: str, verify_type: str | None = None) -> TokenData | None:
    """
    Decode and validate a JWT token.

    Args:
        token: JWT token string
        verify_type: Optional token type to verify

    Returns:
        TokenData: Decoded token data, or None if invalid or expired
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt.secret_key.get_secret_value(),
            algorithms=[settings.jwt.algorithm],
        )
    except JWTError as e:
        logger.warning("token_decode_failed", error=str(e))
        return None

    if verify_type and payload.get("token_type") != verify_type:
        logger.warning(
            "token_type_mismatch",
            expected=verify_type,
            actual=payload.get("token_type"),
        )
        return None

    if not payload.get("sub"):
        logger.warning("token_missing_subject")
        return None

    return TokenData(
        sub=payload["sub"],
        roles=payload.get("roles", []),
        exp=datetime.fromtimestamp(payload["exp"], tz=UTC),
        iat=datetime.fromtimestamp(payload.get("iat", 0), tz=UTC),
        token_type=payload.get("token_type", "access"),
        email=payload.get("email"),
        username=payload.get("username"),
    )
