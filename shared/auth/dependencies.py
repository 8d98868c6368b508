"""
FastAPI Authentication Dependencies
===================================

Dependency injection for route protection.

Version: 0.1.0
"""

from collections.abc import Callable
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel, Field

from shared.auth.jwt import decode_token
from shared.logging import bind_context, get_logger


logger = get_logger(__name__)

# OAuth2 scheme for token extraction from Authorization header
oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl="/auth/token",
    auto_error=False,
)


class User(BaseModel):
    """Authenticated user model for dependency injection."""

    id: str = Field(..., description="User ID")
    email: str | None = Field(default=None, description="User email")
    username: str | None = Field(default=None, description="Storefront username")
    roles: list[str] = Field(default_factory=list, description="User roles")

    @property
    def is_admin(self) -> bool:
        return "admin" in self.roles


def user_from_token(token: str | None) -> User | None:
    """
    Resolve a bearer token to a user, or None when missing/invalid.

    Shared by HTTP dependencies and WebSocket handshakes, which carry the
    token as a query parameter.
    """
    if token is None:
        return None

    token_data = decode_token(token, verify_type="access")
    if token_data is None:
        return None

    return User(
        id=token_data.sub,
        email=token_data.email,
        username=token_data.username,
        roles=token_data.roles,
    )


async def get_optional_user(
    token: Annotated[str | None, Depends(oauth2_scheme)],
) -> User | None:
    """
    Return the authenticated user, or None without failing.

    Routes using this hand the absence of a session to the claim services,
    which report it as NOT_AUTHENTICATED.
    """
    user = user_from_token(token)
    if user is None and token is not None:
        logger.warning("auth_token_invalid")
    if user is not None:
        bind_context(user_id=user.id)
    return user


async def get_current_user(
    token: Annotated[str | None, Depends(oauth2_scheme)],
) -> User:
    """
    Extract and validate user from JWT token.

    Args:
        token: JWT token from Authorization header

    Returns:
        User: Authenticated user

    Raises:
        HTTPException: 401 if token is missing or invalid
    """
    user = user_from_token(token)

    if user is None:
        logger.warning("auth_token_missing" if token is None else "auth_token_invalid")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    bind_context(user_id=user.id)
    logger.debug("user_authenticated", user_id=user.id)
    return user


def require_roles(
    required_roles: list[str],
    require_all: bool = False,
) -> Callable[..., User]:
    """
    Create a dependency that requires specific roles.

    Args:
        required_roles: List of role names required
        require_all: If True, user must have ALL roles. If False, ANY role suffices.

    Returns:
        Dependency function

    Usage:
        @app.get("/admin")
        async def admin_only(user: User = Depends(require_roles(["admin"]))):
            ...
    """

    async def role_checker(
        current_user: Annotated[User, Depends(get_current_user)],
    ) -> User:
        user_roles = set(current_user.roles)
        required = set(required_roles)

        if require_all:
            has_roles = required.issubset(user_roles)
        else:
            has_roles = bool(required.intersection(user_roles))

        if not has_roles:
            logger.warning(
                "insufficient_roles",
                user_id=current_user.id,
                user_roles=list(user_roles),
                required_roles=required_roles,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )

        return current_user

    return role_checker


require_admin = require_roles(["admin"])
