"""
Authentication Module
=====================

JWT bearer authentication for the warranty claim service.

Sessions are issued by the storefront's auth provider; this module only
validates them and exposes the current user to routes.

Usage:
    from shared.auth import get_current_user, require_admin

    @app.get("/claims")
    async def claims(user: User = Depends(get_current_user)):
        return {"user": user.id}

    @app.get("/admin/claims")
    async def admin_claims(user: User = Depends(require_admin)):
        return {"admin": True}
"""

from shared.auth.jwt import (
    create_access_token,
    decode_token,
    TokenData,
)
from shared.auth.dependencies import (
    User,
    get_current_user,
    get_optional_user,
    oauth2_scheme,
    require_admin,
    require_roles,
    user_from_token,
)

__all__ = [
    # JWT
    "create_access_token",
    "decode_token",
    "TokenData",
    # Dependencies
    "User",
    "get_current_user",
    "get_optional_user",
    "require_roles",
    "require_admin",
    "oauth2_scheme",
    "user_from_token",
]
