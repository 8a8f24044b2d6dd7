"""Authentication module: bearer tokens, roles and principal dependencies."""

from firmsync.core.auth.backend import create_access_token, decode_token
from firmsync.core.auth.middleware import PrincipalContextMiddleware, RequestIdMiddleware
from firmsync.core.auth.roles import PLATFORM_ADMIN_ROLES, Role, is_platform_admin
from firmsync.core.auth.schemas import TokenData


__all__ = [
    "PLATFORM_ADMIN_ROLES",
    "PrincipalContextMiddleware",
    "RequestIdMiddleware",
    "Role",
    "TokenData",
    "create_access_token",
    "decode_token",
    "is_platform_admin",
]
