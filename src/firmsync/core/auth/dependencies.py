"""FastAPI dependencies for the authenticated principal.

``PrincipalContextMiddleware`` has already decoded the bearer token; these
dependencies load the principal from the central store so role and home
tenant are always current.
"""

from typing import TYPE_CHECKING, Annotated, Any

from fastapi import Depends, Request

from firmsync.api.dependencies import DBSession
from firmsync.core.auth.roles import is_platform_admin
from firmsync.core.errors import ForbiddenError, UnauthorizedError


if TYPE_CHECKING:
    from firmsync.modules.users.models import User


async def get_current_principal(request: Request, db: DBSession) -> "User":
    """Get the currently authenticated principal.

    Args:
        request: The incoming request
        db: Central store session

    Returns:
        The active user named by the bearer token

    Raises:
        UnauthorizedError: If there is no token or the user is missing or inactive
    """
    from firmsync.modules.users.repos import UserRepository  # noqa: PLC0415

    user_id = getattr(request.state, "user_id", None)
    if user_id is None:
        raise UnauthorizedError("Authentication required")

    user = await UserRepository(db).get_by_id(user_id)
    if user is None or not user.is_active:
        raise UnauthorizedError("Authentication required")

    return user


async def get_current_platform_admin(
    user: Annotated[Any, Depends(get_current_principal)],
) -> "User":
    """Get the current principal, ensuring it holds a platform-admin role.

    Raises:
        ForbiddenError: If the principal is a tenant role
    """
    if not is_platform_admin(user.role):
        raise ForbiddenError(
            "Platform admin privileges required",
            error_code="PLATFORM_ADMIN_REQUIRED",
        )
    return user


# Use Any for User type to avoid circular imports at runtime
CurrentPrincipal = Annotated[Any, Depends(get_current_principal)]
PlatformAdmin = Annotated[Any, Depends(get_current_platform_admin)]
