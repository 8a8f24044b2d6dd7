"""Principal roles.

Roles form a closed set split into platform-admin roles and tenant roles.
``is_platform_admin`` is the only place that decides which is which; the
HTTP isolation gate and ``TenantRouter.validate_access`` both go through it.
"""

from enum import StrEnum


class Role(StrEnum):
    """Every role a principal can hold."""

    # Platform staff, not bound to a firm
    SUPER_ADMIN = "super_admin"
    PLATFORM_ADMIN = "platform_admin"
    ADMIN = "admin"

    # Firm members
    FIRM_ADMIN = "firm_admin"
    FIRM_USER = "firm_user"
    PARALEGAL = "paralegal"


PLATFORM_ADMIN_ROLES: frozenset[Role] = frozenset(
    {Role.SUPER_ADMIN, Role.PLATFORM_ADMIN, Role.ADMIN}
)


def is_platform_admin(role: Role | str | None) -> bool:
    """Check whether a role is a platform-admin role.

    Unknown role names are treated as tenant roles.

    Args:
        role: Role enum member or its string value

    Returns:
        True for super_admin, platform_admin and admin
    """
    if role is None:
        return False
    try:
        return Role(role) in PLATFORM_ADMIN_ROLES
    except ValueError:
        return False
