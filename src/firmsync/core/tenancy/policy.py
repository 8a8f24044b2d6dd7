"""Tenant access policy.

One comparison rule shared by the HTTP isolation gate and
``TenantRouter.validate_access``.
"""

from firmsync.core.auth.roles import Role, is_platform_admin


def can_access_tenant(
    role: Role | str | None, home_firm_id: int | None, tenant_id: int
) -> bool:
    """Check whether a principal may act inside a tenant.

    Args:
        role: The principal's role
        home_firm_id: The principal's home tenant, if any
        tenant_id: The tenant being accessed

    Returns:
        True for platform admins, or when the home tenant is the target
    """
    if is_platform_admin(role):
        return True
    return home_firm_id is not None and home_firm_id == tenant_id


def requires_ghost_session(
    role: Role | str | None, home_firm_id: int | None, tenant_id: int
) -> bool:
    """Check whether access must be backed by a ghost session.

    True for platform admins entering a tenant other than their own home
    tenant (admins without a home tenant always need one).
    """
    return is_platform_admin(role) and home_firm_id != tenant_id
