"""Per-request tenant context.

Built by the isolation gate after every check passed and discarded with
the request. Never persisted.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy import Select, Table


if TYPE_CHECKING:
    from firmsync.modules.tenants.models import Tenant


@dataclass(frozen=True)
class RequestMeta:
    """Request details copied into audit events."""

    ip_address: str | None = None
    user_agent: str | None = None
    url: str | None = None
    request_id: str | None = None


@dataclass(frozen=True)
class TenantContext:
    """The authorized tenant for one request.

    Attributes:
        firm_id: Resolved tenant id
        firm_code: Firm code from the URL
        firm: Full tenant record
        is_admin_access: True when a platform admin entered another firm
        ghost_session_id: The ghost session that allowed admin access
    """

    firm_id: int
    firm_code: str
    firm: "Tenant"
    is_admin_access: bool = False
    ghost_session_id: int | None = None


class TenantQueryScope:
    """Injects the authorized tenant id into query parameters.

    Usage:
        scope = TenantQueryScope(context.firm_id)
        params = scope.add_firm_scope({"status": "open"})
        stmt = scope.scope_select(select(clients), clients)
    """

    def __init__(self, firm_id: int) -> None:
        self.firm_id = firm_id

    def add_firm_scope(self, params: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """Return a copy of ``params`` with ``firm_id`` set to this tenant.

        A caller-supplied ``firm_id`` is always overwritten.
        """
        scoped = dict(params or {})
        scoped["firm_id"] = self.firm_id
        return scoped

    def scope_select(self, statement: Select[Any], table: Table) -> Select[Any]:
        """Restrict a select on a tenant table to this tenant's rows."""
        return statement.where(table.c.firm_id == self.firm_id)
