"""Tenant isolation gate.

Every request addressed to a firm passes through ``TenantIsolationGate``
before any business logic runs. Checks run in a fixed order and the first
failure ends the request:

1. firm code present and well formed
2. principal present, known and active
3. firm code names an active tenant
4. principal belongs to the tenant or is a platform admin
5. a platform admin entering another tenant holds a current ghost session
   for exactly that tenant
"""

import re
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import Any

import structlog

from firmsync.core.audit import AuditAction, AuditEvent, AuditSeverity, AuditSink
from firmsync.core.constants import FIRM_CODE_PATTERN, MAX_SLUG_LENGTH
from firmsync.core.errors import AppException
from firmsync.core.tenancy.context import RequestMeta, TenantContext
from firmsync.core.tenancy.errors import (
    FirmNotFoundError,
    GhostSessionRequiredError,
    InvalidFirmCodeError,
    MissingFirmCodeError,
    TenantAccessDeniedError,
    TenantValidationError,
    UnauthenticatedError,
)
from firmsync.core.tenancy.policy import can_access_tenant, requires_ghost_session
from firmsync.modules.ghost_sessions.models import GhostSession
from firmsync.modules.ghost_sessions.repos import GhostSessionRepository
from firmsync.modules.tenants.models import Tenant
from firmsync.modules.tenants.repos import TenantRepository
from firmsync.modules.users.models import User
from firmsync.modules.users.repos import UserRepository


logger = structlog.get_logger()

_FIRM_CODE_RE = re.compile(FIRM_CODE_PATTERN)


def validate_firm_code(firm_code: str | None) -> str:
    """Check a firm code's presence and character set.

    Args:
        firm_code: Raw value from the URL

    Returns:
        The firm code unchanged

    Raises:
        MissingFirmCodeError: If empty
        InvalidFirmCodeError: If it has characters outside [A-Za-z0-9_-]
            or is longer than a slug can be
    """
    if not firm_code:
        raise MissingFirmCodeError()
    if len(firm_code) > MAX_SLUG_LENGTH or not _FIRM_CODE_RE.fullmatch(firm_code):
        raise InvalidFirmCodeError()
    return firm_code


def find_current_ghost_session(
    sessions: Sequence[GhostSession], tenant_id: int, now: datetime
) -> GhostSession | None:
    """Pick the session that opens ``tenant_id`` right now, if any.

    A session for any other tenant never matches.
    """
    for ghost_session in sessions:
        if ghost_session.target_firm_id == tenant_id and ghost_session.is_current(now):
            return ghost_session
    return None


class TenantIsolationGate:
    """Decides whether one principal may enter one tenant.

    Args:
        tenants: Tenant lookups in the central store
        ghost_sessions: Ghost session lookups in the central store
        users: Principal lookups in the central store
        audit_sink: Receives grant and denial events
        clock: Current time source, injectable for tests
    """

    def __init__(
        self,
        tenants: TenantRepository,
        ghost_sessions: GhostSessionRepository,
        users: UserRepository,
        audit_sink: AuditSink,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self.tenants = tenants
        self.ghost_sessions = ghost_sessions
        self.users = users
        self.audit_sink = audit_sink
        self.clock = clock

    async def authorize(
        self,
        firm_code: str | None,
        principal: User | int | None,
        meta: RequestMeta | None = None,
    ) -> TenantContext:
        """Run every check and build the tenant context.

        Args:
            firm_code: Firm code from the URL
            principal: A loaded user, a user id to load, or None
            meta: Request details for audit events

        Returns:
            The authorized tenant context

        Raises:
            AppException: A coded boundary error; anything unexpected is
                raised as TenantValidationError
        """
        meta = meta or RequestMeta()
        try:
            return await self._authorize(firm_code, principal, meta)
        except AppException:
            raise
        except Exception as e:
            logger.exception(
                "tenant_validation_error",
                firm_code=firm_code,
                error_type=type(e).__name__,
            )
            raise TenantValidationError() from e

    async def _authorize(
        self,
        firm_code: str | None,
        principal: User | int | None,
        meta: RequestMeta,
    ) -> TenantContext:
        firm_code = validate_firm_code(firm_code)

        user = await self._load_principal(principal)
        if user is None or not user.is_active:
            raise UnauthenticatedError()

        tenant = await self.tenants.get_active_by_slug(firm_code)
        if tenant is None:
            logger.info("tenant_not_found", firm_code=firm_code, user_id=user.id)
            raise FirmNotFoundError()

        if not can_access_tenant(user.role, user.firm_id, tenant.id):
            await self._record(
                AuditAction.TENANT_ACCESS_DENIED,
                AuditSeverity.SECURITY_ALERT,
                user,
                tenant,
                meta,
            )
            raise TenantAccessDeniedError()

        is_admin_access = requires_ghost_session(user.role, user.firm_id, tenant.id)
        ghost_session_id = None
        if is_admin_access:
            sessions = await self.ghost_sessions.list_active_for_admin(user.id)
            ghost_session = find_current_ghost_session(sessions, tenant.id, self.clock())
            if ghost_session is None:
                await self._record(
                    AuditAction.GHOST_SESSION_REQUIRED,
                    AuditSeverity.SECURITY_ALERT,
                    user,
                    tenant,
                    meta,
                    is_admin_access=True,
                )
                raise GhostSessionRequiredError()
            ghost_session_id = ghost_session.id

        await self._record(
            AuditAction.TENANT_ACCESS_GRANTED,
            AuditSeverity.INFO,
            user,
            tenant,
            meta,
            is_admin_access=is_admin_access,
            ghost_session_id=ghost_session_id,
        )

        return TenantContext(
            firm_id=tenant.id,
            firm_code=tenant.slug,
            firm=tenant,
            is_admin_access=is_admin_access,
            ghost_session_id=ghost_session_id,
        )

    async def _load_principal(self, principal: User | int | None) -> User | None:
        if principal is None:
            return None
        if isinstance(principal, int):
            return await self.users.get_by_id(principal)
        return principal

    async def _record(
        self,
        action: AuditAction,
        severity: AuditSeverity,
        user: User,
        tenant: Tenant,
        meta: RequestMeta,
        **fields: Any,
    ) -> None:
        await self.audit_sink.record(
            AuditEvent(
                action=action,
                severity=severity,
                principal_id=user.id,
                principal_email=user.email,
                principal_role=str(user.role),
                principal_firm_id=user.firm_id,
                tenant_id=tenant.id,
                tenant_code=tenant.slug,
                tenant_name=tenant.name,
                ip_address=meta.ip_address,
                user_agent=meta.user_agent,
                url=meta.url,
                request_id=meta.request_id,
                timestamp=self.clock(),
                **fields,
            )
        )
