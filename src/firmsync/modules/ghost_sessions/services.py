"""Ghost session service.

A ghost session is the only way a platform admin gets into a firm other
than their own. Sessions are time-boxed and open exactly one firm.
"""

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Annotated

import structlog
from fastapi import Depends

from firmsync.api.dependencies import AuditSinkDep, DBSession
from firmsync.config import settings
from firmsync.core.audit import AuditAction, AuditEvent, AuditSink
from firmsync.core.auth.roles import Role, is_platform_admin
from firmsync.core.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from firmsync.core.tenancy.context import RequestMeta
from firmsync.core.tenancy.errors import FirmNotFoundError
from firmsync.modules.ghost_sessions.models import GhostSession
from firmsync.modules.ghost_sessions.repos import GhostSessionRepository
from firmsync.modules.tenants.models import Tenant
from firmsync.modules.tenants.repos import TenantRepository
from firmsync.modules.users.models import User


logger = structlog.get_logger()


class GhostSessionService:
    """Start, end and list ghost sessions.

    Args:
        repo: Ghost session repository
        tenants: Tenant repository on the same session
        audit_sink: Receives start and end events
        max_duration: Upper bound for session lifetime in seconds
        clock: Current time source, injectable for tests
    """

    def __init__(
        self,
        repo: GhostSessionRepository,
        tenants: TenantRepository,
        audit_sink: AuditSink,
        max_duration: int = settings.ghost_session_max_duration,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self.repo = repo
        self.tenants = tenants
        self.audit_sink = audit_sink
        self.max_duration = max_duration
        self.clock = clock

    async def start(
        self,
        admin: User,
        target_firm_id: int,
        purpose: str,
        access_level: str = "read",
        duration_seconds: int | None = None,
        meta: RequestMeta | None = None,
    ) -> GhostSession:
        """Open a ghost session into one firm.

        Any session the admin already holds for the same firm is ended
        first, so at most one is active per (admin, firm) pair.

        Args:
            admin: The platform admin
            target_firm_id: The firm to enter
            purpose: Support reason, kept for audit
            access_level: Access granted inside the firm
            duration_seconds: Lifetime, defaults to the configured maximum
            meta: Request details for the audit trail

        Returns:
            The new session

        Raises:
            ForbiddenError: If the caller is not a platform admin
            BadRequestError: If the duration exceeds the maximum
            FirmNotFoundError: If the firm is missing or not active
        """
        if not is_platform_admin(admin.role):
            raise ForbiddenError(
                "Only platform admins can start ghost sessions",
                error_code="PLATFORM_ADMIN_REQUIRED",
            )

        duration = duration_seconds or self.max_duration
        if duration > self.max_duration:
            raise BadRequestError(
                f"Ghost sessions last at most {self.max_duration} seconds",
                error_code="GHOST_SESSION_TOO_LONG",
            )

        tenant = await self.tenants.get_active_by_id(target_firm_id)
        if tenant is None:
            raise FirmNotFoundError()

        now = self.clock()
        for existing in await self.repo.list_active_for_admin(admin.id):
            if existing.target_firm_id == target_firm_id:
                await self.repo.deactivate(existing, ended_at=now)

        meta = meta or RequestMeta()
        ghost_session = await self.repo.create(
            GhostSession(
                admin_user_id=admin.id,
                target_firm_id=target_firm_id,
                purpose=purpose,
                access_level=access_level,
                ip_address=meta.ip_address,
                user_agent=meta.user_agent,
                started_at=now,
                max_duration=duration,
            )
        )

        await self._audit(AuditAction.GHOST_SESSION_STARTED, ghost_session, admin, tenant, meta)
        return ghost_session

    async def end(
        self, session_token: str, actor: User, meta: RequestMeta | None = None
    ) -> GhostSession:
        """End a ghost session.

        Raises:
            NotFoundError: If no session has this token
            ForbiddenError: If the actor neither owns it nor is super_admin
            ConflictError: If it already ended
        """
        ghost_session = await self.repo.get_by_token(session_token)
        if ghost_session is None:
            raise NotFoundError("Ghost session not found", resource="ghost_session")

        if ghost_session.admin_user_id != actor.id and actor.role != Role.SUPER_ADMIN:
            raise ForbiddenError("Cannot end another admin's ghost session")

        if not ghost_session.is_active:
            raise ConflictError(
                "Ghost session already ended", error_code="GHOST_SESSION_ENDED"
            )

        await self.repo.deactivate(ghost_session, ended_at=self.clock())

        tenant = await self.tenants.get_by_id(ghost_session.target_firm_id)
        await self._audit(
            AuditAction.GHOST_SESSION_ENDED, ghost_session, actor, tenant, meta or RequestMeta()
        )
        return ghost_session

    async def list_active(self, admin: User) -> list[GhostSession]:
        """Sessions that currently grant the admin access, newest first."""
        now = self.clock()
        return [s for s in await self.repo.list_active_for_admin(admin.id) if s.is_current(now)]

    async def _audit(
        self,
        action: AuditAction,
        ghost_session: GhostSession,
        actor: User,
        tenant: Tenant | None,
        meta: RequestMeta,
    ) -> None:
        await self.audit_sink.record(
            AuditEvent(
                action=action,
                principal_id=actor.id,
                principal_email=actor.email,
                principal_role=str(actor.role),
                principal_firm_id=actor.firm_id,
                tenant_id=ghost_session.target_firm_id,
                tenant_code=tenant.slug if tenant else None,
                tenant_name=tenant.name if tenant else None,
                ip_address=meta.ip_address,
                user_agent=meta.user_agent,
                url=meta.url,
                request_id=meta.request_id,
                is_admin_access=True,
                ghost_session_id=ghost_session.id,
                timestamp=self.clock(),
                metadata={
                    "purpose": ghost_session.purpose,
                    "access_level": ghost_session.access_level,
                },
            )
        )


async def get_ghost_session_service(
    db: DBSession, audit_sink: AuditSinkDep
) -> GhostSessionService:
    return GhostSessionService(
        GhostSessionRepository(db),
        TenantRepository(db),
        audit_sink,
        max_duration=settings.ghost_session_max_duration,
    )


GhostSessionSvc = Annotated[GhostSessionService, Depends(get_ghost_session_service)]
