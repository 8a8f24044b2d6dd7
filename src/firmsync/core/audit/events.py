"""Audit events emitted by the tenant boundary."""

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class AuditSeverity(StrEnum):
    """How an audit event is routed.

    Security alerts go to a separate channel from ordinary request audit.
    """

    INFO = "info"
    SECURITY_ALERT = "security_alert"


class AuditAction(StrEnum):
    TENANT_ACCESS_GRANTED = "tenant_access_granted"
    TENANT_ACCESS_DENIED = "tenant_access_denied"
    GHOST_SESSION_REQUIRED = "ghost_session_required"
    GHOST_SESSION_STARTED = "ghost_session_started"
    GHOST_SESSION_ENDED = "ghost_session_ended"
    TENANT_CREATED = "tenant_created"
    TENANT_STATUS_CHANGED = "tenant_status_changed"


class AuditEvent(BaseModel):
    """One audit record.

    Attributes:
        action: What happened
        severity: info or security_alert
        principal_id: Acting user id
        principal_email: Acting user email
        principal_role: Acting user role
        principal_firm_id: Acting user's home tenant
        tenant_id: Target tenant id
        tenant_code: Target firm code
        tenant_name: Target tenant display name
        ip_address: Source address
        user_agent: Client user agent
        url: Originating URL
        request_id: Request correlation id
        is_admin_access: True for cross-tenant platform-admin access
        ghost_session_id: Ghost session that authorized the access
        timestamp: When the event happened
        metadata: Extra context
    """

    action: str
    severity: AuditSeverity = AuditSeverity.INFO

    principal_id: int | None = None
    principal_email: str | None = None
    principal_role: str | None = None
    principal_firm_id: int | None = None

    tenant_id: int | None = None
    tenant_code: str | None = None
    tenant_name: str | None = None

    ip_address: str | None = None
    user_agent: str | None = None
    url: str | None = None
    request_id: str | None = None

    is_admin_access: bool = False
    ghost_session_id: int | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_security_alert(self) -> bool:
        return self.severity == AuditSeverity.SECURITY_ALERT
