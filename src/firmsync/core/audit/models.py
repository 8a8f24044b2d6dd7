"""Audit log database model.

Persisted copy of the audit events, written when ``audit_persist_events``
is enabled.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from firmsync.core.audit.events import AuditEvent
from firmsync.core.constants import MAX_IPV6_LENGTH, MAX_SLUG_LENGTH
from firmsync.core.database.base import Base, IntIdMixin


class AuditLog(Base, IntIdMixin):
    """Audit log entry for tenant access and admin actions.

    Tenant and user ids are plain columns so denied attempts against any
    tenant can be recorded.

    Attributes:
        action: Audit action name
        severity: info or security_alert
        user_id: Acting principal
        user_email: Acting principal email at the time
        user_role: Acting principal role at the time
        user_firm_id: Acting principal home tenant at the time
        tenant_id: Target tenant
        tenant_code: Target firm code
        is_admin_access: Cross-tenant platform-admin access
        ghost_session_id: Authorizing ghost session
        ip_address: Client IP address
        user_agent: Client user agent string
        url: Originating URL
        request_id: Correlation ID for request tracing
        metadata_: Additional context
        created_at: When the event occurred
    """

    __tablename__ = "audit_logs"

    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    severity: Mapped[str] = mapped_column(String(20), nullable=False, index=True)

    user_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    user_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    user_role: Mapped[str | None] = mapped_column(String(32), nullable=True)
    user_firm_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    tenant_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    tenant_code: Mapped[str | None] = mapped_column(
        String(MAX_SLUG_LENGTH), nullable=True
    )
    is_admin_access: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    ghost_session_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Request context
    ip_address: Mapped[str | None] = mapped_column(
        String(MAX_IPV6_LENGTH), nullable=True
    )
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    url: Mapped[str | None] = mapped_column(Text, nullable=True)
    request_id: Mapped[str | None] = mapped_column(
        String(64), nullable=True, index=True
    )

    metadata_: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata",  # Column name in database
        JSON().with_variant(JSONB, "postgresql"),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )

    @classmethod
    def from_event(cls, event: AuditEvent) -> "AuditLog":
        return cls(
            action=event.action,
            severity=event.severity.value,
            user_id=event.principal_id,
            user_email=event.principal_email,
            user_role=event.principal_role,
            user_firm_id=event.principal_firm_id,
            tenant_id=event.tenant_id,
            tenant_code=event.tenant_code,
            is_admin_access=event.is_admin_access,
            ghost_session_id=event.ghost_session_id,
            ip_address=event.ip_address,
            user_agent=event.user_agent,
            url=event.url,
            request_id=event.request_id,
            metadata_=event.metadata or None,
            created_at=event.timestamp,
        )

    def __repr__(self) -> str:
        return (
            f"<AuditLog(id={self.id}, action={self.action}, "
            f"user_id={self.user_id}, tenant_id={self.tenant_id})>"
        )
