"""Audit events and sinks for tenant access and admin actions."""

from firmsync.core.audit.events import AuditAction, AuditEvent, AuditSeverity
from firmsync.core.audit.sinks import (
    AuditSink,
    DatabaseAuditSink,
    FanoutAuditSink,
    StructlogAuditSink,
)


__all__ = [
    "AuditAction",
    "AuditEvent",
    "AuditSeverity",
    "AuditSink",
    "DatabaseAuditSink",
    "FanoutAuditSink",
    "StructlogAuditSink",
]
