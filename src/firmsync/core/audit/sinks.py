"""Audit sinks.

The tenant boundary hands every audit event to an ``AuditSink``. Which
sink is used is decided by the app factory, so tests can inject their own.
"""

from collections.abc import Callable, Sequence
from contextlib import AbstractAsyncContextManager
from typing import Any, Protocol

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from firmsync.core.audit.events import AuditEvent
from firmsync.core.audit.models import AuditLog


SessionScope = Callable[[], AbstractAsyncContextManager[AsyncSession]]


class AuditSink(Protocol):
    """Anything that can record an audit event."""

    async def record(self, event: AuditEvent) -> None: ...


class StructlogAuditSink:
    """Emit audit events as structured log lines.

    Security alerts are written to the ``firmsync.security`` logger at
    ``critical`` so they can be shipped to a SIEM separately from ordinary
    audit lines.
    """

    def __init__(self, audit_logger: Any = None, security_logger: Any = None) -> None:
        self.audit_logger = audit_logger or structlog.get_logger("firmsync.audit").bind(
            logger="firmsync.audit"
        )
        self.security_logger = security_logger or structlog.get_logger(
            "firmsync.security"
        ).bind(logger="firmsync.security")

    async def record(self, event: AuditEvent) -> None:
        fields = event.model_dump(mode="json", exclude={"action"}, exclude_none=True)
        # "timestamp" belongs to the log processor chain
        fields["occurred_at"] = fields.pop("timestamp")
        if event.is_security_alert:
            self.security_logger.critical(event.action, **fields)
        else:
            self.audit_logger.info(event.action, **fields)


class DatabaseAuditSink:
    """Persist audit events as ``AuditLog`` rows.

    Each event is written in its own central store session so a rolled
    back request does not lose the record of a denied attempt.

    Args:
        session_scope: Factory returning a committing session context
    """

    def __init__(self, session_scope: SessionScope) -> None:
        self.session_scope = session_scope

    async def record(self, event: AuditEvent) -> None:
        async with self.session_scope() as session:
            session.add(AuditLog.from_event(event))


class FanoutAuditSink:
    """Forward every event to several sinks, in order."""

    def __init__(self, sinks: Sequence[AuditSink]) -> None:
        self.sinks = list(sinks)

    async def record(self, event: AuditEvent) -> None:
        for sink in self.sinks:
            await sink.record(event)
