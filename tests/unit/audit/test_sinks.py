"""Tests for audit events and sinks."""

from contextlib import asynccontextmanager
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

from firmsync.core.audit import (
    AuditAction,
    AuditEvent,
    AuditSeverity,
    DatabaseAuditSink,
    FanoutAuditSink,
    StructlogAuditSink,
)
from firmsync.core.audit.models import AuditLog


def make_event(**overrides) -> AuditEvent:
    fields = {
        "action": AuditAction.TENANT_ACCESS_DENIED,
        "severity": AuditSeverity.SECURITY_ALERT,
        "principal_id": 1,
        "principal_email": "pat@example.com",
        "principal_role": "firm_user",
        "principal_firm_id": 7,
        "tenant_id": 9,
        "tenant_code": "acme-legal",
        "tenant_name": "Acme Legal",
        "ip_address": "10.0.0.5",
        "url": "http://test/api/tenant/acme-legal/clients",
        "timestamp": datetime(2026, 3, 2, 15, 0, tzinfo=UTC),
    }
    fields.update(overrides)
    return AuditEvent(**fields)


class TestStructlogAuditSink:
    """Tests for StructlogAuditSink."""

    async def test_security_alert_goes_to_security_logger(self):
        audit_logger = MagicMock()
        security_logger = MagicMock()
        sink = StructlogAuditSink(audit_logger, security_logger)

        await sink.record(make_event())

        audit_logger.info.assert_not_called()
        security_logger.critical.assert_called_once()
        args, kwargs = security_logger.critical.call_args
        assert args == ("tenant_access_denied",)
        assert kwargs["principal_email"] == "pat@example.com"
        assert kwargs["principal_firm_id"] == 7
        assert kwargs["tenant_code"] == "acme-legal"
        assert kwargs["is_admin_access"] is False
        assert kwargs["occurred_at"] == "2026-03-02T15:00:00Z"
        assert "timestamp" not in kwargs

    async def test_info_event_goes_to_audit_logger(self):
        audit_logger = MagicMock()
        security_logger = MagicMock()
        sink = StructlogAuditSink(audit_logger, security_logger)

        await sink.record(
            make_event(
                action=AuditAction.TENANT_ACCESS_GRANTED,
                severity=AuditSeverity.INFO,
                is_admin_access=True,
                ghost_session_id=77,
            )
        )

        security_logger.critical.assert_not_called()
        args, kwargs = audit_logger.info.call_args
        assert args == ("tenant_access_granted",)
        assert kwargs["is_admin_access"] is True
        assert kwargs["ghost_session_id"] == 77

    async def test_default_loggers(self):
        """The sink works with its own structlog loggers."""
        await StructlogAuditSink().record(make_event())


class TestDatabaseAuditSink:
    """Tests for DatabaseAuditSink."""

    async def test_adds_audit_log_row(self):
        session = MagicMock()

        @asynccontextmanager
        async def scope():
            yield session

        await DatabaseAuditSink(scope).record(make_event(metadata={"from": "active"}))

        [row] = session.add.call_args.args
        assert isinstance(row, AuditLog)
        assert row.action == "tenant_access_denied"
        assert row.severity == "security_alert"
        assert row.user_email == "pat@example.com"
        assert row.tenant_code == "acme-legal"
        assert row.metadata_ == {"from": "active"}


class TestFanoutAuditSink:
    """Tests for FanoutAuditSink."""

    async def test_forwards_to_every_sink(self):
        first, second = AsyncMock(), AsyncMock()
        event = make_event()

        await FanoutAuditSink([first, second]).record(event)

        first.record.assert_awaited_once_with(event)
        second.record.assert_awaited_once_with(event)


def test_security_alert_flag():
    assert make_event().is_security_alert is True
    assert make_event(severity=AuditSeverity.INFO).is_security_alert is False
