"""Baseline schema of a tenant database.

Every tenant database gets the same tables. Each table carries
``firm_id`` so rows stay attributable even if stores are ever merged.
"""

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    func,
)


tenant_metadata = MetaData()


def _firm_id() -> Column[int]:
    return Column("firm_id", Integer, nullable=False, index=True)


def _created_at() -> Column:
    return Column(
        "created_at",
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )


clients = Table(
    "clients",
    tenant_metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    _firm_id(),
    Column("first_name", String(255), nullable=False),
    Column("last_name", String(255), nullable=False),
    Column("email", String(255), nullable=True),
    Column("phone", String(50), nullable=True),
    _created_at(),
)

cases = Table(
    "cases",
    tenant_metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    _firm_id(),
    Column("client_id", Integer, ForeignKey("clients.id"), nullable=True),
    Column("title", String(255), nullable=False),
    Column("status", String(20), nullable=False, server_default="open"),
    _created_at(),
)

documents = Table(
    "documents",
    tenant_metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    _firm_id(),
    Column("case_id", Integer, ForeignKey("cases.id"), nullable=True),
    Column("filename", String(255), nullable=False),
    Column("content_type", String(100), nullable=True),
    Column("storage_key", String(512), nullable=False),
    _created_at(),
)

billing_entries = Table(
    "billing_entries",
    tenant_metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    _firm_id(),
    Column("case_id", Integer, ForeignKey("cases.id"), nullable=True),
    Column("description", Text, nullable=False),
    Column("minutes", Integer, nullable=False),
    Column("rate_cents", Integer, nullable=False),
    _created_at(),
)

calendar_events = Table(
    "calendar_events",
    tenant_metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    _firm_id(),
    Column("case_id", Integer, ForeignKey("cases.id"), nullable=True),
    Column("title", String(255), nullable=False),
    Column("starts_at", DateTime(timezone=True), nullable=False),
    Column("ends_at", DateTime(timezone=True), nullable=True),
    _created_at(),
)

activity_logs = Table(
    "activity_logs",
    tenant_metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    _firm_id(),
    Column("actor_user_id", Integer, nullable=True),
    Column("action", String(100), nullable=False),
    Column("details", JSON, nullable=True),
    _created_at(),
)
