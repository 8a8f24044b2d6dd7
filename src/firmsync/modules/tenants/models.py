"""Tenant database models."""

from datetime import datetime
from enum import StrEnum

from sqlalchemy import DateTime, Enum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from firmsync.core.constants import (
    MAX_NAME_LENGTH,
    MAX_PROVISIONING_ERROR_LENGTH,
    MAX_SLUG_LENGTH,
    MAX_STATUS_LENGTH,
)
from firmsync.core.database.base import Base, IntIdMixin, TimestampMixin


class TenantStatus(StrEnum):
    """Lifecycle status of a firm. Tenants are never hard-deleted."""

    ACTIVE = "active"
    SUSPENDED = "suspended"
    INACTIVE = "inactive"


class ProvisioningStatus(StrEnum):
    """Persisted state of the dedicated database provisioning flow.

    ``pending -> created -> migrated -> ready``, or ``failed`` from any step.
    """

    PENDING = "pending"
    CREATED = "created"
    MIGRATED = "migrated"
    READY = "ready"
    FAILED = "failed"


class MigrationStatus(StrEnum):
    SUCCESS = "success"
    FAILED = "failed"


def _enum_values(enum_cls: type[StrEnum]) -> list[str]:
    return [member.value for member in enum_cls]


class Tenant(Base, IntIdMixin, TimestampMixin):
    """A firm, isolated from every other firm.

    The slug (firm code) is unique and stable for the tenant's lifetime.
    Connection coordinates are only set while provisioning is
    ``created``, ``migrated`` or ``ready``.

    Attributes:
        name: Display name
        slug: URL-safe firm code
        plan: Plan tier
        status: active, suspended or inactive
        provisioning_status: Position in the provisioning state machine
        database_url_encrypted: Fernet token of the tenant DSN
        database_name: Physical database name
        database_host: Physical database host
        provider_project_id: Project id at the database provider
        provisioning_error: Last provisioning failure message
        provisioned_at: When provisioning reached ``ready``
    """

    __tablename__ = "tenants"

    name: Mapped[str] = mapped_column(String(MAX_NAME_LENGTH), nullable=False)
    slug: Mapped[str] = mapped_column(
        String(MAX_SLUG_LENGTH),
        unique=True,
        index=True,
        nullable=False,
    )
    plan: Mapped[str] = mapped_column(String(50), default="standard", nullable=False)
    status: Mapped[TenantStatus] = mapped_column(
        Enum(
            TenantStatus,
            native_enum=False,
            length=MAX_STATUS_LENGTH,
            values_callable=_enum_values,
        ),
        default=TenantStatus.ACTIVE,
        nullable=False,
    )
    provisioning_status: Mapped[ProvisioningStatus] = mapped_column(
        Enum(
            ProvisioningStatus,
            native_enum=False,
            length=MAX_STATUS_LENGTH,
            values_callable=_enum_values,
        ),
        default=ProvisioningStatus.PENDING,
        nullable=False,
    )

    # Dedicated database coordinates
    database_url_encrypted: Mapped[str | None] = mapped_column(Text, nullable=True)
    database_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    database_host: Mapped[str | None] = mapped_column(String(255), nullable=True)
    provider_project_id: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )
    provisioning_error: Mapped[str | None] = mapped_column(
        String(MAX_PROVISIONING_ERROR_LENGTH), nullable=True
    )
    provisioned_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    @property
    def is_active(self) -> bool:
        return self.status == TenantStatus.ACTIVE

    @property
    def has_coordinates(self) -> bool:
        return self.database_url_encrypted is not None

    def clear_coordinates(self) -> None:
        """Drop every stored connection coordinate."""
        self.database_url_encrypted = None
        self.database_name = None
        self.database_host = None
        self.provider_project_id = None
        self.provisioned_at = None

    def __repr__(self) -> str:
        return f"<Tenant(id={self.id}, slug={self.slug}, status={self.status})>"


class TenantMigration(Base, IntIdMixin, TimestampMixin):
    """Outcome of applying one migration to one tenant database."""

    __tablename__ = "tenant_migrations"

    tenant_id: Mapped[int] = mapped_column(
        ForeignKey("tenants.id"),
        index=True,
        nullable=False,
    )
    migration_name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[MigrationStatus] = mapped_column(
        Enum(
            MigrationStatus,
            native_enum=False,
            length=MAX_STATUS_LENGTH,
            values_callable=_enum_values,
        ),
        nullable=False,
    )
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<TenantMigration(tenant_id={self.tenant_id}, "
            f"name={self.migration_name}, status={self.status})>"
        )
