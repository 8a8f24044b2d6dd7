"""Central store access and per-tenant connection pools.

``ConnectionManager`` owns the central routing engine, one bounded pool
per tenant database (through ``ConnectionCache``) and the provisioning
state machine that creates those databases.
"""

import re
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import structlog
from sqlalchemy import text
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from firmsync.config import Settings
from firmsync.core.constants import (
    BASELINE_MIGRATION_NAME,
    CUSTOM_MIGRATION_NAME,
    MAX_PROVISIONING_ERROR_LENGTH,
)
from firmsync.core.errors import AppException
from firmsync.core.observability.tracing import get_tracer, tenant_span
from firmsync.core.tenancy.cache import ConnectionCache
from firmsync.core.tenancy.crypto import (
    ConnectionStringCipher,
    ConnectionStringDecryptError,
)
from firmsync.core.tenancy.errors import (
    TenantConnectionError,
    TenantQueryError,
    TenantUnavailableError,
)
from firmsync.core.tenancy.provisioning import (
    DatabaseProvisioner,
    NeonProvisioner,
    ProvisionedDatabase,
    ProvisioningError,
)
from firmsync.core.tenancy.schema import tenant_metadata
from firmsync.modules.tenants.models import MigrationStatus, ProvisioningStatus, Tenant
from firmsync.modules.tenants.repos import TenantMigrationRepository, TenantRepository


logger = structlog.get_logger()
tracer = get_tracer(__name__)

BLOCK_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)


@dataclass(frozen=True)
class PoolSettings:
    """Pool bounds for the central engine and each tenant engine."""

    pool_size: int = 5
    max_overflow: int = 0
    pool_timeout: int = 10
    pool_recycle: int = 1800
    idle_ttl: int = 300
    central_pool_size: int = 20
    central_max_overflow: int = 10
    echo: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "PoolSettings":
        return cls(
            pool_size=settings.tenant_pool_size,
            max_overflow=settings.tenant_max_overflow,
            pool_timeout=settings.tenant_pool_timeout,
            pool_recycle=settings.tenant_pool_recycle,
            idle_ttl=settings.tenant_pool_idle_ttl,
            central_pool_size=settings.central_pool_size,
            central_max_overflow=settings.central_max_overflow,
            echo=settings.database_echo,
        )


@dataclass(frozen=True)
class TenantMigrationResult:
    tenant_id: int
    status: MigrationStatus
    error_message: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == MigrationStatus.SUCCESS


def to_async_url(dsn: str | URL) -> URL:
    """Convert a stored DSN to its async driver form.

    ``postgresql://`` becomes ``postgresql+asyncpg://`` and libpq's
    ``sslmode`` becomes asyncpg's ``ssl``; ``channel_binding`` is dropped
    because asyncpg does not accept it. Plain ``sqlite://`` becomes
    ``sqlite+aiosqlite://``.

    Raises:
        ArgumentError: If the DSN cannot be parsed
    """
    url = make_url(dsn)

    if url.drivername in ("postgres", "postgresql"):
        url = url.set(drivername="postgresql+asyncpg")
    elif url.drivername == "sqlite":
        url = url.set(drivername="sqlite+aiosqlite")

    if url.drivername == "postgresql+asyncpg":
        query = dict(url.query)
        sslmode = query.pop("sslmode", None)
        query.pop("channel_binding", None)
        if sslmode and "ssl" not in query:
            query["ssl"] = sslmode
        url = url.set(query=query)

    return url


def split_sql_statements(sql: str) -> list[str]:
    """Split a migration script into single statements.

    Semicolons inside quoted strings, quoted identifiers, ``--`` comments
    and ``/* */`` comments are ignored. Nested block comments and
    dollar-quoted bodies are not understood; run those as a
    single-statement script.
    """
    statements: list[str] = []
    current: list[str] = []
    quote: str | None = None
    comment_end: str | None = None
    comment_start = 0

    for i, char in enumerate(sql):
        if comment_end:
            current.append(char)
            end_at = i + 1 - len(comment_end)
            # The closing marker may not reuse the opening marker's characters
            if end_at >= comment_start + 2 and sql[end_at : i + 1] == comment_end:
                comment_end = None
            continue
        if quote:
            current.append(char)
            if char == quote:
                quote = None
            continue
        if char in ("'", '"'):
            quote = char
        elif char == "-" and sql[i + 1 : i + 2] == "-":
            comment_end, comment_start = "\n", i
        elif char == "/" and sql[i + 1 : i + 2] == "*":
            comment_end, comment_start = "*/", i
        elif char == ";":
            statements.append("".join(current))
            current = []
            continue
        current.append(char)

    statements.append("".join(current))
    return [s.strip() for s in statements if _has_sql(s)]


def _has_sql(statement: str) -> bool:
    statement = BLOCK_COMMENT.sub(" ", statement)
    lines = [line.split("--", 1)[0].strip() for line in statement.splitlines()]
    return any(lines)


def _error_text(error: Exception) -> str:
    if isinstance(error, AppException):
        return error.message
    if isinstance(error, SQLAlchemyError):
        return str(getattr(error, "orig", None) or error)
    return str(error) or type(error).__name__


class ConnectionManager:
    """Owns the central engine and the per-tenant engine cache.

    Args:
        central_database_url: DSN of the central routing store
        cipher: Decrypts stored tenant DSNs; required to open tenant pools
        provisioner: Creates tenant databases; required to provision
        pool_settings: Pool bounds
        engine_factory: Engine constructor, ``create_async_engine`` by default
        verify_connections: Probe new tenant pools with ``SELECT 1``
    """

    def __init__(
        self,
        central_database_url: str,
        cipher: ConnectionStringCipher | None = None,
        provisioner: DatabaseProvisioner | None = None,
        pool_settings: PoolSettings | None = None,
        engine_factory: Callable[..., AsyncEngine] = create_async_engine,
        verify_connections: bool = True,
    ) -> None:
        self.cipher = cipher
        self.provisioner = provisioner
        self.pool_settings = pool_settings or PoolSettings()
        self.verify_connections = verify_connections
        self._engine_factory = engine_factory

        self.central_engine = engine_factory(
            to_async_url(central_database_url),
            pool_size=self.pool_settings.central_pool_size,
            max_overflow=self.pool_settings.central_max_overflow,
            pool_pre_ping=True,
            echo=self.pool_settings.echo,
        )
        self.central_session_factory = async_sessionmaker(
            bind=self.central_engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        self.cache = ConnectionCache()

    @classmethod
    def from_settings(cls, settings: Settings) -> "ConnectionManager":
        key = settings.connection_encryption_key
        cipher = ConnectionStringCipher(key.get_secret_value()) if key else None
        return cls(
            central_database_url=settings.async_central_database_url,
            cipher=cipher,
            provisioner=NeonProvisioner.from_settings(settings),
            pool_settings=PoolSettings.from_settings(settings),
        )

    # ============================================================
    # Central store
    # ============================================================

    @asynccontextmanager
    async def central_session(self) -> AsyncIterator[AsyncSession]:
        """Central store session that commits on success and rolls back on error."""
        async with self.central_session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def ping_central(self) -> None:
        async with self.central_engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def get_tenant_config(self, tenant_id: int) -> Tenant | None:
        """Look up an active tenant that has stored connection coordinates.

        Args:
            tenant_id: The tenant id

        Returns:
            The tenant, or None if missing, not active or not provisioned
        """
        async with self.central_session() as session:
            tenant = await TenantRepository(session).get_active_by_id(tenant_id)
        if tenant is None or not tenant.has_coordinates:
            return None
        return tenant

    # ============================================================
    # Tenant pools
    # ============================================================

    async def get_tenant_connection(self, tenant_id: int) -> AsyncEngine:
        """Return the tenant's pooled engine, creating it on first use.

        Concurrent first calls for the same tenant create exactly one pool.

        Raises:
            TenantUnavailableError: Tenant missing, not active or not
                provisioned; raised before any connection attempt
            TenantConnectionError: The pool could not be opened
        """
        engine = self.cache.get(tenant_id)
        if engine is not None:
            return engine
        return await self.cache.get_or_create(
            tenant_id, lambda: self._create_tenant_engine(tenant_id)
        )

    async def _create_tenant_engine(self, tenant_id: int) -> AsyncEngine:
        try:
            tenant = await self.get_tenant_config(tenant_id)
        except SQLAlchemyError as e:
            raise TenantConnectionError(
                "Central routing store is unavailable",
                details={"tenant_id": tenant_id},
            ) from e

        if tenant is None:
            raise TenantUnavailableError(details={"tenant_id": tenant_id})

        if self.cipher is None:
            raise TenantConnectionError(
                "Connection encryption key is not configured",
                details={"tenant_id": tenant_id},
            )

        try:
            url = to_async_url(self.cipher.decrypt(tenant.database_url_encrypted or ""))
        except (ConnectionStringDecryptError, ArgumentError) as e:
            logger.error("tenant_dsn_unusable", tenant_id=tenant_id, error=str(e))
            raise TenantConnectionError(details={"tenant_id": tenant_id}) from e

        settings = self.pool_settings
        engine = self._engine_factory(
            url,
            pool_size=settings.pool_size,
            max_overflow=settings.max_overflow,
            pool_timeout=settings.pool_timeout,
            pool_recycle=settings.pool_recycle,
            pool_pre_ping=True,
            echo=settings.echo,
        )

        if self.verify_connections:
            try:
                async with engine.connect() as conn:
                    await conn.execute(text("SELECT 1"))
            except (SQLAlchemyError, OSError) as e:
                await engine.dispose()
                logger.error(
                    "tenant_pool_probe_failed",
                    tenant_id=tenant_id,
                    database_host=tenant.database_host,
                    database_name=tenant.database_name,
                    error_type=type(e).__name__,
                )
                raise TenantConnectionError(details={"tenant_id": tenant_id}) from e

        logger.info(
            "tenant_pool_created",
            tenant_id=tenant_id,
            database_host=tenant.database_host,
            database_name=tenant.database_name,
            pool_size=settings.pool_size,
        )
        return engine

    async def invalidate_tenant_connection(self, tenant_id: int) -> bool:
        """Dispose a tenant's cached pool so the next use reopens it."""
        invalidated = await self.cache.invalidate(tenant_id)
        if invalidated:
            logger.info("tenant_pool_invalidated", tenant_id=tenant_id)
        return invalidated

    async def evict_idle_connections(self) -> list[int]:
        evicted = await self.cache.evict_idle(self.pool_settings.idle_ttl)
        if evicted:
            logger.info("tenant_pools_evicted", tenant_ids=evicted)
        return evicted

    async def test_tenant_connection(self, tenant_id: int) -> bool:
        """Check that a tenant database answers ``SELECT 1``."""
        try:
            engine = await self.get_tenant_connection(tenant_id)
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (AppException, SQLAlchemyError, OSError) as e:
            logger.warning(
                "tenant_connection_check_failed",
                tenant_id=tenant_id,
                error=_error_text(e),
            )
            return False
        return True

    def cache_stats(self) -> dict[str, Any]:
        return self.cache.stats()

    # ============================================================
    # Provisioning
    # ============================================================

    async def provision_tenant_database(self, tenant_id: int) -> bool:
        """Create, register and migrate a dedicated database for a tenant.

        Walks ``pending -> created -> migrated -> ready``, persisting each
        step. A tenant already ``ready`` returns True without work; one
        in ``created`` or ``migrated`` is being provisioned elsewhere and
        returns False. On any failure the tenant's coordinates are
        cleared, its status becomes ``failed`` and the external database
        is deleted on a best-effort basis.

        Args:
            tenant_id: The tenant to provision

        Returns:
            True if the tenant is ready, False otherwise. Never raises.
        """
        log = logger.bind(tenant_id=tenant_id)

        if self.provisioner is None or self.cipher is None:
            log.warning("tenant_provisioning_not_configured")
            return False

        try:
            async with self.central_session() as session:
                tenant = await TenantRepository(session).get_by_id(tenant_id)
                if tenant is None or not tenant.is_active:
                    log.warning("tenant_provisioning_skipped", reason="not_found_or_inactive")
                    return False

                status = tenant.provisioning_status
                if status == ProvisioningStatus.READY:
                    return True
                if status in (ProvisioningStatus.CREATED, ProvisioningStatus.MIGRATED):
                    log.warning("tenant_provisioning_in_progress", status=status.value)
                    return False

                slug = tenant.slug
                tenant.provisioning_error = None
        except SQLAlchemyError as e:
            log.error("tenant_provisioning_lookup_failed", error=_error_text(e))
            return False

        log.info("tenant_provisioning_started", slug=slug)
        provisioned: ProvisionedDatabase | None = None

        try:
            provisioned = await self.provisioner.create_database(slug)
            await self._store_coordinates(tenant_id, provisioned)
            await self.run_baseline_migration(tenant_id)
            await self._set_provisioning_status(tenant_id, ProvisioningStatus.MIGRATED)
            await self._set_provisioning_status(
                tenant_id, ProvisioningStatus.READY, provisioned_at=datetime.now(UTC)
            )
        except Exception as e:
            await self._rollback_provisioning(tenant_id, provisioned, e)
            return False

        log.info(
            "tenant_provisioned",
            database_host=provisioned.host,
            database_name=provisioned.database_name,
        )
        return True

    async def _store_coordinates(
        self, tenant_id: int, provisioned: ProvisionedDatabase
    ) -> None:
        if self.cipher is None:
            raise TenantConnectionError(
                "Connection encryption key is not configured",
                details={"tenant_id": tenant_id},
            )
        async with self.central_session() as session:
            tenant = await TenantRepository(session).get_by_id(tenant_id)
            if tenant is None:
                raise TenantUnavailableError(details={"tenant_id": tenant_id})
            tenant.database_url_encrypted = self.cipher.encrypt(provisioned.connection_uri)
            tenant.database_name = provisioned.database_name
            tenant.database_host = provisioned.host
            tenant.provider_project_id = provisioned.project_id
            tenant.provisioning_status = ProvisioningStatus.CREATED

    async def _set_provisioning_status(
        self,
        tenant_id: int,
        status: ProvisioningStatus,
        provisioned_at: datetime | None = None,
    ) -> None:
        async with self.central_session() as session:
            tenant = await TenantRepository(session).get_by_id(tenant_id)
            if tenant is None:
                raise TenantUnavailableError(details={"tenant_id": tenant_id})
            tenant.provisioning_status = status
            if provisioned_at is not None:
                tenant.provisioned_at = provisioned_at

    async def _rollback_provisioning(
        self,
        tenant_id: int,
        provisioned: ProvisionedDatabase | None,
        error: Exception,
    ) -> None:
        message = _error_text(error)[:MAX_PROVISIONING_ERROR_LENGTH]
        logger.error(
            "tenant_provisioning_failed",
            tenant_id=tenant_id,
            error=message,
            error_type=type(error).__name__,
        )

        await self.cache.invalidate(tenant_id)

        try:
            async with self.central_session() as session:
                tenant = await TenantRepository(session).get_by_id(tenant_id)
                if tenant is not None:
                    tenant.clear_coordinates()
                    tenant.provisioning_status = ProvisioningStatus.FAILED
                    tenant.provisioning_error = message
        except SQLAlchemyError:
            logger.exception("tenant_provisioning_rollback_failed", tenant_id=tenant_id)

        if provisioned is not None and self.provisioner is not None:
            try:
                await self.provisioner.delete_database(provisioned.project_id)
            except ProvisioningError as e:
                logger.warning(
                    "tenant_database_cleanup_failed",
                    tenant_id=tenant_id,
                    project_id=provisioned.project_id,
                    error=str(e),
                )

    # ============================================================
    # Migrations
    # ============================================================

    async def run_baseline_migration(self, tenant_id: int) -> None:
        """Create the baseline tenant tables and record the outcome.

        Raises:
            TenantUnavailableError: Tenant has no usable database
            TenantConnectionError: The pool could not be opened
            TenantQueryError: The DDL failed
        """
        engine = await self.get_tenant_connection(tenant_id)
        try:
            async with engine.begin() as conn:
                await conn.run_sync(tenant_metadata.create_all)
        except SQLAlchemyError as e:
            await self._record_migration(
                tenant_id, BASELINE_MIGRATION_NAME, MigrationStatus.FAILED, _error_text(e)
            )
            raise TenantQueryError(
                "Baseline migration failed", details={"tenant_id": tenant_id}
            ) from e

        await self._record_migration(
            tenant_id, BASELINE_MIGRATION_NAME, MigrationStatus.SUCCESS
        )
        logger.info("tenant_baseline_migrated", tenant_id=tenant_id)

    async def run_migration_on_all_tenants(
        self, sql: str, migration_name: str = CUSTOM_MIGRATION_NAME
    ) -> list[TenantMigrationResult]:
        """Apply a SQL script to every active, provisioned tenant.

        Each tenant runs in its own transaction. A failure is recorded for
        that tenant and the loop moves on.

        Args:
            sql: Migration script, one or more statements
            migration_name: Name stored on each outcome row

        Returns:
            One result per tenant, in tenant id order
        """
        async with self.central_session() as session:
            tenants = await TenantRepository(session).list_active()
            tenant_ids = [
                t.id for t in tenants if t.provisioning_status == ProvisioningStatus.READY
            ]

        statements = split_sql_statements(sql)
        results: list[TenantMigrationResult] = []

        for tenant_id in tenant_ids:
            try:
                engine = await self.get_tenant_connection(tenant_id)
                with tenant_span(tracer, "tenant.migrate", tenant_id):
                    async with engine.begin() as conn:
                        for statement in statements:
                            await conn.exec_driver_sql(statement)
            except (AppException, SQLAlchemyError, OSError) as e:
                result = TenantMigrationResult(
                    tenant_id=tenant_id,
                    status=MigrationStatus.FAILED,
                    error_message=_error_text(e),
                )
                logger.error(
                    "tenant_migration_failed",
                    tenant_id=tenant_id,
                    migration_name=migration_name,
                    error=result.error_message,
                )
            else:
                result = TenantMigrationResult(
                    tenant_id=tenant_id, status=MigrationStatus.SUCCESS
                )
                logger.info(
                    "tenant_migration_applied",
                    tenant_id=tenant_id,
                    migration_name=migration_name,
                )

            await self._record_migration(
                tenant_id, migration_name, result.status, result.error_message
            )
            results.append(result)

        return results

    async def _record_migration(
        self,
        tenant_id: int,
        migration_name: str,
        status: MigrationStatus,
        error_message: str | None = None,
    ) -> None:
        async with self.central_session() as session:
            await TenantMigrationRepository(session).record(
                tenant_id, migration_name, status, error_message
            )

    # ============================================================
    # Shutdown
    # ============================================================

    async def close_all_connections(self) -> None:
        """Dispose every tenant pool and the central pool."""
        closed = await self.cache.clear()
        await self.central_engine.dispose()
        logger.info("connections_closed", tenant_pools=closed)
