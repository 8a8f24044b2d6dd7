"""Pytest configuration and shared fixtures.

Integration fixtures run against file-backed SQLite through aiosqlite: one
file for the central routing store and one file per provisioned tenant.
"""

from collections.abc import AsyncGenerator, Awaitable, Callable
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from firmsync.api.dependencies import get_job_queue
from firmsync.core.audit import AuditEvent
from firmsync.core.auth.backend import create_access_token
from firmsync.core.database import init_central_schema
from firmsync.core.tenancy import ConnectionManager
from firmsync.core.tenancy.crypto import ConnectionStringCipher
from firmsync.core.tenancy.provisioning import ProvisionedDatabase, ProvisioningError
from firmsync.main import create_app
from firmsync.modules.tenants.models import Tenant
from firmsync.modules.tenants.repos import TenantRepository
from firmsync.modules.users.models import User
from firmsync.modules.users.repos import UserRepository
from tests.factories.tenant import TenantFactory
from tests.factories.user import UserFactory


class RecordingAuditSink:
    """Audit sink that keeps every event in memory."""

    def __init__(self) -> None:
        self.events: list[AuditEvent] = []

    async def record(self, event: AuditEvent) -> None:
        self.events.append(event)

    def actions(self) -> list[str]:
        return [event.action for event in self.events]

    def last(self, action: str) -> AuditEvent:
        return [event for event in self.events if event.action == action][-1]


class FakeProvisioner:
    """Creates SQLite files instead of provider projects.

    Attributes:
        fail_create: Make ``create_database`` raise like a provider outage
        broken_uri: Hand back a URI whose directory does not exist, so the
            failure happens after the coordinates were stored
    """

    def __init__(self, directory: Path) -> None:
        self.directory = directory
        self.created: list[str] = []
        self.deleted: list[str] = []
        self.fail_create = False
        self.broken_uri = False

    async def create_database(self, tenant_slug: str) -> ProvisionedDatabase:
        if self.fail_create:
            raise ProvisioningError("Neon API returned 503 creating project")

        self.created.append(tenant_slug)
        folder = self.directory / "missing" if self.broken_uri else self.directory
        path = folder / f"tenant_{tenant_slug}.db"
        return ProvisionedDatabase(
            project_id=f"proj-{tenant_slug}",
            connection_uri=f"sqlite:///{path}",
            database_name=path.name,
            host="localhost",
        )

    async def delete_database(self, project_id: str) -> None:
        self.deleted.append(project_id)


# ============================================================
# Central store and connection manager
# ============================================================


@pytest.fixture
def cipher() -> ConnectionStringCipher:
    return ConnectionStringCipher(ConnectionStringCipher.generate_key())


@pytest.fixture
def provisioner(tmp_path: Path) -> FakeProvisioner:
    return FakeProvisioner(tmp_path)


@pytest.fixture
def central_database_url(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'central.db'}"


@pytest.fixture
async def connections(
    central_database_url: str,
    cipher: ConnectionStringCipher,
    provisioner: FakeProvisioner,
) -> AsyncGenerator[ConnectionManager, None]:
    """Connection manager over a fresh central store."""
    manager = ConnectionManager(
        central_database_url, cipher=cipher, provisioner=provisioner
    )
    await init_central_schema(manager.central_engine)

    yield manager

    await manager.close_all_connections()


@pytest.fixture
def create_tenant(connections: ConnectionManager) -> Callable[..., Awaitable[Tenant]]:
    """Insert a tenant row; keyword arguments override factory values."""

    async def _create(**overrides: Any) -> Tenant:
        seed = TenantFactory.build(**overrides)
        async with connections.central_session() as session:
            return await TenantRepository(session).create(Tenant(**seed.model_dump()))

    return _create


@pytest.fixture
def create_provisioned_tenant(
    connections: ConnectionManager,
    create_tenant: Callable[..., Awaitable[Tenant]],
) -> Callable[..., Awaitable[Tenant]]:
    """Insert a tenant and provision its SQLite database."""

    async def _create(**overrides: Any) -> Tenant:
        tenant = await create_tenant(**overrides)
        assert await connections.provision_tenant_database(tenant.id)
        return tenant

    return _create


@pytest.fixture
def create_user(connections: ConnectionManager) -> Callable[..., Awaitable[User]]:
    """Insert a user row; keyword arguments override factory values."""

    async def _create(**overrides: Any) -> User:
        seed = UserFactory.build(**overrides)
        async with connections.central_session() as session:
            return await UserRepository(session).create(User(**seed.model_dump()))

    return _create


@pytest.fixture
def load_tenant(connections: ConnectionManager) -> Callable[[int], Awaitable[Tenant]]:
    """Re-read a tenant from the central store."""

    async def _load(tenant_id: int) -> Tenant:
        async with connections.central_session() as session:
            tenant = await TenantRepository(session).get_by_id(tenant_id)
        assert tenant is not None
        return tenant

    return _load


# ============================================================
# HTTP
# ============================================================


@pytest.fixture
def audit_sink() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def job_queue() -> MagicMock:
    """Stand-in for the arq pool."""
    queue = MagicMock()
    queue.enqueue_job = AsyncMock(return_value=MagicMock(job_id="provision:1"))
    queue.exists = AsyncMock(return_value=0)
    queue.delete = AsyncMock()
    return queue


@pytest.fixture
def app(
    connections: ConnectionManager,
    audit_sink: RecordingAuditSink,
    job_queue: MagicMock,
):
    """Create test application instance."""
    application = create_app(connections=connections, audit_sink=audit_sink)

    async def override_get_job_queue() -> MagicMock:
        return job_queue

    application.dependency_overrides[get_job_queue] = override_get_job_queue

    yield application

    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Provide async HTTP client for API testing."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client


@pytest.fixture
def auth_headers() -> Callable[[User], dict[str, str]]:
    """Build bearer headers for a user."""

    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _headers


@pytest.fixture
def anyio_backend() -> str:
    """Specify the async backend for anyio."""
    return "asyncio"
