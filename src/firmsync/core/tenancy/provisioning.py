"""Dedicated database provisioning through the Neon API.

Each firm gets its own Neon project. The provisioner only talks to the
provider; recording the result on the tenant row is the connection
manager's job.
"""

from typing import Any, Protocol

import httpx
import structlog
from pydantic import BaseModel
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from firmsync.config import Settings


logger = structlog.get_logger()


class ProvisioningError(Exception):
    """Raised when the provider cannot create or delete a database."""


class ProvisionedDatabase(BaseModel):
    """Coordinates of a freshly created tenant database.

    ``connection_uri`` holds credentials and must never be logged.
    """

    project_id: str
    connection_uri: str
    database_name: str
    host: str


class DatabaseProvisioner(Protocol):
    """Creates and deletes physical tenant databases."""

    async def create_database(self, tenant_slug: str) -> ProvisionedDatabase: ...

    async def delete_database(self, project_id: str) -> None: ...


class NeonProvisioner:
    """Neon v2 API client.

    Args:
        api_key: Neon API key
        base_url: API root, e.g. https://console.neon.tech/api/v2
        region_id: Region for new projects
        project_prefix: Prepended to the firm code in project names
        timeout: Request timeout in seconds
        transport: Optional httpx transport (tests use ``httpx.MockTransport``)
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://console.neon.tech/api/v2",
        region_id: str = "aws-us-east-1",
        project_prefix: str = "firmsync",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.region_id = region_id
        self.project_prefix = project_prefix
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "NeonProvisioner | None":
        """Build a provisioner, or None when no API key is configured."""
        if settings.neon_api_key is None:
            return None
        return cls(
            api_key=settings.neon_api_key.get_secret_value(),
            base_url=settings.neon_api_base_url,
            region_id=settings.neon_region_id,
            project_prefix=settings.neon_project_prefix,
            timeout=settings.neon_request_timeout,
        )

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Accept": "application/json",
            },
            timeout=self.timeout,
            transport=self._transport,
        )

    async def create_database(self, tenant_slug: str) -> ProvisionedDatabase:
        """Create a Neon project for one firm.

        Args:
            tenant_slug: The firm code

        Returns:
            The new project's coordinates

        Raises:
            ProvisioningError: On transport errors, non-2xx responses or a
                payload without the expected fields
        """
        project_name = f"{self.project_prefix}-{tenant_slug}"
        payload = {"project": {"name": project_name, "region_id": self.region_id}}

        async with self._client() as client:
            try:
                response = await client.post("/projects", json=payload)
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                raise ProvisioningError(
                    f"Neon API returned {e.response.status_code} creating {project_name}"
                ) from e
            except httpx.HTTPError as e:
                raise ProvisioningError(f"Neon API request failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise ProvisioningError("Neon API returned a non-JSON body") from e

        database = self._parse_project(data)
        logger.info(
            "neon_project_created",
            project_id=database.project_id,
            database_name=database.database_name,
            host=database.host,
        )
        return database

    async def delete_database(self, project_id: str) -> None:
        """Delete a Neon project. A missing project counts as deleted.

        Raises:
            ProvisioningError: On transport errors or other non-2xx responses
        """
        async with self._client() as client:
            try:
                response = await client.delete(f"/projects/{project_id}")
            except httpx.HTTPError as e:
                raise ProvisioningError(f"Neon API request failed: {e}") from e

        if response.status_code == httpx.codes.NOT_FOUND:
            return
        if response.is_error:
            raise ProvisioningError(
                f"Neon API returned {response.status_code} deleting {project_id}"
            )
        logger.info("neon_project_deleted", project_id=project_id)

    @staticmethod
    def _parse_project(data: dict[str, Any]) -> ProvisionedDatabase:
        try:
            project_id = data["project"]["id"]
            uri_entry = data["connection_uris"][0]
            connection_uri = uri_entry["connection_uri"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProvisioningError("Neon API response is missing project fields") from e

        params = uri_entry.get("connection_parameters") or {}
        database_name = params.get("database")
        host = params.get("host")

        if not database_name or not host:
            try:
                url = make_url(connection_uri)
            except ArgumentError as e:
                raise ProvisioningError("Neon API returned a malformed connection URI") from e
            database_name = database_name or url.database
            host = host or url.host

        if not database_name or not host:
            raise ProvisioningError("Neon API response has no database name or host")

        return ProvisionedDatabase(
            project_id=str(project_id),
            connection_uri=connection_uri,
            database_name=database_name,
            host=host,
        )
