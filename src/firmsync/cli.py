"""FirmSync operator CLI."""

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TypeVar

import typer
from rich.console import Console
from rich.table import Table

from firmsync import __version__
from firmsync.config import settings
from firmsync.core.constants import CUSTOM_MIGRATION_NAME
from firmsync.core.database import init_central_schema
from firmsync.core.logging import configure_logging
from firmsync.core.tenancy import ConnectionManager
from firmsync.core.tenancy.crypto import ConnectionStringCipher


T = TypeVar("T")

console = Console()

app = typer.Typer(
    name="firmsync",
    help="Operate the FirmSync central store and tenant databases.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def build_connection_manager() -> ConnectionManager:
    return ConnectionManager.from_settings(settings)


def _run(work: Callable[[ConnectionManager], Awaitable[T]]) -> T:
    async def runner() -> T:
        connections = build_connection_manager()
        try:
            return await work(connections)
        finally:
            await connections.close_all_connections()

    return asyncio.run(runner())


@app.command(name="init-db")
def init_db() -> None:
    """Create the central routing store tables."""

    async def work(connections: ConnectionManager) -> None:
        await init_central_schema(connections.central_engine)

    _run(work)
    console.print("[green]✓[/green] Central store schema is up to date")


@app.command()
def provision(
    tenant_id: int = typer.Argument(..., help="Tenant to provision"),
) -> None:
    """Create and migrate a dedicated database for a tenant."""

    async def work(connections: ConnectionManager) -> bool:
        return await connections.provision_tenant_database(tenant_id)

    with console.status(f"[bold green]Provisioning tenant {tenant_id}..."):
        ok = _run(work)

    if not ok:
        console.print(
            f"[red]Error:[/red] Tenant {tenant_id} was not provisioned. "
            "Check the tenant's provisioning_error for details."
        )
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Tenant {tenant_id} is ready")


@app.command()
def migrate(
    sql_file: Path = typer.Argument(
        ..., exists=True, dir_okay=False, readable=True, help="SQL script to apply"
    ),
    name: str = typer.Option(
        CUSTOM_MIGRATION_NAME, "--name", "-n", help="Name recorded for this migration"
    ),
) -> None:
    """Apply a SQL script to every provisioned tenant database."""
    sql = sql_file.read_text(encoding="utf-8")

    async def work(connections: ConnectionManager):
        return await connections.run_migration_on_all_tenants(sql, migration_name=name)

    results = _run(work)

    if not results:
        console.print("[yellow]No provisioned tenants to migrate.[/yellow]")
        return

    table = Table(title=f"Migration: {name}")
    table.add_column("Tenant", justify="right")
    table.add_column("Status")
    table.add_column("Error")
    for result in results:
        style = "green" if result.succeeded else "red"
        table.add_row(
            str(result.tenant_id),
            f"[{style}]{result.status.value}[/{style}]",
            result.error_message or "",
        )
    console.print(table)

    failed = [r for r in results if not r.succeeded]
    if failed:
        console.print(f"[red]{len(failed)} of {len(results)} tenants failed[/red]")
        raise typer.Exit(1)


@app.command()
def check(
    tenant_id: int = typer.Argument(..., help="Tenant whose database to check"),
) -> None:
    """Verify that a tenant database accepts connections."""

    async def work(connections: ConnectionManager) -> bool:
        return await connections.test_tenant_connection(tenant_id)

    if not _run(work):
        console.print(f"[red]✗[/red] Tenant {tenant_id} is unreachable")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Tenant {tenant_id} is reachable")


@app.command(name="generate-key")
def generate_key() -> None:
    """Print a new key for CONNECTION_ENCRYPTION_KEY."""
    console.print(ConnectionStringCipher.generate_key(), soft_wrap=True)


@app.callback(invoke_without_command=True)
def version_callback(
    version: bool = typer.Option(
        False, "--version", "-v", help="Show version and exit."
    ),
) -> None:
    """FirmSync - tenant boundary operations."""
    if version:
        console.print(f"[bold cyan]firmsync[/bold cyan] version {__version__}")
        raise typer.Exit()


def main() -> None:
    """Entry point for the CLI."""
    configure_logging(settings)
    app()


if __name__ == "__main__":
    main()
