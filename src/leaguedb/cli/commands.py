# SPDX-License-Identifier: MIT
# Copyright (c) 2025 OmniNode Team
"""
leaguedb CLI Commands.

Diagnostics for the database connection layer.

Usage:
    leaguedb check-connection [--env-file .env] [--schema public]
    leaguedb show-config [--env-file .env]
"""

from __future__ import annotations

import asyncio

import click
from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from leaguedb.errors import DbAuthenticationError, DbInfraError
from leaguedb.infrastructure import Database
from leaguedb.models import ModelDbConnectionConfig
from leaguedb.utils import sanitize_error_message

console = Console()


@click.group()
def cli() -> None:
    """leaguedb database connection tools."""


@cli.command("show-config")
@click.option(
    "--env-file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Load variables from this .env file before reading DB_* settings",
)
def show_config_cmd(env_file: str | None) -> None:
    """Print the resolved connection settings (password hidden)."""
    config = _load_config(env_file)
    _print_config(config)


@cli.command("check-connection")
@click.option(
    "--env-file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Load variables from this .env file before reading DB_* settings",
)
@click.option("--schema", default="public", help="Schema whose tables are counted")
def check_connection_cmd(env_file: str | None, schema: str) -> None:
    """Connect, run a version query and count tables in a schema."""
    config = _load_config(env_file)
    _print_config(config)
    try:
        asyncio.run(_run_check_connection(config, schema))
    except DbAuthenticationError as e:
        console.print(f"[bold red]Login rejected:[/bold red] {e}")
        console.print(
            "[yellow]Check DB_USER/DB_PASSWORD and that this machine's address "
            "is allowed by the server's firewall rules.[/yellow]"
        )
        raise SystemExit(1)
    except DbInfraError as e:
        console.print(f"[bold red]Connection check failed:[/bold red] {e}")
        raise SystemExit(1)
    except Exception as e:
        console.print(f"[red]Error: {sanitize_error_message(e)}[/red]")
        raise SystemExit(1)
    raise SystemExit(0)


def _load_config(env_file: str | None) -> ModelDbConnectionConfig:
    if env_file is not None:
        load_dotenv(env_file, override=False)
    try:
        return ModelDbConnectionConfig.from_environment()
    except (DbInfraError, ValidationError) as e:
        console.print(f"[bold red]Invalid configuration:[/bold red] {e}")
        raise SystemExit(2)


def _print_config(config: ModelDbConnectionConfig) -> None:
    table = Table(title="Database Connection")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="bold")
    table.add_row("Host", config.host)
    table.add_row("Port", str(config.port))
    table.add_row("Database", config.database)
    table.add_row("User", config.user)
    table.add_row("Encrypt", str(config.encrypt))
    table.add_row("Trust Server Certificate", str(config.trust_server_certificate))
    table.add_row("SSL Mode", config.ssl_mode)
    table.add_row("Pool Size", f"{config.min_size}-{config.max_size}")
    console.print(table)


async def _run_check_connection(config: ModelDbConnectionConfig, schema: str) -> None:
    # Single attempt: a diagnostic should report the first failure it sees.
    database = Database(config)
    try:
        console.print("[bold blue]Connecting to database...[/bold blue]")
        await database.acquire_pool()
        console.print("[bold green]Connection successful[/bold green]")

        version = await database.fetch_value("SELECT version()", max_attempts=1)
        console.print(f"Server version: [dim]{version}[/dim]")

        table_count = await database.fetch_value(
            "SELECT count(*) FROM information_schema.tables WHERE table_schema = :schema",
            {"schema": schema},
            max_attempts=1,
        )
        console.print(f"Tables in schema [cyan]{schema}[/cyan]: {table_count}")
    finally:
        await database.close()


__all__: list[str] = ["cli"]
