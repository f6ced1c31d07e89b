"""hook-listener server - main entry point."""

from __future__ import annotations

import asyncio
import sys

import click
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from hooklistener.core.config import GatewayConfig, build_config, load_config_file
from hooklistener.core.logging import LOG_LEVELS, configure_logging
from hooklistener.queue.producer import StartupError, describe_dsn
from hooklistener.server.app import GatewayServer

console = Console()

BANNER = """
 _                 _           _ _     _
| |__   ___   ___ | | __      | (_)___| |_ ___ _ __   ___ _ __
| '_ \\ / _ \\ / _ \\| |/ /_____ | | / __| __/ _ \\ '_ \\ / _ \\ '__|
| | | | (_) | (_) |   <______|| | \\__ \\ ||  __/ | | |  __/ |
|_| |_|\\___/ \\___/|_|\\_\\      |_|_|___/\\__\\___|_| |_|\\___|_|
                 signed webhooks -> postgres log
"""


@click.command()
@click.option(
    "--config", "-c",
    "config_file",
    type=click.Path(exists=True),
    help="Path to YAML or TOML config file",
)
@click.option("--bind", "-b", help="Bind address, host:port (default: 127.0.0.1:8080)")
@click.option(
    "--secret",
    envvar="HOOKLISTENER_SECRET",
    help="Shared webhook secret",
)
@click.option(
    "--pgsql", "-p",
    "database_url",
    envvar="HOOKLISTENER_DATABASE_URL",
    help="PostgreSQL connection string for the log",
)
@click.option("--prefix", "route_prefix", help="Route prefix (default: gh)")
@click.option("--table", "queue_table", help="Log table name (default: logs)")
@click.option(
    "--max-in-flight-writes",
    type=click.IntRange(min=1),
    help="Concurrent appends allowed against the log (default: 1)",
)
@click.option(
    "--max-body-size",
    type=click.IntRange(min=1),
    help="Reject bodies larger than this many bytes (default: unbounded)",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS),
    help="Log level (default: info)",
)
@click.option("--log-json", is_flag=True, help="Emit JSON log lines")
def main(
    config_file: str | None,
    bind: str | None,
    secret: str | None,
    database_url: str | None,
    route_prefix: str | None,
    queue_table: str | None,
    max_in_flight_writes: int | None,
    max_body_size: int | None,
    log_level: str | None,
    log_json: bool,
):
    """Run the webhook listener."""
    file_config: dict = {}
    if config_file:
        try:
            file_config = load_config_file(config_file)
        except (OSError, ValueError) as e:
            console.print(f"[red]Failed to load config: {e}[/red]")
            sys.exit(1)

    try:
        config = build_config(
            file_config,
            {
                "bind": bind,
                "secret": secret,
                "database_url": database_url,
                "route_prefix": route_prefix,
                "queue_table": queue_table,
                "max_in_flight_writes": max_in_flight_writes,
                "max_body_size": max_body_size,
                "log_level": log_level,
                "log_json": log_json or None,
            },
        )
    except ValidationError as e:
        console.print(f"[red]Invalid configuration: {e}[/red]")
        sys.exit(1)

    missing = config.missing_settings()
    if missing:
        console.print(f"[red]Missing required settings: {', '.join(missing)}[/red]")
        sys.exit(1)

    configure_logging(config.log_level, config.log_json)

    console.print(BANNER, style="cyan")
    console.print(_settings_table(config))
    console.print(f"Route: POST /{config.normalized_prefix}/<path>", style="dim")
    dsn = describe_dsn(config.database_url)
    console.print(
        f"Log: {dsn.get('host', 'local')}/{dsn.get('dbname', '')} table {config.queue_table}",
        style="dim",
    )

    try:
        asyncio.run(run_server(config))
    except StartupError as e:
        console.print(f"[red]Startup failed: {e}[/red]")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\nShutting down...", style="yellow")


def _settings_table(config: GatewayConfig) -> Table:
    table = Table(title="Listener settings", show_header=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for name, value in config.to_display_dict().items():
        table.add_row(name, "unbounded" if value is None else str(value))
    return table


async def run_server(config):
    """Run the webhook listener until cancelled."""
    server = GatewayServer(config)

    try:
        await server.start()
        console.print("Server started, press Ctrl+C to stop", style="green")

        await asyncio.Event().wait()
    finally:
        await server.stop()


if __name__ == "__main__":
    main()
