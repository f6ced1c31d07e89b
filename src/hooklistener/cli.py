"""hook-listener CLI - Command line interface."""

from __future__ import annotations

import json
import sys

import click
from rich.console import Console
from rich.table import Table

from hooklistener import __version__
from hooklistener.server.main import main as serve_command
from hooklistener.webhooks.verifier import compute_signature

console = Console()


@click.group()
@click.version_option(__version__, prog_name="hook-listener")
def main():
    """hook-listener - verify signed webhooks and append them to a PostgreSQL log."""


main.add_command(serve_command, name="serve")


@main.command()
@click.option(
    "--secret",
    envvar="HOOKLISTENER_SECRET",
    required=True,
    help="Shared webhook secret",
)
@click.argument("payload", type=click.File("rb"), default="-")
def sign(secret: str, payload):
    """Print the X-Hub-Signature value for PAYLOAD (file or stdin).

    Useful for sending test deliveries with curl.
    """
    body = payload.read()
    click.echo(compute_signature(body, secret.encode("utf-8")))


@main.command()
@click.option(
    "--url",
    default="http://127.0.0.1:8080",
    envvar="HOOKLISTENER_URL",
    help="Base URL of a running listener",
)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option("--timeout", type=float, default=5.0, help="Request timeout in seconds")
def status(url: str, as_json: bool, timeout: float):
    """Show the health of a running listener."""
    import httpx

    try:
        with httpx.Client(timeout=timeout) as client:
            response = client.get(f"{url.rstrip('/')}/health")
            response.raise_for_status()
            data = response.json()
    except httpx.HTTPError as e:
        if as_json:
            click.echo(json.dumps({"status": "unreachable", "error": str(e)}))
        else:
            console.print(f"[red]Listener unreachable at {url}: {e}[/red]")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(data))
        return

    table = Table(title="hook-listener")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for key, value in data.items():
        table.add_row(str(key), str(value))
    console.print(table)


if __name__ == "__main__":
    main()
