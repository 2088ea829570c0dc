"""
Runner Provisioner CLI

Command-line interface for running and checking the provisioner.

Commands:
- serve: Run the webhook server
- detect-engine: Show which container engine would be used
- ensure-image: Make sure the runner image is available locally
- sign: Compute the X-Hub-Signature-256 value for a payload file
"""

import asyncio
from pathlib import Path
from typing import Optional

import typer
import uvicorn
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from runner_provisioner import __version__
from runner_provisioner.engines.detect import create_engine_client, resolve_endpoint
from runner_provisioner.errors import ProvisionerError
from runner_provisioner.logging import setup_logging
from runner_provisioner.service.images import ImageResolver
from runner_provisioner.settings import load_settings
from runner_provisioner.webhook.signature import SIGNATURE_HEADER, sign_payload

app = typer.Typer(
    name="runner-provisioner",
    help="Ephemeral GitHub Actions runner provisioner",
)

console = Console()


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Address to bind"),
    port: Optional[int] = typer.Option(None, help="Port to listen on (defaults to PORT)"),
):
    """
    Run the webhook server.

    Startup fails if no container engine is reachable, the runner image cannot
    be found or pulled, or no registration token can be obtained.
    """
    from runner_provisioner.app import create_app

    # Settings validation logs, so handlers must exist before loading
    setup_logging()

    try:
        settings = load_settings()
    except ProvisionerError as e:
        rprint(f"[red]{e}[/red]")
        raise typer.Exit(1)

    setup_logging(settings.log_level)

    uvicorn.run(
        create_app(settings),
        host=host,
        port=port or settings.port,
        log_config=None,
    )


@app.command()
def detect_engine(
    engine: str = typer.Option("", envvar="CT_ENGINE", help="Engine kind (podman or docker)"),
    socket: str = typer.Option("", envvar="CT_ENGINE_SOCKET", help="Engine socket path"),
):
    """Show the container engine and socket the provisioner would use."""
    try:
        endpoint = resolve_endpoint(engine, socket)
    except ProvisionerError as e:
        rprint(f"[red]{e}[/red]")
        raise typer.Exit(1)

    if not endpoint.available:
        rprint("[red]No container engine found on this server.[/red]")
        raise typer.Exit(1)

    table = Table(title="Container Engine")
    table.add_column("Kind", style="cyan")
    table.add_column("Socket")
    table.add_row(str(endpoint.kind), endpoint.socket_path)
    console.print(table)


@app.command()
def ensure_image(
    image: Optional[str] = typer.Argument(None, help="Image as repository:tag (defaults to GH_RUNNER_CT_IMAGE)"),
    engine: str = typer.Option("", envvar="CT_ENGINE", help="Engine kind (podman or docker)"),
    socket: str = typer.Option("", envvar="CT_ENGINE_SOCKET", help="Engine socket path"),
):
    """Check the runner image is present locally, pulling it if needed."""
    setup_logging()

    try:
        name = image or load_settings().gh_runner_ct_image
        endpoint = resolve_endpoint(engine, socket)
        asyncio.run(_ensure_image(endpoint, name))
    except ProvisionerError as e:
        rprint(f"[red]{e}[/red]")
        raise typer.Exit(1)

    rprint(f"[green]Image {name} is available[/green]")


async def _ensure_image(endpoint, name: str) -> None:
    client = create_engine_client(endpoint)
    try:
        await ImageResolver(client).ensure_image(name)
    finally:
        await client.close()


@app.command()
def sign(
    payload_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="File holding the raw webhook body"),
    secret: str = typer.Option(..., envvar="GH_WEBHOOK_SECRET", help="Webhook secret"),
):
    """Print the X-Hub-Signature-256 header for a payload, for testing webhooks by hand."""
    signature = sign_payload(payload_file.read_bytes(), secret)
    typer.echo(f"{SIGNATURE_HEADER}: {signature}")


@app.command()
def version():
    """Show the provisioner version."""
    rprint(f"runner-provisioner {__version__}")


if __name__ == "__main__":
    app()
