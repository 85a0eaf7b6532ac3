"""
Presence Gateway CLI.

Command-line interface for running and inspecting the gateway.
"""

import sys
from typing import Optional

import httpx
import typer
from rich.console import Console
from rich.table import Table

from presence_gateway import __version__

app = typer.Typer(
    name="presence-gateway",
    help="Presence Gateway CLI",
    add_completion=False,
)
console = Console()


def _base_url(host: str, port: int) -> str:
    return f"http://{host}:{port}"


# =============================================================================
# Server Commands
# =============================================================================

@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Bind address (default: HOST setting)"),
    port: Optional[int] = typer.Option(None, help="Bind port (default: PORT setting)"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
):
    """Run the gateway with uvicorn."""
    import uvicorn

    from shared.config.settings import settings

    errors = settings.validate_configuration()
    if errors:
        for error in errors:
            console.print(f"[red]✗ {error}[/red]")
        raise typer.Exit(1)

    bind_host = host or settings.host
    bind_port = port or settings.port
    console.print(
        f"[blue]Starting Presence Gateway on {bind_host}:{bind_port}{settings.ws_path}[/blue]"
    )
    uvicorn.run(
        "presence_gateway.main:app",
        host=bind_host,
        port=bind_port,
        reload=reload,
        ws_ping_interval=settings.ws_transport_ping_interval,
        ws_ping_timeout=settings.ws_transport_ping_timeout,
    )


@app.command("settings")
def show_settings():
    """Show the effective configuration."""
    from shared.config.settings import settings

    table = Table(title="Presence Gateway Settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    for name, value in settings.model_dump().items():
        table.add_row(name.upper(), str(value))

    console.print(table)

    errors = settings.validate_configuration()
    if errors:
        for error in errors:
            console.print(f"[red]✗ {error}[/red]")
        raise typer.Exit(1)
    console.print("[green]✓ Configuration valid[/green]")


# =============================================================================
# Inspection Commands
# =============================================================================

@app.command()
def health(
    host: str = typer.Option("localhost", help="Gateway host"),
    port: int = typer.Option(3000, help="Gateway port"),
):
    """Check gateway health."""
    url = f"{_base_url(host, port)}/health"
    try:
        response = httpx.get(url, timeout=5.0)
    except httpx.HTTPError as e:
        console.print(f"[red]✗ {type(e).__name__}: {e}[/red]")
        raise typer.Exit(1)

    if response.status_code != 200:
        console.print(f"[red]✗ Status {response.status_code}[/red]")
        raise typer.Exit(1)

    data = response.json()
    table = Table(title="Gateway Health")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    for key in ("status", "version", "environment", "active_connections",
                "users_online", "liveness_running"):
        table.add_row(key, str(data.get(key, "?")))

    console.print(table)


@app.command()
def online(
    host: str = typer.Option("localhost", help="Gateway host"),
    port: int = typer.Option(3000, help="Gateway port"),
):
    """List online users."""
    url = f"{_base_url(host, port)}/online-users"
    try:
        response = httpx.get(url, timeout=5.0)
        response.raise_for_status()
    except httpx.HTTPError as e:
        console.print(f"[red]✗ {type(e).__name__}: {e}[/red]")
        raise typer.Exit(1)

    users = response.json().get("users", [])
    if not users:
        console.print("[yellow]No users online[/yellow]")
        return

    table = Table(title=f"Online Users ({len(users)})")
    table.add_column("Username", style="cyan")
    table.add_column("Last Seen", style="green")

    for user in users:
        table.add_row(user["username"], str(user["lastSeen"]))

    console.print(table)


@app.command()
def version():
    """Show version information."""
    table = Table(title="Presence Gateway Version")
    table.add_column("Component", style="cyan")
    table.add_column("Version", style="green")

    table.add_row("Gateway", __version__)
    table.add_row("Python", sys.version.split()[0])

    console.print(table)


if __name__ == "__main__":
    app()
