"""
Chat CLI.

Command-line entry points for running the gateway and the console client.
"""

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from chat_shared.config.settings import settings

app = typer.Typer(
    name="chat",
    help="Real-time chat gateway and console client",
    add_completion=False,
)
console = Console()


# =============================================================================
# Server Commands
# =============================================================================

@app.command()
def serve(
    host: str = typer.Option(None, help="Bind address (default: CHAT_HOST)"),
    port: int = typer.Option(None, help="Listen port (default: CHAT_PORT)"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
):
    """Run the chat gateway."""
    import uvicorn

    host = host or settings.chat_host
    port = port or settings.chat_port

    errors = settings.validate_runtime()
    if errors:
        for error in errors:
            console.print(f"[red]✗ {error}[/red]")
        raise typer.Exit(1)

    console.print(f"[blue]Starting chat gateway on {host}:{port}[/blue]")
    try:
        uvicorn.run("chat_gateway.main:app", host=host, port=port, reload=reload)
    except OSError as e:
        console.print(f"[red]✗ Could not start server: {e}[/red]")
        raise typer.Exit(1)


# =============================================================================
# Client Commands
# =============================================================================

@app.command()
def connect(
    url: str = typer.Option(None, help="Gateway URL (default: CHAT_SERVER_URL)"),
):
    """Open the interactive chat console."""
    import sys

    from chat_client.console import run_client
    from chat_shared.config.logging import setup_logging

    # Logs go to stderr so they don't interleave with chat output
    setup_logging(stream=sys.stderr)
    exit_code = asyncio.run(run_client(url or settings.chat_server_url))
    raise typer.Exit(exit_code)


# =============================================================================
# Health Commands
# =============================================================================

@app.command()
def health(
    url: str = typer.Option(None, help="Health URL (default: derived from CHAT_PORT)"),
):
    """Query a running gateway's health endpoint."""
    import time

    import httpx

    url = url or f"http://localhost:{settings.chat_port}/ws/health"

    async def _health():
        async with httpx.AsyncClient(timeout=5.0) as client:
            start = time.time()
            response = await client.get(url)
            elapsed = (time.time() - start) * 1000
        return response, elapsed

    try:
        response, elapsed = asyncio.run(_health())
    except httpx.HTTPError as e:
        console.print(f"[red]✗ {type(e).__name__}: {e}[/red]")
        raise typer.Exit(1)

    if response.status_code != 200:
        console.print(f"[red]✗ Status {response.status_code}[/red]")
        raise typer.Exit(1)

    data = response.json()
    table = Table(title="Chat Gateway Health")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Status", str(data.get("status")))
    table.add_row("Environment", str(data.get("environment")))
    table.add_row("Connections", str(data.get("total_connections")))
    table.add_row("Registered users", str(data.get("registered_users")))
    table.add_row("Response time", f"{elapsed:.0f}ms")
    console.print(table)


# =============================================================================
# Info Commands
# =============================================================================

@app.command()
def config():
    """Show the effective configuration."""
    table = Table(title="Chat Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    for name, value in settings.model_dump().items():
        table.add_row(name.upper(), str(value))

    console.print(table)

    errors = settings.validate_runtime()
    if errors:
        for error in errors:
            console.print(f"[yellow]⚠ {error}[/yellow]")
    else:
        console.print("[green]✓ Configuration is valid[/green]")


if __name__ == "__main__":
    app()
