"""WP AI Manager command-line interface.

Usage:
    wpmanager serve            Run the API server
    wpmanager init-db          Create database tables
    wpmanager generate-key     Print a new credential encryption key
    wpmanager providers        Show configured AI backends
    wpmanager check-config     Validate settings
"""

import logging
import os
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from wpmanager import __version__

_log = logging.getLogger(__name__)

app = typer.Typer(
    name="wpmanager",
    help="AI-assisted WordPress site management",
    no_args_is_help=True,
)

console = Console()

_config_path: str | None = None


@app.callback()
def main(
    config: Optional[str] = typer.Option(
        None, "--config", help="Path to wpmanager.yaml config file"
    ),
):
    """WP AI Manager CLI."""
    global _config_path
    _config_path = config


def _load_settings_or_exit():
    from wpmanager.config import ConfigurationError, load_settings

    try:
        return load_settings(config_path=_config_path)
    except (FileNotFoundError, ConfigurationError) as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(code=1) from e


@app.command()
def version():
    """Show the WP AI Manager version."""
    console.print(f"[bold]WP AI Manager[/bold] v{__version__}")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
    log_level: str = typer.Option("info", "--log-level", help="uvicorn log level"),
):
    """Run the API server with uvicorn."""
    import uvicorn

    # The API process resolves settings itself; hand it the same file.
    if _config_path:
        os.environ["WPMANAGER_CONFIG_PATH"] = str(_config_path)
    _load_settings_or_exit()

    console.print(f"[bold]Starting WP AI Manager on {host}:{port}[/bold]")
    uvicorn.run(
        "wpmanager.api.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )


@app.command("init-db")
def init_db_cmd():
    """Create all database tables."""
    from wpmanager.db.connection import DATABASE_URL, init_db

    init_db()
    console.print(f"[green]Database initialized[/green] ({DATABASE_URL})")


@app.command("generate-key")
def generate_key_cmd():
    """Print a new base64 key for WPMANAGER_ENCRYPTION_KEY."""
    from wpmanager.services.credential_encryption import generate_key

    typer.echo(generate_key())


@app.command()
def providers():
    """List AI backends and whether each one is configured."""
    from wpmanager.services.ai import AIDispatcher, AIProviderName

    settings = _load_settings_or_exit()
    dispatcher = AIDispatcher(settings)

    table = Table(title="AI backends")
    table.add_column("Provider")
    table.add_column("Configured")
    table.add_column("Default")
    for name in AIProviderName:
        configured = dispatcher.is_available(name.value)
        table.add_row(
            name.value,
            "[green]yes[/green]" if configured else "[dim]no[/dim]",
            "*" if name.value == dispatcher.default_provider else "",
        )
    console.print(table)
    if not dispatcher.available_providers():
        console.print("[yellow]No AI backends configured.[/yellow]")


@app.command("check-config")
def check_config():
    """Validate settings and the credential encryption key."""
    from wpmanager.errors import WPManagerError, format_error
    from wpmanager.services.credential_encryption import build_codec

    settings = _load_settings_or_exit()
    try:
        build_codec(settings)
    except ValueError as e:
        error = WPManagerError.from_code("E-1003", detail=str(e))
        console.print("[red]Encryption key problem[/red]")
        console.print(format_error(error), markup=False, highlight=False)
        raise typer.Exit(code=1) from e
    console.print("[green]Configuration OK[/green]")
    console.print(f"  Default AI provider: {settings.default_ai_provider}")
    console.print(
        f"  Monitoring: {'on' if settings.monitoring_enabled else 'off'} "
        f"(every {settings.monitoring_interval_seconds}s)"
    )


if __name__ == "__main__":
    app()
