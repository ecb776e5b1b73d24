"""httptask CLI — Entry point.

Usage:
    httptask request run <spec.yaml> [--var key=value ...]
    httptask request stream <spec.yaml> [--output file]
    httptask request show <spec.yaml>
    httptask version
"""

from __future__ import annotations

import typer
from rich.console import Console

from httptask.cli.commands import request

app = typer.Typer(
    name="httptask",
    help="httptask — Run declarative HTTP requests from workflow task specs.",
    no_args_is_help=True,
    pretty_exceptions_enable=False,
)

console = Console()

app.add_typer(request.app, name="request")


@app.callback()
def main_callback(
    config: str | None = typer.Option(None, "--config", help="Path to a YAML settings file."),
) -> None:
    from pathlib import Path

    from httptask.config import Settings, override_settings
    from httptask.logging import configure_logging

    settings = Settings.load(Path(config) if config else None)
    override_settings(settings)
    configure_logging(
        level=settings.logging.level,
        format=settings.logging.format,
        log_file=str(settings.logging.file) if settings.logging.file else None,
    )


@app.command("version")
def version() -> None:
    """Print the installed httptask version."""
    from httptask import __version__

    console.print(f"httptask [bold]{__version__}[/bold]")


if __name__ == "__main__":
    app()
