"""CLI — Request commands: run, stream and show request specs."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

import typer
from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table

if TYPE_CHECKING:
    from httptask.context import RunContext
    from httptask.task import HttpRequestTask

app = typer.Typer(help="Assemble and send HTTP requests described in YAML/JSON specs.")
console = Console()

_REDACTED_HEADERS = {"authorization", "proxy-authorization"}


def _load_spec(spec_file: Path) -> dict[str, Any]:
    import yaml

    if str(spec_file) == "-":
        raw = sys.stdin.read()
    else:
        if not spec_file.exists():
            console.print(f"[red]File not found: {spec_file}[/red]")
            raise typer.Exit(1)
        raw = spec_file.read_text()

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        console.print(f"[red]Invalid spec file: {escape(str(exc))}[/red]")
        raise typer.Exit(1)
    if not isinstance(data, dict):
        console.print("[red]A request spec must be a mapping.[/red]")
        raise typer.Exit(1)
    return data


def _parse_vars(pairs: list[str]) -> dict[str, Any]:
    """Turn ``a.b=c`` pairs into nested mappings."""
    variables: dict[str, Any] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            console.print(f"[red]Invalid --var '{pair}', expected key=value.[/red]")
            raise typer.Exit(1)
        *parents, leaf = key.split(".")
        node = variables
        for parent in parents:
            node = node.setdefault(parent, {})
        node[leaf] = value
    return variables


def _task(spec_file: Path) -> "HttpRequestTask":
    from pydantic import ValidationError

    from httptask.task import HttpRequestTask

    try:
        return HttpRequestTask.from_mapping(_load_spec(spec_file))
    except ValidationError as exc:
        console.print(f"[red]Invalid request spec:[/red]\n{escape(str(exc))}")
        raise typer.Exit(1)


def _context(variables: list[str], storage_dir: Path | None) -> "RunContext":
    from httptask.context import RunContext

    return RunContext.from_settings(variables=_parse_vars(variables), storage_dir=storage_dir)


def _headers_table(title: str, headers: Any) -> Table:
    table = Table(title=title, show_header=True)
    table.add_column("Header", style="cyan")
    table.add_column("Value")
    for key, value in headers.items():
        table.add_row(key, "***" if key.lower() in _REDACTED_HEADERS else escape(value))
    return table


@app.command("run")
def run_request(
    spec_file: Path = typer.Argument(help="Path to the request spec (YAML or JSON). Use - for stdin."),
    var: list[str] = typer.Option([], "--var", "-v", help="Template variable, key=value."),
    storage_dir: Path | None = typer.Option(None, "--storage-dir", help="Base directory of stored content."),
    show_headers: bool = typer.Option(False, "--headers", help="Print response headers."),
    allow_failed: bool = typer.Option(False, "--allow-failed", help="Exit 0 on non-2xx status."),
) -> None:
    """Send a request and print the response."""
    import httpx

    from httptask.exceptions import HttpTaskError

    task = _task(spec_file)
    with _context(var, storage_dir) as ctx:
        try:
            response = task.run(ctx)
        except (HttpTaskError, httpx.HTTPError) as exc:
            console.print(f"[red]Error: {escape(str(exc))}[/red]")
            raise typer.Exit(1)

    colour = "green" if response.is_success else "red"
    console.print(f"[{colour}]{response.status_code}[/{colour}] {escape(response.url)}")
    if show_headers:
        console.print(_headers_table("Response headers", response.headers))

    content_type = response.headers.get("content-type", "")
    if "json" in content_type:
        console.print(Syntax(response.text, "json"))
    elif response.content:
        console.print(response.text, markup=False, highlight=False)

    if not response.is_success and not allow_failed:
        raise typer.Exit(1)


@app.command("stream")
def stream_request(
    spec_file: Path = typer.Argument(help="Path to the request spec (YAML or JSON). Use - for stdin."),
    var: list[str] = typer.Option([], "--var", "-v", help="Template variable, key=value."),
    storage_dir: Path | None = typer.Option(None, "--storage-dir", help="Base directory of stored content."),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write the body to this file."),
    chunk_size: int = typer.Option(65_536, "--chunk-size", min=1, help="Chunk size in bytes."),
) -> None:
    """Send a request and stream the response body to stdout or a file."""
    import httpx

    from httptask.exceptions import HttpTaskError

    task = _task(spec_file)
    with _context(var, storage_dir) as ctx:
        try:
            chunks = task.stream(ctx, chunk_size=chunk_size)
            if output is not None:
                with output.open("wb") as fh:
                    written = sum(fh.write(chunk) for chunk in chunks)
                console.print(f"[green]{written} bytes written to {output}[/green]")
            else:
                for chunk in chunks:
                    sys.stdout.buffer.write(chunk)
                sys.stdout.buffer.flush()
        except (HttpTaskError, httpx.HTTPError) as exc:
            console.print(f"[red]Error: {escape(str(exc))}[/red]")
            raise typer.Exit(1)


@app.command("show")
def show_request(
    spec_file: Path = typer.Argument(help="Path to the request spec (YAML or JSON). Use - for stdin."),
    var: list[str] = typer.Option([], "--var", "-v", help="Template variable, key=value."),
    storage_dir: Path | None = typer.Option(None, "--storage-dir", help="Base directory of stored content."),
) -> None:
    """Assemble a request and print it without sending."""
    from httptask.exceptions import HttpTaskError

    task = _task(spec_file)
    with _context(var, storage_dir) as ctx:
        try:
            request = task.request(ctx)
        except HttpTaskError as exc:
            console.print(f"[red]Error: {escape(str(exc))}[/red]")
            raise typer.Exit(1)

        console.print(f"[bold]{request.method.value}[/bold] {escape(request.url)}")
        headers = request.headers.copy()
        if request.auth is not None:
            headers["Authorization"] = "Basic"
        console.print(_headers_table("Request headers", headers))

        if request.parts is not None:
            parts = Table(title="Multipart parts", show_header=True)
            parts.add_column("Key", style="cyan")
            parts.add_column("Kind")
            parts.add_column("Value")
            for part in request.parts:
                if part.file is not None:
                    parts.add_row(part.key, "file", f"{part.file.name} ({part.file.size} bytes)")
                else:
                    parts.add_row(part.key, "text", escape(part.text or ""))
            console.print(parts)
        elif request.form is not None:
            form = Table(title="Form fields", show_header=True)
            form.add_column("Key", style="cyan")
            form.add_column("Value")
            for key, value in request.form.items():
                form.add_row(key, escape(value))
            console.print(form)
        elif request.content is not None:
            console.print(request.content, markup=False, highlight=False)
