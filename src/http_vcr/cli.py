"""HTTP VCR CLI interface for inspecting and serving cassettes."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from collections import Counter
from pathlib import Path
from typing import Any, Optional

import click
import httpx
from rich.console import Console
from rich.json import JSON
from rich.logging import RichHandler
from rich.table import Table

from http_vcr import __version__
from http_vcr.config import VCRSettings, resolve_settings
from http_vcr.core.format import Cassette
from http_vcr.core.matcher import RequestMatcher
from http_vcr.replayer import CassetteServer

console = Console()


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
    )


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default="warning",
    help="Logging verbosity",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Path to a settings file (default: ./http-vcr.json if present)",
)
@click.pass_context
def cli(ctx: click.Context, log_level: str, config_path: Optional[str]) -> None:
    """HTTP VCR - Record and replay HTTP interactions."""
    _configure_logging(log_level)
    try:
        ctx.obj = resolve_settings(config_path)
    except (IOError, ValueError) as e:
        raise click.ClickException(f"Invalid settings: {e}")


def _resolve_cassette_path(settings: VCRSettings, cassette: str) -> Path:
    """Accept either a file path or a cassette name under the configured directory."""
    path = Path(cassette)
    if path.is_file():
        return path
    return Path(settings.cassette_dir) / f"{cassette}{settings.suffix}"


@cli.command()
@click.argument("cassette")
@click.option(
    "--format",
    type=click.Choice(["text", "json", "table"]),
    default="text",
    help="Output format for inspection",
)
@click.pass_obj
def inspect(settings: VCRSettings, cassette: str, format: str) -> None:
    """Inspect the contents of a cassette (file path or cassette name).

    Example:
        http-vcr inspect cassettes/github_user.json
        http-vcr inspect github_user --format table
    """
    path = _resolve_cassette_path(settings, cassette)
    try:
        if format != "json":
            console.print(f"[bold green]Loading cassette[/bold green]: {path}")
        loaded = Cassette.load(str(path))
    except (IOError, ValueError) as e:
        raise click.ClickException(f"Inspection failed: {e}")

    if format == "json":
        _output_inspect_json(loaded)
    elif format == "table":
        console.print()
        _output_inspect_table(loaded)
    else:
        console.print()
        _output_inspect_text(loaded)


@cli.command("list")
@click.option(
    "--dir",
    "directory",
    type=click.Path(file_okay=False),
    default=None,
    help="Cassette directory (default: cassette_dir from settings)",
)
@click.pass_obj
def list_cmd(settings: VCRSettings, directory: Optional[str]) -> None:
    """List cassettes in a directory.

    Example:
        http-vcr list --dir tests/cassettes
    """
    root = Path(directory or settings.cassette_dir)
    if not root.is_dir():
        raise click.ClickException(f"Cassette directory not found: {root}")

    table = Table(title=f"Cassettes in {root}")
    table.add_column("Name", style="cyan")
    table.add_column("Interactions", style="magenta", justify="right")
    table.add_column("Created")

    for path in sorted(root.rglob(f"*{settings.suffix}")):
        name = str(path.relative_to(root))[: -len(settings.suffix)]
        try:
            loaded = Cassette.load(str(path))
        except (IOError, ValueError):
            table.add_row(name, "[red]invalid[/red]", "")
            continue
        table.add_row(name, str(loaded.interaction_count), str(loaded.metadata.created_at))

    console.print(table)


@cli.command()
@click.argument("cassette")
@click.option(
    "--match-strategy",
    type=click.Choice(sorted(RequestMatcher.VALID_STRATEGIES)),
    default="path",
    help="Strategy for matching incoming requests to recorded interactions",
)
@click.option("--host", default="127.0.0.1", help="Host to bind the replay server to")
@click.option("--port", type=int, default=8100, help="Port to bind the replay server to")
@click.pass_obj
def serve(settings: VCRSettings, cassette: str, match_strategy: str, host: str, port: int) -> None:
    """Serve a cassette as a mock HTTP server.

    Example:
        http-vcr serve github_user --port 8100
    """
    path = _resolve_cassette_path(settings, cassette)
    try:
        server = CassetteServer.from_file(path, match_strategy=match_strategy)  # type: ignore[arg-type]
    except FileNotFoundError:
        raise click.ClickException(f"Cassette file not found: {path}")
    except (IOError, ValueError) as e:
        raise click.ClickException(f"Cannot load cassette: {e}")

    console.print(f"[bold green]Loaded cassette[/bold green]: {path}")
    console.print(f"  Interactions: {server.cassette.interaction_count}")
    console.print(f"  Match strategy: {match_strategy}")
    console.print(f"[bold cyan]Serving on[/bold cyan] http://{host}:{port}")

    try:
        asyncio.run(server.serve(host, port))
    except KeyboardInterrupt:
        console.print("\n[yellow]Replay server stopped[/yellow]")
        sys.exit(0)


def _summary(cassette: Cassette) -> dict[str, Any]:
    methods = Counter(i.request.method for i in cassette.interactions)
    hosts = Counter(httpx.URL(i.request.url).host for i in cassette.interactions)
    codes = Counter(i.response.code for i in cassette.interactions)
    return {"methods": dict(methods), "hosts": dict(hosts), "status_codes": dict(codes)}


def _output_inspect_text(cassette: Cassette) -> None:
    """Output cassette inspection in text format."""
    console.print("[bold cyan]Metadata[/bold cyan]")
    console.print(f"  Name: {cassette.name}")
    console.print(f"  Format version: {cassette.metadata.format_version}")
    console.print(f"  Created: {cassette.metadata.created_at}")
    console.print(f"  Tags: {json.dumps(cassette.metadata.tags)}")

    summary = _summary(cassette)
    console.print()
    console.print("[bold cyan]Statistics[/bold cyan]")
    console.print(f"  Total interactions: {cassette.interaction_count}")
    for method, count in sorted(summary["methods"].items()):
        console.print(f"    • {method}: {count}")

    if cassette.interactions:
        console.print()
        console.print("[bold cyan]Timeline[/bold cyan]")
        for interaction in cassette.interactions[:10]:
            console.print(
                f"  {interaction.sequence}. {interaction.request.method} "
                f"{interaction.request.url} -> {interaction.response.status}"
            )
        if cassette.interaction_count > 10:
            console.print(f"  ... and {cassette.interaction_count - 10} more")


def _output_inspect_json(cassette: Cassette) -> None:
    """Output cassette inspection in JSON format."""
    output = {
        "name": cassette.name,
        "metadata": {
            "format_version": cassette.metadata.format_version,
            "created_at": str(cassette.metadata.created_at),
            "tags": cassette.metadata.tags,
        },
        "statistics": {
            "total_interactions": cassette.interaction_count,
            **_summary(cassette),
        },
    }
    console.print(JSON(json.dumps(output, indent=2)))


def _output_inspect_table(cassette: Cassette) -> None:
    """Output cassette inspection in table format."""
    metadata_table = Table(show_header=False)
    metadata_table.add_row("Name", cassette.name)
    metadata_table.add_row("Format version", cassette.metadata.format_version)
    metadata_table.add_row("Created", str(cassette.metadata.created_at))
    metadata_table.add_row("Tags", json.dumps(cassette.metadata.tags))
    console.print(metadata_table)

    console.print()
    table = Table(title="Interactions")
    table.add_column("#", justify="right")
    table.add_column("Method", style="cyan")
    table.add_column("URL")
    table.add_column("Status", style="magenta")
    table.add_column("Body", justify="right")
    table.add_column("Time (ms)", justify="right")

    for interaction in cassette.interactions:
        table.add_row(
            str(interaction.sequence),
            interaction.request.method,
            interaction.request.url,
            interaction.response.status,
            str(len(interaction.response.content)),
            f"{interaction.duration_ms:.1f}",
        )

    console.print(table)


def main() -> None:
    """Entry point for the HTTP VCR CLI."""
    cli()


if __name__ == "__main__":
    main()
