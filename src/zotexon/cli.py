"""Command-line interface for Zotexon."""

from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from zotexon import __version__
from zotexon.cancellation import CancellationToken, cancel_on_signals
from zotexon.client import ZoteroClient
from zotexon.config import ExportFormat, ZotexonConfig
from zotexon.errors import ZotexonError
from zotexon.export import ExportOutcome, FileExporter
from zotexon.utils.logging import setup_logging

app = typer.Typer(
    name="zotexon",
    help="Export your Zotero library to a BibLaTeX or BibTeX file, once or periodically.",
    add_completion=False,
)
console = Console()


def _version_callback(value: bool):
    if value:
        console.print(f"zotexon {__version__}")
        raise typer.Exit()


def _load_config(ctx: typer.Context, **overrides) -> ZotexonConfig:
    """Merge CLI flags over environment settings and check required values."""
    try:
        config = ZotexonConfig(**{k: v for k, v in overrides.items() if v is not None})
    except ValidationError as e:
        ctx.fail(f"Invalid configuration: {e}")

    missing = config.missing_required()
    if missing:
        ctx.fail(f"Missing option{'s' if len(missing) > 1 else ''} {', '.join(repr(m) for m in missing)}.")
    return config


@app.command()
def export(
    ctx: typer.Context,
    api_key: Optional[str] = typer.Option(
        None,
        "--api-key",
        "-a",
        help="Zotero API key with read access to your library. Generate a key in "
        "your Zotero settings: https://www.zotero.org/settings/keys/new",
    ),
    file: Optional[Path] = typer.Option(
        None, "--file", "-f", help="File that the library will be exported to"
    ),
    interval: Optional[int] = typer.Option(
        None,
        "--interval",
        "-i",
        min=0,
        help="Interval (in seconds) for periodic exports. If not provided, "
        "the program will exit after exporting once",
    ),
    format: Optional[ExportFormat] = typer.Option(
        None,
        "--format",
        show_default=ExportFormat.BIBLATEX.value,
        help="Format to be used for the export",
    ),
    user_id: Optional[str] = typer.Option(
        None,
        "--user-id",
        "-u",
        help="Zotero user ID whose library is exported. Looked up from the API key if omitted",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
):
    """Export a Zotero library to a BibLaTeX/BibTeX file."""
    config = _load_config(
        ctx,
        zotero_api_key=api_key,
        zotero_user_id=user_id,
        zotexon_file=file,
        zotexon_interval=interval,
        zotexon_format=format,
    )
    setup_logging(level="DEBUG" if verbose else config.log_level)

    try:
        client = ZoteroClient.from_api_key(
            config.zotero_api_key,
            user_id=config.zotero_user_id,
            base_url=config.zotero_api_url,
            page_size=config.page_size,
            timeout=config.request_timeout,
        )
    except ZotexonError as e:
        _fail("Error during Zotero client initialization", e)

    with client:
        try:
            exporter = FileExporter.create(client, config.zotexon_file, config.zotexon_format)
            if config.zotexon_interval:
                with cancel_on_signals(CancellationToken()) as cancel:
                    outcome = exporter.export(config.zotexon_interval, cancel)
            else:
                outcome = exporter.export()
        except ZotexonError as e:
            _fail("Error during export process", e)

    if config.zotexon_interval:
        console.print(f"[yellow]Stopped periodic export to[/yellow] {escape(str(config.zotexon_file))}")
    elif outcome is ExportOutcome.CHANGES:
        console.print(f"[green]Exported library to[/green] {escape(str(config.zotexon_file))}")
    else:
        console.print(f"[green]Up to date:[/green] {escape(str(config.zotexon_file))}")


def _fail(context: str, error: ZotexonError):
    console.print(f"[red]{context}: {escape(str(error))}[/red]")
    if error.__cause__ is not None:
        console.print(f"[red]Caused by: {escape(str(error.__cause__))}[/red]")
    raise typer.Exit(1)


if __name__ == "__main__":
    app()
