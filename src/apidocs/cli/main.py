"""apidocs CLI entry point."""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Annotated

import typer
from rich.logging import RichHandler

from apidocs.cli.add import add_cmd
from apidocs.cli.batch import crawl_all_cmd
from apidocs.cli.context import console
from apidocs.cli.libraries import list_cmd
from apidocs.cli.query import query_cmd
from apidocs.cli.remove import remove_cmd
from apidocs.cli.sync import sync_cmd


def _version() -> str:
    try:
        return importlib.metadata.version("apidocs")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"apidocs {_version()}")
        raise typer.Exit()


def configure_logging(verbose: bool) -> None:
    """Route library logging through rich; DEBUG with --verbose, else WARNING."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=verbose, show_path=verbose)],
        force=True,
    )
    # litellm and urllib3 are chatty at DEBUG.
    for noisy in ("LiteLLM", "litellm", "httpx", "httpcore", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


app = typer.Typer(
    name="apidocs",
    help=(
        "apidocs: turn documentation websites into queryable knowledge bases.\n\n"
        "  apidocs add URL          Crawl and index a documentation site.\n"
        "  apidocs query LIB TEXT   Semantic search with a token-budgeted answer."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging."),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """apidocs: documentation ingestion and semantic retrieval."""
    configure_logging(verbose)


app.command("add")(add_cmd)
app.command("query")(query_cmd)
app.command("list")(list_cmd)
app.command("sync")(sync_cmd)
app.command("remove")(remove_cmd)
app.command("crawl-all")(crawl_all_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed apidocs version."""
    typer.echo(f"apidocs {_version()}")


if __name__ == "__main__":
    app()
