"""apidocs sync: re-crawl indexed libraries and replace their chunks.

Usage:
  apidocs sync stripe
  apidocs sync --all
"""

from __future__ import annotations

from typing import Annotated

import typer

from apidocs.cli.context import (
    console,
    ingest_pipeline,
    load_settings,
    make_embedder,
    make_store,
    open_repository,
    print_report,
)
from apidocs.cli.errors import (
    err_dimension_mismatch,
    err_invalid_url,
    err_library_not_found,
    err_vector_index,
    warn_cancelled,
    warn_failed_chunks,
)
from apidocs.db.repository import DimensionMismatchError, VectorIndexError
from apidocs.ingest.crawler import InvalidUrlError


def sync_cmd(
    library: Annotated[
        str | None,
        typer.Argument(help="Library name or id to sync."),
    ] = None,
    all_: Annotated[
        bool,
        typer.Option("--all", help="Sync every indexed library."),
    ] = False,
    max_pages: Annotated[
        int | None,
        typer.Option("--max-pages", "-m", min=1, help="Page cap (default: 2× last page count)."),
    ] = None,
) -> None:
    """Refresh one library (or all) from its documentation website."""
    if not library and not all_:
        console.print("[red]Error:[/] Specify a library or use --all.")
        raise typer.Exit(1)

    cfg = load_settings()
    store = make_store(cfg)

    if all_:
        targets = store.list()
        if not targets:
            console.print("[dim]No libraries to sync.[/]")
            return
    else:
        found = store.find(library or "")
        if found is None:
            console.print(err_library_not_found(library or ""))
            raise typer.Exit(1)
        targets = [found]

    embedder = make_embedder(cfg)
    failures = 0
    with open_repository(cfg) as repo, ingest_pipeline(cfg, repo, store, embedder) as pipeline:
        for metadata in targets:
            console.print(f"\n[bold]↻ {metadata.name}[/]  [dim]{metadata.website_url}[/]")
            try:
                report = pipeline.sync(metadata, max_pages=max_pages)
            except InvalidUrlError as exc:
                console.print(err_invalid_url(metadata.website_url, str(exc)))
                failures += 1
                continue
            except DimensionMismatchError as exc:
                console.print(err_dimension_mismatch(str(exc), metadata.id))
                failures += 1
                continue
            except VectorIndexError as exc:
                console.print(err_vector_index(str(exc)))
                failures += 1
                continue
            except KeyboardInterrupt:
                pipeline.cancel()
                console.print(warn_cancelled())
                raise typer.Exit(130)

            if report.cancelled:
                console.print(warn_cancelled())
                raise typer.Exit(130)
            if not report.complete:
                console.print("[yellow]No documentation pages found during sync; index left unchanged.[/]")
                failures += 1
                continue
            print_report(report)
            if report.failed:
                console.print(warn_failed_chunks(report.failed, metadata.id))

    if failures and not all_:
        raise typer.Exit(1)
    if all_:
        console.print(f"\n[green]✓[/] Sync complete ({len(targets) - failures}/{len(targets)} succeeded)")
