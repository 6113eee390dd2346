"""apidocs add: crawl a documentation website into a new library.

Usage:
  apidocs add https://docs.stripe.com
  apidocs add https://docs.stripe.com/api --name stripe --max-pages 200
  apidocs add https://docs.stripe.com --force
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
    err_library_exists,
    err_no_pages,
    err_vector_index,
    warn_cancelled,
    warn_failed_chunks,
)
from apidocs.db.repository import DimensionMismatchError, VectorIndexError
from apidocs.ingest.crawler import InvalidUrlError
from apidocs.ingest.pipeline import IngestPipeline, LibraryExistsError


def add_cmd(
    url: Annotated[str, typer.Argument(help="Documentation website URL (http/https).")],
    name: Annotated[
        str | None,
        typer.Option("--name", "-n", help="Library name (default: derived from the URL)."),
    ] = None,
    max_pages: Annotated[
        int | None,
        typer.Option("--max-pages", "-m", min=1, help="Maximum pages to crawl."),
    ] = None,
    force: Annotated[
        bool,
        typer.Option("--force", help="Re-ingest even if the library is already indexed."),
    ] = False,
) -> None:
    """Crawl, chunk, embed and index a documentation website."""
    cfg = load_settings()
    embedder = make_embedder(cfg)
    store = make_store(cfg)

    with open_repository(cfg) as repo, ingest_pipeline(cfg, repo, store, embedder) as pipeline:
        code = run_add(pipeline, url, name=name, max_pages=max_pages, force=force)
    if code:
        raise typer.Exit(code)


def run_add(
    pipeline: IngestPipeline,
    url: str,
    *,
    name: str | None = None,
    max_pages: int | None = None,
    force: bool = False,
) -> int:
    """Run one add and print the outcome. Returns a process exit code."""
    console.print(f"\n[bold]→ {name or url}[/]  [dim]{url}[/]")
    try:
        report = pipeline.add(url, name=name, max_pages=max_pages, force=force)
    except InvalidUrlError as exc:
        console.print(err_invalid_url(url, str(exc)))
        return 1
    except LibraryExistsError:
        console.print(err_library_exists(name or url))
        return 0
    except DimensionMismatchError as exc:
        console.print(err_dimension_mismatch(str(exc), name or url))
        return 1
    except VectorIndexError as exc:
        console.print(err_vector_index(str(exc)))
        return 1
    except KeyboardInterrupt:
        pipeline.cancel()
        console.print(warn_cancelled())
        return 130

    if report.cancelled:
        console.print(warn_cancelled())
        return 130
    if not report.complete:
        console.print(err_no_pages(url))
        return 1
    print_report(report)
    if report.failed:
        console.print(warn_failed_chunks(report.failed, report.library_id))
    return 0
