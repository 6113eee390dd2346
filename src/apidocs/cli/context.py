"""Shared wiring for CLI commands: config, storage, clients, progress.

Clients are built here once per command and passed down explicitly.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Callable, Iterator
from contextlib import contextmanager

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

from apidocs.cli.errors import err_config, err_missing_credentials, err_vector_index
from apidocs.config import ApidocsConfig, ConfigError, load_config
from apidocs.db.connection import Database
from apidocs.db.migrations import run_migrations
from apidocs.db.repository import Repository
from apidocs.ingest.chunker import MarkdownChunker
from apidocs.ingest.crawler import Crawler, PageFetcher
from apidocs.ingest.embeddings import EmbeddingClient, MissingCredentialsError
from apidocs.ingest.pipeline import IngestPipeline, IngestReport
from apidocs.library.store import LibraryStore
from apidocs.models import CrawlEvent

console = Console()


def load_settings() -> ApidocsConfig:
    try:
        return load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc


def make_store(cfg: ApidocsConfig) -> LibraryStore:
    return LibraryStore(cfg.storage.libraries_dir)


def make_embedder(cfg: ApidocsConfig) -> EmbeddingClient:
    try:
        return EmbeddingClient(cfg.embedding)
    except MissingCredentialsError as exc:
        console.print(err_missing_credentials(str(exc)))
        raise typer.Exit(1) from exc


@contextmanager
def open_repository(cfg: ApidocsConfig) -> Iterator[Repository]:
    try:
        conn = Database(cfg.storage.vectors_db).connect()
        run_migrations(conn)
    except (sqlite3.Error, OSError) as exc:
        console.print(err_vector_index(str(exc)))
        raise typer.Exit(1) from exc
    try:
        yield Repository(conn)
    finally:
        conn.close()


@contextmanager
def ingest_pipeline(
    cfg: ApidocsConfig,
    repo: Repository,
    store: LibraryStore,
    embedder: EmbeddingClient,
) -> Iterator[IngestPipeline]:
    """Yield a pipeline whose crawl and embedding progress render as rich bars."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
        transient=True,
    ) as prog:
        on_event, on_progress = _progress_callbacks(prog)
        crawler = Crawler(
            PageFetcher(timeout=cfg.crawl.timeout, block_private=cfg.crawl.block_private),
            workers=cfg.crawl.workers,
            delay=cfg.crawl.delay,
            on_event=on_event,
        )
        yield IngestPipeline(
            crawler=crawler,
            chunker=MarkdownChunker(cfg.chunker.max_tokens),
            embedder=embedder,
            repo=repo,
            store=store,
            config=cfg,
            on_progress=on_progress,
        )


def print_report(report: IngestReport) -> None:
    lib = report.library
    if lib is None:
        return
    console.print(f"[green]✓[/] Indexed [bold]{lib.name}[/]  ([dim]{lib.index_name}[/])")
    console.print(
        f"  Pages: {report.pages}  |  Chunks: {report.chunks}  |  "
        f"Embedded: {report.embedded}  |  Reused: {report.reused}  |  "
        f"Failed: {report.failed}  |  Pruned: {report.pruned}"
    )
    if report.crawl_errors:
        console.print(f"  [dim]{len(report.crawl_errors)} pages could not be fetched[/]")


def _progress_callbacks(
    prog: Progress,
) -> tuple[Callable[[CrawlEvent], None], Callable[[str, int, int], None]]:
    crawl_task = prog.add_task("Crawling…", total=None)
    embed_task: list[int] = []

    def on_event(event: CrawlEvent) -> None:
        if event.type == "extracted":
            label = (event.title or event.url or "")[:60]
            prog.update(
                crawl_task,
                completed=event.page_count,
                total=event.total_pages,
                description=f"Crawling… {label}",
            )
        elif event.type == "error":
            prog.console.print(f"  [yellow]⚠[/] {event.url}: {event.error}")
        elif event.type == "complete":
            prog.update(
                crawl_task,
                total=event.page_count or 1,
                completed=event.page_count or 1,
                description=f"Crawled {event.page_count} pages",
            )

    def on_progress(stage: str, done: int, total: int) -> None:
        if not embed_task:
            embed_task.append(prog.add_task("Embedding…", total=total or 1))
        prog.update(embed_task[0], completed=done, total=total or 1)

    return on_event, on_progress
