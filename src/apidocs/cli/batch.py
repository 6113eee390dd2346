"""apidocs crawl-all: batch-ingest libraries from a YAML list.

List format::

    categories:
      llm-providers:
        description: Model APIs
        apis:
          - name: openai
            url: https://platform.openai.com/docs
            priority: 1
            max_pages: 300

Entries run one after another with a fixed pause between them. A failing
entry is recorded and the batch moves on.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Any

import typer
import yaml
from rich.table import Table

from apidocs.cli.add import run_add
from apidocs.cli.context import (
    console,
    ingest_pipeline,
    load_settings,
    make_embedder,
    make_store,
    open_repository,
)
from apidocs.cli.errors import err_batch_entry, err_batch_list

logger = logging.getLogger(__name__)


@dataclass
class ApiEntry:
    name: str
    url: str
    priority: int = 1
    max_pages: int | None = None
    category: str = ""


@dataclass
class BatchOutcome:
    name: str
    success: bool
    duration: float
    error: str = ""


def load_api_list(path: Path) -> list[ApiEntry]:
    """Parse the crawl list at *path*.

    Raises:
        ValueError: If the file is not a mapping with a ``categories`` mapping
            or an entry lacks ``name``/``url``.
    """
    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict) or not isinstance(raw.get("categories"), dict):
        raise ValueError("top level must contain a 'categories' mapping")

    entries: list[ApiEntry] = []
    for category, body in raw["categories"].items():
        apis: list[Any] = (body or {}).get("apis") or []
        for api in apis:
            if not isinstance(api, dict) or not api.get("name") or not api.get("url"):
                raise ValueError(f"entry in '{category}' needs 'name' and 'url': {api!r}")
            max_pages = api.get("max_pages", api.get("maxPages"))
            entries.append(
                ApiEntry(
                    name=str(api["name"]),
                    url=str(api["url"]),
                    priority=int(api.get("priority", 1)),
                    max_pages=int(max_pages) if max_pages else None,
                    category=str(category),
                )
            )
    return entries


def select_entries(
    entries: list[ApiEntry],
    *,
    max_priority: int = 1,
    include_all: bool = False,
    category: str | None = None,
) -> list[ApiEntry]:
    return [
        e
        for e in entries
        if (category is None or e.category == category)
        and (include_all or e.priority <= max_priority)
    ]


def crawl_all_cmd(
    list_path: Annotated[
        Path,
        typer.Option("--list", "-l", exists=True, dir_okay=False, help="YAML crawl list."),
    ],
    priority: Annotated[
        int,
        typer.Option("--priority", "-p", min=1, help="Crawl entries with priority <= N."),
    ] = 1,
    include_all: Annotated[
        bool,
        typer.Option("--all", help="Ignore priority; crawl every entry."),
    ] = False,
    category: Annotated[
        str | None,
        typer.Option("--category", "-c", help="Only this category."),
    ] = None,
    max_pages: Annotated[
        int,
        typer.Option("--max-pages", "-m", min=1, help="Default page cap per entry."),
    ] = 100,
    delay: Annotated[
        float,
        typer.Option("--delay", min=0.0, help="Seconds to pause between entries."),
    ] = 2.0,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="List the selected entries without crawling."),
    ] = False,
) -> None:
    """Ingest every selected entry of a crawl list."""
    try:
        entries = load_api_list(list_path)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        console.print(err_batch_list(str(list_path), str(exc)))
        raise typer.Exit(1)

    selected = select_entries(
        entries, max_priority=priority, include_all=include_all, category=category
    )
    console.print(f"\n[bold]Batch crawl[/]  {len(selected)} of {len(entries)} entries")
    console.print(f"  Priority: {'all' if include_all else f'<= {priority}'}  |  Max pages: {max_pages}")
    if category:
        console.print(f"  Category: {category}")

    if dry_run or not selected:
        for entry in selected:
            console.print(f"  - {entry.name}: {entry.url} (priority {entry.priority})")
        if dry_run:
            console.print("[dim]Dry run, nothing crawled.[/]")
        return

    cfg = load_settings()
    store = make_store(cfg)
    embedder = make_embedder(cfg)
    outcomes: list[BatchOutcome] = []

    with open_repository(cfg) as repo, ingest_pipeline(cfg, repo, store, embedder) as pipeline:
        for n, entry in enumerate(selected):
            if n > 0 and delay > 0:
                time.sleep(delay)
            console.print(f"\n[dim][{n + 1}/{len(selected)}][/]")
            started = time.monotonic()
            error = ""
            try:
                code = run_add(
                    pipeline, entry.url, name=entry.name, max_pages=entry.max_pages or max_pages
                )
            except Exception as exc:  # noqa: BLE001
                logger.debug("crawl-all entry %s failed", entry.name, exc_info=True)
                error = str(exc) or exc.__class__.__name__
                console.print(err_batch_entry(entry.name, error))
                code = 1
            outcomes.append(
                BatchOutcome(
                    name=entry.name,
                    success=code == 0,
                    duration=time.monotonic() - started,
                    error=error or ("" if code == 0 else f"exit code {code}"),
                )
            )
            if code == 130:
                break

    _print_summary(outcomes)
    if any(not o.success for o in outcomes):
        raise typer.Exit(1)


def _print_summary(outcomes: list[BatchOutcome]) -> None:
    table = Table(title="Batch summary")
    table.add_column("Library")
    table.add_column("Result")
    table.add_column("Time", justify="right")
    for o in outcomes:
        result = "[green]✓[/]" if o.success else f"[red]✗ {o.error}[/]"
        table.add_row(o.name, result, f"{o.duration:.0f}s")
    console.print(table)
    ok = sum(1 for o in outcomes if o.success)
    console.print(f"Successful: {ok}  |  Failed: {len(outcomes) - ok}")
