"""apidocs list: show indexed libraries."""

from __future__ import annotations

from datetime import datetime

from rich.table import Table

from apidocs.cli.context import console, load_settings, make_store


def list_cmd() -> None:
    """List indexed libraries."""
    cfg = load_settings()
    libraries = make_store(cfg).list()

    if not libraries:
        console.print("[dim]No libraries indexed yet.[/]")
        console.print("  Run:  apidocs add <website-url>")
        return

    table = Table(title="Indexed Libraries", show_lines=False)
    table.add_column("Library", style="cyan")
    table.add_column("Domain", style="yellow")
    table.add_column("Pages", justify="right")
    table.add_column("Chunks", justify="right")
    table.add_column("Indexed", style="dim")
    for lib in libraries:
        table.add_row(
            lib.name,
            lib.domain,
            f"{lib.page_count:,}",
            f"{lib.chunk_count:,}",
            _short_date(lib.indexed_at),
        )
    console.print(table)

    with_docs = [lib for lib in libraries if lib.docs_url]
    if with_docs:
        console.print("[dim]Documentation URLs:[/]")
        for lib in with_docs:
            console.print(f"[dim]  {lib.name}: {lib.docs_url}[/]")
    console.print(f"[dim]Total: {len(libraries)} libraries[/]")


def _short_date(stamp: str) -> str:
    try:
        return datetime.fromisoformat(stamp).date().isoformat()
    except ValueError:
        return stamp or "-"
