"""apidocs remove: delete a library's metadata, caches and vector index.

Usage:
  apidocs remove stripe
  apidocs remove stripe --yes
"""

from __future__ import annotations

from typing import Annotated

import typer

from apidocs.cli.context import console, load_settings, make_store, open_repository
from apidocs.cli.errors import err_library_not_found


def remove_cmd(
    library: Annotated[str, typer.Argument(help="Library name or id to remove.")],
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Remove a library and its vector index."""
    cfg = load_settings()
    store = make_store(cfg)
    metadata = store.find(library)
    if metadata is None:
        console.print(err_library_not_found(library))
        raise typer.Exit(1)

    console.print(f"\nRemove library: [bold]{metadata.name}[/]  ([dim]{metadata.id}[/])")
    console.print(f"  Pages: {metadata.page_count}  |  Chunks: {metadata.chunk_count}  |  Index: {metadata.index_name}")

    if not yes and not typer.confirm("Confirm removal?", default=False):
        console.print("[dim]Cancelled.[/]")
        raise typer.Exit(0)

    with open_repository(cfg) as repo:
        dropped = repo.delete_index(metadata.index_name)
    store.delete(metadata.id)

    console.print(f"\n[green]✓[/] Removed: {metadata.name}")
    if not dropped:
        console.print("  [dim]Vector index was already gone.[/]")
