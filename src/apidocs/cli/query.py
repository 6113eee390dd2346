"""apidocs query: semantic search over one indexed library."""

from __future__ import annotations

import json
from typing import Annotated

import typer

from apidocs.cli.context import console, load_settings, make_embedder, make_store, open_repository
from apidocs.cli.errors import (
    err_dimension_mismatch,
    err_embedding,
    err_index_missing,
    err_library_not_found,
)
from apidocs.db.repository import DimensionMismatchError, VectorIndexError
from apidocs.ingest.embeddings import EmbeddingError
from apidocs.library.store import LibraryNotFoundError
from apidocs.models import QueryResult
from apidocs.rag.search import query_library


def query_cmd(
    library: Annotated[str, typer.Argument(help="Library name or id (partial match allowed).")],
    question: Annotated[str, typer.Argument(help="Question to search the docs for.")],
    tokens: Annotated[
        int | None,
        typer.Option("--tokens", "-t", min=1, help="Answer budget in tokens (default 8000)."),
    ] = None,
    top_k: Annotated[
        int | None,
        typer.Option("--top-k", "-k", min=1, help="Results to retrieve (default 10)."),
    ] = None,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print structured JSON instead of Markdown."),
    ] = False,
) -> None:
    """Answer a question from an indexed library's documentation."""
    cfg = load_settings()
    store = make_store(cfg)
    embedder = make_embedder(cfg)

    with open_repository(cfg) as repo:
        try:
            result = query_library(
                store,
                library,
                question,
                embedder=embedder,
                repo=repo,
                tokens=tokens or cfg.retrieval.max_tokens,
                top_k=top_k or cfg.retrieval.top_k,
                as_json=as_json,
            )
        except LibraryNotFoundError:
            console.print(err_library_not_found(library))
            raise typer.Exit(1)
        except DimensionMismatchError as exc:
            console.print(err_dimension_mismatch(str(exc), library))
            raise typer.Exit(1)
        except VectorIndexError as exc:
            console.print(err_index_missing(str(exc), library))
            raise typer.Exit(1)
        except EmbeddingError as exc:
            console.print(err_embedding(str(exc)))
            raise typer.Exit(1)

    if isinstance(result, QueryResult):
        if not result.content:
            console.print(f"[yellow]No results[/] for '{question}'.")
            return
        typer.echo(f'> Query: "{question}"\n')
        typer.echo(result.content)
    else:
        typer.echo(json.dumps(result, indent=2, ensure_ascii=False))
