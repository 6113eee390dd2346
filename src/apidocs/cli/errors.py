"""apidocs rich error messages: actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from apidocs.cli.errors import err_library_not_found
    console.print(err_library_not_found("stripe"))
    raise typer.Exit(1)
"""

from __future__ import annotations


def err_missing_credentials(message: str) -> str:
    """Embedding provider key not set.

    Example:
        Error: API key not found for embedding provider 'openai'. ...
    """
    return (
        f"[red]Error:[/] {message}\n"
        "  API keys are read from the environment only, e.g.:\n"
        "    export OPENAI_API_KEY=sk-..."
    )


def err_config(message: str) -> str:
    return f"[red]Error:[/] {message}"


def err_invalid_url(url: str, reason: str) -> str:
    return (
        f"[red]Error:[/] Invalid URL '{url}'.\n"
        f"  {reason}\n"
        "  Example:  apidocs add https://docs.example.com"
    )


def err_library_exists(name: str) -> str:
    return (
        f"[yellow]Already indexed:[/] '{name}'.\n"
        f"  Run:  apidocs sync {name}   to refresh it\n"
        f"   or:  apidocs add <url> --force   to re-ingest from scratch"
    )


def err_library_not_found(name: str) -> str:
    return (
        f"[red]Error:[/] Library not found: '{name}'.\n"
        "  Run:  apidocs list  to see indexed libraries."
    )


def err_index_missing(message: str, library: str) -> str:
    return (
        f"[red]Error:[/] {message}\n"
        f"  The library may need to be re-indexed.  Run:  apidocs sync {library}"
    )


def err_vector_index(message: str) -> str:
    return (
        f"[red]Error:[/] Vector index failure: {message}\n"
        "  Check that the data directory is writable (storage.data_dir / APIDOCS_DATA_DIR)."
    )


def err_embedding(message: str) -> str:
    return (
        f"[red]Error:[/] {message}\n"
        "  Check the embedding model (embedding.model / APIDOCS_EMBEDDING_MODEL) and your API key."
    )


def err_no_pages(url: str) -> str:
    return (
        f"[red]Error:[/] No documentation pages found at '{url}'.\n"
        "  Point apidocs at the documentation root (e.g. https://example.com/docs)."
    )


def err_batch_list(path: str, reason: str) -> str:
    return (
        f"[red]Error:[/] Cannot read crawl list '{path}': {reason}\n"
        "  Expected YAML:  categories: {<name>: {apis: [{name, url, priority}]}}"
    )


def warn_cancelled() -> str:
    return (
        "[yellow]Cancelled.[/] Vectors written so far are kept; metadata was not updated.\n"
        "  Re-run the same command to resume."
    )


def warn_failed_chunks(count: int, library: str) -> str:
    return (
        f"[yellow]⚠[/] {count} chunks could not be embedded and are not searchable.\n"
        f"  Run:  apidocs sync {library}  to retry them."
    )


def err_dimension_mismatch(message: str, library: str) -> str:
    return (
        f"[red]Error:[/] {message}\n"
        "  The embedding model or embedding.dimensions changed since this library was indexed.\n"
        f"  Restore the previous settings, or re-index:  apidocs add <url> --name {library} --force"
    )


def err_batch_entry(name: str, reason: str) -> str:
    return (
        f"[red]Error:[/] '{name}' failed: {reason}\n"
        "  Continuing with the next entry.  Re-run with --verbose for details."
    )
