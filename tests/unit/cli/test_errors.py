"""Tests for apidocs rich error messages."""

from __future__ import annotations

import pytest

from apidocs.cli.errors import (
    err_batch_list,
    err_config,
    err_embedding,
    err_index_missing,
    err_invalid_url,
    err_library_exists,
    err_library_not_found,
    err_missing_credentials,
    err_no_pages,
    err_vector_index,
    warn_cancelled,
    warn_failed_chunks,
)


@pytest.mark.parametrize(
    "message,action",
    [
        (err_missing_credentials("API key not found"), "export OPENAI_API_KEY"),
        (err_invalid_url("ftp://x", "bad scheme"), "apidocs add https://"),
        (err_library_exists("stripe"), "apidocs sync stripe"),
        (err_library_not_found("stripe"), "apidocs list"),
        (err_index_missing("gone", "stripe"), "apidocs sync stripe"),
        (err_vector_index("disk full"), "APIDOCS_DATA_DIR"),
        (err_embedding("timeout"), "APIDOCS_EMBEDDING_MODEL"),
        (err_no_pages("https://x.dev"), "documentation root"),
        (err_batch_list("apis.yaml", "bad"), "categories:"),
        (warn_cancelled(), "Re-run"),
        (warn_failed_chunks(3, "stripe"), "apidocs sync stripe"),
    ],
)
def test_messages_name_an_action(message, action):
    assert action in message


@pytest.mark.parametrize(
    "message",
    [
        err_missing_credentials("x"),
        err_config("x"),
        err_invalid_url("u", "r"),
        err_library_not_found("x"),
        err_index_missing("x", "y"),
        err_vector_index("x"),
        err_embedding("x"),
        err_no_pages("u"),
        err_batch_list("p", "r"),
    ],
)
def test_errors_are_marked_red(message):
    assert message.startswith("[red]Error:[/]")


def test_warnings_are_yellow():
    assert warn_cancelled().startswith("[yellow]")
    assert warn_failed_chunks(1, "x").startswith("[yellow]")
    assert err_library_exists("x").startswith("[yellow]")
