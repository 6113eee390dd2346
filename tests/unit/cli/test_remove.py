"""Tests for apidocs remove."""

from __future__ import annotations

import pytest
from conftest import doc_site, fake_services
from typer.testing import CliRunner

from apidocs.cli.main import app
from apidocs.db.connection import Database
from apidocs.db.migrations import run_migrations
from apidocs.db.repository import Repository
from apidocs.library.store import LibraryStore

runner = CliRunner()

SEED = "https://docs.example.com/"


@pytest.fixture
def indexed(cli_env):
    with fake_services(doc_site(SEED, "Guide")):
        result = runner.invoke(app, ["add", SEED])
    assert result.exit_code == 0, result.output
    return cli_env


def _index_names(data_dir) -> list[str]:
    with Database(data_dir / "vectors.db") as conn:
        run_migrations(conn)
        return [info.name for info in Repository(conn).list_indexes()]


def test_remove_with_yes(indexed):
    assert len(_index_names(indexed)) == 1

    result = runner.invoke(app, ["remove", "example.com", "--yes"])

    assert result.exit_code == 0, result.output
    assert "Removed: example.com" in result.output
    assert LibraryStore(indexed / "libraries").get("example.com") is None
    assert not (indexed / "libraries" / "example.com").exists()
    assert _index_names(indexed) == []


def test_remove_declined(indexed):
    result = runner.invoke(app, ["remove", "example.com"], input="n\n")

    assert result.exit_code == 0
    assert "Cancelled" in result.output
    assert LibraryStore(indexed / "libraries").get("example.com") is not None


def test_remove_confirmed_interactively(indexed):
    result = runner.invoke(app, ["remove", "example"], input="y\n")
    assert result.exit_code == 0
    assert _index_names(indexed) == []


def test_remove_unknown_library(cli_env):
    result = runner.invoke(app, ["remove", "nope", "--yes"])
    assert result.exit_code == 1
    assert "Library not found" in result.output
