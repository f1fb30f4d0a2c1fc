"""Shared fixtures for CLI tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from typer.testing import CliRunner

from modelstore import Datastore, Key, ModelMetaRegistry, Record, SqliteStore
from modelstore.cli import app
from sampleapp.model.people import Employee, Person

if TYPE_CHECKING:
    from click.testing import Result


@pytest.fixture
def runner():
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def cli_db(tmp_path):
    """Temp DB path for the CLI."""
    return str(tmp_path / "cli_test.db")


@pytest.fixture
def seeded_db(cli_db):
    """Create a DB with three people and one named note."""
    ds = Datastore(SqliteStore(cli_db), ModelMetaRegistry())
    ds.put_all([
        Person(name="Alice", age=30, email="alice@example.com"),
        Person(name="Bob", age=25),
        Employee(name="Carol", age=41, company="Acme"),
    ])
    ds.put(Record(Key("Note", name="todo"), {"body": "water plants"}))
    ds.close()
    return cli_db


def invoke(runner: CliRunner, args: list[str], db_path: str | None = None) -> "Result":
    """Invoke CLI with proper state setup."""
    if db_path:
        args = ["--db", db_path] + args
    return runner.invoke(app, args, catch_exceptions=False)
