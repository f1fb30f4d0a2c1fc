"""Shared test fixtures for modelstore tests."""

from __future__ import annotations

from typing import Any

import pytest

from modelstore import (
    Cleaner,
    Datastore,
    MemoryStore,
    ModelMetaRegistry,
    SqliteStore,
    StoreConfig,
    StoreTimeoutError,
)
from sampleapp.meta.people import EmployeeMeta, ManagerMeta, PersonMeta, ProfileMeta
from sampleapp.model.people import Employee, Manager, Person, Profile

# --- Store doubles ---


class FlakyStore:
    """Wrap a store and time out the first N calls of selected methods.

    ``calls`` records every method invocation, including the failing ones.
    """

    def __init__(self, inner: Any, **failures: int) -> None:
        self.inner = inner
        self.failures = dict(failures)
        self.calls: list[str] = []

    def _maybe_fail(self, name: str) -> None:
        self.calls.append(name)
        remaining = self.failures.get(name, 0)
        if remaining:
            self.failures[name] = remaining - 1
            raise StoreTimeoutError(f"{name} timed out ({remaining} left)")

    def __getattr__(self, name: str) -> Any:
        target = getattr(self.inner, name)
        if not callable(target):
            return target

        def wrapper(*args: Any, **kwargs: Any) -> Any:
            self._maybe_fail(name)
            return target(*args, **kwargs)

        return wrapper

    def count(self, name: str) -> int:
        return self.calls.count(name)


# --- Fixtures ---


@pytest.fixture
def cleaner():
    return Cleaner()


@pytest.fixture
def registry(cleaner):
    """Registry resolving the sample models through the naming convention."""
    return ModelMetaRegistry(cleaner=cleaner)


@pytest.fixture
def person_meta(registry) -> PersonMeta:
    return registry.resolve(Person)


@pytest.fixture
def employee_meta(registry) -> EmployeeMeta:
    return registry.resolve(Employee)


@pytest.fixture
def manager_meta(registry) -> ManagerMeta:
    return registry.resolve(Manager)


@pytest.fixture
def profile_meta(registry) -> ProfileMeta:
    return registry.resolve(Profile)


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def datastore(memory_store, registry):
    """Datastore over an in-memory store."""
    return Datastore(memory_store, registry)


@pytest.fixture
def tmp_db(tmp_path):
    """Create a temporary SQLite database path."""
    return str(tmp_path / "test.db")


@pytest.fixture
def sqlite_store(tmp_db):
    s = SqliteStore(tmp_db, StoreConfig(sqlite_timeout_s=0.1))
    yield s
    s.close()


@pytest.fixture
def people(datastore):
    """Seed three people, two employees and one manager."""
    objs = [
        Person(name="Alice", age=30, email="alice@example.com"),
        Person(name="Bob", age=25),
        Person(name="Carol", age=41, email="carol@example.org"),
        Employee(name="Dave", age=35, company="Acme"),
        Employee(name="Erin", age=28, company="Globex"),
        Manager(name="Frank", age=50, company="Acme", reports=4),
    ]
    datastore.put_all(objs)
    return objs
