"""Tests for the store backends: MemoryStore, SqliteStore and shared evaluation."""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from decimal import Decimal

import pytest

from modelstore import (
    Datastore,
    FetchOptions,
    IllegalStateError,
    InvalidArgumentError,
    Key,
    MemoryStore,
    QuerySpec,
    Record,
    RemoteStore,
    SqliteStore,
    StoreConfig,
    StoreKeyNotFoundError,
    StoreTimeoutError,
    Text,
)
from modelstore.store import compare_values, evaluate_query, value_matches
from sampleapp.model.people import Color, Person


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_db):
    if request.param == "memory":
        yield MemoryStore()
    else:
        s = SqliteStore(tmp_db)
        yield s
        s.close()


class TestStoreProtocol:
    def test_satisfies_protocol(self, store):
        assert isinstance(store, RemoteStore)

    def test_put_get(self, store):
        [key] = store.put([Record(Key.incomplete("Doc"), {"n": 1})])
        assert key == Key("Doc", id=1)
        assert store.get(key).get_property("n") == 1

    def test_get_missing(self, store):
        with pytest.raises(StoreKeyNotFoundError) as exc_info:
            store.get(Key("Doc", id=1))
        assert exc_info.value.key == Key("Doc", id=1)

    def test_get_multi(self, store):
        keys = store.put([Record(Key.incomplete("Doc")), Record(Key.incomplete("Doc"))])
        found = store.get_multi(keys + [Key("Doc", id=50)])
        assert set(found) == set(keys)

    def test_ids_scoped_by_parent(self, store):
        parent = Key("Folder", name="f")
        [a] = store.put([Record(Key.incomplete("Doc", parent))])
        [b] = store.put([Record(Key.incomplete("Doc"))])
        assert a == Key("Doc", id=1, parent=parent)
        assert b == Key("Doc", id=1)

    def test_explicit_ids_advance_sequence(self, store):
        store.put([Record(Key("Doc", id=10))])
        [key] = store.put([Record(Key.incomplete("Doc"))])
        assert key.id == 11

    def test_allocate_ids(self, store):
        r = store.allocate_ids("Doc", 3)
        assert (r.start, r.end) == (1, 3)
        assert store.allocate_ids("Doc", 1).start == 4
        with pytest.raises(InvalidArgumentError):
            store.allocate_ids("Doc", 0)

    def test_delete(self, store):
        [key] = store.put([Record(Key.incomplete("Doc"))])
        store.delete([key])
        assert store.get_multi([key]) == {}

    def test_transaction_commit(self, store):
        tx = store.begin_transaction()
        [key] = store.put([Record(Key.incomplete("Doc"), {"n": 1})], tx)
        assert store.get_multi([key]) == {}
        store.commit(tx)
        assert store.get(key).get_property("n") == 1
        with pytest.raises(IllegalStateError):
            store.commit(tx)

    def test_transaction_rollback(self, store):
        tx = store.begin_transaction()
        store.put([Record(Key("Doc", id=1))], tx)
        store.rollback(tx)
        assert store.get_multi([Key("Doc", id=1)]) == {}

    def test_kinds(self, store):
        store.put([Record(Key("B", id=1)), Record(Key("A", id=1))])
        assert store.kinds() == ["A", "B"]

    def test_stored_types_survive(self, store):
        when = datetime(2024, 3, 1, 9, 30)
        props = {"t": Text("long"), "d": when, "k": Key("X", name="y"), "l": [1, "a"]}
        [key] = store.put([Record(Key.incomplete("Doc"), props)])
        r = store.get(key)
        assert r.get_property("d") == when
        assert r.get_property("k") == Key("X", name="y")
        assert r.get_property("l") == [1, "a"]
        assert r.is_unindexed("t")

    def test_prepare_rejects_in_memory_operator(self, store):
        spec = QuerySpec("Doc").add_filter("n", "ENDSWITH", "x")
        with pytest.raises(InvalidArgumentError):
            store.prepare(spec)

    def test_prepared_query(self, store):
        store.put([Record(Key("Doc", id=i), {"n": i}) for i in range(1, 6)])
        pq = store.prepare(QuerySpec("Doc").add_filter("n", ">", 2).add_sort("n", True))
        assert [r.get_property("n") for r in pq.as_list()] == [5, 4, 3]
        assert [r.get_property("n") for r in pq.as_list(FetchOptions(limit=1, offset=1))] == [4]
        assert pq.count() == 3


class TestSqliteStore:
    def test_persists_across_connections(self, tmp_db):
        s1 = SqliteStore(tmp_db)
        [key] = s1.put([Record(Key.incomplete("Doc"), {"n": 1})])
        s1.close()
        s2 = SqliteStore(tmp_db)
        try:
            assert s2.get(key).get_property("n") == 1
            [next_key] = s2.put([Record(Key.incomplete("Doc"))])
            assert next_key.id == 2
            assert s2.count_records() == 2
            assert s2.count_records("Doc") == 2
            assert s2.storage_info()["backend"] == "sqlite"
        finally:
            s2.close()

    def test_lock_contention_is_a_timeout(self, tmp_db):
        store = SqliteStore(tmp_db, StoreConfig(sqlite_timeout_s=0.05))
        blocker = sqlite3.connect(tmp_db)
        try:
            blocker.execute("BEGIN EXCLUSIVE")
            with pytest.raises(StoreTimeoutError):
                store.put([Record(Key("Doc", id=1))])
        finally:
            blocker.rollback()
            blocker.close()
            store.close()

    def test_datastore_retries_lock_contention(self, tmp_db, registry, caplog):
        config = StoreConfig(max_retry=2, sqlite_timeout_s=0.05)
        ds = Datastore(SqliteStore(tmp_db, config), registry, config)
        blocker = sqlite3.connect(tmp_db)
        try:
            blocker.execute("BEGIN EXCLUSIVE")
            with caplog.at_level(logging.WARNING, logger="modelstore.retry"):
                with pytest.raises(StoreTimeoutError):
                    ds.put(Person(name="A"))
            assert len([r for r in caplog.records if r.name == "modelstore.retry"]) == 3
        finally:
            blocker.rollback()
            blocker.close()
        ds.put(Person(name="B"))
        assert ds.query(Person).count() == 1
        ds.close()


class TestEvaluation:
    def test_compare_values_type_rank(self):
        assert compare_values(None, 0) < 0
        assert compare_values(1, "a") < 0
        assert compare_values(Decimal("1.5"), 2) < 0
        assert compare_values(Color.RED, "RED") == 0
        assert compare_values(Key("A", id=2), Key("A", id=1)) > 0

    def test_value_matches_list(self):
        assert value_matches("==", ["a", "b"], "b")
        assert not value_matches("==", [], "b")
        assert value_matches("IN", 2, [1, 2])

    def test_keys_only(self):
        records = [Record(Key("Doc", id=1), {"n": 1})]
        spec = QuerySpec("Doc", keys_only=True)
        assert evaluate_query(records, spec)[0].properties == {}

    def test_ancestor_filter(self):
        parent = Key("Folder", id=1)
        records = [
            Record(Key("Doc", id=1, parent=parent)),
            Record(Key("Doc", id=2, parent=Key("Folder", id=1, parent=Key("Root", id=1)))),
            Record(Key("Doc", id=3)),
        ]
        result = evaluate_query(records, QuerySpec("Doc", ancestor=parent))
        assert [r.key.id for r in result] == [1]

    def test_multi_valued_sort(self):
        records = [
            Record(Key("Doc", id=1), {"v": [5, 1]}),
            Record(Key("Doc", id=2), {"v": [3]}),
        ]
        asc = evaluate_query(records, QuerySpec("Doc").add_sort("v"))
        desc = evaluate_query(records, QuerySpec("Doc").add_sort("v", True))
        assert [r.key.id for r in asc] == [1, 2]
        assert [r.key.id for r in desc] == [1, 2]

    def test_fetch_options_validation(self):
        with pytest.raises(InvalidArgumentError):
            FetchOptions(offset=-1)
        with pytest.raises(InvalidArgumentError):
            FetchOptions(prefetch_size=0)
