"""Tests for model/record conversion and key assignment."""

from __future__ import annotations

import pytest

from modelstore import InvalidArgumentError, Key, NullArgumentError, Record
from modelstore.conversion import assign_keys, key_is_incomplete, to_model, to_record, to_records
from sampleapp.model.people import Employee, Person, Profile


class TestToRecord:
    def test_increments_version(self, person_meta):
        p = Person(name="A")
        r = to_record(person_meta, p)
        assert p.version == 1
        assert r.get_property("version") == 1
        to_record(person_meta, p)
        assert p.version == 2

    def test_version_strictly_increases(self, person_meta):
        p = Person(name="A", version=41)
        seen = [to_record(person_meta, p).get_property("version") for _ in range(3)]
        assert seen == [42, 43, 44]

    def test_model_without_version(self, profile_meta):
        r = to_record(profile_meta, Profile())
        assert not r.has_property("version")

    def test_none_arguments(self, person_meta):
        with pytest.raises(NullArgumentError):
            to_record(None, Person(name="A"))
        with pytest.raises(NullArgumentError):
            to_record(person_meta, None)


class TestToModel:
    def test_absent_properties_keep_defaults(self, person_meta):
        p = to_model(person_meta, Record(Key("Person", id=2), {"name": "B"}))
        assert p.age == 0
        assert p.key == Key("Person", id=2)

    def test_record_then_model(self, employee_meta):
        e = Employee(key=Key("Person", id=5), name="Dave", age=35, company="Acme")
        restored = to_model(employee_meta, to_record(employee_meta, e))
        assert restored == e

    def test_none_arguments(self, person_meta):
        with pytest.raises(NullArgumentError):
            to_model(person_meta, None)
        with pytest.raises(NullArgumentError):
            to_model(None, Record(Key("Person", id=1)))


class TestBatch:
    def test_to_records_passes_raw_records_through(self, registry):
        raw = Record(Key("Raw", id=1), {"x": 1})
        objs = [Person(name="A"), raw]
        records = to_records(registry.resolve_all(objs), objs)
        assert records[0].key == Key.incomplete("Person")
        assert records[1] is raw

    def test_to_records_missing_meta_for_model(self, person_meta):
        with pytest.raises(InvalidArgumentError):
            to_records([None], [Person(name="A")])

    def test_more_objects_than_metas(self, person_meta):
        with pytest.raises(InvalidArgumentError):
            to_records([person_meta], [Person(name="A"), Person(name="B")])

    def test_assign_keys_skips_records(self, registry):
        raw = Record(Key.incomplete("Raw"))
        p = Person(name="A")
        objs = [p, raw]
        assign_keys(registry.resolve_all(objs), objs, [Key("Person", id=1), Key("Raw", id=1)])
        assert p.key == Key("Person", id=1)
        assert raw.key == Key.incomplete("Raw")


def test_key_is_incomplete_reexported():
    assert key_is_incomplete(Key.incomplete("Person"))
    assert not key_is_incomplete(Key("Person", name="x"))
