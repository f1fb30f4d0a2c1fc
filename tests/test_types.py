"""Tests for the type system: Model, Field, ModelMeta and AttributeMeta."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

import pytest
from pydantic import ValidationError

from modelstore import (
    CLASS_HIERARCHY_LIST_PROPERTY,
    Blob,
    ConversionError,
    Field,
    InvalidArgumentError,
    Key,
    Model,
    ModelMeta,
    NullArgumentError,
    Record,
    ShortBlob,
    Text,
)
from modelstore.criteria import FilterCriterion, SortCriterion
from modelstore.meta import NULL_EQ_ERROR, NULL_NE_ERROR
from sampleapp.model.people import Address, Color, Employee, Manager, Person, Profile

# --- Field descriptor tests ---


class TestField:
    def test_field_default(self):
        f = Field(default="hello")
        assert f.has_default()
        assert f.get_default() == "hello"

    def test_field_default_factory(self):
        f = Field(default_factory=list)
        assert f.has_default()
        assert f.get_default() == []
        assert f.get_default() is not f.get_default()

    def test_field_no_default(self):
        f = Field()
        assert not f.has_default()
        with pytest.raises(ValueError):
            f.get_default()

    def test_class_access_returns_field(self):
        assert isinstance(Person.name, Field)
        assert Person.name.name == "name"


# --- Model tests ---


class TestModel:
    def test_construct_and_validate(self):
        p = Person(name="Alice", age="30")
        assert p.age == 30
        assert p.key is None
        assert p.version == 0

    def test_missing_required(self):
        with pytest.raises(ValidationError):
            Person(age=3)

    def test_kind_defaults_to_class_name(self):
        assert Person.__kind__ == "Person"
        assert Profile.__kind__ == "Profile"

    def test_subclass_shares_root_kind(self):
        assert Employee.__kind__ == "Person"
        assert Manager.__kind__ == "Person"
        assert Manager.__model_root__ is Person

    def test_subclass_inherits_fields(self):
        assert Manager.__model_fields__[:5] == ("key", "name", "age", "email", "version")
        m = Manager(name="Frank", company="Acme", reports=2)
        assert m.company == "Acme"

    def test_subclass_cannot_declare_kind(self):
        with pytest.raises(TypeError):

            class Bad(Person, kind="Other"):
                pass

    def test_explicit_kind(self):
        class Thing(Model, kind="Widget"):
            key: Field[Optional[Key]] = Field(primary_key=True)

        assert Thing.__kind__ == "Widget"

    def test_requires_one_primary_key(self):
        with pytest.raises(TypeError):

            class NoKey(Model):
                name: Field[str]

    def test_single_version_field(self):
        with pytest.raises(TypeError):

            class TwoVersions(Model):
                key: Field[Optional[Key]] = Field(primary_key=True)
                a: Field[int] = Field(default=0, version=True)
                b: Field[int] = Field(default=0, version=True)

    def test_class_hierarchy(self):
        assert Manager.class_hierarchy() == [Person, Employee, Manager]
        assert Person.class_hierarchy() == [Person]

    def test_equality(self):
        assert Person(name="A", age=1) == Person(name="A", age=1)
        assert Person(name="A", age=1) != Person(name="A", age=2)
        assert Person(name="A") != Employee(name="A")

    def test_blank_skips_validation(self):
        p = Person.blank()
        assert p.name is None
        assert p.age == 0


# --- Meta tests ---


class TestModelMeta:
    def test_root_meta(self, person_meta):
        assert person_meta.kind == "Person"
        assert person_meta.model_class is Person
        assert person_meta.model_name == "sampleapp.model.people.Person"
        assert person_meta.key_attribute.name == "key"
        assert person_meta.version_attribute.name == "version"
        assert person_meta.class_hierarchy_list == []
        assert not person_meta.is_polymorphic

    def test_subclass_meta(self, manager_meta):
        assert manager_meta.kind == "Person"
        assert manager_meta.is_polymorphic
        assert manager_meta.class_hierarchy_list == [
            "sampleapp.model.people.Person",
            "sampleapp.model.people.Employee",
            "sampleapp.model.people.Manager",
        ]

    def test_attribute_lookup(self, person_meta, profile_meta):
        assert person_meta.age.name == "age"
        assert profile_meta.attribute("s") is profile_meta.score
        assert profile_meta.score.property_name == "s"
        with pytest.raises(AttributeError):
            person_meta.nope
        with pytest.raises(InvalidArgumentError):
            person_meta.attribute("nope")

    def test_version_property_name(self, person_meta):
        assert person_meta.version.property_name == "version"

    def test_not_a_model(self):
        with pytest.raises(InvalidArgumentError):
            ModelMeta(int)
        with pytest.raises(NullArgumentError):
            ModelMeta()

    def test_version_helpers(self, person_meta):
        p = Person(name="A")
        assert person_meta.get_version(p) == 0
        person_meta.increment_version(p)
        person_meta.increment_version(p)
        assert p.version == 2

    def test_increment_from_none(self, person_meta):
        p = Person(name="A")
        p.version = None
        person_meta.increment_version(p)
        assert p.version == 1

    def test_model_to_record(self, person_meta):
        p = Person(key=Key("Person", id=3), name="Alice", age=30)
        r = person_meta.model_to_record(p)
        assert r.key == Key("Person", id=3)
        assert r.properties == {"name": "Alice", "age": 30, "email": None, "version": 0}
        assert not r.has_property(CLASS_HIERARCHY_LIST_PROPERTY)

    def test_model_without_key_gets_incomplete_key(self, person_meta):
        r = person_meta.model_to_record(Person(name="A"))
        assert r.key == Key.incomplete("Person")

    def test_subclass_record_has_hierarchy(self, employee_meta):
        r = employee_meta.model_to_record(Employee(name="Dave", company="Acme"))
        assert r.get_property(CLASS_HIERARCHY_LIST_PROPERTY) == [
            "sampleapp.model.people.Person",
            "sampleapp.model.people.Employee",
        ]

    def test_wrong_instance(self, person_meta, profile_meta):
        with pytest.raises(InvalidArgumentError):
            profile_meta.model_to_record(Person(name="A"))

    def test_key_kind_mismatch(self, person_meta):
        with pytest.raises(InvalidArgumentError):
            person_meta.model_to_record(Person(key=Key("Other", id=1), name="A"))

    def test_record_to_model(self, person_meta):
        r = Record(Key("Person", id=9), {"name": "Zed", "age": 7})
        p = person_meta.record_to_model(r)
        assert isinstance(p, Person)
        assert p.key == Key("Person", id=9)
        assert p.name == "Zed"
        assert p.email is None
        assert p.version == 0

    def test_record_kind_mismatch(self, person_meta):
        with pytest.raises(InvalidArgumentError):
            person_meta.record_to_model(Record(Key("Other", id=1)))


class TestStorageConversion:
    def _profile(self) -> Profile:
        return Profile(
            key=Key("Profile", name="p1"),
            bio="x" * 600,
            avatar=b"\x00\x01",
            thumbnail=b"\x02",
            balance=Decimal("12.50"),
            color=Color.GREEN,
            tags=["a", "b"],
            address=Address("Oslo", "0150"),
            joined=datetime(2024, 1, 2, tzinfo=timezone.utc),
            owner=Key("Person", id=1),
            score=2.5,
        )

    def test_storage_forms(self, profile_meta):
        r = profile_meta.model_to_record(self._profile())
        assert isinstance(r.get_property("bio"), Text)
        assert isinstance(r.get_property("avatar"), Blob)
        assert isinstance(r.get_property("thumbnail"), ShortBlob)
        assert r.get_property("balance") == "12.5"
        assert r.get_property("color") == "GREEN"
        assert r.get_property("tags") == ["a", "b"]
        assert isinstance(r.get_property("address"), ShortBlob)
        assert r.get_property("owner") == Key("Person", id=1)
        assert r.get_property("s") == 2.5
        assert r.is_unindexed("bio")
        assert r.is_unindexed("avatar")
        assert not r.is_unindexed("thumbnail")

    def test_record_back_to_model(self, profile_meta):
        original = self._profile()
        restored = profile_meta.record_to_model(profile_meta.model_to_record(original))
        assert restored == original
        assert isinstance(restored.balance, Decimal)
        assert restored.color is Color.GREEN

    def test_bad_stored_value(self, person_meta):
        r = Record(Key("Person", id=1), {"name": "A", "age": "not a number"})
        with pytest.raises(ConversionError):
            person_meta.record_to_model(r)

    def test_unknown_enum_name(self, profile_meta):
        r = Record(Key("Profile", id=1), {"color": "PURPLE"})
        with pytest.raises(ConversionError):
            profile_meta.record_to_model(r)

    def test_numeric_string_is_coerced(self, person_meta):
        r = Record(Key("Person", id=1), {"name": "A", "age": "12"})
        assert person_meta.record_to_model(r).age == 12


class TestAttributeCriteria:
    def test_comparisons_build_criteria(self, person_meta):
        c = person_meta.age >= 18
        assert isinstance(c, FilterCriterion)
        assert (c.op, c.value) == (">=", 18)
        assert c.model_class is Person
        assert (person_meta.age < 3).op == "<"
        assert (person_meta.name == "A").op == "=="
        assert (person_meta.name != "A").op == "!="
        assert person_meta.name.in_(["A", "B"]).value == ["A", "B"]
        assert person_meta.email.is_not_null().op == "IS_NOT_NULL"

    def test_none_comparison_rejected(self, person_meta):
        with pytest.raises(TypeError, match="is_null"):
            person_meta.email == None  # noqa: E711
        with pytest.raises(TypeError, match="is_not_null"):
            person_meta.email != None  # noqa: E711
        assert NULL_EQ_ERROR != NULL_NE_ERROR

    def test_is_null(self, person_meta):
        c = person_meta.email.is_null()
        assert (c.op, c.value) == ("==", None)

    def test_attribute_identity(self, person_meta):
        assert (person_meta.age == person_meta.age) is True
        assert (person_meta.age == person_meta.name) is False

    def test_sorts(self, person_meta):
        assert isinstance(person_meta.age.asc, SortCriterion)
        assert person_meta.age.desc.descending
        assert not person_meta.age.asc.descending

    def test_string_ops_need_str(self, person_meta):
        with pytest.raises(InvalidArgumentError):
            person_meta.name.startswith(3)
