"""Tests for ModelRef and InverseModelRef."""

from __future__ import annotations

import pytest

from modelstore import InvalidArgumentError, InverseModelRef, Key, ModelRef, TooManyResultsError
from sampleapp.model.people import Employee, Person, Profile


class TestModelRef:
    def test_constructor(self, datastore, person_meta):
        ref = ModelRef(datastore, Person)
        assert ref.model_class is Person
        assert ref.model_meta is person_meta
        assert ref.key is None
        assert ref.get_model() is None

    def test_set_model(self, datastore):
        alice = Person(name="Alice")
        datastore.put(alice)
        ref = ModelRef(datastore, Person)
        ref.set_model(alice)
        assert ref.key == alice.key
        assert ref.get_model() is alice

    def test_set_model_without_key(self, datastore):
        ref = ModelRef(datastore, Person)
        with pytest.raises(InvalidArgumentError):
            ref.set_model(Person(name="Alice"))

    def test_key_of_other_kind(self, datastore):
        ref = ModelRef(datastore, Person)
        with pytest.raises(InvalidArgumentError):
            ref.key = Key("Profile", id=1)

    def test_get_model_is_cached(self, datastore):
        key = datastore.put(Person(name="Alice"))
        ref = ModelRef(datastore, Person, key)
        model = ref.get_model()
        assert model == Person(key=key, name="Alice", version=1)
        assert ref.get_model() is model

    def test_get_model_polymorphic(self, datastore):
        key = datastore.put(Employee(name="Dave", company="Acme"))
        assert isinstance(ModelRef(datastore, Person, key).get_model(), Employee)

    def test_refresh(self, datastore):
        key = datastore.put(Person(name="Alice"))
        ref = ModelRef(datastore, Person, key)
        model = ref.get_model()
        assert ref.refresh() is not model
        assert ref.refresh() == model

    def test_refresh_when_model_is_not_found(self, datastore):
        ref = ModelRef(datastore, Person, Key("Person", id=404))
        assert ref.refresh() is None

    def test_changing_key_drops_cache(self, datastore):
        a = datastore.put(Person(name="A"))
        b = datastore.put(Person(name="B"))
        ref = ModelRef(datastore, Person, a)
        assert ref.get_model().name == "A"
        ref.key = b
        assert ref.get_model().name == "B"

    def test_clear(self, datastore):
        key = datastore.put(Person(name="Alice"))
        ref = ModelRef(datastore, Person, key)
        ref.get_model()
        ref.clear()
        assert ref.model is None


class TestInverseModelRef:
    @pytest.fixture
    def owner(self):
        return Person(name="Alice")

    @pytest.fixture
    def ref(self, datastore, profile_meta, owner):
        return InverseModelRef(datastore, profile_meta.owner, owner)

    def test_constructor(self, ref, profile_meta, owner):
        assert ref.mapped_property_name == "owner"
        assert ref.model_class is Profile
        assert ref.model_meta is profile_meta
        assert ref.owner is owner

    def test_attribute_must_hold_a_key(self, datastore, profile_meta, owner):
        with pytest.raises(InvalidArgumentError):
            InverseModelRef(datastore, profile_meta.bio, owner)

    def test_get_model(self, datastore, ref, owner):
        datastore.put(owner)
        datastore.put(Profile(owner=owner.key, bio="hello"))
        datastore.put(Profile(owner=Key("Person", id=99)))
        model = ref.get_model()
        assert model is not None
        assert model.bio == "hello"
        assert ref.get_model() is model

    def test_refresh(self, datastore, ref, owner):
        datastore.put(owner)
        datastore.put(Profile(owner=owner.key))
        model = ref.refresh()
        assert model is not None
        assert ref.refresh() is not model

    def test_refresh_when_model_is_not_found(self, datastore, ref, owner):
        datastore.put(owner)
        assert ref.refresh() is None

    def test_refresh_when_key_is_not_set(self, ref):
        assert ref.refresh() is None

    def test_more_than_one_referrer(self, datastore, ref, owner):
        datastore.put(owner)
        datastore.put_all([Profile(owner=owner.key), Profile(owner=owner.key)])
        with pytest.raises(TooManyResultsError):
            ref.get_model()

    def test_clear(self, datastore, ref, owner):
        datastore.put(owner)
        datastore.put(Profile(owner=owner.key))
        ref.get_model()
        ref.clear()
        assert ref.model is None
