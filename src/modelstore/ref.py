"""Lazy references between models.

A ``ModelRef`` follows a key to the model stored under it.  An
``InverseModelRef`` goes the other way: it finds the model whose key
attribute points at an owner model.  Both cache the fetched model until
``refresh`` or ``clear`` is called.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, TypeVar

from modelstore.errors import InvalidArgumentError, NullArgumentError
from modelstore.key import Key
from modelstore.meta import AttributeMeta, ModelMeta

if TYPE_CHECKING:
    from modelstore.datastore import Datastore

M = TypeVar("M")


class ModelRef(Generic[M]):
    """Reference to the model stored under ``key``."""

    def __init__(self, datastore: Datastore, model_class: type[M], key: Key | None = None) -> None:
        if datastore is None:
            raise NullArgumentError("datastore")
        if model_class is None:
            raise NullArgumentError("model_class")
        self.datastore = datastore
        self.model_class = model_class
        self.model_meta: ModelMeta[M] = datastore.registry.resolve(model_class)
        self._key = key
        self.model: M | None = None

    @property
    def key(self) -> Key | None:
        return self._key

    @key.setter
    def key(self, key: Key | None) -> None:
        if key is not None and key.kind != self.model_meta.kind:
            raise InvalidArgumentError(
                f"The kind({key.kind}) of the key is different from "
                f"the kind({self.model_meta.kind}) of {self.model_meta.model_name}."
            )
        if key != self._key:
            self.model = None
        self._key = key

    def set_model(self, model: M | None) -> None:
        """Point at ``model``, which must already have a key."""
        if model is None:
            self.key = None
            return
        if not isinstance(model, self.model_class):
            raise InvalidArgumentError(
                f"{type(model).__name__} is not a {self.model_class.__name__}"
            )
        key = self.model_meta.get_key(model)
        if key is None or not key.is_complete:
            raise InvalidArgumentError("The key of the referenced model is not set.")
        self.key = key
        self.model = model

    def get_model(self) -> M | None:
        """The referenced model, fetched once and cached; None when missing."""
        if self.model is None and self._key is not None:
            self.model = self.datastore.get_or_none(self.model_meta, self._key)
        return self.model

    def refresh(self) -> M | None:
        self.clear()
        return self.get_model()

    def clear(self) -> None:
        self.model = None

    def __repr__(self) -> str:
        return f"ModelRef({self.model_class.__name__}, {self._key})"


class InverseModelRef(Generic[M]):
    """The single model whose ``mapped_attribute`` holds the owner's key.

    ``mapped_attribute`` is a key attribute of the referencing model, for
    example ``ProfileMeta().owner`` for profiles pointing at a person.
    """

    def __init__(self, datastore: Datastore, mapped_attribute: AttributeMeta, owner: Any) -> None:
        if datastore is None:
            raise NullArgumentError("datastore")
        if mapped_attribute is None:
            raise NullArgumentError("mapped_attribute")
        if owner is None:
            raise NullArgumentError("owner")
        if mapped_attribute.storage_kind != "key":
            raise InvalidArgumentError(
                f"The attribute({mapped_attribute.name}) does not hold a Key."
            )
        self.datastore = datastore
        self.mapped_attribute = mapped_attribute
        self.mapped_property_name = mapped_attribute.property_name
        self.model_meta: ModelMeta[M] = mapped_attribute.model_meta
        self.model_class: type[M] = mapped_attribute.model_class
        self.owner = owner
        self.model: M | None = None

    def _owner_key(self) -> Key | None:
        owner_meta = self.datastore.registry.resolve(type(self.owner))
        key = owner_meta.get_key(self.owner)
        if key is None or not key.is_complete:
            return None
        return key

    def get_model(self) -> M | None:
        """Query for the referencing model once and cache it.

        Returns None while the owner has no key or when nothing refers to it;
        more than one referencing model raises TooManyResultsError.
        """
        if self.model is None:
            key = self._owner_key()
            if key is None:
                return None
            self.model = (
                self.datastore.query(self.model_meta)
                .filter(self.mapped_attribute == key)
                .as_single()
            )
        return self.model

    def refresh(self) -> M | None:
        self.clear()
        return self.get_model()

    def clear(self) -> None:
        self.model = None

    def __repr__(self) -> str:
        return f"InverseModelRef({self.model_class.__name__}.{self.mapped_property_name})"
