"""Schemaless records and their property value types."""

from __future__ import annotations

from typing import Any

from modelstore.errors import InvalidArgumentError, NullArgumentError
from modelstore.key import Key

CLASS_HIERARCHY_LIST_PROPERTY = "__class_hierarchy__"
VERSION_PROPERTY = "version"


class Text(str):
    """A long string; never indexed, so it cannot be filtered or sorted on."""

    __slots__ = ()

    def __repr__(self) -> str:
        return f"Text({str.__repr__(self)})"


class ShortBlob(bytes):
    """A short, indexed binary value."""

    __slots__ = ()

    def __repr__(self) -> str:
        return f"ShortBlob({len(self)} bytes)"


class Blob(bytes):
    """A large, unindexed binary value."""

    __slots__ = ()

    def __repr__(self) -> str:
        return f"Blob({len(self)} bytes)"


UNINDEXED_TYPES = (Text, Blob)


class Record:
    """An untyped property bag addressed by a key."""

    def __init__(self, key: Key, properties: dict[str, Any] | None = None) -> None:
        if key is None:
            raise NullArgumentError("key")
        self.key = key
        self._properties: dict[str, Any] = {}
        self._unindexed: set[str] = set()
        for name, value in (properties or {}).items():
            self.set_property(name, value)

    @property
    def kind(self) -> str:
        return self.key.kind

    @property
    def parent(self) -> Key | None:
        return self.key.parent

    @property
    def properties(self) -> dict[str, Any]:
        return dict(self._properties)

    def has_property(self, name: str) -> bool:
        return name in self._properties

    def get_property(self, name: str, default: Any = None) -> Any:
        return self._properties.get(name, default)

    def set_property(self, name: str, value: Any) -> None:
        if not name:
            raise InvalidArgumentError("Property name must not be empty")
        self._properties[name] = value
        if isinstance(value, UNINDEXED_TYPES):
            self._unindexed.add(name)
        else:
            self._unindexed.discard(name)

    def set_unindexed_property(self, name: str, value: Any) -> None:
        self.set_property(name, value)
        self._unindexed.add(name)

    def remove_property(self, name: str) -> None:
        self._properties.pop(name, None)
        self._unindexed.discard(name)

    def is_unindexed(self, name: str) -> bool:
        return name in self._unindexed

    def unindexed_properties(self) -> frozenset[str]:
        return frozenset(self._unindexed)

    def copy(self, key: Key | None = None) -> Record:
        """Return a shallow copy, optionally re-addressed to another key."""
        other = Record(key or self.key)
        other._properties = dict(self._properties)
        other._unindexed = set(self._unindexed)
        return other

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Record):
            return NotImplemented
        return self.key == other.key and self._properties == other._properties

    def __repr__(self) -> str:
        props = ", ".join(f"{k}={v!r}" for k, v in self._properties.items())
        return f"Record({self.key}, {props})" if props else f"Record({self.key})"
