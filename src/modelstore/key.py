"""Hierarchical keys, references and allocated key ranges."""

from __future__ import annotations

import functools
import json
import re
from dataclasses import dataclass, field
from typing import Iterator

from modelstore.errors import InvalidArgumentError, NullArgumentError

_SEGMENT_RE = re.compile(r'([^:/"]+)(?::("(?:[^"\\]|\\.)*"|[^/]*))?(?:/|$)')


@functools.total_ordering
@dataclass(frozen=True)
class Key:
    """An ordered chain of (kind, id-or-name) components.

    The identifier of the final component is either a positive ``id`` or a
    non-empty ``name``.  A key with neither is incomplete and waits for the
    store to assign an id.
    """

    kind: str
    id: int = 0
    name: str | None = None
    parent: Key | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.kind, str) or not self.kind:
            raise InvalidArgumentError(f"Key kind must be a non-empty string, got {self.kind!r}")
        if isinstance(self.id, bool) or not isinstance(self.id, int) or self.id < 0:
            raise InvalidArgumentError(f"Key id must be a non-negative int, got {self.id!r}")
        if self.name is not None:
            if not isinstance(self.name, str) or not self.name:
                raise InvalidArgumentError(f"Key name must be a non-empty string, got {self.name!r}")
            if self.id:
                raise InvalidArgumentError("A key cannot have both an id and a name")
        if self.parent is not None and not self.parent.is_complete:
            raise InvalidArgumentError(f"Parent key {self.parent} is incomplete")

    @classmethod
    def create(cls, kind: str, id_or_name: int | str, parent: Key | None = None) -> Key:
        """Create a key whose identifier is an id (int) or a name (str)."""
        if isinstance(id_or_name, str):
            return cls(kind, name=id_or_name, parent=parent)
        return cls(kind, id=id_or_name, parent=parent)

    @classmethod
    def incomplete(cls, kind: str, parent: Key | None = None) -> Key:
        return cls(kind, parent=parent)

    @classmethod
    def from_path(cls, *path: int | str) -> Key:
        """Build a key from alternating kind and identifier arguments.

        ``Key.from_path("Parent", 1, "Child", "x")``
        """
        if not path or len(path) % 2:
            raise InvalidArgumentError("Key path must contain (kind, id_or_name) pairs")
        key: Key | None = None
        for i in range(0, len(path), 2):
            kind, ident = path[i], path[i + 1]
            key = cls.create(str(kind), ident, parent=key)
        assert key is not None
        return key

    @classmethod
    def parse(cls, text: str) -> Key:
        """Parse the text form produced by ``str(key)``.

        Identifiers made of digits are ids, quoted identifiers are names and
        anything else is taken as a name verbatim.
        """
        if not text or not text.strip():
            raise InvalidArgumentError("Key text must not be empty")
        key: Key | None = None
        pos = 0
        text = text.strip()
        while pos < len(text):
            match = _SEGMENT_RE.match(text, pos)
            if match is None or match.end() == pos:
                raise InvalidArgumentError(f"Cannot parse key text {text!r} at offset {pos}")
            kind, ident = match.group(1), match.group(2)
            if ident is None or ident == "":
                key = cls(kind, parent=key)
            elif ident.startswith('"'):
                key = cls(kind, name=json.loads(ident), parent=key)
            elif ident.isdigit():
                key = cls(kind, id=int(ident), parent=key)
            else:
                key = cls(kind, name=ident, parent=key)
            pos = match.end()
        assert key is not None
        return key

    @property
    def is_complete(self) -> bool:
        return self.name is not None or self.id > 0

    @property
    def id_or_name(self) -> int | str | None:
        if self.name is not None:
            return self.name
        return self.id or None

    @property
    def root(self) -> Key:
        key = self
        while key.parent is not None:
            key = key.parent
        return key

    def path(self) -> list[PathElement]:
        """Return the components of this key from the root down."""
        elements: list[PathElement] = []
        key: Key | None = self
        while key is not None:
            elements.append(PathElement(key.kind, key.id, key.name))
            key = key.parent
        elements.reverse()
        return elements

    def with_id(self, id: int) -> Key:
        """Return a completed copy of this incomplete key."""
        if self.is_complete:
            raise InvalidArgumentError(f"Key {self} is already complete")
        return Key(self.kind, id=id, parent=self.parent)

    def _ordering(self) -> tuple[tuple[str, int, int, str], ...]:
        return tuple(
            (e.kind, 0 if e.name is None else 1, e.id, e.name or "") for e in self.path()
        )

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Key):
            return NotImplemented
        return self._ordering() < other._ordering()

    def __str__(self) -> str:
        parts = []
        for e in self.path():
            if e.name is not None:
                parts.append(f"{e.kind}:{json.dumps(e.name)}")
            elif e.id:
                parts.append(f"{e.kind}:{e.id}")
            else:
                parts.append(e.kind)
        return "/".join(parts)


@dataclass(frozen=True)
class PathElement:
    """One component of a hierarchical reference."""

    kind: str
    id: int = 0
    name: str | None = None


@dataclass(frozen=True)
class Reference:
    """An externally supplied hierarchical reference."""

    path: tuple[PathElement, ...] = ()
    app: str | None = None


def reference_to_key(reference: Reference | None) -> Key:
    """Convert a reference to a key by walking its components root to leaf."""
    if reference is None:
        raise NullArgumentError("reference")
    key: Key | None = None
    for element in reference.path:
        if element.id > 0:
            key = Key(element.kind, id=element.id, parent=key)
        else:
            key = Key(element.kind, name=element.name, parent=key)
    if key is None:
        raise InvalidArgumentError(f"The reference({reference}) cannot be converted to Key.")
    return key


def key_is_incomplete(key: Key | None) -> bool:
    """Return True if the key has neither a name nor a positive id."""
    if key is None:
        raise NullArgumentError("key")
    return key.name is None and key.id <= 0


@dataclass(frozen=True)
class KeyRange:
    """A contiguous block of ids allocated by the store for one kind."""

    kind: str
    start: int
    end: int
    parent: Key | None = None

    def __len__(self) -> int:
        return self.end - self.start + 1

    def __iter__(self) -> Iterator[Key]:
        for i in range(self.start, self.end + 1):
            yield Key(self.kind, id=i, parent=self.parent)
