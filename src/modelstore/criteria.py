"""Filter and sort criteria over model attributes.

A criterion is applied to a :class:`~modelstore.store.QuerySpec` when the
store can evaluate it, and evaluated against models after the fetch when it
cannot (``expressible_remotely`` is False).
"""

from __future__ import annotations

import functools
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Sequence, TypeVar

from modelstore.errors import InvalidArgumentError, NullArgumentError
from modelstore.store import (
    ALL_OPS,
    REMOTE_OPS,
    QuerySpec,
    compare_values,
    sort_value,
    value_matches,
)

if TYPE_CHECKING:
    from modelstore.meta import AttributeMeta

T = TypeVar("T")

_ORDERED_OPS = frozenset({"<", "<=", ">", ">=", "STARTSWITH"})


@dataclass(frozen=True, eq=False)
class FilterCriterion:
    """An attribute, a comparison operator and a comparand."""

    attribute: AttributeMeta
    op: str
    value: Any = None

    def __post_init__(self) -> None:
        if self.op not in ALL_OPS:
            raise InvalidArgumentError(f"Unknown filter operator '{self.op}'")
        if self.op in ("STARTSWITH", "ENDSWITH", "CONTAINS") and not isinstance(self.value, str):
            raise InvalidArgumentError(f"Operator {self.op} requires a str operand")

    @property
    def model_class(self) -> type[Any]:
        return self.attribute.model_class

    @property
    def expressible_remotely(self) -> bool:
        if self.op not in REMOTE_OPS:
            return False
        attr = self.attribute
        kind = attr.storage_kind
        if kind == "list":
            kind = attr.item_kind
        if kind in ("text", "object"):
            return False
        # stored as an unindexed Blob
        if attr.storage_kind == "bytes" and attr.blob:
            return False
        # decimals are stored as strings, which only keep equality
        if kind == "decimal" and self.op in _ORDERED_OPS:
            return False
        return True

    def _comparand(self, value: Any) -> Any:
        if value is None:
            return None
        attr = self.attribute
        if attr.storage_kind == "list":
            return attr.to_storage([value])[0]
        return attr.to_storage(value)

    def apply(self, spec: QuerySpec) -> None:
        """Add the storage form of this criterion to a query."""
        if not self.expressible_remotely:
            raise InvalidArgumentError(f"{self!r} cannot be evaluated by the store")
        if self.op == "IN":
            value: Any = [self._comparand(v) for v in self.value]
        elif self.op == "IS_NOT_NULL":
            value = None
        elif self.op == "STARTSWITH":
            value = self.value
        else:
            value = self._comparand(self.value)
        spec.add_filter(self.attribute.property_name, self.op, value)

    def accept(self, model: Any) -> bool:
        """Evaluate this criterion against a model in memory."""
        actual = getattr(model, self.attribute.name)
        if isinstance(actual, (set, frozenset, tuple)):
            actual = list(actual)
        return value_matches(self.op, actual, self.value)

    def __repr__(self) -> str:
        return f"FilterCriterion({self.attribute.name} {self.op} {self.value!r})"


@dataclass(frozen=True, eq=False)
class SortCriterion:
    """An attribute and an ordering direction."""

    attribute: AttributeMeta
    descending: bool = False

    @property
    def model_class(self) -> type[Any]:
        return self.attribute.model_class

    def apply(self, spec: QuerySpec) -> None:
        spec.add_sort(self.attribute.property_name, self.descending)

    def compare(self, a: Any, b: Any) -> int:
        va = getattr(a, self.attribute.name)
        vb = getattr(b, self.attribute.name)
        if isinstance(va, (set, frozenset, tuple)):
            va = list(va)
        if isinstance(vb, (set, frozenset, tuple)):
            vb = list(vb)
        c = compare_values(sort_value(va, self.descending), sort_value(vb, self.descending))
        return -c if self.descending else c

    def __repr__(self) -> str:
        direction = "desc" if self.descending else "asc"
        return f"SortCriterion({self.attribute.name} {direction})"


def filter_in_memory(
    models: list[T] | None, criteria: Sequence[FilterCriterion | None] | None
) -> list[T]:
    """Return the models every non-None criterion accepts.

    With no criteria the input list itself is returned.
    """
    if models is None:
        raise NullArgumentError("models")
    if criteria is None:
        raise NullArgumentError("criteria")
    if len(criteria) == 0:
        return models
    result: list[T] = []
    for model in models:
        if model is None:
            raise NullArgumentError("models", "The model is None.")
        if all(c is None or c.accept(model) for c in criteria):
            result.append(model)
    return result


def sort_in_memory(models: list[T] | None, criteria: Sequence[SortCriterion] | None) -> list[T]:
    """Sort the list in place by the criteria, first criterion first.

    The sort is stable and the same list is returned.
    """
    if models is None:
        raise NullArgumentError("models")
    if criteria is None:
        raise NullArgumentError("criteria")
    if len(criteria) == 0:
        return models

    def _cmp(a: Any, b: Any) -> int:
        for c in criteria:
            result = c.compare(a, b)
            if result:
                return result
        return 0

    models.sort(key=functools.cmp_to_key(_cmp))
    return models
