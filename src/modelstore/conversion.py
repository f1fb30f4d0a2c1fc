"""Conversion between typed models and records."""

from __future__ import annotations

from typing import Any, Iterable, Sequence

from modelstore.errors import InvalidArgumentError, NullArgumentError
from modelstore.key import Key, key_is_incomplete
from modelstore.meta import ModelMeta
from modelstore.record import Record

__all__ = [
    "assign_keys",
    "key_is_incomplete",
    "to_model",
    "to_record",
    "to_records",
]


def to_record(meta: ModelMeta[Any], model: Any) -> Record:
    """Stamp the next version onto ``model`` and convert it to a record.

    Every write therefore carries a version strictly greater than the one
    the model was read with.
    """
    if meta is None:
        raise NullArgumentError("meta")
    if model is None:
        raise NullArgumentError("model")
    meta.increment_version(model)
    return meta.model_to_record(model)


def to_model(meta: ModelMeta[Any], record: Record) -> Any:
    if meta is None:
        raise NullArgumentError("meta")
    if record is None:
        raise NullArgumentError("record")
    return meta.record_to_model(record)


def to_records(metas: Sequence[ModelMeta[Any] | None], objects: Iterable[Any]) -> list[Record]:
    """Convert models element-wise; entries with a None meta are records already."""
    if metas is None:
        raise NullArgumentError("metas")
    if objects is None:
        raise NullArgumentError("objects")
    records: list[Record] = []
    for i, obj in enumerate(objects):
        if i >= len(metas):
            raise InvalidArgumentError("More objects than metas were supplied")
        meta = metas[i]
        if meta is None:
            if not isinstance(obj, Record):
                raise InvalidArgumentError(f"Element {i} has no meta and is not a Record")
            records.append(obj)
        else:
            records.append(to_record(meta, obj))
    return records


def assign_keys(
    metas: Sequence[ModelMeta[Any] | None], objects: Iterable[Any], keys: Sequence[Key]
) -> None:
    """Write keys returned by a batch put back onto their models."""
    for i, obj in enumerate(objects):
        meta = metas[i]
        if meta is not None:
            meta.set_key(obj, keys[i])
