"""Typed facade over a remote store: transactions, ids, CRUD and queries."""

from __future__ import annotations

from typing import Any, Callable, Iterable, TypeVar

from modelstore.config import StoreConfig
from modelstore.conversion import assign_keys, to_model, to_records
from modelstore.errors import (
    EntityNotFoundError,
    IllegalStateError,
    InvalidArgumentError,
    NullArgumentError,
    StoreKeyNotFoundError,
)
from modelstore.key import Key, KeyRange
from modelstore.meta import ModelMeta
from modelstore.query import ModelQuery, RecordQuery
from modelstore.record import Record
from modelstore.registry import ModelMetaRegistry
from modelstore.retry import call_with_retry
from modelstore.store import RemoteStore, Transaction

M = TypeVar("M")
R = TypeVar("R")


class Datastore:
    """Every store call made here goes through ``call_with_retry``.

    Arguments are checked before the store is contacted, so a call with a
    missing argument or a finished transaction never reaches the network.
    """

    def __init__(
        self,
        store: RemoteStore,
        registry: ModelMetaRegistry | None = None,
        config: StoreConfig | None = None,
    ) -> None:
        if store is None:
            raise NullArgumentError("store")
        self.store = store
        self.config = config or StoreConfig()
        self.registry = registry or ModelMetaRegistry(self.config)

    def call(self, operation: Callable[[], R], description: str | None = None) -> R:
        return call_with_retry(operation, max_retry=self.config.max_retry, description=description)

    def _meta(self, model_class: type[M] | ModelMeta[M]) -> ModelMeta[M]:
        if isinstance(model_class, ModelMeta):
            return model_class
        return self.registry.resolve(model_class)

    @staticmethod
    def _active(tx: Transaction | None) -> None:
        if tx is not None and not tx.is_active:
            raise IllegalStateError(f"The transaction({tx.id}) is not active.")

    # -- transactions --------------------------------------------------------

    def begin_transaction(self) -> Transaction:
        return self.call(self.store.begin_transaction, "begin_transaction")

    def commit(self, tx: Transaction) -> None:
        if tx is None:
            raise NullArgumentError("tx")
        if not tx.is_active:
            raise InvalidArgumentError(f"The transaction({tx.id}) is not active.")
        self.call(lambda: self.store.commit(tx), "commit")

    def rollback(self, tx: Transaction) -> None:
        if tx is None:
            raise NullArgumentError("tx")
        if not tx.is_active:
            raise InvalidArgumentError(f"The transaction({tx.id}) is not active.")
        self.call(lambda: self.store.rollback(tx), "rollback")

    # -- ids -------------------------------------------------------------------

    def allocate_ids(self, kind: str, count: int, parent: Key | None = None) -> KeyRange:
        if not kind:
            raise NullArgumentError("kind")
        if count is None:
            raise NullArgumentError("count")
        if count <= 0:
            raise InvalidArgumentError(f"count must be positive, got {count}")
        return self.call(lambda: self.store.allocate_ids(kind, count, parent), "allocate_ids")

    def allocate_id(self, kind: str, parent: Key | None = None) -> Key:
        return next(iter(self.allocate_ids(kind, 1, parent)))

    # -- get -------------------------------------------------------------------

    def get_record(self, key: Key, tx: Transaction | None = None) -> Record:
        """Fetch one record; a missing key raises EntityNotFoundError."""
        if key is None:
            raise NullArgumentError("key")
        self._active(tx)
        try:
            return self.call(lambda: self.store.get(key, tx), "get")
        except StoreKeyNotFoundError as e:
            raise EntityNotFoundError(key, cause=e) from e

    def get(self, model_class: type[M] | ModelMeta[M], key: Key, tx: Transaction | None = None) -> M:
        """Fetch a model, materialized as the subclass it was written from."""
        if model_class is None:
            raise NullArgumentError("model_class")
        meta = self._meta(model_class)
        record = self.get_record(key, tx)
        return to_model(self.registry.resolve_polymorphic(meta, record), record)

    def get_or_none(
        self, model_class: type[M] | ModelMeta[M], key: Key, tx: Transaction | None = None
    ) -> M | None:
        try:
            return self.get(model_class, key, tx)
        except EntityNotFoundError:
            return None

    def get_records(self, keys: Iterable[Key], tx: Transaction | None = None) -> dict[Key, Record]:
        if keys is None:
            raise NullArgumentError("keys")
        keys = list(keys)
        if any(k is None for k in keys):
            raise NullArgumentError("keys", "The element of the keys must not be None.")
        self._active(tx)
        return self.call(lambda: self.store.get_multi(keys, tx), "get_multi")

    def get_all(
        self,
        model_class: type[M] | ModelMeta[M],
        keys: Iterable[Key],
        tx: Transaction | None = None,
    ) -> list[M]:
        """Models for ``keys`` in key order; keys without a record are skipped."""
        if model_class is None:
            raise NullArgumentError("model_class")
        meta = self._meta(model_class)
        if keys is None:
            raise NullArgumentError("keys")
        keys = list(keys)
        found = self.get_records(keys, tx)
        models: list[M] = []
        for key in keys:
            record = found.get(key)
            if record is not None:
                models.append(to_model(self.registry.resolve_polymorphic(meta, record), record))
        return models

    # -- put -------------------------------------------------------------------

    def put_all(self, objects: Iterable[Any], tx: Transaction | None = None) -> list[Key]:
        """Write models and records; completed keys are written back onto models."""
        if objects is None:
            raise NullArgumentError("objects")
        objects = list(objects)
        self._active(tx)
        metas = self.registry.resolve_all(objects)
        records = to_records(metas, objects)
        keys = self.call(lambda: self.store.put(records, tx), "put")
        assign_keys(metas, objects, keys)
        return keys

    def put(self, obj: Any, tx: Transaction | None = None) -> Key:
        if obj is None:
            raise NullArgumentError("obj")
        return self.put_all([obj], tx)[0]

    # -- delete ----------------------------------------------------------------

    def delete_all(self, keys: Iterable[Key], tx: Transaction | None = None) -> None:
        if keys is None:
            raise NullArgumentError("keys")
        keys = list(keys)
        if any(k is None for k in keys):
            raise NullArgumentError("keys", "The element of the keys must not be None.")
        self._active(tx)
        self.call(lambda: self.store.delete(keys, tx), "delete")

    def delete(self, *keys: Key, tx: Transaction | None = None) -> None:
        self.delete_all(keys, tx)

    # -- queries ---------------------------------------------------------------

    def query(
        self,
        model_class: type[M] | ModelMeta[M],
        ancestor: Key | None = None,
        tx: Transaction | None = None,
    ) -> ModelQuery[M]:
        if model_class is None:
            raise NullArgumentError("model_class")
        self._active(tx)
        return ModelQuery(self, self._meta(model_class), ancestor, tx)

    def query_kind(
        self, kind: str, ancestor: Key | None = None, tx: Transaction | None = None
    ) -> RecordQuery:
        self._active(tx)
        return RecordQuery(self, kind, ancestor, tx)

    def close(self) -> None:
        self.store.close()

    def __enter__(self) -> Datastore:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
