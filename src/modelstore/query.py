"""Query builders: ModelQuery over typed models and RecordQuery over raw records."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Generic, Iterator, TypeVar

from modelstore.conversion import to_model
from modelstore.criteria import FilterCriterion, SortCriterion, filter_in_memory, sort_in_memory
from modelstore.errors import InvalidArgumentError, NullArgumentError, TooManyResultsError
from modelstore.key import Key
from modelstore.meta import AttributeMeta, ModelMeta
from modelstore.record import CLASS_HIERARCHY_LIST_PROPERTY, Record
from modelstore.store import (
    REMOTE_OPS,
    FetchOptions,
    PreparedQueryProtocol,
    PropertyFilter,
    PropertySort,
    QuerySpec,
    value_matches,
)

if TYPE_CHECKING:
    from modelstore.datastore import Datastore
    from modelstore.store import Transaction

M = TypeVar("M")
T = TypeVar("T")


class _AbstractQuery(Generic[T]):
    """Shared life cycle: build the spec, prepare it, execute it.

    Changing the query after ``prepare`` drops the prepared handle, so the
    next execution prepares again.  A prepared query can run any number of
    times; each run fetches fresh results.
    """

    def __init__(
        self,
        datastore: Datastore,
        kind: str,
        ancestor: Key | None = None,
        tx: Transaction | None = None,
    ) -> None:
        if datastore is None:
            raise NullArgumentError("datastore")
        if not kind:
            raise NullArgumentError("kind")
        self._datastore = datastore
        self._spec = QuerySpec(kind, ancestor)
        self._tx = tx
        self._limit: int | None = None
        self._offset: int = 0
        self._chunk_size: int | None = datastore.config.default_chunk_size
        self._prefetch_size: int | None = None
        self._prepared: PreparedQueryProtocol | None = None

    @property
    def kind(self) -> str:
        return self._spec.kind

    @property
    def spec(self) -> QuerySpec:
        return self._spec.copy()

    @property
    def is_prepared(self) -> bool:
        return self._prepared is not None

    def _changed(self) -> None:
        self._prepared = None

    def limit(self, n: int) -> Any:
        self._limit = n
        return self

    def offset(self, n: int) -> Any:
        self._offset = n
        return self

    def chunk_size(self, n: int) -> Any:
        self._chunk_size = n
        return self

    def prefetch_size(self, n: int) -> Any:
        self._prefetch_size = n
        return self

    def _options(self, *, windowed: bool = True) -> FetchOptions:
        return FetchOptions(
            limit=self._limit if windowed else None,
            offset=self._offset if windowed else 0,
            chunk_size=self._chunk_size,
            prefetch_size=self._prefetch_size,
        )

    def _call(self, operation: Callable[[], Any], description: str) -> Any:
        return self._datastore.call(operation, description=f"{description}({self.kind})")

    # -- remote ------------------------------------------------------------

    def prepare(self) -> PreparedQueryProtocol:
        spec = self._spec.copy()
        tx = self._tx
        store = self._datastore.store
        self._prepared = self._call(lambda: store.prepare(spec, tx), "prepare")
        return self._prepared

    def _prepared_query(self) -> PreparedQueryProtocol:
        if self._prepared is None:
            return self.prepare()
        return self._prepared

    def as_record_list(self) -> list[Record]:
        """Execute remotely and return the raw records in the fetch window."""
        pq = self._prepared_query()
        options = self._options()
        return self._call(lambda: pq.as_list(options), "as_list")

    def _records_unwindowed(self) -> list[Record]:
        pq = self._prepared_query()
        options = self._options(windowed=False)
        return self._call(lambda: pq.as_list(options), "as_list")

    def as_record_iterable(self) -> Iterator[Record]:
        pq = self._prepared_query()
        options = self._options()
        return self._call(lambda: pq.as_iterable(options), "as_iterable")

    def as_single_record(self) -> Record | None:
        pq = self._prepared_query()
        return self._call(pq.as_single, "as_single")

    def count_records(self) -> int:
        pq = self._prepared_query()
        return self._call(pq.count, "count")

    # -- materialization ---------------------------------------------------

    def _has_in_memory(self) -> bool:
        raise NotImplementedError

    def _materialize(self, record: Record) -> T:
        raise NotImplementedError

    def _filter_items(self, items: list[T]) -> list[T]:
        raise NotImplementedError

    def _fetch_filtered(self) -> list[T]:
        items = [self._materialize(r) for r in self._records_unwindowed()]
        return self._filter_items(items)

    def as_list(self) -> list[T]:
        if not self._has_in_memory():
            return [self._materialize(r) for r in self.as_record_list()]
        items = self._fetch_filtered()
        end = None if self._limit is None else self._offset + self._limit
        return items[self._offset:end]

    def as_iterable(self) -> Iterator[T]:
        if self._has_in_memory():
            return iter(self.as_list())
        return (self._materialize(r) for r in self.as_record_iterable())

    def as_single(self) -> T | None:
        """Return the only result, None when nothing matches."""
        if not self._has_in_memory():
            record = self.as_single_record()
            return self._materialize(record) if record is not None else None
        items = self._fetch_filtered()
        if len(items) > 1:
            raise TooManyResultsError(self.kind)
        return items[0] if items else None

    def count(self) -> int:
        if not self._has_in_memory():
            return self.count_records()
        return len(self._fetch_filtered())

    def _scan_first(self, property_name: str, descending: bool) -> Any:
        """First non-null stored value of a property in the given order."""
        scan = self._spec.copy()
        scan.sorts = [PropertySort(property_name, descending)]
        tx = self._tx
        store = self._datastore.store
        pq = self._call(lambda: store.prepare(scan, tx), "prepare")
        options = self._options(windowed=False)
        for record in self._call(lambda: pq.as_iterable(options), "as_iterable"):
            value = record.get_property(property_name)
            if value is not None:
                return value
        return None


class ModelQuery(_AbstractQuery[M]):
    """Query over the models of one ModelMeta.

    Criteria the store can evaluate go into the remote query; the others
    are applied to the fetched models.  Results of a base-model query are
    materialized as the subclass each record was written from.
    """

    def __init__(
        self,
        datastore: Datastore,
        meta: ModelMeta[Any],
        ancestor: Key | None = None,
        tx: Transaction | None = None,
    ) -> None:
        if meta is None:
            raise NullArgumentError("meta")
        super().__init__(datastore, meta.kind, ancestor, tx)
        self._meta = meta
        self._in_memory: list[FilterCriterion] = []
        if meta.is_polymorphic:
            self._spec.add_filter(CLASS_HIERARCHY_LIST_PROPERTY, "==", meta.model_name)

    @property
    def meta(self) -> ModelMeta[Any]:
        return self._meta

    @property
    def in_memory_criteria(self) -> list[FilterCriterion]:
        return list(self._in_memory)

    def _check_model(self, attribute: AttributeMeta) -> None:
        if attribute.model_class is not self._meta.model_class:
            raise InvalidArgumentError(
                f"The model({attribute.model_meta.model_name}) of the criterion is different "
                f"from the model({self._meta.model_name}) of this query."
            )

    def filter(self, *criteria: FilterCriterion | None) -> ModelQuery[M]:
        for c in criteria:
            if c is None:
                continue
            self._check_model(c.attribute)
            if c.expressible_remotely:
                c.apply(self._spec)
            else:
                self._in_memory.append(c)
        self._changed()
        return self

    def sort(self, *criteria: SortCriterion) -> ModelQuery[M]:
        for c in criteria:
            if c is None:
                raise NullArgumentError("criteria", "Sort criteria must not contain None.")
            self._check_model(c.attribute)
            c.apply(self._spec)
        self._changed()
        return self

    def _has_in_memory(self) -> bool:
        return bool(self._in_memory)

    def _materialize(self, record: Record) -> M:
        meta = self._datastore.registry.resolve_polymorphic(self._meta, record)
        return to_model(meta, record)

    def _filter_items(self, items: list[M]) -> list[M]:
        return filter_in_memory(items, self._in_memory)

    def as_key_list(self) -> list[Key]:
        if not self._has_in_memory():
            return [r.key for r in self.as_record_list()]
        return [self._meta.get_key(m) for m in self.as_list()]

    def _extreme(self, attribute: AttributeMeta, descending: bool) -> Any:
        if attribute is None:
            raise NullArgumentError("attribute")
        self._check_model(attribute)
        # decimals are stored as strings, so the store cannot order them numerically
        if not self._has_in_memory() and attribute.storage_kind != "decimal":
            raw = self._scan_first(attribute.property_name, descending)
            return attribute.from_storage(raw) if raw is not None else None
        models = [m for m in self._fetch_filtered() if getattr(m, attribute.name) is not None]
        if not models:
            return None
        sort_in_memory(models, [SortCriterion(attribute, descending)])
        return getattr(models[0], attribute.name)

    def min(self, attribute: AttributeMeta) -> Any:
        """Smallest non-null value of the attribute, converted to its declared type."""
        return self._extreme(attribute, descending=False)

    def max(self, attribute: AttributeMeta) -> Any:
        """Largest non-null value of the attribute, converted to its declared type."""
        return self._extreme(attribute, descending=True)


class RecordQuery(_AbstractQuery[Record]):
    """Query over raw records of a kind, addressed by property name."""

    def __init__(
        self,
        datastore: Datastore,
        kind: str,
        ancestor: Key | None = None,
        tx: Transaction | None = None,
    ) -> None:
        super().__init__(datastore, kind, ancestor, tx)
        self._in_memory: list[PropertyFilter] = []

    def filter(self, name: str, op: str, value: Any = None) -> RecordQuery:
        if not name:
            raise NullArgumentError("name")
        if op in REMOTE_OPS:
            self._spec.add_filter(name, op, value)
        else:
            # validates the operator
            QuerySpec(self.kind).add_filter(name, op, value)
            self._in_memory.append(PropertyFilter(name, op, value))
        self._changed()
        return self

    def sort(self, name: str, descending: bool = False) -> RecordQuery:
        if not name:
            raise NullArgumentError("name")
        self._spec.add_sort(name, descending)
        self._changed()
        return self

    def _has_in_memory(self) -> bool:
        return bool(self._in_memory)

    def _materialize(self, record: Record) -> Record:
        return record

    def _filter_items(self, items: list[Record]) -> list[Record]:
        return [
            r
            for r in items
            if all(
                r.has_property(f.name) and value_matches(f.op, r.get_property(f.name), f.value)
                for f in self._in_memory
            )
        ]

    def min(self, name: str) -> Any:
        return self._scan_first(name, descending=False)

    def max(self, name: str) -> Any:
        return self._scan_first(name, descending=True)
