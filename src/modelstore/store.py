"""Remote store client protocol and the helpers shared by store backends."""

from __future__ import annotations

import enum
import functools
import itertools
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Iterable, Iterator, Protocol, runtime_checkable

from modelstore.errors import (
    IllegalStateError,
    InvalidArgumentError,
    StoreKeyNotFoundError,
    TooManyResultsError,
)
from modelstore.key import Key, KeyRange
from modelstore.record import Record

REMOTE_OPS = frozenset({"==", "!=", "<", "<=", ">", ">=", "IN", "IS_NOT_NULL", "STARTSWITH"})
IN_MEMORY_OPS = frozenset({"ENDSWITH", "CONTAINS"})
ALL_OPS = REMOTE_OPS | IN_MEMORY_OPS


@dataclass(frozen=True)
class PropertyFilter:
    """A filter on a stored property, in storage representation."""

    name: str
    op: str
    value: Any = None


@dataclass(frozen=True)
class PropertySort:
    name: str
    descending: bool = False


@dataclass
class QuerySpec:
    """The store-level form of a query: kind, ancestor, filters and sorts."""

    kind: str
    ancestor: Key | None = None
    filters: list[PropertyFilter] = field(default_factory=list)
    sorts: list[PropertySort] = field(default_factory=list)
    keys_only: bool = False

    def add_filter(self, name: str, op: str, value: Any = None) -> QuerySpec:
        if op not in ALL_OPS:
            raise InvalidArgumentError(f"Unknown filter operator '{op}'")
        self.filters.append(PropertyFilter(name, op, value))
        return self

    def add_sort(self, name: str, descending: bool = False) -> QuerySpec:
        self.sorts.append(PropertySort(name, descending))
        return self

    def copy(self) -> QuerySpec:
        return replace(self, filters=list(self.filters), sorts=list(self.sorts))


@dataclass(frozen=True)
class FetchOptions:
    """Window of a query execution."""

    limit: int | None = None
    offset: int = 0
    chunk_size: int | None = None
    prefetch_size: int | None = None

    def __post_init__(self) -> None:
        if self.limit is not None and self.limit < 0:
            raise InvalidArgumentError(f"limit must not be negative, got {self.limit}")
        if self.offset < 0:
            raise InvalidArgumentError(f"offset must not be negative, got {self.offset}")
        for name in ("chunk_size", "prefetch_size"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise InvalidArgumentError(f"{name} must be positive, got {value}")


class Transaction:
    """Handle to a server-side unit of work.

    Writes are staged on the handle and applied atomically on commit.  The
    handle becomes inactive after commit or rollback.
    """

    def __init__(self, store: Any, tx_id: int) -> None:
        self.store = store
        self.id = tx_id
        self._active = True
        self.puts: dict[Key, Record] = {}
        self.deletes: set[Key] = set()

    @property
    def is_active(self) -> bool:
        return self._active

    def stage_put(self, record: Record) -> None:
        self.deletes.discard(record.key)
        self.puts[record.key] = record.copy()

    def stage_delete(self, key: Key) -> None:
        self.puts.pop(key, None)
        self.deletes.add(key)

    def deactivate(self) -> None:
        self._active = False
        self.puts.clear()
        self.deletes.clear()

    def __repr__(self) -> str:
        state = "active" if self._active else "inactive"
        return f"Transaction(id={self.id}, {state})"


@runtime_checkable
class PreparedQueryProtocol(Protocol):
    def as_list(self, options: FetchOptions | None = None) -> list[Record]: ...

    def as_iterable(self, options: FetchOptions | None = None) -> Iterator[Record]: ...

    def as_single(self) -> Record | None: ...

    def count(self) -> int: ...


@runtime_checkable
class RemoteStore(Protocol):
    """The network-facing store client consumed by the datastore facade.

    Any call may raise StoreTimeoutError; ``get`` raises
    StoreKeyNotFoundError when the key has no record.
    """

    def begin_transaction(self) -> Transaction: ...

    def commit(self, tx: Transaction) -> None: ...

    def rollback(self, tx: Transaction) -> None: ...

    def allocate_ids(self, kind: str, count: int, parent: Key | None = None) -> KeyRange: ...

    def get(self, key: Key, tx: Transaction | None = None) -> Record: ...

    def get_multi(self, keys: Iterable[Key], tx: Transaction | None = None) -> dict[Key, Record]: ...

    def put(self, records: list[Record], tx: Transaction | None = None) -> list[Key]: ...

    def delete(self, keys: list[Key], tx: Transaction | None = None) -> None: ...

    def prepare(self, spec: QuerySpec, tx: Transaction | None = None) -> PreparedQueryProtocol: ...

    def kinds(self) -> list[str]: ...

    def close(self) -> None: ...


# --- value comparison shared by remote evaluation and in-memory criteria ---


def _normalize(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.name
    return value


def _rank(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, (bool, int, float, Decimal)):
        return 1
    if isinstance(value, datetime):
        return 2
    if isinstance(value, str):
        return 3
    if isinstance(value, (bytes, bytearray)):
        return 4
    if isinstance(value, Key):
        return 5
    return 6


def compare_values(a: Any, b: Any) -> int:
    """Total order over stored values; None sorts first, then by type rank."""
    a, b = _normalize(a), _normalize(b)
    ra, rb = _rank(a), _rank(b)
    if ra != rb:
        return -1 if ra < rb else 1
    if ra == 0:
        return 0
    if ra == 6:
        a, b = repr(a), repr(b)
    try:
        if a < b:
            return -1
        if b < a:
            return 1
    except TypeError:
        return 0
    return 0


def value_matches(op: str, actual: Any, expected: Any) -> bool:
    """Evaluate one filter operator against a value.

    A multi-valued (list) value matches when any of its elements does.
    Range operators only match values of the same type rank as the operand.
    """
    if isinstance(actual, list):
        return any(value_matches(op, item, expected) for item in actual)
    actual, expected = _normalize(actual), _normalize(expected)
    if op == "IS_NOT_NULL":
        return actual is not None
    if op == "==":
        return compare_values(actual, expected) == 0
    if op == "!=":
        return compare_values(actual, expected) != 0
    if op == "IN":
        return any(compare_values(actual, e) == 0 for e in expected)
    if op in ("STARTSWITH", "ENDSWITH", "CONTAINS"):
        if not isinstance(actual, str) or not isinstance(expected, str):
            return False
        if op == "STARTSWITH":
            return actual.startswith(expected)
        if op == "ENDSWITH":
            return actual.endswith(expected)
        return expected in actual
    if actual is None or _rank(actual) != _rank(expected):
        return False
    c = compare_values(actual, expected)
    if op == "<":
        return c < 0
    if op == "<=":
        return c <= 0
    if op == ">":
        return c > 0
    if op == ">=":
        return c >= 0
    raise InvalidArgumentError(f"Unknown filter operator '{op}'")


def sort_value(value: Any, descending: bool) -> Any:
    """Representative of a multi-valued property for ordering."""
    if isinstance(value, list):
        if not value:
            return None
        pick = max if descending else min
        return pick(value, key=functools.cmp_to_key(compare_values))
    return value


def _is_ancestor(ancestor: Key, key: Key) -> bool:
    current: Key | None = key
    while current is not None:
        if current == ancestor:
            return True
        current = current.parent
    return False


def record_matches(record: Record, spec: QuerySpec) -> bool:
    """Check kind, ancestor, filters and sort-property presence."""
    if record.kind != spec.kind:
        return False
    if spec.ancestor is not None and not _is_ancestor(spec.ancestor, record.key):
        return False
    for f in spec.filters:
        if not record.has_property(f.name) or record.is_unindexed(f.name):
            return False
        if not value_matches(f.op, record.get_property(f.name), f.value):
            return False
    for s in spec.sorts:
        if not record.has_property(s.name) or record.is_unindexed(s.name):
            return False
    return True


def evaluate_query(
    records: Iterable[Record], spec: QuerySpec, options: FetchOptions | None = None
) -> list[Record]:
    """Filter, order and window records the way the remote store does."""
    options = options or FetchOptions()
    matched = [r for r in records if record_matches(r, spec)]

    def _cmp(a: Record, b: Record) -> int:
        for s in spec.sorts:
            c = compare_values(
                sort_value(a.get_property(s.name), s.descending),
                sort_value(b.get_property(s.name), s.descending),
            )
            if c:
                return -c if s.descending else c
        return compare_values(a.key, b.key)

    matched.sort(key=functools.cmp_to_key(_cmp))
    end = None if options.limit is None else options.offset + options.limit
    window = matched[options.offset:end]
    if spec.keys_only:
        return [Record(r.key) for r in window]
    return [r.copy() for r in window]


class PreparedQuery:
    """A query bound to a store snapshot provider; executable repeatedly."""

    def __init__(self, spec: QuerySpec, source: Callable[[], list[Record]]) -> None:
        self.spec = spec.copy()
        self._source = source

    def as_list(self, options: FetchOptions | None = None) -> list[Record]:
        return evaluate_query(self._source(), self.spec, options)

    def as_iterable(self, options: FetchOptions | None = None) -> Iterator[Record]:
        return iter(self.as_list(options))

    def as_single(self) -> Record | None:
        results = evaluate_query(self._source(), self.spec, FetchOptions(limit=2))
        if len(results) > 1:
            raise TooManyResultsError(self.spec.kind)
        return results[0] if results else None

    def count(self) -> int:
        return len(evaluate_query(self._source(), self.spec))


class BaseStore:
    """Transaction, id allocation and query plumbing shared by store backends.

    Backends implement ``_load``, ``_scan``, ``_apply`` and ``_reserve_ids``.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._tx_ids = itertools.count(1)

    # -- backend primitives ----------------------------------------------

    def _load(self, key: Key) -> Record | None:
        raise NotImplementedError

    def _scan(self, kind: str) -> list[Record]:
        raise NotImplementedError

    def _apply(self, puts: list[Record], deletes: list[Key]) -> None:
        raise NotImplementedError

    def _reserve_ids(self, kind: str, parent: Key | None, count: int) -> int:
        """Reserve ``count`` ids and return the first one."""
        raise NotImplementedError

    def kinds(self) -> list[str]:
        raise NotImplementedError

    def close(self) -> None:
        pass

    # -- protocol ----------------------------------------------------------

    def _check_tx(self, tx: Transaction | None) -> None:
        if tx is None:
            return
        if tx.store is not self:
            raise InvalidArgumentError(f"{tx} belongs to another store")
        if not tx.is_active:
            raise IllegalStateError(f"{tx} is no longer active")

    def begin_transaction(self) -> Transaction:
        return Transaction(self, next(self._tx_ids))

    def commit(self, tx: Transaction) -> None:
        self._check_tx(tx)
        with self._lock:
            self._apply(list(tx.puts.values()), list(tx.deletes))
        tx.deactivate()

    def rollback(self, tx: Transaction) -> None:
        self._check_tx(tx)
        tx.deactivate()

    def allocate_ids(self, kind: str, count: int, parent: Key | None = None) -> KeyRange:
        if count <= 0:
            raise InvalidArgumentError(f"count must be positive, got {count}")
        with self._lock:
            start = self._reserve_ids(kind, parent, count)
        return KeyRange(kind, start, start + count - 1, parent)

    def get(self, key: Key, tx: Transaction | None = None) -> Record:
        self._check_tx(tx)
        with self._lock:
            record = self._load(key)
        if record is None:
            raise StoreKeyNotFoundError(key)
        return record

    def get_multi(self, keys: Iterable[Key], tx: Transaction | None = None) -> dict[Key, Record]:
        self._check_tx(tx)
        found: dict[Key, Record] = {}
        with self._lock:
            for key in keys:
                record = self._load(key)
                if record is not None:
                    found[key] = record
        return found

    def put(self, records: list[Record], tx: Transaction | None = None) -> list[Key]:
        self._check_tx(tx)
        keys: list[Key] = []
        completed: list[Record] = []
        with self._lock:
            for record in records:
                key = record.key
                if not key.is_complete:
                    key = key.with_id(self._reserve_ids(key.kind, key.parent, 1))
                completed.append(record.copy(key))
                keys.append(key)
            if tx is None:
                self._apply(completed, [])
        if tx is not None:
            for record in completed:
                tx.stage_put(record)
        return keys

    def delete(self, keys: list[Key], tx: Transaction | None = None) -> None:
        self._check_tx(tx)
        if tx is not None:
            for key in keys:
                tx.stage_delete(key)
            return
        with self._lock:
            self._apply([], list(keys))

    def prepare(self, spec: QuerySpec, tx: Transaction | None = None) -> PreparedQuery:
        self._check_tx(tx)
        if tx is not None and spec.ancestor is None:
            raise InvalidArgumentError("Only ancestor queries are allowed inside a transaction")
        for f in spec.filters:
            if f.op not in REMOTE_OPS:
                raise InvalidArgumentError(
                    f"Operator '{f.op}' cannot be evaluated by the store; filter in memory instead"
                )

        def _source() -> list[Record]:
            with self._lock:
                return self._scan(spec.kind)

        return PreparedQuery(spec, _source)
