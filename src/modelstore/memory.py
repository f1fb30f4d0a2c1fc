"""In-process store backend."""

from __future__ import annotations

from collections import defaultdict
from typing import Any

from modelstore.key import Key
from modelstore.record import Record
from modelstore.store import BaseStore


class MemoryStore(BaseStore):
    """A thread-safe, non-persistent store holding records in a dict."""

    def __init__(self) -> None:
        super().__init__()
        self._records: dict[Key, Record] = {}
        self._next_ids: dict[tuple[str, Key | None], int] = defaultdict(lambda: 1)

    def _load(self, key: Key) -> Record | None:
        record = self._records.get(key)
        return record.copy() if record is not None else None

    def _scan(self, kind: str) -> list[Record]:
        return [r for k, r in self._records.items() if k.kind == kind]

    def _apply(self, puts: list[Record], deletes: list[Key]) -> None:
        for key in deletes:
            self._records.pop(key, None)
        for record in puts:
            self._records[record.key] = record.copy()
            scope = (record.key.kind, record.key.parent)
            if record.key.id >= self._next_ids[scope]:
                self._next_ids[scope] = record.key.id + 1

    def _reserve_ids(self, kind: str, parent: Key | None, count: int) -> int:
        start = self._next_ids[(kind, parent)]
        self._next_ids[(kind, parent)] = start + count
        return start

    def kinds(self) -> list[str]:
        with self._lock:
            return sorted({k.kind for k in self._records})

    def storage_info(self) -> dict[str, Any]:
        with self._lock:
            return {"backend": "memory", "records": len(self._records)}

    def __len__(self) -> int:
        return len(self._records)
