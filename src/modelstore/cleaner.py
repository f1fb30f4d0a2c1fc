"""End-of-scope cleanup hook for cached process state."""

from __future__ import annotations

import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)

Cleanable = Callable[[], None]


class Cleaner:
    """Callbacks run once at the end of an isolated execution scope.

    ``clean_all`` runs the most recently added callback first and removes
    each callback as it runs, so components register again the next time
    they initialize.
    """

    def __init__(self) -> None:
        self._cleanables: list[Cleanable] = []
        self._lock = threading.Lock()

    def add(self, cleanable: Cleanable) -> None:
        with self._lock:
            self._cleanables.append(cleanable)

    def remove(self, cleanable: Cleanable) -> None:
        with self._lock:
            if cleanable in self._cleanables:
                self._cleanables.remove(cleanable)

    def clean_all(self) -> None:
        while True:
            with self._lock:
                if not self._cleanables:
                    return
                cleanable = self._cleanables.pop()
            try:
                cleanable()
            except Exception:
                logger.exception("Cleanup callback %r failed", cleanable)

    def __len__(self) -> int:
        return len(self._cleanables)
