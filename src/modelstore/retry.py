"""Bounded retry of remote store calls that fail with a transient timeout."""

from __future__ import annotations

import logging
from typing import Callable, TypeVar

from modelstore.errors import StoreTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_RETRY = 10


def call_with_retry(
    operation: Callable[[], T],
    *,
    max_retry: int = MAX_RETRY,
    description: str | None = None,
) -> T:
    """Run ``operation``, retrying it up to ``max_retry`` times on timeout.

    Retries are immediate.  When every retry times out, the first timeout
    is raised; the later ones are only logged.  Any other exception
    propagates without a retry.
    """
    try:
        return operation()
    except StoreTimeoutError as first:
        label = f"{description}: " if description else ""
        logger.warning("%s%s", label, first, exc_info=first)
        for i in range(max_retry):
            try:
                return operation()
            except StoreTimeoutError as e:
                logger.warning("%sRetry(%d): %s", label, i, e, exc_info=e)
        raise first
