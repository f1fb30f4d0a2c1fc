"""CLI helpers for opening the datastore selected on the command line."""

from __future__ import annotations

import os

from modelstore.config import StoreConfig
from modelstore.datastore import Datastore
from modelstore.sqlite import SqliteStore


def _config_from_env() -> StoreConfig:
    """Build store config from CLI environment defaults."""
    config = StoreConfig()
    max_retry = os.getenv("MODELSTORE_MAX_RETRY")
    if max_retry:
        config.max_retry = int(max_retry)
    timeout = os.getenv("MODELSTORE_SQLITE_TIMEOUT")
    if timeout:
        config.sqlite_timeout_s = float(timeout)
    return config


def database_exists(db_path: str) -> bool:
    return db_path == ":memory:" or os.path.exists(db_path)


def open_datastore() -> Datastore:
    """Open a datastore over the SQLite file chosen with ``--db``."""
    from modelstore.cli import state

    config = _config_from_env()
    return Datastore(SqliteStore(state.db, config), config=config)
