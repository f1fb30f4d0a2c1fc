"""Configuration for the modelstore storage layer."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class StoreConfig:
    """Configuration for the datastore facade and its backends."""

    max_retry: int = 10
    default_db_path: str = "modelstore.db"
    sqlite_timeout_s: float = 5.0
    default_chunk_size: int | None = None
    meta_name_substitutions: tuple[tuple[str, str], ...] = (
        (".model.", ".meta."),
        (".shared.", ".server."),
    )
    meta_suffix: str = "Meta"
