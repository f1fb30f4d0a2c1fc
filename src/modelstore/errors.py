"""Structured error types for modelstore."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from modelstore.key import Key


class ModelStoreError(Exception):
    """Base error for all modelstore errors."""


class InvalidArgumentError(ModelStoreError, ValueError):
    """Raised when a parameter is semantically invalid."""


class NullArgumentError(InvalidArgumentError):
    """Raised when a required parameter is missing."""

    def __init__(self, parameter: str, message: str | None = None) -> None:
        self.parameter = parameter
        super().__init__(message or f"The {parameter} parameter must not be None.")


class IllegalStateError(ModelStoreError, RuntimeError):
    """Raised when an operation is invoked on an object in the wrong state."""


class StoreTimeoutError(ModelStoreError):
    """Raised by a remote store when a call ran out of time.

    This is the only failure the retry executor treats as transient.
    """


class StoreKeyNotFoundError(ModelStoreError, KeyError):
    """Raised by a remote store when a single-key lookup misses."""

    def __init__(self, key: Key) -> None:
        self.key = key
        super().__init__(f"No record found for key {key}")

    def __str__(self) -> str:
        return str(self.args[0])


class EntityNotFoundError(ModelStoreError):
    """Raised when no record matches the key passed to a get."""

    def __init__(self, key: Key, cause: BaseException | None = None) -> None:
        self.key = key
        self.cause = cause
        super().__init__(f"No entity was found matching the key({key}).")


class TooManyResultsError(ModelStoreError):
    """Raised when a single-result query matches more than one record."""

    def __init__(self, kind: str | None = None) -> None:
        self.kind = kind
        detail = f" of kind {kind}" if kind else ""
        super().__init__(f"The query{detail} returned more than one result.")


class ModelMetaNotFoundError(ModelStoreError):
    """Raised when the metadata descriptor of a model cannot be located."""

    def __init__(self, model_name: str, meta_name: str | None = None) -> None:
        self.model_name = model_name
        self.meta_name = meta_name
        where = f" (looked for {meta_name})" if meta_name else ""
        super().__init__(f"The meta data of the model({model_name}) is not found{where}.")


class ConversionError(ModelStoreError):
    """Raised when a value cannot be converted between model and storage forms."""

    def __init__(self, message: str, *, value: Any = None) -> None:
        self.value = value
        super().__init__(message)


class StorageBackendError(ModelStoreError):
    """Raised when backend storage operations fail permanently."""

    def __init__(self, operation: str, detail: str) -> None:
        self.operation = operation
        self.detail = detail
        super().__init__(f"Storage backend error during {operation}: {detail}")
