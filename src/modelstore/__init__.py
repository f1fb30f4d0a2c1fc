"""modelstore: typed, retrying access to a hierarchical key/value store."""

__version__ = "0.1.0"

from modelstore.cleaner import Cleaner
from modelstore.config import StoreConfig
from modelstore.criteria import FilterCriterion, SortCriterion, filter_in_memory, sort_in_memory
from modelstore.datastore import Datastore
from modelstore.errors import (
    ConversionError,
    EntityNotFoundError,
    IllegalStateError,
    InvalidArgumentError,
    ModelMetaNotFoundError,
    ModelStoreError,
    NullArgumentError,
    StorageBackendError,
    StoreKeyNotFoundError,
    StoreTimeoutError,
    TooManyResultsError,
)
from modelstore.key import Key, KeyRange, PathElement, Reference, key_is_incomplete, reference_to_key
from modelstore.memory import MemoryStore
from modelstore.meta import AttributeMeta, ModelMeta
from modelstore.model import Field, Model
from modelstore.query import ModelQuery, RecordQuery
from modelstore.ref import InverseModelRef, ModelRef
from modelstore.record import (
    CLASS_HIERARCHY_LIST_PROPERTY,
    VERSION_PROPERTY,
    Blob,
    Record,
    ShortBlob,
    Text,
)
from modelstore.registry import ModelMetaRegistry
from modelstore.retry import call_with_retry
from modelstore.sqlite import SqliteStore
from modelstore.store import FetchOptions, QuerySpec, RemoteStore, Transaction

__all__ = [
    "__version__",
    "Model",
    "Field",
    "ModelMeta",
    "AttributeMeta",
    "ModelMetaRegistry",
    "Cleaner",
    "Datastore",
    "ModelQuery",
    "RecordQuery",
    "ModelRef",
    "InverseModelRef",
    "FilterCriterion",
    "SortCriterion",
    "filter_in_memory",
    "sort_in_memory",
    "Key",
    "KeyRange",
    "PathElement",
    "Reference",
    "key_is_incomplete",
    "reference_to_key",
    "Record",
    "Text",
    "Blob",
    "ShortBlob",
    "CLASS_HIERARCHY_LIST_PROPERTY",
    "VERSION_PROPERTY",
    "RemoteStore",
    "Transaction",
    "QuerySpec",
    "FetchOptions",
    "MemoryStore",
    "SqliteStore",
    "StoreConfig",
    "call_with_retry",
    "ModelStoreError",
    "InvalidArgumentError",
    "NullArgumentError",
    "IllegalStateError",
    "StoreTimeoutError",
    "StoreKeyNotFoundError",
    "EntityNotFoundError",
    "TooManyResultsError",
    "ModelMetaNotFoundError",
    "ConversionError",
    "StorageBackendError",
]
