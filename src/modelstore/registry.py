"""Process-wide cache of model metadata with polymorphic resolution."""

from __future__ import annotations

import importlib
import logging
import threading
from typing import Any, Callable, Iterable

from modelstore.cleaner import Cleaner
from modelstore.config import StoreConfig
from modelstore.errors import InvalidArgumentError, ModelMetaNotFoundError, NullArgumentError
from modelstore.meta import ModelMeta
from modelstore.model import Model, qualified_name
from modelstore.record import CLASS_HIERARCHY_LIST_PROPERTY, Record

logger = logging.getLogger(__name__)

MetaFactory = Callable[[], ModelMeta[Any]]


def load_class(name: str) -> type[Any]:
    """Import ``package.module.Class`` (nested class names allowed)."""
    parts = name.split(".")
    for i in range(len(parts) - 1, 0, -1):
        module_name = ".".join(parts[:i])
        try:
            obj: Any = importlib.import_module(module_name)
        except ImportError:
            continue
        try:
            for attr in parts[i:]:
                obj = getattr(obj, attr)
        except AttributeError:
            break
        if isinstance(obj, type):
            return obj
        break
    raise ImportError(f"Cannot load class {name!r}")


class ModelMetaRegistry:
    """Resolve and cache one ModelMeta per model type.

    Descriptors come from an explicit ``register`` call or, failing that,
    from the naming convention: ``app.model.Person`` is described by
    ``app.meta.PersonMeta``.  Concurrent first lookups may each build a
    descriptor; the first one inserted is the one every caller gets.
    """

    def __init__(self, config: StoreConfig | None = None, cleaner: Cleaner | None = None) -> None:
        self.config = config or StoreConfig()
        self.cleaner = cleaner
        self._cache: dict[str, ModelMeta[Any]] = {}
        self._factories: dict[str, MetaFactory] = {}
        self._initialized = False
        self._init_lock = threading.Lock()

    def _initialize(self) -> None:
        with self._init_lock:
            if self._initialized:
                return
            if self.cleaner is not None:
                self.cleaner.add(self.reset)
            self._initialized = True

    @property
    def initialized(self) -> bool:
        return self._initialized

    def register(
        self,
        model_class: type[Model],
        factory: MetaFactory | type[ModelMeta[Any]] | None = None,
    ) -> None:
        """Bind a descriptor factory to a model type."""
        if model_class is None:
            raise NullArgumentError("model_class")
        if factory is None:
            self._factories[qualified_name(model_class)] = lambda: ModelMeta(model_class)
        else:
            self._factories[qualified_name(model_class)] = factory

    def meta_class_name(self, model_class: type[Any]) -> str:
        """Name of the descriptor class the naming convention points at."""
        name = qualified_name(model_class)
        for old, new in self.config.meta_name_substitutions:
            name = name.replace(old, new)
        return name + self.config.meta_suffix

    def create_meta(self, model_class: type[Any]) -> ModelMeta[Any]:
        """Build a fresh descriptor without touching the cache."""
        model_name = qualified_name(model_class)
        factory = self._factories.get(model_name)
        if factory is not None:
            return factory()
        meta_name = self.meta_class_name(model_class)
        try:
            meta_class = load_class(meta_name)
            meta = meta_class()
        except Exception as e:
            raise ModelMetaNotFoundError(model_name, meta_name) from e
        if not isinstance(meta, ModelMeta):
            raise ModelMetaNotFoundError(model_name, meta_name)
        return meta

    def resolve(self, model_class: type[Any]) -> ModelMeta[Any]:
        """Return the registered descriptor for ``model_class``."""
        if model_class is None:
            raise NullArgumentError("model_class")
        if not self._initialized:
            self._initialize()
        name = qualified_name(model_class)
        meta = self._cache.get(name)
        if meta is not None:
            return meta
        meta = self.create_meta(model_class)
        logger.debug("Created metadata %r for %s", meta, name)
        return self._cache.setdefault(name, meta)

    def resolve_polymorphic(self, base_meta: ModelMeta[Any], record: Record) -> ModelMeta[Any]:
        """Return the descriptor of the most-derived type stored in ``record``."""
        if base_meta is None:
            raise NullArgumentError("base_meta")
        if record is None:
            raise NullArgumentError("record")
        hierarchy = record.get_property(CLASS_HIERARCHY_LIST_PROPERTY)
        if not hierarchy:
            return base_meta
        leaf_name = hierarchy[-1]
        if leaf_name == base_meta.model_name:
            return base_meta
        try:
            leaf_class = load_class(leaf_name)
        except ImportError as e:
            raise ModelMetaNotFoundError(leaf_name) from e
        if not issubclass(leaf_class, base_meta.model_class):
            raise InvalidArgumentError(
                f"The model class({base_meta.model_name}) is not assignable from "
                f"entity class({leaf_name})."
            )
        return self.resolve(leaf_class)

    def resolve_all(self, objects: Iterable[Any]) -> list[ModelMeta[Any] | None]:
        """Descriptors parallel to ``objects``; None marks a raw Record."""
        if objects is None:
            raise NullArgumentError("objects")
        metas: list[ModelMeta[Any] | None] = []
        for obj in objects:
            if obj is None:
                raise NullArgumentError("objects", "The element of the objects must not be None.")
            metas.append(None if isinstance(obj, Record) else self.resolve(type(obj)))
        return metas

    def is_cached(self, model_class: type[Any]) -> bool:
        return qualified_name(model_class) in self._cache

    def reset(self) -> None:
        """Drop every cached descriptor; the next lookup repopulates lazily."""
        with self._init_lock:
            self._cache.clear()
            self._initialized = False

    def __len__(self) -> int:
        return len(self._cache)
