"""Model and Field types: the typed application objects stored as records."""

from __future__ import annotations

import inspect
import sys
from typing import Any, ClassVar, Generic, TypeVar, get_args

from pydantic import BaseModel, ConfigDict, create_model

T = TypeVar("T")

_SENTINEL = object()


class Field(Generic[T]):
    """Attribute descriptor for Model schemas."""

    def __init__(
        self,
        default: Any = _SENTINEL,
        *,
        default_factory: Any | None = None,
        primary_key: bool = False,
        version: bool = False,
        text: bool = False,
        blob: bool = False,
        property_name: str | None = None,
    ) -> None:
        self.default = default
        self.default_factory = default_factory
        self.primary_key = primary_key
        self.version = version
        self.text = text
        self.blob = blob
        self.property_name = property_name
        self.name: str = ""
        self.annotation: Any = None

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __get__(self, obj: Any, objtype: type | None = None) -> Any:
        if obj is None:
            return self
        return obj.__dict__.get(self.name)

    def __set__(self, obj: Any, value: Any) -> None:
        obj.__dict__[self.name] = value

    def has_default(self) -> bool:
        return self.default is not _SENTINEL or self.default_factory is not None

    def get_default(self) -> Any:
        if self.default_factory is not None:
            return self.default_factory()
        if self.default is not _SENTINEL:
            return self.default
        raise ValueError(f"Field '{self.name}' has no default")

    def __repr__(self) -> str:
        return f"Field(name={self.name!r}, annotation={self.annotation!r})"


def _resolve_annotation(ann: Any, module_name: str) -> Any:
    """Resolve string annotations and extract the inner type from Field[T]."""
    if isinstance(ann, str):
        module = sys.modules.get(module_name, None)
        ns = vars(module) if module else {}
        try:
            ann = eval(ann, ns)  # noqa: S307
        except Exception:
            return Any

    origin = getattr(ann, "__origin__", None)
    if origin is Field:
        args = get_args(ann)
        return args[0] if args else Any
    return ann


def _collect_fields(cls: type) -> dict[str, Field[Any]]:
    """Collect Field descriptors declared directly on ``cls``."""
    fields: dict[str, Field[Any]] = {}

    annotations = inspect.get_annotations(cls)
    for name, ann in annotations.items():
        origin = getattr(ann, "__origin__", None)
        is_field_ann = origin is Field or (isinstance(ann, str) and ann.startswith("Field"))
        if not is_field_ann:
            continue

        val = cls.__dict__.get(name, _SENTINEL)
        field_desc: Field[Any]
        if isinstance(val, Field):
            field_desc = val
        elif val is None:
            # `email: Field[str | None] = None` shorthand
            field_desc = Field(default=None)
        elif val is _SENTINEL:
            field_desc = Field()
        else:
            field_desc = Field(default=val)

        field_desc.name = name
        field_desc.annotation = _resolve_annotation(ann, cls.__module__)
        fields[name] = field_desc

        if not isinstance(cls.__dict__.get(name), Field):
            setattr(cls, name, field_desc)

    return fields


def _build_pydantic_model(model_name: str, fields: dict[str, Field[Any]]) -> type[BaseModel]:
    """Build a Pydantic model from Field definitions."""
    pydantic_fields: dict[str, Any] = {}
    for name, f in fields.items():
        ann = f.annotation if f.annotation is not None else Any
        if f.default_factory is not None:
            from pydantic import Field as PydanticField

            pydantic_fields[name] = (ann, PydanticField(default_factory=f.default_factory))
        elif f.default is not _SENTINEL:
            pydantic_fields[name] = (ann, f.default)
        elif f.primary_key:
            pydantic_fields[name] = (ann, None)
        else:
            pydantic_fields[name] = (ann, ...)

    return create_model(  # type: ignore[call-overload]
        model_name,
        __config__=ConfigDict(arbitrary_types_allowed=True),
        **pydantic_fields,
    )


def qualified_name(cls: type) -> str:
    """Return the fully-qualified name used to identify a model type."""
    return f"{cls.__module__}.{cls.__qualname__}"


class Model:
    """Base class for typed models with automatic validation.

    A model declares exactly one ``Field(primary_key=True)`` holding its
    :class:`~modelstore.key.Key` and at most one ``Field(version=True)``
    optimistic-concurrency counter.  Subclassing a concrete model makes a
    polymorphic model that shares the kind of its root.
    """

    __kind__: ClassVar[str]
    __model_fields__: ClassVar[tuple[str, ...]]
    __model_root__: ClassVar[type[Model]]
    _pydantic_model: ClassVar[type[BaseModel]]
    _field_definitions: ClassVar[dict[str, Field[Any]]]
    _primary_key_field: ClassVar[str]
    _version_field: ClassVar[str | None]

    def __init_subclass__(cls, kind: str | None = None, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)

        parents = [b for b in cls.__bases__ if issubclass(b, Model) and b is not Model]
        fields: dict[str, Field[Any]] = {}
        for base in parents:
            fields.update(base._field_definitions)
        fields.update(_collect_fields(cls))

        if parents:
            cls.__model_root__ = parents[0].__model_root__
            if kind is not None:
                raise TypeError(
                    f"Model '{cls.__name__}' inherits the kind of "
                    f"'{cls.__model_root__.__name__}' and cannot declare its own"
                )
            cls.__kind__ = cls.__model_root__.__kind__
        else:
            cls.__model_root__ = cls
            cls.__kind__ = kind or cls.__dict__.get("__kind__") or cls.__name__

        cls._field_definitions = fields
        cls.__model_fields__ = tuple(fields.keys())

        pk_fields = [n for n, f in fields.items() if f.primary_key]
        if len(pk_fields) != 1:
            raise TypeError(
                f"Model '{cls.__name__}' must define exactly one Field(primary_key=True), "
                f"found {pk_fields}"
            )
        cls._primary_key_field = pk_fields[0]

        version_fields = [n for n, f in fields.items() if f.version]
        if len(version_fields) > 1:
            raise TypeError(f"Model '{cls.__name__}' has multiple version fields: {version_fields}")
        cls._version_field = version_fields[0] if version_fields else None

        cls._pydantic_model = _build_pydantic_model(f"_{cls.__name__}Model", fields)

    def __init__(self, **data: Any) -> None:
        validated = self._pydantic_model(**data)
        for name in self.__model_fields__:
            setattr(self, name, getattr(validated, name))

    @classmethod
    def blank(cls) -> Any:
        """Create an instance holding field defaults, skipping validation."""
        obj = cls.__new__(cls)
        for name, f in cls._field_definitions.items():
            setattr(obj, name, f.get_default() if f.has_default() else None)
        return obj

    @classmethod
    def class_hierarchy(cls) -> list[type[Model]]:
        """Model classes from the root model down to this class."""
        chain = [c for c in reversed(cls.__mro__) if isinstance(c, type) and issubclass(c, Model)]
        return [c for c in chain if c is not Model]

    def model_dump(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in self.__model_fields__}

    @classmethod
    def model_validate(cls, data: dict[str, Any]) -> Any:
        return cls(**data)

    def __repr__(self) -> str:
        fields = ", ".join(f"{k}={getattr(self, k)!r}" for k in self.__model_fields__)
        return f"{self.__class__.__name__}({fields})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Model):
            return NotImplemented
        return type(self) is type(other) and self.model_dump() == other.model_dump()

    __hash__ = None  # type: ignore[assignment]
