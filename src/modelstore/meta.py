"""Model metadata descriptors: kind, attributes and model/record mapping."""

from __future__ import annotations

import enum
import types
import typing
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any, ClassVar, Generic, TypeVar, Union

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from modelstore.codec import deserialize_object, serialize_object
from modelstore.errors import ConversionError, InvalidArgumentError, NullArgumentError
from modelstore.key import Key
from modelstore.model import Field, Model, qualified_name
from modelstore.record import (
    CLASS_HIERARCHY_LIST_PROPERTY,
    UNINDEXED_TYPES,
    VERSION_PROPERTY,
    Blob,
    Record,
    ShortBlob,
    Text,
)

if TYPE_CHECKING:
    from modelstore.criteria import FilterCriterion, SortCriterion

M = TypeVar("M", bound=Model)

NULL_EQ_ERROR = "Use .is_null() instead of == None in modelstore criteria."
NULL_NE_ERROR = "Use .is_not_null() instead of != None in modelstore criteria."

_NATIVE_TYPES = (bool, int, float, str, datetime, bytes, Key)
_SCALAR_TYPES = (bool, int, float, str, datetime)
_CONTAINER_ORIGINS = (list, set, frozenset, tuple)


def canonical_decimal(value: Decimal) -> str:
    """Storage string of a decimal; numerically equal decimals share one form."""
    if value.is_finite() and value.is_zero():
        return "0"
    return format(value.normalize(), "f")


def _unwrap_optional(annotation: Any) -> Any:
    """Return T for ``T | None`` / ``Optional[T]``, else the annotation itself."""
    origin = typing.get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def _storage_kind(tp: Any, *, text: bool = False) -> str:
    """Classify a declared attribute type by how it is stored."""
    if tp is Any:
        return "native"
    origin = typing.get_origin(tp)
    if origin in _CONTAINER_ORIGINS:
        return "list"
    if not isinstance(tp, type):
        return "object"
    if issubclass(tp, Key):
        return "key"
    if issubclass(tp, enum.Enum):
        return "enum"
    if issubclass(tp, Decimal):
        return "decimal"
    if issubclass(tp, str):
        return "text" if text else "scalar"
    if issubclass(tp, (bytes, bytearray)):
        return "bytes"
    if issubclass(tp, _SCALAR_TYPES):
        return "scalar"
    return "object"


class AttributeMeta:
    """Metadata for one model attribute and its storage property.

    Comparison operators build filter criteria, so ``meta.age >= 18`` is a
    criterion rather than a bool.  Use ``is`` to compare two AttributeMeta
    objects.
    """

    def __init__(self, model_meta: ModelMeta[Any], field: Field[Any]) -> None:
        self.model_meta = model_meta
        self.name = field.name
        self.attribute_type = field.annotation if field.annotation is not None else Any
        self.primary_key = field.primary_key
        self.version = field.version
        self.text = field.text
        self.blob = field.blob
        if field.property_name:
            self.property_name = field.property_name
        elif field.version:
            self.property_name = VERSION_PROPERTY
        else:
            self.property_name = field.name

        self._value_type = _unwrap_optional(self.attribute_type)
        self.storage_kind = _storage_kind(self._value_type, text=field.text)
        self._item_type: Any = Any
        self._item_kind = "native"
        if self.storage_kind == "list":
            args = typing.get_args(self._value_type)
            self._item_type = _unwrap_optional(args[0]) if args else Any
            self._item_kind = _storage_kind(self._item_type)
            if self._item_kind in ("list", "text"):
                self._item_kind = "object"
        self._adapter: TypeAdapter[Any] | None = None

    @property
    def model_class(self) -> type[Any]:
        return self.model_meta.model_class

    @property
    def item_kind(self) -> str:
        """Storage kind of the elements of a multi-valued attribute."""
        return self._item_kind

    @property
    def value_type(self) -> Any:
        """The declared type with any Optional wrapper removed."""
        return self._value_type

    def _coerce(self, value: Any, tp: Any) -> Any:
        if tp is Any:
            return value
        if self._adapter is None or tp is not self._value_type:
            adapter: TypeAdapter[Any] = TypeAdapter(tp)
            if tp is self._value_type:
                self._adapter = adapter
        else:
            adapter = self._adapter
        try:
            return adapter.validate_python(value)
        except PydanticValidationError as e:
            raise ConversionError(
                f"Cannot convert {value!r} to {tp} for attribute "
                f"{self.model_meta.model_name}.{self.name}: {e.errors()[0]['msg']}",
                value=value,
            ) from e

    # -- model -> storage -------------------------------------------------

    def to_storage(self, value: Any) -> Any:
        """Convert a model value to its storage representation."""
        if value is None:
            return None
        if self.storage_kind == "list":
            return [self._item_to_storage(v) for v in value]
        return self._value_to_storage(value, self.storage_kind, self._value_type)

    def _item_to_storage(self, value: Any) -> Any:
        if value is None:
            return None
        return self._value_to_storage(value, self._item_kind, self._item_type)

    def _value_to_storage(self, value: Any, kind: str, tp: Any) -> Any:
        if kind == "key":
            if not isinstance(value, Key):
                raise ConversionError(f"Attribute {self.name} expects a Key, got {value!r}")
            return value
        if kind == "scalar":
            return self._coerce(value, tp)
        if kind == "text":
            return Text(value)
        if kind == "decimal":
            if not isinstance(value, Decimal):
                value = self._coerce(value, Decimal)
            return canonical_decimal(value)
        if kind == "enum":
            if not isinstance(value, enum.Enum):
                value = self._coerce(value, tp)
            return value.name
        if kind == "bytes":
            return Blob(value) if self.blob else ShortBlob(value)
        if kind == "native":
            if isinstance(value, list):
                return [self._value_to_storage(v, "native", Any) for v in value]
            if value is not None and not isinstance(value, _NATIVE_TYPES):
                raise ConversionError(
                    f"Attribute {self.name} holds {type(value).__name__}, "
                    "which is not a storable value; declare its type to store it as an object",
                    value=value,
                )
            return value
        payload = serialize_object(value)
        return Blob(payload) if self.blob else ShortBlob(payload)

    # -- storage -> model -------------------------------------------------

    def from_storage(self, value: Any) -> Any:
        """Convert a stored property value back to the declared type."""
        if value is None:
            return None
        if self.storage_kind == "list":
            items = value if isinstance(value, list) else [value]
            converted = [self._item_from_storage(v) for v in items]
            origin = typing.get_origin(self._value_type)
            return converted if origin is list else origin(converted)
        return self._value_from_storage(value, self.storage_kind, self._value_type)

    def _item_from_storage(self, value: Any) -> Any:
        if value is None:
            return None
        return self._value_from_storage(value, self._item_kind, self._item_type)

    def _value_from_storage(self, value: Any, kind: str, tp: Any) -> Any:
        if kind in ("key", "native"):
            return value
        if kind == "scalar":
            return self._coerce(value, tp)
        if kind == "text":
            return str(value)
        if kind == "decimal":
            try:
                return Decimal(str(value))
            except InvalidOperation as e:
                raise ConversionError(f"Cannot convert {value!r} to Decimal", value=value) from e
        if kind == "enum":
            try:
                return tp[value]
            except KeyError as e:
                raise ConversionError(f"{value!r} is not a member of {tp.__name__}", value=value) from e
        if kind == "bytes":
            return bytes(value)
        if not isinstance(value, (bytes, bytearray)):
            raise ConversionError(
                f"Attribute {self.name} expects a serialized object, got {type(value).__name__}",
                value=value,
            )
        return deserialize_object(bytes(value))

    # -- criteria ---------------------------------------------------------

    def _filter(self, op: str, value: Any = None) -> FilterCriterion:
        from modelstore.criteria import FilterCriterion

        return FilterCriterion(self, op, value)

    def __eq__(self, other: object) -> Any:  # type: ignore[override]
        if isinstance(other, AttributeMeta):
            return self is other
        if other is None:
            raise TypeError(NULL_EQ_ERROR)
        return self._filter("==", other)

    def __ne__(self, other: object) -> Any:  # type: ignore[override]
        if isinstance(other, AttributeMeta):
            return self is not other
        if other is None:
            raise TypeError(NULL_NE_ERROR)
        return self._filter("!=", other)

    __hash__ = object.__hash__

    def __gt__(self, other: Any) -> FilterCriterion:
        return self._filter(">", other)

    def __ge__(self, other: Any) -> FilterCriterion:
        return self._filter(">=", other)

    def __lt__(self, other: Any) -> FilterCriterion:
        return self._filter("<", other)

    def __le__(self, other: Any) -> FilterCriterion:
        return self._filter("<=", other)

    def in_(self, values: list[Any]) -> FilterCriterion:
        if values is None:
            raise NullArgumentError("values")
        return self._filter("IN", list(values))

    def is_null(self) -> FilterCriterion:
        return self._filter("==", None)

    def is_not_null(self) -> FilterCriterion:
        return self._filter("IS_NOT_NULL")

    def startswith(self, prefix: str) -> FilterCriterion:
        return self._filter("STARTSWITH", prefix)

    def endswith(self, suffix: str) -> FilterCriterion:
        return self._filter("ENDSWITH", suffix)

    def contains(self, substring: str) -> FilterCriterion:
        return self._filter("CONTAINS", substring)

    @property
    def asc(self) -> SortCriterion:
        from modelstore.criteria import SortCriterion

        return SortCriterion(self)

    @property
    def desc(self) -> SortCriterion:
        from modelstore.criteria import SortCriterion

        return SortCriterion(self, descending=True)

    def __repr__(self) -> str:
        return f"AttributeMeta({self.model_meta.model_class.__name__}.{self.name})"


class ModelMeta(Generic[M]):
    """Descriptor for one model type.

    Subclasses bind a model by setting ``model_class`` (and optionally
    ``kind``); the registry locates them by naming convention or explicit
    registration.  Attributes are reachable by their Python name::

        meta = PersonMeta()
        q = datastore.query(Person).filter(meta.age >= 18).sort(meta.name.asc)
    """

    model_class: ClassVar[type[Any]]
    kind: str

    def __init__(self, model_class: type[M] | None = None) -> None:
        if model_class is None:
            model_class = getattr(type(self), "model_class", None)
        if model_class is None:
            raise NullArgumentError("model_class")
        if not (isinstance(model_class, type) and issubclass(model_class, Model)):
            raise InvalidArgumentError(f"{model_class!r} is not a Model subclass")
        self.model_class = model_class
        self.kind = getattr(type(self), "kind", None) or model_class.__kind__
        self.model_name = qualified_name(model_class)

        self.attributes: list[AttributeMeta] = []
        self._attributes_by_name: dict[str, AttributeMeta] = {}
        for f in model_class._field_definitions.values():
            attr = AttributeMeta(self, f)
            self.attributes.append(attr)
            self._attributes_by_name[attr.name] = attr
        self.key_attribute = self._attributes_by_name[model_class._primary_key_field]
        self.version_attribute = (
            self._attributes_by_name[model_class._version_field]
            if model_class._version_field
            else None
        )
        if model_class.__model_root__ is model_class:
            self.class_hierarchy_list: list[str] = []
        else:
            self.class_hierarchy_list = [qualified_name(c) for c in model_class.class_hierarchy()]

    def __getattr__(self, name: str) -> AttributeMeta:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self.__dict__["_attributes_by_name"][name]
        except KeyError:
            raise AttributeError(
                f"{type(self).__name__} has no attribute '{name}'"
            ) from None

    def attribute(self, name: str) -> AttributeMeta:
        """Look up an attribute by Python name or storage property name."""
        attr = self._attributes_by_name.get(name)
        if attr is not None:
            return attr
        for a in self.attributes:
            if a.property_name == name:
                return a
        raise InvalidArgumentError(f"{self.model_name} has no attribute '{name}'")

    @property
    def is_polymorphic(self) -> bool:
        return bool(self.class_hierarchy_list)

    def get_key(self, model: M) -> Key | None:
        return getattr(model, self.key_attribute.name)

    def set_key(self, model: M, key: Key) -> None:
        setattr(model, self.key_attribute.name, key)

    def get_version(self, model: M) -> int:
        if self.version_attribute is None:
            return 0
        return getattr(model, self.version_attribute.name) or 0

    def increment_version(self, model: M) -> None:
        if self.version_attribute is not None:
            setattr(model, self.version_attribute.name, self.get_version(model) + 1)

    def model_to_record(self, model: M) -> Record:
        if not isinstance(model, self.model_class):
            raise InvalidArgumentError(
                f"{type(model).__name__} is not an instance of {self.model_name}"
            )
        key = self.get_key(model) or Key.incomplete(self.kind)
        if key.kind != self.kind:
            raise InvalidArgumentError(
                f"The kind({key.kind}) of the key does not match the kind({self.kind}) of the model"
            )
        record = Record(key)
        for attr in self.attributes:
            if attr.primary_key:
                continue
            value = attr.to_storage(getattr(model, attr.name))
            if isinstance(value, UNINDEXED_TYPES):
                record.set_unindexed_property(attr.property_name, value)
            else:
                record.set_property(attr.property_name, value)
        if self.class_hierarchy_list:
            record.set_property(CLASS_HIERARCHY_LIST_PROPERTY, list(self.class_hierarchy_list))
        return record

    def record_to_model(self, record: Record) -> M:
        if record.kind != self.kind:
            raise InvalidArgumentError(
                f"The kind({record.kind}) of the record does not match the kind({self.kind}) "
                "of the model"
            )
        model = self.model_class.blank()
        for attr in self.attributes:
            if attr.primary_key or not record.has_property(attr.property_name):
                continue
            setattr(model, attr.name, attr.from_storage(record.get_property(attr.property_name)))
        self.set_key(model, record.key)
        return model

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind!r}, model={self.model_name})"
