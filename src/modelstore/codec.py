"""Length-prefixed binary encodings for records and opaque attribute values.

A record is encoded as::

    b"MSR1" | key | u32 property count | property*

    key      := u16 element count | (str kind | u64 id | u8 has_name | [str name])*
    property := str name | u8 flags | value
    value    := u8 tag | payload
    str      := u32 byte length | utf-8 bytes

All integers are big-endian.
"""

from __future__ import annotations

import pickle
import struct
from datetime import datetime
from typing import Any

from modelstore.errors import ConversionError, InvalidArgumentError, NullArgumentError
from modelstore.key import Key
from modelstore.record import Blob, Record, ShortBlob, Text

MAGIC = b"MSR1"

_FLAG_UNINDEXED = 0x01

_U8 = struct.Struct(">B")
_U16 = struct.Struct(">H")
_U32 = struct.Struct(">I")
_U64 = struct.Struct(">Q")
_I64 = struct.Struct(">q")
_F64 = struct.Struct(">d")


def _pack_bytes(buf: bytearray, data: bytes) -> None:
    buf += _U32.pack(len(data))
    buf += data


def _pack_str(buf: bytearray, text: str) -> None:
    _pack_bytes(buf, text.encode("utf-8"))


def _pack_key(buf: bytearray, key: Key) -> None:
    path = key.path()
    buf += _U16.pack(len(path))
    for element in path:
        if element.id >= 2**64:
            raise ConversionError(f"Key id {element.id} does not fit in 64 bits", value=key)
        _pack_str(buf, element.kind)
        buf += _U64.pack(element.id)
        if element.name is None:
            buf += _U8.pack(0)
        else:
            buf += _U8.pack(1)
            _pack_str(buf, element.name)


def _pack_value(buf: bytearray, value: Any) -> None:
    # Order matters: bool is an int, Text is a str, and the blobs are bytes.
    if value is None:
        buf += b"N"
    elif isinstance(value, bool):
        buf += b"?" + _U8.pack(1 if value else 0)
    elif isinstance(value, int):
        if -(2**63) <= value < 2**63:
            buf += b"i" + _I64.pack(value)
        else:
            buf += b"I"
            _pack_str(buf, str(value))
    elif isinstance(value, float):
        buf += b"f" + _F64.pack(value)
    elif isinstance(value, Text):
        buf += b"T"
        _pack_str(buf, str(value))
    elif isinstance(value, str):
        buf += b"s"
        _pack_str(buf, value)
    elif isinstance(value, Blob):
        buf += b"B"
        _pack_bytes(buf, bytes(value))
    elif isinstance(value, (bytes, bytearray)):
        buf += b"b"
        _pack_bytes(buf, bytes(value))
    elif isinstance(value, datetime):
        buf += b"d"
        _pack_str(buf, value.isoformat())
    elif isinstance(value, Key):
        buf += b"k"
        _pack_key(buf, value)
    elif isinstance(value, (list, tuple)):
        buf += b"l" + _U32.pack(len(value))
        for item in value:
            _pack_value(buf, item)
    else:
        raise ConversionError(
            f"Cannot encode property value of type {type(value).__name__}", value=value
        )


class _Reader:
    def __init__(self, data: bytes) -> None:
        self.data = data
        self.pos = 0

    def take(self, n: int) -> bytes:
        end = self.pos + n
        if end > len(self.data):
            raise ConversionError(
                f"Truncated record data: wanted {n} bytes at offset {self.pos}"
            )
        chunk = self.data[self.pos:end]
        self.pos = end
        return chunk

    def unpack(self, fmt: struct.Struct) -> Any:
        return fmt.unpack(self.take(fmt.size))[0]

    def read_bytes(self) -> bytes:
        return self.take(self.unpack(_U32))

    def read_str(self) -> str:
        try:
            return self.read_bytes().decode("utf-8")
        except UnicodeDecodeError as e:
            raise ConversionError(f"Invalid utf-8 in record data: {e}") from e

    def read_key(self) -> Key:
        count = self.unpack(_U16)
        if count == 0:
            raise ConversionError("Encoded key has no path elements")
        key: Key | None = None
        for _ in range(count):
            kind = self.read_str()
            id_ = self.unpack(_U64)
            name = self.read_str() if self.unpack(_U8) else None
            try:
                key = Key(kind, id=id_, name=name, parent=key)
            except InvalidArgumentError as e:
                raise ConversionError(f"Invalid encoded key: {e}") from e
        assert key is not None
        return key

    def read_value(self) -> Any:
        tag = self.take(1)
        if tag == b"N":
            return None
        if tag == b"?":
            return bool(self.unpack(_U8))
        if tag == b"i":
            return self.unpack(_I64)
        if tag == b"I":
            text = self.read_str()
            try:
                return int(text)
            except ValueError as e:
                raise ConversionError(f"Invalid encoded integer {text!r}") from e
        if tag == b"f":
            return self.unpack(_F64)
        if tag == b"s":
            return self.read_str()
        if tag == b"T":
            return Text(self.read_str())
        if tag == b"b":
            return ShortBlob(self.read_bytes())
        if tag == b"B":
            return Blob(self.read_bytes())
        if tag == b"d":
            text = self.read_str()
            try:
                return datetime.fromisoformat(text)
            except ValueError as e:
                raise ConversionError(f"Invalid encoded datetime {text!r}") from e
        if tag == b"k":
            return self.read_key()
        if tag == b"l":
            return [self.read_value() for _ in range(self.unpack(_U32))]
        raise ConversionError(f"Unknown value tag {tag!r} at offset {self.pos - 1}")


def record_to_bytes(record: Record | None) -> bytes:
    """Encode a record to its binary form."""
    if record is None:
        raise NullArgumentError("record")
    buf = bytearray(MAGIC)
    _pack_key(buf, record.key)
    properties = record.properties
    buf += _U32.pack(len(properties))
    for name, value in properties.items():
        _pack_str(buf, name)
        buf += _U8.pack(_FLAG_UNINDEXED if record.is_unindexed(name) else 0)
        _pack_value(buf, value)
    return bytes(buf)


def bytes_to_record(data: bytes | None) -> Record:
    """Decode a record produced by :func:`record_to_bytes`."""
    if data is None:
        raise NullArgumentError("data")
    reader = _Reader(bytes(data))
    if reader.take(len(MAGIC)) != MAGIC:
        raise ConversionError("Data is not an encoded record (bad magic)")
    record = Record(reader.read_key())
    for _ in range(reader.unpack(_U32)):
        name = reader.read_str()
        if not name:
            raise ConversionError("Encoded property has an empty name")
        flags = reader.unpack(_U8)
        value = reader.read_value()
        if flags & _FLAG_UNINDEXED:
            record.set_unindexed_property(name, value)
        else:
            record.set_property(name, value)
    if reader.pos != len(reader.data):
        raise ConversionError(f"{len(reader.data) - reader.pos} trailing bytes after record")
    return record


def serialize_object(obj: Any) -> bytes:
    """Serialize an opaque attribute value to a length-prefixed payload."""
    try:
        payload = pickle.dumps(obj, protocol=pickle.HIGHEST_PROTOCOL)
    except (pickle.PicklingError, TypeError, AttributeError) as e:
        raise ConversionError(f"Cannot serialize {type(obj).__name__}: {e}", value=obj) from e
    return _U32.pack(len(payload)) + payload


def deserialize_object(data: bytes) -> Any:
    """Inverse of :func:`serialize_object`."""
    reader = _Reader(bytes(data))
    payload = reader.read_bytes()
    if reader.pos != len(reader.data):
        raise ConversionError("Trailing bytes after serialized object")
    try:
        return pickle.loads(payload)  # noqa: S301
    except (pickle.UnpicklingError, EOFError, AttributeError, ImportError) as e:
        raise ConversionError(f"Cannot deserialize object: {e}") from e


def write_records(stream: Any, records: list[Record]) -> int:
    """Write records to a binary stream, each prefixed by its length."""
    count = 0
    for record in records:
        encoded = record_to_bytes(record)
        stream.write(_U32.pack(len(encoded)))
        stream.write(encoded)
        count += 1
    return count


def read_records(stream: Any) -> list[Record]:
    """Read records written by :func:`write_records`."""
    records: list[Record] = []
    while True:
        header = stream.read(_U32.size)
        if not header:
            break
        if len(header) != _U32.size:
            raise ConversionError("Truncated record length prefix")
        size = _U32.unpack(header)[0]
        data = stream.read(size)
        if len(data) != size:
            raise ConversionError("Truncated record payload")
        records.append(bytes_to_record(data))
    return records
