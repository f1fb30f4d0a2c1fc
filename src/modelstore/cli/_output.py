"""Output formatting helpers for the CLI."""

from __future__ import annotations

import json
import sys
from datetime import datetime
from typing import Any

from modelstore.key import Key
from modelstore.record import Record


def to_plain(value: Any) -> Any:
    """Turn a stored property value into something ``json.dumps`` accepts."""
    if isinstance(value, list):
        return [to_plain(v) for v in value]
    if isinstance(value, Key):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).hex()
    return value


def record_to_dict(record: Record) -> dict[str, Any]:
    return {
        "key": str(record.key),
        "properties": {name: to_plain(v) for name, v in sorted(record.properties.items())},
    }


def print_table(headers: list[str], rows: list[list[Any]]) -> None:
    """Print rows as left-aligned text columns under a header line."""
    if not rows:
        return
    cells = [headers] + [[str(v) for v in row] for row in rows]
    widths = [max(len(row[i]) for row in cells) for i in range(len(headers))]
    for row in cells:
        print("  ".join(val.ljust(w) for val, w in zip(row, widths)).rstrip())


def print_object(data: dict[str, Any], *, json_mode: bool = False) -> None:
    """Print a flat summary object as JSON or ``name: value`` lines."""
    if json_mode:
        print(json.dumps(data, indent=2, default=str))
        return
    for name, value in data.items():
        print(f"{name}: {value}")


def print_records(records: list[Record], *, json_mode: bool = False) -> None:
    """Print records as a JSON array or one key line plus indented properties each."""
    if json_mode:
        print(json.dumps([record_to_dict(r) for r in records], indent=2, default=str))
        return
    for record in records:
        print(str(record.key))
        for name, value in sorted(record.properties.items()):
            print(f"  {name}: {to_plain(value)}")


def print_error(msg: str) -> None:
    """Print an error message to stderr."""
    print(f"Error: {msg}", file=sys.stderr)
