"""CLI filter and sort token parsing."""

from __future__ import annotations

import json
from typing import Any

from modelstore.query import RecordQuery
from modelstore.store import ALL_OPS

# Map CLI operator tokens to store operator strings
_OP_MAP: dict[str, str] = {
    "eq": "==",
    "ne": "!=",
    "gt": ">",
    "gte": ">=",
    "lt": "<",
    "lte": "<=",
    "in": "IN",
    "not_null": "IS_NOT_NULL",
    "startswith": "STARTSWITH",
    "endswith": "ENDSWITH",
    "contains": "CONTAINS",
}
_OP_MAP.update({op: op for op in ALL_OPS})


def parse_cli_filters(triples: list[tuple[str, str, str]]) -> list[tuple[str, str, Any]]:
    """Parse CLI filter triples (NAME, OP, VALUE_JSON) into (name, op, value).

    Multiple filters are AND-combined.
    """
    filters: list[tuple[str, str, Any]] = []
    for name, op_token, value_json in triples:
        op = _OP_MAP.get(op_token)
        if op is None:
            raise ValueError(
                f"Unknown filter operator '{op_token}'. "
                f"Valid operators: {', '.join(sorted(k for k in _OP_MAP if k.islower()))}"
            )
        value: Any = None
        if op != "IS_NOT_NULL":
            try:
                value = json.loads(value_json)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON value for '{name}': {value_json}") from e
        if op == "IN" and not isinstance(value, list):
            raise ValueError(f"Operator 'in' needs a JSON array, got {value_json}")
        filters.append((name, op, value))
    return filters


def split_filter_args(filter_args: list[str] | None) -> list[tuple[str, str, str]]:
    """Group --filter values into triples.

    Each --filter value is either one "NAME OP VALUE_JSON" string or the
    values come as a flat sequence of NAME, OP, VALUE_JSON tokens.
    """
    if not filter_args:
        return []
    if all(len(arg.split(None, 2)) == 3 for arg in filter_args):
        return [tuple(arg.split(None, 2)) for arg in filter_args]  # type: ignore[misc]
    if len(filter_args) % 3 == 0:
        return [
            (filter_args[i], filter_args[i + 1], filter_args[i + 2])
            for i in range(0, len(filter_args), 3)
        ]
    raise ValueError(f"Invalid filter (expected 'NAME OP VALUE_JSON'): {' '.join(filter_args)}")


def parse_sort(token: str) -> tuple[str, bool]:
    """``-name`` sorts descending, ``name`` ascending."""
    if token.startswith("-"):
        return token[1:], True
    return token, False


def apply_to_query(
    query: RecordQuery, filter_args: list[str] | None, sort_args: list[str] | None = None
) -> RecordQuery:
    for name, op, value in parse_cli_filters(split_filter_args(filter_args)):
        query.filter(name, op, value)
    for token in sort_args or []:
        name, descending = parse_sort(token)
        if not name:
            raise ValueError(f"Invalid sort: {token!r}")
        query.sort(name, descending)
    return query
