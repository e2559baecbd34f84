"""Immutable Rego values and conversions to and from plain Python.

Rego values are represented with hashable Python types so they can be used
as set members, object keys and memoization keys:

* ``null`` / booleans / numbers / strings map to ``None``, ``bool``, ``int``
  or ``float`` and ``str``;
* arrays are tuples, sets are frozensets;
* objects are :class:`Object`, a read-only mapping with a stable hash.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any, Dict, Iterator, Tuple

Value = Any


class Object(Mapping):
    """Hashable, read-only mapping used for Rego objects."""

    __slots__ = ("_items", "_hash")

    def __init__(self, items: Any = ()) -> None:
        self._items: Dict[Value, Value] = dict(items)
        self._hash = None

    def __getitem__(self, key: Value) -> Value:
        return self._items[key]

    def __iter__(self) -> Iterator[Value]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __hash__(self) -> int:
        if self._hash is None:
            self._hash = hash(frozenset(self._items.items()))
        return self._hash

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Object):
            return self._items == other._items
        return NotImplemented

    def __repr__(self) -> str:
        return f"Object({self._items!r})"

    def merged(self, other: Mapping) -> "Object":
        items = dict(self._items)
        items.update(other)
        return Object(items)


_TYPE_RANK = {
    "null": 0,
    "boolean": 1,
    "number": 2,
    "string": 3,
    "array": 4,
    "object": 5,
    "set": 6,
}


def type_name(value: Value) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, tuple):
        return "array"
    if isinstance(value, Object):
        return "object"
    if isinstance(value, frozenset):
        return "set"
    raise TypeError(f"not a rego value: {value!r}")


def is_number(value: Value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def sort_key(value: Value) -> Tuple[Any, ...]:
    """Total order across all value types: null < bool < number < string < array < object < set."""
    kind = type_name(value)
    rank = _TYPE_RANK[kind]
    if kind == "null":
        return (rank,)
    if kind == "boolean":
        return (rank, int(value))
    if kind in {"number", "string"}:
        return (rank, value)
    if kind == "array":
        return (rank, tuple(sort_key(item) for item in value))
    if kind == "object":
        keys = sorted(value, key=sort_key)
        return (
            rank,
            tuple(sort_key(key) for key in keys),
            tuple(sort_key(value[key]) for key in keys),
        )
    return (rank, tuple(sorted(sort_key(item) for item in value)))


def sorted_values(values: Any) -> list:
    return sorted(values, key=sort_key)


def values_equal(left: Value, right: Value) -> bool:
    """Structural equality that keeps booleans distinct from numbers."""
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if type_name(left) != type_name(right):
        return False
    if isinstance(left, tuple):
        return len(left) == len(right) and all(
            values_equal(a, b) for a, b in zip(left, right)
        )
    return left == right


def normalize_number(value: Value) -> Value:
    if isinstance(value, float) and value.is_integer() and abs(value) < 2**63:
        return int(value)
    return value


def from_python(data: Any) -> Value:
    """Convert JSON-like Python data into Rego values."""
    if data is None or isinstance(data, (bool, str)):
        return data
    if isinstance(data, (int, float)):
        return data
    if isinstance(data, Mapping):
        return Object((from_python(key), from_python(item)) for key, item in data.items())
    if isinstance(data, (list, tuple)):
        return tuple(from_python(item) for item in data)
    if isinstance(data, (set, frozenset)):
        return frozenset(from_python(item) for item in data)
    raise TypeError(f"cannot convert {type(data).__name__} to a rego value")


def to_python(value: Value) -> Any:
    """Convert a Rego value into JSON-compatible Python data; sets become sorted lists."""
    if isinstance(value, tuple):
        return [to_python(item) for item in value]
    if isinstance(value, frozenset):
        return [to_python(item) for item in sorted_values(value)]
    if isinstance(value, Object):
        return {_object_key(key): to_python(value[key]) for key in sorted_values(value)}
    return value


def _object_key(key: Value) -> Any:
    if isinstance(key, str):
        return key
    return json.dumps(to_python(key), sort_keys=True)


def format_value(value: Value) -> str:
    """Render a value in Rego literal syntax (strings quoted)."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return json.dumps(value)
    if isinstance(value, (int, float)):
        return str(normalize_number(value))
    if isinstance(value, tuple):
        return "[" + ", ".join(format_value(item) for item in value) + "]"
    if isinstance(value, frozenset):
        if not value:
            return "set()"
        return "{" + ", ".join(format_value(item) for item in sorted_values(value)) + "}"
    if isinstance(value, Object):
        pairs = (
            f"{format_value(key)}: {format_value(value[key])}" for key in sorted_values(value)
        )
        return "{" + ", ".join(pairs) + "}"
    return repr(value)


__all__ = [
    "Object",
    "Value",
    "format_value",
    "from_python",
    "is_number",
    "normalize_number",
    "sort_key",
    "sorted_values",
    "to_python",
    "type_name",
    "values_equal",
]
