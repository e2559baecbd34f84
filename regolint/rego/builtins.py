"""Built-in functions available to Rego policies.

Each builtin receives evaluated operands and returns a value. Raising
:class:`BuiltinError` (or a plain type/value error) makes the calling
expression undefined instead of aborting evaluation.
"""

from __future__ import annotations

import base64
import json
import math
import re
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Dict, Iterable, List, Tuple

from .errors import BuiltinError
from .values import (
    Object,
    format_value,
    from_python,
    is_number,
    normalize_number,
    sort_key,
    sorted_values,
    to_python,
    type_name,
    values_equal,
)

BuiltinFunction = Callable[..., Any]


@dataclass(frozen=True)
class Builtin:
    name: str
    arity: int
    function: BuiltinFunction
    memoize: bool = False
    deprecated: bool = False


_REGISTRY: Dict[str, Builtin] = {}


def builtin(name: str, arity: int, *, deprecated: bool = False) -> Callable[[BuiltinFunction], BuiltinFunction]:
    def register(function: BuiltinFunction) -> BuiltinFunction:
        _REGISTRY[name] = Builtin(name=name, arity=arity, function=function, deprecated=deprecated)
        return function

    return register


def default_builtins() -> Dict[str, Builtin]:
    """Return a copy of every registered builtin keyed by name."""
    return dict(_REGISTRY)


# Operand checks ---------------------------------------------------------------


def _string(value: Any, name: str) -> str:
    if not isinstance(value, str):
        raise BuiltinError(f"{name}: operand must be string but got {type_name(value)}")
    return value


def _number(value: Any, name: str) -> Any:
    if not is_number(value):
        raise BuiltinError(f"{name}: operand must be number but got {type_name(value)}")
    return value


def _integer(value: Any, name: str) -> int:
    number = normalize_number(_number(value, name))
    if not isinstance(number, int):
        raise BuiltinError(f"{name}: operand must be integer")
    return number


def _collection(value: Any, name: str) -> Iterable[Any]:
    if isinstance(value, (tuple, frozenset)):
        return value
    if isinstance(value, Object):
        return value.values()
    raise BuiltinError(f"{name}: operand must be array, set or object but got {type_name(value)}")


def _set(value: Any, name: str) -> frozenset:
    if not isinstance(value, frozenset):
        raise BuiltinError(f"{name}: operand must be set but got {type_name(value)}")
    return value


def _array(value: Any, name: str) -> tuple:
    if not isinstance(value, tuple):
        raise BuiltinError(f"{name}: operand must be array but got {type_name(value)}")
    return value


def _object(value: Any, name: str) -> Object:
    if not isinstance(value, Object):
        raise BuiltinError(f"{name}: operand must be object but got {type_name(value)}")
    return value


def _strings(value: Any, name: str) -> List[str]:
    if isinstance(value, str):
        return [value]
    return [_string(item, name) for item in _collection(value, name)]


# Comparison and membership ----------------------------------------------------


@builtin("equal", 2)
def _equal(left: Any, right: Any) -> bool:
    return values_equal(left, right)


@builtin("neq", 2)
def _neq(left: Any, right: Any) -> bool:
    return not values_equal(left, right)


@builtin("lt", 2)
def _lt(left: Any, right: Any) -> bool:
    return sort_key(left) < sort_key(right)


@builtin("lte", 2)
def _lte(left: Any, right: Any) -> bool:
    return sort_key(left) <= sort_key(right)


@builtin("gt", 2)
def _gt(left: Any, right: Any) -> bool:
    return sort_key(left) > sort_key(right)


@builtin("gte", 2)
def _gte(left: Any, right: Any) -> bool:
    return sort_key(left) >= sort_key(right)


@builtin("internal.member_2", 2)
def _member(item: Any, collection: Any) -> bool:
    if isinstance(collection, frozenset):
        return any(values_equal(item, member) for member in collection)
    if isinstance(collection, (tuple, Object)):
        return any(values_equal(item, member) for member in _collection(collection, "in"))
    return False


# Arithmetic -------------------------------------------------------------------


@builtin("plus", 2)
def _plus(left: Any, right: Any) -> Any:
    return normalize_number(_number(left, "plus") + _number(right, "plus"))


@builtin("minus", 2)
def _minus(left: Any, right: Any) -> Any:
    if isinstance(left, frozenset) and isinstance(right, frozenset):
        return left - right
    return normalize_number(_number(left, "minus") - _number(right, "minus"))


@builtin("mul", 2)
def _mul(left: Any, right: Any) -> Any:
    return normalize_number(_number(left, "mul") * _number(right, "mul"))


@builtin("div", 2)
def _div(left: Any, right: Any) -> Any:
    divisor = _number(right, "div")
    if divisor == 0:
        raise BuiltinError("div: divide by zero")
    return normalize_number(_number(left, "div") / divisor)


@builtin("rem", 2)
def _rem(left: Any, right: Any) -> Any:
    dividend = _integer(left, "rem")
    divisor = _integer(right, "rem")
    if divisor == 0:
        raise BuiltinError("rem: modulo by zero")
    return int(math.fmod(dividend, divisor))


@builtin("abs", 1)
def _abs(value: Any) -> Any:
    return abs(_number(value, "abs"))


@builtin("round", 1)
def _round(value: Any) -> int:
    number = _number(value, "round")
    # half away from zero
    return int(math.floor(abs(number) + 0.5)) * (1 if number >= 0 else -1)


@builtin("ceil", 1)
def _ceil(value: Any) -> int:
    return math.ceil(_number(value, "ceil"))


@builtin("floor", 1)
def _floor(value: Any) -> int:
    return math.floor(_number(value, "floor"))


@builtin("numbers.range", 2)
def _range(start: Any, stop: Any) -> tuple:
    first = _integer(start, "numbers.range")
    last = _integer(stop, "numbers.range")
    step = 1 if last >= first else -1
    return tuple(range(first, last + step, step))


# Sets -------------------------------------------------------------------------


@builtin("or", 2)
def _union2(left: Any, right: Any) -> frozenset:
    return _set(left, "or") | _set(right, "or")


@builtin("and", 2)
def _intersection2(left: Any, right: Any) -> frozenset:
    return _set(left, "and") & _set(right, "and")


@builtin("union", 1)
def _union(sets: Any) -> frozenset:
    result: frozenset = frozenset()
    for item in _set(sets, "union"):
        result |= _set(item, "union")
    return result


@builtin("intersection", 1)
def _intersection(sets: Any) -> frozenset:
    members = [_set(item, "intersection") for item in _set(sets, "intersection")]
    if not members:
        return frozenset()
    result = members[0]
    for item in members[1:]:
        result &= item
    return result


@builtin("set_diff", 2, deprecated=True)
def _set_diff(left: Any, right: Any) -> frozenset:
    return _set(left, "set_diff") - _set(right, "set_diff")


# Aggregates -------------------------------------------------------------------


@builtin("count", 1)
def _count(value: Any) -> int:
    if isinstance(value, str):
        return len(value)
    if isinstance(value, (tuple, frozenset, Object)):
        return len(value)
    raise BuiltinError(f"count: operand must be collection or string but got {type_name(value)}")


@builtin("sum", 1)
def _sum(value: Any) -> Any:
    return normalize_number(sum(_number(item, "sum") for item in _collection(value, "sum")))


@builtin("product", 1)
def _product(value: Any) -> Any:
    result = 1
    for item in _collection(value, "product"):
        result *= _number(item, "product")
    return normalize_number(result)


@builtin("max", 1)
def _max(value: Any) -> Any:
    items = list(_collection(value, "max"))
    if not items:
        raise BuiltinError("max: empty collection")
    return max(items, key=sort_key)


@builtin("min", 1)
def _min(value: Any) -> Any:
    items = list(_collection(value, "min"))
    if not items:
        raise BuiltinError("min: empty collection")
    return min(items, key=sort_key)


@builtin("sort", 1)
def _sort(value: Any) -> tuple:
    if isinstance(value, Object):
        raise BuiltinError("sort: operand must be array or set")
    return tuple(sorted_values(_collection(value, "sort")))


@builtin("all", 1, deprecated=True)
def _all(value: Any) -> bool:
    return all(item is True for item in _collection(value, "all"))


@builtin("any", 1, deprecated=True)
def _any(value: Any) -> bool:
    return any(item is True for item in _collection(value, "any"))


# Strings ----------------------------------------------------------------------


@builtin("concat", 2)
def _concat(delimiter: Any, items: Any) -> str:
    return _string(delimiter, "concat").join(_strings(items, "concat"))


@builtin("contains", 2)
def _contains(text: Any, search: Any) -> bool:
    return _string(search, "contains") in _string(text, "contains")


@builtin("startswith", 2)
def _startswith(text: Any, prefix: Any) -> bool:
    return _string(text, "startswith").startswith(_string(prefix, "startswith"))


@builtin("endswith", 2)
def _endswith(text: Any, suffix: Any) -> bool:
    return _string(text, "endswith").endswith(_string(suffix, "endswith"))


@builtin("strings.any_prefix_match", 2)
def _any_prefix_match(texts: Any, prefixes: Any) -> bool:
    candidates = _strings(texts, "strings.any_prefix_match")
    options = _strings(prefixes, "strings.any_prefix_match")
    return any(text.startswith(prefix) for text in candidates for prefix in options)


@builtin("strings.any_suffix_match", 2)
def _any_suffix_match(texts: Any, suffixes: Any) -> bool:
    candidates = _strings(texts, "strings.any_suffix_match")
    options = _strings(suffixes, "strings.any_suffix_match")
    return any(text.endswith(suffix) for text in candidates for suffix in options)


@builtin("lower", 1)
def _lower(text: Any) -> str:
    return _string(text, "lower").lower()


@builtin("upper", 1)
def _upper(text: Any) -> str:
    return _string(text, "upper").upper()


@builtin("split", 2)
def _split(text: Any, delimiter: Any) -> tuple:
    separator = _string(delimiter, "split")
    value = _string(text, "split")
    if separator == "":
        return tuple(value)
    return tuple(value.split(separator))


@builtin("replace", 3)
def _replace(text: Any, old: Any, new: Any) -> str:
    return _string(text, "replace").replace(_string(old, "replace"), _string(new, "replace"))


@builtin("strings.replace_n", 2)
def _replace_n(patterns: Any, text: Any) -> str:
    value = _string(text, "strings.replace_n")
    for old in sorted(_object(patterns, "strings.replace_n")):
        value = value.replace(_string(old, "strings.replace_n"), _string(patterns[old], "strings.replace_n"))
    return value


@builtin("strings.reverse", 1)
def _reverse_string(text: Any) -> str:
    return _string(text, "strings.reverse")[::-1]


@builtin("indexof", 2)
def _indexof(text: Any, search: Any) -> int:
    return _string(text, "indexof").find(_string(search, "indexof"))


@builtin("substring", 3)
def _substring(text: Any, offset: Any, length: Any) -> str:
    value = _string(text, "substring")
    start = _integer(offset, "substring")
    size = _integer(length, "substring")
    if start < 0:
        raise BuiltinError("substring: negative offset")
    if size < 0:
        return value[start:]
    return value[start : start + size]


@builtin("trim", 2)
def _trim(text: Any, cutset: Any) -> str:
    return _string(text, "trim").strip(_string(cutset, "trim"))


@builtin("trim_left", 2)
def _trim_left(text: Any, cutset: Any) -> str:
    return _string(text, "trim_left").lstrip(_string(cutset, "trim_left"))


@builtin("trim_right", 2)
def _trim_right(text: Any, cutset: Any) -> str:
    return _string(text, "trim_right").rstrip(_string(cutset, "trim_right"))


@builtin("trim_prefix", 2)
def _trim_prefix(text: Any, prefix: Any) -> str:
    return _string(text, "trim_prefix").removeprefix(_string(prefix, "trim_prefix"))


@builtin("trim_suffix", 2)
def _trim_suffix(text: Any, suffix: Any) -> str:
    return _string(text, "trim_suffix").removesuffix(_string(suffix, "trim_suffix"))


@builtin("trim_space", 1)
def _trim_space(text: Any) -> str:
    return _string(text, "trim_space").strip()


@builtin("format_int", 2)
def _format_int(number: Any, base: Any) -> str:
    value = int(_number(number, "format_int"))
    radix = _integer(base, "format_int")
    digits = {2: "b", 8: "o", 10: "d", 16: "x"}
    if radix not in digits:
        raise BuiltinError("format_int: base must be one of 2, 8, 10, 16")
    return format(value, digits[radix])


_VERB_RE = re.compile(r"%([-+# 0]*)(\d*)(?:\.(\d+))?([a-zA-Z%])")


@builtin("sprintf", 2)
def _sprintf(template: Any, args: Any) -> str:
    fmt = _string(template, "sprintf")
    operands = list(_array(args, "sprintf"))
    output: List[str] = []
    cursor = 0
    index = 0
    for match in _VERB_RE.finditer(fmt):
        output.append(fmt[cursor : match.start()])
        cursor = match.end()
        flags, width, precision, verb = match.groups()
        if verb == "%":
            output.append("%")
            continue
        if index >= len(operands):
            output.append(f"%!{verb}(MISSING)")
            continue
        rendered = _format_verb(verb, operands[index], precision)
        index += 1
        if width:
            size = int(width)
            rendered = rendered.ljust(size) if "-" in flags else rendered.rjust(size, "0" if "0" in flags else " ")
        output.append(rendered)
    output.append(fmt[cursor:])
    return "".join(output)


def _format_verb(verb: str, value: Any, precision: str | None) -> str:
    if verb in {"v", "s"}:
        return value if isinstance(value, str) else format_value(value)
    if verb == "q":
        return json.dumps(value) if isinstance(value, str) else format_value(value)
    if verb == "d" and is_number(value):
        number = normalize_number(value)
        if isinstance(number, int):
            return str(number)
    if verb in {"f", "F", "e", "g"} and is_number(value):
        spec = f".{precision}{verb}" if precision else ("f" if verb in {"f", "F"} else verb)
        return format(float(value), spec)
    if verb in {"x", "X"}:
        if isinstance(value, str):
            text = value.encode("utf-8").hex()
            return text.upper() if verb == "X" else text
        if is_number(value) and isinstance(normalize_number(value), int):
            return format(normalize_number(value), verb)
    if verb == "t" and isinstance(value, bool):
        return "true" if value else "false"
    return f"%!{verb}({format_value(value)})"


# Regular expressions and globs ------------------------------------------------


@lru_cache(maxsize=256)
def _compiled(pattern: str) -> re.Pattern:
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise BuiltinError(f"invalid regular expression {pattern!r}: {exc}") from exc


@builtin("regex.match", 2)
def _regex_match(pattern: Any, text: Any) -> bool:
    return _compiled(_string(pattern, "regex.match")).search(_string(text, "regex.match")) is not None


@builtin("re_match", 2, deprecated=True)
def _re_match(pattern: Any, text: Any) -> bool:
    return _regex_match(pattern, text)


@builtin("regex.is_valid", 1)
def _regex_is_valid(pattern: Any) -> bool:
    if not isinstance(pattern, str):
        return False
    try:
        _compiled(pattern)
    except BuiltinError:
        return False
    return True


@builtin("regex.split", 2)
def _regex_split(pattern: Any, text: Any) -> tuple:
    return tuple(_compiled(_string(pattern, "regex.split")).split(_string(text, "regex.split")))


@builtin("regex.replace", 3)
def _regex_replace(text: Any, pattern: Any, replacement: Any) -> str:
    compiled = _compiled(_string(pattern, "regex.replace"))
    template = re.sub(r"\$(\d+)", r"\\\1", _string(replacement, "regex.replace"))
    return compiled.sub(template, _string(text, "regex.replace"))


@builtin("regex.find_n", 3)
def _regex_find_n(pattern: Any, text: Any, limit: Any) -> tuple:
    compiled = _compiled(_string(pattern, "regex.find_n"))
    count = _integer(limit, "regex.find_n")
    found = [match.group(0) for match in compiled.finditer(_string(text, "regex.find_n"))]
    return tuple(found if count < 0 else found[:count])


@builtin("glob.match", 3)
def _glob_match(pattern: Any, delimiters: Any, text: Any) -> bool:
    separators = "".join(_strings(delimiters, "glob.match")) if delimiters is not None else ""
    regex = _glob_regex(_string(pattern, "glob.match"), separators or ".")
    return regex.fullmatch(_string(text, "glob.match")) is not None


@lru_cache(maxsize=256)
def _glob_regex(pattern: str, separators: str) -> re.Pattern:
    not_separator = "[^" + re.escape(separators) + "]"
    parts: List[str] = []
    index = 0
    while index < len(pattern):
        char = pattern[index]
        if pattern.startswith("**", index):
            parts.append(".*")
            index += 2
            continue
        if char == "*":
            parts.append(not_separator + "*")
        elif char == "?":
            parts.append(not_separator)
        else:
            parts.append(re.escape(char))
        index += 1
    return re.compile("".join(parts))


# Types ------------------------------------------------------------------------


@builtin("type_name", 1)
def _type_name(value: Any) -> str:
    return type_name(value)


def _type_check(kind: str) -> BuiltinFunction:
    def check(value: Any) -> bool:
        return type_name(value) == kind

    return check


for _name, _kind in (
    ("is_string", "string"),
    ("is_number", "number"),
    ("is_boolean", "boolean"),
    ("is_array", "array"),
    ("is_set", "set"),
    ("is_object", "object"),
    ("is_null", "null"),
):
    builtin(_name, 1)(_type_check(_kind))


@builtin("to_number", 1)
def _to_number(value: Any) -> Any:
    if value is None:
        return 0
    if isinstance(value, bool):
        return 1 if value else 0
    if is_number(value):
        return value
    text = _string(value, "to_number")
    try:
        return normalize_number(int(text)) if text.lstrip("-").isdigit() else normalize_number(float(text))
    except ValueError as exc:
        raise BuiltinError(f"to_number: invalid syntax {text!r}") from exc


# Objects and arrays -----------------------------------------------------------


@builtin("object.get", 3)
def _object_get(obj: Any, key: Any, default: Any) -> Any:
    if isinstance(key, tuple):
        current = obj
        for part in key:
            if isinstance(current, Object) and part in current:
                current = current[part]
            elif isinstance(current, tuple) and is_number(part) and 0 <= int(part) < len(current):
                current = current[int(part)]
            else:
                return default
        return current
    return _object(obj, "object.get").get(key, default)


@builtin("object.keys", 1)
def _object_keys(obj: Any) -> frozenset:
    return frozenset(_object(obj, "object.keys"))


@builtin("object.union", 2)
def _object_union(left: Any, right: Any) -> Object:
    return _deep_merge(_object(left, "object.union"), _object(right, "object.union"))


def _deep_merge(left: Object, right: Object) -> Object:
    merged = dict(left)
    for key, value in right.items():
        if key in merged and isinstance(merged[key], Object) and isinstance(value, Object):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return Object(merged)


@builtin("object.remove", 2)
def _object_remove(obj: Any, keys: Any) -> Object:
    source = _object(obj, "object.remove")
    removed = set(keys) if isinstance(keys, (tuple, frozenset)) else set(_object(keys, "object.remove"))
    return Object((key, value) for key, value in source.items() if key not in removed)


@builtin("object.filter", 2)
def _object_filter(obj: Any, keys: Any) -> Object:
    source = _object(obj, "object.filter")
    kept = set(keys) if isinstance(keys, (tuple, frozenset)) else set(_object(keys, "object.filter"))
    return Object((key, value) for key, value in source.items() if key in kept)


@builtin("array.concat", 2)
def _array_concat(left: Any, right: Any) -> tuple:
    return _array(left, "array.concat") + _array(right, "array.concat")


@builtin("array.slice", 3)
def _array_slice(items: Any, start: Any, stop: Any) -> tuple:
    values = _array(items, "array.slice")
    first = max(0, _integer(start, "array.slice"))
    last = min(len(values), _integer(stop, "array.slice"))
    if first >= last:
        return ()
    return values[first:last]


@builtin("array.reverse", 1)
def _array_reverse(items: Any) -> tuple:
    return tuple(reversed(_array(items, "array.reverse")))


# Encoding ---------------------------------------------------------------------


@builtin("json.marshal", 1)
def _json_marshal(value: Any) -> str:
    return json.dumps(to_python(value), separators=(",", ":"), sort_keys=True)


@builtin("json.unmarshal", 1)
def _json_unmarshal(text: Any) -> Any:
    try:
        return from_python(json.loads(_string(text, "json.unmarshal")))
    except ValueError as exc:
        raise BuiltinError(f"json.unmarshal: {exc}") from exc


@builtin("json.is_valid", 1)
def _json_is_valid(text: Any) -> bool:
    if not isinstance(text, str):
        return False
    try:
        json.loads(text)
    except ValueError:
        return False
    return True


@builtin("base64.encode", 1)
def _base64_encode(text: Any) -> str:
    return base64.b64encode(_string(text, "base64.encode").encode("utf-8")).decode("ascii")


@builtin("base64.decode", 1)
def _base64_decode(text: Any) -> str:
    try:
        return base64.b64decode(_string(text, "base64.decode"), validate=True).decode("utf-8")
    except ValueError as exc:
        raise BuiltinError(f"base64.decode: {exc}") from exc


# Runtime and network ----------------------------------------------------------


@builtin("time.now_ns", 0)
def _now_ns() -> int:
    return time.time_ns()


@builtin("opa.runtime", 0)
@builtin("net.lookup_ip_addr", 1)
@builtin("http.send", 1)
def _unavailable(*args: Any) -> Any:
    # declared for capability filtering only
    raise BuiltinError("runtime and network builtins are not available")


def builtin_names() -> Tuple[str, ...]:
    return tuple(sorted(_REGISTRY))


__all__ = ["Builtin", "BuiltinFunction", "builtin", "builtin_names", "default_builtins"]
