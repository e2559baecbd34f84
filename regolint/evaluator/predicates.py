"""Go-specific predicates exposed to policies as ``go.*`` builtins."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, List, Tuple

from ..golang import naming
from ..rego import Builtin, BuiltinError
from .regex_cache import RegexCache


def matches_pattern(cache: RegexCache, text: Any, pattern: Any) -> bool:
    """Regex search of ``pattern`` in ``text``; an invalid pattern never matches."""
    if not isinstance(text, str) or not isinstance(pattern, str):
        raise BuiltinError("go.matches_pattern: operands must be strings")
    try:
        compiled = cache.get(pattern)
    except re.error:
        return False
    return compiled.search(text) is not None


def is_exported(name: Any) -> bool:
    return isinstance(name, str) and naming.is_exported(name)


def is_test_file(name: Any) -> bool:
    return isinstance(name, str) and naming.is_test_file(name)


def package_name(path: Any) -> str:
    if not isinstance(path, str):
        raise BuiltinError("go.package_name: operand must be a string")
    return naming.package_name(path)


@dataclass(frozen=True)
class Predicate:
    name: str
    arity: int
    function: Callable[..., Any]
    memoize: bool = True


def predicate_table(cache: RegexCache) -> List[Predicate]:
    """The fixed set of predicates installed into every policy engine."""
    return [
        Predicate("go.matches_pattern", 2, lambda text, pattern: matches_pattern(cache, text, pattern)),
        Predicate("go.is_exported", 1, is_exported),
        Predicate("go.is_test_file", 1, is_test_file),
        Predicate("go.package_name", 1, package_name),
    ]


def predicate_builtins(cache: RegexCache) -> Tuple[Builtin, ...]:
    return tuple(
        Builtin(name=item.name, arity=item.arity, function=item.function, memoize=item.memoize)
        for item in predicate_table(cache)
    )


__all__ = [
    "Predicate",
    "is_exported",
    "is_test_file",
    "matches_pattern",
    "package_name",
    "predicate_builtins",
    "predicate_table",
]
