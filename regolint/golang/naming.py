"""Go naming conventions shared by the transformer and policy predicates."""

from __future__ import annotations

TEST_FILE_SUFFIX = "_test.go"
TEST_FUNCTION_PREFIXES = ("Test", "Benchmark", "Example", "Fuzz")


def is_exported(name: str) -> bool:
    """Return True when ``name`` starts with an ASCII uppercase letter."""
    return bool(name) and "A" <= name[0] <= "Z"


def is_test_function(name: str) -> bool:
    return name.startswith(TEST_FUNCTION_PREFIXES)


def is_test_file(name: str) -> bool:
    return len(name) > len(TEST_FILE_SUFFIX) and name.endswith(TEST_FILE_SUFFIX)


def package_name(import_path: str) -> str:
    """Return the last path element of an import path."""
    return import_path.rsplit("/", 1)[-1]


__all__ = [
    "TEST_FILE_SUFFIX",
    "TEST_FUNCTION_PREFIXES",
    "is_exported",
    "is_test_file",
    "is_test_function",
    "package_name",
]
