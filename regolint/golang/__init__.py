"""Go source parsing helpers."""

from .naming import is_exported, is_test_file, is_test_function, package_name
from .parser import GoParser, ParsedFile

__all__ = [
    "GoParser",
    "ParsedFile",
    "is_exported",
    "is_test_file",
    "is_test_function",
    "package_name",
]
