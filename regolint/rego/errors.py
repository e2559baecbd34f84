"""Errors raised by the Rego runtime."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List

from ..errors import RegolintError


@dataclass(frozen=True)
class Diagnostic:
    """One located problem found while parsing or compiling a module."""

    module: str
    line: int
    message: str

    def __str__(self) -> str:
        if self.line:
            return f"{self.module}:{self.line}: {self.message}"
        return f"{self.module}: {self.message}"


class RegoError(RegolintError):
    """Base class for Rego runtime failures."""


class _DiagnosticsError(RegoError):
    kind = "error"

    def __init__(self, diagnostics: Iterable[Diagnostic]) -> None:
        self.diagnostics: List[Diagnostic] = list(diagnostics)
        count = len(self.diagnostics)
        summary = f"{count} {self.kind}" + ("s" if count != 1 else "")
        detail = "; ".join(str(item) for item in self.diagnostics)
        super().__init__(f"{summary} occurred: {detail}" if detail else summary)


class RegoParseError(_DiagnosticsError):
    """A module or query could not be parsed."""

    kind = "parse error"


class RegoCompileError(_DiagnosticsError):
    """Parsed modules failed compilation checks."""

    kind = "compile error"


class RegoRuntimeError(RegoError):
    """Evaluation hit a condition that has no defined result."""


class BuiltinError(Exception):
    """A builtin rejected its operands; the calling expression is undefined."""


__all__ = [
    "BuiltinError",
    "Diagnostic",
    "RegoCompileError",
    "RegoError",
    "RegoParseError",
    "RegoRuntimeError",
]
