"""Exception hierarchy shared by regolint components."""

from __future__ import annotations

from typing import Iterable, List


class RegolintError(RuntimeError):
    """Base class for all regolint failures."""


class ConfigError(RegolintError):
    """Raised when the configuration file cannot be parsed."""


class CompileError(RegolintError):
    """Raised when policies fail to parse or compile.

    ``diagnostics`` holds every message collected across all modules so callers
    can report them together instead of one at a time.
    """

    def __init__(self, message: str, diagnostics: Iterable[str] = ()) -> None:
        self.diagnostics: List[str] = list(diagnostics)
        if self.diagnostics:
            message = f"{message}: " + "; ".join(self.diagnostics)
        super().__init__(message)


class EvaluationError(RegolintError):
    """Raised when evaluating one fact bag fails; the engine stays usable."""


class EngineStateError(RegolintError):
    """Raised when a policy engine is used before it finished building."""


class FetchError(RegolintError):
    """Raised when a remote policy cannot be retrieved."""


class TransportRejection(FetchError):
    """Raised when a URL is refused before any connection is attempted."""


class IntegrityError(FetchError):
    """Raised when fetched content does not match its expected checksum."""


class SizeLimitError(FetchError):
    """Raised when fetched content exceeds the maximum policy size."""


__all__ = [
    "CompileError",
    "ConfigError",
    "EngineStateError",
    "EvaluationError",
    "FetchError",
    "IntegrityError",
    "RegolintError",
    "SizeLimitError",
    "TransportRejection",
]
