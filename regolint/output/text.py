"""Plain-text violation output, one line per violation."""

from __future__ import annotations

from typing import Iterable

from ..models import Violation

DEFAULT_SEVERITY = "error"


def format_violation(violation: Violation) -> str:
    position = violation.position
    severity = violation.severity or DEFAULT_SEVERITY
    return f"{position.file}:{position.line}:{position.column}: {severity} [{violation.rule}] {violation.message}"


def render_text(violations: Iterable[Violation]) -> str:
    lines = [format_violation(violation) for violation in violations]
    return "\n".join(lines) + "\n" if lines else ""


__all__ = ["DEFAULT_SEVERITY", "format_violation", "render_text"]
