"""Violation renderers."""

from __future__ import annotations

from typing import Iterable

from ..models import Violation
from .json_output import render_json
from .sarif import build_sarif, render_sarif
from .text import format_violation, render_text

FORMATS = ("text", "json", "sarif")


def render(violations: Iterable[Violation], output_format: str, *, version: str) -> str:
    """Render violations in ``output_format`` (text, json or sarif)."""
    if output_format == "json":
        return render_json(violations)
    if output_format == "sarif":
        return render_sarif(violations, version)
    if output_format == "text":
        return render_text(violations)
    raise ValueError(f"Unsupported output format: {output_format}")


__all__ = ["FORMATS", "build_sarif", "format_violation", "render", "render_json", "render_sarif", "render_text"]
