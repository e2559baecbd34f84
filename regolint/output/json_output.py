"""JSON violation output."""

from __future__ import annotations

import json
from typing import Iterable

from ..models import Violation


def render_json(violations: Iterable[Violation]) -> str:
    return json.dumps([violation.to_dict() for violation in violations], indent=2) + "\n"


__all__ = ["render_json"]
