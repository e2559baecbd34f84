"""Decode policy query results into violations."""

from __future__ import annotations

from typing import Any, List, Mapping, Optional, Sequence

from ..models import Fix, FixEdit, Position, Violation


class ResultVisitor:
    """Walks a decoded result value and collects every violation in it.

    Mappings that carry a ``message`` are violations; other mappings are
    walked by value, sequences element by element, and leaves are ignored.
    """

    def __init__(self) -> None:
        self.violations: List[Violation] = []

    def visit(self, value: Any) -> List[Violation]:
        if isinstance(value, Mapping):
            self.visit_mapping(value)
        elif isinstance(value, (list, tuple)):
            self.visit_sequence(value)
        else:
            self.visit_leaf(value)
        return self.violations

    def visit_mapping(self, value: Mapping) -> None:
        if "message" in value:
            self.violations.append(parse_violation(value))
            return
        for nested in value.values():
            self.visit(nested)

    def visit_sequence(self, value: Sequence) -> None:
        for item in value:
            self.visit(item)

    def visit_leaf(self, value: Any) -> None:
        return None


def extract_violations(rows: Sequence[Mapping[str, Any]]) -> List[Violation]:
    """Collect violations from every expression value of every result row."""
    visitor = ResultVisitor()
    for row in rows:
        for expression in row.get("expressions", ()):
            visitor.visit(expression)
    return visitor.violations


def parse_violation(data: Mapping[str, Any]) -> Violation:
    fix_data = data.get("fix")
    return Violation(
        message=_text(data.get("message")),
        rule=_text(data.get("rule")),
        severity=_text(data.get("severity")),
        position=_position(data.get("position")),
        fix=_fix(fix_data) if isinstance(fix_data, Mapping) else None,
    )


def _fix(data: Mapping[str, Any]) -> Fix:
    edits: List[FixEdit] = []
    raw_edits = data.get("edits")
    if isinstance(raw_edits, (list, tuple)):
        for item in raw_edits:
            if not isinstance(item, Mapping):
                continue
            edits.append(
                FixEdit(
                    position=_position(item.get("position")),
                    new_text=_text(item.get("new_text")),
                    old_text=_text(item.get("old_text")),
                )
            )
    return Fix(description=_text(data.get("description")), edits=edits)


def _position(data: Optional[Any]) -> Position:
    if not isinstance(data, Mapping):
        return Position()
    return Position(file=_text(data.get("file")), line=to_int(data.get("line")), column=to_int(data.get("column")))


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def to_int(value: Any) -> int:
    """Coerce a decoded number (or numeric string) to ``int``; anything else is 0."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value == value and abs(value) != float("inf") else 0
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
        try:
            return to_int(float(value))
        except ValueError:
            return 0
    return 0


__all__ = ["ResultVisitor", "extract_violations", "parse_violation", "to_int"]