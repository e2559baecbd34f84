"""Inline ``nolint`` suppression directives."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from .golang.parser import ParsedFile
from .models import Violation

NOLINT_PATTERN = re.compile(r"//\s*nolint(?::([A-Za-z0-9_,]+))?(?:\s+//\s*(.+))?")


@dataclass(frozen=True)
class Directive:
    """One ``//nolint`` comment.

    ``end_line`` is non-zero only for directives placed directly above a struct
    type, which then cover the whole struct. Empty ``rules`` match every rule.
    """

    line: int
    end_line: int = 0
    rules: List[str] = field(default_factory=list)
    reason: str = ""

    def matches(self, rule: str) -> bool:
        return not self.rules or rule in self.rules

    def to_dict(self) -> Dict[str, object]:
        data: Dict[str, object] = {"line": self.line}
        if self.end_line:
            data["end_line"] = self.end_line
        if self.rules:
            data["rules"] = list(self.rules)
        if self.reason:
            data["reason"] = self.reason
        return data


def parse_comment(text: str, line: int) -> Optional[Directive]:
    match = NOLINT_PATTERN.search(text)
    if match is None:
        return None
    rules: List[str] = []
    if match.group(1):
        rules = [rule.strip() for rule in match.group(1).split(",") if rule.strip()]
    reason = (match.group(2) or "").strip()
    return Directive(line=line, rules=rules, reason=reason)


def struct_scopes(parsed: ParsedFile) -> Dict[int, int]:
    """Map the line above each struct type spec to the spec's last line."""
    scopes: Dict[int, int] = {}
    for node in parsed.walk():
        if node.type != "type_spec":
            continue
        type_node = node.child_by_field_name("type")
        if type_node is not None and type_node.type == "struct_type":
            scopes[ParsedFile.line(node) - 1] = ParsedFile.end_line(node)
    return scopes


def extract_directives(parsed: ParsedFile) -> List[Directive]:
    """Every nolint directive in the file, in source order."""
    scopes = struct_scopes(parsed)
    directives: List[Directive] = []
    for comment in parsed.comments():
        directive = parse_comment(parsed.text(comment), ParsedFile.line(comment))
        if directive is None:
            continue
        end_line = scopes.get(directive.line)
        if end_line is not None:
            directive = Directive(
                line=directive.line, end_line=end_line, rules=directive.rules, reason=directive.reason
            )
        directives.append(directive)
    return directives


def is_suppressed(violation: Violation, directives: Iterable[Directive]) -> bool:
    line = violation.position.line
    rule = violation.rule
    for directive in directives:
        if directive.line in (line, line - 1) and directive.matches(rule):
            return True
        if directive.end_line and directive.line < line <= directive.end_line and directive.matches(rule):
            return True
    return False


def filter_violations(violations: List[Violation], directives: List[Directive]) -> List[Violation]:
    """Return the violations no directive suppresses, preserving order."""
    if not directives:
        return list(violations)
    return [violation for violation in violations if not is_suppressed(violation, directives)]


__all__ = [
    "Directive",
    "NOLINT_PATTERN",
    "extract_directives",
    "filter_violations",
    "is_suppressed",
    "parse_comment",
    "struct_scopes",
]
