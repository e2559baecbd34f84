"""Tests for decoding query results into violations."""

from __future__ import annotations

import pytest

from regolint.evaluator import ResultVisitor, extract_violations
from regolint.evaluator.results import parse_violation, to_int
from regolint.models import Position


def test_extract_violations_walks_nested_values() -> None:
    rows = [
        {
            "expressions": [
                [
                    {"message": "first", "rule": "r1", "position": {"file": "a.go", "line": 3, "column": 2}},
                    {"nested": {"message": "second", "rule": "r2"}},
                    "not a violation",
                    7,
                ]
            ],
            "bindings": {"category": "style"},
        },
        {"expressions": [{"message": "third"}]},
    ]

    violations = extract_violations(rows)

    assert [item.message for item in violations] == ["first", "second", "third"]
    assert violations[0].position == Position(file="a.go", line=3, column=2)
    assert violations[1].position == Position()


def test_visitor_does_not_descend_into_violations() -> None:
    value = {"message": "outer", "extra": {"message": "inner"}}

    assert [item.message for item in ResultVisitor().visit(value)] == ["outer"]


def test_parse_violation_decodes_fix() -> None:
    violation = parse_violation(
        {
            "message": "use errors.Is",
            "rule": "errors-is",
            "severity": "info",
            "position": {"file": "a.go", "line": "12", "column": 4.0},
            "fix": {
                "description": "compare with errors.Is",
                "edits": [
                    {"position": {"line": 12, "column": 4}, "new_text": "errors.Is(err, io.EOF)", "old_text": "err == io.EOF"},
                    "ignored",
                ],
            },
        }
    )

    assert violation.position == Position(file="a.go", line=12, column=4)
    assert violation.fix is not None
    assert violation.fix.description == "compare with errors.Is"
    assert [edit.new_text for edit in violation.fix.edits] == ["errors.Is(err, io.EOF)"]
    assert violation.fix.edits[0].old_text == "err == io.EOF"


def test_non_string_fields_become_empty() -> None:
    violation = parse_violation({"message": 5, "rule": ["x"], "severity": None})

    assert (violation.message, violation.rule, violation.severity) == ("", "", "")
    assert violation.fix is None


@pytest.mark.parametrize(
    "value, expected",
    [
        (3, 3),
        (3.9, 3),
        ("42", 42),
        ("4.5", 4),
        (True, 0),
        (None, 0),
        ("abc", 0),
        (float("nan"), 0),
        (float("inf"), 0),
    ],
)
def test_to_int(value, expected: int) -> None:
    assert to_int(value) == expected
