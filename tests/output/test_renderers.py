"""Output renderer tests."""

from __future__ import annotations

import json

import pytest

from regolint.models import Fix, FixEdit, Position, Violation
from regolint.output import FORMATS, build_sarif, format_violation, render, render_json, render_text
from regolint.output.sarif import INFORMATION_URI, SARIF_SCHEMA, sarif_level

VIOLATIONS = [
    Violation(
        message="exported function Run should have a doc comment",
        rule="exported-doc",
        severity="warning",
        position=Position(file="pkg/run.go", line=3, column=1),
    ),
    Violation(message="avoid the Get prefix", rule="no-get", position=Position(file="pkg/get.go", line=8, column=0)),
    Violation(
        message="prefer errors.Is",
        rule="errors-is",
        severity="info",
        position=Position(file="pkg/run.go", line=12, column=5),
        fix=Fix(
            description="use errors.Is",
            edits=[FixEdit(position=Position(file="pkg/run.go", line=12, column=5), new_text="errors.Is(err, io.EOF)")],
        ),
    ),
]


def test_format_violation_defaults_severity_to_error() -> None:
    assert format_violation(VIOLATIONS[0]) == (
        "pkg/run.go:3:1: warning [exported-doc] exported function Run should have a doc comment"
    )
    assert format_violation(VIOLATIONS[1]) == "pkg/get.go:8:0: error [no-get] avoid the Get prefix"


def test_render_text_is_line_per_violation() -> None:
    output = render_text(VIOLATIONS)

    assert output.endswith("\n")
    assert len(output.splitlines()) == 3
    assert render_text([]) == ""


def test_render_json_round_trips_fields() -> None:
    data = json.loads(render_json(VIOLATIONS))

    assert data[0] == {
        "message": "exported function Run should have a doc comment",
        "rule": "exported-doc",
        "severity": "warning",
        "position": {"file": "pkg/run.go", "line": 3, "column": 1},
    }
    assert "severity" not in data[1]
    assert data[2]["fix"]["edits"][0]["new_text"] == "errors.Is(err, io.EOF)"


def test_build_sarif_document() -> None:
    document = build_sarif(VIOLATIONS, "0.1.0")

    assert document["$schema"] == SARIF_SCHEMA
    assert document["version"] == "2.1.0"
    run = document["runs"][0]
    driver = run["tool"]["driver"]
    assert driver["name"] == "regolint"
    assert driver["version"] == "0.1.0"
    assert driver["informationUri"] == INFORMATION_URI
    assert [rule["id"] for rule in driver["rules"]] == ["exported-doc", "no-get", "errors-is"]

    levels = [result["level"] for result in run["results"]]
    assert levels == ["warning", "error", "note"]
    region = run["results"][1]["locations"][0]["physicalLocation"]["region"]
    assert region == {"startLine": 8, "startColumn": 1}
    assert run["results"][0]["locations"][0]["physicalLocation"]["artifactLocation"]["uri"] == "pkg/run.go"


def test_sarif_rules_are_deduplicated() -> None:
    document = build_sarif(VIOLATIONS + VIOLATIONS, "0.1.0")

    assert len(document["runs"][0]["tool"]["driver"]["rules"]) == 3
    assert len(document["runs"][0]["results"]) == 6


@pytest.mark.parametrize(
    "severity, level", [("warning", "warning"), ("info", "note"), ("error", "error"), ("", "error"), ("fatal", "error")]
)
def test_sarif_level(severity: str, level: str) -> None:
    assert sarif_level(severity) == level


def test_render_dispatches_on_format() -> None:
    assert FORMATS == ("text", "json", "sarif")
    assert render(VIOLATIONS, "text", version="0.1.0") == render_text(VIOLATIONS)
    assert json.loads(render(VIOLATIONS, "sarif", version="0.1.0"))["version"] == "2.1.0"
    with pytest.raises(ValueError):
        render(VIOLATIONS, "xml", version="0.1.0")
