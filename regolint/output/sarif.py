"""SARIF 2.1.0 output for code-scanning integrations."""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List

from ..models import Violation

SARIF_SCHEMA = "https://json.schemastore.org/sarif-2.1.0.json"
SARIF_VERSION = "2.1.0"
TOOL_NAME = "regolint"
INFORMATION_URI = "https://github.com/burdzwastaken/regolint"

_LEVELS = {"warning": "warning", "info": "note", "note": "note"}


def sarif_level(severity: str) -> str:
    return _LEVELS.get(severity, "error")


def build_sarif(violations: Iterable[Violation], version: str) -> Dict[str, Any]:
    items = list(violations)
    rules: List[Dict[str, Any]] = []
    seen = set()
    for violation in items:
        if violation.rule in seen:
            continue
        seen.add(violation.rule)
        rules.append({"id": violation.rule, "shortDescription": {"text": violation.rule}})

    results = [
        {
            "ruleId": violation.rule,
            "level": sarif_level(violation.severity),
            "message": {"text": violation.message},
            "locations": [
                {
                    "physicalLocation": {
                        "artifactLocation": {"uri": violation.position.file},
                        "region": {
                            "startLine": violation.position.line,
                            "startColumn": max(violation.position.column, 1),
                        },
                    }
                }
            ],
        }
        for violation in items
    ]

    return {
        "$schema": SARIF_SCHEMA,
        "version": SARIF_VERSION,
        "runs": [
            {
                "tool": {
                    "driver": {
                        "name": TOOL_NAME,
                        "version": version,
                        "informationUri": INFORMATION_URI,
                        "rules": rules,
                    }
                },
                "results": results,
            }
        ],
    }


def render_sarif(violations: Iterable[Violation], version: str) -> str:
    return json.dumps(build_sarif(violations, version), indent=2) + "\n"


__all__ = ["build_sarif", "render_sarif", "sarif_level"]
