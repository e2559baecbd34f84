"""CLI behaviour tests."""

from __future__ import annotations

import json

import pytest

from regolint import __version__
from regolint.cli import main

EXPORTED_API = """
package regolint.rules.api.exported

import rego.v1

deny contains violation if {
    some fn in input.functions
    fn.is_exported
    violation := {
        "message": sprintf("%s is part of the public API", [fn.name]),
        "rule": "exported_api",
        "severity": "warning",
        "position": fn.position,
    }
}
"""


@pytest.fixture
def project(write_tree, monkeypatch):
    root = write_tree(
        {
            ".regolint/policies/exported.rego": EXPORTED_API,
            "pkg/api.go": "package pkg\n\nfunc Serve() {}\n\nfunc helper() {}\n",
            "pkg/internal.go": "package pkg\n\nfunc quiet() {}\n",
        }
    )
    monkeypatch.chdir(root)
    return root


def test_version_flag(capsys) -> None:
    assert main(["--version"]) == 0
    assert capsys.readouterr().out.strip() == f"regolint {__version__}"


def test_missing_paths_is_a_usage_error(capsys) -> None:
    assert main([]) == 2
    assert "usage:" in capsys.readouterr().err


def test_violations_exit_with_one(project, capsys) -> None:
    assert main(["."]) == 1

    out = capsys.readouterr().out
    assert out == "pkg/api.go:3:1: warning [exported_api] Serve is part of the public API\n"


def test_clean_run_exits_with_zero(project, capsys) -> None:
    assert main(["pkg/internal.go"]) == 0
    assert capsys.readouterr().out == ""


def test_disabled_flag_drops_rules(project) -> None:
    assert main([".", "--disabled", "exported_api,other"]) == 0


def test_exclude_flag_skips_files(project) -> None:
    assert main([".", "--exclude", "**/api.go"]) == 0


def test_json_format(project, capsys) -> None:
    assert main([".", "--format", "json"]) == 1

    data = json.loads(capsys.readouterr().out)
    assert [item["rule"] for item in data] == ["exported_api"]
    assert data[0]["position"]["file"] == "pkg/api.go"


def test_sarif_format_from_config(project, capsys) -> None:
    (project / ".regolint.yml").write_text("output:\n  format: sarif\n", encoding="utf-8")

    assert main(["."]) == 1

    document = json.loads(capsys.readouterr().out)
    assert document["runs"][0]["results"][0]["ruleId"] == "exported_api"


def test_policy_dir_flag(project, tmp_path, capsys) -> None:
    empty = tmp_path / "empty-policies"
    empty.mkdir()

    assert main([".", "--policy-dir", str(empty)]) == 0
    assert capsys.readouterr().out == ""


def test_dry_run_prints_facts(project, capsys) -> None:
    assert main(["pkg/api.go", "--dry-run"]) == 0

    out = capsys.readouterr().out
    header, body = out.split("\n", 1)
    assert header == "=== pkg/api.go ==="
    facts = json.loads(body)
    assert [fn["name"] for fn in facts["functions"]] == ["Serve", "helper"]


def test_errors_exit_with_two(project, capsys) -> None:
    (project / ".regolint.yml").write_text("rules: [unterminated\n", encoding="utf-8")

    assert main(["."]) == 2
    assert capsys.readouterr().err.startswith("error: ")


def test_compile_errors_exit_with_two(project, capsys) -> None:
    (project / ".regolint/policies/bad.rego").write_text("package bad\n\nallow := )\n", encoding="utf-8")

    assert main(["."]) == 2
    assert "parsing policies" in capsys.readouterr().err


def test_log_file_records_debug_output(project, tmp_path) -> None:
    log_file = tmp_path / "regolint.log"

    assert main(["pkg/internal.go", "--log-file", str(log_file)]) == 0

    assert "Linted 1 file(s)" in log_file.read_text(encoding="utf-8")
