"""Tests for regolint.linter."""

from __future__ import annotations

from pathlib import Path

import pytest

from regolint.config import load_config
from regolint.errors import CompileError, RegolintError
from regolint.linter import Linter
from regolint.remote import SecureFetcher

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

NOISY = """
package regolint.rules.api.noisy

import rego.v1

deny contains violation if {
    some fn in input.functions
    violation := {"message": "noise", "rule": "noisy", "position": fn.position}
}
"""

PACKAGE_SIZE = """
package regolint.rules.layout.package_size

import rego.v1

deny contains violation if {
    count(input.all_functions) > 3
    violation := {
        "message": sprintf("package %s is too large", [input.package.name]),
        "rule": "package_size",
        "position": {"file": "b.go", "line": 1, "column": 1},
    }
}
"""

SHOP = """
package shop

// Open opens.
func Open() {}

//nolint:exported_api // generated
func Close() {}

func Run() {} //nolint

func Stop() {}
"""


def _linter(root: Path, **kwargs) -> Linter:
    return Linter(load_config(root), **kwargs)


def test_lint_paths_applies_rules_severity_and_nolint(write_tree) -> None:
    root = write_tree(
        {
            ".regolint.yml": """
            rules:
              disabled: [noisy]
              severity:
                exported_api: error
            """,
            ".regolint/policies/exported.rego": EXPORTED_API,
            ".regolint/policies/noisy.rego": NOISY,
            "shop/shop.go": SHOP,
            "shop/shop_test.go": "package shop\n\nfunc TestOpen() {}\n",
        }
    )

    report = _linter(root).lint_paths([str(root / "shop")])

    shop = str(root / "shop" / "shop.go")
    assert report.files == [shop]
    assert [(item.rule, item.severity, item.position.line) for item in report.violations] == [
        ("exported_api", "error", 4),
        ("exported_api", "error", 11),
    ]
    assert all(item.position.file == shop for item in report.violations)
    assert report.has_violations is True
    assert report.warnings == []


BANNED_IMPORT = """
package regolint.rules.imports.banned

import rego.v1

deny contains violation if {
    some imp in input.imports
    imp.path == "unsafe"
    violation := {"message": "package unsafe is not allowed", "rule": "banned_import", "position": imp.position}
}
"""


def test_banned_import_is_reported_until_suppressed(write_tree) -> None:
    root = write_tree(
        {
            ".regolint/policies/banned.rego": BANNED_IMPORT,
            "raw/main.go": 'package main\n\nimport "unsafe"\n',
            "quiet/main.go": 'package main\n\nimport "unsafe" //nolint:banned_import\n',
        }
    )
    linter = _linter(root)

    violations = linter.lint_file(root / "raw" / "main.go")
    assert [(item.rule, item.message, item.position.line) for item in violations] == [
        ("banned_import", "package unsafe is not allowed", 3)
    ]
    assert linter.lint_file(root / "quiet" / "main.go") == []


def test_missing_policies_warn_and_report_nothing(write_tree) -> None:
    root = write_tree({"main.go": "package main\n\nfunc Main() {}\n"})

    report = _linter(root).lint_paths([str(root)])

    assert report.violations == []
    assert report.warnings == [f"no policies found in {root.resolve() / '.regolint/policies'}"]


def test_package_mode_maps_package_violations_to_files(write_tree) -> None:
    root = write_tree(
        {
            ".regolint/policies/size.rego": PACKAGE_SIZE,
            "pkg/a.go": "package pkg\n\nfunc a() {}\n\nfunc b() {}\n",
            "pkg/b.go": "package pkg\n\nfunc c() {}\n\nfunc d() {}\n",
        }
    )
    linter = _linter(root)

    assert linter.lint_paths([str(root / "pkg")]).violations == []

    report = linter.lint_paths([str(root / "pkg")], package_mode=True)
    assert [(item.rule, item.message, item.position.file) for item in report.violations] == [
        ("package_size", "package pkg is too large", str(root / "pkg" / "b.go"))
    ]


PACKAGE_UNDERSCORE = """
package regolint.rules.naming.package_underscore

import rego.v1

deny contains violation if {
    contains(input.package.name, "_")
    violation := {
        "message": sprintf("package %s contains an underscore", [input.package.name]),
        "rule": "package_underscore",
        "position": {"line": 1, "column": 1},
    }
}
"""


def test_package_mode_does_not_repeat_file_findings(write_tree) -> None:
    root = write_tree(
        {
            ".regolint/policies/underscore.rego": PACKAGE_UNDERSCORE,
            "my_pkg/a.go": "package my_pkg\n",
            "my_pkg/b.go": "package my_pkg\n",
            "my_pkg/c.go": "package my_pkg //nolint:package_underscore\n",
        }
    )

    report = _linter(root).lint_paths([str(root / "my_pkg")], package_mode=True)

    assert [(item.rule, item.position.file) for item in report.violations] == [
        ("package_underscore", str(root / "my_pkg" / "a.go")),
        ("package_underscore", str(root / "my_pkg" / "b.go")),
    ]


def test_module_path_comes_from_go_mod(write_tree) -> None:
    root = write_tree(
        {
            "go.mod": "module example.com/shop\n\ngo 1.22\n",
            "internal/store/db.go": "package store\n",
            "main.go": "package main\n",
        }
    )
    linter = _linter(root)

    store = linter.facts(root / "internal" / "store" / "db.go")
    main = linter.facts(root / "main.go")

    assert store.module_path == "example.com/shop"
    assert store.package.path == "example.com/shop/internal/store"
    assert main.package.path == "example.com/shop"


def test_explicit_module_path_overrides_go_mod(write_tree) -> None:
    root = write_tree({"go.mod": "module example.com/shop\n", "api/api.go": "package api\n"})

    facts = _linter(root, module_path="example.org/other").facts(root / "api" / "api.go")

    assert facts.package.path == "example.org/other/api"


def test_syntax_errors_are_warnings(write_tree) -> None:
    root = write_tree(
        {
            ".regolint/policies/exported.rego": EXPORTED_API,
            "broken.go": "package broken\n\nfunc Good() {}\n\nfunc Broken( {\n",
        }
    )

    report = _linter(root).lint_paths([str(root / "broken.go")])

    assert any("syntax errors found" in warning for warning in report.warnings)


def test_missing_path_is_an_error(tmp_path: Path) -> None:
    with pytest.raises(RegolintError, match="path not found"):
        Linter(load_config(tmp_path)).discover([str(tmp_path / "nope")])


def test_invalid_policy_fails_fast(write_tree) -> None:
    root = write_tree(
        {
            ".regolint/policies/bad.rego": "package regolint.rules.bad.rule\n\ndeny contains x if {\n    y := 1\n}\n",
            "main.go": "package main\n",
        }
    )

    with pytest.raises(CompileError):
        _linter(root).lint_paths([str(root)])


def test_remote_policies_are_fetched_once(write_tree) -> None:
    root = write_tree(
        {
            ".regolint.yml": """
            policies:
              remote:
                - https://policies.example.com/exported.rego
            """,
            "shop.go": SHOP,
        }
    )
    calls = []

    def transport(parsed, addresses, timeout, limit):
        calls.append(parsed.geturl())
        return 200, EXPORTED_API.encode()

    fetcher = SecureFetcher(resolver=lambda host: ["93.184.216.34"], transport=transport)
    linter = _linter(root, fetcher=fetcher)

    report = linter.lint_paths([str(root / "shop.go")])
    linter.lint_paths([str(root / "shop.go")])

    assert calls == ["https://policies.example.com/exported.rego"]
    assert [item.position.line for item in report.violations] == [4, 11]
    assert any("has no checksum" in warning for warning in report.warnings)
