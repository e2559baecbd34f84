"""Tests for regolint.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from regolint.config import (
    CONFIG_FILENAME,
    PerformanceConfig,
    RegolintConfig,
    glob_to_regex,
    load_config,
    matches_any,
    parse_duration,
)
from regolint.errors import ConfigError


def test_missing_config_yields_defaults(tmp_path: Path) -> None:
    config = load_config(tmp_path)

    assert config.root == tmp_path.resolve()
    assert config.policies.directory == ".regolint/policies"
    assert config.include == ["**/*.go"]
    assert config.exclude == ["**/*_test.go", "**/vendor/**", "**/testdata/**"]
    assert config.output.format == "text"
    assert config.performance.timeout == 30.0


def test_load_config_reads_every_section(write_tree) -> None:
    root = write_tree(
        {
            CONFIG_FILENAME: """
            policies:
              directory: rules
              files:
                - extra/custom.rego
              remote:
                - url: https://example.com/naming.rego
                  checksum: sha256:abc
                - https://example.com/errors.rego
            rules:
              disabled: [no-get]
              severity:
                exported-doc: info
            include: ["**/*.go"]
            exclude: ["gen/**"]
            output:
              format: sarif
              verbose: true
            performance:
              parallelism: 8
              timeout: 1m30s
            """
        }
    )

    config = load_config(root / CONFIG_FILENAME)

    assert config.root == root.resolve()
    assert config.policies.directory == "rules"
    assert config.policies.files == ["extra/custom.rego"]
    assert [(item.url, item.checksum) for item in config.policies.remote] == [
        ("https://example.com/naming.rego", "sha256:abc"),
        ("https://example.com/errors.rego", ""),
    ]
    assert config.rules.disabled == ["no-get"]
    assert config.severity_for("exported-doc", "warning") == "info"
    assert config.severity_for("other", "warning") == "warning"
    assert config.is_rule_disabled("no-get") is True
    assert config.exclude == ["gen/**"]
    assert config.output.format == "sarif"
    assert config.output.verbose is True
    assert config.performance.timeout == 90.0


def test_unknown_performance_keys_are_ignored(write_tree) -> None:
    root = write_tree({CONFIG_FILENAME: "performance:\n  parallelism: 8\n"})

    config = load_config(root / CONFIG_FILENAME)

    assert config.performance == PerformanceConfig(timeout=30.0)


def test_invalid_yaml_raises_config_error(write_tree) -> None:
    root = write_tree({CONFIG_FILENAME: "rules: [unterminated\n"})

    with pytest.raises(ConfigError, match="Failed to parse"):
        load_config(root)


def test_non_mapping_root_raises_config_error(write_tree) -> None:
    root = write_tree({CONFIG_FILENAME: "- just\n- a list\n"})

    with pytest.raises(ConfigError, match="must contain a mapping"):
        load_config(root)


def test_unknown_output_format_raises_config_error(write_tree) -> None:
    root = write_tree({CONFIG_FILENAME: "output:\n  format: xml\n"})

    with pytest.raises(ConfigError, match="Unsupported output format"):
        load_config(root)


def test_remote_policy_requires_url(write_tree) -> None:
    root = write_tree({CONFIG_FILENAME: "policies:\n  remote:\n    - checksum: sha256:abc\n"})

    with pytest.raises(ConfigError, match="require a url"):
        load_config(root)


def test_load_local_policies_keys_directory_by_path_and_files_by_name(write_tree) -> None:
    root = write_tree(
        {
            ".regolint/policies/style/naming.rego": "package regolint.rules.style.naming\n",
            ".regolint/policies/style/naming_test.rego": "package regolint.rules.style.naming_test\n",
            ".regolint/policies/README.md": "docs\n",
            "extra/custom.rego": "package regolint.rules.custom.thing\n",
        }
    )
    config = RegolintConfig(root=root)
    config.policies.files = ["extra/custom.rego"]

    policies = config.load_local_policies()

    assert sorted(policies) == sorted(
        [str(root / ".regolint/policies/style/naming.rego"), "custom.rego"]
    )


def test_missing_explicit_policy_file_is_an_error(tmp_path: Path) -> None:
    config = RegolintConfig(root=tmp_path)
    config.policies.files = ["missing.rego"]

    with pytest.raises(ConfigError, match="reading policy"):
        config.load_local_policies()


@pytest.mark.parametrize(
    "value, expected",
    [(5, 5.0), (2.5, 2.5), ("30s", 30.0), ("1m30s", 90.0), ("1h", 3600.0), ("250ms", 0.25)],
)
def test_parse_duration(value, expected: float) -> None:
    assert parse_duration(value) == pytest.approx(expected)


@pytest.mark.parametrize("value", ["soon", "10", "", True])
def test_parse_duration_rejects_garbage(value) -> None:
    with pytest.raises(ConfigError):
        parse_duration(value)


@pytest.mark.parametrize(
    "pattern, path, expected",
    [
        ("**/*_test.go", "server_test.go", True),
        ("**/*_test.go", "pkg/deep/server_test.go", True),
        ("**/vendor/**", "vendor/github.com/x/y.go", True),
        ("**/vendor/**", "pkg/vendor/y.go", True),
        ("**/*.go", "./main.go", True),
        ("*.go", "pkg/main.go", False),
        ("gen/**", "gen/a/b.go", True),
        ("cmd/{api,worker}/*.go", "cmd/worker/main.go", True),
        ("cmd/{api,worker}/*.go", "cmd/cli/main.go", False),
        ("file?.go", "file1.go", True),
        ("[!a]*.go", "a.go", False),
    ],
)
def test_glob_matching(pattern: str, path: str, expected: bool) -> None:
    assert matches_any([pattern], path) is expected


def test_glob_patterns_are_cached() -> None:
    assert glob_to_regex("**/*.go") is glob_to_regex("**/*.go")


def test_include_and_exclude_checks() -> None:
    config = RegolintConfig(include=["internal/**"], exclude=["internal/gen/**"])

    assert config.is_included("internal/store/db.go") is True
    assert config.is_included("cmd/main.go") is False
    assert config.should_skip("internal/gen/api.go") is True
