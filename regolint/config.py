"""Configuration loading for regolint (.regolint.yml)."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Pattern, Sequence

import yaml

from .errors import ConfigError
from .logging import get_logger

logger = get_logger("config")

CONFIG_FILENAME = ".regolint.yml"
DEFAULT_POLICY_DIRECTORY = ".regolint/policies"
DEFAULT_INCLUDE = ("**/*.go",)
DEFAULT_EXCLUDE = ("**/*_test.go", "**/vendor/**", "**/testdata/**")
OUTPUT_FORMATS = ("text", "json", "sarif")

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|us|µs|ns|h|m|s)")
_DURATION_UNITS = {"h": 3600.0, "m": 60.0, "s": 1.0, "ms": 1e-3, "us": 1e-6, "µs": 1e-6, "ns": 1e-9}


@dataclass
class RemotePolicy:
    """A policy fetched from an HTTPS URL, optionally pinned by checksum."""

    url: str
    checksum: str = ""


@dataclass
class PoliciesConfig:
    directory: str = DEFAULT_POLICY_DIRECTORY
    files: List[str] = field(default_factory=list)
    remote: List[RemotePolicy] = field(default_factory=list)


@dataclass
class RulesConfig:
    disabled: List[str] = field(default_factory=list)
    severity: Dict[str, str] = field(default_factory=dict)


@dataclass
class OutputConfig:
    format: str = "text"
    verbose: bool = False


@dataclass
class PerformanceConfig:
    timeout: float = 30.0


@dataclass
class RegolintConfig:
    """Represents the settings defined in .regolint.yml."""

    root: Path = field(default_factory=Path.cwd)
    policies: PoliciesConfig = field(default_factory=PoliciesConfig)
    rules: RulesConfig = field(default_factory=RulesConfig)
    include: List[str] = field(default_factory=lambda: list(DEFAULT_INCLUDE))
    exclude: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE))
    output: OutputConfig = field(default_factory=OutputConfig)
    performance: PerformanceConfig = field(default_factory=PerformanceConfig)

    def is_rule_disabled(self, rule: str) -> bool:
        return rule in self.rules.disabled

    def severity_for(self, rule: str, default: str) -> str:
        """Configured severity override for ``rule``, else ``default``."""
        return self.rules.severity.get(rule, default)

    def should_skip(self, path: str) -> bool:
        """True when ``path`` matches any exclude pattern."""
        return matches_any(self.exclude, path)

    def is_included(self, path: str) -> bool:
        return not self.include or matches_any(self.include, path)

    def policy_directory(self) -> Path:
        directory = Path(self.policies.directory).expanduser()
        return directory if directory.is_absolute() else self.root / directory

    def load_local_policies(self) -> Dict[str, str]:
        """Read ``.rego`` files from the policy directory and the explicit file list.

        Directory policies are keyed by path, explicit files by base name.
        ``*_test.rego`` files in the directory are skipped.
        """
        policies: Dict[str, str] = {}
        if self.policies.directory:
            directory = self.policy_directory()
            if directory.is_dir():
                for path in sorted(directory.rglob("*.rego")):
                    if not path.is_file() or path.name.endswith("_test.rego"):
                        continue
                    policies[str(path)] = _read_policy(path)
            else:
                logger.debug("Policy directory %s does not exist", directory)

        for entry in self.policies.files:
            path = Path(entry).expanduser()
            if not path.is_absolute():
                path = self.root / path
            policies[path.name] = _read_policy(path)
        return policies


def load_config(config_path: Path) -> RegolintConfig:
    """Load configuration from disk; a missing file yields the defaults."""
    config_file = _resolve_config_path(Path(config_path))
    root = config_file.parent.resolve()

    if not config_file.exists():
        return RegolintConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{config_file.name} must contain a mapping at the root")

    config = RegolintConfig(root=root)

    policies_data = _as_dict(data.get("policies"))
    if policies_data:
        directory = policies_data.get("directory")
        if directory is not None:
            config.policies.directory = _as_str(directory) or ""
        config.policies.files = _as_str_list(policies_data.get("files"))
        config.policies.remote = _remote_policies(policies_data.get("remote"))

    rules_data = _as_dict(data.get("rules"))
    if rules_data:
        config.rules.disabled = _as_str_list(rules_data.get("disabled"))
        config.rules.severity = {
            str(rule): str(level)
            for rule, level in _as_dict(rules_data.get("severity")).items()
            if _as_str(level)
        }

    if "include" in data:
        config.include = _as_str_list(data.get("include"))
    if "exclude" in data:
        config.exclude = _as_str_list(data.get("exclude"))

    output_data = _as_dict(data.get("output"))
    if output_data:
        output_format = _as_str(output_data.get("format"))
        if output_format:
            if output_format not in OUTPUT_FORMATS:
                raise ConfigError(f"Unsupported output format {output_format!r}")
            config.output.format = output_format
        config.output.verbose = _as_bool(output_data.get("verbose")) or False

    performance_data = _as_dict(data.get("performance"))
    if performance_data:
        timeout = performance_data.get("timeout")
        if timeout is not None:
            config.performance.timeout = parse_duration(timeout)

    return config


def parse_duration(value: Any) -> float:
    """Seconds for a number or a Go-style duration string such as ``1m30s``."""
    if isinstance(value, bool):
        raise ConfigError(f"Invalid duration {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip()
    if not text or _DURATION_PART.sub("", text):
        raise ConfigError(f"Invalid duration {value!r}")
    return sum(float(amount) * _DURATION_UNITS[unit] for amount, unit in _DURATION_PART.findall(text))


def matches_any(patterns: Iterable[str], path: str) -> bool:
    normalised = _normalise_path(path)
    return any(glob_to_regex(pattern).fullmatch(normalised) for pattern in patterns)


@lru_cache(maxsize=256)
def glob_to_regex(pattern: str) -> Pattern[str]:
    """Compile a doublestar glob: ``**`` spans any number of directories, including none."""
    parts: List[str] = []
    index = 0
    length = len(pattern)
    while index < length:
        char = pattern[index]
        if pattern.startswith("**/", index):
            parts.append("(?:.*/)?")
            index += 3
        elif pattern.startswith("/**", index) and index + 3 == length:
            parts.append("(?:/.*)?")
            index += 3
        elif pattern.startswith("**", index):
            parts.append(".*")
            index += 2
        elif char == "*":
            parts.append("[^/]*")
            index += 1
        elif char == "?":
            parts.append("[^/]")
            index += 1
        elif char == "[":
            end = pattern.find("]", index + 1)
            if end == -1:
                parts.append(re.escape(char))
                index += 1
            else:
                body = pattern[index + 1 : end]
                if body.startswith("!"):
                    body = "^" + body[1:]
                parts.append(f"[{body}]")
                index = end + 1
        elif char == "{":
            end = pattern.find("}", index + 1)
            if end == -1:
                parts.append(re.escape(char))
                index += 1
            else:
                options = pattern[index + 1 : end].split(",")
                parts.append("(?:" + "|".join(glob_to_regex(option).pattern for option in options) + ")")
                index = end + 1
        else:
            parts.append(re.escape(char))
            index += 1
    return re.compile("".join(parts))


def _normalise_path(path: str) -> str:
    normalised = str(path).replace("\\", "/")
    while normalised.startswith("./"):
        normalised = normalised[2:]
    return normalised


def _read_policy(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"reading policy {path}: {exc}") from exc


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read {path.name}: {exc}") from exc
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return {} if loaded is None else loaded


def _remote_policies(value: Any) -> List[RemotePolicy]:
    remotes: List[RemotePolicy] = []
    if not isinstance(value, list):
        return remotes
    for item in value:
        if isinstance(item, str):
            remotes.append(RemotePolicy(url=item))
            continue
        item_data = _as_dict(item)
        url = _as_str(item_data.get("url"))
        if not url:
            raise ConfigError("Remote policies require a url")
        remotes.append(RemotePolicy(url=url, checksum=_as_str(item_data.get("checksum")) or ""))
    return remotes


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "OutputConfig",
    "PerformanceConfig",
    "PoliciesConfig",
    "RegolintConfig",
    "RemotePolicy",
    "RulesConfig",
    "glob_to_regex",
    "load_config",
    "matches_any",
    "parse_duration",
]
