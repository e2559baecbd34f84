"""Lint pipeline: policy loading, per-file analysis and package evaluation."""

from __future__ import annotations

import re
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .config import RegolintConfig
from .errors import RegolintError
from .evaluator import PolicyEngine
from .golang.parser import GoParser
from .logging import get_logger
from .models import FactBag, Violation
from .nolint import Directive, extract_directives, filter_violations
from .remote import SecureFetcher
from .transformer import Transformer, build_package_fact_bag

_MODULE_LINE = re.compile(r"^\s*module\s+(\S+)", re.MULTILINE)


@dataclass
class LintReport:
    """Outcome of linting a set of paths."""

    violations: List[Violation] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    files: List[str] = field(default_factory=list)

    @property
    def has_violations(self) -> bool:
        return bool(self.violations)


@dataclass
class _FileResult:
    path: Path
    bag: FactBag
    directives: List[Directive]


class Linter:
    """Runs policies over Go sources according to a configuration.

    Policies are loaded and the engine is built once per linter; both steps
    fail fast.
    """

    def __init__(
        self,
        config: RegolintConfig,
        *,
        fetcher: SecureFetcher | None = None,
        parser: GoParser | None = None,
        module_path: str | None = None,
    ) -> None:
        self.config = config
        self.fetcher = fetcher or SecureFetcher(timeout=config.performance.timeout)
        self.parser = parser or GoParser()
        self.module_path = module_path
        self.logger = get_logger("linter")
        self.warnings: List[str] = []
        self._policies: Optional[Dict[str, str]] = None
        self._engine: Optional[PolicyEngine] = None
        self._engine_checked = False
        self._modules: Dict[Path, Tuple[str, Optional[Path]]] = {}

    # Policies -----------------------------------------------------------

    def load_policies(self) -> Dict[str, str]:
        """Local and remote policy sources keyed by name."""
        if self._policies is not None:
            return self._policies
        policies = self.config.load_local_policies()
        for remote in self.config.policies.remote:
            fetched = self.fetcher.fetch(remote.url, remote.checksum or None)
            self.warnings.extend(fetched.warnings)
            policies[fetched.name] = fetched.content
        self.logger.debug("Loaded %d policy module(s)", len(policies))
        self._policies = policies
        return policies

    @property
    def engine(self) -> Optional[PolicyEngine]:
        """The shared policy engine, or ``None`` when no policies exist."""
        if not self._engine_checked:
            policies = self.load_policies()
            self._engine_checked = True
            if not policies:
                self._warn(f"no policies found in {self.config.policy_directory()}")
                return None
            self._engine = PolicyEngine.build(policies)
        return self._engine

    # Files --------------------------------------------------------------

    def discover(self, paths: Iterable[str]) -> List[Path]:
        """Go files under ``paths`` that the include/exclude patterns allow."""
        found: List[Path] = []
        seen = set()
        for raw in paths:
            path = Path(raw)
            if path.is_dir():
                candidates = sorted(item for item in path.rglob("*.go") if item.is_file())
            elif path.is_file():
                candidates = [path]
            else:
                raise RegolintError(f"path not found: {raw}")
            for candidate in candidates:
                key = candidate.resolve()
                if key in seen or self._skipped(candidate):
                    continue
                seen.add(key)
                found.append(candidate)
        return found

    def _skipped(self, path: Path) -> bool:
        display = path.as_posix()
        return self.config.should_skip(display) or not self.config.is_included(display)

    def facts(self, path: Path) -> FactBag:
        """Fact bag for one file without evaluating any policy."""
        return self._analyze(Path(path)).bag

    def lint_file(self, path: Path) -> List[Violation]:
        """Violations for one file after rule, severity and nolint handling."""
        engine = self.engine
        if engine is None:
            return []
        result = self._analyze(Path(path))
        violations = engine.evaluate(result.bag)
        return self._finalize(violations, result.path, result.directives)

    def lint_paths(self, paths: Sequence[str], *, package_mode: bool = False) -> LintReport:
        report = LintReport()
        files = self.discover(paths)
        report.files = [str(path) for path in files]
        engine = self.engine
        if engine is not None:
            if package_mode:
                for directory, group in _group_by_directory(files).items():
                    report.violations.extend(self._lint_package(engine, directory, group))
            else:
                for path in files:
                    report.violations.extend(self.lint_file(path))
        report.warnings = list(self.warnings)
        return report

    def _lint_package(self, engine: PolicyEngine, directory: Path, files: List[Path]) -> List[Violation]:
        results = [self._analyze(path) for path in files]
        violations: List[Violation] = []
        # keyed before nolint so a suppressed file finding is not re-reported for the package
        file_findings = set()
        for result in results:
            found = engine.evaluate(result.bag)
            file_findings.update((item.rule, item.message) for item in found)
            violations.extend(self._finalize(found, result.path, result.directives))

        package_bag = build_package_fact_bag(result.bag for result in results)
        if package_bag is None:
            return violations
        by_name = {result.path.name: result for result in results}
        for violation in engine.evaluate_package(package_bag):
            if (violation.rule, violation.message) in file_findings:
                continue
            owner = by_name.get(violation.position.file)
            if owner is not None:
                violations.extend(self._finalize([violation], owner.path, owner.directives))
            else:
                violations.extend(self._finalize([violation], directory, []))
        return violations

    def _analyze(self, path: Path) -> _FileResult:
        try:
            parsed = self.parser.parse_file(path)
        except OSError as exc:
            raise RegolintError(f"reading {path}: {exc}") from exc
        if parsed.has_errors:
            self._warn(f"{path}: syntax errors found; facts may be incomplete")
        module_path, package_path = self._package_paths(path)
        bag = Transformer(module_path=module_path, package_path=package_path).transform(parsed, str(path))
        return _FileResult(path=path, bag=bag, directives=extract_directives(parsed))

    def _finalize(self, violations: List[Violation], path: Path, directives: List[Directive]) -> List[Violation]:
        kept: List[Violation] = []
        for violation in violations:
            if self.config.is_rule_disabled(violation.rule):
                continue
            severity = self.config.severity_for(violation.rule, violation.severity)
            position = replace(violation.position, file=str(path))
            kept.append(replace(violation, severity=severity, position=position))
        return filter_violations(kept, directives)

    # Module metadata ----------------------------------------------------

    def _package_paths(self, path: Path) -> Tuple[str, str]:
        directory = path.resolve().parent
        module, module_root = self._module_for(directory)
        if self.module_path is not None:
            module = self.module_path
        if module_root is None or not module:
            return module, module
        relative = directory.relative_to(module_root).as_posix()
        return module, module if relative == "." else f"{module}/{relative}"

    def _module_for(self, directory: Path) -> Tuple[str, Optional[Path]]:
        if directory in self._modules:
            return self._modules[directory]
        result: Tuple[str, Optional[Path]] = ("", None)
        for candidate in (directory, *directory.parents):
            go_mod = candidate / "go.mod"
            if go_mod.is_file():
                match = _MODULE_LINE.search(go_mod.read_text(encoding="utf-8", errors="replace"))
                result = (match.group(1) if match else "", candidate)
                break
        self._modules[directory] = result
        return result

    def _warn(self, message: str) -> None:
        self.logger.warning(message)
        self.warnings.append(message)


def _group_by_directory(files: Iterable[Path]) -> "OrderedDict[Path, List[Path]]":
    groups: "OrderedDict[Path, List[Path]]" = OrderedDict()
    for path in files:
        groups.setdefault(path.parent, []).append(path)
    return groups


__all__ = ["LintReport", "Linter"]
