"""Sandboxed policy engine evaluating fact bags against Rego policies."""

from __future__ import annotations

import threading
from typing import Any, Dict, List, Mapping, Optional

from ..errors import CompileError, EngineStateError, EvaluationError
from ..logging import get_logger
from ..models import FactBag, PackageFactBag, Violation
from ..rego import (
    Capabilities,
    CompiledPolicy,
    Compiler,
    PreparedQuery,
    RegoCompileError,
    RegoError,
    RegoParseError,
    parse_module,
)
from ..rego.nodes import Module
from .predicates import predicate_builtins
from .regex_cache import RegexCache
from .results import extract_violations

logger = get_logger("engine")

VIOLATIONS_QUERY = "data.regolint.rules[category][rule].deny"
DENIED_BUILTINS = frozenset({"http.send", "net.lookup_ip_addr", "opa.runtime"})

STATE_UNINITIALIZED = "uninitialized"
STATE_BUILDING = "building"
STATE_READY = "ready"
STATE_FAILED = "failed"


def sandbox_capabilities(regex_cache: RegexCache) -> Capabilities:
    """Full builtin set minus network and runtime access, plus the ``go.*`` predicates."""
    return (
        Capabilities.current()
        .without(DENIED_BUILTINS)
        .with_builtins(predicate_builtins(regex_cache))
        .with_allow_net([])
    )


class PolicyEngine:
    """Compiles a policy set once and evaluates fact bags against it.

    Construction runs through ``UNINITIALIZED -> BUILDING -> READY | FAILED``
    under a lock. A failed build is sticky: later ``initialize`` calls
    re-raise the original error.
    """

    def __init__(self, policies: Mapping[str, str], *, query: str = VIOLATIONS_QUERY) -> None:
        self.policies: Dict[str, str] = dict(policies)
        self.query_text = query
        self.regex_cache = RegexCache()
        self.capabilities = sandbox_capabilities(self.regex_cache)
        self._state = STATE_UNINITIALIZED
        self._error: Optional[CompileError] = None
        self._policy: Optional[CompiledPolicy] = None
        self._query: Optional[PreparedQuery] = None
        self._lock = threading.Lock()

    @classmethod
    def build(cls, policies: Mapping[str, str], **kwargs: Any) -> "PolicyEngine":
        """Return a READY engine or raise :class:`CompileError`."""
        engine = cls(policies, **kwargs)
        engine.initialize()
        return engine

    @property
    def state(self) -> str:
        return self._state

    @property
    def ready(self) -> bool:
        return self._state == STATE_READY

    def initialize(self) -> None:
        with self._lock:
            if self._state == STATE_READY:
                return
            if self._error is not None:
                raise self._error
            self._state = STATE_BUILDING
            try:
                self._policy = self._compile(self._parse())
                self._query = self._prepare(self._policy)
            except CompileError as exc:
                self._state = STATE_FAILED
                self._error = exc
                logger.debug("Policy engine build failed: %s", exc)
                raise
            self._state = STATE_READY
            logger.debug("Policy engine ready with %d module(s)", len(self.policies))

    def _parse(self) -> List[Module]:
        modules: List[Module] = []
        diagnostics: List[str] = []
        for name in sorted(self.policies):
            try:
                modules.append(parse_module(name, self.policies[name]))
            except RegoParseError as exc:
                diagnostics.extend(str(item) for item in exc.diagnostics)
        if diagnostics:
            raise CompileError("parsing policies", diagnostics)
        return modules

    def _compile(self, modules: List[Module]) -> CompiledPolicy:
        try:
            return Compiler(capabilities=self.capabilities, strict=True).compile(modules)
        except RegoCompileError as exc:
            raise CompileError("compiling policies", [str(item) for item in exc.diagnostics]) from exc

    def _prepare(self, policy: CompiledPolicy) -> PreparedQuery:
        try:
            return PreparedQuery(self.query_text, policy)
        except (RegoParseError, RegoCompileError) as exc:
            raise CompileError("preparing query", [str(item) for item in exc.diagnostics]) from exc

    def evaluate(self, bag: FactBag) -> List[Violation]:
        """Violations reported by every policy for one file's facts."""
        return self._evaluate(bag.to_dict(), bag.file_path)

    def evaluate_package(self, bag: PackageFactBag) -> List[Violation]:
        """Violations reported by every policy for a whole package's facts."""
        return self._evaluate(bag.to_dict(), bag.package.path or bag.package.name)

    def _evaluate(self, document: Dict[str, Any], label: str) -> List[Violation]:
        if self._state != STATE_READY or self._query is None:
            raise EngineStateError(f"policy engine is not ready (state: {self._state})")
        try:
            rows = self._query.eval(document)
        except (RegoError, RecursionError) as exc:
            raise EvaluationError(f"evaluating policies for {label}: {exc}") from exc
        return extract_violations(rows)


__all__ = [
    "DENIED_BUILTINS",
    "PolicyEngine",
    "STATE_BUILDING",
    "STATE_FAILED",
    "STATE_READY",
    "STATE_UNINITIALIZED",
    "VIOLATIONS_QUERY",
    "sandbox_capabilities",
]
