"""Prepared queries over a compiled policy."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from .capabilities import Capabilities
from .compiler import CompiledPolicy, Compiler
from .evaluator import Evaluator
from .nodes import WILDCARD_PREFIX, Literal, TermExpr
from .parser import parse_module, parse_query
from .values import from_python, to_python


class PreparedQuery:
    """A query parsed and compiled once, evaluated many times.

    ``eval`` returns one row per solution, shaped like OPA's result set:
    ``{"expressions": [...], "bindings": {...}}`` with plain Python values.
    """

    def __init__(self, text: str, policy: CompiledPolicy, strict: bool = True) -> None:
        self.text = text
        self.policy = policy
        compiler = Compiler(capabilities=policy.capabilities, strict=strict)
        self.literals = compiler.compile_query(parse_query(text), policy)

    def eval(self, input_value: Any = None) -> List[Dict[str, Any]]:
        evaluator = Evaluator(self.policy, from_python(input_value) if input_value is not None else None)
        rows: List[Dict[str, Any]] = []
        for env in evaluator.eval_body(self.literals, {}):
            expressions = [self._expression_value(evaluator, literal, env) for literal in self.literals]
            bindings = {
                name: to_python(value)
                for name, value in sorted(env.items())
                if not name.startswith(WILDCARD_PREFIX)
            }
            rows.append({"expressions": expressions, "bindings": bindings})
        return rows

    @staticmethod
    def _expression_value(evaluator: Evaluator, literal: Literal, env: Dict[str, Any]) -> Any:
        if isinstance(literal, TermExpr):
            for value, _ in evaluator.eval_term(literal.term, env):
                return to_python(value)
        return True


def prepare(
    query: str,
    modules: Dict[str, str],
    capabilities: Optional[Capabilities] = None,
    strict: bool = True,
) -> PreparedQuery:
    """Parse ``modules`` (name to source), compile them and prepare ``query``."""
    parsed = [parse_module(name, source) for name, source in sorted(modules.items())]
    policy = Compiler(capabilities=capabilities or Capabilities.current(), strict=strict).compile(parsed)
    return PreparedQuery(query, policy, strict=strict)


__all__ = ["PreparedQuery", "prepare"]
