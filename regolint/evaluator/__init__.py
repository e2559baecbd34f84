"""Policy evaluation: sandboxed engine, Go predicates and result decoding."""

from .engine import DENIED_BUILTINS, VIOLATIONS_QUERY, PolicyEngine, sandbox_capabilities
from .predicates import predicate_table
from .regex_cache import RegexCache
from .results import ResultVisitor, extract_violations

__all__ = [
    "DENIED_BUILTINS",
    "PolicyEngine",
    "RegexCache",
    "ResultVisitor",
    "VIOLATIONS_QUERY",
    "extract_violations",
    "predicate_table",
    "sandbox_capabilities",
]
