"""Syntax tree for Rego modules and queries."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple, Union

WILDCARD_PREFIX = "$"


# Terms ----------------------------------------------------------------------


@dataclass(frozen=True)
class Scalar:
    value: object


@dataclass(frozen=True)
class Var:
    name: str
    line: int = field(default=0, compare=False)

    @property
    def is_generated(self) -> bool:
        return self.name.startswith(WILDCARD_PREFIX)


@dataclass(frozen=True)
class Ref:
    head: "Term"
    path: Tuple["Term", ...]


@dataclass(frozen=True)
class ArrayTerm:
    items: Tuple["Term", ...]


@dataclass(frozen=True)
class SetTerm:
    items: Tuple["Term", ...]


@dataclass(frozen=True)
class ObjectTerm:
    items: Tuple[Tuple["Term", "Term"], ...]


@dataclass(frozen=True)
class Call:
    """A function call; ``target`` is filled in by the compiler.

    ``target`` is ``("builtin", name)`` or ``("function", path)``.
    """

    name: str
    args: Tuple["Term", ...]
    line: int = field(default=0, compare=False)
    target: Optional[Tuple[str, object]] = None


@dataclass(frozen=True)
class ArrayComprehension:
    head: "Term"
    body: Tuple["Literal", ...]


@dataclass(frozen=True)
class SetComprehension:
    head: "Term"
    body: Tuple["Literal", ...]


@dataclass(frozen=True)
class ObjectComprehension:
    key: "Term"
    value: "Term"
    body: Tuple["Literal", ...]


Comprehension = Union[ArrayComprehension, SetComprehension, ObjectComprehension]
Term = Union[
    Scalar,
    Var,
    Ref,
    ArrayTerm,
    SetTerm,
    ObjectTerm,
    Call,
    ArrayComprehension,
    SetComprehension,
    ObjectComprehension,
]


# Body literals --------------------------------------------------------------


@dataclass(frozen=True)
class TermExpr:
    term: Term
    line: int = 0


@dataclass(frozen=True)
class Assign:
    target: Term
    value: Term
    line: int = 0


@dataclass(frozen=True)
class Unify:
    left: Term
    right: Term
    line: int = 0


@dataclass(frozen=True)
class Not:
    expr: "Literal"
    line: int = 0


@dataclass(frozen=True)
class SomeDecl:
    names: Tuple[Var, ...]
    line: int = 0


@dataclass(frozen=True)
class SomeIn:
    key: Optional[Term]
    value: Term
    collection: Term
    line: int = 0


@dataclass(frozen=True)
class Every:
    key: Optional[Term]
    value: Term
    domain: Term
    body: Tuple["Literal", ...]
    line: int = 0


Literal = Union[TermExpr, Assign, Unify, Not, SomeDecl, SomeIn, Every]


# Modules --------------------------------------------------------------------

RULE_COMPLETE = "complete"
RULE_PARTIAL_SET = "partial_set"
RULE_PARTIAL_OBJECT = "partial_object"
RULE_FUNCTION = "function"


@dataclass(frozen=True)
class Rule:
    name: str
    kind: str
    body: Tuple[Literal, ...] = ()
    key: Optional[Term] = None
    value: Optional[Term] = None
    args: Tuple[Term, ...] = ()
    default: bool = False
    else_rule: Optional["Rule"] = None
    line: int = 0

    def chain(self) -> Iterator["Rule"]:
        rule: Optional[Rule] = self
        while rule is not None:
            yield rule
            rule = rule.else_rule


@dataclass(frozen=True)
class Import:
    path: Tuple[str, ...]
    alias: str = ""
    line: int = 0

    @property
    def name(self) -> str:
        return self.alias or self.path[-1]

    @property
    def is_keyword_import(self) -> bool:
        return self.path[0] == "future" or self.path == ("rego", "v1")


@dataclass
class Module:
    name: str
    package: Tuple[str, ...]
    imports: List[Import] = field(default_factory=list)
    rules: List[Rule] = field(default_factory=list)


# Traversal helpers ----------------------------------------------------------


def term_children(term: Term) -> Iterator[Term]:
    """Direct sub-terms of ``term``, not descending into comprehension bodies."""
    if isinstance(term, Ref):
        yield term.head
        yield from term.path
    elif isinstance(term, (ArrayTerm, SetTerm)):
        yield from term.items
    elif isinstance(term, ObjectTerm):
        for key, value in term.items:
            yield key
            yield value
    elif isinstance(term, Call):
        yield from term.args


def literal_terms(literal: Literal) -> Iterator[Term]:
    if isinstance(literal, TermExpr):
        yield literal.term
    elif isinstance(literal, Assign):
        yield literal.target
        yield literal.value
    elif isinstance(literal, Unify):
        yield literal.left
        yield literal.right
    elif isinstance(literal, Not):
        yield from literal_terms(literal.expr)
    elif isinstance(literal, SomeDecl):
        yield from literal.names
    elif isinstance(literal, SomeIn):
        if literal.key is not None:
            yield literal.key
        yield literal.value
        yield literal.collection
    elif isinstance(literal, Every):
        if literal.key is not None:
            yield literal.key
        yield literal.value
        yield literal.domain


def is_comprehension(term: object) -> bool:
    return isinstance(term, (ArrayComprehension, SetComprehension, ObjectComprehension))


__all__ = [
    "ArrayComprehension",
    "ArrayTerm",
    "Assign",
    "Call",
    "Comprehension",
    "Every",
    "Import",
    "Literal",
    "Module",
    "Not",
    "ObjectComprehension",
    "ObjectTerm",
    "RULE_COMPLETE",
    "RULE_FUNCTION",
    "RULE_PARTIAL_OBJECT",
    "RULE_PARTIAL_SET",
    "Ref",
    "Rule",
    "Scalar",
    "SetComprehension",
    "SetTerm",
    "SomeDecl",
    "SomeIn",
    "Term",
    "TermExpr",
    "Unify",
    "Var",
    "WILDCARD_PREFIX",
    "is_comprehension",
    "literal_terms",
    "term_children",
]
