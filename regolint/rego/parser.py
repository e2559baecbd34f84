"""Recursive-descent parser for Rego v1 modules and queries.

Newlines are significant: they terminate body literals and top-level
statements. Inside parentheses, brackets and literal braces they are skipped
explicitly wherever an expression cannot end.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from .errors import Diagnostic, RegoParseError
from .lexer import EOF, IDENT, NEWLINE, NUMBER, STRING, LexError, Token, tokenize
from .nodes import (
    RULE_COMPLETE,
    RULE_FUNCTION,
    RULE_PARTIAL_OBJECT,
    RULE_PARTIAL_SET,
    WILDCARD_PREFIX,
    ArrayComprehension,
    ArrayTerm,
    Assign,
    Call,
    Every,
    Import,
    Literal,
    Module,
    Not,
    ObjectComprehension,
    ObjectTerm,
    Ref,
    Rule,
    Scalar,
    SetComprehension,
    SetTerm,
    SomeDecl,
    SomeIn,
    Term,
    TermExpr,
    Unify,
    Var,
)

KEYWORDS = frozenset(
    {
        "as",
        "contains",
        "default",
        "else",
        "every",
        "false",
        "if",
        "import",
        "in",
        "not",
        "null",
        "package",
        "some",
        "true",
        "with",
    }
)

# operator -> (precedence, builtin name)
_BINARY_OPERATORS: Dict[str, Tuple[int, str]] = {
    "==": (1, "equal"),
    "!=": (1, "neq"),
    "<": (1, "lt"),
    "<=": (1, "lte"),
    ">": (1, "gt"),
    ">=": (1, "gte"),
    "|": (2, "or"),
    "&": (3, "and"),
    "+": (4, "plus"),
    "-": (4, "minus"),
    "*": (5, "mul"),
    "/": (5, "div"),
    "%": (5, "rem"),
}
MEMBER_BUILTIN = "internal.member_2"
_MEMBERSHIP_PRECEDENCE = 0
_ABOVE_MEMBERSHIP = 1
_ABOVE_UNION = 3
_IMPORT_ROOTS = {"data", "input", "future", "rego"}


class _ParseFailure(Exception):
    def __init__(self, message: str, line: int) -> None:
        super().__init__(message)
        self.line = line


class Parser:
    """Parses one source text; collects every statement-level error."""

    def __init__(self, text: str, name: str = "query") -> None:
        self.name = name
        self.errors: List[Diagnostic] = []
        self._wildcards = 0
        self._pos = 0
        try:
            self._tokens = tokenize(text)
        except LexError as exc:
            self._tokens = []
            self.errors.append(Diagnostic(name, exc.line, str(exc)))

    # Entry points -------------------------------------------------------

    def parse_module(self) -> Module:
        if not self._tokens:
            raise RegoParseError(self.errors)
        module = Module(name=self.name, package=())
        self._skip_newlines()
        try:
            module.package = self._parse_package()
            self._end_statement()
        except _ParseFailure as exc:
            self._record(exc)
            raise RegoParseError(self.errors) from None

        while True:
            self._skip_newlines()
            if self._peek().kind == EOF:
                break
            start = self._pos
            try:
                if self._peek().is_keyword("import"):
                    module.imports.append(self._parse_import())
                elif self._peek().is_keyword("package"):
                    raise self._failure("unexpected package declaration")
                else:
                    module.rules.append(self._parse_rule())
                self._end_statement()
            except _ParseFailure as exc:
                self._record(exc)
                self._recover(start)

        if self.errors:
            raise RegoParseError(self.errors)
        return module

    def parse_query(self) -> Tuple[Literal, ...]:
        if not self._tokens:
            raise RegoParseError(self.errors)
        literals: List[Literal] = []
        try:
            while True:
                self._skip_separators()
                if self._peek().kind == EOF:
                    break
                literals.append(self._parse_literal())
                token = self._peek()
                if not (token.kind in {NEWLINE, EOF} or token.is_op(";")):
                    raise self._failure(f"unexpected {self._describe(token)}")
        except _ParseFailure as exc:
            self._record(exc)
        if not literals and not self.errors:
            self.errors.append(Diagnostic(self.name, 1, "empty query"))
        if self.errors:
            raise RegoParseError(self.errors)
        return tuple(literals)

    # Statements ---------------------------------------------------------

    def _parse_package(self) -> Tuple[str, ...]:
        if not self._peek().is_keyword("package"):
            raise self._failure("package expected")
        self._advance()
        return self._parse_dotted_name()

    def _parse_import(self) -> Import:
        line = self._advance().line
        path = self._parse_dotted_name()
        if path[0] not in _IMPORT_ROOTS:
            raise _ParseFailure(f"invalid import path {'.'.join(path)}", line)
        alias = ""
        if self._peek().is_keyword("as"):
            self._advance()
            alias = self._expect_ident().text
        return Import(path=path, alias=alias, line=line)

    def _parse_dotted_name(self) -> Tuple[str, ...]:
        parts = [self._expect_name().text]
        while True:
            if self._peek().is_op(".") and self._peek(1).kind == IDENT:
                self._advance()
                parts.append(self._advance().text)
            elif self._peek().is_op("[") and self._peek(1).kind == STRING:
                self._advance()
                parts.append(str(self._advance().value))
                self._expect_op("]")
            else:
                return tuple(parts)

    def _parse_rule(self) -> Rule:
        token = self._peek()
        line = token.line
        if token.is_keyword("default"):
            self._advance()
            name = self._expect_ident().text
            if not self._peek().is_op(":=", "="):
                raise self._failure("default rules must have a value")
            self._advance()
            value = self._parse_expr()
            return Rule(name=name, kind=RULE_COMPLETE, value=value, default=True, line=line)

        name = self._expect_ident().text
        token = self._peek()
        if token.is_op("("):
            args = self._parse_arguments()
            value = self._parse_head_value()
            body = self._parse_rule_body()
            rule = Rule(name=name, kind=RULE_FUNCTION, args=args, value=value, body=body, line=line)
            return self._parse_else(rule)
        if token.is_keyword("contains"):
            self._advance()
            key = self._parse_expr()
            body = self._parse_rule_body()
            return Rule(name=name, kind=RULE_PARTIAL_SET, key=key, body=body, line=line)
        if token.is_op("["):
            self._advance()
            self._skip_newlines()
            key = self._parse_expr()
            self._skip_newlines()
            self._expect_op("]")
            value = self._parse_head_value()
            body = self._parse_rule_body()
            return Rule(
                name=name, kind=RULE_PARTIAL_OBJECT, key=key, value=value, body=body, line=line
            )
        if token.is_op("."):
            raise self._failure("rule head references are not supported")

        has_value = token.is_op(":=", "=")
        value = self._parse_head_value()
        body = self._parse_rule_body()
        if not has_value and not body:
            raise _ParseFailure(f"rule {name} must have a value or a body", line)
        rule = Rule(name=name, kind=RULE_COMPLETE, value=value, body=body, line=line)
        return self._parse_else(rule)

    def _parse_head_value(self) -> Term:
        if self._peek().is_op(":=", "="):
            self._advance()
            self._skip_newlines()
            return self._parse_expr()
        return Scalar(True)

    def _parse_rule_body(self) -> Tuple[Literal, ...]:
        token = self._peek()
        if token.is_op("{"):
            raise self._failure("`if` keyword is required before rule body")
        if not token.is_keyword("if"):
            return ()
        self._advance()
        if self._peek().is_op("{"):
            self._advance()
            return self._parse_body("}")
        return (self._parse_literal(),)

    def _parse_else(self, rule: Rule) -> Rule:
        saved = self._pos
        self._skip_newlines()
        if not self._peek().is_keyword("else"):
            self._pos = saved
            return rule
        line = self._advance().line
        value = self._parse_head_value()
        body = self._parse_rule_body()
        alternative = Rule(
            name=rule.name, kind=rule.kind, args=rule.args, value=value, body=body, line=line
        )
        return Rule(
            name=rule.name,
            kind=rule.kind,
            args=rule.args,
            value=rule.value,
            body=rule.body,
            line=rule.line,
            else_rule=self._parse_else(alternative),
        )

    def _parse_arguments(self) -> Tuple[Term, ...]:
        self._expect_op("(")
        args: List[Term] = []
        self._skip_newlines()
        while not self._peek().is_op(")"):
            args.append(self._parse_expr())
            self._skip_newlines()
            if self._peek().is_op(","):
                self._advance()
                self._skip_newlines()
            elif not self._peek().is_op(")"):
                raise self._failure(f"unexpected {self._describe(self._peek())} in arguments")
        self._advance()
        return tuple(args)

    # Bodies -------------------------------------------------------------

    def _parse_body(self, closing: str) -> Tuple[Literal, ...]:
        literals: List[Literal] = []
        while True:
            self._skip_separators()
            token = self._peek()
            if token.is_op(closing):
                self._advance()
                break
            if token.kind == EOF:
                raise self._failure(f"missing closing {closing}")
            literals.append(self._parse_literal())
            token = self._peek()
            if not (token.kind == NEWLINE or token.is_op(";", closing)):
                raise self._failure(f"unexpected {self._describe(token)}")
        if not literals:
            raise self._failure("found empty body")
        return tuple(literals)

    def _parse_literal(self) -> Literal:
        token = self._peek()
        line = token.line
        if token.is_keyword("not"):
            self._advance()
            return Not(expr=self._parse_literal_expr(), line=line)
        if token.is_keyword("some"):
            return self._parse_some()
        if token.is_keyword("every"):
            return self._parse_every()
        return self._parse_literal_expr()

    def _parse_literal_expr(self) -> Literal:
        line = self._peek().line
        left = self._parse_expr()
        token = self._peek()
        if token.is_op(":="):
            self._advance()
            self._skip_newlines()
            literal: Literal = Assign(target=left, value=self._parse_expr(), line=line)
        elif token.is_op("="):
            self._advance()
            self._skip_newlines()
            literal = Unify(left=left, right=self._parse_expr(), line=line)
        else:
            literal = TermExpr(term=left, line=line)
        if self._peek().is_keyword("with"):
            raise self._failure("the with keyword is not supported")
        return literal

    def _parse_some(self) -> Literal:
        line = self._advance().line
        items = [self._parse_binary(_ABOVE_MEMBERSHIP)]
        while self._peek().is_op(","):
            self._advance()
            self._skip_newlines()
            items.append(self._parse_binary(_ABOVE_MEMBERSHIP))
        if self._peek().is_keyword("in"):
            self._advance()
            self._skip_newlines()
            collection = self._parse_binary(_ABOVE_MEMBERSHIP)
            if len(items) == 1:
                return SomeIn(key=None, value=items[0], collection=collection, line=line)
            if len(items) == 2:
                return SomeIn(key=items[0], value=items[1], collection=collection, line=line)
            raise _ParseFailure("some ... in takes at most two variables", line)
        names = []
        for item in items:
            if not isinstance(item, Var):
                raise _ParseFailure("some declarations accept variables only", line)
            names.append(item)
        return SomeDecl(names=tuple(names), line=line)

    def _parse_every(self) -> Literal:
        line = self._advance().line
        items = [self._parse_binary(_ABOVE_MEMBERSHIP)]
        if self._peek().is_op(","):
            self._advance()
            items.append(self._parse_binary(_ABOVE_MEMBERSHIP))
        if any(not isinstance(item, Var) for item in items):
            raise _ParseFailure("every accepts variables only", line)
        if not self._peek().is_keyword("in"):
            raise self._failure("every requires an in clause")
        self._advance()
        domain = self._parse_binary(_ABOVE_MEMBERSHIP)
        self._expect_op("{")
        body = self._parse_body("}")
        key = items[0] if len(items) == 2 else None
        return Every(key=key, value=items[-1], domain=domain, body=body, line=line)

    # Expressions --------------------------------------------------------

    def _parse_expr(self) -> Term:
        return self._parse_binary(_MEMBERSHIP_PRECEDENCE)

    def _parse_binary(self, min_precedence: int, left: Optional[Term] = None) -> Term:
        if left is None:
            left = self._parse_unary()
        while True:
            token = self._peek()
            if token.is_keyword("in"):
                precedence, builtin = _MEMBERSHIP_PRECEDENCE, MEMBER_BUILTIN
            elif token.is_op(*_BINARY_OPERATORS):
                precedence, builtin = _BINARY_OPERATORS[token.text]
            else:
                return left
            if precedence < min_precedence:
                return left
            self._advance()
            self._skip_newlines()
            right = self._parse_binary(precedence + 1)
            left = Call(name=builtin, args=(left, right), line=token.line)

    def _parse_unary(self) -> Term:
        token = self._peek()
        if token.is_op("-"):
            self._advance()
            operand = self._parse_unary()
            if isinstance(operand, Scalar) and isinstance(operand.value, (int, float)):
                return Scalar(-operand.value)
            return Call(name="minus", args=(Scalar(0), operand), line=token.line)
        return self._parse_postfix()

    def _parse_postfix(self) -> Term:
        term = self._parse_primary()
        path: List[Term] = []
        while True:
            token = self._peek()
            if token.is_op(".") and self._peek(1).kind == IDENT:
                self._advance()
                path.append(Scalar(self._advance().text))
            elif token.is_op("["):
                self._advance()
                self._skip_newlines()
                path.append(self._parse_expr())
                self._skip_newlines()
                self._expect_op("]")
            elif token.is_op("(") and self._call_name(term, path) is not None:
                name = self._call_name(term, path)
                term = Call(name=name, args=self._parse_arguments(), line=token.line)
                path = []
            else:
                break
        if path:
            return Ref(head=term, path=tuple(path))
        return term

    @staticmethod
    def _call_name(term: Term, path: List[Term]) -> Optional[str]:
        if not isinstance(term, Var) or term.is_generated:
            return None
        parts = [term.name]
        for element in path:
            if not isinstance(element, Scalar) or not isinstance(element.value, str):
                return None
            parts.append(element.value)
        return ".".join(parts)

    def _parse_primary(self) -> Term:
        token = self._peek()
        if token.kind in {NUMBER, STRING}:
            self._advance()
            return Scalar(token.value)
        if token.kind == IDENT:
            return self._parse_identifier()
        if token.is_op("("):
            self._advance()
            self._skip_newlines()
            term = self._parse_expr()
            self._skip_newlines()
            self._expect_op(")")
            return term
        if token.is_op("["):
            return self._parse_array()
        if token.is_op("{"):
            return self._parse_braces()
        raise self._failure(f"unexpected {self._describe(token)}")

    def _parse_identifier(self) -> Term:
        token = self._advance()
        word = token.text
        if word == "true":
            return Scalar(True)
        if word == "false":
            return Scalar(False)
        if word == "null":
            return Scalar(None)
        if word == "_":
            self._wildcards += 1
            return Var(f"{WILDCARD_PREFIX}_{self._wildcards}", line=token.line)
        if word == "set" and self._peek().is_op("(") and self._peek(1).is_op(")"):
            self._advance()
            self._advance()
            return SetTerm(items=())
        if word in KEYWORDS and not (word == "contains" and self._peek().is_op("(")):
            raise _ParseFailure(f"unexpected keyword {word}", token.line)
        return Var(word, line=token.line)

    def _parse_array(self) -> Term:
        self._expect_op("[")
        self._skip_newlines()
        if self._peek().is_op("]"):
            self._advance()
            return ArrayTerm(items=())
        head = self._parse_binary(_ABOVE_UNION)
        self._skip_newlines()
        if self._peek().is_op("|"):
            self._advance()
            return ArrayComprehension(head=head, body=self._parse_body("]"))
        items = self._parse_items(self._parse_binary(_MEMBERSHIP_PRECEDENCE, head), "]")
        return ArrayTerm(items=tuple(items))

    def _parse_braces(self) -> Term:
        self._expect_op("{")
        self._skip_newlines()
        if self._peek().is_op("}"):
            self._advance()
            return ObjectTerm(items=())
        head = self._parse_binary(_ABOVE_UNION)
        self._skip_newlines()
        if self._peek().is_op("|"):
            self._advance()
            return SetComprehension(head=head, body=self._parse_body("}"))
        if not self._peek().is_op(":"):
            items = self._parse_items(self._parse_binary(_MEMBERSHIP_PRECEDENCE, head), "}")
            return SetTerm(items=tuple(items))

        self._advance()
        self._skip_newlines()
        value = self._parse_binary(_ABOVE_UNION)
        self._skip_newlines()
        if self._peek().is_op("|"):
            self._advance()
            return ObjectComprehension(key=head, value=value, body=self._parse_body("}"))
        pairs = [(head, self._parse_binary(_MEMBERSHIP_PRECEDENCE, value))]
        while True:
            self._skip_newlines()
            if not self._peek().is_op(","):
                break
            self._advance()
            self._skip_newlines()
            if self._peek().is_op("}"):
                break
            key = self._parse_expr()
            self._skip_newlines()
            self._expect_op(":")
            self._skip_newlines()
            pairs.append((key, self._parse_expr()))
        self._skip_newlines()
        self._expect_op("}")
        return ObjectTerm(items=tuple(pairs))

    def _parse_items(self, first: Term, closing: str) -> List[Term]:
        items = [first]
        while True:
            self._skip_newlines()
            if not self._peek().is_op(","):
                break
            self._advance()
            self._skip_newlines()
            if self._peek().is_op(closing):
                break
            items.append(self._parse_expr())
        self._skip_newlines()
        self._expect_op(closing)
        return items

    # Token helpers ------------------------------------------------------

    def _peek(self, offset: int = 0) -> Token:
        index = min(self._pos + offset, len(self._tokens) - 1)
        return self._tokens[index]

    def _advance(self) -> Token:
        token = self._tokens[self._pos]
        if token.kind != EOF:
            self._pos += 1
        return token

    def _skip_newlines(self) -> None:
        while self._peek().kind == NEWLINE:
            self._advance()

    def _skip_separators(self) -> None:
        while self._peek().kind == NEWLINE or self._peek().is_op(";"):
            self._advance()

    def _expect_op(self, op: str) -> Token:
        token = self._peek()
        if not token.is_op(op):
            raise self._failure(f"expected {op} but found {self._describe(token)}")
        return self._advance()

    def _expect_ident(self) -> Token:
        token = self._peek()
        if token.kind != IDENT or token.text in KEYWORDS:
            raise self._failure(f"expected identifier but found {self._describe(token)}")
        return self._advance()

    def _expect_name(self) -> Token:
        token = self._peek()
        if token.kind != IDENT:
            raise self._failure(f"expected name but found {self._describe(token)}")
        return self._advance()

    def _end_statement(self) -> None:
        token = self._peek()
        if token.kind not in {NEWLINE, EOF} and not token.is_op(";"):
            raise self._failure(f"unexpected {self._describe(token)}")

    def _failure(self, message: str) -> _ParseFailure:
        return _ParseFailure(message, self._peek().line)

    def _record(self, exc: _ParseFailure) -> None:
        self.errors.append(Diagnostic(self.name, exc.line, str(exc)))

    def _recover(self, start: int) -> None:
        depth = 0
        for token in self._tokens[start : self._pos]:
            depth += _depth_change(token)
        while self._peek().kind != EOF:
            token = self._peek()
            if token.kind == NEWLINE and depth <= 0:
                return
            depth += _depth_change(token)
            self._advance()

    @staticmethod
    def _describe(token: Token) -> str:
        if token.kind == EOF:
            return "end of input"
        if token.kind == NEWLINE:
            return "newline"
        return f"token {token.text!r}"


def _depth_change(token: Token) -> int:
    if token.is_op("{", "[", "("):
        return 1
    if token.is_op("}", "]", ")"):
        return -1
    return 0


def parse_module(name: str, text: str) -> Module:
    """Parse one policy module; raises RegoParseError listing every error found."""
    return Parser(text, name).parse_module()


def parse_query(text: str, name: str = "query") -> Tuple[Literal, ...]:
    return Parser(text, name).parse_query()


__all__ = ["KEYWORDS", "MEMBER_BUILTIN", "Parser", "parse_module", "parse_query"]
