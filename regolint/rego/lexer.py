"""Tokenizer for Rego source text."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import List

IDENT = "IDENT"
STRING = "STRING"
NUMBER = "NUMBER"
NEWLINE = "NEWLINE"
OPERATOR = "OP"
EOF = "EOF"

_OPERATORS = (
    ":=",
    "==",
    "!=",
    "<=",
    ">=",
    "<",
    ">",
    "=",
    "+",
    "-",
    "*",
    "/",
    "%",
    "|",
    "&",
    ".",
    ",",
    ";",
    ":",
    "(",
    ")",
    "[",
    "]",
    "{",
    "}",
)

_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_NUMBER_RE = re.compile(r"(?:0|[1-9][0-9]*)(?:\.[0-9]+)?(?:[eE][+-]?[0-9]+)?")
_STRING_RE = re.compile(r'"(?:[^"\\\n]|\\.)*"')


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    value: object
    line: int
    column: int

    def is_op(self, *ops: str) -> bool:
        return self.kind == OPERATOR and self.text in ops

    def is_keyword(self, *words: str) -> bool:
        return self.kind == IDENT and self.text in words


class LexError(ValueError):
    def __init__(self, message: str, line: int) -> None:
        super().__init__(message)
        self.line = line


def tokenize(text: str) -> List[Token]:
    """Split ``text`` into tokens; newlines are kept because they end literals."""
    tokens: List[Token] = []
    line = 1
    line_start = 0
    index = 0
    length = len(text)

    while index < length:
        char = text[index]
        column = index - line_start + 1

        if char == "\n":
            tokens.append(Token(NEWLINE, "\n", None, line, column))
            line += 1
            index += 1
            line_start = index
            continue
        if char in " \t\r":
            index += 1
            continue
        if char == "#":
            end = text.find("\n", index)
            index = length if end == -1 else end
            continue

        if char == '"':
            match = _STRING_RE.match(text, index)
            if match is None:
                raise LexError("unterminated string", line)
            raw = match.group(0)
            try:
                value = json.loads(raw, strict=False)
            except ValueError as exc:
                raise LexError(f"invalid string literal {raw}", line) from exc
            tokens.append(Token(STRING, raw, value, line, column))
            index = match.end()
            continue

        if char == "`":
            end = text.find("`", index + 1)
            if end == -1:
                raise LexError("unterminated raw string", line)
            raw = text[index : end + 1]
            tokens.append(Token(STRING, raw, raw[1:-1], line, column))
            newlines = raw.count("\n")
            if newlines:
                line += newlines
                line_start = index + raw.rfind("\n") + 1
            index = end + 1
            continue

        if char.isdigit():
            match = _NUMBER_RE.match(text, index)
            raw = match.group(0) if match else char
            value: object = float(raw) if any(c in raw for c in ".eE") else int(raw)
            tokens.append(Token(NUMBER, raw, value, line, column))
            index += len(raw)
            continue

        match = _IDENT_RE.match(text, index)
        if match is not None:
            word = match.group(0)
            tokens.append(Token(IDENT, word, word, line, column))
            index = match.end()
            continue

        for op in _OPERATORS:
            if text.startswith(op, index):
                tokens.append(Token(OPERATOR, op, op, line, column))
                index += len(op)
                break
        else:
            raise LexError(f"unexpected character {char!r}", line)

    tokens.append(Token(EOF, "", None, line, index - line_start + 1))
    return tokens


__all__ = ["EOF", "IDENT", "LexError", "NEWLINE", "NUMBER", "OPERATOR", "STRING", "Token", "tokenize"]
