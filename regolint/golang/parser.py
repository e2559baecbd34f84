"""Tree-sitter powered Go parser."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Union

from tree_sitter import Node, Parser
from tree_sitter_language_pack import get_language

from ..models import Position

_LANGUAGE_KEY = "go"


@dataclass(frozen=True)
class ParsedFile:
    """A parsed Go source file: syntax tree plus the bytes it was built from."""

    path: str
    source: bytes
    root: Node

    @property
    def has_errors(self) -> bool:
        return bool(self.root.has_error)

    @property
    def base_name(self) -> str:
        return Path(self.path).name

    def text(self, node: Optional[Node]) -> str:
        if node is None:
            return ""
        return self.source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")

    def position(self, node: Node) -> Position:
        row, column = node.start_point
        return Position(file=self.base_name, line=row + 1, column=column + 1)

    @staticmethod
    def line(node: Node) -> int:
        return node.start_point[0] + 1

    @staticmethod
    def end_line(node: Node) -> int:
        return node.end_point[0] + 1

    def walk(self, node: Optional[Node] = None) -> Iterator[Node]:
        """Yield every node below ``node`` (inclusive) in depth-first source order."""
        stack = [node if node is not None else self.root]
        while stack:
            current = stack.pop()
            yield current
            stack.extend(reversed(current.children))

    def comments(self) -> Iterator[Node]:
        for node in self.walk():
            if node.type == "comment":
                yield node


class GoParser:
    """Parses Go source text with a lazily created tree-sitter parser."""

    def __init__(self) -> None:
        self._parser: Optional[Parser] = None

    def parse(self, source: Union[bytes, str], path: str) -> ParsedFile:
        source_bytes = source.encode("utf-8") if isinstance(source, str) else bytes(source)
        tree = self._get_parser().parse(source_bytes)
        return ParsedFile(path=path, source=source_bytes, root=tree.root_node)

    def parse_file(self, path: Union[str, Path]) -> ParsedFile:
        file_path = Path(path)
        return self.parse(file_path.read_bytes(), str(file_path))

    def _get_parser(self) -> Parser:
        if self._parser is None:
            self._parser = Parser(get_language(_LANGUAGE_KEY))
        return self._parser


__all__ = ["GoParser", "ParsedFile"]
