from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Callable, Mapping

import pytest

from regolint.golang.parser import GoParser, ParsedFile
from regolint.models import FactBag
from regolint.transformer import Transformer


@pytest.fixture(scope="session")
def go_parser() -> GoParser:
    return GoParser()


@pytest.fixture
def parse_go(go_parser: GoParser) -> Callable[..., ParsedFile]:
    """Parse dedented Go source as if it lived at ``path``."""

    def _parse(source: str, path: str = "example.go") -> ParsedFile:
        return go_parser.parse(textwrap.dedent(source).lstrip("\n"), path)

    return _parse


@pytest.fixture
def transform(parse_go: Callable[..., ParsedFile]) -> Callable[..., FactBag]:
    def _transform(source: str, path: str = "example.go", module_path: str = "example.com/demo") -> FactBag:
        return Transformer(module_path=module_path).transform(parse_go(source, path))

    return _transform


@pytest.fixture
def write_tree(tmp_path: Path) -> Callable[[Mapping[str, str]], Path]:
    """Write ``relative path -> contents`` entries below a fresh project root."""
    root = tmp_path / "project"
    root.mkdir()

    def _write(files: Mapping[str, str]) -> Path:
        for relative, content in files.items():
            path = root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(textwrap.dedent(content).lstrip("\n"), encoding="utf-8")
        return root

    return _write
