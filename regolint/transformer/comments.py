"""Doc comment and annotation extraction."""

from __future__ import annotations

from typing import Dict, List, Optional

from tree_sitter import Node

from ..golang.parser import ParsedFile
from ..models import AnnotationValue

_ANNOTATION_MARKER = "@"


def doc_comment_nodes(node: Node) -> List[Node]:
    """Return the comment group that ends on the line directly above ``node``."""
    group: List[Node] = []
    expected_end = ParsedFile.line(node) - 1
    sibling = node.prev_sibling
    while sibling is not None and sibling.type == "comment":
        if ParsedFile.end_line(sibling) != expected_end:
            break
        before = sibling.prev_sibling
        if before is not None and before.type != "comment" and ParsedFile.end_line(before) == ParsedFile.line(sibling):
            # trailing comment of the previous declaration
            break
        group.append(sibling)
        expected_end = ParsedFile.line(sibling) - 1
        sibling = sibling.prev_sibling
    group.reverse()
    return group


def comment_lines(parsed: ParsedFile, comments: List[Node]) -> List[str]:
    """Strip comment delimiters from each comment and drop empty results."""
    lines: List[str] = []
    for comment in comments:
        text = parsed.text(comment)
        if text.startswith("//"):
            text = text[2:]
        if text.startswith("/*"):
            text = text[2:]
        if text.endswith("*/"):
            text = text[:-2]
        text = text.strip()
        if text:
            lines.append(text)
    return lines


def doc_text(parsed: ParsedFile, node: Optional[Node]) -> str:
    """Return the doc comment above ``node`` as one trimmed block of text."""
    if node is None:
        return ""
    chunks: List[str] = []
    for comment in doc_comment_nodes(node):
        raw = parsed.text(comment)
        if raw.startswith("//"):
            chunks.append(raw[2:].removeprefix(" "))
        else:
            body = raw[2:-2] if raw.endswith("*/") else raw[2:]
            chunks.extend(line.strip() for line in body.splitlines())
    return "\n".join(chunks).strip()


def extract_annotations(comments: List[str]) -> Dict[str, AnnotationValue]:
    """Parse ``@key value`` lines; a bare ``@key`` becomes ``True``."""
    annotations: Dict[str, AnnotationValue] = {}
    for comment in comments:
        if not comment.startswith(_ANNOTATION_MARKER):
            continue
        parts = comment.split(None, 1)
        key = parts[0][len(_ANNOTATION_MARKER) :]
        if len(parts) > 1:
            annotations[key] = parts[1].strip()
        else:
            annotations[key] = True
    return annotations


__all__ = ["comment_lines", "doc_comment_nodes", "doc_text", "extract_annotations"]
