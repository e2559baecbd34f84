"""Function and method extraction."""

from __future__ import annotations

from typing import List, Optional

from tree_sitter import Node

from ..golang.naming import is_exported, is_test_function
from ..golang.parser import ParsedFile
from ..models import FunctionInfo, ParameterInfo
from .comments import comment_lines, doc_comment_nodes, extract_annotations
from .formatting import format_type

_BRANCH_NODES = {
    "if_statement",
    "for_statement",
    "expression_switch_statement",
    "type_switch_statement",
    "select_statement",
    "expression_case",
    "type_case",
    "default_case",
    "communication_case",
}
_SHORT_CIRCUIT_OPERATORS = {"&&", "||"}


def extract_function(parsed: ParsedFile, node: Node) -> FunctionInfo:
    """Build a FunctionInfo from a function or method declaration node."""
    name = parsed.text(node.child_by_field_name("name"))
    info = FunctionInfo(
        name=name,
        is_exported=is_exported(name),
        is_test=is_test_function(name),
        position=parsed.position(node),
        parameters=extract_params(parsed, node.child_by_field_name("parameters")),
        returns=extract_params(parsed, node.child_by_field_name("result")),
    )

    receiver = node.child_by_field_name("receiver")
    if receiver is not None:
        info.receiver = format_receiver(parsed, receiver)

    body = node.child_by_field_name("body")
    if body is not None:
        info.line_count = ParsedFile.end_line(body) - ParsedFile.line(body) + 1
        info.complexity = cyclomatic_complexity(parsed, body)

    info.comments = comment_lines(parsed, doc_comment_nodes(node))
    info.annotations = extract_annotations(info.comments)
    return info


def extract_params(parsed: ParsedFile, node: Optional[Node]) -> List[ParameterInfo]:
    """Flatten a parameter list so every declared name gets its own entry."""
    if node is None:
        return []
    if node.type != "parameter_list":
        # a single unparenthesized result type
        return [ParameterInfo(type=format_type(parsed, node))]

    params: List[ParameterInfo] = []
    for child in node.named_children:
        if child.type == "parameter_declaration":
            type_text = format_type(parsed, child.child_by_field_name("type"))
        elif child.type == "variadic_parameter_declaration":
            type_text = "..." + format_type(parsed, child.child_by_field_name("type"))
        else:
            continue
        names = child.children_by_field_name("name")
        if not names:
            params.append(ParameterInfo(type=type_text))
            continue
        for name in names:
            params.append(ParameterInfo(name=parsed.text(name), type=type_text))
    return params


def format_receiver(parsed: ParsedFile, receiver: Node) -> str:
    for child in receiver.named_children:
        if child.type == "parameter_declaration":
            return format_type(parsed, child.child_by_field_name("type"))
    return ""


def receiver_name(parsed: ParsedFile, receiver: Optional[Node]) -> str:
    if receiver is None:
        return ""
    for child in receiver.named_children:
        if child.type == "parameter_declaration":
            name = child.child_by_field_name("name")
            return parsed.text(name) if name is not None else ""
    return ""


def cyclomatic_complexity(parsed: ParsedFile, body: Node) -> int:
    """Count decision points: 1 + branches, clauses and short-circuit operators."""
    complexity = 1
    for node in parsed.walk(body):
        if node.type in _BRANCH_NODES:
            complexity += 1
        elif node.type == "binary_expression":
            operator = node.child_by_field_name("operator")
            if operator is not None and operator.type in _SHORT_CIRCUIT_OPERATORS:
                complexity += 1
    return complexity


__all__ = [
    "cyclomatic_complexity",
    "extract_function",
    "extract_params",
    "format_receiver",
    "receiver_name",
]
