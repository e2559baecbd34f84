"""Call, field access and type usage extraction from function bodies."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

from tree_sitter import Node

from ..golang.parser import ParsedFile
from ..models import CallInfo, FieldAccessInfo, TypeUsageInfo
from .formatting import format_expr, format_selector_chain

PREDECLARED_TYPES = frozenset(
    {
        "any",
        "bool",
        "byte",
        "comparable",
        "complex64",
        "complex128",
        "error",
        "float32",
        "float64",
        "int",
        "int8",
        "int16",
        "int32",
        "int64",
        "rune",
        "string",
        "uint",
        "uint8",
        "uint16",
        "uint32",
        "uint64",
        "uintptr",
    }
)

ANONYMOUS_CALLEE = "(anonymous)"
CONVERSION_CALLEE = "(conversion)"
CALL_RECEIVER = "call"

_IDENTIFIERS = {"identifier", "package_identifier"}
_BODY_TYPE_CONTEXTS = {
    "composite_literal": "composite_literal",
    "type_assertion_expression": "type_assertion",
    "type_conversion_expression": "conversion",
}


@dataclass
class BodyFacts:
    """Everything collected from one function body."""

    calls: List[CallInfo] = field(default_factory=list)
    field_accesses: List[FieldAccessInfo] = field(default_factory=list)
    type_usages: List[TypeUsageInfo] = field(default_factory=list)


def scan_body(
    parsed: ParsedFile,
    body: Optional[Node],
    function_name: str,
    local_types: Optional[Dict[str, str]] = None,
) -> BodyFacts:
    """Walk a function body once, collecting calls, field reads and type references.

    ``local_types`` maps receiver and parameter names to their declared type
    text; selector receivers found there get a ``receiver_type``.
    """
    facts = BodyFacts()
    if body is None:
        return facts
    scope = local_types or {}

    for node in parsed.walk(body):
        kind = node.type
        if kind == "call_expression":
            facts.calls.append(_call_info(parsed, node, function_name, scope))
        elif kind == "type_conversion_expression":
            facts.calls.append(
                CallInfo(
                    function=CONVERSION_CALLEE,
                    in_function=function_name,
                    args=[format_expr(parsed, node.child_by_field_name("operand"))],
                    position=parsed.position(node),
                )
            )
        elif kind == "selector_expression" and not _is_callee(node):
            operand = node.child_by_field_name("operand")
            receiver = format_expr(parsed, operand)
            facts.field_accesses.append(
                FieldAccessInfo(
                    field=parsed.text(node.child_by_field_name("field")),
                    receiver=receiver,
                    type=_scope_type(parsed, operand, scope),
                    in_function=function_name,
                    position=parsed.position(node),
                )
            )

        context = _BODY_TYPE_CONTEXTS.get(kind)
        if context is not None:
            facts.type_usages.extend(
                type_usages(parsed, node.child_by_field_name("type"), context, function_name)
            )
    return facts


def type_usages(
    parsed: ParsedFile, type_node: Optional[Node], context: str, in_function: str = ""
) -> List[TypeUsageInfo]:
    """Return one usage per named, non-predeclared type inside ``type_node``."""
    usages: List[TypeUsageInfo] = []
    if type_node is None:
        return usages
    for node, package, name in _named_types(parsed, type_node):
        usages.append(
            TypeUsageInfo(
                type_name=name,
                package=package,
                in_function=in_function,
                context=context,
                position=parsed.position(node),
            )
        )
    return usages


def _named_types(parsed: ParsedFile, type_node: Node) -> Iterator[Tuple[Node, str, str]]:
    stack = [type_node]
    while stack:
        node = stack.pop()
        if node.type == "qualified_type":
            package = parsed.text(node.child_by_field_name("package"))
            yield node, package, parsed.text(node.child_by_field_name("name"))
            continue
        if node.type == "type_identifier":
            name = parsed.text(node)
            if name not in PREDECLARED_TYPES:
                yield node, "", name
            continue
        if node.type in {"literal_value", "block", "argument_list"}:
            continue
        stack.extend(reversed(node.named_children))


def _call_info(
    parsed: ParsedFile, node: Node, function_name: str, scope: Dict[str, str]
) -> CallInfo:
    call = CallInfo(
        function="",
        in_function=function_name,
        position=parsed.position(node),
        args=_call_args(parsed, node.child_by_field_name("arguments")),
    )

    callee = node.child_by_field_name("function")
    kind = callee.type if callee is not None else ""
    if kind == "identifier":
        call.function = parsed.text(callee)
    elif kind == "selector_expression":
        call.function = parsed.text(callee.child_by_field_name("field"))
        operand = callee.child_by_field_name("operand")
        operand_kind = operand.type if operand is not None else ""
        if operand_kind in _IDENTIFIERS:
            name = parsed.text(operand)
            # ambiguous between pkg.Func() and value.Method(); policies decide
            call.package = name
            call.receiver = name
            call.receiver_type = scope.get(name, "")
        elif operand_kind == "call_expression":
            call.receiver = CALL_RECEIVER
        elif operand_kind == "selector_expression":
            call.receiver = format_selector_chain(parsed, operand)
    elif kind == "func_literal":
        call.function = ANONYMOUS_CALLEE
    elif kind == "parenthesized_expression":
        call.function = CONVERSION_CALLEE
    return call


def _call_args(parsed: ParsedFile, arguments: Optional[Node]) -> List[str]:
    if arguments is None:
        return []
    rendered: List[str] = []
    for child in arguments.named_children:
        if child.type == "comment":
            continue
        rendered.append(format_expr(parsed, child))
    return rendered


def _is_callee(node: Node) -> bool:
    parent = node.parent
    if parent is None or parent.type != "call_expression":
        return False
    callee = parent.child_by_field_name("function")
    return callee is not None and callee.id == node.id


def _scope_type(parsed: ParsedFile, operand: Optional[Node], scope: Dict[str, str]) -> str:
    if operand is None or operand.type not in _IDENTIFIERS:
        return ""
    return scope.get(parsed.text(operand), "")


__all__ = [
    "ANONYMOUS_CALLEE",
    "BodyFacts",
    "CALL_RECEIVER",
    "CONVERSION_CALLEE",
    "PREDECLARED_TYPES",
    "scan_body",
    "type_usages",
]
