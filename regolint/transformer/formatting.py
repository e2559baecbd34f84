"""Render Go type and expression nodes as compact text."""

from __future__ import annotations

from typing import Optional

from tree_sitter import Node

from ..golang.parser import ParsedFile

UNKNOWN_TYPE = "unknown"
UNKNOWN_EXPR = "expr"

_IDENTIFIER_NODES = {
    "identifier",
    "type_identifier",
    "field_identifier",
    "package_identifier",
}
_LITERAL_NODES = {
    "int_literal",
    "float_literal",
    "imaginary_literal",
    "rune_literal",
    "interpreted_string_literal",
    "raw_string_literal",
    "nil",
    "true",
    "false",
    "iota",
}


def format_type(parsed: ParsedFile, node: Optional[Node]) -> str:
    """Format a type expression the way it would read in a signature."""
    if node is None:
        return UNKNOWN_TYPE
    kind = node.type
    if kind in _IDENTIFIER_NODES:
        return parsed.text(node)
    if kind == "pointer_type":
        return "*" + format_type(parsed, _first_named(node))
    if kind == "qualified_type":
        package = node.child_by_field_name("package")
        name = node.child_by_field_name("name")
        return f"{parsed.text(package)}.{parsed.text(name)}"
    if kind == "slice_type":
        return "[]" + format_type(parsed, node.child_by_field_name("element"))
    if kind in {"array_type", "implicit_length_array_type"}:
        return "[...]" + format_type(parsed, node.child_by_field_name("element"))
    if kind == "map_type":
        key = format_type(parsed, node.child_by_field_name("key"))
        value = format_type(parsed, node.child_by_field_name("value"))
        return f"map[{key}]{value}"
    if kind == "channel_type":
        return _format_channel(parsed, node)
    if kind == "function_type":
        return "func(...)"
    if kind == "interface_type":
        return "interface{}"
    if kind == "struct_type":
        return "struct{}"
    if kind == "generic_type":
        base = format_type(parsed, node.child_by_field_name("type"))
        arguments = node.child_by_field_name("type_arguments")
        if arguments is None:
            return base
        rendered = ", ".join(format_type(parsed, _unwrap_type_elem(child)) for child in arguments.named_children)
        return f"{base}[{rendered}]"
    if kind == "parenthesized_type":
        return format_type(parsed, _first_named(node))
    if kind == "negated_type":
        return "~" + format_type(parsed, _first_named(node))
    if kind == "type_elem":
        return format_type(parsed, _unwrap_type_elem(node))
    if kind == "selector_expression":
        operand = node.child_by_field_name("operand")
        field = node.child_by_field_name("field")
        return f"{format_type(parsed, operand)}.{parsed.text(field)}"
    return UNKNOWN_TYPE


def format_expr(parsed: ParsedFile, node: Optional[Node]) -> str:
    """Format an expression, degrading to a placeholder for unsupported shapes."""
    if node is None:
        return UNKNOWN_EXPR
    kind = node.type
    if kind in _IDENTIFIER_NODES or kind in _LITERAL_NODES:
        return parsed.text(node)
    if kind == "selector_expression":
        operand = format_expr(parsed, node.child_by_field_name("operand"))
        return f"{operand}.{parsed.text(node.child_by_field_name('field'))}"
    if kind == "call_expression":
        return format_expr(parsed, node.child_by_field_name("function")) + "(...)"
    if kind == "type_conversion_expression":
        return format_type(parsed, node.child_by_field_name("type")) + "(...)"
    if kind == "unary_expression":
        operator = parsed.text(node.child_by_field_name("operator"))
        return operator + format_expr(parsed, node.child_by_field_name("operand"))
    if kind == "binary_expression":
        left = format_expr(parsed, node.child_by_field_name("left"))
        operator = parsed.text(node.child_by_field_name("operator"))
        right = format_expr(parsed, node.child_by_field_name("right"))
        return f"{left} {operator} {right}"
    if kind == "composite_literal":
        return format_type(parsed, node.child_by_field_name("type")) + "{...}"
    if kind == "func_literal":
        return "func(){...}"
    if kind == "index_expression":
        return format_expr(parsed, node.child_by_field_name("operand")) + "[...]"
    if kind == "slice_expression":
        return format_expr(parsed, node.child_by_field_name("operand")) + "[:]"
    if kind == "type_assertion_expression":
        return format_expr(parsed, node.child_by_field_name("operand")) + ".(type)"
    return UNKNOWN_EXPR


def format_selector_chain(parsed: ParsedFile, node: Optional[Node]) -> str:
    """Format ``a.b.c`` receivers; anything that is not a plain chain is unknown."""
    if node is None:
        return UNKNOWN_TYPE
    if node.type in _IDENTIFIER_NODES:
        return parsed.text(node)
    if node.type == "selector_expression":
        operand = format_selector_chain(parsed, node.child_by_field_name("operand"))
        return f"{operand}.{parsed.text(node.child_by_field_name('field'))}"
    return UNKNOWN_TYPE


def _format_channel(parsed: ParsedFile, node: Node) -> str:
    value = format_type(parsed, node.child_by_field_name("value"))
    tokens = [child.type for child in node.children if not child.is_named]
    if tokens and tokens[0] == "<-":
        return f"<-chan {value}"
    if "<-" in tokens:
        return f"chan<- {value}"
    return f"chan {value}"


def _first_named(node: Node) -> Optional[Node]:
    for child in node.named_children:
        if child.type != "comment":
            return child
    return None


def _unwrap_type_elem(node: Node) -> Optional[Node]:
    if node.type == "type_elem" and node.named_child_count == 1:
        return node.named_children[0]
    return node


__all__ = [
    "UNKNOWN_EXPR",
    "UNKNOWN_TYPE",
    "format_expr",
    "format_selector_chain",
    "format_type",
]
