"""Package-level var and const extraction."""

from __future__ import annotations

from typing import Iterator, List

from tree_sitter import Node

from ..golang.naming import is_exported
from ..golang.parser import ParsedFile
from ..models import TypeUsageInfo, VariableInfo
from .calls import type_usages
from .formatting import format_expr, format_type

_SPEC_NODES = {"var_spec", "const_spec"}


def value_specs(declaration: Node) -> Iterator[Node]:
    """Yield the specs of a var/const declaration, grouped or not."""
    for child in declaration.named_children:
        if child.type in _SPEC_NODES:
            yield child
        elif child.type == "var_spec_list":
            for spec in child.named_children:
                if spec.type in _SPEC_NODES:
                    yield spec


def extract_variables(parsed: ParsedFile, spec: Node, is_const: bool) -> List[VariableInfo]:
    type_node = spec.child_by_field_name("type")
    type_text = format_type(parsed, type_node) if type_node is not None else ""

    values: List[Node] = []
    value_list = spec.child_by_field_name("value")
    if value_list is not None:
        if value_list.type == "expression_list":
            values = [child for child in value_list.named_children if child.type != "comment"]
        else:
            values = [value_list]

    variables: List[VariableInfo] = []
    for index, name_node in enumerate(spec.children_by_field_name("name")):
        name = parsed.text(name_node)
        variable = VariableInfo(
            name=name,
            type=type_text,
            is_exported=is_exported(name),
            is_const=is_const,
            position=parsed.position(name_node),
        )
        if index < len(values):
            variable.value = format_expr(parsed, values[index])
        variables.append(variable)
    return variables


def variable_usages(parsed: ParsedFile, spec: Node) -> List[TypeUsageInfo]:
    return type_usages(parsed, spec.child_by_field_name("type"), "variable")


__all__ = ["extract_variables", "value_specs", "variable_usages"]
