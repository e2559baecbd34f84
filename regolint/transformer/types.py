"""Type declaration extraction."""

from __future__ import annotations

from typing import List, Optional, Tuple

from tree_sitter import Node

from ..golang.naming import is_exported
from ..golang.parser import ParsedFile
from ..models import FieldInfo, MethodInfo, TypeInfo, TypeUsageInfo
from .calls import type_usages
from .formatting import format_type
from .functions import extract_params

KIND_STRUCT = "struct"
KIND_INTERFACE = "interface"
KIND_FUNC = "func"
KIND_ALIAS = "alias"

_METHOD_NODES = {"method_elem", "method_spec"}
_EMBED_NODES = {"type_elem", "constraint_elem", "interface_type_name", "struct_elem"}


def extract_type(parsed: ParsedFile, spec: Node, doc: str = "") -> TypeInfo:
    """Build a TypeInfo from a ``type_spec`` or ``type_alias`` node."""
    name = parsed.text(spec.child_by_field_name("name"))
    info = TypeInfo(
        name=name,
        kind=KIND_ALIAS,
        is_exported=is_exported(name),
        position=parsed.position(spec),
        doc=doc,
    )
    if spec.type == "type_alias":
        return info

    type_node = spec.child_by_field_name("type")
    kind = type_node.type if type_node is not None else ""
    if kind == "struct_type":
        info.kind = KIND_STRUCT
        info.fields, info.embeds = extract_struct_fields(parsed, type_node)
    elif kind == "interface_type":
        info.kind = KIND_INTERFACE
        info.methods, info.embeds = extract_interface_methods(parsed, type_node)
    elif kind == "function_type":
        info.kind = KIND_FUNC
    return info


def extract_struct_fields(parsed: ParsedFile, struct: Node) -> Tuple[List[FieldInfo], List[str]]:
    fields: List[FieldInfo] = []
    embeds: List[str] = []
    for declaration in _field_declarations(struct):
        type_text = _field_type_text(parsed, declaration)
        tags = _strip_backquotes(parsed.text(declaration.child_by_field_name("tag")))
        names = declaration.children_by_field_name("name")
        if not names:
            embeds.append(type_text)
            fields.append(
                FieldInfo(
                    name=type_text,
                    type=type_text,
                    tags=tags,
                    is_embedded=True,
                    position=parsed.position(declaration),
                )
            )
            continue
        for name_node in names:
            name = parsed.text(name_node)
            fields.append(
                FieldInfo(
                    name=name,
                    type=type_text,
                    tags=tags,
                    is_exported=is_exported(name),
                    position=parsed.position(name_node),
                )
            )
    return fields, embeds


def extract_interface_methods(
    parsed: ParsedFile, interface: Node
) -> Tuple[List[MethodInfo], List[str]]:
    methods: List[MethodInfo] = []
    embeds: List[str] = []
    for child in interface.named_children:
        if child.type in _METHOD_NODES:
            name = parsed.text(child.child_by_field_name("name"))
            methods.append(
                MethodInfo(
                    name=name,
                    is_exported=is_exported(name),
                    parameters=extract_params(parsed, child.child_by_field_name("parameters")),
                    returns=extract_params(parsed, child.child_by_field_name("result")),
                )
            )
        elif child.type in _EMBED_NODES:
            embeds.append(format_type(parsed, _single_named(child)))
        elif child.type in {"type_identifier", "qualified_type", "generic_type"}:
            embeds.append(format_type(parsed, child))
    return methods, embeds


def struct_field_usages(parsed: ParsedFile, spec: Node) -> List[TypeUsageInfo]:
    """Type usages of a struct spec's field types."""
    type_node = spec.child_by_field_name("type")
    if type_node is None or type_node.type != "struct_type":
        return []
    usages: List[TypeUsageInfo] = []
    for declaration in _field_declarations(type_node):
        usages.extend(type_usages(parsed, declaration.child_by_field_name("type"), "field"))
    return usages


def _field_declarations(struct: Node) -> List[Node]:
    declarations: List[Node] = []
    for child in struct.named_children:
        if child.type == "field_declaration_list":
            declarations.extend(
                item for item in child.named_children if item.type == "field_declaration"
            )
    return declarations


def _field_type_text(parsed: ParsedFile, declaration: Node) -> str:
    type_text = format_type(parsed, declaration.child_by_field_name("type"))
    if not declaration.children_by_field_name("name"):
        # embedded *T keeps its star as an anonymous token
        if any(child.type == "*" for child in declaration.children):
            return "*" + type_text
    return type_text


def _single_named(node: Node) -> Optional[Node]:
    named = [child for child in node.named_children if child.type != "comment"]
    if len(named) == 1:
        return named[0]
    return node


def _strip_backquotes(tag: str) -> str:
    if len(tag) >= 2 and tag[0] == "`" and tag[-1] == "`":
        return tag[1:-1]
    return tag


__all__ = [
    "KIND_ALIAS",
    "KIND_FUNC",
    "KIND_INTERFACE",
    "KIND_STRUCT",
    "extract_interface_methods",
    "extract_struct_fields",
    "extract_type",
    "struct_field_usages",
]
