"""Turn a parsed Go file into the fact bag policies evaluate."""

from __future__ import annotations

from typing import Dict, List, Optional

from tree_sitter import Node

from ..golang.parser import ParsedFile
from ..logging import get_logger
from ..models import FactBag, ImportInfo, PackageInfo, TypeUsageInfo
from .calls import scan_body, type_usages
from .comments import doc_text
from .formatting import format_type
from .functions import extract_function, receiver_name
from .types import extract_type, struct_field_usages
from .variables import extract_variables, value_specs, variable_usages

logger = get_logger("transformer")

_FUNCTION_NODES = {"function_declaration", "method_declaration"}
_TYPE_SPEC_NODES = {"type_spec", "type_alias"}


class Transformer:
    """Extracts a deterministic FactBag from one parsed Go file.

    Only top-level declarations are visited; calls, field accesses and type
    references are collected from inside each function body.
    """

    def __init__(self, module_path: str = "", package_path: Optional[str] = None) -> None:
        self.module_path = module_path
        self.package_path = package_path if package_path is not None else module_path

    def transform(self, parsed: ParsedFile, file_path: Optional[str] = None) -> FactBag:
        bag = FactBag(
            file_path=file_path if file_path is not None else parsed.path,
            module_path=self.module_path,
        )
        root = parsed.root
        for node in root.named_children:
            kind = node.type
            if kind == "package_clause":
                bag.package = self._package_info(parsed, node)
            elif kind == "import_declaration":
                bag.imports.extend(self._imports(parsed, node))
            elif kind in _FUNCTION_NODES:
                self._add_function(parsed, node, bag)
            elif kind == "type_declaration":
                doc = doc_text(parsed, node)
                for spec in node.named_children:
                    if spec.type in _TYPE_SPEC_NODES:
                        bag.types.append(extract_type(parsed, spec, doc))
                        bag.type_usages.extend(struct_field_usages(parsed, spec))
            elif kind in {"var_declaration", "const_declaration"}:
                is_const = kind == "const_declaration"
                target = bag.constants if is_const else bag.variables
                for spec in value_specs(node):
                    target.extend(extract_variables(parsed, spec, is_const))
                    bag.type_usages.extend(variable_usages(parsed, spec))

        if parsed.has_errors:
            logger.debug("Syntax errors in %s; facts may be incomplete", bag.file_path)
        return bag

    def _package_info(self, parsed: ParsedFile, clause: Node) -> PackageInfo:
        name = ""
        for child in clause.named_children:
            if child.type == "package_identifier":
                name = parsed.text(child)
        return PackageInfo(name=name, path=self.package_path, doc=doc_text(parsed, clause))

    def _imports(self, parsed: ParsedFile, declaration: Node) -> List[ImportInfo]:
        specs: List[Node] = []
        for child in declaration.named_children:
            if child.type == "import_spec":
                specs.append(child)
            elif child.type == "import_spec_list":
                specs.extend(item for item in child.named_children if item.type == "import_spec")

        imports: List[ImportInfo] = []
        for spec in specs:
            path = parsed.text(spec.child_by_field_name("path")).strip('"`')
            alias = spec.child_by_field_name("name")
            imports.append(
                ImportInfo(
                    path=path,
                    alias=parsed.text(alias) if alias is not None else "",
                    position=parsed.position(spec),
                )
            )
        return imports

    def _add_function(self, parsed: ParsedFile, node: Node, bag: FactBag) -> None:
        function = extract_function(parsed, node)
        bag.functions.append(function)
        bag.type_usages.extend(_signature_usages(parsed, node, function.name))

        scope = _local_types(parsed, node)
        facts = scan_body(parsed, node.child_by_field_name("body"), function.name, scope)
        bag.calls.extend(facts.calls)
        bag.field_accesses.extend(facts.field_accesses)
        bag.type_usages.extend(facts.type_usages)


def _local_types(parsed: ParsedFile, node: Node) -> Dict[str, str]:
    """Map receiver and parameter names to their declared type text."""
    scope: Dict[str, str] = {}
    receiver = node.child_by_field_name("receiver")
    name = receiver_name(parsed, receiver)
    if name and receiver is not None:
        for child in receiver.named_children:
            if child.type == "parameter_declaration":
                scope[name] = format_type(parsed, child.child_by_field_name("type"))
                break

    parameters = node.child_by_field_name("parameters")
    if parameters is not None:
        for child in parameters.named_children:
            if child.type not in {"parameter_declaration", "variadic_parameter_declaration"}:
                continue
            type_text = format_type(parsed, child.child_by_field_name("type"))
            if child.type == "variadic_parameter_declaration":
                type_text = "..." + type_text
            for param in child.children_by_field_name("name"):
                scope.setdefault(parsed.text(param), type_text)
    return scope


def _signature_usages(parsed: ParsedFile, node: Node, function_name: str) -> List[TypeUsageInfo]:
    usages: List[TypeUsageInfo] = []
    for field_name, context in (("parameters", "parameter"), ("result", "return")):
        signature = node.child_by_field_name(field_name)
        if signature is None:
            continue
        if signature.type != "parameter_list":
            usages.extend(type_usages(parsed, signature, context, function_name))
            continue
        for child in signature.named_children:
            usages.extend(
                type_usages(parsed, child.child_by_field_name("type"), context, function_name)
            )
    return usages


__all__ = ["Transformer"]
