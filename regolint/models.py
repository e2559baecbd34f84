"""Core data models shared across regolint components.

Every model renders to the JSON-compatible shape that policies receive as
``input`` via ``to_dict()``. Optional text fields are dropped when empty so
policies can test for presence instead of comparing against ``""``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Union

AnnotationValue = Union[str, bool]


def _drop_empty(data: Dict[str, Any], optional: Iterable[str]) -> Dict[str, Any]:
    for key in optional:
        if not data.get(key):
            data.pop(key, None)
    return data


@dataclass(frozen=True)
class Position:
    """A 1-based location in a source file."""

    file: str = ""
    line: int = 0
    column: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"file": self.file, "line": self.line, "column": self.column}


@dataclass
class PackageInfo:
    """Package-level metadata."""

    name: str = ""
    path: str = ""
    doc: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return _drop_empty({"name": self.name, "path": self.path, "doc": self.doc}, ["doc"])


@dataclass
class ImportInfo:
    """An import declaration."""

    path: str
    alias: str = ""
    position: Position = field(default_factory=Position)

    def to_dict(self) -> Dict[str, Any]:
        data = {"path": self.path, "alias": self.alias, "position": self.position.to_dict()}
        return _drop_empty(data, ["alias"])


@dataclass
class ParameterInfo:
    """A function parameter or result."""

    type: str
    name: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return _drop_empty({"name": self.name, "type": self.type}, ["name"])


@dataclass
class FunctionInfo:
    """A function or method declaration."""

    name: str
    receiver: str = ""
    parameters: List[ParameterInfo] = field(default_factory=list)
    returns: List[ParameterInfo] = field(default_factory=list)
    is_exported: bool = False
    is_test: bool = False
    complexity: int = 1
    line_count: int = 0
    position: Position = field(default_factory=Position)
    comments: List[str] = field(default_factory=list)
    annotations: Dict[str, AnnotationValue] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "name": self.name,
            "receiver": self.receiver,
            "parameters": [param.to_dict() for param in self.parameters],
            "returns": [param.to_dict() for param in self.returns],
            "is_exported": self.is_exported,
            "is_test": self.is_test,
            "complexity": self.complexity,
            "line_count": self.line_count,
            "position": self.position.to_dict(),
            "comments": list(self.comments),
            "annotations": dict(self.annotations),
        }
        return _drop_empty(data, ["receiver", "comments", "annotations"])


@dataclass
class FieldInfo:
    """A struct field."""

    name: str
    type: str
    tags: str = ""
    is_exported: bool = False
    is_embedded: bool = False
    position: Position = field(default_factory=Position)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "name": self.name,
            "type": self.type,
            "tags": self.tags,
            "is_exported": self.is_exported,
            "is_embedded": self.is_embedded,
            "position": self.position.to_dict(),
        }
        return _drop_empty(data, ["tags"])


@dataclass
class MethodInfo:
    """A method signature declared inside an interface."""

    name: str
    parameters: List[ParameterInfo] = field(default_factory=list)
    returns: List[ParameterInfo] = field(default_factory=list)
    is_exported: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "parameters": [param.to_dict() for param in self.parameters],
            "returns": [param.to_dict() for param in self.returns],
            "is_exported": self.is_exported,
        }


@dataclass
class TypeInfo:
    """A type declaration."""

    name: str
    kind: str
    is_exported: bool = False
    fields: List[FieldInfo] = field(default_factory=list)
    methods: List[MethodInfo] = field(default_factory=list)
    embeds: List[str] = field(default_factory=list)
    position: Position = field(default_factory=Position)
    doc: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "name": self.name,
            "kind": self.kind,
            "is_exported": self.is_exported,
            "fields": [item.to_dict() for item in self.fields],
            "methods": [item.to_dict() for item in self.methods],
            "embeds": list(self.embeds),
            "position": self.position.to_dict(),
            "doc": self.doc,
        }
        return _drop_empty(data, ["fields", "methods", "embeds", "doc"])


@dataclass
class VariableInfo:
    """A package-level variable or constant."""

    name: str
    type: str = ""
    is_exported: bool = False
    is_const: bool = False
    value: str = ""
    position: Position = field(default_factory=Position)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "name": self.name,
            "type": self.type,
            "is_exported": self.is_exported,
            "is_const": self.is_const,
            "value": self.value,
            "position": self.position.to_dict(),
        }
        return _drop_empty(data, ["type", "value"])


@dataclass
class CallInfo:
    """A call expression found inside a function body."""

    function: str
    in_function: str
    package: str = ""
    receiver: str = ""
    receiver_type: str = ""
    args: List[str] = field(default_factory=list)
    position: Position = field(default_factory=Position)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "function": self.function,
            "package": self.package,
            "receiver": self.receiver,
            "receiver_type": self.receiver_type,
            "args": list(self.args),
            "in_function": self.in_function,
            "position": self.position.to_dict(),
        }
        return _drop_empty(data, ["package", "receiver", "receiver_type", "args"])


@dataclass
class TypeUsageInfo:
    """A syntactic reference to a named type."""

    type_name: str
    context: str
    package: str = ""
    in_function: str = ""
    position: Position = field(default_factory=Position)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "type_name": self.type_name,
            "package": self.package,
            "in_function": self.in_function,
            "context": self.context,
            "position": self.position.to_dict(),
        }
        return _drop_empty(data, ["package", "in_function"])


@dataclass
class FieldAccessInfo:
    """A selector expression that reads a field rather than calling it."""

    field: str
    receiver: str
    in_function: str
    type: str = ""
    position: Position = field(default_factory=Position)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "field": self.field,
            "receiver": self.receiver,
            "type": self.type,
            "in_function": self.in_function,
            "position": self.position.to_dict(),
        }
        return _drop_empty(data, ["type"])


@dataclass
class FactBag:
    """Deterministic snapshot of one Go file handed to the policies."""

    file_path: str
    module_path: str = ""
    package: PackageInfo = field(default_factory=PackageInfo)
    imports: List[ImportInfo] = field(default_factory=list)
    functions: List[FunctionInfo] = field(default_factory=list)
    types: List[TypeInfo] = field(default_factory=list)
    variables: List[VariableInfo] = field(default_factory=list)
    constants: List[VariableInfo] = field(default_factory=list)
    calls: List[CallInfo] = field(default_factory=list)
    type_usages: List[TypeUsageInfo] = field(default_factory=list)
    field_accesses: List[FieldAccessInfo] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_path": self.file_path,
            "module_path": self.module_path,
            "package": self.package.to_dict(),
            "imports": [item.to_dict() for item in self.imports],
            "functions": [item.to_dict() for item in self.functions],
            "types": [item.to_dict() for item in self.types],
            "variables": [item.to_dict() for item in self.variables],
            "constants": [item.to_dict() for item in self.constants],
            "calls": [item.to_dict() for item in self.calls],
            "type_usages": [item.to_dict() for item in self.type_usages],
            "field_accesses": [item.to_dict() for item in self.field_accesses],
        }


@dataclass
class PackageFactBag:
    """Facts from every file of one package."""

    module_path: str
    package: PackageInfo
    files: List[FactBag] = field(default_factory=list)
    all_imports: List[ImportInfo] = field(default_factory=list)
    all_functions: List[FunctionInfo] = field(default_factory=list)
    all_types: List[TypeInfo] = field(default_factory=list)
    all_variables: List[VariableInfo] = field(default_factory=list)
    all_constants: List[VariableInfo] = field(default_factory=list)
    all_calls: List[CallInfo] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "module_path": self.module_path,
            "package": self.package.to_dict(),
            "files": [item.to_dict() for item in self.files],
            "all_imports": [item.to_dict() for item in self.all_imports],
            "all_functions": [item.to_dict() for item in self.all_functions],
            "all_types": [item.to_dict() for item in self.all_types],
            "all_variables": [item.to_dict() for item in self.all_variables],
            "all_constants": [item.to_dict() for item in self.all_constants],
            "all_calls": [item.to_dict() for item in self.all_calls],
        }


@dataclass
class FixEdit:
    """A single text replacement proposed by a policy."""

    position: Position
    new_text: str = ""
    old_text: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "position": self.position.to_dict(),
            "old_text": self.old_text,
            "new_text": self.new_text,
        }
        return _drop_empty(data, ["old_text"])


@dataclass
class Fix:
    """An auto-fix suggestion attached to a violation."""

    description: str = ""
    edits: List[FixEdit] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = {"description": self.description, "edits": [edit.to_dict() for edit in self.edits]}
        return _drop_empty(data, ["edits"])


@dataclass
class Violation:
    """A policy violation decoded from evaluation results."""

    message: str
    rule: str = ""
    severity: str = ""
    position: Position = field(default_factory=Position)
    fix: Optional[Fix] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "message": self.message,
            "rule": self.rule,
            "severity": self.severity,
            "position": self.position.to_dict(),
        }
        if self.fix is not None:
            data["fix"] = self.fix.to_dict()
        return _drop_empty(data, ["severity"])


__all__ = [
    "AnnotationValue",
    "CallInfo",
    "FactBag",
    "FieldAccessInfo",
    "FieldInfo",
    "Fix",
    "FixEdit",
    "FunctionInfo",
    "ImportInfo",
    "MethodInfo",
    "PackageFactBag",
    "PackageInfo",
    "ParameterInfo",
    "Position",
    "TypeInfo",
    "TypeUsageInfo",
    "VariableInfo",
    "Violation",
]
