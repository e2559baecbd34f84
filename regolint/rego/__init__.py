"""Sandboxed Rego v1 runtime: parser, compiler and evaluator."""

from .builtins import Builtin, builtin_names, default_builtins
from .capabilities import Capabilities
from .compiler import CompiledPolicy, Compiler, compile_modules
from .errors import BuiltinError, Diagnostic, RegoCompileError, RegoError, RegoParseError, RegoRuntimeError
from .evaluator import Evaluator
from .parser import parse_module, parse_query
from .query import PreparedQuery, prepare

__all__ = [
    "Builtin",
    "BuiltinError",
    "Capabilities",
    "CompiledPolicy",
    "Compiler",
    "Diagnostic",
    "Evaluator",
    "PreparedQuery",
    "RegoCompileError",
    "RegoError",
    "RegoParseError",
    "RegoRuntimeError",
    "builtin_names",
    "compile_modules",
    "default_builtins",
    "parse_module",
    "parse_query",
    "prepare",
]
