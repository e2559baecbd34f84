"""Top-down evaluation of compiled Rego policies.

Evaluation is a generator pipeline: every body literal consumes a binding
environment and yields zero or more extended environments, which gives
backtracking for free. Environments are plain dicts copied on every bind so
alternative branches never see each other's bindings.
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

from ..logging import get_logger
from .compiler import CompiledPolicy, RuleSet, RuleTree
from .errors import BuiltinError, RegoRuntimeError
from .nodes import (
    RULE_COMPLETE,
    RULE_PARTIAL_OBJECT,
    RULE_PARTIAL_SET,
    ArrayComprehension,
    ArrayTerm,
    Assign,
    Call,
    Every,
    Literal,
    Not,
    ObjectComprehension,
    ObjectTerm,
    Ref,
    Rule,
    Scalar,
    SetComprehension,
    SetTerm,
    SomeDecl,
    SomeIn,
    Term,
    TermExpr,
    Unify,
    Var,
)
from .values import Object, Value, is_number, sorted_values, values_equal

logger = get_logger("rego")

Env = Dict[str, Value]

_UNDEFINED = object()
_NETWORK_BUILTINS = {"http.send", "net.lookup_ip_addr"}
_BUILTIN_FAILURES = (BuiltinError, TypeError, ValueError, KeyError, IndexError, ZeroDivisionError, OverflowError)


class Evaluator:
    """Evaluates queries against one compiled policy and one input document.

    Rule values, function results and memoized builtin results are cached for
    the lifetime of the evaluator, so one instance serves exactly one
    evaluation.
    """

    def __init__(self, policy: CompiledPolicy, input_value: Optional[Value] = None) -> None:
        self.policy = policy
        self.input = input_value
        self._builtins = policy.capabilities.builtins
        self._allow_net = policy.capabilities.allow_net
        self._rule_cache: Dict[Tuple[str, ...], Any] = {}
        self._function_cache: Dict[Tuple[Any, ...], Any] = {}
        self._builtin_cache: Dict[Tuple[Any, ...], Any] = {}
        self._active: Set[Any] = set()

    # Bodies -------------------------------------------------------------

    def eval_body(self, body: Tuple[Literal, ...], env: Env, index: int = 0) -> Iterator[Env]:
        if index == len(body):
            yield env
            return
        for extended in self.eval_literal(body[index], env):
            yield from self.eval_body(body, extended, index + 1)

    def eval_literal(self, literal: Literal, env: Env) -> Iterator[Env]:
        if isinstance(literal, TermExpr):
            for value, extended in self.eval_term(literal.term, env):
                if value is not False:
                    yield extended
        elif isinstance(literal, (Assign, Unify)):
            left = literal.target if isinstance(literal, Assign) else literal.left
            right = literal.value if isinstance(literal, Assign) else literal.right
            yield from self.unify(left, right, env)
        elif isinstance(literal, Not):
            for _ in self.eval_literal(literal.expr, env):
                return
            yield env
        elif isinstance(literal, SomeDecl):
            yield env
        elif isinstance(literal, SomeIn):
            yield from self._eval_some_in(literal, env)
        elif isinstance(literal, Every):
            yield from self._eval_every(literal, env)
        else:
            raise RegoRuntimeError(f"unsupported expression {literal!r}")

    def _eval_some_in(self, literal: SomeIn, env: Env) -> Iterator[Env]:
        for collection, extended in self.eval_term(literal.collection, env):
            for key, item in _members(collection):
                for bound in self.unify_value(literal.value, item, extended):
                    if literal.key is None:
                        yield bound
                    else:
                        yield from self.unify_value(literal.key, key, bound)

    def _eval_every(self, literal: Every, env: Env) -> Iterator[Env]:
        for domain, extended in self.eval_term(literal.domain, env):
            satisfied = True
            for key, item in _members(domain):
                scope = dict(extended)
                scope[literal.value.name] = item
                if literal.key is not None:
                    scope[literal.key.name] = key
                if not any(True for _ in self.eval_body(literal.body, scope)):
                    satisfied = False
                    break
            if satisfied:
                yield extended

    # Unification --------------------------------------------------------

    def unify(self, left: Term, right: Term, env: Env) -> Iterator[Env]:
        if _is_unbound(left, env):
            for value, extended in self.eval_term(right, env):
                yield _bind(extended, left.name, value)
            return
        if _is_unbound(right, env):
            for value, extended in self.eval_term(left, env):
                yield _bind(extended, right.name, value)
            return
        if isinstance(left, ArrayTerm) and isinstance(right, ArrayTerm):
            if len(left.items) == len(right.items):
                yield from self._unify_pairs(list(zip(left.items, right.items)), env)
            return
        if _has_free_pattern(left, env):
            for value, extended in self.eval_term(right, env):
                yield from self.unify_value(left, value, extended)
            return
        if _has_free_pattern(right, env):
            for value, extended in self.eval_term(left, env):
                yield from self.unify_value(right, value, extended)
            return
        for left_value, extended in self.eval_term(left, env):
            for right_value, final in self.eval_term(right, extended):
                if values_equal(left_value, right_value):
                    yield final

    def _unify_pairs(self, pairs: List[Tuple[Term, Term]], env: Env) -> Iterator[Env]:
        if not pairs:
            yield env
            return
        (left, right), rest = pairs[0], pairs[1:]
        for extended in self.unify(left, right, env):
            yield from self._unify_pairs(rest, extended)

    def unify_value(self, term: Term, value: Value, env: Env) -> Iterator[Env]:
        """Match ``term`` against an already computed ``value``."""
        if isinstance(term, Var) and term.name not in {"input", "data"}:
            if term.name not in env:
                yield _bind(env, term.name, value)
            elif values_equal(env[term.name], value):
                yield env
            return
        if isinstance(term, ArrayTerm) and _has_free_pattern(term, env):
            if isinstance(value, tuple) and len(value) == len(term.items):
                yield from self._unify_items(list(zip(term.items, value)), env)
            return
        if isinstance(term, ObjectTerm) and _has_free_pattern(term, env):
            if not isinstance(value, Object) or len(value) != len(term.items):
                return
            yield from self._unify_object(list(term.items), value, env)
            return
        for candidate, extended in self.eval_term(term, env):
            if values_equal(candidate, value):
                yield extended

    def _unify_items(self, pairs: List[Tuple[Term, Value]], env: Env) -> Iterator[Env]:
        if not pairs:
            yield env
            return
        (term, value), rest = pairs[0], pairs[1:]
        for extended in self.unify_value(term, value, env):
            yield from self._unify_items(rest, extended)

    def _unify_object(self, items: List[Tuple[Term, Term]], value: Object, env: Env) -> Iterator[Env]:
        if not items:
            yield env
            return
        (key_term, value_term), rest = items[0], items[1:]
        for key, extended in self.eval_term(key_term, env):
            if key not in value:
                continue
            for bound in self.unify_value(value_term, value[key], extended):
                yield from self._unify_object(rest, value, bound)

    # Terms --------------------------------------------------------------

    def eval_term(self, term: Term, env: Env) -> Iterator[Tuple[Value, Env]]:
        if isinstance(term, Scalar):
            yield term.value, env
        elif isinstance(term, Var):
            yield from self._eval_var(term, env)
        elif isinstance(term, Ref):
            yield from self._eval_ref(term, env)
        elif isinstance(term, Call):
            for args, extended in self._eval_sequence(term.args, env):
                result = self.call(term, args)
                if result is not _UNDEFINED:
                    yield result, extended
        elif isinstance(term, ArrayTerm):
            for items, extended in self._eval_sequence(term.items, env):
                yield tuple(items), extended
        elif isinstance(term, SetTerm):
            for items, extended in self._eval_sequence(term.items, env):
                yield frozenset(items), extended
        elif isinstance(term, ObjectTerm):
            flat = [part for pair in term.items for part in pair]
            for items, extended in self._eval_sequence(flat, env):
                yield Object(zip(items[0::2], items[1::2])), extended
        elif isinstance(term, ArrayComprehension):
            yield tuple(self._collect(term.head, term.body, env)), env
        elif isinstance(term, SetComprehension):
            yield frozenset(self._collect(term.head, term.body, env)), env
        elif isinstance(term, ObjectComprehension):
            yield self._collect_object(term, env), env
        else:
            raise RegoRuntimeError(f"unsupported term {term!r}")

    def _eval_var(self, var: Var, env: Env) -> Iterator[Tuple[Value, Env]]:
        if var.name in env:
            yield env[var.name], env
        elif var.name == "input":
            if self.input is not None:
                yield self.input, env
        elif var.name == "data":
            yield self._tree_value(self.policy.tree), env
        else:
            raise RegoRuntimeError(f"var {var.name} is unbound")

    def _eval_sequence(self, terms: Tuple[Term, ...], env: Env, index: int = 0) -> Iterator[Tuple[List[Value], Env]]:
        if index == len(terms):
            yield [], env
            return
        for value, extended in self.eval_term(terms[index], env):
            for rest, final in self._eval_sequence(terms, extended, index + 1):
                yield [value] + rest, final

    def _collect(self, head: Term, body: Tuple[Literal, ...], env: Env) -> List[Value]:
        results: List[Value] = []
        for solution in self.eval_body(body, env):
            for value, _ in self.eval_term(head, solution):
                results.append(value)
        return results

    def _collect_object(self, term: ObjectComprehension, env: Env) -> Object:
        items: Dict[Value, Value] = {}
        for solution in self.eval_body(term.body, env):
            for key, extended in self.eval_term(term.key, solution):
                for value, _ in self.eval_term(term.value, extended):
                    if key in items and not values_equal(items[key], value):
                        raise RegoRuntimeError("object keys must be unique")
                    items[key] = value
        return Object(items)

    # References ---------------------------------------------------------

    def _eval_ref(self, ref: Ref, env: Env) -> Iterator[Tuple[Value, Env]]:
        head = ref.head
        if isinstance(head, Var) and head.name == "data" and head.name not in env:
            yield from self._walk_tree(self.policy.tree, ref.path, 0, env)
            return
        for base, extended in self.eval_term(head, env):
            yield from self._walk_value(base, ref.path, 0, extended)

    def _walk_value(self, value: Value, path: Tuple[Term, ...], index: int, env: Env) -> Iterator[Tuple[Value, Env]]:
        if index == len(path):
            yield value, env
            return
        element = path[index]
        if _is_unbound(element, env):
            for key, child in _members(value):
                yield from self._walk_value(child, path, index + 1, _bind(env, element.name, key))
            return
        for key, extended in self.eval_term(element, env):
            child = _lookup(value, key)
            if child is not _UNDEFINED:
                yield from self._walk_value(child, path, index + 1, extended)

    def _walk_tree(self, node: Any, path: Tuple[Term, ...], index: int, env: Env) -> Iterator[Tuple[Value, Env]]:
        if isinstance(node, RuleSet):
            value = self.rule_value(node)
            if value is not _UNDEFINED:
                yield from self._walk_value(value, path, index, env)
            return
        if index == len(path):
            yield self._tree_value(node), env
            return
        element = path[index]
        if _is_unbound(element, env):
            for name in sorted(node):
                yield from self._walk_tree(node[name], path, index + 1, _bind(env, element.name, name))
            return
        for key, extended in self.eval_term(element, env):
            if isinstance(key, str) and key in node:
                yield from self._walk_tree(node[key], path, index + 1, extended)

    def _tree_value(self, node: RuleTree) -> Object:
        items: Dict[str, Value] = {}
        for name in sorted(node):
            child = node[name]
            value = self.rule_value(child) if isinstance(child, RuleSet) else self._tree_value(child)
            if value is not _UNDEFINED:
                items[name] = value
        return Object(items)

    # Rules and functions ------------------------------------------------

    def rule_value(self, rule_set: RuleSet) -> Any:
        """Value of a rule path, or the undefined marker."""
        path = rule_set.path
        if path in self._rule_cache:
            return self._rule_cache[path]
        if path in self._active:
            raise RegoRuntimeError(f"rule {rule_set.dotted} is recursive")
        self._active.add(path)
        try:
            if rule_set.kind == RULE_PARTIAL_SET:
                value = self._partial_set(rule_set)
            elif rule_set.kind == RULE_PARTIAL_OBJECT:
                value = self._partial_object(rule_set)
            else:
                value = self._complete(rule_set)
        finally:
            self._active.discard(path)
        self._rule_cache[path] = value
        return value

    def _complete(self, rule_set: RuleSet) -> Any:
        values: List[Value] = []
        for rule in rule_set.rules:
            values.extend(self._chain_values(rule, {}))
        distinct = _distinct(values)
        if len(distinct) > 1:
            raise RegoRuntimeError(f"complete rules must not produce multiple outputs: {rule_set.dotted}")
        if distinct:
            return distinct[0]
        if rule_set.default is not None and rule_set.default.value is not None:
            for value, _ in self.eval_term(rule_set.default.value, {}):
                return value
        return _UNDEFINED

    def _chain_values(self, rule: Rule, env: Env) -> List[Value]:
        """Head values of the first rule in an else chain whose body succeeds."""
        for candidate in rule.chain():
            values: List[Value] = []
            for solution in self.eval_body(candidate.body, env):
                if candidate.value is None:
                    values.append(True)
                    continue
                for value, _ in self.eval_term(candidate.value, solution):
                    values.append(value)
            if values:
                return values
        return []

    def _partial_set(self, rule_set: RuleSet) -> frozenset:
        members: List[Value] = []
        for rule in rule_set.rules:
            for solution in self.eval_body(rule.body, {}):
                for value, _ in self.eval_term(rule.key, solution):
                    members.append(value)
        return frozenset(members)

    def _partial_object(self, rule_set: RuleSet) -> Object:
        items: Dict[Value, Value] = {}
        for rule in rule_set.rules:
            for solution in self.eval_body(rule.body, {}):
                for key, extended in self.eval_term(rule.key, solution):
                    for value, _ in self.eval_term(rule.value, extended):
                        if key in items and not values_equal(items[key], value):
                            raise RegoRuntimeError(f"object keys must be unique: {rule_set.dotted}")
                        items[key] = value
        return Object(items)

    def call_function(self, path: Tuple[str, ...], args: List[Value]) -> Any:
        rule_set = self.policy.functions.get(path)
        if rule_set is None:
            raise RegoRuntimeError(f"undefined function data.{'.'.join(path)}")
        key = (path, tuple(args))
        if key in self._function_cache:
            return self._function_cache[key]
        if key in self._active:
            raise RegoRuntimeError(f"function {rule_set.dotted} is recursive")
        self._active.add(key)
        try:
            values: List[Value] = []
            for rule in rule_set.rules:
                values.extend(self._function_values(rule, args))
        finally:
            self._active.discard(key)
        distinct = _distinct(values)
        if len(distinct) > 1:
            raise RegoRuntimeError(
                f"functions must not produce multiple outputs for same inputs: {rule_set.dotted}"
            )
        result = distinct[0] if distinct else _UNDEFINED
        self._function_cache[key] = result
        return result

    def _function_values(self, rule: Rule, args: List[Value]) -> List[Value]:
        for candidate in rule.chain():
            values: List[Value] = []
            for env in self._unify_items(list(zip(candidate.args, args)), {}):
                for solution in self.eval_body(candidate.body, env):
                    for value, _ in self.eval_term(candidate.value, solution):
                        values.append(value)
            if values:
                return values
        return []

    # Calls --------------------------------------------------------------

    def call(self, call: Call, args: List[Value]) -> Any:
        kind, target = call.target if call.target is not None else ("builtin", call.name)
        if kind == "function":
            return self.call_function(target, args)

        builtin = self._builtins.get(target)
        if builtin is None:
            raise RegoRuntimeError(f"undefined function {call.name}")
        memo_key = (target, tuple(args))
        if builtin.memoize and memo_key in self._builtin_cache:
            return self._builtin_cache[memo_key]
        try:
            self._check_network(target, args)
            result = builtin.function(*args)
        except _BUILTIN_FAILURES as exc:
            logger.debug("Builtin %s failed: %s", target, exc)
            result = _UNDEFINED
        if builtin.memoize:
            self._builtin_cache[memo_key] = result
        return result

    def _check_network(self, name: str, args: List[Value]) -> None:
        if name not in _NETWORK_BUILTINS or self._allow_net is None:
            return
        host = ""
        if name == "net.lookup_ip_addr" and args and isinstance(args[0], str):
            host = args[0]
        elif args and isinstance(args[0], Object):
            url = args[0].get("url", "")
            host = url.split("://", 1)[-1].split("/", 1)[0].split(":", 1)[0] if isinstance(url, str) else ""
        if host not in self._allow_net:
            raise BuiltinError(f"{name}: unallowed host: {host}")


def _is_unbound(term: Term, env: Env) -> bool:
    return isinstance(term, Var) and term.name not in env and term.name not in {"input", "data"}


def _has_free_pattern(term: Term, env: Env) -> bool:
    if isinstance(term, Var):
        return _is_unbound(term, env)
    if isinstance(term, ArrayTerm):
        return any(_has_free_pattern(item, env) for item in term.items)
    if isinstance(term, ObjectTerm):
        return any(_has_free_pattern(value, env) for _, value in term.items)
    return False


def _bind(env: Env, name: str, value: Value) -> Env:
    extended = dict(env)
    extended[name] = value
    return extended


def _members(collection: Value) -> Iterator[Tuple[Value, Value]]:
    """(key, value) pairs of a collection in deterministic order."""
    if isinstance(collection, tuple):
        yield from enumerate(collection)
    elif isinstance(collection, Object):
        for key in sorted_values(collection):
            yield key, collection[key]
    elif isinstance(collection, frozenset):
        for item in sorted_values(collection):
            yield item, item


def _lookup(collection: Value, key: Value) -> Any:
    if isinstance(collection, Object):
        if isinstance(key, bool) or key not in collection:
            return _UNDEFINED
        return collection[key]
    if isinstance(collection, tuple):
        if is_number(key) and float(key).is_integer() and 0 <= int(key) < len(collection):
            return collection[int(key)]
        return _UNDEFINED
    if isinstance(collection, frozenset):
        return key if key in collection else _UNDEFINED
    return _UNDEFINED


def _distinct(values: List[Value]) -> List[Value]:
    unique: List[Value] = []
    for value in values:
        if not any(values_equal(value, seen) for seen in unique):
            unique.append(value)
    return unique


def is_undefined(value: Any) -> bool:
    return value is _UNDEFINED


__all__ = ["Evaluator", "is_undefined"]
