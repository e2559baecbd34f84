"""Compile parsed Rego modules into an evaluable rule tree.

Compilation resolves names (rule references, imports, function targets),
checks calls against the capability set, orders every body so that each
literal's inputs are bound before it runs, and, in strict mode, rejects the
sloppy constructs OPA's strict mode rejects. All problems found across all
modules are reported together.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple, Union

from .capabilities import Capabilities
from .errors import Diagnostic, RegoCompileError
from .nodes import (
    RULE_COMPLETE,
    RULE_FUNCTION,
    WILDCARD_PREFIX,
    ArrayComprehension,
    ArrayTerm,
    Assign,
    Call,
    Every,
    Literal,
    Module,
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

GLOBAL_ROOTS = frozenset({"input", "data"})

Path = Tuple[str, ...]


@dataclass
class RuleSet:
    """Every definition of one rule path, with its default if declared."""

    path: Path
    kind: str
    rules: List[Rule] = field(default_factory=list)
    default: Optional[Rule] = None

    @property
    def dotted(self) -> str:
        return "data." + ".".join(self.path)


RuleTree = Dict[str, Union["RuleTree", RuleSet]]


@dataclass
class CompiledPolicy:
    tree: RuleTree
    functions: Dict[Path, RuleSet]
    capabilities: Capabilities
    modules: List[Module] = field(default_factory=list)


@dataclass
class _Scope:
    module: Module
    aliases: Dict[str, Tuple[str, ...]]
    rule_names: Set[str]
    used_aliases: Set[str] = field(default_factory=set)


class Compiler:
    def __init__(self, capabilities: Optional[Capabilities] = None, strict: bool = True) -> None:
        self.capabilities = capabilities if capabilities is not None else Capabilities.current()
        self.strict = strict
        self._errors: List[Diagnostic] = []
        self._functions: Dict[Path, RuleSet] = {}

    # Modules ------------------------------------------------------------

    def compile(self, modules: Iterable[Module]) -> CompiledPolicy:
        module_list = list(modules)
        self._errors = []
        rule_sets = self._index(module_list)
        self._functions = {path: item for path, item in rule_sets.items() if item.kind == RULE_FUNCTION}

        compiled_sets: Dict[Path, RuleSet] = {}
        for module in module_list:
            scope = self._scope(module)
            for rule in module.rules:
                compiled = self._compile_rule(rule, scope)
                path = module.package + (rule.name,)
                target = compiled_sets.setdefault(
                    path, RuleSet(path=path, kind=rule_sets[path].kind)
                )
                if compiled.default:
                    target.default = compiled
                else:
                    target.rules.append(compiled)
            self._check_imports(scope)

        if self._errors:
            raise RegoCompileError(self._errors)

        functions = {path: item for path, item in compiled_sets.items() if item.kind == RULE_FUNCTION}
        tree = self._build_tree(
            (item for item in compiled_sets.values() if item.kind != RULE_FUNCTION), module_list
        )
        if self._errors:
            raise RegoCompileError(self._errors)
        return CompiledPolicy(
            tree=tree, functions=functions, capabilities=self.capabilities, modules=module_list
        )

    def compile_query(self, literals: Tuple[Literal, ...], policy: Optional[CompiledPolicy] = None) -> Tuple[Literal, ...]:
        """Resolve and order an ad-hoc query body against ``policy``."""
        self._errors = []
        self._functions = dict(policy.functions) if policy is not None else {}
        scope = _Scope(module=Module(name="query", package=()), aliases={}, rule_names=set())
        declared = self._declared_vars(literals)
        resolved = tuple(self._resolve_literal(item, scope, declared) for item in literals)
        ordered = self._order_body(resolved, set(), "query", set())
        self._check_unused(ordered, (), "query")
        if self._errors:
            raise RegoCompileError(self._errors)
        return ordered

    def _index(self, modules: List[Module]) -> Dict[Path, RuleSet]:
        rule_sets: Dict[Path, RuleSet] = {}
        arities: Dict[Path, int] = {}
        for module in modules:
            for rule in module.rules:
                path = module.package + (rule.name,)
                existing = rule_sets.get(path)
                if existing is None:
                    existing = rule_sets[path] = RuleSet(path=path, kind=rule.kind)
                    if rule.kind == RULE_FUNCTION:
                        arities[path] = len(rule.args)
                elif existing.kind != rule.kind:
                    self._error(module.name, rule.line, f"conflicting rules {existing.dotted} found")
                    continue
                elif rule.kind == RULE_FUNCTION and arities[path] != len(rule.args):
                    self._error(
                        module.name,
                        rule.line,
                        f"function {existing.dotted} has arity {arities[path]}, got {len(rule.args)} arguments",
                    )
                if not rule.default:
                    existing.rules.append(rule)
                elif existing.default is not None:
                    self._error(module.name, rule.line, f"multiple default rules {existing.dotted} found")
                else:
                    existing.default = rule
                if rule.else_rule is not None and rule.kind not in {RULE_COMPLETE, RULE_FUNCTION}:
                    self._error(module.name, rule.line, "else keyword cannot be used on multi-value rules")
        return rule_sets

    def _scope(self, module: Module) -> _Scope:
        aliases: Dict[str, Tuple[str, ...]] = {}
        for item in module.imports:
            if item.is_keyword_import:
                continue
            if item.name in aliases:
                if self.strict:
                    self._error(module.name, item.line, f"import must not shadow import {item.name}")
                continue
            if item.name in GLOBAL_ROOTS and len(item.path) > 1:
                self._error(module.name, item.line, f"import alias {item.name} shadows a root document")
            aliases[item.name] = item.path
        names = {rule.name for rule in module.rules}
        return _Scope(module=module, aliases=aliases, rule_names=names)

    def _check_imports(self, scope: _Scope) -> None:
        if not self.strict:
            return
        for item in scope.module.imports:
            if item.is_keyword_import or len(item.path) == 1:
                continue
            if item.name not in scope.used_aliases:
                self._error(scope.module.name, item.line, f"import {'.'.join(item.path)} unused")

    def _build_tree(self, rule_sets: Iterable[RuleSet], modules: List[Module]) -> RuleTree:
        tree: RuleTree = {}
        for module in modules:
            node = tree
            for part in module.package:
                child = node.setdefault(part, {})
                if isinstance(child, RuleSet):
                    self._error(module.name, 1, f"package {'.'.join(module.package)} conflicts with rule {child.dotted}")
                    break
                node = child
        for rule_set in rule_sets:
            node = tree
            for part in rule_set.path[:-1]:
                child = node.setdefault(part, {})
                if isinstance(child, RuleSet):
                    break
                node = child
            else:
                existing = node.get(rule_set.path[-1])
                if isinstance(existing, dict):
                    self._error("compile", 0, f"rule {rule_set.dotted} conflicts with a package")
                    continue
                node[rule_set.path[-1]] = rule_set
        return tree

    # Rules --------------------------------------------------------------

    def _compile_rule(self, rule: Rule, scope: _Scope) -> Rule:
        module = scope.module.name
        declared = self._declared_vars(rule.body)
        for arg in rule.args:
            declared |= _vars_in(arg)
        self._check_shadowing(declared, module, rule.line)

        args = tuple(self._resolve_term(arg, scope, declared) for arg in rule.args)
        key = self._resolve_optional(rule.key, scope, declared)
        value = self._resolve_optional(rule.value, scope, declared)
        body = tuple(self._resolve_literal(item, scope, declared) for item in rule.body)

        initial: Set[str] = set()
        for arg in args:
            initial |= _vars_in(arg)
        outer = set(initial)
        for term in (key, value):
            if term is not None:
                outer |= _vars_in(term)
        ordered = self._order_body(body, initial, module, outer)

        bound = set(initial)
        for literal in ordered:
            bound |= _provides(literal)
        if key is not None:
            key = self._compile_head(key, bound, module, outer, rule.line)
        if value is not None:
            value = self._compile_head(value, bound, module, outer, rule.line)

        head_terms = [term for term in (key, value) if term is not None]
        self._check_unused(ordered, head_terms + list(args), module)
        else_rule = None
        if rule.else_rule is not None:
            else_rule = self._compile_rule(rule.else_rule, scope)
        return replace(rule, args=args, key=key, value=value, body=ordered, else_rule=else_rule)

    def _compile_head(self, term: Term, bound: Set[str], module: str, outer: Set[str], line: int) -> Term:
        ordered = self._order_nested(term, bound, module, outer | bound)
        for name in sorted(_vars_in(ordered, skip_closures=True) - bound):
            self._error(module, line, f"var {name} is unsafe")
        return ordered

    def _resolve_optional(self, term: Optional[Term], scope: _Scope, declared: Set[str]) -> Optional[Term]:
        if term is None:
            return None
        return self._resolve_term(term, scope, declared)

    @staticmethod
    def _declared_vars(body: Iterable[Literal]) -> Set[str]:
        declared: Set[str] = set()
        for literal in _walk_literals(body):
            if isinstance(literal, Assign):
                declared |= _target_names(literal.target)
            elif isinstance(literal, SomeDecl):
                declared |= {var.name for var in literal.names}
            elif isinstance(literal, (SomeIn, Every)):
                declared |= _vars_in(literal.value)
                if literal.key is not None:
                    declared |= _vars_in(literal.key)
        return declared

    def _check_shadowing(self, declared: Set[str], module: str, line: int) -> None:
        if not self.strict:
            return
        for name in sorted(declared & GLOBAL_ROOTS):
            self._error(module, line, f"variables must not shadow {name} (use a different variable name)")

    # Name resolution ----------------------------------------------------

    def _resolve_literal(self, literal: Literal, scope: _Scope, declared: Set[str]) -> Literal:
        def resolve(term: Term) -> Term:
            return self._resolve_term(term, scope, declared)

        if isinstance(literal, TermExpr):
            return replace(literal, term=resolve(literal.term))
        if isinstance(literal, Assign):
            return replace(literal, target=resolve(literal.target), value=resolve(literal.value))
        if isinstance(literal, Unify):
            return replace(literal, left=resolve(literal.left), right=resolve(literal.right))
        if isinstance(literal, Not):
            return replace(literal, expr=self._resolve_literal(literal.expr, scope, declared))
        if isinstance(literal, SomeIn):
            key = resolve(literal.key) if literal.key is not None else None
            return replace(literal, key=key, value=resolve(literal.value), collection=resolve(literal.collection))
        if isinstance(literal, Every):
            key = resolve(literal.key) if literal.key is not None else None
            body = tuple(self._resolve_literal(item, scope, declared) for item in literal.body)
            return replace(literal, key=key, value=resolve(literal.value), domain=resolve(literal.domain), body=body)
        return literal

    def _resolve_term(self, term: Term, scope: _Scope, declared: Set[str]) -> Term:
        if isinstance(term, Var):
            return self._resolve_var(term, scope, declared)
        if isinstance(term, Ref):
            head = self._resolve_term(term.head, scope, declared)
            path = tuple(self._resolve_term(item, scope, declared) for item in term.path)
            if isinstance(head, Ref):
                return Ref(head=head.head, path=head.path + path)
            return Ref(head=head, path=path)
        if isinstance(term, ArrayTerm):
            return ArrayTerm(items=tuple(self._resolve_term(item, scope, declared) for item in term.items))
        if isinstance(term, SetTerm):
            return SetTerm(items=tuple(self._resolve_term(item, scope, declared) for item in term.items))
        if isinstance(term, ObjectTerm):
            return ObjectTerm(
                items=tuple(
                    (self._resolve_term(k, scope, declared), self._resolve_term(v, scope, declared))
                    for k, v in term.items
                )
            )
        if isinstance(term, Call):
            args = tuple(self._resolve_term(item, scope, declared) for item in term.args)
            return replace(term, args=args, target=self._resolve_call(term, scope))
        if isinstance(term, (ArrayComprehension, SetComprehension)):
            inner = declared | self._declared_vars(term.body)
            body = tuple(self._resolve_literal(item, scope, inner) for item in term.body)
            return replace(term, head=self._resolve_term(term.head, scope, inner), body=body)
        if isinstance(term, ObjectComprehension):
            inner = declared | self._declared_vars(term.body)
            body = tuple(self._resolve_literal(item, scope, inner) for item in term.body)
            return replace(
                term,
                key=self._resolve_term(term.key, scope, inner),
                value=self._resolve_term(term.value, scope, inner),
                body=body,
            )
        return term

    def _resolve_var(self, var: Var, scope: _Scope, declared: Set[str]) -> Term:
        name = var.name
        if name in declared or name in GLOBAL_ROOTS:
            return var
        if name in scope.aliases:
            scope.used_aliases.add(name)
            path = scope.aliases[name]
            if len(path) == 1:
                return Var(path[0], line=var.line)
            return Ref(head=Var(path[0], line=var.line), path=tuple(Scalar(part) for part in path[1:]))
        if name in scope.rule_names:
            parts = scope.module.package + (name,)
            return Ref(head=Var("data", line=var.line), path=tuple(Scalar(part) for part in parts))
        return var

    def _resolve_call(self, call: Call, scope: _Scope) -> Tuple[str, object]:
        module = scope.module.name
        builtin = self.capabilities.get(call.name)
        if builtin is not None:
            if builtin.arity != len(call.args):
                self._error(
                    module,
                    call.line,
                    f"function {call.name} has arity {builtin.arity}, got {len(call.args)} arguments",
                )
            elif builtin.deprecated and self.strict:
                self._error(module, call.line, f"deprecated built-in function calls in expression: {call.name}")
            return ("builtin", call.name)

        parts = tuple(call.name.split("."))
        path: Optional[Path] = None
        if parts[0] in scope.aliases:
            scope.used_aliases.add(parts[0])
            alias_path = scope.aliases[parts[0]]
            if alias_path[0] == "data":
                path = alias_path[1:] + parts[1:]
        elif parts[0] == "data":
            path = parts[1:]
        elif len(parts) == 1:
            path = scope.module.package + parts

        function = self._functions.get(path) if path is not None else None
        if function is None or not function.rules:
            self._error(module, call.line, f"undefined function {call.name}")
            return ("builtin", call.name)
        arity = len(function.rules[0].args)
        if arity != len(call.args):
            self._error(
                module, call.line, f"function {call.name} has arity {arity}, got {len(call.args)} arguments"
            )
        return ("function", path)

    # Safety and ordering ------------------------------------------------

    def _order_body(
        self, body: Tuple[Literal, ...], bound: Set[str], module: str, outer: Set[str]
    ) -> Tuple[Literal, ...]:
        """Reorder ``body`` so each literal runs once its inputs are bound."""
        occurrences = [_shallow_vars(literal) for literal in body]
        visible = set(outer) | set(bound)
        for names in occurrences:
            visible |= names

        bound = set(bound)
        remaining = list(range(len(body)))
        ordered: List[Literal] = []
        while remaining:
            chosen = None
            for position in remaining:
                elsewhere = _elsewhere(occurrences, position, outer | bound)
                if not _missing(body[position], bound, visible, elsewhere):
                    chosen = position
                    break
            if chosen is None:
                first = remaining[0]
                elsewhere = _elsewhere(occurrences, first, outer | bound)
                for name in sorted(_missing(body[first], bound, visible, elsewhere)):
                    self._error(module, _line_of(body[first]), f"var {name} is unsafe")
                ordered.extend(body[position] for position in remaining)
                break
            remaining.remove(chosen)
            literal = body[chosen]
            ordered.append(self._order_literal(literal, bound, module, visible))
            bound |= _provides(literal)
        return tuple(ordered)

    def _order_literal(self, literal: Literal, bound: Set[str], module: str, visible: Set[str]) -> Literal:
        def nested(term: Term) -> Term:
            return self._order_nested(term, bound, module, visible)

        if isinstance(literal, TermExpr):
            return replace(literal, term=nested(literal.term))
        if isinstance(literal, Assign):
            return replace(literal, target=nested(literal.target), value=nested(literal.value))
        if isinstance(literal, Unify):
            return replace(literal, left=nested(literal.left), right=nested(literal.right))
        if isinstance(literal, Not):
            return replace(literal, expr=self._order_literal(literal.expr, bound, module, visible))
        if isinstance(literal, SomeIn):
            return replace(literal, collection=nested(literal.collection))
        if isinstance(literal, Every):
            inner = set(bound) | _vars_in(literal.value)
            if literal.key is not None:
                inner |= _vars_in(literal.key)
            body = self._order_body(literal.body, inner, module, visible | inner)
            return replace(literal, domain=nested(literal.domain), body=body)
        return literal

    def _order_nested(self, term: Term, bound: Set[str], module: str, visible: Set[str]) -> Term:
        """Order the bodies of comprehensions found inside ``term``."""
        if isinstance(term, (ArrayComprehension, SetComprehension, ObjectComprehension)):
            body = self._order_body(term.body, bound, module, visible)
            inner = set(bound)
            for literal in body:
                inner |= _provides(literal)
            for head in _comprehension_heads(term):
                for name in sorted(_vars_in(head, skip_closures=True) - inner):
                    self._error(module, _line_of(body[0]) if body else 0, f"var {name} is unsafe")
            return replace(term, body=body)
        if isinstance(term, Ref):
            return Ref(
                head=self._order_nested(term.head, bound, module, visible),
                path=tuple(self._order_nested(item, bound, module, visible) for item in term.path),
            )
        if isinstance(term, (ArrayTerm, SetTerm)):
            return replace(term, items=tuple(self._order_nested(item, bound, module, visible) for item in term.items))
        if isinstance(term, ObjectTerm):
            return ObjectTerm(
                items=tuple(
                    (self._order_nested(k, bound, module, visible), self._order_nested(v, bound, module, visible))
                    for k, v in term.items
                )
            )
        if isinstance(term, Call):
            return replace(term, args=tuple(self._order_nested(item, bound, module, visible) for item in term.args))
        return term

    # Strict checks ------------------------------------------------------

    def _check_unused(self, body: Tuple[Literal, ...], head_terms: List[Term], module: str) -> None:
        if not self.strict:
            return
        bodies = list(_bodies(body))
        for term in head_terms:
            for closure in _closures(term):
                bodies.extend(_bodies(closure.body))

        counts: Counter = Counter()
        for term in head_terms:
            _count_vars(term, counts)
        for current in bodies:
            for literal in current:
                for term in _literal_terms_shallow(literal):
                    _count_vars(term, counts)

        for current in bodies:
            assigned: Set[str] = set()
            for literal in current:
                if isinstance(literal, Assign):
                    for name in sorted(_vars_in(literal.target)):
                        if name in assigned:
                            self._error(module, literal.line, f"var {name} assigned above")
                        assigned.add(name)
                        if counts[name] <= 1 and not _generated(name):
                            self._error(module, literal.line, f"assigned var {name} unused")
                elif isinstance(literal, (SomeDecl, SomeIn)):
                    for name in sorted(_declared_by(literal)):
                        if counts[name] <= 1 and not _generated(name):
                            self._error(module, literal.line, f"declared var {name} unused")

    def _error(self, module: str, line: int, message: str) -> None:
        self._errors.append(Diagnostic(module, line, message))


# Variable analysis helpers ----------------------------------------------------


def _generated(name: str) -> bool:
    return name.startswith(WILDCARD_PREFIX)


def _comprehension_heads(term: Term) -> List[Term]:
    if isinstance(term, ObjectComprehension):
        return [term.key, term.value]
    return [term.head]


def _bodies(body: Tuple[Literal, ...]) -> Iterator[Tuple[Literal, ...]]:
    """``body`` followed by every body nested in it (comprehensions, every)."""
    yield body
    for literal in body:
        if isinstance(literal, Every):
            yield from _bodies(literal.body)
        for term in _literal_terms_shallow(literal):
            for closure in _closures(term):
                yield from _bodies(closure.body)


def _walk_literals(body: Iterable[Literal]) -> Iterator[Literal]:
    for current in _bodies(tuple(body)):
        yield from current


def _literal_terms_shallow(literal: Literal) -> Iterator[Term]:
    if isinstance(literal, TermExpr):
        yield literal.term
    elif isinstance(literal, Assign):
        yield literal.target
        yield literal.value
    elif isinstance(literal, Unify):
        yield literal.left
        yield literal.right
    elif isinstance(literal, SomeDecl):
        yield from literal.names
    elif isinstance(literal, (SomeIn, Every)):
        if literal.key is not None:
            yield literal.key
        yield literal.value
        yield literal.collection if isinstance(literal, SomeIn) else literal.domain
    elif isinstance(literal, Not):
        yield from _literal_terms_shallow(literal.expr)


def _declared_by(literal: Literal) -> Set[str]:
    if isinstance(literal, SomeDecl):
        return {var.name for var in literal.names}
    if isinstance(literal, SomeIn):
        names = _vars_in(literal.value)
        if literal.key is not None:
            names |= _vars_in(literal.key)
        return names
    return set()


def _shallow_vars(literal: Literal) -> Set[str]:
    names: Set[str] = set()
    for term in _literal_terms_shallow(literal):
        names |= _vars_in(term, skip_closures=True)
    return names


def _elsewhere(occurrences: List[Set[str]], position: int, extra: Set[str]) -> Set[str]:
    names = set(extra)
    for index, found in enumerate(occurrences):
        if index != position:
            names |= found
    return names


def _closures(term: Term) -> Iterator[Union[ArrayComprehension, SetComprehension, ObjectComprehension]]:
    if isinstance(term, (ArrayComprehension, SetComprehension, ObjectComprehension)):
        yield term
        return
    for child in _children(term):
        yield from _closures(child)


def _children(term: Term) -> Iterator[Term]:
    if isinstance(term, Ref):
        yield term.head
        yield from term.path
    elif isinstance(term, (ArrayTerm, SetTerm)):
        yield from term.items
    elif isinstance(term, ObjectTerm):
        for key, value in term.items:
            yield key
            yield value
    elif isinstance(term, Call):
        yield from term.args


def _vars_in(term: Term, skip_closures: bool = False) -> Set[str]:
    """Local variable names referenced by ``term``."""
    found: Set[str] = set()
    stack = [term]
    while stack:
        current = stack.pop()
        if isinstance(current, Var):
            if current.name not in GLOBAL_ROOTS:
                found.add(current.name)
        elif isinstance(current, (ArrayComprehension, SetComprehension, ObjectComprehension)):
            if skip_closures:
                continue
            stack.extend(_comprehension_heads(current))
            for literal in _walk_literals(current.body):
                stack.extend(_literal_terms_shallow(literal))
        else:
            stack.extend(_children(current))
    return found


def _count_vars(term: Term, counts: Counter) -> None:
    if isinstance(term, Var):
        if term.name not in GLOBAL_ROOTS:
            counts[term.name] += 1
        return
    if isinstance(term, (ArrayComprehension, SetComprehension, ObjectComprehension)):
        for head in _comprehension_heads(term):
            _count_vars(head, counts)
        return
    for child in _children(term):
        _count_vars(child, counts)


def _ref_outputs(term: Term) -> Set[str]:
    """Variables bound by iterating reference paths inside ``term``."""
    found: Set[str] = set()
    stack = [term]
    while stack:
        current = stack.pop()
        if isinstance(current, Ref):
            for element in current.path:
                if isinstance(element, Var):
                    found.add(element.name)
                else:
                    stack.append(element)
            stack.append(current.head)
        elif not isinstance(current, (ArrayComprehension, SetComprehension, ObjectComprehension)):
            stack.extend(_children(current))
    return found


def _target_names(term: Term) -> Set[str]:
    """Every variable name an assignment target introduces, root documents included."""
    if isinstance(term, Var):
        return {term.name}
    names: Set[str] = set()
    for child in _children(term):
        names |= _target_names(child)
    return names


def _pattern_vars(term: Term) -> Set[str]:
    """Variables a unification against ``term`` can bind."""
    if isinstance(term, Var):
        return set() if term.name in GLOBAL_ROOTS else {term.name}
    found: Set[str] = set()
    if isinstance(term, ArrayTerm):
        for item in term.items:
            found |= _pattern_vars(item)
    elif isinstance(term, ObjectTerm):
        for _, value in term.items:
            found |= _pattern_vars(value)
    return found


def _input_vars(term: Term, visible: Set[str]) -> Set[str]:
    """Variables that must already be bound to evaluate ``term`` as a value."""
    needed = _vars_in(term, skip_closures=True) - _ref_outputs(term)
    for closure in _closures(term):
        needed |= _vars_in(closure) & visible
    return needed


def _missing(literal: Literal, bound: Set[str], visible: Set[str], elsewhere: Set[str]) -> Set[str]:
    """Variables that must be bound before ``literal`` can run."""
    if isinstance(literal, TermExpr):
        return _input_vars(literal.term, visible) - bound
    if isinstance(literal, Assign):
        target_inputs = _input_vars(literal.target, visible) - _pattern_vars(literal.target)
        return (_input_vars(literal.value, visible) | target_inputs) - bound
    if isinstance(literal, Unify):
        left_inputs = _input_vars(literal.left, visible) - _pattern_vars(literal.left)
        right_inputs = _input_vars(literal.right, visible) - _pattern_vars(literal.right)
        inputs = (left_inputs | right_inputs) - bound
        if inputs:
            return inputs
        left_free = _pattern_vars(literal.left) - bound
        right_free = _pattern_vars(literal.right) - bound
        if left_free and right_free:
            return left_free | right_free
        return set()
    if isinstance(literal, Not):
        # variables that only occur inside the negation are local to it
        inner = _shallow_vars(literal.expr) & elsewhere
        return (inner | _missing(literal.expr, bound, visible, elsewhere)) - bound
    if isinstance(literal, SomeIn):
        return _input_vars(literal.collection, visible) - bound
    if isinstance(literal, Every):
        local = _vars_in(literal.value)
        if literal.key is not None:
            local |= _vars_in(literal.key)
        needed = _input_vars(literal.domain, visible)
        for item in _walk_literals(literal.body):
            for term in _literal_terms_shallow(item):
                needed |= _vars_in(term) & elsewhere
        return needed - local - bound
    return set()


def _provides(literal: Literal) -> Set[str]:
    if isinstance(literal, TermExpr):
        return _ref_outputs(literal.term)
    if isinstance(literal, Assign):
        return _pattern_vars(literal.target) | _ref_outputs(literal.value)
    if isinstance(literal, Unify):
        return (
            _pattern_vars(literal.left)
            | _pattern_vars(literal.right)
            | _ref_outputs(literal.left)
            | _ref_outputs(literal.right)
        )
    if isinstance(literal, SomeIn):
        provided = _pattern_vars(literal.value) | _ref_outputs(literal.collection)
        if literal.key is not None:
            provided |= _pattern_vars(literal.key)
        return provided
    return set()


def _line_of(literal: Literal) -> int:
    return getattr(literal, "line", 0)


def compile_modules(
    modules: Iterable[Module], capabilities: Optional[Capabilities] = None, strict: bool = True
) -> CompiledPolicy:
    return Compiler(capabilities=capabilities, strict=strict).compile(modules)


__all__ = ["CompiledPolicy", "Compiler", "RuleSet", "RuleTree", "compile_modules"]
