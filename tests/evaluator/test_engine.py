"""Tests for regolint.evaluator.engine."""

from __future__ import annotations

import pytest

from regolint.errors import CompileError, EngineStateError, EvaluationError
from regolint.evaluator import DENIED_BUILTINS, PolicyEngine
from regolint.evaluator.engine import STATE_FAILED, STATE_READY, STATE_UNINITIALIZED
from regolint.models import FactBag, FunctionInfo, PackageFactBag, PackageInfo, Position

EXPORTED_DOC = """
package regolint.rules.style.exported_doc

import rego.v1

deny contains violation if {
    some fn in input.functions
    fn.is_exported
    not fn.comments
    violation := {
        "message": sprintf("exported function %s should have a doc comment", [fn.name]),
        "rule": "exported-doc",
        "severity": "warning",
        "position": fn.position,
    }
}
"""

NO_GETTERS = """
package regolint.rules.naming.getters

import rego.v1

deny contains violation if {
    some fn in input.functions
    go.matches_pattern(fn.name, "^Get[A-Z]")
    go.is_exported(fn.name)
    violation := {"message": sprintf("%s: avoid the Get prefix", [fn.name]), "rule": "no-get", "position": fn.position}
}
"""

PACKAGE_SIZE = """
package regolint.rules.layout.package_size

import rego.v1

deny contains violation if {
    count(input.all_functions) > 2
    violation := {
        "message": sprintf("package %s declares too many functions", [input.package.name]),
        "rule": "package-size",
        "position": {"file": "b.go", "line": 1, "column": 1},
    }
}
"""


def _bag(*functions: FunctionInfo) -> FactBag:
    return FactBag(
        file_path="demo.go",
        package=PackageInfo(name="demo"),
        functions=list(functions),
    )


def _function(name: str, line: int, comments=None) -> FunctionInfo:
    return FunctionInfo(
        name=name,
        is_exported=name[:1].isupper(),
        position=Position(file="demo.go", line=line, column=1),
        comments=list(comments or []),
    )


def test_build_returns_ready_engine() -> None:
    engine = PolicyEngine.build({"doc.rego": EXPORTED_DOC})

    assert engine.state == STATE_READY
    assert engine.ready is True


def test_evaluate_decodes_violations() -> None:
    engine = PolicyEngine.build({"doc.rego": EXPORTED_DOC})
    bag = _bag(_function("Run", 3), _function("Stop", 9, ["Stop halts."]), _function("helper", 12))

    violations = engine.evaluate(bag)

    assert len(violations) == 1
    violation = violations[0]
    assert violation.message == "exported function Run should have a doc comment"
    assert violation.rule == "exported-doc"
    assert violation.severity == "warning"
    assert violation.position == Position(file="demo.go", line=3, column=1)


def test_go_predicates_are_available_to_policies() -> None:
    engine = PolicyEngine.build({"getters.rego": NO_GETTERS, "doc.rego": EXPORTED_DOC})
    bag = _bag(
        _function("GetName", 1, ["GetName returns the name."]),
        _function("Getaway", 5, ["Getaway leaves."]),
        _function("getValue", 9),
    )

    violations = engine.evaluate(bag)

    assert [(item.rule, item.message) for item in violations] == [("no-get", "GetName: avoid the Get prefix")]


def test_evaluate_package_sees_aggregated_facts() -> None:
    engine = PolicyEngine.build({"size.rego": PACKAGE_SIZE, "doc.rego": EXPORTED_DOC})
    package = PackageFactBag(
        module_path="example.com/demo",
        package=PackageInfo(name="demo", path="example.com/demo"),
        all_functions=[_function("a", 1), _function("b", 2), _function("c", 3)],
    )

    violations = engine.evaluate_package(package)

    assert [(item.rule, item.position.file) for item in violations] == [("package-size", "b.go")]
    assert engine.evaluate(_bag(_function("a", 1))) == []


@pytest.mark.parametrize("builtin", sorted(DENIED_BUILTINS))
def test_denied_builtins_fail_compilation(builtin: str) -> None:
    call = {
        "http.send": 'http.send({"method": "get", "url": "https://example.com"})',
        "net.lookup_ip_addr": 'net.lookup_ip_addr("example.com")',
        "opa.runtime": "opa.runtime()",
    }[builtin]
    source = f"""
package regolint.rules.evil.{builtin.replace(".", "_")}

deny contains "x" if {{
    {call}
}}
"""
    with pytest.raises(CompileError) as excinfo:
        PolicyEngine.build({"evil.rego": source})

    assert str(excinfo.value).startswith("compiling policies")
    assert any(f"undefined function {builtin}" in item for item in excinfo.value.diagnostics)


def test_parse_errors_from_every_module_are_aggregated() -> None:
    policies = {
        "one.rego": "package one\n\ndeny contains \"x\" {\n    true\n}\n",
        "two.rego": "package two\n\nallow := )\n",
    }
    with pytest.raises(CompileError) as excinfo:
        PolicyEngine.build(policies)

    assert str(excinfo.value).startswith("parsing policies")
    assert [item.split(":")[0] for item in excinfo.value.diagnostics] == ["one.rego", "two.rego"]


def test_failed_build_is_sticky() -> None:
    engine = PolicyEngine({"bad.rego": "package bad\n\nallow := )\n"})
    assert engine.state == STATE_UNINITIALIZED

    with pytest.raises(CompileError) as first:
        engine.initialize()
    with pytest.raises(CompileError) as second:
        engine.initialize()

    assert engine.state == STATE_FAILED
    assert second.value is first.value


def test_evaluate_before_initialize_is_rejected() -> None:
    engine = PolicyEngine({"doc.rego": EXPORTED_DOC})

    with pytest.raises(EngineStateError, match="not ready"):
        engine.evaluate(_bag())


def test_runtime_conflicts_surface_as_evaluation_errors() -> None:
    source = """
package regolint.rules.broken.conflict

deny := fn.name if {
    some fn in input.functions
}
"""
    engine = PolicyEngine.build({"conflict.rego": source})

    with pytest.raises(EvaluationError, match="demo.go"):
        engine.evaluate(_bag(_function("A", 1), _function("B", 2)))
    assert engine.ready is True
