"""Tests for fact extraction from parsed Go files."""

from __future__ import annotations

import json

import pytest

from regolint.models import Position

SERVER_SOURCE = '''
// Package demo does things.
package demo

import (
    "fmt"
    str "strings"
)

// MaxItems caps the list.
const MaxItems = 10

var (
    defaultName string = "demo"
    counter, total = 1, 2
)

// Server handles requests.
type Server struct {
    Name    string `json:"name"`
    *Logger
    port int
}

type Handler interface {
    Serve(req Request) error
    fmt.Stringer
}

// Start boots the server.
// @deprecated
func (s *Server) Start(addr string, retries int) (bool, error) {
    if retries > 0 && addr != "" {
        fmt.Println(s.Name)
    }
    for i := 0; i < retries; i++ {
        str.TrimSpace(addr)
    }
    return true, nil
}

func helper() {}
'''


def test_transform_extracts_package_and_imports(transform) -> None:
    bag = transform(SERVER_SOURCE)

    assert bag.file_path == "example.go"
    assert bag.module_path == "example.com/demo"
    assert bag.package.name == "demo"
    assert bag.package.path == "example.com/demo"
    assert bag.package.doc == "Package demo does things."
    assert [(item.path, item.alias) for item in bag.imports] == [("fmt", ""), ("strings", "str")]
    assert bag.imports[0].position == Position(file="example.go", line=5, column=5)


def test_transform_extracts_variables_and_constants(transform) -> None:
    bag = transform(SERVER_SOURCE)

    assert [(item.name, item.value, item.is_const, item.is_exported) for item in bag.constants] == [
        ("MaxItems", "10", True, True)
    ]
    assert [(item.name, item.type, item.value) for item in bag.variables] == [
        ("defaultName", "string", '"demo"'),
        ("counter", "", "1"),
        ("total", "", "2"),
    ]
    assert bag.variables[0].position.line == 13


def test_transform_extracts_struct_fields_and_embeds(transform) -> None:
    bag = transform(SERVER_SOURCE)
    server = bag.types[0]

    assert server.name == "Server"
    assert server.kind == "struct"
    assert server.is_exported is True
    assert server.doc == "Server handles requests."
    assert [(field.name, field.type, field.tags, field.is_embedded) for field in server.fields] == [
        ("Name", "string", 'json:"name"', False),
        ("*Logger", "*Logger", "", True),
        ("port", "int", "", False),
    ]
    assert server.fields[0].is_exported is True
    assert server.fields[2].is_exported is False
    assert server.embeds == ["*Logger"]


def test_transform_extracts_interface_methods(transform) -> None:
    bag = transform(SERVER_SOURCE)
    handler = bag.types[1]

    assert handler.kind == "interface"
    assert [method.name for method in handler.methods] == ["Serve"]
    serve = handler.methods[0].to_dict()
    assert serve["parameters"] == [{"name": "req", "type": "Request"}]
    assert serve["returns"] == [{"type": "error"}]
    assert handler.embeds == ["fmt.Stringer"]


def test_transform_extracts_functions(transform) -> None:
    bag = transform(SERVER_SOURCE)
    start, helper = bag.functions

    assert start.name == "Start"
    assert start.receiver == "*Server"
    assert [(param.name, param.type) for param in start.parameters] == [
        ("addr", "string"),
        ("retries", "int"),
    ]
    assert [param.type for param in start.returns] == ["bool", "error"]
    assert start.is_exported is True
    assert start.complexity == 4
    assert start.line_count == 9
    assert start.comments == ["Start boots the server.", "@deprecated"]
    assert start.annotations == {"deprecated": True}
    assert start.position.line == 31

    assert helper.name == "helper"
    assert helper.is_exported is False
    assert helper.complexity == 1
    assert helper.comments == []


def test_transform_extracts_calls_and_field_accesses(transform) -> None:
    bag = transform(SERVER_SOURCE)

    println, trim = bag.calls
    assert (println.function, println.package, println.receiver) == ("Println", "fmt", "fmt")
    assert println.args == ["s.Name"]
    assert println.in_function == "Start"
    assert println.receiver_type == ""
    assert (trim.function, trim.package, trim.args) == ("TrimSpace", "str", ["addr"])

    assert len(bag.field_accesses) == 1
    access = bag.field_accesses[0]
    assert (access.field, access.receiver, access.type, access.in_function) == (
        "Name",
        "s",
        "*Server",
        "Start",
    )


def test_transform_collects_named_type_usages(transform) -> None:
    bag = transform(SERVER_SOURCE)

    assert [(usage.type_name, usage.context) for usage in bag.type_usages] == [("Logger", "field")]


def test_receiver_calls_carry_receiver_type(transform) -> None:
    bag = transform(
        """
        package demo

        func (c *Client) Close() error {
            return c.conn.Close()
        }

        func run(c *Client) {
            c.Close()
            func() {}()
            build().Run()
        }
        """
    )

    chained = bag.calls[0]
    assert (chained.function, chained.receiver, chained.package) == ("Close", "c.conn", "")

    direct, anonymous, on_call, inner = bag.calls[1:]
    assert (direct.function, direct.receiver, direct.receiver_type) == ("Close", "c", "*Client")
    assert anonymous.function == "(anonymous)"
    assert (on_call.function, on_call.receiver) == ("Run", "call")
    assert inner.function == "build"


def test_type_usages_cover_signatures_and_bodies(transform) -> None:
    bag = transform(
        """
        package demo

        import "net/http"

        func Handle(w http.ResponseWriter, cfg *Config) []Item {
            item := Item{Name: "x"}
            if v, ok := cfg.Value.(Stringer); ok {
                _ = v
            }
            return []Item{item}
        }
        """
    )

    usages = [(usage.package, usage.type_name, usage.context) for usage in bag.type_usages]
    assert ("http", "ResponseWriter", "parameter") in usages
    assert ("", "Config", "parameter") in usages
    assert ("", "Item", "return") in usages
    assert ("", "Item", "composite_literal") in usages
    assert ("", "Stringer", "type_assertion") in usages
    assert all(usage.in_function == "Handle" for usage in bag.type_usages)


def test_test_functions_are_flagged(transform) -> None:
    bag = transform(
        """
        package demo

        func TestStart(t *testing.T) {}

        func BenchmarkStart(b *testing.B) {}

        func Testify() {}
        """,
        path="demo_test.go",
    )

    assert [function.is_test for function in bag.functions] == [True, True, True]
    assert bag.functions[0].position.file == "demo_test.go"


def test_alias_and_func_types(transform) -> None:
    bag = transform(
        """
        package demo

        type ID = string

        type Visitor func(node Node) bool
        """
    )

    assert [(item.name, item.kind) for item in bag.types] == [("ID", "alias"), ("Visitor", "func")]


def test_transform_is_deterministic(transform) -> None:
    first = json.dumps(transform(SERVER_SOURCE).to_dict(), sort_keys=True)
    second = json.dumps(transform(SERVER_SOURCE).to_dict(), sort_keys=True)

    assert first == second


def test_to_dict_omits_empty_optional_fields(transform) -> None:
    data = transform(SERVER_SOURCE).to_dict()

    helper = data["functions"][1]
    assert "receiver" not in helper
    assert "comments" not in helper
    assert helper["parameters"] == []
    assert "alias" not in data["imports"][0]
    assert data["imports"][1]["alias"] == "str"


def test_transform_tolerates_syntax_errors(transform) -> None:
    bag = transform(
        """
        package demo

        func Fine() {}

        func Broken( {
        }
        """
    )

    assert bag.package.name == "demo"
    assert "Fine" in [function.name for function in bag.functions]


@pytest.mark.parametrize(
    ("body", "expected"),
    [
        ("", 1),
        ("if a { return }", 2),
        ("if a { return } else if b { return }", 3),
        ("for { break }", 2),
        ("for _, x := range xs { _ = x }", 2),
        ("_ = a && b", 2),
        ("_ = a || b", 2),
        ("_ = a && b || !a", 3),
        ("switch len(xs) {\ncase 0:\ncase 1:\ndefault:\n}", 5),
        ("switch v.(type) {\ncase int:\ncase string:\n}", 4),
        ("select {\ncase <-ch:\ncase ch <- 1:\ndefault:\n}", 5),
        ("f := func() { if a { return } }\nf()", 2),
    ],
)
def test_complexity_counts_each_decision_point(transform, body: str, expected: int) -> None:
    source = (
        "package demo\n\n"
        "func run(a, b bool, xs []int, v interface{}, ch chan int) {\n"
        f"{body}\n"
        "}\n"
    )

    (function,) = transform(source).functions

    assert function.complexity == expected
