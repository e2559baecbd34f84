"""Tests for package fact aggregation."""

from __future__ import annotations

from regolint.transformer import build_package_fact_bag


def test_package_bag_merges_files_in_order(transform) -> None:
    first = transform(
        """
        package store

        import (
            "context"
            "fmt"
        )

        func Open(ctx context.Context) error {
            return fmt.Errorf("closed")
        }
        """,
        path="store/open.go",
    )
    second = transform(
        """
        package store

        import "fmt"

        const Version = "1"

        type Store struct{}

        func (s *Store) Close() {
            fmt.Println("bye")
        }
        """,
        path="store/close.go",
    )

    package = build_package_fact_bag([first, second])

    assert package is not None
    assert package.package.name == "store"
    assert package.module_path == "example.com/demo"
    assert [bag.file_path for bag in package.files] == ["store/open.go", "store/close.go"]
    assert [item.path for item in package.all_imports] == ["context", "fmt"]
    assert [item.name for item in package.all_functions] == ["Open", "Close"]
    assert [item.name for item in package.all_types] == ["Store"]
    assert [item.name for item in package.all_constants] == ["Version"]
    assert [call.function for call in package.all_calls] == ["Errorf", "Println"]

    data = package.to_dict()
    assert sorted(data) == [
        "all_calls",
        "all_constants",
        "all_functions",
        "all_imports",
        "all_types",
        "all_variables",
        "files",
        "module_path",
        "package",
    ]


def test_package_bag_of_nothing_is_none() -> None:
    assert build_package_fact_bag([]) is None
