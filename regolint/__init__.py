"""Policy-as-code linting for Go: facts from tree-sitter, rules in Rego."""

__version__ = "0.1.0"

__all__ = ["__version__"]
