"""Fact extraction from parsed Go source."""

from .package import build_package_fact_bag
from .transformer import Transformer

__all__ = ["Transformer", "build_package_fact_bag"]
