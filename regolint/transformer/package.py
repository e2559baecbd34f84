"""Aggregate per-file fact bags into one package view."""

from __future__ import annotations

from typing import Iterable, Optional, Set

from ..models import FactBag, PackageFactBag


def build_package_fact_bag(bags: Iterable[FactBag]) -> Optional[PackageFactBag]:
    """Merge file bags in order; imports are deduplicated by path.

    Returns ``None`` when there is nothing to aggregate.
    """
    files = list(bags)
    if not files:
        return None

    first = files[0]
    package = PackageFactBag(module_path=first.module_path, package=first.package)
    seen_imports: Set[str] = set()
    for bag in files:
        package.files.append(bag)
        for item in bag.imports:
            if item.path in seen_imports:
                continue
            seen_imports.add(item.path)
            package.all_imports.append(item)
        package.all_functions.extend(bag.functions)
        package.all_types.extend(bag.types)
        package.all_variables.extend(bag.variables)
        package.all_constants.extend(bag.constants)
        package.all_calls.extend(bag.calls)
    return package


__all__ = ["build_package_fact_bag"]
