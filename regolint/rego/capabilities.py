"""Capability sets: which builtins a compiled policy may call."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional

from .builtins import Builtin, default_builtins


@dataclass(frozen=True)
class Capabilities:
    """Builtins visible to the compiler and evaluator.

    ``allow_net`` mirrors OPA's network allowlist: ``None`` places no limit,
    an empty list forbids every host.
    """

    builtins: Mapping[str, Builtin] = field(default_factory=dict)
    allow_net: Optional[List[str]] = None

    @classmethod
    def current(cls) -> "Capabilities":
        return cls(builtins=default_builtins())

    def without(self, names: Iterable[str]) -> "Capabilities":
        removed = set(names)
        kept = {name: item for name, item in self.builtins.items() if name not in removed}
        return Capabilities(builtins=kept, allow_net=self.allow_net)

    def with_builtins(self, extra: Iterable[Builtin]) -> "Capabilities":
        merged: Dict[str, Builtin] = dict(self.builtins)
        for item in extra:
            merged[item.name] = item
        return Capabilities(builtins=merged, allow_net=self.allow_net)

    def with_allow_net(self, hosts: Iterable[str]) -> "Capabilities":
        return Capabilities(builtins=dict(self.builtins), allow_net=list(hosts))

    def get(self, name: str) -> Optional[Builtin]:
        return self.builtins.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self.builtins


__all__ = ["Capabilities"]
