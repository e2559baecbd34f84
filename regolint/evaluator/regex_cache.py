"""Bounded LRU cache of compiled regular expressions."""

from __future__ import annotations

import re
import threading
from collections import OrderedDict
from typing import Pattern

DEFAULT_MAX_ENTRIES = 1000


class RegexCache:
    """Thread-safe LRU of compiled patterns.

    Invalid patterns are never cached; ``get`` re-raises ``re.error`` for them
    every time.
    """

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, Pattern[str]]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, pattern: str) -> Pattern[str]:
        with self._lock:
            cached = self._entries.get(pattern)
            if cached is not None:
                self._entries.move_to_end(pattern)
                return cached

        compiled = re.compile(pattern)

        with self._lock:
            self._entries[pattern] = compiled
            self._entries.move_to_end(pattern)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)
        return compiled

    def __contains__(self, pattern: object) -> bool:
        with self._lock:
            return pattern in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


__all__ = ["DEFAULT_MAX_ENTRIES", "RegexCache"]
