"""
Volatile Key/Value Store
=========================
In-process table used for manuals and per-ticket recommendations.

Contract:
  - put() is last-write-wins. Overwriting a key keeps its original
    insertion position, so values() stays in first-insert order.
  - Nothing survives a process restart.
  - No locking. The copilot serves a single interactive operator; two
    writers on the same key simply race and the later one wins.
"""

from __future__ import annotations

import logging
from typing import Generic, Iterator, Optional, TypeVar

logger = logging.getLogger("database.store")

V = TypeVar("V")


class VolatileStore(Generic[V]):
    def __init__(self, name: str):
        self.name = name
        self._rows: dict[str, V] = {}

    def get(self, key: str) -> Optional[V]:
        return self._rows.get(key)

    def put(self, key: str, value: V) -> None:
        if key in self._rows:
            logger.debug(f"[{self.name}] overwriting {key!r}")
        self._rows[key] = value

    def delete(self, key: str) -> bool:
        """Remove ``key``. Returns whether an entry existed."""
        return self._rows.pop(key, None) is not None

    def values(self) -> list[V]:
        return list(self._rows.values())

    def first(self) -> Optional[V]:
        return next(iter(self._rows.values()), None)

    def clear(self) -> None:
        self._rows.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._rows

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[str]:
        return iter(self._rows)
