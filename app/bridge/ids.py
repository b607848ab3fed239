"""Synthetic update identifier allocation.

Telegram only issues non-negative ``update_id`` values, so the default
strategy counts downwards from -1. One allocator is shared by every account
for the lifetime of the process.
"""

import itertools
import threading
from typing import Protocol, runtime_checkable


@runtime_checkable
class IdentifierAllocator(Protocol):
    """Source of update ids that never collide with platform-issued ones."""

    def next_id(self) -> int:
        ...


class NegativeCounterAllocator:
    """Strictly decreasing counter starting at ``start`` (must be negative)."""

    def __init__(self, start: int = -1) -> None:
        if start >= 0:
            raise ValueError("synthetic ids must start below zero")
        self._counter = itertools.count(start, -1)
        self._lock = threading.Lock()

    def next_id(self) -> int:
        with self._lock:
            return next(self._counter)
