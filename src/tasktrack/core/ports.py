# src/tasktrack/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

TaskStore depends on Protocols instead of concrete implementations, so the
storage backend and the time source can be swapped in tests.
"""

from collections.abc import Callable
from datetime import datetime
from typing import Protocol

ChangeListener = Callable[[], None]
# Pure "something changed" signal; listeners re-read the store getters.


class Clock(Protocol):
    """Time source for due-date predicates, statistics and status stamps."""

    def now(self) -> datetime: ...


class KeyValueStore(Protocol):
    """
    Blocking key-value persistence.

    TaskStore keeps the whole collection under one key as JSON text and calls
    these methods from a worker thread when an event loop is running.
    """

    def read(self, key: str) -> str | None: ...

    def write(self, key: str, value: str) -> None: ...
