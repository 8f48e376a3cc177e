# src/tasktrack/core/clock.py

from __future__ import annotations

from datetime import datetime


class SystemClock:
    """Wall clock in the local timezone (tz-aware)."""

    def now(self) -> datetime:
        return datetime.now().astimezone()
