# src/tasktrack/core/state.py

from __future__ import annotations

from dataclasses import dataclass

from ..tasks.task_store import TaskStore
from .ports import Clock


@dataclass
class AppState:
    # Settings live on the state so commands can show them.
    settings: object

    clock: Clock
    task_store: TaskStore
