# src/tasktrack/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState

logger = logging.getLogger(__name__)

PROMPT = ">>> "


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


async def run_console_loop(state: AppState) -> None:
    """
    Interactive REPL on top of TaskStore.

    input() runs in a worker thread so the event loop stays free for the
    store's background load and persistence writes.
    """
    store = state.task_store
    app_name = str(getattr(state.settings, "app_name", "tasktrack"))

    logger.info("Console connector started.")
    _print_ts(f"[{app_name}] Use /help for commands, /exit to quit.")

    await store.wait_until_loaded()
    stats = store.statistics()
    _print_ts(f"{stats.total_tasks} task(s), {stats.overdue_tasks} overdue, {stats.today_tasks} due today.")

    changes = 0

    def on_change() -> None:
        nonlocal changes
        changes += 1

    unsubscribe = store.subscribe(on_change)
    try:
        while True:
            try:
                user_input = (await asyncio.to_thread(input, PROMPT)).strip()
            except EOFError:
                logger.info("Console EOF received, exiting.")
                break
            except KeyboardInterrupt:
                logger.info("Console KeyboardInterrupt, exiting.")
                print()
                break

            if not user_input:
                continue

            if user_input.lower() in ("/exit", "/quit"):
                logger.info("Console exit command received.")
                break

            if not user_input.startswith("/"):
                user_input = f"/add {user_input}"

            before = changes
            try:
                reply = command_registry.handle(state, user_input, emit=_print_ts)
            except Exception:
                logger.exception("Command handler crashed.")
                reply = "Internal error while handling a command."

            if reply is not None:
                _print_ts(reply)
            if changes != before:
                _print_ts(f"({len(store.filtered_tasks)} shown of {len(store.tasks)} task(s))")
    finally:
        unsubscribe()

    logger.info("Console connector finished.")
