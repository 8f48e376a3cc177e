# src/tasktrack/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from datetime import datetime, time
from enum import Enum
from typing import TypeVar, cast

from ..core.state import AppState
from ..tasks.task_api import add_new_task
from ..tasks.task_filters import SortOption
from ..tasks.task_models import Task, TaskCategory, TaskPriority, TaskStatus, with_changes

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

E = TypeVar("E", bound=Enum)

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return h3(state, args, emit)

        h2 = cast(CommandHandler2, handler)
        return h2(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- parsing / formatting helpers ----

_STATUS_MARK = {
    TaskStatus.PENDING: "[ ]",
    TaskStatus.IN_PROGRESS: "[~]",
    TaskStatus.COMPLETED: "[x]",
    TaskStatus.CANCELLED: "[-]",
}


def _norm(raw: str) -> str:
    return raw.strip().lower().replace("_", "").replace("-", "")


def parse_enum(enum_cls: type[E], raw: str) -> E | None:
    """Case-insensitive lookup by value or member name ("in_progress" == "inProgress")."""
    want = _norm(raw)
    for member in enum_cls:
        if _norm(str(member.value)) == want or _norm(member.name) == want:
            return member
    return None


def parse_due(raw: str) -> datetime:
    """
    Parse an ISO date or datetime. A date-only value means the end of that day.
    Naive values are local time.
    """
    if len(raw) == 10:
        due = datetime.combine(datetime.fromisoformat(raw).date(), time(23, 59))
    else:
        due = datetime.fromisoformat(raw)
    if due.tzinfo is None:
        due = due.astimezone()
    return due


def format_task_line(task: Task, now: datetime) -> str:
    meta = [task.priority.value, task.category.value]
    if task.due_date is not None:
        meta.append(f"due {task.due_date.astimezone(now.tzinfo).strftime('%Y-%m-%d %H:%M')}")
    if task.tags:
        meta.append(" ".join(f"#{t}" for t in task.tags))

    flag = " !" if task.is_overdue(now) else ""
    return f"{_STATUS_MARK[task.status]} {task.id[:8]} {task.title} ({', '.join(meta)}){flag}"


def format_task_details(task: Task, now: datetime) -> str:
    lines = [
        f"Task {task.id}",
        f"  Title: {task.title}",
        f"  Status: {task.status.value}",
        f"  Priority: {task.priority.value}",
        f"  Category: {task.category.value}",
        f"  Created: {task.created_at.isoformat(timespec='minutes')}",
    ]
    if task.description:
        lines.append(f"  Description: {task.description}")
    if task.due_date is not None:
        left = task.time_until_due(now)
        when = "today" if task.is_due_today(now) else "tomorrow" if task.is_due_tomorrow(now) else ""
        suffix = f" ({when})" if when else ""
        lines.append(f"  Due: {task.due_date.isoformat(timespec='minutes')}{suffix}")
        if left is not None:
            hours = int(left.total_seconds() // 3600)
            lines.append(f"  Time left: {hours}h" if hours >= 0 else f"  Overdue by: {-hours}h")
    if task.completed_at is not None:
        lines.append(f"  Completed: {task.completed_at.isoformat(timespec='minutes')}")
    if task.tags:
        lines.append(f"  Tags: {', '.join(task.tags)}")
    if task.estimated_minutes or task.actual_minutes:
        lines.append(f"  Minutes: {task.actual_minutes} of {task.estimated_minutes} estimated")
    return "\n".join(lines)


def _format_list(tasks, now: datetime, empty: str) -> str:
    if not tasks:
        return empty
    lines = [f"{len(tasks)} task(s):"]
    lines.extend(f"  {format_task_line(t, now)}" for t in tasks)
    return "\n".join(lines)


def _resolve_task(state: AppState, raw: str) -> Task | str:
    """Find a task by full id or unique id prefix. Returns an error string otherwise."""
    exact = state.task_store.get_task(raw)
    if exact is not None:
        return exact
    matches = [t for t in state.task_store.tasks if t.id.startswith(raw)]
    if not matches:
        return f"No task with id {raw!r}."
    if len(matches) > 1:
        return f"Id prefix {raw!r} is ambiguous ({len(matches)} tasks)."
    return matches[0]


# ---- commands ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_add(state: AppState, args: list[str]) -> str:
    title = " ".join(args).strip()
    if not title:
        return "Usage: /add <title>"
    task = add_new_task(state.task_store, state.clock, title)
    return f"Added {task.id[:8]}: {task.title}"


def cmd_list(state: AppState, args: list[str]) -> str:
    """
    /list      -> filtered view (current search/filter/sort)
    /list all  -> whole collection in insertion order
    """
    now = state.clock.now()
    if args and args[0].lower() == "all":
        return _format_list(state.task_store.tasks, now, "No tasks yet. Use /add <title>.")
    return _format_list(state.task_store.filtered_tasks, now, "No tasks match the current filters.")


def cmd_show(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /show <id>"
    found = _resolve_task(state, args[0])
    if isinstance(found, str):
        return found
    return format_task_details(found, state.clock.now())


def cmd_toggle(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /toggle <id>"
    found = _resolve_task(state, args[0])
    if isinstance(found, str):
        return found
    state.task_store.toggle_status(found.id)
    updated = state.task_store.get_task(found.id)
    status = updated.status.value if updated else "?"
    return f"{found.id[:8]}: {found.status.value} -> {status}"


def cmd_done(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /done <id>"
    found = _resolve_task(state, args[0])
    if isinstance(found, str):
        return found
    state.task_store.update_task(with_changes(found, status=TaskStatus.COMPLETED))
    return f"{found.id[:8]} completed."


def cmd_delete(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /delete <id>"
    found = _resolve_task(state, args[0])
    if isinstance(found, str):
        return found
    state.task_store.delete_task(found.id)
    return f"Deleted {found.id[:8]}: {found.title}"


def cmd_due(state: AppState, args: list[str]) -> str:
    """
    /due <id> 2026-01-31         -> due at the end of that day
    /due <id> 2026-01-31T09:30   -> due at that time
    /due <id> none               -> remove the due date
    """
    if len(args) < 2:
        return "Usage: /due <id> <YYYY-MM-DD[THH:MM]|none>"
    found = _resolve_task(state, args[0])
    if isinstance(found, str):
        return found

    if args[1].lower() == "none":
        due = None
    else:
        try:
            due = parse_due(args[1])
        except ValueError:
            return f"Bad date {args[1]!r}. Use YYYY-MM-DD or YYYY-MM-DDTHH:MM."

    state.task_store.update_task(with_changes(found, due_date=due))
    return f"{found.id[:8]} due: {due.isoformat(timespec='minutes') if due else 'none'}"


def _set_enum_field(state: AppState, args: list[str], enum_cls: type[E], field_name: str) -> str:
    choices = ", ".join(str(m.value) for m in enum_cls)
    if len(args) < 2:
        return f"Usage: /{field_name} <id> <{choices}>"
    found = _resolve_task(state, args[0])
    if isinstance(found, str):
        return found
    value = parse_enum(enum_cls, args[1])
    if value is None:
        return f"Unknown {field_name} {args[1]!r}. Choose one of: {choices}."
    state.task_store.update_task(with_changes(found, {field_name: value}))
    return f"{found.id[:8]} {field_name}: {value.value}"


def cmd_priority(state: AppState, args: list[str]) -> str:
    return _set_enum_field(state, args, TaskPriority, "priority")


def cmd_category(state: AppState, args: list[str]) -> str:
    return _set_enum_field(state, args, TaskCategory, "category")


def cmd_tag(state: AppState, args: list[str]) -> str:
    """Replace the tags of a task: /tag <id> work urgent (no tags clears them)."""
    if not args:
        return "Usage: /tag <id> [tag ...]"
    found = _resolve_task(state, args[0])
    if isinstance(found, str):
        return found
    tags = tuple(t.lstrip("#") for t in args[1:] if t.lstrip("#"))
    state.task_store.update_task(with_changes(found, tags=tags))
    return f"{found.id[:8]} tags: {', '.join(tags) if tags else '(none)'}"


def cmd_search(state: AppState, args: list[str]) -> str:
    query = " ".join(args)
    state.task_store.set_search_query(query)
    if not query:
        return "Search cleared."
    return f"Search: {query!r} ({len(state.task_store.filtered_tasks)} match(es))"


_FILTERS: dict[str, tuple[type[Enum], str]] = {
    "category": (TaskCategory, "set_selected_category"),
    "status": (TaskStatus, "set_selected_status"),
    "priority": (TaskPriority, "set_selected_priority"),
}


def cmd_filter(state: AppState, args: list[str]) -> str:
    """
    /filter category work
    /filter status inProgress
    /filter priority any    -> remove that filter
    """
    if len(args) < 2 or args[0].lower() not in _FILTERS:
        return "Usage: /filter <category|status|priority> <value|any>"

    kind = args[0].lower()
    enum_cls, setter_name = _FILTERS[kind]
    setter = getattr(state.task_store, setter_name)

    if args[1].lower() in ("any", "all", "none"):
        setter(None)
        return f"Filter {kind}: any"

    value = parse_enum(enum_cls, args[1])
    if value is None:
        choices = ", ".join(str(m.value) for m in enum_cls)
        return f"Unknown {kind} {args[1]!r}. Choose one of: {choices}, any."
    setter(value)
    return f"Filter {kind}: {value.value}"


def cmd_sort(state: AppState, args: list[str]) -> str:
    choices = ", ".join(o.value for o in SortOption)
    if not args:
        return f"Sorted by {state.task_store.sort_option.value}. Options: {choices}."
    option = parse_enum(SortOption, args[0])
    if option is None:
        return f"Unknown sort option {args[0]!r}. Options: {choices}."
    state.task_store.set_sort_option(option)
    return f"Sorted by {option.value}."


def cmd_completed(state: AppState, args: list[str]) -> str:
    """
    /completed      -> show status
    /completed on   -> show completed tasks in the list
    /completed off  -> hide them
    """
    if not args:
        shown = "shown" if state.task_store.show_completed else "hidden"
        return f"Completed tasks are {shown}. Use /completed on or /completed off."

    arg = args[0].lower()
    if arg in ("on", "1", "true", "yes"):
        state.task_store.set_show_completed(True)
        return "Completed tasks shown."
    if arg in ("off", "0", "false", "no"):
        state.task_store.set_show_completed(False)
        return "Completed tasks hidden."
    return "Usage: /completed on or /completed off."


def cmd_clear(state: AppState, args: list[str]) -> str:
    state.task_store.clear_filters()
    return "Filters cleared (sort: dueDate, completed shown)."


def cmd_stats(state: AppState, args: list[str]) -> str:
    s = state.task_store.statistics()
    return (
        "Statistics:\n"
        f"  Total: {s.total_tasks}\n"
        f"  Pending: {s.pending_tasks}\n"
        f"  In progress: {s.in_progress_tasks}\n"
        f"  Completed: {s.completed_tasks} ({s.completion_rate:.0f}%)\n"
        f"  Overdue: {s.overdue_tasks}\n"
        f"  Due today: {s.today_tasks}"
    )


def cmd_today(state: AppState, args: list[str]) -> str:
    return _format_list(state.task_store.today_tasks(), state.clock.now(), "Nothing due today.")


def cmd_overdue(state: AppState, args: list[str]) -> str:
    return _format_list(state.task_store.overdue_tasks(), state.clock.now(), "Nothing overdue.")


def cmd_upcoming(state: AppState, args: list[str]) -> str:
    return _format_list(
        state.task_store.upcoming_tasks(), state.clock.now(), "Nothing due in the next 7 days."
    )


def cmd_status(state: AppState, args: list[str]) -> str:
    settings = state.settings
    store = state.task_store
    return (
        "Status:\n"
        f"  Storage: {getattr(settings, 'storage_backend', '?')} "
        f"(key={getattr(settings, 'storage_key', '?')})\n"
        f"  Loaded: {'yes' if store.is_loaded else 'loading...'}\n"
        f"  Search: {store.search_query!r}\n"
        f"  Filters: category={store.selected_category or 'any'} "
        f"status={store.selected_status or 'any'} priority={store.selected_priority or 'any'}\n"
        f"  Sort: {store.sort_option.value}, completed {'shown' if store.show_completed else 'hidden'}"
    )


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("add", cmd_add, help_text="Add a task: /add <title>.", aliases=["new"])
registry.register("list", cmd_list, help_text="List tasks (filtered view): /list | /list all.", aliases=["ls"])
registry.register("show", cmd_show, help_text="Show task details: /show <id>.")
registry.register("toggle", cmd_toggle, help_text="Advance status: pending -> inProgress -> completed -> pending.")
registry.register("done", cmd_done, help_text="Mark a task completed: /done <id>.")
registry.register("delete", cmd_delete, help_text="Delete a task: /delete <id>.", aliases=["rm"])
registry.register("due", cmd_due, help_text="Set due date: /due <id> <YYYY-MM-DD[THH:MM]|none>.")
registry.register("priority", cmd_priority, help_text="Set priority: /priority <id> <low|medium|high|urgent>.")
registry.register("category", cmd_category, help_text="Set category: /category <id> <name>.")
registry.register("tag", cmd_tag, help_text="Replace tags: /tag <id> [tag ...].")
registry.register("search", cmd_search, help_text="Search title/description/tags: /search <text> (empty clears).")
registry.register("filter", cmd_filter, help_text="Filter: /filter <category|status|priority> <value|any>.")
registry.register("sort", cmd_sort, help_text="Sort: /sort <dueDate|priority|title|createdAt|status>.")
registry.register("completed", cmd_completed, help_text="Show/hide completed tasks: /completed on | off.")
registry.register("clear", cmd_clear, help_text="Reset search, filters and sort.")
registry.register("stats", cmd_stats, help_text="Show statistics.")
registry.register("today", cmd_today, help_text="Open tasks due today.")
registry.register("overdue", cmd_overdue, help_text="Overdue tasks.")
registry.register("upcoming", cmd_upcoming, help_text="Open tasks due in the next 7 days.")
registry.register("status", cmd_status, help_text="Show storage and current criteria.")
