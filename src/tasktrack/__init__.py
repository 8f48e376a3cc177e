"""
tasktrack: a personal task-tracking store.

Packages:
- tasks/: task model, filter pipeline, statistics and the TaskStore itself
- storage/: key-value persistence backends (SQLite, JSON file)
- core/: ports (Protocols), clock and app state wiring
- cli/ + connectors/: console front-end driving the store through commands
"""
