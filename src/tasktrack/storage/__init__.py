"""Key-value persistence backends used by TaskStore."""
