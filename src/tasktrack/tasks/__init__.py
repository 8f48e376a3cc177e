"""
Task subsystem.

Components:
- task_models.py: Task value type, enums, serialize/deserialize/with_changes
- task_filters.py: search/filter/sort pipeline (FilterCriteria, SortOption)
- task_stats.py: summary statistics and convenience queries
- task_store.py: TaskStore, the owner of the collection and the filtered view
- task_api.py: small high-level helpers used by collaborators
"""
