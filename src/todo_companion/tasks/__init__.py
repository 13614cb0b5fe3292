"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskState)
- task_repository.py: in-memory keyed collection, id allocator, owner/agenda queries
- task_persistence.py: JSON snapshot file (atomic save, load with corrupt policy)
- task_api.py: TaskService, the locked handle the command layer talks to
- errors.py: exception hierarchy
"""
