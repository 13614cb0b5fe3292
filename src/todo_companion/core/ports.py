# src/todo_companion/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The task service depends on Protocols instead of concrete implementations.
This keeps storage swappable and makes testing easier.
"""

from typing import Protocol

from ..tasks.task_repository import TaskRepository


class TaskSnapshotStore(Protocol):
    """Durable home of one repository snapshot (JSON file in production)."""

    def save(self, repository: TaskRepository) -> None: ...
    def load(self) -> TaskRepository: ...
