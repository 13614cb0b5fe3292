# src/todo_companion/tasks/task_api.py

"""
High-level task operations used by the command layer.

TaskService is the synchronized handle around one TaskRepository:
- every operation runs under the repository lock,
- every mutation (create / edit / state / due date / delete) is saved
  synchronously before the lock is released, so two racing edits of the
  same id can never lose an update and nothing is lost between restarts.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date

from ..core.ports import TaskSnapshotStore
from .errors import FatalPersistenceError, PersistenceError
from .task_models import Task
from .task_repository import DEFAULT_AGENDA_DAYS, AgendaWindow, TaskRepository

logger = logging.getLogger(__name__)


def _visible(task: Task | None, owner_id: int | None) -> bool:
    """owner_id=None skips the ownership check (administrative access)."""
    return task is not None and (owner_id is None or task.owner_id == owner_id)


class TaskService:
    def __init__(
        self,
        repository: TaskRepository,
        store: TaskSnapshotStore,
        *,
        agenda_window: AgendaWindow = AgendaWindow.TRAILING,
        agenda_days: int = DEFAULT_AGENDA_DAYS,
        fatal_on_save_error: bool = False,
    ) -> None:
        self.repository = repository
        self._store = store
        self.agenda_window = AgendaWindow(agenda_window)
        self.agenda_days = int(agenda_days)
        self._fatal_on_save_error = fatal_on_save_error

    @classmethod
    def from_store(cls, store: TaskSnapshotStore, **kwargs) -> TaskService:
        """Load the repository from `store` and wrap it."""
        return cls(store.load(), store, **kwargs)

    # ---- persistence ----

    def _save(self) -> None:
        try:
            self._store.save(self.repository)
        except PersistenceError as e:
            logger.error("Task snapshot save failed: %s", e)
            if self._fatal_on_save_error:
                raise FatalPersistenceError(str(e)) from e
            raise

    def flush(self) -> None:
        """Write the current state (used on shutdown)."""
        with self.repository.lock:
            self._save()

    def _edit(self, task_id: int, change: Callable[[Task], None], owner_id: int | None) -> Task | None:
        with self.repository.lock:
            with self.repository.get_mut(task_id) as task:
                if not _visible(task, owner_id):
                    return None
                change(task)
            self._save()
            return self.repository.get(task_id)

    # ---- mutations ----

    def create_task(self, owner_id: int, title: str, body: str = "") -> Task:
        with self.repository.lock:
            task = self.repository.create(owner_id, title=title, body=body)
            try:
                self._save()
            except PersistenceError as e:
                e.task_id = task.id
                raise
        logger.info("Task created id=%s owner=%s", task.id, owner_id)
        return task

    def set_state(self, task_id: int, text: str, *, owner_id: int | None = None) -> Task | None:
        """Set state from free text; unknown text leaves the task Unset."""
        return self._edit(task_id, lambda t: t.set_state_from_text(text), owner_id)

    def set_due_date(
        self, task_id: int, due_date: date | str | None, *, owner_id: int | None = None
    ) -> Task | None:
        if isinstance(due_date, date):
            due_date = due_date.isoformat()
        return self._edit(task_id, lambda t: t.set_due_date(due_date), owner_id)

    def set_title(self, task_id: int, title: str, *, owner_id: int | None = None) -> Task | None:
        return self._edit(task_id, lambda t: t.set_title(title), owner_id)

    def set_body(self, task_id: int, body: str, *, owner_id: int | None = None) -> Task | None:
        return self._edit(task_id, lambda t: t.set_body(body), owner_id)

    def delete_task(self, task_id: int, *, owner_id: int | None = None) -> bool:
        """Delete by id. An unknown id (or another owner's task) is a no-op and returns False."""
        with self.repository.lock:
            with self.repository.get_mut(task_id) as task:
                if not _visible(task, owner_id):
                    return False
            self.repository.delete(task_id)
            self._save()
        logger.info("Task deleted id=%s", task_id)
        return True

    # ---- queries ----

    def show_task(self, task_id: int, *, owner_id: int | None = None) -> Task | None:
        task = self.repository.get(task_id)
        return task if _visible(task, owner_id) else None

    def list_active(self, owner_id: int) -> list[Task]:
        return self.repository.list_by_owner_active(owner_id)

    def list_all(self, owner_id: int) -> list[Task]:
        return self.repository.list_by_owner_all(owner_id)

    def agenda(self, owner_id: int, *, today: date | None = None) -> list[Task]:
        return self.repository.list_by_owner_agenda(
            owner_id,
            today=today,
            window=self.agenda_window,
            window_days=self.agenda_days,
        )

    def count(self) -> int:
        return len(self.repository)
