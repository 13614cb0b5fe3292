# src/todo_companion/tasks/task_repository.py

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from datetime import date
from enum import StrEnum
from typing import Any

from .errors import CorruptStateError
from .task_models import Task

logger = logging.getLogger(__name__)

DEFAULT_AGENDA_DAYS = 7


class AgendaWindow(StrEnum):
    """
    Which dated tasks the agenda view shows.

    TRAILING: due no more than N days ago, or any future date.
    UPCOMING: due today or within the next N days.
    """

    TRAILING = "trailing"
    UPCOMING = "upcoming"


def in_agenda_window(
    due: date,
    today: date,
    *,
    window: AgendaWindow = AgendaWindow.TRAILING,
    window_days: int = DEFAULT_AGENDA_DAYS,
) -> bool:
    if window is AgendaWindow.UPCOMING:
        return 0 <= (due - today).days <= window_days
    return (today - due).days <= window_days


class TaskRepository:
    """
    In-memory task collection keyed by id.

    Thread-safety:
    - every public method takes `lock` (an RLock), so callers may also hold it
      around a longer read-modify-write sequence (edit + save)
    - the id allocator is advanced under the same lock

    Records never leave the repository except through get_mut(); get() and the
    list_* queries return detached copies.
    """

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self._tasks: dict[int, Task] = {}
        self._size = 0
        self._next_id = 0

    def __len__(self) -> int:
        with self.lock:
            return self._size

    @property
    def size(self) -> int:
        with self.lock:
            return self._size

    @property
    def next_id(self) -> int:
        """The id the next create() will hand out."""
        with self.lock:
            return self._next_id

    # ---- CRUD ----

    def create(self, owner_id: int, *, title: str = "", body: str = "") -> Task:
        """Allocate a fresh id, insert a new task and return a copy of it."""
        with self.lock:
            task = Task(id=self._next_id, owner_id=owner_id, title=title, body=body)
            self.add(task)
            return replace(task)

    def add(self, task: Task) -> None:
        """Insert or overwrite by id. size grows only when the id is new."""
        with self.lock:
            if task.id not in self._tasks:
                self._size += 1
            self._tasks[task.id] = task
            if task.id >= self._next_id:
                self._next_id = task.id + 1

    def delete(self, task_id: int) -> bool:
        """Remove a task. Returns False (and changes nothing) if the id is absent."""
        with self.lock:
            if self._tasks.pop(task_id, None) is None:
                return False
            self._size -= 1
            return True

    def get(self, task_id: int) -> Task | None:
        with self.lock:
            task = self._tasks.get(task_id)
            return replace(task) if task is not None else None

    @contextmanager
    def get_mut(self, task_id: int) -> Iterator[Task | None]:
        """
        Yield the live task (or None) while holding the repository lock.

            with repo.get_mut(task_id) as task:
                if task is not None:
                    task.set_title("new")

        Do not keep the reference after the block ends.
        """
        with self.lock:
            yield self._tasks.get(task_id)

    def reassign_id(self, old_id: int, new_id: int) -> bool:
        """
        Administrative re-id. Not used in normal command flow.

        Refuses (returns False) if old_id is absent or new_id is taken.
        """
        with self.lock:
            if old_id not in self._tasks or new_id in self._tasks:
                return False
            task = self._tasks.pop(old_id)
            task.id = new_id
            self._tasks[new_id] = task
            if new_id >= self._next_id:
                self._next_id = new_id + 1
            logger.info("Task re-id %s -> %s", old_id, new_id)
            return True

    # ---- queries ----

    def list_by_owner_all(self, owner_id: int) -> list[Task]:
        """Every task of the owner. Callers must not rely on the order."""
        with self.lock:
            return [replace(t) for _, t in sorted(self._tasks.items()) if t.owner_id == owner_id]

    def list_by_owner_active(self, owner_id: int) -> list[Task]:
        return [t for t in self.list_by_owner_all(owner_id) if not t.is_done()]

    def list_by_owner_agenda(
        self,
        owner_id: int,
        *,
        today: date | None = None,
        window: AgendaWindow = AgendaWindow.TRAILING,
        window_days: int = DEFAULT_AGENDA_DAYS,
    ) -> list[Task]:
        """
        Active, dated tasks of the owner that fall into the agenda window.

        With the default TRAILING window a task passes if it is due no more than
        window_days before today; future dates always pass.
        """
        if today is None:
            today = date.today()

        out: list[Task] = []
        for task in self.list_by_owner_active(owner_id):
            if task.due_date is None:
                continue
            try:
                due = date.fromisoformat(task.due_date)
            except ValueError:
                logger.debug("Task %s has unparsable due_date=%r; skipped", task.id, task.due_date)
                continue
            if in_agenda_window(due, today, window=window, window_days=window_days):
                out.append(task)
        return out

    # ---- snapshot ----

    def to_snapshot(self) -> dict[str, Any]:
        with self.lock:
            return {
                "tasks": {str(tid): t.to_record() for tid, t in sorted(self._tasks.items())},
                "size": self._size,
            }

    def serialize(self) -> bytes:
        return json.dumps(self.to_snapshot(), ensure_ascii=False, indent=2).encode("utf-8")

    @classmethod
    def deserialize(cls, data: bytes | str) -> TaskRepository:
        """
        Rebuild a repository from serialize() output (or the legacy "notes" layout).

        Raises CorruptStateError on anything structurally different.
        The allocator resumes above every restored id.
        """
        try:
            raw = json.loads(data)
        except (UnicodeDecodeError, ValueError, RecursionError) as e:
            raise CorruptStateError(f"snapshot is not valid JSON: {e}") from e

        if not isinstance(raw, dict):
            raise CorruptStateError("snapshot must be a JSON object")

        records = raw.get("tasks", raw.get("notes"))
        if not isinstance(records, dict):
            raise CorruptStateError("snapshot has no 'tasks' object")

        stored_size = raw.get("size")
        if isinstance(stored_size, bool) or not isinstance(stored_size, int) or stored_size < 0:
            raise CorruptStateError(f"snapshot 'size' must be a non-negative integer, got {stored_size!r}")

        repo = cls()
        for key, record in records.items():
            try:
                task = Task.from_record(record)
            except ValueError as e:
                raise CorruptStateError(f"bad task record {key!r}: {e}") from e
            if key != str(task.id):
                raise CorruptStateError(f"task key {key!r} does not match its id {task.id}")
            repo.add(task)

        if stored_size != repo._size:
            logger.warning(
                "Snapshot size=%s but %s tasks restored; using the restored count",
                stored_size,
                repo._size,
            )

        # Older snapshots only tracked size; never hand out an id at or below it either.
        repo._next_id = max(repo._next_id, stored_size)
        return repo
