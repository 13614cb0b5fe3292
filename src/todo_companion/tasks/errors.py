# src/todo_companion/tasks/errors.py

from __future__ import annotations


class TaskError(Exception):
    """Base class for task subsystem errors."""


class CorruptStateError(TaskError):
    """A persisted snapshot could not be parsed into a repository."""


class PersistenceError(TaskError):
    """
    Reading or writing the snapshot file failed (after retries).

    task_id is set when the failed save followed a create, so callers can still
    report the id of the task that now only exists in memory.
    """

    def __init__(self, message: str = "", *, task_id: int | None = None) -> None:
        super().__init__(message)
        self.task_id = task_id


class FatalPersistenceError(PersistenceError):
    """
    Save failed and the app is configured to stop rather than run without durable state.

    Connectors let this one escape so the process shuts down.
    """
