# src/todo_companion/tasks/task_persistence.py

"""
JSON snapshot file for the task repository.

One file holds the whole repository (see TaskRepository.serialize()).
Writes go to a temp file and are moved into place with os.replace, so a crash
mid-write never leaves a half-written snapshot behind.
"""

from __future__ import annotations

import contextlib
import logging
import os
import time
from enum import StrEnum
from pathlib import Path

from .errors import CorruptStateError, PersistenceError
from .task_repository import TaskRepository

logger = logging.getLogger(__name__)


class CorruptPolicy(StrEnum):
    """What load() does when the snapshot exists but cannot be parsed."""

    EMPTY = "empty"  # move the bad file aside, start with an empty repository
    FAIL = "fail"  # raise CorruptStateError, refuse to start


class TaskFileStore:
    def __init__(
        self,
        path: str | Path = "tasks.json",
        *,
        save_retries: int = 3,
        retry_delay_seconds: float = 0.2,
        corrupt_policy: CorruptPolicy = CorruptPolicy.EMPTY,
    ) -> None:
        self._path = Path(path)
        self._save_retries = max(1, int(save_retries))
        self._retry_delay = max(0.0, float(retry_delay_seconds))
        self._corrupt_policy = CorruptPolicy(corrupt_policy)

    @property
    def path(self) -> Path:
        return self._path

    def save(self, repository: TaskRepository) -> None:
        """
        Overwrite the snapshot file with the full repository contents.

        Retries a few times on OSError, then raises PersistenceError.
        """
        data = repository.serialize()

        last_exc: OSError | None = None
        for attempt in range(1, self._save_retries + 1):
            try:
                self._write_atomic(data)
                logger.debug("Saved %d tasks to %s", len(repository), self._path)
                return
            except OSError as e:
                last_exc = e
                logger.warning(
                    "Saving tasks to %s failed (attempt %d/%d): %r",
                    self._path,
                    attempt,
                    self._save_retries,
                    e,
                )
                if attempt < self._save_retries and self._retry_delay:
                    time.sleep(self._retry_delay)

        raise PersistenceError(f"could not write {self._path}: {last_exc}") from last_exc

    def load(self) -> TaskRepository:
        """
        Read the snapshot file.

        - missing or unreadable file -> empty repository (first run)
        - corrupt file -> depends on corrupt_policy
        """
        if not self._path.exists():
            logger.info("No task snapshot at %s; starting empty", self._path)
            return TaskRepository()

        try:
            data = self._path.read_bytes()
        except OSError as e:
            logger.warning("Task snapshot %s is unreadable (%r); starting empty", self._path, e)
            return TaskRepository()

        try:
            repo = TaskRepository.deserialize(data)
        except CorruptStateError:
            if self._corrupt_policy is CorruptPolicy.FAIL:
                logger.error("Task snapshot %s is corrupt; refusing to start", self._path)
                raise
            backup = self._quarantine()
            logger.exception(
                "Task snapshot %s is corrupt; starting empty (original kept at %s)",
                self._path,
                backup,
            )
            return TaskRepository()

        logger.info("Loaded %d tasks from %s (next id %d)", len(repo), self._path, repo.next_id)
        return repo

    def _write_atomic(self, data: bytes) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        with open(tmp, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp, self._path)
        with contextlib.suppress(OSError):
            # Best-effort: task text is private to its owner.
            os.chmod(self._path, 0o600)

    def _quarantine(self) -> Path | None:
        """Move a corrupt snapshot aside so the next save does not destroy it."""
        target = self._path.with_name(f"{self._path.name}.corrupt-{int(time.time())}")
        try:
            os.replace(self._path, target)
        except OSError:
            logger.exception("Failed to move corrupt snapshot %s aside", self._path)
            return None
        return target
