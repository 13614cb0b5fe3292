# src/todo_companion/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- loads the task snapshot and wires TaskService into AppState.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.state import AppState
from ..tasks.task_api import TaskService
from ..tasks.task_persistence import TaskFileStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_path.parent.mkdir(parents=True, exist_ok=True)
    if getattr(settings, "matrix_enabled", False):
        settings.matrix_store_path.mkdir(parents=True, exist_ok=True)


def build_task_service(settings) -> TaskService:
    """
    Load the repository from settings.tasks_path.

    Raises CorruptStateError if the snapshot is corrupt and the policy is "fail".
    """
    store = TaskFileStore(
        settings.tasks_path,
        save_retries=settings.save_retries,
        corrupt_policy=settings.corrupt_state_policy,
    )
    return TaskService.from_store(
        store,
        agenda_window=settings.agenda_window,
        agenda_days=settings.agenda_days,
        fatal_on_save_error=settings.save_fatal,
    )


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)
    tasks = build_task_service(settings)
    logger.info("Task store ready path=%s total=%s", settings.tasks_path, tasks.count())
    return AppState(settings=settings, tasks=tasks)
