# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from todo_companion.core.state import AppState
from todo_companion.tasks.task_api import TaskService
from todo_companion.tasks.task_persistence import CorruptPolicy
from todo_companion.tasks.task_repository import AgendaWindow, TaskRepository

from .fakes import FakeSnapshotStore


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the bootstrap helpers.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="todo-test",
        # Paths (tmp per test run)
        data_dir=tmp_path,
        tasks_path=tmp_path / "tasks.json",
        matrix_store_path=tmp_path / "matrix_store",
        # Connectors
        console_enabled=False,
        matrix_enabled=False,
        # Tasks
        console_owner_id=42,
        agenda_window=AgendaWindow.TRAILING,
        agenda_days=7,
        corrupt_state_policy=CorruptPolicy.EMPTY,
        save_retries=2,
        save_fatal=False,
    )


@pytest.fixture()
def store() -> FakeSnapshotStore:
    return FakeSnapshotStore()


@pytest.fixture()
def service(store: FakeSnapshotStore) -> TaskService:
    return TaskService(TaskRepository(), store)


@pytest.fixture()
def state(settings: SimpleNamespace, service: TaskService) -> AppState:
    """AppState wired with an in-memory snapshot store."""
    return AppState(settings=settings, tasks=service)
