# tests/test_task_service.py

from __future__ import annotations

import threading
from datetime import date
from pathlib import Path

import pytest

from todo_companion.tasks.errors import FatalPersistenceError, PersistenceError
from todo_companion.tasks.task_api import TaskService
from todo_companion.tasks.task_models import TaskState
from todo_companion.tasks.task_persistence import TaskFileStore
from todo_companion.tasks.task_repository import AgendaWindow, TaskRepository

from .fakes import FakeSnapshotStore


def test_end_to_end_scenario(service: TaskService) -> None:
    task = service.create_task(42, "Buy milk")
    assert task.id == 0

    assert service.set_state(task.id, "DoInG").state is TaskState.DOING
    assert [t.id for t in service.list_active(42)] == [task.id]

    service.set_state(task.id, "done")
    assert service.list_active(42) == []
    assert [t.id for t in service.list_all(42)] == [task.id]

    assert service.delete_task(task.id) is True
    assert service.list_all(42) == []
    assert service.delete_task(task.id) is False


def test_every_mutation_is_saved(service: TaskService, store: FakeSnapshotStore) -> None:
    tid = service.create_task(1, "t").id
    service.set_title(tid, "title")
    service.set_body(tid, "body")
    service.set_state(tid, "todo")
    service.set_due_date(tid, date(2024, 6, 20))
    assert store.saves == 5
    assert store.last["tasks"][str(tid)] == {
        "id": tid,
        "owner_id": 1,
        "title": "title",
        "body": "body",
        "state": "ToDo",
        "due_date": "2024-06-20",
    }

    service.delete_task(tid)
    assert store.saves == 6
    assert store.last == {"tasks": {}, "size": 0}


def test_unknown_id_is_reported_and_not_saved(service: TaskService, store: FakeSnapshotStore) -> None:
    assert service.set_state(5, "done") is None
    assert service.set_title(5, "x") is None
    assert service.set_body(5, "x") is None
    assert service.set_due_date(5, "2024-01-01") is None
    assert service.show_task(5) is None
    assert service.delete_task(5) is False
    assert store.saves == 0


def test_queries_do_not_save(service: TaskService, store: FakeSnapshotStore) -> None:
    service.create_task(1, "t")
    service.list_all(1)
    service.list_active(1)
    service.agenda(1, today=date(2024, 6, 15))
    service.show_task(0)
    assert store.saves == 1


def test_save_failure_is_reported_but_change_is_kept(service: TaskService, store: FakeSnapshotStore) -> None:
    tid = service.create_task(1, "t").id
    store.fail_next = 1

    with pytest.raises(PersistenceError) as exc_info:
        service.set_title(tid, "new")
    assert not isinstance(exc_info.value, FatalPersistenceError)

    assert service.show_task(tid).title == "new"


def test_fatal_save_policy(store: FakeSnapshotStore) -> None:
    service = TaskService(TaskRepository(), store, fatal_on_save_error=True)
    store.fail_next = 1
    with pytest.raises(FatalPersistenceError):
        service.create_task(1, "t")


def test_agenda_uses_configured_window(store: FakeSnapshotStore) -> None:
    service = TaskService(TaskRepository(), store, agenda_window=AgendaWindow.UPCOMING, agenda_days=3)
    soon = service.create_task(1, "soon").id
    later = service.create_task(1, "later").id
    service.set_due_date(soon, "2024-06-17")
    service.set_due_date(later, "2024-06-30")

    assert [t.id for t in service.agenda(1, today=date(2024, 6, 15))] == [soon]


def test_saves_happen_inside_the_critical_section(service: TaskService, store: FakeSnapshotStore) -> None:
    """If a save ran outside the lock, snapshots could arrive out of order."""

    def worker() -> None:
        for _ in range(50):
            service.create_task(1, "t")

    threads = [threading.Thread(target=worker) for _ in range(6)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    sizes = [snap["size"] for snap in store.snapshots]
    assert sizes == list(range(1, 301))


def test_concurrent_edits_of_one_task_are_not_lost(service: TaskService, store: FakeSnapshotStore) -> None:
    tid = service.create_task(1, "").id

    def worker(n: int) -> None:
        for i in range(25):
            service.set_body(tid, f"{n}-{i}")

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert store.saves == 1 + 100
    # The last snapshot is exactly the final in-memory state.
    assert store.last["tasks"][str(tid)]["body"] == service.show_task(tid).body


def test_reload_from_file_continues_ids(tmp_path: Path) -> None:
    path = tmp_path / "tasks.json"
    first = TaskService.from_store(TaskFileStore(path))
    ids = [first.create_task(1, f"t{i}").id for i in range(3)]
    first.delete_task(ids[-1])

    second = TaskService.from_store(TaskFileStore(path))
    assert sorted(t.id for t in second.list_all(1)) == ids[:2]
    assert second.create_task(1, "new").id > max(ids[:2])


def test_owner_scoped_operations_hide_other_owners_tasks(service: TaskService, store: FakeSnapshotStore) -> None:
    tid = service.create_task(1, "mine").id

    assert service.show_task(tid, owner_id=2) is None
    assert service.set_title(tid, "x", owner_id=2) is None
    assert service.set_body(tid, "x", owner_id=2) is None
    assert service.set_state(tid, "done", owner_id=2) is None
    assert service.set_due_date(tid, "2024-06-20", owner_id=2) is None
    assert service.delete_task(tid, owner_id=2) is False
    assert store.saves == 1

    assert service.set_title(tid, "renamed", owner_id=1).title == "renamed"
    assert service.show_task(tid, owner_id=1).title == "renamed"
    assert service.delete_task(tid, owner_id=1) is True


def test_failed_save_after_create_carries_the_new_id(service: TaskService, store: FakeSnapshotStore) -> None:
    service.create_task(1, "first")
    store.fail_next = 1

    with pytest.raises(PersistenceError) as exc_info:
        service.create_task(1, "second")

    assert exc_info.value.task_id == 1
    assert service.show_task(1).title == "second"
