# tests/test_commands.py

from __future__ import annotations

import asyncio

import pytest

from todo_companion.cli.commands import (
    SAVE_FAILED,
    CommandRegistry,
    format_task,
    owner_id_from_room,
    parse_due_date,
    parse_task_id,
    registry,
)
from todo_companion.tasks.errors import FatalPersistenceError
from todo_companion.tasks.task_models import Task, TaskState

from .fakes import FakeSnapshotStore

ROOM = "!abc:example.org"


def run(state, line: str, room_id: str | None = None) -> str:
    reply = registry.handle(state, line, user_id="@alice:example.org", room_id=room_id)
    assert reply is not None
    return reply


def test_command_registry_routes_to_handler_and_aliases(state) -> None:
    reg = CommandRegistry()
    seen: list[tuple[list[str], str | None, str | None]] = []

    def handler(state, args, user_id, room_id):
        seen.append((args, user_id, room_id))
        return "done"

    reg.register("a", handler, "a", aliases=["Alpha"])

    assert reg.handle(state, "/a x y", user_id="u", room_id="r") == "done"
    assert reg.handle(state, "/ALPHA", user_id="u") == "done"
    assert seen == [(["x", "y"], "u", "r"), ([], "u", None)]


def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert reg.handle(state, "hello") is None
    assert "Unknown command" in (reg.handle(state, "/nope") or "")
    assert "Empty command" in (reg.handle(state, "/") or "")


def test_help_lists_task_commands(state) -> None:
    text = run(state, "/help")
    for name in ("create", "setstate", "setdead", "edit", "editname", "delete", "show", "list", "listall", "agenda"):
        assert f"/{name} " in text


def test_task_lifecycle_through_commands(state) -> None:
    assert run(state, "/create Buy milk") == "Ok:) id : 0"
    assert run(state, "/setstate 0 doing") == "State changed"
    assert run(state, "/show 0") == format_task(
        Task(id=0, owner_id=42, title="Buy milk", state=TaskState.DOING)
    )

    assert "Buy milk" in run(state, "/list")
    run(state, "/setstate 0 Done")
    assert "Buy milk" not in run(state, "/list")
    assert "Buy milk" in run(state, "/listall")

    assert run(state, "/delete 0") == "Ok:)"
    assert run(state, "/listall") == "No tasks.\nOk:)"
    assert run(state, "/delete 0") == "Ok:)"


def test_unknown_ids(state) -> None:
    assert run(state, "/setstate 9 done") == "Unknown id"
    assert run(state, "/setdead 9 2024-06-01") == "Unknown id"
    assert run(state, "/edit 9 text") == "Unknown id"
    assert run(state, "/editname 9 name") == "Unknown id"
    assert run(state, "/show 9") == "Unknown id"


def test_invalid_input_never_reaches_the_repository(state, store: FakeSnapshotStore) -> None:
    run(state, "/create t")
    saves = store.saves

    assert run(state, "/setdead 0 2024-13-01") == "Invalid date format"
    assert run(state, "/setdead 0 15.06.2024") == "Invalid date format"
    assert run(state, "/setdead 0").startswith("Usage")
    assert run(state, "/setstate abc done") == "First argument should be a number!"
    assert run(state, "/delete -1") == "First argument should be a number!"
    assert run(state, "/show 99999999999999999999999") == "First argument should be a number!"
    assert run(state, "/create").startswith("Usage")
    assert run(state, "/editname 0").startswith("Usage")

    assert store.saves == saves
    assert state.tasks.show_task(0).due_date is None


def test_unrecognised_state_text_is_accepted(state) -> None:
    run(state, "/create t")
    run(state, "/setstate 0 doing")
    reply = run(state, "/setstate 0 someday")
    assert reply.startswith("State changed")
    assert state.tasks.show_task(0).state is TaskState.UNSET


def test_deadline_set_and_clear(state) -> None:
    run(state, "/create t")
    assert run(state, "/setdead 0 2024-06-20") == "State changed"
    assert "Deadline : 2024-06-20" in run(state, "/show 0")

    assert run(state, "/due 0 none") == "State changed"
    assert "Deadline : None" in run(state, "/show 0")


def test_edit_title_and_body_keep_spaces(state) -> None:
    run(state, "/create t")
    run(state, "/editname 0 Call the plumber")
    run(state, "/edit 0 before friday please")
    task = state.tasks.show_task(0)
    assert task.title == "Call the plumber"
    assert task.body == "before friday please"


def test_tasks_are_scoped_to_the_room(state) -> None:
    run(state, "/create room task", room_id=ROOM)
    run(state, "/create console task")

    room_list = run(state, "/listall", room_id=ROOM)
    assert "room task" in room_list
    assert "console task" not in room_list

    console_list = run(state, "/listall")
    assert "console task" in console_list
    assert "room task" not in console_list


def test_agenda_command(state) -> None:
    run(state, "/create alpha")
    run(state, "/create beta")
    run(state, "/setdead 0 2999-01-01")
    reply = run(state, "/agenda")
    assert "alpha" in reply
    assert "beta" not in reply


def test_save_failure_reply(state, store: FakeSnapshotStore) -> None:
    run(state, "/create t")
    store.fail_next = 1
    assert run(state, "/editname 0 renamed") == SAVE_FAILED
    assert state.tasks.show_task(0).title == "renamed"


def test_create_save_failure_still_reports_the_id(state, store: FakeSnapshotStore) -> None:
    run(state, "/create first")
    store.fail_next = 1

    reply = run(state, "/create second")

    assert reply == f"{SAVE_FAILED}\nid : 1"
    assert state.tasks.show_task(1).title == "second"


def test_id_commands_do_not_reach_other_conversations(state, store: FakeSnapshotStore) -> None:
    run(state, "/create private", room_id=ROOM)
    other = "!other:example.org"
    saves = store.saves

    assert run(state, "/show 0", room_id=other) == "Unknown id"
    assert run(state, "/edit 0 hijacked", room_id=other) == "Unknown id"
    assert run(state, "/editname 0 hijacked", room_id=other) == "Unknown id"
    assert run(state, "/setstate 0 done", room_id=other) == "Unknown id"
    assert run(state, "/setdead 0 2024-06-20", room_id=other) == "Unknown id"
    assert run(state, "/show 0") == "Unknown id"
    assert run(state, "/delete 0", room_id=other) == "Ok:)"

    task = state.tasks.show_task(0)
    assert task is not None
    assert (task.title, task.body, task.state, task.due_date) == ("private", "", TaskState.UNSET, None)
    assert store.saves == saves

    assert run(state, "/delete 0", room_id=ROOM) == "Ok:)"
    assert state.tasks.show_task(0) is None


def test_fatal_save_failure_propagates(state, store: FakeSnapshotStore) -> None:
    state.tasks._fatal_on_save_error = True
    store.fail_next = 1
    with pytest.raises(FatalPersistenceError):
        registry.handle(state, "/create t")


def test_format_task_block() -> None:
    task = Task(id=3, owner_id=1, title="Title", body="Body", state=TaskState.TODO, due_date="2024-06-20")
    assert format_task(task) == "Title\nState : ToDo\nDeadline : 2024-06-20\nBody\n\nid : 3"

    unset = Task(id=4, owner_id=1, title="T")
    assert format_task(unset) == "T\nState : \nDeadline : None\n\n\nid : 4"


def test_owner_id_from_room_is_stable_u64() -> None:
    a = owner_id_from_room(ROOM)
    assert a == owner_id_from_room(ROOM)
    assert 0 <= a < 2**64
    assert a != owner_id_from_room("!other:example.org")


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("0", 0), ("42", 42), ("-1", None), ("x", None), ("²", None), (str(2**64), None)],
)
def test_parse_task_id(raw: str, expected: int | None) -> None:
    assert parse_task_id(raw) == expected


def test_parse_due_date() -> None:
    assert parse_due_date("2024-02-29") is not None
    assert parse_due_date("2023-02-29") is None
    assert parse_due_date("20240615") is None


@pytest.mark.asyncio
async def test_commands_from_worker_threads_get_unique_ids(state) -> None:
    """The Matrix connector runs each command via asyncio.to_thread."""
    replies = await asyncio.gather(
        *(
            asyncio.to_thread(registry.handle, state, f"/create t{i}", "@bob:example.org", ROOM)
            for i in range(20)
        )
    )
    ids = sorted(int(r.rsplit(" ", 1)[1]) for r in replies)
    assert ids == list(range(20))
    assert len(state.tasks.list_all(owner_id_from_room(ROOM))) == 20
