# src/todo_companion/cli/commands.py

from __future__ import annotations

import hashlib
import logging
import re
from collections.abc import Callable
from datetime import date

from ..core.state import AppState
from ..tasks.errors import FatalPersistenceError, PersistenceError
from ..tasks.task_models import Task, TaskState

CommandHandler = Callable[[AppState, list[str], str | None, str | None], str]

logger = logging.getLogger(__name__)

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_CLEAR_DATE_WORDS = {"none", "-", "clear"}

OK = "Ok:)"
UNKNOWN_ID = "Unknown id"
STATE_CHANGED = "State changed"
SAVE_FAILED = "Change applied, but saving to disk failed. It may be lost on restart."


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /create, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        user_id: str | None = None,
        room_id: str | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.

        FatalPersistenceError is not caught here; connectors shut down on it.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            return handler(state, args, user_id, room_id)
        except FatalPersistenceError:
            raise
        except PersistenceError as e:
            logger.exception("Command /%s: task snapshot save failed.", name)
            if e.task_id is not None:
                return f"{SAVE_FAILED}\nid : {e.task_id}"
            return SAVE_FAILED

    def build_help(self) -> str:
        lines = ["These commands are supported:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- helpers ----


def owner_id_from_room(room_id: str) -> int:
    """Stable unsigned 64-bit owner id for a chat room id."""
    digest = hashlib.blake2b(room_id.encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big")


def resolve_owner_id(state: AppState, user_id: str | None, room_id: str | None) -> int:
    """
    Tasks belong to the conversation: the room if there is one,
    otherwise the configured console owner. Commands that take an id
    treat another owner's task as unknown.
    """
    if room_id:
        return owner_id_from_room(room_id)
    return int(getattr(state.settings, "console_owner_id", 0))


def parse_task_id(raw: str) -> int | None:
    if not (raw.isascii() and raw.isdigit()):
        return None
    value = int(raw)
    return value if value < 2**64 else None


def parse_due_date(raw: str) -> date | None:
    """Strict YYYY-MM-DD. Returns None for anything else."""
    if not _ISO_DATE.match(raw):
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        return None


def format_task(task: Task) -> str:
    """Human-readable block for one task."""
    return (
        f"{task.title}\n"
        f"State : {task.state.label}\n"
        f"Deadline : {task.due_date or 'None'}\n"
        f"{task.body}\n"
        f"\n"
        f"id : {task.id}"
    )


def format_task_list(tasks: list[Task]) -> str:
    if not tasks:
        return f"No tasks.\n{OK}"
    blocks = [format_task(t) for t in tasks]
    blocks.append(OK)
    return "\n\n".join(blocks)


def _id_and_text(args: list[str], usage: str) -> tuple[int, str] | str:
    """Split "<id> <text...>". Returns (id, text) or a usage/error string."""
    if not args:
        return usage
    task_id = parse_task_id(args[0])
    if task_id is None:
        return "First argument should be a number!"
    return task_id, " ".join(args[1:])


# ---- command handlers ----


def cmd_help(state: AppState, args: list[str], user_id: str | None, room_id: str | None) -> str:
    return registry.build_help()


def cmd_create(state: AppState, args: list[str], user_id: str | None, room_id: str | None) -> str:
    title = " ".join(args).strip()
    if not title:
        return "Usage: /create <title>"
    task = state.tasks.create_task(resolve_owner_id(state, user_id, room_id), title)
    return f"{OK} id : {task.id}"


def cmd_set_state(state: AppState, args: list[str], user_id: str | None, room_id: str | None) -> str:
    """
    /setstate <id> <ToDo | Doing | Done>

    Unrecognised state text is accepted and leaves the task without a state.
    """
    parsed = _id_and_text(args, "Usage: /setstate <id> <ToDo | Doing | Done>")
    if isinstance(parsed, str):
        return parsed
    task_id, text = parsed
    owner = resolve_owner_id(state, user_id, room_id)
    task = state.tasks.set_state(task_id, text, owner_id=owner)
    if task is None:
        return UNKNOWN_ID
    if task.state is TaskState.UNSET and text.strip():
        return f"{STATE_CHANGED} (unrecognised state {text.strip()!r}, task has no state now)"
    return STATE_CHANGED


def cmd_set_deadline(state: AppState, args: list[str], user_id: str | None, room_id: str | None) -> str:
    """
    /setdead <id> <yyyy-mm-dd>   -> set deadline
    /setdead <id> none           -> clear deadline
    """
    if len(args) != 2:
        return "Usage: /setdead <id> <yyyy-mm-dd>"
    task_id = parse_task_id(args[0])
    if task_id is None:
        return "First argument should be a number!"

    raw = args[1].strip()
    due: date | None
    if raw.lower() in _CLEAR_DATE_WORDS:
        due = None
    else:
        due = parse_due_date(raw)
        if due is None:
            return "Invalid date format"

    owner = resolve_owner_id(state, user_id, room_id)
    task = state.tasks.set_due_date(task_id, due, owner_id=owner)
    return STATE_CHANGED if task is not None else UNKNOWN_ID


def cmd_edit_body(state: AppState, args: list[str], user_id: str | None, room_id: str | None) -> str:
    parsed = _id_and_text(args, "Usage: /edit <id> <text>")
    if isinstance(parsed, str):
        return parsed
    task_id, text = parsed
    owner = resolve_owner_id(state, user_id, room_id)
    task = state.tasks.set_body(task_id, text, owner_id=owner)
    return STATE_CHANGED if task is not None else UNKNOWN_ID


def cmd_edit_title(state: AppState, args: list[str], user_id: str | None, room_id: str | None) -> str:
    parsed = _id_and_text(args, "Usage: /editname <id> <name>")
    if isinstance(parsed, str):
        return parsed
    task_id, title = parsed
    if not title.strip():
        return "Usage: /editname <id> <name>"
    owner = resolve_owner_id(state, user_id, room_id)
    task = state.tasks.set_title(task_id, title, owner_id=owner)
    return STATE_CHANGED if task is not None else UNKNOWN_ID


def cmd_delete(state: AppState, args: list[str], user_id: str | None, room_id: str | None) -> str:
    if len(args) != 1:
        return "Usage: /delete <id>"
    task_id = parse_task_id(args[0])
    if task_id is None:
        return "First argument should be a number!"
    owner = resolve_owner_id(state, user_id, room_id)
    state.tasks.delete_task(task_id, owner_id=owner)
    return OK


def cmd_show(state: AppState, args: list[str], user_id: str | None, room_id: str | None) -> str:
    if len(args) != 1:
        return "Usage: /show <id>"
    task_id = parse_task_id(args[0])
    if task_id is None:
        return "First argument should be a number!"
    owner = resolve_owner_id(state, user_id, room_id)
    task = state.tasks.show_task(task_id, owner_id=owner)
    return format_task(task) if task is not None else UNKNOWN_ID


def cmd_list(state: AppState, args: list[str], user_id: str | None, room_id: str | None) -> str:
    return format_task_list(state.tasks.list_active(resolve_owner_id(state, user_id, room_id)))


def cmd_list_all(state: AppState, args: list[str], user_id: str | None, room_id: str | None) -> str:
    return format_task_list(state.tasks.list_all(resolve_owner_id(state, user_id, room_id)))


def cmd_agenda(state: AppState, args: list[str], user_id: str | None, room_id: str | None) -> str:
    return format_task_list(state.tasks.agenda(resolve_owner_id(state, user_id, room_id)))


def cmd_status(state: AppState, args: list[str], user_id: str | None, room_id: str | None) -> str:
    tasks_path = getattr(state.settings, "tasks_path", "?")
    return (
        "Status:\n"
        f"  Tasks stored: {state.tasks.count()}\n"
        f"  Snapshot file: {tasks_path}\n"
        f"  Agenda: {state.tasks.agenda_window.value}, {state.tasks.agenda_days} days\n"
        f"  This conversation: owner {resolve_owner_id(state, user_id, room_id)}"
    )


registry.register("help", cmd_help, help_text="display this text.", aliases=["h", "?"])
registry.register("create", cmd_create, help_text="<name> - create task with <name>.")
registry.register(
    "setstate", cmd_set_state, help_text="<id> <ToDo | Doing | Done> - set task with <id> to state."
)
registry.register(
    "setdead",
    cmd_set_deadline,
    help_text="<id> <yyyy-mm-dd | none> - set (or clear) deadline of task with <id>.",
    aliases=["due"],
)
registry.register("edit", cmd_edit_body, help_text="<id> <text> - set task with <id> text to <text>.")
registry.register("editname", cmd_edit_title, help_text="<id> <name> - set task with <id> name to <name>.")
registry.register("delete", cmd_delete, help_text="<id> - delete task with <id>.")
registry.register("show", cmd_show, help_text="<id> - show task with <id>.")
registry.register("list", cmd_list, help_text="list tasks that are not Done.")
registry.register("listall", cmd_list_all, help_text="list all tasks.")
registry.register("agenda", cmd_agenda, help_text="list dated tasks that are due soon or recently overdue.")
registry.register("status", cmd_status, help_text="show store and agenda settings.")
