# src/todo_companion/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

U64_MAX = 2**64 - 1

_RECORD_FIELDS = ("id", "owner_id", "title", "body", "state", "due_date")
_LEGACY_FIELDS = {"chat_id": "owner_id", "header": "title", "text": "body", "deadline": "due_date"}


class TaskState(StrEnum):
    """
    Task lifecycle state.

    Notes:
    - UNSET is what a task starts with, and what unrecognised text maps to.
    - Values are the labels written to the snapshot file.
    """

    TODO = "ToDo"
    DOING = "Doing"
    DONE = "Done"
    UNSET = "Unset"

    @classmethod
    def from_text(cls, raw: str | None) -> TaskState:
        """Parse user text ("todo", " DOING ", ...). Anything else is UNSET, never an error."""
        text = (raw or "").strip().lower()
        for member in (cls.TODO, cls.DOING, cls.DONE):
            if text == member.value.lower():
                return member
        return cls.UNSET

    @classmethod
    def from_record(cls, raw: Any) -> TaskState:
        if not isinstance(raw, str):
            raise ValueError(f"state label must be a string, got {type(raw).__name__}")
        # Older snapshots wrote the unset state as "None".
        if raw == "None":
            return cls.UNSET
        try:
            return cls(raw)
        except ValueError:
            raise ValueError(f"unknown state label: {raw!r}") from None

    @property
    def label(self) -> str:
        return "" if self is TaskState.UNSET else self.value


def _require_u64(record: dict[str, Any], key: str) -> int:
    val = record.get(key)
    # bool is an int subclass; reject it explicitly.
    if isinstance(val, bool) or not isinstance(val, int) or not 0 <= val <= U64_MAX:
        raise ValueError(f"{key} must be an unsigned 64-bit integer, got {val!r}")
    return val


def _require_str(record: dict[str, Any], key: str) -> str:
    val = record[key]
    if not isinstance(val, str):
        raise ValueError(f"{key} must be a string, got {type(val).__name__}")
    return val


@dataclass(slots=True)
class Task:
    id: int
    owner_id: int

    title: str = ""
    body: str = ""
    state: TaskState = TaskState.UNSET
    due_date: str | None = None  # ISO YYYY-MM-DD

    def set_title(self, title: str) -> None:
        self.title = title

    def set_body(self, body: str) -> None:
        self.body = body

    def set_state(self, state: TaskState) -> None:
        self.state = state

    def set_state_from_text(self, text: str) -> None:
        self.state = TaskState.from_text(text)

    def set_due_date(self, due_date: str | None) -> None:
        self.due_date = due_date

    def is_done(self) -> bool:
        return self.state is TaskState.DONE

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "title": self.title,
            "body": self.body,
            "state": self.state.value,
            "due_date": self.due_date,
        }

    @classmethod
    def from_record(cls, record: Any) -> Task:
        """
        Build a Task from a snapshot record.

        Accepts the current field names and the legacy ones
        (header/chat_id/text/deadline). Every field must be present;
        raises ValueError on anything else.
        """
        if not isinstance(record, dict):
            raise ValueError(f"task record must be an object, got {type(record).__name__}")

        if "owner_id" not in record and "chat_id" in record:
            record = {_LEGACY_FIELDS.get(k, k): v for k, v in record.items()}

        missing = [k for k in _RECORD_FIELDS if k not in record]
        if missing:
            raise ValueError(f"task record is missing {', '.join(missing)}")

        due_date = record["due_date"]
        if due_date is not None and not isinstance(due_date, str):
            raise ValueError(f"due_date must be a string or null, got {type(due_date).__name__}")

        return cls(
            id=_require_u64(record, "id"),
            owner_id=_require_u64(record, "owner_id"),
            title=_require_str(record, "title"),
            body=_require_str(record, "body"),
            state=TaskState.from_record(record["state"]),
            due_date=due_date,
        )
