# src/todo_companion/core/state.py

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from ..tasks.task_api import TaskService


@dataclass
class AppState:
    """
    Everything connectors and command handlers share.

    `tasks` does its own locking; connectors must not wrap it in another lock.
    `stop_event` is set when the app has to shut down (signal, /exit, fatal save error).
    `wake_main` is installed by the entrypoint when the main thread blocks on
    console input and has to be interrupted from another thread.
    """

    settings: Any
    tasks: TaskService

    stop_event: threading.Event = field(default_factory=threading.Event)
    wake_main: Callable[[], None] | None = None

    def request_stop(self) -> None:
        """Ask the whole app to stop. Safe to call from any thread."""
        self.stop_event.set()
        if self.wake_main is not None and threading.current_thread() is not threading.main_thread():
            self.wake_main()
