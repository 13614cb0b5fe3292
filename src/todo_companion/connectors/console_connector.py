# src/todo_companion/connectors/console_connector.py

from __future__ import annotations

import logging
import sys
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState
from ..tasks.errors import FatalPersistenceError

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    Best-effort: if not a TTY, just print a new line.
    """
    if sys.stdout.isatty():
        sys.stdout.write("\033[1A\033[2K\r")
        sys.stdout.write(line + "\n")
        sys.stdout.flush()
    else:
        print(line)


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


def run_console_loop(state: AppState) -> None:
    """
    Blocking REPL: every line starting with "/" is a task command for the console owner.
    Returns on EOF, Ctrl+C, /exit, or once state.stop_event is set.
    """
    owner = getattr(state.settings, "console_owner_id", 0)
    logger.info("Console connector started (owner_id=%s).", owner)
    _print_ts("[CONSOLE] Type /help for commands. Use /exit to quit.\n")

    while not state.stop_event.is_set():
        try:
            user_input = input(">>> You: ").strip()
            _rewrite_prev_line(f"[{_ts_local()}] >>> You: {user_input}")
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        try:
            cmd_response = command_registry.handle(state, user_input)
        except FatalPersistenceError:
            logger.critical("Task snapshot could not be saved; stopping (save errors are fatal).")
            _print_ts("Could not save tasks to disk. Shutting down.")
            state.stop_event.set()
            break
        except Exception:
            logger.exception("Command handler crashed.")
            cmd_response = "Internal error while handling a command."

        if cmd_response is None:
            cmd_response = "Only commands are understood here. Use /help to list them."

        _print_ts(cmd_response)

    logger.info("Console connector finished.")
