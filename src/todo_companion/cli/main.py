# src/todo_companion/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then starts connectors:
- console REPL in the main thread (optional),
- Matrix connector in a background thread (optional).
"""

from __future__ import annotations

import _thread
import logging
import signal
import sys
import threading
from typing import TYPE_CHECKING

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.state import AppState
from ..logging_setup import setup_logging
from ..tasks.errors import CorruptStateError, PersistenceError

logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from ..connectors.matrix_connector import MatrixBackgroundRunner


def _interrupt_main_thread() -> None:
    """Deliver SIGTERM to the main thread so a blocking input() returns."""
    if hasattr(signal, "pthread_kill"):
        signal.pthread_kill(threading.main_thread().ident, signal.SIGTERM)
    else:
        _thread.interrupt_main(signal.SIGTERM)


def _shutdown(state: AppState) -> None:
    """Final save. A failure here is logged, the process is exiting anyway."""
    try:
        state.tasks.flush()
    except PersistenceError:
        logger.exception("Final task snapshot save failed.")


def main() -> int:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    # keep noisy libs readable
    logging.getLogger("nio").setLevel(max(console_level, logging.INFO))
    logging.getLogger("aiohttp").setLevel(logging.WARNING)

    logger.info("Starting %s...", settings.app_name)

    try:
        state = create_initial_state(settings=settings)
    except CorruptStateError:
        logger.critical(
            "Task snapshot %s is corrupt and TODO_CORRUPT_STATE_POLICY=fail; not starting.",
            settings.tasks_path,
        )
        return 2

    matrix_runner: MatrixBackgroundRunner | None = None
    if settings.matrix_enabled:
        from ..connectors.matrix_connector import start_matrix_in_background

        matrix_runner = start_matrix_in_background(state)

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        state.stop_event.set()
        if settings.console_enabled:
            # input() is retried after a handled signal unless the handler raises.
            raise KeyboardInterrupt

    signal.signal(signal.SIGTERM, _handle_signal)
    # With the console on, Ctrl+C is handled by the REPL itself.
    if settings.console_enabled:
        state.wake_main = _interrupt_main_thread
    else:
        signal.signal(signal.SIGINT, _handle_signal)

    try:
        if settings.console_enabled:
            run_console_loop(state)
        else:
            logger.info("Console disabled. Running background connectors only. Press Ctrl+C to stop.")
            state.stop_event.wait()
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down...")
    finally:
        if matrix_runner is not None:
            matrix_runner.stop()
            matrix_runner.join(timeout=10.0)

        _shutdown(state)
        logger.info("Bye.")

    return 0


if __name__ == "__main__":
    sys.exit(main())
