# src/todo_companion/connectors/matrix_connector.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
import time
from dataclasses import dataclass

from nio import AsyncClient, MatrixRoom, RoomMessageText

from ..cli.commands import registry as command_registry
from ..core.state import AppState
from ..tasks.errors import FatalPersistenceError
from .matrix_client import create_matrix_client

logger = logging.getLogger(__name__)

SYNC_TIMEOUT_MS = 30000


def _ms_now() -> int:
    return int(time.time() * 1000)


def room_allowlist(settings_rooms: list[str]) -> set[str] | None:
    rooms = [r.strip() for r in (settings_rooms or []) if str(r).strip()]
    return set(rooms) if rooms else None


async def _send_text(client: AsyncClient, *, room_id: str, text: str) -> None:
    await client.room_send(
        room_id=room_id,
        message_type="m.room.message",
        content={"msgtype": "m.text", "body": text},
    )


async def _run_matrix_bot(state: AppState, stop_event: asyncio.Event) -> None:
    """
    Matrix connector (async):

    login/restore -> callbacks -> sync loop

    Each command runs in a worker thread (asyncio.to_thread), so several rooms can
    be served at once; the task service serialises access to the repository.

    Shutdown model:
    - main thread sets stop_event via loop.call_soon_threadsafe(stop_event.set)
    - a fatal save error sets it from inside the callback
    """
    settings = state.settings

    startup_ts = _ms_now()
    allowed_rooms = room_allowlist(getattr(settings, "matrix_rooms", []) or [])
    logger.info("Matrix allowed_rooms=%s", allowed_rooms if allowed_rooms is not None else "ALL")

    client = await create_matrix_client(settings)
    if client is None:
        logger.error("Matrix client creation failed; connector will stop.")
        return

    async def message_callback(room: MatrixRoom, event: RoomMessageText) -> None:
        # Ignore history delivered by the first sync.
        ts = getattr(event, "server_timestamp", None)
        if ts is not None and ts <= startup_ts:
            return

        if event.sender == client.user_id:
            return

        if allowed_rooms is not None and room.room_id not in allowed_rooms:
            return

        body = (event.body or "").strip()
        if not body.startswith("/"):
            return

        logger.info("Matrix <%s> %s: %r", room.display_name, event.sender, body)

        try:
            resp = await asyncio.to_thread(
                command_registry.handle, state, body, event.sender, room.room_id
            )
        except FatalPersistenceError:
            logger.critical("Task snapshot could not be saved; stopping (save errors are fatal).")
            resp = "Could not save tasks to disk. The bot is shutting down."
            state.request_stop()
            stop_event.set()
        except Exception:
            logger.exception("Command handler crashed.")
            resp = "Internal error while handling a command."

        if resp:
            try:
                await _send_text(client, room_id=room.room_id, text=resp)
            except Exception:
                logger.exception("Failed to send command reply to %s.", room.room_id)

    client.add_event_callback(message_callback, RoomMessageText)

    try:
        logger.info("Matrix initial sync...")
        await client.sync(timeout=SYNC_TIMEOUT_MS, full_state=True)
        logger.info("Matrix initial sync done. Joined rooms: %d", len(client.rooms))

        while not stop_event.is_set():
            sync = asyncio.create_task(client.sync(timeout=SYNC_TIMEOUT_MS, full_state=False))
            stopper = asyncio.create_task(stop_event.wait())
            done, _ = await asyncio.wait({sync, stopper}, return_when=asyncio.FIRST_COMPLETED)
            for pending in (sync, stopper):
                if pending not in done:
                    pending.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await pending
            if sync in done:
                sync.result()

    except asyncio.CancelledError:
        logger.info("Matrix connector cancelled.")
    except Exception:
        logger.exception("Matrix connector crashed.")
    finally:
        with contextlib.suppress(Exception):
            await client.close()
        logger.info("Matrix connector stopped.")


@dataclass
class MatrixBackgroundRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except RuntimeError:
            # Loop already closed.
            logger.debug("Matrix loop already closed.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_matrix_in_background(state: AppState) -> MatrixBackgroundRunner | None:
    """
    Start Matrix connector in a background thread (so console REPL can run in parallel).

    The console REPL blocks on input(); the Matrix connector wants its own event loop.
    """
    if not getattr(state.settings, "matrix_enabled", False):
        logger.info("Matrix connector disabled, not starting.")
        return None

    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        ready.set()

        try:
            loop.run_until_complete(_run_matrix_bot(state, stop_event))
        finally:
            loop.close()

    t = threading.Thread(target=runner, name="matrix-connector", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        logger.error("Matrix thread did not initialize properly.")
        return None

    logger.info("Matrix background thread started.")
    return MatrixBackgroundRunner(thread=t, loop=loop, stop_event=stop_event)
