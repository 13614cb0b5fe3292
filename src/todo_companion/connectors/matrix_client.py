# src/todo_companion/connectors/matrix_client.py

from __future__ import annotations

import contextlib
import json
import logging
import os
from pathlib import Path
from typing import Any

from nio import AsyncClient, AsyncClientConfig, LoginResponse

logger = logging.getLogger(__name__)

SESSION_FILE_NAME = "session.json"


def load_session(path: Path) -> dict[str, str] | None:
    """
    Read a saved Matrix session (access_token, user_id, device_id).
    Returns None if the file is missing or incomplete.
    """
    if not path.exists():
        return None
    try:
        data: Any = json.loads(path.read_text("utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("Cannot read Matrix session %s: %r", path, e)
        return None

    if not isinstance(data, dict):
        logger.warning("Matrix session %s is not a JSON object; ignoring it", path)
        return None

    keys = ("access_token", "user_id", "device_id")
    if not all(isinstance(data.get(k), str) and data.get(k) for k in keys):
        logger.warning("Matrix session %s is missing required fields; ignoring it", path)
        return None
    return {k: data[k] for k in keys}


def save_session(path: Path, session: dict[str, str]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".tmp")
    tmp.write_text(json.dumps(session, ensure_ascii=False), "utf-8")
    os.replace(tmp, path)
    with contextlib.suppress(OSError):
        # The access token is a secret.
        os.chmod(path, 0o600)


async def create_matrix_client(settings) -> AsyncClient | None:
    """
    Create a logged-in Matrix AsyncClient.

    The access token is kept in <matrix_store_path>/session.json so restarts do not
    log in again (and do not create a new device every time). The password is only
    needed once, to bootstrap that file.
    """
    homeserver = (getattr(settings, "matrix_homeserver", "") or "").strip()
    user_id = (getattr(settings, "matrix_user_id", "") or "").strip()
    password = (getattr(settings, "matrix_password", "") or "").strip()
    store_dir = Path(getattr(settings, "matrix_store_path", Path(".local/todo/matrix_store")))

    if not homeserver or not user_id:
        logger.error("Matrix is not configured: set TODO_MATRIX_HOMESERVER and TODO_MATRIX_USER_ID")
        return None

    session_file = store_dir / SESSION_FILE_NAME
    client = AsyncClient(
        homeserver,
        user_id,
        config=AsyncClientConfig(encryption_enabled=False, store_sync_tokens=False),
    )

    session = load_session(session_file)
    if session is not None:
        client.access_token = session["access_token"]
        client.user_id = session["user_id"]
        client.device_id = session["device_id"]
        logger.info("Matrix session restored for %s", client.user_id)
        return client

    if not password:
        logger.error(
            "Matrix session.json not found and password is not set. "
            "Set TODO_MATRIX_PASSWORD once to bootstrap a session."
        )
        await client.close()
        return None

    device_name = f"{getattr(settings, 'app_name', 'todo')} (Python)"
    logger.info("Logging in to Matrix to bootstrap a new session (device_name=%r)...", device_name)

    resp = await client.login(password=password, device_name=device_name)
    if not isinstance(resp, LoginResponse):
        logger.error("Matrix login failed: %r", resp)
        await client.close()
        return None

    try:
        save_session(
            session_file,
            {"access_token": resp.access_token, "user_id": resp.user_id, "device_id": resp.device_id},
        )
        logger.info("Matrix session saved to %s (user=%s)", session_file, resp.user_id)
    except OSError as e:
        # We are logged in; the next start will just log in again.
        logger.error("Failed to write Matrix session %s: %r", session_file, e)

    return client
