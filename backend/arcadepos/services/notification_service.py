# Overview: Fire-and-forget lock/unlock signals to physical PCs.

from __future__ import annotations

from typing import Callable

from flask import current_app

EVENT_PC_LOCK = "pc.lock"
EVENT_PC_UNLOCK = "pc.unlock"

EXTENSION_KEY = "pc_notifier"


def register_notifier(app, sender: Callable[[str, dict], None]) -> None:
    """
    Install the transport that delivers lock/unlock events to PCs.

    sender(event, payload) is called after the state change has been
    committed. Without a sender the events are only logged.
    """
    app.extensions[EXTENSION_KEY] = sender


def _dispatch(event: str, pc_id: int, **payload) -> bool:
    payload = {"pc_id": pc_id, **payload}
    sender = current_app.extensions.get(EXTENSION_KEY)
    if sender is None:
        current_app.logger.info("PC notification %s (no transport): %s", event, payload)
        return False
    try:
        sender(event, payload)
    except Exception:
        # Delivery failure never rolls back the session transition
        current_app.logger.exception("Failed to deliver %s to PC %s", event, pc_id)
        return False
    return True


def notify_lock(pc_id: int, **payload) -> bool:
    return _dispatch(EVENT_PC_LOCK, pc_id, **payload)


def notify_unlock(pc_id: int, **payload) -> bool:
    return _dispatch(EVENT_PC_UNLOCK, pc_id, **payload)
