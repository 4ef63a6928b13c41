"""Best-effort side channel announcing approval events to users."""

from __future__ import annotations

import logging
from typing import Any, Dict, Protocol

LOGGER = logging.getLogger(__name__)

APPROVAL_REQUESTED = "approval_requested"
APPROVAL_RESOLVED = "approval_resolved"


class Notifier(Protocol):
    async def notify(self, user_id: str, event: str, payload: Dict[str, Any]) -> None:
        ...


class LoggingNotifier:
    """Default notifier: records events in the application log."""

    async def notify(self, user_id: str, event: str, payload: Dict[str, Any]) -> None:
        LOGGER.info(f"Notify user {user_id}: {event} {payload}")


async def safe_notify(notifier: Notifier, user_id: str, event: str, payload: Dict[str, Any]) -> bool:
    """Deliver a notification; failures are logged and reported as False."""
    try:
        await notifier.notify(user_id, event, payload)
        return True
    except Exception as e:
        LOGGER.warning(f"Notification {event} for user {user_id} failed: {e}")
        return False
