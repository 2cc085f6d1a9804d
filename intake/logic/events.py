"""Domain event constants and publisher.

Defines event type constants and a simple publish() callable used by the
synchronizer on create, update and lock conflict.
"""

from __future__ import annotations

from typing import Any, Dict, List
import logging

logger = logging.getLogger(__name__)

TECHNOLOGY_CREATED = "technology.created"
TECHNOLOGY_UPDATED = "technology.updated"
STAGE_WRITTEN = "stage.written"
LOCK_CONFLICT = "sync.lock_conflict"


def publish(event_type: str, payload: Dict[str, Any]) -> None:
    """Publish a domain event.

    Events are logged for observability and buffered for test observation.
    """
    logger.info("event_publish type=%s payload=%s", event_type, payload)
    EVENT_BUFFER.append({"type": event_type, "payload": payload})


# In-memory buffer for domain events (test-only visibility)
EVENT_BUFFER: List[Dict[str, Any]] = []


def get_buffered_events(clear: bool = True) -> List[Dict[str, Any]]:
    """Return buffered domain events; optionally clear the buffer."""
    events = list(EVENT_BUFFER)
    if clear:
        EVENT_BUFFER.clear()
    return events


__all__ = [
    "TECHNOLOGY_CREATED",
    "TECHNOLOGY_UPDATED",
    "STAGE_WRITTEN",
    "LOCK_CONFLICT",
    "publish",
    "get_buffered_events",
    "EVENT_BUFFER",
]
