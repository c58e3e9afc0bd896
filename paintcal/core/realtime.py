"""In-process change feed for document store collections.

Every successful write in db_client publishes a ChangeEvent here. Live queries
register a listener per collection and re-run their query when notified.
"""

import logging
import threading
from collections.abc import Callable
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)


class ChangeAction(StrEnum):
    """Kind of write that happened to a record."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class ChangeEvent(BaseModel):
    """A single committed write."""

    collection: str = Field(..., description="Collection the record belongs to")
    action: ChangeAction = Field(..., description="Kind of write")
    record_id: str = Field(..., description="ID of the written record")


ChangeListener = Callable[[ChangeEvent], None]


class ChangeFeed:
    """Fan-out of change events to per-collection listeners.

    Listeners are called synchronously from publish() and must not block;
    live queries only flag themselves dirty and re-query on their own task.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[ChangeListener]] = {}
        self._lock = threading.Lock()

    def listen(self, collection: str, listener: ChangeListener) -> Callable[[], None]:
        """Register a listener and return a callable that removes it."""
        with self._lock:
            self._listeners.setdefault(collection, []).append(listener)

        def _unlisten() -> None:
            with self._lock:
                listeners = self._listeners.get(collection, [])
                if listener in listeners:
                    listeners.remove(listener)

        return _unlisten

    def publish(self, event: ChangeEvent) -> None:
        """Notify every listener of the event's collection."""
        with self._lock:
            listeners = list(self._listeners.get(event.collection, []))

        for listener in listeners:
            try:
                listener(event)
            except Exception as e:
                logger.warning(
                    "change_listener_failed",
                    extra={"collection": event.collection, "record_id": event.record_id, "error": str(e)},
                )

    def listener_count(self, collection: str | None = None) -> int:
        """Number of registered listeners, optionally for a single collection."""
        with self._lock:
            if collection is not None:
                return len(self._listeners.get(collection, []))
            return sum(len(v) for v in self._listeners.values())

    def get_health_status(self) -> dict[str, Any]:
        """Listener counts per collection."""
        with self._lock:
            return {name: len(listeners) for name, listeners in self._listeners.items() if listeners}


# Global change feed instance
changefeed = ChangeFeed()
