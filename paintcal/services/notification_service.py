"""Transient notifications (toasts) raised by dashboard and calendar actions."""

import asyncio
import itertools
import logging
from collections.abc import Callable
from enum import StrEnum

from pydantic import BaseModel, Field

from paintcal.core.config import settings
from paintcal.core.errors import ErrorResponse


logger = logging.getLogger(__name__)


class ToastKind(StrEnum):
    """Visual kind of a toast."""

    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


class Toast(BaseModel):
    """A short-lived, dismissible message."""

    id: int = Field(..., description="Monotonic toast ID")
    message: str = Field(..., description="Text shown to the user")
    kind: ToastKind = Field(default=ToastKind.SUCCESS, description="Visual kind")
    duration_ms: int | None = Field(default=None, description="Auto-dismiss delay; None keeps it until dismissed")


ToastListener = Callable[[list[Toast]], None]


class Notifier:
    """Holds the visible toasts and expires them after their duration."""

    def __init__(self, *, duration_ms: int | None = None) -> None:
        self.duration_ms = duration_ms if duration_ms is not None else settings.toast_duration_ms
        self._toasts: dict[int, Toast] = {}
        self._timers: dict[int, asyncio.TimerHandle] = {}
        self._ids = itertools.count(1)
        self._listeners: list[ToastListener] = []
        self.history: list[Toast] = []

    @property
    def toasts(self) -> list[Toast]:
        """Toasts currently visible, oldest first."""
        return list(self._toasts.values())

    def add_listener(self, listener: ToastListener) -> Callable[[], None]:
        """Call ``listener`` with the visible toasts whenever they change."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None

    def notify(self, message: str, kind: ToastKind = ToastKind.SUCCESS, *, duration_ms: int | None = None) -> Toast:
        """Show a toast; it expires on its own when an event loop is running."""
        duration = duration_ms if duration_ms is not None else self.duration_ms
        toast = Toast(id=next(self._ids), message=message, kind=kind, duration_ms=duration or None)
        self._toasts[toast.id] = toast
        self.history.append(toast)

        if toast.duration_ms:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None
            if loop is not None:
                self._timers[toast.id] = loop.call_later(toast.duration_ms / 1000, self.dismiss, toast.id)

        logger.info("Toast shown", extra={"toast_kind": str(kind), "toast_message": message})
        self._emit()
        return toast

    def success(self, message: str) -> Toast:
        return self.notify(message, ToastKind.SUCCESS)

    def error(self, message: str) -> Toast:
        return self.notify(message, ToastKind.ERROR)

    def info(self, message: str) -> Toast:
        return self.notify(message, ToastKind.INFO)

    def error_from(self, response: ErrorResponse) -> Toast:
        """Error toast for a classified failure."""
        return self.error(response.message)

    def dismiss(self, toast_id: int) -> None:
        """Remove a toast; unknown ids are ignored."""
        timer = self._timers.pop(toast_id, None)
        if timer is not None:
            timer.cancel()
        if self._toasts.pop(toast_id, None) is not None:
            self._emit()

    def clear(self) -> None:
        """Dismiss every toast and cancel pending expiries."""
        for toast_id in list(self._toasts):
            self.dismiss(toast_id)

    def _emit(self) -> None:
        current = self.toasts
        for listener in list(self._listeners):
            listener(current)
