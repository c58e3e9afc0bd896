"""Edge auto-scroll while a task is being dragged."""

import asyncio
import contextlib
import logging
from collections.abc import Callable

from paintcal.core.config import settings


logger = logging.getLogger(__name__)


class AutoScroller:
    """Scrolls a container toward the viewport edge the pointer is near.

    Every pointer move restarts the timer, so at most one ticker runs at a
    time. ``stop()`` must be called on drop, drag end and teardown.
    """

    def __init__(
        self,
        scroll_by: Callable[[int], None],
        *,
        threshold_px: int | None = None,
        step_px: int | None = None,
        tick_ms: int | None = None,
    ) -> None:
        self._scroll_by = scroll_by
        self.threshold_px = threshold_px if threshold_px is not None else settings.autoscroll_threshold_px
        self.step_px = step_px if step_px is not None else settings.autoscroll_step_px
        self.tick_ms = tick_ms if tick_ms is not None else settings.autoscroll_tick_ms
        self._ticker: asyncio.Task | None = None
        self.direction = 0

    @property
    def active(self) -> bool:
        """True while a ticker is scrolling."""
        return self._ticker is not None and not self._ticker.done()

    def pointer_moved(self, pointer_y: float, viewport_height: float) -> None:
        """React to a drag-over event at ``pointer_y`` (viewport coordinates)."""
        self.stop()

        if pointer_y > viewport_height - self.threshold_px:
            self._start(self.step_px)
        elif pointer_y < self.threshold_px:
            self._start(-self.step_px)

    def _start(self, step: int) -> None:
        self.direction = 1 if step > 0 else -1
        logger.debug("Auto-scroll started", extra={"step_px": step})
        self._ticker = asyncio.get_running_loop().create_task(self._tick(step), name="autoscroll")

    async def _tick(self, step: int) -> None:
        interval = self.tick_ms / 1000
        while True:
            await asyncio.sleep(interval)
            try:
                self._scroll_by(step)
            except Exception as e:
                logger.warning("autoscroll_failed", extra={"step_px": step, "error": str(e)})
                self.direction = 0
                return

    def stop(self) -> None:
        """Cancel the ticker if one is running."""
        self.direction = 0
        ticker, self._ticker = self._ticker, None
        if ticker is not None and not ticker.done():
            ticker.cancel()

    async def aclose(self) -> None:
        """Stop and wait for the ticker to finish unwinding."""
        ticker = self._ticker
        self.stop()
        if ticker is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await ticker
