"""Calendar scheduling engine.

Holds the state of one calendar instance (viewed month, dragged task,
selected task), builds the month view from the latest task and no-work day
snapshots, and implements drag-and-drop rescheduling:

1. A drag may start only for users who can drag, outside read-only and
   all-tasks views.
2. Hovering a blocked date rejects the drop target.
3. Dropping on an open date sets ``due_date``; ``start_date`` is set too
   only when the task has none, so an existing start never moves.
4. Every drop outcome resets the drag and is reported as a toast, never
   raised to the caller.
5. Edge auto-scroll runs while dragging and stops on every exit path.
"""

import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum
from typing import Any

from paintcal.core.config import settings
from paintcal.core.errors import classify_error_with_response
from paintcal.core.logging import span
from paintcal.domain.no_work_day import NoWorkDay
from paintcal.domain.task import Task, TaskStatus
from paintcal.domain.update_models import TaskUpdate
from paintcal.scheduling import calendar_utils
from paintcal.scheduling.autoscroll import AutoScroller
from paintcal.scheduling.calendar_utils import CalendarDay, SpanPosition
from paintcal.services import no_work_day_service
from paintcal.services.notification_service import Notifier


logger = logging.getLogger(__name__)

TaskUpdater = Callable[[str, TaskUpdate], Awaitable[Any]]

CORNER_STYLES: dict[SpanPosition, str] = {
    SpanPosition.SINGLE: "rounded",
    SpanPosition.START: "rounded-l",
    SpanPosition.MIDDLE: "rounded-none",
    SpanPosition.END: "rounded-r",
}


class DropOutcome(StrEnum):
    """How a drop ended."""

    SCHEDULED = "scheduled"
    BLOCKED = "blocked"
    FAILED = "failed"
    IGNORED = "ignored"


@dataclass(frozen=True)
class DropResult:
    """Result of a drop; the task itself changes only via the next snapshot."""

    outcome: DropOutcome
    day: date
    task_id: str | None = None
    reason: str | None = None
    updates: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TaskPlacement:
    """A task drawn inside one calendar cell."""

    task: Task
    position: SpanPosition
    show_label: bool
    corner_style: str
    color: str
    icon: str
    is_selected: bool
    is_dragged: bool


@dataclass(frozen=True)
class CalendarCell:
    """One day of the month view."""

    day: CalendarDay
    is_today: bool
    no_work_reason: str | None
    placements: list[TaskPlacement]
    hidden_count: int

    @property
    def date_key(self) -> str:
        return calendar_utils.format_date(self.day.date)

    @property
    def is_blocked(self) -> bool:
        return self.no_work_reason is not None

    @property
    def visible(self) -> list[TaskPlacement]:
        """Placements drawn before the overflow indicator."""
        return self.placements[: len(self.placements) - self.hidden_count]

    @property
    def overflow_label(self) -> str | None:
        return f"+{self.hidden_count} more" if self.hidden_count else None


class CalendarEngine:
    """State machine behind one month calendar."""

    def __init__(
        self,
        *,
        update_task: TaskUpdater,
        notifier: Notifier,
        can_drag: bool = False,
        read_only: bool = False,
        is_all_tasks: bool = False,
        scroll_by: Callable[[int], None] | None = None,
        today: Callable[[], date] = date.today,
        max_visible_tasks: int | None = None,
    ) -> None:
        self._update_task = update_task
        self._notifier = notifier
        self.can_drag = can_drag
        self.read_only = read_only
        self.is_all_tasks = is_all_tasks
        self._today = today
        self.max_visible_tasks = max_visible_tasks if max_visible_tasks is not None else settings.calendar_max_visible_tasks
        self._autoscroll = AutoScroller(scroll_by) if scroll_by is not None else None

        self.viewing_month: date = calendar_utils.first_of_month(today())
        self.tasks: list[Task] = []
        self.no_work_days: list[NoWorkDay] = []
        self.dragged_task: Task | None = None
        self.selected_task: Task | None = None

    # Navigation

    def navigate(self, direction: int) -> date:
        """Move the viewed month forward (+1) or back (-1)."""
        self.viewing_month = calendar_utils.shift_month(self.viewing_month, direction)
        return self.viewing_month

    def go_to_today(self) -> date:
        self.viewing_month = calendar_utils.first_of_month(self._today())
        return self.viewing_month

    @property
    def month_label(self) -> str:
        return calendar_utils.month_label(self.viewing_month)

    # Snapshots

    def set_tasks(self, tasks: Iterable[Task]) -> bool:
        """Replace the task list and reconcile the selected task against it.

        Returns True when the selected task reference changed.
        """
        self.tasks = list(tasks)
        if self.selected_task is None:
            return False

        fresh = next((t for t in self.tasks if t.id == self.selected_task.id), None)
        if fresh is None:
            logger.info("Selected task left the snapshot, clearing selection", extra={"task_id": self.selected_task.id})
            self.selected_task = None
            return True

        if fresh.tracked_state() != self.selected_task.tracked_state():
            self.selected_task = fresh
            return True
        return False

    def set_no_work_days(self, registry: Iterable[NoWorkDay]) -> None:
        self.no_work_days = list(registry)

    def select(self, task: Task | None) -> None:
        """Open (or with None, close) the detail panel for a task."""
        self.selected_task = task

    def clear_selection_if(self, task_id: str) -> None:
        """Drop the selection when it points at ``task_id``."""
        if self.selected_task is not None and self.selected_task.id == task_id:
            self.selected_task = None

    # Drag and drop

    @property
    def drag_enabled(self) -> bool:
        return self.can_drag and not self.read_only and not self.is_all_tasks

    def start_drag(self, task: Task) -> bool:
        """Begin dragging ``task``; returns False when dragging is not allowed."""
        if not self.drag_enabled:
            return False
        self.dragged_task = task
        logger.debug("Drag started", extra={"task_id": task.id})
        return True

    def drag_over(self, day: date, *, pointer_y: float | None = None, viewport_height: float | None = None) -> bool:
        """Whether ``day`` accepts the dragged task. Also drives auto-scroll."""
        if not self.drag_enabled or self.dragged_task is None:
            return False
        if self._autoscroll is not None and pointer_y is not None and viewport_height is not None:
            self._autoscroll.pointer_moved(pointer_y, viewport_height)
        return not no_work_day_service.is_blocked(day, self.no_work_days)

    async def drop(self, day: date) -> DropResult:
        """Schedule the dragged task on ``day``. Never raises."""
        if not self.drag_enabled or self.dragged_task is None:
            self._reset_drag()
            return DropResult(outcome=DropOutcome.IGNORED, day=day)

        task = self.dragged_task
        day_key = calendar_utils.format_date(day)

        with span("calendar_engine.drop"):
            try:
                reason = no_work_day_service.reason_for(day_key, self.no_work_days)
                if reason is not None:
                    logger.info("Drop rejected on no-work day", extra={"task_id": task.id, "date": day_key})
                    self._notifier.error(f"Cannot schedule on {day_key}: {reason}")
                    return DropResult(outcome=DropOutcome.BLOCKED, day=day, task_id=task.id, reason=reason)

                fields: dict[str, date] = {"due_date": day}
                if task.start_date is None:
                    fields["start_date"] = day
                update = TaskUpdate(**fields)
                updates = update.to_fields()

                try:
                    await self._update_task(task.id, update)
                except Exception as e:
                    error_response = classify_error_with_response(e)
                    logger.error(
                        "Error updating task date",
                        extra={"task_id": task.id, "date": day_key, "error": str(e), "error_code": error_response.code},
                    )
                    self._notifier.error("Error updating task date")
                    return DropResult(outcome=DropOutcome.FAILED, day=day, task_id=task.id, reason=error_response.message)

                logger.info("Task scheduled", extra={"task_id": task.id, **updates})
                self._notifier.success("Task scheduled successfully")
                return DropResult(outcome=DropOutcome.SCHEDULED, day=day, task_id=task.id, updates=updates)
            finally:
                self._reset_drag()

    def end_drag(self) -> None:
        """Drag gesture ended without a drop (or after one)."""
        self._reset_drag()

    def _reset_drag(self) -> None:
        self.dragged_task = None
        if self._autoscroll is not None:
            self._autoscroll.stop()

    @property
    def autoscrolling(self) -> bool:
        return self._autoscroll is not None and self._autoscroll.active

    # Views

    def month_view(self) -> list[CalendarCell]:
        """Cells for the viewed month with their task placements."""
        today = self._today()
        cells = []
        for day in calendar_utils.month_grid(self.viewing_month):
            day_tasks = calendar_utils.tasks_for_date(self.tasks, day.date)
            placements = [self._placement(task, day.date) for task in day_tasks]
            cells.append(
                CalendarCell(
                    day=day,
                    is_today=day.date == today,
                    no_work_reason=no_work_day_service.reason_for(day.date, self.no_work_days),
                    placements=placements,
                    hidden_count=max(0, len(placements) - self.max_visible_tasks),
                )
            )
        return cells

    def _placement(self, task: Task, day: date) -> TaskPlacement:
        position = calendar_utils.task_position(task, day)
        return TaskPlacement(
            task=task,
            position=position,
            show_label=position in (SpanPosition.START, SpanPosition.SINGLE),
            corner_style=CORNER_STYLES[position],
            color=calendar_utils.category_color(task.category),
            icon=calendar_utils.status_icon(task.status),
            is_selected=self.selected_task is not None and self.selected_task.id == task.id,
            is_dragged=self.dragged_task is not None and self.dragged_task.id == task.id,
        )

    @property
    def unscheduled_tasks(self) -> list[Task]:
        """Tasks without a due date, offered for dragging onto the grid."""
        return [t for t in self.tasks if t.due_date is None]

    @property
    def scheduled_tasks(self) -> list[Task]:
        return [t for t in self.tasks if t.due_date is not None]

    def summary(self) -> dict[str, int]:
        """Counts shown above the task list."""
        return {
            "total": len(self.tasks),
            "unscheduled": len(self.unscheduled_tasks),
            "completed": sum(1 for t in self.tasks if t.status == TaskStatus.COMPLETED),
        }

    def tasks_by_category(self) -> dict[str, list[Task]]:
        return calendar_utils.group_by_category(self.tasks)

    async def close(self) -> None:
        """Release the drag and its auto-scroll timer."""
        self.dragged_task = None
        if self._autoscroll is not None:
            await self._autoscroll.aclose()
