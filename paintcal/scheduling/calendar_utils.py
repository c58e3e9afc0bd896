"""Pure calendar helpers: month grids, date formatting, grouping and task spans.

Dates are ``datetime.date`` values everywhere in here; the ``YYYY-MM-DD``
string form only exists at the store boundary and in registry lookups.
"""

import calendar
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime
from enum import StrEnum
from typing import Any

from dateutil.relativedelta import relativedelta

from paintcal.domain.task import Task, TaskStatus, coerce_wire_date


# Week starts on Sunday
_CALENDAR = calendar.Calendar(firstweekday=calendar.SUNDAY)

CATEGORY_COLORS: dict[str, str] = {
    "Prep": "bg-blue-100 border-blue-300 text-blue-700",
    "Paint": "bg-green-100 border-green-300 text-green-700",
    "Final Walkthrough": "bg-purple-100 border-purple-300 text-purple-700",
}
DEFAULT_CATEGORY_COLOR = "bg-gray-100 border-gray-300 text-gray-700"

STATUS_ICONS: dict[str, str] = {
    TaskStatus.COMPLETED: "✓",
    TaskStatus.IN_PROGRESS: "◐",
}
DEFAULT_STATUS_ICON = "○"


@dataclass(frozen=True)
class CalendarDay:
    """One cell of a month grid."""

    date: date
    is_current_month: bool


class SpanPosition(StrEnum):
    """Where a date falls inside a task's span."""

    SINGLE = "single"
    START = "start"
    MIDDLE = "middle"
    END = "end"


def month_grid(month: date) -> list[CalendarDay]:
    """Every day shown for the month containing ``month``.

    The grid starts on the Sunday on or before the 1st, ends on the Saturday
    on or after the last day, and is padded with adjacent-month days.
    """
    weeks = _CALENDAR.monthdatescalendar(month.year, month.month)
    return [CalendarDay(date=day, is_current_month=day.month == month.month) for week in weeks for day in week]


def format_date(value: date | datetime) -> str:
    """Canonical ``YYYY-MM-DD`` string from the value's own calendar fields."""
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()


def parse_date(value: Any) -> date | None:  # noqa: ANN401
    """Parse '', None, a date, or an ISO date/instant string."""
    return coerce_wire_date(value)


def group_by_date(tasks: Iterable[Task]) -> dict[date | None, list[Task]]:
    """Group tasks by due date; unscheduled tasks share the ``None`` key."""
    grouped: dict[date | None, list[Task]] = {}
    for task in tasks:
        grouped.setdefault(task.due_date, []).append(task)
    return grouped


def group_by_category(tasks: Iterable[Task]) -> dict[str, list[Task]]:
    """Group tasks by category, keeping empty categories under ''."""
    grouped: dict[str, list[Task]] = {}
    for task in tasks:
        grouped.setdefault(task.category, []).append(task)
    return grouped


def category_color(category: str | None) -> str:
    """Style token for a category."""
    return CATEGORY_COLORS.get(category or "", DEFAULT_CATEGORY_COLOR)


def status_icon(status: str | None) -> str:
    """Glyph for a task status."""
    return STATUS_ICONS.get(status or "", DEFAULT_STATUS_ICON)


def task_spans_date(task: Task, day: date) -> bool:
    """Whether ``day`` lies inside the task's inclusive [start, due] span."""
    if task.start_date is None or task.due_date is None:
        return False
    return task.start_date <= day <= task.due_date


def tasks_for_date(tasks: Iterable[Task], day: date) -> list[Task]:
    """Tasks whose span covers ``day``, in input order."""
    return [task for task in tasks if task_spans_date(task, day)]


def task_position(task: Task, day: date) -> SpanPosition:
    """Position of ``day`` within the task's span."""
    if task.start_date is None or task.due_date is None or task.start_date == task.due_date:
        return SpanPosition.SINGLE
    if day == task.start_date:
        return SpanPosition.START
    if day == task.due_date:
        return SpanPosition.END
    return SpanPosition.MIDDLE


def first_of_month(value: date) -> date:
    return value.replace(day=1)


def shift_month(month: date, delta: int) -> date:
    """First day of the month ``delta`` months away."""
    return first_of_month(month) + relativedelta(months=delta)


def month_label(month: date) -> str:
    """Heading such as 'March 2024'."""
    return f"{calendar.month_name[month.month]} {month.year}"
