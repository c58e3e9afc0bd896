"""Unit tests for calendar_utils."""

from datetime import date, datetime

import pytest

from paintcal.domain.task import Task
from paintcal.scheduling import calendar_utils
from paintcal.scheduling.calendar_utils import SpanPosition


def _task(task_id: str = "t1", start: str = "", due: str = "", **kwargs) -> Task:
    return Task(id=task_id, project_id="p1", name=task_id, start_date=start, due_date=due, **kwargs)


@pytest.mark.unit
class TestMonthGrid:
    """Tests for month_grid."""

    @pytest.mark.parametrize(
        "month",
        [date(2024, 2, 1), date(2024, 3, 1), date(2023, 9, 1), date(2021, 2, 1), date(2025, 6, 1)],
    )
    def test_grid_is_whole_weeks_sunday_to_saturday(self, month):
        """Grid length is a multiple of 7, starts on Sunday and ends on Saturday."""
        grid = calendar_utils.month_grid(month)

        assert len(grid) % 7 == 0
        assert grid[0].date.weekday() == 6  # Sunday
        assert grid[-1].date.weekday() == 5  # Saturday

    def test_grid_contains_every_day_of_month_once(self):
        grid = calendar_utils.month_grid(date(2024, 2, 15))
        in_month = [d.date for d in grid if d.is_current_month]

        assert in_month == [date(2024, 2, day) for day in range(1, 30)]

    def test_grid_is_consecutive(self):
        grid = calendar_utils.month_grid(date(2024, 3, 1))

        for earlier, later in zip(grid, grid[1:], strict=False):
            assert (later.date - earlier.date).days == 1

    def test_march_2024_padding(self):
        """March 1 2024 is a Friday, so the grid starts on Feb 25."""
        grid = calendar_utils.month_grid(date(2024, 3, 1))

        assert grid[0].date == date(2024, 2, 25)
        assert grid[0].is_current_month is False
        assert grid[-1].date == date(2024, 4, 6)

    def test_month_starting_sunday_has_no_leading_padding(self):
        grid = calendar_utils.month_grid(date(2023, 10, 1))

        assert grid[0].date == date(2023, 10, 1)
        assert grid[0].is_current_month is True


@pytest.mark.unit
class TestFormatAndParse:
    """Tests for format_date and parse_date."""

    def test_format_date_uses_calendar_fields(self):
        assert calendar_utils.format_date(date(2024, 3, 5)) == "2024-03-05"

    def test_format_date_ignores_time_of_day(self):
        """A late-evening instant keeps its own calendar day."""
        assert calendar_utils.format_date(datetime(2024, 3, 5, 23, 30)) == "2024-03-05"

    @pytest.mark.parametrize(
        "value",
        [date(2024, 1, 1), date(2024, 2, 29), date(2024, 12, 31), date(1999, 7, 4)],
    )
    def test_format_then_parse_is_identity(self, value):
        assert calendar_utils.parse_date(calendar_utils.format_date(value)) == value

    @pytest.mark.parametrize("value", ["", None])
    def test_parse_empty(self, value):
        assert calendar_utils.parse_date(value) is None

    def test_parse_instant_keeps_date_part(self):
        assert calendar_utils.parse_date("2024-03-05T22:00:00Z") == date(2024, 3, 5)

    def test_parse_garbage_raises(self):
        with pytest.raises(ValueError):
            calendar_utils.parse_date("not-a-date")


@pytest.mark.unit
class TestSpans:
    """Tests for task spans, positions and per-day lookups."""

    def test_spans_inclusive_range(self):
        task = _task(start="2024-03-04", due="2024-03-06")

        assert calendar_utils.task_spans_date(task, date(2024, 3, 4))
        assert calendar_utils.task_spans_date(task, date(2024, 3, 5))
        assert calendar_utils.task_spans_date(task, date(2024, 3, 6))
        assert not calendar_utils.task_spans_date(task, date(2024, 3, 3))
        assert not calendar_utils.task_spans_date(task, date(2024, 3, 7))

    def test_task_missing_either_date_spans_nothing(self):
        only_due = _task(due="2024-03-06")
        only_start = _task(start="2024-03-04")

        assert not calendar_utils.task_spans_date(only_due, date(2024, 3, 6))
        assert not calendar_utils.task_spans_date(only_start, date(2024, 3, 4))

    def test_positions_along_span(self):
        task = _task(start="2024-03-04", due="2024-03-06")

        assert calendar_utils.task_position(task, date(2024, 3, 4)) == SpanPosition.START
        assert calendar_utils.task_position(task, date(2024, 3, 5)) == SpanPosition.MIDDLE
        assert calendar_utils.task_position(task, date(2024, 3, 6)) == SpanPosition.END

    def test_single_day_task(self):
        task = _task(start="2024-03-05", due="2024-03-05")

        assert calendar_utils.task_position(task, date(2024, 3, 5)) == SpanPosition.SINGLE

    def test_tasks_for_date_keeps_input_order(self):
        a = _task("a", start="2024-03-01", due="2024-03-10")
        b = _task("b", start="2024-03-05", due="2024-03-05")
        c = _task("c", start="2024-03-06", due="2024-03-08")

        assert [t.id for t in calendar_utils.tasks_for_date([a, b, c], date(2024, 3, 5))] == ["a", "b"]


@pytest.mark.unit
class TestGrouping:
    """Tests for group_by_date and group_by_category."""

    def test_group_by_due_date(self):
        a = _task("a", start="2024-03-01", due="2024-03-05")
        b = _task("b", due="2024-03-05")
        c = _task("c")

        grouped = calendar_utils.group_by_date([a, b, c])

        assert [t.id for t in grouped[date(2024, 3, 5)]] == ["a", "b"]
        assert [t.id for t in grouped[None]] == ["c"]

    def test_group_by_category(self):
        prep = _task("prep", category="Prep")
        paint = _task("paint", category="Paint")

        grouped = calendar_utils.group_by_category([prep, paint])

        assert set(grouped) == {"Prep", "Paint"}


@pytest.mark.unit
class TestStyling:
    """Tests for color and icon lookups."""

    @pytest.mark.parametrize(
        ("category", "color"),
        [("Prep", "blue"), ("Paint", "green"), ("Final Walkthrough", "purple"), ("Cleanup", "gray"), (None, "gray")],
    )
    def test_category_color(self, category, color):
        assert color in calendar_utils.category_color(category)

    @pytest.mark.parametrize(
        ("status", "icon"),
        [("completed", "✓"), ("in-progress", "◐"), ("pending", "○"), (None, "○")],
    )
    def test_status_icon(self, status, icon):
        assert calendar_utils.status_icon(status) == icon


@pytest.mark.unit
class TestMonthNavigation:
    """Tests for shift_month and month_label."""

    def test_shift_across_year_boundary(self):
        assert calendar_utils.shift_month(date(2024, 12, 15), 1) == date(2025, 1, 1)
        assert calendar_utils.shift_month(date(2024, 1, 31), -1) == date(2023, 12, 1)

    def test_month_label(self):
        assert calendar_utils.month_label(date(2024, 3, 1)) == "March 2024"
