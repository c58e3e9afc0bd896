"""Unit tests for no_work_day_service."""

from datetime import date

import pytest

from paintcal.core.config import constants
from paintcal.core.db_client import RecordNotFoundError
from paintcal.domain.no_work_day import NoWorkDay
from paintcal.services import no_work_day_service


@pytest.fixture
def registry():
    return [
        NoWorkDay(id="n1", date="2024-03-05", reason="Holiday"),
        NoWorkDay(id="n2", date="2024-03-05", reason="Rain"),
        NoWorkDay(id="n3", date="2024-02-01", reason="Inventory"),
    ]


@pytest.mark.unit
class TestLookups:
    """Tests for is_blocked, reason_for and split_upcoming_past."""

    def test_blocked_by_date_or_string(self, registry):
        assert no_work_day_service.is_blocked(date(2024, 3, 5), registry)
        assert no_work_day_service.is_blocked("2024-03-05", registry)
        assert not no_work_day_service.is_blocked(date(2024, 3, 6), registry)

    def test_first_matching_reason_wins(self, registry):
        assert no_work_day_service.reason_for("2024-03-05", registry) == "Holiday"

    def test_open_day_has_no_reason(self, registry):
        assert no_work_day_service.reason_for("2024-03-06", registry) is None

    def test_match_is_exact_string(self):
        """Non-canonical stored dates never match."""
        registry = [NoWorkDay(id="n1", date="2024-3-5", reason="Typo")]

        assert not no_work_day_service.is_blocked(date(2024, 3, 5), registry)

    def test_split_upcoming_includes_today(self, registry):
        upcoming, past = no_work_day_service.split_upcoming_past(registry, date(2024, 3, 5))

        assert [e.id for e in upcoming] == ["n1", "n2"]
        assert [e.id for e in past] == ["n3"]


@pytest.mark.unit
class TestAddNoWorkDay:
    """Tests for add_no_work_day."""

    async def test_add_creates_record(self, patched_db, admin_user):
        entry = await no_work_day_service.add_no_work_day(
            actor=admin_user,
            day="2024-07-04",
            reason="Independence Day",
            registry=[],
        )

        assert entry.date == "2024-07-04"
        assert entry.reason == "Independence Day"
        stored = await patched_db.get_record(collection=constants.NO_WORK_DAYS_COLLECTION, record_id=entry.id)
        assert stored["date"] == "2024-07-04"

    async def test_blank_reason_defaults(self, patched_db, admin_user):
        entry = await no_work_day_service.add_no_work_day(actor=admin_user, day="2024-07-04", reason="  ", registry=[])

        assert entry.reason == constants.DEFAULT_NO_WORK_REASON

    async def test_duplicate_in_registry_rejected(self, patched_db, admin_user, registry):
        with pytest.raises(ValueError, match="already marked as a no-work day"):
            await no_work_day_service.add_no_work_day(actor=admin_user, day="2024-03-05", registry=registry)

        assert await patched_db.list_records(collection=constants.NO_WORK_DAYS_COLLECTION) == []

    async def test_empty_date_rejected(self, patched_db, admin_user):
        with pytest.raises(ValueError, match="Please select a date"):
            await no_work_day_service.add_no_work_day(actor=admin_user, day="", registry=[])

    async def test_reason_too_long_rejected(self, patched_db, admin_user):
        with pytest.raises(ValueError, match="Reason too long"):
            await no_work_day_service.add_no_work_day(actor=admin_user, day="2024-07-04", reason="x" * 51, registry=[])

    async def test_crew_cannot_add(self, patched_db, crew_user):
        with pytest.raises(PermissionError):
            await no_work_day_service.add_no_work_day(actor=crew_user, day="2024-07-04", registry=[])


@pytest.mark.unit
class TestDeleteNoWorkDay:
    """Tests for delete_no_work_day."""

    async def test_delete(self, patched_db, admin_user):
        entry = await no_work_day_service.add_no_work_day(actor=admin_user, day="2024-07-04", registry=[])

        await no_work_day_service.delete_no_work_day(actor=admin_user, no_work_day_id=entry.id)

        assert await patched_db.list_records(collection=constants.NO_WORK_DAYS_COLLECTION) == []

    async def test_delete_missing_raises(self, patched_db, admin_user):
        with pytest.raises(RecordNotFoundError):
            await no_work_day_service.delete_no_work_day(actor=admin_user, no_work_day_id="nope")

    async def test_homeowner_cannot_delete(self, patched_db, homeowner_user):
        with pytest.raises(PermissionError):
            await no_work_day_service.delete_no_work_day(actor=homeowner_user, no_work_day_id="n1")
