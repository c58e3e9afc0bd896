"""No-work day registry: lookups used by the scheduler plus admin add/delete."""

import logging
from collections.abc import Iterable, Sequence
from datetime import date

from paintcal.core import db_client
from paintcal.core.config import constants
from paintcal.core.logging import span
from paintcal.domain.create_models import NoWorkDayCreate
from paintcal.domain.no_work_day import NoWorkDay
from paintcal.domain.user import User
from paintcal.services import policy


logger = logging.getLogger(__name__)


def _key(day: date | str) -> str:
    return day.isoformat() if isinstance(day, date) else day


def find(day: date | str, registry: Iterable[NoWorkDay]) -> NoWorkDay | None:
    """First registry entry whose date string equals ``day``."""
    wanted = _key(day)
    return next((entry for entry in registry if entry.date == wanted), None)


def is_blocked(day: date | str, registry: Iterable[NoWorkDay]) -> bool:
    """Whether nothing may be scheduled on ``day``."""
    return find(day, registry) is not None


def reason_for(day: date | str, registry: Iterable[NoWorkDay]) -> str | None:
    """Reason of the first matching entry, or None when the day is open."""
    entry = find(day, registry)
    return entry.reason if entry is not None else None


def split_upcoming_past(registry: Iterable[NoWorkDay], today: date) -> tuple[list[NoWorkDay], list[NoWorkDay]]:
    """Split entries into (today and later, before today), both in date order."""
    cutoff = today.isoformat()
    ordered = sorted(registry, key=lambda entry: entry.date)
    upcoming = [entry for entry in ordered if entry.date >= cutoff]
    past = [entry for entry in ordered if entry.date < cutoff]
    return upcoming, past


async def add_no_work_day(
    *,
    actor: User,
    day: str,
    reason: str = "",
    registry: Sequence[NoWorkDay],
) -> NoWorkDay:
    """Block a date.

    The duplicate check only sees ``registry``, the caller's latest snapshot;
    two admins adding the same date at once can both succeed.

    Raises:
        PermissionError: If the actor may not manage no-work days
        ValueError: If the date is missing, malformed, or already blocked
    """
    with span("no_work_day_service.add_no_work_day"):
        policy.require(actor, "can_manage_no_work_days")

        payload = NoWorkDayCreate(date=day, reason=reason or constants.DEFAULT_NO_WORK_REASON)
        if is_blocked(payload.date, registry):
            msg = "This date is already marked as a no-work day"
            logger.info("Duplicate no-work day rejected", extra={"date": payload.date})
            raise ValueError(msg)

        record = await db_client.create_record(
            collection=constants.NO_WORK_DAYS_COLLECTION,
            data=payload.model_dump(),
        )
        logger.info("Added no-work day", extra={"date": payload.date, "reason": payload.reason})
        return NoWorkDay.model_validate(record)


async def delete_no_work_day(*, actor: User, no_work_day_id: str) -> None:
    """Unblock a date by deleting its entry.

    Raises:
        PermissionError: If the actor may not manage no-work days
        RecordNotFoundError: If the entry is already gone
    """
    with span("no_work_day_service.delete_no_work_day"):
        policy.require(actor, "can_manage_no_work_days")
        await db_client.delete_record(collection=constants.NO_WORK_DAYS_COLLECTION, record_id=no_work_day_id)
        logger.info("Deleted no-work day", extra={"no_work_day_id": no_work_day_id})
