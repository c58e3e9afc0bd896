"""Pytest configuration and fixtures for unit tests."""

import pytest

from paintcal.core.config import constants
from paintcal.core.realtime import changefeed
from paintcal.domain.user import User, UserType
from paintcal.services.notification_service import Notifier
from tests.unit.mocks import InMemoryDBClient


@pytest.fixture
def in_memory_db():
    """Provides a fresh InMemoryDBClient for each test."""
    return InMemoryDBClient()


@pytest.fixture
def patched_db(monkeypatch, in_memory_db):
    """Patches paintcal.core.db_client functions to use InMemoryDBClient."""
    monkeypatch.setattr("paintcal.core.db_client.create_record", in_memory_db.create_record)
    monkeypatch.setattr("paintcal.core.db_client.get_record", in_memory_db.get_record)
    monkeypatch.setattr("paintcal.core.db_client.update_record", in_memory_db.update_record)
    monkeypatch.setattr("paintcal.core.db_client.delete_record", in_memory_db.delete_record)
    monkeypatch.setattr("paintcal.core.db_client.list_records", in_memory_db.list_records)
    monkeypatch.setattr("paintcal.core.db_client.get_first_record", in_memory_db.get_first_record)

    return in_memory_db


@pytest.fixture(autouse=True)
def _reset_changefeed():
    """Drop listeners a test left registered on the global change feed."""
    yield
    changefeed._listeners.clear()


@pytest.fixture
def notifier():
    """Notifier whose toasts never expire on their own."""
    return Notifier(duration_ms=0)


@pytest.fixture
def admin_user():
    return User(id="admin1", email="boss@example.com", display_name="Pat Boss", user_type=UserType.ADMIN)


@pytest.fixture
def crew_user():
    return User(
        id="crew1",
        email="sam@example.com",
        display_name="Sam Painter",
        role="Painter",
        user_type=UserType.CREW,
    )


@pytest.fixture
def homeowner_user():
    return User(
        id="home1",
        email="dana@example.com",
        display_name="Dana Home",
        user_type=UserType.HOMEOWNER,
        project_id="proj-maple",
    )


async def seed_store(db, users):
    """Seed three users, two projects, templates and a few tasks.

    proj-maple has one scheduled task (Mar 4-6 2024, assigned to Sam) and one
    unscheduled task; proj-oak has one unscheduled task.
    """
    for user in users:
        await db.create_record(
            collection=constants.USERS_COLLECTION,
            data=user.model_dump(mode="json", exclude={"id"}),
            record_id=user.id,
        )

    await db.create_record(
        collection=constants.PROJECTS_COLLECTION,
        data={"name": "Maple St exterior", "customer": "Dana Home", "created_at": "2024-02-01T10:00:00Z"},
        record_id="proj-maple",
    )
    await db.create_record(
        collection=constants.PROJECTS_COLLECTION,
        data={"name": "Oak Ave interior", "customer": "Lee Oak", "created_at": "2024-02-10T10:00:00Z"},
        record_id="proj-oak",
    )

    for template_id, name, category in (
        ("tpl-wash", "Powerwash", "Prep"),
        ("tpl-body", "Body coat", "Paint"),
        ("tpl-other", constants.OTHER_TEMPLATE_NAME, None),
    ):
        await db.create_record(
            collection=constants.TASK_TEMPLATES_COLLECTION,
            data={"name": name, "category": category, "estimated_duration": 4, "order": 0, "active": True},
            record_id=template_id,
        )

    base = {"status": "pending", "job_details": "", "notes": [], "created_by": "Pat Boss"}
    await db.create_record(
        collection=constants.TASKS_COLLECTION,
        data={
            **base,
            "project_id": "proj-maple",
            "template_id": "tpl-wash",
            "name": "Powerwash",
            "category": "Prep",
            "assigned_to": ["Sam Painter"],
            "start_date": "2024-03-04",
            "due_date": "2024-03-06",
        },
        record_id="task-wash",
    )
    await db.create_record(
        collection=constants.TASKS_COLLECTION,
        data={
            **base,
            "project_id": "proj-maple",
            "template_id": "tpl-body",
            "name": "Body coat",
            "category": "Paint",
            "assigned_to": [],
            "start_date": "",
            "due_date": "",
        },
        record_id="task-body",
    )
    await db.create_record(
        collection=constants.TASKS_COLLECTION,
        data={
            **base,
            "project_id": "proj-oak",
            "template_id": "tpl-other",
            "name": constants.OTHER_TEMPLATE_NAME,
            "category": "Paint",
            "assigned_to": [],
            "start_date": "",
            "due_date": "",
        },
        record_id="task-other",
    )
    return db


@pytest.fixture
async def seeded_db(patched_db, admin_user, crew_user, homeowner_user):
    """patched_db seeded by seed_store."""
    return await seed_store(patched_db, (admin_user, crew_user, homeowner_user))
