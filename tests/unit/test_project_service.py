"""Unit tests for project_service module."""

import pytest

from paintcal.core.config import constants
from paintcal.core.db_client import DatabaseError, RecordNotFoundError
from paintcal.core.errors import CascadeDeleteError
from paintcal.services import project_service


@pytest.mark.unit
class TestCreateProject:
    """Tests for create_project."""

    async def test_create_records_owner(self, patched_db, admin_user):
        project = await project_service.create_project(actor=admin_user, name=" Maple St ", customer="Dana")

        assert project.name == "Maple St"
        assert project.customer == "Dana"
        assert project.owner_id == "admin1"
        assert project.owner_email == "boss@example.com"
        assert project.created_at

    @pytest.mark.parametrize(("name", "customer"), [("", "Dana"), ("Maple", "  ")])
    async def test_blank_fields_rejected(self, patched_db, admin_user, name, customer):
        with pytest.raises(ValueError, match="Project name and customer are required"):
            await project_service.create_project(actor=admin_user, name=name, customer=customer)

    async def test_crew_cannot_create(self, patched_db, crew_user):
        with pytest.raises(PermissionError):
            await project_service.create_project(actor=crew_user, name="Maple", customer="Dana")


@pytest.mark.unit
class TestDeleteProject:
    """Tests for delete_project cascade."""

    async def test_deletes_project_and_its_tasks_only(self, seeded_db, admin_user):
        deleted = await project_service.delete_project(actor=admin_user, project_id="proj-maple")

        assert sorted(deleted) == ["task-body", "task-wash"]
        remaining = await seeded_db.list_records(collection=constants.TASKS_COLLECTION)
        assert [r["id"] for r in remaining] == ["task-other"]
        with pytest.raises(RecordNotFoundError):
            await seeded_db.get_record(collection=constants.PROJECTS_COLLECTION, record_id="proj-maple")

    async def test_pages_through_many_tasks(self, seeded_db, admin_user, monkeypatch):
        monkeypatch.setattr(constants, "CASCADE_PAGE_SIZE", 2)
        for i in range(5):
            await seeded_db.create_record(
                collection=constants.TASKS_COLLECTION,
                data={"project_id": "proj-oak", "name": f"extra {i}"},
            )

        task_ids = await project_service.list_project_task_ids("proj-oak")

        assert len(task_ids) == 6

    async def test_failed_task_delete_keeps_project(self, seeded_db, admin_user, monkeypatch):
        real_delete = seeded_db.delete_record

        async def flaky_delete(*, collection, record_id):
            if record_id == "task-body":
                raise DatabaseError("disk I/O error")
            return await real_delete(collection=collection, record_id=record_id)

        monkeypatch.setattr("paintcal.core.db_client.delete_record", flaky_delete)

        with pytest.raises(CascadeDeleteError) as exc_info:
            await project_service.delete_project(actor=admin_user, project_id="proj-maple")

        assert exc_info.value.failed_task_ids == ["task-body"]
        assert exc_info.value.deleted_task_ids == ["task-wash"]
        project = await seeded_db.get_record(collection=constants.PROJECTS_COLLECTION, record_id="proj-maple")
        assert project["id"] == "proj-maple"

    async def test_task_already_gone_counts_as_deleted(self, seeded_db, admin_user, monkeypatch):
        real_delete = seeded_db.delete_record

        async def racing_delete(*, collection, record_id):
            if record_id == "task-body":
                await real_delete(collection=collection, record_id=record_id)
            return await real_delete(collection=collection, record_id=record_id)

        monkeypatch.setattr("paintcal.core.db_client.delete_record", racing_delete)

        deleted = await project_service.delete_project(actor=admin_user, project_id="proj-maple")

        assert "task-body" in deleted

    async def test_all_tasks_project_cannot_be_deleted(self, seeded_db, admin_user):
        with pytest.raises(ValueError, match="cannot be deleted"):
            await project_service.delete_project(actor=admin_user, project_id=constants.ALL_TASKS_PROJECT_ID)

    async def test_crew_cannot_delete(self, seeded_db, crew_user):
        with pytest.raises(PermissionError):
            await project_service.delete_project(actor=crew_user, project_id="proj-maple")

        assert len(await seeded_db.list_records(collection=constants.TASKS_COLLECTION)) == 3
