"""Project creation and cascading deletion."""

import logging

from paintcal.core import db_client
from paintcal.core.config import constants
from paintcal.core.db_client import sanitize_param
from paintcal.core.errors import CascadeDeleteError
from paintcal.core.logging import span
from paintcal.domain.create_models import ProjectCreate
from paintcal.domain.project import Project
from paintcal.domain.user import User
from paintcal.services import policy


logger = logging.getLogger(__name__)


async def create_project(*, actor: User | None, name: str, customer: str) -> Project:
    """Create a project owned by ``actor``.

    Raises:
        PermissionError: If the actor may not create projects
        ValueError: If name or customer is blank
    """
    with span("project_service.create_project"):
        actor = policy.require(actor, "can_create_project")

        payload = ProjectCreate(name=name, customer=customer, owner_id=actor.id, owner_email=actor.email)
        record = await db_client.create_record(
            collection=constants.PROJECTS_COLLECTION,
            data=payload.model_dump(),
        )
        logger.info("Created project", extra={"project_id": record["id"], "owner_id": actor.id})
        return Project.model_validate(record)


async def list_project_task_ids(project_id: str) -> list[str]:
    """IDs of every task referencing ``project_id``."""
    task_ids: list[str] = []
    page = 1
    while True:
        records = await db_client.list_records(
            collection=constants.TASKS_COLLECTION,
            page=page,
            per_page=constants.CASCADE_PAGE_SIZE,
            filter_query=f'project_id = "{sanitize_param(project_id)}"',
        )
        task_ids.extend(record["id"] for record in records)
        if len(records) < constants.CASCADE_PAGE_SIZE:
            return task_ids
        page += 1


async def delete_project(*, actor: User | None, project_id: str) -> list[str]:
    """Delete a project and every task that references it.

    Tasks are deleted first. If any task deletion fails the project is kept
    and CascadeDeleteError reports which tasks are already gone; those are
    not restored. Returns the deleted task IDs.

    Raises:
        PermissionError: If the actor may not delete projects
        ValueError: If ``project_id`` is the synthetic all-tasks project
        CascadeDeleteError: If any task could not be deleted
        RecordNotFoundError: If the project does not exist
    """
    with span("project_service.delete_project"):
        policy.require(actor, "can_delete_project")
        if project_id == constants.ALL_TASKS_PROJECT_ID:
            msg = "The All Tasks view cannot be deleted"
            raise ValueError(msg)

        task_ids = await list_project_task_ids(project_id)
        deleted: list[str] = []
        failed: list[str] = []
        for task_id in task_ids:
            try:
                await db_client.delete_record(collection=constants.TASKS_COLLECTION, record_id=task_id)
                deleted.append(task_id)
            except db_client.RecordNotFoundError:
                # Already gone counts as deleted
                deleted.append(task_id)
            except db_client.DatabaseError as e:
                logger.error(
                    "Cascade task delete failed",
                    extra={"project_id": project_id, "task_id": task_id, "error": str(e)},
                )
                failed.append(task_id)

        if failed:
            raise CascadeDeleteError(project_id, deleted_task_ids=deleted, failed_task_ids=failed)

        await db_client.delete_record(collection=constants.PROJECTS_COLLECTION, record_id=project_id)
        logger.info("Deleted project", extra={"project_id": project_id, "deleted_tasks": len(deleted)})
        return deleted
