"""Task mutation actions.

Every write stamps provenance with the acting user's display name
(``"Unknown"`` when there is none). The calendar never mutates its local task
list after a write; it waits for the next live query snapshot.
"""

import logging
import secrets
from datetime import UTC, datetime
from typing import Any

from paintcal.core import db_client
from paintcal.core.config import constants
from paintcal.core.logging import span
from paintcal.domain.create_models import TaskCreate, utc_now_iso
from paintcal.domain.project import Project
from paintcal.domain.task import Note, Task, TaskCategory, TaskStatus, TaskTemplate
from paintcal.domain.update_models import TaskUpdate
from paintcal.domain.user import User
from paintcal.services import policy


logger = logging.getLogger(__name__)


def actor_name(actor: User | None) -> str:
    """Name stamped on provenance fields."""
    return actor.display_name if actor is not None and actor.display_name else constants.UNKNOWN_ACTOR


def display_date(moment: datetime) -> str:
    """Short display date, e.g. '3/5/2024'."""
    return f"{moment.month}/{moment.day}/{moment.year}"


def _note_id() -> str:
    return f"{int(datetime.now(UTC).timestamp() * 1000)}{secrets.token_hex(2)}"


def _stamp(actor: User | None) -> dict[str, str]:
    return {"last_updated_at": utc_now_iso(), "last_updated_by": actor_name(actor)}


async def create_from_template(*, project: Project, template: TaskTemplate, actor: User | None) -> Task:
    """Instantiate a template as a pending, unscheduled task in ``project``.

    Raises:
        PermissionError: If the actor may not create tasks
        ValueError: If ``project`` is the synthetic all-tasks project
    """
    with span("task_service.create_from_template"):
        policy.require(actor, "can_create_task")
        if project.is_all_tasks:
            msg = "Tasks cannot be added to the All Tasks view"
            raise ValueError(msg)

        name = actor_name(actor)
        payload = TaskCreate(
            project_id=project.id,
            template_id=template.id,
            name=template.name,
            category=template.category or TaskCategory.PAINT,
            status=TaskStatus.PENDING,
            estimated_duration=template.estimated_duration or None,
            created_by=name,
            last_updated_by=name,
        )
        record = await db_client.create_record(
            collection=constants.TASKS_COLLECTION,
            data=payload.model_dump(mode="json"),
        )

        logger.info(
            "Created task from template",
            extra={"task_id": record["id"], "project_id": project.id, "template": template.name},
        )
        return Task.model_validate(record)


async def update_fields(*, task_id: str, updates: TaskUpdate, actor: User | None) -> Task:
    """Merge the fields set on ``updates`` into the task; other fields are untouched.

    Raises:
        PermissionError: If the actor may not edit tasks
        ValueError: If no field is set
        RecordNotFoundError: If the task does not exist
    """
    with span("task_service.update_fields"):
        policy.require(actor, "can_edit_task")
        fields = updates.to_fields()
        if not fields:
            msg = "No task fields to update"
            raise ValueError(msg)

        record = await db_client.update_record(
            collection=constants.TASKS_COLLECTION,
            record_id=task_id,
            data={**fields, **_stamp(actor)},
        )
        logger.info("Updated task", extra={"task_id": task_id, "fields": sorted(fields)})
        return Task.model_validate(record)


async def set_status(*, task_id: str, status: TaskStatus, actor: User | None) -> Task:
    return await update_fields(task_id=task_id, updates=TaskUpdate(status=status), actor=actor)


async def update_job_details(*, task_id: str, job_details: str, actor: User | None) -> Task:
    return await update_fields(task_id=task_id, updates=TaskUpdate(job_details=job_details), actor=actor)


async def toggle_assignment(*, task: Task, crew_name: str, actor: User | None) -> Task:
    """Add ``crew_name`` to the task's assignees, or remove it if present.

    The new list is computed from ``task`` (the caller's snapshot) and
    written whole.
    """
    with span("task_service.toggle_assignment"):
        policy.require(actor, "can_assign")
        if crew_name in task.assigned_to:
            assigned = [name for name in task.assigned_to if name != crew_name]
        else:
            assigned = [*task.assigned_to, crew_name]

        record = await db_client.update_record(
            collection=constants.TASKS_COLLECTION,
            record_id=task.id,
            data={"assigned_to": assigned, **_stamp(actor)},
        )
        logger.info("Toggled assignment", extra={"task_id": task.id, "crew_name": crew_name, "assigned": assigned})
        return Task.model_validate(record)


async def rename_custom_task(
    *,
    task: Task,
    custom_name: str,
    templates: list[TaskTemplate],
    actor: User | None,
) -> Task:
    """Rename a task created from the "Other" template.

    Raises:
        PermissionError: If the actor may not rename tasks
        ValueError: If the name is blank or the task's template is not "Other"
    """
    with span("task_service.rename_custom_task"):
        policy.require(actor, "can_rename_task")
        custom_name = custom_name.strip()
        if not custom_name:
            msg = "Task name cannot be empty"
            raise ValueError(msg)

        template = next((t for t in templates if t.id == task.template_id), None)
        if template is None or template.name != constants.OTHER_TEMPLATE_NAME:
            msg = f"Only tasks from the '{constants.OTHER_TEMPLATE_NAME}' template can be renamed"
            raise ValueError(msg)

        return await update_fields(
            task_id=task.id,
            updates=TaskUpdate(name=custom_name, custom_name=custom_name),
            actor=actor,
        )


async def delete_task(*, task_id: str, actor: User | None) -> None:
    """Delete a task. Callers clear any selection pointing at it.

    Raises:
        PermissionError: If the actor may not delete tasks
        RecordNotFoundError: If the task does not exist
    """
    with span("task_service.delete_task"):
        policy.require(actor, "can_delete_task")
        await db_client.delete_record(collection=constants.TASKS_COLLECTION, record_id=task_id)
        logger.info("Deleted task", extra={"task_id": task_id})


async def append_note(*, task_id: str, text: str, actor: User | None) -> Note:
    """Append a note to the end of the task's notes.

    Reads the task, appends locally and writes the whole list back. Two
    appends racing on the same task can lose one of them (last write wins).

    Raises:
        PermissionError: If the actor may not add notes
        ValueError: If the text is blank
        RecordNotFoundError: If the task does not exist
    """
    with span("task_service.append_note"):
        policy.require(actor, "can_add_note")
        text = text.strip()
        if not text:
            msg = "Note text cannot be empty"
            raise ValueError(msg)

        record = await db_client.get_record(collection=constants.TASKS_COLLECTION, record_id=task_id)

        now = datetime.now().astimezone()
        note = Note(
            id=_note_id(),
            text=text,
            author=actor.display_name if actor is not None and actor.display_name else constants.UNKNOWN_NOTE_AUTHOR,
            date=display_date(now),
            timestamp=now.astimezone(UTC).isoformat().replace("+00:00", "Z"),
        )
        notes: list[dict[str, Any]] = [*(record.get("notes") or []), note.model_dump()]

        await db_client.update_record(
            collection=constants.TASKS_COLLECTION,
            record_id=task_id,
            data={"notes": notes, **_stamp(actor)},
        )
        logger.info("Appended note", extra={"task_id": task_id, "note_id": note.id, "note_count": len(notes)})
        return note
