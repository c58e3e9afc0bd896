"""HTTP and WebSocket surface over the scheduling services.

Authentication happens upstream; the acting user's profile id arrives in the
``X-User-Id`` header.
"""

import asyncio
import contextlib
import logging
from datetime import date
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Header, HTTPException, Query, WebSocket, WebSocketDisconnect, status
from pydantic import BaseModel, Field

from paintcal.core import db_client
from paintcal.core.config import constants
from paintcal.core.errors import ErrorCategory, classify_error_with_response
from paintcal.core.live_query import LiveQuery, fetch_once
from paintcal.domain.no_work_day import NoWorkDay
from paintcal.domain.project import Project, all_tasks_project
from paintcal.domain.task import Note, Task, TaskTemplate
from paintcal.domain.update_models import TaskUpdate
from paintcal.domain.user import User, UserType
from paintcal.scheduling.engine import CalendarCell, CalendarEngine, DropOutcome
from paintcal.services import no_work_day_service, policy, project_service, subscriptions, task_service, user_service
from paintcal.services.notification_service import Notifier


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["api"])

_STATUS_BY_CATEGORY = {
    ErrorCategory.VALIDATION_FAILED: status.HTTP_400_BAD_REQUEST,
    ErrorCategory.RECORD_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCategory.PERMISSION_DENIED: status.HTTP_403_FORBIDDEN,
    ErrorCategory.CASCADE_PARTIAL_FAILURE: status.HTTP_409_CONFLICT,
    ErrorCategory.NETWORK_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCategory.REMOTE_WRITE_FAILED: status.HTTP_502_BAD_GATEWAY,
}


class ProjectCreateRequest(BaseModel):
    name: str
    customer: str


class TaskCreateRequest(BaseModel):
    template_id: str


class NoteRequest(BaseModel):
    text: str


class ScheduleRequest(BaseModel):
    date: date


class NoWorkDayRequest(BaseModel):
    date: str
    reason: str = Field(default="")


def http_error(exc: Exception) -> HTTPException:
    """Translate a service exception into an HTTPException with a user-facing detail."""
    error_response = classify_error_with_response(exc)
    status_code = _STATUS_BY_CATEGORY.get(error_response.category, status.HTTP_500_INTERNAL_SERVER_ERROR)
    logger.warning(
        "api_request_failed",
        extra={"error": str(exc), "error_code": error_response.code, "status_code": status_code},
    )
    return HTTPException(
        status_code=status_code,
        detail={
            "code": error_response.code,
            "message": error_response.message,
            "suggestion": error_response.suggestion,
        },
    )


async def resolve_user(user_id: str | None) -> User:
    """Load the acting user's profile, rejecting unknown and disabled users."""
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing user id")
    try:
        user = await user_service.get_user(user_id=user_id)
    except db_client.RecordNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown user") from e
    if user.disabled:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User is disabled")
    return user


async def current_user(x_user_id: Annotated[str | None, Header()] = None) -> User:
    """FastAPI dependency for the acting user."""
    return await resolve_user(x_user_id)


CurrentUser = Annotated[User, Depends(current_user)]


async def resolve_project(user: User, project_id: str) -> Project:
    """Look up a project the user may view; the all-tasks id yields the synthetic project."""
    if project_id == constants.ALL_TASKS_PROJECT_ID:
        if not policy.capabilities_for(user).can_view_all_tasks:
            raise http_error(PermissionError("Permission denied: can_view_all_tasks"))
        return all_tasks_project()

    if user.user_type == UserType.HOMEOWNER and user.project_id != project_id:
        raise http_error(PermissionError("Permission denied: project"))

    try:
        record = await db_client.get_record(collection=constants.PROJECTS_COLLECTION, record_id=project_id)
    except db_client.DatabaseError as e:
        raise http_error(e) from e
    return Project.model_validate(record)


async def _calendar_inputs(user: User, project: Project) -> tuple[list[Task], list[NoWorkDay]]:
    try:
        tasks = await fetch_once(subscriptions.tasks_spec(user, project), model=Task)
        registry = await fetch_once(subscriptions.no_work_days_spec(), model=NoWorkDay)
    except db_client.DatabaseError as e:
        raise http_error(e) from e
    return tasks, registry


def _cell_payload(cell: CalendarCell) -> dict[str, Any]:
    return {
        "date": cell.date_key,
        "is_current_month": cell.day.is_current_month,
        "is_today": cell.is_today,
        "no_work_reason": cell.no_work_reason,
        "tasks": [
            {
                "id": placement.task.id,
                "name": placement.task.name if placement.show_label else None,
                "position": placement.position,
                "corner_style": placement.corner_style,
                "color": placement.color,
                "icon": placement.icon if placement.show_label else None,
            }
            for placement in cell.visible
        ],
        "task_ids": [placement.task.id for placement in cell.placements],
        "overflow": cell.overflow_label,
    }


# Projects


@router.get("/projects")
async def list_projects(user: CurrentUser) -> list[Project]:
    """Projects visible to the user."""
    try:
        return await fetch_once(subscriptions.projects_spec(user), model=Project)
    except db_client.DatabaseError as e:
        raise http_error(e) from e


@router.post("/projects", status_code=status.HTTP_201_CREATED)
async def create_project(body: ProjectCreateRequest, user: CurrentUser) -> Project:
    try:
        return await project_service.create_project(actor=user, name=body.name, customer=body.customer)
    except (PermissionError, ValueError, db_client.DatabaseError) as e:
        raise http_error(e) from e


@router.delete("/projects/{project_id}")
async def delete_project(project_id: str, user: CurrentUser) -> dict[str, Any]:
    """Delete a project and its tasks."""
    try:
        deleted = await project_service.delete_project(actor=user, project_id=project_id)
    except (PermissionError, ValueError, db_client.DatabaseError) as e:
        raise http_error(e) from e
    return {"project_id": project_id, "deleted_task_ids": deleted}


@router.get("/projects/{project_id}/tasks")
async def list_project_tasks(project_id: str, user: CurrentUser) -> list[Task]:
    project = await resolve_project(user, project_id)
    tasks, _ = await _calendar_inputs(user, project)
    return tasks


@router.get("/projects/{project_id}/calendar")
async def get_calendar(
    project_id: str,
    user: CurrentUser,
    month: Annotated[str | None, Query(pattern=r"^\d{4}-\d{2}$")] = None,
) -> dict[str, Any]:
    """Month view of a project's tasks (``month`` as YYYY-MM, default this month)."""
    project = await resolve_project(user, project_id)
    tasks, registry = await _calendar_inputs(user, project)

    engine = CalendarEngine(update_task=_no_update, notifier=Notifier())
    if month:
        try:
            engine.viewing_month = date.fromisoformat(f"{month}-01")
        except ValueError as e:
            raise http_error(ValueError(f"Invalid month: {month}")) from e
    engine.set_tasks(tasks)
    engine.set_no_work_days(registry)

    return {
        "project_id": project.id,
        "month": engine.viewing_month.strftime("%Y-%m"),
        "label": engine.month_label,
        "cells": [_cell_payload(cell) for cell in engine.month_view()],
        "summary": engine.summary(),
        "unscheduled_task_ids": [t.id for t in engine.unscheduled_tasks],
    }


async def _no_update(task_id: str, update: TaskUpdate) -> None:
    msg = "Read-only calendar"
    raise PermissionError(msg)


# Tasks


@router.post("/projects/{project_id}/tasks", status_code=status.HTTP_201_CREATED)
async def create_task(project_id: str, body: TaskCreateRequest, user: CurrentUser) -> Task:
    """Add a task to a project from a template."""
    project = await resolve_project(user, project_id)
    try:
        template_record = await db_client.get_record(
            collection=constants.TASK_TEMPLATES_COLLECTION,
            record_id=body.template_id,
        )
        return await task_service.create_from_template(
            project=project,
            template=TaskTemplate.model_validate(template_record),
            actor=user,
        )
    except (PermissionError, ValueError, db_client.DatabaseError) as e:
        raise http_error(e) from e


@router.patch("/tasks/{task_id}")
async def update_task(task_id: str, body: TaskUpdate, user: CurrentUser) -> Task:
    try:
        return await task_service.update_fields(task_id=task_id, updates=body, actor=user)
    except (PermissionError, ValueError, db_client.DatabaseError) as e:
        raise http_error(e) from e


@router.delete("/tasks/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(task_id: str, user: CurrentUser) -> None:
    try:
        await task_service.delete_task(task_id=task_id, actor=user)
    except (PermissionError, db_client.DatabaseError) as e:
        raise http_error(e) from e


@router.post("/tasks/{task_id}/notes", status_code=status.HTTP_201_CREATED)
async def add_note(task_id: str, body: NoteRequest, user: CurrentUser) -> Note:
    try:
        return await task_service.append_note(task_id=task_id, text=body.text, actor=user)
    except (PermissionError, ValueError, db_client.DatabaseError) as e:
        raise http_error(e) from e


@router.post("/tasks/{task_id}/schedule")
async def schedule_task(task_id: str, body: ScheduleRequest, user: CurrentUser) -> dict[str, Any]:
    """Drop a task on a date, with the calendar's drag-and-drop rules."""
    try:
        record = await db_client.get_record(collection=constants.TASKS_COLLECTION, record_id=task_id)
        registry = await fetch_once(subscriptions.no_work_days_spec(), model=NoWorkDay)
    except db_client.DatabaseError as e:
        raise http_error(e) from e
    task = Task.model_validate(record)

    notifier = Notifier()

    async def _update(target_id: str, update: TaskUpdate) -> Task:
        return await task_service.update_fields(task_id=target_id, updates=update, actor=user)

    engine = CalendarEngine(
        update_task=_update,
        notifier=notifier,
        can_drag=policy.capabilities_for(user).can_drag,
    )
    engine.set_no_work_days(registry)
    if not engine.start_drag(task):
        raise http_error(PermissionError("Permission denied: can_drag"))

    result = await engine.drop(body.date)
    messages = [toast.message for toast in notifier.history]
    notifier.clear()

    if result.outcome == DropOutcome.BLOCKED:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"code": "ERR_NO_WORK_DAY", "message": messages[-1], "reason": result.reason},
        )
    if result.outcome != DropOutcome.SCHEDULED:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"code": "ERR_REMOTE_WRITE", "message": messages[-1] if messages else result.reason},
        )
    return {"task_id": task_id, "updates": result.updates, "message": messages[-1]}


# No-work days


@router.get("/no-work-days")
async def list_no_work_days(user: CurrentUser) -> dict[str, list[NoWorkDay]]:
    """Upcoming and past no-work days."""
    try:
        registry = await fetch_once(subscriptions.no_work_days_spec(), model=NoWorkDay)
    except db_client.DatabaseError as e:
        raise http_error(e) from e
    upcoming, past = no_work_day_service.split_upcoming_past(registry, date.today())
    return {"upcoming": upcoming, "past": past}


@router.post("/no-work-days", status_code=status.HTTP_201_CREATED)
async def add_no_work_day(body: NoWorkDayRequest, user: CurrentUser) -> NoWorkDay:
    try:
        registry = await fetch_once(subscriptions.no_work_days_spec(), model=NoWorkDay)
        return await no_work_day_service.add_no_work_day(
            actor=user,
            day=body.date,
            reason=body.reason,
            registry=registry,
        )
    except (PermissionError, ValueError, db_client.DatabaseError) as e:
        raise http_error(e) from e


@router.delete("/no-work-days/{no_work_day_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_no_work_day(no_work_day_id: str, user: CurrentUser) -> None:
    try:
        await no_work_day_service.delete_no_work_day(actor=user, no_work_day_id=no_work_day_id)
    except (PermissionError, db_client.DatabaseError) as e:
        raise http_error(e) from e


# Live task stream


@router.websocket("/projects/{project_id}/tasks/stream")
async def stream_tasks(websocket: WebSocket, project_id: str) -> None:
    """Push a full task snapshot on connect and after every change."""
    try:
        user = await resolve_user(websocket.headers.get(constants.USER_ID_HEADER))
        project = await resolve_project(user, project_id)
    except HTTPException as e:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=str(e.detail))
        return

    await websocket.accept()
    snapshots: asyncio.Queue[list[Task]] = asyncio.Queue()
    query = LiveQuery(subscriptions.tasks_spec(user, project), model=Task, on_snapshot=snapshots.put_nowait)
    await query.start()

    async def _drain_client() -> None:
        # Returns when the client disconnects
        with contextlib.suppress(WebSocketDisconnect):
            while True:
                await websocket.receive_text()

    client = asyncio.create_task(_drain_client())
    try:
        while not client.done():
            getter = asyncio.create_task(snapshots.get())
            done, _ = await asyncio.wait({getter, client}, return_when=asyncio.FIRST_COMPLETED)
            if getter not in done:
                getter.cancel()
                break
            tasks = getter.result()
            await websocket.send_json(
                {
                    "project_id": project.id,
                    "failed": query.failed,
                    "tasks": [task.model_dump(mode="json") for task in tasks],
                }
            )
    except (WebSocketDisconnect, RuntimeError) as e:
        logger.info("Task stream closed", extra={"project_id": project_id, "reason": str(e)})
    finally:
        await query.cancel()
        client.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await client
