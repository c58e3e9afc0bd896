"""Role-aware dashboard session.

Composes live queries, the calendar engine and the mutation services for one
signed-in user. State only ever comes from live query snapshots; actions
write through the services and report through the notifier.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine
from datetime import date
from enum import StrEnum
from typing import Any, TypeVar

from paintcal.core.errors import ErrorCategory, classify_error_with_response
from paintcal.core.live_query import SubscriptionManager
from paintcal.core.logging import log_action, span
from paintcal.domain.create_models import UserInvite
from paintcal.domain.no_work_day import NoWorkDay
from paintcal.domain.project import Project, all_tasks_project
from paintcal.domain.task import Note, Task, TaskTemplate
from paintcal.domain.update_models import TaskUpdate, UserProfileUpdate
from paintcal.domain.user import User, UserType
from paintcal.scheduling.engine import CalendarCell, CalendarEngine, DropResult
from paintcal.services import (
    no_work_day_service,
    policy,
    project_service,
    subscriptions,
    task_service,
    user_service,
)
from paintcal.services.notification_service import Notifier


logger = logging.getLogger(__name__)

T = TypeVar("T")

# Failures whose classified message is more useful than the generic one
_SPECIFIC_FAILURES = {
    ErrorCategory.VALIDATION_FAILED,
    ErrorCategory.PERMISSION_DENIED,
    ErrorCategory.CASCADE_PARTIAL_FAILURE,
}


class ViewMode(StrEnum):
    """How the selected project's tasks are shown."""

    CALENDAR = "calendar"
    LIST = "list"


class DashboardSession:
    """Everything one signed-in user sees and can do."""

    def __init__(
        self,
        *,
        user: User,
        notifier: Notifier | None = None,
        subscriptions_manager: SubscriptionManager | None = None,
        scroll_by: Callable[[int], None] | None = None,
        print_hook: Callable[[list[CalendarCell]], None] | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.user = user
        self.notifier = notifier or Notifier()
        self._subs = subscriptions_manager or SubscriptionManager()
        self._print_hook = print_hook
        self._background: set[asyncio.Task] = set()

        self.users: list[User] = []
        self.crew_members: list[User] = []
        self.task_templates: list[TaskTemplate] = []
        self.projects: list[Project] = []
        self.tasks: list[Task] = []
        self.crew_tasks: list[Task] = []
        self.no_work_days: list[NoWorkDay] = []
        self.selected_project: Project | None = None
        self.view_mode = ViewMode.CALENDAR
        self.loading: set[str] = set()

        self.engine = CalendarEngine(
            update_task=self._schedule_task,
            notifier=self.notifier,
            scroll_by=scroll_by,
            today=today,
        )
        self._apply_capabilities()

    # Lifecycle

    @property
    def capabilities(self) -> policy.Capabilities:
        return policy.capabilities_for(self.user)

    @property
    def calendar_tasks(self) -> list[Task]:
        """Tasks the calendar shows: crew see their own assignments."""
        return self.crew_tasks if self.user.user_type == UserType.CREW else self.tasks

    async def start(self) -> None:
        """Open every live query for the current user."""
        with span("dashboard.start"):
            await self._subs.subscribe(
                "crew_members",
                subscriptions.crew_members_spec(),
                model=User,
                on_snapshot=self._on_crew_members,
            )
            await self._subs.subscribe(
                "task_templates",
                subscriptions.task_templates_spec(),
                model=TaskTemplate,
                on_snapshot=self._on_task_templates,
            )
            await self._subs.subscribe(
                "no_work_days",
                subscriptions.no_work_days_spec(),
                model=NoWorkDay,
                on_snapshot=self._on_no_work_days,
            )
            await self._subscribe_user_scoped()
            log_action(logger, "info", "Dashboard started", actor=self.user, slots=self._subs.active_slots())

    async def _subscribe_user_scoped(self) -> None:
        await self._subs.subscribe("users", subscriptions.users_spec(self.user), model=User, on_snapshot=self._on_users)
        await self._subs.subscribe(
            "projects",
            subscriptions.projects_spec(self.user),
            model=Project,
            on_snapshot=self._on_projects,
        )
        await self._subs.subscribe(
            "crew_tasks",
            subscriptions.crew_tasks_spec(self.user),
            model=Task,
            on_snapshot=self._on_crew_tasks,
        )
        await self._resubscribe_tasks()

    async def _resubscribe_tasks(self) -> None:
        await self._subs.subscribe(
            "tasks",
            subscriptions.tasks_spec(self.user, self.selected_project),
            model=Task,
            on_snapshot=self._on_tasks,
        )

    async def set_user(self, user: User) -> None:
        """Swap in a changed profile (e.g. after an admin changed its type)."""
        if user.id != self.user.id:
            self.selected_project = None
        self.user = user
        self._apply_capabilities()
        await self._subscribe_user_scoped()

    async def settled(self) -> None:
        """Wait for queued re-subscriptions and for every live query to catch up."""
        while True:
            await self._subs.settled()
            if not self._background:
                return
            # Snapshots delivered while settling may queue re-subscriptions
            await asyncio.gather(*list(self._background))

    async def close(self) -> None:
        """Tear down every live query, the drag state and pending toasts."""
        for pending in list(self._background):
            pending.cancel()
        await asyncio.gather(*self._background, return_exceptions=True)
        await self._subs.close()
        await self.engine.close()
        self.notifier.clear()
        log_action(logger, "info", "Dashboard closed", actor=self.user)

    async def __aenter__(self) -> "DashboardSession":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _apply_capabilities(self) -> None:
        caps = self.capabilities
        self.engine.can_drag = caps.can_drag
        self.engine.read_only = caps.read_only
        self.engine.is_all_tasks = self.selected_project is not None and self.selected_project.is_all_tasks

    def _in_background(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    # Snapshot handlers

    def _on_users(self, users: list[User]) -> None:
        self.users = users

    def _on_crew_members(self, crew: list[User]) -> None:
        self.crew_members = crew

    def _on_task_templates(self, templates: list[TaskTemplate]) -> None:
        self.task_templates = templates

    def _on_no_work_days(self, registry: list[NoWorkDay]) -> None:
        self.no_work_days = registry
        self.engine.set_no_work_days(registry)

    def _on_projects(self, projects: list[Project]) -> None:
        self.projects = projects

        if self.user.user_type == UserType.HOMEOWNER:
            if self.selected_project is None and projects:
                self.selected_project = projects[0]
            return

        selected = self.selected_project
        if selected is not None and not selected.is_all_tasks:
            fresh = next((p for p in projects if p.id == selected.id), None)
            if fresh is None:
                logger.info("Selected project was deleted", extra={"project_id": selected.id})
                self.selected_project = None
                self._apply_capabilities()
                self._in_background(self._resubscribe_tasks())
            else:
                self.selected_project = fresh

    def _on_tasks(self, tasks: list[Task]) -> None:
        self.tasks = tasks
        if self.user.user_type != UserType.CREW:
            self.engine.set_tasks(tasks)

    def _on_crew_tasks(self, tasks: list[Task]) -> None:
        self.crew_tasks = tasks
        if self.user.user_type == UserType.CREW:
            self.engine.set_tasks(tasks)

    # Navigation and view state

    async def select_project(self, project: Project | None) -> None:
        """Show ``project``'s tasks; the previous task query is cancelled first."""
        if project is not None and project.is_all_tasks and not self.capabilities.can_view_all_tasks:
            msg = "Permission denied: can_view_all_tasks"
            raise PermissionError(msg)
        self.selected_project = project
        self.engine.select(None)
        self._apply_capabilities()
        await self._resubscribe_tasks()

    async def select_all_tasks(self) -> None:
        await self.select_project(all_tasks_project())

    def select_task(self, task: Task | None) -> None:
        self.engine.select(task)

    def set_view_mode(self, mode: ViewMode) -> None:
        self.view_mode = mode

    def print_calendar(self) -> list[CalendarCell]:
        """Hand the current month view to the host's print renderer."""
        cells = self.engine.month_view()
        if self._print_hook is not None:
            self._print_hook(cells)
        return cells

    # Actions

    async def _run_action(
        self,
        action: str,
        operation: Awaitable[T],
        *,
        failure: str,
        success: str | None = None,
    ) -> T | None:
        """Await ``operation`` and report the outcome as a toast.

        Failures are logged and shown, never raised. The loading marker for
        ``action`` is always cleared.
        """
        self.loading.add(action)
        try:
            result = await operation
        except Exception as e:
            error_response = classify_error_with_response(e)
            log_action(
                logger,
                "error",
                f"Dashboard action failed: {action}",
                actor=self.user,
                error=str(e),
                error_code=error_response.code,
            )
            self.notifier.error(error_response.message if error_response.category in _SPECIFIC_FAILURES else failure)
            return None
        else:
            if success:
                self.notifier.success(success)
            return result
        finally:
            self.loading.discard(action)

    async def _schedule_task(self, task_id: str, update: TaskUpdate) -> Task:
        return await task_service.update_fields(task_id=task_id, updates=update, actor=self.user)

    async def drop_on(self, day: date) -> DropResult:
        """Drop the dragged task on ``day``."""
        self.loading.add("drop")
        try:
            return await self.engine.drop(day)
        finally:
            self.loading.discard("drop")

    async def create_project(self, *, name: str, customer: str) -> Project | None:
        project = await self._run_action(
            "create_project",
            project_service.create_project(actor=self.user, name=name, customer=customer),
            failure="Error creating project. Please try again.",
        )
        if project is not None:
            await self.select_project(project)
        return project

    async def delete_project(self, project_id: str) -> bool:
        deleted = await self._run_action(
            "delete_project",
            project_service.delete_project(actor=self.user, project_id=project_id),
            failure="Error deleting project. Please try again.",
            success="Project deleted successfully",
        )
        if deleted is None:
            return False
        if self.selected_project is not None and self.selected_project.id == project_id:
            await self.select_project(None)
        return True

    async def add_task_from_template(self, template_id: str) -> Task | None:
        project = self.selected_project
        template = next((t for t in self.task_templates if t.id == template_id), None)
        if project is None or template is None:
            return None
        return await self._run_action(
            "add_task",
            task_service.create_from_template(project=project, template=template, actor=self.user),
            failure="Error adding task. Please try again.",
        )

    async def update_task(self, task_id: str, updates: TaskUpdate) -> Task | None:
        return await self._run_action(
            "update_task",
            task_service.update_fields(task_id=task_id, updates=updates, actor=self.user),
            failure="Error updating task. Please try again.",
        )

    async def toggle_assignment(self, task: Task, crew_name: str) -> Task | None:
        return await self._run_action(
            "update_task",
            task_service.toggle_assignment(task=task, crew_name=crew_name, actor=self.user),
            failure="Error updating task. Please try again.",
        )

    async def rename_task(self, task: Task, custom_name: str) -> Task | None:
        return await self._run_action(
            "update_task",
            task_service.rename_custom_task(
                task=task,
                custom_name=custom_name,
                templates=self.task_templates,
                actor=self.user,
            ),
            failure="Error updating task. Please try again.",
        )

    async def delete_task(self, task_id: str) -> bool:
        done = await self._run_action(
            "delete_task",
            self._delete_task(task_id),
            failure="Error deleting task. Please try again.",
        )
        return done is not None

    async def _delete_task(self, task_id: str) -> str:
        await task_service.delete_task(task_id=task_id, actor=self.user)
        self.engine.clear_selection_if(task_id)
        return task_id

    async def add_note(self, task_id: str, text: str) -> Note | None:
        return await self._run_action(
            "add_note",
            task_service.append_note(task_id=task_id, text=text, actor=self.user),
            failure="Error adding note. Please try again.",
        )

    async def update_profile(self, updates: UserProfileUpdate) -> User | None:
        user = await self._run_action(
            "update_profile",
            user_service.update_user_profile(uid=self.user.id, updates=updates),
            failure="Error updating profile. Please try again.",
        )
        if user is not None:
            await self.set_user(user)
        return user

    async def add_no_work_day(self, day: str, reason: str = "") -> NoWorkDay | None:
        return await self._run_action(
            "add_no_work_day",
            no_work_day_service.add_no_work_day(actor=self.user, day=day, reason=reason, registry=self.no_work_days),
            failure="Error adding no-work day",
            success="No-work day added successfully!",
        )

    async def delete_no_work_day(self, no_work_day_id: str) -> bool:
        done = await self._run_action(
            "delete_no_work_day",
            self._delete_no_work_day(no_work_day_id),
            failure="Error removing no-work day",
            success="No-work day removed",
        )
        return done is not None

    async def _delete_no_work_day(self, no_work_day_id: str) -> str:
        await no_work_day_service.delete_no_work_day(actor=self.user, no_work_day_id=no_work_day_id)
        return no_work_day_id

    def no_work_days_split(self, today: date | None = None) -> tuple[list[NoWorkDay], list[NoWorkDay]]:
        """(upcoming, past) no-work days for the management panel."""
        return no_work_day_service.split_upcoming_past(self.no_work_days, today or date.today())

    async def invite_user(self, invite: UserInvite) -> dict | None:
        return await self._run_action(
            "invite_user",
            user_service.invite_user(actor=self.user, invite=invite),
            failure="Error creating user. Please try again.",
            success=f"User {invite.display_name} created successfully!",
        )

    async def set_user_disabled(self, user_id: str, *, disabled: bool) -> User | None:
        return await self._run_action(
            f"user:{user_id}",
            user_service.set_user_disabled(actor=self.user, user_id=user_id, disabled=disabled),
            failure="Error updating user. Please try again.",
            success=f"User {'disabled' if disabled else 'enabled'} successfully!",
        )

    async def set_user_type(self, user_id: str, user_type: UserType, project_id: str | None = None) -> User | None:
        return await self._run_action(
            f"user:{user_id}",
            user_service.set_user_type(actor=self.user, user_id=user_id, user_type=user_type, project_id=project_id),
            failure="Error updating user. Please try again.",
            success="User type updated successfully!",
        )
