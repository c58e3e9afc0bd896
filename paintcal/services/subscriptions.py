"""Role-scoped live query definitions for every collection.

Each builder returns the QuerySpec a user may see, or ``None`` when the user
may see nothing (the slot then holds an empty list and no listener).
"""

from datetime import date

from paintcal.core.config import constants
from paintcal.core.db_client import sanitize_param
from paintcal.core.live_query import QuerySpec
from paintcal.domain.project import Project
from paintcal.domain.task import Task
from paintcal.domain.user import User, UserType
from paintcal.services import policy


def sort_unscheduled_last(tasks: list[Task]) -> list[Task]:
    """Order by start date with tasks lacking one at the end (stable)."""
    return sorted(tasks, key=lambda t: (t.start_date is None, t.start_date or date.min))


def users_spec(user: User | None) -> QuerySpec | None:
    """All user profiles, for user management."""
    if not policy.capabilities_for(user).can_see_users:
        return None
    return QuerySpec(collection=constants.USERS_COLLECTION, sort="display_name")


def crew_members_spec() -> QuerySpec:
    """Crew profiles for assignment pickers; visible to everyone."""
    return QuerySpec(collection=constants.USERS_COLLECTION, filter_query=f'user_type = "{UserType.CREW}"')


def task_templates_spec() -> QuerySpec:
    return QuerySpec(collection=constants.TASK_TEMPLATES_COLLECTION, sort="name")


def projects_spec(user: User | None) -> QuerySpec | None:
    """Admins and crew see every project, newest first; homeowners only their own."""
    if user is None or user.disabled:
        return None
    if policy.capabilities_for(user).can_see_all_projects:
        return QuerySpec(collection=constants.PROJECTS_COLLECTION, sort="-created_at")
    if user.user_type == UserType.HOMEOWNER and user.project_id:
        return QuerySpec(
            collection=constants.PROJECTS_COLLECTION,
            filter_query=f'id = "{sanitize_param(user.project_id)}"',
        )
    return None


def _project_tasks(project_id: str) -> QuerySpec:
    return QuerySpec(
        collection=constants.TASKS_COLLECTION,
        filter_query=f'project_id = "{sanitize_param(project_id)}"',
        sort="start_date",
    )


def tasks_spec(user: User | None, selected_project: Project | None) -> QuerySpec | None:
    """Tasks for the calendar.

    Homeowners always get their own project's tasks. The all-tasks project
    reads every task and sorts in memory so unscheduled tasks come last.
    Otherwise the selected project's tasks, or nothing without a selection.
    """
    if user is not None and user.disabled:
        return None
    if user is not None and user.user_type == UserType.HOMEOWNER:
        return _project_tasks(user.project_id) if user.project_id else None
    if selected_project is not None and selected_project.is_all_tasks:
        return QuerySpec(collection=constants.TASKS_COLLECTION, client_sort=sort_unscheduled_last)
    if selected_project is None:
        return None
    return _project_tasks(selected_project.id)


def crew_tasks_spec(user: User | None) -> QuerySpec | None:
    """Tasks whose assignment list contains a crew member's display name."""
    if user is None or user.disabled or user.user_type != UserType.CREW or not user.display_name:
        return None
    return QuerySpec(
        collection=constants.TASKS_COLLECTION,
        filter_query=f'assigned_to ?= "{sanitize_param(user.display_name)}"',
        sort="start_date",
    )


def no_work_days_spec() -> QuerySpec:
    return QuerySpec(collection=constants.NO_WORK_DAYS_COLLECTION, sort="date")
