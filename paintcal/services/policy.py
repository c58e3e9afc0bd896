"""Role to capability table.

Permission checks for actions go through require() and capabilities_for().
Data scoping (which queries a role gets, the homeowner's single project, the
crew calendar) still branches on ``user_type`` in subscriptions, the dashboard
and the API router.
"""

import logging
from dataclasses import dataclass, fields

from paintcal.domain.user import User, UserType


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Capabilities:
    """What a user may do. All flags default to denied."""

    can_edit_task: bool = False  # status, dates, job details
    can_add_note: bool = False
    can_rename_task: bool = False  # only tasks created from the "Other" template
    can_assign: bool = False
    can_create_task: bool = False
    can_delete_task: bool = False
    can_drag: bool = False
    can_create_project: bool = False
    can_delete_project: bool = False
    can_see_all_projects: bool = False
    can_view_all_tasks: bool = False
    can_see_users: bool = False
    can_manage_users: bool = False
    can_manage_no_work_days: bool = False

    @property
    def read_only(self) -> bool:
        """True when the user can change nothing."""
        return not any(getattr(self, f.name) for f in fields(self) if f.name != "can_see_all_projects")


NO_CAPABILITIES = Capabilities()

CAPABILITIES: dict[UserType, Capabilities] = {
    UserType.ADMIN: Capabilities(
        can_edit_task=True,
        can_add_note=True,
        can_rename_task=True,
        can_assign=True,
        can_create_task=True,
        can_delete_task=True,
        can_drag=True,
        can_create_project=True,
        can_delete_project=True,
        can_see_all_projects=True,
        can_view_all_tasks=True,
        can_see_users=True,
        can_manage_users=True,
        can_manage_no_work_days=True,
    ),
    UserType.CREW: Capabilities(
        can_edit_task=True,
        can_add_note=True,
        can_rename_task=True,
        can_see_all_projects=True,
    ),
    UserType.HOMEOWNER: NO_CAPABILITIES,
}


def capabilities_for(user: User | None) -> Capabilities:
    """Capabilities of ``user``; anonymous and disabled users get none."""
    if user is None or user.disabled:
        return NO_CAPABILITIES
    return CAPABILITIES.get(user.user_type, NO_CAPABILITIES)


def require(user: User | None, capability: str) -> User:
    """Return ``user`` if it holds ``capability``, else raise PermissionError."""
    if user is None or not getattr(capabilities_for(user), capability):
        logger.warning(
            "Permission denied",
            extra={"user_id": user.id if user else None, "capability": capability},
        )
        msg = f"Permission denied: {capability}"
        raise PermissionError(msg)
    return user
