"""Domain models and DTOs."""

from paintcal.domain.create_models import NoWorkDayCreate, ProjectCreate, TaskCreate, UserInvite
from paintcal.domain.no_work_day import NoWorkDay
from paintcal.domain.project import Project, all_tasks_project
from paintcal.domain.task import CATEGORIES, Note, Task, TaskCategory, TaskStatus, TaskTemplate
from paintcal.domain.update_models import TaskUpdate, UserAdminUpdate, UserProfileUpdate
from paintcal.domain.user import User, UserType


__all__ = [
    "CATEGORIES",
    "NoWorkDay",
    "NoWorkDayCreate",
    "Note",
    "Project",
    "ProjectCreate",
    "Task",
    "TaskCategory",
    "TaskCreate",
    "TaskStatus",
    "TaskTemplate",
    "TaskUpdate",
    "User",
    "UserAdminUpdate",
    "UserInvite",
    "UserProfileUpdate",
    "UserType",
    "all_tasks_project",
]
