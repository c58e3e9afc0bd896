"""Project domain models."""

from pydantic import BaseModel, Field

from paintcal.core.config import constants


class Project(BaseModel):
    """Project data transfer object."""

    id: str = Field(..., description="Unique project ID")
    name: str = Field(..., description="Project name (e.g. 'Maple St exterior')")
    customer: str = Field(default="", description="Customer name")
    owner_id: str | None = Field(default=None, description="ID of the admin who created the project")
    owner_email: str | None = Field(default=None, description="Email of the admin who created the project")
    created_at: str | None = Field(default=None, description="Creation timestamp (ISO format)")
    is_all_tasks: bool = Field(default=False, description="True only for the synthetic all-tasks project")


def all_tasks_project() -> Project:
    """The synthetic project that shows every task across all projects."""
    return Project(
        id=constants.ALL_TASKS_PROJECT_ID,
        name=constants.ALL_TASKS_PROJECT_NAME,
        is_all_tasks=True,
    )
