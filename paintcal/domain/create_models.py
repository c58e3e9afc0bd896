"""Pydantic models for creating records in the document store."""

import re
from datetime import UTC, date, datetime

from pydantic import BaseModel, Field, field_validator, model_validator

from paintcal.core.config import constants, settings
from paintcal.domain.task import Note, TaskCategory, TaskStatus
from paintcal.domain.user import UserType


def utc_now_iso() -> str:
    """Current instant as an ISO-8601 string with a Z suffix."""
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


class ProjectCreate(BaseModel):
    """Pydantic model for creating a project record."""

    name: str = Field(..., description="Project name")
    customer: str = Field(..., description="Customer name")
    owner_id: str = Field(..., description="ID of the creating admin")
    owner_email: str = Field(default="", description="Email of the creating admin")
    created_at: str = Field(default_factory=utc_now_iso, description="Creation timestamp")

    @field_validator("name", "customer")
    @classmethod
    def validate_required_text(cls, v: str) -> str:
        """Project name and customer must not be blank."""
        v = v.strip()
        if not v:
            raise ValueError("Project name and customer are required")
        return v


class TaskCreate(BaseModel):
    """Pydantic model for creating a task record from a template."""

    project_id: str
    template_id: str
    name: str
    category: str = TaskCategory.PAINT
    status: TaskStatus = TaskStatus.PENDING
    assigned_to: list[str] = Field(default_factory=list)
    start_date: str = ""
    due_date: str = ""
    estimated_duration: float | None = None
    job_details: str = ""
    notes: list[Note] = Field(default_factory=list)
    created_at: str = Field(default_factory=utc_now_iso)
    created_by: str = constants.UNKNOWN_ACTOR
    last_updated_at: str = Field(default_factory=utc_now_iso)
    last_updated_by: str = constants.UNKNOWN_ACTOR


class NoWorkDayCreate(BaseModel):
    """Pydantic model for creating a no-work day record."""

    date: str = Field(..., description="Blocked date (YYYY-MM-DD)")
    reason: str = Field(default=constants.DEFAULT_NO_WORK_REASON, description="Why no work happens")
    created_at: str = Field(default_factory=utc_now_iso, description="Creation timestamp")

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: str) -> str:
        """Require a canonical ISO calendar date."""
        v = v.strip()
        if not v:
            raise ValueError("Please select a date")
        if not re.match(r"^\d{4}-\d{2}-\d{2}$", v):
            raise ValueError("Date must be in YYYY-MM-DD format")
        date.fromisoformat(v)
        return v

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, v: str) -> str:
        """Blank reasons fall back to the default; long ones are rejected."""
        v = v.strip()
        if not v:
            return constants.DEFAULT_NO_WORK_REASON
        if len(v) > settings.no_work_reason_max_length:
            raise ValueError(f"Reason too long (max {settings.no_work_reason_max_length} characters)")
        return v


class UserInvite(BaseModel):
    """Pydantic model for a pending_users invitation record."""

    email: str = Field(..., description="Email the invitee will sign in with")
    display_name: str = Field(..., description="Display name for the invitee")
    user_type: UserType = Field(default=UserType.CREW, description="Access level once signed in")
    role: str = Field(default="", description="Free-text job role")
    project_id: str | None = Field(default=None, description="Project a homeowner may view")
    created_at: str = Field(default_factory=utc_now_iso, description="Invite timestamp")

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        """Normalize and minimally validate the email address."""
        v = v.strip().lower()
        if not re.match(r"^[^@\s]+@[^@\s]+\.[^@\s]+$", v):
            raise ValueError("Invalid email address")
        return v

    @field_validator("display_name")
    @classmethod
    def validate_display_name(cls, v: str) -> str:
        """Display name is required."""
        v = v.strip()
        if not v:
            raise ValueError("Email and name are required")
        return v

    @model_validator(mode="after")
    def validate_homeowner_project(self) -> "UserInvite":
        """Homeowners can only see one project, so they must be given one."""
        if self.user_type == UserType.HOMEOWNER and not self.project_id:
            raise ValueError("Homeowners must be assigned to a project")
        if self.user_type != UserType.HOMEOWNER:
            self.project_id = None
        if not self.role and self.user_type == UserType.CREW:
            self.role = settings.default_crew_role
        return self
