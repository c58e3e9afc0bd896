"""Task, note and task template domain models."""

from datetime import date
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, field_serializer, field_validator


class TaskStatus(StrEnum):
    """Task progress state."""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class TaskCategory(StrEnum):
    """Phase of the paint job a task belongs to."""

    PREP = "Prep"
    PAINT = "Paint"
    FINAL_WALKTHROUGH = "Final Walkthrough"


CATEGORIES: list[str] = [c.value for c in TaskCategory]

# Fields whose change makes an open detail panel refresh
RECONCILED_FIELDS: tuple[str, ...] = ("status", "assigned_to", "start_date", "due_date", "job_details", "notes")


def coerce_wire_date(value: Any) -> date | None:  # noqa: ANN401
    """Turn a wire value ('' / 'YYYY-MM-DD' / date) into a date or None."""
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        # ISO instants keep only their calendar part
        return date.fromisoformat(value[:10])
    raise ValueError(f"Invalid date value: {value!r}")


class Note(BaseModel):
    """Append-only communication note on a task."""

    id: str = Field(..., description="Unique note ID")
    text: str = Field(..., description="Note body")
    author: str = Field(..., description="Display name of the author")
    date: str = Field(..., description="Display date rendered when the note was written (M/D/YYYY)")
    timestamp: str = Field(..., description="When the note was written (ISO format)")


class TaskTemplate(BaseModel):
    """Reusable task definition instantiated into projects."""

    id: str = Field(..., description="Unique template ID")
    name: str = Field(..., description="Template name (e.g. 'Powerwash')")
    category: str | None = Field(default=None, description="Task category; tasks default to Paint when absent")
    estimated_duration: float | None = Field(default=None, description="Estimated hours")
    order: int = Field(default=0, description="Display order within its category")
    active: bool = Field(default=True, description="Inactive templates are hidden from pickers")


class Task(BaseModel):
    """Task data transfer object.

    Dates are calendar values in memory and ``YYYY-MM-DD`` (or ``""`` when
    unset) on the wire.
    """

    id: str = Field(..., description="Unique task ID")
    project_id: str = Field(..., description="Owning project ID")
    template_id: str | None = Field(default=None, description="Template the task was created from")
    name: str = Field(..., description="Task name")
    category: str = Field(default=TaskCategory.PAINT, description="Task category")
    status: TaskStatus = Field(default=TaskStatus.PENDING, description="Progress state")
    assigned_to: list[str] = Field(default_factory=list, description="Ordered display names of assigned crew")
    start_date: date | None = Field(default=None, description="First day of the task's span")
    due_date: date | None = Field(default=None, description="Last day of the task's span")
    estimated_duration: float | None = Field(default=None, description="Estimated hours")
    job_details: str = Field(default="", description="Free-text job details")
    notes: list[Note] = Field(default_factory=list, description="Append-only notes, oldest first")
    custom_name: str | None = Field(default=None, description="Custom name for tasks from the 'Other' template")
    created_at: str | None = Field(default=None, description="Creation timestamp (ISO format)")
    created_by: str | None = Field(default=None, description="Display name of the creator")
    last_updated_at: str | None = Field(default=None, description="Last write timestamp (ISO format)")
    last_updated_by: str | None = Field(default=None, description="Display name of the last writer")

    @field_validator("start_date", "due_date", mode="before")
    @classmethod
    def parse_wire_date(cls, v: Any) -> date | None:  # noqa: ANN401
        """Accept '' for unset dates."""
        return coerce_wire_date(v)

    @field_validator("assigned_to", "notes", mode="before")
    @classmethod
    def default_empty_list(cls, v: Any) -> Any:  # noqa: ANN401
        """Treat a stored null list as empty."""
        return [] if v is None else v

    @field_validator("job_details", mode="before")
    @classmethod
    def default_empty_text(cls, v: Any) -> Any:  # noqa: ANN401
        """Treat stored null text as empty."""
        return "" if v is None else v

    @field_serializer("start_date", "due_date")
    def serialize_wire_date(self, v: date | None) -> str:
        """Serialize dates to the wire format."""
        return v.isoformat() if v else ""

    @property
    def is_scheduled(self) -> bool:
        """A task is placed on the calendar only when both ends of its span are set."""
        return self.start_date is not None and self.due_date is not None

    def tracked_state(self) -> dict[str, Any]:
        """The subset of fields the detail panel reconciles against."""
        return self.model_dump(mode="json", include=set(RECONCILED_FIELDS))
