"""Update models for document store operations."""

from datetime import date
from typing import Any

from pydantic import BaseModel, field_serializer, field_validator

from paintcal.domain.task import TaskStatus, coerce_wire_date
from paintcal.domain.user import UserType


def _reject_null(value: Any) -> Any:  # noqa: ANN401
    if value is None:
        msg = "Field cannot be null; omit it to leave it unchanged"
        raise ValueError(msg)
    return value


class TaskUpdate(BaseModel):
    """Partial task update; only fields explicitly set are written."""

    name: str | None = None
    status: TaskStatus | None = None
    assigned_to: list[str] | None = None
    start_date: date | None = None
    due_date: date | None = None
    job_details: str | None = None
    custom_name: str | None = None

    @field_validator("name", "status", "assigned_to", "job_details", "custom_name", mode="before")
    @classmethod
    def reject_null(cls, v: Any) -> Any:  # noqa: ANN401
        """Omit a field to leave it unchanged; null would delete it from the stored document."""
        return _reject_null(v)

    @field_validator("start_date", "due_date", mode="before")
    @classmethod
    def parse_wire_date(cls, v: Any) -> date | None:  # noqa: ANN401
        """Accept '' to clear a date."""
        return coerce_wire_date(v)

    @field_serializer("start_date", "due_date")
    def serialize_wire_date(self, v: date | None) -> str:
        """Cleared dates are stored as ''."""
        return v.isoformat() if v else ""

    def to_fields(self) -> dict[str, Any]:
        """Wire fields for the fields the caller set."""
        return self.model_dump(mode="json", exclude_unset=True)


class UserProfileUpdate(BaseModel):
    """Self-service profile edit."""

    display_name: str | None = None
    role: str | None = None

    @field_validator("display_name", "role", mode="before")
    @classmethod
    def reject_null(cls, v: Any) -> Any:  # noqa: ANN401
        return _reject_null(v)

    def to_fields(self) -> dict[str, Any]:
        """Wire fields for the fields the caller set."""
        return self.model_dump(mode="json", exclude_unset=True)


class UserAdminUpdate(BaseModel):
    """Admin-only user changes."""

    user_type: UserType | None = None
    disabled: bool | None = None
    project_id: str | None = None

    @field_validator("user_type", "disabled", mode="before")
    @classmethod
    def reject_null(cls, v: Any) -> Any:  # noqa: ANN401
        return _reject_null(v)

    def to_fields(self) -> dict[str, Any]:
        """Wire fields for the fields the caller set."""
        return self.model_dump(mode="json", exclude_unset=True)
