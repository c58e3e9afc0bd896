"""User domain models and enums."""

from enum import StrEnum

from pydantic import BaseModel, Field, field_validator


# Constants for validation
MAX_NAME_LENGTH = 80


class UserType(StrEnum):
    """What a user can see and do in the app."""

    ADMIN = "admin"
    CREW = "crew"
    HOMEOWNER = "homeowner"


class User(BaseModel):
    """User profile data transfer object."""

    id: str = Field(..., description="Unique user ID (the identity provider's uid)")
    email: str = Field(default="", description="Sign-in email address")
    display_name: str = Field(default="", description="Name shown in assignment lists and provenance stamps")
    role: str = Field(default="", description="Free-text job role (e.g. 'Painter')")
    user_type: UserType = Field(default=UserType.CREW, description="Access level")
    project_id: str | None = Field(default=None, description="Project a homeowner may view")
    disabled: bool = Field(default=False, description="Disabled users keep their profile but lose all access")
    created_at: str | None = Field(default=None, description="Profile creation timestamp (ISO format)")
    updated_at: str | None = Field(default=None, description="Last admin update timestamp (ISO format)")

    @field_validator("display_name")
    @classmethod
    def validate_display_name(cls, v: str) -> str:
        """Trim the display name and cap its length."""
        v = v.strip()
        if len(v) > MAX_NAME_LENGTH:
            raise ValueError(f"Name too long (max {MAX_NAME_LENGTH} characters)")
        return v

    @property
    def actor_name(self) -> str:
        """Name stamped on writes made by this user."""
        return self.display_name or self.email
