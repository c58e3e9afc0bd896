"""No-work day domain model."""

from pydantic import BaseModel, Field


class NoWorkDay(BaseModel):
    """A date on which nothing may be scheduled."""

    id: str = Field(..., description="Unique record ID")
    date: str = Field(..., description="Blocked date as YYYY-MM-DD; matched by exact string equality")
    reason: str = Field(default="", description="Why no work happens (holiday, weather, ...)")
    created_at: str | None = Field(default=None, description="Creation timestamp (ISO format)")
