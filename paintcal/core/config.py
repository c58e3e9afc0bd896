"""Configuration management for paintcal."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Document store
    sqlite_db_path: str = Field(default="./data/paintcal.db", description="SQLite document store path")

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")
    environment: str = Field(default="development", description="Deployment environment name")

    # Calendar behaviour
    calendar_max_visible_tasks: int = Field(
        default=4, description="Tasks rendered per month-view cell before the '+N more' indicator"
    )
    autoscroll_threshold_px: int = Field(
        default=100, description="Distance from the viewport edge that starts drag auto-scroll"
    )
    autoscroll_step_px: int = Field(default=10, description="Pixels scrolled per auto-scroll tick")
    autoscroll_tick_ms: int = Field(default=16, description="Auto-scroll tick interval in milliseconds")

    # Notifications
    toast_duration_ms: int = Field(default=3000, description="How long a transient notification stays visible")

    # Users
    default_crew_role: str = Field(default="Painter", description="Role given to self-registered crew members")

    # No-work days
    no_work_reason_max_length: int = Field(default=50, description="Maximum length of a no-work day reason")

    def require_credential(self, field_name: str, service_name: str) -> str:
        """Validate that a required credential is set, raising a clear error if missing.

        Args:
            field_name: Name of the field to check
            service_name: Human-readable service name for error message

        Returns:
            The credential value

        Raises:
            ValueError: If the credential is None or empty
        """
        value = getattr(self, field_name)
        if not value:
            raise ValueError(
                f"{service_name} credential not configured. "
                f"Set {field_name.upper()} environment variable or add to .env file."
            )
        return value

    @property
    def is_production(self) -> bool:
        """Whether the app runs in production."""
        return self.environment.lower() == "production"


# Application Constants
class Constants:
    """Application-wide constants."""

    # Collections
    USERS_COLLECTION: str = "users"
    PENDING_USERS_COLLECTION: str = "pending_users"
    PROJECTS_COLLECTION: str = "projects"
    TASKS_COLLECTION: str = "tasks"
    TASK_TEMPLATES_COLLECTION: str = "task_templates"
    NO_WORK_DAYS_COLLECTION: str = "no_work_days"

    # Synthetic aggregate project
    ALL_TASKS_PROJECT_ID: str = "all-tasks"
    ALL_TASKS_PROJECT_NAME: str = "All Tasks"

    # Task defaults
    OTHER_TEMPLATE_NAME: str = "Other"  # Only tasks from this template may be renamed
    UNKNOWN_ACTOR: str = "Unknown"
    UNKNOWN_NOTE_AUTHOR: str = "Unknown user"

    # No-work days
    DEFAULT_NO_WORK_REASON: str = "No Work"

    # Live queries
    SNAPSHOT_PAGE_SIZE: int = 1000  # Max records per snapshot query
    CASCADE_PAGE_SIZE: int = 200  # Page size when enumerating tasks for cascade delete

    # HTTP
    USER_ID_HEADER: str = "X-User-Id"

    # Paths
    PROJECT_ROOT: Path = Path(__file__).parent.parent.parent


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()
