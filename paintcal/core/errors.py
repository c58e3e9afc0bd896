"""Error types and classification utilities for store and scheduling failures."""

from enum import Enum

from pydantic import BaseModel, ValidationError


class DatabaseError(RuntimeError):
    """Raised when a document store operation fails."""


class RecordNotFoundError(DatabaseError, KeyError):
    """Raised when a document does not exist in its collection."""

    def __str__(self) -> str:
        # KeyError quotes its message; keep the plain text for logs and toasts
        return str(self.args[0]) if self.args else ""


class CascadeDeleteError(DatabaseError):
    """Raised when a project's task cascade could not be completed."""

    def __init__(self, project_id: str, *, deleted_task_ids: list[str], failed_task_ids: list[str]) -> None:
        self.project_id = project_id
        self.deleted_task_ids = deleted_task_ids
        self.failed_task_ids = failed_task_ids
        super().__init__(
            f"Cascade delete of project {project_id} aborted: "
            f"{len(failed_task_ids)} task deletion(s) failed, {len(deleted_task_ids)} already deleted"
        )


class ErrorCategory(Enum):
    """Categories of errors surfaced to users and operators."""

    VALIDATION_FAILED = "validation_failed"
    RECORD_NOT_FOUND = "record_not_found"
    PERMISSION_DENIED = "permission_denied"
    REMOTE_WRITE_FAILED = "remote_write_failed"
    SUBSCRIPTION_FAILED = "subscription_failed"
    CASCADE_PARTIAL_FAILURE = "cascade_partial_failure"
    NETWORK_ERROR = "network_error"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCode:
    """Error codes for specific error conditions."""

    ERR_VALIDATION = "ERR_VALIDATION"
    ERR_NOT_FOUND = "ERR_NOT_FOUND"
    ERR_PERMISSION_DENIED = "ERR_PERMISSION_DENIED"
    ERR_REMOTE_WRITE = "ERR_REMOTE_WRITE"
    ERR_SUBSCRIPTION = "ERR_SUBSCRIPTION"
    ERR_CASCADE_PARTIAL = "ERR_CASCADE_PARTIAL"
    ERR_NETWORK_ERROR = "ERR_NETWORK_ERROR"
    ERR_UNKNOWN = "ERR_UNKNOWN"


class ErrorResponse(BaseModel):
    """Structured error response with user-friendly messaging."""

    code: str
    category: ErrorCategory
    message: str
    suggestion: str
    severity: ErrorSeverity


_NETWORK_PHRASES = ("connection", "timeout", "network", "unreachable", "503", "502", "504")


def _validation_message(exception: ValidationError) -> str:
    """Return the first pydantic error message without the 'Value error,' prefix."""
    errors = exception.errors()
    if not errors:
        return "Invalid input."
    message = str(errors[0].get("msg", "Invalid input."))
    return message.removeprefix("Value error, ")


def classify_error_with_response(exception: Exception) -> ErrorResponse:  # noqa: PLR0911
    """Classify an error and return a structured response with recovery suggestions.

    Args:
        exception: The exception raised by a service call

    Returns:
        ErrorResponse with code, category, message, suggestion, and severity
    """
    error_str = str(exception).lower()

    if isinstance(exception, CascadeDeleteError):
        return ErrorResponse(
            code=ErrorCode.ERR_CASCADE_PARTIAL,
            category=ErrorCategory.CASCADE_PARTIAL_FAILURE,
            message="Some tasks could not be deleted, so the project was kept.",
            suggestion="Try deleting the project again.",
            severity=ErrorSeverity.HIGH,
        )

    if isinstance(exception, RecordNotFoundError):
        return ErrorResponse(
            code=ErrorCode.ERR_NOT_FOUND,
            category=ErrorCategory.RECORD_NOT_FOUND,
            message="That item no longer exists.",
            suggestion="Refresh the view; it may have been deleted by someone else.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, PermissionError):
        return ErrorResponse(
            code=ErrorCode.ERR_PERMISSION_DENIED,
            category=ErrorCategory.PERMISSION_DENIED,
            message="You don't have permission for this action.",
            suggestion="Ask an administrator if you think this is an error.",
            severity=ErrorSeverity.MEDIUM,
        )

    if isinstance(exception, ValidationError):
        return ErrorResponse(
            code=ErrorCode.ERR_VALIDATION,
            category=ErrorCategory.VALIDATION_FAILED,
            message=_validation_message(exception),
            suggestion="Correct the highlighted field and try again.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, ValueError):
        return ErrorResponse(
            code=ErrorCode.ERR_VALIDATION,
            category=ErrorCategory.VALIDATION_FAILED,
            message=str(exception),
            suggestion="Correct the input and try again.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, ConnectionError | TimeoutError) or any(p in error_str for p in _NETWORK_PHRASES):
        return ErrorResponse(
            code=ErrorCode.ERR_NETWORK_ERROR,
            category=ErrorCategory.NETWORK_ERROR,
            message="Network error occurred.",
            suggestion="Please check your connection and try again.",
            severity=ErrorSeverity.MEDIUM,
        )

    if isinstance(exception, DatabaseError):
        return ErrorResponse(
            code=ErrorCode.ERR_REMOTE_WRITE,
            category=ErrorCategory.REMOTE_WRITE_FAILED,
            message="The change could not be saved.",
            suggestion="Please try again. The calendar still shows the last saved state.",
            severity=ErrorSeverity.MEDIUM,
        )

    return ErrorResponse(
        code=ErrorCode.ERR_UNKNOWN,
        category=ErrorCategory.UNKNOWN,
        message="An unexpected error occurred.",
        suggestion="Please try again later. If the problem persists, contact support.",
        severity=ErrorSeverity.MEDIUM,
    )


def subscription_error_response(collection: str) -> ErrorResponse:
    """Build the response logged when a live query degrades to an empty list."""
    return ErrorResponse(
        code=ErrorCode.ERR_SUBSCRIPTION,
        category=ErrorCategory.SUBSCRIPTION_FAILED,
        message=f"Live updates for {collection} are unavailable.",
        suggestion="The list is shown empty until the next successful refresh.",
        severity=ErrorSeverity.HIGH,
    )
