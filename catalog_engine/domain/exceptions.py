"""Domain exceptions.

All domain-level errors that represent business rule violations.
Validation problems in seller input are returned as data; these
exceptions cover invalid state transitions and missing records that
the API layer turns into error responses.
"""

from typing import Any


class DomainError(Exception):
    """Base class for all domain exceptions.

    All domain errors should inherit from this class to allow
    catching domain-specific errors at the application layer.
    """

    status_code: int = 400
    error_code: str = "DOMAIN_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize domain error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ============================================================================
# State Machine Errors
# ============================================================================


class InvalidStateTransitionError(DomainError):
    """Raised when an invalid state transition is attempted.

    This error indicates that the requested operation cannot be performed
    in the current state of the entity.
    """

    status_code = 409
    error_code = "INVALID_STATE_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        current_state: str,
        target_state: str,
        allowed_transitions: list[str] | None = None,
    ) -> None:
        """Initialize invalid state transition error.

        Args:
            entity_type: Type of entity (e.g., "ImportJob", "ExportJob").
            entity_id: ID of the entity.
            current_state: Current state of the entity.
            target_state: Attempted target state.
            allowed_transitions: List of allowed target states from current state.
        """
        allowed = allowed_transitions or []
        message = (
            f"Cannot transition {entity_type}({entity_id}) "
            f"from '{current_state}' to '{target_state}'. "
            f"Allowed transitions: {allowed}"
        )
        super().__init__(
            message,
            details={
                "entity_type": entity_type,
                "entity_id": entity_id,
                "current_state": current_state,
                "target_state": target_state,
                "allowed_transitions": allowed,
            },
        )


# ============================================================================
# Category Errors
# ============================================================================


class CategoryError(DomainError):
    """Base class for category-related errors."""

    pass


class CategoryNotFoundError(CategoryError):
    """Raised when a category does not exist."""

    status_code = 404
    error_code = "CATEGORY_NOT_FOUND"

    def __init__(self, category_id: int) -> None:
        """Initialize category not found error.

        Args:
            category_id: ID of the missing category.
        """
        super().__init__(
            f"Category {category_id} not found",
            details={"category_id": category_id},
        )


# ============================================================================
# Job Errors
# ============================================================================


class JobError(DomainError):
    """Base class for import/export job errors."""

    pass


class ImportJobNotFoundError(JobError):
    """Raised when an import job is missing or belongs to another seller."""

    status_code = 404
    error_code = "IMPORT_JOB_NOT_FOUND"

    def __init__(self, job_id: str) -> None:
        """Initialize import job not found error.

        Args:
            job_id: ID of the import job.
        """
        super().__init__(
            f"Import job {job_id} not found",
            details={"job_id": job_id},
        )


class ExportJobNotFoundError(JobError):
    """Raised when an export job is missing or belongs to another seller."""

    status_code = 404
    error_code = "EXPORT_JOB_NOT_FOUND"

    def __init__(self, job_id: str) -> None:
        """Initialize export job not found error.

        Args:
            job_id: ID of the export job.
        """
        super().__init__(
            f"Export job {job_id} not found",
            details={"job_id": job_id},
        )


class UnsupportedFileTypeError(JobError):
    """Raised when an uploaded file has an extension the parser cannot read."""

    error_code = "UNSUPPORTED_FILE_TYPE"

    def __init__(self, file_name: str) -> None:
        """Initialize unsupported file type error.

        Args:
            file_name: Name of the uploaded file.
        """
        super().__init__(
            f"Unsupported file type: {file_name}. Upload a CSV, XLS or XLSX file.",
            details={"file_name": file_name},
        )


class UnreadableFileError(JobError):
    """Raised when an uploaded file cannot be decoded as its declared type."""

    error_code = "UNREADABLE_FILE"

    def __init__(self, file_name: str, reason: str) -> None:
        """Initialize unreadable file error.

        Args:
            file_name: Name of the uploaded file.
            reason: Short description of the decoding problem.
        """
        super().__init__(
            f"The file '{file_name}' could not be read: {reason}",
            details={"file_name": file_name},
        )
