"""State machines for catalog jobs and products.

Deterministic state machines that define valid state transitions
for import jobs, export jobs and product workflow states. Only the
background worker moves a job into processing or a terminal state.
"""

from enum import Enum

from catalog_engine.domain.exceptions import InvalidStateTransitionError


# ============================================================================
# Import Job State Machine
# ============================================================================


class ImportJobStatus(str, Enum):
    """Bulk import job lifecycle states.

    State diagram:
        PENDING_CONFIRMATION
          │
          │ confirm (seller)
          ▼
        QUEUED
          │
          │ pick up (worker)
          ▼
        PROCESSING ──────────────► FAILED
          │
          │ finish (worker)
          ▼
        COMPLETED
    """

    PENDING_CONFIRMATION = "pending_confirmation"
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    def can_transition_to(self, target: "ImportJobStatus") -> bool:
        """Check if transition to target state is valid.

        Args:
            target: Target state to transition to.

        Returns:
            True if transition is valid.
        """
        return target in _IMPORT_TRANSITIONS.get(self, set())

    def allowed_transitions(self) -> list["ImportJobStatus"]:
        """Get list of valid target states.

        Returns:
            List of states that can be transitioned to.
        """
        return list(_IMPORT_TRANSITIONS.get(self, set()))

    def is_terminal(self) -> bool:
        """Check if this is a terminal (final) state.

        Returns:
            True if no further transitions are possible.
        """
        return len(_IMPORT_TRANSITIONS.get(self, set())) == 0


# Import job state transitions
_IMPORT_TRANSITIONS: dict[ImportJobStatus, set[ImportJobStatus]] = {
    ImportJobStatus.PENDING_CONFIRMATION: {ImportJobStatus.QUEUED},
    ImportJobStatus.QUEUED: {ImportJobStatus.PROCESSING},
    ImportJobStatus.PROCESSING: {ImportJobStatus.COMPLETED, ImportJobStatus.FAILED},
    ImportJobStatus.COMPLETED: set(),  # Terminal state
    ImportJobStatus.FAILED: set(),  # Terminal state
}


# ============================================================================
# Export Job State Machine
# ============================================================================


class ExportJobStatus(str, Enum):
    """Catalog export job lifecycle states.

    State diagram:
        QUEUED ──► PROCESSING ──► COMPLETED
                       │
                       └────────► FAILED
    """

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    def can_transition_to(self, target: "ExportJobStatus") -> bool:
        """Check if transition to target state is valid.

        Args:
            target: Target state to transition to.

        Returns:
            True if transition is valid.
        """
        return target in _EXPORT_TRANSITIONS.get(self, set())

    def allowed_transitions(self) -> list["ExportJobStatus"]:
        """Get list of valid target states.

        Returns:
            List of states that can be transitioned to.
        """
        return list(_EXPORT_TRANSITIONS.get(self, set()))

    def is_terminal(self) -> bool:
        """Check if this is a terminal (final) state.

        Returns:
            True if no further transitions are possible.
        """
        return len(_EXPORT_TRANSITIONS.get(self, set())) == 0


# Export job state transitions
_EXPORT_TRANSITIONS: dict[ExportJobStatus, set[ExportJobStatus]] = {
    ExportJobStatus.QUEUED: {ExportJobStatus.PROCESSING},
    ExportJobStatus.PROCESSING: {ExportJobStatus.COMPLETED, ExportJobStatus.FAILED},
    ExportJobStatus.COMPLETED: set(),  # Terminal state
    ExportJobStatus.FAILED: set(),  # Terminal state
}


# ============================================================================
# Product Workflow States
# ============================================================================


class ProductWorkflowState(str, Enum):
    """Product listing workflow states.

    Imported products start as DRAFT. ARCHIVED products keep their SKU
    reserved: an import that reuses it is rejected until the product is
    restored or the SKU changes.
    """

    DRAFT = "draft"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    ARCHIVED = "archived"

    @classmethod
    def parse(cls, value: str | None) -> "ProductWorkflowState | None":
        """Parse a free-text workflow state.

        Args:
            value: Raw state name, any case, may be blank.

        Returns:
            Matching state, or None when blank or unrecognized.
        """
        if value is None or not value.strip():
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


# ============================================================================
# Transition Validators
# ============================================================================


def validate_import_transition(
    job_id: str,
    current_status: ImportJobStatus,
    target_status: ImportJobStatus,
) -> None:
    """Validate and raise if import job state transition is invalid.

    Args:
        job_id: Import job identifier for error message.
        current_status: Current job status.
        target_status: Target job status.

    Raises:
        InvalidStateTransitionError: If transition is not valid.
    """
    if not current_status.can_transition_to(target_status):
        raise InvalidStateTransitionError(
            entity_type="ImportJob",
            entity_id=job_id,
            current_state=current_status.value,
            target_state=target_status.value,
            allowed_transitions=[s.value for s in current_status.allowed_transitions()],
        )


def validate_export_transition(
    job_id: str,
    current_status: ExportJobStatus,
    target_status: ExportJobStatus,
) -> None:
    """Validate and raise if export job state transition is invalid.

    Args:
        job_id: Export job identifier for error message.
        current_status: Current job status.
        target_status: Target job status.

    Raises:
        InvalidStateTransitionError: If transition is not valid.
    """
    if not current_status.can_transition_to(target_status):
        raise InvalidStateTransitionError(
            entity_type="ExportJob",
            entity_id=job_id,
            current_state=current_status.value,
            target_state=target_status.value,
            allowed_transitions=[s.value for s in current_status.allowed_transitions()],
        )
