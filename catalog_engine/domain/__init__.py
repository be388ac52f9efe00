"""Domain layer - value objects, state machines, exceptions.

This module exports the core domain building blocks:

- **Value Objects**: Immutable objects compared by value (AttributeIdentity, ExportOptions)
- **State Machines**: Deterministic job transitions (ImportJobStatus, ExportJobStatus)
- **Normalization**: Slug, path, attribute type and export format rules
- **Exceptions**: Domain-specific errors and invariant violations

Example usage:
    from catalog_engine.domain import ImportJobStatus, normalize_slug

    normalize_slug("Phones & Tablets")  # "phones-tablets"
    ImportJobStatus.QUEUED.can_transition_to(ImportJobStatus.PROCESSING)  # True
"""

# Exceptions
from catalog_engine.domain.exceptions import (
    CategoryError,
    CategoryNotFoundError,
    DomainError,
    ExportJobNotFoundError,
    ImportJobNotFoundError,
    InvalidStateTransitionError,
    JobError,
    UnreadableFileError,
    UnsupportedFileTypeError,
)

# State Machines
from catalog_engine.domain.state_machines import (
    ExportJobStatus,
    ImportJobStatus,
    ProductWorkflowState,
    validate_export_transition,
    validate_import_transition,
)

# Value Objects
from catalog_engine.domain.value_objects import (
    CATEGORY_PATH_SEPARATOR,
    AttributeIdentity,
    AttributeType,
    ExportFormat,
    ExportOptions,
    build_full_path,
    normalize_attribute_options,
    normalize_slug,
)

__all__ = [
    # Value Objects
    "AttributeIdentity",
    "AttributeType",
    "ExportFormat",
    "ExportOptions",
    "CATEGORY_PATH_SEPARATOR",
    "build_full_path",
    "normalize_attribute_options",
    "normalize_slug",
    # State Machines
    "ExportJobStatus",
    "ImportJobStatus",
    "ProductWorkflowState",
    "validate_export_transition",
    "validate_import_transition",
    # Exceptions
    "DomainError",
    "InvalidStateTransitionError",
    "CategoryError",
    "CategoryNotFoundError",
    "JobError",
    "ImportJobNotFoundError",
    "ExportJobNotFoundError",
    "UnreadableFileError",
    "UnsupportedFileTypeError",
]
