"""Value Objects for the domain layer.

Value objects are immutable objects that are defined by their attributes
rather than identity. This module also holds the normalization rules for
category slugs, category paths, attribute types and export formats.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Self

from catalog_engine.domain.state_machines import ProductWorkflowState

# Separator between ancestor names in a category full path
CATEGORY_PATH_SEPARATOR = " / "

_SLUG_INVALID = re.compile(r"[^a-z0-9]+")
_OPTION_SPLIT = re.compile(r"[,;\r\n]")


# ============================================================================
# Category Paths and Slugs
# ============================================================================


def normalize_slug(value: str | None) -> str:
    """Normalize a category slug.

    Lower-cases the value, collapses every run of non-alphanumeric
    characters into a single ``-`` and trims leading/trailing dashes.
    Applying it twice gives the same result as applying it once.

    Args:
        value: Raw slug or category name.

    Returns:
        Normalized slug, empty when nothing alphanumeric remains.
    """
    if not value:
        return ""
    return _SLUG_INVALID.sub("-", value.strip().lower()).strip("-")


def build_full_path(name: str, parent_path: str | None) -> str:
    """Build a category full path from its name and parent path.

    Args:
        name: Category name.
        parent_path: Full path of the parent, empty or None at the root.

    Returns:
        Full display path, e.g. "Electronics / Phones".
    """
    if not parent_path or not parent_path.strip():
        return name
    return f"{parent_path}{CATEGORY_PATH_SEPARATOR}{name}"


# ============================================================================
# Category Attributes
# ============================================================================


class AttributeType(str, Enum):
    """Supported category attribute value types."""

    TEXT = "text"
    NUMBER = "number"
    LIST = "list"

    @classmethod
    def normalize(cls, value: str | None) -> "AttributeType":
        """Normalize a free-text attribute type.

        Args:
            value: Raw type name.

        Returns:
            Matching type; unrecognized or blank values fall back to TEXT.
        """
        if value is None or not value.strip():
            return cls.TEXT
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.TEXT


def normalize_attribute_options(options: str | None, attribute_type: AttributeType) -> str | None:
    """Normalize list options for an attribute definition.

    Options are split on commas, semicolons and line breaks, trimmed,
    and de-duplicated case-insensitively keeping the first spelling.

    Args:
        options: Raw option text.
        attribute_type: Normalized attribute type.

    Returns:
        Comma-joined options for LIST attributes, None otherwise or when empty.
    """
    if attribute_type != AttributeType.LIST or not options:
        return None

    seen: set[str] = set()
    values: list[str] = []
    for token in _OPTION_SPLIT.split(options):
        cleaned = token.strip()
        if not cleaned or cleaned.lower() in seen:
            continue
        seen.add(cleaned.lower())
        values.append(cleaned)

    return ",".join(values) if values else None


@dataclass(frozen=True)
class AttributeIdentity:
    """Identity of a shared attribute definition.

    Two definitions with the same name, type and options are the same
    definition and must not be stored twice.
    """

    name: str
    type: AttributeType
    options: str | None

    @classmethod
    def from_input(cls, name: str, attribute_type: str | None, options: str | None) -> Self:
        """Build a normalized identity from raw admin input.

        Args:
            name: Attribute name (trimmed here).
            attribute_type: Raw type name.
            options: Raw list options.

        Returns:
            Normalized identity.
        """
        normalized_type = AttributeType.normalize(attribute_type)
        return cls(
            name=name.strip(),
            type=normalized_type,
            options=normalize_attribute_options(options, normalized_type),
        )


# ============================================================================
# Export Options
# ============================================================================


class ExportFormat(str, Enum):
    """Catalog export formats.

    XLS exports carry CSV content with an Excel content type.
    """

    CSV = "csv"
    XLS = "xls"

    @classmethod
    def normalize(cls, value: str | None) -> "ExportFormat":
        """Normalize a requested export format.

        Args:
            value: Raw format name.

        Returns:
            XLS when requested, CSV for anything else.
        """
        if value is not None and value.strip().lower() == cls.XLS.value:
            return cls.XLS
        return cls.CSV

    @property
    def content_type(self) -> str:
        """Get the HTTP content type for files in this format."""
        if self == ExportFormat.XLS:
            return "application/vnd.ms-excel"
        return "text/csv"


@dataclass(frozen=True)
class ExportOptions:
    """Seller options for a catalog export.

    Attributes:
        format: Requested format, normalized on queueing.
        use_filters: Whether search/workflow filters apply.
        search: Free-text search.
        workflow_state: Workflow state filter; unknown values are dropped.
    """

    format: str = ExportFormat.CSV.value
    use_filters: bool = False
    search: str | None = None
    workflow_state: str | None = None

    @property
    def normalized_format(self) -> ExportFormat:
        """Get the normalized export format."""
        return ExportFormat.normalize(self.format)

    @property
    def normalized_workflow_state(self) -> ProductWorkflowState | None:
        """Get the normalized workflow state filter."""
        return ProductWorkflowState.parse(self.workflow_state)
