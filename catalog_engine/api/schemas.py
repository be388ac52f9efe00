"""API schemas for the Catalog Engine API.

Pydantic models for request/response validation and serialization.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Common Schemas
# ============================================================================


class ErrorDetail(BaseModel):
    """Detailed error information."""

    field: str | None = Field(default=None, description="Field that caused the error")
    message: str = Field(..., description="Error message")


class ErrorResponse(BaseModel):
    """Standard error response.

    All API errors follow this format for consistency.
    """

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: list[ErrorDetail] | dict[str, Any] = Field(
        default_factory=list, description="Additional error details"
    )
    request_id: str | None = Field(
        default=None, description="Request ID for correlation"
    )


# ============================================================================
# Category Schemas
# ============================================================================


class CategoryCreateRequest(BaseModel):
    """Request to create a category."""

    name: str = Field(..., min_length=1, max_length=120, description="Category name")
    parent_id: int | None = Field(default=None, description="Parent category (root when omitted)")
    description: str | None = Field(default=None, description="Optional description")
    slug: str | None = Field(default=None, max_length=140, description="Slug (derived from name when omitted)")


class CategoryUpdateRequest(BaseModel):
    """Request to rename and/or move a category."""

    name: str = Field(..., min_length=1, max_length=120, description="New name")
    slug: str | None = Field(default=None, max_length=140, description="New slug (kept when omitted)")
    parent_id: int | None = Field(default=None, description="New parent (kept when omitted)")
    move_to_root: bool = Field(default=False, description="Move the category to the top level")
    description: str | None = Field(default=None, description="New description (kept when omitted)")


class CategorySortOrderRequest(BaseModel):
    """Request to change a category's sort order."""

    sort_order: int = Field(..., description="Position among siblings")


class CategoryActiveRequest(BaseModel):
    """Request to activate or deactivate a category."""

    is_active: bool


class CategoryResponse(BaseModel):
    """Category details."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    slug: str
    full_path: str
    parent_id: int | None = None
    sort_order: int
    is_active: bool
    description: str | None = None


class CategoryNodeSchema(CategoryResponse):
    """Category as listed in the tree."""

    depth: int = Field(..., description="Depth in the tree (0 for roots)")
    product_count: int = Field(..., description="Products assigned to this category")


class CategoryTreeResponse(BaseModel):
    """Ordered category tree listing."""

    items: list[CategoryNodeSchema]
    total: int


class CategoryDeleteResponse(BaseModel):
    """Result of deleting a category."""

    category_id: int
    deleted: bool = True
    products_reassigned: int = 0


class CategoryRenameResponse(CategoryResponse):
    """Category details after a rename or move."""

    products_updated: int = Field(default=0, description="Products whose category label changed")


# ============================================================================
# Attribute Schemas
# ============================================================================


class AttributeDefinitionRequest(BaseModel):
    """Request to add or update an attribute definition."""

    name: str = Field(..., min_length=1, max_length=120, description="Attribute name")
    type: str = Field(default="text", description="text, number or list")
    is_required: bool = Field(default=False, description="Whether sellers must fill it")
    options: str | None = Field(
        default=None,
        description="List options separated by commas, semicolons or new lines",
    )


class AttributeLinkRequest(BaseModel):
    """Request to link an existing definition to a category."""

    definition_id: int


class AttributeDeprecateRequest(BaseModel):
    """Request to toggle deprecation."""

    is_deprecated: bool


class AttributeDefinitionResponse(BaseModel):
    """Attribute definition details."""

    id: int
    name: str
    type: str
    is_required: bool
    is_deprecated: bool
    options: list[str] = Field(default_factory=list)


class AttributeListResponse(BaseModel):
    """List of attribute definitions."""

    items: list[AttributeDefinitionResponse]


# ============================================================================
# Import Schemas
# ============================================================================


class RowErrorSchema(BaseModel):
    """Import validation error. Row 0 is a file-level error."""

    row_number: int
    message: str


class ImportJobResponse(BaseModel):
    """Import job status."""

    id: str
    file_name: str
    status: str
    total_rows: int
    created_count: int
    updated_count: int
    failed_count: int
    summary: str | None = None
    template_version: str
    has_error_report: bool = False
    created_on: datetime
    completed_on: datetime | None = None


class ImportPreviewResponse(BaseModel):
    """Preview of an uploaded import file."""

    total_rows: int
    create_count: int
    update_count: int
    errors: list[RowErrorSchema] = Field(default_factory=list)
    job: ImportJobResponse | None = Field(
        default=None, description="Job awaiting confirmation (only when the preview is clean)"
    )


class ImportJobListResponse(BaseModel):
    """Import history."""

    items: list[ImportJobResponse]


# ============================================================================
# Export Schemas
# ============================================================================


class ExportRequest(BaseModel):
    """Request to export the catalog."""

    format: str = Field(default="csv", description="csv or xls")
    use_filters: bool = Field(default=False, description="Apply search and workflow state filters")
    search: str | None = Field(default=None, max_length=200, description="Free-text search")
    workflow_state: str | None = Field(default=None, description="draft, active, suspended or archived")


class ExportJobResponse(BaseModel):
    """Export job status."""

    id: str
    format: str
    status: str
    use_filters: bool
    search: str | None = None
    workflow_state: str | None = None
    total_products: int
    file_name: str
    content_type: str | None = None
    summary: str | None = None
    error: str | None = None
    created_on: datetime
    completed_on: datetime | None = None


class ExportJobListResponse(BaseModel):
    """Export history."""

    items: list[ExportJobResponse]
