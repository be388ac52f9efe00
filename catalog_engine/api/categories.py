"""Category API endpoints.

Provides endpoints for the category tree:
- GET /categories - ordered tree with depth and product counts
- POST /categories - create a category
- GET /categories/{id} - category details
- PUT /categories/{id} - rename and/or move (cascades paths)
- PUT /categories/{id}/sort-order - reorder among siblings
- PUT /categories/{id}/active - activate or deactivate
- DELETE /categories/{id} - delete a leaf, optionally reassigning products
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from catalog_engine.api.dependencies import SessionDep, result_status_code
from catalog_engine.api.schemas import (
    CategoryActiveRequest,
    CategoryCreateRequest,
    CategoryDeleteResponse,
    CategoryNodeSchema,
    CategoryRenameResponse,
    CategoryResponse,
    CategorySortOrderRequest,
    CategoryTreeResponse,
    CategoryUpdateRequest,
    ErrorResponse,
)
from catalog_engine.catalog.hierarchy import CategoryHierarchyService, CategoryResult
from catalog_engine.domain.exceptions import CategoryNotFoundError

router = APIRouter(prefix="/categories", tags=["Categories"])


# ============================================================================
# Dependencies
# ============================================================================


def get_service(session: SessionDep) -> CategoryHierarchyService:
    """Get category hierarchy service."""
    return CategoryHierarchyService(session)


ServiceDep = Annotated[CategoryHierarchyService, Depends(get_service)]


def raise_for_result(result: CategoryResult, default_code: str) -> None:
    """Raise an HTTPException for a failed result."""
    if result.success:
        return
    raise HTTPException(
        status_code=result_status_code(result.error_code),
        detail={
            "error_code": result.error_code or default_code,
            "message": result.error or "Category operation failed",
        },
    )


# ============================================================================
# Endpoints
# ============================================================================


@router.get(
    "",
    response_model=CategoryTreeResponse,
    summary="Get category tree",
    description="Categories in depth-first display order with depth and product counts.",
)
async def get_tree(
    service: ServiceDep,
    include_inactive: bool = Query(default=False, description="Include inactive categories"),
) -> CategoryTreeResponse:
    """Get the category tree.

    Args:
        service: Category hierarchy service.
        include_inactive: Whether inactive categories are listed.

    Returns:
        Ordered tree nodes.
    """
    nodes = await service.get_tree(include_inactive=include_inactive)
    items = [CategoryNodeSchema.model_validate(node, from_attributes=True) for node in nodes]
    return CategoryTreeResponse(items=items, total=len(items))


@router.post(
    "",
    response_model=CategoryResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Create category",
)
async def create_category(
    request: CategoryCreateRequest,
    service: ServiceDep,
) -> CategoryResponse:
    """Create a category under an optional parent.

    Raises:
        HTTPException: If the name or slug is invalid or taken, or the
            parent does not exist.
    """
    result = await service.create(
        name=request.name,
        parent_id=request.parent_id,
        description=request.description,
        slug=request.slug,
    )
    raise_for_result(result, "CATEGORY_CREATE_FAILED")
    return CategoryResponse.model_validate(result.category)


@router.get(
    "/{category_id}",
    response_model=CategoryResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get category",
)
async def get_category(
    category_id: int,
    service: ServiceDep,
    include_inactive: bool = Query(default=True, description="Return inactive categories too"),
) -> CategoryResponse:
    """Get a category by ID.

    Raises:
        CategoryNotFoundError: If the category does not exist.
    """
    category = await service.get_by_id(category_id, include_inactive=include_inactive)
    if category is None:
        raise CategoryNotFoundError(category_id)
    return CategoryResponse.model_validate(category)


@router.put(
    "/{category_id}",
    response_model=CategoryRenameResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Rename or move category",
    description="Renames and/or re-parents a category; descendant paths and product labels follow.",
)
async def update_category(
    category_id: int,
    request: CategoryUpdateRequest,
    service: ServiceDep,
) -> CategoryRenameResponse:
    """Rename and/or move a category.

    Raises:
        HTTPException: If the change would break uniqueness or create a cycle.
    """
    result = await service.rename(
        category_id,
        new_name=request.name,
        new_slug=request.slug,
        new_parent_id=request.parent_id,
        description=request.description,
        move_to_root=request.move_to_root,
    )
    raise_for_result(result, "CATEGORY_UPDATE_FAILED")

    response = CategoryRenameResponse.model_validate(result.category, from_attributes=True)
    response.products_updated = result.products_updated
    return response


@router.put(
    "/{category_id}/sort-order",
    response_model=CategoryResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Set category sort order",
)
async def update_sort_order(
    category_id: int,
    request: CategorySortOrderRequest,
    service: ServiceDep,
) -> CategoryResponse:
    """Set a category's sort order."""
    result = await service.update_sort_order(category_id, request.sort_order)
    raise_for_result(result, "CATEGORY_UPDATE_FAILED")
    return CategoryResponse.model_validate(result.category)


@router.put(
    "/{category_id}/active",
    response_model=CategoryResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Activate or deactivate category",
)
async def set_active(
    category_id: int,
    request: CategoryActiveRequest,
    service: ServiceDep,
) -> CategoryResponse:
    """Activate or deactivate a category."""
    result = await service.set_active(category_id, request.is_active)
    raise_for_result(result, "CATEGORY_UPDATE_FAILED")
    return CategoryResponse.model_validate(result.category)


@router.delete(
    "/{category_id}",
    response_model=CategoryDeleteResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Delete category",
    description=(
        "Deletes a leaf category. Assigned products must be moved with "
        "reassign_to_id, otherwise the deletion is rejected."
    ),
)
async def delete_category(
    category_id: int,
    service: ServiceDep,
    reassign_to_id: int | None = Query(default=None, description="Category receiving the products"),
) -> CategoryDeleteResponse:
    """Delete a category.

    Raises:
        HTTPException: If the category has children, or has products and
            no valid reassignment target.
    """
    result = await service.delete(category_id, reassign_to_id=reassign_to_id)
    raise_for_result(result, "CATEGORY_DELETE_FAILED")
    return CategoryDeleteResponse(
        category_id=category_id,
        products_reassigned=result.products_updated,
    )
