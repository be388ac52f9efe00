"""Category attribute API endpoints.

Provides endpoints for the shared attribute registry:
- GET /categories/{id}/attributes - definitions linked to a category
- POST /categories/{id}/attributes - add (or reuse) a definition
- GET /categories/{id}/attributes/linkable - definitions not yet linked
- POST /categories/{id}/attributes/link - link an existing definition
- PUT /attributes/{id} - update a definition
- PUT /attributes/{id}/deprecated - toggle deprecation
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from catalog_engine.api.dependencies import SessionDep, result_status_code
from catalog_engine.api.schemas import (
    AttributeDefinitionRequest,
    AttributeDefinitionResponse,
    AttributeDeprecateRequest,
    AttributeLinkRequest,
    AttributeListResponse,
    ErrorResponse,
)
from catalog_engine.catalog.attributes import AttributeResult, CategoryAttributeRegistry
from catalog_engine.catalog.models import CategoryAttributeDefinition

router = APIRouter(tags=["Attributes"])


def get_registry(session: SessionDep) -> CategoryAttributeRegistry:
    """Get category attribute registry."""
    return CategoryAttributeRegistry(session)


RegistryDep = Annotated[CategoryAttributeRegistry, Depends(get_registry)]


def definition_to_response(definition: CategoryAttributeDefinition) -> AttributeDefinitionResponse:
    """Convert a definition to its API representation."""
    return AttributeDefinitionResponse(
        id=definition.id,
        name=definition.name,
        type=definition.type,
        is_required=definition.is_required,
        is_deprecated=definition.is_deprecated,
        options=definition.option_list,
    )


def result_to_response(result: AttributeResult) -> AttributeDefinitionResponse:
    """Convert a registry result, raising for failures."""
    if not result.success or result.definition is None:
        raise HTTPException(
            status_code=result_status_code(result.error_code),
            detail={
                "error_code": result.error_code or "ATTRIBUTE_OPERATION_FAILED",
                "message": result.error or "Attribute operation failed",
            },
        )
    return definition_to_response(result.definition)


@router.get(
    "/categories/{category_id}/attributes",
    response_model=AttributeListResponse,
    summary="List category attributes",
)
async def list_category_attributes(
    category_id: int,
    registry: RegistryDep,
    include_deprecated: bool = Query(default=False, description="Include deprecated definitions"),
) -> AttributeListResponse:
    """List definitions linked to a category, by name."""
    definitions = await registry.get_for_category(category_id, include_deprecated)
    return AttributeListResponse(items=[definition_to_response(d) for d in definitions])


@router.post(
    "/categories/{category_id}/attributes",
    response_model=AttributeDefinitionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Add attribute to category",
    description="Links an identical existing definition when there is one, otherwise creates it.",
)
async def add_category_attribute(
    category_id: int,
    request: AttributeDefinitionRequest,
    registry: RegistryDep,
) -> AttributeDefinitionResponse:
    """Add or link an attribute definition."""
    result = await registry.add_or_link(
        category_id,
        name=request.name,
        attribute_type=request.type,
        is_required=request.is_required,
        options=request.options,
    )
    return result_to_response(result)


@router.get(
    "/categories/{category_id}/attributes/linkable",
    response_model=AttributeListResponse,
    summary="List linkable attributes",
)
async def list_linkable_attributes(
    category_id: int,
    registry: RegistryDep,
) -> AttributeListResponse:
    """List active definitions not yet linked to the category."""
    definitions = await registry.get_linkable(category_id)
    return AttributeListResponse(items=[definition_to_response(d) for d in definitions])


@router.post(
    "/categories/{category_id}/attributes/link",
    response_model=AttributeDefinitionResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Link existing attribute",
)
async def link_attribute(
    category_id: int,
    request: AttributeLinkRequest,
    registry: RegistryDep,
) -> AttributeDefinitionResponse:
    """Link an existing definition to a category."""
    result = await registry.link_existing(request.definition_id, category_id)
    return result_to_response(result)


@router.put(
    "/attributes/{definition_id}",
    response_model=AttributeDefinitionResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Update attribute definition",
)
async def update_attribute(
    definition_id: int,
    request: AttributeDefinitionRequest,
    registry: RegistryDep,
) -> AttributeDefinitionResponse:
    """Update a definition; rejects collisions with another definition."""
    result = await registry.update_definition(
        definition_id,
        name=request.name,
        attribute_type=request.type,
        is_required=request.is_required,
        options=request.options,
    )
    return result_to_response(result)


@router.put(
    "/attributes/{definition_id}/deprecated",
    response_model=AttributeDefinitionResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Deprecate or restore attribute",
)
async def set_attribute_deprecated(
    definition_id: int,
    request: AttributeDeprecateRequest,
    registry: RegistryDep,
) -> AttributeDefinitionResponse:
    """Toggle a definition's deprecated flag."""
    result = await registry.set_deprecated(definition_id, request.is_deprecated)
    return result_to_response(result)
