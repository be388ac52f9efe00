"""Category attribute registry.

Attribute definitions are shared across categories and deduplicated by
their normalized identity (name, type, options). Adding an attribute
that already exists links the existing definition instead of cloning
it. Deprecation is a soft flag.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import structlog
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_engine.catalog.models import (
    Category,
    CategoryAttributeDefinition,
    CategoryAttributeUsage,
)
from catalog_engine.domain.value_objects import AttributeIdentity

logger = structlog.get_logger()


@dataclass
class AttributeResult:
    """Result of an attribute registry operation."""

    definition: CategoryAttributeDefinition | None = None
    success: bool = True
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def failed(cls, error: str, error_code: str) -> "AttributeResult":
        """Build a failed result."""
        return cls(success=False, error=error, error_code=error_code)


class CategoryAttributeRegistry:
    """Application service for category attribute definitions.

    Example usage:
        registry = CategoryAttributeRegistry(session)
        result = await registry.add_or_link(phones.id, "Color", "list", False, "Red;Blue")
        await registry.link_existing(result.definition.id, tablets.id)
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize registry with database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self.session = session

    # ------------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------------

    async def get_for_category(
        self,
        category_id: int,
        include_deprecated: bool = False,
    ) -> Sequence[CategoryAttributeDefinition]:
        """Get definitions linked to a category, ordered by name.

        Args:
            category_id: Category ID.
            include_deprecated: Whether deprecated definitions are included.

        Returns:
            Sequence of definitions.
        """
        grouped = await self.get_for_categories([category_id], include_deprecated)
        return grouped.get(category_id, [])

    async def get_for_categories(
        self,
        category_ids: Iterable[int],
        include_deprecated: bool = False,
    ) -> dict[int, list[CategoryAttributeDefinition]]:
        """Get linked definitions for several categories in one query.

        Args:
            category_ids: Category IDs.
            include_deprecated: Whether deprecated definitions are included.

        Returns:
            Mapping of category ID to its definitions ordered by name.
            Categories without definitions are absent.
        """
        ids = sorted(set(category_ids))
        if not ids:
            return {}

        query = (
            select(CategoryAttributeUsage.category_id, CategoryAttributeDefinition)
            .join(
                CategoryAttributeDefinition,
                CategoryAttributeDefinition.id == CategoryAttributeUsage.definition_id,
            )
            .where(CategoryAttributeUsage.category_id.in_(ids))
            .order_by(CategoryAttributeDefinition.name.asc(), CategoryAttributeDefinition.id.asc())
        )
        if not include_deprecated:
            query = query.where(CategoryAttributeDefinition.is_deprecated.is_(False))

        result = await self.session.execute(query)

        grouped: dict[int, list[CategoryAttributeDefinition]] = {}
        for category_id, definition in result.all():
            grouped.setdefault(category_id, []).append(definition)
        return grouped

    async def get_linkable(self, category_id: int) -> Sequence[CategoryAttributeDefinition]:
        """Get non-deprecated definitions not yet linked to a category.

        Args:
            category_id: Category ID.

        Returns:
            Sequence of definitions ordered by name.
        """
        linked = select(CategoryAttributeUsage.definition_id).where(
            CategoryAttributeUsage.category_id == category_id
        )
        query = (
            select(CategoryAttributeDefinition)
            .where(
                and_(
                    CategoryAttributeDefinition.is_deprecated.is_(False),
                    CategoryAttributeDefinition.id.not_in(linked),
                )
            )
            .order_by(CategoryAttributeDefinition.name.asc(), CategoryAttributeDefinition.id.asc())
        )
        result = await self.session.execute(query)
        return result.scalars().all()

    async def get_definition(self, definition_id: int) -> CategoryAttributeDefinition | None:
        """Get a definition by ID."""
        return await self.session.get(CategoryAttributeDefinition, definition_id)

    # ------------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------------

    async def add_or_link(
        self,
        category_id: int,
        name: str,
        attribute_type: str | None,
        is_required: bool = False,
        options: str | None = None,
    ) -> AttributeResult:
        """Add an attribute to a category, reusing an identical definition.

        An existing definition with the same normalized identity is
        un-deprecated, takes the new required flag and is linked to the
        category if needed. Otherwise a new definition is created.

        Args:
            category_id: Category to attach the attribute to.
            name: Attribute name.
            attribute_type: text, number or list (anything else means text).
            is_required: Whether sellers must fill the attribute.
            options: List options separated by commas, semicolons or lines.

        Returns:
            AttributeResult with the linked definition.
        """
        if not (name or "").strip():
            return AttributeResult.failed("Name is required.", "NAME_REQUIRED")

        if await self.session.get(Category, category_id) is None:
            return AttributeResult.failed("Category not found.", "CATEGORY_NOT_FOUND")

        identity = AttributeIdentity.from_input(name, attribute_type, options)
        definition = await self._find_by_identity(identity)

        if definition is not None:
            definition.is_deprecated = False
            definition.is_required = is_required
            await self._ensure_link(definition.id, category_id)
            await self.session.commit()

            logger.info(
                "Attribute definition linked",
                definition_id=definition.id,
                category_id=category_id,
                reused=True,
            )
            return AttributeResult(definition=definition)

        definition = CategoryAttributeDefinition(
            name=identity.name,
            type=identity.type.value,
            is_required=is_required,
            is_deprecated=False,
            options=identity.options,
        )
        self.session.add(definition)
        await self.session.flush()
        await self._ensure_link(definition.id, category_id)
        await self.session.commit()

        logger.info(
            "Attribute definition created",
            definition_id=definition.id,
            category_id=category_id,
            attribute_type=definition.type,
        )
        return AttributeResult(definition=definition)

    async def update_definition(
        self,
        definition_id: int,
        name: str,
        attribute_type: str | None,
        is_required: bool = False,
        options: str | None = None,
    ) -> AttributeResult:
        """Update a definition in place.

        Args:
            definition_id: Definition to update.
            name: New name.
            attribute_type: New type.
            is_required: New required flag.
            options: New list options.

        Returns:
            AttributeResult with the updated definition.
        """
        if not (name or "").strip():
            return AttributeResult.failed("Name is required.", "NAME_REQUIRED")

        definition = await self.get_definition(definition_id)
        if definition is None:
            return AttributeResult.failed("Attribute not found.", "ATTRIBUTE_NOT_FOUND")

        identity = AttributeIdentity.from_input(name, attribute_type, options)
        conflict = await self._find_by_identity(identity, exclude_id=definition_id)
        if conflict is not None:
            return AttributeResult.failed(
                "Another attribute with the same name and type already exists.",
                "DUPLICATE_ATTRIBUTE",
            )

        definition.name = identity.name
        definition.type = identity.type.value
        definition.is_required = is_required
        definition.options = identity.options
        await self.session.commit()

        logger.info("Attribute definition updated", definition_id=definition_id)
        return AttributeResult(definition=definition)

    async def link_existing(self, definition_id: int, category_id: int) -> AttributeResult:
        """Link an existing definition to a category. Idempotent.

        Args:
            definition_id: Definition ID.
            category_id: Category ID.

        Returns:
            AttributeResult with the definition.
        """
        definition = await self.get_definition(definition_id)
        if definition is None:
            return AttributeResult.failed("Attribute not found.", "ATTRIBUTE_NOT_FOUND")

        if await self.session.get(Category, category_id) is None:
            return AttributeResult.failed("Category not found.", "CATEGORY_NOT_FOUND")

        await self._ensure_link(definition_id, category_id)
        await self.session.commit()
        return AttributeResult(definition=definition)

    async def set_deprecated(self, definition_id: int, is_deprecated: bool) -> AttributeResult:
        """Toggle the deprecated flag of a definition.

        Args:
            definition_id: Definition ID.
            is_deprecated: New flag value.

        Returns:
            AttributeResult with the definition.
        """
        definition = await self.get_definition(definition_id)
        if definition is None:
            return AttributeResult.failed("Attribute not found.", "ATTRIBUTE_NOT_FOUND")

        definition.is_deprecated = is_deprecated
        await self.session.commit()

        logger.info(
            "Attribute definition deprecation changed",
            definition_id=definition_id,
            is_deprecated=is_deprecated,
        )
        return AttributeResult(definition=definition)

    async def _find_by_identity(
        self,
        identity: AttributeIdentity,
        exclude_id: int | None = None,
    ) -> CategoryAttributeDefinition | None:
        conditions = [
            CategoryAttributeDefinition.name == identity.name,
            CategoryAttributeDefinition.type == identity.type.value,
        ]
        if identity.options is None:
            conditions.append(CategoryAttributeDefinition.options.is_(None))
        else:
            conditions.append(CategoryAttributeDefinition.options == identity.options)
        if exclude_id is not None:
            conditions.append(CategoryAttributeDefinition.id != exclude_id)

        query = (
            select(CategoryAttributeDefinition)
            .where(and_(*conditions))
            .order_by(CategoryAttributeDefinition.id.asc())
        )
        result = await self.session.execute(query)
        return result.scalars().first()

    async def _ensure_link(self, definition_id: int, category_id: int) -> None:
        query = select(CategoryAttributeUsage.id).where(
            and_(
                CategoryAttributeUsage.category_id == category_id,
                CategoryAttributeUsage.definition_id == definition_id,
            )
        )
        existing = await self.session.execute(query)
        if existing.first() is not None:
            return

        self.session.add(
            CategoryAttributeUsage(category_id=category_id, definition_id=definition_id)
        )
        await self.session.flush()
