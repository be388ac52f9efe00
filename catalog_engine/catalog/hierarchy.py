"""Category hierarchy service.

Mutates the category tree while keeping its invariants:

- name and slug are unique among siblings (case-insensitive)
- no category is its own ancestor
- ``full_path`` always matches the live tree, on categories and on the
  category label of every assigned product

Structural edits load the whole category set and cascade path changes
in memory, then commit the category rows and the product label rewrite
together.
"""

from collections.abc import Sequence
from dataclasses import dataclass

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_engine.catalog.models import Category
from catalog_engine.catalog.repository import CategoryRepository, ProductRepository
from catalog_engine.domain.value_objects import build_full_path, normalize_slug
from catalog_engine.infrastructure.config import settings

logger = structlog.get_logger()


# ============================================================================
# Result Types
# ============================================================================


@dataclass
class CategoryNode:
    """Category as a node of the ordered tree listing."""

    id: int
    name: str
    slug: str
    full_path: str
    parent_id: int | None
    sort_order: int
    is_active: bool
    depth: int
    product_count: int
    description: str | None = None


@dataclass
class CategoryResult:
    """Result of a category tree operation."""

    category: Category | None = None
    success: bool = True
    error: str | None = None
    error_code: str | None = None
    products_updated: int = 0

    @classmethod
    def failed(cls, error: str, error_code: str) -> "CategoryResult":
        """Build a failed result."""
        return cls(success=False, error=error, error_code=error_code)


# ============================================================================
# Category Hierarchy Service
# ============================================================================


class CategoryHierarchyService:
    """Application service for the category tree.

    Example usage:
        async with async_session_factory() as session:
            service = CategoryHierarchyService(session)
            result = await service.create("Phones", parent_id=electronics.id)
            tree = await service.get_tree()
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize service with database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self.session = session
        self.categories = CategoryRepository(session)
        self.products = ProductRepository(session)

    # ------------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------------

    async def get_tree(self, include_inactive: bool = False) -> list[CategoryNode]:
        """Get the category forest in display order.

        Nodes are listed depth-first; siblings are ordered by sort order,
        then name. Seeds the default root category on an empty store.

        Args:
            include_inactive: Whether inactive categories are listed.

        Returns:
            Ordered list of tree nodes.
        """
        await self._ensure_root_category()

        categories = await self.categories.get_all(active_only=not include_inactive)
        product_counts = await self.categories.get_product_counts()
        return _build_tree(categories, product_counts)

    async def get_active_categories(self) -> Sequence[Category]:
        """Get all active categories, seeding the root on an empty store."""
        await self._ensure_root_category()
        return await self.categories.get_all(active_only=True)

    async def get_by_id(self, category_id: int, include_inactive: bool = False) -> Category | None:
        """Get a category by ID.

        Args:
            category_id: Category ID.
            include_inactive: Whether inactive categories are returned.

        Returns:
            Category if found.
        """
        return await self.categories.get_by_id(category_id, active_only=not include_inactive)

    async def find_by_full_path(self, full_path: str) -> Category | None:
        """Find an active category by its full display path.

        Args:
            full_path: Path such as "Electronics / Phones", any case.

        Returns:
            Category if an active one matches exactly.
        """
        wanted = (full_path or "").strip().lower()
        if not wanted:
            return None

        for category in await self.get_active_categories():
            if category.full_path.lower() == wanted:
                return category
        return None

    # ------------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------------

    async def create(
        self,
        name: str,
        parent_id: int | None = None,
        description: str | None = None,
        slug: str | None = None,
    ) -> CategoryResult:
        """Create a category.

        Args:
            name: Category name.
            parent_id: Parent category, None for a root category.
            description: Optional description.
            slug: Optional slug; derived from the name when omitted.

        Returns:
            CategoryResult with the created category.
        """
        trimmed = (name or "").strip()
        if not trimmed:
            return CategoryResult.failed("Name is required.", "NAME_REQUIRED")

        parent: Category | None = None
        if parent_id is not None:
            parent = await self.categories.get_by_id(parent_id)
            if parent is None:
                return CategoryResult.failed("Parent category not found.", "PARENT_NOT_FOUND")

        normalized_slug = normalize_slug(slug if slug and slug.strip() else trimmed)
        if not normalized_slug:
            return CategoryResult.failed(
                "Slug must contain at least one letter or digit.", "INVALID_SLUG"
            )

        siblings = await self.categories.get_children(parent_id)
        if any(s.name.lower() == trimmed.lower() for s in siblings):
            return CategoryResult.failed(
                "A category with this name already exists under the selected parent.",
                "DUPLICATE_CATEGORY_NAME",
            )
        if any(s.slug == normalized_slug for s in siblings):
            return CategoryResult.failed(
                "A category with this slug already exists under the selected parent.",
                "DUPLICATE_CATEGORY_SLUG",
            )

        category = Category(
            name=trimmed,
            slug=normalized_slug,
            parent_id=parent_id,
            sort_order=_next_sort_order(siblings),
            full_path=build_full_path(trimmed, parent.full_path if parent else None),
            is_active=True,
            description=_clean(description),
        )
        await self.categories.add(category)
        await self.session.commit()

        logger.info(
            "Category created",
            category_id=category.id,
            full_path=category.full_path,
        )
        return CategoryResult(category=category)

    async def rename(
        self,
        category_id: int,
        new_name: str,
        new_slug: str | None = None,
        new_parent_id: int | None = None,
        description: str | None = None,
        move_to_root: bool = False,
    ) -> CategoryResult:
        """Rename and/or move a category.

        Path changes cascade to every descendant and to the category label
        of every product assigned inside the subtree.

        Args:
            category_id: Category to change.
            new_name: New name (may equal the current one).
            new_slug: New slug; the current slug is kept when omitted.
            new_parent_id: New parent; the current parent is kept when omitted.
            description: New description; kept when omitted.
            move_to_root: Move the category to the top level.

        Returns:
            CategoryResult with the updated category.
        """
        trimmed = (new_name or "").strip()
        if not trimmed:
            return CategoryResult.failed("Name is required.", "NAME_REQUIRED")

        categories = list(await self.categories.get_all())
        by_id = {c.id: c for c in categories}
        category = by_id.get(category_id)
        if category is None:
            return CategoryResult.failed("Category not found.", "CATEGORY_NOT_FOUND")

        if move_to_root:
            target_parent_id = None
        elif new_parent_id is not None:
            target_parent_id = new_parent_id
        else:
            target_parent_id = category.parent_id

        if target_parent_id is not None:
            if target_parent_id not in by_id:
                return CategoryResult.failed("Parent category not found.", "PARENT_NOT_FOUND")
            if _is_in_subtree(target_parent_id, category_id, by_id):
                return CategoryResult.failed(
                    "A category cannot be moved under itself or its own descendant.",
                    "CATEGORY_CYCLE",
                )

        normalized_slug = normalize_slug(new_slug) if new_slug and new_slug.strip() else category.slug
        if not normalized_slug:
            return CategoryResult.failed(
                "Slug must contain at least one letter or digit.", "INVALID_SLUG"
            )

        siblings = [
            c for c in categories if c.parent_id == target_parent_id and c.id != category_id
        ]
        if any(s.name.lower() == trimmed.lower() for s in siblings):
            return CategoryResult.failed(
                "Another category with this name already exists at the same level.",
                "DUPLICATE_CATEGORY_NAME",
            )
        if any(s.slug == normalized_slug for s in siblings):
            return CategoryResult.failed(
                "Another category with this slug already exists at the same level.",
                "DUPLICATE_CATEGORY_SLUG",
            )

        if target_parent_id != category.parent_id:
            category.sort_order = _next_sort_order(siblings)
            category.parent_id = target_parent_id

        category.name = trimmed
        category.slug = normalized_slug
        if description is not None:
            category.description = _clean(description)

        parent = by_id.get(target_parent_id) if target_parent_id is not None else None
        branch = _recompute_paths(category, categories, parent.full_path if parent else None)

        await self.session.flush()
        products_updated = await self.products.update_category_labels(
            {c.id: c.full_path for c in branch}
        )
        await self.session.commit()

        logger.info(
            "Category renamed",
            category_id=category.id,
            full_path=category.full_path,
            descendants=len(branch) - 1,
            products_updated=products_updated,
        )
        return CategoryResult(category=category, products_updated=products_updated)

    async def update_sort_order(self, category_id: int, sort_order: int) -> CategoryResult:
        """Set a category's position among its siblings.

        Args:
            category_id: Category ID.
            sort_order: New sort order.

        Returns:
            CategoryResult with the updated category.
        """
        category = await self.categories.get_by_id(category_id)
        if category is None:
            return CategoryResult.failed("Category not found.", "CATEGORY_NOT_FOUND")

        category.sort_order = sort_order
        await self.session.commit()
        return CategoryResult(category=category)

    async def set_active(self, category_id: int, is_active: bool) -> CategoryResult:
        """Activate or deactivate a category.

        Args:
            category_id: Category ID.
            is_active: New active flag.

        Returns:
            CategoryResult with the updated category.
        """
        category = await self.categories.get_by_id(category_id)
        if category is None:
            return CategoryResult.failed("Category not found.", "CATEGORY_NOT_FOUND")

        category.is_active = is_active
        await self.session.commit()

        logger.info("Category active flag changed", category_id=category_id, is_active=is_active)
        return CategoryResult(category=category)

    async def delete(self, category_id: int, reassign_to_id: int | None = None) -> CategoryResult:
        """Delete a leaf category.

        A category with children is never deleted. Assigned products block
        the deletion unless a reassignment target is given, in which case
        they are moved there first.

        Args:
            category_id: Category to delete.
            reassign_to_id: Category that receives the assigned products.

        Returns:
            CategoryResult; ``products_updated`` counts reassigned products.
        """
        categories = list(await self.categories.get_all())
        by_id = {c.id: c for c in categories}
        category = by_id.get(category_id)
        if category is None:
            return CategoryResult.failed("Category not found.", "CATEGORY_NOT_FOUND")

        if len(_collect_branch(category, categories)) > 1:
            return CategoryResult.failed(
                "Remove or re-parent child categories before deleting this category.",
                "CATEGORY_HAS_CHILDREN",
            )

        reassigned = 0
        if await self.categories.count_products(category_id) > 0:
            if reassign_to_id is None:
                return CategoryResult.failed(
                    "Cannot delete a category that has products assigned. Reassign products first.",
                    "CATEGORY_HAS_PRODUCTS",
                )
            target = by_id.get(reassign_to_id)
            if target is None or target.id == category_id:
                return CategoryResult.failed(
                    "Select a different existing category to reassign products to.",
                    "INVALID_REASSIGN_TARGET",
                )
            reassigned = await self.products.reassign_category(category_id, target)

        await self.categories.delete(category)
        await self.session.commit()

        logger.info(
            "Category deleted",
            category_id=category_id,
            reassign_to_id=reassign_to_id,
            products_reassigned=reassigned,
        )
        return CategoryResult(products_updated=reassigned)

    async def _ensure_root_category(self) -> None:
        """Seed the default root category when the store is empty."""
        if await self.categories.any_exists():
            return

        name = settings.default_category_name
        await self.categories.add(
            Category(
                name=name,
                slug=normalize_slug(name),
                full_path=name,
                sort_order=0,
                is_active=True,
            )
        )
        await self.session.commit()
        logger.info("Default root category created", name=name)


# ============================================================================
# Tree Helpers
# ============================================================================


def _clean(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    return value.strip()


def _next_sort_order(siblings: Sequence[Category]) -> int:
    if not siblings:
        return 0
    return max(s.sort_order for s in siblings) + 1


def _children_map(categories: Sequence[Category]) -> dict[int | None, list[Category]]:
    children: dict[int | None, list[Category]] = {}
    for category in categories:
        children.setdefault(category.parent_id, []).append(category)
    for siblings in children.values():
        siblings.sort(key=lambda c: (c.sort_order, c.name))
    return children


def _is_in_subtree(candidate_id: int, root_id: int, by_id: dict[int, Category]) -> bool:
    """Check whether candidate_id is root_id or one of its descendants.

    Walks the parent chain upward from the candidate.
    """
    seen: set[int] = set()
    current: int | None = candidate_id
    while current is not None and current not in seen:
        if current == root_id:
            return True
        seen.add(current)
        node = by_id.get(current)
        current = node.parent_id if node else None
    return False


def _collect_branch(root: Category, categories: Sequence[Category]) -> list[Category]:
    """Collect a category and all its descendants, depth-first."""
    children = _children_map(categories)
    branch: list[Category] = []
    stack = [root]
    while stack:
        node = stack.pop()
        branch.append(node)
        stack.extend(reversed(children.get(node.id, [])))
    return branch


def _recompute_paths(
    root: Category,
    categories: Sequence[Category],
    parent_path: str | None,
) -> list[Category]:
    """Recompute full paths for a category and its subtree.

    Returns:
        The updated categories, root first.
    """
    children = _children_map(categories)
    root.full_path = build_full_path(root.name, parent_path)

    branch: list[Category] = []
    stack = [root]
    while stack:
        node = stack.pop()
        branch.append(node)
        for child in children.get(node.id, []):
            child.full_path = build_full_path(child.name, node.full_path)
            stack.append(child)
    return branch


def _build_tree(
    categories: Sequence[Category],
    product_counts: dict[int, int],
) -> list[CategoryNode]:
    children = _children_map(categories)
    nodes: list[CategoryNode] = []

    stack: list[tuple[Category, int]] = [(c, 0) for c in reversed(children.get(None, []))]
    while stack:
        category, depth = stack.pop()
        nodes.append(
            CategoryNode(
                id=category.id,
                name=category.name,
                slug=category.slug,
                full_path=category.full_path,
                parent_id=category.parent_id,
                sort_order=category.sort_order,
                is_active=category.is_active,
                depth=depth,
                product_count=product_counts.get(category.id, 0),
                description=category.description,
            )
        )
        stack.extend((child, depth + 1) for child in reversed(children.get(category.id, [])))

    return nodes
