"""Category and product repositories for database operations.

Pure data access: business rules live in the hierarchy service, the
attribute registry and the import/export pipelines.
"""

from collections.abc import Iterable, Sequence

from sqlalchemy import and_, delete as sql_delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_engine.catalog.models import Category, CategoryAttributeUsage, Product
from catalog_engine.domain.state_machines import ProductWorkflowState

LIKE_ESCAPE = "\\"


def _escape_like(value: str) -> str:
    """Escape LIKE wildcards so search text matches literally."""
    return (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


class CategoryRepository:
    """Repository for Category database operations.

    Example usage:
        async with async_session_factory() as session:
            repo = CategoryRepository(session)
            categories = await repo.get_all()
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self.session = session

    async def get_all(self, active_only: bool = False) -> Sequence[Category]:
        """Get all categories ordered by sort order and name.

        Args:
            active_only: Whether to skip inactive categories.

        Returns:
            Sequence of categories.
        """
        query = select(Category)
        if active_only:
            query = query.where(Category.is_active.is_(True))
        query = query.order_by(Category.sort_order.asc(), Category.name.asc())

        result = await self.session.execute(query)
        return result.scalars().all()

    async def get_by_id(self, category_id: int, active_only: bool = False) -> Category | None:
        """Get category by ID.

        Args:
            category_id: Category ID.
            active_only: Whether an inactive category counts as missing.

        Returns:
            Category if found, None otherwise.
        """
        query = select(Category).where(Category.id == category_id)
        if active_only:
            query = query.where(Category.is_active.is_(True))

        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_children(self, parent_id: int | None) -> Sequence[Category]:
        """Get direct children of a parent (root categories for None).

        Args:
            parent_id: Parent category ID.

        Returns:
            Sequence of sibling categories.
        """
        if parent_id is None:
            condition = Category.parent_id.is_(None)
        else:
            condition = Category.parent_id == parent_id

        result = await self.session.execute(select(Category).where(condition))
        return result.scalars().all()

    async def any_exists(self) -> bool:
        """Check whether the store holds any category."""
        result = await self.session.execute(select(Category.id).limit(1))
        return result.first() is not None

    async def add(self, category: Category) -> Category:
        """Add a category and flush to obtain its ID.

        Args:
            category: Category to add.

        Returns:
            Saved category.
        """
        self.session.add(category)
        await self.session.flush()
        return category

    async def delete(self, category: Category) -> None:
        """Delete a category and its attribute links.

        Args:
            category: Category to delete.
        """
        await self.session.execute(
            sql_delete(CategoryAttributeUsage).where(
                CategoryAttributeUsage.category_id == category.id
            )
        )
        await self.session.delete(category)
        await self.session.flush()

    async def get_product_counts(self) -> dict[int, int]:
        """Count products per category.

        Returns:
            Mapping of category ID to number of assigned products.
        """
        query = (
            select(Product.category_id, func.count(Product.id))
            .where(Product.category_id.is_not(None))
            .group_by(Product.category_id)
        )
        result = await self.session.execute(query)
        return {category_id: count for category_id, count in result.all()}

    async def count_products(self, category_id: int) -> int:
        """Count products assigned to a category.

        Args:
            category_id: Category ID.

        Returns:
            Number of assigned products.
        """
        query = select(func.count(Product.id)).where(Product.category_id == category_id)
        result = await self.session.execute(query)
        return result.scalar_one()


class ProductRepository:
    """Repository for Product database operations.

    Handles seller-scoped lookups by SKU, the filtered listing used by
    exports, and bulk rewrites of denormalized category labels.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self.session = session

    async def get_by_skus(self, seller_id: str, skus: Iterable[str]) -> dict[str, Product]:
        """Get a seller's products for a set of SKUs.

        Args:
            seller_id: Seller ID.
            skus: Merchant SKUs, any case.

        Returns:
            Mapping of lower-cased SKU to product.
        """
        lowered = {sku.strip().lower() for sku in skus if sku and sku.strip()}
        if not lowered:
            return {}

        query = select(Product).where(
            and_(
                Product.seller_id == seller_id,
                func.lower(Product.merchant_sku).in_(sorted(lowered)),
            )
        )
        result = await self.session.execute(query)
        return {product.merchant_sku.lower(): product for product in result.scalars().all()}

    async def get_list_filtered(
        self,
        seller_id: str,
        search: str | None = None,
        workflow_state: ProductWorkflowState | None = None,
    ) -> Sequence[Product]:
        """List a seller's products with optional filters.

        Archived products are hidden unless the archived state is
        requested explicitly. Ordered by SKU, then ID.

        Args:
            seller_id: Seller ID.
            search: Text search in title, SKU, description and category.
            workflow_state: Workflow state filter.

        Returns:
            Sequence of matching products.
        """
        conditions = [Product.seller_id == seller_id]

        if workflow_state is not None:
            conditions.append(Product.workflow_state == workflow_state.value)
        else:
            conditions.append(Product.workflow_state != ProductWorkflowState.ARCHIVED.value)

        if search and search.strip():
            search_pattern = f"%{_escape_like(search.strip())}%"
            conditions.append(
                or_(
                    Product.title.ilike(search_pattern, escape=LIKE_ESCAPE),
                    Product.merchant_sku.ilike(search_pattern, escape=LIKE_ESCAPE),
                    Product.description.ilike(search_pattern, escape=LIKE_ESCAPE),
                    Product.category.ilike(search_pattern, escape=LIKE_ESCAPE),
                )
            )

        query = (
            select(Product)
            .where(and_(*conditions))
            .order_by(Product.merchant_sku.asc(), Product.id.asc())
        )
        result = await self.session.execute(query)
        return result.scalars().all()

    async def update_category_labels(self, labels: dict[int, str]) -> int:
        """Rewrite the category label on products of the given categories.

        Args:
            labels: Mapping of category ID to its current full path.

        Returns:
            Number of products updated.
        """
        updated = 0
        for category_id, full_path in labels.items():
            result = await self.session.execute(
                update(Product)
                .where(Product.category_id == category_id)
                .values(category=full_path)
                .execution_options(synchronize_session="fetch")
            )
            updated += result.rowcount or 0
        return updated

    async def reassign_category(self, source_id: int, target: Category) -> int:
        """Move every product from one category to another.

        Args:
            source_id: Category the products are assigned to.
            target: Category to move them to.

        Returns:
            Number of products moved.
        """
        result = await self.session.execute(
            update(Product)
            .where(Product.category_id == source_id)
            .values(category_id=target.id, category=target.full_path)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0
