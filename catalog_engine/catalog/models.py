"""SQLAlchemy models for the product catalog.

Defines the category tree, the shared category attribute definitions
with their category links, and the seller products that carry a
denormalized category path label.
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from catalog_engine.domain.state_machines import ProductWorkflowState
from catalog_engine.infrastructure.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Category(Base):
    """Category node in the catalog tree.

    Attributes:
        id: Category identifier.
        name: Display name (unique among siblings, case-insensitive).
        slug: URL slug (unique among siblings).
        full_path: Ancestor names joined by " / " (e.g., "Electronics / Phones").
        parent_id: Parent category, None for root categories.
        sort_order: Position among siblings.
        is_active: Whether the category is offered to sellers.
        description: Optional description.
    """

    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    slug: Mapped[str] = mapped_column(String(140), nullable=False)
    full_path: Mapped[str] = mapped_column(String(512), nullable=False)
    parent_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("categories.id"),
        nullable=True,
        index=True,
    )
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    __table_args__ = (
        UniqueConstraint("parent_id", "slug", name="uq_categories_parent_slug"),
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<Category(id={self.id}, full_path={self.full_path})>"


class CategoryAttributeDefinition(Base):
    """Shared attribute definition.

    A definition is identified by (name, type, options) and linked to any
    number of categories. Deprecated definitions stay in place so products
    that already carry values keep their history.
    """

    __tablename__ = "category_attribute_definitions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(32), nullable=False, default="text")
    is_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_deprecated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    options: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    def __repr__(self) -> str:
        """String representation."""
        return f"<CategoryAttributeDefinition(id={self.id}, name={self.name}, type={self.type})>"

    @property
    def option_list(self) -> list[str]:
        """Get list options as a list."""
        return self.options.split(",") if self.options else []


class CategoryAttributeUsage(Base):
    """Link between a category and an attribute definition."""

    __tablename__ = "category_attribute_usages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    category_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("categories.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    definition_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("category_attribute_definitions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    __table_args__ = (
        UniqueConstraint("category_id", "definition_id", name="uq_attribute_usage_pair"),
    )


class Product(Base):
    """Seller product in the catalog.

    Attributes:
        id: Unique product identifier (UUID string).
        seller_id: Seller that owns this product.
        merchant_sku: Seller SKU (unique per seller).
        title: Product title.
        description: Product description.
        price: Unit price.
        stock: Available quantity.
        category_id: Assigned category.
        category: Denormalized category full path label.
        workflow_state: draft, active, suspended or archived.
        shipping_methods: Free-text shipping method list.
        main_image_url: Main image URL.
        gallery_image_urls: Gallery image URLs (comma separated).
        weight_kg / length_cm / width_cm / height_cm: Parcel dimensions.
    """

    __tablename__ = "products"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    seller_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    merchant_sku: Mapped[str] = mapped_column(String(100), nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    category_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("categories.id"),
        nullable=True,
        index=True,
    )
    category: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    workflow_state: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ProductWorkflowState.DRAFT.value,
        index=True,
    )
    shipping_methods: Mapped[str | None] = mapped_column(String(500), nullable=True)
    main_image_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    gallery_image_urls: Mapped[str | None] = mapped_column(Text, nullable=True)
    weight_kg: Mapped[Decimal | None] = mapped_column(Numeric(10, 3), nullable=True)
    length_cm: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    width_cm: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    height_cm: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    # Storage-level guard against two imports creating the same SKU
    __table_args__ = (
        UniqueConstraint("seller_id", "merchant_sku", name="uq_products_seller_sku"),
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<Product(id={self.id}, sku={self.merchant_sku}, title={self.title[:30]}...)>"

    @property
    def is_archived(self) -> bool:
        """Check if the product is archived."""
        return self.workflow_state == ProductWorkflowState.ARCHIVED.value
