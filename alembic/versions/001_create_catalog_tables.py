"""Create categories, attribute definitions and products tables.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create catalog tables."""
    # Category tree
    op.create_table(
        'categories',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(120), nullable=False),
        sa.Column('slug', sa.String(140), nullable=False),
        sa.Column('full_path', sa.String(512), nullable=False),
        sa.Column('parent_id', sa.Integer(), sa.ForeignKey('categories.id'), nullable=True, index=True),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
    )

    op.create_unique_constraint(
        'uq_categories_parent_slug',
        'categories',
        ['parent_id', 'slug'],
    )

    # Shared attribute definitions and their category links
    op.create_table(
        'category_attribute_definitions',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(120), nullable=False, index=True),
        sa.Column('type', sa.String(32), nullable=False, server_default='text'),
        sa.Column('is_required', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('is_deprecated', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('options', sa.String(1000), nullable=True),
    )

    op.create_table(
        'category_attribute_usages',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('category_id', sa.Integer(),
                  sa.ForeignKey('categories.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('definition_id', sa.Integer(),
                  sa.ForeignKey('category_attribute_definitions.id', ondelete='CASCADE'),
                  nullable=False, index=True),
    )

    op.create_unique_constraint(
        'uq_attribute_usage_pair',
        'category_attribute_usages',
        ['category_id', 'definition_id'],
    )

    # Seller products
    op.create_table(
        'products',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('seller_id', sa.String(100), nullable=False, index=True),
        sa.Column('merchant_sku', sa.String(100), nullable=False),
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.Column('stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('category_id', sa.Integer(), sa.ForeignKey('categories.id'), nullable=True, index=True),
        sa.Column('category', sa.String(512), nullable=False, server_default=''),
        sa.Column('workflow_state', sa.String(20), nullable=False, server_default='draft', index=True),
        sa.Column('shipping_methods', sa.String(500), nullable=True),
        sa.Column('main_image_url', sa.String(1000), nullable=True),
        sa.Column('gallery_image_urls', sa.Text(), nullable=True),
        sa.Column('weight_kg', sa.Numeric(10, 3), nullable=True),
        sa.Column('length_cm', sa.Numeric(10, 2), nullable=True),
        sa.Column('width_cm', sa.Numeric(10, 2), nullable=True),
        sa.Column('height_cm', sa.Numeric(10, 2), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
    )

    # SKU uniqueness per seller
    op.create_unique_constraint(
        'uq_products_seller_sku',
        'products',
        ['seller_id', 'merchant_sku'],
    )


def downgrade() -> None:
    """Drop catalog tables."""
    op.drop_table('products')
    op.drop_table('category_attribute_usages')
    op.drop_table('category_attribute_definitions')
    op.drop_table('categories')
