"""Create product_import_jobs and product_export_jobs tables.

Revision ID: 002
Revises: 001
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create import and export job tables."""
    op.create_table(
        'product_import_jobs',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('seller_id', sa.String(100), nullable=False, index=True),
        sa.Column('file_name', sa.String(200), nullable=False),
        sa.Column('content_type', sa.String(128), nullable=True),
        sa.Column('file_content', sa.LargeBinary(), nullable=True),
        sa.Column('status', sa.String(32), nullable=False, server_default='pending_confirmation', index=True),
        sa.Column('total_rows', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('failed_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('summary', sa.String(4000), nullable=True),
        sa.Column('error_report', sa.Text(), nullable=True),
        sa.Column('template_version', sa.String(32), nullable=False, server_default='v1'),
        sa.Column('created_on', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('now()'), index=True),
        sa.Column('completed_on', sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        'product_export_jobs',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('seller_id', sa.String(100), nullable=False, index=True),
        sa.Column('format', sa.String(16), nullable=False, server_default='csv'),
        sa.Column('status', sa.String(32), nullable=False, server_default='queued', index=True),
        sa.Column('use_filters', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('search', sa.String(200), nullable=True),
        sa.Column('workflow_state', sa.String(32), nullable=True),
        sa.Column('total_products', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('file_name', sa.String(200), nullable=False),
        sa.Column('content_type', sa.String(128), nullable=True),
        sa.Column('file_content', sa.LargeBinary(), nullable=True),
        sa.Column('summary', sa.String(4000), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('created_on', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('now()'), index=True),
        sa.Column('completed_on', sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    """Drop import and export job tables."""
    op.drop_table('product_export_jobs')
    op.drop_table('product_import_jobs')
