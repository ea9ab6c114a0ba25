"""Create catalog, inventory ledger and blob cleanup tables.

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
    ]


def upgrade() -> None:
    """Create catalog tables."""
    # Category tree
    op.create_table(
        'categories',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(150), nullable=False, unique=True),
        sa.Column('slug', sa.String(170), nullable=False, unique=True, index=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('parent_id', sa.String(36),
                  sa.ForeignKey('categories.id', ondelete='RESTRICT'), nullable=True, index=True),
        sa.Column('image', sa.String(1000), nullable=True),
        *_timestamps(),
    )

    # Products
    op.create_table(
        'products',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False, index=True),
        sa.Column('slug', sa.String(280), nullable=False, unique=True, index=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('ingredients', sa.Text(), nullable=True),
        sa.Column('is_supplement', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('nutrition_info', postgresql.JSONB(), nullable=True),
        sa.Column('featured', sa.Boolean(), nullable=False, server_default='false', index=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true', index=True),
        sa.Column('has_variants', sa.Boolean(), nullable=False, server_default='false'),
        *_timestamps(),
    )

    op.create_table(
        'product_categories',
        sa.Column('product_id', sa.String(36),
                  sa.ForeignKey('products.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('category_id', sa.String(36),
                  sa.ForeignKey('categories.id', ondelete='RESTRICT'), primary_key=True, index=True),
        sa.Column('is_primary', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
    )

    # Variant lookups
    op.create_table(
        'flavors',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False, unique=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('image', sa.String(1000), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
    )

    op.create_table(
        'weights',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('value', sa.Float(), nullable=False),
        sa.Column('unit', sa.String(10), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.UniqueConstraint('value', 'unit', name='uq_weights_value_unit'),
    )

    # Variants
    op.create_table(
        'product_variants',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('product_id', sa.String(36),
                  sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('flavor_id', sa.String(36),
                  sa.ForeignKey('flavors.id', ondelete='RESTRICT'), nullable=True, index=True),
        sa.Column('weight_id', sa.String(36),
                  sa.ForeignKey('weights.id', ondelete='RESTRICT'), nullable=True, index=True),
        sa.Column('sku', sa.String(100), nullable=False, unique=True, index=True),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('sale_price_cents', sa.Integer(), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('initial_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true', index=True),
        *_timestamps(),
        sa.CheckConstraint('quantity >= 0', name='ck_variant_quantity_non_negative'),
        sa.CheckConstraint('price_cents > 0', name='ck_variant_price_positive'),
    )

    # Empty axes count as values; checked at commit so rows can trade pairs
    # within one transaction (PostgreSQL 15+)
    op.execute(
        "ALTER TABLE product_variants ADD CONSTRAINT uq_variant_combination "
        "UNIQUE NULLS NOT DISTINCT (product_id, flavor_id, weight_id) "
        "DEFERRABLE INITIALLY DEFERRED"
    )

    op.create_table(
        'product_images',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('product_id', sa.String(36),
                  sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('url', sa.String(1000), nullable=False),
        sa.Column('alt', sa.String(500), nullable=True),
        sa.Column('is_primary', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
    )

    # Inventory ledger
    op.create_table(
        'inventory_logs',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('variant_id', sa.String(36),
                  sa.ForeignKey('product_variants.id', ondelete='SET NULL'), nullable=True, index=True),
        sa.Column('sku', sa.String(100), nullable=False),
        sa.Column('quantity_change', sa.Integer(), nullable=False),
        sa.Column('reason', sa.String(20), nullable=False, index=True),
        sa.Column('previous_quantity', sa.Integer(), nullable=False),
        sa.Column('new_quantity', sa.Integer(), nullable=False),
        sa.Column('created_by', sa.String(100), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('now()'), index=True),
    )

    # Order lines, written by the order subsystem
    op.create_table(
        'order_items',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('order_id', sa.String(36), nullable=False, index=True),
        sa.Column('product_id', sa.String(36),
                  sa.ForeignKey('products.id', ondelete='RESTRICT'), nullable=True, index=True),
        sa.Column('variant_id', sa.String(36),
                  sa.ForeignKey('product_variants.id', ondelete='RESTRICT'), nullable=True, index=True),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
    )

    # Blobs whose deletion failed
    op.create_table(
        'blob_cleanup_tasks',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('locator', sa.String(1000), nullable=False, index=True),
        sa.Column('reason', sa.String(200), nullable=False),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    """Drop catalog tables."""
    op.drop_table('blob_cleanup_tasks')
    op.drop_table('order_items')
    op.drop_table('inventory_logs')
    op.drop_table('product_images')
    op.drop_table('product_variants')
    op.drop_table('weights')
    op.drop_table('flavors')
    op.drop_table('product_categories')
    op.drop_table('products')
    op.drop_table('categories')
