"""Initial schema - products and sync_conflicts

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-16

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

UTC_NOW = sa.text("timezone('utc', now())")


def upgrade() -> None:
    productstatus_enum = postgresql.ENUM('draft', 'active', 'discontinued', name='productstatus')
    productstatus_enum.create(op.get_bind(), checkfirst=True)

    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=UTC_NOW, nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=UTC_NOW, nullable=False),
        sa.Column('artist_id', sa.String(), nullable=True),
        sa.Column('status', postgresql.ENUM(name='productstatus', create_type=False), nullable=False),
        sa.Column('external_item_id', sa.String(), nullable=True),
        sa.Column('external_variation_id', sa.String(), nullable=True),
        sa.Column('external_catalog_version', sa.BigInteger(), nullable=True),
        sa.Column('external_location_id', sa.String(), nullable=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('sku', sa.String(), nullable=True),
        sa.Column('image_url', sa.String(), nullable=True),
        sa.Column('synced_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            "(external_item_id IS NULL) = (external_variation_id IS NULL)",
            name='ck_products_external_link_pair',
        ),
    )
    op.create_index('ix_products_artist_id', 'products', ['artist_id'])
    op.create_index('ix_products_external_item_id', 'products', ['external_item_id'], unique=True)
    op.create_index('ix_products_external_variation_id', 'products', ['external_variation_id'], unique=True)

    op.create_table(
        'sync_conflicts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('subject_key', sa.String(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=True),
        sa.Column('external_item_id', sa.String(), nullable=True),
        sa.Column('conflict_type', sa.String(), nullable=False),
        sa.Column('system', sa.String(), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('local_state', sa.JSON(), nullable=False),
        sa.Column('external_state', sa.JSON(), nullable=False),
        sa.Column('detected_at', sa.TIMESTAMP(timezone=True), server_default=UTC_NOW, nullable=False),
        sa.Column('resolution', sa.String(), nullable=True),
        sa.Column('resolved_by', sa.String(), nullable=True),
        sa.Column('resolved_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    for column in ('id', 'subject_key', 'product_id', 'external_item_id', 'conflict_type', 'system', 'status'):
        op.create_index(f'ix_sync_conflicts_{column}', 'sync_conflicts', [column])

    # At most one pending conflict per (subject, type, system)
    op.create_index(
        'uq_sync_conflicts_pending_subject',
        'sync_conflicts',
        ['subject_key', 'conflict_type', 'system'],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
    )


def downgrade() -> None:
    op.drop_index('uq_sync_conflicts_pending_subject', table_name='sync_conflicts')
    for column in ('id', 'subject_key', 'product_id', 'external_item_id', 'conflict_type', 'system', 'status'):
        op.drop_index(f'ix_sync_conflicts_{column}', table_name='sync_conflicts')
    op.drop_table('sync_conflicts')

    op.drop_index('ix_products_external_variation_id', table_name='products')
    op.drop_index('ix_products_external_item_id', table_name='products')
    op.drop_index('ix_products_artist_id', table_name='products')
    op.drop_table('products')

    postgresql.ENUM(name='productstatus').drop(op.get_bind(), checkfirst=True)
