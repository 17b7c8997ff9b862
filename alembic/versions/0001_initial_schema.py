"""Initial schema: folders, properties, renovations, visits, inbox, documents, sharing.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-17
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # =========================================================================
    # Table: folders
    # =========================================================================
    op.create_table(
        'folders',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('owner_id', sa.String(64), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), nullable=True),
        sa.Column('transaction_type', sa.String(20), nullable=True),
        sa.Column('budget', sa.Float(), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('status_updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('color', sa.String(20), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_folders_owner_id', 'folders', ['owner_id'])

    # =========================================================================
    # Table: properties
    # =========================================================================
    op.create_table(
        'properties',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('folder_id', sa.String(36), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=True),
        sa.Column('title', sa.String(500), nullable=True),
        sa.Column('url', sa.Text(), nullable=True),
        sa.Column('address', sa.String(500), nullable=True),
        sa.Column('exact_address', sa.String(500), nullable=True),
        sa.Column('price', sa.Float(), nullable=True),
        sa.Column('fees', sa.Float(), nullable=True),
        sa.Column('environments', sa.Integer(), nullable=True),
        sa.Column('rooms', sa.Integer(), nullable=True),
        sa.Column('bathrooms', sa.Integer(), nullable=True),
        sa.Column('toilets', sa.Integer(), nullable=True),
        sa.Column('parking', sa.Integer(), nullable=True),
        sa.Column('sqft', sa.Float(), nullable=True),
        sa.Column('covered_sqft', sa.Float(), nullable=True),
        sa.Column('uncovered_sqft', sa.Float(), nullable=True),
        sa.Column('age', sa.Integer(), nullable=True),
        sa.Column('floor', sa.String(20), nullable=True),
        sa.Column('status', sa.String(20), nullable=True),
        sa.Column('rating', sa.Integer(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('images', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['folder_id'], ['folders.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_properties_folder_id', 'properties', ['folder_id'])
    op.create_index('ix_properties_status', 'properties', ['status'])
    op.create_index('ix_properties_folder_created', 'properties', ['folder_id', 'created_at'])

    # =========================================================================
    # Table: renovations
    # =========================================================================
    op.create_table(
        'renovations',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('property_id', sa.String(36), nullable=False),
        sa.Column('category', sa.String(100), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('estimated_cost', sa.Float(), nullable=True),
        sa.Column('position', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['property_id'], ['properties.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_renovations_property_id', 'renovations', ['property_id'])

    # =========================================================================
    # Table: visits (property_id intentionally unconstrained)
    # =========================================================================
    op.create_table(
        'visits',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('property_id', sa.String(36), nullable=False),
        sa.Column('folder_id', sa.String(36), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('time', sa.String(5), nullable=True),
        sa.Column('contact_name', sa.String(255), nullable=True),
        sa.Column('contact_phone', sa.String(50), nullable=True),
        sa.Column('checklist', sa.JSON(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), nullable=True),
        sa.Column('client_feedback', sa.Text(), nullable=True),
        sa.Column('photos', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['folder_id'], ['folders.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_visits_property_id', 'visits', ['property_id'])
    op.create_index('ix_visits_folder_id', 'visits', ['folder_id'])

    # =========================================================================
    # Table: link_inbox
    # =========================================================================
    op.create_table(
        'link_inbox',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('url', sa.Text(), nullable=False),
        sa.Column('folder_id', sa.String(36), nullable=True),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['folder_id'], ['folders.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_link_inbox_folder_id', 'link_inbox', ['folder_id'])
    op.create_index('ix_link_inbox_user_id', 'link_inbox', ['user_id'])

    # =========================================================================
    # Table: documents
    # =========================================================================
    op.create_table(
        'documents',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('folder_id', sa.String(36), nullable=False),
        sa.Column('property_id', sa.String(36), nullable=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('category', sa.String(20), nullable=True),
        sa.Column('file_url', sa.Text(), nullable=False),
        sa.Column('file_type', sa.String(100), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['folder_id'], ['folders.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_documents_folder_id', 'documents', ['folder_id'])
    op.create_index('ix_documents_property_id', 'documents', ['property_id'])

    # =========================================================================
    # Sharing
    # =========================================================================
    op.create_table(
        'folder_shares',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('folder_id', sa.String(36), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('permission', sa.String(10), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['folder_id'], ['folders.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('folder_id', 'email', name='uq_folder_share_email'),
    )
    op.create_index('ix_folder_shares_folder_id', 'folder_shares', ['folder_id'])
    op.create_index('ix_folder_shares_email', 'folder_shares', ['email'])

    op.create_table(
        'shared_itineraries',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('folder_id', sa.String(36), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('settings', sa.JSON(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['folder_id'], ['folders.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_shared_itineraries_folder_id', 'shared_itineraries', ['folder_id'])


def downgrade() -> None:
    for table in (
        'shared_itineraries',
        'folder_shares',
        'documents',
        'link_inbox',
        'visits',
        'renovations',
        'properties',
        'folders',
    ):
        op.drop_table(table)
