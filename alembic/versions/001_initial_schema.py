"""Initial schema - mappings, local records and processed webhook entities

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'external_mappings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('provider', sa.String(), nullable=False),
        sa.Column('entity_type', sa.String(), nullable=False),
        sa.Column('internal_id', sa.String(), nullable=False),
        sa.Column('external_id', sa.String(), nullable=False),
        sa.Column('sync_status', sa.String(), nullable=False),
        sa.Column('sync_error', sa.Text(), nullable=True),
        sa.Column('last_sync_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('provider', 'entity_type', 'internal_id', name='uq_mapping_internal'),
        sa.UniqueConstraint('provider', 'entity_type', 'external_id', name='uq_mapping_external'),
    )
    op.create_index('ix_external_mappings_id', 'external_mappings', ['id'])
    op.create_index('ix_external_mappings_sync_status', 'external_mappings', ['sync_status'])
    op.create_index('ix_mapping_partition', 'external_mappings', ['provider', 'entity_type'])

    op.create_table(
        'local_records',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('entity_type', sa.String(), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('sync_status', sa.String(), nullable=False),
        sa.Column('sync_error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_local_records_entity_type', 'local_records', ['entity_type'])
    op.create_index('ix_local_records_sync_status', 'local_records', ['sync_status'])

    op.create_table(
        'processed_webhook_entities',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('idempotency_key', sa.String(length=64), nullable=False),
        sa.Column('realm_id', sa.String(), nullable=False),
        sa.Column('event_id', sa.String(), nullable=False),
        sa.Column('entity_name', sa.String(), nullable=True),
        sa.Column('entity_id', sa.String(), nullable=True),
        sa.Column('operation', sa.String(), nullable=True),
        sa.Column('processed_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_processed_webhook_entities_idempotency_key',
        'processed_webhook_entities',
        ['idempotency_key'],
        unique=True,
    )


def downgrade() -> None:
    op.drop_index('ix_processed_webhook_entities_idempotency_key', table_name='processed_webhook_entities')
    op.drop_table('processed_webhook_entities')
    op.drop_index('ix_local_records_sync_status', table_name='local_records')
    op.drop_index('ix_local_records_entity_type', table_name='local_records')
    op.drop_table('local_records')
    op.drop_index('ix_mapping_partition', table_name='external_mappings')
    op.drop_index('ix_external_mappings_sync_status', table_name='external_mappings')
    op.drop_index('ix_external_mappings_id', table_name='external_mappings')
    op.drop_table('external_mappings')
