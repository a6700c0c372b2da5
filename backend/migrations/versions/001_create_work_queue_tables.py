"""Create tenant, work_item, work_relation and audit_log tables

Revision ID: 001
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Create tenant table
    op.create_table(
        'tenant',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('api_key', sa.Text(), nullable=True),
        sa.Column('endpoint', sa.Text(), nullable=True),
        sa.Column('erp_database_name', sa.Text(), nullable=True),
        sa.Column('is_test', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('api_key', name='uq_tenant_api_key')
    )

    # Create work_item table
    op.create_table(
        'work_item',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('external_id', sa.Uuid(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('scope', sa.Integer(), nullable=False),
        sa.Column('status', sa.Integer(), server_default='0', nullable=False),
        sa.Column('request_payload', sa.Text(), server_default='', nullable=False),
        sa.Column('description', sa.String(length=1024), server_default='', nullable=False),
        sa.Column('target_id', sa.Integer(), server_default='0', nullable=False),
        sa.Column('correlation_id', sa.String(length=64), nullable=True),
        sa.Column('change_type', sa.Text(), nullable=True),
        sa.Column('raw_body', sa.Text(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenant.id'], ondelete='RESTRICT'),
        sa.UniqueConstraint('external_id', name='uq_work_item_external_id'),
        sa.CheckConstraint('status IN (0, 5, 1, -1)', name='ck_work_item_status')
    )

    # Create indexes for work_item table
    op.create_index('ix_work_item_tenant_id', 'work_item', ['tenant_id'])
    op.create_index('ix_work_item_scope', 'work_item', ['scope'])
    op.create_index('ix_work_item_status', 'work_item', ['status'])
    op.create_index('ix_work_item_created_at', 'work_item', ['created_at'])
    op.create_index('ix_work_item_target_id', 'work_item', ['target_id'])
    op.create_index('ix_work_item_correlation_id', 'work_item', ['correlation_id'])

    # Create work_relation table (RESTRICT on both endpoints)
    op.create_table(
        'work_relation',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('source_item_id', sa.Integer(), nullable=False),
        sa.Column('target_item_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(
            ['source_item_id'], ['work_item.id'],
            name='fk_work_relation_source', ondelete='RESTRICT'
        ),
        sa.ForeignKeyConstraint(
            ['target_item_id'], ['work_item.id'],
            name='fk_work_relation_target', ondelete='RESTRICT'
        ),
        sa.UniqueConstraint('source_item_id', 'target_item_id', name='uq_work_relation_source_target')
    )

    op.create_index('ix_work_relation_source_item_id', 'work_relation', ['source_item_id'])
    op.create_index('ix_work_relation_target_item_id', 'work_relation', ['target_item_id'])

    # Create audit_log table (append-only, no foreign keys)
    op.create_table(
        'audit_log',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.Text(), nullable=False),
        sa.Column('entity_type', sa.Text(), nullable=True),
        sa.Column('entity_id', sa.Integer(), nullable=True),
        sa.Column('correlation_id', sa.String(length=64), nullable=True),
        sa.Column('metadata_json', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_index('ix_audit_log_tenant_id_created_at', 'audit_log', ['tenant_id', 'created_at'])
    op.create_index('ix_audit_log_correlation_id', 'audit_log', ['correlation_id'])


def downgrade():
    op.drop_index('ix_audit_log_correlation_id', table_name='audit_log')
    op.drop_index('ix_audit_log_tenant_id_created_at', table_name='audit_log')
    op.drop_table('audit_log')

    op.drop_index('ix_work_relation_target_item_id', table_name='work_relation')
    op.drop_index('ix_work_relation_source_item_id', table_name='work_relation')
    op.drop_table('work_relation')

    op.drop_index('ix_work_item_correlation_id', table_name='work_item')
    op.drop_index('ix_work_item_target_id', table_name='work_item')
    op.drop_index('ix_work_item_created_at', table_name='work_item')
    op.drop_index('ix_work_item_status', table_name='work_item')
    op.drop_index('ix_work_item_scope', table_name='work_item')
    op.drop_index('ix_work_item_tenant_id', table_name='work_item')
    op.drop_table('work_item')

    op.drop_table('tenant')
