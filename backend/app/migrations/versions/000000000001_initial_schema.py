"""initial_schema

Revision ID: 000000000001
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '000000000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ENUMS
    sa.Enum('academic', 'job', 'scholarship', 'general', name='template_category_enum').create(op.get_bind())
    sa.Enum(
        'requested', 'in_progress', 'draft', 'in_review', 'completed', 'rejected', 'canceled',
        name='letter_status_enum',
    ).create(op.get_bind())
    sa.Enum('GENERATION', 'RESTORATION', name='letter_version_kind_enum').create(op.get_bind())

    # 1. letter_templates
    op.create_table('letter_templates',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', postgresql.ENUM('academic', 'job', 'scholarship', 'general', name='template_category_enum', create_type=False), nullable=False),
        sa.Column('prompt_template', sa.Text(), nullable=False),
        sa.Column('default_parameters', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('created_by', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('is_system_template', sa.Boolean(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )

    # 2. letter_requests
    op.create_table('letter_requests',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('status', postgresql.ENUM(
            'requested', 'in_progress', 'draft', 'in_review', 'completed', 'rejected', 'canceled',
            name='letter_status_enum', create_type=False), nullable=False),
        sa.Column('applicant_data', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('requester_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('invited_referee_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('referee_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('template_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('preferences', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('current_content', sa.Text(), nullable=True),
        sa.Column('current_version', sa.Integer(), nullable=False),
        sa.Column('generation_parameters', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('generation_attempts', sa.Integer(), nullable=False),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('accepted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejected_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('canceled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('history_cleared_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['template_id'], ['letter_templates.id'], )
    )
    op.create_index('ix_letter_requests_referee_status', 'letter_requests', ['referee_id', 'status'])
    op.create_index('ix_letter_requests_requester', 'letter_requests', ['requester_id'])

    # 3. letter_versions
    op.create_table('letter_versions',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('letter_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('version_number', sa.Integer(), nullable=False),
        sa.Column('kind', postgresql.ENUM('GENERATION', 'RESTORATION', name='letter_version_kind_enum', create_type=False), nullable=False),
        sa.Column('restored_from_version', sa.Integer(), nullable=True),
        sa.Column('model_used', sa.String(length=100), nullable=True),
        sa.Column('selected_model', sa.String(length=50), nullable=True),
        sa.Column('tokens_used', sa.Integer(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('content_hash', sa.String(length=64), nullable=False),
        sa.Column('generation_settings', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['letter_id'], ['letter_requests.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('letter_id', 'version_number', name='uq_letter_version')
    )

    # 4. audit_logs
    op.create_table('audit_logs',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('entity_type', sa.String(length=50), nullable=False),
        sa.Column('entity_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('action', sa.String(length=50), nullable=False),
        sa.Column('actor_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('metadata', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_audit_logs_entity', 'audit_logs', ['entity_type', 'entity_id'])
    op.create_index('ix_audit_logs_actor', 'audit_logs', ['actor_id'])


def downgrade() -> None:
    op.drop_index('ix_audit_logs_actor', table_name='audit_logs')
    op.drop_index('ix_audit_logs_entity', table_name='audit_logs')
    op.drop_table('audit_logs')
    op.drop_table('letter_versions')
    op.drop_index('ix_letter_requests_requester', table_name='letter_requests')
    op.drop_index('ix_letter_requests_referee_status', table_name='letter_requests')
    op.drop_table('letter_requests')
    op.drop_table('letter_templates')

    sa.Enum(name='letter_version_kind_enum').drop(op.get_bind())
    sa.Enum(name='letter_status_enum').drop(op.get_bind())
    sa.Enum(name='template_category_enum').drop(op.get_bind())
