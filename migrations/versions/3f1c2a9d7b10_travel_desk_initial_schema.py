"""travel_desk_initial_schema

Creates the travel desk tables:
  - applications                   — travel requests and their workflow status
  - application_number_sequences   — per-department, per-year number counters
  - decision_entries               — append-only decision log
  - system_settings                — single JSON settings document
  - email_logs                     — one row per notification attempt

Revision ID: 3f1c2a9d7b10
Revises:
Create Date: 2026-10-18 09:12:44.512307
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3f1c2a9d7b10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'applications',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('application_number', sa.String(length=32), nullable=False,
                  comment='<dept code>-<year>-<seq>, assigned at creation'),
        sa.Column('requester_id', sa.String(length=64), nullable=False),
        sa.Column('requester_email', sa.String(length=255), nullable=False),
        sa.Column('requester_first_name', sa.String(length=100), nullable=True),
        sa.Column('requester_last_name', sa.String(length=100), nullable=True),
        sa.Column('phone_number', sa.String(length=50), nullable=True),
        sa.Column('department', sa.String(length=200), nullable=False),
        sa.Column('division', sa.String(length=200), nullable=True),
        sa.Column('head_of_department', sa.String(length=200), nullable=True),
        sa.Column('head_of_department_email', sa.String(length=255), nullable=True),
        sa.Column('department_head_code', sa.String(length=10), nullable=True),
        sa.Column('hod_email', sa.String(length=255), nullable=True),
        sa.Column('minister_name', sa.String(length=200), nullable=True),
        sa.Column('event_title', sa.String(length=500), nullable=False),
        sa.Column('reason_for_participation', sa.Text(), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('duration_days', sa.Integer(), nullable=True),
        sa.Column('number_of_travellers', sa.Integer(), nullable=True),
        sa.Column('travellers', sa.JSON(), nullable=True),
        sa.Column('expenses', sa.JSON(), nullable=True),
        sa.Column('attachments_provided', sa.JSON(), nullable=True),
        sa.Column('total_gon_cost', sa.Float(), nullable=True),
        sa.Column('status', sa.String(length=30), nullable=False),
        sa.Column('current_reviewer_id', sa.String(length=64), nullable=True),
        sa.Column('minister_email', sa.String(length=255), nullable=True,
                  comment='Set only when the application is referred to a minister'),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('decided_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('archived_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('application_number'),
    )
    op.create_index('idx_app_status', 'applications', ['status'])
    op.create_index('idx_app_requester', 'applications', ['requester_id'])
    op.create_index('idx_app_archived_at', 'applications', ['archived_at'])

    op.create_table(
        'application_number_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('department_code', sa.String(length=10), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('department_code', 'year', name='uq_appseq_dept_year'),
    )

    op.create_table(
        'decision_entries',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('application_id', sa.String(length=36), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False,
                  comment="1-based insertion position within the application's log"),
        sa.Column('action', sa.String(length=30), nullable=False),
        sa.Column('actor_id', sa.String(length=64), nullable=False),
        sa.Column('actor_name', sa.String(length=255), nullable=False),
        sa.Column('actor_email', sa.String(length=255), nullable=False),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['application_id'], ['applications.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('application_id', 'sequence', name='uq_decision_app_seq'),
    )
    op.create_index('ix_decision_entries_application_id', 'decision_entries', ['application_id'])
    op.create_index('ix_decision_actor', 'decision_entries', ['actor_id'])
    op.create_index('ix_decision_action', 'decision_entries', ['action'])

    op.create_table(
        'system_settings',
        sa.Column('key', sa.String(length=64), nullable=False),
        sa.Column('value', sa.JSON(), nullable=False),
        sa.Column('updated_by', sa.String(length=255), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('key'),
    )

    op.create_table(
        'email_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('recipient_email', sa.String(length=255), nullable=False),
        sa.Column('subject', sa.String(length=500), nullable=False),
        sa.Column('template_name', sa.String(length=100), nullable=True),
        sa.Column('category', sa.String(length=30), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('message_id', sa.String(length=255), nullable=True),
        sa.Column('application_id', sa.String(length=36), nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['application_id'], ['applications.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_email_logs_recipient_email', 'email_logs', ['recipient_email'])
    op.create_index('ix_email_logs_application_id', 'email_logs', ['application_id'])


def downgrade():
    op.drop_index('ix_email_logs_application_id', table_name='email_logs')
    op.drop_index('ix_email_logs_recipient_email', table_name='email_logs')
    op.drop_table('email_logs')
    op.drop_table('system_settings')
    op.drop_index('ix_decision_action', table_name='decision_entries')
    op.drop_index('ix_decision_actor', table_name='decision_entries')
    op.drop_index('ix_decision_entries_application_id', table_name='decision_entries')
    op.drop_table('decision_entries')
    op.drop_table('application_number_sequences')
    op.drop_index('idx_app_archived_at', table_name='applications')
    op.drop_index('idx_app_requester', table_name='applications')
    op.drop_index('idx_app_status', table_name='applications')
    op.drop_table('applications')
