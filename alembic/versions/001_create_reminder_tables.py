"""Create reminders and user_reminder_settings tables

Revision ID: 001_create_reminder_tables
Revises:
Create Date: 2024-06-01 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001_create_reminder_tables'
down_revision = None
branch_labels = None
depends_on = None


json_type = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')


def upgrade():
    op.create_table('reminders',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('recurrence_kind', sa.String(), nullable=False),
        sa.Column('next_trigger_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('time_of_day', sa.String(), nullable=True),
        sa.Column('days_of_week', json_type, nullable=True),
        sa.Column('interval_minutes', sa.Integer(), nullable=True),
        sa.Column('window_start', sa.String(), nullable=True),
        sa.Column('window_end', sa.String(), nullable=True),
        sa.Column('timezone', sa.String(), nullable=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('body', sa.String(), nullable=False),
        sa.Column('tag', sa.String(), nullable=True),
        sa.Column('target_reference', json_type, nullable=False),
        sa.Column('enabled', sa.Boolean(), nullable=False),
        sa.Column('last_triggered', sa.DateTime(timezone=True), nullable=True),
        sa.Column('trigger_count', sa.Integer(), nullable=False),
        sa.Column('scheduled_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_reminders_user_id'), 'reminders', ['user_id'], unique=False)
    op.create_index(op.f('ix_reminders_next_trigger_time'), 'reminders', ['next_trigger_time'], unique=False)
    op.create_index('ix_reminders_user_enabled_trigger', 'reminders', ['user_id', 'enabled', 'next_trigger_time'], unique=False)

    op.create_table('user_reminder_settings',
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('enabled', sa.Boolean(), nullable=False),
        sa.Column('settings_json', json_type, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('user_id')
    )
    op.create_index(op.f('ix_user_reminder_settings_enabled'), 'user_reminder_settings', ['enabled'], unique=False)


def downgrade():
    op.drop_index(op.f('ix_user_reminder_settings_enabled'), table_name='user_reminder_settings')
    op.drop_table('user_reminder_settings')

    op.drop_index('ix_reminders_user_enabled_trigger', table_name='reminders')
    op.drop_index(op.f('ix_reminders_next_trigger_time'), table_name='reminders')
    op.drop_index(op.f('ix_reminders_user_id'), table_name='reminders')
    op.drop_table('reminders')
