"""Events, event registrations and recording comments

Revision ID: 002_events_and_recording_comments
Revises: 001_initial_community_tables
Create Date: 2026-10-17 15:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '002_events_and_recording_comments'
down_revision: Union[str, None] = '001_initial_community_tables'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    ]


def upgrade() -> None:
    """Create the events calendar and recording comment tables."""
    op.create_table('events',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('event_date', sa.Date(), nullable=False),
        sa.Column('event_time', sa.Time(), nullable=False),
        sa.Column('event_type', sa.String(length=20), nullable=False, server_default='live'),
        sa.Column('location', sa.String(length=255), nullable=True),
        sa.Column('instructor_name', sa.String(length=255), nullable=True),
        sa.Column('instructor_title', sa.String(length=255), nullable=True),
        sa.Column('instructor_avatar_url', sa.Text(), nullable=True),
        sa.Column('learning_points', sa.JSON(), nullable=False),
        sa.Column('about_text', sa.Text(), nullable=True),
        sa.Column('is_recurring', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('recurring_pattern', sa.String(length=100), nullable=True),
        sa.Column('recording_id', sa.Uuid(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='upcoming'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['recording_id'], ['recordings.id'], name='fk_events_recording_id_recordings', ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id', name='pk_events')
    )

    op.create_table('event_registrations',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('event_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.ForeignKeyConstraint(['event_id'], ['events.id'], name='fk_event_registrations_event_id_events', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_event_registrations_user_id_users', ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_event_registrations'),
        sa.UniqueConstraint('event_id', 'user_id', name='uq_event_registrations_event_user')
    )

    op.create_table('recording_comments',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('recording_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('parent_id', sa.Uuid(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['recording_id'], ['recordings.id'], name='fk_recording_comments_recording_id_recordings', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_recording_comments_user_id_users', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['parent_id'], ['recording_comments.id'], name='fk_recording_comments_parent_id_recording_comments', ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_recording_comments')
    )

    op.create_index('ix_events_date_time', 'events', ['event_date', 'event_time'])
    op.create_index('ix_event_registrations_user_id', 'event_registrations', ['user_id'])
    op.create_index('ix_recording_comments_recording_created', 'recording_comments', ['recording_id', 'created_at'])


def downgrade() -> None:
    """Drop the events calendar and recording comment tables."""
    op.drop_index('ix_recording_comments_recording_created', table_name='recording_comments')
    op.drop_index('ix_event_registrations_user_id', table_name='event_registrations')
    op.drop_index('ix_events_date_time', table_name='events')
    for table in ('recording_comments', 'event_registrations', 'events'):
        op.drop_table(table)
