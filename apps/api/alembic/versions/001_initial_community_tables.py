"""Initial community tables

Revision ID: 001_initial_community_tables
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial_community_tables'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column('id', sa.Uuid(), nullable=False)


def _created_at() -> sa.Column:
    return sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False)


def _updated_at() -> sa.Column:
    return sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False)


def _user_fk(table: str, column: str = 'user_id', ondelete: str = 'CASCADE') -> sa.ForeignKeyConstraint:
    return sa.ForeignKeyConstraint([column], ['users.id'], name=f'fk_{table}_{column}_users', ondelete=ondelete)


def upgrade() -> None:
    """Create accounts, learning, community and billing tables."""

    # Accounts
    op.create_table('users',
        _id(),
        sa.Column('email', sa.String(length=320), nullable=False),
        sa.Column('hashed_password', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        sa.Column('last_login', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_users'),
        sa.UniqueConstraint('email', name='uq_users_email')
    )

    op.create_table('roles',
        _id(),
        sa.Column('name', sa.String(length=50), nullable=False),
        sa.Column('display_name', sa.String(length=100), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_roles'),
        sa.UniqueConstraint('name', name='uq_roles_name')
    )

    op.create_table('profiles',
        _id(),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('role_id', sa.Uuid(), nullable=True),
        sa.Column('display_name', sa.String(length=255), nullable=True),
        sa.Column('first_name', sa.String(length=255), nullable=True),
        sa.Column('last_name', sa.String(length=255), nullable=True),
        sa.Column('nickname', sa.String(length=255), nullable=True),
        sa.Column('email', sa.String(length=320), nullable=True),
        sa.Column('avatar_url', sa.Text(), nullable=True),
        sa.Column('headline', sa.String(length=255), nullable=True),
        sa.Column('bio', sa.Text(), nullable=True),
        sa.Column('social_links', sa.JSON(), nullable=True),
        sa.Column('points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('level', sa.Integer(), nullable=False, server_default='1'),
        _created_at(),
        _updated_at(),
        _user_fk('profiles'),
        sa.ForeignKeyConstraint(['role_id'], ['roles.id'], name='fk_profiles_role_id_roles', ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id', name='pk_profiles'),
        sa.UniqueConstraint('user_id', name='uq_profiles_user_id')
    )

    # Courses
    op.create_table('courses',
        _id(),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(length=100), nullable=False, server_default='General'),
        sa.Column('difficulty', sa.String(length=20), nullable=False, server_default='beginner'),
        sa.Column('duration_hours', sa.Numeric(6, 2), nullable=False, server_default='1'),
        sa.Column('price', sa.Numeric(10, 2), nullable=True),
        sa.Column('is_free', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('is_free_for_premium', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_premium_only', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_sequential', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='published'),
        sa.Column('thumbnail_url', sa.Text(), nullable=True),
        sa.Column('instructor_name', sa.String(length=255), nullable=True),
        sa.Column('instructor_title', sa.String(length=255), nullable=True),
        sa.Column('instructor_avatar_url', sa.Text(), nullable=True),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint('id', name='pk_courses')
    )

    op.create_table('course_sections',
        _id(),
        sa.Column('course_id', sa.Uuid(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('section_order', sa.Integer(), nullable=False, server_default='0'),
        _created_at(),
        sa.ForeignKeyConstraint(['course_id'], ['courses.id'], name='fk_course_sections_course_id_courses', ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_course_sections')
    )

    op.create_table('course_lessons',
        _id(),
        sa.Column('course_id', sa.Uuid(), nullable=False),
        sa.Column('section_id', sa.Uuid(), nullable=True),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('video_url', sa.Text(), nullable=True),
        sa.Column('content', sa.Text(), nullable=True),
        sa.Column('duration_minutes', sa.Integer(), nullable=True),
        sa.Column('lesson_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_preview', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('qa_section', sa.JSON(), nullable=False),
        sa.Column('key_points', sa.JSON(), nullable=False),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(['course_id'], ['courses.id'], name='fk_course_lessons_course_id_courses', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['section_id'], ['course_sections.id'], name='fk_course_lessons_section_id_course_sections', ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id', name='pk_course_lessons')
    )

    op.create_table('course_enrollments',
        _id(),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('course_id', sa.Uuid(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='enrolled'),
        sa.Column('payment_status', sa.String(length=20), nullable=False, server_default='free'),
        sa.Column('payment_amount', sa.Numeric(10, 2), nullable=True),
        sa.Column('enrolled_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        _user_fk('course_enrollments'),
        sa.ForeignKeyConstraint(['course_id'], ['courses.id'], name='fk_course_enrollments_course_id_courses', ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_course_enrollments'),
        sa.UniqueConstraint('user_id', 'course_id', name='uq_course_enrollments_user_course')
    )

    op.create_table('course_progress',
        _id(),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('course_id', sa.Uuid(), nullable=False),
        sa.Column('progress_percentage', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_accessed_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        _user_fk('course_progress'),
        sa.ForeignKeyConstraint(['course_id'], ['courses.id'], name='fk_course_progress_course_id_courses', ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_course_progress'),
        sa.UniqueConstraint('user_id', 'course_id', name='uq_course_progress_user_course')
    )

    op.create_table('lesson_completions',
        _id(),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('lesson_id', sa.Uuid(), nullable=False),
        sa.Column('course_id', sa.Uuid(), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        _user_fk('lesson_completions'),
        sa.ForeignKeyConstraint(['lesson_id'], ['course_lessons.id'], name='fk_lesson_completions_lesson_id_course_lessons', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['course_id'], ['courses.id'], name='fk_lesson_completions_course_id_courses', ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_lesson_completions'),
        sa.UniqueConstraint('user_id', 'lesson_id', name='uq_lesson_completions_user_lesson')
    )

    op.create_table('lesson_questions',
        _id(),
        sa.Column('lesson_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('question', sa.Text(), nullable=False),
        sa.Column('answer', sa.Text(), nullable=True),
        sa.Column('answered_by', sa.Uuid(), nullable=True),
        sa.Column('answered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        _created_at(),
        sa.ForeignKeyConstraint(['lesson_id'], ['course_lessons.id'], name='fk_lesson_questions_lesson_id_course_lessons', ondelete='CASCADE'),
        _user_fk('lesson_questions'),
        _user_fk('lesson_questions', 'answered_by', 'SET NULL'),
        sa.PrimaryKeyConstraint('id', name='pk_lesson_questions')
    )

    # Forums
    op.create_table('forums',
        _id(),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('display_name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('posts_count', sa.Integer(), nullable=False, server_default='0'),
        _created_at(),
        sa.PrimaryKeyConstraint('id', name='pk_forums'),
        sa.UniqueConstraint('name', name='uq_forums_name')
    )

    op.create_table('forum_posts',
        _id(),
        sa.Column('forum_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('media_url', sa.Text(), nullable=True),
        sa.Column('media_type', sa.String(length=20), nullable=True),
        sa.Column('views', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('likes_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('replies_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_locked', sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(['forum_id'], ['forums.id'], name='fk_forum_posts_forum_id_forums', ondelete='CASCADE'),
        _user_fk('forum_posts'),
        sa.PrimaryKeyConstraint('id', name='pk_forum_posts')
    )

    op.create_table('forum_post_replies',
        _id(),
        sa.Column('post_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('parent_id', sa.Uuid(), nullable=True),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('likes_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_answer', sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(['post_id'], ['forum_posts.id'], name='fk_forum_post_replies_post_id_forum_posts', ondelete='CASCADE'),
        _user_fk('forum_post_replies'),
        sa.ForeignKeyConstraint(['parent_id'], ['forum_post_replies.id'], name='fk_forum_post_replies_parent_id_forum_post_replies', ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_forum_post_replies')
    )

    op.create_table('forum_post_likes',
        _id(),
        sa.Column('post_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(['post_id'], ['forum_posts.id'], name='fk_forum_post_likes_post_id_forum_posts', ondelete='CASCADE'),
        _user_fk('forum_post_likes'),
        sa.PrimaryKeyConstraint('id', name='pk_forum_post_likes'),
        sa.UniqueConstraint('post_id', 'user_id', name='uq_forum_post_likes_post_user')
    )

    op.create_table('forum_reply_likes',
        _id(),
        sa.Column('reply_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(['reply_id'], ['forum_post_replies.id'], name='fk_forum_reply_likes_reply_id_forum_post_replies', ondelete='CASCADE'),
        _user_fk('forum_reply_likes'),
        sa.PrimaryKeyConstraint('id', name='pk_forum_reply_likes'),
        sa.UniqueConstraint('reply_id', 'user_id', name='uq_forum_reply_likes_reply_user')
    )

    # Projects marketplace
    op.create_table('projects',
        _id(),
        sa.Column('user_id', sa.Uuid(), nullable=True),
        sa.Column('guest_name', sa.String(length=255), nullable=True),
        sa.Column('guest_email', sa.String(length=320), nullable=True),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('budget_min', sa.Numeric(12, 2), nullable=True),
        sa.Column('budget_max', sa.Numeric(12, 2), nullable=True),
        sa.Column('budget_currency', sa.String(length=3), nullable=False, server_default='ILS'),
        sa.Column('deadline', sa.Date(), nullable=True),
        sa.Column('technologies', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='open'),
        sa.Column('offers_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('views', sa.Integer(), nullable=False, server_default='0'),
        _created_at(),
        _updated_at(),
        _user_fk('projects', ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id', name='pk_projects')
    )

    op.create_table('project_offers',
        _id(),
        sa.Column('project_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('offer_amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('offer_currency', sa.String(length=3), nullable=False, server_default='ILS'),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        _created_at(),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id'], name='fk_project_offers_project_id_projects', ondelete='CASCADE'),
        _user_fk('project_offers'),
        sa.PrimaryKeyConstraint('id', name='pk_project_offers')
    )

    # Messages, recordings, resources and tags
    op.create_table('messages',
        _id(),
        sa.Column('sender_id', sa.Uuid(), nullable=False),
        sa.Column('recipient_id', sa.Uuid(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
        _user_fk('messages', 'sender_id'),
        _user_fk('messages', 'recipient_id'),
        sa.PrimaryKeyConstraint('id', name='pk_messages')
    )

    op.create_table('recordings',
        _id(),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('video_url', sa.Text(), nullable=False),
        sa.Column('thumbnail_url', sa.Text(), nullable=True),
        sa.Column('category', sa.JSON(), nullable=False),
        sa.Column('duration', sa.String(length=20), nullable=True),
        sa.Column('views', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('qa_section', sa.JSON(), nullable=False),
        sa.Column('key_points', sa.JSON(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=True),
        _created_at(),
        _updated_at(),
        _user_fk('recordings', ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id', name='pk_recordings')
    )

    op.create_table('resources',
        _id(),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('category', sa.String(length=100), nullable=True),
        sa.Column('file_url', sa.Text(), nullable=True),
        sa.Column('file_name', sa.String(length=255), nullable=True),
        sa.Column('file_size', sa.BigInteger(), nullable=True),
        sa.Column('mime_type', sa.String(length=255), nullable=True),
        sa.Column('external_url', sa.Text(), nullable=True),
        sa.Column('thumbnail_url', sa.Text(), nullable=True),
        sa.Column('is_premium', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('download_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('likes_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_by', sa.Uuid(), nullable=True),
        _created_at(),
        _updated_at(),
        _user_fk('resources', 'created_by', 'SET NULL'),
        sa.PrimaryKeyConstraint('id', name='pk_resources')
    )

    op.create_table('resource_likes',
        _id(),
        sa.Column('resource_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(['resource_id'], ['resources.id'], name='fk_resource_likes_resource_id_resources', ondelete='CASCADE'),
        _user_fk('resource_likes'),
        sa.PrimaryKeyConstraint('id', name='pk_resource_likes'),
        sa.UniqueConstraint('resource_id', 'user_id', name='uq_resource_likes_resource_user')
    )

    op.create_table('tags',
        _id(),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('slug', sa.String(length=120), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('color', sa.String(length=20), nullable=True),
        sa.Column('icon', sa.String(length=50), nullable=True),
        sa.Column('is_approved', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('usage_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_by', sa.Uuid(), nullable=True),
        _created_at(),
        _updated_at(),
        _user_fk('tags', 'created_by', 'SET NULL'),
        sa.PrimaryKeyConstraint('id', name='pk_tags'),
        sa.UniqueConstraint('slug', name='uq_tags_slug')
    )

    op.create_table('tag_assignments',
        _id(),
        sa.Column('tag_id', sa.Uuid(), nullable=False),
        sa.Column('content_type', sa.String(length=50), nullable=False),
        sa.Column('content_id', sa.Uuid(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(['tag_id'], ['tags.id'], name='fk_tag_assignments_tag_id_tags', ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_tag_assignments'),
        sa.UniqueConstraint('tag_id', 'content_type', 'content_id', name='uq_tag_assignments_tag_content')
    )

    # Engagement
    op.create_table('notifications',
        _id(),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('type', sa.String(length=30), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('link', sa.Text(), nullable=True),
        sa.Column('related_id', sa.String(length=64), nullable=True),
        sa.Column('related_type', sa.String(length=50), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
        _user_fk('notifications'),
        sa.PrimaryKeyConstraint('id', name='pk_notifications')
    )

    op.create_table('gamification_rules',
        _id(),
        sa.Column('action_name', sa.String(length=100), nullable=False),
        sa.Column('point_value', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint('id', name='pk_gamification_rules'),
        sa.UniqueConstraint('action_name', name='uq_gamification_rules_action_name')
    )

    op.create_table('points_history',
        _id(),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.Column('action_name', sa.String(length=100), nullable=False),
        sa.Column('related_id', sa.String(length=64), nullable=True),
        _created_at(),
        _user_fk('points_history'),
        sa.PrimaryKeyConstraint('id', name='pk_points_history')
    )

    op.create_table('badges',
        _id(),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('icon', sa.String(length=50), nullable=False, server_default='star'),
        sa.Column('icon_color', sa.String(length=20), nullable=False, server_default='#FFD700'),
        sa.Column('points_threshold', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('display_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint('id', name='pk_badges')
    )

    op.create_table('user_badges',
        _id(),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('badge_id', sa.Uuid(), nullable=False),
        sa.Column('earned_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        _user_fk('user_badges'),
        sa.ForeignKeyConstraint(['badge_id'], ['badges.id'], name='fk_user_badges_badge_id_badges', ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_user_badges'),
        sa.UniqueConstraint('user_id', 'badge_id', name='uq_user_badges_user_badge')
    )

    # Billing and settings
    op.create_table('subscriptions',
        _id(),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('role_id', sa.Uuid(), nullable=True),
        sa.Column('previous_role_id', sa.Uuid(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='active'),
        sa.Column('start_date', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('warning_sent', sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
        _updated_at(),
        _user_fk('subscriptions'),
        sa.ForeignKeyConstraint(['role_id'], ['roles.id'], name='fk_subscriptions_role_id_roles', ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['previous_role_id'], ['roles.id'], name='fk_subscriptions_previous_role_id_roles', ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id', name='pk_subscriptions')
    )

    op.create_table('payments',
        _id(),
        sa.Column('subscription_id', sa.Uuid(), nullable=True),
        sa.Column('user_id', sa.Uuid(), nullable=True),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='ILS'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('payment_date', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('payment_method', sa.String(length=50), nullable=True),
        sa.Column('transaction_id', sa.String(length=255), nullable=True),
        sa.Column('invoice_url', sa.Text(), nullable=True),
        sa.Column('invoice_number', sa.String(length=100), nullable=True),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(['subscription_id'], ['subscriptions.id'], name='fk_payments_subscription_id_subscriptions', ondelete='SET NULL'),
        _user_fk('payments', ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id', name='pk_payments')
    )

    op.create_table('email_preferences',
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('forum_reply', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('new_project', sa.Boolean(), nullable=False, server_default=sa.true()),
        _updated_at(),
        _user_fk('email_preferences'),
        sa.PrimaryKeyConstraint('user_id', name='pk_email_preferences')
    )

    op.create_table('system_settings',
        sa.Column('key', sa.String(length=100), nullable=False),
        sa.Column('value', sa.JSON(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        _updated_at(),
        sa.PrimaryKeyConstraint('key', name='pk_system_settings')
    )

    # Create indexes for the common lookups
    op.create_index('ix_course_lessons_course_order', 'course_lessons', ['course_id', 'lesson_order'])
    op.create_index('ix_course_enrollments_user_id', 'course_enrollments', ['user_id'])
    op.create_index('ix_lesson_completions_user_course', 'lesson_completions', ['user_id', 'course_id'])
    op.create_index('ix_forum_posts_forum_created', 'forum_posts', ['forum_id', 'created_at'])
    op.create_index('ix_forum_post_replies_post_id', 'forum_post_replies', ['post_id'])
    op.create_index('ix_project_offers_project_id', 'project_offers', ['project_id'])
    op.create_index('ix_messages_recipient_read', 'messages', ['recipient_id', 'is_read'])
    op.create_index('ix_messages_sender_id', 'messages', ['sender_id'])
    op.create_index('ix_tag_assignments_content', 'tag_assignments', ['content_type', 'content_id'])
    op.create_index('ix_notifications_user_created', 'notifications', ['user_id', 'created_at'])
    op.create_index('ix_points_history_user_action', 'points_history', ['user_id', 'action_name'])
    op.create_index('ix_subscriptions_status_end_date', 'subscriptions', ['status', 'end_date'])


def downgrade() -> None:
    """Drop community tables."""
    for table in (
        'system_settings', 'email_preferences', 'payments', 'subscriptions',
        'user_badges', 'badges', 'points_history', 'gamification_rules', 'notifications',
        'tag_assignments', 'tags', 'resource_likes', 'resources', 'recordings', 'messages',
        'project_offers', 'projects',
        'forum_reply_likes', 'forum_post_likes', 'forum_post_replies', 'forum_posts', 'forums',
        'lesson_questions', 'lesson_completions', 'course_progress', 'course_enrollments',
        'course_lessons', 'course_sections', 'courses',
        'profiles', 'roles', 'users',
    ):
        op.drop_table(table)
