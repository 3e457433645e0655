"""
Forums model - forums, posts, threaded replies and likes
"""
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin, utcnow


class Forum(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "forums"

    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    posts_count: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        doc="Denormalized count, recomputed whenever a post is added or removed"
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<Forum(name='{self.name}', posts_count={self.posts_count})>"


class ForumPost(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "forum_posts"

    forum_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("forums.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    media_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    media_type: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        doc="'image' or 'video' when media_url is set"
    )
    views: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    likes_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    replies_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_locked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<ForumPost(id={self.id}, title='{self.title}')>"


class ForumPostReply(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "forum_post_replies"

    post_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("forum_posts.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    parent_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("forum_post_replies.id", ondelete="CASCADE"),
        nullable=True,
        doc="Reply this one answers; null for top-level replies"
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    likes_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_answer: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class ForumPostLike(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "forum_post_likes"
    __table_args__ = (UniqueConstraint("post_id", "user_id", name="uq_forum_post_likes_post_user"),)

    post_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("forum_posts.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class ForumReplyLike(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "forum_reply_likes"
    __table_args__ = (UniqueConstraint("reply_id", "user_id", name="uq_forum_reply_likes_reply_user"),)

    reply_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("forum_post_replies.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
