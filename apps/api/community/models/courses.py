"""
Courses model - courses, sections, lessons and per-user learning state
"""
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    Boolean, DateTime, ForeignKey, Integer, JSON, Numeric, String, Text, UniqueConstraint
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin, utcnow


class Course(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "courses"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(100), default="General", nullable=False)
    difficulty: Mapped[str] = mapped_column(
        String(20),
        default="beginner",
        nullable=False,
        doc="'beginner', 'intermediate' or 'advanced'"
    )
    duration_hours: Mapped[float] = mapped_column(Numeric(6, 2, asdecimal=False), default=1, nullable=False)
    price: Mapped[Optional[float]] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=True)
    is_free: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_free_for_premium: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        doc="Premium members enroll without paying"
    )
    is_premium_only: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_sequential: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        doc="Lessons unlock only after the previous one is completed"
    )
    status: Mapped[str] = mapped_column(String(20), default="published", nullable=False)
    thumbnail_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    instructor_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    instructor_title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    instructor_avatar_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Course(id={self.id}, title='{self.title}', status='{self.status}')>"


class CourseSection(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "course_sections"

    course_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    section_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class CourseLesson(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "course_lessons"

    course_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    section_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("course_sections.id", ondelete="SET NULL"),
        nullable=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    video_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    duration_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    lesson_order: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        doc="Position of the lesson within its course"
    )
    is_preview: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    qa_section: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    key_points: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)


class CourseEnrollment(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "course_enrollments"
    __table_args__ = (UniqueConstraint("user_id", "course_id", name="uq_course_enrollments_user_course"),)

    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    course_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default="enrolled",
        nullable=False,
        doc="'enrolled', 'in_progress', 'completed' or 'cancelled'"
    )
    payment_status: Mapped[str] = mapped_column(String(20), default="free", nullable=False)
    payment_amount: Mapped[Optional[float]] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=True)
    enrolled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class CourseProgress(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "course_progress"
    __table_args__ = (UniqueConstraint("user_id", "course_id", name="uq_course_progress_user_course"),)

    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    course_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    progress_percentage: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_accessed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class LessonCompletion(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "lesson_completions"
    __table_args__ = (UniqueConstraint("user_id", "lesson_id", name="uq_lesson_completions_user_lesson"),)

    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    lesson_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("course_lessons.id", ondelete="CASCADE"), nullable=False)
    course_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class LessonQuestion(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "lesson_questions"

    lesson_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("course_lessons.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    question: Mapped[str] = mapped_column(Text, nullable=False)
    answer: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    answered_by: Mapped[Optional[uuid.UUID]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    answered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
