"""
Events model - the live calendar and member registrations
"""
import uuid
from datetime import date, datetime, time
from typing import List, Optional

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, JSON, String, Text, Time, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin, utcnow


class Event(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "events"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    event_date: Mapped[date] = mapped_column(Date, nullable=False)
    event_time: Mapped[time] = mapped_column(Time, nullable=False)
    event_type: Mapped[str] = mapped_column(
        String(20),
        default="live",
        nullable=False,
        doc="live, webinar, workshop, qa or other"
    )
    location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    instructor_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    instructor_title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    instructor_avatar_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    learning_points: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    about_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    recurring_pattern: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    recording_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("recordings.id", ondelete="SET NULL"),
        nullable=True
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default="upcoming",
        nullable=False,
        doc="upcoming, active, completed, cancelled, or deleted for a soft-deleted event"
    )

    def __repr__(self) -> str:
        return f"<Event(title='{self.title}', event_date={self.event_date}, status='{self.status}')>"


class EventRegistration(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "event_registrations"
    __table_args__ = (UniqueConstraint("event_id", "user_id", name="uq_event_registrations_event_user"),)

    event_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
