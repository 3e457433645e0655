"""
Database operations for the live events calendar and registrations
"""
import calendar
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import ConflictError, NotFoundError, ValidationError
from ..logging_config import get_logger
from ..models import Event, EventRegistration
from ..models.base import utcnow
from ..utils import row_to_dict
from .gamification import award_points_safely
from .profiles import ProfilesRepository, profile_summary

logger = get_logger(__name__)

EVENT_TYPES = ("live", "webinar", "workshop", "qa", "other")
EVENT_STATUSES = ("upcoming", "active", "completed", "cancelled", "deleted")
VISIBLE_UPCOMING_STATUSES = ("upcoming", "active", "completed")
EVENT_FIELDS = (
    "title", "description", "event_date", "event_time", "event_type", "location",
    "instructor_name", "instructor_title", "instructor_avatar_url", "learning_points",
    "about_text", "is_recurring", "recurring_pattern", "recording_id", "status",
)
EVENT_DURATION = timedelta(hours=2)
LIST_LIMIT = 50


def event_starts_at(event: Event) -> datetime:
    """Event times are stored without a zone and read as UTC"""
    return datetime.combine(event.event_date, event.event_time, tzinfo=timezone.utc)


def status_for(event: Event, now: datetime) -> str:
    start = event_starts_at(event)
    if now < start:
        return "upcoming"
    if now < start + EVENT_DURATION:
        return "active"
    return "completed"


class EventsRepository:
    """Repository for events and registrations"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_events(self, include_deleted: bool = False, year: Optional[int] = None,
                          month: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Events in calendar order

        With year and month the list covers that month only; otherwise the
        first LIST_LIMIT events are returned. Soft-deleted events are left
        out unless include_deleted is set.
        """
        query = select(Event).order_by(Event.event_date, Event.event_time)
        if not include_deleted:
            query = query.where(Event.status != "deleted")
        if year is not None and month is not None:
            if not 1 <= month <= 12:
                raise ValidationError("month must be between 1 and 12")
            last_day = calendar.monthrange(year, month)[1]
            query = query.where(Event.event_date >= date(year, month, 1), Event.event_date <= date(year, month, last_day))
        else:
            query = query.limit(LIST_LIMIT)
        result = await self.session.execute(query)
        return [row_to_dict(event) for event in result.scalars().all()]

    async def get_upcoming_events(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        query = (
            select(Event)
            .where(Event.event_date >= utcnow().date(), Event.status.in_(VISIBLE_UPCOMING_STATUSES))
            .order_by(Event.event_date, Event.event_time)
        )
        if limit:
            query = query.limit(limit)
        result = await self.session.execute(query)
        return [row_to_dict(event) for event in result.scalars().all()]

    async def get_event(self, event_id: UUID, include_deleted: bool = False) -> Event:
        event = await self.session.get(Event, event_id)
        if event is None or (event.status == "deleted" and not include_deleted):
            raise NotFoundError("Event not found")
        return event

    def _validate(self, fields: Dict[str, Any]) -> None:
        if "event_type" in fields and fields["event_type"] not in EVENT_TYPES:
            raise ValidationError(f"Invalid event type: {fields['event_type']}")
        if "status" in fields and fields["status"] not in EVENT_STATUSES:
            raise ValidationError(f"Invalid event status: {fields['status']}")

    async def create_event(self, data: Dict[str, Any]) -> Event:
        if not data.get("title") or not data.get("event_date") or not data.get("event_time"):
            raise ValidationError("title, event_date and event_time are required")
        fields = {key: data[key] for key in EVENT_FIELDS if data.get(key) is not None}
        fields.setdefault("event_type", "live")
        fields.setdefault("status", "upcoming")
        fields.setdefault("learning_points", [])
        self._validate(fields)

        event = Event(**fields)
        self.session.add(event)
        await self.session.commit()
        logger.info(f"Created event {event.id}: {event.title} on {event.event_date}")
        return event

    async def update_event(self, event_id: UUID, updates: Dict[str, Any]) -> Event:
        event = await self.get_event(event_id, include_deleted=True)
        fields = {key: value for key, value in updates.items() if key in EVENT_FIELDS}
        self._validate(fields)
        for key, value in fields.items():
            if key == "learning_points":
                value = value or []
            setattr(event, key, value)
        await self.session.commit()
        return event

    async def delete_event(self, event_id: UUID) -> Event:
        """Soft delete: the event stays for its registrations but leaves every listing"""
        event = await self.get_event(event_id)
        event.status = "deleted"
        await self.session.commit()
        logger.info(f"Deleted event {event_id}")
        return event

    async def refresh_event_statuses(self, now: Optional[datetime] = None) -> int:
        """
        Move upcoming and active events along by the clock

        An event is active from its start for EVENT_DURATION and completed
        afterwards. Cancelled and deleted events are never touched.
        """
        now = now or utcnow()
        result = await self.session.execute(select(Event).where(Event.status.in_(("upcoming", "active"))))
        updated = 0
        for event in result.scalars().all():
            new_status = status_for(event, now)
            if new_status != event.status:
                event.status = new_status
                updated += 1
        if updated:
            await self.session.commit()
            logger.info(f"Updated {updated} event statuses")
        return updated

    # Registrations

    async def is_registered(self, event_id: UUID, user_id: UUID) -> bool:
        result = await self.session.execute(
            select(func.count(EventRegistration.id)).where(
                EventRegistration.event_id == event_id,
                EventRegistration.user_id == user_id,
            )
        )
        return (result.scalar() or 0) > 0

    async def register(self, event_id: UUID, user_id: UUID) -> Dict[str, Any]:
        """Register a member once per event; awards the event registration points"""
        event = await self.get_event(event_id)
        if event.status == "cancelled":
            raise ValidationError("Event is cancelled")
        if await self.is_registered(event_id, user_id):
            raise ConflictError("Already registered for this event", code="ALREADY_REGISTERED")

        registration = EventRegistration(event_id=event_id, user_id=user_id)
        self.session.add(registration)
        await self.session.commit()
        logger.info(f"User {user_id} registered for event {event_id}")

        data = row_to_dict(registration)
        event_data = row_to_dict(event)
        await award_points_safely(
            self.session, user_id, "event registration", related_id=event_id, check_related_id=True
        )
        return {**data, "event": event_data}

    async def get_user_registrations(self, user_id: UUID) -> List[Dict[str, Any]]:
        result = await self.session.execute(
            select(EventRegistration, Event)
            .join(Event, Event.id == EventRegistration.event_id)
            .where(EventRegistration.user_id == user_id)
            .order_by(EventRegistration.created_at.desc())
        )
        return [{**row_to_dict(registration), "event": row_to_dict(event)} for registration, event in result.all()]

    async def get_event_registrations(self, event_id: UUID) -> List[Dict[str, Any]]:
        """Registrants with their profile and email, newest first"""
        await self.get_event(event_id, include_deleted=True)
        result = await self.session.execute(
            select(EventRegistration)
            .where(EventRegistration.event_id == event_id)
            .order_by(EventRegistration.created_at.desc())
        )
        registrations = list(result.scalars().all())
        profiles = await ProfilesRepository(self.session).get_profiles_by_user_ids([r.user_id for r in registrations])

        data = []
        for registration in registrations:
            profile = profiles.get(registration.user_id)
            data.append({
                **row_to_dict(registration),
                "profile": {
                    **profile_summary(profile, registration.user_id),
                    "email": profile.email if profile else None,
                },
            })
        return data
