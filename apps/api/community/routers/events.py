"""
Live events calendar and registration endpoints
"""
from datetime import date, time
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.jwt import CurrentUser, get_current_user, get_optional_user, require_admin
from ..database.events import EventsRepository
from ..database.profiles import ProfilesRepository
from ..database.session import get_session
from ..logging_config import setup_logging
from ..mailer import EmailSender, event_registration_email, get_email_sender, send_safely
from ..utils import get_display_name, row_to_dict

logger = setup_logging(__name__)

router = APIRouter(prefix="/events", tags=["events"])


class EventPayload(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    event_date: Optional[date] = None
    event_time: Optional[time] = None
    event_type: Optional[str] = None
    location: Optional[str] = None
    instructor_name: Optional[str] = None
    instructor_title: Optional[str] = None
    instructor_avatar_url: Optional[str] = None
    learning_points: Optional[List[str]] = None
    about_text: Optional[str] = None
    is_recurring: Optional[bool] = None
    recurring_pattern: Optional[str] = None
    recording_id: Optional[UUID] = None
    status: Optional[str] = None


@router.get("")
async def list_events(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    month: Optional[int] = None,
    include_deleted: bool = False,
    current_user: Optional[CurrentUser] = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
):
    """Calendar listing; a year and month narrow it to that month, deleted events are for admins"""
    show_deleted = include_deleted and current_user is not None and current_user.is_admin
    events = await EventsRepository(session).list_events(show_deleted, year, month)
    return {"data": events}


@router.get("/upcoming")
async def upcoming_events(
    limit: Optional[int] = Query(None, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
):
    return {"data": await EventsRepository(session).get_upcoming_events(limit)}


@router.get("/registrations/me")
async def my_registrations(
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return {"data": await EventsRepository(session).get_user_registrations(current_user.id)}


@router.get("/{event_id}")
async def get_event(
    event_id: UUID,
    current_user: Optional[CurrentUser] = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
):
    repo = EventsRepository(session)
    event = await repo.get_event(event_id)
    registered = await repo.is_registered(event_id, current_user.id) if current_user else False
    return {"data": {**row_to_dict(event), "is_registered": registered}}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_event(
    payload: EventPayload,
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    event = await EventsRepository(session).create_event(payload.model_dump())
    return {"success": True, "data": row_to_dict(event)}


@router.put("/{event_id}")
async def update_event(
    event_id: UUID,
    payload: EventPayload,
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    event = await EventsRepository(session).update_event(event_id, payload.model_dump(exclude_unset=True))
    return {"success": True, "data": row_to_dict(event)}


@router.delete("/{event_id}")
async def delete_event(
    event_id: UUID,
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    await EventsRepository(session).delete_event(event_id)
    return {"success": True, "data": {"id": str(event_id)}}


@router.post("/{event_id}/register", status_code=status.HTTP_201_CREATED)
async def register_for_event(
    event_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    mailer: EmailSender = Depends(get_email_sender),
):
    """Register for an event; the confirmation email never fails the registration"""
    registration = await EventsRepository(session).register(event_id, current_user.id)

    try:
        profile = await ProfilesRepository(session).get_profile(current_user.id)
        email = event_registration_email(get_display_name(profile), registration["event"])
        await send_safely(mailer, current_user.email, email["subject"], email["html"])
    except Exception as e:
        await session.rollback()
        logger.warning(f"Registration email for event {event_id} failed: {e}")

    return {"success": True, "data": registration}


@router.get("/{event_id}/registrations")
async def event_registrations(
    event_id: UUID,
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    return {"data": await EventsRepository(session).get_event_registrations(event_id)}
