"""
In-app notification endpoints
"""
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.jwt import CurrentUser, get_current_user
from ..database.notifications import DEFAULT_PAGE_SIZE, NotificationsRepository
from ..database.session import get_session
from ..utils import row_to_dict

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("")
async def list_notifications(
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1),
    offset: int = Query(0, ge=0),
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    page = await NotificationsRepository(session).get_user_notifications(current_user.id, limit, offset)
    return {"data": page}


@router.get("/unread-count")
async def unread_count(
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return {"data": {"count": await NotificationsRepository(session).get_unread_count(current_user.id)}}


@router.put("/read-all")
async def mark_all_read(
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    updated = await NotificationsRepository(session).mark_all_as_read(current_user.id)
    return {"success": True, "data": {"updated": updated}}


@router.put("/{notification_id}/read")
async def mark_read(
    notification_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    notification = await NotificationsRepository(session).mark_as_read(notification_id, current_user.id)
    return {"success": True, "data": row_to_dict(notification)}


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await NotificationsRepository(session).delete_notification(notification_id, current_user.id)
    return {"success": True, "data": {"id": str(notification_id)}}
