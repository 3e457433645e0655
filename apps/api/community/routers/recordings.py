"""
Session recordings library
"""
from typing import Any, List, Optional, Union
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.jwt import CurrentUser, get_current_user, require_admin
from ..database.profiles import ProfilesRepository
from ..database.recordings import RecordingsRepository
from ..database.session import get_session
from ..errors import PermissionDeniedError
from ..logging_config import setup_logging
from ..utils import row_to_dict

logger = setup_logging(__name__)

router = APIRouter(prefix="/recordings", tags=["recordings"])


class CommentCreate(BaseModel):
    content: str
    parent_id: Optional[UUID] = None


class CommentUpdate(BaseModel):
    content: str


class RecordingPayload(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    video_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    category: Optional[Union[str, List[str]]] = None
    duration: Optional[str] = None
    qa_section: Optional[List[Any]] = None
    key_points: Optional[List[Any]] = None


@router.get("")
async def list_recordings(category: Optional[str] = None, session: AsyncSession = Depends(get_session)):
    return {"data": await RecordingsRepository(session).list_recordings(category)}


@router.get("/{recording_id}")
async def get_recording(
    recording_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Full recording for members with premium access; counts a view"""
    has_access, reason = await ProfilesRepository(session).verify_premium_access(current_user.id)
    if not has_access:
        raise PermissionDeniedError("Recordings are available to premium members", code="PREMIUM_REQUIRED")
    data = await RecordingsRepository(session).view_recording(recording_id)
    logger.debug(f"Recording {recording_id} opened by {current_user.id} ({reason})")
    return {"data": data}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_recording(
    payload: RecordingPayload,
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    recording = await RecordingsRepository(session).create_recording(payload.model_dump(), current_user.id)
    return {"success": True, "data": row_to_dict(recording)}


@router.put("/{recording_id}")
async def update_recording(
    recording_id: UUID,
    payload: RecordingPayload,
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    recording = await RecordingsRepository(session).update_recording(
        recording_id, payload.model_dump(exclude_unset=True)
    )
    return {"success": True, "data": row_to_dict(recording)}


@router.delete("/{recording_id}")
async def delete_recording(
    recording_id: UUID,
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    await RecordingsRepository(session).delete_recording(recording_id)
    return {"success": True, "data": {"id": str(recording_id)}}


# Comments

async def _require_recording_access(session: AsyncSession, current_user: CurrentUser) -> None:
    has_access, _ = await ProfilesRepository(session).verify_premium_access(current_user.id)
    if not has_access:
        raise PermissionDeniedError("Recordings are available to premium members", code="PREMIUM_REQUIRED")


@router.get("/{recording_id}/comments")
async def list_comments(
    recording_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await _require_recording_access(session, current_user)
    return {"data": await RecordingsRepository(session).get_comments(recording_id)}


@router.post("/{recording_id}/comments", status_code=status.HTTP_201_CREATED)
async def create_comment(
    recording_id: UUID,
    payload: CommentCreate,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Comment on a recording or reply to a comment"""
    await _require_recording_access(session, current_user)
    comment = await RecordingsRepository(session).create_comment(
        recording_id, current_user.id, payload.content, payload.parent_id
    )
    return {"success": True, "data": comment}


@router.put("/comments/{comment_id}")
async def update_comment(
    comment_id: UUID,
    payload: CommentUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    comment = await RecordingsRepository(session).update_comment(comment_id, payload.content, current_user.id)
    return {"success": True, "data": row_to_dict(comment)}


@router.delete("/comments/{comment_id}")
async def delete_comment(
    comment_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await RecordingsRepository(session).delete_comment(comment_id, current_user.id, current_user.is_admin)
    return {"success": True, "data": {"id": str(comment_id)}}
