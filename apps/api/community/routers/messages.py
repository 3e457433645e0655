"""
Direct messages between members
"""
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.jwt import CurrentUser, get_current_user
from ..database.messages import MessagesRepository
from ..database.session import get_session
from ..errors import CommunityError
from ..logging_config import setup_logging

logger = setup_logging(__name__)

router = APIRouter(prefix="/messages", tags=["messages"])


class MessageCreate(BaseModel):
    recipient_id: UUID
    content: str


class ConversationRead(BaseModel):
    conversation_id: UUID


@router.get("")
async def get_conversations(
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """The caller's conversations grouped by partner, latest first"""
    try:
        data = await MessagesRepository(session).get_conversations(current_user.id)
        return {"success": True, "data": data}
    except Exception as e:
        logger.error(f"Error loading messages for {current_user.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to load messages")


@router.post("", status_code=status.HTTP_201_CREATED)
async def send_message(
    payload: MessageCreate,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    try:
        message = await MessagesRepository(session).send_message(
            current_user.id, payload.recipient_id, payload.content
        )
        return {"success": True, "data": message}
    except HTTPException:
        raise
    except CommunityError:
        raise
    except Exception as e:
        logger.error(f"Error sending message: {e}")
        raise HTTPException(status_code=500, detail="Failed to send message")


@router.put("")
async def mark_conversation_read(
    payload: ConversationRead,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    updated = await MessagesRepository(session).mark_conversation_read(current_user.id, payload.conversation_id)
    return {"success": True, "data": {"updated": updated}}
