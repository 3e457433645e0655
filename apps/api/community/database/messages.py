"""
Database operations for direct messages
"""
from typing import Any, Dict, List
from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import NotFoundError, ValidationError
from ..logging_config import get_logger
from ..models import Message, User
from ..utils import as_utc, get_display_name, row_to_dict
from .notifications import notify_safely
from .profiles import ProfilesRepository

logger = get_logger(__name__)


class MessagesRepository:
    """Repository for one-to-one messages between members"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_user_messages(self, user_id: UUID) -> List[Message]:
        result = await self.session.execute(
            select(Message)
            .where(or_(Message.sender_id == user_id, Message.recipient_id == user_id))
            .order_by(Message.created_at)
        )
        return list(result.scalars().all())

    async def get_conversations(self, user_id: UUID) -> Dict[str, Any]:
        """
        Group a member's messages into conversations keyed by the other party

        Returns:
            {"conversations": [...], "messages": [...]}, conversations sorted
            by their latest message, newest first
        """
        messages = await self.get_user_messages(user_id)
        partner_ids = {m.recipient_id if m.sender_id == user_id else m.sender_id for m in messages}
        profiles = await ProfilesRepository(self.session).get_profiles_by_user_ids(list(partner_ids))

        conversations: Dict[UUID, Dict[str, Any]] = {}
        for message in messages:
            mine = message.sender_id == user_id
            partner_id = message.recipient_id if mine else message.sender_id
            timestamp = as_utc(message.created_at).isoformat()

            conversation = conversations.get(partner_id)
            if conversation is None:
                profile = profiles.get(partner_id)
                conversation = conversations[partner_id] = {
                    "partner_id": str(partner_id),
                    "partner_name": get_display_name(profile),
                    "partner_avatar": profile.avatar_url if profile else None,
                    "messages": [],
                    "unread_count": 0,
                    "last_message_at": timestamp,
                }

            conversation["messages"].append({
                "id": str(message.id),
                "text": message.content,
                "sender": "me" if mine else "other",
                "timestamp": timestamp,
                "is_read": message.is_read,
            })
            if not mine and not message.is_read:
                conversation["unread_count"] += 1
            if timestamp > conversation["last_message_at"]:
                conversation["last_message_at"] = timestamp

        ordered = sorted(conversations.values(), key=lambda c: c["last_message_at"], reverse=True)
        return {"conversations": ordered, "messages": [row_to_dict(m) for m in messages]}

    async def send_message(self, sender_id: UUID, recipient_id: UUID, content: str) -> Dict[str, Any]:
        text = (content or "").strip()
        if not text:
            raise ValidationError("Message content is required")
        if await self.session.get(User, recipient_id) is None:
            raise NotFoundError("Recipient not found")

        message = Message(sender_id=sender_id, recipient_id=recipient_id, content=text, is_read=False)
        self.session.add(message)
        await self.session.commit()
        data = row_to_dict(message)
        logger.debug(f"Message {data['id']} sent from {sender_id} to {recipient_id}")

        sender = await ProfilesRepository(self.session).get_profile(sender_id)
        await notify_safely(
            self.session,
            user_id=recipient_id,
            type="mention",
            title="New message",
            message=f"{get_display_name(sender)} sent you a message",
            link="/messages",
            related_id=data["id"],
            related_type="message",
        )
        return data

    async def mark_conversation_read(self, user_id: UUID, partner_id: UUID) -> int:
        """Mark everything partner_id sent to user_id as read; returns how many changed"""
        result = await self.session.execute(
            update(Message)
            .where(
                Message.sender_id == partner_id,
                Message.recipient_id == user_id,
                Message.is_read.is_(False),
            )
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        return result.rowcount or 0
