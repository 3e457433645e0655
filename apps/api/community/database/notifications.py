"""
Database operations for in-app notifications
"""
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..errors import NotFoundError, PermissionDeniedError, ValidationError
from ..logging_config import get_logger
from ..models import Notification
from ..utils import extract_mentions, row_to_dict
from .profiles import ProfilesRepository

logger = get_logger(__name__)

NOTIFICATION_TYPES = (
    "comment", "reply", "mention", "like", "follow",
    "project_offer", "forum_reply", "forum_mention", "points",
)
DEFAULT_PAGE_SIZE = 50


class NotificationsRepository:
    """Repository for notification operations"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_user_notifications(
        self,
        user_id: UUID,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> Dict[str, Any]:
        """
        Page through a user's notifications, newest first

        Only the newest MAX_NOTIFICATIONS are ever visible; offsets past
        that window return an empty page.
        """
        cap = settings.MAX_NOTIFICATIONS
        offset = max(offset, 0)
        limit = max(min(limit, cap), 0)

        count_result = await self.session.execute(
            select(func.count(Notification.id)).where(Notification.user_id == user_id)
        )
        total = min(count_result.scalar() or 0, cap)

        if offset >= cap:
            return {"notifications": [], "total": total, "has_more": False}

        limit = min(limit, cap - offset)
        result = await self.session.execute(
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        rows = [row_to_dict(n) for n in result.scalars().all()]
        return {
            "notifications": rows,
            "total": total,
            "has_more": offset + len(rows) < total,
        }

    async def get_unread_count(self, user_id: UUID) -> int:
        result = await self.session.execute(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id,
                Notification.is_read.is_(False),
            )
        )
        return result.scalar() or 0

    async def _owned(self, notification_id: UUID, user_id: UUID) -> Notification:
        notification = await self.session.get(Notification, notification_id)
        if notification is None:
            raise NotFoundError("Notification not found")
        if notification.user_id != user_id:
            raise PermissionDeniedError("Not your notification")
        return notification

    async def mark_as_read(self, notification_id: UUID, user_id: UUID) -> Notification:
        notification = await self._owned(notification_id, user_id)
        notification.is_read = True
        await self.session.commit()
        return notification

    async def mark_all_as_read(self, user_id: UUID) -> int:
        result = await self.session.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
        )
        await self.session.commit()
        return result.rowcount or 0

    async def delete_notification(self, notification_id: UUID, user_id: UUID) -> None:
        notification = await self._owned(notification_id, user_id)
        await self.session.delete(notification)
        await self.session.commit()

    async def create_notification(
        self,
        user_id: UUID,
        type: str,
        title: str,
        message: str,
        link: Optional[str] = None,
        related_id: Optional[Any] = None,
        related_type: Optional[str] = None,
    ) -> Notification:
        if type not in NOTIFICATION_TYPES:
            raise ValidationError(f"Unknown notification type: {type}")

        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            link=link,
            related_id=str(related_id) if related_id is not None else None,
            related_type=related_type,
            is_read=False,
        )
        self.session.add(notification)
        await self.session.commit()
        logger.debug(f"Created {type} notification for {user_id}")

        await self.delete_old_notifications(user_id)
        return notification

    async def delete_old_notifications(self, user_id: UUID, keep_count: Optional[int] = None) -> int:
        """Keep only the newest keep_count notifications of a user"""
        keep = settings.MAX_NOTIFICATIONS if keep_count is None else keep_count
        keep_ids = (
            select(Notification.id)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc())
            .limit(keep)
        )
        result = await self.session.execute(
            delete(Notification)
            .where(Notification.user_id == user_id, Notification.id.not_in(keep_ids.scalar_subquery()))
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        return result.rowcount or 0

    async def prune_all(self, keep_count: Optional[int] = None) -> int:
        result = await self.session.execute(select(Notification.user_id).distinct())
        removed = 0
        for user_id in result.scalars().all():
            removed += await self.delete_old_notifications(user_id, keep_count)
        return removed


async def notify_safely(session: AsyncSession, **kwargs: Any) -> Optional[Notification]:
    """Create a notification; failures are logged and never reach the caller"""
    try:
        return await NotificationsRepository(session).create_notification(**kwargs)
    except Exception as e:
        await session.rollback()
        logger.warning(f"Notification for {kwargs.get('user_id')} failed: {e}")
        return None


async def notify_mentions(session: AsyncSession, content: str, author_id: UUID, author_name: str,
                          link: str, related_id: Any, type: str = "forum_mention",
                          place: str = "the forum") -> List[UUID]:
    """Notify every member mentioned in content except the author; returns the notified ids"""
    try:
        mentioned = await ProfilesRepository(session).find_by_mention(extract_mentions(content))
    except Exception as e:
        await session.rollback()
        logger.warning(f"Resolving mentions failed: {e}")
        return []

    notified: List[UUID] = []
    for profile in mentioned:
        if profile.user_id == author_id or profile.user_id in notified:
            continue
        await notify_safely(
            session,
            user_id=profile.user_id,
            type=type,
            title="You were mentioned",
            message=f"{author_name} mentioned you in {place}",
            link=link,
            related_id=related_id,
            related_type=type,
        )
        notified.append(profile.user_id)
    return notified
