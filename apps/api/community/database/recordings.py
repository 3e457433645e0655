"""
Database operations for session recordings
"""
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..cache import CACHE_TTL, clear_cache, get_cached, invalidate_cache, set_cached
from ..errors import NotFoundError, PermissionDeniedError, ValidationError
from ..logging_config import get_logger
from ..models import Recording, RecordingComment
from ..utils import get_display_name, row_to_dict
from .gamification import award_points_safely
from .notifications import notify_mentions, notify_safely
from .profiles import ProfilesRepository, profile_summary

logger = get_logger(__name__)

RECORDINGS_CACHE_KEY = "recordings:all"
LIST_LIMIT = 100
CATEGORY_LIMIT = 50

LISTING_EXCLUDE = ("qa_section", "key_points")
LISTING_HIDDEN = LISTING_EXCLUDE + ("video_url",)
RECORDING_FIELDS = (
    "title", "description", "video_url", "thumbnail_url", "category",
    "duration", "qa_section", "key_points",
)


def recording_cache_key(recording_id: Any) -> str:
    return f"recording:{recording_id}"


def invalidate_recording_caches(recording_id: Optional[Any] = None) -> None:
    invalidate_cache(RECORDINGS_CACHE_KEY)
    clear_cache("recordings:category:")
    if recording_id is not None:
        invalidate_cache(recording_cache_key(recording_id))


def _normalize_category(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return [str(item) for item in value]


class RecordingsRepository:
    """Repository for recordings"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_recordings(self, category: Optional[str] = None) -> List[Dict[str, Any]]:
        """Newest recordings without their video, Q&A and key points, optionally limited to one category"""
        key = f"recordings:category:{category}" if category else RECORDINGS_CACHE_KEY
        cached = get_cached(key)
        if cached is not None:
            return cached

        query = select(Recording).order_by(Recording.created_at.desc())
        if not category:
            query = query.limit(LIST_LIMIT)
        result = await self.session.execute(query)
        recordings = result.scalars().all()
        if category:
            recordings = [r for r in recordings if category in (r.category or [])][:CATEGORY_LIMIT]

        data = [row_to_dict(recording, exclude=LISTING_HIDDEN) for recording in recordings]
        set_cached(key, data, CACHE_TTL.MEDIUM)
        return data

    async def get_recording(self, recording_id: UUID) -> Recording:
        recording = await self.session.get(Recording, recording_id)
        if recording is None:
            raise NotFoundError("Recording not found")
        return recording

    async def view_recording(self, recording_id: UUID) -> Dict[str, Any]:
        recording = await self.get_recording(recording_id)
        recording.views = (recording.views or 0) + 1
        await self.session.commit()
        invalidate_recording_caches(recording_id)
        data = row_to_dict(recording)
        data["qa_section"] = list(recording.qa_section or [])
        data["key_points"] = list(recording.key_points or [])
        return data

    async def create_recording(self, data: Dict[str, Any], user_id: Optional[UUID] = None) -> Recording:
        if not data.get("title") or not data.get("video_url"):
            raise ValidationError("title and video_url are required")
        fields = {key: data[key] for key in RECORDING_FIELDS if data.get(key) is not None}
        fields["category"] = _normalize_category(data.get("category"))
        fields["qa_section"] = data.get("qa_section") or []
        fields["key_points"] = data.get("key_points") or []
        recording = Recording(user_id=user_id, views=0, **fields)
        self.session.add(recording)
        await self.session.commit()
        invalidate_recording_caches(recording.id)
        logger.info(f"Created recording {recording.id}: {recording.title}")
        return recording

    async def update_recording(self, recording_id: UUID, updates: Dict[str, Any]) -> Recording:
        recording = await self.get_recording(recording_id)
        for key in RECORDING_FIELDS:
            if key not in updates:
                continue
            value = updates[key]
            if key == "category":
                value = _normalize_category(value)
            elif key in LISTING_EXCLUDE:
                value = value or []
            setattr(recording, key, value)
        await self.session.commit()
        invalidate_recording_caches(recording_id)
        return recording

    async def delete_recording(self, recording_id: UUID) -> None:
        recording = await self.get_recording(recording_id)
        await self.session.delete(recording)
        await self.session.commit()
        invalidate_recording_caches(recording_id)
        logger.info(f"Deleted recording {recording_id}")

    # Comments

    async def get_comment(self, comment_id: UUID) -> RecordingComment:
        comment = await self.session.get(RecordingComment, comment_id)
        if comment is None:
            raise NotFoundError("Comment not found")
        return comment

    async def get_comments(self, recording_id: UUID) -> List[Dict[str, Any]]:
        """Top-level comments newest first, each with its replies oldest first"""
        await self.get_recording(recording_id)
        result = await self.session.execute(
            select(RecordingComment)
            .where(RecordingComment.recording_id == recording_id)
            .order_by(RecordingComment.created_at)
        )
        comments = list(result.scalars().all())
        profiles = await ProfilesRepository(self.session).get_profiles_by_user_ids([c.user_id for c in comments])

        def serialize(comment: RecordingComment) -> Dict[str, Any]:
            return {**row_to_dict(comment), "user": profile_summary(profiles.get(comment.user_id), comment.user_id)}

        replies: Dict[UUID, List[Dict[str, Any]]] = {}
        for comment in comments:
            if comment.parent_id is not None:
                replies.setdefault(comment.parent_id, []).append(serialize(comment))

        top_level = [c for c in comments if c.parent_id is None]
        return [
            {**serialize(comment), "replies": replies.get(comment.id, [])}
            for comment in reversed(top_level)
        ]

    async def create_comment(self, recording_id: UUID, user_id: UUID, content: str,
                             parent_id: Optional[UUID] = None) -> Dict[str, Any]:
        """
        Add a comment or a reply to a recording

        Replies to a reply are attached to its top-level comment. A top-level
        comment notifies the recording's owner and earns points; a reply
        notifies the comment's author. Mentions are notified either way, and
        none of the follow-ups can fail the comment.
        """
        recording = await self.get_recording(recording_id)
        content = (content or "").strip()
        if not content:
            raise ValidationError("content is required")

        parent = None
        if parent_id is not None:
            parent = await self.get_comment(parent_id)
            if parent.recording_id != recording.id:
                raise ValidationError("Parent comment belongs to another recording")
            if parent.parent_id is not None:
                parent = await self.get_comment(parent.parent_id)

        comment = RecordingComment(
            recording_id=recording.id,
            user_id=user_id,
            content=content,
            parent_id=parent.id if parent else None,
        )
        self.session.add(comment)
        await self.session.commit()

        author = await ProfilesRepository(self.session).get_profile(user_id)
        data = {**row_to_dict(comment), "user": profile_summary(author, user_id), "replies": []}
        name = get_display_name(author)
        title = recording.title
        owner_id = recording.user_id
        link = f"/recordings/{data['recording_id']}"

        if parent is not None:
            if parent.user_id != user_id:
                await notify_safely(
                    self.session,
                    user_id=parent.user_id,
                    type="reply",
                    title="New reply to your comment",
                    message=f"{name} replied to your comment on \"{title}\"",
                    link=link,
                    related_id=data["id"],
                    related_type="recording_comment",
                )
        else:
            if owner_id is not None and owner_id != user_id:
                await notify_safely(
                    self.session,
                    user_id=owner_id,
                    type="comment",
                    title="New comment on your recording",
                    message=f"{name} commented on \"{title}\"",
                    link=link,
                    related_id=data["id"],
                    related_type="recording_comment",
                )
            await award_points_safely(
                self.session, user_id, "comment on recording", related_id=data["id"], check_related_id=True
            )

        await notify_mentions(
            self.session, content, user_id, name, link=link, related_id=data["id"],
            type="mention", place="a recording comment",
        )
        return data

    async def update_comment(self, comment_id: UUID, content: str, user_id: UUID) -> RecordingComment:
        comment = await self.get_comment(comment_id)
        if comment.user_id != user_id:
            raise PermissionDeniedError("Only the author can edit this comment")
        content = (content or "").strip()
        if not content:
            raise ValidationError("content is required")
        comment.content = content
        await self.session.commit()
        return comment

    async def delete_comment(self, comment_id: UUID, user_id: UUID, is_admin: bool = False) -> None:
        """Authors and admins delete comments; a comment's replies go with it"""
        comment = await self.get_comment(comment_id)
        if comment.user_id != user_id and not is_admin:
            raise PermissionDeniedError("Not allowed to delete this comment")
        replies = await self.session.execute(
            select(RecordingComment).where(RecordingComment.parent_id == comment.id)
        )
        for reply in replies.scalars().all():
            await self.session.delete(reply)
        await self.session.delete(comment)
        await self.session.commit()
