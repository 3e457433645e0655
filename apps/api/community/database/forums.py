"""
Database operations for forums, posts, threaded replies and likes
"""
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from ..logging_config import get_logger
from ..models import Forum, ForumPost, ForumPostLike, ForumPostReply, ForumReplyLike
from ..utils import get_display_name, row_to_dict
from .gamification import award_points_safely
from .notifications import notify_mentions, notify_safely
from .profiles import ProfilesRepository, profile_summary

logger = get_logger(__name__)

MEDIA_TYPES = ("image", "video")
FORUM_FIELDS = ("name", "display_name", "description", "is_active")


class ForumsRepository:
    """Repository for forum operations"""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.profiles = ProfilesRepository(session)

    async def get_forums(self) -> List[Dict[str, Any]]:
        counts = (
            select(ForumPost.forum_id, func.count(ForumPost.id).label("count"))
            .group_by(ForumPost.forum_id)
            .subquery()
        )
        result = await self.session.execute(
            select(Forum, func.coalesce(counts.c.count, 0))
            .outerjoin(counts, counts.c.forum_id == Forum.id)
            .where(Forum.is_active.is_(True))
            .order_by(Forum.display_name)
        )
        return [{**row_to_dict(forum), "posts_count": count} for forum, count in result.all()]

    async def get_forum(self, forum_id: UUID) -> Forum:
        forum = await self.session.get(Forum, forum_id)
        if forum is None:
            raise NotFoundError("Forum not found")
        return forum

    async def _ensure_name_free(self, name: str, forum_id: Optional[UUID] = None) -> None:
        query = select(Forum.id).where(Forum.name == name)
        if forum_id is not None:
            query = query.where(Forum.id != forum_id)
        if (await self.session.execute(query)).first() is not None:
            raise ConflictError(f"Forum '{name}' already exists", code="FORUM_EXISTS")

    async def create_forum(self, name: str, display_name: str, description: Optional[str] = None) -> Forum:
        if not name or not display_name:
            raise ValidationError("name and display_name are required")
        await self._ensure_name_free(name)
        forum = Forum(name=name, display_name=display_name, description=description, is_active=True)
        self.session.add(forum)
        await self.session.commit()
        logger.info(f"Created forum {forum.name}")
        return forum

    async def update_forum(self, forum_id: UUID, updates: Dict[str, Any]) -> Forum:
        forum = await self.get_forum(forum_id)
        fields = {key: value for key, value in updates.items() if key in FORUM_FIELDS and value is not None}
        if fields.get("name") is not None and fields["name"] != forum.name:
            await self._ensure_name_free(fields["name"], forum_id)
        for key, value in fields.items():
            setattr(forum, key, value)
        await self.session.commit()
        return forum

    async def delete_forum(self, forum_id: UUID) -> None:
        """Remove a forum together with its posts, replies and likes"""
        forum = await self.get_forum(forum_id)
        post_ids = select(ForumPost.id).where(ForumPost.forum_id == forum_id)
        reply_ids = select(ForumPostReply.id).where(ForumPostReply.post_id.in_(post_ids))
        await self.session.execute(delete(ForumReplyLike).where(ForumReplyLike.reply_id.in_(reply_ids)))
        await self.session.execute(delete(ForumPostReply).where(ForumPostReply.post_id.in_(post_ids)))
        await self.session.execute(delete(ForumPostLike).where(ForumPostLike.post_id.in_(post_ids)))
        await self.session.execute(delete(ForumPost).where(ForumPost.forum_id == forum_id))
        await self.session.delete(forum)
        await self.session.commit()
        logger.info(f"Deleted forum {forum_id}")

    async def _recount_posts(self, forum_id: UUID) -> int:
        result = await self.session.execute(select(func.count(ForumPost.id)).where(ForumPost.forum_id == forum_id))
        count = result.scalar() or 0
        await self.session.execute(update(Forum).where(Forum.id == forum_id).values(posts_count=count))
        return count

    async def _with_profiles(self, posts: List[ForumPost]) -> List[Dict[str, Any]]:
        profiles = await self.profiles.get_profiles_by_user_ids([post.user_id for post in posts])
        return [
            {**row_to_dict(post), "profile": profile_summary(profiles.get(post.user_id), post.user_id)}
            for post in posts
        ]

    async def get_forum_posts(self, forum_id: UUID, limit: int = 50) -> List[Dict[str, Any]]:
        await self.get_forum(forum_id)
        result = await self.session.execute(
            select(ForumPost)
            .where(ForumPost.forum_id == forum_id)
            .order_by(ForumPost.created_at.desc())
            .limit(limit)
        )
        return await self._with_profiles(list(result.scalars().all()))

    async def get_post(self, post_id: UUID) -> ForumPost:
        post = await self.session.get(ForumPost, post_id)
        if post is None:
            raise NotFoundError("Post not found")
        return post

    async def create_post(self, user_id: UUID, data: Dict[str, Any]) -> Dict[str, Any]:
        if not data.get("forum_id") or not data.get("title") or not data.get("content"):
            raise ValidationError("forum_id, title and content are required")
        forum = await self.get_forum(data["forum_id"])
        if not forum.is_active:
            raise ValidationError("Forum is not active")

        media_type = data.get("media_type") or None
        if media_type and media_type not in MEDIA_TYPES:
            logger.warning(f"Ignoring invalid media_type: {media_type}")
            media_type = None

        post = ForumPost(
            forum_id=forum.id,
            user_id=user_id,
            title=data["title"].strip(),
            content=data["content"],
            media_url=data.get("media_url") or None,
            media_type=media_type if data.get("media_url") else None,
        )
        self.session.add(post)
        await self.session.flush()
        await self._recount_posts(forum.id)
        await self.session.commit()
        logger.info(f"Created forum post {post.id} in {forum.name}")

        author = await self.profiles.get_profile(user_id)
        data = {**row_to_dict(post), "profile": profile_summary(author, user_id)}
        name = get_display_name(author)

        await award_points_safely(self.session, user_id, "new post", related_id=post.id, check_related_id=True)
        await notify_mentions(
            self.session,
            data["content"],
            user_id,
            name,
            link=f"/forums/{data['forum_id']}/posts/{data['id']}",
            related_id=data["id"],
        )
        return data

    async def get_post_detail(self, post_id: UUID, user_id: Optional[UUID] = None) -> Dict[str, Any]:
        """Post with its reply tree; viewing counts as a view"""
        post = await self.get_post(post_id)
        post.views = (post.views or 0) + 1
        await self.session.commit()

        result = await self.session.execute(
            select(ForumPostReply).where(ForumPostReply.post_id == post_id).order_by(ForumPostReply.created_at)
        )
        replies = list(result.scalars().all())

        liked_replies = set()
        user_liked = False
        if user_id is not None:
            liked_post = await self.session.execute(
                select(func.count(ForumPostLike.id)).where(
                    ForumPostLike.post_id == post_id, ForumPostLike.user_id == user_id
                )
            )
            user_liked = (liked_post.scalar() or 0) > 0
            if replies:
                liked_result = await self.session.execute(
                    select(ForumReplyLike.reply_id).where(
                        ForumReplyLike.user_id == user_id,
                        ForumReplyLike.reply_id.in_([reply.id for reply in replies]),
                    )
                )
                liked_replies = set(liked_result.scalars().all())

        profiles = await self.profiles.get_profiles_by_user_ids([post.user_id] + [r.user_id for r in replies])
        return {
            **row_to_dict(post),
            "profile": profile_summary(profiles.get(post.user_id), post.user_id),
            "user_liked": user_liked,
            "replies": build_reply_tree(replies, profiles, liked_replies),
        }

    async def create_reply(self, user_id: UUID, post_id: UUID, content: str,
                           parent_id: Optional[UUID] = None) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """
        Add a reply to a post, or to another reply when parent_id is given

        Top-level replies bump the post's reply count, notify the post owner
        and earn points. Nested replies notify the parent reply's owner.
        Returns the serialized reply and the serialized post it belongs to.
        """
        if not content or not content.strip():
            raise ValidationError("content is required")
        post = await self.get_post(post_id)
        if post.is_locked:
            raise PermissionDeniedError("This post is locked", code="POST_LOCKED")

        parent = None
        if parent_id is not None:
            parent = await self.session.get(ForumPostReply, parent_id)
            if parent is None or parent.post_id != post.id:
                raise NotFoundError("Parent reply not found")

        reply = ForumPostReply(post_id=post.id, user_id=user_id, parent_id=parent_id, content=content)
        self.session.add(reply)
        if parent is None:
            post.replies_count = (post.replies_count or 0) + 1
        await self.session.commit()

        author = await self.profiles.get_profile(user_id)
        name = get_display_name(author)
        data = {**row_to_dict(reply), "profile": profile_summary(author, user_id), "user_liked": False, "replies": []}
        post_data = row_to_dict(post)
        parent_owner = parent.user_id if parent is not None else None
        link = f"/forums/{post_data['forum_id']}/posts/{post_data['id']}"

        if parent_owner is not None and parent_owner != user_id:
            await notify_safely(
                self.session,
                user_id=parent_owner,
                type="forum_reply",
                title="New reply to your comment",
                message=f"{name} replied to your comment",
                link=link,
                related_id=parent_id,
                related_type="forum_reply",
            )
        elif parent_owner is None and post.user_id != user_id:
            await notify_safely(
                self.session,
                user_id=post.user_id,
                type="forum_reply",
                title="New reply to your post",
                message=f"{name} replied to \"{post_data['title']}\"",
                link=link,
                related_id=post_data["id"],
                related_type="forum_post",
            )

        await notify_mentions(self.session, content, user_id, name, link=link, related_id=data["id"])
        if parent_owner is None:
            await award_points_safely(self.session, user_id, "post reply", related_id=data["id"])
        return data, post_data

    async def toggle_post_like(self, post_id: UUID, user_id: UUID) -> Dict[str, Any]:
        post = await self.get_post(post_id)
        result = await self.session.execute(
            select(ForumPostLike).where(ForumPostLike.post_id == post_id, ForumPostLike.user_id == user_id)
        )
        existing = result.scalar_one_or_none()

        if existing is not None:
            await self.session.delete(existing)
            post.likes_count = max(0, (post.likes_count or 0) - 1)
            await self.session.commit()
            return {"liked": False, "likes_count": post.likes_count}

        self.session.add(ForumPostLike(post_id=post_id, user_id=user_id))
        post.likes_count = (post.likes_count or 0) + 1
        await self.session.commit()
        likes_count = post.likes_count

        if post.user_id != user_id:
            await award_points_safely(self.session, user_id, "like post", related_id=post_id, check_related_id=True)
            await award_points_safely(self.session, post.user_id, "received like")
        return {"liked": True, "likes_count": likes_count}

    async def toggle_reply_like(self, reply_id: UUID, user_id: UUID) -> Dict[str, Any]:
        reply = await self.get_reply(reply_id)
        result = await self.session.execute(
            select(ForumReplyLike).where(ForumReplyLike.reply_id == reply_id, ForumReplyLike.user_id == user_id)
        )
        existing = result.scalar_one_or_none()

        if existing is not None:
            await self.session.delete(existing)
            reply.likes_count = max(0, (reply.likes_count or 0) - 1)
            await self.session.commit()
            return {"liked": False, "likes_count": reply.likes_count}

        self.session.add(ForumReplyLike(reply_id=reply_id, user_id=user_id))
        reply.likes_count = (reply.likes_count or 0) + 1
        await self.session.commit()
        likes_count = reply.likes_count

        if reply.user_id != user_id:
            await award_points_safely(self.session, user_id, "like post", related_id=reply_id, check_related_id=True)
            await award_points_safely(self.session, reply.user_id, "received like")
        return {"liked": True, "likes_count": likes_count}

    async def get_reply(self, reply_id: UUID) -> ForumPostReply:
        reply = await self.session.get(ForumPostReply, reply_id)
        if reply is None:
            raise NotFoundError("Reply not found")
        return reply

    async def toggle_post_lock(self, post_id: UUID, user_id: UUID, is_admin: bool = False) -> ForumPost:
        post = await self.get_post(post_id)
        if post.user_id != user_id and not is_admin:
            raise PermissionDeniedError("Only the post owner can lock or unlock")
        post.is_locked = not post.is_locked
        await self.session.commit()
        return post

    async def toggle_answer(self, reply_id: UUID, user_id: UUID, is_admin: bool = False) -> ForumPostReply:
        """Mark a reply as the answer, clearing any other answer, or unmark it"""
        reply = await self.get_reply(reply_id)
        post = await self.get_post(reply.post_id)
        if post.user_id != user_id and not is_admin:
            raise PermissionDeniedError("Only the post owner can choose the answer")

        if reply.is_answer:
            reply.is_answer = False
        else:
            await self.session.execute(
                update(ForumPostReply)
                .where(ForumPostReply.post_id == post.id, ForumPostReply.id != reply.id)
                .values(is_answer=False)
                .execution_options(synchronize_session=False)
            )
            reply.is_answer = True
        await self.session.commit()
        return reply

    async def delete_post(self, post_id: UUID, user_id: UUID, is_admin: bool = False) -> None:
        post = await self.get_post(post_id)
        if post.user_id != user_id and not is_admin:
            raise PermissionDeniedError("Not allowed to delete this post")
        forum_id = post.forum_id
        await self.session.delete(post)
        await self.session.flush()
        await self._recount_posts(forum_id)
        await self.session.commit()
        logger.info(f"Deleted forum post {post_id}")

    async def delete_reply(self, reply_id: UUID, user_id: UUID, is_admin: bool = False) -> None:
        reply = await self.get_reply(reply_id)
        if reply.user_id != user_id and not is_admin:
            raise PermissionDeniedError("Not allowed to delete this reply")
        post = await self.get_post(reply.post_id)
        if reply.parent_id is None:
            post.replies_count = max(0, (post.replies_count or 0) - 1)
        await self.session.delete(reply)
        await self.session.commit()

    # User activity

    async def get_user_posts(self, user_id: UUID, limit: int = 50) -> List[Dict[str, Any]]:
        result = await self.session.execute(
            select(ForumPost).where(ForumPost.user_id == user_id).order_by(ForumPost.created_at.desc()).limit(limit)
        )
        return [row_to_dict(post) for post in result.scalars().all()]

    async def get_user_replies(self, user_id: UUID, limit: int = 50) -> List[Dict[str, Any]]:
        result = await self.session.execute(
            select(ForumPostReply, ForumPost.title, ForumPost.forum_id)
            .join(ForumPost, ForumPost.id == ForumPostReply.post_id)
            .where(ForumPostReply.user_id == user_id)
            .order_by(ForumPostReply.created_at.desc())
            .limit(limit)
        )
        return [
            {**row_to_dict(reply), "post_title": title, "forum_id": str(forum_id)}
            for reply, title, forum_id in result.all()
        ]

    async def get_user_liked_posts(self, user_id: UUID, limit: int = 50) -> List[Dict[str, Any]]:
        result = await self.session.execute(
            select(ForumPost)
            .join(ForumPostLike, ForumPostLike.post_id == ForumPost.id)
            .where(ForumPostLike.user_id == user_id)
            .order_by(ForumPostLike.created_at.desc())
            .limit(limit)
        )
        return [row_to_dict(post) for post in result.scalars().all()]


def build_reply_tree(replies: List[ForumPostReply], profiles: Dict[UUID, Any],
                     liked: Optional[set] = None) -> List[Dict[str, Any]]:
    """Nest replies under their parents; orphans are treated as top-level"""
    liked = liked or set()
    nodes = {
        reply.id: {
            **row_to_dict(reply),
            "profile": profile_summary(profiles.get(reply.user_id), reply.user_id),
            "user_liked": reply.id in liked,
            "replies": [],
        }
        for reply in replies
    }
    roots = []
    for reply in replies:
        node = nodes[reply.id]
        if reply.parent_id is not None and reply.parent_id in nodes:
            nodes[reply.parent_id]["replies"].append(node)
        else:
            roots.append(node)
    return roots
