"""
Database operations for tags and their assignment to content
"""
import re
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..cache import CACHE_TTL, clear_cache, get_cached, set_cached
from ..errors import ConflictError, NotFoundError, ValidationError
from ..logging_config import get_logger
from ..models import Tag, TagAssignment
from ..utils import generate_slug, row_to_dict

logger = get_logger(__name__)

CONTENT_TYPES = ("project", "recording", "course", "forum_post", "resource", "blog_post", "event")
TAG_FIELDS = ("name", "description", "color", "icon", "is_approved")
SEARCH_LIMIT = 50


def invalidate_tag_caches() -> int:
    return clear_cache("tags:")


def resolve_slug(name: Optional[str], slug: Optional[str] = None) -> str:
    """An explicit slug wins; otherwise one is generated from the name"""
    explicit = re.sub(r"\s+", "-", (slug or "").strip().lower())
    if explicit:
        return explicit.strip("-")
    return generate_slug(name or "")


class TagsRepository:
    """Repository for tag operations"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_all_tags(self, include_unapproved: bool = False) -> List[Dict[str, Any]]:
        key = "tags:all:with-unapproved" if include_unapproved else "tags:all"
        cached = get_cached(key)
        if cached is not None:
            return cached

        query = select(Tag).order_by(Tag.usage_count.desc(), Tag.name)
        if not include_unapproved:
            query = query.where(Tag.is_approved.is_(True))
        result = await self.session.execute(query)
        data = [row_to_dict(tag) for tag in result.scalars().all()]
        set_cached(key, data, CACHE_TTL.LONG)
        return data

    async def get_tag(self, tag_id: UUID) -> Tag:
        tag = await self.session.get(Tag, tag_id)
        if tag is None:
            raise NotFoundError("Tag not found")
        return tag

    async def get_tag_by_slug(self, slug: str) -> Optional[Tag]:
        result = await self.session.execute(select(Tag).where(Tag.slug == slug))
        return result.scalar_one_or_none()

    async def get_popular_tags(self, limit: int = 20) -> List[Dict[str, Any]]:
        key = f"tags:popular:{limit}"
        cached = get_cached(key)
        if cached is not None:
            return cached
        result = await self.session.execute(
            select(Tag).where(Tag.is_approved.is_(True)).order_by(Tag.usage_count.desc(), Tag.name).limit(limit)
        )
        data = [row_to_dict(tag) for tag in result.scalars().all()]
        set_cached(key, data, CACHE_TTL.MEDIUM)
        return data

    async def search_tags(self, query: str) -> List[Tag]:
        pattern = f"%{query.strip().lower()}%"
        result = await self.session.execute(
            select(Tag)
            .where(
                Tag.is_approved.is_(True),
                or_(
                    func.lower(Tag.name).like(pattern),
                    func.lower(Tag.description).like(pattern),
                    func.lower(Tag.slug).like(pattern),
                ),
            )
            .order_by(Tag.usage_count.desc())
            .limit(SEARCH_LIMIT)
        )
        return list(result.scalars().all())

    async def get_unapproved_tags(self) -> List[Tag]:
        result = await self.session.execute(
            select(Tag).where(Tag.is_approved.is_(False)).order_by(Tag.created_at.desc())
        )
        return list(result.scalars().all())

    async def _create(self, data: Dict[str, Any], approved: bool, created_by: Optional[UUID]) -> Tag:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("name is required")
        slug = resolve_slug(name, data.get("slug"))
        if not slug:
            raise ValidationError("slug is required when the name has no latin letters or digits")

        existing = await self.get_tag_by_slug(slug)
        if existing is not None:
            if existing.is_approved:
                raise ConflictError("Tag already exists and is approved", code="TAG_EXISTS")
            raise ConflictError("Tag already suggested, waiting for approval", code="TAG_SUGGESTED")

        tag = Tag(
            name=name,
            slug=slug,
            description=data.get("description"),
            color=data.get("color"),
            icon=data.get("icon"),
            is_approved=approved,
            usage_count=0,
            created_by=created_by,
        )
        self.session.add(tag)
        await self.session.commit()
        invalidate_tag_caches()
        return tag

    async def create_tag(self, data: Dict[str, Any], created_by: Optional[UUID] = None) -> Tag:
        return await self._create(data, approved=True, created_by=created_by)

    async def suggest_tag(self, data: Dict[str, Any], created_by: Optional[UUID] = None) -> Tag:
        tag = await self._create(data, approved=False, created_by=created_by)
        logger.info(f"Tag suggested: {tag.slug}")
        return tag

    async def update_tag(self, tag_id: UUID, updates: Dict[str, Any]) -> Tag:
        tag = await self.get_tag(tag_id)
        for key in TAG_FIELDS:
            if key in updates and updates[key] is not None:
                setattr(tag, key, updates[key])
        slug = resolve_slug(updates.get("name"), updates.get("slug"))
        if slug and slug != tag.slug:
            other = await self.get_tag_by_slug(slug)
            if other is not None and other.id != tag.id:
                raise ConflictError("Tag already exists", code="TAG_EXISTS")
            tag.slug = slug
        await self.session.commit()
        invalidate_tag_caches()
        return tag

    async def approve_tag(self, tag_id: UUID) -> Tag:
        return await self.update_tag(tag_id, {"is_approved": True})

    async def delete_tag(self, tag_id: UUID) -> None:
        tag = await self.get_tag(tag_id)
        await self.session.delete(tag)
        await self.session.commit()
        invalidate_tag_caches()

    async def get_tags_by_content(self, content_type: str, content_id: UUID) -> List[Dict[str, Any]]:
        key = f"tags:{content_type}:{content_id}"
        cached = get_cached(key)
        if cached is not None:
            return cached
        result = await self.session.execute(
            select(Tag)
            .join(TagAssignment, TagAssignment.tag_id == Tag.id)
            .where(TagAssignment.content_type == content_type, TagAssignment.content_id == content_id)
            .order_by(Tag.name)
        )
        data = [row_to_dict(tag) for tag in result.scalars().all()]
        set_cached(key, data, CACHE_TTL.MEDIUM)
        return data

    async def assign_tags_to_content(self, content_type: str, content_id: UUID,
                                     tag_ids: List[UUID]) -> List[Dict[str, Any]]:
        """
        Replace the tags assigned to a piece of content

        usage_count is recomputed for every tag that gained or lost the
        content, and all tag caches are dropped.
        """
        if content_type not in CONTENT_TYPES:
            raise ValidationError(f"Unknown content type: {content_type}")

        previous = await self.session.execute(
            select(TagAssignment.tag_id).where(
                TagAssignment.content_type == content_type,
                TagAssignment.content_id == content_id,
            )
        )
        affected = set(previous.scalars().all())

        await self.session.execute(
            delete(TagAssignment).where(
                TagAssignment.content_type == content_type,
                TagAssignment.content_id == content_id,
            )
        )
        new_ids = list(dict.fromkeys(tag_ids))
        for tag_id in new_ids:
            await self.get_tag(tag_id)
            self.session.add(TagAssignment(tag_id=tag_id, content_type=content_type, content_id=content_id))
        await self.session.flush()

        affected.update(new_ids)
        for tag_id in affected:
            await self._recount_usage(tag_id)
        await self.session.commit()
        invalidate_tag_caches()
        return await self.get_tags_by_content(content_type, content_id)

    async def _recount_usage(self, tag_id: UUID) -> None:
        tag = await self.session.get(Tag, tag_id)
        if tag is None:
            return
        result = await self.session.execute(
            select(func.count(TagAssignment.id)).where(TagAssignment.tag_id == tag_id)
        )
        tag.usage_count = result.scalar() or 0
