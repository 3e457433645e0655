"""
Database operations for the resource library
"""
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import NotFoundError, PermissionDeniedError, ValidationError
from ..logging_config import get_logger
from ..models import Resource, ResourceLike
from ..utils import row_to_dict
from .tags import TagsRepository

logger = get_logger(__name__)

RESOURCE_TYPES = ("document", "video", "image", "link", "audio", "other")
RESOURCE_FIELDS = (
    "title", "description", "type", "category", "file_url", "file_name", "file_size",
    "mime_type", "external_url", "thumbnail_url", "is_premium",
)


class ResourcesRepository:
    """Repository for library resources and their likes"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_resources(
        self,
        user_id: Optional[UUID] = None,
        type: Optional[str] = None,
        category: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        query = select(Resource).order_by(Resource.created_at.desc())
        if type:
            query = query.where(Resource.type == type)
        if category:
            query = query.where(Resource.category == category)
        if search:
            pattern = f"%{search.lower()}%"
            query = query.where(or_(
                func.lower(Resource.title).like(pattern),
                func.lower(Resource.description).like(pattern),
                func.lower(Resource.category).like(pattern),
            ))
        result = await self.session.execute(query)
        resources = list(result.scalars().all())

        liked = set()
        if user_id is not None and resources:
            liked_result = await self.session.execute(
                select(ResourceLike.resource_id).where(
                    ResourceLike.user_id == user_id,
                    ResourceLike.resource_id.in_([r.id for r in resources]),
                )
            )
            liked = set(liked_result.scalars().all())

        return [{**row_to_dict(resource), "user_liked": resource.id in liked} for resource in resources]

    async def get_resource(self, resource_id: UUID) -> Resource:
        resource = await self.session.get(Resource, resource_id)
        if resource is None:
            raise NotFoundError("Resource not found")
        return resource

    async def create_resource(self, data: Dict[str, Any], created_by: UUID,
                              tag_ids: Optional[List[UUID]] = None) -> Dict[str, Any]:
        """
        Create a resource; links need external_url, every other type a file_url

        Tag assignment runs afterwards and never fails the creation.
        """
        if not data.get("title") or not data.get("type"):
            raise ValidationError("Title and type are required")
        if data["type"] not in RESOURCE_TYPES:
            raise ValidationError(f"Invalid resource type: {data['type']}")
        if data["type"] == "link":
            if not data.get("external_url"):
                raise ValidationError("External URL is required for link type")
        elif not data.get("file_url"):
            raise ValidationError("File URL is required")

        fields = {key: data[key] for key in RESOURCE_FIELDS if data.get(key) is not None}
        fields.setdefault("file_name", data["title"])
        fields["is_premium"] = bool(data.get("is_premium", False))
        resource = Resource(created_by=created_by, download_count=0, likes_count=0, **fields)
        self.session.add(resource)
        await self.session.commit()
        result = row_to_dict(resource)
        logger.info(f"Created resource {result['id']}: {result['title']}")

        if tag_ids:
            try:
                await TagsRepository(self.session).assign_tags_to_content("resource", resource.id, tag_ids)
            except Exception as e:
                await self.session.rollback()
                logger.warning(f"Assigning tags to resource {result['id']} failed: {e}")
        return result

    async def _owned(self, resource_id: UUID, user_id: UUID, is_admin: bool) -> Resource:
        resource = await self.get_resource(resource_id)
        if resource.created_by != user_id and not is_admin:
            raise PermissionDeniedError("Not allowed to modify this resource")
        return resource

    async def update_resource(self, resource_id: UUID, updates: Dict[str, Any], user_id: UUID,
                              is_admin: bool = False) -> Resource:
        resource = await self._owned(resource_id, user_id, is_admin)
        if "type" in updates and updates["type"] not in RESOURCE_TYPES:
            raise ValidationError(f"Invalid resource type: {updates['type']}")
        for key in RESOURCE_FIELDS:
            if key in updates:
                setattr(resource, key, updates[key])
        await self.session.commit()
        return resource

    async def delete_resource(self, resource_id: UUID, user_id: UUID, is_admin: bool = False) -> Resource:
        resource = await self._owned(resource_id, user_id, is_admin)
        await self.session.delete(resource)
        await self.session.commit()
        logger.info(f"Deleted resource {resource_id}")
        return resource

    async def toggle_like(self, resource_id: UUID, user_id: UUID) -> Dict[str, Any]:
        resource = await self.get_resource(resource_id)
        result = await self.session.execute(
            select(ResourceLike).where(ResourceLike.resource_id == resource_id, ResourceLike.user_id == user_id)
        )
        existing = result.scalar_one_or_none()
        if existing is not None:
            await self.session.delete(existing)
            resource.likes_count = max(0, (resource.likes_count or 0) - 1)
            liked = False
        else:
            self.session.add(ResourceLike(resource_id=resource_id, user_id=user_id))
            resource.likes_count = (resource.likes_count or 0) + 1
            liked = True
        await self.session.commit()
        return {"liked": liked, "likes_count": resource.likes_count}

    async def increment_download_count(self, resource_id: UUID) -> int:
        resource = await self.get_resource(resource_id)
        resource.download_count = (resource.download_count or 0) + 1
        await self.session.commit()
        return resource.download_count
