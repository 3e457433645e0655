"""
Tag catalog, suggestions and content tagging
"""
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.jwt import CurrentUser, get_current_user, get_optional_user, require_admin
from ..database.session import get_session
from ..database.tags import TagsRepository
from ..logging_config import setup_logging
from ..utils import row_to_dict

logger = setup_logging(__name__)

router = APIRouter(prefix="/tags", tags=["tags"])


class TagCreate(BaseModel):
    name: str
    slug: Optional[str] = None
    description: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None


class TagUpdate(BaseModel):
    name: Optional[str] = None
    slug: Optional[str] = None
    description: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    is_approved: Optional[bool] = None


class TagAssignmentUpdate(BaseModel):
    tag_ids: List[UUID]


@router.get("")
async def list_tags(
    current_user: Optional[CurrentUser] = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
):
    """Approved tags; admins also see pending suggestions"""
    include_unapproved = current_user is not None and current_user.is_admin
    return {"data": await TagsRepository(session).get_all_tags(include_unapproved)}


@router.get("/popular")
async def popular_tags(limit: int = Query(20, ge=1, le=100), session: AsyncSession = Depends(get_session)):
    return {"data": await TagsRepository(session).get_popular_tags(limit)}


@router.get("/search")
async def search_tags(q: str = "", session: AsyncSession = Depends(get_session)):
    tags = await TagsRepository(session).search_tags(q)
    return {"data": [row_to_dict(tag) for tag in tags]}


@router.get("/unapproved")
async def unapproved_tags(
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    tags = await TagsRepository(session).get_unapproved_tags()
    return {"data": [row_to_dict(tag) for tag in tags]}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_tag(
    payload: TagCreate,
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    tag = await TagsRepository(session).create_tag(payload.model_dump(), current_user.id)
    return {"success": True, "data": row_to_dict(tag)}


@router.post("/suggest", status_code=status.HTTP_201_CREATED)
async def suggest_tag(
    payload: TagCreate,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Members propose tags; they stay hidden until an admin approves them"""
    tag = await TagsRepository(session).suggest_tag(payload.model_dump(), current_user.id)
    return {"success": True, "data": row_to_dict(tag)}


@router.get("/content/{content_type}/{content_id}")
async def content_tags(content_type: str, content_id: UUID, session: AsyncSession = Depends(get_session)):
    return {"data": await TagsRepository(session).get_tags_by_content(content_type, content_id)}


@router.put("/content/{content_type}/{content_id}")
async def assign_content_tags(
    content_type: str,
    content_id: UUID,
    payload: TagAssignmentUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    tags = await TagsRepository(session).assign_tags_to_content(content_type, content_id, payload.tag_ids)
    return {"success": True, "data": tags}


@router.put("/{tag_id}")
async def update_tag(
    tag_id: UUID,
    payload: TagUpdate,
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    tag = await TagsRepository(session).update_tag(tag_id, payload.model_dump(exclude_unset=True))
    return {"success": True, "data": row_to_dict(tag)}


@router.post("/{tag_id}/approve")
async def approve_tag(
    tag_id: UUID,
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    tag = await TagsRepository(session).approve_tag(tag_id)
    return {"success": True, "data": row_to_dict(tag)}


@router.delete("/{tag_id}")
async def delete_tag(
    tag_id: UUID,
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    await TagsRepository(session).delete_tag(tag_id)
    return {"success": True, "data": {"id": str(tag_id)}}
