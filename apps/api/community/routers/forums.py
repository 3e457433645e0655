"""
Forum, post, reply and like endpoints
"""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.jwt import CurrentUser, get_current_user, get_optional_user, require_admin
from ..database.forums import ForumsRepository
from ..database.profiles import ProfilesRepository
from ..database.session import get_session
from ..database.settings import EmailPreferencesRepository
from ..errors import CommunityError
from ..logging_config import setup_logging
from ..mailer import EmailSender, forum_reply_email, get_email_sender, send_safely
from ..utils import get_display_name, row_to_dict

logger = setup_logging(__name__)

router = APIRouter(prefix="/forums", tags=["forums"])


class ForumCreate(BaseModel):
    name: str
    display_name: str
    description: Optional[str] = None


class ForumUpdate(BaseModel):
    name: Optional[str] = None
    display_name: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None


class PostCreate(BaseModel):
    forum_id: UUID
    title: str
    content: str
    media_url: Optional[str] = None
    media_type: Optional[str] = None


class ReplyCreate(BaseModel):
    post_id: UUID
    content: str
    parent_id: Optional[UUID] = None


@router.get("")
async def list_forums(session: AsyncSession = Depends(get_session)):
    return {"data": await ForumsRepository(session).get_forums()}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_forum(
    payload: ForumCreate,
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    forum = await ForumsRepository(session).create_forum(payload.name, payload.display_name, payload.description)
    return {"success": True, "data": row_to_dict(forum)}


@router.put("/{forum_id}")
async def update_forum(
    forum_id: UUID,
    payload: ForumUpdate,
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    forum = await ForumsRepository(session).update_forum(forum_id, payload.model_dump(exclude_unset=True))
    return {"success": True, "data": row_to_dict(forum)}


@router.delete("/{forum_id}")
async def delete_forum(
    forum_id: UUID,
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Deletes the forum with every post in it"""
    await ForumsRepository(session).delete_forum(forum_id)
    return {"success": True, "data": {"id": str(forum_id)}}


@router.get("/{forum_id}/posts")
async def list_posts(forum_id: UUID, limit: int = 50, session: AsyncSession = Depends(get_session)):
    return {"data": await ForumsRepository(session).get_forum_posts(forum_id, limit=limit)}


@router.post("/posts", status_code=status.HTTP_201_CREATED)
async def create_post(
    payload: PostCreate,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Create a post; points and mention notifications never fail the request"""
    try:
        post = await ForumsRepository(session).create_post(current_user.id, payload.model_dump())
        return {"success": True, "data": post}
    except HTTPException:
        raise
    except CommunityError:
        raise
    except Exception as e:
        logger.error(f"Error creating forum post: {e}")
        raise HTTPException(status_code=500, detail="Failed to create post")


@router.get("/posts/{post_id}")
async def get_post(
    post_id: UUID,
    current_user: Optional[CurrentUser] = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
):
    post = await ForumsRepository(session).get_post_detail(post_id, current_user.id if current_user else None)
    return {"data": post}


@router.delete("/posts/{post_id}")
async def delete_post(
    post_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await ForumsRepository(session).delete_post(post_id, current_user.id, current_user.is_admin)
    return {"success": True, "data": {"id": str(post_id)}}


@router.post("/posts/{post_id}/like")
async def like_post(
    post_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return {"success": True, "data": await ForumsRepository(session).toggle_post_like(post_id, current_user.id)}


@router.post("/posts/{post_id}/lock")
async def lock_post(
    post_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    post = await ForumsRepository(session).toggle_post_lock(post_id, current_user.id, current_user.is_admin)
    return {"success": True, "data": {"id": str(post_id), "is_locked": post.is_locked}}


@router.post("/replies", status_code=status.HTTP_201_CREATED)
async def create_reply(
    payload: ReplyCreate,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    mailer: EmailSender = Depends(get_email_sender),
):
    """
    Reply to a post or to another reply

    The post owner also gets an email for top-level replies unless they
    turned forum_reply emails off.
    """
    try:
        reply, post = await ForumsRepository(session).create_reply(
            current_user.id, payload.post_id, payload.content, payload.parent_id
        )
    except HTTPException:
        raise
    except CommunityError:
        raise
    except Exception as e:
        logger.error(f"Error creating forum reply: {e}")
        raise HTTPException(status_code=500, detail="Failed to create reply")

    owner_id = UUID(post["user_id"])
    if payload.parent_id is None and owner_id != current_user.id:
        await _email_post_owner(session, mailer, owner_id, reply, post)

    return {"success": True, "data": reply}


async def _email_post_owner(session: AsyncSession, mailer: EmailSender, owner_id: UUID, reply: dict, post: dict) -> None:
    try:
        if not await EmailPreferencesRepository(session).should_send_email(owner_id, "forum_reply"):
            return
        owner = await ProfilesRepository(session).get_profile(owner_id)
        if owner is None or not owner.email:
            return
        email = forum_reply_email(
            get_display_name(owner),
            reply["profile"]["display_name"],
            post["title"],
            reply["content"],
            f"/forums/{post['forum_id']}/posts/{post['id']}",
        )
        await send_safely(mailer, owner.email, email["subject"], email["html"])
    except Exception as e:
        await session.rollback()
        logger.warning(f"Forum reply email to {owner_id} failed: {e}")


@router.delete("/replies/{reply_id}")
async def delete_reply(
    reply_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await ForumsRepository(session).delete_reply(reply_id, current_user.id, current_user.is_admin)
    return {"success": True, "data": {"id": str(reply_id)}}


@router.post("/replies/{reply_id}/like")
async def like_reply(
    reply_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return {"success": True, "data": await ForumsRepository(session).toggle_reply_like(reply_id, current_user.id)}


@router.post("/replies/{reply_id}/answer")
async def mark_answer(
    reply_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    reply = await ForumsRepository(session).toggle_answer(reply_id, current_user.id, current_user.is_admin)
    return {"success": True, "data": {"id": str(reply_id), "is_answer": reply.is_answer}}


# User activity

@router.get("/users/{user_id}/posts")
async def user_posts(user_id: UUID, session: AsyncSession = Depends(get_session)):
    return {"data": await ForumsRepository(session).get_user_posts(user_id)}


@router.get("/users/{user_id}/replies")
async def user_replies(user_id: UUID, session: AsyncSession = Depends(get_session)):
    return {"data": await ForumsRepository(session).get_user_replies(user_id)}


@router.get("/users/{user_id}/liked")
async def user_liked_posts(user_id: UUID, session: AsyncSession = Depends(get_session)):
    return {"data": await ForumsRepository(session).get_user_liked_posts(user_id)}
