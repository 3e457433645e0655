"""
Member profiles, roles and role assignment
"""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.jwt import CurrentUser, get_current_user, require_admin
from ..database.profiles import ProfilesRepository, sanitize_profile_for_admin, sanitize_profile_for_public
from ..database.session import get_session
from ..errors import CommunityError, NotFoundError
from ..logging_config import setup_logging
from ..utils import get_display_name, row_to_dict

logger = setup_logging(__name__)

router = APIRouter(tags=["profiles"])


class ProfileUpdate(BaseModel):
    display_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    nickname: Optional[str] = None
    avatar_url: Optional[str] = None
    headline: Optional[str] = None
    bio: Optional[str] = None
    social_links: Optional[list] = None


class RoleUpdate(BaseModel):
    role: str


@router.get("/profiles")
async def list_profiles(session: AsyncSession = Depends(get_session)):
    profiles = await ProfilesRepository(session).get_all_profiles()
    return {"data": [sanitize_profile_for_public(profile) for profile in profiles]}


@router.get("/users/search")
async def search_users(
    q: str = "",
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Mention autocomplete for members"""
    profiles = await ProfilesRepository(session).search_users(q)
    return {"data": [
        {
            "id": str(profile.user_id),
            "label": get_display_name(profile),
            "username": profile.nickname or profile.display_name,
            "avatar_url": profile.avatar_url,
        }
        for profile in profiles
    ]}


@router.get("/profiles/{user_id}")
async def get_profile(user_id: UUID, session: AsyncSession = Depends(get_session)):
    profile = await ProfilesRepository(session).get_profile(user_id)
    if profile is None:
        raise NotFoundError("Profile not found")
    return {"data": sanitize_profile_for_public(profile)}


@router.put("/profiles/me")
async def update_my_profile(
    payload: ProfileUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Update the caller's own editable profile fields"""
    try:
        profile = await ProfilesRepository(session).update_profile(
            current_user.id, payload.model_dump(exclude_unset=True)
        )
        return {"success": True, "data": sanitize_profile_for_admin(profile)}
    except HTTPException:
        raise
    except CommunityError:
        raise
    except Exception as e:
        logger.error(f"Error updating profile for {current_user.id}: {e}")
        raise HTTPException(status_code=400, detail="Failed to update profile")


@router.get("/roles")
async def list_roles(session: AsyncSession = Depends(get_session)):
    roles = await ProfilesRepository(session).get_all_roles()
    return {"data": [row_to_dict(role) for role in roles]}


@router.get("/admin/users")
async def list_users_for_admin(
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Every profile including email, points and role"""
    profiles = await ProfilesRepository(session).get_all_profiles()
    return {"data": [sanitize_profile_for_admin(profile) for profile in profiles]}


@router.put("/admin/users/{user_id}/role")
async def update_user_role(
    user_id: UUID,
    payload: RoleUpdate,
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    profile = await ProfilesRepository(session).update_user_role(user_id, payload.role)
    logger.info(f"Admin {current_user.id} set role of {user_id} to {payload.role}")
    return {"success": True, "data": sanitize_profile_for_admin(profile)}
