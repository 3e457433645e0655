"""
Points, leaderboard, rules and badges
"""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.jwt import CurrentUser, get_current_user, require_admin
from ..database.gamification import GamificationRepository
from ..database.profiles import profile_summary
from ..database.session import get_session
from ..errors import PermissionDeniedError
from ..logging_config import setup_logging
from ..utils import row_to_dict

logger = setup_logging(__name__)

router = APIRouter(tags=["gamification"])

# Actions the client reports itself; everything else is awarded server-side
CLIENT_ACTIONS = ("daily login", "host_live_event")


class RuleUpdate(BaseModel):
    point_value: Optional[int] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None


class BadgeCreate(BaseModel):
    name: str
    icon: str = "star"
    icon_color: str = "#FFD700"
    points_threshold: int = 0
    description: Optional[str] = None
    display_order: int = 0
    is_active: bool = True


class BadgeUpdate(BaseModel):
    name: Optional[str] = None
    icon: Optional[str] = None
    icon_color: Optional[str] = None
    points_threshold: Optional[int] = None
    description: Optional[str] = None
    display_order: Optional[int] = None
    is_active: Optional[bool] = None


class AwardRequest(BaseModel):
    action_name: str
    user_id: Optional[UUID] = None
    related_id: Optional[str] = None
    check_related_id: bool = False
    check_daily: bool = False


@router.get("/gamification/me")
async def my_stats(
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return {"data": await GamificationRepository(session).get_user_stats(current_user.id)}


@router.get("/gamification/history")
async def my_history(
    limit: int = Query(50, ge=1, le=200),
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return {"data": await GamificationRepository(session).get_points_history(current_user.id, limit)}


@router.get("/gamification/leaderboard")
async def leaderboard(limit: int = Query(10, ge=1, le=100), session: AsyncSession = Depends(get_session)):
    profiles = await GamificationRepository(session).get_leaderboard(limit)
    return {
        "data": [
            {**profile_summary(profile), "points": profile.points or 0, "rank": position}
            for position, profile in enumerate(profiles, start=1)
        ]
    }


@router.get("/gamification/rules")
async def list_rules(session: AsyncSession = Depends(get_session)):
    rules = await GamificationRepository(session).get_rules(active_only=True)
    return {"data": [row_to_dict(rule) for rule in rules]}


@router.get("/gamification/badges")
async def list_badges(session: AsyncSession = Depends(get_session)):
    badges = await GamificationRepository(session).get_badges(active_only=True)
    return {"data": [row_to_dict(badge) for badge in badges]}


@router.post("/points/award")
async def award_points(
    payload: AwardRequest,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Members may claim the client-side actions for themselves; admins award anything to anyone"""
    target = payload.user_id or current_user.id
    if not current_user.is_admin:
        if target != current_user.id:
            raise PermissionDeniedError("Cannot award points to other users")
        if payload.action_name.lower() not in CLIENT_ACTIONS:
            raise PermissionDeniedError("This action cannot be claimed", code="ACTION_NOT_CLAIMABLE")

    result = await GamificationRepository(session).award_points(
        target,
        payload.action_name,
        related_id=payload.related_id,
        check_related_id=payload.check_related_id,
        check_daily=payload.check_daily,
    )
    return {"success": result["success"], "data": result}


# Admin

@router.put("/admin/gamification/rules/{rule_id}")
async def update_rule(
    rule_id: UUID,
    payload: RuleUpdate,
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    rule = await GamificationRepository(session).update_rule(rule_id, payload.model_dump(exclude_unset=True))
    return {"success": True, "data": row_to_dict(rule)}


@router.post("/admin/gamification/sync-points")
async def sync_points(
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Recompute every balance from the points history"""
    synced = await GamificationRepository(session).sync_all_points()
    logger.info(f"Admin {current_user.id} synced points for {len(synced)} profiles")
    return {"success": True, "data": {"synced": len(synced), "points": synced}}


@router.get("/admin/badges")
async def admin_list_badges(
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    badges = await GamificationRepository(session).get_badges(active_only=False)
    return {"data": [row_to_dict(badge) for badge in badges]}


@router.post("/admin/badges", status_code=status.HTTP_201_CREATED)
async def create_badge(
    payload: BadgeCreate,
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    badge = await GamificationRepository(session).create_badge(payload.model_dump())
    return {"success": True, "data": row_to_dict(badge)}


@router.put("/admin/badges/{badge_id}")
async def update_badge(
    badge_id: UUID,
    payload: BadgeUpdate,
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    badge = await GamificationRepository(session).update_badge(badge_id, payload.model_dump(exclude_unset=True))
    return {"success": True, "data": row_to_dict(badge)}


@router.delete("/admin/badges/{badge_id}")
async def delete_badge(
    badge_id: UUID,
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    await GamificationRepository(session).delete_badge(badge_id)
    return {"success": True, "data": {"id": str(badge_id)}}
