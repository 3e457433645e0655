"""
Database operations for points, rules and badges
"""
from datetime import datetime, time, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import InsufficientPointsError, NotFoundError, ValidationError
from ..logging_config import get_logger, PerformanceLogger
from ..models import Badge, GamificationRule, PointsHistory, Profile, UserBadge
from ..models.base import utcnow
from ..utils import row_to_dict
from .notifications import notify_safely

logger = get_logger(__name__)

DEFAULT_RULES = [
    ("like post", 1, "Liking a forum post"),
    ("post reply", 5, "Replying to a forum post"),
    ("daily login", 5, "First login of the day"),
    ("new post", 10, "Publishing a forum post"),
    ("forum reply", 5, "Replying inside a forum thread"),
    ("registration", 10, "Joining the community"),
    ("host_live_event", 50, "Hosting a live event"),
    ("received like", 1, "Receiving a like on your content"),
    ("submit_project_offer", 0, "Submitting an offer on a project"),
    ("event registration", 1, "Registering for a live event"),
    ("comment on recording", 5, "Commenting on a recording"),
]

DAILY_ACTIONS = ("daily login",)
DEDUCTION_ACTION = "submit project offer"


def _start_of_today() -> datetime:
    return datetime.combine(utcnow().date(), time.min, tzinfo=timezone.utc)


class GamificationRepository:
    """Repository for gamification operations"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_rules(self, active_only: bool = False) -> List[GamificationRule]:
        query = select(GamificationRule).order_by(GamificationRule.action_name)
        if active_only:
            query = query.where(GamificationRule.is_active.is_(True))
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_rule(self, action_name: str) -> Optional[GamificationRule]:
        """Active rule matching action_name, case-insensitively"""
        result = await self.session.execute(
            select(GamificationRule).where(
                func.lower(GamificationRule.action_name) == action_name.lower(),
                GamificationRule.is_active.is_(True),
            )
        )
        return result.scalars().first()

    async def update_rule(self, rule_id: UUID, updates: Dict[str, Any]) -> GamificationRule:
        rule = await self.session.get(GamificationRule, rule_id)
        if rule is None:
            raise NotFoundError("Rule not found")
        for key in ("point_value", "description", "is_active"):
            if key in updates and updates[key] is not None:
                setattr(rule, key, updates[key])
        await self.session.commit()
        return rule

    async def ensure_default_rules(self) -> List[str]:
        """Insert the standard rules that are missing; returns the created action names"""
        result = await self.session.execute(select(func.lower(GamificationRule.action_name)))
        existing = set(result.scalars().all())
        created = []
        for action_name, points, description in DEFAULT_RULES:
            if action_name.lower() not in existing:
                self.session.add(GamificationRule(
                    action_name=action_name,
                    point_value=points,
                    description=description,
                    is_active=True,
                ))
                created.append(action_name)
        if created:
            await self.session.commit()
            logger.info(f"Created gamification rules: {created}")
        return created

    async def _history_exists(self, user_id: UUID, action_name: str, since: Optional[datetime] = None,
                              related_id: Optional[str] = None) -> bool:
        query = select(func.count(PointsHistory.id)).where(
            PointsHistory.user_id == user_id,
            func.lower(PointsHistory.action_name) == action_name.lower(),
        )
        if since is not None:
            query = query.where(PointsHistory.created_at >= since)
        if related_id is not None:
            query = query.where(PointsHistory.related_id == related_id)
        result = await self.session.execute(query)
        return (result.scalar() or 0) > 0

    async def award_points(
        self,
        user_id: UUID,
        action_name: str,
        related_id: Optional[Any] = None,
        check_related_id: bool = False,
        check_daily: bool = False,
    ) -> Dict[str, Any]:
        """
        Award the points configured for action_name

        Returns:
            {"success": bool, "points": int, "message": str}
        """
        rule = await self.get_rule(action_name)
        if rule is None:
            return {"success": False, "points": 0, "message": f"No active rule for '{action_name}'"}

        related = str(related_id) if related_id is not None else None
        if check_related_id and related is not None:
            if await self._history_exists(user_id, rule.action_name, related_id=related):
                return {"success": False, "points": 0, "message": "Points already awarded"}

        if check_daily or rule.action_name.lower() in DAILY_ACTIONS:
            if await self._history_exists(user_id, rule.action_name, since=_start_of_today()):
                return {"success": False, "points": 0, "message": "Already awarded today"}

        points, rule_name = rule.point_value, rule.action_name
        profile = await self._profile(user_id)
        self.session.add(PointsHistory(
            user_id=user_id,
            points=points,
            action_name=rule_name,
            related_id=related,
        ))
        profile.points = (profile.points or 0) + points
        await self.session.commit()
        logger.info(f"Awarded {points} points to {user_id} for '{rule_name}'")

        await self.check_and_award_badges(user_id)
        if points > 0:
            await notify_safely(
                self.session,
                user_id=user_id,
                type="points",
                title="You earned points",
                message=f"+{points} points for {rule_name}",
                link="/account",
                related_type="points",
            )
        return {"success": True, "points": points, "message": "Points awarded"}

    async def deduct_points(
        self,
        user_id: UUID,
        amount: int,
        action_name: str = DEDUCTION_ACTION,
        related_id: Optional[Any] = None,
        commit: bool = True,
    ) -> Dict[str, int]:
        """
        Charge points; raises InsufficientPointsError when the balance is too low

        With commit=False the charge is only flushed so the caller can commit it
        together with whatever the points paid for.
        """
        if amount <= 0:
            raise ValidationError("Amount must be positive")

        profile = await self._profile(user_id)
        current = profile.points or 0
        if current < amount:
            raise InsufficientPointsError(current=current, required=amount)

        self.session.add(PointsHistory(
            user_id=user_id,
            points=-amount,
            action_name=action_name,
            related_id=str(related_id) if related_id is not None else None,
        ))
        profile.points = current - amount
        if commit:
            await self.session.commit()
        else:
            await self.session.flush()
        logger.info(f"Deducted {amount} points from {user_id} for '{action_name}'")
        return {"points": profile.points, "previous_points": current}

    async def _profile(self, user_id: UUID) -> Profile:
        result = await self.session.execute(select(Profile).where(Profile.user_id == user_id))
        profile = result.scalar_one_or_none()
        if profile is None:
            raise NotFoundError("Profile not found")
        return profile

    async def get_points_history(self, user_id: UUID, limit: int = 50) -> List[Dict[str, Any]]:
        result = await self.session.execute(
            select(PointsHistory)
            .where(PointsHistory.user_id == user_id)
            .order_by(PointsHistory.created_at.desc())
            .limit(limit)
        )
        return [row_to_dict(row) for row in result.scalars().all()]

    async def get_user_stats(self, user_id: UUID) -> Dict[str, Any]:
        profile = await self._profile(user_id)
        points = profile.points or 0

        rank_result = await self.session.execute(select(func.count(Profile.id)).where(Profile.points > points))
        history_result = await self.session.execute(
            select(func.count(PointsHistory.id)).where(PointsHistory.user_id == user_id)
        )
        badges = await self.get_user_badges(user_id)
        return {
            "points": points,
            "rank": (rank_result.scalar() or 0) + 1,
            "history_count": history_result.scalar() or 0,
            "badges": badges,
            "highest_badge": badges[0] if badges else None,
        }

    async def get_leaderboard(self, limit: int = 10) -> List[Profile]:
        result = await self.session.execute(
            select(Profile).order_by(Profile.points.desc(), Profile.created_at).limit(limit)
        )
        return list(result.scalars().all())

    async def sync_user_points(self, user_id: UUID) -> int:
        """Reset a profile's balance to the sum of its history"""
        result = await self.session.execute(
            select(func.coalesce(func.sum(PointsHistory.points), 0)).where(PointsHistory.user_id == user_id)
        )
        total = int(result.scalar() or 0)
        profile = await self._profile(user_id)
        if profile.points != total:
            logger.info(f"Synced points for {user_id}: {profile.points} -> {total}")
        profile.points = total
        await self.session.commit()
        return total

    async def sync_all_points(self) -> Dict[str, int]:
        with PerformanceLogger(logger, "sync_all_points"):
            result = await self.session.execute(select(Profile.user_id))
            user_ids = list(result.scalars().all())
            synced = {}
            for user_id in user_ids:
                synced[str(user_id)] = await self.sync_user_points(user_id)
            return synced

    # Badges

    async def get_badges(self, active_only: bool = True) -> List[Badge]:
        query = select(Badge).order_by(Badge.display_order, Badge.points_threshold)
        if active_only:
            query = query.where(Badge.is_active.is_(True))
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def create_badge(self, data: Dict[str, Any]) -> Badge:
        badge = Badge(**data)
        self.session.add(badge)
        await self.session.commit()
        return badge

    async def update_badge(self, badge_id: UUID, updates: Dict[str, Any]) -> Badge:
        badge = await self.session.get(Badge, badge_id)
        if badge is None:
            raise NotFoundError("Badge not found")
        for key, value in updates.items():
            if value is not None and hasattr(Badge, key) and key not in ("id", "created_at"):
                setattr(badge, key, value)
        await self.session.commit()
        return badge

    async def delete_badge(self, badge_id: UUID) -> None:
        badge = await self.session.get(Badge, badge_id)
        if badge is None:
            raise NotFoundError("Badge not found")
        await self.session.delete(badge)
        await self.session.commit()

    async def get_user_badges(self, user_id: UUID) -> List[Dict[str, Any]]:
        """Earned badges, highest threshold first"""
        result = await self.session.execute(
            select(UserBadge)
            .where(UserBadge.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        earned = sorted(result.scalars().all(), key=lambda ub: ub.badge.points_threshold, reverse=True)
        return [
            {**row_to_dict(ub.badge), "earned_at": row_to_dict(ub)["earned_at"]}
            for ub in earned
        ]

    async def get_user_highest_badge(self, user_id: UUID) -> Optional[Dict[str, Any]]:
        badges = await self.get_user_badges(user_id)
        return badges[0] if badges else None

    async def check_and_award_badges(self, user_id: UUID) -> List[str]:
        """Grant every active badge whose threshold the user has reached"""
        profile = await self._profile(user_id)
        earned_result = await self.session.execute(select(UserBadge.badge_id).where(UserBadge.user_id == user_id))
        earned = set(earned_result.scalars().all())

        granted = []
        for badge in await self.get_badges(active_only=True):
            if badge.points_threshold <= (profile.points or 0) and badge.id not in earned:
                self.session.add(UserBadge(user_id=user_id, badge_id=badge.id))
                granted.append(badge.name)
        if granted:
            await self.session.commit()
            logger.info(f"Granted badges to {user_id}: {granted}")
        return granted


async def award_points_safely(session: AsyncSession, user_id: UUID, action_name: str, **kwargs: Any) -> Dict[str, Any]:
    """Award points without letting a failure reach the primary action"""
    try:
        return await GamificationRepository(session).award_points(user_id, action_name, **kwargs)
    except Exception as e:
        await session.rollback()
        logger.warning(f"Awarding '{action_name}' to {user_id} failed: {e}")
        return {"success": False, "points": 0, "message": str(e)}
