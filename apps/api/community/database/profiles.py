"""
Database operations for users, profiles and roles
"""
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import NotFoundError, ValidationError
from ..logging_config import get_logger
from ..models import Profile, Role, Subscription, User
from ..models.base import utcnow
from ..utils import get_display_name, row_to_dict

logger = get_logger(__name__)

ROLE_NAMES = ("free", "basic", "premium", "admin")
PREMIUM_ROLES = ("premium", "admin")
LIVE_ROLES = ("basic", "premium", "admin")
USER_SEARCH_LIMIT = 10

DEFAULT_ROLES = {
    "free": "Free",
    "basic": "Basic",
    "premium": "Premium",
    "admin": "Administrator",
}

EDITABLE_PROFILE_FIELDS = (
    "display_name", "first_name", "last_name", "nickname",
    "avatar_url", "headline", "bio", "social_links",
)


def is_premium_role(role_name: Optional[str]) -> bool:
    return role_name in PREMIUM_ROLES


def has_live_access(role_name: Optional[str]) -> bool:
    return role_name in LIVE_ROLES


def has_recording_access(role_name: Optional[str]) -> bool:
    return role_name in PREMIUM_ROLES


def has_free_project_submission(role_name: Optional[str]) -> bool:
    return role_name in PREMIUM_ROLES


def sanitize_profile_for_public(profile: Optional[Profile]) -> Optional[Dict[str, Any]]:
    """Public view of a profile: no email, points or role"""
    if profile is None:
        return None
    return {
        "id": str(profile.id),
        "user_id": str(profile.user_id),
        "display_name": get_display_name(profile),
        "avatar_url": profile.avatar_url,
        "headline": profile.headline,
        "bio": profile.bio,
        "social_links": profile.social_links or [],
        "first_name": profile.first_name,
        "last_name": profile.last_name,
        "nickname": profile.nickname,
        "created_at": row_to_dict(profile)["created_at"],
    }


def sanitize_profile_for_admin(profile: Optional[Profile]) -> Optional[Dict[str, Any]]:
    if profile is None:
        return None
    data = row_to_dict(profile)
    data["social_links"] = profile.social_links or []
    data["display_name"] = get_display_name(profile)
    data["role"] = profile.role_name
    return data


def profile_summary(profile: Optional[Profile], user_id: Any = None) -> Dict[str, Any]:
    """Author block embedded in posts, replies, projects and messages"""
    if profile is None:
        return {
            "user_id": str(user_id) if user_id else None,
            "display_name": get_display_name(None),
            "avatar_url": None,
        }
    return {
        "user_id": str(profile.user_id),
        "display_name": get_display_name(profile),
        "avatar_url": profile.avatar_url,
        "first_name": profile.first_name,
        "nickname": profile.nickname,
    }


class ProfilesRepository:
    """Repository for profile and role operations"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_role_by_name(self, name: str) -> Optional[Role]:
        result = await self.session.execute(select(Role).where(Role.name == name))
        return result.scalar_one_or_none()

    async def ensure_default_roles(self, commit: bool = True) -> List[Role]:
        """Insert any of the four standard roles that are missing"""
        result = await self.session.execute(select(Role))
        existing = {role.name: role for role in result.scalars().all()}
        created = []
        for name, display_name in DEFAULT_ROLES.items():
            if name not in existing:
                role = Role(name=name, display_name=display_name)
                self.session.add(role)
                created.append(role)
        if created:
            if commit:
                await self.session.commit()
            else:
                await self.session.flush()
            logger.info(f"Created default roles: {[role.name for role in created]}")
        return created

    async def get_all_roles(self) -> List[Role]:
        result = await self.session.execute(select(Role).order_by(Role.name))
        return list(result.scalars().all())

    async def get_profile(self, user_id: UUID) -> Optional[Profile]:
        result = await self.session.execute(select(Profile).where(Profile.user_id == user_id))
        return result.scalar_one_or_none()

    async def require_profile(self, user_id: UUID) -> Profile:
        profile = await self.get_profile(user_id)
        if profile is None:
            raise NotFoundError("Profile not found")
        return profile

    async def get_profiles_by_user_ids(self, user_ids: List[UUID]) -> Dict[UUID, Profile]:
        ids = {uid for uid in user_ids if uid}
        if not ids:
            return {}
        result = await self.session.execute(select(Profile).where(Profile.user_id.in_(ids)))
        return {profile.user_id: profile for profile in result.scalars().all()}

    async def get_all_profiles(self) -> List[Profile]:
        result = await self.session.execute(select(Profile).order_by(Profile.created_at.desc()))
        return list(result.scalars().all())

    async def get_role_name(self, user_id: UUID) -> str:
        profile = await self.get_profile(user_id)
        return profile.role_name if profile else "free"

    async def create_profile(self, user: User, commit: bool = True, **fields: Any) -> Profile:
        role = await self.get_role_by_name("free")
        if role is None:
            await self.ensure_default_roles(commit=commit)
            role = await self.get_role_by_name("free")

        profile = Profile(
            user_id=user.id,
            email=user.email,
            points=0,
            social_links=[],
            **{key: value for key, value in fields.items() if key in EDITABLE_PROFILE_FIELDS},
        )
        profile.role = role
        self.session.add(profile)
        if commit:
            await self.session.commit()
        else:
            await self.session.flush()
        return profile

    async def update_profile(self, user_id: UUID, updates: Dict[str, Any]) -> Profile:
        profile = await self.require_profile(user_id)
        for key, value in updates.items():
            if key in EDITABLE_PROFILE_FIELDS:
                setattr(profile, key, value)
        await self.session.commit()
        return profile

    async def update_user_role(self, user_id: UUID, role_name: str) -> Profile:
        if role_name not in ROLE_NAMES:
            raise ValidationError(f"Unknown role: {role_name}")
        role = await self.get_role_by_name(role_name)
        if role is None:
            raise NotFoundError(f"Role not found: {role_name}")
        profile = await self.require_profile(user_id)
        profile.role = role
        await self.session.commit()
        logger.info(f"Updated role for {user_id} -> {role_name}")
        return profile

    async def count_users(self) -> int:
        result = await self.session.execute(select(func.count(Profile.id)))
        return result.scalar() or 0

    async def find_by_mention(self, tokens: List[str]) -> List[Profile]:
        """Profiles whose display name or nickname equals one of the tokens, case-insensitively"""
        if not tokens:
            return []
        lowered = [token.lower() for token in tokens]
        result = await self.session.execute(
            select(Profile).where(
                func.lower(Profile.display_name).in_(lowered) | func.lower(Profile.nickname).in_(lowered)
            )
        )
        return list(result.scalars().all())

    async def search_users(self, query: str, limit: int = USER_SEARCH_LIMIT) -> List[Profile]:
        """
        Mention autocomplete

        Matches display name, nickname, first or last name case-insensitively.
        An empty query lists the newest members that have a display name.
        """
        term = (query or "").strip().lower()
        statement = select(Profile)
        if term:
            pattern = f"%{term}%"
            statement = statement.where(or_(
                func.lower(Profile.display_name).like(pattern),
                func.lower(Profile.nickname).like(pattern),
                func.lower(Profile.first_name).like(pattern),
                func.lower(Profile.last_name).like(pattern),
            )).order_by(Profile.display_name)
        else:
            statement = statement.where(Profile.display_name.is_not(None)).order_by(Profile.created_at.desc())
        result = await self.session.execute(statement.limit(limit))
        return list(result.scalars().all())

    async def verify_premium_access(self, user_id: UUID) -> Tuple[bool, str]:
        """
        Decide whether a user gets premium content

        Returns:
            (has_access, reason) with reason one of
            'admin_role', 'premium_role', 'active_subscription', 'none'
        """
        role_name = await self.get_role_name(user_id)
        if role_name == "admin":
            return True, "admin_role"
        if role_name == "premium":
            return True, "premium_role"

        result = await self.session.execute(
            select(Role.name)
            .join(Subscription, Subscription.role_id == Role.id)
            .where(
                Subscription.user_id == user_id,
                Subscription.status == "active",
                Subscription.end_date > utcnow(),
            )
        )
        if any(name in PREMIUM_ROLES for name in result.scalars().all()):
            return True, "active_subscription"
        return False, "none"
