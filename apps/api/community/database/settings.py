"""
Database operations for email preferences and system settings
"""
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..errors import ValidationError
from ..logging_config import get_logger
from ..models import EmailPreference, Profile, SystemSetting
from .profiles import ProfilesRepository

logger = get_logger(__name__)

EMAIL_PREFERENCE_KINDS = ("forum_reply", "new_project")
REGISTRATION_LIMIT_KEY = "max_registered_users"
FAIL_OPEN_LIMIT = 999999


class EmailPreferencesRepository:
    """Repository for per-user email opt-outs; everything defaults to on"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_preferences(self, user_id: UUID) -> Dict[str, bool]:
        row = await self.session.get(EmailPreference, user_id)
        if row is None:
            return {kind: True for kind in EMAIL_PREFERENCE_KINDS}
        return {kind: getattr(row, kind) for kind in EMAIL_PREFERENCE_KINDS}

    async def update_preferences(self, user_id: UUID, updates: Dict[str, Any]) -> Dict[str, bool]:
        for key, value in updates.items():
            if key not in EMAIL_PREFERENCE_KINDS:
                raise ValidationError(f"Unknown preference: {key}")
            if not isinstance(value, bool):
                raise ValidationError(f"{key} must be a boolean")

        row = await self.session.get(EmailPreference, user_id)
        if row is None:
            row = EmailPreference(user_id=user_id, forum_reply=True, new_project=True)
            self.session.add(row)
        for key, value in updates.items():
            setattr(row, key, value)
        await self.session.commit()
        return {kind: getattr(row, kind) for kind in EMAIL_PREFERENCE_KINDS}

    async def create_defaults(self, user_id: UUID, commit: bool = True) -> None:
        if await self.session.get(EmailPreference, user_id) is None:
            self.session.add(EmailPreference(user_id=user_id, forum_reply=True, new_project=True))
            if commit:
                await self.session.commit()

    async def should_send_email(self, user_id: UUID, kind: str) -> bool:
        try:
            preferences = await self.get_preferences(user_id)
        except Exception as e:
            logger.warning(f"Could not read email preferences for {user_id}: {e}")
            return True
        return preferences.get(kind, True)

    async def get_users_for_new_project_notifications(self, exclude_user_id: Optional[UUID] = None) -> List[Profile]:
        """Profiles with an email whose new_project preference is on or unset"""
        query = (
            select(Profile)
            .outerjoin(EmailPreference, EmailPreference.user_id == Profile.user_id)
            .where(
                Profile.email.is_not(None),
                (EmailPreference.new_project.is_(None)) | (EmailPreference.new_project.is_(True)),
            )
        )
        if exclude_user_id is not None:
            query = query.where(Profile.user_id != exclude_user_id)
        result = await self.session.execute(query)
        return list(result.scalars().unique().all())


class SystemSettingsRepository:
    """Repository for admin-managed key/value settings"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_setting(self, key: str, default: Any = None) -> Any:
        row = await self.session.get(SystemSetting, key)
        if row is None or row.value is None:
            return default
        return row.value

    async def set_setting(self, key: str, value: Any, description: Optional[str] = None) -> SystemSetting:
        row = await self.session.get(SystemSetting, key)
        if row is None:
            row = SystemSetting(key=key, value=value, description=description)
            self.session.add(row)
        else:
            row.value = value
            if description is not None:
                row.description = description
        await self.session.commit()
        return row

    async def get_registration_limit(self) -> int:
        value = await self.get_setting(REGISTRATION_LIMIT_KEY)
        try:
            return int(value) if value is not None else settings.DEFAULT_REGISTRATION_LIMIT
        except (TypeError, ValueError):
            logger.warning(f"Invalid stored registration limit: {value!r}")
            return settings.DEFAULT_REGISTRATION_LIMIT

    async def set_registration_limit(self, limit: Any) -> int:
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 0:
            raise ValidationError("Limit must be a non-negative integer")
        await self.set_setting(REGISTRATION_LIMIT_KEY, limit, "Maximum number of registered users")
        logger.info(f"Registration limit set to {limit}")
        return limit

    async def check_registration_available(self) -> Dict[str, Any]:
        """Compare the user count against the limit; any failure leaves registration open"""
        try:
            limit = await self.get_registration_limit()
            current = await ProfilesRepository(self.session).count_users()
            return {"available": current < limit, "current": current, "limit": limit}
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Registration availability check failed, allowing signup: {e}")
            return {"available": True, "current": 0, "limit": FAIL_OPEN_LIMIT}
