"""
Database operations for login accounts
"""
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import ConflictError
from ..logging_config import get_logger
from ..models import User
from ..models.base import utcnow

logger = get_logger(__name__)


class UsersRepository:
    """Repository for user accounts"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_user(self, user_id: UUID) -> Optional[User]:
        return await self.session.get(User, user_id)

    async def get_user_by_email(self, email: str) -> Optional[User]:
        result = await self.session.execute(select(User).where(func.lower(User.email) == email.strip().lower()))
        return result.scalar_one_or_none()

    async def create_user(self, email: str, hashed_password: str, commit: bool = True) -> User:
        if await self.get_user_by_email(email) is not None:
            raise ConflictError("Email already registered", code="EMAIL_EXISTS")
        user = User(email=email.strip().lower(), hashed_password=hashed_password, is_active=True)
        self.session.add(user)
        if commit:
            await self.session.commit()
        else:
            await self.session.flush()
        logger.info(f"Created user {user.id}")
        return user

    async def touch_last_login(self, user: User) -> None:
        user.last_login = utcnow()
        await self.session.commit()

    async def set_active(self, user_id: UUID, is_active: bool) -> Optional[User]:
        user = await self.get_user(user_id)
        if user is not None:
            user.is_active = is_active
            await self.session.commit()
        return user
