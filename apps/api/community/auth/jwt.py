"""
JWT authentication and authorization
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from passlib.context import CryptContext
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database.gamification import award_points_safely
from ..database.profiles import ProfilesRepository
from ..database.session import get_session
from ..database.settings import EmailPreferencesRepository, SystemSettingsRepository
from ..database.users import UsersRepository
from ..errors import PermissionDeniedError
from ..logging_config import setup_logging
from ..models import User

logger = setup_logging(__name__)

# Security
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
security = HTTPBearer(auto_error=False)

# JWT settings
ALGORITHM = "HS256"


class CurrentUser(BaseModel):
    id: UUID
    email: str
    role: str = "free"
    is_active: bool = True
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class UserCreate(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)
    password: str = Field(..., min_length=6, max_length=128)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    nickname: Optional[str] = None
    display_name: Optional[str] = None


class UserLogin(BaseModel):
    email: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token"""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.secret_key, algorithm=ALGORITHM)


def create_refresh_token(data: Dict[str, Any]) -> str:
    """Create JWT refresh token"""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    to_encode.update({"exp": expire, "type": "refresh"})
    return jwt.encode(to_encode, settings.secret_key, algorithm=ALGORITHM)


def verify_token(token: str) -> Optional[Dict[str, Any]]:
    """Verify and decode JWT token"""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except jwt.PyJWTError:
        return None


def issue_tokens(user: User, role_name: str) -> Token:
    token_data = {"sub": str(user.id), "email": user.email, "role": role_name}
    return Token(
        access_token=create_access_token(token_data),
        refresh_token=create_refresh_token({"sub": str(user.id)}),
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


class AuthService:
    """Authentication against the users table"""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.users = UsersRepository(session)
        self.profiles = ProfilesRepository(session)

    async def authenticate_user(self, email: str, password: str) -> Optional[User]:
        user = await self.users.get_user_by_email(email)
        if not user or not verify_password(password, user.hashed_password):
            return None
        return user

    async def signup(self, user_data: UserCreate) -> Dict[str, Any]:
        """
        Register a member

        Registration is refused once the configured user limit is reached.
        The new member gets a free profile, default email preferences and
        the registration points.
        """
        availability = await SystemSettingsRepository(self.session).check_registration_available()
        if not availability["available"]:
            raise PermissionDeniedError(
                "Registration is closed: the member limit has been reached",
                code="REGISTRATION_CLOSED",
                current=availability["current"],
                limit=availability["limit"],
            )

        try:
            user = await self.users.create_user(
                user_data.email, get_password_hash(user_data.password), commit=False
            )
            profile = await self.profiles.create_profile(
                user,
                commit=False,
                first_name=user_data.first_name,
                last_name=user_data.last_name,
                nickname=user_data.nickname,
                display_name=user_data.display_name,
            )
            await EmailPreferencesRepository(self.session).create_defaults(user.id, commit=False)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        tokens = issue_tokens(user, profile.role_name)
        user_id, email = user.id, user.email

        await award_points_safely(self.session, user_id, "registration", check_related_id=True, related_id=user_id)
        logger.info(f"New member registered: {user_id}")
        return {"user_id": user_id, "email": email, "tokens": tokens}

    async def login(self, login_data: UserLogin) -> Token:
        """Login user and return tokens"""
        user = await self.authenticate_user(login_data.email, login_data.password)
        if not user:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Incorrect email or password"
            )

        if not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Inactive user"
            )

        await self.users.touch_last_login(user)
        tokens = issue_tokens(user, await self.profiles.get_role_name(user.id))
        await award_points_safely(self.session, user.id, "daily login", check_daily=True)
        return tokens

    async def refresh_access_token(self, refresh_token: str) -> Token:
        """Refresh access token"""
        payload = verify_token(refresh_token)
        if not payload or payload.get("type") != "refresh":
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid refresh token"
            )

        user = await self._user_from_subject(payload.get("sub"))
        if not user or not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="User not found or inactive"
            )

        tokens = issue_tokens(user, await self.profiles.get_role_name(user.id))
        # Keep same refresh token
        tokens.refresh_token = refresh_token
        return tokens

    async def _user_from_subject(self, subject: Optional[str]) -> Optional[User]:
        try:
            user_id = UUID(str(subject))
        except ValueError:
            return None
        return await self.users.get_user(user_id)

    async def load_current_user(self, token: str) -> Optional[CurrentUser]:
        payload = verify_token(token)
        if payload is None or payload.get("type") != "access":
            return None
        user = await self._user_from_subject(payload.get("sub"))
        if user is None:
            return None
        return CurrentUser(
            id=user.id,
            email=user.email,
            role=await self.profiles.get_role_name(user.id),
            is_active=user.is_active,
            created_at=user.created_at,
            last_login=user.last_login,
        )


# Dependencies
async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    session: AsyncSession = Depends(get_session),
) -> CurrentUser:
    """Get current authenticated user"""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise credentials_exception

    user = await AuthService(session).load_current_user(credentials.credentials)
    if user is None:
        raise credentials_exception
    if not user.is_active:
        raise HTTPException(status_code=400, detail="Inactive user")
    return user


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    session: AsyncSession = Depends(get_session),
) -> Optional[CurrentUser]:
    """Current user when a valid bearer token is sent, otherwise None"""
    if credentials is None:
        return None
    user = await AuthService(session).load_current_user(credentials.credentials)
    if user is None or not user.is_active:
        return None
    return user


def require_role(*roles: str):
    """Dependency factory for role-based access control; admins always pass"""
    async def role_checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.is_admin or current_user.role in roles:
            return current_user

        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Role required: {', '.join(roles)}"
        )

    return role_checker


# Convenience dependencies
require_admin = require_role("admin")
