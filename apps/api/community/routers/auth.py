"""
Signup, login and token endpoints
"""
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.jwt import AuthService, CurrentUser, RefreshRequest, UserCreate, UserLogin, get_current_user
from ..database.profiles import ProfilesRepository, sanitize_profile_for_admin
from ..database.session import get_session
from ..database.settings import SystemSettingsRepository
from ..errors import CommunityError
from ..logging_config import setup_logging
from ..middleware.security import AUTH_RATE_LIMIT, limiter
from ..mailer import EmailSender, get_email_sender, send_safely, welcome_email
from ..utils import get_display_name

logger = setup_logging(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/signup", status_code=status.HTTP_201_CREATED)
@limiter.limit(AUTH_RATE_LIMIT)
async def signup(
    request: Request,
    payload: UserCreate,
    session: AsyncSession = Depends(get_session),
    mailer: EmailSender = Depends(get_email_sender),
):
    """Register a member and log them in"""
    try:
        result = await AuthService(session).signup(payload)
    except HTTPException:
        raise
    except CommunityError:
        raise
    except Exception as e:
        logger.error(f"Error during signup: {e}")
        raise HTTPException(status_code=500, detail="Failed to create account")

    email = welcome_email(get_display_name(payload.model_dump()))
    await send_safely(mailer, result["email"], email["subject"], email["html"])

    return {
        "success": True,
        "data": {
            "user_id": str(result["user_id"]),
            "email": result["email"],
            **result["tokens"].model_dump(),
        },
    }


@router.post("/login")
@limiter.limit(AUTH_RATE_LIMIT)
async def login(request: Request, payload: UserLogin, session: AsyncSession = Depends(get_session)):
    """Login and get JWT tokens"""
    tokens = await AuthService(session).login(payload)
    return {"success": True, "data": tokens.model_dump()}


@router.post("/refresh")
async def refresh_token(payload: RefreshRequest, session: AsyncSession = Depends(get_session)):
    """Refresh access token"""
    tokens = await AuthService(session).refresh_access_token(payload.refresh_token)
    return {"success": True, "data": tokens.model_dump()}


@router.get("/me")
async def get_current_user_info(
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Get the current member's profile"""
    profile = await ProfilesRepository(session).require_profile(current_user.id)
    return {"data": {**sanitize_profile_for_admin(profile), "email": current_user.email}}


@router.get("/registration-status")
async def registration_status(session: AsyncSession = Depends(get_session)):
    return {"data": await SystemSettingsRepository(session).check_registration_available()}
