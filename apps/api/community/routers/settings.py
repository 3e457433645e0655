"""
Email preferences and admin system settings
"""
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.jwt import CurrentUser, get_current_user, require_admin
from ..database.session import get_session
from ..database.settings import EmailPreferencesRepository, SystemSettingsRepository
from ..errors import ValidationError
from ..logging_config import setup_logging

logger = setup_logging(__name__)

router = APIRouter(tags=["settings"])


@router.get("/email-preferences")
async def get_email_preferences(
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return {"data": await EmailPreferencesRepository(session).get_preferences(current_user.id)}


@router.put("/email-preferences")
async def update_email_preferences(
    payload: Dict[str, Any] = Body(...),
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Each provided preference must be a JSON boolean"""
    preferences = await EmailPreferencesRepository(session).update_preferences(current_user.id, payload)
    return {"success": True, "data": preferences}


@router.get("/admin/registration-limit")
async def get_registration_limit(
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    return {"data": await SystemSettingsRepository(session).check_registration_available()}


@router.put("/admin/registration-limit")
async def set_registration_limit(
    payload: Dict[str, Any] = Body(...),
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    if "limit" not in payload:
        raise ValidationError("limit is required")
    repo = SystemSettingsRepository(session)
    await repo.set_registration_limit(payload["limit"])
    logger.info(f"Admin {current_user.id} changed the registration limit")
    return {"success": True, "data": await repo.check_registration_available()}
