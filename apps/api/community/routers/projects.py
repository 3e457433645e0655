"""
Project marketplace endpoints
"""
from datetime import date
from typing import Any, Dict, List, Optional, Union
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.jwt import CurrentUser, get_current_user, get_optional_user
from ..database.profiles import ProfilesRepository
from ..database.projects import ProjectsRepository
from ..database.session import get_session
from ..database.settings import EmailPreferencesRepository
from ..errors import CommunityError
from ..logging_config import setup_logging
from ..mailer import EmailSender, get_email_sender, new_project_email, project_offer_email, send_safely
from ..utils import get_display_name, row_to_dict

logger = setup_logging(__name__)

router = APIRouter(prefix="/projects", tags=["projects"])


class ProjectCreate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    budget_min: Optional[float] = None
    budget_max: Optional[float] = None
    budget_currency: Optional[str] = None
    deadline: Optional[date] = None
    technologies: Optional[Union[str, List[str]]] = None


class ProjectUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    budget_min: Optional[float] = None
    budget_max: Optional[float] = None
    budget_currency: Optional[str] = None
    deadline: Optional[date] = None
    technologies: Optional[Union[str, List[str]]] = None
    status: Optional[str] = None


class OfferCreate(BaseModel):
    offer_amount: Optional[float] = None
    offer_currency: Optional[str] = None
    message: Optional[str] = None


class OfferStatusUpdate(BaseModel):
    status: str


@router.get("")
async def list_projects(session: AsyncSession = Depends(get_session)):
    return {"data": await ProjectsRepository(session).list_projects()}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_project(
    payload: ProjectCreate,
    current_user: Optional[CurrentUser] = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
    mailer: EmailSender = Depends(get_email_sender),
):
    """Post a project as a member or as a guest; subscribers are emailed afterwards"""
    try:
        project = await ProjectsRepository(session).create_project(
            payload.model_dump(), current_user.id if current_user else None
        )
    except HTTPException:
        raise
    except CommunityError:
        raise
    except Exception as e:
        logger.error(f"Error creating project: {e}")
        raise HTTPException(status_code=500, detail="Failed to create project")

    await _announce_project(session, mailer, project, current_user.id if current_user else None)
    return {"success": True, "data": project}


async def _announce_project(session: AsyncSession, mailer: EmailSender, project: Dict[str, Any],
                            author_id: Optional[UUID]) -> int:
    sent = 0
    try:
        recipients = await EmailPreferencesRepository(session).get_users_for_new_project_notifications(author_id)
    except Exception as e:
        await session.rollback()
        logger.warning(f"Loading new-project recipients failed: {e}")
        return sent

    for profile in recipients:
        email = new_project_email(get_display_name(profile), project)
        if await send_safely(mailer, profile.email, email["subject"], email["html"]):
            sent += 1
    logger.info(f"New project {project['id']} announced to {sent} members")
    return sent


@router.get("/offers/me")
async def my_offers(
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return {"data": await ProjectsRepository(session).get_user_offers(current_user.id)}


@router.put("/offers/{offer_id}")
async def update_offer_status(
    offer_id: UUID,
    payload: OfferStatusUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    offer = await ProjectsRepository(session).update_offer_status(
        offer_id, payload.status, current_user.id, current_user.is_admin
    )
    return {"success": True, "data": row_to_dict(offer)}


@router.get("/{project_id}")
async def get_project(
    project_id: UUID,
    current_user: Optional[CurrentUser] = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
):
    viewer_id = current_user.id if current_user else None
    is_admin = current_user is not None and current_user.is_admin
    return {"data": await ProjectsRepository(session).get_project_detail(project_id, viewer_id, is_admin)}


@router.put("/{project_id}")
async def update_project(
    project_id: UUID,
    payload: ProjectUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    project = await ProjectsRepository(session).update_project(
        project_id, payload.model_dump(exclude_unset=True), current_user.id, current_user.is_admin
    )
    return {"success": True, "data": project}


@router.delete("/{project_id}")
async def delete_project(
    project_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await ProjectsRepository(session).delete_project(project_id, current_user.id, current_user.is_admin)
    return {"success": True, "data": {"id": str(project_id)}}


@router.post("/{project_id}/offers", status_code=status.HTTP_201_CREATED)
async def submit_offer(
    project_id: UUID,
    payload: OfferCreate,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    mailer: EmailSender = Depends(get_email_sender),
):
    """
    Submit an offer on a project

    Non-premium members pay for each offer in points; a 402 reply carries
    the current balance and the required amount.
    """
    try:
        offer, project = await ProjectsRepository(session).submit_offer(
            project_id, current_user.id, payload.model_dump()
        )
    except HTTPException:
        raise
    except CommunityError:
        raise
    except Exception as e:
        logger.error(f"Error submitting offer on {project_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to submit offer")

    await _email_project_owner(session, mailer, project, offer, current_user.id)
    return {"success": True, "data": offer}


async def _email_project_owner(session: AsyncSession, mailer: EmailSender, project: Dict[str, Any],
                               offer: Dict[str, Any], offerer_id: UUID) -> None:
    try:
        if project["user_id"]:
            owner_id = UUID(project["user_id"])
            if owner_id == offerer_id:
                return
            profiles = ProfilesRepository(session)
            owner = await profiles.get_profile(owner_id)
            owner_name, owner_email = get_display_name(owner), owner.email if owner else None
        else:
            owner_name, owner_email = project["guest_name"], project["guest_email"]

        offerer = await ProfilesRepository(session).get_profile(offerer_id)
        email = project_offer_email(owner_name, get_display_name(offerer), project["title"], offer)
        await send_safely(mailer, owner_email, email["subject"], email["html"])
    except Exception as e:
        await session.rollback()
        logger.warning(f"Project offer email for {project['id']} failed: {e}")


@router.get("/{project_id}/offers")
async def list_offers(
    project_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Owners and admins see every offer, others only their own"""
    offers = await ProjectsRepository(session).get_offers(project_id, current_user.id, current_user.is_admin)
    return {"data": offers}
