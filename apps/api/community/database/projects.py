"""
Database operations for the project marketplace
"""
import re
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..cache import CACHE_TTL, clear_cache, get_cached, set_cached
from ..config import settings
from ..errors import NotFoundError, PermissionDeniedError, ValidationError
from ..logging_config import get_logger
from ..models import Project, ProjectOffer
from ..utils import get_display_name, row_to_dict, split_technologies
from .gamification import GamificationRepository, award_points_safely
from .notifications import notify_safely
from .profiles import ProfilesRepository, has_free_project_submission, profile_summary

logger = get_logger(__name__)

PROJECTS_CACHE_KEY = "projects:all"
PROJECTS_CACHE_PREFIX = "projects:"
PROJECTS_LIMIT = 50

GUEST_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PROJECT_STATUSES = ("open", "in_progress", "completed", "closed")
OFFER_STATUSES = ("pending", "accepted", "rejected")

PROJECT_FIELDS = (
    "title", "description", "budget_min", "budget_max", "budget_currency",
    "deadline", "status",
)


def invalidate_projects_cache() -> int:
    return clear_cache(PROJECTS_CACHE_PREFIX)


class ProjectsRepository:
    """Repository for projects and offers"""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.profiles = ProfilesRepository(session)

    async def list_projects(self) -> List[Dict[str, Any]]:
        """Newest projects with their owner profiles; served from cache when warm"""
        cached = get_cached(PROJECTS_CACHE_KEY)
        if cached is not None:
            return cached

        result = await self.session.execute(
            select(Project).order_by(Project.created_at.desc()).limit(PROJECTS_LIMIT)
        )
        projects = list(result.scalars().all())
        profiles = await self.profiles.get_profiles_by_user_ids([p.user_id for p in projects if p.user_id])
        data = [self._serialize(project, profiles.get(project.user_id)) for project in projects]
        set_cached(PROJECTS_CACHE_KEY, data, CACHE_TTL.MEDIUM)
        return data

    def _serialize(self, project: Project, profile: Any = None, include_contact: bool = False) -> Dict[str, Any]:
        """Public shape of a project; the guest email is only kept for the owner or an admin"""
        data = row_to_dict(project)
        if not include_contact:
            data.pop("guest_email", None)
        data["technologies"] = list(project.technologies or [])
        if project.user_id:
            data["profile"] = profile_summary(profile, project.user_id)
        else:
            data["profile"] = {"user_id": None, "display_name": project.guest_name, "avatar_url": None}
        return data

    async def get_project(self, project_id: UUID) -> Project:
        project = await self.session.get(Project, project_id)
        if project is None:
            raise NotFoundError("Project not found")
        return project

    async def get_project_detail(self, project_id: UUID, viewer_id: Optional[UUID] = None,
                                 is_admin: bool = False) -> Dict[str, Any]:
        project = await self.get_project(project_id)
        project.views = (project.views or 0) + 1
        await self.session.commit()
        profile = await self.profiles.get_profile(project.user_id) if project.user_id else None
        include_contact = is_admin or (viewer_id is not None and project.user_id == viewer_id)
        return self._serialize(project, profile, include_contact)

    async def create_project(self, data: Dict[str, Any], user_id: Optional[UUID] = None) -> Dict[str, Any]:
        """
        Create a project posted by a member or by a guest

        Guests must leave a name and a valid email address. technologies may
        arrive as a list or as a comma-separated string.
        """
        if not data.get("title") or not data.get("description"):
            raise ValidationError("Missing required fields: title and description are required")

        guest_name = data.get("guest_name") or None
        guest_email = data.get("guest_email") or None
        if user_id is None:
            if not guest_name or not guest_email:
                raise ValidationError("Either sign in or provide both guest_name and guest_email")
            if not GUEST_EMAIL_PATTERN.match(guest_email):
                raise ValidationError("Invalid email format")

        project = Project(
            user_id=user_id,
            guest_name=guest_name if user_id is None else None,
            guest_email=guest_email if user_id is None else None,
            title=data["title"],
            description=data["description"],
            budget_min=data.get("budget_min") or None,
            budget_max=data.get("budget_max") or None,
            budget_currency=data.get("budget_currency") or "ILS",
            deadline=data.get("deadline") or None,
            technologies=split_technologies(data.get("technologies")),
            status="open",
        )
        self.session.add(project)
        await self.session.commit()
        invalidate_projects_cache()
        logger.info(f"Created project {project.id}: {project.title}")

        profile = await self.profiles.get_profile(user_id) if user_id else None
        return self._serialize(project, profile, include_contact=True)

    async def _owned(self, project_id: UUID, user_id: UUID, is_admin: bool) -> Project:
        project = await self.get_project(project_id)
        if project.user_id != user_id and not is_admin:
            raise PermissionDeniedError("Not allowed to modify this project")
        return project

    async def update_project(self, project_id: UUID, updates: Dict[str, Any], user_id: UUID,
                             is_admin: bool = False) -> Dict[str, Any]:
        project = await self._owned(project_id, user_id, is_admin)
        if "status" in updates and updates["status"] not in PROJECT_STATUSES:
            raise ValidationError(f"Invalid project status: {updates['status']}")
        for key in PROJECT_FIELDS:
            if key in updates:
                setattr(project, key, updates[key])
        if "technologies" in updates:
            project.technologies = split_technologies(updates["technologies"])
        await self.session.commit()
        invalidate_projects_cache()
        return self._serialize(project, include_contact=True)

    async def delete_project(self, project_id: UUID, user_id: UUID, is_admin: bool = False) -> None:
        project = await self._owned(project_id, user_id, is_admin)
        await self.session.delete(project)
        await self.session.commit()
        invalidate_projects_cache()
        logger.info(f"Deleted project {project_id}")

    # Offers

    async def submit_offer(self, project_id: UUID, user_id: UUID,
                           data: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """
        Submit an offer on a project

        Members without a premium role pay PROJECT_OFFER_COST points first;
        InsufficientPointsError propagates when they cannot. Returns the
        serialized offer and project.
        """
        project = await self.get_project(project_id)
        if not data.get("message") or not str(data["message"]).strip():
            raise ValidationError("message is required")

        role_name = await self.profiles.get_role_name(user_id)
        charged = 0
        try:
            if not has_free_project_submission(role_name):
                await GamificationRepository(self.session).deduct_points(
                    user_id, settings.PROJECT_OFFER_COST, related_id=project_id, commit=False
                )
                charged = settings.PROJECT_OFFER_COST

            offer = ProjectOffer(
                project_id=project.id,
                user_id=user_id,
                offer_amount=data.get("offer_amount"),
                offer_currency=data.get("offer_currency") or project.budget_currency or "ILS",
                message=data.get("message"),
                status="pending",
            )
            self.session.add(offer)
            project.offers_count = (project.offers_count or 0) + 1
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        invalidate_projects_cache()

        offer_data = {**row_to_dict(offer), "points_charged": charged}
        project_data = self._serialize(project, include_contact=True)
        author = await self.profiles.get_profile(user_id)

        if project_data["user_id"] and project.user_id != user_id:
            await notify_safely(
                self.session,
                user_id=project.user_id,
                type="project_offer",
                title="New offer on your project",
                message=f"{get_display_name(author)} sent an offer on \"{project_data['title']}\"",
                link=f"/projects/{project_data['id']}",
                related_id=offer_data["id"],
                related_type="project_offer",
            )
        await award_points_safely(self.session, user_id, "submit_project_offer", related_id=offer_data["id"])
        return offer_data, project_data

    async def get_offers(self, project_id: UUID, user_id: UUID, is_admin: bool = False) -> List[Dict[str, Any]]:
        """Owners and admins see every offer; other members see only their own"""
        project = await self.get_project(project_id)
        query = select(ProjectOffer).where(ProjectOffer.project_id == project_id)
        if project.user_id != user_id and not is_admin:
            query = query.where(ProjectOffer.user_id == user_id)
        result = await self.session.execute(query.order_by(ProjectOffer.created_at.desc()))
        offers = list(result.scalars().all())

        profiles = await self.profiles.get_profiles_by_user_ids([offer.user_id for offer in offers])
        return [
            {**row_to_dict(offer), "profile": profile_summary(profiles.get(offer.user_id), offer.user_id)}
            for offer in offers
        ]

    async def get_user_offers(self, user_id: UUID) -> List[Dict[str, Any]]:
        result = await self.session.execute(
            select(ProjectOffer, Project.title)
            .join(Project, Project.id == ProjectOffer.project_id)
            .where(ProjectOffer.user_id == user_id)
            .order_by(ProjectOffer.created_at.desc())
        )
        return [{**row_to_dict(offer), "project_title": title} for offer, title in result.all()]

    async def update_offer_status(self, offer_id: UUID, status: str, user_id: UUID,
                                  is_admin: bool = False) -> ProjectOffer:
        if status not in OFFER_STATUSES:
            raise ValidationError(f"Invalid offer status: {status}")
        offer = await self.session.get(ProjectOffer, offer_id)
        if offer is None:
            raise NotFoundError("Offer not found")
        await self._owned(offer.project_id, user_id, is_admin)
        offer.status = status
        await self.session.commit()
        invalidate_projects_cache()
        return offer
