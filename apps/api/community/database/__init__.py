"""
Database package for the community API
"""

from .courses import CoursesRepository, load_course_detail
from .events import EventsRepository
from .forums import ForumsRepository
from .gamification import GamificationRepository, award_points_safely
from .messages import MessagesRepository
from .notifications import NotificationsRepository, notify_safely
from .profiles import ProfilesRepository
from .projects import ProjectsRepository
from .recordings import RecordingsRepository
from .resources import ResourcesRepository
from .session import AsyncSessionLocal, get_session, get_session_factory
from .settings import EmailPreferencesRepository, SystemSettingsRepository
from .subscriptions import SubscriptionsRepository
from .tags import TagsRepository
from .users import UsersRepository

__all__ = [
    "AsyncSessionLocal",
    "CoursesRepository",
    "EmailPreferencesRepository",
    "EventsRepository",
    "ForumsRepository",
    "GamificationRepository",
    "MessagesRepository",
    "NotificationsRepository",
    "ProfilesRepository",
    "ProjectsRepository",
    "RecordingsRepository",
    "ResourcesRepository",
    "SubscriptionsRepository",
    "SystemSettingsRepository",
    "TagsRepository",
    "UsersRepository",
    "award_points_safely",
    "get_session",
    "get_session_factory",
    "load_course_detail",
    "notify_safely",
]
