"""
SQLAlchemy models for the Community API
"""
from .base import Base
from .users import User, Role, Profile
from .courses import (
    Course,
    CourseSection,
    CourseLesson,
    CourseEnrollment,
    CourseProgress,
    LessonCompletion,
    LessonQuestion,
)
from .forums import Forum, ForumPost, ForumPostReply, ForumPostLike, ForumReplyLike
from .projects import Project, ProjectOffer
from .content import Message, Recording, RecordingComment, Resource, ResourceLike, Tag, TagAssignment
from .events import Event, EventRegistration
from .engagement import Notification, GamificationRule, PointsHistory, Badge, UserBadge
from .billing import Subscription, Payment, EmailPreference, SystemSetting

__all__ = [
    "Base",
    "User",
    "Role",
    "Profile",
    "Course",
    "CourseSection",
    "CourseLesson",
    "CourseEnrollment",
    "CourseProgress",
    "LessonCompletion",
    "LessonQuestion",
    "Forum",
    "ForumPost",
    "ForumPostReply",
    "ForumPostLike",
    "ForumReplyLike",
    "Project",
    "ProjectOffer",
    "Message",
    "Recording",
    "RecordingComment",
    "Resource",
    "ResourceLike",
    "Tag",
    "TagAssignment",
    "Event",
    "EventRegistration",
    "Notification",
    "GamificationRule",
    "PointsHistory",
    "Badge",
    "UserBadge",
    "Subscription",
    "Payment",
    "EmailPreference",
    "SystemSetting",
]
