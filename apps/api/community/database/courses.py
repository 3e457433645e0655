"""
Database operations for courses, sections, lessons and learning progress
"""
import asyncio
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from ..logging_config import get_logger
from ..models import (
    Course, CourseEnrollment, CourseLesson, CourseProgress, CourseSection,
    LessonCompletion, LessonQuestion,
)
from ..models.base import utcnow
from ..utils import row_to_dict
from .profiles import ProfilesRepository

logger = get_logger(__name__)

DIFFICULTIES = ("beginner", "intermediate", "advanced")
ENROLLMENT_STATUSES = ("enrolled", "in_progress", "completed", "cancelled")

COURSE_FIELDS = (
    "title", "description", "category", "difficulty", "duration_hours", "price",
    "is_free", "is_free_for_premium", "is_premium_only", "is_sequential", "status",
    "thumbnail_url", "instructor_name", "instructor_title", "instructor_avatar_url",
)
SECTION_FIELDS = ("title", "description", "section_order")
LESSON_FIELDS = (
    "section_id", "title", "description", "video_url", "content", "duration_minutes",
    "lesson_order", "is_preview", "qa_section", "key_points",
)
LESSON_GATED_FIELDS = ("video_url", "content", "qa_section", "key_points")


def _compute_is_free(price: Optional[float], is_free_for_premium: bool) -> bool:
    return (price is None or price == 0) and not is_free_for_premium


def _progress_percentage(completed: int, total: int) -> int:
    if total <= 0:
        return 0
    return round(100 * completed / total)


class CoursesRepository:
    """Repository for course catalog and per-user learning state"""

    def __init__(self, session: AsyncSession):
        self.session = session

    # Courses

    async def list_courses(self, include_drafts: bool = False, user_id: Optional[UUID] = None) -> List[Dict[str, Any]]:
        query = select(Course).order_by(Course.created_at.desc())
        if not include_drafts:
            query = query.where(Course.status == "published")
        result = await self.session.execute(query)
        courses = result.scalars().all()

        progress: Dict[UUID, int] = {}
        if user_id is not None and courses:
            progress_result = await self.session.execute(
                select(CourseProgress).where(CourseProgress.user_id == user_id)
            )
            progress = {row.course_id: row.progress_percentage for row in progress_result.scalars().all()}

        return [{**row_to_dict(course), "progress": progress.get(course.id, 0)} for course in courses]

    async def get_course(self, course_id: UUID) -> Optional[Course]:
        return await self.session.get(Course, course_id)

    async def require_course(self, course_id: UUID) -> Course:
        course = await self.get_course(course_id)
        if course is None:
            raise NotFoundError("Course not found")
        return course

    async def create_course(self, data: Dict[str, Any]) -> Course:
        if not data.get("title"):
            raise ValidationError("title is required")
        difficulty = data.get("difficulty") or "beginner"
        if difficulty not in DIFFICULTIES:
            raise ValidationError(f"Invalid difficulty: {difficulty}")

        price = data.get("price")
        is_free_for_premium = bool(data.get("is_free_for_premium", False))
        fields = {key: data[key] for key in COURSE_FIELDS if data.get(key) is not None}
        fields.update(
            category=data.get("category") or "General",
            difficulty=difficulty,
            duration_hours=data.get("duration_hours") or 1,
            status=data.get("status") or "published",
            is_free_for_premium=is_free_for_premium,
            is_free=_compute_is_free(price, is_free_for_premium),
        )
        course = Course(**fields)
        self.session.add(course)
        await self.session.commit()
        logger.info(f"Created course {course.id}: {course.title}")
        return course

    async def update_course(self, course_id: UUID, updates: Dict[str, Any]) -> Course:
        course = await self.require_course(course_id)
        if "difficulty" in updates and updates["difficulty"] not in DIFFICULTIES:
            raise ValidationError(f"Invalid difficulty: {updates['difficulty']}")
        for key in COURSE_FIELDS:
            if key in updates:
                setattr(course, key, updates[key])
        if "is_free" not in updates and ("price" in updates or "is_free_for_premium" in updates):
            course.is_free = _compute_is_free(course.price, course.is_free_for_premium)
        await self.session.commit()
        return course

    async def delete_course(self, course_id: UUID) -> None:
        course = await self.require_course(course_id)
        await self.session.delete(course)
        await self.session.commit()
        logger.info(f"Deleted course {course_id}")

    # Sections and lessons

    async def get_sections(self, course_id: UUID) -> List[CourseSection]:
        result = await self.session.execute(
            select(CourseSection).where(CourseSection.course_id == course_id).order_by(CourseSection.section_order)
        )
        return list(result.scalars().all())

    async def create_section(self, course_id: UUID, data: Dict[str, Any]) -> CourseSection:
        await self.require_course(course_id)
        if not data.get("title"):
            raise ValidationError("title is required")
        section = CourseSection(
            course_id=course_id,
            **{key: data[key] for key in SECTION_FIELDS if data.get(key) is not None},
        )
        self.session.add(section)
        await self.session.commit()
        return section

    async def update_section(self, section_id: UUID, updates: Dict[str, Any]) -> CourseSection:
        section = await self.session.get(CourseSection, section_id)
        if section is None:
            raise NotFoundError("Section not found")
        for key in SECTION_FIELDS:
            if key in updates:
                setattr(section, key, updates[key])
        await self.session.commit()
        return section

    async def delete_section(self, section_id: UUID) -> None:
        section = await self.session.get(CourseSection, section_id)
        if section is None:
            raise NotFoundError("Section not found")
        await self.session.delete(section)
        await self.session.commit()

    async def get_lessons(self, course_id: UUID) -> List[CourseLesson]:
        result = await self.session.execute(
            select(CourseLesson).where(CourseLesson.course_id == course_id).order_by(CourseLesson.lesson_order)
        )
        return list(result.scalars().all())

    async def get_lesson(self, lesson_id: UUID) -> Optional[CourseLesson]:
        return await self.session.get(CourseLesson, lesson_id)

    async def create_lesson(self, course_id: UUID, data: Dict[str, Any]) -> CourseLesson:
        await self.require_course(course_id)
        if not data.get("title"):
            raise ValidationError("title is required")
        fields = {key: data[key] for key in LESSON_FIELDS if data.get(key) is not None}
        fields.setdefault("qa_section", [])
        fields.setdefault("key_points", [])
        lesson = CourseLesson(course_id=course_id, **fields)
        self.session.add(lesson)
        await self.session.commit()
        return lesson

    async def update_lesson(self, lesson_id: UUID, updates: Dict[str, Any]) -> CourseLesson:
        lesson = await self.get_lesson(lesson_id)
        if lesson is None:
            raise NotFoundError("Lesson not found")
        for key in LESSON_FIELDS:
            if key in updates:
                value = updates[key]
                if key in ("qa_section", "key_points") and value is None:
                    value = []
                setattr(lesson, key, value)
        await self.session.commit()
        return lesson

    async def delete_lesson(self, lesson_id: UUID) -> None:
        lesson = await self.get_lesson(lesson_id)
        if lesson is None:
            raise NotFoundError("Lesson not found")
        await self.session.delete(lesson)
        await self.session.commit()

    # Enrollment

    async def get_enrollment(self, user_id: UUID, course_id: UUID) -> Optional[CourseEnrollment]:
        result = await self.session.execute(
            select(CourseEnrollment).where(
                CourseEnrollment.user_id == user_id,
                CourseEnrollment.course_id == course_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_user_enrollments(self, user_id: UUID) -> List[CourseEnrollment]:
        result = await self.session.execute(
            select(CourseEnrollment)
            .where(CourseEnrollment.user_id == user_id)
            .order_by(CourseEnrollment.enrolled_at.desc())
        )
        return list(result.scalars().all())

    async def enroll(self, user_id: UUID, course_id: UUID) -> CourseEnrollment:
        """
        Enroll a user in a course

        Premium-only courses are closed to users without premium access. The
        payment status records how the seat was obtained: free courses and
        free-for-premium courses taken by premium users are 'free', priced
        courses are 'paid'.
        """
        course = await self.require_course(course_id)
        if await self.get_enrollment(user_id, course_id) is not None:
            raise ConflictError("Already enrolled in this course", code="ALREADY_ENROLLED")

        is_premium, _ = await ProfilesRepository(self.session).verify_premium_access(user_id)
        if course.is_premium_only and not is_premium:
            raise PermissionDeniedError("This course is for premium members only", code="PREMIUM_ONLY")

        payment_status, payment_amount = "free", None
        if course.is_free:
            payment_status = "free"
        elif course.is_free_for_premium and is_premium:
            payment_status = "free"
        elif course.price and course.price > 0:
            payment_status, payment_amount = "paid", course.price

        enrollment = CourseEnrollment(
            user_id=user_id,
            course_id=course_id,
            status="enrolled",
            payment_status=payment_status,
            payment_amount=payment_amount,
            enrolled_at=utcnow(),
        )
        self.session.add(enrollment)
        await self.session.flush()
        await self._upsert_progress(user_id, course_id, 0)
        await self.session.commit()
        logger.info(f"User {user_id} enrolled in course {course_id} ({payment_status})")
        return enrollment

    async def update_enrollment_status(self, user_id: UUID, course_id: UUID, status: str) -> CourseEnrollment:
        if status not in ENROLLMENT_STATUSES:
            raise ValidationError(f"Invalid enrollment status: {status}")
        enrollment = await self.get_enrollment(user_id, course_id)
        if enrollment is None:
            raise NotFoundError("Enrollment not found")
        enrollment.status = status
        if status == "completed":
            enrollment.completed_at = utcnow()
        await self.session.commit()
        return enrollment

    # Progress

    async def get_progress(self, user_id: UUID, course_id: UUID) -> Optional[CourseProgress]:
        result = await self.session.execute(
            select(CourseProgress).where(
                CourseProgress.user_id == user_id,
                CourseProgress.course_id == course_id,
            )
        )
        return result.scalar_one_or_none()

    async def _upsert_progress(self, user_id: UUID, course_id: UUID, percentage: int) -> CourseProgress:
        progress = await self.get_progress(user_id, course_id)
        if progress is None:
            progress = CourseProgress(user_id=user_id, course_id=course_id)
            self.session.add(progress)
        progress.progress_percentage = percentage
        progress.last_accessed_at = utcnow()
        return progress

    async def update_progress(self, user_id: UUID, course_id: UUID, percentage: int) -> CourseProgress:
        if percentage < 0 or percentage > 100:
            raise ValidationError("progress must be between 0 and 100")
        progress = await self._upsert_progress(user_id, course_id, percentage)
        await self.session.commit()
        return progress

    async def get_completed_lessons(self, user_id: UUID, course_id: UUID) -> List[str]:
        result = await self.session.execute(
            select(LessonCompletion.lesson_id).where(
                LessonCompletion.user_id == user_id,
                LessonCompletion.course_id == course_id,
            )
        )
        return [str(lesson_id) for lesson_id in result.scalars().all()]

    async def is_lesson_completed(self, user_id: UUID, lesson_id: UUID) -> bool:
        result = await self.session.execute(
            select(func.count(LessonCompletion.id)).where(
                LessonCompletion.user_id == user_id,
                LessonCompletion.lesson_id == lesson_id,
            )
        )
        return (result.scalar() or 0) > 0

    async def mark_lesson_complete(self, user_id: UUID, course_id: UUID, lesson_id: UUID) -> int:
        lesson = await self.get_lesson(lesson_id)
        if lesson is None or lesson.course_id != course_id:
            raise NotFoundError("Lesson not found")

        result = await self.session.execute(
            select(LessonCompletion).where(
                LessonCompletion.user_id == user_id,
                LessonCompletion.lesson_id == lesson_id,
            )
        )
        completion = result.scalar_one_or_none()
        if completion is None:
            self.session.add(LessonCompletion(user_id=user_id, lesson_id=lesson_id, course_id=course_id))
        else:
            completion.completed_at = utcnow()
        await self.session.flush()
        return await self._recalculate_progress(user_id, course_id)

    async def mark_lesson_incomplete(self, user_id: UUID, course_id: UUID, lesson_id: UUID) -> int:
        await self.session.execute(
            delete(LessonCompletion).where(
                LessonCompletion.user_id == user_id,
                LessonCompletion.lesson_id == lesson_id,
            )
        )
        await self.session.flush()
        return await self._recalculate_progress(user_id, course_id)

    async def _recalculate_progress(self, user_id: UUID, course_id: UUID) -> int:
        """Progress is the share of the course's lessons the user completed"""
        total_result = await self.session.execute(
            select(func.count(CourseLesson.id)).where(CourseLesson.course_id == course_id)
        )
        completed_result = await self.session.execute(
            select(func.count(LessonCompletion.id)).where(
                LessonCompletion.user_id == user_id,
                LessonCompletion.course_id == course_id,
            )
        )
        percentage = _progress_percentage(completed_result.scalar() or 0, total_result.scalar() or 0)
        await self._upsert_progress(user_id, course_id, percentage)

        if percentage == 100:
            enrollment = await self.get_enrollment(user_id, course_id)
            if enrollment is not None and enrollment.status != "completed":
                enrollment.status = "completed"
                enrollment.completed_at = utcnow()
                logger.info(f"User {user_id} completed course {course_id}")
        await self.session.commit()
        return percentage

    # Access

    async def can_access_lesson(self, user_id: UUID, course_id: UUID, lesson_id: UUID) -> bool:
        """Sequential courses unlock a lesson only once the previous one is completed"""
        course = await self.get_course(course_id)
        if course is None or not course.is_sequential:
            return course is not None

        lessons = await self.get_lessons(course_id)
        index = next((i for i, lesson in enumerate(lessons) if lesson.id == lesson_id), None)
        if index is None:
            return False
        if index == 0:
            return True
        return await self.is_lesson_completed(user_id, lessons[index - 1].id)

    async def get_next_available_lesson(self, user_id: UUID, course_id: UUID,
                                        current_lesson_id: UUID) -> Optional[CourseLesson]:
        course = await self.require_course(course_id)
        lessons = await self.get_lessons(course_id)
        index = next((i for i, lesson in enumerate(lessons) if lesson.id == current_lesson_id), None)
        if index is None or index + 1 >= len(lessons):
            return None
        if course.is_sequential and not await self.is_lesson_completed(user_id, current_lesson_id):
            return None
        return lessons[index + 1]

    async def verify_lesson_access(self, user_id: UUID, course_id: UUID, lesson_id: UUID) -> Tuple[bool, str]:
        """
        Decide whether a user may open a lesson

        Returns:
            (has_access, reason) with reason one of 'preview', 'admin',
            'course_not_found', 'not_enrolled', 'enrolled', 'not_premium',
            'sequential_blocked', 'premium'
        """
        lesson = await self.get_lesson(lesson_id)
        if lesson is not None and lesson.is_preview:
            return True, "preview"

        profiles = ProfilesRepository(self.session)
        if await profiles.get_role_name(user_id) == "admin":
            return True, "admin"

        course = await self.get_course(course_id)
        if course is None:
            return False, "course_not_found"

        if await self.get_enrollment(user_id, course_id) is None:
            return False, "not_enrolled"

        if course.is_free:
            if not await self.can_access_lesson(user_id, course_id, lesson_id):
                return False, "sequential_blocked"
            return True, "enrolled"

        is_premium, _ = await profiles.verify_premium_access(user_id)
        if not is_premium:
            return False, "not_premium"

        if not await self.can_access_lesson(user_id, course_id, lesson_id):
            return False, "sequential_blocked"
        return True, "premium"

    # Lesson questions

    async def create_question(self, lesson_id: UUID, user_id: UUID, question: str) -> LessonQuestion:
        if not question or not question.strip():
            raise ValidationError("question is required")
        if await self.get_lesson(lesson_id) is None:
            raise NotFoundError("Lesson not found")
        row = LessonQuestion(lesson_id=lesson_id, user_id=user_id, question=question.strip(), status="pending")
        self.session.add(row)
        await self.session.commit()
        return row

    async def get_questions(self, lesson_id: UUID, user_id: UUID, is_admin: bool = False) -> List[LessonQuestion]:
        query = select(LessonQuestion).where(LessonQuestion.lesson_id == lesson_id)
        if not is_admin:
            query = query.where(LessonQuestion.user_id == user_id)
        result = await self.session.execute(query.order_by(LessonQuestion.created_at.desc()))
        return list(result.scalars().all())

    async def answer_question(self, question_id: UUID, answer: str, admin_id: UUID,
                              add_to_qa_section: bool = False) -> LessonQuestion:
        row = await self.session.get(LessonQuestion, question_id)
        if row is None:
            raise NotFoundError("Question not found")
        if not answer or not answer.strip():
            raise ValidationError("answer is required")

        row.answer = answer.strip()
        row.answered_by = admin_id
        row.answered_at = utcnow()
        row.status = "answered"

        if add_to_qa_section:
            lesson = await self.get_lesson(row.lesson_id)
            if lesson is not None:
                lesson.qa_section = [*(lesson.qa_section or []), {"question": row.question, "answer": row.answer}]
        await self.session.commit()
        return row


async def load_course_detail(session_factory: async_sessionmaker, course_id: UUID,
                             user_id: Optional[UUID] = None,
                             include_gated: bool = False) -> Optional[Dict[str, Any]]:
    """
    Fetch a course with its enrollment, sections and lessons, each query on its own session

    Lessons other than previews are an outline only: their video, content
    and Q&A stay behind the lesson endpoint unless include_gated is set.
    """

    async def run(method: str, *args: Any) -> Any:
        async with session_factory() as session:
            return await getattr(CoursesRepository(session), method)(*args)

    async def no_enrollment() -> None:
        return None

    course, enrollment, sections, lessons = await asyncio.gather(
        run("get_course", course_id),
        run("get_enrollment", user_id, course_id) if user_id else no_enrollment(),
        run("get_sections", course_id),
        run("get_lessons", course_id),
    )
    if course is None:
        return None

    completed: List[str] = []
    progress = 0
    if user_id is not None and enrollment is not None:
        async with session_factory() as session:
            repo = CoursesRepository(session)
            completed = await repo.get_completed_lessons(user_id, course_id)
            row = await repo.get_progress(user_id, course_id)
            progress = row.progress_percentage if row else 0

    return {
        **row_to_dict(course),
        "enrollment": row_to_dict(enrollment) if enrollment else None,
        "is_enrolled": enrollment is not None,
        "progress": progress,
        "completed_lessons": completed,
        "sections": [row_to_dict(section) for section in sections],
        "lessons": [
            row_to_dict(lesson) if include_gated or lesson.is_preview
            else row_to_dict(lesson, exclude=LESSON_GATED_FIELDS)
            for lesson in lessons
        ],
    }
