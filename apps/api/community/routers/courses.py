"""
Courses, sections, lessons, enrollment, progress and lesson questions
"""
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..auth.jwt import CurrentUser, get_current_user, get_optional_user, require_admin
from ..database.courses import CoursesRepository, load_course_detail
from ..database.session import get_session, get_session_factory
from ..errors import CommunityError, NotFoundError, PermissionDeniedError
from ..logging_config import setup_logging
from ..utils import row_to_dict

logger = setup_logging(__name__)

router = APIRouter(tags=["courses"])


class CourseCreate(BaseModel):
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    difficulty: Optional[str] = None
    duration_hours: Optional[float] = None
    price: Optional[float] = None
    is_free_for_premium: bool = False
    is_premium_only: bool = False
    is_sequential: bool = False
    status: Optional[str] = None
    thumbnail_url: Optional[str] = None
    instructor_name: Optional[str] = None
    instructor_title: Optional[str] = None
    instructor_avatar_url: Optional[str] = None


class CourseUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    difficulty: Optional[str] = None
    duration_hours: Optional[float] = None
    price: Optional[float] = None
    is_free: Optional[bool] = None
    is_free_for_premium: Optional[bool] = None
    is_premium_only: Optional[bool] = None
    is_sequential: Optional[bool] = None
    status: Optional[str] = None
    thumbnail_url: Optional[str] = None
    instructor_name: Optional[str] = None
    instructor_title: Optional[str] = None
    instructor_avatar_url: Optional[str] = None


class SectionPayload(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    section_order: Optional[int] = None


class LessonPayload(BaseModel):
    section_id: Optional[UUID] = None
    title: Optional[str] = None
    description: Optional[str] = None
    video_url: Optional[str] = None
    content: Optional[str] = None
    duration_minutes: Optional[int] = None
    lesson_order: Optional[int] = None
    is_preview: Optional[bool] = None
    qa_section: Optional[List[Dict[str, Any]]] = None
    key_points: Optional[List[Any]] = None


class ProgressUpdate(BaseModel):
    progress_percentage: int = Field(..., ge=0, le=100)


class EnrollmentStatusUpdate(BaseModel):
    status: str


class QuestionCreate(BaseModel):
    question: str


class QuestionAnswer(BaseModel):
    answer: str
    add_to_qa_section: bool = False


# Courses

@router.get("/courses")
async def list_courses(
    current_user: Optional[CurrentUser] = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
):
    """Published courses, with drafts for admins; each carries the caller's progress"""
    include_drafts = current_user is not None and current_user.is_admin
    courses = await CoursesRepository(session).list_courses(
        include_drafts=include_drafts,
        user_id=current_user.id if current_user else None,
    )
    return {"data": courses}


@router.post("/courses", status_code=status.HTTP_201_CREATED)
async def create_course(
    payload: CourseCreate,
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    try:
        course = await CoursesRepository(session).create_course(payload.model_dump(exclude_unset=True))
        return {"success": True, "data": row_to_dict(course)}
    except HTTPException:
        raise
    except CommunityError:
        raise
    except Exception as e:
        logger.error(f"Error creating course: {e}")
        raise HTTPException(status_code=400, detail="Failed to create course")


@router.get("/courses/enrollments/me")
async def my_enrollments(
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    enrollments = await CoursesRepository(session).get_user_enrollments(current_user.id)
    return {"data": [row_to_dict(enrollment) for enrollment in enrollments]}


@router.get("/courses/{course_id}")
async def get_course(
    course_id: UUID,
    current_user: Optional[CurrentUser] = Depends(get_optional_user),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """Course with enrollment, progress, sections and lessons, fetched concurrently"""
    detail = await load_course_detail(
        session_factory,
        course_id,
        current_user.id if current_user else None,
        include_gated=current_user is not None and current_user.is_admin,
    )
    if detail is None:
        raise NotFoundError("Course not found")
    if detail["status"] != "published" and not (current_user and current_user.is_admin):
        raise NotFoundError("Course not found")
    return {"data": detail}


@router.put("/courses/{course_id}")
async def update_course(
    course_id: UUID,
    payload: CourseUpdate,
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    course = await CoursesRepository(session).update_course(course_id, payload.model_dump(exclude_unset=True))
    return {"success": True, "data": row_to_dict(course)}


@router.delete("/courses/{course_id}")
async def delete_course(
    course_id: UUID,
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    await CoursesRepository(session).delete_course(course_id)
    return {"success": True, "data": {"id": str(course_id)}}


# Sections and lessons

@router.post("/courses/{course_id}/sections", status_code=status.HTTP_201_CREATED)
async def create_section(
    course_id: UUID,
    payload: SectionPayload,
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    section = await CoursesRepository(session).create_section(course_id, payload.model_dump(exclude_unset=True))
    return {"success": True, "data": row_to_dict(section)}


@router.put("/sections/{section_id}")
async def update_section(
    section_id: UUID,
    payload: SectionPayload,
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    section = await CoursesRepository(session).update_section(section_id, payload.model_dump(exclude_unset=True))
    return {"success": True, "data": row_to_dict(section)}


@router.delete("/sections/{section_id}")
async def delete_section(
    section_id: UUID,
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    await CoursesRepository(session).delete_section(section_id)
    return {"success": True, "data": {"id": str(section_id)}}


@router.post("/courses/{course_id}/lessons", status_code=status.HTTP_201_CREATED)
async def create_lesson(
    course_id: UUID,
    payload: LessonPayload,
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    lesson = await CoursesRepository(session).create_lesson(course_id, payload.model_dump(exclude_unset=True))
    return {"success": True, "data": row_to_dict(lesson)}


@router.put("/lessons/{lesson_id}")
async def update_lesson(
    lesson_id: UUID,
    payload: LessonPayload,
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    lesson = await CoursesRepository(session).update_lesson(lesson_id, payload.model_dump(exclude_unset=True))
    return {"success": True, "data": row_to_dict(lesson)}


@router.delete("/lessons/{lesson_id}")
async def delete_lesson(
    lesson_id: UUID,
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    await CoursesRepository(session).delete_lesson(lesson_id)
    return {"success": True, "data": {"id": str(lesson_id)}}


@router.get("/courses/{course_id}/lessons/{lesson_id}")
async def get_lesson(
    course_id: UUID,
    lesson_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """A lesson the caller may open, with completion state and the next unlocked lesson"""
    repo = CoursesRepository(session)
    lesson = await repo.get_lesson(lesson_id)
    if lesson is None or lesson.course_id != course_id:
        raise NotFoundError("Lesson not found")

    has_access, reason = await repo.verify_lesson_access(current_user.id, course_id, lesson_id)
    if not has_access:
        raise PermissionDeniedError("You do not have access to this lesson", code="LESSON_ACCESS_DENIED", reason=reason)

    next_lesson = await repo.get_next_available_lesson(current_user.id, course_id, lesson_id)
    return {
        "data": {
            **row_to_dict(lesson),
            "access_reason": reason,
            "is_completed": await repo.is_lesson_completed(current_user.id, lesson_id),
            "next_lesson_id": str(next_lesson.id) if next_lesson else None,
        }
    }


# Enrollment and progress

@router.post("/courses/{course_id}/enroll", status_code=status.HTTP_201_CREATED)
async def enroll(
    course_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    try:
        enrollment = await CoursesRepository(session).enroll(current_user.id, course_id)
        return {"success": True, "data": row_to_dict(enrollment)}
    except HTTPException:
        raise
    except CommunityError:
        raise
    except Exception as e:
        logger.error(f"Error enrolling {current_user.id} in {course_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to enroll")


@router.put("/courses/{course_id}/enrollment")
async def update_enrollment(
    course_id: UUID,
    payload: EnrollmentStatusUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    enrollment = await CoursesRepository(session).update_enrollment_status(current_user.id, course_id, payload.status)
    return {"success": True, "data": row_to_dict(enrollment)}


@router.put("/courses/{course_id}/progress")
async def update_progress(
    course_id: UUID,
    payload: ProgressUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    progress = await CoursesRepository(session).update_progress(
        current_user.id, course_id, payload.progress_percentage
    )
    return {"success": True, "data": row_to_dict(progress)}


async def _completion_state(repo: CoursesRepository, user_id: UUID, course_id: UUID, progress: int) -> Dict[str, Any]:
    return {
        "progress": progress,
        "completed_lessons": await repo.get_completed_lessons(user_id, course_id),
    }


@router.post("/courses/{course_id}/lessons/{lesson_id}/complete")
async def complete_lesson(
    course_id: UUID,
    lesson_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    repo = CoursesRepository(session)
    if await repo.get_enrollment(current_user.id, course_id) is None:
        raise PermissionDeniedError("Enroll in the course first", code="NOT_ENROLLED")
    progress = await repo.mark_lesson_complete(current_user.id, course_id, lesson_id)
    return {"success": True, "data": await _completion_state(repo, current_user.id, course_id, progress)}


@router.delete("/courses/{course_id}/lessons/{lesson_id}/complete")
async def uncomplete_lesson(
    course_id: UUID,
    lesson_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    repo = CoursesRepository(session)
    progress = await repo.mark_lesson_incomplete(current_user.id, course_id, lesson_id)
    return {"success": True, "data": await _completion_state(repo, current_user.id, course_id, progress)}


# Lesson questions

@router.post("/lessons/{lesson_id}/questions", status_code=status.HTTP_201_CREATED)
async def ask_question(
    lesson_id: UUID,
    payload: QuestionCreate,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    question = await CoursesRepository(session).create_question(lesson_id, current_user.id, payload.question)
    return {"success": True, "data": row_to_dict(question)}


@router.get("/lessons/{lesson_id}/questions")
async def list_questions(
    lesson_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Admins see every question on the lesson, members only their own"""
    questions = await CoursesRepository(session).get_questions(lesson_id, current_user.id, current_user.is_admin)
    return {"data": [row_to_dict(question) for question in questions]}


@router.put("/admin/lesson-questions/{question_id}")
async def answer_question(
    question_id: UUID,
    payload: QuestionAnswer,
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    question = await CoursesRepository(session).answer_question(
        question_id, payload.answer, current_user.id, payload.add_to_qa_section
    )
    return {"success": True, "data": row_to_dict(question)}
