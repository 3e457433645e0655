"""Tests for courses, lessons, enrollment and progress."""

import pytest


def create_course(client, admin, **fields):
    payload = {"title": "Python Basics", **fields}
    response = client.post("/courses", headers=admin.headers, json=payload)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def create_lesson(client, admin, course, title, order, **fields):
    response = client.post(f"/courses/{course['id']}/lessons", headers=admin.headers, json={
        "title": title, "lesson_order": order, **fields,
    })
    assert response.status_code == 201, response.text
    return response.json()["data"]


@pytest.fixture
def course(client, admin):
    return create_course(client, admin)


@pytest.fixture
def lessons(client, admin, course):
    return [create_lesson(client, admin, course, f"Lesson {i}", i) for i in range(1, 5)]


class TestCourseCatalog:
    """Tests for /courses."""

    def test_create_course_defaults(self, client, admin):
        """New courses are published, beginner, and free without a price."""
        course = create_course(client, admin)
        assert course["status"] == "published"
        assert course["difficulty"] == "beginner"
        assert course["category"] == "General"
        assert course["is_free"] is True

    def test_priced_course_is_not_free(self, client, admin):
        """A price makes the course paid."""
        course = create_course(client, admin, price=199)
        assert course["is_free"] is False

    def test_free_for_premium_is_not_free(self, client, admin):
        """Free-for-premium courses are not free for everyone."""
        course = create_course(client, admin, is_free_for_premium=True)
        assert course["is_free"] is False

    def test_invalid_difficulty(self, client, admin):
        """Difficulty must be one of the known levels."""
        response = client.post("/courses", headers=admin.headers, json={"title": "X", "difficulty": "expert"})
        assert response.status_code == 400

    def test_members_cannot_create(self, client, member):
        """Course creation is admin-only."""
        response = client.post("/courses", headers=member.headers, json={"title": "X"})
        assert response.status_code == 403

    def test_drafts_hidden_from_members(self, client, admin, member):
        """Draft courses are listed for admins only."""
        create_course(client, admin, title="Published")
        draft = create_course(client, admin, title="Draft", status="draft")
        member_titles = [c["title"] for c in client.get("/courses", headers=member.headers).json()["data"]]
        admin_titles = [c["title"] for c in client.get("/courses", headers=admin.headers).json()["data"]]
        assert member_titles == ["Published"]
        assert sorted(admin_titles) == ["Draft", "Published"]
        assert client.get(f"/courses/{draft['id']}", headers=member.headers).status_code == 404

    def test_course_detail(self, client, course, lessons):
        """The detail view includes lessons in order."""
        data = client.get(f"/courses/{course['id']}").json()["data"]
        assert [lesson["title"] for lesson in data["lessons"]] == ["Lesson 1", "Lesson 2", "Lesson 3", "Lesson 4"]
        assert data["is_enrolled"] is False
        assert data["enrollment"] is None

    def test_outline_hides_gated_lessons(self, client, admin, course):
        """Anonymous visitors see preview lessons in full and the rest as an outline."""
        create_lesson(client, admin, course, "Intro", 1, is_preview=True, video_url="https://v/free")
        create_lesson(client, admin, course, "Deep dive", 2, video_url="https://v/paid", content="notes")
        intro, deep = client.get(f"/courses/{course['id']}").json()["data"]["lessons"]
        assert intro["video_url"] == "https://v/free"
        assert deep["title"] == "Deep dive"
        assert "video_url" not in deep
        assert "content" not in deep
        admin_view = client.get(f"/courses/{course['id']}", headers=admin.headers).json()["data"]["lessons"]
        assert admin_view[1]["video_url"] == "https://v/paid"

    def test_update_price_recomputes_is_free(self, client, admin, course):
        """Setting a price clears is_free."""
        response = client.put(f"/courses/{course['id']}", headers=admin.headers, json={"price": 50})
        assert response.json()["data"]["is_free"] is False

    def test_delete_course(self, client, admin, course):
        """Deleted courses are gone."""
        assert client.delete(f"/courses/{course['id']}", headers=admin.headers).status_code == 200
        assert client.get(f"/courses/{course['id']}").status_code == 404


class TestSections:
    """Tests for course sections."""

    def test_create_and_rename_section(self, client, admin, course):
        """Sections can be created and renamed."""
        section = client.post(f"/courses/{course['id']}/sections", headers=admin.headers, json={
            "title": "Intro", "section_order": 1,
        }).json()["data"]
        renamed = client.put(f"/sections/{section['id']}", headers=admin.headers, json={"title": "Getting started"})
        assert renamed.json()["data"]["title"] == "Getting started"
        sections = client.get(f"/courses/{course['id']}").json()["data"]["sections"]
        assert [s["title"] for s in sections] == ["Getting started"]

    def test_section_requires_title(self, client, admin, course):
        """Sections need a title."""
        response = client.post(f"/courses/{course['id']}/sections", headers=admin.headers, json={})
        assert response.status_code == 400


class TestEnrollment:
    """Tests for POST /courses/{id}/enroll."""

    def test_enroll_free_course(self, client, member, course):
        """Enrolling in a free course records a free seat."""
        response = client.post(f"/courses/{course['id']}/enroll", headers=member.headers)
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["status"] == "enrolled"
        assert data["payment_status"] == "free"

    def test_enroll_twice(self, client, member, course):
        """A second enrollment is a conflict."""
        client.post(f"/courses/{course['id']}/enroll", headers=member.headers)
        response = client.post(f"/courses/{course['id']}/enroll", headers=member.headers)
        assert response.status_code == 409
        assert response.json()["code"] == "ALREADY_ENROLLED"

    def test_premium_only_course(self, client, admin, member, premium):
        """Premium-only courses turn away free members."""
        course = create_course(client, admin, is_premium_only=True)
        denied = client.post(f"/courses/{course['id']}/enroll", headers=member.headers)
        assert denied.status_code == 403
        assert denied.json()["code"] == "PREMIUM_ONLY"
        allowed = client.post(f"/courses/{course['id']}/enroll", headers=premium.headers)
        assert allowed.status_code == 201

    def test_paid_course_records_amount(self, client, admin, member):
        """Priced courses record the amount paid."""
        course = create_course(client, admin, price=120)
        data = client.post(f"/courses/{course['id']}/enroll", headers=member.headers).json()["data"]
        assert data["payment_status"] == "paid"
        assert data["payment_amount"] == 120

    def test_free_for_premium_seat(self, client, admin, premium):
        """Premium members take free-for-premium courses for free."""
        course = create_course(client, admin, price=120, is_free_for_premium=True)
        data = client.post(f"/courses/{course['id']}/enroll", headers=premium.headers).json()["data"]
        assert data["payment_status"] == "free"

    def test_my_enrollments(self, client, member, course):
        """Enrollments are listed for the member."""
        client.post(f"/courses/{course['id']}/enroll", headers=member.headers)
        enrollments = client.get("/courses/enrollments/me", headers=member.headers).json()["data"]
        assert [e["course_id"] for e in enrollments] == [course["id"]]

    def test_invalid_enrollment_status(self, client, member, course):
        """Enrollment status must be a known value."""
        client.post(f"/courses/{course['id']}/enroll", headers=member.headers)
        response = client.put(f"/courses/{course['id']}/enrollment", headers=member.headers, json={"status": "paused"})
        assert response.status_code == 400


class TestProgress:
    """Tests for lesson completion and course progress."""

    def test_complete_lesson_updates_progress(self, client, member, course, lessons):
        """Progress is the rounded share of completed lessons."""
        client.post(f"/courses/{course['id']}/enroll", headers=member.headers)
        response = client.post(f"/courses/{course['id']}/lessons/{lessons[0]['id']}/complete", headers=member.headers)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["progress"] == 25
        assert data["completed_lessons"] == [lessons[0]["id"]]

    def test_completing_every_lesson_completes_enrollment(self, client, member, course, lessons):
        """Reaching 100% marks the enrollment completed."""
        client.post(f"/courses/{course['id']}/enroll", headers=member.headers)
        for lesson in lessons:
            client.post(f"/courses/{course['id']}/lessons/{lesson['id']}/complete", headers=member.headers)
        enrollment = client.get("/courses/enrollments/me", headers=member.headers).json()["data"][0]
        assert enrollment["status"] == "completed"
        assert enrollment["completed_at"] is not None

    def test_uncomplete_lesson(self, client, member, course, lessons):
        """Removing a completion lowers the progress."""
        client.post(f"/courses/{course['id']}/enroll", headers=member.headers)
        client.post(f"/courses/{course['id']}/lessons/{lessons[0]['id']}/complete", headers=member.headers)
        response = client.delete(f"/courses/{course['id']}/lessons/{lessons[0]['id']}/complete", headers=member.headers)
        assert response.json()["data"] == {"progress": 0, "completed_lessons": []}

    def test_complete_without_enrollment(self, client, member, course, lessons):
        """Completing a lesson requires enrollment."""
        response = client.post(f"/courses/{course['id']}/lessons/{lessons[0]['id']}/complete", headers=member.headers)
        assert response.status_code == 403
        assert response.json()["code"] == "NOT_ENROLLED"

    def test_progress_out_of_range(self, client, member, course):
        """Progress over 100 is rejected."""
        response = client.put(f"/courses/{course['id']}/progress", headers=member.headers, json={"progress_percentage": 101})
        assert response.status_code == 422

    def test_set_progress(self, client, member, course):
        """Progress can be set directly."""
        response = client.put(f"/courses/{course['id']}/progress", headers=member.headers, json={"progress_percentage": 40})
        assert response.json()["data"]["progress_percentage"] == 40
        listed = client.get("/courses", headers=member.headers).json()["data"]
        assert listed[0]["progress"] == 40

    def test_detail_shows_member_progress(self, client, member, course, lessons):
        """The detail view includes the caller's enrollment and completions."""
        client.post(f"/courses/{course['id']}/enroll", headers=member.headers)
        client.post(f"/courses/{course['id']}/lessons/{lessons[1]['id']}/complete", headers=member.headers)
        data = client.get(f"/courses/{course['id']}", headers=member.headers).json()["data"]
        assert data["is_enrolled"] is True
        assert data["progress"] == 25
        assert data["completed_lessons"] == [lessons[1]["id"]]


class TestLessonAccess:
    """Tests for GET /courses/{id}/lessons/{lesson_id}."""

    def test_preview_lesson_open_to_everyone(self, client, admin, member, course):
        """Preview lessons need no enrollment."""
        lesson = create_lesson(client, admin, course, "Preview", 1, is_preview=True)
        data = client.get(f"/courses/{course['id']}/lessons/{lesson['id']}", headers=member.headers).json()["data"]
        assert data["access_reason"] == "preview"

    def test_not_enrolled(self, client, member, course, lessons):
        """Members must enroll first."""
        response = client.get(f"/courses/{course['id']}/lessons/{lessons[0]['id']}", headers=member.headers)
        assert response.status_code == 403
        assert response.json()["code"] == "LESSON_ACCESS_DENIED"
        assert response.json()["reason"] == "not_enrolled"

    def test_enrolled_in_free_course(self, client, member, course, lessons):
        """Enrolled members open lessons of free courses."""
        client.post(f"/courses/{course['id']}/enroll", headers=member.headers)
        data = client.get(f"/courses/{course['id']}/lessons/{lessons[0]['id']}", headers=member.headers).json()["data"]
        assert data["access_reason"] == "enrolled"
        assert data["is_completed"] is False
        assert data["next_lesson_id"] == lessons[1]["id"]

    def test_admin_opens_any_lesson(self, client, admin, course, lessons):
        """Admins bypass every check."""
        data = client.get(f"/courses/{course['id']}/lessons/{lessons[2]['id']}", headers=admin.headers).json()["data"]
        assert data["access_reason"] == "admin"

    def test_paid_course_needs_premium(self, client, admin, member, premium):
        """Lessons of paid courses need premium access."""
        course = create_course(client, admin, price=100)
        lesson = create_lesson(client, admin, course, "Paid", 1)
        client.post(f"/courses/{course['id']}/enroll", headers=member.headers)
        client.post(f"/courses/{course['id']}/enroll", headers=premium.headers)
        denied = client.get(f"/courses/{course['id']}/lessons/{lesson['id']}", headers=member.headers)
        assert denied.json()["reason"] == "not_premium"
        allowed = client.get(f"/courses/{course['id']}/lessons/{lesson['id']}", headers=premium.headers)
        assert allowed.json()["data"]["access_reason"] == "premium"

    def test_sequential_course_blocks_ahead(self, client, admin, member):
        """Sequential courses unlock lessons one at a time."""
        course = create_course(client, admin, is_sequential=True)
        first = create_lesson(client, admin, course, "One", 1)
        second = create_lesson(client, admin, course, "Two", 2)
        client.post(f"/courses/{course['id']}/enroll", headers=member.headers)

        blocked = client.get(f"/courses/{course['id']}/lessons/{second['id']}", headers=member.headers)
        assert blocked.status_code == 403
        assert blocked.json()["reason"] == "sequential_blocked"

        opened = client.get(f"/courses/{course['id']}/lessons/{first['id']}", headers=member.headers).json()["data"]
        assert opened["next_lesson_id"] is None

        client.post(f"/courses/{course['id']}/lessons/{first['id']}/complete", headers=member.headers)
        unlocked = client.get(f"/courses/{course['id']}/lessons/{second['id']}", headers=member.headers)
        assert unlocked.status_code == 200

    def test_lesson_of_other_course(self, client, admin, member, course, lessons):
        """A lesson id under the wrong course is a 404."""
        other = create_course(client, admin, title="Other")
        response = client.get(f"/courses/{other['id']}/lessons/{lessons[0]['id']}", headers=member.headers)
        assert response.status_code == 404


class TestLessonQuestions:
    """Tests for lesson questions and answers."""

    def test_member_sees_only_own_questions(self, client, admin, make_user, course, lessons):
        """Members see their own questions, admins see all."""
        first, second = make_user(), make_user()
        lesson_id = lessons[0]["id"]
        client.post(f"/lessons/{lesson_id}/questions", headers=first.headers, json={"question": "Why?"})
        client.post(f"/lessons/{lesson_id}/questions", headers=second.headers, json={"question": "How?"})
        own = client.get(f"/lessons/{lesson_id}/questions", headers=first.headers).json()["data"]
        every = client.get(f"/lessons/{lesson_id}/questions", headers=admin.headers).json()["data"]
        assert [q["question"] for q in own] == ["Why?"]
        assert len(every) == 2

    def test_answer_added_to_qa_section(self, client, admin, member, course, lessons):
        """An answer can be published into the lesson's Q&A."""
        lesson_id = lessons[0]["id"]
        question = client.post(f"/lessons/{lesson_id}/questions", headers=member.headers, json={
            "question": "Is this recorded?",
        }).json()["data"]
        assert question["status"] == "pending"

        response = client.put(f"/admin/lesson-questions/{question['id']}", headers=admin.headers, json={
            "answer": "Yes", "add_to_qa_section": True,
        })
        assert response.json()["data"]["status"] == "answered"
        lesson = client.get(f"/courses/{course['id']}/lessons/{lesson_id}", headers=admin.headers).json()["data"]
        assert lesson["qa_section"] == [{"question": "Is this recorded?", "answer": "Yes"}]

    def test_blank_question_rejected(self, client, member, lessons):
        """Questions cannot be blank."""
        response = client.post(f"/lessons/{lessons[0]['id']}/questions", headers=member.headers, json={"question": " "})
        assert response.status_code == 400
