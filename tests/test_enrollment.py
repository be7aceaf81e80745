from datetime import datetime, timedelta

from conftest import auth, make_token, run

from gurukul.courses.enrollment_service import format_time_ago


def _enroll(client, course_id, user_id="USR_STUDENT"):
    return client.post("/api/student/courses/enrolled", json={"course_id": course_id}, headers=auth(user_id))


def _toggle(client, lecture_id, completed, user_id="USR_STUDENT", **extra):
    return client.patch(
        f"/api/student/lectures/{lecture_id}",
        json={"completed": completed, **extra},
        headers=auth(user_id),
    )


# ==================== AUTH ====================

def test_missing_token_is_401(client, student) -> None:
    assert client.get("/api/student/courses/enrolled").status_code == 401


def test_bad_signature_is_401(client, student) -> None:
    headers = {"Authorization": f"Bearer {make_token('USR_STUDENT', secret='wrong')}"}
    assert client.get("/api/student/courses/enrolled", headers=headers).status_code == 401


def test_unknown_user_is_401(client) -> None:
    assert client.get("/api/student/courses/enrolled", headers=auth("USR_GHOST")).status_code == 401


def test_blocked_user_is_403(client, add_user) -> None:
    add_user("USR_BLOCKED", is_blocked=True)
    response = client.get("/api/student/courses/enrolled", headers=auth("USR_BLOCKED"))
    assert response.status_code == 403
    assert response.json()["detail"] == "Account is blocked"


# ==================== ENROLLMENT ====================

def test_enroll_then_list(client, db, student, course) -> None:
    response = _enroll(client, course["course_id"])
    assert response.status_code == 201
    assert response.json()["success"] is True

    courses = client.get("/api/student/courses/enrolled", headers=auth("USR_STUDENT")).json()["courses"]
    assert len(courses) == 1
    listed = courses[0]
    assert listed["id"] == course["course_id"]
    assert listed["enrollment_id"] == response.json()["enrollment_id"]
    assert (listed["completed_lectures"], listed["total_lectures"], listed["progress"]) == (0, 2, 0)
    assert listed["status"] == "active"
    assert listed["last_accessed"] == "Just now"

    stored = run(db.courses.find_one({"course_id": course["course_id"]}))
    assert stored["enrolled_count"] == 1


def test_enroll_twice_returns_existing_enrollment(client, db, student, course) -> None:
    first = _enroll(client, course["course_id"]).json()["enrollment_id"]
    second = _enroll(client, course["course_id"])

    assert second.status_code == 400
    assert second.json()["detail"]["enrollment_id"] == first
    assert run(db.enrollments.count_documents({"user_id": "USR_STUDENT"})) == 1


def test_enroll_unknown_course_is_404(client, student) -> None:
    assert _enroll(client, "COURSE_NOPE").status_code == 404


def test_enroll_requires_course_id(client, student) -> None:
    response = client.post("/api/student/courses/enrolled", json={}, headers=auth("USR_STUDENT"))
    assert response.status_code == 400
    assert "course_id" in response.json()["detail"]


def test_enrollment_sends_confirmation_notification(client, db, student, course) -> None:
    _enroll(client, course["course_id"])
    row = run(db.notifications.find_one({"user_id": "USR_STUDENT"}))
    assert row["title"] == "Enrollment confirmed"
    assert row["type"] == "success"


def test_list_skips_deleted_courses(client, db, student, course) -> None:
    _enroll(client, course["course_id"])
    run(db.courses.delete_one({"course_id": course["course_id"]}))
    courses = client.get("/api/student/courses/enrolled", headers=auth("USR_STUDENT")).json()["courses"]
    assert courses == []


# ==================== LECTURE COMPLETION ====================

def test_completion_walkthrough(client, db, student, course, lecture_ids) -> None:
    _enroll(client, course["course_id"])
    first, second = lecture_ids

    body = _toggle(client, first, True).json()
    assert body["progress"]["percentage"] == 50
    assert body["status"] == "active"

    body = _toggle(client, second, True).json()
    assert body["progress"]["percentage"] == 100
    assert body["status"] == "completed"

    body = _toggle(client, first, False).json()
    assert body["progress"]["percentage"] == 50
    assert body["progress"]["completed_lectures"] == 1
    assert body["status"] == "active"

    titles = [n["title"] for n in run(db.notifications.find({"user_id": "USR_STUDENT"}).to_list(length=None))]
    assert titles.count("Course completed") == 1


def test_completion_is_idempotent(client, db, student, course, lecture_ids) -> None:
    _enroll(client, course["course_id"])

    _toggle(client, lecture_ids[0], True)
    again = _toggle(client, lecture_ids[0], True).json()
    assert again["progress"]["completed_lectures"] == 1

    enrollment = run(db.enrollments.find_one({"user_id": "USR_STUDENT"}))
    assert len(enrollment["completed_lectures"]) == 1

    _toggle(client, lecture_ids[1], False)
    enrollment = run(db.enrollments.find_one({"user_id": "USR_STUDENT"}))
    assert [e["lecture_id"] for e in enrollment["completed_lectures"]] == [lecture_ids[0]]


def test_completion_without_enrollment_is_403_and_creates_nothing(client, db, student, course, lecture_ids) -> None:
    response = _toggle(client, lecture_ids[0], True)
    assert response.status_code == 403
    assert response.json()["detail"]["course_id"] == course["course_id"]
    assert run(db.enrollments.count_documents({})) == 0


def test_unknown_lecture_is_404(client, student, course) -> None:
    assert _toggle(client, "LEC_NOPE", True).status_code == 404
    assert client.get("/api/student/lectures/LEC_NOPE", headers=auth("USR_STUDENT")).status_code == 404


def test_stale_version_is_409(client, student, course, lecture_ids) -> None:
    _enroll(client, course["course_id"])
    assert _toggle(client, lecture_ids[0], True, expected_version=0).json()["version"] == 1

    stale = _toggle(client, lecture_ids[1], True, expected_version=0)
    assert stale.status_code == 409
    assert stale.json()["detail"]["version"] == 1

    assert _toggle(client, lecture_ids[1], True, expected_version=1).status_code == 200


def test_lecture_detail(client, student, course, lecture_ids) -> None:
    _enroll(client, course["course_id"])
    _toggle(client, lecture_ids[1], True)

    body = client.get(f"/api/student/lectures/{lecture_ids[1]}", headers=auth("USR_STUDENT")).json()
    assert body["lecture"]["title"] == "Variables"
    assert body["section"]["title"] == "Syntax"
    assert body["chapter"]["title"] == "Basics"
    assert body["course"]["id"] == course["course_id"]
    assert body["progress"]["is_completed"] is True
    assert body["progress"]["percentage"] == 50
    assert body["version"] == 1


def test_course_detail_and_public_catalogue(client, student, course) -> None:
    public = client.get("/api/courses/public").json()["data"]
    assert [c["course_id"] for c in public] == [course["course_id"]]
    assert "sections" not in public[0]

    detail = client.get(f"/api/courses/{course['course_id']}", headers=auth("USR_STUDENT")).json()
    assert detail["is_enrolled"] is False
    assert detail["progress"] is None

    _enroll(client, course["course_id"])
    detail = client.get(f"/api/courses/{course['course_id']}", headers=auth("USR_STUDENT")).json()
    assert detail["is_enrolled"] is True
    assert detail["progress"]["total_lectures"] == 2


# ==================== TIME AGO ====================

def test_format_time_ago_buckets() -> None:
    now = datetime(2024, 6, 1, 12, 0, 0)
    assert format_time_ago(None, now) == "Never"
    assert format_time_ago(now - timedelta(seconds=30), now) == "Just now"
    assert format_time_ago(now - timedelta(minutes=1), now) == "1 minute ago"
    assert format_time_ago(now - timedelta(minutes=5), now) == "5 minutes ago"
    assert format_time_ago(now - timedelta(hours=3), now) == "3 hours ago"
    assert format_time_ago(now - timedelta(days=1), now) == "1 day ago"
    assert format_time_ago(now - timedelta(days=15), now) == "2 weeks ago"
    assert format_time_ago(now - timedelta(days=28), now) == "1 month ago"
    assert format_time_ago(now - timedelta(days=29), now) == "1 month ago"
    assert format_time_ago(now - timedelta(days=65), now) == "2 months ago"
    assert format_time_ago(now - timedelta(days=362), now) == "1 year ago"
    assert format_time_ago(now - timedelta(days=800), now) == "2 years ago"
