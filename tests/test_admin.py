from conftest import auth, run, two_section_course


ADMIN = "USR_ADMIN"


def _lecture_ids(course: dict) -> list:
    return [
        lecture["lecture_id"]
        for section in course["sections"]
        for chapter in section["chapters"]
        for lecture in chapter["lectures"]
    ]


def _index(db) -> dict:
    rows = run(db.lecture_index.find({}).to_list(length=None))
    return {row["lecture_id"]: row["course_id"] for row in rows}


# ==================== ACCESS ====================

def test_students_cannot_reach_admin_routes(client, student) -> None:
    response = client.get("/api/admin/courses", headers=auth("USR_STUDENT"))
    assert response.status_code == 403
    assert response.json()["detail"] == "Forbidden: Only admins can access this resource"


def test_admin_routes_need_a_token(client) -> None:
    assert client.get("/api/admin/users").status_code == 401


# ==================== COURSES ====================

def test_course_lifecycle_keeps_lecture_index(client, db, admin) -> None:
    response = client.post("/api/admin/courses", json=two_section_course(), headers=auth(ADMIN))
    assert response.status_code == 201
    course = response.json()["course"]
    course_id = course["course_id"]
    first, second = _lecture_ids(course)

    assert course["level"] == "Beginner"
    assert all(s["section_id"].startswith("SEC_") for s in course["sections"])
    assert _index(db) == {first: course_id, second: course_id}

    # keep the first lecture, replace the second
    sections = course["sections"]
    sections[1]["chapters"][0]["lectures"] = [{"title": "Loops"}]
    updated = client.patch(
        f"/api/admin/courses/{course_id}", json={"sections": sections}, headers=auth(ADMIN)
    ).json()["course"]
    new_ids = _lecture_ids(updated)

    assert new_ids[0] == first
    assert second not in new_ids
    assert _index(db) == {lecture_id: course_id for lecture_id in new_ids}

    assert client.delete(f"/api/admin/courses/{course_id}", headers=auth(ADMIN)).status_code == 200
    assert _index(db) == {}
    assert client.get(f"/api/admin/courses/{course_id}", headers=auth(ADMIN)).status_code == 404


def test_course_update_needs_fields(client, admin, course) -> None:
    response = client.patch(f"/api/admin/courses/{course['course_id']}", json={}, headers=auth(ADMIN))
    assert response.status_code == 400


def test_course_create_validates_title(client, admin) -> None:
    payload = dict(two_section_course(), title="   ")
    assert client.post("/api/admin/courses", json=payload, headers=auth(ADMIN)).status_code == 400


def test_unknown_course_is_404(client, admin) -> None:
    headers = auth(ADMIN)
    assert client.patch("/api/admin/courses/COURSE_X", json={"title": "x"}, headers=headers).status_code == 404
    assert client.delete("/api/admin/courses/COURSE_X", headers=headers).status_code == 404


def test_lecture_id_of_another_course_is_rejected(client, db, admin, student, course, lecture_ids) -> None:
    client.post("/api/student/courses/enrolled", json={"course_id": course["course_id"]}, headers=auth("USR_STUDENT"))

    copied = two_section_course()
    copied["sections"][0]["chapters"][0]["lectures"][0]["lecture_id"] = lecture_ids[0]
    response = client.post("/api/admin/courses", json=copied, headers=auth(ADMIN))
    assert response.status_code == 400
    assert lecture_ids[0] in response.json()["detail"]

    other = client.post("/api/admin/courses", json=two_section_course(), headers=auth(ADMIN)).json()["course"]
    sections = other["sections"]
    sections[1]["chapters"][0]["lectures"][0]["lecture_id"] = lecture_ids[1]
    response = client.patch(
        f"/api/admin/courses/{other['course_id']}", json={"sections": sections}, headers=auth(ADMIN)
    )
    assert response.status_code == 400

    assert _index(db)[lecture_ids[0]] == course["course_id"]
    assert _index(db)[lecture_ids[1]] == course["course_id"]
    toggled = client.patch(
        f"/api/student/lectures/{lecture_ids[0]}", json={"completed": True}, headers=auth("USR_STUDENT")
    )
    assert toggled.status_code == 200


def test_duplicate_lecture_ids_in_one_tree_are_rejected(client, admin) -> None:
    payload = two_section_course()
    for section in payload["sections"]:
        section["chapters"][0]["lectures"][0]["lecture_id"] = "LEC_SAME"
    response = client.post("/api/admin/courses", json=payload, headers=auth(ADMIN))
    assert response.status_code == 400
    assert "LEC_SAME" in response.json()["detail"]


def test_course_update_may_keep_its_own_lecture_ids(client, db, admin, course, lecture_ids) -> None:
    sections = course["sections"]
    sections[0]["title"] = "Renamed"
    response = client.patch(
        f"/api/admin/courses/{course['course_id']}", json={"sections": sections}, headers=auth(ADMIN)
    )
    assert response.status_code == 200
    assert _lecture_ids(response.json()["course"]) == lecture_ids


# ==================== USERS ====================

def test_user_crud(client, db, admin) -> None:
    headers = auth(ADMIN)
    created = client.post(
        "/api/admin/users",
        json={"name": "Meera", "email": "Meera@Example.com", "password": "secret1", "role": "instructor"},
        headers=headers,
    )
    assert created.status_code == 201
    user = created.json()["user"]
    assert user["email"] == "meera@example.com"
    assert user["role"] == "instructor"
    assert "password_hash" not in user

    duplicate = client.post(
        "/api/admin/users",
        json={"name": "Other", "email": "meera@example.com", "password": "secret1"},
        headers=headers,
    )
    assert duplicate.status_code == 400

    found = client.get("/api/admin/users", params={"search": "MEER"}, headers=headers).json()["users"]
    assert [u["user_id"] for u in found] == [user["user_id"]]
    instructors = client.get("/api/admin/users", params={"role": "instructor"}, headers=headers).json()["users"]
    assert len(instructors) == 1

    blocked = client.patch(f"/api/admin/users/{user['user_id']}", json={"is_blocked": True}, headers=headers)
    assert blocked.json()["user"]["is_blocked"] is True

    assert client.delete(f"/api/admin/users/{user['user_id']}", headers=headers).status_code == 200
    assert client.get(f"/api/admin/users/{user['user_id']}", headers=headers).status_code == 404


def test_user_create_rejects_bad_email_and_short_password(client, admin) -> None:
    headers = auth(ADMIN)
    bad_email = {"name": "x", "email": "not-an-email", "password": "secret1"}
    short_password = {"name": "x", "email": "x@example.com", "password": "123"}
    assert client.post("/api/admin/users", json=bad_email, headers=headers).status_code == 400
    assert client.post("/api/admin/users", json=short_password, headers=headers).status_code == 400


def test_admin_cannot_block_or_delete_self(client, admin) -> None:
    headers = auth(ADMIN)
    assert client.patch(f"/api/admin/users/{ADMIN}", json={"is_blocked": True}, headers=headers).status_code == 400
    assert client.delete(f"/api/admin/users/{ADMIN}", headers=headers).status_code == 400


# ==================== ANNOUNCEMENTS ====================

def test_send_announcement_to_students(client, db, admin, student) -> None:
    response = client.post(
        "/api/admin/announcements",
        json={"subject": "Exam", "message": "Friday", "recipient_type": "students"},
        headers=auth(ADMIN),
    )
    assert response.status_code == 200
    assert response.json()["recipient_count"] == 1

    feed = client.get("/api/student/notifications", headers=auth("USR_STUDENT")).json()["notifications"]
    assert [n["title"] for n in feed] == ["Exam"]

    listing = client.get("/api/admin/announcements", headers=auth(ADMIN)).json()
    assert listing["pagination"]["total"] == 1
    assert listing["announcements"][0]["sent_by_name"] == "Root Admin"


def test_specific_announcement_needs_recipients(client, admin) -> None:
    response = client.post(
        "/api/admin/announcements",
        json={"subject": "Hi", "message": "there", "recipient_type": "specific"},
        headers=auth(ADMIN),
    )
    assert response.status_code == 400


def test_announcement_without_recipients_is_404(client, admin) -> None:
    response = client.post(
        "/api/admin/announcements",
        json={"subject": "Hi", "message": "there", "recipient_type": "instructors"},
        headers=auth(ADMIN),
    )
    assert response.status_code == 404


def test_deleting_announcement_keeps_delivered_rows(client, db, admin, student) -> None:
    announcement_id = client.post(
        "/api/admin/announcements",
        json={"subject": "Exam", "message": "Friday", "recipient_type": "all"},
        headers=auth(ADMIN),
    ).json()["announcement_id"]
    client.get("/api/student/notifications", headers=auth("USR_STUDENT"))

    assert client.delete(f"/api/admin/announcements/{announcement_id}", headers=auth(ADMIN)).status_code == 200
    assert client.get(f"/api/admin/announcements/{announcement_id}", headers=auth(ADMIN)).status_code == 404

    feed = client.get("/api/student/notifications", headers=auth("USR_STUDENT")).json()["notifications"]
    assert [n["title"] for n in feed] == ["Exam"]


# ==================== ACTIVITY ====================

def test_activity_log(client, admin) -> None:
    headers = dict(auth(ADMIN), **{"x-forwarded-for": "10.0.0.1"})
    response = client.post(
        "/api/admin/activity", json={"action": "view", "page": "dashboard"}, headers=headers
    )
    assert response.status_code == 201
    assert response.json()["activity"]["ip"] == "10.0.0.1"

    listing = client.get("/api/admin/activity", headers=auth(ADMIN)).json()
    assert listing["pagination"]["total"] == 1
    assert listing["activities"][0]["user_id"] == ADMIN
