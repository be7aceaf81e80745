import json

import httpx

from conftest import auth, run

from gurukul.client.api import GurukulClient


def _profile(client, user_id="USR_STUDENT"):
    return client.get("/api/user/profile", headers=auth(user_id))


def _update(client, body, user_id="USR_STUDENT"):
    return client.patch("/api/user/profile", json=body, headers=auth(user_id))


def test_profile_hides_password_hash(client, add_user) -> None:
    add_user("USR_STUDENT", name="Ravi", password_hash="secret-hash")

    response = _profile(client)
    assert response.status_code == 200
    user = response.json()["user"]
    assert user["name"] == "Ravi"
    assert user["bio"] == ""
    assert "password_hash" not in user
    assert "_id" not in user


def test_profile_needs_a_token(client) -> None:
    assert client.get("/api/user/profile").status_code == 401
    assert client.patch("/api/user/profile", json={"name": "x"}).status_code == 401


def test_update_name_and_bio(client, db, student) -> None:
    response = _update(client, {"name": "  Ravi Kumar ", "bio": "Learning Python"})
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Profile updated successfully"
    assert (body["user"]["name"], body["user"]["bio"]) == ("Ravi Kumar", "Learning Python")

    stored = run(db.users.find_one({"user_id": "USR_STUDENT"}))
    assert stored["bio"] == "Learning Python"
    assert stored["role"] == "student"

    # empty bio clears it, name stays
    cleared = _update(client, {"bio": ""}).json()["user"]
    assert (cleared["name"], cleared["bio"]) == ("Ravi Kumar", "")


def test_update_rejects_empty_and_invalid_bodies(client, student) -> None:
    assert _update(client, {}).status_code == 400
    assert _update(client, {"name": "   "}).status_code == 400
    assert _update(client, {"bio": "x" * 501}).status_code == 400


def test_role_cannot_be_changed_through_profile(client, db, student) -> None:
    _update(client, {"name": "Ravi", "role": "admin", "is_blocked": True})
    stored = run(db.users.find_one({"user_id": "USR_STUDENT"}))
    assert stored["role"] == "student"
    assert stored["is_blocked"] is False


def test_client_profile_calls() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, request.url.path, json.loads(request.content or b"null")))
        return httpx.Response(200, json={"user": {"user_id": "USR_1", "name": "Ravi", "bio": ""}})

    api = GurukulClient("http://gurukul.test", "token", http_client=httpx.Client(transport=httpx.MockTransport(handler)))
    assert api.profile()["name"] == "Ravi"
    api.update_profile(bio="")

    assert seen[0][:2] == ("GET", "/api/user/profile")
    assert seen[1] == ("PATCH", "/api/user/profile", {"bio": ""})
