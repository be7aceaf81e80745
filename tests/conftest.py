from __future__ import annotations

import asyncio
from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from mongomock_motor import AsyncMongoMockClient

from gurukul import config
from gurukul.courses.database import create_course
from gurukul.database import create_indexes, get_db
from gurukul.main import app


def run(coro):
    """Drive a service coroutine from a synchronous test"""
    return asyncio.run(coro)


def make_token(user_id: str, secret: str | None = None) -> str:
    return jwt.encode(
        {"sub": user_id, "iat": int(datetime.utcnow().timestamp())},
        secret or config.JWT_SECRET_KEY,
        algorithm=config.JWT_ALGORITHM,
    )


def auth(user_id: str) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


def two_section_course() -> dict:
    """Two sections, one chapter each, one lecture per chapter"""
    return {
        "title": "Python Basics",
        "description": "Start here",
        "instructor": "Asha",
        "is_public": True,
        "sections": [
            {
                "title": "Getting started",
                "chapters": [{"title": "Setup", "lectures": [{"title": "Install", "content": "pip"}]}],
            },
            {
                "title": "Syntax",
                "chapters": [{"title": "Basics", "lectures": [{"title": "Variables", "content": "x = 1"}]}],
            },
        ],
    }


@pytest.fixture()
def db():
    database = AsyncMongoMockClient()["gurukul_test"]
    run(create_indexes(database))
    return database


@pytest.fixture()
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def add_user(db):
    def _add(user_id: str = "USR_STUDENT", role: str = "student", **extra) -> dict:
        now = datetime.utcnow()
        user = {
            "user_id": user_id,
            "name": extra.pop("name", user_id.title()),
            "email": extra.pop("email", f"{user_id.lower()}@example.com"),
            "role": role,
            "is_blocked": False,
            "created_at": now,
            "last_activity_at": now,
            **extra,
        }
        run(db.users.insert_one(user))
        user.pop("_id", None)
        return user

    return _add


@pytest.fixture()
def student(add_user):
    return add_user("USR_STUDENT")


@pytest.fixture()
def admin(add_user):
    return add_user("USR_ADMIN", role="admin", name="Root Admin")


@pytest.fixture()
def course(db):
    return run(create_course(db, two_section_course(), "USR_ADMIN"))


@pytest.fixture()
def lecture_ids(course):
    return [
        lecture["lecture_id"]
        for section in course["sections"]
        for chapter in section["chapters"]
        for lecture in chapter["lectures"]
    ]
