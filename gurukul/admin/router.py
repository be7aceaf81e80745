"""
Admin API
Dashboard stats, announcements, course and user management, activity log
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from gurukul import config
from gurukul.admin import service
from gurukul.admin.analytics import get_dashboard_stats, mock_dashboard_stats
from gurukul.admin.models import (
    ActivityCreate, AnnouncementCreate, Timeframe, UserCreate, UserRole, UserUpdate
)
from gurukul.auth import UserContext, get_current_admin
from gurukul.courses import database as course_db
from gurukul.courses.models import CourseCreate, CourseUpdate
from gurukul.database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


# ============================================================================
# DASHBOARD
# ============================================================================

@router.get("/stats")
async def dashboard_stats(
    timeframe: Timeframe = Query(Timeframe.DAYS_30),
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(get_current_admin)
):
    """Counters with growth against the previous period, plus chart series"""
    try:
        return await get_dashboard_stats(db, timeframe)
    except PyMongoError:
        if not config.MOCK_FALLBACK_ENABLED:
            raise
        logger.exception("Stats query failed, serving mock data")
        return mock_dashboard_stats()


# ============================================================================
# ANNOUNCEMENTS
# ============================================================================

@router.post("/announcements")
async def create_announcement(
    body: AnnouncementCreate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(get_current_admin)
):
    announcement = await service.send_announcement(db, admin, body.dict())
    return {
        "message": "Announcement sent successfully",
        "announcement_id": announcement["announcement_id"],
        "recipient_count": announcement["recipient_count"]
    }


@router.get("/announcements")
async def list_announcements(
    page: int = Query(1),
    limit: int = Query(10),
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(get_current_admin)
):
    return await service.list_announcements(db, page, limit)


@router.get("/announcements/{announcement_id}")
async def get_announcement(
    announcement_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(get_current_admin)
):
    return {"announcement": await service.get_announcement(db, announcement_id)}


@router.delete("/announcements/{announcement_id}")
async def delete_announcement(
    announcement_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(get_current_admin)
):
    await service.delete_announcement(db, announcement_id)
    return {"success": True}


# ============================================================================
# COURSES
# ============================================================================

@router.get("/courses")
async def list_courses(
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(get_current_admin)
):
    return {"courses": await course_db.list_courses(db)}


@router.post("/courses", status_code=201)
async def create_course(
    body: CourseCreate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(get_current_admin)
):
    try:
        course = await course_db.create_course(db, body.dict(), admin.user_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"course": course}


@router.get("/courses/{course_id}")
async def get_course(
    course_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(get_current_admin)
):
    course = await course_db.get_course(db, course_id)
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    return {"course": course}


@router.patch("/courses/{course_id}")
async def update_course(
    course_id: str,
    body: CourseUpdate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(get_current_admin)
):
    updates = body.dict(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")

    try:
        course = await course_db.update_course(db, course_id, updates)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    return {"course": course}


@router.delete("/courses/{course_id}")
async def delete_course(
    course_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(get_current_admin)
):
    if not await course_db.delete_course(db, course_id):
        raise HTTPException(status_code=404, detail="Course not found")
    return {"success": True, "message": "Course deleted successfully"}


# ============================================================================
# USERS
# ============================================================================

@router.get("/users")
async def list_users(
    role: Optional[UserRole] = Query(None),
    search: Optional[str] = Query(None),
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(get_current_admin)
):
    return {"users": await service.list_users(db, role.value if role else None, search)}


@router.post("/users", status_code=201)
async def create_user(
    body: UserCreate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(get_current_admin)
):
    return {"user": await service.create_user(db, body.dict())}


@router.get("/users/{user_id}")
async def get_user(
    user_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(get_current_admin)
):
    return {"user": await service.get_user(db, user_id)}


@router.patch("/users/{user_id}")
async def update_user(
    user_id: str,
    body: UserUpdate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(get_current_admin)
):
    if user_id == admin.user_id and body.is_blocked:
        raise HTTPException(status_code=400, detail="Admins cannot block themselves")
    return {"user": await service.update_user(db, user_id, body.dict(exclude_unset=True))}


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(get_current_admin)
):
    if user_id == admin.user_id:
        raise HTTPException(status_code=400, detail="Admins cannot delete themselves")
    await service.delete_user(db, user_id)
    return {"success": True, "message": "User deleted successfully"}


# ============================================================================
# ACTIVITY
# ============================================================================

@router.post("/activity", status_code=201)
async def log_activity(
    body: ActivityCreate,
    request: Request,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(get_current_admin)
):
    activity = await service.log_activity(
        db, admin, body.dict(),
        ip=request.headers.get("x-forwarded-for", "unknown"),
        user_agent=request.headers.get("user-agent", "unknown")
    )
    return {"success": True, "activity": activity}


@router.get("/activity")
async def list_activity(
    page: int = Query(1),
    limit: int = Query(10),
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(get_current_admin)
):
    return await service.list_activities(db, page, limit)
