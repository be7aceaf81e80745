from fastapi import APIRouter, Depends, HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase

from gurukul.auth import UserContext, get_current_user
from gurukul.courses import database as course_db
from gurukul.courses.enrollment_service import completed_ids
from gurukul.courses.tree import calculate_progress
from gurukul.database import get_db

router = APIRouter(prefix="/courses", tags=["Courses"])

PUBLIC_FIELDS = ("course_id", "title", "description", "instructor", "duration", "level", "thumbnail_url")


@router.get("/public")
async def get_public_courses(db: AsyncIOMotorDatabase = Depends(get_db)):
    """Course catalogue for the landing page, no auth"""
    courses = await course_db.list_courses(db, public_only=True)
    return {"data": [{field: course.get(field) for field in PUBLIC_FIELDS} for course in courses]}


@router.get("/{course_id}")
async def get_course_detail(
    course_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    """Full course tree plus the caller's enrollment state"""
    course = await course_db.get_course(db, course_id)
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")

    enrollment = await course_db.get_enrollment(db, user.user_id, course_id)
    snapshot = calculate_progress(course, completed_ids(enrollment))
    return {
        "course": course,
        "is_enrolled": enrollment is not None,
        "progress": snapshot.as_dict() if enrollment else None
    }
