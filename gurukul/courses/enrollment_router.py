"""
Student enrollment and lecture progress endpoints
"""

from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from gurukul.auth import UserContext, get_current_user
from gurukul.courses import enrollment_service as service
from gurukul.courses.models import EnrollmentCreate, LectureCompletionUpdate
from gurukul.database import get_db

router = APIRouter(prefix="/student", tags=["Student Courses"])


# ==================== ENROLLMENTS ====================

@router.get("/courses/enrolled")
async def get_enrolled_courses(
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    """All enrolled courses with completed/total lectures and progress"""
    return {"courses": await service.list_enrolled_courses(db, user)}


@router.post("/courses/enrolled", status_code=201)
async def enroll_in_course(
    body: EnrollmentCreate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    """
    Enroll in a course

    - 404 if the course does not exist
    - 400 with the existing enrollment_id if already enrolled
    """
    enrollment = await service.enroll_user(db, user, body.course_id)
    return {
        "success": True,
        "message": "Successfully enrolled in course",
        "enrollment_id": enrollment["enrollment_id"]
    }


# ==================== LECTURES ====================

@router.get("/lectures/{lecture_id}")
async def get_lecture(
    lecture_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    return await service.get_lecture_detail(db, user, lecture_id)


@router.patch("/lectures/{lecture_id}")
async def update_lecture_completion(
    lecture_id: str,
    body: LectureCompletionUpdate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    """
    Mark a lecture as completed or uncompleted

    - 404 if the lecture is not in any course
    - 403 if not enrolled in the owning course (nothing is created)
    - 409 if expected_version is stale
    """
    return await service.set_lecture_completion(
        db, user, lecture_id, body.completed, body.expected_version
    )
