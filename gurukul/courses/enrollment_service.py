"""
Enrollment and lecture progress operations for students
"""

import logging
from datetime import datetime
from typing import List, Optional, Tuple

from fastapi import HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase

from gurukul.auth import UserContext
from gurukul.courses import database as course_db
from gurukul.courses.models import EnrollmentStatus
from gurukul.courses.tree import LectureLocation, calculate_progress, derive_status
from gurukul.notifications.models import NotificationType
from gurukul.notifications.service import create_notification

logger = logging.getLogger(__name__)

_TIME_UNITS = (
    # (unit, size in the previous unit, upper bound before moving on)
    ("minute", 60, 60),
    ("hour", 60, 24),
    ("day", 24, 7),
)


def format_time_ago(then: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Human readable time since `then`, e.g. '3 hours ago'"""
    if then is None:
        return "Never"
    now = now or datetime.utcnow()
    seconds = int((now - then).total_seconds())
    if seconds < 60:
        return "Just now"

    value = seconds
    for unit, size, bound in _TIME_UNITS:
        value //= size
        if value < bound:
            return _plural(value, unit)

    days = seconds // 86400
    weeks = days // 7
    if weeks < 4:
        return _plural(weeks, "week")
    # 28 and 29 days fall past the last week
    months = max(1, days // 30)
    if months < 12:
        return _plural(months, "month")
    return _plural(max(1, days // 365), "year")


def _plural(value: int, unit: str) -> str:
    return f"{value} {unit if value == 1 else unit + 's'} ago"


def completed_ids(enrollment: Optional[dict]) -> List[str]:
    if not enrollment:
        return []
    return [entry["lecture_id"] for entry in enrollment.get("completed_lectures", [])]

# ==================== ENROLLMENT ====================

async def enroll_user(db: AsyncIOMotorDatabase, user: UserContext, course_id: str) -> dict:
    """
    Enroll user in course.
    An existing enrollment is never duplicated, the caller gets a 400 carrying its id.
    """
    course = await course_db.get_course(db, course_id)
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")

    existing = await course_db.get_enrollment(db, user.user_id, course_id)
    if existing:
        raise HTTPException(
            status_code=400,
            detail={
                "message": "Already enrolled in this course",
                "enrollment_id": existing["enrollment_id"]
            }
        )

    enrollment = await course_db.create_enrollment(db, user.user_id, course_id)
    logger.info("User %s enrolled in %s", user.user_id, course_id)

    await create_notification(
        db, user.user_id,
        title="Enrollment confirmed",
        message=f"You are now enrolled in {course['title']}",
        notification_type=NotificationType.SUCCESS
    )
    return enrollment


async def list_enrolled_courses(db: AsyncIOMotorDatabase, user: UserContext) -> List[dict]:
    """Enrolled courses with derived progress, most recent enrollment first"""
    enrollments = await course_db.get_user_enrollments(db, user.user_id)
    if not enrollments:
        return []

    courses = await course_db.get_courses_by_ids(db, [e["course_id"] for e in enrollments])
    by_id = {course["course_id"]: course for course in courses}

    now = datetime.utcnow()
    result = []
    for enrollment in enrollments:
        course = by_id.get(enrollment["course_id"])
        if not course:
            # course deleted after enrollment
            continue

        done = completed_ids(enrollment)
        snapshot = calculate_progress(course, done)
        result.append({
            "id": course["course_id"],
            "title": course["title"],
            "description": course.get("description", ""),
            "thumbnail_url": course.get("thumbnail_url"),
            "sections": course.get("sections", []),
            "instructor": course.get("instructor") or "Unknown Instructor",
            "progress": snapshot.percentage,
            "total_lectures": snapshot.total,
            "completed_lectures": snapshot.completed,
            "completed_lecture_ids": done,
            "last_accessed": format_time_ago(enrollment.get("last_accessed_at"), now),
            "last_accessed_at": enrollment.get("last_accessed_at"),
            "enrollment_id": enrollment["enrollment_id"],
            "status": enrollment.get("status", EnrollmentStatus.ACTIVE.value),
            "version": enrollment.get("version") or 0
        })
    return result

# ==================== LECTURES ====================

async def resolve_lecture_enrollment(
    db: AsyncIOMotorDatabase,
    user: UserContext,
    lecture_id: str
) -> Tuple[dict, LectureLocation, dict]:
    """
    Find the lecture's course and the caller's enrollment in it

    Raises:
        404: lecture is not part of any course
        403: caller is not enrolled in the owning course
    """
    found = await course_db.find_course_containing_lecture(db, lecture_id)
    if not found:
        raise HTTPException(status_code=404, detail="Lecture not found")
    course, location = found

    enrollment = await course_db.get_enrollment(db, user.user_id, course["course_id"])
    if not enrollment:
        logger.info("User %s not enrolled in %s (lecture %s)", user.user_id, course["course_id"], lecture_id)
        raise HTTPException(
            status_code=403,
            detail={
                "message": "Not enrolled in this course",
                "course_id": course["course_id"],
                "course_title": course["title"]
            }
        )
    return course, location, enrollment


async def get_lecture_detail(db: AsyncIOMotorDatabase, user: UserContext, lecture_id: str) -> dict:
    course, location, enrollment = await resolve_lecture_enrollment(db, user, lecture_id)
    await course_db.touch_enrollment(db, enrollment["enrollment_id"])

    done = completed_ids(enrollment)
    snapshot = calculate_progress(course, done)
    lecture = location.lecture

    return {
        "lecture": {
            "id": lecture["lecture_id"],
            "title": lecture.get("title"),
            "content": lecture.get("content", ""),
            "video_url": lecture.get("video_url"),
            "duration": lecture.get("duration")
        },
        "chapter": {"id": location.chapter.get("chapter_id"), "title": location.chapter.get("title")},
        "section": {"id": location.section.get("section_id"), "title": location.section.get("title")},
        "course": {"id": course["course_id"], "title": course["title"]},
        "progress": {"is_completed": lecture_id in done, **snapshot.as_dict()},
        "version": enrollment.get("version") or 0
    }


async def set_lecture_completion(
    db: AsyncIOMotorDatabase,
    user: UserContext,
    lecture_id: str,
    completed: bool,
    expected_version: Optional[int] = None
) -> dict:
    """
    Mark a lecture completed or not completed.

    Idempotent in both directions. Progress is recomputed from the resulting
    completed list, never incremented. The write is a compare-and-set on the
    enrollment version, a lost race answers 409.
    """
    course, _, enrollment = await resolve_lecture_enrollment(db, user, lecture_id)

    stored_version = enrollment.get("version")
    current_version = stored_version or 0
    if expected_version is not None and expected_version != current_version:
        raise HTTPException(
            status_code=409,
            detail={"message": "Enrollment was modified elsewhere", "version": current_version}
        )

    entries = list(enrollment.get("completed_lectures", []))
    already = any(entry["lecture_id"] == lecture_id for entry in entries)
    if completed and not already:
        entries.append({"lecture_id": lecture_id, "completed_at": datetime.utcnow()})
    elif not completed:
        entries = [entry for entry in entries if entry["lecture_id"] != lecture_id]

    snapshot = calculate_progress(course, [entry["lecture_id"] for entry in entries])
    previous_status = enrollment.get("status", EnrollmentStatus.ACTIVE.value)
    status = derive_status(snapshot.percentage, previous_status)

    saved = await course_db.save_enrollment_progress(
        db,
        enrollment["enrollment_id"],
        stored_version,
        {
            "completed_lectures": entries,
            "progress": snapshot.percentage,
            "status": status,
            "last_accessed_at": datetime.utcnow()
        }
    )
    if not saved:
        logger.warning("Version conflict on enrollment %s", enrollment["enrollment_id"])
        raise HTTPException(
            status_code=409,
            detail={"message": "Enrollment was modified elsewhere", "version": current_version}
        )

    if status == EnrollmentStatus.COMPLETED.value and previous_status != status:
        await create_notification(
            db, user.user_id,
            title="Course completed",
            message=f"Congratulations! You completed {course['title']}",
            notification_type=NotificationType.SUCCESS
        )

    return {
        "success": True,
        "progress": {"is_completed": completed, **snapshot.as_dict()},
        "status": status,
        "version": current_version + 1
    }
