import logging
from datetime import datetime
from typing import List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase

from gurukul.courses.models import CourseLevel, EnrollmentStatus
from gurukul.courses.tree import LectureLocation, find_lecture_in_course, iter_lectures, lecture_ids
from gurukul.database import generate_id, serialize_doc, serialize_many

logger = logging.getLogger(__name__)

# ==================== CONTENT IDS ====================

def assign_content_ids(sections: List[dict]) -> List[dict]:
    """Give every section, chapter and lecture a stable id (existing ids are kept)"""
    for section in sections:
        section["section_id"] = section.get("section_id") or generate_id("SEC")
        for chapter in section.setdefault("chapters", []):
            chapter["chapter_id"] = chapter.get("chapter_id") or generate_id("CHP")
            for lecture in chapter.setdefault("lectures", []):
                lecture["lecture_id"] = lecture.get("lecture_id") or generate_id("LEC")
    return sections

# ==================== LECTURE INDEX ====================

async def check_lecture_ids(db: AsyncIOMotorDatabase, sections: List[dict], course_id: Optional[str] = None):
    """
    Reject supplied lecture ids that repeat inside the tree or are indexed to
    another course. Raises ValueError.
    """
    supplied = [lecture["lecture_id"] for _, _, lecture in iter_lectures({"sections": sections})
                if lecture.get("lecture_id")]

    repeated = sorted({lecture_id for lecture_id in supplied if supplied.count(lecture_id) > 1})
    if repeated:
        raise ValueError(f"Duplicate lecture ids in course: {', '.join(repeated)}")
    if not supplied:
        return

    query = {"lecture_id": {"$in": supplied}}
    if course_id:
        query["course_id"] = {"$ne": course_id}
    taken = await db.lecture_index.find(query).to_list(length=None)
    if taken:
        owned = sorted(entry["lecture_id"] for entry in taken)
        raise ValueError(f"Lecture ids already belong to another course: {', '.join(owned)}")

async def index_course_lectures(db: AsyncIOMotorDatabase, course: dict):
    """Point every lecture of the course at it, dropping entries for removed lectures"""
    course_id = course["course_id"]
    ids = lecture_ids(course)

    await db.lecture_index.delete_many({"course_id": course_id, "lecture_id": {"$nin": ids}})
    for lecture_id in ids:
        await db.lecture_index.update_one(
            {"lecture_id": lecture_id},
            {"$set": {"lecture_id": lecture_id, "course_id": course_id}},
            upsert=True
        )

async def rebuild_lecture_index(db: AsyncIOMotorDatabase) -> int:
    """Repopulate the lecture index from every course. Returns the number of courses indexed."""
    await db.lecture_index.delete_many({})
    count = 0
    async for course in db.courses.find({}):
        await index_course_lectures(db, course)
        count += 1
    logger.info("Lecture index rebuilt for %d courses", count)
    return count

async def find_course_containing_lecture(
    db: AsyncIOMotorDatabase,
    lecture_id: str
) -> Optional[Tuple[dict, LectureLocation]]:
    """Resolve a lecture id to (course, location) through the lecture index"""
    entry = await db.lecture_index.find_one({"lecture_id": lecture_id})
    if not entry:
        return None

    course = await get_course(db, entry["course_id"])
    if not course:
        return None

    location = find_lecture_in_course(course, lecture_id)
    if not location:
        logger.warning("Stale lecture index entry %s -> %s", lecture_id, entry["course_id"])
        return None
    return course, location

# ==================== COURSE CRUD ====================

async def create_course(db: AsyncIOMotorDatabase, course_data: dict, creator_id: str) -> dict:
    """Insert a course and index its lectures. Raises ValueError on clashing lecture ids."""
    await check_lecture_ids(db, course_data.get("sections") or [])
    course_id = generate_id("COURSE")
    now = datetime.utcnow()

    course = {
        "course_id": course_id,
        "title": course_data["title"],
        "description": course_data["description"],
        "thumbnail_url": course_data.get("thumbnail_url"),
        "instructor": course_data.get("instructor"),
        "duration": course_data.get("duration", "8 weeks"),
        "level": CourseLevel(course_data.get("level") or "Beginner").value,
        "is_public": course_data.get("is_public", False),
        "sections": assign_content_ids(course_data.get("sections") or []),
        "enrolled_count": 0,
        "created_by": creator_id,
        "created_at": now,
        "updated_at": now
    }

    await db.courses.insert_one(course)
    await index_course_lectures(db, course)
    logger.info("Course %s created by %s", course_id, creator_id)
    return serialize_doc(course)

async def get_course(db: AsyncIOMotorDatabase, course_id: str) -> Optional[dict]:
    """Get course by ID"""
    return serialize_doc(await db.courses.find_one({"course_id": course_id}))

async def get_courses_by_ids(db: AsyncIOMotorDatabase, course_ids: List[str]) -> List[dict]:
    cursor = db.courses.find({"course_id": {"$in": course_ids}})
    return serialize_many(await cursor.to_list(length=None))

async def list_courses(db: AsyncIOMotorDatabase, public_only: bool = False) -> List[dict]:
    query = {"is_public": True} if public_only else {}
    cursor = db.courses.find(query).sort("created_at", -1)
    return serialize_many(await cursor.to_list(length=None))

async def update_course(db: AsyncIOMotorDatabase, course_id: str, updates: dict) -> Optional[dict]:
    """
    Apply updates and re-index lectures when the content tree changed.
    Raises ValueError on clashing lecture ids.
    """
    course = await get_course(db, course_id)
    if not course:
        return None

    if "sections" in updates:
        await check_lecture_ids(db, updates["sections"] or [], course_id)
        updates["sections"] = assign_content_ids(updates["sections"] or [])
    updates["updated_at"] = datetime.utcnow()

    await db.courses.update_one({"course_id": course_id}, {"$set": updates})
    course.update(updates)

    if "sections" in updates:
        await index_course_lectures(db, course)
    return course

async def delete_course(db: AsyncIOMotorDatabase, course_id: str) -> bool:
    """Delete course. Enrollments are left in place."""
    result = await db.courses.delete_one({"course_id": course_id})
    if result.deleted_count == 0:
        return False
    await db.lecture_index.delete_many({"course_id": course_id})
    logger.info("Course %s deleted", course_id)
    return True

# ==================== ENROLLMENT CRUD ====================

async def get_enrollment(db: AsyncIOMotorDatabase, user_id: str, course_id: str) -> Optional[dict]:
    return serialize_doc(await db.enrollments.find_one({"user_id": user_id, "course_id": course_id}))

async def get_user_enrollments(db: AsyncIOMotorDatabase, user_id: str) -> List[dict]:
    cursor = db.enrollments.find({"user_id": user_id}).sort("enrolled_at", -1)
    return serialize_many(await cursor.to_list(length=None))

async def create_enrollment(db: AsyncIOMotorDatabase, user_id: str, course_id: str) -> dict:
    now = datetime.utcnow()
    enrollment = {
        "enrollment_id": generate_id("ENR"),
        "user_id": user_id,
        "course_id": course_id,
        "enrolled_at": now,
        "last_accessed_at": now,
        "progress": 0,
        "completed_lectures": [],
        "status": EnrollmentStatus.ACTIVE.value,
        "version": 0
    }
    await db.enrollments.insert_one(enrollment)
    await db.courses.update_one({"course_id": course_id}, {"$inc": {"enrolled_count": 1}})
    return serialize_doc(enrollment)

async def touch_enrollment(db: AsyncIOMotorDatabase, enrollment_id: str):
    """Bump last accessed time"""
    await db.enrollments.update_one(
        {"enrollment_id": enrollment_id},
        {"$set": {"last_accessed_at": datetime.utcnow()}}
    )

async def save_enrollment_progress(
    db: AsyncIOMotorDatabase,
    enrollment_id: str,
    expected_version: int,
    updates: dict
) -> bool:
    """
    Compare-and-set write of progress fields.
    Returns False when another write changed the enrollment first.
    """
    result = await db.enrollments.update_one(
        {"enrollment_id": enrollment_id, "version": expected_version},
        {"$set": updates, "$inc": {"version": 1}}
    )
    return result.modified_count > 0
