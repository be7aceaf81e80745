import logging
import re
from datetime import datetime
from typing import List, Optional

from fastapi import HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from gurukul.admin.models import UserRole
from gurukul.auth import UserContext, hash_password
from gurukul.database import clamp_pagination, generate_id, serialize_doc, serialize_many

logger = logging.getLogger(__name__)

# recipient type -> user filter used to count recipients
AUDIENCE_FILTERS = {
    "all": {},
    "students": {"role": "student"},
    "admins": {"role": "admin"},
    "instructors": {"role": "instructor"},
}

USER_PROJECTION = {"_id": 0, "password_hash": 0}


# ==================== USERS ====================

async def list_users(db: AsyncIOMotorDatabase, role: Optional[str] = None, search: Optional[str] = None) -> List[dict]:
    query = {}
    if role:
        query["role"] = role
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        query["$or"] = [{"name": pattern}, {"email": pattern}]

    cursor = db.users.find(query, USER_PROJECTION).sort("created_at", -1)
    return await cursor.to_list(length=None)


async def get_user(db: AsyncIOMotorDatabase, user_id: str) -> dict:
    user = await db.users.find_one({"user_id": user_id}, USER_PROJECTION)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


async def create_user(db: AsyncIOMotorDatabase, data: dict) -> dict:
    if await db.users.find_one({"email": data["email"]}):
        raise HTTPException(status_code=400, detail="User with this email already exists")

    now = datetime.utcnow()
    user = {
        "user_id": generate_id("USR"),
        "name": data["name"],
        "email": data["email"],
        "password_hash": hash_password(data["password"]),
        "role": UserRole(data.get("role") or "student").value,
        "is_blocked": False,
        "last_activity_at": now,
        "created_at": now,
        "updated_at": now
    }
    try:
        await db.users.insert_one(user)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="User with this email already exists")

    logger.info("User %s created with role %s", user["user_id"], user["role"])
    return await get_user(db, user["user_id"])


async def update_user(db: AsyncIOMotorDatabase, user_id: str, updates: dict) -> dict:
    updates = {key: value for key, value in updates.items() if value is not None}
    updates["updated_at"] = datetime.utcnow()

    result = await db.users.update_one({"user_id": user_id}, {"$set": updates})
    if result.matched_count == 0:
        raise HTTPException(status_code=404, detail="User not found")
    return await get_user(db, user_id)


async def delete_user(db: AsyncIOMotorDatabase, user_id: str):
    result = await db.users.delete_one({"user_id": user_id})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="User not found")
    logger.info("User %s deleted", user_id)


# ==================== ANNOUNCEMENTS ====================

async def send_announcement(db: AsyncIOMotorDatabase, admin: UserContext, data: dict) -> dict:
    """
    Store an announcement. Delivery happens when each recipient reads their
    notification feed.
    """
    recipient_type = data["recipient_type"]
    recipients = data.get("recipients") or []

    if recipient_type == "specific":
        recipient_count = await db.users.count_documents({"user_id": {"$in": recipients}})
    else:
        recipient_count = await db.users.count_documents(AUDIENCE_FILTERS[recipient_type])

    if recipient_count == 0:
        raise HTTPException(status_code=404, detail="No recipients found for the selected recipient type")

    now = datetime.utcnow()
    announcement = {
        "announcement_id": generate_id("ANN"),
        "subject": data["subject"],
        "message": data["message"],
        "recipient_type": recipient_type,
        "recipients": recipients if recipient_type == "specific" else [],
        "recipient_count": recipient_count,
        "sent_by": admin.user_id,
        "sent_by_name": admin.name or "Admin",
        "sent_at": now,
        "created_at": now
    }
    await db.announcements.insert_one(announcement)
    logger.info("Announcement %s sent to %s (%d recipients)",
                announcement["announcement_id"], recipient_type, recipient_count)
    return serialize_doc(announcement)


async def list_announcements(db: AsyncIOMotorDatabase, page: int = 1, limit: int = 10) -> dict:
    page, limit, skip = clamp_pagination(page, limit)
    cursor = db.announcements.find({}).sort("sent_at", -1).skip(skip).limit(limit)
    announcements = serialize_many(await cursor.to_list(length=limit))
    total = await db.announcements.count_documents({})
    return {
        "announcements": announcements,
        "pagination": {
            "total": total,
            "page": page,
            "limit": limit,
            "pages": -(-total // limit)
        }
    }


async def get_announcement(db: AsyncIOMotorDatabase, announcement_id: str) -> dict:
    announcement = await db.announcements.find_one({"announcement_id": announcement_id})
    if not announcement:
        raise HTTPException(status_code=404, detail="Announcement not found")
    return serialize_doc(announcement)


async def delete_announcement(db: AsyncIOMotorDatabase, announcement_id: str):
    """Remove the announcement. Notifications already delivered stay with their users."""
    result = await db.announcements.delete_one({"announcement_id": announcement_id})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Announcement not found")


# ==================== ACTIVITY LOG ====================

async def log_activity(
    db: AsyncIOMotorDatabase,
    user: UserContext,
    data: dict,
    ip: str = "unknown",
    user_agent: str = "unknown"
) -> dict:
    activity = {
        "activity_id": generate_id("ACT"),
        "user_id": user.user_id,
        "user_name": user.name,
        "action": data["action"],
        "page": data["page"],
        "details": data.get("details") or {},
        "ip": ip,
        "user_agent": user_agent,
        "created_at": datetime.utcnow()
    }
    await db.activities.insert_one(activity)
    return serialize_doc(activity)


async def list_activities(db: AsyncIOMotorDatabase, page: int = 1, limit: int = 10) -> dict:
    page, limit, skip = clamp_pagination(page, limit)
    cursor = db.activities.find({}).sort("created_at", -1).skip(skip).limit(limit)
    activities = serialize_many(await cursor.to_list(length=limit))
    total = await db.activities.count_documents({})
    return {
        "activities": activities,
        "pagination": {
            "total": total,
            "page": page,
            "limit": limit,
            "pages": -(-total // limit)
        }
    }
