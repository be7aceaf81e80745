"""
Notification feed for a user

The feed combines per-user notification rows with recent announcements.
Announcements that reach a user for the first time are materialized into
notification rows while the feed is read, so reading the feed can write.
Deleted notifications are kept as tombstones: an announcement whose row
was deleted is never materialized again.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from fastapi import HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import BulkWriteError

from gurukul import config
from gurukul.database import clamp_pagination, generate_id, serialize_doc
from gurukul.notifications.models import NotificationType

logger = logging.getLogger(__name__)

# announcement recipient type that reaches each role, besides "all" and "specific"
ROLE_AUDIENCE = {
    "student": "students",
    "admin": "admins",
    "instructor": "instructors",
}

DUPLICATE_KEY = 11000


async def create_notification(
    db: AsyncIOMotorDatabase,
    user_id: str,
    title: str,
    message: str,
    notification_type: NotificationType = NotificationType.INFO,
    announcement_id: Optional[str] = None,
    sent_by: str = "System",
    created_at: Optional[datetime] = None
) -> dict:
    notification = {
        "notification_id": generate_id("NTF"),
        "user_id": user_id,
        "announcement_id": announcement_id,
        "title": title,
        "message": message,
        "type": NotificationType(notification_type).value,
        "read": False,
        "sent_by": sent_by,
        "created_at": created_at or datetime.utcnow(),
        "deleted_at": None
    }
    await db.notifications.insert_one(notification)
    return serialize_doc(notification)


# ==================== STATE ====================

async def get_notification_state(db: AsyncIOMotorDatabase, user_id: str) -> dict:
    state = await db.notification_states.find_one({"user_id": user_id})
    if not state:
        return {"read_ids": [], "deleted_ids": []}
    return {
        "read_ids": state.get("read_ids", []),
        "deleted_ids": state.get("deleted_ids", [])
    }


async def save_notification_state(
    db: AsyncIOMotorDatabase,
    user_id: str,
    read_ids: List[str],
    deleted_ids: List[str]
) -> dict:
    """Union the given id lists into the stored state"""
    update = {"$set": {"user_id": user_id, "updated_at": datetime.utcnow()}}
    additions = {}
    if read_ids:
        additions["read_ids"] = {"$each": list(read_ids)}
    if deleted_ids:
        additions["deleted_ids"] = {"$each": list(deleted_ids)}
    if additions:
        update["$addToSet"] = additions

    await db.notification_states.update_one({"user_id": user_id}, update, upsert=True)
    return await get_notification_state(db, user_id)


# ==================== FEED ====================

def announcement_query(user_id: str, role: str, since: datetime) -> dict:
    audiences = [
        {"recipient_type": "all"},
        {"recipient_type": "specific", "recipients": user_id}
    ]
    if role in ROLE_AUDIENCE:
        audiences.append({"recipient_type": ROLE_AUDIENCE[role]})
    return {"$or": audiences, "sent_at": {"$gt": since}}


async def materialize_announcements(
    db: AsyncIOMotorDatabase,
    user_id: str,
    role: str,
    now: Optional[datetime] = None
) -> List[dict]:
    """Create notification rows for recent announcements the user has no row for yet"""
    now = now or datetime.utcnow()
    since = now - timedelta(days=config.ANNOUNCEMENT_WINDOW_DAYS)

    cursor = db.announcements.find(announcement_query(user_id, role, since)).sort("sent_at", -1)
    announcements = await cursor.to_list(length=None)
    if not announcements:
        return []

    # tombstoned rows count as existing
    existing = await db.notifications.find(
        {
            "user_id": user_id,
            "announcement_id": {"$in": [a["announcement_id"] for a in announcements]}
        },
        {"announcement_id": 1}
    ).to_list(length=None)
    seen = {row["announcement_id"] for row in existing}

    rows = []
    for announcement in announcements:
        if announcement["announcement_id"] in seen:
            continue
        rows.append({
            "notification_id": generate_id("NTF"),
            "user_id": user_id,
            "announcement_id": announcement["announcement_id"],
            "title": announcement["subject"],
            "message": announcement["message"],
            "type": NotificationType.ANNOUNCEMENT.value,
            "read": False,
            "sent_by": announcement.get("sent_by_name") or "Admin",
            "created_at": announcement["sent_at"],
            "deleted_at": None
        })

    if rows:
        rows = await store_materialized(db, rows)
        logger.info("Materialized %d announcements for %s", len(rows), user_id)
    return [serialize_doc(row) for row in rows]


async def store_materialized(db: AsyncIOMotorDatabase, rows: List[dict]) -> List[dict]:
    """
    Insert announcement rows, skipping any another feed read already stored.
    Returns the rows that were inserted.
    """
    try:
        await db.notifications.insert_many(rows, ordered=False)
    except BulkWriteError as exc:
        errors = exc.details.get("writeErrors", [])
        if any(error.get("code") != DUPLICATE_KEY for error in errors):
            raise
        clashed = {error["index"] for error in errors}
        logger.info("Skipped %d announcement rows already materialized", len(clashed))
        return [row for i, row in enumerate(rows) if i not in clashed]
    return rows


def format_notification(row: dict, read_ids: Optional[set] = None) -> dict:
    read = row.get("read", False) or (read_ids is not None and row["notification_id"] in read_ids)
    return {
        "id": row["notification_id"],
        "title": row["title"],
        "message": row["message"],
        "type": row.get("type", "info"),
        "date": row["created_at"],
        "read": read,
        "sent_by": row.get("sent_by") or "System"
    }


async def get_notification_feed(
    db: AsyncIOMotorDatabase,
    user_id: str,
    role: str,
    limit: int = 10,
    page: int = 1,
    unread_only: bool = False
) -> dict:
    page, limit, skip = clamp_pagination(page, limit)

    await materialize_announcements(db, user_id, role)
    state = await get_notification_state(db, user_id)
    read_ids = set(state["read_ids"])

    query = {
        "user_id": user_id,
        "deleted_at": None,
        "notification_id": {"$nin": state["deleted_ids"]}
    }
    if unread_only:
        query["read"] = False
        query["notification_id"]["$nin"] = state["deleted_ids"] + list(read_ids)

    cursor = db.notifications.find(query).sort("created_at", -1).skip(skip).limit(limit)
    rows = await cursor.to_list(length=limit)

    notifications = [format_notification(row, read_ids) for row in rows]
    return {
        "notifications": notifications,
        "pagination": {
            "page": page,
            "limit": limit,
            "has_more": len(notifications) == limit
        }
    }


# ==================== MUTATIONS ====================

async def mark_notification_read(db: AsyncIOMotorDatabase, user_id: str, notification_id: str):
    result = await db.notifications.update_one(
        {"notification_id": notification_id, "user_id": user_id, "deleted_at": None},
        {"$set": {"read": True}}
    )
    if result.matched_count == 0:
        raise HTTPException(status_code=404, detail="Notification not found")
    await save_notification_state(db, user_id, [notification_id], [])


async def delete_notification(db: AsyncIOMotorDatabase, user_id: str, notification_id: str):
    result = await db.notifications.update_one(
        {"notification_id": notification_id, "user_id": user_id, "deleted_at": None},
        {"$set": {"deleted_at": datetime.utcnow()}}
    )
    if result.matched_count == 0:
        raise HTTPException(status_code=404, detail="Notification not found")
    await save_notification_state(db, user_id, [], [notification_id])
    logger.info("Notification %s deleted by %s", notification_id, user_id)
