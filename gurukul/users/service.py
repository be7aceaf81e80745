"""
Self-service profile for the signed-in user
"""

import logging
from datetime import datetime

from fastapi import HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase

logger = logging.getLogger(__name__)

PROFILE_PROJECTION = {"_id": 0, "password_hash": 0}


async def get_profile(db: AsyncIOMotorDatabase, user_id: str) -> dict:
    user = await db.users.find_one({"user_id": user_id}, PROFILE_PROJECTION)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    user.setdefault("bio", "")
    return user


async def update_profile(db: AsyncIOMotorDatabase, user_id: str, updates: dict) -> dict:
    """Only name and bio are writable here; role and block state stay with admins"""
    updates = {key: value for key, value in updates.items() if key in ("name", "bio") and value is not None}
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")
    updates["updated_at"] = datetime.utcnow()

    result = await db.users.update_one({"user_id": user_id}, {"$set": updates})
    if result.matched_count == 0:
        raise HTTPException(status_code=404, detail="User not found")

    logger.info("Profile of %s updated: %s", user_id, ", ".join(sorted(updates)))
    return await get_profile(db, user_id)
