"""
MongoDB connection management and shared document helpers
"""

import logging
import secrets
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from gurukul import config

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Manages MongoDB connection lifecycle"""

    def __init__(self):
        self.client: Optional[AsyncIOMotorClient] = None
        self.db: Optional[AsyncIOMotorDatabase] = None

    def connect(self):
        """Initialize MongoDB connection"""
        if not config.MONGO_URL:
            raise RuntimeError("MONGO_URL environment variable required")

        self.client = AsyncIOMotorClient(config.MONGO_URL)
        self.db = self.client[config.MONGO_DB_NAME]
        logger.info("MongoDB connected (database=%s)", config.MONGO_DB_NAME)

    def disconnect(self):
        """Close MongoDB connection"""
        if self.client:
            self.client.close()
            self.client = None
            self.db = None
            logger.info("MongoDB disconnected")

    def get_database(self) -> AsyncIOMotorDatabase:
        """Get database instance for dependency injection"""
        if self.db is None:
            raise RuntimeError("Database not initialized. Call connect() first.")
        return self.db


# Global database manager
db_manager = DatabaseManager()


def get_db() -> AsyncIOMotorDatabase:
    """FastAPI dependency for database access"""
    return db_manager.get_database()


# ==================== HELPERS ====================

def generate_id(prefix: str) -> str:
    """Generate unique ID with prefix"""
    return f"{prefix}_{secrets.token_hex(8).upper()}"


def serialize_doc(doc: Optional[dict]) -> Optional[dict]:
    """Drop the Mongo ObjectId, every collection carries its own string id"""
    if doc is None:
        return None
    doc.pop("_id", None)
    return doc


def serialize_many(docs: List[dict]) -> List[dict]:
    return [serialize_doc(doc) for doc in docs]


def clamp_pagination(page: int, limit: int) -> tuple:
    """Normalize page/limit query values and return (page, limit, skip)"""
    page = max(page, 1)
    limit = min(max(limit, 1), config.MAX_PAGE_SIZE)
    return page, limit, (page - 1) * limit


# ==================== INDEXES ====================

async def create_indexes(db: AsyncIOMotorDatabase):
    """Create MongoDB indexes"""
    # Users
    await db.users.create_index("user_id", unique=True)
    await db.users.create_index("email", unique=True)
    await db.users.create_index([("role", 1), ("created_at", -1)])

    # Courses + lecture lookup
    await db.courses.create_index("course_id", unique=True)
    await db.courses.create_index([("is_public", 1), ("created_at", -1)])
    await db.lecture_index.create_index("lecture_id", unique=True)
    await db.lecture_index.create_index("course_id")

    # Enrollments
    await db.enrollments.create_index("enrollment_id", unique=True)
    await db.enrollments.create_index([("user_id", 1), ("course_id", 1)], unique=True)
    await db.enrollments.create_index("enrolled_at")

    # Notifications
    await db.notifications.create_index("notification_id", unique=True)
    await db.notifications.create_index([("user_id", 1), ("created_at", -1)])
    # one row per user and announcement, plain notifications carry no announcement id
    await db.notifications.create_index(
        [("user_id", 1), ("announcement_id", 1)],
        unique=True,
        partialFilterExpression={"announcement_id": {"$type": "string"}}
    )
    await db.notification_states.create_index("user_id", unique=True)

    # Announcements
    await db.announcements.create_index("announcement_id", unique=True)
    await db.announcements.create_index([("recipient_type", 1), ("sent_at", -1)])

    # Admin activity log
    await db.activities.create_index([("created_at", -1)])

    logger.info("Database indexes created")
