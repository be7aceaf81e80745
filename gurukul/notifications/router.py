from fastapi import APIRouter, Depends, Query
from motor.motor_asyncio import AsyncIOMotorDatabase

from gurukul import config
from gurukul.auth import UserContext, get_current_user
from gurukul.database import get_db
from gurukul.notifications import service
from gurukul.notifications.models import NotificationRead, NotificationStateUpdate

router = APIRouter(prefix="/student/notifications", tags=["Notifications"])


@router.get("")
async def get_notifications(
    limit: int = Query(config.DEFAULT_PAGE_SIZE),
    page: int = Query(1),
    unread: bool = Query(False),
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    """
    Notification feed: own notifications plus announcements from the last 30 days
    """
    return await service.get_notification_feed(
        db, user.user_id, user.role, limit=limit, page=page, unread_only=unread
    )


@router.patch("")
async def mark_read(
    body: NotificationRead,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    await service.mark_notification_read(db, user.user_id, body.id)
    return {"success": True}


@router.get("/state")
async def get_state(
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    return await service.get_notification_state(db, user.user_id)


@router.post("/state")
async def save_state(
    body: NotificationStateUpdate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    state = await service.save_notification_state(db, user.user_id, body.read_ids, body.deleted_ids)
    return {"success": True, **state}


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    await service.delete_notification(db, user.user_id, notification_id)
    return {"success": True, "message": "Notification deleted successfully"}
