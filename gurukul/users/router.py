from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from gurukul.auth import UserContext, get_current_user
from gurukul.database import get_db
from gurukul.users import service
from gurukul.users.models import ProfileUpdate

router = APIRouter(prefix="/user", tags=["Profile"])


@router.get("/profile")
async def get_profile(
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    return {"user": await service.get_profile(db, user.user_id)}


@router.patch("/profile")
async def update_profile(
    body: ProfileUpdate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    """Change display name or bio"""
    profile = await service.update_profile(db, user.user_id, body.dict(exclude_unset=True))
    return {"message": "Profile updated successfully", "user": profile}
