"""
Bearer token verification and user context dependencies
"""

import hashlib
import logging
from datetime import datetime

from fastapi import Depends, Header, HTTPException
from jose import JWTError, jwt
from motor.motor_asyncio import AsyncIOMotorDatabase

from gurukul import config
from gurukul.database import get_db

logger = logging.getLogger(__name__)

ROLES = ("student", "admin", "instructor")


def hash_password(password: str) -> str:
    """Hash password for storage"""
    return hashlib.sha256(password.encode()).hexdigest()


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")


def verify_bearer_token(authorization: str = Header(None)) -> dict:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Authentication required")

    token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise HTTPException(status_code=401, detail="Authentication required")
    return decode_token(token)


class UserContext:
    """
    Authenticated user as loaded from the users collection
    """
    def __init__(self, user: dict):
        self.user_id = user["user_id"]
        self.name = user.get("name", "")
        self.email = user.get("email")
        self.role = user.get("role", "student")
        self.profile = user

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


async def get_current_user(
    payload: dict = Depends(verify_bearer_token),
    db: AsyncIOMotorDatabase = Depends(get_db)
) -> UserContext:
    """
    Dependency: resolves the token subject to a user record

    Raises:
        401: token has no subject or the user no longer exists
        403: account is blocked
    """
    user_id = payload.get("sub") or payload.get("user_id")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token: missing user id")

    user = await db.users.find_one({"user_id": user_id})
    if not user:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    if user.get("is_blocked", False):
        raise HTTPException(status_code=403, detail="Account is blocked")

    await db.users.update_one(
        {"user_id": user_id},
        {"$set": {"last_activity_at": datetime.utcnow()}}
    )
    return UserContext(user)


async def get_current_admin(user: UserContext = Depends(get_current_user)) -> UserContext:
    """Dependency to protect admin routes"""
    if not user.is_admin:
        logger.warning("Non-admin %s attempted admin access", user.user_id)
        raise HTTPException(status_code=403, detail="Forbidden: Only admins can access this resource")
    return user
