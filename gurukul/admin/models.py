import re
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, validator

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class Timeframe(str, Enum):
    DAYS_30 = "30d"
    MONTHS_3 = "3m"
    MONTHS_6 = "6m"
    YEAR_1 = "1y"


class RecipientType(str, Enum):
    ALL = "all"
    STUDENTS = "students"
    ADMINS = "admins"
    INSTRUCTORS = "instructors"
    SPECIFIC = "specific"


class UserRole(str, Enum):
    STUDENT = "student"
    ADMIN = "admin"
    INSTRUCTOR = "instructor"


# ==================== ANNOUNCEMENTS ====================

class AnnouncementCreate(BaseModel):
    subject: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    recipient_type: RecipientType
    recipients: List[str] = []  # user ids, only for "specific"

    class Config:
        use_enum_values = True

    @validator("recipients", always=True)
    def require_recipients_for_specific(cls, v, values):
        if values.get("recipient_type") == RecipientType.SPECIFIC and not v:
            raise ValueError("At least one recipient is required for specific announcements")
        return v


# ==================== USERS ====================

class UserCreate(BaseModel):
    name: str = Field(..., min_length=1)
    email: str
    password: str = Field(..., min_length=6)
    role: UserRole = UserRole.STUDENT

    class Config:
        use_enum_values = True

    @validator("email")
    def validate_email(cls, v):
        v = v.strip().lower()
        if not EMAIL_RE.match(v):
            raise ValueError("Please provide a valid email")
        return v


class UserUpdate(BaseModel):
    name: Optional[str] = None
    role: Optional[UserRole] = None
    is_blocked: Optional[bool] = None

    class Config:
        use_enum_values = True


# ==================== ACTIVITY ====================

class ActivityCreate(BaseModel):
    action: str = Field(..., min_length=1)
    page: str = Field(..., min_length=1)
    details: Dict[str, Any] = {}
