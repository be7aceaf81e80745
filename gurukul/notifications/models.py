from pydantic import BaseModel, Field
from typing import List
from enum import Enum


class NotificationType(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ANNOUNCEMENT = "announcement"


class NotificationRead(BaseModel):
    id: str = Field(..., min_length=1)


class NotificationStateUpdate(BaseModel):
    read_ids: List[str]
    deleted_ids: List[str]
