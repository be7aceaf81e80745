"""
Student-side client: API wrapper plus the local progress and notification caches
"""

from gurukul.client.api import GurukulAPIError, GurukulClient
from gurukul.client.notification_state import NotificationState
from gurukul.client.progress_cache import ProgressCache
from gurukul.client.storage import LocalStore

__all__ = ["GurukulAPIError", "GurukulClient", "LocalStore", "NotificationState", "ProgressCache"]
