"""
Client-side notification read/delete state

Read and deleted ids are tracked locally (session and permanent copies) so
the bell badge updates instantly. Merging is a plain set union: once an id
is read or deleted it stays that way, locally and on the server.
"""

import logging
import time
from typing import Callable, List, Optional, Set, Tuple

import httpx

from gurukul.client.api import GurukulAPIError, GurukulClient
from gurukul.client.storage import LocalStore

logger = logging.getLogger(__name__)

READ_KEY = "readNotifications"
DELETED_KEY = "deletedNotifications"
PERMANENT_READ_KEY = "permanentReadNotifications"
PERMANENT_DELETED_KEY = "permanentDeletedNotifications"
LAST_SYNC_KEY = "lastNotificationSyncTime"

NOTIFICATION_SYNC_INTERVAL = 5.0


class NotificationState:
    def __init__(
        self,
        store: LocalStore,
        api: Optional[GurukulClient] = None,
        clock: Callable[[], float] = time.time,
        sync_interval: float = NOTIFICATION_SYNC_INTERVAL
    ):
        self.store = store
        self.api = api
        self.clock = clock
        self.sync_interval = sync_interval

    def _ids(self, *keys) -> Set[str]:
        ids = set()
        for key in keys:
            ids.update(self.store.get(key, []) or [])
        return ids

    def _write(self, read_ids: Set[str], deleted_ids: Set[str]):
        read_list, deleted_list = sorted(read_ids), sorted(deleted_ids)
        self.store.set(READ_KEY, read_list)
        self.store.set(PERMANENT_READ_KEY, read_list)
        self.store.set(DELETED_KEY, deleted_list)
        self.store.set(PERMANENT_DELETED_KEY, deleted_list)

    def load(self) -> Tuple[Set[str], Set[str]]:
        """Union session and permanent copies and write the result back to all four keys"""
        read_ids = self._ids(READ_KEY, PERMANENT_READ_KEY)
        deleted_ids = self._ids(DELETED_KEY, PERMANENT_DELETED_KEY)
        self._write(read_ids, deleted_ids)
        return read_ids, deleted_ids

    # ==================== LOCAL CHANGES ====================

    def mark_read(self, notification_id: str):
        read_ids, deleted_ids = self.load()
        read_ids.add(notification_id)
        self._write(read_ids, deleted_ids)
        self._push_one("read", notification_id)

    def mark_deleted(self, notification_id: str):
        read_ids, deleted_ids = self.load()
        deleted_ids.add(notification_id)
        self._write(read_ids, deleted_ids)
        self._push_one("delete", notification_id)

    def _push_one(self, action: str, notification_id: str):
        if self.api is None:
            return
        try:
            if action == "read":
                self.api.mark_notification_read(notification_id)
            else:
                self.api.delete_notification(notification_id)
        except (GurukulAPIError, httpx.HTTPError) as exc:
            # kept locally, pushed again with the next state sync
            logger.warning("Notification %s %s failed: %s", action, notification_id, exc)

    def apply(self, notifications: List[dict]) -> List[dict]:
        """Drop deleted notifications and flag read ones"""
        read_ids, deleted_ids = self.load()
        visible = []
        for notification in notifications:
            if notification.get("id") in deleted_ids:
                continue
            if notification.get("id") in read_ids:
                notification = dict(notification, read=True)
            visible.append(notification)
        return visible

    def unread_count(self, notifications: List[dict]) -> int:
        return sum(1 for n in self.apply(notifications) if not n.get("read"))

    # ==================== SERVER SYNC ====================

    def should_sync(self, now: Optional[float] = None) -> bool:
        now = self.clock() if now is None else now
        last = float(self.store.get(LAST_SYNC_KEY, 0) or 0)
        return now - last > self.sync_interval

    def pull(self) -> Tuple[Set[str], Set[str]]:
        """Union the server's state into the local one"""
        read_ids, deleted_ids = self.load()
        if self.api is None:
            return read_ids, deleted_ids
        try:
            remote = self.api.notification_state()
        except (GurukulAPIError, httpx.HTTPError) as exc:
            logger.warning("Notification state pull failed: %s", exc)
            return read_ids, deleted_ids

        read_ids.update(remote.get("read_ids") or [])
        deleted_ids.update(remote.get("deleted_ids") or [])
        self._write(read_ids, deleted_ids)
        return read_ids, deleted_ids

    def sync(self, force: bool = False) -> bool:
        """
        Push the local state to the server and take back the union it returns.
        Debounced unless forced. Returns True when the server was reached.
        """
        if self.api is None or not (force or self.should_sync()):
            return False

        read_ids, deleted_ids = self.load()
        try:
            remote = self.api.save_notification_state(sorted(read_ids), sorted(deleted_ids))
        except (GurukulAPIError, httpx.HTTPError) as exc:
            logger.warning("Notification state sync failed: %s", exc)
            return False

        read_ids.update(remote.get("read_ids") or [])
        deleted_ids.update(remote.get("deleted_ids") or [])
        self._write(read_ids, deleted_ids)
        self.store.set(LAST_SYNC_KEY, self.clock())
        return True
