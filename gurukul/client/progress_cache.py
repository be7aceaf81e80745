"""
Client-side lecture progress cache

Gives the dashboard an optimistic view of progress: a toggle updates the
in-memory course tree and the local store at once, the server call runs
afterwards and its failure never rolls the local change back.

Two maps are kept in the store, `courseProgress` (session) and
`permanentCourseProgress` (survives logout). Entries are keyed by course id
and stamped with `updated_at`; on merge the newer entry wins, and on
overlay a cached entry only beats the server when it is newer than the
server's last access time.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

import httpx

from gurukul.client.api import GurukulAPIError, GurukulClient
from gurukul.client.storage import LocalStore
from gurukul.courses.tree import calculate_progress, find_lecture_in_course, iter_lectures

logger = logging.getLogger(__name__)

SESSION_KEY = "courseProgress"
PERMANENT_KEY = "permanentCourseProgress"
LAST_SYNC_KEY = "lastAllStatesSyncTime"
LECTURE_KEY = "lecture_{}"

PROGRESS_SYNC_INTERVAL = 3.0

# answers worth retrying besides 5xx
RETRYABLE_STATUSES = (401, 408, 409, 429)


def to_timestamp(value) -> float:
    """Epoch seconds from an API datetime (naive values are UTC)"""
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


def completed_from_tree(course: dict) -> List[str]:
    return [lecture["lecture_id"] for _, _, lecture in iter_lectures(course) if lecture.get("is_completed")]


def apply_completion(course: dict, completed_ids) -> dict:
    """Flag lectures in the course tree and refresh the derived counters"""
    completed_ids = set(completed_ids)
    for _, _, lecture in iter_lectures(course):
        lecture["is_completed"] = lecture.get("lecture_id") in completed_ids
    snapshot = calculate_progress(course, completed_ids)
    course["completed_lecture_ids"] = completed_from_tree(course)
    course["completed_lectures"] = snapshot.completed
    course["total_lectures"] = snapshot.total
    course["progress"] = snapshot.percentage
    return course


class ProgressCache:
    def __init__(
        self,
        store: LocalStore,
        api: Optional[GurukulClient] = None,
        clock: Callable[[], float] = time.time,
        sync_interval: float = PROGRESS_SYNC_INTERVAL
    ):
        self.store = store
        self.api = api
        self.clock = clock
        self.sync_interval = sync_interval

    # ==================== MERGE ====================

    def merged_progress(self) -> Dict[str, dict]:
        """
        Merge session and permanent maps, newer entry wins (ties go to the
        permanent copy). The result is written back to both keys.
        """
        session = self.store.get(SESSION_KEY, {}) or {}
        permanent = self.store.get(PERMANENT_KEY, {}) or {}

        merged = dict(session)
        for course_id, entry in permanent.items():
            current = merged.get(course_id)
            if current is None or entry.get("updated_at", 0) >= current.get("updated_at", 0):
                merged[course_id] = entry

        self.store.set(SESSION_KEY, merged)
        self.store.set(PERMANENT_KEY, merged)
        return merged

    def _save_entry(self, course_id: str, entry: dict):
        for key in (SESSION_KEY, PERMANENT_KEY):
            progress = self.store.get(key, {}) or {}
            progress[course_id] = entry
            self.store.set(key, progress)

    def _drop_entries(self, course_ids: List[str]):
        if not course_ids:
            return
        for key in (SESSION_KEY, PERMANENT_KEY):
            progress = self.store.get(key, {}) or {}
            for course_id in course_ids:
                progress.pop(course_id, None)
            self.store.set(key, progress)

    # ==================== TOGGLE ====================

    def toggle_lecture(self, course: dict, lecture_id: str, completed: bool) -> dict:
        """
        Optimistically flip one lecture, persist locally, then tell the server.
        Returns the local progress entry for the course.
        """
        location = find_lecture_in_course(course, lecture_id)
        if location is None:
            raise KeyError(f"Lecture {lecture_id} is not part of course {course.get('id')}")

        course_id = course.get("id") or course.get("course_id")
        done = set(completed_from_tree(course)) | set(course.get("completed_lecture_ids") or [])
        if completed:
            done.add(lecture_id)
        else:
            done.discard(lecture_id)
        apply_completion(course, done)

        previous = self.merged_progress().get(course_id, {})
        lectures = dict(previous.get("lectures", {}))
        lectures[lecture_id] = completed
        # kept until the server acknowledges the change
        pending = dict(previous.get("pending", {}))
        pending[lecture_id] = completed
        entry = {
            "completed_lectures": course["completed_lectures"],
            "total_lectures": course["total_lectures"],
            "progress": course["progress"],
            "lectures": lectures,
            "pending": pending,
            "updated_at": self.clock()
        }
        self._save_entry(course_id, entry)

        if completed:
            self.store.set(LECTURE_KEY.format(lecture_id), {
                "title": location.lecture.get("title"),
                "course_title": course.get("title"),
                "timestamp": self.clock()
            })

        if self._push(lecture_id, completed):
            self._clear_pending(course_id, lecture_id, completed)
        return (self.store.get(PERMANENT_KEY, {}) or {}).get(course_id, entry)

    def _push(self, lecture_id: str, completed: bool) -> bool:
        """
        Send one completion to the server. Returns True once the server no
        longer needs it: accepted, or rejected for good (lecture gone, not
        enrolled). Transient failures return False and the change stays pending.
        """
        if self.api is None:
            return False
        try:
            self.api.set_lecture_completion(lecture_id, completed)
        except GurukulAPIError as exc:
            if exc.status_code < 500 and exc.status_code not in RETRYABLE_STATUSES:
                logger.warning("Server rejected completion of %s: %s", lecture_id, exc)
                return True
            logger.warning("Background progress sync failed for %s: %s", lecture_id, exc)
            return False
        except httpx.HTTPError as exc:
            logger.warning("Background progress sync failed for %s: %s", lecture_id, exc)
            return False
        self.mark_synced()
        return True

    def _clear_pending(self, course_id: str, lecture_id: str, completed: bool):
        for key in (SESSION_KEY, PERMANENT_KEY):
            progress = self.store.get(key, {}) or {}
            entry = progress.get(course_id)
            if not entry:
                continue
            pending = dict(entry.get("pending") or {})
            # a newer toggle of the same lecture is still unsent
            if pending.get(lecture_id) != completed:
                continue
            pending.pop(lecture_id)
            progress[course_id] = dict(entry, pending=pending)
            self.store.set(key, progress)

    def retry_pending(self) -> int:
        """Re-send unacknowledged completions. Returns how many are still pending."""
        remaining = 0
        for course_id, entry in self.merged_progress().items():
            for lecture_id, completed in list((entry.get("pending") or {}).items()):
                if self._push(lecture_id, completed):
                    self._clear_pending(course_id, lecture_id, completed)
                else:
                    remaining += 1
        return remaining

    # ==================== RECONCILE ====================

    def overlay(self, server_courses: List[dict]) -> List[dict]:
        """
        Apply cached progress onto a freshly fetched enrolled-course list.

        A cached entry is used only when it is newer than the server's last
        access for that course. Older entries are discarded, except for
        changes the server has not acknowledged yet, which always apply.
        """
        merged = self.merged_progress()
        stale = []

        for course in server_courses:
            course_id = course.get("id") or course.get("course_id")
            done = set(course.get("completed_lecture_ids") or [])
            entry = merged.get(course_id) or {}
            pending = entry.get("pending") or {}

            if entry and entry.get("updated_at", 0) > to_timestamp(course.get("last_accessed_at")):
                changes = entry.get("lectures", {})
            else:
                changes = pending
                if entry and not pending:
                    stale.append(course_id)

            for lecture_id, is_done in changes.items():
                if is_done:
                    done.add(lecture_id)
                else:
                    done.discard(lecture_id)

            apply_completion(course, done)

        self._drop_entries(stale)
        return server_courses

    def should_sync(self, now: Optional[float] = None) -> bool:
        now = self.clock() if now is None else now
        last = float(self.store.get(LAST_SYNC_KEY, 0) or 0)
        return now - last > self.sync_interval

    def mark_synced(self, now: Optional[float] = None):
        self.store.set(LAST_SYNC_KEY, self.clock() if now is None else now)

    def refresh(self) -> Optional[List[dict]]:
        """
        Fetch enrolled courses and overlay the cache, debounced.
        Returns None when skipped or when the server is unreachable.
        """
        if self.api is None or not self.should_sync():
            return None
        self.retry_pending()
        try:
            courses = self.api.enrolled_courses()
        except (GurukulAPIError, httpx.HTTPError) as exc:
            logger.warning("Progress refresh failed: %s", exc)
            return None
        self.mark_synced()
        return self.overlay(courses)
