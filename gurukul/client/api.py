"""
HTTP client for the student endpoints of the Gurukul API
"""

import logging
from typing import List, Optional

import httpx

logger = logging.getLogger(__name__)


class GurukulAPIError(Exception):
    """Non-2xx answer from the API"""

    def __init__(self, status_code: int, detail):
        super().__init__(f"{status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


class GurukulClient:
    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 10.0,
        http_client: Optional[httpx.Client] = None
    ):
        self._http = http_client or httpx.Client(base_url=base_url, timeout=timeout)
        if http_client is not None:
            self._http.base_url = base_url
        self._headers = {"Authorization": f"Bearer {token}"}

    def close(self):
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def _request(self, method: str, path: str, **kwargs) -> dict:
        response = self._http.request(method, path, headers=self._headers, **kwargs)
        if response.status_code >= 400:
            try:
                detail = response.json().get("detail")
            except ValueError:
                detail = response.text
            raise GurukulAPIError(response.status_code, detail)
        return response.json()

    # ==================== COURSES ====================

    def enrolled_courses(self) -> List[dict]:
        return self._request("GET", "/api/student/courses/enrolled")["courses"]

    def enroll(self, course_id: str) -> str:
        return self._request("POST", "/api/student/courses/enrolled", json={"course_id": course_id})["enrollment_id"]

    def get_lecture(self, lecture_id: str) -> dict:
        return self._request("GET", f"/api/student/lectures/{lecture_id}")

    def set_lecture_completion(self, lecture_id: str, completed: bool, expected_version: Optional[int] = None) -> dict:
        body = {"completed": completed}
        if expected_version is not None:
            body["expected_version"] = expected_version
        return self._request("PATCH", f"/api/student/lectures/{lecture_id}", json=body)

    # ==================== NOTIFICATIONS ====================

    def notifications(self, limit: int = 10, page: int = 1, unread: bool = False) -> dict:
        params = {"limit": limit, "page": page, "unread": str(unread).lower()}
        return self._request("GET", "/api/student/notifications", params=params)

    def mark_notification_read(self, notification_id: str):
        self._request("PATCH", "/api/student/notifications", json={"id": notification_id})

    def delete_notification(self, notification_id: str):
        self._request("DELETE", f"/api/student/notifications/{notification_id}")

    def notification_state(self) -> dict:
        return self._request("GET", "/api/student/notifications/state")

    def save_notification_state(self, read_ids: List[str], deleted_ids: List[str]) -> dict:
        return self._request(
            "POST", "/api/student/notifications/state",
            json={"read_ids": read_ids, "deleted_ids": deleted_ids}
        )

    # ==================== PROFILE ====================

    def profile(self) -> dict:
        return self._request("GET", "/api/user/profile")["user"]

    def update_profile(self, **fields) -> dict:
        return self._request("PATCH", "/api/user/profile", json=fields)["user"]
