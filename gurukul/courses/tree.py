"""
Course content tree helpers

A course document owns ordered sections, each section owns chapters and
each chapter owns lectures. Lecture ids are only unique inside the tree of
their course. Everything here is pure and works on plain dicts, so the API
handlers and the client-side progress cache share the same derivation.
"""

from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Tuple

from gurukul.courses.models import EnrollmentStatus


@dataclass
class LectureLocation:
    lecture: dict
    chapter: dict
    section: dict
    course_id: Optional[str]


@dataclass
class ProgressSnapshot:
    completed: int
    total: int
    percentage: int

    def as_dict(self) -> dict:
        return {
            "completed_lectures": self.completed,
            "total_lectures": self.total,
            "percentage": self.percentage,
        }


def iter_lectures(course: dict) -> Iterator[Tuple[dict, dict, dict]]:
    """Yield (section, chapter, lecture) in course order"""
    for section in course.get("sections") or []:
        for chapter in section.get("chapters") or []:
            for lecture in chapter.get("lectures") or []:
                yield section, chapter, lecture


def lecture_ids(course: dict) -> List[str]:
    return [lecture["lecture_id"] for _, _, lecture in iter_lectures(course) if lecture.get("lecture_id")]


def get_total_lectures_count(course: dict) -> int:
    return sum(1 for _ in iter_lectures(course))


def find_lecture_in_course(course: dict, lecture_id: str) -> Optional[LectureLocation]:
    """Linear scan, first structural match wins"""
    for section, chapter, lecture in iter_lectures(course):
        if lecture.get("lecture_id") == lecture_id:
            return LectureLocation(
                lecture=lecture,
                chapter=chapter,
                section=section,
                course_id=course.get("course_id"),
            )
    return None


def percentage(completed: int, total: int) -> int:
    if total <= 0:
        return 0
    # round-half-up, matching what the dashboard has always shown
    return int(completed * 100 / total + 0.5)


def calculate_progress(course: dict, completed_ids: Iterable[str]) -> ProgressSnapshot:
    """
    Derive completed/total/percentage for a course.

    Only ids that still exist in the tree are counted and each id counts
    once, so lectures removed from a course drop out of the numerator too.
    """
    ids = lecture_ids(course)
    present = set(ids) & set(completed_ids)
    total = get_total_lectures_count(course)
    completed = len(present)
    return ProgressSnapshot(completed=completed, total=total, percentage=percentage(completed, total))


def derive_status(progress: int, current_status: str) -> str:
    if progress >= 100:
        return EnrollmentStatus.COMPLETED.value
    if current_status == EnrollmentStatus.COMPLETED.value:
        return EnrollmentStatus.ACTIVE.value
    return current_status or EnrollmentStatus.ACTIVE.value
