"""
Admin dashboard statistics and chart series
"""

import calendar
import logging
import math
from collections import Counter
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase

from gurukul import config
from gurukul.admin.models import Timeframe
from gurukul.courses.tree import percentage

logger = logging.getLogger(__name__)

Bucket = Tuple[str, datetime, datetime]


# ==================== DATE HELPERS ====================

def subtract_months(dt: datetime, months: int) -> datetime:
    """Same day `months` earlier, clamped to the end of shorter months"""
    month_index = dt.year * 12 + (dt.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def start_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def period_start(timeframe: Timeframe, now: datetime) -> datetime:
    if timeframe == Timeframe.MONTHS_3:
        return subtract_months(now, 3)
    if timeframe == Timeframe.MONTHS_6:
        return subtract_months(now, 6)
    if timeframe == Timeframe.YEAR_1:
        return subtract_months(now, 12)
    return now - timedelta(days=30)


def chart_buckets(timeframe: Timeframe, now: datetime) -> List[Bucket]:
    """
    (label, start, end) buckets for the growth chart
      30d -> last 7 days by weekday
      3m  -> last 12 weeks
      6m  -> last 6 calendar months
      1y  -> last 12 calendar months
    """
    buckets = []
    if timeframe == Timeframe.DAYS_30:
        for i in range(6, -1, -1):
            start = start_of_day(now - timedelta(days=i))
            buckets.append((start.strftime("%a"), start, start + timedelta(days=1)))
    elif timeframe == Timeframe.MONTHS_3:
        for i in range(11, -1, -1):
            start = start_of_day(now - timedelta(days=i * 7))
            buckets.append((f"W{math.ceil(start.day / 7)}", start, start + timedelta(days=7)))
    else:
        months = 6 if timeframe == Timeframe.MONTHS_6 else 12
        first_of_month = start_of_day(now).replace(day=1)
        for i in range(months - 1, -1, -1):
            start = subtract_months(first_of_month, i)
            end = subtract_months(start, -1)
            buckets.append((start.strftime("%b"), start, end))
    return buckets


def growth(current: int, previous: int) -> int:
    if previous <= 0:
        return 100
    return round((current - previous) / previous * 100)


# ==================== QUERIES ====================

async def count_in_buckets(db_collection, buckets: List[Bucket], field: str, base_filter: dict) -> dict:
    labels, data = [], []
    for label, start, end in buckets:
        labels.append(label)
        data.append(await db_collection.count_documents({**base_filter, field: {"$gte": start, "$lt": end}}))
    return {"labels": labels, "data": data}


async def get_course_engagement(db: AsyncIOMotorDatabase, top: int = 5) -> dict:
    """Top courses by enrollment with their completion percentage"""
    enrollments = await db.enrollments.find({}, {"course_id": 1, "status": 1}).to_list(length=None)
    enrolled = Counter(e["course_id"] for e in enrollments)
    completed = Counter(e["course_id"] for e in enrollments if e.get("status") == "completed")

    top_ids = [course_id for course_id, _ in enrolled.most_common(top)]
    courses = await db.courses.find({"course_id": {"$in": top_ids}}, {"course_id": 1, "title": 1}).to_list(length=None)
    titles = {c["course_id"]: c["title"] for c in courses}

    labels, data = [], []
    for course_id in top_ids:
        if course_id not in titles:
            continue
        labels.append(titles[course_id])
        data.append(percentage(completed[course_id], enrolled[course_id]))
    return {"labels": labels, "data": data}


async def get_dashboard_stats(
    db: AsyncIOMotorDatabase,
    timeframe: Timeframe = Timeframe.DAYS_30,
    now: Optional[datetime] = None
) -> dict:
    now = now or datetime.utcnow()
    start = period_start(timeframe, now)
    previous_start = period_start(timeframe, start)

    students = {"role": "student"}

    total_users = await db.users.count_documents(students)
    new_users = await db.users.count_documents({**students, "created_at": {"$gte": start}})
    previous_users = await db.users.count_documents(
        {**students, "created_at": {"$gte": previous_start, "$lt": start}}
    )

    total_courses = await db.courses.count_documents({})
    new_courses = await db.courses.count_documents({"created_at": {"$gte": start}})
    previous_courses = await db.courses.count_documents(
        {"created_at": {"$gte": previous_start, "$lt": start}}
    )

    total_enrollments = await db.enrollments.count_documents({})
    new_enrollments = await db.enrollments.count_documents({"enrolled_at": {"$gte": start}})
    previous_enrollments = await db.enrollments.count_documents(
        {"enrolled_at": {"$gte": previous_start, "$lt": start}}
    )
    completed_enrollments = await db.enrollments.count_documents({"status": "completed"})

    active_since = now - timedelta(days=config.ACTIVE_STUDENT_WINDOW_DAYS)
    previous_active_since = active_since - timedelta(days=config.ACTIVE_STUDENT_WINDOW_DAYS)
    active_students = await db.users.count_documents(
        {**students, "last_activity_at": {"$gte": active_since}}
    )
    previous_active_students = await db.users.count_documents(
        {**students, "last_activity_at": {"$gte": previous_active_since, "$lt": active_since}}
    )

    return {
        "stats": {
            "total_users": total_users,
            "total_courses": total_courses,
            "total_enrollments": total_enrollments,
            "completion_rate": percentage(completed_enrollments, total_enrollments),
            "active_students": active_students,
            "user_growth": growth(new_users, previous_users),
            "course_growth": growth(new_courses, previous_courses),
            "enrollment_growth": growth(new_enrollments, previous_enrollments),
            "active_students_growth": growth(active_students, previous_active_students)
        },
        "charts": {
            "user_growth": await count_in_buckets(db.users, chart_buckets(timeframe, now), "created_at", students),
            "course_engagement": await get_course_engagement(db)
        }
    }


def mock_dashboard_stats() -> dict:
    """Sample data served when the database is unreachable and mock fallback is on"""
    return {
        "stats": {
            "total_users": 150,
            "total_courses": 12,
            "total_enrollments": 320,
            "completion_rate": 68,
            "active_students": 89,
            "user_growth": 15,
            "course_growth": 8,
            "enrollment_growth": 12,
            "active_students_growth": 5
        },
        "charts": {
            "user_growth": {
                "labels": ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"],
                "data": [10, 15, 18, 22, 25, 30, 35]
            },
            "course_engagement": {
                "labels": ["Web Development", "Data Science", "Mobile Dev", "Design", "AI/ML"],
                "data": [85, 70, 65, 55, 40]
            }
        },
        "is_mock": True
    }
