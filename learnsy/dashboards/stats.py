from typing import Iterable, List

from motor.motor_asyncio import AsyncIOMotorDatabase

from learnsy.enrollments.service import ACTIVE_STATUSES
from learnsy.progress.rules import progress_percentage

PROGRESS_BUCKETS = (
    ("0-25%", 25),
    ("26-50%", 50),
    ("51-75%", 75),
    ("76-100%", 100),
)


def record_percentage(record: dict) -> int:
    return progress_percentage(record.get("lessons_completed"), record.get("total_lessons"))


def average_progress(records: List[dict], divisor: int = None) -> int:
    """Mean completion percentage, capped at 100. ``divisor`` defaults to len(records)."""
    divisor = divisor if divisor is not None else len(records)
    if not divisor:
        return 0
    total = sum(record_percentage(r) for r in records)
    return min(round(total / divisor), 100)


def progress_distribution(percentages: Iterable[int]) -> dict:
    distribution = {label: 0 for label, _ in PROGRESS_BUCKETS}
    for value in percentages:
        for label, upper in PROGRESS_BUCKETS:
            if value <= upper:
                distribution[label] += 1
                break
    return distribution


async def ended_session_minutes(db: AsyncIOMotorDatabase, match: dict) -> int:
    """Sum of ``duration`` over finished study sessions matching ``match``"""
    result = await db.study_sessions.aggregate([
        {"$match": {**match, "is_active": False}},
        {"$group": {"_id": None, "total": {"$sum": "$duration"}}},
    ]).to_list(length=1)
    return result[0]["total"] if result else 0


async def enrolled_progress(db: AsyncIOMotorDatabase, match: dict) -> List[dict]:
    """
    Progress records for enrollments that are still active or completed.
    Records left behind by dropped enrollments are skipped.
    """
    enrollments = await db.enrollments.find(
        {**match, "status": {"$in": ACTIVE_STATUSES}}, {"_id": 0, "student_id": 1, "course_id": 1}
    ).to_list(length=None)
    if not enrollments:
        return []
    pairs = {(e["student_id"], e["course_id"]) for e in enrollments}

    records = await db.progress.find(
        {**match, "student_id": {"$in": list({s for s, _ in pairs})}},
        {"_id": 0, "student_id": 1, "course_id": 1, "lessons_completed": 1, "total_lessons": 1}
    ).to_list(length=None)
    return [r for r in records if (r["student_id"], r["course_id"]) in pairs]
