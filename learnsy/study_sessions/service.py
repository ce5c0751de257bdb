from datetime import datetime
from enum import Enum
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from learnsy.core.database import generate_id, transaction
from learnsy.enrollments.service import find_enrollment
from learnsy.progress.service import ensure_progress, apply_study_activity, sync_enrollment


class Activity(str, Enum):
    BROWSING = "browsing"
    WATCHING = "watching"
    READING = "reading"
    QUIZ = "quiz"
    ASSIGNMENT = "assignment"
    DISCUSSION = "discussion"


# ==================== SESSION METRICS ====================

def elapsed_minutes(start: datetime, end: datetime) -> int:
    """Whole minutes between two timestamps (never negative)"""
    return max(int((end - start).total_seconds() // 60), 0)


def focus_percentage(active_minutes: int, duration: int) -> int:
    if not duration:
        return 0
    return round(active_minutes / duration * 100)


def end_metrics(start: datetime, end: datetime, idle_minutes: int = 0) -> dict:
    duration = elapsed_minutes(start, end)
    active = max(duration - (idle_minutes or 0), 0)
    return {
        "duration": duration,
        "total_active_time": active,
        "focus_time": focus_percentage(active, duration),
    }


def activity_update(activity: Optional[str], data: Optional[dict], now: datetime) -> dict:
    """Build the Mongo update for an activity ping on an open session"""
    data = data or {}
    update = {"$set": {"last_activity_time": now}, "$inc": {}}

    if activity:
        update["$set"]["activity"] = activity
    if data.get("lesson_completed"):
        update["$inc"]["lessons_completed"] = 1
    if data.get("quiz_result") is not None:
        update["$inc"]["quiz_attempts"] = 1
    if data.get("idle_minutes"):
        update["$inc"]["idle_time"] = data["idle_minutes"]
    if data.get("page_views"):
        update["$inc"]["session_data.page_views"] = data["page_views"]
    if data.get("clicks"):
        update["$inc"]["session_data.clicks"] = data["clicks"]
    if data.get("scroll_depth") is not None:
        update["$max"] = {"session_data.scroll_depth": data["scroll_depth"]}
    if data.get("material_id"):
        update["$addToSet"] = {"materials_accessed": data["material_id"]}

    if not update["$inc"]:
        del update["$inc"]
    return update


# ==================== PERSISTENCE ====================

async def get_active_session(db: AsyncIOMotorDatabase, student_id: str) -> Optional[dict]:
    return await db.study_sessions.find_one({"student_id": student_id, "is_active": True})


async def start_session(
    db: AsyncIOMotorDatabase,
    student_id: str,
    course_id: Optional[str],
    activity: str,
    device_info: Optional[dict] = None,
    enrollment_id: Optional[str] = None
) -> dict:
    enrollment = None
    if course_id:
        enrollment = await find_enrollment(db, student_id, course_id)
    if enrollment:
        enrollment_id = enrollment["enrollment_id"]

    now = datetime.utcnow()
    session = {
        "session_id": generate_id("SES"),
        "student_id": student_id,
        "course_id": course_id,
        "enrollment_id": enrollment_id,
        "start_time": now,
        "end_time": None,
        "duration": 0,
        "activity": activity,
        "is_active": True,
        "last_activity_time": now,
        "total_active_time": 0,
        "idle_time": 0,
        "lessons_completed": 0,
        "materials_accessed": [],
        "quiz_attempts": 0,
        "session_data": {"page_views": 0, "clicks": 0, "scroll_depth": 0, "focus_time": 0},
        "device_info": device_info or {},
    }
    await db.study_sessions.insert_one(session)
    return session


async def end_session(db: AsyncIOMotorDatabase, session: dict, now: Optional[datetime] = None) -> dict:
    """
    Close a session and credit its minutes and lessons to course progress.
    Both writes share one transaction.
    """
    now = now or datetime.utcnow()
    metrics = end_metrics(session["start_time"], now, session.get("idle_time") or 0)

    async with transaction(db) as tx:
        await db.study_sessions.update_one(
            {"session_id": session["session_id"]},
            {"$set": {
                "is_active": False,
                "end_time": now,
                "duration": metrics["duration"],
                "total_active_time": metrics["total_active_time"],
                "session_data.focus_time": metrics["focus_time"],
            }},
            session=tx
        )

        course_id = session.get("course_id")
        if course_id and metrics["duration"] > 0:
            enrollment = await find_enrollment(db, session["student_id"], course_id)
            if enrollment:
                total_lessons = (enrollment.get("progress") or {}).get("total_lessons", 0)
                progress = await ensure_progress(
                    db, session["student_id"], course_id, enrollment["enrollment_id"],
                    total_lessons, session=tx
                )
                progress = await apply_study_activity(
                    db, progress,
                    minutes=metrics["duration"],
                    lessons_added=session.get("lessons_completed") or 0,
                    now=now,
                    session=tx
                )
                await sync_enrollment(
                    db, session["student_id"], course_id,
                    progress["lessons_completed"], progress.get("total_lessons") or total_lessons,
                    minutes=metrics["duration"], session=tx
                )

    session.update(metrics, is_active=False, end_time=now)
    return session


async def create_session_indexes(db: AsyncIOMotorDatabase):
    await db.study_sessions.create_index("session_id", unique=True)
    await db.study_sessions.create_index([("student_id", 1), ("is_active", 1)])
    await db.study_sessions.create_index([("student_id", 1), ("start_time", -1)])
    await db.study_sessions.create_index([("course_id", 1), ("start_time", -1)])
    print("✅ Study session indexes created")
