from datetime import datetime
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from learnsy.progress.rules import (
    progress_percentage, update_streak, record_study_day, avg_study_time,
    empty_streak, evaluate_achievements, ACHIEVEMENTS
)


# ==================== PROGRESS DOCUMENTS ====================

async def course_total_lessons(db: AsyncIOMotorDatabase, course: dict, session=None) -> int:
    """
    Lesson count used for percentages: published materials when the course
    has any, otherwise the lessons declared in its modules.
    """
    materials = await db.materials.count_documents(
        {"course_id": course["course_id"], "is_published": True}, session=session
    )
    return materials or course.get("total_lessons") or 0


def new_progress(student_id: str, course_id: str, enrollment_id: Optional[str], total_lessons: int) -> dict:
    now = datetime.utcnow()
    return {
        "student_id": student_id,
        "course_id": course_id,
        "enrollment_id": enrollment_id,
        "lessons_completed": 0,
        "total_lessons": total_lessons,
        "quizzes_taken": 0,
        "quizzes_passed": 0,
        "avg_study_time": 0,
        "total_study_time": 0,
        "study_calendar": [],
        "achievements": [],
        "last_accessed": now,
        "streak": empty_streak(),
        "created_at": now,
        "updated_at": now,
    }


async def ensure_progress(
    db: AsyncIOMotorDatabase,
    student_id: str,
    course_id: str,
    enrollment_id: Optional[str] = None,
    total_lessons: int = 0,
    session=None
) -> dict:
    """Fetch the progress record for a student/course, creating it if missing"""
    set_fields = {"last_accessed": datetime.utcnow()}
    if enrollment_id:
        set_fields["enrollment_id"] = enrollment_id

    defaults = {
        k: v for k, v in new_progress(student_id, course_id, enrollment_id, total_lessons).items()
        if k not in set_fields and k not in ("student_id", "course_id")
    }

    await db.progress.update_one(
        {"student_id": student_id, "course_id": course_id},
        {"$setOnInsert": defaults, "$set": set_fields},
        upsert=True,
        session=session
    )
    return await db.progress.find_one(
        {"student_id": student_id, "course_id": course_id}, session=session
    )


async def get_progress(db: AsyncIOMotorDatabase, student_id: str, course_id: str) -> Optional[dict]:
    return await db.progress.find_one({"student_id": student_id, "course_id": course_id})


async def apply_study_activity(
    db: AsyncIOMotorDatabase,
    progress: dict,
    minutes: int = 0,
    lessons_added: int = 0,
    lessons_completed: Optional[int] = None,
    quiz_passed: Optional[bool] = None,
    total_lessons: Optional[int] = None,
    now: Optional[datetime] = None,
    session=None
) -> dict:
    """
    Record study activity on a progress document.

    Args:
        minutes: Study minutes to add (also merged into today's calendar entry)
        lessons_added: Lessons to add to the completed count
        lessons_completed: Absolute lesson count; the larger value wins
        quiz_passed: None when no quiz was taken
        total_lessons: Refreshed lesson total, if known

    Returns:
        The updated progress document
    """
    now = now or datetime.utcnow()
    current_lessons = progress.get("lessons_completed") or 0
    new_lessons = current_lessons + (lessons_added or 0)
    if lessons_completed is not None:
        new_lessons = max(new_lessons, lessons_completed)

    updates = {
        "lessons_completed": new_lessons,
        "total_study_time": (progress.get("total_study_time") or 0) + (minutes or 0),
        "last_accessed": now,
        "updated_at": now,
    }
    if total_lessons is not None:
        updates["total_lessons"] = total_lessons

    if quiz_passed is not None:
        updates["quizzes_taken"] = (progress.get("quizzes_taken") or 0) + 1
        updates["quizzes_passed"] = (progress.get("quizzes_passed") or 0) + (1 if quiz_passed else 0)

    if minutes or lessons_added or new_lessons > current_lessons:
        calendar = record_study_day(
            progress.get("study_calendar"), now, minutes, new_lessons - current_lessons
        )
        updates["study_calendar"] = calendar
        updates["avg_study_time"] = avg_study_time(calendar)
        updates["streak"] = update_streak(progress.get("streak"), now)

    await db.progress.update_one(
        {"student_id": progress["student_id"], "course_id": progress["course_id"]},
        {"$set": updates},
        session=session
    )
    progress.update(updates)
    return progress


async def sync_enrollment(
    db: AsyncIOMotorDatabase,
    student_id: str,
    course_id: str,
    lessons_completed: int,
    total_lessons: int,
    minutes: int = 0,
    session=None
) -> int:
    """Mirror progress onto the enrollment snapshot; returns the percentage"""
    now = datetime.utcnow()
    percentage = progress_percentage(lessons_completed, total_lessons)

    update = {
        "$set": {
            "progress.lessons_completed": lessons_completed,
            "progress.total_lessons": total_lessons,
            "progress.percentage": percentage,
            "progress.last_accessed": now,
        }
    }
    if minutes:
        update["$inc"] = {"study_time.total_minutes": minutes}
        update["$push"] = {"study_time.sessions": {"date": now, "minutes": minutes}}

    await db.enrollments.update_one(
        {"student_id": student_id, "course_id": course_id, "status": {"$ne": "dropped"}},
        update,
        session=session
    )
    if percentage >= 100:
        await db.enrollments.update_one(
            {"student_id": student_id, "course_id": course_id, "status": "active"},
            {"$set": {"status": "completed", "completed_at": now}},
            session=session
        )
    else:
        # falling below 100% reopens a completed enrollment
        await db.enrollments.update_one(
            {"student_id": student_id, "course_id": course_id, "status": "completed"},
            {"$set": {"status": "active"}, "$unset": {"completed_at": ""}},
            session=session
        )
    return percentage


# ==================== ACHIEVEMENTS ====================

async def refresh_achievements(db: AsyncIOMotorDatabase, student_id: str) -> dict:
    """
    Persist newly met achievements on the student's progress records so
    ``unlocked_at`` stays fixed. Returns unlocked and locked lists.
    """
    records = await db.progress.find({"student_id": student_id}).to_list(length=None)

    unlocked_at = {}
    for record in records:
        for a in record.get("achievements") or []:
            when = a.get("unlocked_at")
            if a["type"] not in unlocked_at or (when and when < unlocked_at[a["type"]]):
                unlocked_at[a["type"]] = when

    now = datetime.utcnow()
    for kind in evaluate_achievements(records):
        if kind in unlocked_at:
            continue
        unlocked_at[kind] = now
        definition = next(a for a in ACHIEVEMENTS if a["type"] == kind)
        owner = next(r for r in records if _record_meets(kind, r))
        await db.progress.update_one(
            {"student_id": student_id, "course_id": owner["course_id"]},
            {"$push": {"achievements": {
                "type": kind,
                "title": definition["title"],
                "description": definition["description"],
                "unlocked_at": now,
            }}}
        )

    unlocked, locked = [], []
    for definition in ACHIEVEMENTS:
        if definition["type"] in unlocked_at:
            unlocked.append({**definition, "unlocked": True,
                             "unlocked_at": unlocked_at[definition["type"]]})
        else:
            locked.append({**definition, "unlocked": False})

    return {
        "unlocked": unlocked,
        "locked": locked,
        "unlocked_count": len(unlocked),
        "total_count": len(ACHIEVEMENTS),
    }


def _record_meets(kind: str, record: dict) -> bool:
    return kind in evaluate_achievements([record])
