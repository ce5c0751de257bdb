from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, Query
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, Field

from learnsy.core.database import get_db, serialize_doc, transaction
from learnsy.core.dependencies import UserContext, get_current_student
from learnsy.enrollments.service import find_enrollment, ACTIVE_STATUSES
from learnsy.progress.rules import progress_percentage
from learnsy.progress.service import (
    ensure_progress, apply_study_activity, sync_enrollment, refresh_achievements
)
from learnsy.progress.time_formatter import (
    study_time_breakdown, avg_study_time_per_day
)

router = APIRouter(prefix="/api/progress", tags=["Progress"])

TIMEFRAMES = {"week": 7, "month": 30, "year": 365}


class QuizResult(BaseModel):
    passed: bool = False


class CourseProgressUpdate(BaseModel):
    lessons_completed: Optional[int] = Field(None, ge=0)
    study_time_minutes: int = Field(0, ge=0)
    quiz_results: Optional[QuizResult] = None


async def _student_records(db: AsyncIOMotorDatabase, student_id: str):
    """Progress records for courses the student is still enrolled in, plus titles"""
    enrollments = await db.enrollments.find(
        {"student_id": student_id, "status": {"$in": ACTIVE_STATUSES}}
    ).to_list(length=500)
    course_ids = [e["course_id"] for e in enrollments]

    records = await db.progress.find(
        {"student_id": student_id, "course_id": {"$in": course_ids}}
    ).to_list(length=500)
    courses = await db.courses.find(
        {"course_id": {"$in": course_ids}}, {"_id": 0, "course_id": 1, "title": 1}
    ).to_list(length=500)
    titles = {c["course_id"]: c.get("title") for c in courses}
    return enrollments, records, titles


def _with_percentage(record: dict) -> dict:
    record = serialize_doc(record)
    record["progress_percentage"] = progress_percentage(
        record.get("lessons_completed"), record.get("total_lessons")
    )
    return record


# ==================== OVERVIEW ====================

@router.get("/student-overview")
async def student_overview(
    user: UserContext = Depends(get_current_student),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    enrollments, records, titles = await _student_records(db, user.user_id)

    total_minutes = sum(r.get("total_study_time") or 0 for r in records)
    completed = sum(r.get("lessons_completed") or 0 for r in records)
    percentages = [progress_percentage(r.get("lessons_completed"), r.get("total_lessons")) for r in records]
    avg_progress = round(sum(percentages) / len(percentages)) if percentages else 0

    streaks = [r.get("streak") or {} for r in records]
    current_streak = max((s.get("current") or 0 for s in streaks), default=0)
    longest_streak = max((s.get("longest") or 0 for s in streaks), default=0)

    study_days = sum(len(r.get("study_calendar") or []) for r in records)
    breakdown = study_time_breakdown(total_minutes)

    since = datetime.utcnow() - timedelta(days=7)
    recent_activity = []
    for record in records:
        recent = [e for e in record.get("study_calendar") or [] if e["date"] >= since]
        recent_activity.append({
            "course_id": record["course_id"],
            "course_title": titles.get(record["course_id"]),
            "study_minutes": sum(e.get("minutes") or 0 for e in recent),
            "lessons_completed": sum(e.get("lessons_completed") or 0 for e in recent),
        })

    return {
        "success": True,
        "enrolled_courses": len(enrollments),
        "avg_progress": min(avg_progress, 100),
        "study_time_minutes": total_minutes,
        "study_time_hours": breakdown["total_hours"],
        "study_time_formatted": breakdown["formatted"],
        "avg_study_time_per_day": avg_study_time_per_day(total_minutes, study_days),
        "completed_materials": completed,
        "current_streak": current_streak,
        "longest_streak": longest_streak,
        "recent_activity": recent_activity,
        "total_study_days": study_days,
        "study_time_breakdown": breakdown,
    }


# ==================== PER COURSE ====================

@router.get("/course/{course_id}")
async def course_progress(
    course_id: str,
    user: UserContext = Depends(get_current_student),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    enrollment = await find_enrollment(db, user.user_id, course_id)
    if not enrollment:
        raise HTTPException(status_code=404, detail="Not enrolled in this course")

    progress = await ensure_progress(
        db, user.user_id, course_id, enrollment["enrollment_id"],
        (enrollment.get("progress") or {}).get("total_lessons", 0)
    )
    course = await db.courses.find_one({"course_id": course_id})

    return {
        "success": True,
        "progress": _with_percentage(progress),
        "enrollment": serialize_doc(enrollment),
        "course": {"course_id": course_id, "title": course.get("title") if course else None},
    }


@router.put("/course/{course_id}")
async def update_course_progress(
    course_id: str,
    payload: CourseProgressUpdate,
    user: UserContext = Depends(get_current_student),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    enrollment = await find_enrollment(db, user.user_id, course_id)
    if not enrollment:
        raise HTTPException(status_code=404, detail="Not enrolled in this course")

    total_lessons = (enrollment.get("progress") or {}).get("total_lessons", 0)
    quiz_passed = payload.quiz_results.passed if payload.quiz_results else None

    async with transaction(db) as session:
        progress = await ensure_progress(
            db, user.user_id, course_id, enrollment["enrollment_id"], total_lessons, session=session
        )
        progress = await apply_study_activity(
            db, progress,
            minutes=payload.study_time_minutes,
            lessons_completed=payload.lessons_completed,
            quiz_passed=quiz_passed,
            session=session
        )
        await sync_enrollment(
            db, user.user_id, course_id,
            progress["lessons_completed"], progress.get("total_lessons") or total_lessons,
            minutes=payload.study_time_minutes, session=session
        )

    return {
        "success": True,
        "message": "Progress updated successfully",
        "progress": _with_percentage(progress),
    }


# ==================== ANALYTICS ====================

@router.get("/analytics")
async def study_analytics(
    timeframe: str = Query("week", pattern="^(week|month|year)$"),
    user: UserContext = Depends(get_current_student),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    _, records, titles = await _student_records(db, user.user_id)
    since = datetime.utcnow() - timedelta(days=TIMEFRAMES[timeframe])

    by_date = {}
    courses = []
    for record in records:
        entries = [e for e in record.get("study_calendar") or [] if e["date"] >= since]
        courses.append({
            "course_id": record["course_id"],
            "course_title": titles.get(record["course_id"]),
            "study_time": [e.get("minutes") or 0 for e in entries],
            "lessons_completed": [e.get("lessons_completed") or 0 for e in entries],
            "dates": [e["date"].strftime("%Y-%m-%d") for e in entries],
        })
        for entry in entries:
            key = entry["date"].strftime("%Y-%m-%d")
            day = by_date.setdefault(key, {"study_time": 0, "lessons_completed": 0})
            day["study_time"] += entry.get("minutes") or 0
            day["lessons_completed"] += entry.get("lessons_completed") or 0

    dates = sorted(by_date)
    study_time = [by_date[d]["study_time"] for d in dates]
    lessons = [by_date[d]["lessons_completed"] for d in dates]

    return {
        "success": True,
        "timeframe": timeframe,
        "data": {"study_time": study_time, "lessons_completed": lessons, "dates": dates},
        "courses": courses,
        "total_study_time": sum(study_time),
        "total_lessons_completed": sum(lessons),
    }


@router.get("/achievements")
async def achievements(
    user: UserContext = Depends(get_current_student),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    result = await refresh_achievements(db, user.user_id)
    return {"success": True, **result}
