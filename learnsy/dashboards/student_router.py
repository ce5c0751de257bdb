from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnsy.core.database import get_db
from learnsy.core.dependencies import UserContext, get_current_student
from learnsy.dashboards.stats import average_progress, ended_session_minutes
from learnsy.enrollments.service import ACTIVE_STATUSES
from learnsy.progress.time_formatter import study_time_breakdown, avg_study_time_per_day

router = APIRouter(prefix="/api/student-dashboard", tags=["Dashboards"])


@router.get("")
async def student_dashboard(
    user: UserContext = Depends(get_current_student),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    enrollments = await db.enrollments.find(
        {"student_id": user.user_id, "status": {"$in": ACTIVE_STATUSES}}
    ).to_list(length=500)
    course_ids = [e["course_id"] for e in enrollments]

    courses = await db.courses.find(
        {"course_id": {"$in": course_ids}},
        {"_id": 0, "course_id": 1, "title": 1, "description": 1, "category": 1,
         "level": 1, "thumbnail": 1, "faculty_id": 1}
    ).to_list(length=500)
    titles = {c["course_id"]: c.get("title") for c in courses}

    records = await db.progress.find(
        {"student_id": user.user_id, "course_id": {"$in": course_ids}}
    ).to_list(length=500)

    study_minutes = await ended_session_minutes(db, {"student_id": user.user_id})
    breakdown = study_time_breakdown(study_minutes)
    study_days = sum(len(r.get("study_calendar") or []) for r in records)

    completed_materials = await db.material_completions.count_documents(
        {"student_id": user.user_id, "course_id": {"$in": course_ids}, "completed": True}
    )
    completed_lessons = sum(r.get("lessons_completed") or 0 for r in records)

    recent = await db.study_sessions.find(
        {"student_id": user.user_id}
    ).sort("start_time", -1).limit(5).to_list(length=5)

    return {
        "success": True,
        "enrolled_courses": len(enrollments),
        "avg_progress": average_progress(records, divisor=len(enrollments)),
        "total_study_time": study_minutes,
        "study_time_hours": breakdown["total_hours"],
        "study_time_formatted": breakdown["formatted"],
        "avg_study_time_per_day": avg_study_time_per_day(study_minutes, study_days),
        "completed_materials": completed_materials,
        "completed_lessons": completed_lessons,
        "recent_activities": [
            {
                "id": s["session_id"],
                "type": "study",
                "content": f"Studied {titles.get(s.get('course_id')) or 'Unknown Course'}",
                "time": s["start_time"],
            }
            for s in recent
        ],
        "courses": courses,
        "study_time_breakdown": breakdown,
    }
