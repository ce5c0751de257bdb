from datetime import datetime, timedelta

from fastapi import APIRouter, HTTPException, Depends, Query
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnsy.core.audit import get_audit_trail
from learnsy.core.database import get_db, serialize_doc
from learnsy.core.dependencies import UserContext, get_current_faculty
from learnsy.dashboards.stats import (
    average_progress, progress_distribution, record_percentage, ended_session_minutes, enrolled_progress
)
from learnsy.enrollments.service import ACTIVE_STATUSES

router = APIRouter(prefix="/api/faculty-dashboard", tags=["Dashboards"])

RECENT_DAYS = 7
RECENT_LIMIT = 10


async def _course_stats(db: AsyncIOMotorDatabase, course: dict) -> dict:
    course_id = course["course_id"]
    students = await db.enrollments.count_documents(
        {"course_id": course_id, "status": {"$in": ACTIVE_STATUSES}}
    )
    materials = await db.materials.count_documents({"course_id": course_id})
    records = await enrolled_progress(db, {"course_id": course_id})
    return {
        "students": students,
        "materials": materials,
        "avg_progress": average_progress(records),
    }


@router.get("")
async def faculty_overview(
    user: UserContext = Depends(get_current_faculty),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    courses = await db.courses.find({"faculty_id": user.user_id}).to_list(length=500)
    course_ids = [c["course_id"] for c in courses]
    titles = {c["course_id"]: c.get("title") for c in courses}

    total_students = 0
    total_materials = 0
    progress_sum = 0
    for course in courses:
        stats = await _course_stats(db, course)
        total_students += stats["students"]
        total_materials += stats["materials"]
        progress_sum += stats["avg_progress"]

    total_study_time = await ended_session_minutes(db, {"course_id": {"$in": course_ids}})

    since = datetime.utcnow() - timedelta(days=RECENT_DAYS)
    sessions = await db.study_sessions.find({
        "course_id": {"$in": course_ids},
        "start_time": {"$gte": since}
    }).sort("start_time", -1).limit(RECENT_LIMIT).to_list(length=RECENT_LIMIT)

    names = {}
    student_ids = list({s["student_id"] for s in sessions})
    if student_ids:
        users = await db.users.find(
            {"user_id": {"$in": student_ids}}, {"_id": 0, "user_id": 1, "name": 1}
        ).to_list(length=len(student_ids))
        names = {u["user_id"]: u.get("name") for u in users}

    return {
        "success": True,
        "overview": {
            "total_courses": len(courses),
            "total_students": total_students,
            "total_materials": total_materials,
            "avg_progress": min(round(progress_sum / len(courses)), 100) if courses else 0,
            "total_study_time": total_study_time,
            "recent_activities": [
                {
                    "id": s["session_id"],
                    "student_name": names.get(s["student_id"]) or "Unknown Student",
                    "course_name": titles.get(s.get("course_id")) or "Unknown Course",
                    "activity": s.get("activity"),
                    "duration": s.get("duration", 0),
                    "start_time": s["start_time"],
                }
                for s in sessions
            ],
        },
    }


@router.get("/courses")
async def faculty_courses(
    user: UserContext = Depends(get_current_faculty),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    courses = await db.courses.find({"faculty_id": user.user_id}).sort("created_at", -1).to_list(length=500)

    results = []
    for course in courses:
        stats = await _course_stats(db, course)
        course = serialize_doc(course)
        course["enrollment_count"] = stats["students"]
        course["material_count"] = stats["materials"]
        course["avg_progress"] = stats["avg_progress"]
        results.append(course)

    return {"success": True, "courses": results}


@router.get("/courses/{course_id}/analytics")
async def course_analytics(
    course_id: str,
    user: UserContext = Depends(get_current_faculty),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    course = await db.courses.find_one({"course_id": course_id, "faculty_id": user.user_id})
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")

    enrollments = await db.enrollments.find(
        {"course_id": course_id, "status": {"$in": ACTIVE_STATUSES}}
    ).sort("enrolled_at", -1).to_list(length=5000)
    completed = len([e for e in enrollments if e.get("status") == "completed"])

    records = await enrolled_progress(db, {"course_id": course_id})
    materials = await db.materials.find(
        {"course_id": course_id}, {"_id": 0, "material_id": 1, "title": 1, "type": 1,
                                   "views": 1, "completions": 1, "created_at": 1}
    ).sort("order", 1).to_list(length=500)

    total_study_time = await ended_session_minutes(db, {"course_id": course_id})

    recent = enrollments[:RECENT_LIMIT]
    students = await db.users.find(
        {"user_id": {"$in": [e["student_id"] for e in recent]}},
        {"_id": 0, "user_id": 1, "name": 1, "email": 1}
    ).to_list(length=RECENT_LIMIT)
    by_id = {s["user_id"]: s for s in students}

    return {
        "success": True,
        "analytics": {
            "course": {
                "course_id": course["course_id"],
                "title": course.get("title"),
                "description": course.get("description"),
                "created_at": course.get("created_at"),
            },
            "stats": {
                "total_enrollments": len(enrollments),
                "total_materials": len(materials),
                "completion_rate": round(completed / len(enrollments) * 100) if enrollments else 0,
                "avg_progress": average_progress(records),
                "total_study_time": total_study_time,
                "progress_distribution": progress_distribution(record_percentage(r) for r in records),
            },
            "recent_enrollments": [
                {
                    "enrollment_id": e["enrollment_id"],
                    "student": by_id.get(e["student_id"]),
                    "enrolled_at": e.get("enrolled_at"),
                    "status": e.get("status"),
                }
                for e in recent
            ],
            "materials": materials,
        },
    }


@router.get("/audit-log")
async def audit_log(
    limit: int = Query(50, ge=1, le=500),
    user: UserContext = Depends(get_current_faculty),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    logs = await get_audit_trail(db, actor_user_id=user.user_id, limit=limit)
    return {"success": True, "logs": logs, "count": len(logs)}
