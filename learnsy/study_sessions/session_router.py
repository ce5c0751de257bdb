from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Depends, Query
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, Field

from learnsy.core.database import get_db, serialize_doc, serialize_many
from learnsy.core.dependencies import UserContext, get_current_student
from learnsy.progress.time_formatter import format_study_time
from learnsy.study_sessions.service import (
    Activity, get_active_session, start_session, end_session,
    activity_update, elapsed_minutes
)

router = APIRouter(prefix="/api/study-sessions", tags=["Study Sessions"])


class SessionStart(BaseModel):
    course_id: Optional[str] = None
    enrollment_id: Optional[str] = None
    activity: Activity = Activity.BROWSING
    device_info: Dict[str, Any] = {}


class AdditionalData(BaseModel):
    lesson_completed: bool = False
    material_id: Optional[str] = None
    quiz_result: Optional[Dict[str, Any]] = None
    idle_minutes: int = Field(0, ge=0)
    page_views: int = Field(0, ge=0)
    clicks: int = Field(0, ge=0)
    scroll_depth: Optional[int] = Field(None, ge=0, le=100)


class SessionUpdate(BaseModel):
    activity: Optional[Activity] = None
    additional_data: Optional[AdditionalData] = None


async def _open_session(db: AsyncIOMotorDatabase, session_id: str, student_id: str) -> dict:
    session = await db.study_sessions.find_one({
        "session_id": session_id,
        "student_id": student_id,
        "is_active": True
    })
    if not session:
        raise HTTPException(status_code=404, detail="Active study session not found")
    return session


# ==================== LIFECYCLE ====================

@router.post("/start")
async def start(
    payload: SessionStart,
    user: UserContext = Depends(get_current_student),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    if await get_active_session(db, user.user_id):
        raise HTTPException(status_code=400, detail="You already have an active study session")

    session = await start_session(
        db, user.user_id, payload.course_id, payload.activity.value,
        payload.device_info, payload.enrollment_id
    )
    return {
        "success": True,
        "message": "Study session started",
        "session": {
            "session_id": session["session_id"],
            "start_time": session["start_time"],
            "activity": session["activity"],
            "course_id": session["course_id"],
        },
    }


@router.put("/{session_id}/update")
async def update(
    session_id: str,
    payload: SessionUpdate,
    user: UserContext = Depends(get_current_student),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await _open_session(db, session_id, user.user_id)

    now = datetime.utcnow()
    data = payload.additional_data.dict() if payload.additional_data else None
    activity = payload.activity.value if payload.activity else None
    await db.study_sessions.update_one(
        {"session_id": session_id}, activity_update(activity, data, now)
    )

    session = await db.study_sessions.find_one({"session_id": session_id})
    return {
        "success": True,
        "message": "Study session updated",
        "session": {
            "session_id": session_id,
            "activity": session["activity"],
            "last_activity_time": session["last_activity_time"],
            "lessons_completed": session.get("lessons_completed", 0),
            "current_duration": elapsed_minutes(session["start_time"], now),
        },
    }


@router.put("/{session_id}/end")
async def end(
    session_id: str,
    user: UserContext = Depends(get_current_student),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    session = await _open_session(db, session_id, user.user_id)
    session = await end_session(db, session)

    return {
        "success": True,
        "message": "Study session ended",
        "session": {
            "session_id": session_id,
            "duration": session["duration"],
            "total_active_time": session["total_active_time"],
            "lessons_completed": session.get("lessons_completed", 0),
            "focus_percentage": session["focus_time"],
        },
    }


# ==================== READ ====================

@router.get("/active")
async def active(
    user: UserContext = Depends(get_current_student),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    session = await get_active_session(db, user.user_id)
    if not session:
        return {"success": True, "session": None}

    session = serialize_doc(session)
    session["current_duration"] = elapsed_minutes(session["start_time"], datetime.utcnow())
    if session.get("course_id"):
        course = await db.courses.find_one({"course_id": session["course_id"]})
        session["course_title"] = course.get("title") if course else None
    return {"success": True, "session": session}


@router.get("/history")
async def history(
    limit: int = Query(10, ge=1, le=100),
    page: int = Query(1, ge=1),
    course_id: Optional[str] = Query(None),
    user: UserContext = Depends(get_current_student),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    query = {"student_id": user.user_id, "is_active": False}
    if course_id:
        query["course_id"] = course_id

    total = await db.study_sessions.count_documents(query)
    sessions = await db.study_sessions.find(query).sort("start_time", -1).skip(
        (page - 1) * limit
    ).limit(limit).to_list(length=limit)

    return {
        "success": True,
        "sessions": serialize_many(sessions),
        "pagination": {
            "current": page,
            "pages": (total + limit - 1) // limit,
            "total": total,
        },
    }


@router.get("/stats")
async def stats(
    user: UserContext = Depends(get_current_student),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    now = datetime.utcnow()
    start_of_day = datetime(now.year, now.month, now.day)
    week_ago = now - timedelta(days=7)

    active_session = await get_active_session(db, user.user_id)
    today = await db.study_sessions.find(
        {"student_id": user.user_id, "is_active": False, "start_time": {"$gte": start_of_day}}
    ).to_list(length=500)
    weekly = await db.study_sessions.find(
        {"student_id": user.user_id, "is_active": False, "start_time": {"$gte": week_ago}}
    ).to_list(length=2000)

    today_stats = {
        "total_time": sum(s.get("duration") or 0 for s in today),
        "active_time": sum(s.get("total_active_time") or 0 for s in today),
        "sessions_count": len(today),
        "lessons_completed": sum(s.get("lessons_completed") or 0 for s in today),
    }
    if active_session:
        today_stats["total_time"] += elapsed_minutes(active_session["start_time"], now)
        today_stats["sessions_count"] += 1
        today_stats["lessons_completed"] += active_session.get("lessons_completed") or 0
    today_stats["formatted"] = format_study_time(today_stats["total_time"])

    weekly_total = sum(s.get("duration") or 0 for s in weekly)
    weekly_stats = {
        "total_time": weekly_total,
        "sessions_count": len(weekly),
        "lessons_completed": sum(s.get("lessons_completed") or 0 for s in weekly),
        "average_session_time": round(weekly_total / len(weekly)) if weekly else 0,
        "formatted": format_study_time(weekly_total),
    }

    records = await db.progress.find(
        {"student_id": user.user_id}, {"_id": 0, "streak": 1}
    ).to_list(length=500)
    streaks = [r.get("streak") or {} for r in records]

    return {
        "success": True,
        "active_session": {
            "session_id": active_session["session_id"],
            "start_time": active_session["start_time"],
            "current_duration": elapsed_minutes(active_session["start_time"], now),
            "activity": active_session["activity"],
            "course_id": active_session.get("course_id"),
        } if active_session else None,
        "today_stats": today_stats,
        "weekly_stats": weekly_stats,
        "current_streak": max((s.get("current") or 0 for s in streaks), default=0),
        "longest_streak": max((s.get("longest") or 0 for s in streaks), default=0),
    }
