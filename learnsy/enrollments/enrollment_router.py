from typing import Optional

from fastapi import APIRouter, HTTPException, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, Field

from learnsy.core.database import get_db, serialize_doc, transaction
from learnsy.core.dependencies import UserContext, get_current_student, get_current_faculty
from learnsy.enrollments.service import enroll_student, drop_enrollment, ACTIVE_STATUSES
from learnsy.progress.service import ensure_progress, apply_study_activity, sync_enrollment

router = APIRouter(prefix="/api/enrollments", tags=["Enrollments"])


class EnrollRequest(BaseModel):
    course_id: Optional[str] = None


class EnrollmentProgressUpdate(BaseModel):
    lessons_completed: Optional[int] = Field(None, ge=0)
    study_time_minutes: int = Field(0, ge=0)


def _course_summary(course: Optional[dict]) -> Optional[dict]:
    if not course:
        return None
    return {
        "course_id": course["course_id"],
        "title": course.get("title"),
        "description": course.get("description"),
        "category": course.get("category"),
        "level": course.get("level"),
        "thumbnail": course.get("thumbnail"),
        "faculty_id": course.get("faculty_id"),
        "total_lessons": course.get("total_lessons", 0),
    }


async def _owned_enrollment(db: AsyncIOMotorDatabase, enrollment_id: str, student_id: str) -> dict:
    enrollment = await db.enrollments.find_one(
        {"enrollment_id": enrollment_id, "student_id": student_id}
    )
    if not enrollment:
        raise HTTPException(status_code=404, detail="Enrollment not found")
    return enrollment


# ==================== STUDENT ====================

@router.get("/my-enrollments")
async def my_enrollments(
    user: UserContext = Depends(get_current_student),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    enrollments = await db.enrollments.find({
        "student_id": user.user_id,
        "status": {"$in": ACTIVE_STATUSES}
    }).sort("enrolled_at", -1).to_list(length=500)

    course_ids = [e["course_id"] for e in enrollments]
    courses = await db.courses.find({"course_id": {"$in": course_ids}}).to_list(length=500)
    by_id = {c["course_id"]: c for c in courses}

    results = []
    for enrollment in enrollments:
        enrollment = serialize_doc(enrollment)
        enrollment.setdefault("progress", {
            "lessons_completed": 0, "total_lessons": 0, "percentage": 0, "last_accessed": None
        })
        enrollment["course"] = _course_summary(by_id.get(enrollment["course_id"]))
        results.append(enrollment)

    return {"success": True, "enrollments": results, "count": len(results)}


@router.post("", status_code=201)
async def enroll(
    payload: EnrollRequest,
    user: UserContext = Depends(get_current_student),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    enrollment = await enroll_student(db, user.user_id, payload.course_id)
    return {
        "success": True,
        "message": "Successfully enrolled in course",
        "enrollment": serialize_doc(enrollment),
    }


@router.post("/enroll/{course_id}", status_code=201)
async def enroll_by_path(
    course_id: str,
    user: UserContext = Depends(get_current_student),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    enrollment = await enroll_student(db, user.user_id, course_id)
    return {
        "success": True,
        "message": "Successfully enrolled in course",
        "enrollment": serialize_doc(enrollment),
    }


# ==================== FACULTY ====================

@router.get("/course/{course_id}")
async def course_enrollments(
    course_id: str,
    user: UserContext = Depends(get_current_faculty),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    course = await db.courses.find_one({"course_id": course_id, "faculty_id": user.user_id})
    if not course:
        raise HTTPException(status_code=404, detail="Course not found or access denied")

    enrollments = await db.enrollments.find(
        {"course_id": course_id}
    ).sort("enrolled_at", -1).to_list(length=1000)

    student_ids = [e["student_id"] for e in enrollments]
    students = await db.users.find(
        {"user_id": {"$in": student_ids}},
        {"_id": 0, "user_id": 1, "name": 1, "email": 1, "student_id": 1, "department": 1}
    ).to_list(length=1000)
    by_id = {s["user_id"]: s for s in students}

    results = []
    for enrollment in enrollments:
        enrollment = serialize_doc(enrollment)
        enrollment["student"] = by_id.get(enrollment["student_id"])
        results.append(enrollment)

    return {
        "success": True,
        "course": _course_summary(course),
        "enrollments": results,
        "count": len(results),
    }


# ==================== SINGLE ENROLLMENT ====================

@router.get("/{enrollment_id}")
async def get_enrollment(
    enrollment_id: str,
    user: UserContext = Depends(get_current_student),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    enrollment = await _owned_enrollment(db, enrollment_id, user.user_id)
    course = await db.courses.find_one({"course_id": enrollment["course_id"]})

    enrollment = serialize_doc(enrollment)
    enrollment["course"] = _course_summary(course)
    return {"success": True, "enrollment": enrollment}


@router.put("/{enrollment_id}/progress")
async def update_enrollment_progress(
    enrollment_id: str,
    payload: EnrollmentProgressUpdate,
    user: UserContext = Depends(get_current_student),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    enrollment = await _owned_enrollment(db, enrollment_id, user.user_id)
    if enrollment.get("status") == "dropped":
        raise HTTPException(status_code=400, detail="Cannot update progress for a dropped course")

    total_lessons = (enrollment.get("progress") or {}).get("total_lessons", 0)
    async with transaction(db) as session:
        progress = await ensure_progress(
            db, user.user_id, enrollment["course_id"], enrollment_id, total_lessons, session=session
        )
        progress = await apply_study_activity(
            db, progress,
            minutes=payload.study_time_minutes,
            lessons_completed=payload.lessons_completed,
            session=session
        )
        percentage = await sync_enrollment(
            db, user.user_id, enrollment["course_id"],
            progress["lessons_completed"], progress.get("total_lessons") or total_lessons,
            minutes=payload.study_time_minutes, session=session
        )

    return {
        "success": True,
        "message": "Progress updated successfully",
        "progress": {
            "lessons_completed": progress["lessons_completed"],
            "total_lessons": progress.get("total_lessons") or total_lessons,
            "percentage": percentage,
            "total_study_time": progress["total_study_time"],
            "streak": progress.get("streak"),
        },
    }


@router.delete("/{enrollment_id}")
async def drop_course(
    enrollment_id: str,
    user: UserContext = Depends(get_current_student),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    enrollment = await _owned_enrollment(db, enrollment_id, user.user_id)
    if enrollment.get("status") == "dropped":
        raise HTTPException(status_code=400, detail="Course already dropped")

    await drop_enrollment(db, enrollment)
    return {"success": True, "message": "Successfully dropped course"}
