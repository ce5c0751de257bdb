from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from learnsy.core.database import generate_id, transaction
from learnsy.progress.service import ensure_progress, course_total_lessons

ACTIVE_STATUSES = ["active", "completed"]


async def find_enrollment(db: AsyncIOMotorDatabase, student_id: str, course_id: str) -> Optional[dict]:
    """Active or completed enrollment of a student in a course"""
    return await db.enrollments.find_one({
        "student_id": student_id,
        "course_id": course_id,
        "status": {"$in": ACTIVE_STATUSES}
    })


async def require_enrollment(
    db: AsyncIOMotorDatabase,
    student_id: str,
    course_id: str,
    detail: str = "You must be enrolled in this course"
) -> dict:
    """
    Raises:
        403: Student is not enrolled
    """
    enrollment = await find_enrollment(db, student_id, course_id)
    if not enrollment:
        raise HTTPException(status_code=403, detail=detail)
    return enrollment


def new_enrollment(student_id: str, course_id: str, total_lessons: int) -> dict:
    now = datetime.utcnow()
    return {
        "enrollment_id": generate_id("ENR"),
        "student_id": student_id,
        "course_id": course_id,
        "enrolled_at": now,
        "status": "active",
        "progress": {
            "lessons_completed": 0,
            "total_lessons": total_lessons,
            "percentage": 0,
            "last_accessed": now,
        },
        "study_time": {"total_minutes": 0, "sessions": []},
    }


async def enroll_student(db: AsyncIOMotorDatabase, student_id: str, course_id: Optional[str]) -> dict:
    """
    Enroll a student in a published course.

    The enrollment, course roster, user course list and progress record are
    written in one transaction. A dropped enrollment is reactivated.

    Raises:
        400: Missing course id, unpublished course or already enrolled
        404: Course not found
    """
    if not course_id:
        raise HTTPException(status_code=400, detail="Course ID is required")

    course = await db.courses.find_one({"course_id": course_id})
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    if not course.get("is_published"):
        raise HTTPException(status_code=400, detail="Course is not available for enrollment")

    existing = await db.enrollments.find_one({"student_id": student_id, "course_id": course_id})
    if existing and existing.get("status") in ACTIVE_STATUSES:
        raise HTTPException(status_code=400, detail="Already enrolled in this course")

    total_lessons = await course_total_lessons(db, course)

    async with transaction(db) as session:
        if existing:
            enrollment_id = existing["enrollment_id"]
            await db.enrollments.update_one(
                {"enrollment_id": enrollment_id},
                {"$set": {
                    "status": "active",
                    "enrolled_at": datetime.utcnow(),
                    "progress.total_lessons": total_lessons,
                }},
                session=session
            )
        else:
            enrollment = new_enrollment(student_id, course_id, total_lessons)
            enrollment_id = enrollment["enrollment_id"]
            try:
                await db.enrollments.insert_one(enrollment, session=session)
            except DuplicateKeyError:
                raise HTTPException(status_code=400, detail="Already enrolled in this course")

        await db.courses.update_one(
            {"course_id": course_id},
            {"$addToSet": {"enrolled_students": student_id}, "$inc": {"enrollment_count": 1}},
            session=session
        )
        await db.users.update_one(
            {"user_id": student_id},
            {"$addToSet": {"enrolled_courses": course_id}},
            session=session
        )
        await db.users.update_one(
            {"user_id": course["faculty_id"]},
            {"$inc": {"total_students": 1}},
            session=session
        )
        await ensure_progress(db, student_id, course_id, enrollment_id, total_lessons, session=session)

    print(f"✅ Student {student_id} enrolled in {course_id}")
    return await db.enrollments.find_one({"enrollment_id": enrollment_id})


async def drop_enrollment(db: AsyncIOMotorDatabase, enrollment: dict):
    """Mark an enrollment dropped and remove the student from the course roster"""
    course = await db.courses.find_one({"course_id": enrollment["course_id"]})

    async with transaction(db) as session:
        await db.enrollments.update_one(
            {"enrollment_id": enrollment["enrollment_id"]},
            {"$set": {"status": "dropped", "dropped_at": datetime.utcnow()}},
            session=session
        )
        await db.courses.update_one(
            {"course_id": enrollment["course_id"], "enrollment_count": {"$gt": 0}},
            {"$pull": {"enrolled_students": enrollment["student_id"]},
             "$inc": {"enrollment_count": -1}},
            session=session
        )
        await db.users.update_one(
            {"user_id": enrollment["student_id"]},
            {"$pull": {"enrolled_courses": enrollment["course_id"]}},
            session=session
        )
        if course:
            await db.users.update_one(
                {"user_id": course["faculty_id"], "total_students": {"$gt": 0}},
                {"$inc": {"total_students": -1}},
                session=session
            )


async def create_enrollment_indexes(db: AsyncIOMotorDatabase):
    await db.enrollments.create_index("enrollment_id", unique=True)
    await db.enrollments.create_index([("student_id", 1), ("course_id", 1)], unique=True)
    await db.enrollments.create_index([("course_id", 1), ("status", 1)])

    await db.progress.create_index([("student_id", 1), ("course_id", 1)], unique=True)
    print("✅ Enrollment indexes created")
