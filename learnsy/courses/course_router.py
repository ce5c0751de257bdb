import re
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, Query
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnsy.core.audit import log_audit
from learnsy.core.database import get_db, serialize_doc, serialize_many
from learnsy.core.dependencies import UserContext, get_current_user, get_current_faculty
from learnsy.courses.models import CourseCreate, CourseUpdate
from learnsy.courses.database import (
    create_course, get_course, get_owned_course, list_courses,
    update_course, set_published, delete_course, public_quiz
)

router = APIRouter(prefix="/api/courses", tags=["Courses"])


async def verify_course_owner(db: AsyncIOMotorDatabase, course_id: str, user: UserContext) -> dict:
    """
    Raises:
        404: Course missing or owned by someone else
    """
    course = await get_owned_course(db, course_id, user.user_id)
    if not course:
        raise HTTPException(status_code=404, detail="Course not found or unauthorized")
    return course


def _course_view(course: dict) -> dict:
    course = serialize_doc(course)
    course["enrolled_students_count"] = len(course.get("enrolled_students") or [])
    return course


# ==================== LISTING ====================

@router.get("")
async def get_courses(
    is_published: Optional[bool] = Query(None),
    category: Optional[str] = Query(None),
    level: Optional[str] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    filters = {}
    if user.is_student:
        filters["is_published"] = True
    elif is_published is not None:
        filters["is_published"] = is_published
    if category:
        filters["category"] = category
    if level:
        filters["level"] = level
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        filters["$or"] = [{"title": pattern}, {"description": pattern}, {"category": pattern}]

    courses = await list_courses(db, filters, skip=(page - 1) * limit, limit=limit)
    results = [_course_view(c) for c in courses]

    if user.is_student:
        for course in results:
            course["is_enrolled"] = user.user_id in (course.get("enrolled_students") or [])

    return {"success": True, "courses": results, "count": len(results), "page": page}


@router.get("/my-courses")
async def get_my_courses(
    user: UserContext = Depends(get_current_faculty),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    courses = await list_courses(db, {"faculty_id": user.user_id}, limit=500)
    return {"success": True, "courses": [_course_view(c) for c in courses]}


@router.get("/{course_id}")
async def get_course_detail(
    course_id: str,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    course = await get_course(db, course_id)
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    if user.is_student and not course.get("is_published"):
        raise HTTPException(status_code=404, detail="Course not found")

    materials = await db.materials.find(
        {"course_id": course_id, "is_published": True}
    ).sort("order", 1).to_list(length=500)
    quizzes = await db.quizzes.find(
        {"course_id": course_id, "is_published": True}
    ).sort("order", 1).to_list(length=100)

    response = {
        "success": True,
        "course": _course_view(course),
        "materials": serialize_many(materials),
        "quizzes": [public_quiz(q) for q in quizzes],
    }

    if user.is_student:
        enrollment = await db.enrollments.find_one({
            "student_id": user.user_id,
            "course_id": course_id,
            "status": {"$in": ["active", "completed"]}
        })
        response["is_enrolled"] = enrollment is not None
        response["enrollment"] = serialize_doc(enrollment)

    return response


# ==================== AUTHORING ====================

@router.post("", status_code=201)
async def post_course(
    payload: CourseCreate,
    user: UserContext = Depends(get_current_faculty),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    try:
        course = await create_course(db, payload.dict(), user.user_id)
        await log_audit(db, user, "create_course", "course", course["course_id"],
                        {"title": course["title"]})
        return {"success": True, "message": "Course created successfully", "course": _course_view(course)}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=400, detail=f"Error creating course: {str(e)}")


@router.put("/{course_id}")
async def put_course(
    course_id: str,
    payload: CourseUpdate,
    user: UserContext = Depends(get_current_faculty),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await verify_course_owner(db, course_id, user)

    updates = payload.dict(exclude_unset=True)
    course = await update_course(db, course_id, updates)
    await log_audit(db, user, "update_course", "course", course_id,
                    {"fields": sorted(k for k in updates if k != "updated_at")})
    return {"success": True, "message": "Course updated successfully", "course": _course_view(course)}


@router.post("/{course_id}/publish")
async def toggle_publish(
    course_id: str,
    user: UserContext = Depends(get_current_faculty),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    course = await verify_course_owner(db, course_id, user)

    is_published = not course.get("is_published", False)
    await set_published(db, course_id, is_published)
    await log_audit(db, user, "publish_course" if is_published else "unpublish_course",
                    "course", course_id)

    state = "published" if is_published else "unpublished"
    return {
        "success": True,
        "message": f"Course {state} successfully",
        "is_published": is_published,
    }


@router.delete("/{course_id}")
async def remove_course(
    course_id: str,
    user: UserContext = Depends(get_current_faculty),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    course = await verify_course_owner(db, course_id, user)

    await delete_course(db, course)
    await log_audit(db, user, "delete_course", "course", course_id, {"title": course.get("title")})
    return {"success": True, "message": "Course deleted successfully"}
