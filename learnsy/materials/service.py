import os
import re
from datetime import datetime
from typing import List, Optional

from fastapi import HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnsy.core.database import generate_id, transaction
from learnsy.core.uploads import remove_file
from learnsy.materials.models import DOCUMENT_TYPES
from learnsy.progress.rules import progress_percentage, record_study_day, update_streak, avg_study_time
from learnsy.progress.service import ensure_progress, sync_enrollment
from learnsy.subscriptions.plans import can_access_video, can_access_document


def normalize_youtube_url(url: Optional[str]) -> Optional[str]:
    """
    Convert any youtube link to embed format
    """
    if not url or "embed/" in url:
        return url

    # watch?v=
    match = re.search(r"youtube\.com/.*[?&]v=([^&]+)", url)
    if match:
        return f"https://www.youtube.com/embed/{match.group(1)}"

    # youtu.be/
    match = re.search(r"youtu\.be/([^?]+)", url)
    if match:
        return f"https://www.youtube.com/embed/{match.group(1)}"

    return url


def file_url(material: dict) -> Optional[str]:
    if not material.get("file_path"):
        return None
    return f"/uploads/materials/{os.path.basename(material['file_path'])}"


def completion_rate(material: dict) -> int:
    views = material.get("views") or 0
    if views == 0:
        return 0
    return round((material.get("completions") or 0) / views * 100)


def annotate_access(materials: List[dict], subscription: Optional[dict]) -> List[dict]:
    """
    Flag each material with ``is_accessible``. Videos and documents are
    numbered separately and checked against the plan's limits.
    """
    video_index = 0
    document_index = 0
    for material in materials:
        kind = material.get("type")
        if kind == "video":
            material["is_accessible"] = can_access_video(subscription, video_index)
            video_index += 1
        elif kind in DOCUMENT_TYPES:
            material["is_accessible"] = can_access_document(subscription, document_index)
            document_index += 1
        else:
            material["is_accessible"] = True
    return materials


# ==================== CRUD ====================

async def create_material(db: AsyncIOMotorDatabase, data: dict, faculty_id: str) -> dict:
    now = datetime.utcnow()
    if data.get("type") == "video":
        data["url"] = normalize_youtube_url(data.get("url"))

    material = {
        "material_id": generate_id("MAT"),
        "title": data["title"],
        "description": data.get("description"),
        "type": data["type"],
        "content": data.get("content"),
        "url": data.get("url"),
        "file_path": data.get("file_path"),
        "file_name": data.get("original_file_name"),
        "file_size": data.get("file_size"),
        "duration": data.get("duration"),
        "order": data.get("order") or 0,
        "is_published": data.get("is_published", True),
        "course_id": data["course_id"],
        "module_id": data.get("module_id"),
        "faculty_id": faculty_id,
        "views": 0,
        "completions": 0,
        "average_rating": 0,
        "total_ratings": 0,
        "created_at": now,
        "updated_at": now,
    }
    async with transaction(db) as session:
        await db.materials.insert_one(material, session=session)
        if material["is_published"]:
            await recount_course_progress(db, material["course_id"], session=session)
    return material


async def get_owned_material(db: AsyncIOMotorDatabase, material_id: str, faculty_id: str) -> dict:
    """
    Raises:
        403: Material missing or owned by another faculty member
    """
    material = await db.materials.find_one({"material_id": material_id, "faculty_id": faculty_id})
    if not material:
        raise HTTPException(
            status_code=403,
            detail="Material not found or you do not have permission to modify it"
        )
    return material


async def save_material_changes(db: AsyncIOMotorDatabase, material: dict, updates: dict) -> dict:
    """Apply ``updates``; publishing or unpublishing changes every student's lesson total"""
    async with transaction(db) as session:
        await db.materials.update_one(
            {"material_id": material["material_id"]}, {"$set": updates}, session=session
        )
        if "is_published" in updates and updates["is_published"] != material.get("is_published"):
            await recount_course_progress(db, material["course_id"], session=session)
    return await db.materials.find_one({"material_id": material["material_id"]})


async def delete_material(db: AsyncIOMotorDatabase, material: dict):
    async with transaction(db) as session:
        await db.material_completions.delete_many(
            {"material_id": material["material_id"]}, session=session
        )
        await db.materials.delete_one({"material_id": material["material_id"]}, session=session)
        await recount_course_progress(db, material["course_id"], session=session)
    remove_file(material.get("file_path"))


# ==================== COMPLETION ====================

async def published_material_ids(db: AsyncIOMotorDatabase, course_id: str, session=None) -> List[str]:
    published = await db.materials.find(
        {"course_id": course_id, "is_published": True}, {"_id": 0, "material_id": 1},
        session=session
    ).to_list(length=1000)
    return [m["material_id"] for m in published]


async def count_completed(db: AsyncIOMotorDatabase, student_id: str, material_ids: List[str], session=None) -> int:
    return await db.material_completions.count_documents(
        {"student_id": student_id, "material_id": {"$in": material_ids}, "completed": True},
        session=session
    )


async def recount_course_progress(db: AsyncIOMotorDatabase, course_id: str, session=None):
    """
    Recompute lessons_completed / total_lessons for every student of a
    course after its set of published materials changed, and mirror the
    result onto their enrollments.
    """
    published_ids = await published_material_ids(db, course_id, session=session)
    total = len(published_ids)
    now = datetime.utcnow()

    records = await db.progress.find(
        {"course_id": course_id}, {"_id": 0, "student_id": 1}, session=session
    ).to_list(length=5000)
    for record in records:
        student_id = record["student_id"]
        done = await count_completed(db, student_id, published_ids, session=session)
        await db.progress.update_one(
            {"student_id": student_id, "course_id": course_id},
            {"$set": {"lessons_completed": done, "total_lessons": total, "updated_at": now}},
            session=session
        )
        await sync_enrollment(db, student_id, course_id, done, total, session=session)


async def completed_material_ids(db: AsyncIOMotorDatabase, student_id: str, course_id: str) -> List[str]:
    docs = await db.material_completions.find(
        {"student_id": student_id, "course_id": course_id, "completed": True},
        {"_id": 0, "material_id": 1}
    ).to_list(length=1000)
    return [d["material_id"] for d in docs]


async def set_completion(
    db: AsyncIOMotorDatabase,
    student_id: str,
    material: dict,
    enrollment: dict,
    completed: bool
) -> dict:
    """
    Mark or unmark a material as completed and recompute course progress
    from the number of completed published materials.

    The completion marker, material counter, progress record and
    enrollment snapshot are updated in one transaction.
    """
    course_id = material["course_id"]
    material_id = material["material_id"]
    now = datetime.utcnow()

    existing = await db.material_completions.find_one(
        {"student_id": student_id, "material_id": material_id}
    )
    was_completed = bool(existing and existing.get("completed"))

    async with transaction(db) as session:
        if completed and not was_completed:
            await db.material_completions.update_one(
                {"student_id": student_id, "material_id": material_id},
                {"$set": {"course_id": course_id, "completed": True, "completed_at": now}},
                upsert=True,
                session=session
            )
            await db.materials.update_one(
                {"material_id": material_id}, {"$inc": {"completions": 1}}, session=session
            )
        elif not completed and was_completed:
            await db.material_completions.delete_one(
                {"student_id": student_id, "material_id": material_id}, session=session
            )
            await db.materials.update_one(
                {"material_id": material_id, "completions": {"$gt": 0}},
                {"$inc": {"completions": -1}},
                session=session
            )

        published_ids = await published_material_ids(db, course_id, session=session)
        done = await count_completed(db, student_id, published_ids, session=session)
        total = len(published_ids)

        progress = await ensure_progress(
            db, student_id, course_id, enrollment["enrollment_id"], total, session=session
        )
        updates = {
            "lessons_completed": done,
            "total_lessons": total,
            "last_accessed": now,
            "updated_at": now,
        }
        if completed and not was_completed:
            calendar = record_study_day(progress.get("study_calendar"), now, 0, 1)
            updates["study_calendar"] = calendar
            updates["avg_study_time"] = avg_study_time(calendar)
            updates["streak"] = update_streak(progress.get("streak"), now)

        await db.progress.update_one(
            {"student_id": student_id, "course_id": course_id}, {"$set": updates}, session=session
        )
        await sync_enrollment(db, student_id, course_id, done, total, session=session)

    return {
        "completed": completed,
        "progress": {
            "completed_materials": done,
            "total_materials": total,
            "percentage": progress_percentage(done, total),
        },
    }


async def rate_material(db: AsyncIOMotorDatabase, material: dict, student_id: str, rating: int) -> dict:
    """Record (or replace) a student's rating and refresh the running average"""
    previous = await db.material_ratings.find_one(
        {"student_id": student_id, "material_id": material["material_id"]}
    )

    total = material.get("total_ratings") or 0
    average = material.get("average_rating") or 0
    rating_sum = average * total
    if previous:
        rating_sum += rating - previous["rating"]
    else:
        rating_sum += rating
        total += 1
    average = round(rating_sum / total, 2) if total else 0

    async with transaction(db) as session:
        await db.material_ratings.update_one(
            {"student_id": student_id, "material_id": material["material_id"]},
            {"$set": {"rating": rating, "rated_at": datetime.utcnow()}},
            upsert=True,
            session=session
        )
        await db.materials.update_one(
            {"material_id": material["material_id"]},
            {"$set": {"average_rating": average, "total_ratings": total}},
            session=session
        )
    return {"average_rating": average, "total_ratings": total}


async def create_material_indexes(db: AsyncIOMotorDatabase):
    await db.materials.create_index("material_id", unique=True)
    await db.materials.create_index([("course_id", 1), ("is_published", 1), ("order", 1)])
    await db.material_completions.create_index(
        [("student_id", 1), ("material_id", 1)], unique=True
    )
    await db.material_completions.create_index([("student_id", 1), ("course_id", 1)])
    await db.material_ratings.create_index([("student_id", 1), ("material_id", 1)], unique=True)
    print("✅ Material indexes created")
