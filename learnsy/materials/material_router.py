from datetime import datetime
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, File, Form, UploadFile
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnsy.core.audit import log_audit
from learnsy.core.config import settings
from learnsy.core.database import get_db, serialize_doc
from learnsy.core.dependencies import UserContext, get_current_user, get_current_student, get_current_faculty
from learnsy.core.uploads import save_upload, remove_file
from learnsy.courses.course_router import verify_course_owner
from learnsy.courses.database import get_course, public_quiz
from learnsy.enrollments.service import find_enrollment, require_enrollment
from learnsy.materials.models import (
    MaterialType, MaterialUpdate, CompletionRequest, RatingRequest, ALLOWED_MATERIAL_EXTENSIONS
)
from learnsy.materials.service import (
    create_material, get_owned_material, save_material_changes, delete_material, completed_material_ids,
    set_completion, rate_material, annotate_access, file_url, completion_rate,
    normalize_youtube_url
)
from learnsy.progress.rules import progress_percentage
from learnsy.progress.service import get_progress
from learnsy.subscriptions.service import get_effective_subscription

router = APIRouter(prefix="/api/materials", tags=["Materials"])

NOT_ENROLLED = "You must be enrolled in this course to view this material"


def _material_view(material: dict, completed_ids=()) -> dict:
    material = serialize_doc(material)
    material["file_url"] = file_url(material)
    material["completion_rate"] = completion_rate(material)
    material["is_completed"] = material["material_id"] in completed_ids
    return material


async def _find_material(db: AsyncIOMotorDatabase, material_id: str, published_only: bool = False) -> dict:
    material = await db.materials.find_one({"material_id": material_id})
    if not material or (published_only and not material.get("is_published")):
        raise HTTPException(status_code=404, detail="Material not found")
    return material


# ==================== READING ====================

@router.get("/course/{course_id}")
async def course_materials(
    course_id: str,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    course = await get_course(db, course_id)
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    is_owner = course.get("faculty_id") == user.user_id
    if not course.get("is_published") and not is_owner:
        raise HTTPException(status_code=404, detail="Course not found")

    materials = await db.materials.find(
        {"course_id": course_id, "is_published": True}
    ).sort("order", 1).to_list(length=500)
    quizzes = await db.quizzes.find(
        {"course_id": course_id, "is_published": True}
    ).sort("order", 1).to_list(length=100)

    completed_ids = []
    enrollment = None
    progress = None
    if user.is_student:
        enrollment = await find_enrollment(db, user.user_id, course_id)
        completed_ids = await completed_material_ids(db, user.user_id, course_id)
        progress = await get_progress(db, user.user_id, course_id)

    views = [_material_view(m, completed_ids) for m in materials]
    if is_owner:
        for view in views:
            view["is_accessible"] = True
    else:
        subscription = await get_effective_subscription(db, user.user_id)
        annotate_access(views, subscription)

    total = len(views)
    done = len([v for v in views if v["is_completed"]])

    return {
        "success": True,
        "course": {
            "course_id": course["course_id"],
            "title": course.get("title"),
            "description": course.get("description"),
            "faculty_id": course.get("faculty_id"),
            "category": course.get("category"),
            "level": course.get("level"),
        },
        "materials": views,
        "quizzes": [public_quiz(q) for q in quizzes],
        "is_enrolled": enrollment is not None,
        "progress": {
            "completed_materials": done,
            "total_materials": total,
            "percentage": progress_percentage(done, total),
            "streak": (progress or {}).get("streak"),
            "total_study_time": (progress or {}).get("total_study_time", 0),
        },
    }


@router.get("/faculty/course/{course_id}")
async def faculty_course_materials(
    course_id: str,
    user: UserContext = Depends(get_current_faculty),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await verify_course_owner(db, course_id, user)

    materials = await db.materials.find({"course_id": course_id}).sort("order", 1).to_list(length=500)
    return {
        "success": True,
        "materials": [_material_view(m) for m in materials],
        "count": len(materials),
    }


@router.get("/course/{course_id}/completed")
async def completed_materials(
    course_id: str,
    user: UserContext = Depends(get_current_student),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    ids = await completed_material_ids(db, user.user_id, course_id)
    return {"success": True, "completed_materials": ids, "count": len(ids)}


@router.get("/{material_id}")
async def get_material(
    material_id: str,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    material = await _find_material(db, material_id)

    completed_ids = []
    if user.is_student:
        if not material.get("is_published"):
            raise HTTPException(status_code=404, detail="Material not found")
        await require_enrollment(db, user.user_id, material["course_id"], detail=NOT_ENROLLED)
        completed_ids = await completed_material_ids(db, user.user_id, material["course_id"])
    elif material.get("faculty_id") != user.user_id and not material.get("is_published"):
        raise HTTPException(status_code=404, detail="Material not found")

    await db.materials.update_one({"material_id": material_id}, {"$inc": {"views": 1}})
    material["views"] = (material.get("views") or 0) + 1

    return {"success": True, "material": _material_view(material, completed_ids)}


# ==================== STUDENT ACTIONS ====================

@router.post("/{material_id}/complete")
async def complete_material(
    material_id: str,
    payload: Optional[CompletionRequest] = None,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    if not user.is_student:
        raise HTTPException(status_code=403, detail="Only students can mark materials as completed")

    material = await _find_material(db, material_id, published_only=True)
    enrollment = await require_enrollment(db, user.user_id, material["course_id"], detail=NOT_ENROLLED)

    completed = payload.completed if payload else True
    result = await set_completion(db, user.user_id, material, enrollment, completed)
    state = "completed" if completed else "marked as incomplete"
    return {"success": True, "message": f"Material {state}", **result}


@router.post("/{material_id}/rate")
async def rate(
    material_id: str,
    payload: RatingRequest,
    user: UserContext = Depends(get_current_student),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    material = await _find_material(db, material_id, published_only=True)
    await require_enrollment(db, user.user_id, material["course_id"], detail=NOT_ENROLLED)

    result = await rate_material(db, material, user.user_id, payload.rating)
    return {"success": True, "message": "Rating submitted successfully", **result}


# ==================== AUTHORING ====================

@router.post("", status_code=201)
async def upload_material(
    title: str = Form(..., min_length=1, max_length=200),
    material_type: MaterialType = Form(..., alias="type"),
    course_id: str = Form(...),
    description: Optional[str] = Form(None),
    module_id: Optional[str] = Form(None),
    content: Optional[str] = Form(None),
    url: Optional[str] = Form(None),
    duration: Optional[str] = Form(None),
    order: int = Form(0, ge=0),
    is_published: bool = Form(True),
    file: Optional[UploadFile] = File(None),
    user: UserContext = Depends(get_current_faculty),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await verify_course_owner(db, course_id, user)

    data = {
        "title": title,
        "type": material_type.value,
        "course_id": course_id,
        "description": description,
        "module_id": module_id,
        "content": content,
        "url": url,
        "duration": duration,
        "order": order,
        "is_published": is_published,
    }

    saved = None
    if file is not None and file.filename:
        saved = await save_upload(
            file, settings.materials_dir, ALLOWED_MATERIAL_EXTENSIONS,
            settings.MAX_MATERIAL_SIZE_MB, prefix="file"
        )
        data.update(saved)

    try:
        material = await create_material(db, data, user.user_id)
    except Exception as e:
        if saved:
            remove_file(saved["file_path"])
        raise HTTPException(status_code=500, detail=f"Error creating material: {str(e)}")

    await log_audit(db, user, "create_material", "material", material["material_id"],
                    {"title": material["title"], "course_id": course_id})
    return {
        "success": True,
        "message": "Material uploaded successfully",
        "material": _material_view(material),
    }


@router.put("/{material_id}")
async def update_material(
    material_id: str,
    payload: MaterialUpdate,
    user: UserContext = Depends(get_current_faculty),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    material = await get_owned_material(db, material_id, user.user_id)

    updates = payload.dict(exclude_unset=True)
    if "type" in updates and updates["type"] is not None:
        updates["type"] = MaterialType(updates["type"]).value
    if updates.get("url") and (updates.get("type") or material.get("type")) == "video":
        updates["url"] = normalize_youtube_url(updates["url"])
    updates["updated_at"] = datetime.utcnow()

    updated = await save_material_changes(db, material, updates)

    await log_audit(db, user, "update_material", "material", material_id,
                    {"fields": sorted(k for k in updates if k != "updated_at")})
    return {
        "success": True,
        "message": "Material updated successfully",
        "material": _material_view(updated),
    }


@router.delete("/{material_id}")
async def remove_material(
    material_id: str,
    user: UserContext = Depends(get_current_faculty),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    material = await get_owned_material(db, material_id, user.user_id)

    await delete_material(db, material)
    await log_audit(db, user, "delete_material", "material", material_id,
                    {"title": material.get("title"), "course_id": material.get("course_id")})
    return {"success": True, "message": "Material deleted successfully"}
