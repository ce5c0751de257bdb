import os
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, BackgroundTasks, File, Form, Query, UploadFile
from fastapi.responses import FileResponse
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnsy.ai_tools.models import AISummary, FileType, ProcessingStatus, ALLOWED_AI_EXTENSIONS
from learnsy.ai_tools.summary_service import detect_file_type, process_summary, summary_stats
from learnsy.core.config import settings
from learnsy.core.database import get_db, generate_id, serialize_doc
from learnsy.core.dependencies import UserContext, get_current_student
from learnsy.core.uploads import save_upload, remove_file
from learnsy.subscriptions.plans import has_access
from learnsy.subscriptions.service import get_effective_subscription

router = APIRouter(prefix="/api/ai-tools", tags=["AI Tools"])


async def require_ai_tools(
    user: UserContext = Depends(get_current_student),
    db: AsyncIOMotorDatabase = Depends(get_db)
) -> UserContext:
    """Dependency: student with an active plan that includes AI tools"""
    subscription = await get_effective_subscription(db, user.user_id)
    if not has_access(subscription, "ai_tools"):
        raise HTTPException(status_code=403, detail="AI tools require an active premium subscription")
    return user


async def _owned_summary(db: AsyncIOMotorDatabase, summary_id: str, student_id: str) -> dict:
    summary = await db.ai_summaries.find_one({"summary_id": summary_id, "student_id": student_id})
    if not summary:
        raise HTTPException(status_code=404, detail="Summary not found")
    return summary


@router.post("/upload", status_code=201)
async def upload_file(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    file_type: Optional[FileType] = Form(None),
    user: UserContext = Depends(require_ai_tools),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    detected = detect_file_type(file.filename)
    if detected is None:
        raise HTTPException(status_code=400, detail="Unsupported file type. Upload a video, PDF or presentation.")
    if file_type is not None and file_type != detected:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid file type for {file_type.value}. Please upload a valid file."
        )

    saved = await save_upload(
        file, settings.ai_uploads_dir, ALLOWED_AI_EXTENSIONS,
        settings.MAX_AI_UPLOAD_SIZE_MB, prefix="ai"
    )

    record = AISummary(
        summary_id=generate_id("SUM"),
        student_id=user.user_id,
        file_name=saved["file_name"],
        original_file_name=saved["original_file_name"],
        file_type=detected,
        file_size=saved["file_size"],
        file_url=saved["file_path"],
    )
    try:
        await db.ai_summaries.insert_one(record.dict())
    except Exception as e:
        remove_file(saved["file_path"])
        raise HTTPException(status_code=500, detail=f"Error uploading file: {str(e)}")

    background_tasks.add_task(process_summary, db, record.summary_id)
    print(f"📄 AI upload {record.summary_id} ({detected.value}) queued for {user.user_id}")

    return {
        "success": True,
        "message": "File uploaded successfully. Processing started.",
        "summary_id": record.summary_id,
        "processing_status": ProcessingStatus.PROCESSING.value,
    }


@router.get("/summaries")
async def my_summaries(
    file_type: Optional[FileType] = Query(None),
    status: Optional[ProcessingStatus] = Query(None),
    user: UserContext = Depends(require_ai_tools),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    query = {"student_id": user.user_id}
    if file_type:
        query["file_type"] = file_type.value
    if status:
        query["processing_status"] = status.value

    summaries = await db.ai_summaries.find(
        query, {"_id": 0, "file_url": 0}
    ).sort("created_at", -1).to_list(length=500)
    return {"success": True, "summaries": summaries, "count": len(summaries)}


@router.get("/summaries/{summary_id}")
async def get_summary(
    summary_id: str,
    user: UserContext = Depends(require_ai_tools),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    summary = await _owned_summary(db, summary_id, user.user_id)
    return {"success": True, "summary": serialize_doc(summary)}


@router.get("/download/{summary_id}")
async def download_file(
    summary_id: str,
    user: UserContext = Depends(require_ai_tools),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    summary = await _owned_summary(db, summary_id, user.user_id)
    if not summary.get("file_url") or not os.path.exists(summary["file_url"]):
        raise HTTPException(status_code=404, detail="File no longer exists on server")

    await db.ai_summaries.update_one({"summary_id": summary_id}, {"$inc": {"download_count": 1}})
    return FileResponse(
        summary["file_url"],
        media_type="application/octet-stream",
        filename=summary["original_file_name"],
    )


@router.delete("/summaries/{summary_id}")
async def delete_summary(
    summary_id: str,
    user: UserContext = Depends(require_ai_tools),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    summary = await _owned_summary(db, summary_id, user.user_id)

    remove_file(summary.get("file_url"))
    await db.ai_summaries.delete_one({"summary_id": summary_id})
    return {"success": True, "message": "Summary deleted successfully"}


@router.get("/stats")
async def stats(
    user: UserContext = Depends(require_ai_tools),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return {"success": True, "stats": await summary_stats(db, user.user_id)}
