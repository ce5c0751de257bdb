from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnsy.core.database import get_db
from learnsy.core.dependencies import UserContext, get_current_faculty
from learnsy.dashboards.stats import average_progress, enrolled_progress

router = APIRouter(prefix="/api/admin-dashboard", tags=["Dashboards"])


@router.get("")
async def admin_dashboard(
    user: UserContext = Depends(get_current_faculty),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """Platform-wide totals. Available to faculty accounts."""
    total_students = await db.users.count_documents({"role": "student"})
    total_courses = await db.courses.count_documents({})
    total_materials = await db.materials.count_documents({})

    records = await enrolled_progress(db, {})

    return {
        "success": True,
        "total_students": total_students,
        "total_courses": total_courses,
        "total_materials": total_materials,
        "avg_progress": average_progress(records),
    }
