from datetime import datetime

from fastapi import APIRouter, HTTPException, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnsy.core.config import settings
from learnsy.core.database import get_db

router = APIRouter(prefix="/api/health", tags=["Health"])


@router.get("")
async def health():
    return {
        "status": "ok",
        "message": "Learnsy API is running",
        "version": settings.VERSION,
        "timestamp": datetime.utcnow().isoformat(),
    }


@router.get("/db")
async def database_health(db: AsyncIOMotorDatabase = Depends(get_db)):
    """Ping MongoDB and report round-trip latency"""
    start = datetime.utcnow()
    try:
        await db.command("ping")
    except Exception as e:
        print(f"❌ MongoDB ping failed: {e}")
        raise HTTPException(status_code=503, detail="Database unavailable")

    return {
        "status": "ok",
        "database": "UP",
        "latency_ms": round((datetime.utcnow() - start).total_seconds() * 1000, 2),
        "timestamp": datetime.utcnow().isoformat(),
    }
