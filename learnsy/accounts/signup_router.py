from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnsy.accounts.models import StudentRegister, FacultyRegister, LoginRequest, ProfileUpdate
from learnsy.accounts.service import (
    register_user, authenticate, auth_response, safe_user,
    update_profile, verify_email, get_user_stats
)
from learnsy.core.config import settings
from learnsy.core.database import get_db
from learnsy.core.dependencies import UserContext, get_current_user, get_current_faculty
from learnsy.core.rate_limit import create_limiter, reset_all_limiters

router = APIRouter(prefix="/api/signup", tags=["Signup"])

signup_limiter = create_limiter(settings.SIGNUP_RATE_LIMIT, settings.RATE_LIMIT_WINDOW)


def _registration_response(user: dict, message: str) -> dict:
    response = auth_response(user, message)
    response["email_verification_required"] = True
    return response


# ==================== REGISTRATION ====================

@router.post("/student/register", status_code=201, dependencies=[Depends(signup_limiter)])
async def register_student(
    payload: StudentRegister,
    request: Request,
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    user = await register_user(db, "student", payload.dict(), request)
    return _registration_response(
        user, "Student account created successfully. Please verify your email."
    )


@router.post("/faculty/register", status_code=201, dependencies=[Depends(signup_limiter)])
async def register_faculty(
    payload: FacultyRegister,
    request: Request,
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    user = await register_user(db, "faculty", payload.dict(), request)
    return _registration_response(
        user, "Faculty account created successfully. Please verify your email."
    )


@router.post("/verify-email/{token}")
async def verify_email_token(token: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    user = await verify_email(db, token)
    return {"success": True, "message": "Email verified successfully", "user": safe_user(user)}


# ==================== LOGIN ====================

@router.post("/student/login", dependencies=[Depends(signup_limiter)])
async def login_student(payload: LoginRequest, db: AsyncIOMotorDatabase = Depends(get_db)):
    user = await authenticate(db, "student", payload.email, payload.password)
    return auth_response(user, "Login successful")


@router.post("/faculty/login", dependencies=[Depends(signup_limiter)])
async def login_faculty(payload: LoginRequest, db: AsyncIOMotorDatabase = Depends(get_db)):
    user = await authenticate(db, "faculty", payload.email, payload.password, payload.institution)
    return auth_response(user, "Login successful")


# ==================== PROFILE ====================

@router.get("/profile")
async def get_profile(user: UserContext = Depends(get_current_user)):
    return {"success": True, "user": safe_user(user.profile)}


@router.put("/profile")
async def put_profile(
    payload: ProfileUpdate,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    updated = await update_profile(db, user.profile, payload.dict(exclude_unset=True))
    return {"success": True, "message": "Profile updated successfully", "user": safe_user(updated)}


# ==================== ADMIN ====================

@router.get("/stats")
async def signup_stats(
    user: UserContext = Depends(get_current_faculty),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    try:
        stats = await get_user_stats(db)
        return {"success": True, "stats": stats}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to get signup statistics: {str(e)}")


@router.get("/health")
async def signup_health():
    return {
        "success": True,
        "message": "Signup service is running",
        "timestamp": datetime.utcnow().isoformat(),
    }


@router.post("/clear-rate-limit")
async def clear_rate_limit():
    cleared = reset_all_limiters()
    print(f"⚠️  Rate limits cleared ({cleared} limiters)")
    return {"success": True, "message": "Rate limits cleared"}
