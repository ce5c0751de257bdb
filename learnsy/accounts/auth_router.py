from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnsy.accounts.models import LoginRequest
from learnsy.accounts.service import authenticate, auth_response, safe_user
from learnsy.core.config import settings
from learnsy.core.database import get_db
from learnsy.core.dependencies import UserContext, get_current_user
from learnsy.core.rate_limit import create_limiter

router = APIRouter(prefix="/api/auth", tags=["Auth"])

login_limiter = create_limiter(settings.LOGIN_RATE_LIMIT, settings.RATE_LIMIT_WINDOW)


@router.post("/student/login", dependencies=[Depends(login_limiter)])
async def student_login(payload: LoginRequest, db: AsyncIOMotorDatabase = Depends(get_db)):
    user = await authenticate(db, "student", payload.email, payload.password)
    return auth_response(user, "Login successful")


@router.post("/faculty/login", dependencies=[Depends(login_limiter)])
async def faculty_login(payload: LoginRequest, db: AsyncIOMotorDatabase = Depends(get_db)):
    user = await authenticate(db, "faculty", payload.email, payload.password, payload.institution)
    return auth_response(user, "Login successful")


# Legacy paths kept for older clients
router.add_api_route(
    "/login/student", student_login, methods=["POST"], dependencies=[Depends(login_limiter)]
)
router.add_api_route(
    "/login/faculty", faculty_login, methods=["POST"], dependencies=[Depends(login_limiter)]
)


@router.get("/profile")
async def profile(user: UserContext = Depends(get_current_user)):
    return {"success": True, "user": safe_user(user.profile)}
