from typing import Optional

from fastapi import Depends, Header, HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnsy.core.database import get_db
from learnsy.core.security import decode_access_token


class UserContext:
    """
    Authenticated user resolved from the bearer token
    """
    def __init__(self, user_id: str, profile: dict):
        self.user_id = user_id
        self.role = profile.get("role")
        self.email = profile.get("email")
        self.name = profile.get("name")
        self.student_id = profile.get("student_id")
        self.institution = profile.get("institution")
        self.profile = profile

    @property
    def is_student(self) -> bool:
        return self.role == "student"

    @property
    def is_faculty(self) -> bool:
        return self.role == "faculty"


def _extract_bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization.split(" ", 1)[1].strip()
    return token or None


async def get_current_user(
    authorization: Optional[str] = Header(None),
    db: AsyncIOMotorDatabase = Depends(get_db)
) -> UserContext:
    """
    Dependency: decode the bearer token and load the user

    Raises:
        401: Missing token, invalid token or inactive user
    """
    token = _extract_bearer(authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized")

    payload = decode_access_token(token)
    user_id = payload["sub"]

    profile = await db.users.find_one({"user_id": user_id})
    if not profile or not profile.get("is_active", True):
        raise HTTPException(status_code=401, detail="User not found or inactive")

    return UserContext(user_id, profile)


def require_roles(*roles: str):
    """Dependency factory: allow only the given roles (403 otherwise)"""
    async def checker(user: UserContext = Depends(get_current_user)) -> UserContext:
        if roles and user.role not in roles:
            raise HTTPException(status_code=403, detail="Forbidden")
        return user
    return checker


get_current_student = require_roles("student")
get_current_faculty = require_roles("faculty")
