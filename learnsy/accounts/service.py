from datetime import datetime
from typing import Optional

from fastapi import HTTPException, Request
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from learnsy.core.database import generate_id
from learnsy.core.security import (
    hash_password, verify_password, create_access_token, generate_verification_token
)

# Never leave the server
PRIVATE_FIELDS = ("_id", "password_hash", "email_verification_token")


def safe_user(user: dict) -> dict:
    return {k: v for k, v in user.items() if k not in PRIVATE_FIELDS}


def _client_meta(request: Optional[Request]) -> dict:
    if request is None:
        return {"ip_address": None, "user_agent": None}
    return {
        "ip_address": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
    }


# ==================== REGISTRATION ====================

async def register_user(
    db: AsyncIOMotorDatabase,
    role: str,
    data: dict,
    request: Optional[Request] = None
) -> dict:
    """
    Create a student or faculty account

    Raises:
        400: Email or student ID already registered
    """
    email = data["email"].lower()

    if await db.users.find_one({"email": email}):
        raise HTTPException(status_code=400, detail="User already exists with this email")

    student_id = data.get("student_id")
    if role == "student" and student_id:
        if await db.users.find_one({"student_id": student_id}):
            raise HTTPException(status_code=400, detail="Student ID already exists")

    now = datetime.utcnow()
    user = {
        "user_id": generate_id("USR"),
        "name": data["name"],
        "email": email,
        "password_hash": hash_password(data["password"]),
        "role": role,
        "student_id": student_id if role == "student" else None,
        "institution": data.get("institution") if role == "faculty" else None,
        "department": data.get("department"),
        "is_active": True,
        "is_email_verified": False,
        "email_verification_token": generate_verification_token(),
        "last_login": None,
        "signup_source": "web",
        **_client_meta(request),
        "enrolled_courses": [],
        "subscription_plan": "free",
        "courses_uploaded": 0,
        "total_students": 0,
        "created_at": now,
        "updated_at": now,
    }

    try:
        await db.users.insert_one(user)
    except DuplicateKeyError:
        # a concurrent signup won the unique index
        if await db.users.find_one({"email": email}):
            raise HTTPException(status_code=400, detail="User already exists with this email")
        raise HTTPException(status_code=400, detail="Student ID already exists")

    print(f"✅ Registered {role} {email}")
    return user


# ==================== LOGIN ====================

async def authenticate(
    db: AsyncIOMotorDatabase,
    role: str,
    email: str,
    password: str,
    institution: Optional[str] = None
) -> dict:
    """
    Check credentials for the given role and stamp last_login

    Raises:
        400: Invalid credentials
    """
    query = {"email": email.lower(), "role": role, "is_active": True}
    if role == "faculty" and institution:
        query["institution"] = institution

    user = await db.users.find_one(query)
    if not user or not verify_password(password, user.get("password_hash")):
        raise HTTPException(status_code=400, detail="Invalid credentials")

    now = datetime.utcnow()
    await db.users.update_one({"user_id": user["user_id"]}, {"$set": {"last_login": now}})
    user["last_login"] = now
    return user


def auth_response(user: dict, message: str) -> dict:
    token = create_access_token(user["user_id"], user["role"], user["email"])
    return {
        "success": True,
        "message": message,
        "token": token,
        "user": safe_user(user),
    }


# ==================== PROFILE ====================

async def update_profile(db: AsyncIOMotorDatabase, user: dict, updates: dict) -> dict:
    """
    Apply profile changes. Only students carry a student_id.

    Raises:
        400: Student ID taken by another account
    """
    allowed = {"name", "department", "institution"}
    if user.get("role") == "student":
        allowed.add("student_id")

    changes = {k: v for k, v in updates.items() if k in allowed and v is not None}

    new_student_id = changes.get("student_id")
    if new_student_id and new_student_id != user.get("student_id"):
        taken = await db.users.find_one({
            "student_id": new_student_id,
            "user_id": {"$ne": user["user_id"]}
        })
        if taken:
            raise HTTPException(status_code=400, detail="Student ID already exists")

    if changes:
        changes["updated_at"] = datetime.utcnow()
        await db.users.update_one({"user_id": user["user_id"]}, {"$set": changes})

    return await db.users.find_one({"user_id": user["user_id"]})


async def verify_email(db: AsyncIOMotorDatabase, token: str) -> dict:
    user = await db.users.find_one({"email_verification_token": token})
    if not user:
        raise HTTPException(status_code=400, detail="Invalid or expired verification token")

    await db.users.update_one(
        {"user_id": user["user_id"]},
        {"$set": {"is_email_verified": True, "email_verification_token": None,
                  "updated_at": datetime.utcnow()}}
    )
    user["is_email_verified"] = True
    return user


async def get_user_stats(db: AsyncIOMotorDatabase) -> dict:
    total = await db.users.count_documents({})
    active = await db.users.count_documents({"is_active": True})
    verified = await db.users.count_documents({"is_email_verified": True})
    students = await db.users.count_documents({"role": "student"})
    faculty = await db.users.count_documents({"role": "faculty"})
    return {
        "total_users": total,
        "active_users": active,
        "verified_users": verified,
        "by_role": {"student": students, "faculty": faculty},
    }


async def create_user_indexes(db: AsyncIOMotorDatabase):
    await db.users.create_index("user_id", unique=True)
    await db.users.create_index("email", unique=True)
    await db.users.create_index(
        "student_id", unique=True,
        partialFilterExpression={"student_id": {"$type": "string"}}
    )
    await db.users.create_index("email_verification_token", sparse=True)
    await db.users.create_index([("role", 1), ("is_active", 1)])
    print("✅ User indexes created")
