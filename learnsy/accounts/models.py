import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel, EmailStr, validator

NAME_RE = re.compile(r"^[a-zA-Z\s]+$")
STUDENT_ID_RE = re.compile(r"^[a-zA-Z0-9\-_]+$")
DEPARTMENT_RE = re.compile(r"^[a-zA-Z\s&\-]+$")
INSTITUTION_RE = re.compile(r"^[a-zA-Z0-9\s.,&\-]+$")


class UserRole(str, Enum):
    STUDENT = "student"
    FACULTY = "faculty"


# ==================== FIELD VALIDATORS ====================

def _check_name(v: str) -> str:
    v = v.strip()
    if not 2 <= len(v) <= 100:
        raise ValueError("Name must be between 2 and 100 characters")
    if not NAME_RE.match(v):
        raise ValueError("Name can only contain letters and spaces")
    return v


def _check_password(v: str) -> str:
    if not 6 <= len(v) <= 128:
        raise ValueError("Password must be between 6 and 128 characters")
    if not (re.search(r"[a-z]", v) and re.search(r"[A-Z]", v) and re.search(r"\d", v)):
        raise ValueError(
            "Password must contain at least one lowercase letter, one uppercase letter, and one number"
        )
    return v


def _check_student_id(v: str) -> str:
    v = v.strip()
    if not 1 <= len(v) <= 50:
        raise ValueError("Student ID must be between 1 and 50 characters")
    if not STUDENT_ID_RE.match(v):
        raise ValueError("Student ID can only contain letters, numbers, hyphens, and underscores")
    return v


def _check_department(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip()
    if len(v) > 100:
        raise ValueError("Department name cannot exceed 100 characters")
    if v and not DEPARTMENT_RE.match(v):
        raise ValueError("Department name can only contain letters, spaces, ampersands, and hyphens")
    return v or None


def _check_institution(v: str) -> str:
    v = v.strip()
    if not 2 <= len(v) <= 200:
        raise ValueError("Institution name must be between 2 and 200 characters")
    if not INSTITUTION_RE.match(v):
        raise ValueError("Institution name contains invalid characters")
    return v


# ==================== REQUEST MODELS ====================

class StudentRegister(BaseModel):
    name: str
    email: EmailStr
    password: str
    student_id: str
    department: Optional[str] = None

    @validator("name")
    def validate_name(cls, v):
        return _check_name(v)

    @validator("password")
    def validate_password(cls, v):
        return _check_password(v)

    @validator("student_id")
    def validate_student_id(cls, v):
        return _check_student_id(v)

    @validator("department")
    def validate_department(cls, v):
        return _check_department(v)


class FacultyRegister(BaseModel):
    name: str
    email: EmailStr
    password: str
    institution: str
    department: Optional[str] = None

    @validator("name")
    def validate_name(cls, v):
        return _check_name(v)

    @validator("password")
    def validate_password(cls, v):
        return _check_password(v)

    @validator("institution")
    def validate_institution(cls, v):
        return _check_institution(v)

    @validator("department")
    def validate_department(cls, v):
        return _check_department(v)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str
    institution: Optional[str] = None


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    department: Optional[str] = None
    institution: Optional[str] = None
    student_id: Optional[str] = None

    @validator("name")
    def validate_name(cls, v):
        return _check_name(v) if v is not None else v

    @validator("department")
    def validate_department(cls, v):
        return _check_department(v)

    @validator("institution")
    def validate_institution(cls, v):
        return _check_institution(v) if v is not None else v

    @validator("student_id")
    def validate_student_id(cls, v):
        return _check_student_id(v) if v is not None else v
