from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class MaterialType(str, Enum):
    VIDEO = "video"
    TEXT = "text"
    PDF = "pdf"
    IMAGE = "image"
    LINK = "link"
    QUIZ = "quiz"
    ASSIGNMENT = "assignment"


# Types counted against the subscription document limit
DOCUMENT_TYPES = {MaterialType.PDF.value, MaterialType.TEXT.value}

ALLOWED_MATERIAL_EXTENSIONS = {
    ".jpeg", ".jpg", ".png", ".gif", ".pdf", ".doc", ".docx",
    ".ppt", ".pptx", ".mp4", ".avi", ".mov", ".txt", ".zip",
}


class MaterialUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    type: Optional[MaterialType] = None
    content: Optional[str] = None
    url: Optional[str] = None
    duration: Optional[str] = None
    order: Optional[int] = Field(None, ge=0)
    module_id: Optional[str] = None
    is_published: Optional[bool] = None


class CompletionRequest(BaseModel):
    completed: bool = True


class RatingRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)
