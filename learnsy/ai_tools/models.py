from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class FileType(str, Enum):
    VIDEO = "video"
    PDF = "pdf"
    PPT = "ppt"


class ProcessingStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


EXTENSIONS_BY_TYPE = {
    FileType.VIDEO: (".mp4", ".avi", ".mov", ".wmv", ".flv", ".webm"),
    FileType.PDF: (".pdf",),
    FileType.PPT: (".ppt", ".pptx", ".pps", ".ppsx"),
}

ALLOWED_AI_EXTENSIONS = {ext for exts in EXTENSIONS_BY_TYPE.values() for ext in exts}


class AISummary(BaseModel):
    summary_id: str
    student_id: str
    file_name: str
    original_file_name: str
    file_type: FileType
    file_size: int
    file_url: str
    summary: Optional[str] = None
    key_points: List[str] = []
    duration: Optional[str] = None
    page_count: Optional[int] = None
    slide_count: Optional[int] = None
    processing_status: ProcessingStatus = ProcessingStatus.PROCESSING
    processing_error: Optional[str] = None
    tags: List[str] = []
    is_public: bool = False
    download_count: int = 0
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        use_enum_values = True
