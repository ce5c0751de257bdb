"""
Mock AI summary generation.

Nothing is actually analysed: each file type waits a fixed processing
delay (scaled by AI_PROCESSING_DELAY_SCALE) and returns a canned summary
built around the topic taken from the file name.
"""
import asyncio
import os
import random
from datetime import datetime
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from learnsy.ai_tools.models import FileType, ProcessingStatus, EXTENSIONS_BY_TYPE
from learnsy.core.config import settings
from learnsy.core.uploads import file_extension

PROCESSING_DELAYS = {
    FileType.VIDEO: 3.0,
    FileType.PDF: 2.0,
    FileType.PPT: 2.5,
}


def detect_file_type(filename: str) -> Optional[FileType]:
    ext = file_extension(filename)
    for file_type, extensions in EXTENSIONS_BY_TYPE.items():
        if ext in extensions:
            return file_type
    return None


def topic_from_filename(filename: str) -> str:
    stem = os.path.splitext(os.path.basename(filename or ""))[0]
    return stem.replace("-", " ").replace("_", " ").lower()


def _video_summary(topic: str) -> dict:
    return {
        "summary": (
            f"This video covers the fundamentals of {topic}. The content is split into "
            "sections that build on each other, with clear explanations and practical "
            "examples for the harder concepts."
        ),
        "key_points": [
            "Introduction to core concepts and terminology",
            "Step-by-step demonstration of key processes",
            "Common challenges and how to overcome them",
            "Best practices and recommendations",
            "Summary and next steps for further learning",
        ],
        "duration": "15:30",
        "tags": ["tutorial", "beginner", "practical"],
    }


def _pdf_summary(topic: str) -> dict:
    return {
        "summary": (
            f"This document gives an overview of {topic}. It is organised under clear "
            "headings and moves from theoretical foundations to practical applications."
        ),
        "key_points": [
            "Executive summary of main topics",
            "Detailed analysis of key concepts",
            "Supporting data and statistics",
            "Implementation guidelines",
            "Conclusion and recommendations",
        ],
        "page_count": random.randint(5, 24),
        "tags": ["documentation", "reference", "comprehensive"],
    }


def _ppt_summary(topic: str) -> dict:
    return {
        "summary": (
            f"This presentation gives a structured overview of {topic}. The slides follow "
            "a logical flow from introduction to conclusion with concise bullet points."
        ),
        "key_points": [
            "Title slide with main topic introduction",
            "Agenda and learning objectives",
            "Core content with supporting visuals",
            "Key takeaways and summary",
            "Q&A and next steps",
        ],
        "slide_count": random.randint(10, 39),
        "tags": ["presentation", "visual", "structured"],
    }


GENERATORS = {
    FileType.VIDEO: _video_summary,
    FileType.PDF: _pdf_summary,
    FileType.PPT: _ppt_summary,
}


async def generate_summary(file_type: FileType, original_file_name: str) -> dict:
    file_type = FileType(file_type)
    await asyncio.sleep(PROCESSING_DELAYS[file_type] * settings.AI_PROCESSING_DELAY_SCALE)
    return GENERATORS[file_type](topic_from_filename(original_file_name))


async def process_summary(db: AsyncIOMotorDatabase, summary_id: str):
    """
    Background job: fill in the summary fields, or mark the record failed
    """
    try:
        record = await db.ai_summaries.find_one({"summary_id": summary_id})
        if not record:
            raise ValueError("AI summary not found")

        result = await generate_summary(record["file_type"], record["original_file_name"])
        await db.ai_summaries.update_one(
            {"summary_id": summary_id},
            {"$set": {
                **result,
                "processing_status": ProcessingStatus.COMPLETED.value,
                "updated_at": datetime.utcnow(),
            }}
        )
        print(f"✅ AI summary {summary_id} completed")
    except Exception as e:
        print(f"❌ AI summary {summary_id} failed: {e}")
        await db.ai_summaries.update_one(
            {"summary_id": summary_id},
            {"$set": {
                "processing_status": ProcessingStatus.FAILED.value,
                "processing_error": str(e),
                "updated_at": datetime.utcnow(),
            }}
        )


async def summary_stats(db: AsyncIOMotorDatabase, student_id: str) -> dict:
    by_type = await db.ai_summaries.aggregate([
        {"$match": {"student_id": student_id}},
        {"$group": {
            "_id": "$file_type",
            "count": {"$sum": 1},
            "total_size": {"$sum": "$file_size"},
            "completed": {"$sum": {"$cond": [{"$eq": ["$processing_status", "completed"]}, 1, 0]}},
        }},
        {"$sort": {"_id": 1}},
    ]).to_list(length=10)

    total = await db.ai_summaries.count_documents({"student_id": student_id})
    completed = await db.ai_summaries.count_documents(
        {"student_id": student_id, "processing_status": ProcessingStatus.COMPLETED.value}
    )

    return {
        "total_summaries": total,
        "completed_summaries": completed,
        "by_type": [
            {"file_type": s["_id"], "count": s["count"],
             "total_size": s["total_size"], "completed": s["completed"]}
            for s in by_type
        ],
        "completion_rate": round(completed / total * 100, 1) if total else 0,
    }


async def create_ai_indexes(db: AsyncIOMotorDatabase):
    await db.ai_summaries.create_index("summary_id", unique=True)
    await db.ai_summaries.create_index([("student_id", 1), ("created_at", -1)])
    await db.ai_summaries.create_index([("student_id", 1), ("file_type", 1), ("processing_status", 1)])
    print("✅ AI summary indexes created")
