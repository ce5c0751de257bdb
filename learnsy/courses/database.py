from datetime import datetime
from typing import List, Optional, Union

from motor.motor_asyncio import AsyncIOMotorDatabase

from learnsy.core.database import generate_id, transaction

# ==================== MODULE BUILDING ====================

def placeholder_modules(count: int) -> List[dict]:
    """Generate ``count`` empty modules named Module 1..N"""
    return [
        {
            "title": f"Module {i}",
            "description": f"Description for Module {i}",
            "duration": "1 hour",
            "order": i,
            "lessons": [],
        }
        for i in range(1, count + 1)
    ]


def build_modules(modules: Union[int, list, None]) -> List[dict]:
    """Normalise module input and assign ids/order to modules and lessons"""
    if modules is None:
        return []
    if isinstance(modules, int):
        modules = placeholder_modules(modules)

    built = []
    for m_index, module in enumerate(modules, start=1):
        module = dict(module)
        lessons = []
        for l_index, lesson in enumerate(module.get("lessons") or [], start=1):
            lesson = dict(lesson)
            lesson["lesson_id"] = lesson.get("lesson_id") or generate_id("LSN")
            lesson["order"] = lesson.get("order") or l_index
            lessons.append(lesson)
        module["module_id"] = module.get("module_id") or generate_id("MOD")
        module["order"] = module.get("order") or m_index
        module["lessons"] = lessons
        built.append(module)
    return built


def count_lessons(modules: List[dict]) -> int:
    return sum(len(m.get("lessons") or []) for m in modules)


# ==================== COURSE CRUD ====================

async def create_course(db: AsyncIOMotorDatabase, course_data: dict, faculty_id: str) -> dict:
    """Create a course owned by ``faculty_id`` and bump the owner's upload count"""
    now = datetime.utcnow()
    modules = build_modules(course_data.get("modules"))

    course = {
        "course_id": generate_id("CRS"),
        "title": course_data["title"],
        "description": course_data["description"],
        "category": course_data.get("category") or "General",
        "level": course_data.get("level") or "Beginner",
        "duration": course_data.get("duration"),
        "price": course_data.get("price") or 0,
        "thumbnail": course_data.get("thumbnail"),
        "modules": modules,
        "total_lessons": count_lessons(modules),
        "faculty_id": faculty_id,
        "enrolled_students": [],
        "is_published": bool(course_data.get("is_published", False)),
        "enrollment_count": 0,
        "rating": 0,
        "total_ratings": 0,
        "tags": course_data.get("tags", []),
        "prerequisites": course_data.get("prerequisites", []),
        "learning_outcomes": course_data.get("learning_outcomes", []),
        "created_at": now,
        "updated_at": now,
    }

    await db.courses.insert_one(course)
    await db.users.update_one({"user_id": faculty_id}, {"$inc": {"courses_uploaded": 1}})
    return course


async def get_course(db: AsyncIOMotorDatabase, course_id: str) -> Optional[dict]:
    """Get course by ID"""
    return await db.courses.find_one({"course_id": course_id})


async def get_owned_course(db: AsyncIOMotorDatabase, course_id: str, faculty_id: str) -> Optional[dict]:
    return await db.courses.find_one({"course_id": course_id, "faculty_id": faculty_id})


async def list_courses(db: AsyncIOMotorDatabase, filters: dict, skip: int = 0, limit: int = 100) -> List[dict]:
    cursor = db.courses.find(filters).sort("created_at", -1).skip(skip).limit(limit)
    return await cursor.to_list(length=limit)


async def update_course(db: AsyncIOMotorDatabase, course_id: str, updates: dict) -> Optional[dict]:
    if "modules" in updates:
        updates["modules"] = build_modules(updates["modules"])
        updates["total_lessons"] = count_lessons(updates["modules"])
    updates["updated_at"] = datetime.utcnow()

    await db.courses.update_one({"course_id": course_id}, {"$set": updates})
    return await get_course(db, course_id)


async def set_published(db: AsyncIOMotorDatabase, course_id: str, is_published: bool):
    await db.courses.update_one(
        {"course_id": course_id},
        {"$set": {"is_published": is_published, "updated_at": datetime.utcnow()}}
    )


async def delete_course(db: AsyncIOMotorDatabase, course: dict):
    """Remove a course together with its materials, quizzes and completion markers"""
    course_id = course["course_id"]
    async with transaction(db) as session:
        await db.material_completions.delete_many({"course_id": course_id}, session=session)
        await db.materials.delete_many({"course_id": course_id}, session=session)
        await db.quizzes.delete_many({"course_id": course_id}, session=session)
        await db.courses.delete_one({"course_id": course_id}, session=session)
        await db.users.update_one(
            {"user_id": course["faculty_id"], "courses_uploaded": {"$gt": 0}},
            {"$inc": {"courses_uploaded": -1}},
            session=session
        )


# ==================== QUIZZES ====================

def calculate_score(questions: List[dict], answers: list) -> dict:
    """
    Score a quiz attempt

    Returns:
        {"score": earned points, "total_points": available points, "percentage": int}
    """
    score = 0
    total_points = 0

    for index, question in enumerate(questions):
        points = question.get("points", 1)
        total_points += points
        if index >= len(answers) or answers[index] is None:
            continue

        given = str(answers[index])
        expected = str(question.get("correct_answer", ""))
        if question.get("type") == "short-answer":
            correct = given.strip().lower() == expected.strip().lower()
        else:
            correct = given == expected
        if correct:
            score += points

    percentage = round(score / total_points * 100) if total_points > 0 else 0
    return {"score": score, "total_points": total_points, "percentage": percentage}


async def create_quiz(db: AsyncIOMotorDatabase, quiz_data: dict, faculty_id: str) -> dict:
    questions = []
    for index, question in enumerate(quiz_data["questions"], start=1):
        question = dict(question)
        question["order"] = question.get("order") or index
        questions.append(question)

    quiz = {
        **quiz_data,
        "quiz_id": generate_id("QUIZ"),
        "questions": questions,
        "faculty_id": faculty_id,
        "total_attempts": 0,
        "average_score": 0,
        "completion_rate": 0,
        "created_at": datetime.utcnow(),
        "updated_at": datetime.utcnow(),
    }
    await db.quizzes.insert_one(quiz)
    return quiz


def public_quiz(quiz: dict) -> dict:
    """Quiz view for students: no answers or explanations"""
    quiz = dict(quiz)
    quiz.pop("_id", None)
    quiz["questions"] = [
        {k: v for k, v in q.items() if k not in ("correct_answer", "explanation")}
        for q in quiz.get("questions", [])
    ]
    return quiz


# ==================== INDEXES ====================

async def create_course_indexes(db: AsyncIOMotorDatabase):
    await db.courses.create_index("course_id", unique=True)
    await db.courses.create_index([("faculty_id", 1), ("created_at", -1)])
    await db.courses.create_index([("is_published", 1), ("category", 1), ("level", 1)])

    await db.quizzes.create_index("quiz_id", unique=True)
    await db.quizzes.create_index([("course_id", 1), ("order", 1)])
    await db.quiz_attempts.create_index([("quiz_id", 1), ("student_id", 1)])

    await db.audit_logs.create_index([("actor_user_id", 1), ("timestamp", -1)])
    print("✅ Course indexes created")
