from datetime import datetime

from fastapi import APIRouter, HTTPException, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnsy.core.audit import log_audit
from learnsy.core.database import get_db, generate_id, serialize_doc, serialize_many, transaction
from learnsy.core.dependencies import UserContext, get_current_user, get_current_faculty, get_current_student
from learnsy.courses.course_router import verify_course_owner
from learnsy.courses.database import get_course, create_quiz, calculate_score, public_quiz
from learnsy.courses.models import QuizCreate, QuizSubmission
from learnsy.enrollments.service import require_enrollment
from learnsy.progress.service import ensure_progress, apply_study_activity

router = APIRouter(prefix="/api/quizzes", tags=["Quizzes"])


@router.post("", status_code=201)
async def post_quiz(
    payload: QuizCreate,
    user: UserContext = Depends(get_current_faculty),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await verify_course_owner(db, payload.course_id, user)

    if payload.material_id:
        material = await db.materials.find_one(
            {"material_id": payload.material_id, "course_id": payload.course_id}
        )
        if not material:
            raise HTTPException(status_code=404, detail="Material not found in this course")

    quiz = await create_quiz(db, payload.dict(), user.user_id)
    await log_audit(db, user, "create_quiz", "quiz", quiz["quiz_id"],
                    {"course_id": payload.course_id, "questions": len(quiz["questions"])})
    return {"success": True, "message": "Quiz created successfully", "quiz": serialize_doc(quiz)}


@router.get("/course/{course_id}")
async def get_course_quizzes(
    course_id: str,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    course = await get_course(db, course_id)
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")

    if user.is_faculty and course["faculty_id"] == user.user_id:
        quizzes = await db.quizzes.find({"course_id": course_id}).sort("order", 1).to_list(length=200)
        return {"success": True, "quizzes": serialize_many(quizzes)}

    quizzes = await db.quizzes.find(
        {"course_id": course_id, "is_published": True}
    ).sort("order", 1).to_list(length=200)
    return {"success": True, "quizzes": [public_quiz(q) for q in quizzes]}


@router.post("/{quiz_id}/submit")
async def submit_quiz(
    quiz_id: str,
    payload: QuizSubmission,
    user: UserContext = Depends(get_current_student),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    quiz = await db.quizzes.find_one({"quiz_id": quiz_id, "is_published": True})
    if not quiz:
        raise HTTPException(status_code=404, detail="Quiz not found")

    enrollment = await require_enrollment(db, user.user_id, quiz["course_id"])

    attempts = await db.quiz_attempts.count_documents(
        {"quiz_id": quiz_id, "student_id": user.user_id}
    )
    if attempts >= quiz.get("max_attempts", 3):
        raise HTTPException(status_code=400, detail="Maximum attempts reached")

    result = calculate_score(quiz.get("questions", []), payload.answers)
    passed = result["percentage"] >= quiz.get("passing_score", 70)

    total_attempts = (quiz.get("total_attempts") or 0) + 1
    average = ((quiz.get("average_score") or 0) * (total_attempts - 1) + result["percentage"]) / total_attempts

    attempt = {
        "attempt_id": generate_id("ATT"),
        "quiz_id": quiz_id,
        "course_id": quiz["course_id"],
        "student_id": user.user_id,
        "answers": payload.answers,
        **result,
        "passed": passed,
        "attempt_number": attempts + 1,
        "submitted_at": datetime.utcnow(),
    }

    async with transaction(db) as session:
        await db.quiz_attempts.insert_one(attempt, session=session)
        await db.quizzes.update_one(
            {"quiz_id": quiz_id},
            {"$set": {"total_attempts": total_attempts, "average_score": round(average, 1)}},
            session=session
        )
        progress = await ensure_progress(
            db, user.user_id, quiz["course_id"], enrollment["enrollment_id"], session=session
        )
        await apply_study_activity(db, progress, quiz_passed=passed, session=session)

    return {
        "success": True,
        "message": "Quiz passed" if passed else "Quiz not passed",
        "result": {
            **result,
            "passed": passed,
            "passing_score": quiz.get("passing_score", 70),
            "attempt_number": attempts + 1,
            "attempts_remaining": max(quiz.get("max_attempts", 3) - attempts - 1, 0),
        },
    }
