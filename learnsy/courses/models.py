from enum import Enum
from typing import Any, List, Optional, Union

from pydantic import BaseModel, Field, validator

# ==================== ENUMS ====================

class CourseLevel(str, Enum):
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"

class LessonType(str, Enum):
    VIDEO = "video"
    TEXT = "text"
    QUIZ = "quiz"
    ASSIGNMENT = "assignment"

class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "multiple-choice"
    TRUE_FALSE = "true-false"
    SHORT_ANSWER = "short-answer"

# ==================== COURSE MODELS ====================

class LessonIn(BaseModel):
    title: str
    description: Optional[str] = None
    duration: Optional[str] = None
    type: LessonType = LessonType.VIDEO
    content: Optional[str] = None
    order: Optional[int] = None

class ModuleIn(BaseModel):
    title: str
    description: Optional[str] = None
    duration: Optional[str] = None
    order: Optional[int] = None
    lessons: List[LessonIn] = []

class CourseCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=1000)
    category: str = "General"
    level: CourseLevel = CourseLevel.BEGINNER
    duration: Optional[str] = None
    price: float = Field(0, ge=0)
    thumbnail: Optional[str] = None
    # Either explicit modules or a count of placeholder modules to generate
    modules: Union[int, List[ModuleIn]] = []
    tags: List[str] = []
    prerequisites: List[str] = []
    learning_outcomes: List[str] = []
    is_published: bool = False

    @validator("modules")
    def validate_module_count(cls, v):
        if isinstance(v, int) and not 0 <= v <= 100:
            raise ValueError("Module count must be between 0 and 100")
        return v

class CourseUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, min_length=1, max_length=1000)
    category: Optional[str] = None
    level: Optional[CourseLevel] = None
    duration: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    thumbnail: Optional[str] = None
    modules: Optional[Union[int, List[ModuleIn]]] = None
    tags: Optional[List[str]] = None
    prerequisites: Optional[List[str]] = None
    learning_outcomes: Optional[List[str]] = None
    is_published: Optional[bool] = None

# ==================== QUIZ MODELS ====================

class QuestionIn(BaseModel):
    question: str
    type: QuestionType = QuestionType.MULTIPLE_CHOICE
    options: List[str] = []
    correct_answer: str
    explanation: Optional[str] = None
    points: int = Field(1, ge=0)
    order: Optional[int] = None

class QuizCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    course_id: str
    material_id: Optional[str] = None
    questions: List[QuestionIn] = Field(..., min_length=1)
    time_limit: int = Field(30, ge=1)
    passing_score: int = Field(70, ge=0, le=100)
    max_attempts: int = Field(3, ge=1)
    is_published: bool = True
    order: int = 0

class QuizSubmission(BaseModel):
    # One answer per question, in question order
    answers: List[Any]
