"""
Progress rules: percentages, streaks, study calendar and achievements.

Pure functions over plain dicts so they can be used by any service that
mutates a progress document (enrollments, materials, study sessions).
"""
from datetime import date, datetime
from typing import List, Optional


def progress_percentage(completed, total) -> int:
    """Completed share as an integer percentage, capped at 100"""
    if not total or total <= 0:
        return 0
    return min(round((completed or 0) / total * 100), 100)


def day_start(value) -> datetime:
    """Midnight of the given date/datetime (Mongo stores datetimes only)"""
    if isinstance(value, datetime):
        value = value.date()
    return datetime(value.year, value.month, value.day)


def _as_date(value) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    return value


def empty_streak() -> dict:
    return {"current": 0, "longest": 0, "last_study_date": None}


def update_streak(streak: Optional[dict], today) -> dict:
    """
    Advance a study streak for activity on ``today``.

    Consecutive calendar days extend the streak, a gap resets it to 1 and
    a second activity on the same day leaves it unchanged.
    """
    streak = dict(streak or empty_streak())
    today_date = _as_date(today)
    last = _as_date(streak.get("last_study_date"))
    current = streak.get("current") or 0

    if last is None:
        current = 1
    else:
        gap = (today_date - last).days
        if gap == 1:
            current += 1
        elif gap > 1:
            current = 1

    streak["current"] = current
    streak["longest"] = max(streak.get("longest") or 0, current)
    streak["last_study_date"] = day_start(today_date)
    return streak


def record_study_day(calendar: Optional[list], day, minutes: int = 0, lessons: int = 0) -> list:
    """Merge minutes/lessons into the calendar entry for ``day``"""
    calendar = [dict(entry) for entry in (calendar or [])]
    key = day_start(day)

    for entry in calendar:
        if day_start(entry["date"]) == key:
            entry["minutes"] = (entry.get("minutes") or 0) + (minutes or 0)
            entry["lessons_completed"] = (entry.get("lessons_completed") or 0) + (lessons or 0)
            return calendar

    calendar.append({"date": key, "minutes": minutes or 0, "lessons_completed": lessons or 0})
    return calendar


def avg_study_time(calendar: Optional[list]) -> int:
    if not calendar:
        return 0
    total = sum(entry.get("minutes") or 0 for entry in calendar)
    return round(total / len(calendar))


# ==================== ACHIEVEMENTS ====================

ACHIEVEMENTS = [
    {
        "type": "first_lesson",
        "title": "First Steps",
        "description": "Complete your first lesson",
        "icon": "🎯",
    },
    {
        "type": "week_warrior",
        "title": "Week Warrior",
        "description": "Study for 7 consecutive days",
        "icon": "🔥",
    },
    {
        "type": "quiz_master",
        "title": "Quiz Master",
        "description": "Pass 5 quizzes",
        "icon": "🧠",
    },
    {
        "type": "course_completer",
        "title": "Course Completer",
        "description": "Complete your first course",
        "icon": "🏆",
    },
    {
        "type": "study_marathon",
        "title": "Study Marathon",
        "description": "Study for 100 hours total",
        "icon": "⏱️",
    },
]


def achievement_met(kind: str, progress: dict) -> bool:
    lessons = progress.get("lessons_completed") or 0
    streak = (progress.get("streak") or {}).get("current") or 0
    percentage = progress_percentage(lessons, progress.get("total_lessons") or 0)

    if kind == "first_lesson":
        return lessons >= 1
    if kind == "week_warrior":
        return streak >= 7
    if kind == "quiz_master":
        return (progress.get("quizzes_passed") or 0) >= 5
    if kind == "course_completer":
        return percentage >= 100
    if kind == "study_marathon":
        return (progress.get("total_study_time") or 0) >= 6000
    return False


def evaluate_achievements(progress_records: List[dict]) -> List[str]:
    """Achievement types met by any of the student's progress records"""
    return [
        a["type"] for a in ACHIEVEMENTS
        if any(achievement_met(a["type"], p) for p in progress_records)
    ]
