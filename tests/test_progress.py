from datetime import datetime, timedelta

from conftest import enroll

from learnsy.progress.rules import (
    achievement_met, avg_study_time, evaluate_achievements, progress_percentage,
    record_study_day, update_streak
)
from learnsy.progress.time_formatter import (
    avg_study_time_per_day, avg_study_time_per_session, format_study_time,
    minutes_to_hours, study_time_breakdown
)


# ==================== RULES ====================

def test_progress_percentage_is_capped():
    assert progress_percentage(0, 0) == 0
    assert progress_percentage(5, None) == 0
    assert progress_percentage(1, 3) == 33
    assert progress_percentage(2, 3) == 67
    assert progress_percentage(12, 10) == 100


def test_streak_starts_extends_and_resets():
    monday = datetime(2024, 1, 1, 9, 30)
    streak = update_streak(None, monday)
    assert streak["current"] == 1
    assert streak["last_study_date"] == datetime(2024, 1, 1)

    same_day = update_streak(streak, monday + timedelta(hours=10))
    assert same_day["current"] == 1

    tuesday = update_streak(streak, datetime(2024, 1, 2, 23, 59))
    assert tuesday["current"] == 2
    assert tuesday["longest"] == 2

    after_gap = update_streak(tuesday, datetime(2024, 1, 5, 8, 0))
    assert after_gap["current"] == 1
    assert after_gap["longest"] == 2


def test_streak_uses_calendar_days():
    late = datetime(2024, 3, 10, 23, 50)
    early = datetime(2024, 3, 11, 0, 10)
    assert update_streak(update_streak(None, late), early)["current"] == 2


def test_record_study_day_merges_entries():
    day = datetime(2024, 5, 1, 10)
    calendar = record_study_day(None, day, 30, 1)
    calendar = record_study_day(calendar, day + timedelta(hours=3), 15, 0)
    calendar = record_study_day(calendar, day + timedelta(days=1), 45, 2)

    assert len(calendar) == 2
    assert calendar[0] == {"date": datetime(2024, 5, 1), "minutes": 45, "lessons_completed": 1}
    assert avg_study_time(calendar) == 45
    assert avg_study_time([]) == 0


def test_achievements():
    assert achievement_met("first_lesson", {"lessons_completed": 1})
    assert not achievement_met("week_warrior", {"streak": {"current": 6}})
    assert achievement_met("week_warrior", {"streak": {"current": 7}})
    assert achievement_met("quiz_master", {"quizzes_passed": 5})
    assert achievement_met("course_completer", {"lessons_completed": 4, "total_lessons": 4})
    assert not achievement_met("course_completer", {"lessons_completed": 0, "total_lessons": 0})
    assert achievement_met("study_marathon", {"total_study_time": 6000})

    records = [{"lessons_completed": 2, "total_lessons": 10}, {"quizzes_passed": 5}]
    assert evaluate_achievements(records) == ["first_lesson", "quiz_master"]


# ==================== TIME FORMATTING ====================

def test_time_formatting():
    assert minutes_to_hours(0) == 0.0
    assert minutes_to_hours(90) == 1.5
    assert format_study_time(0) == "0.0h"
    assert format_study_time(150) == "2.5h"
    assert avg_study_time_per_day(120, 0) == 0
    assert avg_study_time_per_day(180, 2) == 1.5
    assert avg_study_time_per_session(60, 4) == 0.2


def test_study_time_breakdown():
    breakdown = study_time_breakdown(60 * 24 + 90)
    assert breakdown["total_days"] == 1
    assert breakdown["remaining_hours"] == 1.5
    assert breakdown["formatted_with_days"] == "1d 1.5h"

    short = study_time_breakdown(45)
    assert short["formatted"] == "0.8h"
    assert short["formatted_with_days"] == "0.8h"


# ==================== ENDPOINTS ====================

def test_course_progress_requires_enrollment(client, student, course):
    response = client.get(f"/api/progress/course/{course['course_id']}", headers=student["headers"])
    assert response.status_code == 404
    assert response.json()["message"] == "Not enrolled in this course"


def test_progress_update_and_overview(client, student, course):
    enroll(client, student, course["course_id"])
    url = f"/api/progress/course/{course['course_id']}"

    response = client.put(url, json={
        "lessons_completed": 1, "study_time_minutes": 90, "quiz_results": {"passed": True}
    }, headers=student["headers"])
    assert response.status_code == 200
    progress = response.json()["progress"]
    assert progress["total_study_time"] == 90
    assert progress["quizzes_passed"] == 1
    assert progress["streak"]["current"] == 1

    overview = client.get("/api/progress/student-overview", headers=student["headers"]).json()
    assert overview["enrolled_courses"] == 1
    assert overview["study_time_minutes"] == 90
    assert overview["study_time_formatted"] == "1.5h"
    assert overview["current_streak"] == 1


def test_analytics_timeframe(client, student, course):
    enroll(client, student, course["course_id"])
    client.put(f"/api/progress/course/{course['course_id']}",
               json={"study_time_minutes": 40}, headers=student["headers"])

    body = client.get("/api/progress/analytics", params={"timeframe": "month"}, headers=student["headers"]).json()
    assert body["timeframe"] == "month"
    assert body["total_study_time"] == 40
    assert len(body["data"]["dates"]) == 1

    invalid = client.get("/api/progress/analytics", params={"timeframe": "decade"}, headers=student["headers"])
    assert invalid.status_code == 400


def test_achievements_are_persisted(client, student, course):
    enroll(client, student, course["course_id"])
    client.put(f"/api/progress/course/{course['course_id']}",
               json={"lessons_completed": 1}, headers=student["headers"])

    first = client.get("/api/progress/achievements", headers=student["headers"]).json()
    assert first["unlocked_count"] == 1
    assert first["total_count"] == 5
    assert first["unlocked"][0]["type"] == "first_lesson"

    second = client.get("/api/progress/achievements", headers=student["headers"]).json()
    third = client.get("/api/progress/achievements", headers=student["headers"]).json()
    assert second["unlocked_count"] == 1
    assert third["unlocked"][0]["unlocked_at"] == second["unlocked"][0]["unlocked_at"]
