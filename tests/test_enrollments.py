import asyncio

import pytest
from fastapi import HTTPException

from conftest import RacingDatabase, create_course, enroll, register_student

from learnsy.enrollments.service import create_enrollment_indexes, enroll_student


def test_enroll_in_published_course(client, mongo, student, course):
    enrollment = enroll(client, student, course["course_id"])
    assert enrollment["status"] == "active"
    assert enrollment["progress"]["percentage"] == 0

    stored = asyncio.run(mongo.courses.find_one({"course_id": course["course_id"]}))
    assert student["user"]["user_id"] in stored["enrolled_students"]
    assert stored["enrollment_count"] == 1

    progress = asyncio.run(mongo.progress.find_one({"student_id": student["user"]["user_id"]}))
    assert progress["enrollment_id"] == enrollment["enrollment_id"]


def test_duplicate_enrollment_rejected(client, student, course):
    enroll(client, student, course["course_id"])
    response = client.post(f"/api/enrollments/enroll/{course['course_id']}", headers=student["headers"])
    assert response.status_code == 400
    assert response.json()["message"] == "Already enrolled in this course"


def test_enrollment_errors(client, faculty, student):
    draft = create_course(client, faculty, published=False)

    missing_id = client.post("/api/enrollments", json={}, headers=student["headers"])
    assert missing_id.status_code == 400
    assert missing_id.json()["message"] == "Course ID is required"

    unknown = client.post("/api/enrollments", json={"course_id": "CRS_UNKNOWN"}, headers=student["headers"])
    assert unknown.status_code == 404

    unpublished = client.post("/api/enrollments", json={"course_id": draft["course_id"]},
                              headers=student["headers"])
    assert unpublished.status_code == 400
    assert unpublished.json()["message"] == "Course is not available for enrollment"


def test_faculty_cannot_enroll(client, faculty, course):
    response = client.post("/api/enrollments", json={"course_id": course["course_id"]}, headers=faculty["headers"])
    assert response.status_code == 403


def test_drop_and_reenroll(client, student, course):
    enrollment = enroll(client, student, course["course_id"])

    dropped = client.delete(f"/api/enrollments/{enrollment['enrollment_id']}", headers=student["headers"])
    assert dropped.json()["message"] == "Successfully dropped course"
    assert client.get("/api/enrollments/my-enrollments", headers=student["headers"]).json()["count"] == 0

    again = enroll(client, student, course["course_id"])
    assert again["enrollment_id"] == enrollment["enrollment_id"]
    assert again["status"] == "active"


def test_course_roster_owner_only(client, faculty, student, course):
    enroll(client, student, course["course_id"])
    roster = client.get(f"/api/enrollments/course/{course['course_id']}", headers=faculty["headers"]).json()
    assert roster["count"] == 1
    assert roster["enrollments"][0]["student"]["name"] == "Test Student"

    from conftest import register_faculty
    other = register_faculty(client, email="other@example.com", name="Other Faculty")
    response = client.get(f"/api/enrollments/course/{course['course_id']}", headers=other["headers"])
    assert response.status_code == 404
    assert response.json()["message"] == "Course not found or access denied"


def test_enrollment_progress_is_capped(client, student, course):
    enrollment = enroll(client, student, course["course_id"])
    response = client.put(
        f"/api/enrollments/{enrollment['enrollment_id']}/progress",
        json={"lessons_completed": 50, "study_time_minutes": 30},
        headers=student["headers"],
    )
    assert response.status_code == 200
    progress = response.json()["progress"]
    assert progress["percentage"] <= 100
    assert progress["total_study_time"] == 30


def test_other_students_enrollment_hidden(client, student, course):
    enrollment = enroll(client, student, course["course_id"])
    other = register_student(client, email="other@example.com", student_id="STU-002", name="Other Student")
    response = client.get(f"/api/enrollments/{enrollment['enrollment_id']}", headers=other["headers"])
    assert response.status_code == 404


def test_concurrent_enrollment_is_400(client, mongo, student, course):
    asyncio.run(create_enrollment_indexes(mongo))
    enroll(client, student, course["course_id"])

    # a second request that missed the first one's enrollment still hits the unique index
    with pytest.raises(HTTPException) as exc:
        asyncio.run(enroll_student(RacingDatabase(mongo, "enrollments"),
                                   student["user"]["user_id"], course["course_id"]))
    assert exc.value.status_code == 400
    assert exc.value.detail == "Already enrolled in this course"
    assert asyncio.run(mongo.enrollments.count_documents({})) == 1
