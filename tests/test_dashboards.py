from conftest import create_course, create_material, enroll, register_faculty, register_student

from learnsy.dashboards.stats import average_progress, progress_distribution, record_percentage


def test_progress_distribution_buckets():
    assert progress_distribution([0, 25, 26, 50, 75, 76, 100]) == {
        "0-25%": 2, "26-50%": 2, "51-75%": 1, "76-100%": 2
    }
    assert progress_distribution([]) == {"0-25%": 0, "26-50%": 0, "51-75%": 0, "76-100%": 0}


def test_average_progress():
    records = [
        {"lessons_completed": 1, "total_lessons": 2},
        {"lessons_completed": 4, "total_lessons": 4},
    ]
    assert record_percentage(records[0]) == 50
    assert average_progress(records) == 75
    # students without a progress record count as zero
    assert average_progress(records, divisor=3) == 50
    assert average_progress([]) == 0
    assert average_progress([{"lessons_completed": 9, "total_lessons": 3}]) == 100


def _complete_first_of_two(client, faculty, student, course):
    first = create_material(client, faculty, course["course_id"], title="One", order=1)
    create_material(client, faculty, course["course_id"], title="Two", order=2)
    enroll(client, student, course["course_id"])
    client.post(f"/api/materials/{first['material_id']}/complete", headers=student["headers"])


def test_student_dashboard(client, faculty, student, course):
    _complete_first_of_two(client, faculty, student, course)

    session = client.post("/api/study-sessions/start", json={"course_id": course["course_id"]},
                          headers=student["headers"]).json()["session"]
    client.put(f"/api/study-sessions/{session['session_id']}/end", headers=student["headers"])

    response = client.get("/api/student-dashboard", headers=student["headers"])
    assert response.status_code == 200
    body = response.json()
    assert body["enrolled_courses"] == 1
    assert body["avg_progress"] == 50
    assert body["completed_materials"] == 1
    assert body["completed_lessons"] == 1
    assert body["total_study_time"] == 0
    assert body["study_time_formatted"] == "0.0h"
    assert body["courses"][0]["course_id"] == course["course_id"]
    assert body["recent_activities"][0]["content"] == f"Studied {course['title']}"


def test_student_dashboard_is_student_only(client, faculty):
    assert client.get("/api/student-dashboard", headers=faculty["headers"]).status_code == 403


def test_faculty_overview_and_courses(client, faculty, student, course):
    _complete_first_of_two(client, faculty, student, course)
    create_course(client, faculty, title="Empty Course")

    overview = client.get("/api/faculty-dashboard", headers=faculty["headers"]).json()["overview"]
    assert overview["total_courses"] == 2
    assert overview["total_students"] == 1
    assert overview["total_materials"] == 2
    # mean of the per-course averages (50 and 0)
    assert overview["avg_progress"] == 25

    courses = client.get("/api/faculty-dashboard/courses", headers=faculty["headers"]).json()["courses"]
    by_title = {c["title"]: c for c in courses}
    assert by_title[course["title"]]["enrollment_count"] == 1
    assert by_title[course["title"]]["material_count"] == 2
    assert by_title["Empty Course"]["avg_progress"] == 0


def test_course_analytics(client, faculty, student, course):
    _complete_first_of_two(client, faculty, student, course)
    other = register_student(client, email="other@example.com", student_id="STU-002", name="Other Student")
    enroll(client, other, course["course_id"])

    response = client.get(f"/api/faculty-dashboard/courses/{course['course_id']}/analytics",
                          headers=faculty["headers"])
    assert response.status_code == 200
    analytics = response.json()["analytics"]
    stats = analytics["stats"]
    assert stats["total_enrollments"] == 2
    assert stats["total_materials"] == 2
    assert stats["completion_rate"] == 0
    assert stats["avg_progress"] == 25
    assert stats["progress_distribution"] == {"0-25%": 1, "26-50%": 1, "51-75%": 0, "76-100%": 0}
    assert [m["title"] for m in analytics["materials"]] == ["One", "Two"]
    assert len(analytics["recent_enrollments"]) == 2


def test_course_analytics_owner_only(client, course):
    other = register_faculty(client, email="other@example.com", name="Other Faculty")
    response = client.get(f"/api/faculty-dashboard/courses/{course['course_id']}/analytics",
                          headers=other["headers"])
    assert response.status_code == 404
    assert response.json()["message"] == "Course not found"


def test_admin_dashboard_totals(client, faculty, student, course):
    _complete_first_of_two(client, faculty, student, course)

    body = client.get("/api/admin-dashboard", headers=faculty["headers"]).json()
    assert body["total_students"] == 1
    assert body["total_courses"] == 1
    assert body["total_materials"] == 2
    assert body["avg_progress"] == 50

    assert client.get("/api/admin-dashboard", headers=student["headers"]).status_code == 403


def test_dropped_students_leave_course_stats(client, faculty, student, course):
    _complete_first_of_two(client, faculty, student, course)
    other = register_student(client, email="other@example.com", student_id="STU-002", name="Other Student")
    dropped = enroll(client, other, course["course_id"])
    client.delete(f"/api/enrollments/{dropped['enrollment_id']}", headers=other["headers"])

    stats = client.get(f"/api/faculty-dashboard/courses/{course['course_id']}/analytics",
                       headers=faculty["headers"]).json()["analytics"]["stats"]
    assert stats["total_enrollments"] == 1
    assert stats["avg_progress"] == 50
    assert sum(stats["progress_distribution"].values()) == 1

    courses = client.get("/api/faculty-dashboard/courses", headers=faculty["headers"]).json()["courses"]
    assert courses[0]["enrollment_count"] == 1
    assert courses[0]["avg_progress"] == 50

    admin = client.get("/api/admin-dashboard", headers=faculty["headers"]).json()
    assert admin["avg_progress"] == 50
