import asyncio

import pytest

from learnsy.ai_tools.models import FileType
from learnsy.ai_tools.summary_service import detect_file_type, generate_summary, topic_from_filename


@pytest.fixture
def premium_student(client, student):
    response = client.post("/api/subscriptions/process-payment", json={
        "plan": "1 Month", "payment_method": "googlepay"
    }, headers=student["headers"])
    assert response.status_code == 200
    return student


def _upload(client, user, name="intro_to-ml.pdf", content=b"%PDF-1.4 notes", **data):
    return client.post(
        "/api/ai-tools/upload",
        files={"file": (name, content, "application/octet-stream")},
        data=data,
        headers=user["headers"],
    )


def test_detect_file_type():
    assert detect_file_type("lecture.MP4") == FileType.VIDEO
    assert detect_file_type("notes.pdf") == FileType.PDF
    assert detect_file_type("deck.pptx") == FileType.PPT
    assert detect_file_type("archive.zip") is None
    assert detect_file_type("README") is None


def test_topic_from_filename():
    assert topic_from_filename("Intro_to-Machine_Learning.pdf") == "intro to machine learning"
    assert topic_from_filename("/tmp/uploads/deck.pptx") == "deck"


def test_generated_summaries_follow_file_type():
    video = asyncio.run(generate_summary(FileType.VIDEO, "python-basics.mp4"))
    assert video["duration"] == "15:30"
    assert "python basics" in video["summary"]

    deck = asyncio.run(generate_summary("ppt", "deck.pptx"))
    assert 10 <= deck["slide_count"] <= 39
    assert len(deck["key_points"]) == 5


def test_free_plan_cannot_use_ai_tools(client, student):
    response = _upload(client, student)
    assert response.status_code == 403
    assert response.json()["message"] == "AI tools require an active premium subscription"


def test_faculty_cannot_use_ai_tools(client, faculty):
    assert client.get("/api/ai-tools/summaries", headers=faculty["headers"]).status_code == 403


def test_upload_is_summarised_in_background(client, premium_student):
    response = _upload(client, premium_student)
    assert response.status_code == 201
    body = response.json()
    assert body["processing_status"] == "processing"

    summary = client.get(f"/api/ai-tools/summaries/{body['summary_id']}",
                         headers=premium_student["headers"]).json()["summary"]
    assert summary["processing_status"] == "completed"
    assert summary["file_type"] == "pdf"
    assert summary["original_file_name"] == "intro_to-ml.pdf"
    assert 5 <= summary["page_count"] <= 24
    assert "intro to ml" in summary["summary"]


def test_upload_rejects_unsupported_files(client, premium_student):
    response = _upload(client, premium_student, name="malware.exe", content=b"MZ")
    assert response.status_code == 400
    assert response.json()["message"] == "Unsupported file type. Upload a video, PDF or presentation."

    mismatch = _upload(client, premium_student, file_type="video")
    assert mismatch.status_code == 400
    assert mismatch.json()["message"] == "Invalid file type for video. Please upload a valid file."


def test_listing_hides_storage_paths(client, premium_student):
    _upload(client, premium_student)
    _upload(client, premium_student, name="lecture.mp4", content=b"\x00\x00video")

    listing = client.get("/api/ai-tools/summaries", headers=premium_student["headers"]).json()
    assert listing["count"] == 2
    assert all("file_url" not in s for s in listing["summaries"])

    videos = client.get("/api/ai-tools/summaries", params={"file_type": "video"},
                        headers=premium_student["headers"]).json()
    assert [s["original_file_name"] for s in videos["summaries"]] == ["lecture.mp4"]


def test_download_and_delete(client, mongo, premium_student):
    summary_id = _upload(client, premium_student).json()["summary_id"]

    download = client.get(f"/api/ai-tools/download/{summary_id}", headers=premium_student["headers"])
    assert download.status_code == 200
    assert download.content == b"%PDF-1.4 notes"

    stored = asyncio.run(mongo.ai_summaries.find_one({"summary_id": summary_id}))
    assert stored["download_count"] == 1

    deleted = client.delete(f"/api/ai-tools/summaries/{summary_id}", headers=premium_student["headers"])
    assert deleted.status_code == 200

    missing = client.get(f"/api/ai-tools/summaries/{summary_id}", headers=premium_student["headers"])
    assert missing.status_code == 404
    assert missing.json()["message"] == "Summary not found"


def test_stats_counts_completed_summaries(client, premium_student):
    _upload(client, premium_student)
    stats = client.get("/api/ai-tools/stats", headers=premium_student["headers"]).json()["stats"]
    assert stats["total_summaries"] == 1
    assert stats["completed_summaries"] == 1
    assert stats["completion_rate"] == 100.0
