import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from learnsy.core.config import settings
from learnsy.core.database import get_db
from learnsy.core.rate_limit import reset_all_limiters
from learnsy.main import app

PASSWORD = "Passw0rd1"


@pytest.fixture(autouse=True)
def jwt_secret(monkeypatch):
    monkeypatch.setattr(settings, "JWT_SECRET_KEY", "test-secret-key")


class FirstLookupMisses:
    """
    Collection wrapper whose ``find_one`` sees nothing until the first
    insert, so two requests racing past the existence check can be
    replayed one after the other.
    """

    def __init__(self, collection):
        self._collection = collection
        self._inserted = False

    def __getattr__(self, name):
        return getattr(self._collection, name)

    async def find_one(self, *args, **kwargs):
        if not self._inserted:
            return None
        return await self._collection.find_one(*args, **kwargs)

    async def insert_one(self, *args, **kwargs):
        self._inserted = True
        return await self._collection.insert_one(*args, **kwargs)


class RacingDatabase:
    """Database wrapper that hands out ``FirstLookupMisses`` for chosen collections"""

    def __init__(self, db, *names):
        self._db = db
        self._wrapped = {name: FirstLookupMisses(getattr(db, name)) for name in names}

    def __getattr__(self, name):
        if name in self._wrapped:
            return self._wrapped[name]
        return getattr(self._db, name)

    def __getitem__(self, name):
        return self.__getattr__(name)


@pytest.fixture
def mongo():
    return AsyncMongoMockClient()["learnsy_test"]


@pytest.fixture
def client(mongo, tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "MONGO_TRANSACTIONS", False)
    monkeypatch.setattr(settings, "AI_PROCESSING_DELAY_SCALE", 0)
    monkeypatch.setattr(settings, "PAYMENT_VERIFY_DELAY", 0)
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path / "uploads"))
    reset_all_limiters()

    async def override_get_db():
        return mongo

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def register_student(client, email="student@example.com", student_id="STU-001", name="Test Student"):
    response = client.post("/api/signup/student/register", json={
        "name": name,
        "email": email,
        "password": PASSWORD,
        "student_id": student_id,
        "department": "Computer Science",
    })
    assert response.status_code == 201, response.text
    body = response.json()
    return {"token": body["token"], "user": body["user"], "headers": auth_headers(body["token"])}


def register_faculty(client, email="faculty@example.com", name="Test Faculty", institution="Learnsy University"):
    response = client.post("/api/signup/faculty/register", json={
        "name": name,
        "email": email,
        "password": PASSWORD,
        "institution": institution,
        "department": "Engineering",
    })
    assert response.status_code == 201, response.text
    body = response.json()
    return {"token": body["token"], "user": body["user"], "headers": auth_headers(body["token"])}


def create_course(client, faculty, published=True, **overrides):
    payload = {
        "title": "Intro to Python",
        "description": "Learn the basics of Python",
        "category": "Programming",
        "modules": 2,
        "is_published": published,
    }
    payload.update(overrides)
    response = client.post("/api/courses", json=payload, headers=faculty["headers"])
    assert response.status_code == 201, response.text
    return response.json()["course"]


def create_material(client, faculty, course_id, title="Lesson", material_type="text", order=0, **fields):
    data = {"title": title, "type": material_type, "course_id": course_id, "order": str(order)}
    data.update({k: str(v) for k, v in fields.items()})
    response = client.post("/api/materials", data=data, headers=faculty["headers"])
    assert response.status_code == 201, response.text
    return response.json()["material"]


def enroll(client, student, course_id):
    response = client.post("/api/enrollments", json={"course_id": course_id}, headers=student["headers"])
    assert response.status_code == 201, response.text
    return response.json()["enrollment"]


@pytest.fixture
def student(client):
    return register_student(client)


@pytest.fixture
def faculty(client):
    return register_faculty(client)


@pytest.fixture
def course(client, faculty):
    return create_course(client, faculty)
