import os

# Must be set before the app (and its engine) is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("BOOTSTRAP_ADMIN_USERNAME", None)
os.environ.pop("BOOTSTRAP_ADMIN_PASSWORD", None)

import pytest
from fastapi.testclient import TestClient

import main
from schoolcbt.infrastructure.db.session import Base, SessionLocal, engine
from schoolcbt.infrastructure.repositories.user_repo_impl import create_user
from schoolcbt.presentation.schemas.user_schema import SubjectClassPair, UserCreate

PASSWORD = "secret123"
SUBJECT = "Mathematics"
CLASS_NAME = "JSS 1"


@pytest.fixture(autouse=True)
def fresh_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(main.app) as c:
        yield c


def make_user(db, username, role, teaching=(), enrollments=()):
    return create_user(
        db,
        UserCreate(
            username=username,
            password=PASSWORD,
            name=username.capitalize(),
            surname="Tester",
            role=role,
            class_name=CLASS_NAME if role == "student" else None,
            teaching=[SubjectClassPair(subject=s, class_name=c) for s, c in teaching],
            enrollments=[SubjectClassPair(subject=s, class_name=c) for s, c in enrollments],
        ),
    )


def login(client, username):
    response = client.post("/api/auth/login", json={"username": username, "password": PASSWORD})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def people(db):
    """User ids for an admin, a Mathematics/JSS 1 teacher and two enrolled students."""
    pair = [(SUBJECT, CLASS_NAME)]
    users = {
        "admin": make_user(db, "admin", "admin"),
        "teacher": make_user(db, "teacher", "teacher", teaching=pair),
        "u1": make_user(db, "u1", "student", enrollments=pair),
        "u2": make_user(db, "u2", "student", enrollments=pair),
    }
    return {key: user.id for key, user in users.items()}
