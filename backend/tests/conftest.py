"""
Pytest configuration and shared fixtures for testing.
"""
import os
from pathlib import Path

# Settings are read at import time; configure the environment first.
_TEST_DB = Path(__file__).parent / "test.db"
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TEST_DB}")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-key-not-for-production")
os.environ.setdefault("ADMIN_TOKEN", "test-admin-token")

import random  # noqa: E402
from contextlib import asynccontextmanager  # noqa: E402
from typing import Callable, List, Optional  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from assessment.api.v1.tests import get_rng  # noqa: E402
from assessment.core.config import settings  # noqa: E402
from assessment.core.security import create_access_token  # noqa: E402
from assessment.main import app  # noqa: E402
from assessment.models import (  # noqa: E402
    Base,
    ParentSurvey,
    Question,
    QuestionPassage,
    Section,
    User,
    get_db,
)

RNG_SEED = 20240311


@asynccontextmanager
async def _test_lifespan(app):
    """No-op lifespan for tests; skips error tracking initialization."""
    yield


app.router.lifespan_context = _test_lifespan

SQLALCHEMY_DATABASE_URL = f"sqlite:///{_TEST_DB}"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    """
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session):
    """
    Create a test client with database and random source overrides.

    Each request gets its own session on the test database, like production;
    the random source is seeded so item and option order are reproducible.
    """

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    rng = random.Random(RNG_SEED)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_rng] = lambda: rng
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _create_user(db_session, email: str, name: str) -> User:
    user = User(email=email, name=name)
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def student(db_session):
    """
    Create a student in the database.
    """
    return _create_user(db_session, "student@example.com", "Test Student")


@pytest.fixture
def other_student(db_session):
    return _create_user(db_session, "other@example.com", "Other Student")


@pytest.fixture
def auth_headers(student):
    """
    Create authentication headers for the student.
    """
    access_token = create_access_token({"user_id": student.id})
    return {"Authorization": f"Bearer {access_token}"}


@pytest.fixture
def other_auth_headers(other_student):
    access_token = create_access_token({"user_id": other_student.id})
    return {"Authorization": f"Bearer {access_token}"}


@pytest.fixture
def admin_headers():
    """
    Create headers with valid admin token for admin endpoints.
    """
    return {"X-Admin-Token": settings.ADMIN_TOKEN}


@pytest.fixture
def add_passage(db_session) -> Callable[..., QuestionPassage]:
    """Factory for reading passages, e.g. ``add_passage("2.1")``."""

    def _add(level: str = "2.1", title: Optional[str] = None) -> QuestionPassage:
        lvl, sub = level.split(".")
        passage = QuestionPassage(
            section=Section.READING,
            level=int(lvl),
            sublevel=sub,
            title=title or f"Passage at {level}",
            body="Tom has a red bike. He rides it to school every morning.",
        )
        db_session.add(passage)
        db_session.commit()
        db_session.refresh(passage)
        return passage

    return _add


@pytest.fixture
def add_questions(db_session) -> Callable[..., List[Question]]:
    """
    Factory for catalog questions.

    Every question has options ["A", "B", "C", "D"] with canonical answer 0
    unless ``answer_index`` says otherwise.
    """

    def _add(
        section: Section,
        level: str = "2.1",
        count: int = 1,
        passage: Optional[QuestionPassage] = None,
        answer_index: int = 0,
    ) -> List[Question]:
        lvl, sub = level.split(".")
        questions = [
            Question(
                section=section,
                level=int(lvl),
                sublevel=sub,
                stem=f"{section.value} question {i + 1} at {level}",
                options=["A", "B", "C", "D"],
                answer_index=answer_index,
                skill_tags=[section.value],
                passage_id=passage.id if passage is not None else None,
            )
            for i in range(count)
        ]
        db_session.add_all(questions)
        db_session.commit()
        for question in questions:
            db_session.refresh(question)
        return questions

    return _add


@pytest.fixture
def catalog(add_questions, add_passage):
    """
    A small catalog around the default seed (2.1) for every section.

    Reading has two passages at 2.1 with four questions each.
    """
    passages = [add_passage("2.1", "Morning"), add_passage("2.1", "Weekend")]
    return {
        Section.GRAMMAR: add_questions(Section.GRAMMAR, "2.1", count=4)
        + add_questions(Section.GRAMMAR, "2.2", count=4),
        Section.READING: add_questions(Section.READING, "2.1", 4, passages[0])
        + add_questions(Section.READING, "2.1", 4, passages[1]),
        Section.LISTENING: add_questions(Section.LISTENING, "2.1", count=4),
        Section.DIALOG: add_questions(Section.DIALOG, "2.1", count=4),
        "passages": passages,
    }


@pytest.fixture
def add_survey(db_session):
    """Factory for parent surveys of a student."""

    def _add(student_id: int, data: dict) -> ParentSurvey:
        survey = ParentSurvey(student_id=student_id, data=data)
        db_session.add(survey)
        db_session.commit()
        db_session.refresh(survey)
        return survey

    return _add


@pytest.fixture
def provision(client, admin_headers):
    """Provision a test through the admin API and return its JSON."""

    def _provision(student_id: int, **extra) -> dict:
        response = client.post(
            "/v1/admin/tests",
            json={"student_id": student_id, **extra},
            headers=admin_headers,
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _provision


@pytest.fixture
def small_sections(monkeypatch):
    """Shrink the section caps so a whole test fits in a few answers."""
    monkeypatch.setattr(
        settings,
        "SECTION_MAX_QUESTIONS",
        {"grammar": 2, "reading": 2, "listening": 1, "dialog": 1},
    )
