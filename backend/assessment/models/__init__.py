"""
Models package for the entrance assessment backend.
"""
from .base import Base, engine, SessionLocal, get_db
from .models import (
    User,
    UserRole,
    ParentSurvey,
    Question,
    QuestionPassage,
    Test,
    TestSection,
    Response,
    SystemConfig,
    Section,
    TestStatus,
)

__all__ = [
    "Base",
    "engine",
    "SessionLocal",
    "get_db",
    "User",
    "UserRole",
    "ParentSurvey",
    "Question",
    "QuestionPassage",
    "Test",
    "TestSection",
    "Response",
    "SystemConfig",
    "Section",
    "TestStatus",
]
