"""
Database models for the entrance assessment service.

Questions and passages are an externally managed catalog; this service only
reads them. Tests, sections and responses are owned by the test-taking flow.
"""
from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    DateTime,
    ForeignKey,
    Text,
    Enum,
    Float,
    UniqueConstraint,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import JSON
from datetime import datetime, timezone
import enum

from .base import Base


class Section(str, enum.Enum):
    """Assessment section enumeration, declared in administration order."""

    GRAMMAR = "grammar"
    READING = "reading"
    LISTENING = "listening"
    DIALOG = "dialog"


class TestStatus(str, enum.Enum):
    """Test lifecycle enumeration."""

    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    REVIEWED = "reviewed"


class UserRole(str, enum.Enum):
    """User role enumeration."""

    STUDENT = "student"
    ADMIN = "admin"


class User(Base):
    """User model; only identity and role are needed by the engine."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(200))
    role = Column(Enum(UserRole), default=UserRole.STUDENT, nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # Relationships
    tests = relationship("Test", back_populates="student", cascade="all, delete-orphan")
    parent_surveys = relationship(
        "ParentSurvey", back_populates="student", cascade="all, delete-orphan"
    )


class ParentSurvey(Base):
    """Intake questionnaire answered by a parent; data is a free-form JSON blob."""

    __tablename__ = "parent_surveys"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    data = Column(JSON, nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    student = relationship("User", back_populates="parent_surveys")

    __table_args__ = (
        Index("ix_parent_surveys_student_created", "student_id", "created_at"),
    )


class QuestionPassage(Base):
    """Reading passage shared by several questions."""

    __tablename__ = "question_passages"

    id = Column(Integer, primary_key=True, index=True)
    section = Column(Enum(Section), nullable=False)
    level = Column(Integer, nullable=False)
    sublevel = Column(String(1), nullable=False)
    title = Column(String(500))
    body = Column(Text, nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    questions = relationship("Question", back_populates="passage")

    __table_args__ = (
        Index("ix_question_passages_level", "section", "level", "sublevel"),
        CheckConstraint(
            "sublevel IN ('1', '2', '3')", name="ck_question_passages_sublevel"
        ),
    )


class Question(Base):
    """Multiple-choice question; options are stored in canonical order."""

    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    section = Column(Enum(Section), nullable=False)
    level = Column(Integer, nullable=False)
    sublevel = Column(String(1), nullable=False)
    stem = Column(Text, nullable=False)
    options = Column(JSON, nullable=False)  # List[str]
    answer_index = Column(Integer, nullable=False)
    media_url = Column(String(1000), nullable=True)
    instructions = Column(Text, nullable=True)
    skill_tags = Column(JSON, nullable=True)  # List[str]
    passage_id = Column(
        Integer,
        ForeignKey("question_passages.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    passage = relationship("QuestionPassage", back_populates="questions")
    responses = relationship("Response", back_populates="question")

    __table_args__ = (
        Index("ix_questions_level", "section", "level", "sublevel"),
        CheckConstraint("sublevel IN ('1', '2', '3')", name="ck_questions_sublevel"),
        CheckConstraint("answer_index >= 0", name="ck_questions_answer_index"),
    )


class Test(Base):
    """A single assessment session for one student."""

    __tablename__ = "tests"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    test_type = Column(String(50), default="entrance", nullable=False)
    status = Column(
        Enum(TestStatus), default=TestStatus.ASSIGNED, nullable=False, index=True
    )
    # {"grammar": "3.1", ..., "__meta": {...}}; written once at provisioning
    seed_start = Column(JSON, nullable=True)
    time_limit_seconds = Column(Integer, default=3000, nullable=False)
    elapsed_ms = Column(Integer, default=0, nullable=False)
    weighted_level = Column(Float, nullable=True)
    total_score = Column(Float, nullable=True)
    assigned_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    started_at = Column(DateTime(timezone=True), nullable=True)
    last_seen_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    student = relationship("User", back_populates="tests")
    sections = relationship(
        "TestSection",
        back_populates="test",
        cascade="all, delete-orphan",
        order_by="TestSection.id",
    )
    responses = relationship(
        "Response", back_populates="test", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_tests_student_status", "student_id", "status"),
        CheckConstraint("elapsed_ms >= 0", name="ck_tests_elapsed_non_negative"),
    )


class TestSection(Base):
    """Live adaptive state of one section within a test."""

    __tablename__ = "test_sections"

    id = Column(Integer, primary_key=True, index=True)
    test_id = Column(
        Integer, ForeignKey("tests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    section = Column(Enum(Section), nullable=False)
    current_level = Column(Integer, nullable=False)
    current_sublevel = Column(String(1), nullable=False)
    streak_up = Column(Integer, default=0, nullable=False)
    streak_down = Column(Integer, default=0, nullable=False)
    questions_served = Column(Integer, default=0, nullable=False)
    correct_count = Column(Integer, default=0, nullable=False)
    incorrect_count = Column(Integer, default=0, nullable=False)
    completed = Column(Boolean, default=False, nullable=False)
    final_level = Column(Float, nullable=True)
    score = Column(Float, nullable=True)  # Section accuracy percentage
    # Reading rotation state
    current_passage_id = Column(
        Integer,
        ForeignKey("question_passages.id", ondelete="SET NULL"),
        nullable=True,
    )
    current_passage_question_count = Column(Integer, default=0, nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    test = relationship("Test", back_populates="sections")

    __table_args__ = (
        UniqueConstraint("test_id", "section", name="uq_test_sections_test_section"),
        CheckConstraint(
            "current_sublevel IN ('1', '2', '3')", name="ck_test_sections_sublevel"
        ),
    )


class Response(Base):
    """One answered question; selected_index is in canonical option order."""

    __tablename__ = "responses"

    id = Column(Integer, primary_key=True, index=True)
    test_id = Column(
        Integer,
        ForeignKey("tests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    section = Column(Enum(Section), nullable=False)
    question_id = Column(
        Integer,
        ForeignKey("questions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    selected_index = Column(Integer, nullable=False)
    correct = Column(Boolean, nullable=False)
    time_spent_ms = Column(Integer, default=0, nullable=False)
    answered_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # Relationships
    test = relationship("Test", back_populates="responses")
    question = relationship("Question", back_populates="responses")

    __table_args__ = (
        UniqueConstraint("test_id", "question_id", name="uq_responses_test_question"),
        Index("ix_responses_test_section", "test_id", "section"),
    )


class SystemConfig(Base):
    """
    System-level key-value configuration storage.

    Common keys:
    - section_weights: {"reading": 0.4, "grammar": 0.3, "listening": 0.2, "dialog": 0.1}
    """

    __tablename__ = "system_config"

    key = Column(String(100), primary_key=True)
    value = Column(JSON, nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
