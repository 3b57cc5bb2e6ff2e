"""Create assessment tables

Revision ID: a3c91e5d2f10
Revises:
Create Date: 2026-10-19 09:12:44.318205

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "a3c91e5d2f10"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SECTION_VALUES = ("GRAMMAR", "READING", "LISTENING", "DIALOG")


def upgrade() -> None:
    section_enum = sa.Enum(*SECTION_VALUES, name="section")

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=True),
        sa.Column(
            "role", sa.Enum("STUDENT", "ADMIN", name="userrole"), nullable=False
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_id"), "users", ["id"], unique=False)
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)

    op.create_table(
        "parent_surveys",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("student_id", sa.Integer(), nullable=False),
        sa.Column("data", postgresql.JSON(astext_type=sa.Text()), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["student_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_parent_surveys_id"), "parent_surveys", ["id"], unique=False
    )
    op.create_index(
        "ix_parent_surveys_student_created",
        "parent_surveys",
        ["student_id", "created_at"],
        unique=False,
    )

    op.create_table(
        "question_passages",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("section", section_enum, nullable=False),
        sa.Column("level", sa.Integer(), nullable=False),
        sa.Column("sublevel", sa.String(length=1), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=True),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "sublevel IN ('1', '2', '3')", name="ck_question_passages_sublevel"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_question_passages_id"), "question_passages", ["id"], unique=False
    )
    op.create_index(
        "ix_question_passages_level",
        "question_passages",
        ["section", "level", "sublevel"],
        unique=False,
    )

    op.create_table(
        "questions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("section", section_enum, nullable=False),
        sa.Column("level", sa.Integer(), nullable=False),
        sa.Column("sublevel", sa.String(length=1), nullable=False),
        sa.Column("stem", sa.Text(), nullable=False),
        sa.Column("options", postgresql.JSON(astext_type=sa.Text()), nullable=False),
        sa.Column("answer_index", sa.Integer(), nullable=False),
        sa.Column("media_url", sa.String(length=1000), nullable=True),
        sa.Column("instructions", sa.Text(), nullable=True),
        sa.Column(
            "skill_tags", postgresql.JSON(astext_type=sa.Text()), nullable=True
        ),
        sa.Column("passage_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("sublevel IN ('1', '2', '3')", name="ck_questions_sublevel"),
        sa.CheckConstraint("answer_index >= 0", name="ck_questions_answer_index"),
        sa.ForeignKeyConstraint(
            ["passage_id"], ["question_passages.id"], ondelete="SET NULL"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_questions_id"), "questions", ["id"], unique=False)
    op.create_index(
        op.f("ix_questions_passage_id"), "questions", ["passage_id"], unique=False
    )
    op.create_index(
        "ix_questions_level",
        "questions",
        ["section", "level", "sublevel"],
        unique=False,
    )

    op.create_table(
        "tests",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("student_id", sa.Integer(), nullable=False),
        sa.Column("test_type", sa.String(length=50), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "ASSIGNED", "IN_PROGRESS", "COMPLETED", "REVIEWED", name="teststatus"
            ),
            nullable=False,
        ),
        sa.Column(
            "seed_start", postgresql.JSON(astext_type=sa.Text()), nullable=True
        ),
        sa.Column("time_limit_seconds", sa.Integer(), nullable=False),
        sa.Column("elapsed_ms", sa.Integer(), nullable=False),
        sa.Column("weighted_level", sa.Float(), nullable=True),
        sa.Column("total_score", sa.Float(), nullable=True),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_seen_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("elapsed_ms >= 0", name="ck_tests_elapsed_non_negative"),
        sa.ForeignKeyConstraint(["student_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_tests_id"), "tests", ["id"], unique=False)
    op.create_index(op.f("ix_tests_student_id"), "tests", ["student_id"], unique=False)
    op.create_index(op.f("ix_tests_status"), "tests", ["status"], unique=False)
    op.create_index(
        "ix_tests_student_status", "tests", ["student_id", "status"], unique=False
    )

    op.create_table(
        "test_sections",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("test_id", sa.Integer(), nullable=False),
        sa.Column("section", section_enum, nullable=False),
        sa.Column("current_level", sa.Integer(), nullable=False),
        sa.Column("current_sublevel", sa.String(length=1), nullable=False),
        sa.Column("streak_up", sa.Integer(), nullable=False),
        sa.Column("streak_down", sa.Integer(), nullable=False),
        sa.Column("questions_served", sa.Integer(), nullable=False),
        sa.Column("correct_count", sa.Integer(), nullable=False),
        sa.Column("incorrect_count", sa.Integer(), nullable=False),
        sa.Column("completed", sa.Boolean(), nullable=False),
        sa.Column("final_level", sa.Float(), nullable=True),
        sa.Column("score", sa.Float(), nullable=True),
        sa.Column("current_passage_id", sa.Integer(), nullable=True),
        sa.Column("current_passage_question_count", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "current_sublevel IN ('1', '2', '3')", name="ck_test_sections_sublevel"
        ),
        sa.ForeignKeyConstraint(["test_id"], ["tests.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["current_passage_id"], ["question_passages.id"], ondelete="SET NULL"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("test_id", "section", name="uq_test_sections_test_section"),
    )
    op.create_index(op.f("ix_test_sections_id"), "test_sections", ["id"], unique=False)
    op.create_index(
        op.f("ix_test_sections_test_id"), "test_sections", ["test_id"], unique=False
    )

    op.create_table(
        "responses",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("test_id", sa.Integer(), nullable=False),
        sa.Column("section", section_enum, nullable=False),
        sa.Column("question_id", sa.Integer(), nullable=False),
        sa.Column("selected_index", sa.Integer(), nullable=False),
        sa.Column("correct", sa.Boolean(), nullable=False),
        sa.Column("time_spent_ms", sa.Integer(), nullable=False),
        sa.Column("answered_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["test_id"], ["tests.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["question_id"], ["questions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("test_id", "question_id", name="uq_responses_test_question"),
    )
    op.create_index(op.f("ix_responses_id"), "responses", ["id"], unique=False)
    op.create_index(
        op.f("ix_responses_test_id"), "responses", ["test_id"], unique=False
    )
    op.create_index(
        op.f("ix_responses_question_id"), "responses", ["question_id"], unique=False
    )
    op.create_index(
        "ix_responses_test_section", "responses", ["test_id", "section"], unique=False
    )

    op.create_table(
        "system_config",
        sa.Column("key", sa.String(length=100), nullable=False),
        sa.Column("value", postgresql.JSON(astext_type=sa.Text()), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("key"),
    )


def downgrade() -> None:
    op.drop_table("system_config")
    op.drop_index("ix_responses_test_section", table_name="responses")
    op.drop_index(op.f("ix_responses_question_id"), table_name="responses")
    op.drop_index(op.f("ix_responses_test_id"), table_name="responses")
    op.drop_index(op.f("ix_responses_id"), table_name="responses")
    op.drop_table("responses")
    op.drop_index(op.f("ix_test_sections_test_id"), table_name="test_sections")
    op.drop_index(op.f("ix_test_sections_id"), table_name="test_sections")
    op.drop_table("test_sections")
    op.drop_index("ix_tests_student_status", table_name="tests")
    op.drop_index(op.f("ix_tests_status"), table_name="tests")
    op.drop_index(op.f("ix_tests_student_id"), table_name="tests")
    op.drop_index(op.f("ix_tests_id"), table_name="tests")
    op.drop_table("tests")
    op.drop_index("ix_questions_level", table_name="questions")
    op.drop_index(op.f("ix_questions_passage_id"), table_name="questions")
    op.drop_index(op.f("ix_questions_id"), table_name="questions")
    op.drop_table("questions")
    op.drop_index("ix_question_passages_level", table_name="question_passages")
    op.drop_index(op.f("ix_question_passages_id"), table_name="question_passages")
    op.drop_table("question_passages")
    op.drop_index("ix_parent_surveys_student_created", table_name="parent_surveys")
    op.drop_index(op.f("ix_parent_surveys_id"), table_name="parent_surveys")
    op.drop_table("parent_surveys")
    op.drop_index(op.f("ix_users_email"), table_name="users")
    op.drop_index(op.f("ix_users_id"), table_name="users")
    op.drop_table("users")

    sa.Enum(name="teststatus").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="section").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="userrole").drop(op.get_bind(), checkfirst=True)
