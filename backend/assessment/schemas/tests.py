"""
Pydantic schemas for the student test-taking endpoints.
"""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class SectionResultSchema(BaseModel):
    """Final outcome of one section."""

    section: str = Field(..., description="Section name")
    level: float = Field(..., description="Final level as a decimal (e.g. 3.2)")
    score: float = Field(..., description="Percentage of correct answers")
    questions_served: int = Field(..., description="Questions answered in the section")
    correct_count: int = Field(..., description="Correct answers in the section")


class TestSummarySchema(BaseModel):
    """Overall result of a finalized test."""

    weighted_level: float = Field(..., description="Weighted overall level")
    total_score: float = Field(..., description="Mean of the section scores")
    sections: Dict[str, SectionResultSchema] = Field(
        default_factory=dict, description="Per-section results"
    )


class SectionProgressSchema(BaseModel):
    """Live progress of one section."""

    section: str = Field(..., description="Section name")
    level: str = Field(..., description="Current level as level.sublevel")
    questions_served: int = Field(..., description="Questions answered so far")
    max_questions: int = Field(..., description="Question cap for the section")
    correct_count: int = Field(..., description="Correct answers so far")
    completed: bool = Field(..., description="Whether the section is finished")
    final_level: Optional[float] = Field(None, description="Level when completed")
    score: Optional[float] = Field(None, description="Section score once finalized")


class StartTestResponse(BaseModel):
    """Schema for starting a test."""

    test_id: int = Field(..., description="Test ID")
    status: str = Field(..., description="Test status after starting")
    time_limit_seconds: int = Field(..., description="Overall time limit")
    elapsed_ms: int = Field(..., description="Time already used")
    time_remaining_seconds: int = Field(..., description="Time left")
    seeds: Dict[str, str] = Field(
        ..., description="Starting level of each section as level.sublevel"
    )
    auto_completed_sections: List[str] = Field(
        default_factory=list,
        description="Sections completed at start because the catalog has no items",
    )


class TestProgressResponse(BaseModel):
    """Schema for GET /v1/tests/{test_id}."""

    test_id: int = Field(..., description="Test ID")
    status: str = Field(..., description="Test status")
    time_limit_seconds: int = Field(..., description="Overall time limit")
    elapsed_ms: int = Field(..., description="Time used so far")
    time_remaining_seconds: int = Field(..., description="Time left")
    assigned_at: datetime = Field(..., description="When the test was assigned")
    started_at: Optional[datetime] = Field(None, description="When the test started")
    completed_at: Optional[datetime] = Field(None, description="When the test finished")
    weighted_level: Optional[float] = Field(None, description="Overall level once finalized")
    total_score: Optional[float] = Field(None, description="Overall score once finalized")
    sections: List[SectionProgressSchema] = Field(
        default_factory=list, description="Per-section progress in administration order"
    )


class PassageSchema(BaseModel):
    """Reading passage shown with its questions."""

    id: int = Field(..., description="Passage ID")
    title: Optional[str] = Field(None, description="Passage title")
    body: str = Field(..., description="Passage text")


class PresentedQuestionSchema(BaseModel):
    """Question as presented to the student, options in shuffled order."""

    id: int = Field(..., description="Question ID")
    stem: str = Field(..., description="Question text")
    options: List[str] = Field(..., description="Options in presented order")
    option_order: List[int] = Field(
        ...,
        description="Canonical option index for each presented position",
    )
    skill_tags: List[str] = Field(default_factory=list, description="Skill tags")
    media_url: Optional[str] = Field(None, description="Audio or image URL")
    instructions: Optional[str] = Field(None, description="Question instructions")


class NextItemResponse(BaseModel):
    """Schema for POST /v1/tests/{test_id}/next.

    Exactly one of three shapes is returned:
    - ``done`` with the final ``summary`` (``time_expired`` when the clock ran out)
    - ``section_completed`` when the active section ran out of content
    - the next ``question`` (and ``passage`` for reading)
    """

    done: bool = Field(False, description="Whether the test is finished")
    time_expired: Optional[bool] = Field(None, description="Finished by time expiry")
    summary: Optional[TestSummarySchema] = Field(None, description="Final summary")
    section_completed: Optional[bool] = Field(
        None, description="The active section ended; request the next item again"
    )
    section: Optional[str] = Field(None, description="Section of the question")
    time_remaining_seconds: Optional[int] = Field(None, description="Time left")
    level: Optional[str] = Field(None, description="Level of the question")
    question: Optional[PresentedQuestionSchema] = Field(None, description="Next question")
    passage: Optional[PassageSchema] = Field(None, description="Reading passage")


class SubmitAnswerRequest(BaseModel):
    """Schema for submitting one answer."""

    question_id: int = Field(..., gt=0, description="ID of the answered question")
    selected_index: int = Field(
        ...,
        ge=0,
        description=(
            "Chosen option. Canonical index, or the presented position when "
            "option_order is supplied"
        ),
    )
    time_spent_ms: int = Field(0, ge=0, description="Time spent on the question")
    option_order: Optional[List[int]] = Field(
        None, description="option_order received with the question"
    )

    @field_validator("option_order")
    @classmethod
    def validate_option_order(cls, v: Optional[List[int]]) -> Optional[List[int]]:
        if v is not None and len(v) == 0:
            raise ValueError("option_order must not be empty")
        return v


class SubmitAnswerResponse(BaseModel):
    """Schema for the answer submission result."""

    correct: bool = Field(..., description="Whether the answer was correct")
    section_completed: bool = Field(..., description="The section is now complete")
    all_completed: bool = Field(..., description="Every section is complete")
    time_expired: bool = Field(..., description="The time budget ran out")
    duplicate: bool = Field(
        False, description="The question was already answered; nothing was recorded"
    )
    finalized: Optional[TestSummarySchema] = Field(
        None, description="Final summary when this answer finished the test"
    )


class HeartbeatRequest(BaseModel):
    """Elapsed time since the previous heartbeat."""

    elapsed_ms: int = Field(..., description="Milliseconds since the last heartbeat")


class HeartbeatResponse(BaseModel):
    time_remaining_seconds: int = Field(..., description="Time left")
    expired: bool = Field(..., description="Whether the time budget ran out")
    summary: Optional[TestSummarySchema] = Field(
        None, description="Final summary when this heartbeat expired the test"
    )


class FinalizeResponse(BaseModel):
    finalized: bool = Field(True, description="Always true")
    summary: TestSummarySchema = Field(..., description="Final summary")
