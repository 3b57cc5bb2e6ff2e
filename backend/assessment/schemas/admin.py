"""
Pydantic schemas for admin endpoints.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ProvisionTestRequest(BaseModel):
    """Assign an entrance test to a student."""

    student_id: int = Field(..., gt=0, description="Student user ID")
    time_limit_seconds: Optional[int] = Field(
        None,
        ge=60,
        le=6 * 60 * 60,
        description="Overall time limit; DEFAULT_TIME_LIMIT_SECONDS when omitted",
    )


class ProvisionTestResponse(BaseModel):
    test_id: int = Field(..., description="Created test ID")
    student_id: int = Field(..., description="Student user ID")
    status: str = Field(..., description="Test status")
    time_limit_seconds: int = Field(..., description="Overall time limit")
    seed_source: str = Field(..., description="parent_survey or default")
    seeds: Dict[str, str] = Field(..., description="Starting level per section")
    seed_start: Dict[str, Any] = Field(..., description="Stored seed JSON")


class PlacementPreviewResponse(BaseModel):
    """Placement seed computed from the student's latest survey."""

    student_id: int = Field(..., description="Student user ID")
    source: str = Field(..., description="parent_survey or default")
    base_level: float = Field(..., description="Base level before section modifiers")
    background: Optional[str] = Field(None, description="Learning background category")
    skill_modifiers: Dict[str, float] = Field(..., description="Per-section modifiers")
    start_levels: Dict[str, float] = Field(..., description="Start level per section")
    seeds: Dict[str, str] = Field(..., description="Seed string per section")
    profile_tags: List[str] = Field(default_factory=list, description="Audit tags")


class ReviewTestResponse(BaseModel):
    test_id: int = Field(..., description="Test ID")
    status: str = Field(..., description="Test status after review")
    reviewed_at: datetime = Field(..., description="Review timestamp")


class SectionWeightsRequest(BaseModel):
    weights: Dict[str, float] = Field(
        ..., description="Finalizer weight per section, e.g. {'reading': 0.4}"
    )


class SectionWeightsResponse(BaseModel):
    weights: Dict[str, float] = Field(..., description="Effective finalizer weights")
    source: str = Field(..., description="system_config or settings")
