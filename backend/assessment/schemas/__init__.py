"""
Pydantic schemas for request/response validation.
"""
from .tests import (
    FinalizeResponse,
    HeartbeatRequest,
    HeartbeatResponse,
    NextItemResponse,
    StartTestResponse,
    SubmitAnswerRequest,
    SubmitAnswerResponse,
    TestProgressResponse,
    TestSummarySchema,
)
from .admin import (
    PlacementPreviewResponse,
    ProvisionTestRequest,
    ProvisionTestResponse,
    ReviewTestResponse,
    SectionWeightsRequest,
    SectionWeightsResponse,
)

__all__ = [
    "FinalizeResponse",
    "HeartbeatRequest",
    "HeartbeatResponse",
    "NextItemResponse",
    "StartTestResponse",
    "SubmitAnswerRequest",
    "SubmitAnswerResponse",
    "TestProgressResponse",
    "TestSummarySchema",
    "PlacementPreviewResponse",
    "ProvisionTestRequest",
    "ProvisionTestResponse",
    "ReviewTestResponse",
    "SectionWeightsRequest",
    "SectionWeightsResponse",
]
