"""
Finalizer configuration admin endpoints.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from assessment.core.adaptive.finalizer import (
    resolve_section_weights,
    validate_section_weights,
)
from assessment.core.db_error_handling import handle_db_error
from assessment.core.error_responses import ErrorMessages, raise_bad_request
from assessment.core.system_config import get_section_weights, set_section_weights
from assessment.models import get_db
from assessment.schemas.admin import SectionWeightsRequest, SectionWeightsResponse

from ._dependencies import logger, verify_admin_token

router = APIRouter()


@router.get("/config/section-weights", response_model=SectionWeightsResponse)
def get_weights(
    db: Session = Depends(get_db),
    _: bool = Depends(verify_admin_token),
):
    """
    Get the section weights the finalizer currently uses.

    Stored weights win over SECTION_WEIGHTS when they are valid.
    """
    stored = get_section_weights(db)
    source = (
        "system_config"
        if stored is not None and validate_section_weights(stored) is None
        else "settings"
    )
    return SectionWeightsResponse(weights=resolve_section_weights(stored), source=source)


@router.put("/config/section-weights", response_model=SectionWeightsResponse)
def update_weights(
    request: SectionWeightsRequest,
    db: Session = Depends(get_db),
    _: bool = Depends(verify_admin_token),
):
    r"""
    Override the finalizer section weights.

    Weights apply to tests finalized after the update; finalized tests keep
    their stored results.

    Example:
        ```
        curl -X PUT "https://api.example.com/v1/admin/config/section-weights" \
          -H "X-Admin-Token: your-admin-token" \
          -H "Content-Type: application/json" \
          -d '{"weights": {"reading": 0.4, "grammar": 0.3, "listening": 0.2, "dialog": 0.1}}'
        ```
    """
    problem = validate_section_weights(request.weights)
    if problem is not None:
        raise_bad_request(ErrorMessages.invalid_section_weights(problem))

    with handle_db_error(db, "update section weights"):
        set_section_weights(db, request.weights)

    logger.info(f"Section weights updated: {request.weights}")
    return SectionWeightsResponse(weights=dict(request.weights), source="system_config")
