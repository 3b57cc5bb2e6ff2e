"""
Test administration endpoints: provisioning, placement preview and review.
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from assessment.core.adaptive.placement import (
    SEED_META_KEY,
    compute_placement_seed_for_student,
    default_seed_json,
)
from assessment.core.adaptive.session_state import SessionState, provision_sections
from assessment.core.config import settings
from assessment.core.datetime_utils import utc_now
from assessment.core.db_error_handling import handle_db_error
from assessment.core.error_responses import (
    ErrorMessages,
    raise_conflict,
    raise_not_found,
)
from assessment.models import Test, User, get_db
from assessment.models.models import TestStatus
from assessment.schemas.admin import (
    PlacementPreviewResponse,
    ProvisionTestRequest,
    ProvisionTestResponse,
    ReviewTestResponse,
)

from ._dependencies import logger, verify_admin_token

router = APIRouter()


def _get_student_or_404(db: Session, student_id: int) -> User:
    student = db.query(User).filter(User.id == student_id).first()
    if student is None:
        raise_not_found(ErrorMessages.STUDENT_NOT_FOUND)
    return student


def _seed_strings(seed_start: Dict[str, Any]) -> Dict[str, str]:
    return {key: value for key, value in seed_start.items() if key != SEED_META_KEY}


@router.post("/tests", response_model=ProvisionTestResponse, status_code=201)
def provision_test(
    request: ProvisionTestRequest,
    db: Session = Depends(get_db),
    _: bool = Depends(verify_admin_token),
):
    r"""
    Assign an entrance test to a student.

    The starting level of every section is computed from the student's most
    recent parent survey (DEFAULT_SEED when there is none) and frozen in the
    test's seed_start. One section row is created per section.

    Example:
        ```
        curl -X POST "https://api.example.com/v1/admin/tests" \
          -H "X-Admin-Token: your-admin-token" \
          -H "Content-Type: application/json" \
          -d '{"student_id": 42}'
        ```
    """
    student = _get_student_or_404(db, request.student_id)

    seed = compute_placement_seed_for_student(db, student.id)
    seed_start = seed.to_seed_json() if seed is not None else default_seed_json()

    with handle_db_error(db, "provision test"):
        test = Test(
            student_id=student.id,
            test_type="entrance",
            status=TestStatus.ASSIGNED,
            seed_start=seed_start,
            time_limit_seconds=request.time_limit_seconds
            or settings.DEFAULT_TIME_LIMIT_SECONDS,
            elapsed_ms=0,
            assigned_at=utc_now(),
        )
        db.add(test)
        db.flush()
        provision_sections(db, SessionState(test=test))
        db.commit()

    db.refresh(test)
    logger.info(
        f"Provisioned test {test.id} for student {student.id} "
        f"(seed source: {seed_start[SEED_META_KEY]['source']})"
    )

    return ProvisionTestResponse(
        test_id=test.id,
        student_id=student.id,
        status=test.status.value,
        time_limit_seconds=test.time_limit_seconds,
        seed_source=seed_start[SEED_META_KEY]["source"],
        seeds=_seed_strings(seed_start),
        seed_start=seed_start,
    )


@router.get(
    "/students/{student_id}/placement", response_model=PlacementPreviewResponse
)
def preview_placement(
    student_id: int,
    db: Session = Depends(get_db),
    _: bool = Depends(verify_admin_token),
):
    """
    Compute the placement seed a new test would receive, without storing it.
    """
    student = _get_student_or_404(db, student_id)
    seed = compute_placement_seed_for_student(db, student.id)

    if seed is None:
        default = default_seed_json()
        meta = default[SEED_META_KEY]
        return PlacementPreviewResponse(
            student_id=student.id,
            source=meta["source"],
            base_level=meta["base_level"],
            skill_modifiers=meta["skill_modifiers"],
            start_levels=meta["start_levels"],
            seeds=_seed_strings(default),
            profile_tags=meta["profile_tags"],
        )

    return PlacementPreviewResponse(
        student_id=student.id,
        source=seed.source,
        base_level=seed.base_level,
        background=seed.background,
        skill_modifiers=seed.skill_modifiers,
        start_levels=seed.start_levels,
        seeds={section: state.as_seed() for section, state in seed.start_states.items()},
        profile_tags=seed.profile_tags,
    )


@router.post("/tests/{test_id}/review", response_model=ReviewTestResponse)
def review_test(
    test_id: int,
    db: Session = Depends(get_db),
    _: bool = Depends(verify_admin_token),
):
    """
    Mark a completed test as reviewed.

    Raises:
        HTTPException: 404 if the test does not exist, 409 unless it is completed
    """
    test = db.query(Test).filter(Test.id == test_id).with_for_update().first()
    if test is None:
        raise_not_found(ErrorMessages.TEST_NOT_FOUND)

    if test.status != TestStatus.COMPLETED:
        raise_conflict(
            ErrorMessages.test_not_in_status(
                test.status.value, TestStatus.COMPLETED.value
            )
        )

    with handle_db_error(db, "review test"):
        test.status = TestStatus.REVIEWED
        test.reviewed_at = utc_now()
        db.commit()

    db.refresh(test)
    logger.info(f"Test {test.id} reviewed")
    return ReviewTestResponse(
        test_id=test.id, status=test.status.value, reviewed_at=test.reviewed_at
    )
