"""
Test-taking endpoints: start, next item, submit, heartbeat, finalize, progress.

Every mutating endpoint loads the test with its section rows locked
(SELECT ... FOR UPDATE), runs the adaptive engine on the detached state and
commits once. Secondary bookkeeping (level sync after a pick, passage rotation,
parallel seeding) runs inside a savepoint and is tolerated on failure; the
answer itself is never acknowledged unless it was committed.
"""
import logging
import random
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from assessment.core.adaptive.content_pool import (
    ContentPool,
    DatabaseContentPool,
    QuestionItem,
)
from assessment.core.adaptive.finalizer import (
    FINALIZED_STATUSES,
    TestSummary,
    finalize_session,
)
from assessment.core.adaptive.item_selection import (
    is_valid_option_order,
    select_next_item,
    shuffle_options,
    to_canonical_index,
)
from assessment.core.adaptive.parallel import sync_parallel_levels
from assessment.core.adaptive.progress import (
    SectionState,
    apply_passage_set_result,
    complete_section,
    record_answer,
    section_cap,
)
from assessment.core.adaptive.session_state import (
    SessionState,
    apply_section_state,
    load_session,
    passage_results,
    provision_sections,
    seed_level,
)
from assessment.core.auth import get_current_user
from assessment.core.config import settings
from assessment.core.datetime_utils import ensure_timezone_aware, utc_now
from assessment.core.db_error_handling import handle_db_error
from assessment.core.error_responses import (
    ErrorMessages,
    raise_bad_request,
    raise_forbidden,
    raise_not_found,
    raise_unprocessable,
)
from assessment.core.graceful_failure import graceful_failure
from assessment.models import Response, User, get_db
from assessment.models.models import Section, TestStatus
from assessment.schemas.tests import (
    FinalizeResponse,
    HeartbeatRequest,
    HeartbeatResponse,
    NextItemResponse,
    PassageSchema,
    PresentedQuestionSchema,
    SectionProgressSchema,
    StartTestResponse,
    SubmitAnswerRequest,
    SubmitAnswerResponse,
    TestProgressResponse,
    TestSummarySchema,
)

router = APIRouter()
logger = logging.getLogger(__name__)

# Sections whose completion re-seeds their dependents when parallel sync is on
PARALLEL_BASE_SECTIONS = (Section.GRAMMAR, Section.LISTENING)


def get_content_pool(db: Session = Depends(get_db)) -> ContentPool:
    """Catalog access for the selector."""
    return DatabaseContentPool(db)


def get_rng() -> random.Random:
    """Random source for passage, question and option order choice."""
    return random.Random()


# =============================================================================
# Helpers
# =============================================================================


def get_owned_session(
    db: Session, test_id: int, user: User, *, lock: bool = True
) -> SessionState:
    """
    Load a test owned by ``user`` or raise.

    Raises:
        HTTPException: 404 if the test does not exist, 403 if another student owns it
    """
    session = load_session(db, test_id, lock=lock)
    if session is None:
        raise_not_found(ErrorMessages.TEST_NOT_FOUND)
    if session.test.student_id != user.id:
        raise_forbidden(ErrorMessages.TEST_ACCESS_DENIED)
    return session


def summary_schema(summary: TestSummary) -> TestSummarySchema:
    return TestSummarySchema.model_validate(summary.to_dict())


def _sync_parallel(db: Session, session: SessionState, base: Section) -> None:
    """Re-seed not-yet-started dependents of ``base`` (secondary write)."""
    if not settings.PARALLEL_SECTION_SYNC:
        return

    with graceful_failure(
        "sync parallel section levels",
        logger,
        context={"test_id": session.test.id, "section": base.value},
    ):
        with db.begin_nested():
            for section in sync_parallel_levels(session.sections, base):
                apply_section_state(session.sections[section], session.rows[section])
            db.flush()


def _start_session(
    db: Session, session: SessionState, pool: ContentPool
) -> List[Section]:
    """
    Move an assigned test to in_progress (no commit).

    Creates missing section rows from seed_start, auto-completes sections
    without catalog content and applies parallel seeding from grammar.

    Returns:
        Sections completed because the catalog has nothing for them.
    """
    provision_sections(db, session)

    available = pool.section_sizes()
    auto_completed: List[Section] = []
    for section, state in session.sections.items():
        if not state.completed and available.get(section, 0) == 0:
            complete_section(state)
            auto_completed.append(section)
    session.save()

    if auto_completed:
        logger.warning(
            f"Test {session.test.id}: no catalog content for "
            f"{', '.join(s.value for s in auto_completed)}; sections auto-completed"
        )

    if session.test.status == TestStatus.ASSIGNED:
        _sync_parallel(db, session, Section.GRAMMAR)
        now = utc_now()
        session.test.status = TestStatus.IN_PROGRESS
        session.test.started_at = now
        session.test.last_seen_at = now
        logger.info(f"Test {session.test.id} started by student {session.test.student_id}")
    else:
        session.test.last_seen_at = utc_now()

    return auto_completed


def _finalize(db: Session, session: SessionState, reason: str) -> TestSummary:
    """Finalize and commit; returns the stored summary for finalized tests."""
    with handle_db_error(db, "finalize test"):
        summary = finalize_session(db, session, reason=reason)
        db.commit()
    return summary


def _present(question: QuestionItem, rng: random.Random) -> PresentedQuestionSchema:
    options, option_order = shuffle_options(list(question.options), rng)
    return PresentedQuestionSchema(
        id=question.id,
        stem=question.stem,
        options=options,
        option_order=option_order,
        skill_tags=list(question.skill_tags),
        media_url=question.media_url,
        instructions=question.instructions,
    )


def _resolve_selected_index(
    submission: SubmitAnswerRequest, question: QuestionItem
) -> int:
    """Canonical option index of the submission, validated against the question."""
    option_count = len(question.options)

    if submission.option_order is not None and not is_valid_option_order(
        submission.option_order, option_count
    ):
        raise_bad_request(ErrorMessages.INVALID_OPTION_ORDER)

    if submission.selected_index >= option_count:
        raise_bad_request(
            ErrorMessages.selected_index_out_of_range(
                submission.selected_index, option_count
            )
        )

    if submission.option_order is not None:
        return to_canonical_index(submission.selected_index, submission.option_order)
    return submission.selected_index


def _duplicate_response(
    db: Session, session: SessionState, state: SectionState, question_id: int
) -> SubmitAnswerResponse:
    """Acknowledge a repeated submission without counting it again."""
    stored = (
        db.query(Response)
        .filter(
            Response.test_id == session.test.id,
            Response.question_id == question_id,
        )
        .first()
    )
    logger.info(
        f"Duplicate answer for question {question_id} in test {session.test.id} ignored"
    )
    return SubmitAnswerResponse(
        correct=bool(stored.correct) if stored is not None else False,
        section_completed=state.completed,
        all_completed=session.all_completed,
        time_expired=session.budget.expired,
        duplicate=True,
    )


# =============================================================================
# Endpoints
# =============================================================================


@router.post("/{test_id}/start", response_model=StartTestResponse)
def start_test(
    test_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    pool: ContentPool = Depends(get_content_pool),
):
    """
    Start (or resume) an assigned test.

    Raises:
        HTTPException: 400 if the test is already completed
    """
    session = get_owned_session(db, test_id, current_user)

    if session.test.status not in (TestStatus.ASSIGNED, TestStatus.IN_PROGRESS):
        raise_bad_request(
            ErrorMessages.test_not_in_status(
                session.test.status.value, TestStatus.ASSIGNED.value
            )
        )

    with handle_db_error(db, "start test"):
        auto_completed = _start_session(db, session, pool)
        db.commit()

    budget = session.budget
    return StartTestResponse(
        test_id=session.test.id,
        status=session.test.status.value,
        time_limit_seconds=session.test.time_limit_seconds,
        elapsed_ms=budget.elapsed_ms,
        time_remaining_seconds=budget.remaining_seconds,
        seeds={
            section.value: seed_level(session.test.seed_start, section).as_seed()
            for section in Section
        },
        auto_completed_sections=[s.value for s in auto_completed],
    )


@router.post(
    "/{test_id}/next",
    response_model=NextItemResponse,
    response_model_exclude_none=True,
)
def request_next_item(
    test_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    pool: ContentPool = Depends(get_content_pool),
    rng: random.Random = Depends(get_rng),
):
    """
    Serve the next question of the first unfinished section.

    Finalizes the test when the time budget is spent or every section is
    complete. When the active section has no content left it is completed and
    ``section_completed`` is returned; the client then asks again.
    """
    session = get_owned_session(db, test_id, current_user)

    if session.test.status in FINALIZED_STATUSES:
        return NextItemResponse(
            done=True, summary=summary_schema(_finalize(db, session, "already completed"))
        )

    if session.test.status == TestStatus.ASSIGNED:
        with handle_db_error(db, "start test"):
            _start_session(db, session, pool)
            db.commit()

    if not session.sections:
        raise_unprocessable(ErrorMessages.SECTION_STATE_MISSING)
    if session.missing_sections:
        raise_unprocessable(ErrorMessages.missing_sections(
            [s.value for s in session.missing_sections]
        ))

    budget = session.budget
    if budget.expired:
        summary = _finalize(db, session, "time expired")
        return NextItemResponse(
            done=True, time_expired=True, summary=summary_schema(summary)
        )

    state = session.next_open_section()
    if state is None:
        summary = _finalize(db, session, "all sections completed")
        return NextItemResponse(done=True, summary=summary_schema(summary))

    selection = select_next_item(
        pool,
        state.section,
        state.level,
        session.answered_ids,
        rng,
        rotation=state.rotation,
    )

    if selection is None:
        with handle_db_error(db, "complete section"):
            complete_section(state)
            apply_section_state(state, session.rows[state.section])
            if state.section in PARALLEL_BASE_SECTIONS:
                _sync_parallel(db, session, state.section)
            db.commit()
        return NextItemResponse(section_completed=True)

    if selection.level != state.level or selection.rotation != state.rotation:
        with graceful_failure(
            "sync section level",
            logger,
            context={"test_id": session.test.id, "section": state.section.value},
        ):
            with db.begin_nested():
                state.level = selection.level
                state.rotation = selection.rotation
                apply_section_state(state, session.rows[state.section])
                db.flush()
    session.test.last_seen_at = utc_now()
    db.commit()

    passage = None
    if selection.passage is not None:
        passage = PassageSchema(
            id=selection.passage.id,
            title=selection.passage.title,
            body=selection.passage.body,
        )

    return NextItemResponse(
        section=state.section.value,
        time_remaining_seconds=budget.remaining_seconds,
        level=selection.level.as_seed(),
        question=_present(selection.question, rng),
        passage=passage,
    )


@router.post("/{test_id}/submit", response_model=SubmitAnswerResponse)
def submit_answer(
    test_id: int,
    submission: SubmitAnswerRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    pool: ContentPool = Depends(get_content_pool),
):
    """
    Grade one answer and advance the section's adaptive state.

    A repeated submission for the same question is acknowledged with
    ``duplicate: true`` and changes nothing. The test is finalized when this
    answer completes the last section or spends the time budget.

    Raises:
        HTTPException: 400 for a test that is not in progress, a completed or
            inactive section or an invalid option; 404 for an unknown
            question; 422 when the section has no state row
    """
    session = get_owned_session(db, test_id, current_user)

    if session.test.status != TestStatus.IN_PROGRESS:
        raise_bad_request(
            ErrorMessages.test_not_in_status(
                session.test.status.value, TestStatus.IN_PROGRESS.value
            )
        )

    question = pool.get_question(submission.question_id)
    if question is None:
        raise_not_found(ErrorMessages.QUESTION_NOT_FOUND)

    state = session.sections.get(question.section)
    if state is None:
        raise_unprocessable(ErrorMessages.SECTION_STATE_MISSING)

    if question.id in session.answered_ids:
        return _duplicate_response(db, session, state, question.id)

    if state.completed:
        raise_bad_request(ErrorMessages.SECTION_ALREADY_COMPLETED)

    active = session.next_open_section()
    if active is None or active.section != question.section:
        raise_bad_request(ErrorMessages.QUESTION_NOT_IN_ACTIVE_SECTION)

    selected_index = _resolve_selected_index(submission, question)
    correct = selected_index == question.answer_index

    with handle_db_error(db, "record answer", detail=ErrorMessages.SUBMISSION_FAILED):
        try:
            with db.begin_nested():
                db.add(
                    Response(
                        test_id=session.test.id,
                        section=question.section,
                        question_id=question.id,
                        selected_index=selected_index,
                        correct=correct,
                        time_spent_ms=submission.time_spent_ms,
                        answered_at=utc_now(),
                    )
                )
                db.flush()
        except IntegrityError:
            logger.warning(
                f"Concurrent duplicate answer for question {question.id} "
                f"in test {session.test.id}"
            )
            return _duplicate_response(db, session, state, question.id)

        outcome = record_answer(state, correct, passage_id=question.passage_id)
        if outcome.passage_set_completed and not outcome.section_completed:
            set_correct, set_total = passage_results(
                db, session.test.id, question.passage_id
            )
            apply_passage_set_result(state, set_correct, set_total)

        budget = session.budget.add(submission.time_spent_ms)
        session.update_budget(budget)
        session.save()

        if outcome.section_completed and state.section in PARALLEL_BASE_SECTIONS:
            _sync_parallel(db, session, state.section)

        all_completed = session.all_completed
        finalized: Optional[TestSummary] = None
        if budget.expired or all_completed:
            finalized = finalize_session(
                db,
                session,
                reason="time expired" if budget.expired else "all sections completed",
            )
        db.commit()

    return SubmitAnswerResponse(
        correct=correct,
        section_completed=outcome.section_completed,
        all_completed=all_completed or finalized is not None,
        time_expired=budget.expired,
        duplicate=False,
        finalized=summary_schema(finalized) if finalized is not None else None,
    )


@router.post(
    "/{test_id}/heartbeat",
    response_model=HeartbeatResponse,
    response_model_exclude_none=True,
)
def heartbeat(
    test_id: int,
    request: HeartbeatRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Add client-measured elapsed time (a delta since the previous heartbeat).

    Elapsed time is clamped at the limit; reaching it finalizes the test.
    """
    if request.elapsed_ms < 0:
        raise_bad_request(ErrorMessages.NEGATIVE_ELAPSED_TIME)

    session = get_owned_session(db, test_id, current_user)

    if session.test.status in FINALIZED_STATUSES:
        summary = _finalize(db, session, "already completed")
        budget = session.budget
        return HeartbeatResponse(
            time_remaining_seconds=budget.remaining_seconds,
            expired=budget.expired,
            summary=summary_schema(summary),
        )

    if session.test.status != TestStatus.IN_PROGRESS:
        raise_bad_request(
            ErrorMessages.test_not_in_status(
                session.test.status.value, TestStatus.IN_PROGRESS.value
            )
        )

    with handle_db_error(db, "record heartbeat"):
        budget = session.budget.add(request.elapsed_ms)
        session.update_budget(budget)
        summary: Optional[TestSummary] = None
        if budget.expired:
            summary = finalize_session(db, session, reason="time expired")
        db.commit()

    return HeartbeatResponse(
        time_remaining_seconds=budget.remaining_seconds,
        expired=budget.expired,
        summary=summary_schema(summary) if summary is not None else None,
    )


@router.post("/{test_id}/finalize", response_model=FinalizeResponse)
def finalize_test(
    test_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Finalize the test now. Idempotent: a finalized test returns its stored summary.
    """
    session = get_owned_session(db, test_id, current_user)

    if session.test.status == TestStatus.ASSIGNED:
        raise_bad_request(
            ErrorMessages.test_not_in_status(
                session.test.status.value, TestStatus.IN_PROGRESS.value
            )
        )

    summary = _finalize(db, session, "requested")
    return FinalizeResponse(summary=summary_schema(summary))


@router.get("/{test_id}", response_model=TestProgressResponse)
def get_test_progress(
    test_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Get test status, remaining time and per-section progress.
    """
    session = get_owned_session(db, test_id, current_user, lock=False)
    test = session.test
    budget = session.budget

    sections = []
    for section in Section:
        state = session.sections.get(section)
        if state is None:
            continue
        sections.append(
            SectionProgressSchema(
                section=section.value,
                level=state.level.as_seed(),
                questions_served=state.questions_served,
                max_questions=section_cap(section),
                correct_count=state.correct_count,
                completed=state.completed,
                final_level=state.final_level,
                score=state.score,
            )
        )

    return TestProgressResponse(
        test_id=test.id,
        status=test.status.value,
        time_limit_seconds=test.time_limit_seconds,
        elapsed_ms=budget.elapsed_ms,
        time_remaining_seconds=budget.remaining_seconds,
        assigned_at=ensure_timezone_aware(test.assigned_at),
        started_at=ensure_timezone_aware(test.started_at),
        completed_at=ensure_timezone_aware(test.completed_at),
        weighted_level=test.weighted_level,
        total_score=test.total_score,
        sections=sections,
    )
