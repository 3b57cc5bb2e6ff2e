"""
Test finalization: section outcomes -> overall weighted level and score.

    section score   = round1(correct / served * 100), 0 when nothing was served
    section level   = final_level, or the current level for sections cut short
    weighted level  = round1(sum(w * level) / sum(w))
    total score     = round1(mean(section scores))

Rounding is half-up. Weights default to SECTION_WEIGHTS and can be overridden
through the ``section_weights`` system config key. Finalizing an already
finalized test returns the stored summary unchanged.
"""
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional

from sqlalchemy.orm import Session

from assessment.core.adaptive.levels import round_half_up
from assessment.core.adaptive.progress import SectionState, complete_section
from assessment.core.adaptive.session_state import SessionState
from assessment.core.config import settings
from assessment.core.datetime_utils import utc_now
from assessment.core.system_config import get_section_weights
from assessment.models.models import Section, TestStatus

logger = logging.getLogger(__name__)

FINALIZED_STATUSES = (TestStatus.COMPLETED, TestStatus.REVIEWED)


@dataclass(frozen=True)
class SectionResult:
    section: str
    level: float
    score: float
    questions_served: int
    correct_count: int


@dataclass(frozen=True)
class TestSummary:
    """Overall result of a finalized test."""

    weighted_level: float
    total_score: float
    sections: Dict[str, SectionResult] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def validate_section_weights(weights: Any) -> Optional[str]:
    """Return a problem description, or None when ``weights`` is usable."""
    if not isinstance(weights, Mapping) or not weights:
        return "weights must be a non-empty object"
    known = {section.value for section in Section}
    unknown = set(weights) - known
    if unknown:
        return f"unknown sections {sorted(unknown)}"
    for name, value in weights.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
            return f"weight for {name} must be a non-negative number"
    if sum(weights.values()) <= 0:
        return "weights must not all be zero"
    return None


def resolve_section_weights(override: Any = None) -> Dict[str, float]:
    """Configured weights, replaced by ``override`` when it is valid."""
    if override is not None:
        problem = validate_section_weights(override)
        if problem is None:
            return {name: float(value) for name, value in override.items()}
        logger.warning(f"Ignoring stored section weights: {problem}")
    return dict(settings.SECTION_WEIGHTS)


def section_score(state: SectionState) -> float:
    if state.questions_served <= 0:
        return 0.0
    return round_half_up(state.correct_count / state.questions_served * 100)


def section_level(state: SectionState) -> float:
    if state.final_level is not None:
        return state.final_level
    return state.level.as_decimal()


def compute_summary(
    sections: Iterable[SectionState], weights: Mapping[str, float]
) -> TestSummary:
    """
    Aggregate section states into a TestSummary.

    Sections without a weight count with weight 0; when no section carries
    weight, the weighted level is the plain mean of section levels.
    """
    results: Dict[str, SectionResult] = {}
    for state in sections:
        results[state.section.value] = SectionResult(
            section=state.section.value,
            level=section_level(state),
            score=section_score(state),
            questions_served=state.questions_served,
            correct_count=state.correct_count,
        )

    if not results:
        return TestSummary(weighted_level=0.0, total_score=0.0)

    weight_total = sum(weights.get(name, 0.0) for name in results)
    if weight_total > 0:
        weighted = sum(
            weights.get(name, 0.0) * result.level for name, result in results.items()
        ) / weight_total
    else:
        weighted = sum(r.level for r in results.values()) / len(results)

    total_score = sum(r.score for r in results.values()) / len(results)

    return TestSummary(
        weighted_level=round_half_up(weighted),
        total_score=round_half_up(total_score),
        sections=results,
    )


def stored_summary(session: SessionState) -> TestSummary:
    """Summary of an already finalized test, read from its rows."""
    results = {
        section.value: SectionResult(
            section=section.value,
            level=section_level(state),
            score=state.score if state.score is not None else section_score(state),
            questions_served=state.questions_served,
            correct_count=state.correct_count,
        )
        for section, state in session.sections.items()
    }
    return TestSummary(
        weighted_level=session.test.weighted_level,
        total_score=session.test.total_score or 0.0,
        sections=results,
    )


def is_finalized(session: SessionState) -> bool:
    return (
        session.test.status in FINALIZED_STATUSES
        and session.test.weighted_level is not None
    )


def finalize_session(db: Session, session: SessionState, *, reason: str) -> TestSummary:
    """
    Finalize a test within the caller's transaction (no commit).

    Incomplete sections are completed at their current level, section scores
    are written and the test moves to ``completed``.

    Args:
        db: Database session; only read here for the weight override.
        session: Locked session state.
        reason: Why the test is being finalized, for the log.

    Returns:
        The TestSummary (the stored one when the test was already finalized).
    """
    if is_finalized(session):
        logger.info(f"Test {session.test.id} already finalized; returning stored summary")
        return stored_summary(session)

    weights = resolve_section_weights(get_section_weights(db))

    for state in session.sections.values():
        complete_section(state)
        state.score = section_score(state)

    summary = compute_summary(session.sections.values(), weights)

    session.save()
    if session.test.status != TestStatus.REVIEWED:
        session.test.status = TestStatus.COMPLETED
    session.test.completed_at = utc_now()
    session.test.weighted_level = summary.weighted_level
    session.test.total_score = summary.total_score

    logger.info(
        f"Finalized test {session.test.id} ({reason}): weighted level "
        f"{summary.weighted_level}, total score {summary.total_score}"
    )
    return summary
