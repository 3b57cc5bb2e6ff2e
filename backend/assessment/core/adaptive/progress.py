"""
Per-section progress tracking and the test time budget.
"""
import logging
from dataclasses import dataclass, field, replace
from typing import Optional

from assessment.core.adaptive.item_selection import PassageRotation
from assessment.core.adaptive.levels import LevelState
from assessment.core.adaptive.streaks import (
    PassageSetRules,
    StreakRules,
    StreakState,
    apply_outcome,
    evaluate_passage_set,
    track_outcome,
)
from assessment.core.config import settings
from assessment.models.models import Section

logger = logging.getLogger(__name__)

PASSAGE_SET_MODE = "passage_set"


def section_cap(section: Section) -> int:
    """Maximum number of questions served in a section."""
    return settings.SECTION_MAX_QUESTIONS[section.value]


@dataclass
class SectionState:
    """Adaptive state of one section, detached from its database row."""

    section: Section
    level: LevelState
    streak_up: int = 0
    streak_down: int = 0
    questions_served: int = 0
    correct_count: int = 0
    incorrect_count: int = 0
    completed: bool = False
    final_level: Optional[float] = None
    score: Optional[float] = None
    rotation: PassageRotation = field(default_factory=PassageRotation)

    @property
    def streaks(self) -> StreakState:
        return StreakState(self.level, self.streak_up, self.streak_down)

    def apply_streaks(self, streaks: StreakState) -> None:
        self.level = streaks.level
        self.streak_up = streaks.streak_up
        self.streak_down = streaks.streak_down

    @property
    def at_cap(self) -> bool:
        return self.questions_served >= section_cap(self.section)


@dataclass(frozen=True)
class AnswerOutcome:
    """What one recorded answer did to a section."""

    previous_level: LevelState
    level: LevelState
    section_completed: bool
    passage_set_completed: bool = False

    @property
    def level_changed(self) -> bool:
        return self.previous_level != self.level


def complete_section(state: SectionState) -> None:
    """Mark a section completed and freeze its final level."""
    if state.completed:
        return
    state.completed = True
    state.final_level = state.level.as_decimal()
    logger.info(
        f"Section {state.section.value} completed at {state.level} "
        f"after {state.questions_served} questions"
    )


def uses_passage_sets(section: Section) -> bool:
    return (
        section == Section.READING
        and settings.READING_ADAPTATION_MODE == PASSAGE_SET_MODE
    )


def record_answer(
    state: SectionState,
    correct: bool,
    streak_rules: Optional[StreakRules] = None,
    set_rules: Optional[PassageSetRules] = None,
    passage_id: Optional[int] = None,
) -> AnswerOutcome:
    """
    Apply one graded answer to a section.

    Updates the counters, the level and streaks, the reading passage rotation
    and completion at the section cap. In passage-set mode a reading answer
    only tracks streaks; the caller re-levels the section with
    apply_passage_set_result() when ``passage_set_completed`` is returned.
    Completion is evaluated before that, so callers must not re-level a
    section this call completed.

    Args:
        state: Section state, mutated in place.
        correct: Whether the answer was correct.
        streak_rules: Streak thresholds; configured ones by default.
        set_rules: Passage set rules; configured ones by default.
        passage_id: Passage of the answered question. Only answers to the
            passage in rotation advance it.

    Returns:
        AnswerOutcome describing the transition.
    """
    set_rules = set_rules or PassageSetRules.from_settings()
    previous_level = state.level

    state.questions_served += 1
    if correct:
        state.correct_count += 1
    else:
        state.incorrect_count += 1

    passage_set_completed = False
    rotation = state.rotation
    if (
        state.section == Section.READING
        and rotation.passage_id is not None
        and passage_id == rotation.passage_id
    ):
        served = rotation.served + 1
        if served >= set_rules.set_size:
            passage_set_completed = True
            state.rotation = PassageRotation()
        else:
            state.rotation = replace(rotation, served=served)

    if uses_passage_sets(state.section):
        state.apply_streaks(track_outcome(state.streaks, correct))
    else:
        state.apply_streaks(apply_outcome(state.streaks, correct, streak_rules))

    if state.level != previous_level:
        logger.info(
            f"Section {state.section.value} moved from {previous_level} to {state.level}"
        )

    if state.at_cap:
        complete_section(state)

    return AnswerOutcome(
        previous_level=previous_level,
        level=state.level,
        section_completed=state.completed,
        passage_set_completed=passage_set_completed and uses_passage_sets(state.section),
    )


def apply_passage_set_result(
    state: SectionState,
    correct: int,
    total: int,
    rules: Optional[PassageSetRules] = None,
) -> None:
    """Re-level a reading section after a completed passage set."""
    if state.completed:
        return
    state.apply_streaks(evaluate_passage_set(state.streaks, correct, total, rules))


@dataclass(frozen=True)
class TimeBudget:
    """Elapsed time against the test limit, both in milliseconds."""

    limit_ms: int
    elapsed_ms: int = 0

    @classmethod
    def from_limit_seconds(cls, limit_seconds: Optional[int], elapsed_ms: int = 0) -> "TimeBudget":
        limit = limit_seconds or settings.DEFAULT_TIME_LIMIT_SECONDS
        return cls(limit_ms=limit * 1000, elapsed_ms=min(max(elapsed_ms, 0), limit * 1000))

    def add(self, delta_ms: int) -> "TimeBudget":
        """Accumulate elapsed time, clamped at the limit. Negative deltas are ignored."""
        elapsed = min(self.limit_ms, self.elapsed_ms + max(delta_ms, 0))
        return replace(self, elapsed_ms=elapsed)

    @property
    def remaining_seconds(self) -> int:
        return max(0, (self.limit_ms - self.elapsed_ms) // 1000)

    @property
    def expired(self) -> bool:
        """Expired once less than a whole second remains."""
        return self.remaining_seconds <= 0
