"""
Level state machine driven by answer streaks.

After each graded answer within a section:

* correct: ``streak_down`` resets to 0 and ``streak_up`` increments. Reaching
  the skip threshold jumps up by the skip delta and resets ``streak_up``;
  otherwise reaching the up threshold steps up one sublevel and keeps the
  streak, so a run of correct answers keeps climbing until it skips.
* incorrect: the mirror image with ``streak_down``.

Thresholds are compared against the counter *after* it is incremented.

Reading can alternatively be re-leveled per completed passage set instead of
per answer (READING_ADAPTATION_MODE = "passage_set").
"""
import logging
from dataclasses import dataclass, replace
from typing import Optional

from assessment.core.adaptive.levels import LevelState, shift_level_by
from assessment.core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreakRules:
    """Thresholds for the streak state machine."""

    up_threshold: int
    down_threshold: int
    skip_threshold: int
    skip_delta: int

    @classmethod
    def from_settings(cls) -> "StreakRules":
        return cls(
            up_threshold=settings.STREAK_UP_THRESHOLD,
            down_threshold=settings.STREAK_DOWN_THRESHOLD,
            skip_threshold=settings.STREAK_SKIP_THRESHOLD,
            skip_delta=settings.STREAK_SKIP_DELTA,
        )


@dataclass(frozen=True)
class PassageSetRules:
    """Accuracy bands for re-leveling reading after a passage set."""

    set_size: int
    promote_accuracy: float
    demote_accuracy: float
    perfect_steps: int

    @classmethod
    def from_settings(cls) -> "PassageSetRules":
        return cls(
            set_size=settings.READING_PASSAGE_SET_SIZE,
            promote_accuracy=settings.READING_SET_PROMOTE_ACCURACY,
            demote_accuracy=settings.READING_SET_DEMOTE_ACCURACY,
            perfect_steps=settings.READING_SET_SKIP_STEPS,
        )


@dataclass(frozen=True)
class StreakState:
    """(LevelState, streak_up, streak_down) for one section."""

    level: LevelState
    streak_up: int = 0
    streak_down: int = 0


def apply_outcome(
    state: StreakState, correct: bool, rules: Optional[StreakRules] = None
) -> StreakState:
    """
    Apply one graded answer to the streak state machine.

    Args:
        state: Current level and streak counters.
        correct: Whether the answer was correct.
        rules: Thresholds; defaults to the configured ones.

    Returns:
        The new StreakState. The input is never mutated.
    """
    rules = rules or StreakRules.from_settings()

    if correct:
        streak_up = state.streak_up + 1
        if streak_up >= rules.skip_threshold:
            return StreakState(
                level=shift_level_by(state.level, rules.skip_delta),
                streak_up=0,
                streak_down=0,
            )
        level = state.level
        if streak_up >= rules.up_threshold:
            level = shift_level_by(level, 1)
        return StreakState(level=level, streak_up=streak_up, streak_down=0)

    streak_down = state.streak_down + 1
    if streak_down >= rules.skip_threshold:
        return StreakState(
            level=shift_level_by(state.level, -rules.skip_delta),
            streak_up=0,
            streak_down=0,
        )
    level = state.level
    if streak_down >= rules.down_threshold:
        level = shift_level_by(level, -1)
    return StreakState(level=level, streak_up=0, streak_down=streak_down)


def track_outcome(state: StreakState, correct: bool) -> StreakState:
    """Update streak counters without moving the level (passage-set mode)."""
    if correct:
        return replace(state, streak_up=state.streak_up + 1, streak_down=0)
    return replace(state, streak_up=0, streak_down=state.streak_down + 1)


def evaluate_passage_set(
    state: StreakState,
    correct: int,
    total: int,
    rules: Optional[PassageSetRules] = None,
) -> StreakState:
    """
    Re-level reading after a completed passage set and reset both streaks.

    A perfect set jumps ``perfect_steps`` sublevels, accuracy at or above the
    promote band steps up one, accuracy below the demote band steps down one.
    """
    rules = rules or PassageSetRules.from_settings()
    accuracy = correct / total if total > 0 else 0.0

    if total > 0 and correct >= total:
        level = shift_level_by(state.level, rules.perfect_steps)
    elif accuracy >= rules.promote_accuracy:
        level = shift_level_by(state.level, 1)
    elif accuracy < rules.demote_accuracy:
        level = shift_level_by(state.level, -1)
    else:
        level = state.level

    if level != state.level:
        logger.debug(
            f"Passage set {correct}/{total} moved reading from {state.level} to {level}"
        )
    return StreakState(level=level, streak_up=0, streak_down=0)
