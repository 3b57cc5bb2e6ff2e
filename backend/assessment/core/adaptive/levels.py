"""
Two-part ordinal ability scale (level.sublevel) used by the adaptive engine.

A LevelState such as 3.2 means level 3, sublevel "2". Sublevels are ordered
"1" < "2" < "3"; stepping past "3" rolls into the next level at "1" and
stepping below "1" rolls into the previous level at "3". Every single step is
clamped to the configured scale, so a state can never leave
[ADAPTIVE_MIN_LEVEL.1, ADAPTIVE_MAX_LEVEL.3].
"""
import logging
import math
from dataclasses import dataclass
from typing import Any, List, Optional

from assessment.core.config import settings

logger = logging.getLogger(__name__)

SUBLEVELS = ("1", "2", "3")
SUBLEVELS_PER_LEVEL = len(SUBLEVELS)


def round_half_up(value: float, digits: int = 1) -> float:
    """Round half away from zero for non-negative values (2.25 -> 2.3).

    Python's round() uses banker's rounding, which would store 2.25 as 2.2.
    """
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


@dataclass(frozen=True, order=True)
class LevelState:
    """Immutable level/sublevel pair."""

    level: int
    sublevel: str

    def __post_init__(self) -> None:
        if self.sublevel not in SUBLEVELS:
            raise ValueError(f"sublevel must be one of {SUBLEVELS}, got {self.sublevel!r}")

    @property
    def ordinal(self) -> int:
        """Position on the scale, counting sublevels (1.1 -> 3, 1.2 -> 4, ...)."""
        return self.level * SUBLEVELS_PER_LEVEL + SUBLEVELS.index(self.sublevel)

    @classmethod
    def from_ordinal(cls, ordinal: int) -> "LevelState":
        level, index = divmod(ordinal, SUBLEVELS_PER_LEVEL)
        return cls(level=level, sublevel=SUBLEVELS[index])

    def as_seed(self) -> str:
        """Seed-string form stored in tests.seed_start, e.g. "3.2"."""
        return f"{self.level}.{self.sublevel}"

    def as_decimal(self) -> float:
        """Decimal form used for final levels and cross-section comparison."""
        return round(self.level + int(self.sublevel) / 10, 1)

    def __str__(self) -> str:
        return self.as_seed()


def min_state() -> LevelState:
    return LevelState(settings.ADAPTIVE_MIN_LEVEL, SUBLEVELS[0])


def max_state() -> LevelState:
    return LevelState(settings.ADAPTIVE_MAX_LEVEL, SUBLEVELS[-1])


def clamp_state(state: LevelState) -> LevelState:
    """Clamp a state to the configured scale."""
    lower, upper = min_state(), max_state()
    if state < lower:
        return lower
    if state > upper:
        return upper
    return state


def step_sublevel(state: LevelState, direction: int) -> LevelState:
    """Move one sublevel up (direction > 0) or down (direction < 0), clamped."""
    if direction == 0:
        return state
    delta = 1 if direction > 0 else -1
    return clamp_state(LevelState.from_ordinal(state.ordinal + delta))


def shift_level_by(state: LevelState, steps: int) -> LevelState:
    """Apply ``abs(steps)`` single-sublevel steps in the sign's direction.

    Bounds are enforced on every step, so shifting 3 up from 7.2 yields 7.3.
    """
    current = state
    for _ in range(abs(steps)):
        current = step_sublevel(current, steps)
    return current


def default_seed_state() -> LevelState:
    level, sublevel = settings.DEFAULT_SEED.split(".")
    return LevelState(int(level), sublevel)


def parse_seed(value: Any, default: Optional[LevelState] = None) -> LevelState:
    """
    Parse a stored seed ("3.2" or 3.2) into a LevelState.

    A sublevel digit other than 2 or 3 is read as sublevel "1". Anything that
    does not parse, or whose level lies outside the scale, yields ``default``
    (the configured DEFAULT_SEED when not given).

    Args:
        value: Seed string or number from tests.seed_start.
        default: Fallback state for unusable seeds.

    Returns:
        The parsed LevelState.
    """
    fallback = default or default_seed_state()
    if isinstance(value, bool):
        return fallback
    if isinstance(value, (int, float)):
        value = f"{value:.1f}"
    if not isinstance(value, str):
        return fallback

    level_part, _, sublevel_part = value.strip().partition(".")
    try:
        level = int(level_part)
    except ValueError:
        logger.debug(f"Unparseable seed {value!r}, using {fallback}")
        return fallback

    if not settings.ADAPTIVE_MIN_LEVEL <= level <= settings.ADAPTIVE_MAX_LEVEL:
        return fallback

    sublevel = sublevel_part[:1] if sublevel_part[:1] in ("2", "3") else "1"
    return LevelState(level, sublevel)


def from_decimal(value: float) -> LevelState:
    """Convert a decimal level (3.2) into a clamped LevelState."""
    level = int(math.floor(value + 1e-9))
    sublevel_digit = int(round_half_up((value - level) * 10, 0))
    sublevel_digit = min(max(sublevel_digit, 1), SUBLEVELS_PER_LEVEL)
    return clamp_state(LevelState(level, str(sublevel_digit)))


def generate_level_candidates(
    current: LevelState, count: Optional[int] = None
) -> List[LevelState]:
    """
    Ordered search list for the item selector.

    Starts with ``current`` and then alternates one step down, one step up,
    two down, two up, ... Duplicates produced by clamping at the scale edges
    are dropped, and the list is truncated to ``count`` entries
    (SELECTOR_CANDIDATE_COUNT by default).
    """
    limit = count if count is not None else settings.SELECTOR_CANDIDATE_COUNT
    candidates: List[LevelState] = [current]
    max_distance = max_state().ordinal - min_state().ordinal

    distance = 1
    while len(candidates) < limit and distance <= max_distance:
        for direction in (-1, 1):
            candidate = shift_level_by(current, direction * distance)
            if candidate not in candidates:
                candidates.append(candidate)
        distance += 1

    return candidates[:limit]
