"""
Adaptive testing engine for the entrance assessment.

Placement seeding, the level/sublevel streak state machine, item and passage
selection, section progress with the time budget, and finalization.
"""

from .content_pool import (
    ContentPool,
    DatabaseContentPool,
    InMemoryContentPool,
    PassageItem,
    QuestionItem,
)
from .finalizer import (
    SectionResult,
    TestSummary,
    compute_summary,
    finalize_session,
    resolve_section_weights,
)
from .item_selection import (
    PassageRotation,
    Selection,
    is_valid_option_order,
    select_next_item,
    shuffle_options,
    to_canonical_index,
)
from .levels import LevelState, generate_level_candidates, parse_seed, shift_level_by
from .parallel import sync_parallel_levels
from .placement import PlacementSeed, compute_placement_seed, default_seed_json
from .progress import AnswerOutcome, SectionState, TimeBudget, record_answer
from .session_state import SessionState, load_session, provision_sections
from .streaks import StreakRules, StreakState, apply_outcome

__all__ = [
    "AnswerOutcome",
    "ContentPool",
    "DatabaseContentPool",
    "InMemoryContentPool",
    "LevelState",
    "PassageItem",
    "PassageRotation",
    "PlacementSeed",
    "QuestionItem",
    "SectionResult",
    "SectionState",
    "Selection",
    "SessionState",
    "StreakRules",
    "StreakState",
    "TestSummary",
    "TimeBudget",
    "apply_outcome",
    "compute_placement_seed",
    "compute_summary",
    "default_seed_json",
    "finalize_session",
    "generate_level_candidates",
    "is_valid_option_order",
    "load_session",
    "parse_seed",
    "provision_sections",
    "record_answer",
    "resolve_section_weights",
    "select_next_item",
    "shift_level_by",
    "shuffle_options",
    "sync_parallel_levels",
    "to_canonical_index",
]
