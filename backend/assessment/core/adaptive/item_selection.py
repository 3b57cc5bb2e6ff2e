"""
Next-item selection for a section.

The selector walks the level candidates produced by
generate_level_candidates() (current level first, then nearest neighbours)
and returns the first unanswered question it can find. Reading questions are
grouped by passage: a passage stays active until it has served
READING_PASSAGE_SET_SIZE questions, and no passage serves more than that many
questions within one test.

All randomness comes from the ``rng`` argument so selection is reproducible
under a seeded ``random.Random``.
"""
import logging
import random
from dataclasses import dataclass
from typing import AbstractSet, List, Optional, Sequence, Tuple

from assessment.core.adaptive.content_pool import ContentPool, PassageItem, QuestionItem
from assessment.core.adaptive.levels import LevelState, generate_level_candidates
from assessment.core.config import settings
from assessment.models.models import Section

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PassageRotation:
    """Active reading passage and how many of its questions were served."""

    passage_id: Optional[int] = None
    served: int = 0


@dataclass(frozen=True)
class Selection:
    """A selected question and the state to persist for the section."""

    question: QuestionItem
    level: LevelState
    passage: Optional[PassageItem] = None
    rotation: PassageRotation = PassageRotation()


def _passage_usage(
    pool: ContentPool, passage_id: int, answered_ids: AbstractSet[int]
) -> Tuple[int, int]:
    """(answered, unanswered) question counts for a passage in this test."""
    answered = unanswered = 0
    for question in pool.passage_questions(passage_id):
        if question.id in answered_ids:
            answered += 1
        else:
            unanswered += 1
    return answered, unanswered


def _is_eligible_passage(
    pool: ContentPool,
    passage: PassageItem,
    answered_ids: AbstractSet[int],
    set_size: int,
) -> bool:
    answered, unanswered = _passage_usage(pool, passage.id, answered_ids)
    return unanswered > 0 and answered < set_size


def _resolve_passage(
    pool: ContentPool,
    candidate: LevelState,
    rotation: PassageRotation,
    answered_ids: AbstractSet[int],
    set_size: int,
    rng: random.Random,
) -> Tuple[Optional[PassageItem], PassageRotation]:
    """Keep the active passage when it still fits ``candidate``, else pick a new one."""
    passages = pool.find_passages(Section.READING, candidate)
    eligible = [p for p in passages if _is_eligible_passage(pool, p, answered_ids, set_size)]

    if rotation.passage_id is not None and rotation.served < set_size:
        active = next((p for p in eligible if p.id == rotation.passage_id), None)
        if active is not None:
            return active, rotation

    if not eligible:
        return None, rotation

    passage = rng.choice(eligible)
    logger.debug(f"Rotating reading passage to {passage.id} at {candidate}")
    return passage, PassageRotation(passage_id=passage.id, served=0)


def select_next_item(
    pool: ContentPool,
    section: Section,
    current: LevelState,
    answered_ids: AbstractSet[int],
    rng: random.Random,
    rotation: Optional[PassageRotation] = None,
    candidate_count: Optional[int] = None,
    set_size: Optional[int] = None,
) -> Optional[Selection]:
    """
    Pick the next unanswered question for a section.

    Args:
        pool: Catalog access.
        section: Section being served.
        current: The section's current LevelState.
        answered_ids: Question ids already answered in this test.
        rng: Random source for passage and question choice.
        rotation: Reading passage rotation state (ignored for other sections).
        candidate_count: Override for SELECTOR_CANDIDATE_COUNT.
        set_size: Override for READING_PASSAGE_SET_SIZE.

    Returns:
        The Selection, or None when every candidate level is exhausted.
    """
    rotation = rotation or PassageRotation()
    set_size = set_size or settings.READING_PASSAGE_SET_SIZE

    for candidate in generate_level_candidates(current, candidate_count):
        passage: Optional[PassageItem] = None
        next_rotation = rotation

        if section == Section.READING:
            passage, next_rotation = _resolve_passage(
                pool, candidate, rotation, answered_ids, set_size, rng
            )
            if passage is None:
                continue

        questions = [
            q
            for q in pool.find_questions(
                section, candidate, passage.id if passage else None
            )
            if q.id not in answered_ids
        ]
        if not questions:
            continue

        question = rng.choice(questions)
        if candidate != current:
            logger.debug(
                f"No {section.value} item at {current}; serving {question.id} at {candidate}"
            )
        return Selection(
            question=question,
            level=candidate,
            passage=passage,
            rotation=next_rotation,
        )

    logger.info(f"Content exhausted for {section.value} around {current}")
    return None


def shuffle_options(
    options: Sequence[str], rng: random.Random
) -> Tuple[List[str], List[int]]:
    """
    Present options in a fresh random order.

    Returns:
        (presented options, option_order) where ``option_order[i]`` is the
        canonical index of the option shown at position ``i``.
    """
    option_order = list(range(len(options)))
    rng.shuffle(option_order)
    return [options[i] for i in option_order], option_order


def is_valid_option_order(option_order: Sequence[int], option_count: int) -> bool:
    """True when ``option_order`` is a permutation of range(option_count)."""
    return sorted(option_order) == list(range(option_count))


def to_canonical_index(presented_index: int, option_order: Sequence[int]) -> int:
    """Map a presented position back to the canonical option index."""
    return option_order[presented_index]
