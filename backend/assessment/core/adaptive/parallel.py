"""
Parallel section seeding.

When PARALLEL_SECTION_SYNC is enabled, sections that have not served any
question yet follow the level of the section they are derived from:

    reading   = grammar
    listening = grammar - 1 sublevel
    dialog    = listening - 1 sublevel

The rules are applied transitively, so moving grammar also moves dialog
through listening. A section that already started keeps its level, and its
own level is what its dependents follow.
"""
import logging
from typing import Dict, List, Mapping, Tuple

from assessment.core.adaptive.levels import LevelState, shift_level_by
from assessment.core.adaptive.progress import SectionState
from assessment.models.models import Section

logger = logging.getLogger(__name__)

# dependent section -> (base section, sublevel offset)
PARALLEL_RULES: Mapping[Section, Tuple[Section, int]] = {
    Section.READING: (Section.GRAMMAR, 0),
    Section.LISTENING: (Section.GRAMMAR, -1),
    Section.DIALOG: (Section.LISTENING, -1),
}


def _dependents(base: Section) -> List[Tuple[Section, int]]:
    return [
        (dependent, offset)
        for dependent, (rule_base, offset) in PARALLEL_RULES.items()
        if rule_base == base
    ]


def sync_parallel_levels(
    sections: Dict[Section, SectionState], base: Section
) -> List[Section]:
    """
    Propagate ``base``'s level to its not-yet-started dependents.

    Args:
        sections: Section states of one test, mutated in place.
        base: Section whose level drives the update.

    Returns:
        Sections whose level changed.
    """
    base_state = sections.get(base)
    if base_state is None:
        return []

    changed: List[Section] = []

    def traverse(section: Section, level: LevelState) -> None:
        for dependent, offset in _dependents(section):
            state = sections.get(dependent)
            if state is None:
                continue

            next_level = state.level
            if state.questions_served == 0 and not state.completed:
                target = shift_level_by(level, offset)
                if target != state.level:
                    state.level = target
                    changed.append(dependent)
                next_level = target

            traverse(dependent, next_level)

    traverse(base, base_state.level)

    if changed:
        logger.info(
            f"Parallel sync from {base.value} at {base_state.level} updated "
            f"{', '.join(s.value for s in changed)}"
        )
    return changed
