"""
Loading and saving the adaptive state of one test.

Every mutating request works on a SessionState: the test row and its section
rows are read with SELECT ... FOR UPDATE, the pure engine functions operate on
detached SectionState objects and save() copies them back onto the rows. The
caller owns the transaction and commits once.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from assessment.core.adaptive.item_selection import PassageRotation
from assessment.core.adaptive.levels import LevelState, parse_seed
from assessment.core.adaptive.progress import SectionState, TimeBudget
from assessment.core.datetime_utils import utc_now
from assessment.models.models import (
    Question,
    Response,
    Section,
    Test,
    TestSection,
)

logger = logging.getLogger(__name__)


def section_state_from_row(row: TestSection) -> SectionState:
    return SectionState(
        section=Section(row.section),
        level=parse_seed(f"{row.current_level}.{row.current_sublevel}"),
        streak_up=row.streak_up or 0,
        streak_down=row.streak_down or 0,
        questions_served=row.questions_served or 0,
        correct_count=row.correct_count or 0,
        incorrect_count=row.incorrect_count or 0,
        completed=bool(row.completed),
        final_level=row.final_level,
        score=row.score,
        rotation=PassageRotation(
            passage_id=row.current_passage_id,
            served=row.current_passage_question_count or 0,
        ),
    )


def apply_section_state(state: SectionState, row: TestSection) -> None:
    """Copy a SectionState onto its row (no flush)."""
    row.current_level = state.level.level
    row.current_sublevel = state.level.sublevel
    row.streak_up = state.streak_up
    row.streak_down = state.streak_down
    row.questions_served = state.questions_served
    row.correct_count = state.correct_count
    row.incorrect_count = state.incorrect_count
    row.completed = state.completed
    row.final_level = state.final_level
    row.score = state.score
    row.current_passage_id = state.rotation.passage_id
    row.current_passage_question_count = state.rotation.served


@dataclass
class SessionState:
    """A locked test row with its sections and answered question ids."""

    test: Test
    rows: Dict[Section, TestSection] = field(default_factory=dict)
    sections: Dict[Section, SectionState] = field(default_factory=dict)
    answered_ids: Set[int] = field(default_factory=set)

    @property
    def budget(self) -> TimeBudget:
        return TimeBudget.from_limit_seconds(
            self.test.time_limit_seconds, self.test.elapsed_ms or 0
        )

    def update_budget(self, budget: TimeBudget) -> None:
        self.test.elapsed_ms = budget.elapsed_ms
        self.test.last_seen_at = utc_now()

    @property
    def missing_sections(self) -> List[Section]:
        return [section for section in Section if section not in self.sections]

    def next_open_section(self) -> Optional[SectionState]:
        """First not-completed section in administration order."""
        for section in Section:
            state = self.sections.get(section)
            if state is not None and not state.completed:
                return state
        return None

    @property
    def all_completed(self) -> bool:
        return bool(self.sections) and all(s.completed for s in self.sections.values())

    def save(self) -> None:
        for section, state in self.sections.items():
            apply_section_state(state, self.rows[section])


def load_session(db: Session, test_id: int, *, lock: bool = True) -> Optional[SessionState]:
    """
    Load a test and its sections, locking the rows for the transaction.

    Args:
        db: Database session.
        test_id: Test to load.
        lock: Take row locks (SELECT ... FOR UPDATE). Read-only callers pass False.

    Returns:
        The SessionState, or None when the test does not exist.
    """
    test_query = db.query(Test).filter(Test.id == test_id)
    if lock:
        test_query = test_query.with_for_update()
    test = test_query.first()
    if test is None:
        return None

    section_query = (
        db.query(TestSection)
        .filter(TestSection.test_id == test_id)
        .order_by(TestSection.id)
    )
    if lock:
        section_query = section_query.with_for_update()

    session = SessionState(test=test)
    for row in section_query.all():
        section = Section(row.section)
        session.rows[section] = row
        session.sections[section] = section_state_from_row(row)

    session.answered_ids = {
        question_id
        for (question_id,) in db.query(Response.question_id)
        .filter(Response.test_id == test_id)
        .all()
    }
    return session


def seed_level(seed_start: Optional[dict], section: Section) -> LevelState:
    """Starting level of a section from tests.seed_start (defaults when absent)."""
    value = (seed_start or {}).get(section.value)
    return parse_seed(value)


def provision_sections(db: Session, session: SessionState) -> List[Section]:
    """
    Create the section rows a test is missing, seeded from seed_start.

    Returns:
        The sections that were created.
    """
    created: List[Section] = []
    for section in session.missing_sections:
        level = seed_level(session.test.seed_start, section)
        row = TestSection(
            test_id=session.test.id,
            section=section,
            current_level=level.level,
            current_sublevel=level.sublevel,
            streak_up=0,
            streak_down=0,
            questions_served=0,
            correct_count=0,
            incorrect_count=0,
            completed=False,
            current_passage_question_count=0,
        )
        db.add(row)
        session.rows[section] = row
        session.sections[section] = section_state_from_row(row)
        created.append(section)

    if created:
        db.flush()
        logger.info(
            f"Provisioned sections for test {session.test.id}: "
            f"{', '.join(s.value for s in created)}"
        )
    return created


def passage_results(db: Session, test_id: int, passage_id: int) -> Tuple[int, int]:
    """(correct, total) responses in a test to the questions of one passage."""
    total, correct = (
        db.query(
            func.count(Response.id),
            func.coalesce(func.sum(case((Response.correct.is_(True), 1), else_=0)), 0),
        )
        .join(Question, Question.id == Response.question_id)
        .filter(Response.test_id == test_id, Question.passage_id == passage_id)
        .one()
    )
    return int(correct or 0), int(total or 0)
