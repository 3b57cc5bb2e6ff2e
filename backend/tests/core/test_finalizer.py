"""
Tests for test finalization and section weights.
"""
import pytest

from assessment.core.adaptive.finalizer import (
    compute_summary,
    finalize_session,
    resolve_section_weights,
    section_score,
    validate_section_weights,
)
from assessment.core.adaptive.levels import LevelState
from assessment.core.adaptive.progress import SectionState, complete_section
from assessment.core.adaptive.session_state import load_session, provision_sections
from assessment.core.adaptive import session_state
from assessment.core.config import settings
from assessment.core.system_config import set_section_weights
from assessment.models import Section
from assessment.models import models as m

WEIGHTS = {"reading": 0.4, "grammar": 0.3, "listening": 0.2, "dialog": 0.1}


def L(seed: str) -> LevelState:
    level, sublevel = seed.split(".")
    return LevelState(int(level), sublevel)


def make_state(section, seed, served=0, correct=0, completed=True):
    state = SectionState(
        section=section,
        level=L(seed),
        questions_served=served,
        correct_count=correct,
        incorrect_count=served - correct,
    )
    if completed:
        complete_section(state)
    return state


class TestSectionScore:
    def test_percentage_rounded_half_up(self):
        assert section_score(make_state(Section.GRAMMAR, "3.1", 3, 2)) == 66.7

    def test_nothing_served_scores_zero(self):
        assert section_score(make_state(Section.GRAMMAR, "3.1")) == 0.0


class TestComputeSummary:
    """Tests for compute_summary."""

    def test_weighted_level_and_mean_score(self):
        sections = [
            make_state(Section.GRAMMAR, "3.1", 10, 8),
            make_state(Section.READING, "4.2", 10, 6),
            make_state(Section.LISTENING, "2.3", 10, 5),
            make_state(Section.DIALOG, "2.1", 10, 10),
        ]

        summary = compute_summary(sections, WEIGHTS)

        # 0.3*3.1 + 0.4*4.2 + 0.2*2.3 + 0.1*2.1 = 3.28
        assert summary.weighted_level == 3.3
        assert summary.total_score == 72.5
        assert summary.sections["reading"].level == 4.2
        assert summary.sections["reading"].score == 60.0

    def test_incomplete_section_uses_current_level(self):
        sections = [make_state(Section.GRAMMAR, "5.2", 4, 2, completed=False)]

        summary = compute_summary(sections, WEIGHTS)

        assert summary.weighted_level == 5.2

    def test_zero_weight_falls_back_to_mean(self):
        sections = [
            make_state(Section.GRAMMAR, "3.1"),
            make_state(Section.DIALOG, "4.1"),
        ]

        summary = compute_summary(sections, {"reading": 1.0})

        assert summary.weighted_level == 3.6

    def test_no_sections(self):
        summary = compute_summary([], WEIGHTS)
        assert summary.weighted_level == 0.0
        assert summary.sections == {}


class TestSectionWeights:
    """Tests for weight validation and override resolution."""

    def test_valid(self):
        assert validate_section_weights(WEIGHTS) is None

    @pytest.mark.parametrize(
        "weights",
        [
            {},
            {"reading": -0.1},
            {"reading": 0, "grammar": 0},
            {"writing": 1.0},
            {"reading": "heavy"},
            {"reading": True},
            ["reading"],
        ],
    )
    def test_invalid(self, weights):
        assert validate_section_weights(weights) is not None

    def test_override_used_when_valid(self):
        weights = resolve_section_weights({"grammar": 1, "reading": 0})
        assert weights == {"grammar": 1.0, "reading": 0.0}

    def test_invalid_override_falls_back_to_settings(self):
        assert resolve_section_weights({"reading": -1}) == settings.SECTION_WEIGHTS

    def test_no_override(self):
        assert resolve_section_weights(None) == settings.SECTION_WEIGHTS


@pytest.fixture
def stored_session(db_session, student):
    """A provisioned in-progress test with some answers recorded on its sections."""
    test = m.Test(
        student_id=student.id,
        status=m.TestStatus.IN_PROGRESS,
        seed_start={"grammar": "3.1", "reading": "4.2", "listening": "2.3", "dialog": "2.1"},
        time_limit_seconds=3000,
        elapsed_ms=0,
    )
    db_session.add(test)
    db_session.flush()
    session = session_state.SessionState(test=test)
    provision_sections(db_session, session)

    session.sections[Section.GRAMMAR].questions_served = 4
    session.sections[Section.GRAMMAR].correct_count = 3
    session.save()
    db_session.commit()
    return load_session(db_session, test.id)


class TestFinalizeSession:
    """Tests for finalize_session against the database."""

    def test_finalizes_and_stores_results(self, db_session, stored_session):
        summary = finalize_session(db_session, stored_session, reason="requested")
        db_session.commit()

        test = db_session.get(m.Test, stored_session.test.id)
        assert test.status == m.TestStatus.COMPLETED
        assert test.completed_at is not None
        assert test.weighted_level == summary.weighted_level
        # 0.3*3.1 + 0.4*4.2 + 0.2*2.3 + 0.1*2.1 = 3.28
        assert summary.weighted_level == 3.3
        # grammar 75, others 0
        assert summary.total_score == 18.8

        rows = db_session.query(m.TestSection).filter_by(test_id=test.id).all()
        assert all(row.completed for row in rows)
        grammar = next(row for row in rows if row.section == Section.GRAMMAR)
        assert grammar.final_level == 3.1
        assert grammar.score == 75.0

    def test_second_call_returns_stored_summary(self, db_session, stored_session):
        first = finalize_session(db_session, stored_session, reason="requested")
        db_session.commit()

        set_section_weights(db_session, {"grammar": 1.0})
        reloaded = load_session(db_session, stored_session.test.id)
        second = finalize_session(db_session, reloaded, reason="requested")

        assert second.weighted_level == first.weighted_level
        assert second.total_score == first.total_score
        assert second.sections["grammar"].score == first.sections["grammar"].score

    def test_uses_stored_weight_override(self, db_session, stored_session):
        set_section_weights(db_session, {"grammar": 1.0})

        summary = finalize_session(db_session, stored_session, reason="requested")

        assert summary.weighted_level == 3.1

    def test_reviewed_status_kept(self, db_session, stored_session):
        stored_session.test.status = m.TestStatus.REVIEWED

        finalize_session(db_session, stored_session, reason="requested")

        assert stored_session.test.status == m.TestStatus.REVIEWED
