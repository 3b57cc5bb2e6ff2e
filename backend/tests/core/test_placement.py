"""
Tests for the placement seeder (parent survey -> starting levels).
"""
import pytest

from assessment.core.adaptive.levels import LevelState
from assessment.core.adaptive.placement import (
    SEED_META_KEY,
    PlacementInputs,
    base_adjustment,
    classify_background,
    compute_placement_seed,
    compute_placement_seed_for_student,
    default_seed_json,
    determine_skill_modifiers,
    extract_placement_inputs,
    match_subject,
    parse_academy_count,
    parse_grade_index,
    parse_integer,
    quantize_level_value,
)
from assessment.models import Section

MIDDLE_TWO_SURVEY = {
    "grade": "중2",
    "currentAcademyCount": "none",
    "highestEnglishScore": "96",
    "weeklyReadingCount": "1권",
}


class TestParsing:
    """Tests for free-form survey field parsing."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("초5", 5),
            ("중2", 8),
            ("고3", 12),
            ("middle 2", 8),
            ("High 1", 10),
            ("middle school 2", 8),
            ("High School 1", 10),
            ("중학교 2학년", 8),
            ("E4", 4),
            ("Grade 5", 5),
            ("7", 7),
            ("grade two", None),
            ("", None),
            (None, None),
        ],
    )
    def test_parse_grade_index(self, raw, expected):
        assert parse_grade_index(raw) == expected

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("3권", 3),
            ("1,200", 1200),
            ("about 4 books", 4),
            (5, 5),
            (3.7, 3),
            (float("inf"), None),
            (float("nan"), None),
            ("none", None),
            (None, None),
        ],
    )
    def test_parse_integer(self, raw, expected):
        assert parse_integer(raw) == expected

    @pytest.mark.parametrize(
        "raw,expected",
        [("none", 0), ("two", 2), ("four_plus", 4), ("3", 3), ("", 0), (None, 0), ("-1", 0)],
    )
    def test_parse_academy_count(self, raw, expected):
        assert parse_academy_count(raw) == expected

    def test_extract_inputs_collects_notes(self):
        inputs = extract_placement_inputs(
            {
                "grade": " 중 2 ",
                "pastLearningMethods": "private_tutoring",
                "additionalNotes": "Lived abroad for two years",
            }
        )
        assert inputs.grade_index == 8
        assert inputs.past_learning == ("private_tutoring",)
        assert inputs.mentions_overseas is True

    @pytest.mark.parametrize("methods", [5, True, 3.5, {"kind": "tutoring"}])
    def test_non_list_learning_methods_ignored(self, methods):
        inputs = extract_placement_inputs({"grade": "중2", "pastLearningMethods": methods})
        assert inputs.past_learning == ()
        assert inputs.grade_index == 8

    def test_non_finite_numbers_are_absent(self):
        inputs = extract_placement_inputs(
            {"highestEnglishScore": float("inf"), "weeklyReadingCount": float("nan")}
        )
        assert inputs.highest_score is None
        assert inputs.weekly_reading_count is None


class TestQuantize:
    """Tests for snapping decimal levels onto sublevels."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (4.2, 4.2),
            (2.0, 2.1),
            (3.18, 3.2),
            (3.9, 3.3),
            (3.16, 3.1),
            (6.9, 6.3),
            (0.5, 1.1),
            (8.0, 7.3),
        ],
    )
    def test_quantize_level_value(self, value, expected):
        assert quantize_level_value(value) == expected


class TestRules:
    """Tests for background classification and adjustments."""

    def test_no_signals_is_mixed(self):
        assert classify_background(PlacementInputs()) == "mixed"

    def test_overseas_wins(self):
        inputs = PlacementInputs(notes="해외 거주 3년", academy_count=3)
        assert classify_background(inputs) == "overseas"

    def test_worksheet_only(self):
        inputs = PlacementInputs(past_learning=("worksheet_program",))
        assert classify_background(inputs) == "worksheet_only"

    def test_multi_academy(self):
        assert classify_background(PlacementInputs(academy_count=2)) == "multi_academy"

    def test_academy_plus_with_tutoring(self):
        inputs = PlacementInputs(past_learning=("private_tutoring",))
        assert classify_background(inputs) == "academy_plus"

    def test_first_match_per_group(self):
        """A score of 96 earns only the >=95 bonus, not the >=90 one too."""
        inputs = PlacementInputs(highest_score=96, weekly_reading_count=6)
        assert base_adjustment(inputs, "multi_academy") == pytest.approx(0.6)

    def test_low_score_and_no_reading(self):
        inputs = PlacementInputs(highest_score=60, weekly_reading_count=0)
        assert base_adjustment(inputs, "worksheet_only") == pytest.approx(-0.3)

    def test_one_book_has_no_reading_adjustment(self):
        assert base_adjustment(PlacementInputs(weekly_reading_count=1), "mixed") == 0.0

    @pytest.mark.parametrize(
        "subject,expected",
        [
            ("듣기", Section.LISTENING),
            ("Reading", Section.READING),
            ("문법", Section.GRAMMAR),
            ("speaking", Section.DIALOG),
            ("math", None),
            (None, None),
        ],
    )
    def test_match_subject(self, subject, expected):
        assert match_subject(subject) == expected

    def test_modifiers_for_same_subject_combine(self):
        modifiers = determine_skill_modifiers(
            PlacementInputs(weakest_subject="reading", strongest_subject="reading")
        )
        assert modifiers["reading"] == pytest.approx(-0.2)
        assert modifiers["grammar"] == 0.0


class TestComputePlacementSeed:
    """Tests for the full seeding pipeline."""

    def test_middle_school_grade_two(self):
        """중2, score 96 and one book a week start every section at 4.2."""
        seed = compute_placement_seed(MIDDLE_TWO_SURVEY)

        assert seed.background == "mixed"
        assert seed.base_level == 4.2
        assert set(seed.start_levels.values()) == {4.2}
        assert seed.start_states["grammar"] == LevelState(4, "2")

    def test_weak_and_strong_subjects(self):
        seed = compute_placement_seed(
            {**MIDDLE_TWO_SURVEY, "weakestSubject": "듣기", "strongestSubject": "reading"}
        )

        assert seed.skill_modifiers["listening"] == pytest.approx(-0.3)
        # 4.2 - 0.3 = 3.9 snaps to 3.3
        assert seed.start_levels["listening"] == 3.3
        assert seed.start_levels["reading"] == 4.3
        assert seed.start_levels["grammar"] == 4.2
        assert "weak_listening" in seed.profile_tags
        assert "strong_reading" in seed.profile_tags

    def test_malformed_fields_are_ignored(self):
        seed = compute_placement_seed(
            {
                **MIDDLE_TWO_SURVEY,
                "pastLearningMethods": 5,
                "highestEnglishScore": float("inf"),
            }
        )
        assert seed is not None
        assert seed.start_levels["grammar"] == seed.base_level

    def test_english_stage_with_school(self):
        seed = compute_placement_seed({**MIDDLE_TWO_SURVEY, "grade": "middle school 2"})
        assert seed.base_level == compute_placement_seed(MIDDLE_TWO_SURVEY).base_level

    def test_elementary_multi_academy(self):
        # grade 5 bucket 2.0 + 0.2 academy + 0.1 score + 0.2 reading = 2.5 -> 2.3
        seed = compute_placement_seed(
            {
                "grade": "초5",
                "currentAcademyCount": "two",
                "highestEnglishScore": 92,
                "weeklyReadingCount": 5,
            }
        )
        assert seed.background == "multi_academy"
        assert seed.base_level == 2.3

    def test_early_grade_floor(self):
        seed = compute_placement_seed(
            {"grade": "초3", "pastLearningMethods": ["worksheet_program"]}
        )
        assert seed.background == "worksheet_only"
        assert seed.base_level == 1.1

    def test_overseas_overrides_grade(self):
        seed = compute_placement_seed(
            {"grade": "초4", "additionalNotes": "미국 유학 2년"}
        )
        assert seed.background == "overseas"
        assert seed.base_level == 6.3

    def test_unparseable_grade_uses_unknown_base(self):
        seed = compute_placement_seed({"grade": "??", "highestEnglishScore": 99})
        assert seed.base_level == 2.1

    def test_profile_tags(self):
        seed = compute_placement_seed(
            {**MIDDLE_TWO_SURVEY, "academyGoal": "Prepare for TOEFL", "homeworkAmount": "medium"}
        )
        for tag in (
            "grade_중2",
            "background_mixed",
            "reads_1pw",
            "score_90",
            "grammar_4.2",
            "motivation_prepare_for_toefl",
            "homework_medium",
        ):
            assert tag in seed.profile_tags
        assert len(seed.profile_tags) == len(set(seed.profile_tags))

    def test_no_survey(self):
        assert compute_placement_seed(None) is None
        assert compute_placement_seed({}) is None

    def test_seed_json(self):
        seed_json = compute_placement_seed(MIDDLE_TWO_SURVEY).to_seed_json()

        assert seed_json["reading"] == "4.2"
        assert seed_json[SEED_META_KEY]["source"] == "parent_survey"
        assert seed_json[SEED_META_KEY]["base_level"] == 4.2

    def test_default_seed_json(self):
        seed_json = default_seed_json()

        assert {seed_json[s.value] for s in Section} == {"2.1"}
        assert seed_json[SEED_META_KEY]["source"] == "default"


class TestSeedForStudent:
    """Tests for loading the latest survey from the database."""

    def test_latest_survey_wins(self, db_session, student, add_survey):
        add_survey(student.id, {"grade": "초2"})
        add_survey(student.id, MIDDLE_TWO_SURVEY)

        seed = compute_placement_seed_for_student(db_session, student.id)

        assert seed.base_level == 4.2

    def test_no_survey_returns_none(self, db_session, student):
        assert compute_placement_seed_for_student(db_session, student.id) is None

    def test_non_object_survey_ignored(self, db_session, student, add_survey):
        add_survey(student.id, ["not", "an", "object"])
        assert compute_placement_seed_for_student(db_session, student.id) is None
