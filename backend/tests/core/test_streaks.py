"""
Tests for the streak-driven level state machine.
"""
from assessment.core.adaptive.levels import LevelState
from assessment.core.adaptive.streaks import (
    PassageSetRules,
    StreakRules,
    StreakState,
    apply_outcome,
    evaluate_passage_set,
    track_outcome,
)

RULES = StreakRules(up_threshold=3, down_threshold=3, skip_threshold=5, skip_delta=2)
SET_RULES = PassageSetRules(
    set_size=4, promote_accuracy=0.7, demote_accuracy=0.4, perfect_steps=2
)


def L(seed: str) -> LevelState:
    level, sublevel = seed.split(".")
    return LevelState(int(level), sublevel)


def run(start: StreakState, answers) -> StreakState:
    state = start
    for correct in answers:
        state = apply_outcome(state, correct, RULES)
    return state


class TestApplyOutcome:
    """Tests for apply_outcome."""

    def test_three_correct_steps_up_and_keeps_streak(self):
        state = run(StreakState(L("3.1")), [True, True, True])

        assert state.level == L("3.2")
        assert state.streak_up == 3
        assert state.streak_down == 0

    def test_two_correct_do_not_move(self):
        state = run(StreakState(L("3.1")), [True, True])
        assert state.level == L("3.1")
        assert state.streak_up == 2

    def test_fourth_correct_steps_again(self):
        state = run(StreakState(L("3.1")), [True] * 4)
        assert state.level == L("3.3")
        assert state.streak_up == 4

    def test_fifth_correct_skips_and_resets(self):
        """3.1 -> 3.2 -> 3.3 on the 3rd/4th answer, then +0.2 on the 5th."""
        state = run(StreakState(L("3.1")), [True] * 5)
        assert state.level == L("4.2")
        assert state.streak_up == 0
        assert state.streak_down == 0

    def test_three_incorrect_steps_down(self):
        state = run(StreakState(L("3.1")), [False, False, False])
        assert state.level == L("2.3")
        assert state.streak_down == 3
        assert state.streak_up == 0

    def test_fifth_incorrect_skips_down(self):
        state = run(StreakState(L("4.2")), [False] * 5)
        # 4.2 -> 4.1 -> 3.3, then -0.2 -> 3.1
        assert state.level == L("3.1")
        assert state.streak_down == 0

    def test_wrong_answer_resets_up_streak(self):
        state = run(StreakState(L("3.1")), [True, True, False])
        assert state.level == L("3.1")
        assert state.streak_up == 0
        assert state.streak_down == 1

    def test_clamped_at_top_of_scale(self):
        state = run(StreakState(L("7.3")), [True] * 5)
        assert state.level == L("7.3")

    def test_input_not_mutated(self):
        start = StreakState(L("3.1"), streak_up=2)
        apply_outcome(start, True, RULES)
        assert start == StreakState(L("3.1"), streak_up=2)


class TestTrackOutcome:
    def test_counts_without_moving(self):
        state = StreakState(L("3.1"))
        for _ in range(6):
            state = track_outcome(state, True)
        assert state.level == L("3.1")
        assert state.streak_up == 6

    def test_incorrect_resets_up(self):
        state = track_outcome(StreakState(L("3.1"), streak_up=2), False)
        assert state == StreakState(L("3.1"), streak_up=0, streak_down=1)


class TestEvaluatePassageSet:
    """Tests for passage-set re-leveling."""

    def test_perfect_set_jumps(self):
        state = evaluate_passage_set(StreakState(L("3.1"), 4, 0), 4, 4, SET_RULES)
        assert state == StreakState(L("3.3"), 0, 0)

    def test_promote_band(self):
        state = evaluate_passage_set(StreakState(L("3.1")), 3, 4, SET_RULES)
        assert state.level == L("3.2")

    def test_hold_band(self):
        state = evaluate_passage_set(StreakState(L("3.1")), 2, 4, SET_RULES)
        assert state.level == L("3.1")

    def test_demote_band(self):
        state = evaluate_passage_set(StreakState(L("3.1"), 0, 2), 1, 4, SET_RULES)
        assert state == StreakState(L("2.3"), 0, 0)

    def test_empty_set_demotes(self):
        state = evaluate_passage_set(StreakState(L("3.1")), 0, 0, SET_RULES)
        assert state.level == L("2.3")
