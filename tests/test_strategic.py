import pytest

from matchup_ai.conditions import BattleConditions
from matchup_ai.matchup_cache import Matchup, MatchupCache
from matchup_ai.position_eval import PositionEvaluator
from matchup_ai.strategic import (
    CACHE_COVERAGE_THRESHOLD, CurrentMatchups, EvaluationType, StrategicValueTracker,
    TeamMatchupEvaluator, evaluate_check_value, evaluate_counter_value,
    evaluate_uniqueness_value,
)


@pytest.fixture
def two_v_two(sim, mon):
    return sim.create_battle_state(
        [mon("Garchomp", ["earthquake"]), mon("Blissey", ["softboiled"])],
        [mon("Corviknight", ["bravebird"]), mon("Dragapult", ["shadowball"])])


def _fill(cache, state, table):
    for (a, b), value in table.items():
        cache.insert(a, b, BattleConditions.from_state(state, a, b), value)


FULL = {
    (0, 0): Matchup.STRONG_COUNTER,
    (0, 1): Matchup.COUNTER,
    (1, 0): Matchup.NEUTRAL,
    (1, 1): Matchup.STRONG_COUNTERED,
}
PARTIAL = {k: v for k, v in FULL.items() if k != (1, 1)}


def test_value_functions():
    assert evaluate_counter_value(0, 3) == 0.0
    assert evaluate_counter_value(1, 0) == 0.0
    assert evaluate_counter_value(1, 1) == 55.0
    assert evaluate_check_value(1, 2) == 17.5
    assert evaluate_uniqueness_value(0) == 0.0
    assert evaluate_uniqueness_value(1) == 50.0
    assert evaluate_uniqueness_value(3) == pytest.approx(120.0)


def test_current_matchups_relations(two_v_two):
    cache = MatchupCache()
    _fill(cache, two_v_two, FULL)
    m = CurrentMatchups.from_cache(two_v_two, cache)

    assert m.coverage == 1.0
    assert m.matrix.tolist() == [[2, 1], [0, -2]]
    assert m.s1_info[0].counters == [0]
    assert m.s1_info[0].checks == [1]
    assert m.s1_info[0].unique_counters == [0]
    assert m.s1_info[1].countered_by == [1]
    assert m.s2_info[1].counters == [1]
    assert m.s2_info[1].unique_counters == [1]
    assert m.strategic_value() == pytest.approx(35.0)


def test_missing_entries_lower_coverage(two_v_two):
    cache = MatchupCache()
    _fill(cache, two_v_two, PARTIAL)
    m = CurrentMatchups.from_cache(two_v_two, cache)
    assert m.coverage == 0.75
    assert not m.found[1, 1]
    assert m.strategic_value() == pytest.approx(160.0)


@pytest.mark.parametrize("coverage, expected", [
    (1.0, EvaluationType.COMPLETE),
    (0.75, EvaluationType.PARTIAL),
    (CACHE_COVERAGE_THRESHOLD, EvaluationType.PARTIAL),
    (0.5, EvaluationType.FALLBACK),
    (0.0, EvaluationType.FALLBACK),
])
def test_classify_coverage(coverage, expected):
    assert TeamMatchupEvaluator.classify_coverage(coverage, CACHE_COVERAGE_THRESHOLD) == expected


def test_complete_evaluation_adds_strategic_value(two_v_two):
    cache = MatchupCache()
    _fill(cache, two_v_two, FULL)
    team_eval = TeamMatchupEvaluator(cache)
    base = PositionEvaluator().evaluate(two_v_two)

    assert team_eval.evaluate(two_v_two) == pytest.approx(base + 35.0)
    stats = team_eval.tracker.stats()
    assert stats["complete"] == 1
    assert stats["strategic_mean"] == pytest.approx(35.0)
    assert stats["base_mean"] == pytest.approx(base)


def test_partial_evaluation_blends_with_running_mean(two_v_two):
    cache = MatchupCache()
    _fill(cache, two_v_two, PARTIAL)
    tracker = StrategicValueTracker()
    tracker.update(100.0, 0.0)
    team_eval = TeamMatchupEvaluator(cache, tracker)
    base = PositionEvaluator().evaluate(two_v_two)

    mean_after = (100.0 + 160.0) / 2
    expected = base + 160.0 * 0.75 + mean_after * 0.25
    assert team_eval.evaluate(two_v_two) == pytest.approx(expected)
    assert tracker.stats()["partial"] == 1


def test_fallback_uses_mean_without_updating(two_v_two):
    cache = MatchupCache()
    _fill(cache, two_v_two, {(0, 0): Matchup.STRONG_COUNTER})
    tracker = StrategicValueTracker()
    tracker.update(40.0, 10.0)
    team_eval = TeamMatchupEvaluator(cache, tracker)
    base = PositionEvaluator().evaluate(two_v_two)

    assert team_eval.evaluate(two_v_two) == pytest.approx(base + 40.0)
    assert tracker.eval_count == 1
    stats = tracker.stats()
    assert stats["fallback"] == 1
    assert stats["fallback_rate"] == 1.0


def test_finished_side_returns_base(two_v_two):
    for poke in two_v_two.sides[1].team:
        poke.fainted = True
    team_eval = TeamMatchupEvaluator(MatchupCache())
    assert team_eval.evaluate(two_v_two) == PositionEvaluator().evaluate(two_v_two)
    assert team_eval.tracker.total_evaluations == 0


def test_tracker_reset():
    tracker = StrategicValueTracker()
    tracker.update(10.0, 5.0)
    tracker.record(EvaluationType.COMPLETE)
    tracker.reset()
    assert tracker.strategic_mean == 0.0
    assert tracker.total_evaluations == 0
    assert tracker.stats()["complete_rate"] == 0.0
