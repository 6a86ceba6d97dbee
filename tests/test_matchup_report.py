import pytest

from matchup_ai.matchup_cache import Matchup
from matchup_ai.matchup_calc import MatchupCalculator
from matchup_ai.matchup_mcts import SearchConfig
from matchup_ai.matchup_report import (
    MatchupMetrics, MatchupReasoning, SideMetrics, determine_primary_reason, explain_matchup,
)


def _reasoning(classification, s1=None, s2=None, first=True):
    r = MatchupReasoning("A", "B", MatchupMetrics(s1 or SideMetrics(), s2 or SideMetrics(), first))
    r.set_result(classification)
    return r


@pytest.mark.parametrize("classification, s1, s2, first, reason", [
    (Matchup.STRONG_COUNTER, SideMetrics(priority_ko=True), None, False,
     "Can KO with priority before opponent moves"),
    (Matchup.STRONG_COUNTER, SideMetrics(ohko_chance=1.0), None, True,
     "Has nearly guaranteed OHKO and moves first"),
    (Matchup.COUNTER, SideMetrics(turns_to_ko=2), SideMetrics(turns_to_ko=2), True,
     "Faster and equal/better KO speed"),
    (Matchup.COUNTER, SideMetrics(recovery_sufficient=True), None, False,
     "Recovery offsets most but not all damage"),
    (Matchup.NEUTRAL, SideMetrics(turns_to_ko=3), SideMetrics(turns_to_ko=2), True,
     "Offsetting advantages (speed vs. damage)"),
    (Matchup.NEUTRAL, SideMetrics(turns_to_ko=3), SideMetrics(turns_to_ko=3), True,
     "Balanced matchup with no clear advantage"),
    (Matchup.COUNTERED, SideMetrics(turns_to_ko=3), SideMetrics(turns_to_ko=3), False,
     "Equal KO timing but moves second"),
    (Matchup.STRONG_COUNTERED, None, SideMetrics(recovery_dominates=True), True,
     "Opponent can recover more than max damage output"),
    (Matchup.STRONG_COUNTERED, SideMetrics(turns_to_ko=4), SideMetrics(turns_to_ko=2), False,
     "Opponent has much faster KO and moves first"),
])
def test_primary_reason(classification, s1, s2, first, reason):
    r = _reasoning(classification, s1, s2, first)
    assert determine_primary_reason(r) == reason
    assert r.primary_reason == reason


def test_report_strings():
    r = _reasoning(Matchup.COUNTER)
    r.add_step("first step")
    determine_primary_reason(r)
    assert r.classification_to_string() == "CHECK (Favorable)"
    assert "Win rate: n/a" in r.summary()
    report = r.format_report()
    assert report.startswith("=== MATCHUP: A vs B ===")
    assert "1. first step" in report


def test_explain_walled_matchup(calc, sim, mon):
    state = sim.create_battle_state([mon("Garchomp", ["earthquake"])],
                                    [mon("Corviknight", ["bravebird"])])
    r = explain_matchup(calc, state, 0, 0)
    assert r.classification == Matchup.STRONG_COUNTERED
    assert r.win_percentage is None
    assert r.metrics.s1_moves_first
    assert r.metrics.s1.effective_damage == 0
    assert r.metrics.s1.turns_to_ko == 99
    assert r.metrics.s2.avg_damage > 0
    assert "Side One has no effective direct damage output" in r.reasoning_steps
    assert r.reasoning_steps[-1] == "Final classification: Hard Countered"
    assert r.primary_reason


def test_explain_matches_calculator(calc, sim, mon):
    state = sim.create_battle_state([mon("Dragapult", ["dracometeor", "shadowball"])],
                                    [mon("Garchomp", ["dragonclaw"])])
    r = explain_matchup(calc, state, 0, 0)
    from matchup_ai.conditions import BattleConditions
    assert r.classification == calc.compute_matchup(state, 0, 0, BattleConditions.baseline())
    assert r.metrics.s1.has_stat_lowering_move
    assert r.metrics.s1.best_strategy in ("stat-lowering move first", "second-best move first")


def test_explain_records_search_win_rate(gd, sim, mon, seeded):
    calc = MatchupCalculator(gd, sim, search_config=SearchConfig(batch_size=30, iterations=30))
    state = sim.create_battle_state([mon("Garchomp", ["dragonclaw", "swordsdance"])],
                                    [mon("Blissey", ["softboiled", "tackle"])])
    r = explain_matchup(calc, state, 0, 0)
    assert r.win_percentage is not None
    assert 0.0 <= r.win_percentage <= 1.0
    assert any(step.startswith("Search: 30 iterations") for step in r.reasoning_steps)
    assert "Matchup category: A_SETUP_B_RECOVERY" in r.reasoning_steps
