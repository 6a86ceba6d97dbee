import pytest

from matchup_ai.conditions import BattleConditions
from matchup_ai.matchup_cache import Matchup
from matchup_ai.matchup_mcts import SearchConfig
from matchup_ai.session import MatchupSession


@pytest.fixture
def session(gd):
    return MatchupSession(gd, search_config=SearchConfig(batch_size=20),
                          use_matchup_search=False)


@pytest.fixture
def battle(session, mon):
    return session.sim.create_battle_state(
        [mon("Garchomp", ["earthquake", "dragonclaw"]), mon("Blissey", ["softboiled", "tackle"])],
        [mon("Corviknight", ["bravebird", "roost"])])


def test_prepare_fills_every_alive_pair(session, battle):
    computed = session.prepare(battle)
    assert computed == len(session.cache) == 50
    assert session.prepare(battle) == 0


def test_classify_hits_cache_after_first_call(session, battle):
    first = session.classify(battle, 0, 0)
    assert session.cache.stats()["misses"] == 1
    assert session.classify(battle, 0, 0) == first
    assert session.cache.stats()["hits"] == 1
    assert session.cache.peek(0, 0, BattleConditions.from_state(battle, 0, 0)) == first


def test_walled_attacker_through_session(session, mon):
    state = session.sim.create_battle_state([mon("Garchomp", ["earthquake"])],
                                            [mon("Corviknight", ["bravebird"])])
    assert session.classify(state, 0, 0) == Matchup.STRONG_COUNTERED
    assert session.explain(state, 0, 0).classification == Matchup.STRONG_COUNTERED


def test_search_prepares_cache_and_uses_it(session, battle, seeded):
    result = session.search(battle)
    assert len(session.cache) > 0
    assert result.iteration_count == 20
    stats = session.tracker.stats()
    assert stats["total"] > 0
    assert stats["fallback"] < stats["total"]


def test_evaluate_complete_when_prepared(session, battle):
    session.prepare(battle)
    session.evaluate(battle)
    assert session.tracker.stats()["complete"] == 1


def test_evaluate_on_fresh_session_fills_cache(session, battle):
    session.evaluate(battle)
    assert len(session.cache) == 50
    stats = session.tracker.stats()
    assert stats["complete"] == 1
    assert stats["fallback"] == 0


def test_reset_discards_state(session, battle):
    session.prepare(battle)
    session.evaluate(battle)
    session.reset()
    assert len(session.cache) == 0
    assert session.tracker.total_evaluations == 0


def test_report_prints_summary(session, battle, capsys, seeded):
    result = session.search(battle)
    session.report(battle, result)
    out = capsys.readouterr().out
    assert "Baseline Matchup Matrix" in out
    assert "Cache:" in out
    assert "Search result (Side One):" in out


def test_sessions_do_not_share_cache(gd, battle):
    one = MatchupSession(gd, use_matchup_search=False)
    two = MatchupSession(gd, use_matchup_search=False)
    one.classify(battle, 0, 0)
    assert len(one.cache) == 1
    assert len(two.cache) == 0
