import pytest

from matchup_ai.conditions import BattleConditions
from matchup_ai.matchup_cache import Matchup
from matchup_ai.matchup_calc import (
    KO_SENTINEL, KoPath, MatchupCategory, MatchupProfile, PassiveEffects, SetupInfo,
    analyze_damage_race, analyze_one_recovery_matchup, analyze_passive_effects,
    calculate_boosted_damage, calculate_boosted_damage_optimal, calculate_optimal_ko_path,
    calculate_optimal_setup, calculate_recovery_strategy, classify_matchup_by_category,
    effective_damage, find_best_move, get_matchup_category, get_stat_drop_percentage,
    is_setup_viable, is_stat_lowering_move, turns_to_ko,
)


def test_boosted_damage_table():
    assert [calculate_boosted_damage(100, s) for s in range(8)] == \
        [100, 150, 200, 250, 300, 350, 400, 400]
    assert calculate_boosted_damage(100, -1) == 100
    assert calculate_boosted_damage_optimal(100, 0, 2) == 200


@pytest.mark.parametrize("hp, dmg, turns", [
    (300, 300, 1), (300, 150, 2), (300, 100, 3), (300, 99, 4), (300, 1, 99), (300, 0, 99),
])
def test_turns_to_ko(hp, dmg, turns):
    assert turns_to_ko(hp, dmg) == turns


def test_stat_drop_helpers():
    assert is_stat_lowering_move("dracometeor")
    assert not is_stat_lowering_move("earthquake")
    assert not is_stat_lowering_move(None)
    assert get_stat_drop_percentage("dracometeor") == 0.5
    assert get_stat_drop_percentage("superpower") == 0.67
    assert get_stat_drop_percentage("earthquake") == 1.0


def test_category_flags():
    assert get_matchup_category(False, False, False, False) == MatchupCategory.PURE_DAMAGE_RACE
    assert get_matchup_category(True, True, True, True) == MatchupCategory.BOTH_FULL
    assert get_matchup_category(False, True, True, False) == MatchupCategory.A_RECOVERY_B_SETUP
    assert len(set(MatchupCategory)) == 16


# ─── KO 경로 ─────────────────────────────────────────────────

def test_ko_path_prefers_second_best_then_drop():
    assert calculate_optimal_ko_path(200, 150, 0, True, 60, 0.5) == KoPath(2, False, False)


def test_ko_path_priority_finish():
    path = calculate_optimal_ko_path(200, 120, 90, False, 0, 1.0)
    assert path == KoPath(2, True, False)


def test_ko_path_priority_ohko():
    assert calculate_optimal_ko_path(80, 200, 90, False, 0, 1.0) == KoPath(1, True, False)


def test_ko_path_no_damage():
    assert calculate_optimal_ko_path(200, 0, 0, False, 0, 1.0).turns == KO_SENTINEL


def test_ko_path_drop_then_weakened():
    # 130 → 65씩: 130 + 65 + 65 ≥ 250 → 3턴
    path = calculate_optimal_ko_path(250, 130, 0, True, 0, 0.5)
    assert path == KoPath(3, False, True)


# ─── 분류 ───────────────────────────────────────────────────

def test_faster_harder_hitter_counters():
    a = MatchupProfile(hp=300, damage=80)
    b = MatchupProfile(hp=300, damage=40)
    assert classify_matchup_by_category(a, b, True) == Matchup.STRONG_COUNTER


def test_zero_damage_cases():
    hitter = MatchupProfile(hp=300, damage=50)
    wall = MatchupProfile(hp=300, damage=0)
    assert classify_matchup_by_category(wall, hitter, True) == Matchup.STRONG_COUNTERED
    assert classify_matchup_by_category(hitter, wall, False) == Matchup.STRONG_COUNTER
    assert classify_matchup_by_category(wall, MatchupProfile(hp=1, damage=0), True) == Matchup.NEUTRAL


def test_equal_turns_decided_by_speed():
    a = MatchupProfile(hp=300, damage=100)
    b = MatchupProfile(hp=300, damage=100)
    assert analyze_damage_race(a, b, True) == Matchup.COUNTER
    assert analyze_damage_race(a, b, False) == Matchup.COUNTERED


def test_more_damage_never_hurts():
    b = MatchupProfile(hp=300, damage=90)
    previous = Matchup.STRONG_COUNTERED
    for dmg in (10, 40, 75, 100, 150, 300):
        result = analyze_damage_race(MatchupProfile(hp=300, damage=dmg), b, False)
        assert result >= previous
        previous = result


def test_recovery_exceeding_damage_dominates():
    rec = MatchupProfile(hp=400, damage=30, passive=PassiveEffects(
        has_active_recovery=True, active_recovery_amount=200, active_recovery_pp=8))
    other = MatchupProfile(hp=300, damage=120)
    assert analyze_one_recovery_matchup(rec, other, False) == Matchup.STRONG_COUNTER
    # B가 회복 측이면 부호가 뒤집힌다
    assert classify_matchup_by_category(other, rec, True) == Matchup.STRONG_COUNTERED


def test_recovery_with_low_pp_falls_back_to_frequency():
    rec = MatchupProfile(hp=400, damage=60, passive=PassiveEffects(
        has_active_recovery=True, active_recovery_amount=200, active_recovery_pp=2))
    other = MatchupProfile(hp=300, damage=80)
    # 빈도 0.4 → 실효 출력 36/턴, 상대 순 데미지 0
    assert analyze_one_recovery_matchup(rec, other, False) == Matchup.STRONG_COUNTER


def test_recovery_offset_is_monotonic_in_incoming_damage():
    rec = MatchupProfile(hp=45, damage=5, passive=PassiveEffects(
        has_active_recovery=True, active_recovery_amount=100, active_recovery_pp=2))
    previous = Matchup.STRONG_COUNTER
    for incoming in range(1, 121):
        result = analyze_one_recovery_matchup(rec, MatchupProfile(hp=300, damage=incoming), True)
        if incoming <= 50:
            # 빈도 ≤ 0.5: 회복이 받는 딜을 전부 상쇄
            assert result == Matchup.STRONG_COUNTER, incoming
        assert result <= previous, incoming
        previous = result


def test_setup_without_search_uses_boosted_race():
    setup = SetupInfo(has_setup=True, optimal_setup_stages=1, attack_per_stage=2)
    a = MatchupProfile(hp=300, damage=60, setup=setup)
    b = MatchupProfile(hp=300, damage=60)
    # 부스트 후 120 → 3턴 vs 5턴
    assert classify_matchup_by_category(a, b, False) == Matchup.STRONG_COUNTER


def test_setup_delegates_to_search():
    a = MatchupProfile(hp=300, damage=60, setup=SetupInfo(has_setup=True))
    b = MatchupProfile(hp=300, damage=60)
    calls = []

    def search():
        calls.append(1)
        return Matchup.COUNTERED

    assert classify_matchup_by_category(a, b, True, search) == Matchup.COUNTERED
    assert calls == [1]


def test_effective_damage_floor():
    mine = PassiveEffects(passive_damage_outgoing=10)
    theirs = PassiveEffects(passive_recovery_amount=100)
    assert effective_damage(50, mine, theirs) == 0
    assert effective_damage(50, mine, PassiveEffects(passive_damage_incoming=5)) == 65


# ─── 랭크업 / 회복 수식 ─────────────────────────────────────

def test_optimal_setup_against_weak_hitter():
    info = SetupInfo(has_setup=True, attack_per_stage=2)
    stages = calculate_optimal_setup(300, 20, 60, info, True, PassiveEffects(), PassiveEffects())
    assert stages >= 1


def test_no_setup_against_heavy_hitter():
    info = SetupInfo(has_setup=True, attack_per_stage=2)
    assert calculate_optimal_setup(300, 160, 60, info, True,
                                   PassiveEffects(), PassiveEffects()) == 0


def test_setup_viability():
    assert not is_setup_viable(300, 50, 60, 0, False, 0, True)
    assert is_setup_viable(300, 50, 60, 2, True, 100, True)
    assert is_setup_viable(300, 50, 60, 2, False, 0, True)
    assert not is_setup_viable(100, 50, 60, 2, False, 0, True)


def test_recovery_strategy():
    ok, turns, freq = calculate_recovery_strategy(40, 200, 8, 100, 300, True)
    assert ok and freq == pytest.approx(0.2)
    assert turns == 4
    assert calculate_recovery_strategy(150, 200, 8, 100, 300, False)[0] is False
    assert calculate_recovery_strategy(40, 0, 8, 100, 300, True) == (False, KO_SENTINEL, 0.0)


# ─── 실제 유닛 ───────────────────────────────────────────────

def test_best_move_skips_immune_moves(sim, mon):
    state = sim.create_battle_state([mon("Garchomp", ["earthquake", "dragonclaw"])],
                                    [mon("Corviknight", ["bravebird"])])
    best, rolls = find_best_move(sim, state, 0)
    assert best == "dragonclaw"
    assert len(rolls) == 16


def test_passive_effects_items(sim, mon):
    state = sim.create_battle_state(
        [mon("Blissey", ["softboiled"], item="Black Sludge")],
        [mon("Garchomp", ["earthquake"], item="Leftovers")])
    blissey = analyze_passive_effects(sim, state, 0)
    chomp = analyze_passive_effects(sim, state, 1)
    assert blissey.has_active_recovery
    assert blissey.active_recovery_amount == state.sides[0].active.max_hp // 2
    # 독 타입이 아니면 검은진흙 회복 없음
    assert blissey.passive_recovery_amount == 0
    assert chomp.passive_recovery_amount == state.sides[1].active.max_hp // 16


def test_immune_attacker_is_countered(calc, sim, mon):
    state = sim.create_battle_state([mon("Garchomp", ["earthquake"])],
                                    [mon("Corviknight", ["bravebird"])])
    result = calc.compute_matchup(state, 0, 0, BattleConditions.baseline())
    assert result == Matchup.STRONG_COUNTERED


def test_build_profiles_speed_tie_favors_a(calc, sim, mon):
    state = sim.create_battle_state([mon("Garchomp", ["dragonclaw"])],
                                    [mon("Garchomp", ["dragonclaw"])])
    a, b, a_first = calc.build_profiles(state)
    assert a_first
    assert a.damage == b.damage > 0
    assert calc.compute_matchup(state, 0, 0, BattleConditions.baseline()) == Matchup.COUNTER


def test_stat_lowering_profile(calc, sim, mon):
    state = sim.create_battle_state([mon("Dragapult", ["dracometeor", "shadowball"])],
                                    [mon("Garchomp", ["dragonclaw"])])
    a, _, _ = calc.build_profiles(state)
    assert a.best_move == "dracometeor"
    assert a.has_stat_lowering
    assert a.stat_drop_pct == 0.5
    assert a.second_best_damage > 0


def test_one_sided_damage_ignores_other_inputs():
    busy = MatchupProfile(
        hp=50, damage=0, priority_damage=0,
        passive=PassiveEffects(has_active_recovery=True, active_recovery_amount=500,
                               active_recovery_pp=16),
        setup=SetupInfo(has_setup=True, optimal_setup_stages=6, attack_per_stage=2))
    weak = MatchupProfile(hp=900, damage=1)

    def never():
        raise AssertionError("search must not run")

    assert classify_matchup_by_category(busy, weak, True, never) == Matchup.STRONG_COUNTERED
    assert classify_matchup_by_category(weak, busy, False, never) == Matchup.STRONG_COUNTER


def test_classifier_is_deterministic(calc, sim, mon):
    state = sim.create_battle_state(
        [mon("Dragapult", ["dracometeor", "shadowball"])],
        [mon("Blissey", ["softboiled", "tackle"])])
    cond = BattleConditions(hp_brackets=(1, 3))
    results = {calc.compute_matchup(state, 0, 0, cond) for _ in range(3)}
    assert len(results) == 1
