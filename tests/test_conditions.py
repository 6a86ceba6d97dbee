import pytest

from matchup_ai.battle_sim import Terrain, Weather
from matchup_ai.conditions import (
    BattleConditions, HP_BRACKET_VALUES, create_simulation_state,
    determine_possible_conditions, hp_bracket, possible_terrain, possible_weather,
)


@pytest.mark.parametrize("frac, bracket", [
    (1.0, 0), (0.995, 0), (0.99, 1), (0.8, 1), (0.75, 2), (0.6, 2),
    (0.5, 3), (0.3, 3), (0.25, 4), (0.01, 4), (0.0, 4),
])
def test_hp_bracket_edges(frac, bracket):
    assert hp_bracket(frac) == bracket


def test_invalid_conditions_rejected():
    with pytest.raises(ValueError):
        BattleConditions(hp_brackets=(5, 0))
    with pytest.raises(ValueError):
        BattleConditions(statuses=("none", "confused"))
    with pytest.raises(ValueError):
        BattleConditions(boosts=((7, 0, 0, 0, 0), (0, 0, 0, 0, 0)))
    with pytest.raises(ValueError):
        BattleConditions(weather=9)


def test_hash_is_deterministic_and_discriminating():
    base = BattleConditions.baseline()
    assert base == BattleConditions()
    assert base.condition_hash() == BattleConditions().condition_hash()
    assert base.condition_hash() != BattleConditions(weather=Weather.RAIN).condition_hash()
    assert base.condition_hash() != BattleConditions(hp_brackets=(0, 1)).condition_hash()
    assert 0 <= base.condition_hash() < 2 ** 64


def test_from_state_buckets_snapshot(sim, mon):
    state = sim.create_battle_state(
        [mon("Garchomp", ["dragonclaw"]), mon("Blissey", ["softboiled"])],
        [mon("Pelipper", ["surf"])])
    chomp = state.sides[0].active
    chomp.cur_hp = int(chomp.max_hp * 0.6)
    chomp.status = "brn"
    chomp.boosts["atk"] = 2

    cond = BattleConditions.from_state(state, 0, 0)
    assert cond.hp_brackets == (2, 0)
    assert cond.statuses == ("brn", "none")
    assert cond.boosts[0] == (2, 0, 0, 0, 0)
    assert cond.weather == Weather.RAIN

    # 벤치 유닛은 랭크 0
    bench = BattleConditions.from_state(state, 1, 0)
    assert bench.boosts[0] == (0, 0, 0, 0, 0)

    with pytest.raises(ValueError):
        BattleConditions.from_state(state, 5, 0)


def test_simulation_state_applies_conditions(sim, mon):
    state = sim.create_battle_state(
        [mon("Garchomp", ["dragonclaw"], tera_type="Steel"), mon("Blissey", ["softboiled"])],
        [mon("Corviknight", ["bravebird"])])
    state.sides[0].team[1].volatiles["leechseed"] = -1
    cond = BattleConditions(hp_brackets=(2, 4), statuses=("par", "none"),
                            terrain=Terrain.GRASSY, transformed=(True, False))

    sim_state = create_simulation_state(state, 1, 0, cond)
    a = sim_state.sides[0].active
    b = sim_state.sides[1].active
    assert len(sim_state.sides[0].team) == 1
    assert a.name == "Blissey"
    assert a.cur_hp == int(a.max_hp * HP_BRACKET_VALUES[2])
    assert b.cur_hp == int(b.max_hp * HP_BRACKET_VALUES[4])
    assert a.status == "par"
    assert a.volatiles == {}
    assert sim_state.terrain == Terrain.GRASSY
    # 테라 타입이 없으면 transformed여도 타입 유지
    assert a.types == ["Normal"] and not a.is_tera
    # 원본은 그대로
    assert state.sides[0].team[1].volatiles == {"leechseed": -1}

    tera_state = create_simulation_state(state, 0, 0, cond)
    assert tera_state.sides[0].active.types == ["Steel"]
    assert tera_state.sides[0].tera_used


def test_possible_field_from_alive_units_only(sim, mon):
    state = sim.create_battle_state(
        [mon("Garchomp", ["earthquake"]), mon("Porygon2", ["trickroom", "electricterrain"])],
        [mon("Pelipper", ["surf", "raindance"])])
    assert possible_weather(state) == [Weather.NONE, Weather.RAIN]
    assert possible_terrain(state) == [Terrain.NONE, Terrain.ELECTRIC]

    state.sides[0].team[1].fainted = True
    assert possible_terrain(state) == [Terrain.NONE]


def test_possible_conditions_count(sim, mon):
    state = sim.create_battle_state([mon("Pelipper", ["hurricane", "surf"])],
                                    [mon("Garchomp", ["earthquake"])])
    conds = determine_possible_conditions(state, 0, 0)
    assert len(conds) == 25 * 2
    assert len(set(conds)) == len(conds)
    assert all(c.statuses == ("none", "none") for c in conds)


def test_possible_conditions_tera_and_trick_room(sim, mon):
    state = sim.create_battle_state(
        [mon("Porygon2", ["trickroom", "tackle"], tera_type="Ghost")],
        [mon("Garchomp", ["earthquake"])])
    conds = determine_possible_conditions(state, 0, 0)
    # HP 25 × 트릭룸 2 × 테라(A) 2
    assert len(conds) == 100
    assert any(c.trick_room and c.transformed == (True, False) for c in conds)
