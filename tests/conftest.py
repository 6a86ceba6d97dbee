"""공용 픽스처 — Showdown JSON 모양의 소형 pokedex / moves로 GameData 구성."""

from __future__ import annotations

import random

import pytest

from matchup_ai.data_loader import GameData
from matchup_ai.battle_sim import BattleSimulator, make_pokemon
from matchup_ai.matchup_calc import MatchupCalculator


def _dex(num, name, types, stats, ability):
    hp, atk, df, spa, spd, spe = stats
    return {
        "num": num, "name": name, "types": types,
        "baseStats": {"hp": hp, "atk": atk, "def": df, "spa": spa, "spd": spd, "spe": spe},
        "abilities": {"0": ability},
    }


def _move(num, name, type_, category, base_power, pp=10, priority=0, **extra):
    entry = {
        "num": num, "name": name, "type": type_, "category": category,
        "basePower": base_power, "accuracy": True, "pp": pp, "priority": priority,
        "flags": {},
    }
    entry.update(extra)
    return entry


POKEDEX = {
    "garchomp": _dex(445, "Garchomp", ["Dragon", "Ground"], (108, 130, 95, 80, 85, 102), "Sand Veil"),
    "corviknight": _dex(823, "Corviknight", ["Flying", "Steel"], (98, 87, 105, 53, 85, 67), "Pressure"),
    "blissey": _dex(242, "Blissey", ["Normal"], (255, 10, 10, 75, 135, 55), "Natural Cure"),
    "dragapult": _dex(887, "Dragapult", ["Dragon", "Ghost"], (88, 120, 75, 100, 75, 142), "Clear Body"),
    "pelipper": _dex(279, "Pelipper", ["Water", "Flying"], (60, 50, 100, 95, 70, 65), "Drizzle"),
    "pincurchin": _dex(871, "Pincurchin", ["Electric"], (48, 101, 95, 91, 85, 15), "Electric Surge"),
    "porygon2": _dex(233, "Porygon2", ["Normal"], (85, 80, 90, 105, 95, 60), "Download"),
    "missingno": _dex(0, "MissingNo.", ["Normal"], (33, 136, 0, 6, 6, 29), "None"),
}

MOVES = {
    "earthquake": _move(89, "Earthquake", "Ground", "Physical", 100),
    "dragonclaw": _move(337, "Dragon Claw", "Dragon", "Physical", 80, pp=15),
    "bravebird": _move(413, "Brave Bird", "Flying", "Physical", 120, pp=15),
    "shadowball": _move(247, "Shadow Ball", "Ghost", "Special", 80, pp=15),
    "dracometeor": _move(434, "Draco Meteor", "Dragon", "Special", 130, pp=5,
                         self={"boosts": {"spa": -2}}),
    "hurricane": _move(542, "Hurricane", "Flying", "Special", 110),
    "surf": _move(57, "Surf", "Water", "Special", 90, pp=15),
    "thunderbolt": _move(85, "Thunderbolt", "Electric", "Special", 90, pp=15),
    "tackle": _move(33, "Tackle", "Normal", "Physical", 40, pp=35),
    "quickattack": _move(98, "Quick Attack", "Normal", "Physical", 40, pp=30, priority=1),
    "swordsdance": _move(14, "Swords Dance", "Normal", "Status", 0, pp=20,
                         boosts={"atk": 2}, target="self"),
    "roost": _move(355, "Roost", "Flying", "Status", 0, pp=5, heal=[1, 2], target="self"),
    "softboiled": _move(135, "Soft-Boiled", "Normal", "Status", 0, pp=5, heal=[1, 2],
                        target="self"),
    "raindance": _move(240, "Rain Dance", "Water", "Status", 0, pp=5, target="all"),
    "electricterrain": _move(604, "Electric Terrain", "Electric", "Status", 0, pp=10,
                             target="all"),
    "trickroom": _move(433, "Trick Room", "Psychic", "Status", 0, pp=5, priority=-7,
                       target="all"),
    "protect": _move(182, "Protect", "Normal", "Status", 0, pp=10, priority=4,
                     volatileStatus="protect", target="self"),
    "hiddenmove": _move(0, "Hidden Move", "Normal", "Physical", 50),
}


@pytest.fixture
def gd():
    return GameData(device="cpu", pokedex=POKEDEX, moves=MOVES)


@pytest.fixture
def sim(gd):
    return BattleSimulator(gd)


@pytest.fixture
def calc(gd, sim):
    return MatchupCalculator(gd, sim, use_search=False)


@pytest.fixture
def seeded():
    random.seed(1234)


@pytest.fixture
def mon(gd):
    """make_pokemon 단축."""
    def _make(species, moves, **kwargs):
        return make_pokemon(gd, species, moves, **kwargs)
    return _make
