"""Gen 9 데미지 계산 — 16 롤을 torch 텐서 한 번으로.

    base   = ((2·L/5 + 2) · power · A/D) / 50 + 2
    damage = ⌊base × crit × roll × STAB × 상성 × 화상 × 보정⌋,  최소 1
    roll   = 0.85, 0.86, …, 1.00  (16단계, 결정론적)
"""

from __future__ import annotations

import torch
from typing import Optional

from matchup_ai.data_loader import (
    GameData, ITEM_EFFECTS, ABILITY_EFFECTS, _TYPE_BOOST_ITEMS,
    NATURES, STAT_KEYS,
)

N_ROLLS = 16
LEVEL = 50
CRIT_MULT = 1.5

# (날씨, 기술 타입) → 배율
WEATHER_MODS = {
    ("sun", "Fire"): 1.5, ("sun", "Water"): 0.5,
    ("rain", "Water"): 1.5, ("rain", "Fire"): 0.5,
}
# (필드, 기술 타입) → 배율 (접지 여부는 무시)
TERRAIN_MODS = {
    ("electric", "Electric"): 1.3, ("grassy", "Grass"): 1.3,
    ("psychic", "Psychic"): 1.3, ("misty", "Dragon"): 0.5,
}
# 기술 플래그 조건부 공격 특성: (특성 키, 플래그)
_FLAG_ABILITY_MODS = (("contact_mod", "contact"), ("punch_mod", "punch"),
                      ("bite_mod", "bite"))


def _stab(move_type: str, types: list[str], original_types: list[str],
          tera_type: Optional[str], ability_fx: dict) -> float:
    if tera_type:
        in_tera, in_orig = move_type == tera_type, move_type in original_types
        stab = 2.0 if (in_tera and in_orig) else 1.5 if (in_tera or in_orig) else 1.0
    else:
        stab = 1.5 if move_type in types else 1.0
    # 적응력: 원래 타입이나 테라 타입과 일치하면 고정 배율
    stab_types = set(original_types) | ({tera_type} if tera_type else set())
    if ability_fx.get("stab_mod") and move_type in stab_types:
        stab = ability_fx["stab_mod"]
    return stab


class DamageCalculator:

    def __init__(self, game_data: GameData):
        self.gd = game_data
        self.device = game_data.device
        self.roll_factors = torch.linspace(0.85, 1.0, N_ROLLS, device=self.device)

    def _attacker_modifier(self, attacker: dict, move: dict, move_type: str,
                           type_eff: float, stat_key: str) -> float:
        mod = 1.0
        item = attacker.get("item", "")
        item_fx = ITEM_EFFECTS.get(item, {})
        if "damage_mod" in item_fx and item_fx.get("stat") in (None, stat_key):
            mod *= item_fx["damage_mod"]
        if type_eff > 1.0:
            mod *= item_fx.get("super_eff_mod", 1.0)
        boost_type, boost_val = _TYPE_BOOST_ITEMS.get(item, (None, 1.0))
        if boost_type == move_type:
            mod *= boost_val

        fx = ABILITY_EFFECTS.get(attacker.get("ability", ""), {})
        physical = move["is_physical"]
        if physical:
            mod *= fx.get("atk_mod", 1.0)
            if attacker.get("status"):
                mod *= fx.get("atk_mod_if_status", 1.0)
        if move["basePower"] <= fx.get("bp_threshold", 60):
            mod *= fx.get("low_bp_mod", 1.0)
        flags = move.get("flags", {})
        for key, flag in _FLAG_ABILITY_MODS:
            if flags.get(flag):
                mod *= fx.get(key, 1.0)
        if move.get("secondary"):
            mod *= fx.get("secondary_mod", 1.0)
        return mod

    @staticmethod
    def _defender_modifier(defender: dict, move: dict, move_type: str,
                           type_eff: float) -> float:
        fx = ABILITY_EFFECTS.get(defender.get("ability", ""), {})
        mod = 1.0
        if type_eff > 1.0:
            mod *= fx.get("super_eff_mod", 1.0)
        max_hp = defender["stats"]["hp"]
        if defender.get("cur_hp", max_hp) >= max_hp:
            mod *= fx.get("full_hp_damage_mod", 1.0)
        if move["is_special"]:
            mod *= fx.get("special_damage_mod", 1.0)
        if move_type == "Fire":
            mod *= fx.get("fire_resist", 1.0)
        elif move_type == "Ice":
            mod *= fx.get("ice_resist", 1.0)
        return mod

    def effectiveness(self, move_type: str, defender: dict) -> float:
        """타입 상성 × 특성/아이템 면역 (면역이면 0)."""
        if ABILITY_EFFECTS.get(defender.get("ability", ""), {}).get("immune_type") == move_type:
            return 0.0
        if move_type == "Ground" and ITEM_EFFECTS.get(defender.get("item", ""), {}).get("levitate"):
            return 0.0
        return self.gd.effectiveness(move_type, defender.get("types", []))

    # ─── 단일 기술 → 16 롤 ──────────────────────────────────────
    def calc_damage_rolls(
        self,
        attacker: dict,    # types, stats, ability, item, status, boosts (+ original_types)
        defender: dict,    # types, stats, ability, item, status, boosts, cur_hp
        move: dict,
        weather: str = "",
        terrain: str = "",
        is_crit: bool = False,
        tera_type: Optional[str] = None,
    ) -> list[int]:
        """오름차순 16 롤.  변화기 / 위력 0 / 면역이면 []."""
        if move["is_status"] or move["basePower"] <= 0:
            return []
        move_type = move["type"]
        type_eff = self.effectiveness(move_type, defender)
        if type_eff == 0:
            return []

        atk_key, def_key = ("atk", "def") if move["is_physical"] else ("spa", "spd")
        atk_stage = attacker.get("boosts", {}).get(atk_key, 0)
        def_stage = defender.get("boosts", {}).get(def_key, 0)
        if is_crit:
            # 급소: 불리한 랭크 무시
            atk_stage, def_stage = max(atk_stage, 0), min(def_stage, 0)
        attack = attacker["stats"][atk_key] * self._boost_multiplier(atk_stage)
        defense = defender["stats"][def_key] * self._boost_multiplier(def_stage)

        def_item_fx = ITEM_EFFECTS.get(defender.get("item", ""), {})
        defense *= def_item_fx.get(f"{def_key}_mod", 1.0)

        attacker_fx = ABILITY_EFFECTS.get(attacker.get("ability", ""), {})
        types = attacker.get("types", [])
        stab = _stab(move_type, types, attacker.get("original_types", types),
                     tera_type, attacker_fx)

        modifier = (WEATHER_MODS.get((weather, move_type), 1.0)
                    * TERRAIN_MODS.get((terrain, move_type), 1.0)
                    * self._attacker_modifier(attacker, move, move_type, type_eff, atk_key)
                    * self._defender_modifier(defender, move, move_type, type_eff))
        if is_crit:
            modifier *= CRIT_MULT
        if (attacker.get("status") == "brn" and move["is_physical"]
                and not attacker_fx.get("ignore_burn")):
            modifier *= 0.5

        base = (2.0 * LEVEL / 5.0 + 2.0) * move["basePower"] * attack / defense / 50.0 + 2.0
        damage = (base * self.roll_factors * (stab * type_eff * modifier)).floor().clamp(min=1)
        return [int(d) for d in damage.tolist()]

    def calc_damage(self, attacker: dict, defender: dict, move: dict,
                    weather: str = "", terrain: str = "",
                    is_crit: bool = False,
                    tera_type: Optional[str] = None) -> tuple[int, int, int]:
        """(최소, 최대, 평균).  무효면 (0, 0, 0)."""
        rolls = self.calc_damage_rolls(attacker, defender, move, weather,
                                       terrain, is_crit, tera_type)
        if not rolls:
            return (0, 0, 0)
        return (rolls[0], rolls[-1], sum(rolls) // N_ROLLS)

    @staticmethod
    def _boost_multiplier(stage: int) -> float:
        stage = max(-6, min(6, stage))
        return (2 + stage) / 2.0 if stage >= 0 else 2.0 / (2 - stage)

    # ─── 실수치 ──────────────────────────────────────────────
    @staticmethod
    def calc_stat(base: int, iv: int, ev: int, level: int,
                  nature_mod: float, is_hp: bool = False) -> int:
        core = int((2 * base + iv + ev // 4) * level / 100)
        if is_hp:
            return 1 if base == 1 else core + level + 10
        return int((core + 5) * nature_mod)

    @staticmethod
    def calc_stats_from_spread(
        base_stats: dict[str, int],
        nature: str,
        evs: dict[str, int],
        level: int = LEVEL,
        ivs: Optional[dict[str, int]] = None,
    ) -> dict[str, int]:
        """종족값 + 성격 + 노력치 → 실수치 (개체값 기본 31)."""
        ivs = ivs or dict.fromkeys(STAT_KEYS, 31)
        plus, minus = NATURES.get(nature, (None, None))
        nature_mods = {plus: 1.1, minus: 0.9} if plus != minus else {}
        return {
            key: DamageCalculator.calc_stat(
                base_stats[key], ivs[key], evs.get(key, 0), level,
                nature_mods.get(key, 1.0), is_hp=(key == "hp"))
            for key in STAT_KEYS
        }


# ═══════════════════════════════════════════════════════════════
#  검증
# ═══════════════════════════════════════════════════════════════

def verify():
    print("=== Damage Calculator 검증 ===\n")

    gd = GameData(device="cpu")
    dc = DamageCalculator(gd)

    chomp = gd.get_pokemon("garchomp")
    corv = gd.get_pokemon("corviknight")
    attacker = {"types": chomp["types"], "ability": "roughskin", "item": "",
                "stats": dc.calc_stats_from_spread(chomp["baseStats"], "Jolly",
                                                   {"atk": 252, "spe": 252}),
                "boosts": {}}
    defender = {"types": corv["types"], "ability": "pressure", "item": "leftovers",
                "stats": dc.calc_stats_from_spread(corv["baseStats"], "Impish",
                                                   {"hp": 252, "def": 252}),
                "boosts": {}}

    hp = defender["stats"]["hp"]
    for move_id in ("earthquake", "dragonclaw", "firefang", "stoneedge"):
        rolls = dc.calc_damage_rolls(attacker, defender, gd.get_move(move_id))
        if not rolls:
            print(f"  {move_id:12s} → 무효")
            continue
        print(f"  {move_id:12s} → {rolls[0]}-{rolls[-1]} "
              f"({rolls[0] * 100 // hp}%-{rolls[-1] * 100 // hp}%)")

    print(f"  랭크 배율: {[round(dc._boost_multiplier(s), 2) for s in range(-6, 7)]}")
    print("\n검증 완료!")


if __name__ == "__main__":
    verify()
