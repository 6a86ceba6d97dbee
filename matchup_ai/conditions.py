"""배틀 조건 버킷화 — 연속적인 배틀 스냅샷 → 캐시 가능한 이산 키.

HP는 5구간, 상태이상/랭크/날씨/필드/트릭룸/테라 여부는 그대로.
같은 스냅샷이면 항상 같은 키와 같은 64-bit 해시가 나온다 (숨은 상태 없음).
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass

from matchup_ai.data_loader import (
    STATUS, STATUS_TO_IDX, BOOST_KEYS, ABILITY_EFFECTS,
    WEATHER_MOVES, TERRAIN_MOVES, TRICK_ROOM,
)
from matchup_ai.battle_sim import (
    BattleState, Side, Weather, Terrain,
    WEATHER_FROM_STR, TERRAIN_FROM_STR, FIELD_TURNS,
)


# ═══════════════════════════════════════════════════════════════
#  상수
# ═══════════════════════════════════════════════════════════════

NUM_HP_BRACKETS = 5

# 버킷 → 시뮬레이션용 대표 HP 비율
HP_BRACKET_VALUES = (1.0, 0.9, 0.65, 0.4, 0.15)

HASH_PRIME = 31
HASH_MASK = 0xFFFFFFFFFFFFFFFF
BOOST_OFFSET = 6

ZERO_BOOSTS = (0, 0, 0, 0, 0)


def hp_bracket(hp_fraction: float) -> int:
    """HP 비율 → 구간 (0 = 만피, 4 = 빈사)."""
    if hp_fraction > 0.99:
        return 0
    if hp_fraction > 0.75:
        return 1
    if hp_fraction > 0.5:
        return 2
    if hp_fraction > 0.25:
        return 3
    return 4


# ═══════════════════════════════════════════════════════════════
#  BattleConditions
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class BattleConditions:
    """두 유닛 대면의 버킷화된 조건.  [0] = A (P1측), [1] = B (P2측).

    boosts는 (atk, def, spa, spd, spe) 5-튜플.
    """
    hp_brackets: tuple[int, int] = (0, 0)
    statuses: tuple[str, str] = ("none", "none")
    boosts: tuple[tuple[int, ...], tuple[int, ...]] = (ZERO_BOOSTS, ZERO_BOOSTS)
    weather: int = Weather.NONE
    terrain: int = Terrain.NONE
    trick_room: bool = False
    transformed: tuple[bool, bool] = (False, False)

    def __post_init__(self):
        if len(self.hp_brackets) != 2 or any(
                not 0 <= b < NUM_HP_BRACKETS for b in self.hp_brackets):
            raise ValueError(f"Invalid hp brackets: {self.hp_brackets}")
        if len(self.statuses) != 2 or any(s not in STATUS for s in self.statuses):
            raise ValueError(f"Invalid statuses: {self.statuses}")
        if len(self.boosts) != 2:
            raise ValueError(f"Invalid boosts: {self.boosts}")
        for side_boosts in self.boosts:
            if len(side_boosts) != len(BOOST_KEYS) or any(
                    not -6 <= b <= 6 for b in side_boosts):
                raise ValueError(f"Invalid boosts: {self.boosts}")
        if self.weather not in Weather._value2member_map_:
            raise ValueError(f"Invalid weather: {self.weather}")
        if self.terrain not in Terrain._value2member_map_:
            raise ValueError(f"Invalid terrain: {self.terrain}")
        if len(self.transformed) != 2:
            raise ValueError(f"Invalid transformed flags: {self.transformed}")

    @classmethod
    def baseline(cls) -> BattleConditions:
        """만피, 상태이상/랭크 없음, 중립 필드."""
        return cls()

    @classmethod
    def from_state(cls, state: BattleState, a_idx: int,
                   b_idx: int) -> BattleConditions:
        """스냅샷 → 조건.  랭크는 현재 필드에 나와 있는 유닛만 반영."""
        side_a, side_b = state.sides
        a = _unit(side_a, a_idx)
        b = _unit(side_b, b_idx)

        def boosts_of(side: Side, idx: int) -> tuple[int, ...]:
            if idx != side.active_idx:
                return ZERO_BOOSTS
            poke = side.team[idx]
            return tuple(max(-6, min(6, poke.boosts.get(k, 0))) for k in BOOST_KEYS)

        return cls(
            hp_brackets=(hp_bracket(a.hp_pct), hp_bracket(b.hp_pct)),
            statuses=(a.status or "none", b.status or "none"),
            boosts=(boosts_of(side_a, a_idx), boosts_of(side_b, b_idx)),
            weather=int(state.weather),
            terrain=int(state.terrain),
            trick_room=state.trick_room,
            transformed=(a.is_tera, b.is_tera),
        )

    def condition_hash(self) -> int:
        """64-bit 누적 해시: h = h*31 + field (wrapping)."""
        fields = [
            self.hp_brackets[0], self.hp_brackets[1],
            STATUS_TO_IDX[self.statuses[0]], STATUS_TO_IDX[self.statuses[1]],
        ]
        for side_boosts in self.boosts:
            fields.extend(b + BOOST_OFFSET for b in side_boosts)
        fields.extend([
            int(self.weather), int(self.terrain), int(self.trick_room),
            int(self.transformed[0]), int(self.transformed[1]),
        ])
        h = 0
        for f in fields:
            h = (h * HASH_PRIME + f) & HASH_MASK
        return h


def _unit(side: Side, idx: int):
    if not 0 <= idx < len(side.team):
        raise ValueError(f"Invalid team index: {idx}")
    return side.team[idx]


# ═══════════════════════════════════════════════════════════════
#  조건 → 1v1 시뮬레이션 상태
# ═══════════════════════════════════════════════════════════════

def create_simulation_state(state: BattleState, a_idx: int, b_idx: int,
                            conditions: BattleConditions) -> BattleState:
    """두 유닛만 남긴 1v1 스냅샷에 조건을 적용.

    휘발성 상태 (대타, 씨뿌리기, 초이스 잠금 등)는 조건에 없으므로 초기화.
    이미 테라를 쓴 쪽은 시뮬레이션 안에서도 테라 불가.
    """
    sim_sides = []
    for player, idx in ((0, a_idx), (1, b_idx)):
        side = state.sides[player]
        poke = _unit(side, idx).clone()

        poke.cur_hp = max(1, int(poke.max_hp * HP_BRACKET_VALUES[conditions.hp_brackets[player]]))
        poke.fainted = False
        status = conditions.statuses[player]
        poke.status = "" if status == "none" else status
        poke.tox_counter = 0
        poke.sleep_turns = 0
        poke.boosts = dict(zip(BOOST_KEYS, conditions.boosts[player]))
        poke.volatiles = {}
        poke.substitute_hp = 0
        poke.protect_active = False
        poke.protect_count = 0
        poke.choice_locked_move = ""
        poke.last_used_move = ""

        tera_used = side.tera_used
        if conditions.transformed[player] and poke.tera_type:
            poke.is_tera = True
            poke.types = [poke.tera_type]
            tera_used = True
        sim_sides.append(Side(team=[poke], active_idx=0, tera_used=tera_used))

    return BattleState(
        sides=sim_sides,
        weather=Weather(conditions.weather),
        weather_turns=FIELD_TURNS if conditions.weather != Weather.NONE else 0,
        terrain=Terrain(conditions.terrain),
        terrain_turns=FIELD_TURNS if conditions.terrain != Terrain.NONE else 0,
        trick_room_turns=FIELD_TURNS if conditions.trick_room else 0,
        turn=state.turn,
    )


# ═══════════════════════════════════════════════════════════════
#  도달 가능한 조건 열거
# ═══════════════════════════════════════════════════════════════

def _alive(state: BattleState):
    for side in state.sides:
        for poke in side.team:
            if not poke.fainted:
                yield poke


def possible_weather(state: BattleState) -> list[Weather]:
    """NONE + 살아있는 유닛의 특성/기술로 깔 수 있는 날씨."""
    found = {Weather.NONE}
    for poke in _alive(state):
        setter = ABILITY_EFFECTS.get(poke.ability, {}).get("set_weather")
        if setter:
            found.add(WEATHER_FROM_STR[setter])
        for move_id in poke.moves:
            if move_id in WEATHER_MOVES:
                found.add(WEATHER_FROM_STR[WEATHER_MOVES[move_id]])
    return sorted(found)


def possible_terrain(state: BattleState) -> list[Terrain]:
    """NONE + 살아있는 유닛의 특성/기술로 깔 수 있는 필드."""
    found = {Terrain.NONE}
    for poke in _alive(state):
        setter = ABILITY_EFFECTS.get(poke.ability, {}).get("set_terrain")
        if setter:
            found.add(TERRAIN_FROM_STR[setter])
        for move_id in poke.moves:
            if move_id in TERRAIN_MOVES:
                found.add(TERRAIN_FROM_STR[TERRAIN_MOVES[move_id]])
    return sorted(found)


def has_trick_room(state: BattleState) -> bool:
    return any(TRICK_ROOM in poke.moves for poke in _alive(state))


def _tera_options(side: Side, idx: int | None) -> list[bool]:
    if not side.can_tera:
        return [False]
    if idx is not None and not side.team[idx].tera_type:
        return [False]
    return [False, True]


def determine_possible_conditions(state: BattleState, a_idx: int | None = None,
                                  b_idx: int | None = None) -> list[BattleConditions]:
    """현재 배틀에서 도달 가능한 조건 전체.

    HP 5×5 × 날씨 × 필드 × 트릭룸 × 테라(A) × 테라(B).
    상태이상 없음, 랭크 0 고정.  a_idx/b_idx를 주면 테라 타입이 없는
    유닛의 테라 분기는 제외.
    """
    weather_opts = possible_weather(state)
    terrain_opts = possible_terrain(state)
    trick_room_opts = [False, True] if has_trick_room(state) else [False]
    tera_a = _tera_options(state.sides[0], a_idx)
    tera_b = _tera_options(state.sides[1], b_idx)

    return [
        BattleConditions(
            hp_brackets=(hp1, hp2),
            weather=int(w), terrain=int(t), trick_room=tr,
            transformed=(ta, tb),
        )
        for hp1, hp2, w, t, tr, ta, tb in itertools.product(
            range(NUM_HP_BRACKETS), range(NUM_HP_BRACKETS),
            weather_opts, terrain_opts, trick_room_opts, tera_a, tera_b)
    ]


# ═══════════════════════════════════════════════════════════════
#  검증
# ═══════════════════════════════════════════════════════════════

def verify():
    print("=== Battle Conditions 검증 ===\n")

    for frac in (1.0, 0.8, 0.6, 0.3, 0.1):
        print(f"  HP {frac:.0%} → bracket {hp_bracket(frac)}")

    base = BattleConditions.baseline()
    print(f"\n  baseline hash: {base.condition_hash()}")
    rain = BattleConditions(weather=Weather.RAIN)
    print(f"  rain hash:     {rain.condition_hash()}")

    try:
        BattleConditions(hp_brackets=(5, 0))
    except ValueError as e:
        print(f"  잘못된 구간 거부: {e}")

    print("\n검증 완료!")


if __name__ == "__main__":
    verify()
