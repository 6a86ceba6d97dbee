"""경량 배틀 시뮬레이터 — 매치업 탐색/롤아웃용 근사 엔진.

정확한 재현보다 속도가 우선.  서버 없이 한 턴을 순수 함수로 굴린다:
    next_state = sim.step(state, a1, a2)     # state는 그대로

분류기와 MCTS가 기대는 세 가지 진입점:
  - damage_rolls()        : 기술 하나의 16 롤
  - resolve_move_order()  : 우선도 → 스피드 → 트릭룸 (동속은 SPEED_TIE)
  - battle_outcome()      : 한쪽 전멸 판정
"""

from __future__ import annotations

import random
import re
from dataclasses import dataclass, field, replace
from enum import IntEnum

from matchup_ai.data_loader import (
    GameData, BOOST_KEYS, STAT_KEYS, _to_id,
    ABILITY_EFFECTS, ITEM_EFFECTS,
    RECOVERY_MOVES, PASSIVE_RECOVERY_MOVES, LEECH_SEED, LEECH_SEED_PCT,
    TRAPPING_MOVES, SETUP_MOVES, WEATHER_MOVES, TERRAIN_MOVES, TRICK_ROOM,
)
from matchup_ai.damage_calc import DamageCalculator


# ═══════════════════════════════════════════════════════════════
#  액션 / 필드 열거형
# ═══════════════════════════════════════════════════════════════

class ActionType(IntEnum):
    MOVE1 = 0
    MOVE2 = 1
    MOVE3 = 2
    MOVE4 = 3
    TERA_MOVE1 = 4
    TERA_MOVE2 = 5
    TERA_MOVE3 = 6
    TERA_MOVE4 = 7
    SWITCH1 = 8
    SWITCH2 = 9
    SWITCH3 = 10
    SWITCH4 = 11
    SWITCH5 = 12
    SWITCH6 = 13

NUM_ACTIONS = len(ActionType)

class Weather(IntEnum):
    NONE = 0; SUN = 1; RAIN = 2; SAND = 3; SNOW = 4

class Terrain(IntEnum):
    NONE = 0; ELECTRIC = 1; GRASSY = 2; MISTY = 3; PSYCHIC = 4

class MoveOrder(IntEnum):
    SIDE_ONE = 0; SIDE_TWO = 1; SPEED_TIE = 2

class BattleOutcome(IntEnum):
    ONGOING = -1; SIDE_ONE_WINS = 0; SIDE_TWO_WINS = 1

# Showdown 문자열 ↔ 열거형 (NONE은 빈 문자열)
WEATHER_STR = {w: ("" if w == Weather.NONE else w.name.lower()) for w in Weather}
TERRAIN_STR = {t: ("" if t == Terrain.NONE else t.name.lower()) for t in Terrain}
WEATHER_FROM_STR = {v: k for k, v in WEATHER_STR.items() if v}
TERRAIN_FROM_STR = {v: k for k, v in TERRAIN_STR.items() if v}

FIELD_TURNS = 5
PROTECT_MOVES = {"protect", "detect", "banefulbunker", "kingsshield",
                 "spikyshield", "silktrap"}

CRIT_CHANCE = (1 / 24, 1 / 8, 1 / 2, 1.0)   # critRatio 1..4
STATUS_RESIDUAL = {"brn": 16, "psn": 8}     # max HP 분모
STATUS_IMMUNE_TYPES = {
    "psn": ("Poison", "Steel"), "tox": ("Poison", "Steel"),
    "par": ("Electric",), "brn": ("Fire",),
}
SAND_IMMUNE_TYPES = ("Rock", "Ground", "Steel")
FOE_TARGETS = ("normal", "allAdjacentFoes", "allAdjacent")


def _clamp_stage(value: int) -> int:
    return max(-6, min(6, value))


def _apply_boosts(poke: Pokemon, boosts: dict):
    for stat, delta in boosts.items():
        if stat in poke.boosts:
            poke.boosts[stat] = _clamp_stage(poke.boosts[stat] + delta)


def _heal(poke: Pokemon, amount: int):
    poke.cur_hp = min(poke.max_hp, poke.cur_hp + amount)


def _hurt(poke: Pokemon, amount: int):
    poke.cur_hp = max(0, poke.cur_hp - amount)


# ═══════════════════════════════════════════════════════════════
#  유닛 / 사이드 / 배틀 상태
# ═══════════════════════════════════════════════════════════════

@dataclass
class Pokemon:
    """유닛 하나.  stats는 레벨 50 실수치, moves는 move_id (최대 4)."""
    species_id: str
    name: str
    types: list[str]
    base_stats: dict[str, int]
    stats: dict[str, int]
    ability: str
    item: str
    moves: list[str]
    cur_hp: int = 0
    max_hp: int = 0
    status: str = ""            # "" / brn / par / psn / tox / slp / frz
    tox_counter: int = 0
    boosts: dict = field(default_factory=lambda: dict.fromkeys(BOOST_KEYS, 0))
    tera_type: str = ""
    is_tera: bool = False
    fainted: bool = False
    protect_count: int = 0
    protect_active: bool = False
    sleep_turns: int = 0
    choice_locked_move: str = ""
    substitute_hp: int = 0
    item_consumed: bool = False
    last_used_move: str = ""
    volatiles: dict = field(default_factory=dict)  # leechseed / aquaring / ingrain / trapped → 남은 턴 (-1 = 무기한)
    pp: list[int] = field(default_factory=lambda: [0] * 4)
    max_pp: list[int] = field(default_factory=lambda: [0] * 4)

    def __post_init__(self):
        if self.max_hp <= 0:
            self.max_hp = self.stats["hp"]
        if self.cur_hp <= 0 and not self.fainted:
            self.cur_hp = self.max_hp

    @property
    def hp_pct(self) -> float:
        return self.cur_hp / max(self.max_hp, 1)

    @property
    def held_item(self) -> str:
        """소모되지 않은 지닌 물건 (없으면 "")."""
        return "" if self.item_consumed else self.item

    def effective_speed(self, weather: str = "", terrain: str = "") -> float:
        spe = self.stats["spe"] * DamageCalculator._boost_multiplier(self.boosts.get("spe", 0))
        if self.status == "par":
            spe *= 0.5
        spe *= ITEM_EFFECTS.get(self.held_item, {}).get("speed_mod", 1.0)
        fx = ABILITY_EFFECTS.get(self.ability, {})
        for key, current in (("speed_weather", weather), ("speed_terrain", terrain)):
            if fx.get(key) and fx[key] == current:
                spe *= fx.get("speed_mul", 1.0)
        return spe

    def clone(self) -> Pokemon:
        # base_stats / stats는 공유 (불변 취급)
        return replace(
            self, types=list(self.types), moves=list(self.moves),
            boosts=dict(self.boosts), volatiles=dict(self.volatiles),
            pp=list(self.pp), max_pp=list(self.max_pp),
        )


@dataclass
class Side:
    team: list[Pokemon]
    active_idx: int = 0
    tera_used: bool = False

    @property
    def active(self) -> Pokemon:
        return self.team[self.active_idx]

    @property
    def alive_indices(self) -> list[int]:
        return [i for i, p in enumerate(self.team) if not p.fainted]

    @property
    def alive_count(self) -> int:
        return len(self.alive_indices)

    @property
    def bench(self) -> list[tuple[int, Pokemon]]:
        """(인덱스, 유닛): 액티브를 뺀 살아있는 유닛."""
        return [(i, self.team[i]) for i in self.alive_indices if i != self.active_idx]

    @property
    def can_tera(self) -> bool:
        return not self.tera_used and any(p.tera_type and not p.fainted for p in self.team)

    def clone(self) -> Side:
        return replace(self, team=[p.clone() for p in self.team])


@dataclass
class BattleState:
    sides: list[Side]           # [0] = Side One, [1] = Side Two
    weather: Weather = Weather.NONE
    weather_turns: int = 0
    terrain: Terrain = Terrain.NONE
    terrain_turns: int = 0
    trick_room_turns: int = 0
    turn: int = 0
    winner: int = -1            # BattleOutcome 값

    @property
    def is_terminal(self) -> bool:
        return self.winner >= 0

    @property
    def trick_room(self) -> bool:
        return self.trick_room_turns > 0

    @property
    def field_strs(self) -> tuple[str, str]:
        """(weather, terrain) Showdown 문자열."""
        return WEATHER_STR[self.weather], TERRAIN_STR[self.terrain]

    def set_weather(self, name: str):
        self.weather = WEATHER_FROM_STR[name]
        self.weather_turns = FIELD_TURNS

    def set_terrain(self, name: str):
        self.terrain = TERRAIN_FROM_STR[name]
        self.terrain_turns = FIELD_TURNS

    def clone(self) -> BattleState:
        return replace(self, sides=[s.clone() for s in self.sides])


def battle_outcome(state: BattleState) -> BattleOutcome:
    """전멸한 쪽이 패배.  동시 전멸이면 Side Two 승."""
    if not state.sides[0].alive_indices:
        return BattleOutcome.SIDE_TWO_WINS
    if not state.sides[1].alive_indices:
        return BattleOutcome.SIDE_ONE_WINS
    return BattleOutcome.ONGOING


def decode_action(action: int) -> tuple[str, int, bool]:
    """액션 번호 → (kind, index, tera).  kind는 "move" 또는 "switch"."""
    if action >= ActionType.SWITCH1:
        return "switch", action - ActionType.SWITCH1, False
    if action >= ActionType.TERA_MOVE1:
        return "move", action - ActionType.TERA_MOVE1, True
    return "move", action - ActionType.MOVE1, False


def action_to_str(state: BattleState, player: int, action: int) -> str:
    side = state.sides[player]
    kind, idx, tera = decode_action(action)
    if kind == "switch":
        return f"Switch: {side.team[idx].name}" if idx < len(side.team) else f"Switch {idx}"
    moves = side.active.moves
    name = moves[idx] if idx < len(moves) else f"Move {idx}"
    return f"Tera+{name}" if tera else name


def _apply_entry_ability(state: BattleState, player: int):
    """등장 특성: 위협, 날씨/필드 설정."""
    poke = state.sides[player].active
    fx = ABILITY_EFFECTS.get(poke.ability, {})
    if fx.get("on_switch_atk_drop"):
        foe = state.sides[1 - player].active
        if not foe.fainted:
            _apply_boosts(foe, {"atk": -1})
    if fx.get("set_weather"):
        state.set_weather(fx["set_weather"])
    if fx.get("set_terrain"):
        state.set_terrain(fx["set_terrain"])


# ═══════════════════════════════════════════════════════════════
#  시뮬레이터
# ═══════════════════════════════════════════════════════════════

class BattleSimulator:

    def __init__(self, game_data: GameData):
        self.gd = game_data
        self.dc = DamageCalculator(game_data)

    def create_battle_state(self, team1: list[Pokemon],
                            team2: list[Pokemon]) -> BattleState:
        """초기 상태.  양쪽 선두의 등장 특성까지 반영."""
        state = BattleState(sides=[Side(team=team1), Side(team=team2)])
        for player in (0, 1):
            ability = state.sides[player].active.ability
            fx = ABILITY_EFFECTS.get(ability, {})
            if fx.get("set_weather"):
                state.set_weather(fx["set_weather"])
            if fx.get("set_terrain"):
                state.set_terrain(fx["set_terrain"])
        return state

    # ─── 선택지 ──────────────────────────────────────────────
    def usable_move_indices(self, poke: Pokemon) -> list[int]:
        """PP가 남았고 초이스 잠금에 막히지 않은 슬롯."""
        locked = ""
        if ITEM_EFFECTS.get(poke.held_item, {}).get("choice_lock"):
            locked = poke.choice_locked_move
        return [i for i, move_id in enumerate(poke.moves[:4])
                if move_id and poke.pp[i] > 0 and (not locked or move_id == locked)]

    def get_legal_actions(self, state: BattleState, player: int,
                          allow_tera: bool = True) -> list[int]:
        """기술 → 테라 기술 → 교체 순.  비어 있으면 [MOVE1] (발버둥)."""
        side = state.sides[player]
        switches = [ActionType.SWITCH1 + i for i, _ in side.bench]
        poke = side.active
        if poke.fainted:
            return switches

        slots = self.usable_move_indices(poke)
        actions = [ActionType.MOVE1 + i for i in slots]
        if allow_tera and poke.tera_type and not poke.is_tera and not side.tera_used:
            actions += [ActionType.TERA_MOVE1 + i for i in slots
                        if not self._is_status(poke.moves[i])]
        actions += switches
        return actions or [ActionType.MOVE1]

    def _is_status(self, move_id: str) -> bool:
        move = self.gd.get_move(move_id)
        return move is None or move["is_status"]

    # ─── 데미지 ──────────────────────────────────────────────
    @staticmethod
    def _combatant(poke: Pokemon, types: list[str], **extra) -> dict:
        info = {
            "types": types, "stats": poke.stats, "ability": poke.ability,
            "item": poke.held_item, "status": poke.status, "boosts": poke.boosts,
        }
        info.update(extra)
        return info

    def damage_rolls(self, state: BattleState, player: int, move_id: str,
                     is_crit: bool = False, tera: bool = False) -> list[int]:
        """player 액티브 → 상대 액티브, move_id의 16 롤.  무효/불가면 []."""
        user = state.sides[player].active
        target = state.sides[1 - player].active
        move = self.gd.get_move(move_id)
        if move is None or user.fainted or target.fainted:
            return []

        tera_type = user.tera_type if (tera or user.is_tera) else None
        if tera_type and move["id"] == "terablast":
            move = {**move, "type": tera_type}
        dex = self.gd.get_pokemon(user.species_id)
        attacker = self._combatant(
            user, [tera_type] if (tera and tera_type) else user.types,
            original_types=dex["types"] if dex else user.types)
        defender = self._combatant(target, target.types, cur_hp=target.cur_hp)

        weather, terrain = state.field_strs
        return self.dc.calc_damage_rolls(attacker, defender, move,
                                         weather=weather, terrain=terrain,
                                         is_crit=is_crit, tera_type=tera_type)

    # ─── 행동 순서 ───────────────────────────────────────────
    def _priority(self, move_id: str | None) -> int:
        move = self.gd.get_move(move_id) if move_id else None
        return move["priority"] if move else 0

    def resolve_move_order(self, state: BattleState,
                           move_a: str | None, move_b: str | None) -> MoveOrder:
        """누가 먼저 움직이나.  None은 우선도 0 취급."""
        prio_a, prio_b = self._priority(move_a), self._priority(move_b)
        if prio_a != prio_b:
            return MoveOrder.SIDE_ONE if prio_a > prio_b else MoveOrder.SIDE_TWO

        weather, terrain = state.field_strs
        spe_a = state.sides[0].active.effective_speed(weather, terrain)
        spe_b = state.sides[1].active.effective_speed(weather, terrain)
        if spe_a == spe_b:
            return MoveOrder.SPEED_TIE
        if (spe_a > spe_b) != state.trick_room:
            return MoveOrder.SIDE_ONE
        return MoveOrder.SIDE_TWO

    # ─── 한 턴 ───────────────────────────────────────────────
    def step(self, state: BattleState,
             action_p1: int, action_p2: int) -> BattleState:
        """교체 → 기술 (순서대로) → 턴 종료 → 기절 교체.  입력 state는 불변."""
        s = state.clone()
        s.turn += 1
        for side in s.sides:
            side.active.protect_active = False

        decoded = [decode_action(action_p1), decode_action(action_p2)]
        for player, (kind, idx, _) in enumerate(decoded):
            if kind == "switch":
                self._switch(s, player, idx)

        movers = [(p, idx, tera) for p, (kind, idx, tera) in enumerate(decoded)
                  if kind == "move"]
        if len(movers) == 2 and self._second_moves_first(s, movers):
            movers.reverse()

        for player, idx, tera in movers:
            if s.sides[player].active.fainted:
                continue
            self._use_move(s, player, idx, tera)
            if battle_outcome(s) != BattleOutcome.ONGOING:
                break

        self._end_of_turn(s)

        for player, side in enumerate(s.sides):
            if side.active.fainted and side.bench:
                self._switch(s, player, random.choice(side.bench)[0])

        s.winner = int(battle_outcome(s))
        return s

    def _second_moves_first(self, state: BattleState, movers) -> bool:
        ids = []
        for player, idx, _ in movers:
            moves = state.sides[player].active.moves
            ids.append(moves[idx] if idx < len(moves) else None)
        order = self.resolve_move_order(state, ids[0], ids[1])
        if order == MoveOrder.SPEED_TIE:
            return random.random() < 0.5
        return order == MoveOrder.SIDE_TWO

    # ─── 교체 ────────────────────────────────────────────────
    def _switch(self, state: BattleState, player: int, target_idx: int):
        side = state.sides[player]
        if target_idx >= len(side.team) or side.team[target_idx].fainted:
            return

        leaving = side.active
        leaving.boosts = dict.fromkeys(BOOST_KEYS, 0)
        leaving.volatiles = {}
        leaving.protect_count = leaving.substitute_hp = 0
        leaving.choice_locked_move = ""
        regen = ABILITY_EFFECTS.get(leaving.ability, {}).get("switch_heal")
        if regen and not leaving.fainted:
            _heal(leaving, int(leaving.max_hp * regen))

        side.active_idx = target_idx
        _apply_entry_ability(state, player)

    # ─── 기술 사용 ───────────────────────────────────────────
    @staticmethod
    def _can_act(poke: Pokemon) -> bool:
        """마비 25% / 잠듦 1~3턴 / 얼음 20% 해동."""
        if poke.status == "par":
            return random.random() >= 0.25
        if poke.status == "slp":
            poke.sleep_turns += 1
            if poke.sleep_turns < random.randint(1, 3):
                return False
            poke.status, poke.sleep_turns = "", 0
        elif poke.status == "frz":
            if random.random() >= 0.20:
                return False
            poke.status = ""
        return True

    def _use_move(self, state: BattleState, player: int, slot: int, tera: bool):
        side = state.sides[player]
        user = side.active
        if not (0 <= slot < len(user.pp)) or user.pp[slot] <= 0:
            self._struggle(state, player)
            return
        user.pp[slot] -= 1

        move_id = user.moves[slot]
        move = self.gd.get_move(move_id)
        if move is None:
            return
        user.last_used_move = move_id
        if not self._can_act(user):
            return
        if move_id not in PROTECT_MOVES:
            user.protect_count = 0

        if tera and user.tera_type and not side.tera_used:
            side.tera_used = user.is_tera = True
            user.types = [user.tera_type]

        if move["is_status"]:
            self._status_move(state, player, move)
        else:
            self._attack(state, player, move)

    def _attack(self, state: BattleState, player: int, move: dict):
        user = state.sides[player].active
        target = state.sides[1 - player].active
        if target.fainted or target.protect_active:
            return

        acc = move["accuracy"]
        if acc is not True and acc is not None:
            no_guard = any(ABILITY_EFFECTS.get(p.ability, {}).get("always_hit")
                           for p in (user, target))
            if not no_guard and random.random() * 100 > acc:
                return

        stage = max(0, min(move.get("critRatio", 1) - 1, 3))
        rolls = self.damage_rolls(state, player, move["id"],
                                  is_crit=random.random() < CRIT_CHANCE[stage])
        if not rolls:
            return
        dmg = random.choice(rolls) * self._hit_count(move)

        # 기합의띠 / 옹골참: 만피에서 일격사 방지
        if target.cur_hp >= target.max_hp and dmg >= target.cur_hp:
            if ITEM_EFFECTS.get(target.held_item, {}).get("sash"):
                dmg = target.cur_hp - 1
                target.item_consumed = True
            elif ABILITY_EFFECTS.get(target.ability, {}).get("sash_like"):
                dmg = target.cur_hp - 1

        if target.substitute_hp > 0:
            target.substitute_hp = max(0, target.substitute_hp - dmg)
        else:
            _hurt(target, dmg)
            if move["id"] in TRAPPING_MOVES:
                target.volatiles.setdefault("trapped", random.choice((4, 5)))

        self._after_hit(user, target, move, dmg)
        self._faint_check(target)
        self._faint_check(user)

    @staticmethod
    def _hit_count(move: dict) -> int:
        hits = move.get("multihit")
        if not hits:
            return 1
        if isinstance(hits, int):
            return hits
        low, high = hits
        weights = (35, 35, 15, 15) if high - low == 3 else None
        return random.choices(range(low, high + 1), weights=weights)[0]

    def _after_hit(self, user: Pokemon, target: Pokemon, move: dict, dmg: int):
        """반동 / 흡수 / 자기 랭크 변화 / 부가효과 / 접촉 데미지 / 초이스 잠금."""
        magic_guard = ABILITY_EFFECTS.get(user.ability, {}).get("indirect_immune")
        user_item = ITEM_EFFECTS.get(user.held_item, {})
        target_item = ITEM_EFFECTS.get(target.held_item, {})

        if not magic_guard:
            _hurt(user, int(user.max_hp * user_item.get("recoil_pct", 0)))
            if move.get("recoil"):
                num, den = move["recoil"]
                _hurt(user, int(dmg * num / den))
            if target_item.get("contact_damage_pct") and move.get("flags", {}).get("contact"):
                _hurt(user, int(user.max_hp * target_item["contact_damage_pct"]))
        if move.get("drain"):
            num, den = move["drain"]
            _heal(user, int(dmg * num / den))

        _apply_boosts(user, (move.get("self") or {}).get("boosts") or {})

        extra = move.get("secondary")
        if isinstance(extra, dict) and target.cur_hp > 0:
            if random.random() * 100 < extra.get("chance", 100):
                _apply_boosts(target, extra.get("boosts") or {})
                if extra.get("status") and not target.status:
                    target.status = extra["status"]

        if user_item.get("choice_lock"):
            user.choice_locked_move = move["id"]

    def _status_move(self, state: BattleState, player: int, move: dict):
        user = state.sides[player].active
        foe = state.sides[1 - player].active
        move_id = move["id"]

        if move_id in PROTECT_MOVES:
            if random.random() < 3.0 ** -user.protect_count:
                user.protect_active = True
                user.protect_count += 1
            else:
                user.protect_count = 0
            return
        if move_id == "substitute":
            cost = user.max_hp // 4
            if user.substitute_hp == 0 and user.cur_hp > cost:
                user.cur_hp -= cost
                user.substitute_hp = cost
            return

        if move_id in SETUP_MOVES:
            _apply_boosts(user, SETUP_MOVES[move_id])
        else:
            _apply_boosts(foe if move.get("target") in FOE_TARGETS else user,
                          move.get("boosts") or {})

        status = move.get("status")
        if status and not foe.fainted and not foe.status and foe.substitute_hp == 0:
            if not any(t in foe.types for t in STATUS_IMMUNE_TYPES.get(status, ())):
                foe.status = status

        if move_id in WEATHER_MOVES:
            state.set_weather(WEATHER_MOVES[move_id])
        if move_id in TERRAIN_MOVES:
            state.set_terrain(TERRAIN_MOVES[move_id])
        if move_id == TRICK_ROOM:
            # 트릭룸 중에 다시 쓰면 해제
            state.trick_room_turns = 0 if state.trick_room else FIELD_TURNS

        if move_id == "rest":
            if user.cur_hp < user.max_hp:
                user.cur_hp, user.status, user.sleep_turns = user.max_hp, "slp", 0
        elif move_id in RECOVERY_MOVES:
            _heal(user, int(user.max_hp * RECOVERY_MOVES[move_id]))

        if move_id in PASSIVE_RECOVERY_MOVES:
            user.volatiles[move_id] = -1
        if move_id == LEECH_SEED and not foe.fainted and "Grass" not in foe.types:
            foe.volatiles[LEECH_SEED] = -1

    def _struggle(self, state: BattleState, player: int):
        """PP 소진: 무속성 위력 50, 자신 최대 HP 1/4 반동."""
        user = state.sides[player].active
        target = state.sides[1 - player].active
        if user.fainted or target.fainted or target.protect_active:
            return
        dmg = max(1, int(22 * user.stats["atk"] / target.stats["def"] + 2))
        if target.substitute_hp > 0:
            target.substitute_hp = max(0, target.substitute_hp - dmg)
        else:
            _hurt(target, dmg)
        _hurt(user, max(1, user.max_hp // 4))
        self._faint_check(target)
        self._faint_check(user)

    @staticmethod
    def _faint_check(poke: Pokemon):
        if poke.cur_hp <= 0:
            poke.cur_hp = 0
            poke.fainted = True
            poke.volatiles = {}

    # ─── 턴 종료 ─────────────────────────────────────────────
    @staticmethod
    def _tick_field(state: BattleState):
        if state.weather_turns > 0:
            state.weather_turns -= 1
            if state.weather_turns == 0:
                state.weather = Weather.NONE
        if state.terrain_turns > 0:
            state.terrain_turns -= 1
            if state.terrain_turns == 0:
                state.terrain = Terrain.NONE
        if state.trick_room_turns > 0:
            state.trick_room_turns -= 1

    def _residual_damage(self, state: BattleState, poke: Pokemon, foe: Pokemon):
        if state.weather == Weather.SAND and not any(t in poke.types for t in SAND_IMMUNE_TYPES):
            _hurt(poke, poke.max_hp // 16)

        if poke.status in STATUS_RESIDUAL:
            _hurt(poke, poke.max_hp // STATUS_RESIDUAL[poke.status])
        elif poke.status == "tox":
            poke.tox_counter += 1
            _hurt(poke, poke.max_hp * poke.tox_counter // 16)

        if LEECH_SEED in poke.volatiles:
            sapped = min(poke.cur_hp, int(poke.max_hp * LEECH_SEED_PCT))
            poke.cur_hp -= sapped
            if not foe.fainted:
                _heal(foe, sapped)

        if "trapped" in poke.volatiles:
            _hurt(poke, poke.max_hp // 8)
            poke.volatiles["trapped"] -= 1
            if poke.volatiles["trapped"] <= 0:
                del poke.volatiles["trapped"]

    def _residual_healing(self, state: BattleState, poke: Pokemon):
        item = ITEM_EFFECTS.get(poke.held_item, {})
        if item.get("end_turn_heal_pct"):
            # 검은진흙은 독 타입만
            if not item.get("poison_only") or "Poison" in poke.types:
                _heal(poke, int(poke.max_hp * item["end_turn_heal_pct"]))
        for vol, pct in PASSIVE_RECOVERY_MOVES.items():
            if vol in poke.volatiles:
                _heal(poke, int(poke.max_hp * pct))
        if state.terrain == Terrain.GRASSY:
            _heal(poke, poke.max_hp // 16)

    def _end_of_turn(self, state: BattleState):
        self._tick_field(state)
        for player in (0, 1):
            poke = state.sides[player].active
            if poke.fainted:
                continue
            if not ABILITY_EFFECTS.get(poke.ability, {}).get("indirect_immune"):
                self._residual_damage(state, poke, state.sides[1 - player].active)
            if poke.cur_hp > 0:
                self._residual_healing(state, poke)
            self._faint_check(poke)


# ═══════════════════════════════════════════════════════════════
#  팀 구성
# ═══════════════════════════════════════════════════════════════

def make_pokemon(
    gd: GameData,
    species: str,
    moves: list[str],
    ability: str = "",
    item: str = "",
    nature: str = "Hardy",
    evs: dict | None = None,
    tera_type: str = "",
) -> Pokemon:
    """이름 기반 유닛 생성.  특성을 비우면 도감 첫 특성."""
    dex = gd.get_pokemon(species)
    if not dex:
        raise ValueError(f"Unknown pokemon: {species}")

    move_ids = [_to_id(m) for m in moves][:4]
    pp = []
    for move_id in move_ids:
        data = gd.get_move(move_id)
        if not data:
            raise ValueError(f"Unknown move: {move_id}")
        pp.append(data["pp"])

    if ability:
        ability = _to_id(ability)
    elif dex["abilities"]:
        ability = _to_id(dex["abilities"][0])

    spread = evs if evs is not None else dict.fromkeys(STAT_KEYS, 0)
    return Pokemon(
        species_id=_to_id(species),
        name=dex["name"],
        types=list(dex["types"]),
        base_stats=dex["baseStats"],
        stats=DamageCalculator.calc_stats_from_spread(dex["baseStats"], nature, spread),
        ability=ability,
        item=_to_id(item),
        moves=move_ids,
        tera_type=tera_type,
        pp=pp,
        max_pp=list(pp),
    )


_PASTE_EV_KEYS = {"HP": "hp", "Atk": "atk", "Def": "def",
                  "SpA": "spa", "SpD": "spd", "Spe": "spe"}
_PASTE_EV = re.compile(r"(\d+)\s+(HP|Atk|Def|SpA|SpD|Spe)")


def _parse_paste_block(lines: list[str]) -> dict:
    head = re.sub(r"\s*\([MF]\)\s*", " ", lines[0]).strip()
    species, _, item = head.partition(" @ ")
    entry = {"species": species.strip(), "item": item.strip(), "ability": "",
             "tera_type": "", "nature": "Hardy", "evs": dict.fromkeys(STAT_KEYS, 0),
             "moves": []}
    for line in lines[1:]:
        key, sep, value = line.partition(":")
        if line.startswith("- "):
            entry["moves"].append(line[2:].strip())
        elif line.endswith(" Nature"):
            entry["nature"] = line[:-len(" Nature")].strip()
        elif sep and key == "Ability":
            entry["ability"] = value.strip()
        elif sep and key == "Tera Type":
            entry["tera_type"] = value.strip()
        elif sep and key == "EVs":
            for amount, stat in _PASTE_EV.findall(value):
                entry["evs"][_PASTE_EV_KEYS[stat]] = int(amount)
    return entry


def parse_showdown_paste(gd: GameData, paste: str) -> list[Pokemon]:
    """Showdown 팀 텍스트 (빈 줄로 구분) → 유닛 리스트.  기술 없는 블록은 건너뜀."""
    team = []
    for block in re.split(r"\n\s*\n+", paste.strip()):
        lines = [ln.strip() for ln in block.splitlines() if ln.strip()]
        if not lines:
            continue
        entry = _parse_paste_block(lines)
        if entry["species"] and entry["moves"]:
            species = entry.pop("species")
            moves = entry.pop("moves")
            team.append(make_pokemon(gd, species, moves, **entry))
    return team


# ═══════════════════════════════════════════════════════════════
#  검증
# ═══════════════════════════════════════════════════════════════

def verify():
    print("=== Battle Simulator 검증 ===\n")

    gd = GameData(device="cpu")
    sim = BattleSimulator(gd)

    chomp = make_pokemon(gd, "Garchomp",
        moves=["Earthquake", "Dragon Claw", "Stone Edge", "Swords Dance"],
        item="Choice Scarf", nature="Jolly",
        evs={"atk": 252, "spd": 4, "spe": 252}, tera_type="Steel")
    pelipper = make_pokemon(gd, "Pelipper",
        moves=["Hurricane", "Surf", "Roost", "U-turn"],
        ability="Drizzle", item="Damp Rock", nature="Modest",
        evs={"hp": 252, "spa": 252, "spd": 4})

    state = sim.create_battle_state([chomp], [pelipper])
    print(f"  선두 날씨: {state.weather.name} ({state.weather_turns}턴)")
    print(f"  P1 액션: {[action_to_str(state, 0, a) for a in sim.get_legal_actions(state, 0)]}")
    print(f"  드래곤클로 vs 폭풍: {sim.resolve_move_order(state, 'dragonclaw', 'hurricane').name}")
    print(f"  지진 → Pelipper 롤: {sim.damage_rolls(state, 0, 'earthquake')}")

    nxt = sim.step(state, ActionType.MOVE2, ActionType.MOVE1)
    for side in nxt.sides:
        print(f"  {side.active.name}: {side.active.cur_hp}/{side.active.max_hp}")
    print(f"  결과: {battle_outcome(nxt).name}")

    print("\n검증 완료!")


if __name__ == "__main__":
    verify()
