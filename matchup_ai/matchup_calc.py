"""결정론적 매치업 분류기 — 1v1 대면을 턴 수 계산으로 판정.

흐름:
  1. 양측 최고 데미지 기술 / 선공기 데미지 / 두 번째 기술 데미지
  2. 행동 순서 (동속은 A 선공으로 가정, 분석용 규칙이지 게임 규칙 아님)
  3. 지속 효과 (회복/지속 데미지), 랭크업 능력
  4. 실효 데미지 = 직접 데미지 + 내 지속 딜 − (상대 지속 회복 − 상대 지속 피해), 하한 0
  5. 카테고리 (랭크업/회복 유무 16가지)별 핸들러로 분류
     - 랭크업이 끼면 해석적 모델 대신 MCTS 솔버에 위임
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Callable, NamedTuple

from matchup_ai.data_loader import (
    GameData, ITEM_EFFECTS, RECOVERY_MOVES, PASSIVE_RECOVERY_MOVES, DRAIN_MOVES,
    LEECH_SEED, LEECH_SEED_PCT, TRAPPING_MOVES, SETUP_MOVES, STAT_DROP_MOVES,
)
from matchup_ai.battle_sim import BattleSimulator, BattleState, MoveOrder
from matchup_ai.position_eval import PositionEvaluator
from matchup_ai.conditions import BattleConditions, create_simulation_state
from matchup_ai.matchup_cache import Matchup
from matchup_ai.matchup_mcts import SearchConfig, compute_matchup_mcts


# ═══════════════════════════════════════════════════════════════
#  상수
# ═══════════════════════════════════════════════════════════════

KO_SENTINEL = 99            # "KO 불가" 턴 수
MAX_SETUP_STAGES = 6
RECOVERY_PP_THRESHOLD = 5   # 회복량 > 받는 딜이어도 PP가 이만큼은 있어야 확정 우위
MAX_RECOVERY_FREQUENCY = 0.5

# 랭크 → 데미지 배율 (0 ~ +6)
BOOST_DAMAGE_TABLE = (1.0, 1.5, 2.0, 2.5, 3.0, 3.5, 4.0)


def _avg(rolls: list[int]) -> int:
    return sum(rolls) // len(rolls) if rolls else 0


def turns_to_ko(hp: int, damage: float) -> int:
    """hp를 damage로 깎는 데 걸리는 턴.  damage <= 0이면 99."""
    if damage <= 0:
        return KO_SENTINEL
    return min(KO_SENTINEL, math.ceil(hp / damage))


# ═══════════════════════════════════════════════════════════════
#  기술 선택
# ═══════════════════════════════════════════════════════════════

def find_best_move(sim: BattleSimulator, state: BattleState,
                   player: int) -> tuple[str | None, list[int]]:
    """평균 데미지가 가장 높은 공격기 → (move_id, 16 롤).  없으면 (None, [])."""
    poke = state.sides[player].active
    best_id, best_rolls, best_avg = None, [], 0
    for i in sim.usable_move_indices(poke):
        move_id = poke.moves[i]
        move = sim.gd.get_move(move_id)
        if not move or move["is_status"]:
            continue
        rolls = sim.damage_rolls(state, player, move_id)
        if _avg(rolls) > best_avg:
            best_id, best_rolls, best_avg = move_id, rolls, _avg(rolls)
    return best_id, best_rolls


def get_best_priority_move_damage(sim: BattleSimulator, state: BattleState,
                                  player: int) -> int:
    poke = state.sides[player].active
    best = 0
    for i in sim.usable_move_indices(poke):
        move = sim.gd.get_move(poke.moves[i])
        if not move or move["is_status"] or move["priority"] <= 0:
            continue
        best = max(best, _avg(sim.damage_rolls(state, player, move["id"])))
    return best


def get_second_best_move_damage(sim: BattleSimulator, state: BattleState,
                                player: int) -> int:
    poke = state.sides[player].active
    best_id, _ = find_best_move(sim, state, player)
    second = 0
    for i in sim.usable_move_indices(poke):
        move = sim.gd.get_move(poke.moves[i])
        if not move or move["is_status"] or move["id"] == best_id:
            continue
        second = max(second, _avg(sim.damage_rolls(state, player, move["id"])))
    return second


def is_stat_lowering_move(move_id: str | None) -> bool:
    return move_id in STAT_DROP_MOVES


def get_stat_drop_percentage(move_id: str | None) -> float:
    """하락 후 남는 화력 비율 (-2단 0.5, -1단 0.67, 해당 없음 1.0)."""
    return STAT_DROP_MOVES.get(move_id, 1.0)


def is_primarily_physical(sim: BattleSimulator, state: BattleState,
                          player: int) -> bool:
    """공격기가 한쪽 분류뿐이면 그쪽, 섞여 있으면 A > C 비교."""
    poke = state.sides[player].active
    physical = special = 0
    for i in sim.usable_move_indices(poke):
        move = sim.gd.get_move(poke.moves[i])
        if not move:
            continue
        if move["is_physical"]:
            physical += 1
        elif move["is_special"]:
            special += 1
    if physical and not special:
        return True
    if special and not physical:
        return False
    return poke.stats["atk"] > poke.stats["spa"]


# ═══════════════════════════════════════════════════════════════
#  지속 효과
# ═══════════════════════════════════════════════════════════════

@dataclass
class PassiveEffects:
    """회복 / 지속 데미지 요약 (쿼리마다 재계산, 캐시하지 않음)."""
    has_active_recovery: bool = False
    active_recovery_amount: int = 0     # 회복기 1회 회복량
    active_recovery_pp: int = 0
    passive_recovery_amount: int = 0    # 매 턴 자동 회복
    passive_damage_outgoing: int = 0    # 매 턴 상대에게 주는 지속 데미지
    passive_damage_incoming: int = 0    # 매 턴 받는 지속 데미지

    @property
    def net_passive(self) -> int:
        return self.passive_recovery_amount - self.passive_damage_incoming


def analyze_passive_effects(sim: BattleSimulator, state: BattleState,
                            player: int) -> PassiveEffects:
    poke = state.sides[player].active
    opp = state.sides[1 - player].active
    fx = PassiveEffects()

    for i in sim.usable_move_indices(poke):
        move_id = poke.moves[i]
        if move_id in RECOVERY_MOVES:
            fx.has_active_recovery = True
            amount = int(poke.max_hp * RECOVERY_MOVES[move_id])
            if amount > fx.active_recovery_amount:
                fx.active_recovery_amount = amount
                fx.active_recovery_pp = poke.pp[i]
        elif move_id in DRAIN_MOVES:
            # 회복량은 데미지 의존 → 수단만 기록
            fx.has_active_recovery = True
        elif move_id in PASSIVE_RECOVERY_MOVES:
            fx.passive_recovery_amount = max(
                fx.passive_recovery_amount,
                int(poke.max_hp * PASSIVE_RECOVERY_MOVES[move_id]))
        elif move_id == LEECH_SEED:
            drain = int(opp.max_hp * LEECH_SEED_PCT)
            fx.passive_recovery_amount += drain
            fx.passive_damage_outgoing += drain
        elif move_id in TRAPPING_MOVES:
            fx.passive_damage_outgoing += int(opp.max_hp * TRAPPING_MOVES[move_id])

    item_fx = ITEM_EFFECTS.get(poke.item, {})
    if (item_fx.get("end_turn_heal_pct") and not poke.item_consumed
            and (not item_fx.get("poison_only") or "Poison" in poke.types)):
        fx.passive_recovery_amount += int(poke.max_hp * item_fx["end_turn_heal_pct"])

    if poke.status == "brn":
        fx.passive_damage_incoming += poke.max_hp // 16
    elif poke.status in ("psn", "tox"):
        # 맹독은 누적이므로 평균 2/16으로 근사
        fx.passive_damage_incoming += poke.max_hp // 8

    return fx


# ═══════════════════════════════════════════════════════════════
#  랭크업
# ═══════════════════════════════════════════════════════════════

@dataclass
class SetupInfo:
    has_setup: bool = False
    optimal_setup_stages: int = 0       # 이 대면에서 최적 랭크업 횟수
    max_possible_stages: int = MAX_SETUP_STAGES
    attack_per_stage: int = 0
    defense_per_stage: int = 0
    special_attack_per_stage: int = 0
    special_defense_per_stage: int = 0
    speed_per_stage: int = 0
    is_physical_attacker: bool = True
    boosts_speed: bool = False

    @property
    def is_special_attacker(self) -> bool:
        return not self.is_physical_attacker

    @property
    def offense_per_stage(self) -> int:
        return self.attack_per_stage if self.is_physical_attacker else self.special_attack_per_stage


def calculate_optimal_setup(hp: int, opponent_damage: int, my_damage: int,
                            setup: SetupInfo, moves_first: bool,
                            passive: PassiveEffects,
                            opp_passive: PassiveEffects) -> int:
    """몇 번 쌓는 게 최적인가.

    상대 딜이 HP 절반 이상이면 0.  한 단계 더 쌓았을 때 총 턴 (쌓는 턴 + KO 턴)이
    상대 KO 턴 × 회복 보정보다 짧고, 안 쌓을 때보다 짧으면 계속 쌓는다.
    """
    if not setup.has_setup or opponent_damage >= hp // 2:
        return 0

    effective_opp_damage = (opponent_damage + opp_passive.passive_damage_outgoing
                            - passive.net_passive)

    damage_taken_first_turn = effective_opp_damage if moves_first else effective_opp_damage * 2
    if damage_taken_first_turn >= hp:
        return 0

    if my_damage <= 0:
        turns_no_setup = KO_SENTINEL
    elif passive.has_active_recovery:
        turns_no_setup = 3
    else:
        turns_no_setup = turns_to_ko(hp, my_damage)
    opp_turns = turns_to_ko(hp, effective_opp_damage)

    stage_mul = 1.0 + setup.offense_per_stage * 0.5
    recovery_factor = 1.5 if passive.has_active_recovery else 1.0

    optimal = 0
    current = float(my_damage)
    for stage in range(1, setup.max_possible_stages + 1):
        nxt = current * stage_mul
        ko_turns = math.ceil(hp / nxt) if nxt > 0 else KO_SENTINEL
        total_turns = stage + ko_turns

        safety = (hp - stage * effective_opp_damage) / hp
        if safety <= 0:
            break

        if opp_turns * recovery_factor > total_turns and total_turns < turns_no_setup:
            optimal = stage
            current = nxt
        else:
            break

    # 스피드 랭크업 + 후공: 상대가 3턴 이상 버티면 최소 1회
    if setup.boosts_speed and not moves_first and optimal == 0 and opp_turns >= 3:
        optimal = 1

    return optimal


def analyze_setup_capabilities(sim: BattleSimulator, state: BattleState, player: int,
                               opponent_damage: int, my_damage: int, moves_first: bool,
                               passive: PassiveEffects,
                               opp_passive: PassiveEffects) -> SetupInfo:
    """보유 랭크업 기술 중 공격 스타일에 가장 맞는 것 기준으로 SetupInfo 작성."""
    poke = state.sides[player].active
    info = SetupInfo(is_physical_attacker=is_primarily_physical(sim, state, player))
    offense_key = "atk" if info.is_physical_attacker else "spa"

    best_key = None
    for i in sim.usable_move_indices(poke):
        boosts = SETUP_MOVES.get(poke.moves[i])
        if boosts is None:
            continue
        key = (boosts.get(offense_key, 0), boosts.get("spe", 0))
        if best_key is not None and key <= best_key:
            continue
        best_key = key
        info.has_setup = True
        info.attack_per_stage = boosts.get("atk", 0)
        info.defense_per_stage = boosts.get("def", 0)
        info.special_attack_per_stage = boosts.get("spa", 0)
        info.special_defense_per_stage = boosts.get("spd", 0)
        info.speed_per_stage = boosts.get("spe", 0)
        info.boosts_speed = info.speed_per_stage > 0

    if info.has_setup:
        info.optimal_setup_stages = calculate_optimal_setup(
            poke.cur_hp, opponent_damage, my_damage, info, moves_first,
            passive, opp_passive)
    return info


def is_setup_viable(current_hp: int, avg_damage: int, max_damage: int,
                    setup_turns: int, has_recovery: bool, recovery_amount: int,
                    moves_first: bool) -> bool:
    """setup_turns만큼 쌓는 동안 버틸 수 있는가."""
    if setup_turns == 0:
        return False

    # 후공이면 쌓기 전에 한 번 더 맞는다
    damage_during_setup = avg_damage * (setup_turns if moves_first else setup_turns + 1)

    if has_recovery and recovery_amount > avg_damage:
        return True
    if has_recovery:
        return current_hp > damage_during_setup - recovery_amount
    safety_threshold = max_damage * setup_turns + max_damage // 4
    return current_hp > safety_threshold


def calculate_recovery_strategy(incoming_damage: int, recovery_amount: int,
                                recovery_pp: int, outgoing_damage: int,
                                target_hp: int, is_faster: bool) -> tuple[bool, int, float]:
    """회복을 섞어 싸울 때 → (지속 가능, KO 턴, 회복 빈도).

    후공이면 필요한 회복 빈도를 1.2배로 잡는다.  빈도가 0.5를 넘으면 지속 불가.
    """
    if recovery_amount <= 0 or recovery_pp <= 0 or incoming_damage <= 0 or outgoing_damage <= 0:
        return False, KO_SENTINEL, 0.0

    frequency = incoming_damage / recovery_amount
    if not is_faster:
        frequency *= 1.2
    if frequency > MAX_RECOVERY_FREQUENCY:
        return False, KO_SENTINEL, 0.0

    frequency = max(0.1, min(frequency, MAX_RECOVERY_FREQUENCY))
    output = outgoing_damage * (1.0 - frequency)
    turns = math.ceil(target_hp / output)

    if math.ceil(turns * frequency) <= recovery_pp:
        return True, turns, frequency

    # PP 제한
    sustainable_turns = math.ceil(recovery_pp / frequency)
    if int(sustainable_turns * (1.0 - frequency) * outgoing_damage) >= target_hp:
        return True, sustainable_turns, frequency
    return False, KO_SENTINEL, frequency


def calculate_boosted_damage(base_damage: int, stage: int) -> int:
    """랭크 배율 적용 (+6 초과는 +6으로 고정)."""
    if stage <= 0:
        return base_damage
    return int(base_damage * BOOST_DAMAGE_TABLE[min(stage, MAX_SETUP_STAGES)])


def calculate_boosted_damage_optimal(base_damage: int, attack_stages: int,
                                     special_attack_stages: int) -> int:
    return calculate_boosted_damage(base_damage, max(attack_stages, special_attack_stages))


# ═══════════════════════════════════════════════════════════════
#  KO 경로
# ═══════════════════════════════════════════════════════════════

class KoPath(NamedTuple):
    turns: int
    uses_priority: bool      # 마지막 일격을 선공기로
    leads_with_drop: bool    # 랭크 하락기로 시작


def calculate_optimal_ko_path(target_hp: int, best_damage: int, priority_damage: int,
                              has_stat_lowering: bool, second_best_damage: int,
                              stat_drop_pct: float) -> KoPath:
    """선공기 마무리와 랭크 하락기 순서를 고려한 최소 KO 턴."""
    if best_damage <= 0 and priority_damage <= 0:
        return KoPath(KO_SENTINEL, False, False)
    if priority_damage >= target_hp:
        return KoPath(1, True, False)
    if best_damage >= target_hp:
        return KoPath(1, False, has_stat_lowering)

    if not has_stat_lowering and priority_damage > 0:
        if best_damage <= 0:
            return KoPath(turns_to_ko(target_hp, priority_damage), True, False)
        turns = turns_to_ko(target_hp, best_damage)
        remaining = target_hp - best_damage * (turns - 1)
        return KoPath(turns, remaining <= priority_damage, False)

    if has_stat_lowering:
        post_drop = int(best_damage * stat_drop_pct)

        # 1안: 하락기 먼저, 이후 약해진 화력
        remaining = target_hp - best_damage
        if 0 < priority_damage and priority_damage >= remaining:
            return KoPath(2, True, True)
        rest_turns = turns_to_ko(remaining, post_drop)
        before_last = best_damage + post_drop * (rest_turns - 1) if rest_turns > 1 else best_damage
        uses_p1 = priority_damage > 0 and target_hp - before_last <= priority_damage
        turns1 = min(KO_SENTINEL, 1 + rest_turns)
        option1 = KoPath(turns1, uses_p1, True)

        # 2안: 두 번째 기술 먼저
        option2 = option1
        if second_best_damage > 0:
            if second_best_damage + best_damage >= target_hp:
                option2 = KoPath(2, False, False)
            elif priority_damage > 0 and second_best_damage + priority_damage >= target_hp:
                option2 = KoPath(2, True, False)
            elif second_best_damage >= best_damage / 2:
                turns = turns_to_ko(target_hp, second_best_damage)
                before = second_best_damage * (turns - 1)
                uses = priority_damage > 0 and target_hp - before <= priority_damage
                option2 = KoPath(turns, uses, False)

        # 턴 수가 같으면 두 번째 기술 먼저 (2안)
        return option1 if option1.turns < option2.turns else option2

    return KoPath(turns_to_ko(target_hp, best_damage), False, False)


# ═══════════════════════════════════════════════════════════════
#  카테고리
# ═══════════════════════════════════════════════════════════════

class MatchupCategory(IntEnum):
    """(A 랭크업, A 회복, B 랭크업, B 회복) 조합 16가지."""
    PURE_DAMAGE_RACE = 0        # 0000
    A_SETUP_ONLY = 1            # 1000
    A_RECOVERY_ONLY = 2         # 0100
    B_SETUP_ONLY = 3            # 0010
    B_RECOVERY_ONLY = 4         # 0001
    A_SETUP_B_SETUP = 5         # 1010
    A_RECOVERY_B_RECOVERY = 6   # 0101
    A_SETUP_A_RECOVERY = 7      # 1100
    B_SETUP_B_RECOVERY = 8      # 0011
    A_SETUP_B_RECOVERY = 9      # 1001
    A_RECOVERY_B_SETUP = 10     # 0110
    A_FULL_B_SETUP = 11         # 1110
    A_FULL_B_RECOVERY = 12      # 1101
    A_SETUP_B_FULL = 13         # 1011
    A_RECOVERY_B_FULL = 14      # 0111
    BOTH_FULL = 15              # 1111


_CATEGORY_BY_FLAGS = {
    (False, False, False, False): MatchupCategory.PURE_DAMAGE_RACE,
    (True, False, False, False): MatchupCategory.A_SETUP_ONLY,
    (False, True, False, False): MatchupCategory.A_RECOVERY_ONLY,
    (False, False, True, False): MatchupCategory.B_SETUP_ONLY,
    (False, False, False, True): MatchupCategory.B_RECOVERY_ONLY,
    (True, False, True, False): MatchupCategory.A_SETUP_B_SETUP,
    (False, True, False, True): MatchupCategory.A_RECOVERY_B_RECOVERY,
    (True, True, False, False): MatchupCategory.A_SETUP_A_RECOVERY,
    (False, False, True, True): MatchupCategory.B_SETUP_B_RECOVERY,
    (True, False, False, True): MatchupCategory.A_SETUP_B_RECOVERY,
    (False, True, True, False): MatchupCategory.A_RECOVERY_B_SETUP,
    (True, True, True, False): MatchupCategory.A_FULL_B_SETUP,
    (True, True, False, True): MatchupCategory.A_FULL_B_RECOVERY,
    (True, False, True, True): MatchupCategory.A_SETUP_B_FULL,
    (False, True, True, True): MatchupCategory.A_RECOVERY_B_FULL,
    (True, True, True, True): MatchupCategory.BOTH_FULL,
}


def get_matchup_category(a_has_setup: bool, a_has_recovery: bool,
                         b_has_setup: bool, b_has_recovery: bool) -> MatchupCategory:
    return _CATEGORY_BY_FLAGS[(bool(a_has_setup), bool(a_has_recovery),
                               bool(b_has_setup), bool(b_has_recovery))]


# ═══════════════════════════════════════════════════════════════
#  대면 프로필
# ═══════════════════════════════════════════════════════════════

@dataclass
class MatchupProfile:
    """한쪽 유닛의 분류 입력값.  damage는 지속 효과까지 반영한 실효 데미지."""
    hp: int
    damage: int = 0
    priority_damage: int = 0
    passive: PassiveEffects = field(default_factory=PassiveEffects)
    setup: SetupInfo = field(default_factory=SetupInfo)
    has_stat_lowering: bool = False
    second_best_damage: int = 0
    stat_drop_pct: float = 1.0
    # 리포트용
    best_move: str | None = None
    avg_damage: int = 0
    max_damage: int = 0
    max_hp: int = 0

    @property
    def boosted_damage(self) -> int:
        stages = self.setup.optimal_setup_stages
        return calculate_boosted_damage_optimal(
            self.damage, stages * self.setup.attack_per_stage,
            stages * self.setup.special_attack_per_stage)

    def ko_path(self, target_hp: int) -> KoPath:
        return calculate_optimal_ko_path(
            target_hp, self.damage, self.priority_damage, self.has_stat_lowering,
            self.second_best_damage, self.stat_drop_pct)


def effective_damage(my_damage: int, mine: PassiveEffects, theirs: PassiveEffects) -> int:
    """직접 데미지 + 내 지속 딜 − 상대 순 지속 회복, 하한 0."""
    return max(0, my_damage + mine.passive_damage_outgoing - theirs.net_passive)


# ═══════════════════════════════════════════════════════════════
#  카테고리별 분류
# ═══════════════════════════════════════════════════════════════

def _classify_turn_differential(diff: int, a_kos_first: bool) -> Matchup:
    """A KO 턴 − B KO 턴 → 분류.  0이면 먼저 KO하는 쪽이 ±1."""
    if diff <= -2:
        return Matchup.STRONG_COUNTER
    if diff == -1:
        return Matchup.COUNTER
    if diff == 0:
        return Matchup.COUNTER if a_kos_first else Matchup.COUNTERED
    if diff == 1:
        return Matchup.COUNTERED
    return Matchup.STRONG_COUNTERED


def _zero_damage_result(a: MatchupProfile, b: MatchupProfile) -> Matchup | None:
    if a.damage == 0 and b.damage == 0:
        return Matchup.NEUTRAL
    if a.damage == 0:
        return Matchup.STRONG_COUNTERED
    if b.damage == 0:
        return Matchup.STRONG_COUNTER
    return None


def analyze_damage_race(a: MatchupProfile, b: MatchupProfile,
                        a_moves_first: bool) -> Matchup:
    """서로 때리기만 하는 대면: KO 턴 비교."""
    zero = _zero_damage_result(a, b)
    if zero is not None:
        return zero

    path_a = a.ko_path(b.hp)
    path_b = b.ko_path(a.hp)

    if path_a.turns != path_b.turns:
        a_kos_first = path_a.turns < path_b.turns
    elif path_a.uses_priority != path_b.uses_priority:
        a_kos_first = path_a.uses_priority
    else:
        a_kos_first = a_moves_first

    return _classify_turn_differential(path_a.turns - path_b.turns, a_kos_first)


def analyze_one_recovery_matchup(rec: MatchupProfile, other: MatchupProfile,
                                 rec_moves_first: bool) -> Matchup:
    """한쪽만 회복기 보유: 회복 빈도를 반영한 장기 딜 교환.

    rec 관점 결과를 돌려준다 (B가 회복 측이면 호출자가 부호를 뒤집음).
    """
    zero = _zero_damage_result(rec, other)
    if zero is not None:
        return zero

    amount = rec.passive.active_recovery_amount
    if amount > other.damage and rec.passive.active_recovery_pp >= RECOVERY_PP_THRESHOLD:
        return Matchup.STRONG_COUNTER
    if amount <= 0:
        return analyze_damage_race(rec, other, rec_moves_first)

    frequency = other.damage / amount
    if frequency > MAX_RECOVERY_FREQUENCY:
        return analyze_damage_race(rec, other, rec_moves_first)

    output = rec.damage * (1.0 - frequency)
    my_turns = turns_to_ko(other.hp, output)
    my_priority = (rec.priority_damage > 0
                   and other.hp - int(output * (my_turns - 1)) <= rec.priority_damage)

    # 빈도 × 회복량 = 받는 딜 (부동소수 절사로 1이 남지 않게 반올림)
    opp_net = other.damage - round(amount * frequency)
    if opp_net <= 0:
        return Matchup.STRONG_COUNTER
    opp_turns = turns_to_ko(rec.hp, opp_net)
    opp_priority = (other.priority_damage > 0
                    and rec.hp - opp_net * (opp_turns - 1) <= other.priority_damage)

    if opp_turns >= KO_SENTINEL:
        return Matchup.STRONG_COUNTER

    if my_turns != opp_turns:
        rec_kos_first = my_turns < opp_turns
    elif my_priority != opp_priority:
        rec_kos_first = my_priority
    else:
        rec_kos_first = rec_moves_first

    return _classify_turn_differential(my_turns - opp_turns, rec_kos_first)


SearchFn = Callable[[], Matchup]


def _handle_damage_race(a, b, a_first, search):
    return analyze_damage_race(a, b, a_first)


def _handle_a_recovery(a, b, a_first, search):
    return analyze_one_recovery_matchup(a, b, a_first)


def _handle_b_recovery(a, b, a_first, search):
    return Matchup(-analyze_one_recovery_matchup(b, a, not a_first))


def _handle_setup(a, b, a_first, search):
    """랭크업이 낀 카테고리: MCTS 위임.  탐색기가 없으면 최적 랭크업 후 딜 교환으로 근사."""
    if search is not None:
        return search()
    boosted_a = MatchupProfile(**{**a.__dict__, "damage": a.boosted_damage})
    boosted_b = MatchupProfile(**{**b.__dict__, "damage": b.boosted_damage})
    return analyze_damage_race(boosted_a, boosted_b, a_first)


_CATEGORY_HANDLERS = {
    MatchupCategory.PURE_DAMAGE_RACE: _handle_damage_race,
    MatchupCategory.A_RECOVERY_ONLY: _handle_a_recovery,
    MatchupCategory.B_RECOVERY_ONLY: _handle_b_recovery,
    MatchupCategory.A_RECOVERY_B_RECOVERY: _handle_damage_race,
}


def classify_matchup_by_category(a: MatchupProfile, b: MatchupProfile,
                                 a_moves_first: bool,
                                 search: SearchFn | None = None) -> Matchup:
    """0 데미지 판정 → 카테고리 핸들러.  등록되지 않은 카테고리 (랭크업)는 탐색."""
    zero = _zero_damage_result(a, b)
    if zero is not None:
        return zero

    category = get_matchup_category(a.setup.has_setup, a.passive.has_active_recovery,
                                    b.setup.has_setup, b.passive.has_active_recovery)
    handler = _CATEGORY_HANDLERS.get(category, _handle_setup)
    return handler(a, b, a_moves_first, search)


# ═══════════════════════════════════════════════════════════════
#  매치업 계산기
# ═══════════════════════════════════════════════════════════════

class MatchupCalculator:
    """(상태, A, B, 조건) → Matchup.  MatchupCache.populate의 분류기."""

    def __init__(self, game_data: GameData, simulator: BattleSimulator | None = None,
                 search_config: SearchConfig | None = None,
                 evaluator: PositionEvaluator | None = None,
                 use_search: bool = True):
        self.sim = simulator or BattleSimulator(game_data)
        self.search_config = search_config or SearchConfig.matchup_default()
        self.evaluator = evaluator or PositionEvaluator()
        self.use_search = use_search

    def build_profiles(self, sim_state: BattleState) -> tuple[MatchupProfile, MatchupProfile, bool]:
        """1v1 상태 → (A 프로필, B 프로필, A 선공 여부)."""
        sim = self.sim
        best_a, rolls_a = find_best_move(sim, sim_state, 0)
        best_b, rolls_b = find_best_move(sim, sim_state, 1)

        order = sim.resolve_move_order(sim_state, best_a, best_b)
        a_first = order != MoveOrder.SIDE_TWO  # 동속 = A 선공

        avg_a, avg_b = _avg(rolls_a), _avg(rolls_b)
        passive_a = analyze_passive_effects(sim, sim_state, 0)
        passive_b = analyze_passive_effects(sim, sim_state, 1)
        setup_a = analyze_setup_capabilities(sim, sim_state, 0, avg_b, avg_a,
                                             a_first, passive_a, passive_b)
        setup_b = analyze_setup_capabilities(sim, sim_state, 1, avg_a, avg_b,
                                             not a_first, passive_b, passive_a)

        profiles = []
        for player, best, rolls, avg, mine, theirs, setup in (
                (0, best_a, rolls_a, avg_a, passive_a, passive_b, setup_a),
                (1, best_b, rolls_b, avg_b, passive_b, passive_a, setup_b)):
            poke = sim_state.sides[player].active
            lowering = is_stat_lowering_move(best)
            profiles.append(MatchupProfile(
                hp=poke.cur_hp,
                damage=effective_damage(avg, mine, theirs),
                priority_damage=get_best_priority_move_damage(sim, sim_state, player),
                passive=mine,
                setup=setup,
                has_stat_lowering=lowering,
                second_best_damage=(get_second_best_move_damage(sim, sim_state, player)
                                    if lowering else 0),
                stat_drop_pct=get_stat_drop_percentage(best) if lowering else 1.0,
                best_move=best,
                avg_damage=avg,
                max_damage=max(rolls) if rolls else 0,
                max_hp=poke.max_hp,
            ))
        return profiles[0], profiles[1], a_first

    def compute_matchup(self, state: BattleState, a_idx: int, b_idx: int,
                        conditions: BattleConditions) -> Matchup:
        sim_state = create_simulation_state(state, a_idx, b_idx, conditions)
        a, b, a_first = self.build_profiles(sim_state)
        search = None
        if self.use_search:
            def search() -> Matchup:
                return compute_matchup_mcts(self.sim, sim_state, self.search_config,
                                            self.evaluator)
        return classify_matchup_by_category(a, b, a_first, search)


# ═══════════════════════════════════════════════════════════════
#  검증
# ═══════════════════════════════════════════════════════════════

def verify():
    print("=== Matchup Calculator 검증 ===\n")

    print("  랭크 배율:", [calculate_boosted_damage(100, s) for s in range(8)])

    a = MatchupProfile(hp=300, damage=80)
    b = MatchupProfile(hp=300, damage=40)
    print(f"  300/80 vs 300/40 (A 선공): {classify_matchup_by_category(a, b, True).name}")

    path = calculate_optimal_ko_path(200, 150, 0, True, 60, 0.5)
    print(f"  하락기 150 + 보조기 60 vs HP 200: {path}")

    for dmg in (10, 50, 100, 150, 300):
        print(f"  HP 300, 데미지 {dmg} → {turns_to_ko(300, dmg)}턴")

    print("\n검증 완료!")


if __name__ == "__main__":
    verify()
