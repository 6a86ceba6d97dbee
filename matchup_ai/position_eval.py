"""포지션 평가 — 탐색 리프용 점수 함수.

- evaluate()         : 팀 전체, P1 관점 점수 (포인트 스케일)
- evaluate_matchup() : 1v1 대면 전용 평가 (액티브 두 마리만)
- sigmoid()          : 점수 차 → [0, 1] 승률 근사

점수 스케일: 살아있는 포켓몬 30점 + HP 100점 만점 + 상태이상/랭크/휘발성 보정.
"""

from __future__ import annotations

import math

import numpy as np

from matchup_ai.data_loader import RECOVERY_MOVES, LEECH_SEED
from matchup_ai.battle_sim import BattleState, Pokemon, Side, BattleOutcome, battle_outcome


# ═══════════════════════════════════════════════════════════════
#  평가 가중치
# ═══════════════════════════════════════════════════════════════

POKEMON_ALIVE = 30.0
POKEMON_HP = 100.0

STATUS_PENALTY = {
    "frz": -40.0,
    "slp": -25.0,
    "par": -25.0,
    "brn": -25.0,
    "tox": -30.0,
    "psn": -10.0,
}

BOOST_WEIGHTS = {"atk": 30.0, "def": 15.0, "spa": 30.0, "spd": 15.0, "spe": 30.0}

# 랭크 → 평가 배율 (-6 ~ +6).  상승폭이 단계마다 줄어듦
_BOOST_TABLE = {
    -6: -3.3, -5: -3.15, -4: -3.0, -3: -2.5, -2: -2.0, -1: -1.0,
    0: 0.0,
    1: 1.0, 2: 2.0, 3: 2.5, 4: 3.0, 5: 3.15, 6: 3.3,
}

SUBSTITUTE = 40.0
LEECH_SEED_PENALTY = -30.0
TRAPPED_PENALTY = -20.0

# 1v1: 직전에 회복기를 쓴 쪽 (회복에 턴을 쓴 만큼 불리)
RECOVERY = 10.0

SIGMOID_SCALE = 0.0125


def get_boost_multiplier(stage: int) -> float:
    return _BOOST_TABLE[max(-6, min(6, stage))]


def sigmoid(x: float) -> float:
    """점수 차 → (0, 1).  x=0 → 0.5, ±200점 → 약 0.92 / 0.08."""
    return 1.0 / (1.0 + math.exp(-SIGMOID_SCALE * x))


# ═══════════════════════════════════════════════════════════════
#  평가기
# ═══════════════════════════════════════════════════════════════

class PositionEvaluator:
    """룰 기반 포지션 평가 (탐색 리프용).  항상 P1 관점."""

    # ─── 팀 전체 평가 ────────────────────────────────────────
    def evaluate(self, state: BattleState) -> float:
        return self._side_score(state.sides[0]) - self._side_score(state.sides[1])

    def evaluate_batch(self, states: list[BattleState]) -> np.ndarray:
        """배치 평가 (루프)."""
        if not states:
            return np.array([], dtype=np.float32)
        return np.array([self.evaluate(s) for s in states], dtype=np.float32)

    def evaluate_value(self, state: BattleState) -> float:
        """[0, 1] 승률 근사.  종료 상태는 승패 그대로."""
        outcome = battle_outcome(state)
        if outcome == BattleOutcome.SIDE_ONE_WINS:
            return 1.0
        if outcome == BattleOutcome.SIDE_TWO_WINS:
            return 0.0
        return sigmoid(self.evaluate(state))

    def _side_score(self, side: Side) -> float:
        score = 0.0
        for i, poke in enumerate(side.team):
            if poke.fainted:
                continue
            score += self.evaluate_pokemon(poke)
            if i == side.active_idx:
                score += self._boost_score(poke) + self._volatile_score(poke)
        return score

    # ─── 1v1 대면 평가 ───────────────────────────────────────
    def evaluate_matchup(self, state: BattleState) -> float:
        """액티브 두 마리만 비교하는 1v1 평가.

        유닛 가치 + 랭크 + 휘발성 상태, 그리고 직전 턴에 회복기를 쓴 쪽은
        RECOVERY만큼 감점 (회복에 턴을 쓸 만큼 밀리고 있다는 신호).
        """
        a = state.sides[0].active
        b = state.sides[1].active
        score = 0.0
        for sign, poke in ((1.0, a), (-1.0, b)):
            if poke.fainted:
                continue
            score += sign * (self.evaluate_pokemon(poke)
                             + self._boost_score(poke)
                             + self._volatile_score(poke))
            if poke.last_used_move in RECOVERY_MOVES:
                score -= sign * RECOVERY
        return score

    # ─── 컴포넌트 ────────────────────────────────────────────
    @staticmethod
    def evaluate_pokemon(poke: Pokemon) -> float:
        """단일 유닛 가치: 생존 + HP 비율 + 상태이상."""
        if poke.fainted:
            return 0.0
        score = POKEMON_ALIVE + POKEMON_HP * poke.hp_pct
        score += STATUS_PENALTY.get(poke.status, 0.0)
        return score

    @staticmethod
    def _boost_score(poke: Pokemon) -> float:
        return sum(get_boost_multiplier(poke.boosts.get(k, 0)) * w
                   for k, w in BOOST_WEIGHTS.items())

    @staticmethod
    def _volatile_score(poke: Pokemon) -> float:
        score = 0.0
        if poke.substitute_hp > 0:
            score += SUBSTITUTE
        if LEECH_SEED in poke.volatiles:
            score += LEECH_SEED_PENALTY
        if "trapped" in poke.volatiles:
            score += TRAPPED_PENALTY
        return score


# ═══════════════════════════════════════════════════════════════
#  검증
# ═══════════════════════════════════════════════════════════════

def verify():
    print("=== Position Evaluator 검증 ===\n")

    for x in (-400, -200, 0, 200, 400):
        print(f"  sigmoid({x:+d}) = {sigmoid(x):.3f}")

    print("\n  랭크 배율:", [get_boost_multiplier(s) for s in range(-6, 7)])
    print("\n검증 완료!")


if __name__ == "__main__":
    verify()
