"""팀 전략 가치 — 매치업 캐시를 팀 단위 점수로 접기.

현재 조건에서 살아있는 모든 쌍의 캐시 결과를 모아
카운터 / 견제 / 카운터당함 / 견제당함 / 유일 카운터 관계를 만들고,
상대 로스터 대비 비율로 점수화해서 기본 포지션 평가에 더한다.

캐시 커버리지:
  1.0          → base + strategic                            (Complete)
  ≥ 0.7        → base + strategic·cov + mean·(1 − cov)       (Partial)
  그 미만       → base + mean                                 (Fallback)
mean은 StrategicValueTracker의 누적 평균 (세션 동안 유지).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

import numpy as np

from matchup_ai.battle_sim import BattleState
from matchup_ai.position_eval import PositionEvaluator
from matchup_ai.conditions import BattleConditions
from matchup_ai.matchup_cache import Matchup, MatchupCache


# ═══════════════════════════════════════════════════════════════
#  가중치
# ═══════════════════════════════════════════════════════════════

COUNTER_BASE = 20.0
COUNTER_COVERAGE = 35.0     # × 상대 팀 중 카운터하는 비율
CHECK_BASE = 10.0
CHECK_COVERAGE = 15.0
UNIQUE_BASE = 50.0          # 유일한 카운터
UNIQUE_SCALING = 0.7        # 유일 카운터 대상이 늘 때마다 추가 배율

CACHE_COVERAGE_THRESHOLD = 0.7


def evaluate_counter_value(num_countered: int, total_opponents: int) -> float:
    if num_countered == 0 or total_opponents == 0:
        return 0.0
    return COUNTER_BASE + COUNTER_COVERAGE * (num_countered / total_opponents)


def evaluate_check_value(num_checked: int, total_opponents: int) -> float:
    if num_checked == 0 or total_opponents == 0:
        return 0.0
    return CHECK_BASE + CHECK_COVERAGE * (num_checked / total_opponents)


def evaluate_uniqueness_value(num_unique: int) -> float:
    if num_unique == 0:
        return 0.0
    return UNIQUE_BASE * (1.0 + (num_unique - 1) * UNIQUE_SCALING)


# ═══════════════════════════════════════════════════════════════
#  현재 매치업 관계
# ═══════════════════════════════════════════════════════════════

@dataclass
class CounterInfo:
    """한 유닛의 상대 팀 인덱스 목록 (매 평가마다 새로 계산)."""
    counters: list[int] = field(default_factory=list)
    checks: list[int] = field(default_factory=list)
    countered_by: list[int] = field(default_factory=list)
    checked_by: list[int] = field(default_factory=list)
    unique_counters: list[int] = field(default_factory=list)  # 내가 유일한 카운터인 상대

    def value(self, total_opponents: int) -> float:
        return (evaluate_counter_value(len(self.counters), total_opponents)
                + evaluate_check_value(len(self.checks), total_opponents)
                + evaluate_uniqueness_value(len(self.unique_counters))
                - evaluate_counter_value(len(self.countered_by), total_opponents)
                - evaluate_check_value(len(self.checked_by), total_opponents))


@dataclass
class CurrentMatchups:
    """현재 조건 기준 쌍별 관계.

    matrix[i, j] = s1_alive[i] vs s2_alive[j] 분류 (P1 관점), found[i, j] = 캐시 적중.
    """
    s1_alive: list[int]
    s2_alive: list[int]
    matrix: np.ndarray
    found: np.ndarray
    s1_info: dict[int, CounterInfo]
    s2_info: dict[int, CounterInfo]

    @property
    def coverage(self) -> float:
        if self.found.size == 0:
            return 0.0
        return float(np.count_nonzero(self.found)) / self.found.size

    @classmethod
    def from_cache(cls, state: BattleState, cache: MatchupCache) -> CurrentMatchups:
        s1_alive = state.sides[0].alive_indices
        s2_alive = state.sides[1].alive_indices
        matrix = np.zeros((len(s1_alive), len(s2_alive)), dtype=np.int8)
        found = np.zeros((len(s1_alive), len(s2_alive)), dtype=bool)
        s1_info = {i: CounterInfo() for i in s1_alive}
        s2_info = {j: CounterInfo() for j in s2_alive}

        for r, a in enumerate(s1_alive):
            for c, b in enumerate(s2_alive):
                result = cache.get(a, b, BattleConditions.from_state(state, a, b))
                if result is None:
                    continue
                matrix[r, c] = result
                found[r, c] = True
                if result == Matchup.STRONG_COUNTER:
                    s1_info[a].counters.append(b)
                    s2_info[b].countered_by.append(a)
                elif result == Matchup.COUNTER:
                    s1_info[a].checks.append(b)
                    s2_info[b].checked_by.append(a)
                elif result == Matchup.COUNTERED:
                    s2_info[b].checks.append(a)
                    s1_info[a].checked_by.append(b)
                elif result == Matchup.STRONG_COUNTERED:
                    s2_info[b].counters.append(a)
                    s1_info[a].countered_by.append(b)

        # 카운터가 하나뿐인 상대 → 그 카운터에 유일 카운터 보너스
        for b, info in s2_info.items():
            if len(info.countered_by) == 1:
                s1_info[info.countered_by[0]].unique_counters.append(b)
        for a, info in s1_info.items():
            if len(info.countered_by) == 1:
                s2_info[info.countered_by[0]].unique_counters.append(a)

        return cls(s1_alive, s2_alive, matrix, found, s1_info, s2_info)

    def strategic_value(self) -> float:
        """Σ P1 유닛 가치 − Σ P2 유닛 가치 (비율 기반)."""
        if not self.s1_alive or not self.s2_alive:
            return 0.0
        n1, n2 = len(self.s1_alive), len(self.s2_alive)
        return (sum(info.value(n2) for info in self.s1_info.values())
                - sum(info.value(n1) for info in self.s2_info.values()))


# ═══════════════════════════════════════════════════════════════
#  누적 평균
# ═══════════════════════════════════════════════════════════════

class EvaluationType(Enum):
    COMPLETE = "complete"   # 모든 쌍이 캐시에 있음
    PARTIAL = "partial"     # 임계값 이상
    FALLBACK = "fallback"   # 누적 평균만 사용


class StrategicValueTracker:
    """전략 가치 / 기본 평가의 누적 평균과 평가 유형 집계."""

    def __init__(self):
        self.reset()

    def reset(self):
        self.strategic_sum = 0.0
        self.base_sum = 0.0
        self.eval_count = 0
        self.type_counts = {t: 0 for t in EvaluationType}

    @property
    def strategic_mean(self) -> float:
        return self.strategic_sum / self.eval_count if self.eval_count else 0.0

    @property
    def base_mean(self) -> float:
        return self.base_sum / self.eval_count if self.eval_count else 0.0

    @property
    def total_evaluations(self) -> int:
        return sum(self.type_counts.values())

    def update(self, strategic_value: float, base_value: float):
        self.strategic_sum += strategic_value
        self.base_sum += base_value
        self.eval_count += 1

    def record(self, eval_type: EvaluationType):
        self.type_counts[eval_type] += 1

    def stats(self) -> dict:
        total = self.total_evaluations
        out = {t.value: n for t, n in self.type_counts.items()}
        out["total"] = total
        for t, n in self.type_counts.items():
            out[f"{t.value}_rate"] = n / total if total else 0.0
        out["strategic_mean"] = self.strategic_mean
        out["base_mean"] = self.base_mean
        return out


# ═══════════════════════════════════════════════════════════════
#  팀 평가기
# ═══════════════════════════════════════════════════════════════

class TeamMatchupEvaluator:
    """기본 포지션 평가 + 캐시 기반 전략 가치.  팀 MCTS의 리프 평가."""

    def __init__(self, cache: MatchupCache,
                 tracker: StrategicValueTracker | None = None,
                 evaluator: PositionEvaluator | None = None,
                 threshold: float = CACHE_COVERAGE_THRESHOLD):
        self.cache = cache
        self.tracker = tracker or StrategicValueTracker()
        self.evaluator = evaluator or PositionEvaluator()
        self.threshold = threshold

    @staticmethod
    def classify_coverage(coverage: float, threshold: float) -> EvaluationType:
        if coverage >= 1.0:
            return EvaluationType.COMPLETE
        if coverage >= threshold:
            return EvaluationType.PARTIAL
        return EvaluationType.FALLBACK

    def evaluate(self, state: BattleState) -> float:
        base = self.evaluator.evaluate(state)
        if not state.sides[0].alive_indices or not state.sides[1].alive_indices:
            return base

        matchups = CurrentMatchups.from_cache(state, self.cache)
        coverage = matchups.coverage
        eval_type = self.classify_coverage(coverage, self.threshold)
        self.tracker.record(eval_type)

        if eval_type == EvaluationType.FALLBACK:
            return base + self.tracker.strategic_mean

        strategic = matchups.strategic_value()
        self.tracker.update(strategic, base)
        if eval_type == EvaluationType.COMPLETE:
            return base + strategic
        return base + strategic * coverage + self.tracker.strategic_mean * (1.0 - coverage)


# ═══════════════════════════════════════════════════════════════
#  검증
# ═══════════════════════════════════════════════════════════════

def verify():
    print("=== Strategic Value 검증 ===\n")

    for n, total in ((1, 1), (1, 3), (3, 3)):
        print(f"  counter {n}/{total}: {evaluate_counter_value(n, total):.1f}, "
              f"check {n}/{total}: {evaluate_check_value(n, total):.1f}")
    for n in (1, 2, 3):
        print(f"  unique ×{n}: {evaluate_uniqueness_value(n):.1f}")

    for cov in (1.0, 0.8, 0.5):
        print(f"  coverage {cov:.1f} → "
              f"{TeamMatchupEvaluator.classify_coverage(cov, CACHE_COVERAGE_THRESHOLD).value}")

    print("\n검증 완료!")


if __name__ == "__main__":
    verify()
