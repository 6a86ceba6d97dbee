"""매치업 캐시 — (유닛 A, 유닛 B, 조건) → 5단계 상성 분류.

세션 하나가 소유하고 배틀 평가가 끝나면 버린다 (디스크 저장 없음).
키에는 버킷화된 조건 전체가 들어가므로 64-bit 해시 충돌로
다른 조건의 결과가 섞이지 않는다.
"""

from __future__ import annotations

import time
from enum import IntEnum
from typing import Protocol

from matchup_ai.battle_sim import BattleState
from matchup_ai.conditions import BattleConditions, determine_possible_conditions


class Matchup(IntEnum):
    """A 관점 상성."""
    STRONG_COUNTER = 2      # 카운터
    COUNTER = 1             # 견제 (check)
    NEUTRAL = 0
    COUNTERED = -1          # 견제당함
    STRONG_COUNTERED = -2   # 카운터당함

    @classmethod
    def from_win_rate(cls, p: float) -> Matchup:
        """A 승률 → 분류 (0.9 / 0.7 / 0.3 / 0.1)."""
        if p > 0.9:
            return cls.STRONG_COUNTER
        if p > 0.7:
            return cls.COUNTER
        if p < 0.1:
            return cls.STRONG_COUNTERED
        if p < 0.3:
            return cls.COUNTERED
        return cls.NEUTRAL


MATCHUP_LABELS = {
    Matchup.STRONG_COUNTER: "COUNTER",
    Matchup.COUNTER: "Check",
    Matchup.NEUTRAL: "Neutral",
    Matchup.COUNTERED: "Checked",
    Matchup.STRONG_COUNTERED: "COUNTERED",
}


class MatchupClassifier(Protocol):
    def compute_matchup(self, state: BattleState, a_idx: int, b_idx: int,
                        conditions: BattleConditions) -> Matchup: ...


# ═══════════════════════════════════════════════════════════════
#  캐시
# ═══════════════════════════════════════════════════════════════

class MatchupCache:
    """쌍별 매치업 결과 캐시 (hit/miss 집계 포함)."""

    def __init__(self, verbose: bool = False):
        self._entries: dict[tuple[int, int, BattleConditions], Matchup] = {}
        self.hits = 0
        self.misses = 0
        self.verbose = verbose

    def get(self, a_idx: int, b_idx: int,
            conditions: BattleConditions) -> Matchup | None:
        result = self._entries.get((a_idx, b_idx, conditions))
        if result is None:
            self.misses += 1
        else:
            self.hits += 1
        return result

    def peek(self, a_idx: int, b_idx: int,
             conditions: BattleConditions) -> Matchup | None:
        """집계 없이 조회 (리포트용)."""
        return self._entries.get((a_idx, b_idx, conditions))

    def insert(self, a_idx: int, b_idx: int, conditions: BattleConditions,
               value: int) -> None:
        self._entries[(a_idx, b_idx, conditions)] = Matchup(value)

    def __contains__(self, key: tuple[int, int, BattleConditions]) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0
        self.misses = 0

    def stats(self) -> dict:
        total = self.hits + self.misses
        return {
            "hits": self.hits,
            "misses": self.misses,
            "total": total,
            "hit_rate": self.hits / total if total else 0.0,
            "size": len(self._entries),
        }

    # ─── 사전 채우기 ─────────────────────────────────────────
    def populate(self, state: BattleState,
                 classifier: MatchupClassifier) -> int:
        """살아있는 모든 쌍 × 도달 가능한 조건을 미리 계산.

        각 쌍의 현재 조건도 함께 넣는다 (상태이상/랭크가 있는 현재 대면).
        이미 들어 있는 키는 건너뜀.  새로 계산한 항목 수 반환.
        """
        start = time.time()
        computed = 0
        a_alive = state.sides[0].alive_indices
        b_alive = state.sides[1].alive_indices

        for a_idx in a_alive:
            for b_idx in b_alive:
                conditions = determine_possible_conditions(state, a_idx, b_idx)
                conditions.append(BattleConditions.from_state(state, a_idx, b_idx))
                for cond in conditions:
                    if (a_idx, b_idx, cond) in self._entries:
                        continue
                    value = classifier.compute_matchup(state, a_idx, b_idx, cond)
                    self.insert(a_idx, b_idx, cond, value)
                    computed += 1
                if self.verbose:
                    a_name = state.sides[0].team[a_idx].name
                    b_name = state.sides[1].team[b_idx].name
                    print(f"  [cache] {a_name} vs {b_name}: {len(conditions)} 조건")

        if self.verbose:
            print(f"  [cache] {computed}개 계산, 총 {len(self)}개 "
                  f"({time.time() - start:.1f}s)")
        return computed


# ═══════════════════════════════════════════════════════════════
#  캐시 분석 리포트
# ═══════════════════════════════════════════════════════════════

def truncate_name(name: str, max_length: int) -> str:
    if len(name) <= max_length:
        return name
    return name[:max_length - 3] + "..."


def analyze_matchup_cache(state: BattleState, cache: MatchupCache) -> None:
    """기준 조건 (만피, 상태이상/랭크 없음) 매트릭스 + 카운터 목록 출력."""
    a_alive = state.sides[0].alive_indices
    b_alive = state.sides[1].alive_indices
    base = BattleConditions.baseline()

    def lookup(a_idx: int, b_idx: int) -> Matchup:
        value = cache.peek(a_idx, b_idx, base)
        return Matchup.NEUTRAL if value is None else value

    print("Matchup Cache Analysis")
    print("=====================\n")
    print(f"Total cached matchups: {len(cache)}")

    print("\nBaseline Matchup Matrix (Full HP, No Status, No Boosts):")
    print("-" * 58)
    header = "           |"
    for b_idx in b_alive:
        header += f" {truncate_name(state.sides[1].team[b_idx].name, 10):<10} |"
    print(header)
    print("-----------|" + "------------|" * len(b_alive))

    for a_idx in a_alive:
        row = f"{truncate_name(state.sides[0].team[a_idx].name, 11):<11}"
        for b_idx in b_alive:
            row += f"| {MATCHUP_LABELS[lookup(a_idx, b_idx)]:<10} "
        print(row + "|")

    print("\nTeam Counters and Vulnerabilities:")
    print("-" * 34)
    for a_idx in a_alive:
        counters = [state.sides[1].team[b].name for b in b_alive
                    if lookup(a_idx, b) >= Matchup.STRONG_COUNTER]
        countered_by = [state.sides[1].team[b].name for b in b_alive
                        if lookup(a_idx, b) <= Matchup.STRONG_COUNTERED]
        print(f"{state.sides[0].team[a_idx].name}:")
        print(f"  Counters: {', '.join(counters) or 'None'}")
        print(f"  Countered by: {', '.join(countered_by) or 'None'}")


# ═══════════════════════════════════════════════════════════════
#  검증
# ═══════════════════════════════════════════════════════════════

def verify():
    print("=== Matchup Cache 검증 ===\n")

    cache = MatchupCache()
    base = BattleConditions.baseline()
    cache.insert(0, 1, base, Matchup.COUNTER)
    print(f"  get(0, 1) = {cache.get(0, 1, base)!r}")
    print(f"  get(1, 0) = {cache.get(1, 0, base)!r}")
    print(f"  stats: {cache.stats()}")

    for p in (0.95, 0.8, 0.5, 0.2, 0.05):
        print(f"  win rate {p:.2f} → {Matchup.from_win_rate(p).name}")

    print("\n검증 완료!")


if __name__ == "__main__":
    verify()
