"""매치업 평가 세션 — 배틀 하나를 평가하는 동안 캐시/집계기/탐색기를 소유.

사용 순서:
    session = MatchupSession(gd, verbose=True)
    session.prepare(state)                  # 캐시 사전 채우기 (탐색 전에 필수)
    session.classify(state, 0, 2)           # 단일 쌍
    result = session.search(state, time_limit=5.0)
    session.report(state)

세션끼리는 아무것도 공유하지 않는다 (전역 캐시 없음).
"""

from __future__ import annotations

import time

from matchup_ai.data_loader import GameData
from matchup_ai.battle_sim import BattleSimulator, BattleState, action_to_str
from matchup_ai.position_eval import PositionEvaluator
from matchup_ai.conditions import BattleConditions
from matchup_ai.matchup_cache import Matchup, MatchupCache, analyze_matchup_cache
from matchup_ai.matchup_calc import MatchupCalculator
from matchup_ai.matchup_mcts import (
    SearchConfig, MctsResult, perform_mcts_with_team_matchups, describe_result,
)
from matchup_ai.strategic import StrategicValueTracker, TeamMatchupEvaluator
from matchup_ai.matchup_report import MatchupReasoning, explain_matchup


class MatchupSession:
    def __init__(self, game_data: GameData,
                 search_config: SearchConfig | None = None,
                 matchup_config: SearchConfig | None = None,
                 use_matchup_search: bool = True,
                 verbose: bool = False):
        self.gd = game_data
        self.verbose = verbose
        self.sim = BattleSimulator(game_data)
        self.evaluator = PositionEvaluator()
        self.search_config = search_config or SearchConfig()
        self.cache = MatchupCache(verbose=verbose)
        self.tracker = StrategicValueTracker()
        self.calculator = MatchupCalculator(
            game_data, self.sim,
            search_config=matchup_config or SearchConfig.matchup_default(),
            evaluator=self.evaluator,
            use_search=use_matchup_search,
        )
        self.team_evaluator = TeamMatchupEvaluator(self.cache, self.tracker, self.evaluator)

    # ─── 캐시 ────────────────────────────────────────────────
    def prepare(self, state: BattleState) -> int:
        """살아있는 모든 쌍 × 도달 가능한 조건으로 캐시 채우기."""
        if self.verbose:
            print(f"[session] 캐시 준비: {len(state.sides[0].alive_indices)} × "
                  f"{len(state.sides[1].alive_indices)} 쌍")
        return self.cache.populate(state, self.calculator)

    def classify(self, state: BattleState, a_idx: int, b_idx: int,
                 conditions: BattleConditions | None = None) -> Matchup:
        """캐시 조회, 없으면 계산 후 저장."""
        if conditions is None:
            conditions = BattleConditions.from_state(state, a_idx, b_idx)
        cached = self.cache.get(a_idx, b_idx, conditions)
        if cached is not None:
            return cached
        value = self.calculator.compute_matchup(state, a_idx, b_idx, conditions)
        self.cache.insert(a_idx, b_idx, conditions, value)
        return value

    def explain(self, state: BattleState, a_idx: int, b_idx: int,
                conditions: BattleConditions | None = None) -> MatchupReasoning:
        return explain_matchup(self.calculator, state, a_idx, b_idx, conditions)

    # ─── 평가 / 탐색 ─────────────────────────────────────────
    def evaluate(self, state: BattleState) -> float:
        """팀 평가.  첫 호출에서 캐시가 비어 있으면 채운 뒤 평가."""
        if len(self.cache) == 0:
            self.prepare(state)
        return self.team_evaluator.evaluate(state)

    def search(self, state: BattleState, time_limit: float | None = None) -> MctsResult:
        """팀 MCTS.  캐시가 비어 있으면 먼저 채운다."""
        if len(self.cache) == 0:
            self.prepare(state)
        start = time.time()
        result = perform_mcts_with_team_matchups(
            self.sim, state, self.team_evaluator, self.search_config, time_limit)
        if self.verbose:
            best = result.best_move(0)
            name = action_to_str(state, 0, best.move_choice) if best else "-"
            print(f"[session] 탐색 {result.iteration_count}회, 깊이 {result.max_depth}, "
                  f"최선 {name} ({time.time() - start:.1f}s)")
        return result

    def reset(self):
        """캐시와 누적 평균 초기화 (새 배틀)."""
        self.cache.clear()
        self.tracker.reset()

    # ─── 리포트 ──────────────────────────────────────────────
    def report(self, state: BattleState, result: MctsResult | None = None):
        analyze_matchup_cache(state, self.cache)

        cs = self.cache.stats()
        print(f"\nCache: {cs['size']} entries, {cs['hits']} hits / {cs['misses']} misses "
              f"({cs['hit_rate']:.1%})")
        ts = self.tracker.stats()
        print(f"Evaluations: {ts['total']} (complete {ts['complete_rate']:.1%}, "
              f"partial {ts['partial_rate']:.1%}, fallback {ts['fallback_rate']:.1%}), "
              f"strategic mean {ts['strategic_mean']:.1f}")

        if result is not None:
            print("\nSearch result (Side One):")
            for row in describe_result(state, result, 0):
                print(f"  {row['name']:25s} | {row['visits']:6d} ({row['probability']:.1%}) "
                      f"mean {row['mean_score']:.3f}")


# ═══════════════════════════════════════════════════════════════
#  검증
# ═══════════════════════════════════════════════════════════════

def verify():
    from matchup_ai.battle_sim import make_pokemon

    print("=== Matchup Session 검증 ===\n")
    gd = GameData(device="cpu")
    session = MatchupSession(gd, search_config=SearchConfig(batch_size=200),
                             use_matchup_search=False, verbose=True)

    t1 = [make_pokemon(gd, "Garchomp", ["earthquake", "dragonclaw", "stoneedge", "firefang"]),
          make_pokemon(gd, "Rotom-Wash", ["hydropump", "voltswitch", "willowisp", "painsplit"])]
    t2 = [make_pokemon(gd, "Corviknight", ["bravebird", "roost", "bodypress", "uturn"]),
          make_pokemon(gd, "Heatran", ["magmastorm", "earthpower", "flashcannon", "taunt"])]
    state = session.sim.create_battle_state(t1, t2)

    session.prepare(state)
    print(f"  Garchomp vs Corviknight: {session.classify(state, 0, 0).name}")
    result = session.search(state, time_limit=2.0)
    session.report(state, result)

    print("\n검증 완료!")


if __name__ == "__main__":
    verify()
