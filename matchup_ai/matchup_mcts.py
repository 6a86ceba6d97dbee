"""동시 행동 MCTS — 매치업 솔버 / 팀 탐색.

구조:
- 노드는 SearchTree.nodes 리스트에 저장, 정수 인덱스로 참조 (arena)
- 각 노드는 양측 후보 행동 (MoveOption)을 따로 가지고 양측이 독립적으로 UCB1 선택
  (P2는 1 − score 관점으로 누적)
- (P1 선택, P2 선택) 쌍마다 자식 최대 max_outcomes개 (난수 결과 샘플)
- 리프 평가: 종료면 1/0, 아니면 sigmoid(eval(state) − root_eval)
- 배치 단위로 돌고 배치 사이에만 시간 확인, 방문 상한에서 강제 종료
"""

from __future__ import annotations

import math
import random
import time
from dataclasses import dataclass, field
from typing import Callable

from matchup_ai.battle_sim import (
    BattleSimulator, BattleState, BattleOutcome,
    battle_outcome, action_to_str,
)
from matchup_ai.position_eval import PositionEvaluator, sigmoid
from matchup_ai.matchup_cache import Matchup


EvalFn = Callable[[BattleState], float]


# ═══════════════════════════════════════════════════════════════
#  탐색 설정
# ═══════════════════════════════════════════════════════════════

@dataclass
class SearchConfig:
    """탐색 예산.

    time_limit과 iterations가 둘 다 None이면 배치 하나만 돈다.
    early_stop을 주면 early_stop_interval 반복마다 루트 후보 평균을 확인해
    어느 쪽이든 임계값을 넘으면 중단.
    """
    batch_size: int = 1000
    time_limit: float | None = None     # 초
    max_visits: int = 10_000_000
    exploration: float = 1.414
    early_stop: float | None = None
    early_stop_interval: int = 100
    max_outcomes: int = 3
    iterations: int | None = None

    @classmethod
    def matchup_default(cls) -> SearchConfig:
        """1v1 매치업 분류용: 100회, 0.8 조기 종료."""
        return cls(batch_size=100, iterations=100, early_stop=0.8)


# ═══════════════════════════════════════════════════════════════
#  트리
# ═══════════════════════════════════════════════════════════════

@dataclass
class MoveOption:
    choice: int                 # ActionType
    total_score: float = 0.0    # 이 쪽 관점 누적 점수
    visits: int = 0

    @property
    def mean_score(self) -> float:
        return self.total_score / self.visits if self.visits else 0.0


@dataclass
class SearchNode:
    state: BattleState
    parent: int = -1
    depth: int = 0
    s1_options: list[MoveOption] = field(default_factory=list)
    s2_options: list[MoveOption] = field(default_factory=list)
    children: dict[tuple[int, int], list[int]] = field(default_factory=dict)
    visits: int = 0
    is_root: bool = False

    @property
    def is_terminal(self) -> bool:
        return not self.s1_options or not self.s2_options


class SearchTree:
    """한 번의 탐색이 독점 소유하는 노드 arena."""

    def __init__(self, sim: BattleSimulator, state: BattleState,
                 exploration: float = 1.414, max_outcomes: int = 3,
                 allow_tera: bool = True):
        self.sim = sim
        self.exploration = exploration
        self.max_outcomes = max_outcomes
        self.allow_tera = allow_tera
        self.nodes: list[SearchNode] = []
        self.max_depth = 0
        root = self._new_node(state, parent=-1, depth=0)
        self.nodes[root].is_root = True

    @property
    def root(self) -> SearchNode:
        return self.nodes[0]

    def _new_node(self, state: BattleState, parent: int, depth: int) -> int:
        node = SearchNode(state=state, parent=parent, depth=depth)
        if battle_outcome(state) == BattleOutcome.ONGOING:
            node.s1_options = [MoveOption(a) for a in
                               self.sim.get_legal_actions(state, 0, self.allow_tera)]
            node.s2_options = [MoveOption(a) for a in
                               self.sim.get_legal_actions(state, 1, self.allow_tera)]
        self.nodes.append(node)
        self.max_depth = max(self.max_depth, depth)
        return len(self.nodes) - 1

    # ─── Selection ───────────────────────────────────────────
    def _ucb_select(self, options: list[MoveOption], parent_visits: int) -> int:
        log_n = math.log(max(parent_visits, 1))
        best_i, best_val = 0, -math.inf
        for i, opt in enumerate(options):
            if opt.visits == 0:
                return i
            val = opt.mean_score + self.exploration * math.sqrt(log_n / opt.visits)
            if val > best_val:
                best_i, best_val = i, val
        return best_i

    def select(self) -> tuple[list[tuple[int, int, int]], int]:
        """루트에서 내려가며 (노드, i, j) 경로와 도착 노드 반환.

        선택한 쌍의 자식이 max_outcomes 미만이면 그 자리에서 확장하고 멈춘다.
        """
        path = []
        idx = 0
        while True:
            node = self.nodes[idx]
            if node.is_terminal:
                return path, idx
            i = self._ucb_select(node.s1_options, node.visits)
            j = self._ucb_select(node.s2_options, node.visits)
            path.append((idx, i, j))
            kids = node.children.setdefault((i, j), [])
            if len(kids) < self.max_outcomes:
                return path, self.expand(idx, i, j)
            idx = random.choice(kids)

    # ─── Expansion ───────────────────────────────────────────
    def expand(self, idx: int, i: int, j: int) -> int:
        node = self.nodes[idx]
        next_state = self.sim.step(node.state, node.s1_options[i].choice,
                                   node.s2_options[j].choice)
        child = self._new_node(next_state, parent=idx, depth=node.depth + 1)
        node.children[(i, j)].append(child)
        return child

    # ─── Backpropagation ─────────────────────────────────────
    def backpropagate(self, path: list[tuple[int, int, int]], leaf: int,
                      value: float):
        """value는 P1 관점.  P2 후보에는 1 − value 누적."""
        self.nodes[leaf].visits += 1
        for idx, i, j in reversed(path):
            node = self.nodes[idx]
            node.visits += 1
            node.s1_options[i].visits += 1
            node.s1_options[i].total_score += value
            node.s2_options[j].visits += 1
            node.s2_options[j].total_score += 1.0 - value

    def iterate(self, evaluate: EvalFn, root_eval: float):
        path, leaf = self.select()
        value = evaluate_leaf(self.nodes[leaf].state, evaluate, root_eval)
        self.backpropagate(path, leaf, value)

    def root_option_above(self, threshold: float) -> bool:
        return any(opt.visits > 0 and opt.mean_score > threshold
                   for opt in self.root.s1_options + self.root.s2_options)

    def result(self) -> MctsResult:
        def side(options: list[MoveOption]) -> list[MctsSideResult]:
            return [MctsSideResult(o.choice, o.total_score, o.visits) for o in options]
        return MctsResult(
            s1=side(self.root.s1_options),
            s2=side(self.root.s2_options),
            iteration_count=self.root.visits,
            max_depth=self.max_depth,
        )


def evaluate_leaf(state: BattleState, evaluate: EvalFn, root_eval: float) -> float:
    """종료 상태는 1/0 (무승부 없음), 그 외는 루트 대비 평가 변화를 sigmoid."""
    outcome = battle_outcome(state)
    if outcome == BattleOutcome.SIDE_ONE_WINS:
        return 1.0
    if outcome == BattleOutcome.SIDE_TWO_WINS:
        return 0.0
    return sigmoid(evaluate(state) - root_eval)


# ═══════════════════════════════════════════════════════════════
#  결과
# ═══════════════════════════════════════════════════════════════

@dataclass
class MctsSideResult:
    move_choice: int
    total_score: float
    visits: int

    @property
    def mean_score(self) -> float:
        return self.total_score / self.visits if self.visits else 0.0


@dataclass
class MctsResult:
    s1: list[MctsSideResult]
    s2: list[MctsSideResult]
    iteration_count: int
    max_depth: int

    def best_move(self, player: int = 0) -> MctsSideResult | None:
        """최다 방문 후보."""
        options = self.s1 if player == 0 else self.s2
        if not options:
            return None
        return max(options, key=lambda o: o.visits)

    def mean_score(self, player: int = 0) -> float:
        """최다 방문 후보의 평균 점수 (해당 플레이어 관점).  탐색이 없었으면 0.5."""
        best = self.best_move(player)
        if best is None or best.visits == 0:
            return 0.5
        return best.mean_score


# ═══════════════════════════════════════════════════════════════
#  탐색 루프
# ═══════════════════════════════════════════════════════════════

def run_search(sim: BattleSimulator, state: BattleState, evaluate: EvalFn,
               config: SearchConfig, allow_tera: bool = True) -> MctsResult:
    tree = SearchTree(sim, state, config.exploration, config.max_outcomes, allow_tera)
    if tree.root.is_terminal:
        return tree.result()

    root_eval = evaluate(state)
    budget = config.iterations
    if budget is None and config.time_limit is None:
        budget = config.batch_size

    start = time.time()
    k = 0
    done = False
    while not done:
        for _ in range(config.batch_size):
            if (budget is not None and k >= budget) or tree.root.visits >= config.max_visits:
                done = True
                break
            tree.iterate(evaluate, root_eval)
            k += 1
            if (config.early_stop is not None and k % config.early_stop_interval == 0
                    and tree.root_option_above(config.early_stop)):
                done = True
                break
        if config.time_limit is not None and time.time() - start >= config.time_limit:
            done = True

    return tree.result()


def perform_mcts_for_matchup(sim: BattleSimulator, state: BattleState,
                             config: SearchConfig | None = None,
                             evaluator: PositionEvaluator | None = None) -> MctsResult:
    """1v1 탐색 (테라 분기 제외, evaluate_matchup으로 평가)."""
    config = config or SearchConfig.matchup_default()
    evaluator = evaluator or PositionEvaluator()
    return run_search(sim, state, evaluator.evaluate_matchup, config, allow_tera=False)


def compute_matchup_mcts(sim: BattleSimulator, state: BattleState,
                         config: SearchConfig | None = None,
                         evaluator: PositionEvaluator | None = None) -> Matchup:
    """1v1 탐색 → P1 최다 방문 수의 평균 점수 → 5단계 분류."""
    result = perform_mcts_for_matchup(sim, state, config, evaluator)
    return Matchup.from_win_rate(result.mean_score(0))


def perform_mcts_with_team_matchups(sim: BattleSimulator, state: BattleState,
                                    team_evaluator, config: SearchConfig | None = None,
                                    time_limit: float | None = None) -> MctsResult:
    """팀 전체 탐색.  team_evaluator.evaluate (기본 평가 + 매치업 전략 가치)로 평가.

    캐시는 미리 채워 두어야 한다 (탐색 중에는 조회만).
    """
    config = config or SearchConfig()
    if time_limit is not None:
        config = SearchConfig(**{**config.__dict__, "time_limit": time_limit})
    return run_search(sim, state, team_evaluator.evaluate, config, allow_tera=True)


def describe_result(state: BattleState, result: MctsResult, player: int = 0) -> list[dict]:
    """루트 후보를 방문 수 내림차순으로 정리 (출력용)."""
    options = result.s1 if player == 0 else result.s2
    total = sum(o.visits for o in options) or 1
    return [
        {
            "action": o.move_choice,
            "name": action_to_str(state, player, o.move_choice),
            "visits": o.visits,
            "probability": o.visits / total,
            "mean_score": o.mean_score,
        }
        for o in sorted(options, key=lambda o: -o.visits)
    ]


# ═══════════════════════════════════════════════════════════════
#  검증
# ═══════════════════════════════════════════════════════════════

def verify():
    from matchup_ai.data_loader import GameData
    from matchup_ai.battle_sim import make_pokemon

    print("=== Matchup MCTS 검증 ===\n")
    gd = GameData(device="cpu")
    sim = BattleSimulator(gd)

    a = make_pokemon(gd, "Garchomp", ["earthquake", "dragonclaw", "swordsdance", "stoneedge"])
    b = make_pokemon(gd, "Corviknight", ["bravebird", "roost", "bulkup", "bodypress"])
    state = sim.create_battle_state([a], [b])

    result = perform_mcts_for_matchup(sim, state)
    print(f"  반복 {result.iteration_count}, 최대 깊이 {result.max_depth}")
    for row in describe_result(state, result, 0):
        print(f"  {row['name']:25s} | {row['visits']:4d} ({row['probability']:.1%}) "
              f"mean {row['mean_score']:.3f}")
    print(f"  분류: {compute_matchup_mcts(sim, state).name}")

    print("\n검증 완료!")


if __name__ == "__main__":
    verify()
