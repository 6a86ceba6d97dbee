"""매치업 판정 근거 — 분류 결과를 사람이 읽을 수 있는 단계별 설명으로.

explain_matchup()은 MatchupCalculator와 같은 프로필로 분류하면서
각 단계 (행동 순서, 데미지, 지속 효과, 랭크업, 카테고리)를 기록하고
마지막에 대표 이유 (primary reason) 하나를 고른다.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from matchup_ai.battle_sim import BattleState, MoveOrder
from matchup_ai.conditions import BattleConditions, create_simulation_state
from matchup_ai.matchup_cache import Matchup
from matchup_ai.matchup_calc import (
    MatchupCalculator, MatchupProfile, KO_SENTINEL,
    calculate_recovery_strategy, is_setup_viable, get_matchup_category,
    classify_matchup_by_category,
)
from matchup_ai.matchup_mcts import perform_mcts_for_matchup


CLASSIFICATION_STR = {
    Matchup.STRONG_COUNTER: "COUNTER (Strong Favorable)",
    Matchup.COUNTER: "CHECK (Favorable)",
    Matchup.NEUTRAL: "NEUTRAL",
    Matchup.COUNTERED: "CHECKED (Unfavorable)",
    Matchup.STRONG_COUNTERED: "COUNTERED (Strong Unfavorable)",
}

FINAL_STR = {
    Matchup.STRONG_COUNTER: "Strong Counter",
    Matchup.COUNTER: "Check",
    Matchup.NEUTRAL: "Neutral",
    Matchup.COUNTERED: "Checked",
    Matchup.STRONG_COUNTERED: "Hard Countered",
}

OHKO_LIKELY = 0.9


# ═══════════════════════════════════════════════════════════════
#  지표
# ═══════════════════════════════════════════════════════════════

@dataclass
class SideMetrics:
    """한쪽 유닛의 판정 지표."""
    hp: int = 0
    max_hp: int = 0
    moves: list[str] = field(default_factory=list)
    best_move: str = ""
    avg_damage: int = 0
    max_damage: int = 0
    effective_damage: int = 0

    ohko_chance: float = 0.0
    turns_to_ko: int = KO_SENTINEL

    priority_damage: int = 0
    priority_ko: bool = False

    has_active_recovery: bool = False
    recovery_per_turn: int = 0
    recovery_sufficient: bool = False
    recovery_dominates: bool = False
    recovery_strategy: tuple[bool, int, float] = (False, KO_SENTINEL, 0.0)

    has_setup: bool = False
    setup_turns: int = 0
    setup_viable: bool = False
    can_setup_safely: bool = False
    boosts_speed: bool = False
    boosted_damage: int = 0
    setup_ohko: bool = False

    best_ko_turns: int = KO_SENTINEL
    best_strategy: str = ""

    has_stat_lowering_move: bool = False
    stat_drop_percentage: float = 1.0
    second_best_damage: int = 0
    post_drop_damage: int = 0

    passive_recovery_amount: int = 0
    passive_damage_outgoing: int = 0
    passive_damage_incoming: int = 0


@dataclass
class MatchupMetrics:
    s1: SideMetrics = field(default_factory=SideMetrics)
    s2: SideMetrics = field(default_factory=SideMetrics)
    s1_moves_first: bool = True
    speed_tie: bool = False


@dataclass
class MatchupReasoning:
    s1_name: str
    s2_name: str
    metrics: MatchupMetrics = field(default_factory=MatchupMetrics)
    win_percentage: float | None = None     # 탐색을 거친 경우에만
    classification: Matchup = Matchup.NEUTRAL
    reasoning_steps: list[str] = field(default_factory=list)
    primary_reason: str = ""

    def add_step(self, step: str):
        self.reasoning_steps.append(step)

    def set_primary_reason(self, reason: str):
        self.primary_reason = reason

    def set_result(self, classification: int):
        self.classification = Matchup(classification)

    def classification_to_string(self) -> str:
        return CLASSIFICATION_STR[self.classification]

    def summary(self) -> str:
        m = self.metrics
        s1_moves = f"Moves: {', '.join(m.s1.moves)}" if m.s1.moves else "No moves"
        s2_moves = f"Moves: {', '.join(m.s2.moves)}" if m.s2.moves else "No moves"
        win = f"{self.win_percentage * 100:.1f}%" if self.win_percentage is not None else "n/a"
        first = self.s1_name if m.s1_moves_first else self.s2_name
        return (f"{self.s1_name} ({s1_moves}) vs {self.s2_name} ({s2_moves}) - "
                f"{self.classification_to_string()} (Win rate: {win})\n"
                f"  Primary reason: {self.primary_reason}\n"
                f"  Key metrics: S1 damage: {m.s1.avg_damage}, S2 damage: {m.s2.avg_damage}, "
                f"S1 TTK: {m.s1.turns_to_ko}, S2 TTK: {m.s2.turns_to_ko}, {first} moves first")

    def format_report(self) -> str:
        lines = [
            f"=== MATCHUP: {self.s1_name} vs {self.s2_name} ===",
            f"Classification: {self.classification_to_string()}",
            f"Primary Reason: {self.primary_reason}",
            "",
            "-- KEY METRICS --",
        ]
        for label, side in (("Side One", self.metrics.s1), ("Side Two", self.metrics.s2)):
            lines.append(f"{label}: HP {side.hp}/{side.max_hp}, best {side.best_move or '-'} "
                         f"(avg {side.avg_damage}, max {side.max_damage}), "
                         f"TTK {side.turns_to_ko}, best path {side.best_ko_turns} "
                         f"({side.best_strategy})")
        lines += ["", "-- REASONING STEPS --"]
        lines += [f"{i}. {step}" for i, step in enumerate(self.reasoning_steps, 1)]
        return "\n".join(lines)


# ═══════════════════════════════════════════════════════════════
#  분석
# ═══════════════════════════════════════════════════════════════

def _strategy_name(profile: MatchupProfile, target_hp: int) -> tuple[int, str]:
    path = profile.ko_path(target_hp)
    if path.turns >= KO_SENTINEL:
        return path.turns, "cannot KO"
    if path.uses_priority:
        return path.turns, "priority finish"
    if profile.has_stat_lowering:
        return path.turns, ("stat-lowering move first" if path.leads_with_drop
                            else "second-best move first")
    return path.turns, "direct attack"


def _side_metrics(calc: MatchupCalculator, sim_state: BattleState, player: int,
                  me: MatchupProfile, opp: MatchupProfile, moves_first: bool) -> SideMetrics:
    poke = sim_state.sides[player].active
    rolls = calc.sim.damage_rolls(sim_state, player, me.best_move) if me.best_move else []
    ohko = (sum(1 for d in rolls if d >= opp.hp) / len(rolls)
            if rolls and max(rolls) >= opp.hp else 0.0)
    stages = me.setup.optimal_setup_stages
    ko_turns, strategy = _strategy_name(me, opp.hp)
    strategy_tuple = calculate_recovery_strategy(
        opp.damage, me.passive.active_recovery_amount, me.passive.active_recovery_pp,
        me.damage, opp.hp, moves_first)

    return SideMetrics(
        hp=me.hp, max_hp=me.max_hp,
        moves=[m for m in poke.moves if m],
        best_move=me.best_move or "",
        avg_damage=me.avg_damage, max_damage=me.max_damage,
        effective_damage=me.damage,
        ohko_chance=ohko,
        turns_to_ko=max(1, -(-opp.hp // me.damage)) if me.damage > 0 else KO_SENTINEL,
        priority_damage=me.priority_damage,
        priority_ko=me.priority_damage >= opp.hp > 0,
        has_active_recovery=me.passive.has_active_recovery,
        recovery_per_turn=me.passive.active_recovery_amount,
        recovery_sufficient=strategy_tuple[0],
        recovery_dominates=me.passive.active_recovery_amount > opp.damage,
        recovery_strategy=strategy_tuple,
        has_setup=me.setup.has_setup,
        setup_turns=stages,
        setup_viable=stages > 0,
        can_setup_safely=is_setup_viable(
            me.hp, opp.damage, opp.max_damage, stages,
            me.passive.has_active_recovery, me.passive.active_recovery_amount, moves_first),
        boosts_speed=me.setup.boosts_speed,
        boosted_damage=me.boosted_damage,
        setup_ohko=me.setup.has_setup and me.boosted_damage >= opp.hp,
        best_ko_turns=ko_turns,
        best_strategy=strategy,
        has_stat_lowering_move=me.has_stat_lowering,
        stat_drop_percentage=me.stat_drop_pct,
        second_best_damage=me.second_best_damage,
        post_drop_damage=int(me.avg_damage * me.stat_drop_pct) if me.has_stat_lowering else 0,
        passive_recovery_amount=me.passive.passive_recovery_amount,
        passive_damage_outgoing=me.passive.passive_damage_outgoing,
        passive_damage_incoming=me.passive.passive_damage_incoming,
    )


def _add_side_steps(r: MatchupReasoning, label: str, me: SideMetrics, opp: SideMetrics):
    if me.avg_damage <= 0:
        r.add_step(f"{label} has no effective direct damage output")
    else:
        r.add_step(f"{label} damage output: Avg={me.avg_damage}, Max={me.max_damage} "
                   f"({me.avg_damage / max(opp.hp, 1) * 100:.1f}% of opponent's HP)")
    if me.passive_recovery_amount > 0:
        r.add_step(f"{label} has passive recovery: {me.passive_recovery_amount} HP per turn")
    if me.passive_damage_outgoing > 0:
        r.add_step(f"{label} inflicts {me.passive_damage_outgoing} passive damage per turn")
    if me.passive_damage_incoming > 0:
        r.add_step(f"{label} takes {me.passive_damage_incoming} passive damage per turn")
    if me.has_stat_lowering_move:
        r.add_step(f"{label}'s best move ({me.best_move}) lowers stats. "
                   f"After use, damage reduced to {me.stat_drop_percentage * 100:.1f}%")
        if me.second_best_damage + me.avg_damage >= opp.hp:
            r.add_step(f"{label} optimal sequence: second best move "
                       f"({me.second_best_damage} damage) then stat-lowering move for 2HKO")
        else:
            r.add_step(f"{label} using stat-lowering move first, then reduced damage "
                       f"({me.avg_damage} → {me.post_drop_damage})")


def explain_matchup(calc: MatchupCalculator, state: BattleState, a_idx: int, b_idx: int,
                    conditions: BattleConditions | None = None) -> MatchupReasoning:
    """단일 쌍 분류 + 근거.  conditions가 없으면 현재 상태의 조건."""
    if conditions is None:
        conditions = BattleConditions.from_state(state, a_idx, b_idx)
    sim_state = create_simulation_state(state, a_idx, b_idx, conditions)
    a, b, a_first = calc.build_profiles(sim_state)

    r = MatchupReasoning(s1_name=state.sides[0].team[a_idx].name,
                         s2_name=state.sides[1].team[b_idx].name)

    order = calc.sim.resolve_move_order(sim_state, a.best_move, b.best_move)
    r.metrics.s1_moves_first = a_first
    r.metrics.speed_tie = order == MoveOrder.SPEED_TIE
    if order == MoveOrder.SIDE_ONE:
        r.add_step("Side One moves first due to higher speed")
    elif order == MoveOrder.SIDE_TWO:
        r.add_step("Side Two moves first due to higher speed")
    else:
        r.add_step("Speed tie detected - favoring Side One for analysis")

    s1 = r.metrics.s1 = _side_metrics(calc, sim_state, 0, a, b, a_first)
    s2 = r.metrics.s2 = _side_metrics(calc, sim_state, 1, b, a, not a_first)

    _add_side_steps(r, "Side One", s1, s2)
    _add_side_steps(r, "Side Two", s2, s1)

    for label, me, mine, theirs in (("Side One", a, s1, s2), ("Side Two", b, s2, s1)):
        net = theirs.passive_recovery_amount - theirs.passive_damage_incoming
        r.add_step(f"{label} effective damage: {me.damage} (direct: {mine.avg_damage}, "
                   f"passive: {mine.passive_damage_outgoing}, opponent recovery: {net})")
    for label, me in (("Side One", s1), ("Side Two", s2)):
        r.add_step(f"{label} needs {me.turns_to_ko} turns to KO "
                   f"(dealing {me.effective_damage} damage per turn)")

    for label, me in (("Side One", s1), ("Side Two", s2)):
        if not me.has_setup:
            continue
        if me.setup_viable:
            r.add_step(f"{label} can safely set up for {me.setup_turns} turns (optimal strategy)")
        else:
            r.add_step(f"{label} has setup moves but setup is not optimal in this matchup")

    def boost_pct(side: SideMetrics) -> float:
        return (side.boosted_damage / side.effective_damage - 1.0) * 100 if side.effective_damage else 0.0
    r.add_step(f"After optimal setup: Side One damage = {s1.boosted_damage} "
               f"({boost_pct(s1):.1f}% boost), Side Two damage = {s2.boosted_damage} "
               f"({boost_pct(s2):.1f}% boost)")
    for label, me in (("Side One", s1), ("Side Two", s2)):
        if me.setup_ohko:
            r.add_step(f"{label} can achieve OHKO after setup")

    category = get_matchup_category(a.setup.has_setup, a.passive.has_active_recovery,
                                    b.setup.has_setup, b.passive.has_active_recovery)
    r.add_step(f"Matchup category: {category.name}")

    def search() -> Matchup:
        result = perform_mcts_for_matchup(calc.sim, sim_state, calc.search_config,
                                          calc.evaluator)
        r.win_percentage = result.mean_score(0)
        r.add_step(f"Search: {result.iteration_count} iterations, "
                   f"max depth {result.max_depth}, mean score {r.win_percentage:.3f}")
        return Matchup.from_win_rate(r.win_percentage)

    classification = classify_matchup_by_category(
        a, b, a_first, search if calc.use_search else None)
    r.add_step(f"Final classification: {FINAL_STR[classification]}")
    r.set_result(classification)
    determine_primary_reason(r)
    return r


# ═══════════════════════════════════════════════════════════════
#  대표 이유
# ═══════════════════════════════════════════════════════════════

def determine_primary_reason(r: MatchupReasoning) -> str:
    """분류 값별로 가장 먼저 들어맞는 설명 하나."""
    m = r.metrics
    s1, s2 = m.s1, m.s2
    first = m.s1_moves_first
    c = r.classification

    if c == Matchup.STRONG_COUNTER:
        if s1.priority_ko and not s2.priority_ko:
            reason = "Can KO with priority before opponent moves"
        elif s1.recovery_dominates and not s2.recovery_dominates:
            reason = "Recovery exceeds all possible damage from opponent"
        elif first and s1.ohko_chance > OHKO_LIKELY:
            reason = "Has nearly guaranteed OHKO and moves first"
        elif first and s1.turns_to_ko <= 2 and s2.turns_to_ko >= 3:
            reason = "Much faster KO and moves first"
        elif s1.setup_viable and (s1.boosts_speed or first) and s1.setup_ohko:
            reason = "Can safely set up and then OHKO"
        elif (s1.has_stat_lowering_move and s1.second_best_damage > 0
              and s1.turns_to_ko < s2.turns_to_ko):
            reason = "Effectively manages stat-lowering moves with good secondary options"
        else:
            reason = "Strong advantage in battle dynamics"
    elif c == Matchup.COUNTER:
        if s1.recovery_sufficient and not s2.recovery_sufficient:
            reason = "Recovery offsets most but not all damage"
        elif first and s1.turns_to_ko <= s2.turns_to_ko:
            reason = "Faster and equal/better KO speed"
        elif s1.setup_viable and s1.setup_ohko and not first:
            reason = "Can set up and OHKO but doesn't control speed"
        elif s1.has_stat_lowering_move and s1.turns_to_ko <= s2.turns_to_ko:
            reason = "Maintains KO advantage despite stat-lowering moves"
        else:
            reason = "Favorable matchup with multiple advantages"
    elif c == Matchup.NEUTRAL:
        if ((first and s1.turns_to_ko > s2.turns_to_ko)
                or (not first and s1.turns_to_ko < s2.turns_to_ko)):
            reason = "Offsetting advantages (speed vs. damage)"
        elif s1.recovery_sufficient and s2.recovery_sufficient:
            reason = "Both sides have sufficient recovery"
        elif s1.setup_viable and s2.setup_viable:
            reason = "Both sides can set up effectively"
        elif s1.has_stat_lowering_move and s2.has_stat_lowering_move:
            reason = "Both sides manage stat-lowering moves effectively"
        else:
            reason = "Balanced matchup with no clear advantage"
    elif c == Matchup.COUNTERED:
        if not first and s1.turns_to_ko == s2.turns_to_ko:
            reason = "Equal KO timing but moves second"
        elif s1.turns_to_ko > s2.turns_to_ko and not s1.recovery_sufficient:
            reason = "Takes longer to KO and recovery isn't sufficient"
        elif s2.setup_viable and not s1.setup_viable:
            reason = "Opponent can set up safely but Side One cannot"
        elif (not s1.has_stat_lowering_move and s2.has_stat_lowering_move
              and s2.second_best_damage > 0):
            reason = "Opponent has more diverse offensive options"
        else:
            reason = "Disadvantageous matchup with multiple weaknesses"
    elif c == Matchup.STRONG_COUNTERED:
        if s2.recovery_dominates and not s1.recovery_dominates:
            reason = "Opponent can recover more than max damage output"
        elif s2.priority_ko and not s1.priority_ko:
            reason = "Opponent KOs with priority before Side One can move"
        elif not first and s2.ohko_chance > OHKO_LIKELY:
            reason = "Opponent almost guaranteed to OHKO and moves first"
        elif not first and s2.turns_to_ko <= 2 and s1.turns_to_ko >= 3:
            reason = "Opponent has much faster KO and moves first"
        elif s2.setup_viable and (s2.boosts_speed or not first) and s2.setup_ohko:
            reason = "Opponent can safely set up and OHKO"
        elif s2.has_stat_lowering_move and s2.turns_to_ko + 1 < s1.turns_to_ko:
            reason = "Opponent efficiently uses stat-lowering moves to KO much faster"
        else:
            reason = "Severely disadvantaged in multiple aspects"
    else:
        reason = "Undetermined matchup dynamics"

    r.set_primary_reason(reason)
    return reason


# ═══════════════════════════════════════════════════════════════
#  검증
# ═══════════════════════════════════════════════════════════════

def verify():
    from matchup_ai.data_loader import GameData
    from matchup_ai.battle_sim import BattleSimulator, make_pokemon

    print("=== Matchup Report 검증 ===\n")
    gd = GameData(device="cpu")
    sim = BattleSimulator(gd)
    calc = MatchupCalculator(gd, sim)

    a = make_pokemon(gd, "Dragapult", ["dracometeor", "shadowball", "uturn", "fireblast"])
    b = make_pokemon(gd, "Blissey", ["seismictoss", "softboiled", "calmmind", "thunderwave"])
    state = sim.create_battle_state([a], [b])

    r = explain_matchup(calc, state, 0, 0)
    print(r.summary())
    print()
    print(r.format_report())

    print("\n검증 완료!")


if __name__ == "__main__":
    verify()
