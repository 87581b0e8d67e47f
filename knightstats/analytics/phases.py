# ==============================================================================
# phases.py  –  Error totals per game phase (estimated)
#
# Only whole-game error counts are stored, so every game's blunders, mistakes
# and inaccuracies are spread over the phases with fixed weights keyed by the
# game's length. Swap `_PHASE_WEIGHTS` for a per-move calculation
# once move-level evaluations are available; the summary shape stays the same.
# ==============================================================================

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from knightstats.analytics.common import round_half_up
from knightstats.models.game import Game
from knightstats.models.records import GamePhaseStats, PhasePerformanceSummary

PHASES: Tuple[str, ...] = ("opening", "middlegame", "endgame")

OPENING_LAST_MOVE = 15
MIDDLEGAME_LAST_MOVE = 40

# (max move count, (opening, middlegame, endgame) share); last row is open-ended
_PHASE_WEIGHTS: Tuple[Tuple[float, Tuple[float, float, float]], ...] = (
    (20, (0.6, 0.4, 0.0)),
    (40, (0.3, 0.7, 0.0)),
    (float("inf"), (0.2, 0.5, 0.3)),
)

# nominal moves credited to each phase per contributing game
_MOVES_PER_GAME = {"opening": 15, "middlegame": 25, "endgame": 20}

_LABELS = {"opening": "Opening", "middlegame": "Middlegame", "endgame": "Endgame"}


def classify_game_phase(move_number: int) -> str:
    if move_number <= OPENING_LAST_MOVE:
        return "opening"
    if move_number <= MIDDLEGAME_LAST_MOVE:
        return "middlegame"
    return "endgame"


def phase_label(phase: str) -> str:
    return _LABELS.get(phase, phase.title())


@dataclass
class _PhaseTotals:
    blunders: int = 0
    mistakes: int = 0
    inaccuracies: int = 0
    cp_loss_sum: float = 0.0
    games: int = 0

    def build(self, phase: str) -> GamePhaseStats:
        return GamePhaseStats(
            phase=phase,
            blunders=self.blunders,
            mistakes=self.mistakes,
            inaccuracies=self.inaccuracies,
            avg_cp_loss=self.cp_loss_sum / self.games if self.games else 0.0,
            moves_analyzed=self.games * _MOVES_PER_GAME[phase],
        )


def _weights_for(move_count: int) -> Tuple[float, float, float]:
    for ceiling, weights in _PHASE_WEIGHTS:
        if move_count <= ceiling:
            return weights
    return _PHASE_WEIGHTS[-1][1]


def _error_rate(stats: GamePhaseStats) -> float:
    if stats.moves_analyzed <= 0:
        return 0.0
    return (stats.blunders + stats.mistakes + stats.inaccuracies) / stats.moves_analyzed


def calculate_phase_performance(games: Sequence[Game]) -> PhasePerformanceSummary:
    """
    Estimate where a player's errors happen.

    This is an approximation, not a per-move measurement: each analysed game
    contributes ``round(errors * weight)`` to every phase it reaches, with
    weights (0.6, 0.4, 0) for games up to 20 moves, (0.3, 0.7, 0) up to 40 and
    (0.2, 0.5, 0.3) beyond. ACPL is credited to opening and middlegame always
    and to the endgame only for games longer than 40 moves.

    Returns
    -------
    PhasePerformanceSummary
        ``is_estimate`` is always True. Weakest / strongest phase compare
        errors per nominal move among phases with data; on a tie the later
        phase is picked.
    """
    analyzed = [g for g in games if g.analysis is not None]
    if not analyzed:
        return PhasePerformanceSummary(
            opening=GamePhaseStats(phase="opening"),
            middlegame=GamePhaseStats(phase="middlegame"),
            endgame=GamePhaseStats(phase="endgame"),
            weakest_phase="middlegame",
            strongest_phase="opening",
            games_analyzed=0,
        )

    totals: Dict[str, _PhaseTotals] = {phase: _PhaseTotals() for phase in PHASES}
    for game in analyzed:
        analysis = game.analysis
        for phase, weight in zip(PHASES, _weights_for(game.move_count)):
            if weight <= 0:
                continue
            bucket = totals[phase]
            bucket.blunders += round_half_up(analysis.blunders * weight)
            bucket.mistakes += round_half_up(analysis.mistakes * weight)
            bucket.inaccuracies += round_half_up(analysis.inaccuracies * weight)
            bucket.games += 1

        if analysis.acpl is not None:
            totals["opening"].cp_loss_sum += analysis.acpl
            totals["middlegame"].cp_loss_sum += analysis.acpl
            if game.move_count > MIDDLEGAME_LAST_MOVE:
                totals["endgame"].cp_loss_sum += analysis.acpl

    stats = {phase: totals[phase].build(phase) for phase in PHASES}
    rates: List[Tuple[str, float]] = [
        (phase, _error_rate(stats[phase])) for phase in PHASES if totals[phase].games > 0
    ]

    weakest = rates[0]
    strongest = rates[0]
    for candidate in rates[1:]:
        weakest = weakest if weakest[1] > candidate[1] else candidate
        strongest = strongest if strongest[1] < candidate[1] else candidate

    return PhasePerformanceSummary(
        opening=stats["opening"],
        middlegame=stats["middlegame"],
        endgame=stats["endgame"],
        weakest_phase=weakest[0],
        strongest_phase=strongest[0],
        games_analyzed=len(analyzed),
    )
