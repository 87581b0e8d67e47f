# ==============================================================================
# time_management.py  –  Clock usage statistics
#
# All times are seconds. Games without clock data are ignored except for the
# timeout-loss rate, which is computed over every loss.
# ==============================================================================

from __future__ import annotations

from typing import Dict, List, Sequence

from knightstats.analytics.common import pct
from knightstats.analytics.phases import PHASES, classify_game_phase
from knightstats.models.game import TIME_CLASSES, Game
from knightstats.models.records import (
    TimeClassTimeStats,
    TimePressureStats,
    TimeStats,
    TimeUsageByPhase,
)

TIME_TROUBLE_SECONDS = 30


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _remaining(games: Sequence[Game]) -> List[float]:
    return [g.clock.time_remaining for g in games if g.clock and g.clock.time_remaining is not None]


def _move_time(games: Sequence[Game]) -> List[float]:
    return [g.clock.avg_move_time for g in games if g.clock and g.clock.avg_move_time is not None]


def _timeout_share(games: Sequence[Game]) -> float:
    losses = [g for g in games if g.is_loss]
    return pct(sum(1 for g in losses if g.termination == "timeout"), len(losses))


def calculate_time_stats(games: Sequence[Game]) -> TimeStats:
    clocked = [g for g in games if g.clock is not None]
    if not clocked:
        return TimeStats()

    by_class = []
    for time_class in TIME_CLASSES:
        subset = [g for g in clocked if g.time_class == time_class]
        if not subset:
            continue
        by_class.append(
            TimeClassTimeStats(
                time_class=time_class,
                games=len(subset),
                avg_time_remaining=_mean(_remaining(subset)),
                timeout_rate=_timeout_share(subset),
                avg_move_time=_mean(_move_time(subset)),
            )
        )

    return TimeStats(
        avg_time_remaining=_mean(_remaining(clocked)),
        timeout_loss_rate=_timeout_share(games),
        avg_move_time=_mean(_move_time(clocked)),
        games_with_clock_data=len(clocked),
        by_time_class=by_class,
    )


def analyze_time_pressure(
    games: Sequence[Game], threshold: float = TIME_TROUBLE_SECONDS
) -> TimePressureStats:
    """
    Parameters
    ----------
    games : Sequence[Game]
    threshold : float
        A game finished with less than this many seconds left counts as
        "in time trouble".
    """
    clocked = [g for g in games if g.clock and g.clock.time_remaining is not None]
    if not clocked:
        return TimePressureStats()

    trouble = [g for g in clocked if g.clock.time_remaining < threshold]
    return TimePressureStats(
        games_in_time_trouble=len(trouble),
        win_rate_in_time_trouble=pct(sum(1 for g in trouble if g.is_win), len(trouble)),
        losses_to_timeout=sum(1 for g in games if g.is_loss and g.termination == "timeout"),
        avg_time_when_losing=_mean(_remaining([g for g in clocked if g.is_loss])),
        avg_time_when_winning=_mean(_remaining([g for g in clocked if g.is_win])),
    )


def analyze_time_usage_by_phase(games: Sequence[Game]) -> TimeUsageByPhase:
    """Average seconds per move for moves 1-15, 16-40 and 41 onwards."""
    buckets: Dict[str, List[float]] = {phase: [] for phase in PHASES}
    for game in games:
        if not game.clock or not game.clock.move_times:
            continue
        for idx, seconds in enumerate(game.clock.move_times):
            buckets[classify_game_phase(idx + 1)].append(seconds)

    opening, middlegame, endgame = (_mean(buckets[phase]) for phase in PHASES)
    return TimeUsageByPhase(
        opening_avg_time=opening,
        middlegame_avg_time=middlegame,
        endgame_avg_time=endgame,
    )
