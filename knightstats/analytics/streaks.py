# ==============================================================================
# streaks.py  –  Current and longest win / loss runs
#
# Draws never end a run. For the current streak, leading draws (the most
# recent games) are skipped before counting starts; for the longest streak,
# draws inside a run are simply passed over. Runs shorter than 2 are not
# reported.
# ==============================================================================

from __future__ import annotations

from typing import List, Optional, Sequence

from knightstats.models.game import Game
from knightstats.models.records import StreakInfo

MIN_STREAK = 2


def calculate_current_streak(games: Sequence[Game]) -> Optional[StreakInfo]:
    newest_first = sorted(games, key=lambda g: g.played_at, reverse=True)

    start = 0
    while start < len(newest_first) and newest_first[start].is_draw:
        start += 1
    if start >= len(newest_first):
        return None

    kind = newest_first[start].result
    count = 0
    end = start
    for idx in range(start, len(newest_first)):
        result = newest_first[idx].result
        if result == kind:
            count += 1
            end = idx
        elif result != "draw":
            break

    if count < MIN_STREAK:
        return None
    return StreakInfo(
        type=kind,
        count=count,
        start_date=newest_first[end].played_at,
        end_date=newest_first[start].played_at,
    )


def _longest(games: Sequence[Game], kind: str) -> Optional[StreakInfo]:
    ordered: List[Game] = sorted(games, key=lambda g: g.played_at)

    best: Optional[StreakInfo] = None
    count = 0
    first = 0

    for idx, game in enumerate(ordered + [None]):
        if game is not None and game.result == kind:
            if count == 0:
                first = idx
            count += 1
        elif game is None or game.result != "draw":
            # a run closes on the game before the breaker, draws included
            if count > 0 and (best is None or count > best.count):
                best = StreakInfo(
                    type=kind,
                    count=count,
                    start_date=ordered[first].played_at,
                    end_date=ordered[idx - 1].played_at,
                )
            count = 0

    return best if best and best.count >= MIN_STREAK else None


def find_longest_win_streak(games: Sequence[Game]) -> Optional[StreakInfo]:
    return _longest(games, "win")


def find_longest_loss_streak(games: Sequence[Game]) -> Optional[StreakInfo]:
    return _longest(games, "loss")
