# ==============================================================================
# terminations.py  –  How games end, split by whether the player won or lost
# ==============================================================================

from __future__ import annotations

from typing import Dict, List, Sequence

from knightstats.models.game import Game, format_termination
from knightstats.models.records import TerminationStats


def termination_label(termination: str) -> str:
    return format_termination(termination)


def calculate_termination_stats(games: Sequence[Game]) -> List[TerminationStats]:
    """Draws are not counted on either side; a draws-only kind has total 0."""
    as_winner: Dict[str, int] = {}
    as_loser: Dict[str, int] = {}

    for game in games:
        kind = game.termination
        as_winner.setdefault(kind, 0)
        as_loser.setdefault(kind, 0)
        if game.is_win:
            as_winner[kind] += 1
        elif game.is_loss:
            as_loser[kind] += 1

    rows = [
        TerminationStats(
            termination=kind,
            label=termination_label(kind),
            as_winner=as_winner[kind],
            as_loser=as_loser[kind],
            total=as_winner[kind] + as_loser[kind],
        )
        for kind in as_winner
    ]
    rows.sort(key=lambda r: r.total, reverse=True)
    return rows
