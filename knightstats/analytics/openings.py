# ==============================================================================
# openings.py  –  Opening repertoire by colour
# ==============================================================================

from __future__ import annotations

from typing import Dict, List, Sequence

from knightstats.analytics.common import EXCLUDED_ECO_CODES, Tally, round_half_up
from knightstats.models.game import Game
from knightstats.models.records import OpeningByColorStats

DEFAULT_MIN_GAMES = 3
DEFAULT_LIMIT = 5


def calculate_openings_by_color(
    games: Sequence[Game], color: str
) -> List[OpeningByColorStats]:
    """Known openings played with ``color``, most played first."""
    names: Dict[str, str] = {}
    counts: Dict[str, Tally] = {}
    opponent_rating: Dict[str, int] = {}

    for game in games:
        if game.player_color != color or not game.opening.is_known:
            continue
        eco = game.opening.eco
        names.setdefault(eco, game.opening.name)
        counts.setdefault(eco, Tally()).add(game)
        opponent_rating[eco] = opponent_rating.get(eco, 0) + game.opponent.rating

    rows = [
        OpeningByColorStats(
            eco=eco,
            name=names[eco],
            color=color,
            games=c.total,
            wins=c.wins,
            losses=c.losses,
            draws=c.draws,
            win_rate=c.win_rate,
            avg_opponent_rating=round_half_up(opponent_rating[eco] / c.total),
        )
        for eco, c in counts.items()
        if eco not in EXCLUDED_ECO_CODES
    ]
    rows.sort(key=lambda r: r.games, reverse=True)
    return rows


def _ranked(
    games: Sequence[Game], color: str, min_games: int, best: bool
) -> List[OpeningByColorStats]:
    eligible = [
        o
        for o in calculate_openings_by_color(games, color)
        if o.games >= min_games and o.eco not in EXCLUDED_ECO_CODES
    ]
    eligible.sort(key=lambda o: o.win_rate, reverse=best)
    return eligible


def find_best_openings(
    games: Sequence[Game],
    color: str,
    min_games: int = DEFAULT_MIN_GAMES,
    limit: int = DEFAULT_LIMIT,
) -> List[OpeningByColorStats]:
    return _ranked(games, color, min_games, best=True)[:limit]


def find_worst_openings(
    games: Sequence[Game],
    color: str,
    min_games: int = DEFAULT_MIN_GAMES,
    limit: int = DEFAULT_LIMIT,
) -> List[OpeningByColorStats]:
    return _ranked(games, color, min_games, best=False)[:limit]
