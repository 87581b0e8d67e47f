# ==============================================================================
# opponents.py  –  Head-to-head records and rating brackets
#
# Opponent names are case-folded for grouping, so "Magnus" and "magnus"
# count as one opponent.
# ==============================================================================

from __future__ import annotations

import math
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from knightstats.analytics.common import Tally, round_half_up
from knightstats.models.game import Game
from knightstats.models.records import BracketSpec, OpponentStats, RatingBracketStats

DEFAULT_MIN_GAMES = 2
MIN_BRACKET = 100
MAX_BRACKET = 400
EMPTY_BRACKET_SIZE = 200


def calculate_opponent_stats(games: Sequence[Game]) -> List[OpponentStats]:
    counts: Dict[str, Tally] = {}
    rating_sum: Dict[str, int] = {}
    last_played: Dict[str, datetime] = {}

    for game in games:
        name = game.opponent.username.lower()
        counts.setdefault(name, Tally()).add(game)
        rating_sum[name] = rating_sum.get(name, 0) + game.opponent.rating
        if name not in last_played or game.played_at > last_played[name]:
            last_played[name] = game.played_at

    rows = [
        OpponentStats(
            username=name,
            games=c.total,
            wins=c.wins,
            losses=c.losses,
            draws=c.draws,
            win_rate=c.win_rate,
            avg_rating=round_half_up(rating_sum[name] / c.total),
            last_played=last_played[name],
        )
        for name, c in counts.items()
    ]
    rows.sort(key=lambda r: r.games, reverse=True)
    return rows


def find_nemesis(
    games: Sequence[Game], min_games: int = DEFAULT_MIN_GAMES
) -> Optional[OpponentStats]:
    """Opponent with the most losses among those you trail against."""
    candidates = [
        o
        for o in calculate_opponent_stats(games)
        if o.games >= min_games and o.losses > o.wins
    ]
    candidates.sort(key=lambda o: (-o.losses, o.win_rate))
    return candidates[0] if candidates else None


def find_favorite_opponent(
    games: Sequence[Game], min_games: int = DEFAULT_MIN_GAMES
) -> Optional[OpponentStats]:
    """Opponent with the most wins among those you lead against."""
    candidates = [
        o
        for o in calculate_opponent_stats(games)
        if o.games >= min_games and o.wins > o.losses
    ]
    candidates.sort(key=lambda o: (-o.wins, -o.win_rate))
    return candidates[0] if candidates else None


def calculate_dynamic_brackets(games: Sequence[Game]) -> BracketSpec:
    """
    Bracket width aiming at roughly five buckets over the opponent ratings.

    width = clamp(ceil(range / 5 / 100) * 100, 100, 400); the first bucket
    starts at the lowest rating rounded down to a multiple of the width.
    """
    if not games:
        return BracketSpec(min=0, max=0, size=EMPTY_BRACKET_SIZE)

    ratings = [g.opponent.rating for g in games]
    low, high = min(ratings), max(ratings)
    size = math.ceil((high - low) / 5 / 100) * 100
    size = min(MAX_BRACKET, max(MIN_BRACKET, size))
    return BracketSpec(min=(low // size) * size, max=high, size=size)


def calculate_rating_brackets(games: Sequence[Game]) -> List[RatingBracketStats]:
    if not games:
        return []

    size = calculate_dynamic_brackets(games).size
    buckets: Dict[int, Tally] = {}
    for game in games:
        floor = (game.opponent.rating // size) * size
        buckets.setdefault(floor, Tally()).add(game)

    return [
        RatingBracketStats(
            bracket=f"{floor}-{floor + size - 1}",
            min_rating=floor,
            max_rating=floor + size - 1,
            games=c.total,
            wins=c.wins,
            losses=c.losses,
            draws=c.draws,
            win_rate=c.win_rate,
        )
        for floor, c in sorted(buckets.items())
    ]
