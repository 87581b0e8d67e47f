# ==============================================================================
# stats.py  –  Headline numbers and simple series
# ==============================================================================

from __future__ import annotations

import math
from datetime import date, datetime, tzinfo
from typing import Dict, Iterable, List, Optional, Sequence

from knightstats.analytics.common import (
    EXCLUDED_ECO_CODES,
    Tally,
    format_date,
    local,
    pct,
    tally,
)
from knightstats.models.game import TIME_CLASSES, Game
from knightstats.models.records import (
    ColorPerformance,
    OpeningStats,
    RatingPoint,
    TimeControlShare,
    UserStats,
    WinRatePoint,
)


def _oldest_first(games: Iterable[Game]) -> List[Game]:
    return sorted(games, key=lambda g: g.played_at)


def calculate_stats(games: Sequence[Game]) -> UserStats:
    counts = tally(games)
    return UserStats(
        total_games=counts.total,
        wins=counts.wins,
        losses=counts.losses,
        draws=counts.draws,
        win_rate=counts.win_rate,
    )


def week_key(moment: datetime, tz: Optional[tzinfo] = None) -> str:
    """
    ``YYYY-Www`` bucket for ``moment``.

    Weeks start on Sunday and week 1 is the (possibly partial) week holding
    January 1st.
    """
    day = local(moment, tz)
    jan_first = date(day.year, 1, 1)
    days = (day.date() - jan_first).days
    jan_first_dow = (jan_first.weekday() + 1) % 7
    week = math.ceil((days + jan_first_dow + 1) / 7)
    return f"{day.year}-W{week:02d}"


def calculate_win_rate_over_time(
    games: Sequence[Game], tz: Optional[tzinfo] = None
) -> List[WinRatePoint]:
    """Weekly win rate, oldest week first."""
    weeks: Dict[str, Tally] = {}
    for game in _oldest_first(games):
        weeks.setdefault(week_key(game.played_at, tz), Tally()).add(game)

    return [
        WinRatePoint(
            week=week,
            win_rate=counts.win_rate,
            games=counts.total,
            wins=counts.wins,
            losses=counts.losses,
            draws=counts.draws,
        )
        for week, counts in weeks.items()
    ]


def calculate_opening_stats(games: Sequence[Game], limit: int = 10) -> List[OpeningStats]:
    """Most-played known openings (generic codes excluded)."""
    names: Dict[str, str] = {}
    counts: Dict[str, Tally] = {}
    for game in games:
        if not game.opening.is_known:
            continue
        eco = game.opening.eco
        names.setdefault(eco, game.opening.name)
        counts.setdefault(eco, Tally()).add(game)

    rows = [
        OpeningStats(
            eco=eco,
            name=names[eco],
            wins=c.wins,
            losses=c.losses,
            draws=c.draws,
            total=c.total,
        )
        for eco, c in counts.items()
        if eco not in EXCLUDED_ECO_CODES
    ]
    rows.sort(key=lambda r: r.total, reverse=True)
    return rows[:limit]


def calculate_rating_progression(
    games: Sequence[Game],
    exclude_provisional: bool = False,
    tz: Optional[tzinfo] = None,
) -> List[RatingPoint]:
    """
    Player rating per game, oldest first.

    With ``exclude_provisional`` the first game of every (source, time class)
    pair is dropped (provisional rating).
    """
    ordered = _oldest_first(games)
    if exclude_provisional:
        seen = set()
        kept = []
        for game in ordered:
            key = (game.source, game.time_class)
            if key not in seen:
                seen.add(key)
                continue
            kept.append(game)
        ordered = kept

    return [
        RatingPoint(
            date=format_date(g.played_at, tz),
            rating=g.player_rating,
            source=g.source,
            time_class=g.time_class,
        )
        for g in ordered
    ]


def calculate_time_control_distribution(games: Sequence[Game]) -> List[TimeControlShare]:
    counts = {tc: 0 for tc in TIME_CLASSES}
    for game in games:
        if game.time_class in counts:
            counts[game.time_class] += 1
    return [
        TimeControlShare(time_class=tc, count=n, percentage=pct(n, len(games)))
        for tc, n in counts.items()
        if n > 0
    ]


def calculate_color_performance(games: Sequence[Game]) -> List[ColorPerformance]:
    rows = []
    for color in ("white", "black"):
        counts = tally(g for g in games if g.player_color == color)
        rows.append(
            ColorPerformance(
                color=color,
                games=counts.total,
                wins=counts.wins,
                win_rate=counts.win_rate,
            )
        )
    return rows


def calculate_average_game_length(games: Sequence[Game]) -> float:
    lengths = [g.move_count for g in games if g.move_count > 0]
    return sum(lengths) / len(lengths) if lengths else 0.0


def get_unique_opponents(games: Sequence[Game]) -> List[str]:
    return sorted({g.opponent.username for g in games})


def get_unique_openings(games: Sequence[Game]) -> List[Dict[str, str]]:
    """First-seen name per known ECO code, sorted by code."""
    names: Dict[str, str] = {}
    for game in games:
        if game.opening.is_known:
            names.setdefault(game.opening.eco, game.opening.name)
    return [{"eco": eco, "name": names[eco]} for eco in sorted(names)]


def merge_and_sort_games(*batches: Iterable[Game]) -> List[Game]:
    """Flatten several game lists into one, newest first."""
    merged = [game for batch in batches for game in batch]
    merged.sort(key=lambda g: g.played_at, reverse=True)
    return merged

