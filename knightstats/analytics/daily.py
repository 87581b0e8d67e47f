# ==============================================================================
# daily.py  –  Per-day performance and tilt detection
#
# Days are calendar days in the reporting timezone (see `common.DEFAULT_TZ`).
# ==============================================================================

from __future__ import annotations

from datetime import datetime, tzinfo
from typing import Dict, List, Optional, Sequence

from knightstats.analytics.common import Tally, format_date, local
from knightstats.models.game import Game
from knightstats.models.records import DateStats

TILT_THRESHOLD = 3


def date_key(moment: datetime, tz: Optional[tzinfo] = None) -> str:
    return local(moment, tz).strftime("%Y-%m-%d")


def detect_tilt(games: Sequence[Game], threshold: int = TILT_THRESHOLD) -> bool:
    """True when ``threshold`` losses happen back to back, in the order played."""
    if len(games) < threshold:
        return False

    run = 0
    for game in sorted(games, key=lambda g: g.played_at):
        run = run + 1 if game.is_loss else 0
        if run >= threshold:
            return True
    return False


def calculate_date_stats(
    games: Sequence[Game], tz: Optional[tzinfo] = None
) -> List[DateStats]:
    """One row per day played, most recent day first."""
    days: Dict[str, List[Game]] = {}
    for game in games:
        days.setdefault(date_key(game.played_at, tz), []).append(game)

    rows = []
    for key, day_games in days.items():
        counts = Tally()
        rating_change = 0
        for game in day_games:
            counts.add(game)
            if game.rating_change is not None:
                rating_change += game.rating_change
        rows.append(
            DateStats(
                date=key,
                display_date=format_date(day_games[0].played_at, tz),
                games=counts.total,
                wins=counts.wins,
                losses=counts.losses,
                draws=counts.draws,
                win_rate=counts.win_rate,
                rating_change=rating_change,
                has_tilt=detect_tilt(day_games),
            )
        )

    rows.sort(key=lambda r: r.date, reverse=True)
    return rows


def get_games_for_date(
    games: Sequence[Game], key: str, tz: Optional[tzinfo] = None
) -> List[Game]:
    """Games played on ``key`` (``YYYY-MM-DD``), newest first."""
    picked = [g for g in games if date_key(g.played_at, tz) == key]
    picked.sort(key=lambda g: g.played_at, reverse=True)
    return picked
