# ==============================================================================
# time_of_day.py  –  Hour, weekday and heatmap performance
#
# Hours and weekdays are taken in the reporting timezone. Weekday 0 is Sunday.
# ==============================================================================

from __future__ import annotations

from datetime import tzinfo
from typing import Dict, List, Optional, Sequence, Tuple

from knightstats.analytics.common import DAY_NAMES, Tally, local, pct, sunday_weekday
from knightstats.models.game import Game
from knightstats.models.records import DayOfWeekStats, HeatmapCell, HourlyStats, TimeWindow

WINDOW_HOURS = 3
DEFAULT_MIN_GAMES = 10


def calculate_hourly_stats(
    games: Sequence[Game], tz: Optional[tzinfo] = None
) -> List[HourlyStats]:
    """Exactly 24 rows, hour 0 first, including hours with no games."""
    hours = [Tally() for _ in range(24)]
    rating_change = [0] * 24
    for game in games:
        hour = local(game.played_at, tz).hour
        hours[hour].add(game)
        if game.rating_change is not None:
            rating_change[hour] += game.rating_change

    return [
        HourlyStats(
            hour=hour,
            games=c.total,
            wins=c.wins,
            losses=c.losses,
            draws=c.draws,
            win_rate=c.win_rate,
            avg_rating_change=rating_change[hour] / c.total if c.total else 0.0,
        )
        for hour, c in enumerate(hours)
    ]


def calculate_day_of_week_stats(
    games: Sequence[Game], tz: Optional[tzinfo] = None
) -> List[DayOfWeekStats]:
    days = [Tally() for _ in range(7)]
    for game in games:
        days[sunday_weekday(local(game.played_at, tz))].add(game)

    return [
        DayOfWeekStats(
            day=day,
            day_name=DAY_NAMES[day],
            games=c.total,
            wins=c.wins,
            losses=c.losses,
            draws=c.draws,
            win_rate=c.win_rate,
        )
        for day, c in enumerate(days)
    ]


def calculate_time_heatmap(
    games: Sequence[Game], tz: Optional[tzinfo] = None
) -> List[HeatmapCell]:
    """168 cells ordered by (day, hour)."""
    cells: Dict[Tuple[int, int], Tally] = {
        (day, hour): Tally() for day in range(7) for hour in range(24)
    }
    for game in games:
        moment = local(game.played_at, tz)
        cells[(sunday_weekday(moment), moment.hour)].add(game)

    return [
        HeatmapCell(day=day, hour=hour, games=c.total, win_rate=c.win_rate)
        for (day, hour), c in cells.items()
    ]


def format_hour_range(start_hour: int, end_hour: int) -> str:
    """``format_hour_range(14, 17) -> '2pm-5pm'``"""

    def twelve(hour: int) -> str:
        return f"{hour % 12 or 12}{'pm' if hour >= 12 else 'am'}"

    return f"{twelve(start_hour)}-{twelve(end_hour)}"


def _windows(games: Sequence[Game], min_games: int, tz: Optional[tzinfo]):
    """Yield (start_hour, wins, games) for every qualifying 3-hour window."""
    hourly = calculate_hourly_stats(games, tz)
    for start in range(24):
        span = [hourly[(start + offset) % 24] for offset in range(WINDOW_HOURS)]
        total = sum(h.games for h in span)
        if total >= min_games:
            yield start, sum(h.wins for h in span), total


def _window(start: int, wins: int, total: int) -> TimeWindow:
    end = (start + WINDOW_HOURS) % 24
    return TimeWindow(
        start_hour=start,
        end_hour=end,
        win_rate=pct(wins, total),
        games=total,
        label=format_hour_range(start, end),
    )


def find_peak_performance_times(
    games: Sequence[Game],
    min_games: int = DEFAULT_MIN_GAMES,
    tz: Optional[tzinfo] = None,
) -> Optional[TimeWindow]:
    """
    Best 3-hour window (wrapping past midnight) with at least ``min_games``.

    Only a strictly better win rate replaces the current pick, so the earliest
    start hour wins ties. A window has to beat 0% to be reported at all.
    """
    best: Optional[TimeWindow] = None
    best_rate = 0.0
    for start, wins, total in _windows(games, min_games, tz):
        rate = pct(wins, total)
        if rate > best_rate:
            best_rate = rate
            best = _window(start, wins, total)
    return best


def find_worst_performance_times(
    games: Sequence[Game],
    min_games: int = DEFAULT_MIN_GAMES,
    tz: Optional[tzinfo] = None,
) -> Optional[TimeWindow]:
    """Mirror of `find_peak_performance_times`; must be strictly below 100%."""
    worst: Optional[TimeWindow] = None
    worst_rate = 100.0
    for start, wins, total in _windows(games, min_games, tz):
        rate = pct(wins, total)
        if rate < worst_rate:
            worst_rate = rate
            worst = _window(start, wins, total)
    return worst
