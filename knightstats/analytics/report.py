# ==============================================================================
# report.py  –  One JSON-ready bundle of every analytics table
# ==============================================================================

from __future__ import annotations

from datetime import tzinfo
from typing import Any, Dict, List, Optional, Sequence

from knightstats.analytics import (
    daily,
    insights,
    openings,
    opponents,
    phases,
    recommendations,
    resilience,
    stats,
    streaks,
    terminations,
    time_management,
    time_of_day,
)
from knightstats.models.game import Game


def _dicts(rows: Sequence[Any]) -> List[Dict[str, Any]]:
    return [row.to_dict() for row in rows]


def _maybe(row: Any) -> Optional[Dict[str, Any]]:
    return row.to_dict() if row is not None else None


def build_report(games: Sequence[Game], tz: Optional[tzinfo] = None) -> Dict[str, Any]:
    """Run the full analytics suite over ``games`` and return plain dicts."""
    return {
        "summary": stats.calculate_stats(games).to_dict(),
        "win_rate_over_time": _dicts(stats.calculate_win_rate_over_time(games, tz)),
        "openings": _dicts(stats.calculate_opening_stats(games)),
        "openings_by_color": {
            color: _dicts(openings.calculate_openings_by_color(games, color))
            for color in ("white", "black")
        },
        "rating_progression": _dicts(
            stats.calculate_rating_progression(games, exclude_provisional=True, tz=tz)
        ),
        "time_controls": _dicts(stats.calculate_time_control_distribution(games)),
        "colors": _dicts(stats.calculate_color_performance(games)),
        "average_game_length": stats.calculate_average_game_length(games),
        "opponents": {
            "top": _dicts(opponents.calculate_opponent_stats(games)[:10]),
            "nemesis": _maybe(opponents.find_nemesis(games)),
            "favorite": _maybe(opponents.find_favorite_opponent(games)),
            "brackets": _dicts(opponents.calculate_rating_brackets(games)),
        },
        "streaks": {
            "current": _maybe(streaks.calculate_current_streak(games)),
            "longest_win": _maybe(streaks.find_longest_win_streak(games)),
            "longest_loss": _maybe(streaks.find_longest_loss_streak(games)),
        },
        "terminations": _dicts(terminations.calculate_termination_stats(games)),
        "days": _dicts(daily.calculate_date_stats(games, tz)),
        "time_of_day": {
            "hourly": _dicts(time_of_day.calculate_hourly_stats(games, tz)),
            "weekdays": _dicts(time_of_day.calculate_day_of_week_stats(games, tz)),
            "heatmap": _dicts(time_of_day.calculate_time_heatmap(games, tz)),
            "peak": _maybe(time_of_day.find_peak_performance_times(games, tz=tz)),
            "worst": _maybe(time_of_day.find_worst_performance_times(games, tz=tz)),
        },
        "time_management": {
            "overall": time_management.calculate_time_stats(games).to_dict(),
            "pressure": time_management.analyze_time_pressure(games).to_dict(),
            "by_phase": time_management.analyze_time_usage_by_phase(games).to_dict(),
        },
        "phases": phases.calculate_phase_performance(games).to_dict(),
        "resilience": resilience.calculate_resilience_stats(games).to_dict(),
        "recommendations": _dicts(recommendations.generate_recommendations(games)),
        "insights": _dicts(insights.generate_insights(games, tz)),
    }
