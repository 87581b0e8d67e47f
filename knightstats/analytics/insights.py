# ==============================================================================
# insights.py  –  Short headline cards summarising a game history
#
# Each card is an `Insight(id, type, title, description, value)` where type is
# one of positive / negative / neutral / warning. Presentation (icons, colours)
# is left to the caller.
# ==============================================================================

from __future__ import annotations

from datetime import tzinfo
from typing import List, Optional, Sequence

from knightstats.analytics.common import format_date_short, pct, round_half_up
from knightstats.analytics.openings import find_best_openings, find_worst_openings
from knightstats.analytics.opponents import calculate_opponent_stats
from knightstats.analytics.phases import calculate_phase_performance, phase_label
from knightstats.analytics.resilience import calculate_resilience_stats
from knightstats.analytics.stats import (
    calculate_average_game_length,
    calculate_color_performance,
    calculate_opening_stats,
)
from knightstats.analytics.streaks import (
    calculate_current_streak,
    find_longest_loss_streak,
    find_longest_win_streak,
)
from knightstats.analytics.terminations import calculate_termination_stats
from knightstats.analytics.time_of_day import (
    find_peak_performance_times,
    find_worst_performance_times,
)
from knightstats.models.game import Game
from knightstats.models.records import Insight, OpeningByColorStats

MIN_ANALYZED_FOR_RESILIENCE = 5
TIME_TROUBLE_SECONDS = 30


def _whole(value: float) -> int:
    return round_half_up(value)


def _opening_card(
    card_id: str, kind: str, title: str, opening: OpeningByColorStats
) -> Insight:
    return Insight(
        id=card_id,
        type=kind,
        title=title,
        description=f"{opening.name} ({opening.eco})",
        value=f"{_whole(opening.win_rate)}% win rate ({opening.games} games)",
    )


# ------------------------------------------------------------------------------
# Card groups
# ------------------------------------------------------------------------------


def _opening_insights(games: Sequence[Game]) -> List[Insight]:
    cards = []
    picks = (
        ("worst-opening-black", "negative", "Worst Opening as Black", find_worst_openings, "black"),
        ("best-opening-white", "positive", "Best Opening as White", find_best_openings, "white"),
        ("worst-opening-white", "negative", "Worst Opening as White", find_worst_openings, "white"),
        ("best-opening-black", "positive", "Best Opening as Black", find_best_openings, "black"),
    )
    for card_id, kind, title, finder, color in picks:
        found = finder(games, color, 3, 1)
        if found:
            cards.append(_opening_card(card_id, kind, title, found[0]))
    return cards


def _streak_insights(games: Sequence[Game], tz: Optional[tzinfo]) -> List[Insight]:
    cards = []

    current = calculate_current_streak(games)
    if current:
        winning = current.type == "win"
        cards.append(
            Insight(
                id="current-streak",
                type="positive" if winning else "negative",
                title="Current Streak",
                description=f"{current.count} {current.type}s in a row",
                value="Keep it going!" if winning else "Time to bounce back!",
            )
        )

    for streak, card_id, kind, title, noun in (
        (find_longest_win_streak(games), "longest-win-streak", "positive", "Best Win Streak", "wins"),
        (find_longest_loss_streak(games), "longest-loss-streak", "warning", "Worst Loss Streak", "losses"),
    ):
        if streak:
            cards.append(
                Insight(
                    id=card_id,
                    type=kind,
                    title=title,
                    description=f"{streak.count} consecutive {noun}",
                    value=(
                        f"{format_date_short(streak.start_date, tz)} - "
                        f"{format_date_short(streak.end_date, tz)}"
                    ),
                )
            )
    return cards


def _termination_insights(games: Sequence[Game]) -> List[Insight]:
    cards = []
    stats = calculate_termination_stats(games)

    wins = sum(1 for g in games if g.is_win)
    by_wins = sorted((t for t in stats if t.as_winner > 0), key=lambda t: t.as_winner, reverse=True)
    if by_wins:
        top = by_wins[0]
        cards.append(
            Insight(
                id="win-method",
                type="neutral",
                title="How You Win",
                description=f"{top.label} ({_whole(pct(top.as_winner, wins))}%)",
                value=f"{top.as_winner} of {wins} wins",
            )
        )

    losses = sum(1 for g in games if g.is_loss)
    by_losses = sorted((t for t in stats if t.as_loser > 0), key=lambda t: t.as_loser, reverse=True)
    if by_losses:
        top = by_losses[0]
        cards.append(
            Insight(
                id="loss-method",
                type="neutral",
                title="How You Lose",
                description=f"{top.label} ({_whole(pct(top.as_loser, losses))}%)",
                value=f"{top.as_loser} of {losses} losses",
            )
        )
    return cards


def _color_insight(games: Sequence[Game]) -> Optional[Insight]:
    white, black = calculate_color_performance(games)
    if not white.games or not black.games:
        return None
    diff = white.win_rate - black.win_rate
    if abs(diff) < 5:
        return None
    return Insight(
        id="color-performance",
        type="positive" if diff > 0 else "negative",
        title="Color Preference",
        description=f"You perform {_whole(abs(diff))}% {'better' if diff > 0 else 'worse'} as White",
        value=f"White: {_whole(white.win_rate)}% | Black: {_whole(black.win_rate)}%",
    )


def _rating_gap_insights(games: Sequence[Game]) -> List[Insight]:
    cards = []

    higher = [g for g in games if g.opponent.rating > g.player_rating]
    if len(higher) >= 5:
        wins = sum(1 for g in higher if g.is_win)
        rate = pct(wins, len(higher))
        cards.append(
            Insight(
                id="vs-higher-rated",
                type="positive" if rate >= 40 else "neutral",
                title="vs Higher Rated",
                description=f"{_whole(rate)}% win rate against stronger opponents",
                value=f"{wins} wins in {len(higher)} games",
            )
        )

    lower = [g for g in games if g.opponent.rating < g.player_rating]
    if len(lower) >= 5:
        wins = sum(1 for g in lower if g.is_win)
        rate = pct(wins, len(lower))
        cards.append(
            Insight(
                id="vs-lower-rated",
                type="warning" if rate < 60 else "positive",
                title="vs Lower Rated",
                description=f"{_whole(rate)}% win rate against weaker opponents",
                value=f"{wins} wins in {len(lower)} games",
            )
        )
    return cards


def _clock_insights(games: Sequence[Game]) -> List[Insight]:
    cards = []

    losses = [g for g in games if g.is_loss]
    if len(losses) >= 5:
        rate = pct(sum(1 for g in losses if g.termination == "timeout"), len(losses))
        if rate > 20:
            cards.append(
                Insight(
                    id="timeout-losses",
                    type="warning",
                    title="Timeout Trouble",
                    description=f"{_whole(rate)}% of your losses are timeouts",
                    value="Consider playing with increment or slower time controls",
                )
            )

    clocked = [g for g in games if g.clock and g.clock.time_remaining is not None]
    if len(clocked) < 10:
        return cards
    trouble = [g for g in clocked if g.clock.time_remaining < TIME_TROUBLE_SECONDS]
    if len(trouble) < 5:
        return cards

    rate = pct(sum(1 for g in trouble if g.is_win), len(trouble))
    if rate < 30:
        cards.append(
            Insight(
                id="time-pressure",
                type="negative",
                title="Struggles Under Time Pressure",
                description=f"Only {_whole(rate)}% win rate when low on time",
                value="Practice faster decision-making or manage time better",
            )
        )
    elif rate > 60:
        cards.append(
            Insight(
                id="time-pressure-clutch",
                type="positive",
                title="Clutch Under Pressure",
                description=f"{_whole(rate)}% win rate when low on time",
                value="You handle time pressure well!",
            )
        )
    return cards


def _time_window_insights(games: Sequence[Game], tz: Optional[tzinfo]) -> List[Insight]:
    cards = []
    overall = pct(sum(1 for g in games if g.is_win), len(games))

    peak = find_peak_performance_times(games, 10, tz)
    if peak and peak.win_rate > overall + 10:
        cards.append(
            Insight(
                id="peak-time",
                type="positive",
                title="Peak Performance Window",
                description=peak.label,
                value=f"{_whole(peak.win_rate)}% win rate ({peak.games} games)",
            )
        )

    worst = find_worst_performance_times(games, 10, tz)
    if worst and worst.win_rate < overall - 10:
        cards.append(
            Insight(
                id="avoid-time",
                type="warning",
                title="Consider Avoiding",
                description=worst.label,
                value=f"Only {_whole(worst.win_rate)}% win rate - you may be tired",
            )
        )
    return cards


def _phase_insight(games: Sequence[Game]) -> Optional[Insight]:
    summary = calculate_phase_performance(games)
    if summary.games_analyzed < 5:
        return None
    phase = summary.weakest_phase
    stats = summary.phase(phase)
    if stats.blunders + stats.mistakes + stats.inaccuracies < 5:
        return None
    return Insight(
        id="weak-phase",
        type="warning",
        title=f"{phase_label(phase)} Weakness",
        description=f"You make the most errors in the {phase}",
        value=f"{stats.blunders} blunders, {stats.mistakes} mistakes",
    )


# ------------------------------------------------------------------------------
# Public API
# ------------------------------------------------------------------------------


def generate_resilience_insights(games: Sequence[Game]) -> List[Insight]:
    """Mental-game cards; empty until at least five games carry analysis."""
    if sum(1 for g in games if g.analysis is not None) < MIN_ANALYZED_FOR_RESILIENCE:
        return []

    stats = calculate_resilience_stats(games)
    score = stats.mental_score
    if score >= 60:
        kind, verdict = "positive", "Strong mental game!"
    elif score >= 40:
        kind, verdict = "neutral", "Room for improvement"
    else:
        kind, verdict = "negative", "Work on staying composed"

    cards = [
        Insight(
            id="mental-score",
            type=kind,
            title="Mental Game Score",
            description=f"Your resilience score is {score}/100",
            value=verdict,
        )
    ]

    if stats.comeback_wins >= 3:
        cards.append(
            Insight(
                id="comeback-ability",
                type="positive" if stats.comeback_rate >= 30 else "neutral",
                title="Comeback Ability",
                description=f"{stats.comeback_wins} wins from losing positions",
                value=f"{_whole(stats.comeback_rate)}% comeback rate",
            )
        )

    if stats.blown_wins >= 3 and stats.blow_rate >= 20:
        cards.append(
            Insight(
                id="blown-wins",
                type="warning",
                title="Advantage Conversion",
                description=f"{stats.blown_wins} games lost from winning positions",
                value="Focus on converting advantages carefully",
            )
        )

    volatility = pct(stats.volatile_games, len(games))
    if volatility >= 40:
        cards.append(
            Insight(
                id="volatile-games",
                type="warning",
                title="Volatile Play Style",
                description=f"{_whole(volatility)}% of games have major swings",
                value="Your games tend to be back-and-forth battles",
            )
        )
    return cards


def generate_insights(games: Sequence[Game], tz: Optional[tzinfo] = None) -> List[Insight]:
    """All headline cards for ``games`` in a fixed order; empty input → []."""
    if not games:
        return []

    cards: List[Insight] = []
    cards += _opening_insights(games)
    cards += _streak_insights(games, tz)
    cards += _termination_insights(games)

    color = _color_insight(games)
    if color:
        cards.append(color)

    avg_length = calculate_average_game_length(games)
    if avg_length > 0:
        counted = sum(1 for g in games if g.move_count > 0)
        cards.append(
            Insight(
                id="avg-game-length",
                type="neutral",
                title="Average Game Length",
                description=f"{_whole(avg_length)} moves per game",
                value=f"Based on {counted} games",
            )
        )

    cards.append(
        Insight(
            id="unique-opponents",
            type="neutral",
            title="Unique Opponents",
            description=f"You've faced {len(calculate_opponent_stats(games))} different players",
            value=f"{len(games)} total games",
        )
    )

    cards += _rating_gap_insights(games)

    openings = calculate_opening_stats(games)
    if openings:
        top = openings[0]
        cards.append(
            Insight(
                id="most-played-opening",
                type="neutral",
                title="Favorite Opening",
                description=f"{top.name} ({top.eco})",
                value=f"{top.total} games ({_whole(pct(top.total, len(games)))}% of all games)",
            )
        )

    cards += _clock_insights(games)
    cards += _time_window_insights(games, tz)

    phase = _phase_insight(games)
    if phase:
        cards.append(phase)

    cards += generate_resilience_insights(games)
    return cards
