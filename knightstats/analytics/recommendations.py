# ==============================================================================
# recommendations.py  –  Prioritised study suggestions
# ==============================================================================

from __future__ import annotations

from typing import Callable, List, Optional, Sequence

from knightstats.analytics.common import pct, round_half_up
from knightstats.analytics.openings import find_worst_openings
from knightstats.analytics.phases import calculate_phase_performance, phase_label
from knightstats.analytics.resilience import calculate_resilience_stats
from knightstats.analytics.time_management import calculate_time_stats
from knightstats.models.game import Game
from knightstats.models.records import StudyRecommendation, TimeStats

MIN_GAMES = 10
MAX_RECOMMENDATIONS = 6
PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}

WEAK_OPENING_WIN_RATE = 40
TIMEOUT_LOSS_RATE = 25
TIME_CLASS_TIMEOUT_RATE = 30
TIME_CLASS_MIN_GAMES = 5
PHASE_MIN_GAMES = 5
PHASE_MIN_ERRORS = 5
BLOW_RATE = 30
BLOWN_WINS = 3
LOWER_RATED_GAP = 100
LOWER_RATED_MIN_GAMES = 10
LOWER_RATED_WIN_RATE = 60

_PHASE_STUDY = {
    "endgame": (
        "Study basic endgame patterns",
        "Practice king and pawn endgames",
        "Learn rook endgames",
    ),
    "opening": (
        "Deepen opening knowledge",
        "Study opening principles",
        "Learn typical pawn structures",
    ),
    "middlegame": (
        "Solve tactics puzzles",
        "Study middlegame strategy",
        "Practice calculation",
    ),
}

Rule = Callable[[Sequence[Game], TimeStats], Optional[StudyRecommendation]]


def _whole(value: float) -> int:
    return round_half_up(value)


# ------------------------------------------------------------------------------
# Rules (each returns one recommendation or None)
# ------------------------------------------------------------------------------


def _weak_openings(games: Sequence[Game], _: TimeStats) -> Optional[StudyRecommendation]:
    weak = [
        o
        for o in find_worst_openings(games, "white", 3, 3) + find_worst_openings(games, "black", 3, 3)
        if o.win_rate < WEAK_OPENING_WIN_RATE
    ]
    if not weak:
        return None
    weak.sort(key=lambda o: o.win_rate)
    return StudyRecommendation(
        id="weak-openings",
        type="opening_study",
        priority="high",
        title="Study Your Weak Openings",
        description="These openings have a significantly below-average win rate for you.",
        study_items=tuple(f"{o.name} ({o.eco})" for o in weak[:3]),
        evidence=f"Lowest win rate: {_whole(weak[0].win_rate)}% in {weak[0].games} games",
        estimated_impact="high",
    )


def _time_management(_: Sequence[Game], time_stats: TimeStats) -> Optional[StudyRecommendation]:
    if time_stats.timeout_loss_rate <= TIMEOUT_LOSS_RATE:
        return None
    return StudyRecommendation(
        id="time-management",
        type="time_management",
        priority="high",
        title="Improve Time Management",
        description="You lose too many games on time. Practice faster decision-making.",
        study_items=(
            "Practice with increment (e.g., 3+2)",
            "Pre-move in clear positions",
            "Study faster opening lines",
        ),
        evidence=f"{_whole(time_stats.timeout_loss_rate)}% of losses are timeouts",
        estimated_impact="medium",
    )


def _weak_time_control(_: Sequence[Game], time_stats: TimeStats) -> Optional[StudyRecommendation]:
    eligible = sorted(
        (tc for tc in time_stats.by_time_class if tc.games >= TIME_CLASS_MIN_GAMES),
        key=lambda tc: tc.timeout_rate,
    )
    if not eligible or eligible[-1].timeout_rate <= TIME_CLASS_TIMEOUT_RATE:
        return None
    worst = eligible[-1]
    name = worst.time_class
    return StudyRecommendation(
        id="time-control-weak",
        type="time_control",
        priority="medium",
        title=f"Struggles in {name[:1].upper()}{name[1:]}",
        description=f"You have a high timeout rate in {name} games.",
        study_items=(
            "Play slower time controls until comfortable",
            f"Practice {name} specifically",
            "Work on opening preparation",
        ),
        evidence=f"{_whole(worst.timeout_rate)}% timeout rate in {worst.games} {name} games",
        estimated_impact="medium",
    )


def _weak_phase(games: Sequence[Game], _: TimeStats) -> Optional[StudyRecommendation]:
    summary = calculate_phase_performance(games)
    if summary.games_analyzed < PHASE_MIN_GAMES:
        return None
    phase = summary.weakest_phase
    stats = summary.phase(phase)
    if stats.blunders + stats.mistakes < PHASE_MIN_ERRORS:
        return None
    return StudyRecommendation(
        id="weak-phase",
        type="endgame" if phase == "endgame" else "tactical_pattern",
        priority="high",
        title=f"Improve Your {phase_label(phase)}",
        description=f"You make the most mistakes in the {phase}.",
        study_items=_PHASE_STUDY[phase],
        evidence=f"{stats.blunders} blunders and {stats.mistakes} mistakes in {phase}",
        estimated_impact="high",
    )


def _mental_game(games: Sequence[Game], _: TimeStats) -> Optional[StudyRecommendation]:
    stats = calculate_resilience_stats(games)
    if stats.blow_rate <= BLOW_RATE or stats.blown_wins < BLOWN_WINS:
        return None
    return StudyRecommendation(
        id="mental-game",
        type="mental_game",
        priority="medium",
        title="Work on Converting Advantages",
        description="You tend to lose games from winning positions.",
        study_items=(
            "Practice technique positions",
            "Study prophylaxis",
            'Learn to "not rush" when winning',
        ),
        evidence=(
            f"{stats.blown_wins} games lost from winning positions "
            f"({_whole(stats.blow_rate)}% blow rate)"
        ),
        estimated_impact="medium",
    )


def _vs_lower_rated(games: Sequence[Game], _: TimeStats) -> Optional[StudyRecommendation]:
    lower = [g for g in games if g.opponent.rating < g.player_rating - LOWER_RATED_GAP]
    if len(lower) < LOWER_RATED_MIN_GAMES:
        return None
    wins = sum(1 for g in lower if g.is_win)
    win_rate = pct(wins, len(lower))
    if win_rate >= LOWER_RATED_WIN_RATE:
        return None
    return StudyRecommendation(
        id="vs-lower-rated",
        type="tactical_pattern",
        priority="medium",
        title="Beat Lower-Rated Players More Consistently",
        description=(
            f"Only {_whole(win_rate)}% win rate against players rated 100+ points below you."
        ),
        study_items=(
            "Avoid overconfidence",
            "Play solid, principle-based chess",
            "Take every opponent seriously",
        ),
        evidence=f"{wins} wins in {len(lower)} games vs lower-rated",
        estimated_impact="medium",
    )


RULES: List[Rule] = [
    _weak_openings,
    _time_management,
    _weak_time_control,
    _weak_phase,
    _mental_game,
    _vs_lower_rated,
]


def generate_recommendations(games: Sequence[Game]) -> List[StudyRecommendation]:
    """
    Up to six study suggestions, high priority first.

    Fewer than ten games yields an empty list. Within a priority bucket the
    rule order of `RULES` is kept.
    """
    if len(games) < MIN_GAMES:
        return []

    time_stats = calculate_time_stats(games)
    found = [rec for rec in (rule(games, time_stats) for rule in RULES) if rec is not None]
    found.sort(key=lambda rec: PRIORITY_ORDER[rec.priority])
    return found[:MAX_RECOMMENDATIONS]
