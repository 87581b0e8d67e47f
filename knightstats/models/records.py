# ==============================================================================
# records.py  –  Plain output records (sync results + analytics tables)
#
# Every record is a dataclass with `to_dict()` so it can be dumped to JSON
# by the CLI or any presentation layer. No behaviour lives here.
# ==============================================================================

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple


def _jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


class Record:
    """Mixin: dataclass → JSON-friendly dict (datetimes as ISO strings)."""

    def to_dict(self) -> Dict[str, Any]:
        return _jsonable(asdict(self))  # type: ignore[call-overload]


# ------------------------------------------------------------------------------
# Sync
# ------------------------------------------------------------------------------


@dataclass
class SourceSyncResult(Record):
    source: str
    new_games: int = 0
    error: Optional[str] = None


@dataclass
class SyncResult(Record):
    success: bool
    new_games_count: int
    total_games_count: int
    sources: List[SourceSyncResult] = field(default_factory=list)


# ------------------------------------------------------------------------------
# Basic stats
# ------------------------------------------------------------------------------


@dataclass
class UserStats(Record):
    total_games: int
    wins: int
    losses: int
    draws: int
    win_rate: float


@dataclass
class WinRatePoint(Record):
    week: str
    win_rate: float
    games: int
    wins: int
    losses: int
    draws: int


@dataclass
class OpeningStats(Record):
    eco: str
    name: str
    wins: int
    losses: int
    draws: int
    total: int


@dataclass
class OpeningByColorStats(Record):
    eco: str
    name: str
    color: str
    games: int
    wins: int
    losses: int
    draws: int
    win_rate: float
    avg_opponent_rating: int


@dataclass
class RatingPoint(Record):
    date: str
    rating: int
    source: str
    time_class: str


@dataclass
class TimeControlShare(Record):
    time_class: str
    count: int
    percentage: float


@dataclass
class ColorPerformance(Record):
    color: str
    games: int
    wins: int
    win_rate: float


# ------------------------------------------------------------------------------
# Opponents / brackets / streaks / terminations
# ------------------------------------------------------------------------------


@dataclass
class OpponentStats(Record):
    username: str
    games: int
    wins: int
    losses: int
    draws: int
    win_rate: float
    avg_rating: int
    last_played: datetime


@dataclass
class BracketSpec(Record):
    min: int
    max: int
    size: int


@dataclass
class RatingBracketStats(Record):
    bracket: str
    min_rating: int
    max_rating: int
    games: int
    wins: int
    losses: int
    draws: int
    win_rate: float


@dataclass
class StreakInfo(Record):
    type: str
    count: int
    start_date: datetime
    end_date: datetime


@dataclass
class TerminationStats(Record):
    termination: str
    label: str
    as_winner: int
    as_loser: int
    total: int


# ------------------------------------------------------------------------------
# Calendar / time of day
# ------------------------------------------------------------------------------


@dataclass
class DateStats(Record):
    date: str
    display_date: str
    games: int
    wins: int
    losses: int
    draws: int
    win_rate: float
    rating_change: int
    has_tilt: bool


@dataclass
class HourlyStats(Record):
    hour: int
    games: int
    wins: int
    losses: int
    draws: int
    win_rate: float
    avg_rating_change: float


@dataclass
class DayOfWeekStats(Record):
    day: int
    day_name: str
    games: int
    wins: int
    losses: int
    draws: int
    win_rate: float


@dataclass
class HeatmapCell(Record):
    day: int
    hour: int
    games: int
    win_rate: float


@dataclass
class TimeWindow(Record):
    start_hour: int
    end_hour: int
    win_rate: float
    games: int
    label: str


# ------------------------------------------------------------------------------
# Time management
# ------------------------------------------------------------------------------


@dataclass
class TimeClassTimeStats(Record):
    time_class: str
    games: int
    avg_time_remaining: float
    timeout_rate: float
    avg_move_time: float


@dataclass
class TimeStats(Record):
    avg_time_remaining: float = 0.0
    timeout_loss_rate: float = 0.0
    avg_move_time: float = 0.0
    games_with_clock_data: int = 0
    by_time_class: List[TimeClassTimeStats] = field(default_factory=list)


@dataclass
class TimePressureStats(Record):
    games_in_time_trouble: int = 0
    win_rate_in_time_trouble: float = 0.0
    losses_to_timeout: int = 0
    avg_time_when_losing: float = 0.0
    avg_time_when_winning: float = 0.0


@dataclass
class TimeUsageByPhase(Record):
    opening_avg_time: float = 0.0
    middlegame_avg_time: float = 0.0
    endgame_avg_time: float = 0.0


# ------------------------------------------------------------------------------
# Heuristic estimators
# ------------------------------------------------------------------------------


@dataclass
class GamePhaseStats(Record):
    phase: str
    blunders: int = 0
    mistakes: int = 0
    inaccuracies: int = 0
    avg_cp_loss: float = 0.0
    moves_analyzed: int = 0


@dataclass
class PhasePerformanceSummary(Record):
    """
    Error totals split across game phases.

    The split is an estimate derived from each game's total error counts and
    its length, not from per-move evaluations (``is_estimate`` is always True
    for summaries produced by ``calculate_phase_performance``).
    """

    opening: GamePhaseStats
    middlegame: GamePhaseStats
    endgame: GamePhaseStats
    weakest_phase: str
    strongest_phase: str
    games_analyzed: int
    is_estimate: bool = True

    def phase(self, name: str) -> GamePhaseStats:
        return {
            "opening": self.opening,
            "middlegame": self.middlegame,
            "endgame": self.endgame,
        }[name]


@dataclass
class ResilienceStats(Record):
    comeback_wins: int = 0
    blown_wins: int = 0
    comeback_rate: float = 0.0
    blow_rate: float = 0.0
    converted_advantages: int = 0
    avg_deficit_overcome: float = 0.0
    avg_lead_lost: float = 0.0
    volatile_games: int = 0
    mental_score: int = 50


@dataclass
class GameResilience(Record):
    game_id: str
    max_deficit: int
    max_advantage: int
    is_comeback: bool
    is_blown_win: bool
    eval_swings: int
    result: str


# ------------------------------------------------------------------------------
# Advice
# ------------------------------------------------------------------------------


@dataclass
class StudyRecommendation(Record):
    id: str
    type: str
    priority: str
    title: str
    description: str
    study_items: Tuple[str, ...]
    evidence: str
    estimated_impact: str


@dataclass
class Insight(Record):
    id: str
    type: str
    title: str
    description: str
    value: Optional[str] = None
