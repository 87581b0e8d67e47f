# ==============================================================================
# game.py  –  Canonical game record shared by every platform adapter
#
# One `Game` per (user, source, platform id). Adapters build them, the store
# persists them, analytics read them. Records are frozen; use
# `dataclasses.replace` (or `with_user`) to derive modified copies.
# ==============================================================================

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Final, Optional, Tuple

# ------------------------------------------------------------------------------
# Enumerations
# ------------------------------------------------------------------------------

CHESSCOM: Final[str] = "chesscom"
LICHESS: Final[str] = "lichess"

GAME_SOURCES: Final[Tuple[str, ...]] = (CHESSCOM, LICHESS)
TIME_CLASSES: Final[Tuple[str, ...]] = ("bullet", "blitz", "rapid", "classical")
PLAYER_COLORS: Final[Tuple[str, ...]] = ("white", "black")
RESULTS: Final[Tuple[str, ...]] = ("win", "loss", "draw")
TERMINATIONS: Final[Tuple[str, ...]] = (
    "checkmate",
    "resignation",
    "timeout",
    "stalemate",
    "insufficient",
    "repetition",
    "agreement",
    "abandoned",
    "other",
)

UNKNOWN_ECO: Final[str] = "Unknown"
UNKNOWN_OPENING: Final[str] = "Unknown Opening"

_TERMINATION_LABELS: Final[Dict[str, str]] = {
    "checkmate": "Checkmate",
    "resignation": "Resignation",
    "timeout": "Timeout",
    "stalemate": "Stalemate",
    "insufficient": "Insufficient Material",
    "repetition": "Repetition",
    "agreement": "Draw Agreement",
    "abandoned": "Abandoned",
    "other": "Other",
}

_SOURCE_NAMES: Final[Dict[str, str]] = {CHESSCOM: "Chess.com", LICHESS: "Lichess"}


# ------------------------------------------------------------------------------
# Value objects
# ------------------------------------------------------------------------------


@dataclass(frozen=True)
class Opening:
    eco: str = UNKNOWN_ECO
    name: str = UNKNOWN_OPENING

    @property
    def is_known(self) -> bool:
        return self.eco != UNKNOWN_ECO and self.name != UNKNOWN_OPENING


@dataclass(frozen=True)
class Opponent:
    username: str
    rating: int


@dataclass(frozen=True)
class ClockData:
    """Clock settings and player's time usage, in seconds."""

    initial_time: int
    increment: int
    time_remaining: Optional[float] = None
    avg_move_time: Optional[float] = None
    move_times: Tuple[float, ...] = ()


@dataclass(frozen=True)
class AnalysisData:
    """Engine summary written by the external evaluation step, never by sync."""

    blunders: int = 0
    mistakes: int = 0
    inaccuracies: int = 0
    accuracy: Optional[float] = None
    acpl: Optional[float] = None
    analyzed_at: Optional[datetime] = None


@dataclass(frozen=True)
class Game:
    id: str
    source: str
    played_at: datetime
    time_class: str
    player_color: str
    result: str
    opening: Opening
    opponent: Opponent
    player_rating: int
    termination: str
    move_count: int
    rated: bool
    game_url: str
    rating_change: Optional[int] = None
    user_id: Optional[int] = None
    clock: Optional[ClockData] = None
    analysis: Optional[AnalysisData] = field(default=None, compare=False)

    # -- helpers ---------------------------------------------------------------

    @property
    def is_win(self) -> bool:
        return self.result == "win"

    @property
    def is_loss(self) -> bool:
        return self.result == "loss"

    @property
    def is_draw(self) -> bool:
        return self.result == "draw"

    def with_user(self, user_id: int) -> "Game":
        return replace(self, user_id=user_id)

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["played_at"] = self.played_at.isoformat()
        if self.analysis and self.analysis.analyzed_at:
            payload["analysis"]["analyzed_at"] = self.analysis.analyzed_at.isoformat()
        return payload


def format_termination(termination: str) -> str:
    return _TERMINATION_LABELS.get(termination, "Unknown")


def source_display_name(source: str) -> str:
    return _SOURCE_NAMES.get(source, source)


def map_time_class(raw: Optional[str], default: str = "blitz") -> str:
    """
    Map a platform speed / time-class string onto the canonical four.

    ``ultraBullet`` folds into bullet and ``standard`` into classical.
    Anything unrecognised (``correspondence``, Chess.com ``daily``) gets
    ``default``: Lichess keeps blitz, Chess.com passes classical.
    """
    normalized = (raw or "").lower()
    if normalized in ("bullet", "ultrabullet"):
        return "bullet"
    if normalized == "blitz":
        return "blitz"
    if normalized == "rapid":
        return "rapid"
    if normalized in ("classical", "standard"):
        return "classical"
    return default
