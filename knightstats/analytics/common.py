# ==============================================================================
# common.py  –  Small helpers shared by the analytics modules
# ==============================================================================

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from typing import Final, Iterable, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from knightstats.models.game import Game
from knightstats.utils.logging_utils import setup_logger

LOGGER = setup_logger("analytics")

EXCLUDED_ECO_CODES: Final[Tuple[str, ...]] = ("C50",)  # too generic to rank
DAY_NAMES: Final[Tuple[str, ...]] = (
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
)


def _configured_tz() -> tzinfo:
    name = os.getenv("KNIGHTSTATS_TZ", "").strip()
    if not name:
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        LOGGER.warning("Unknown KNIGHTSTATS_TZ %r – using UTC", name)
        return timezone.utc


DEFAULT_TZ: Final[tzinfo] = _configured_tz()


def local(moment: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """``moment`` in the reporting timezone (naive values are taken as UTC)."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(tz or DEFAULT_TZ)


def sunday_weekday(moment: datetime) -> int:
    """Day of week with Sunday = 0 … Saturday = 6."""
    return (moment.weekday() + 1) % 7


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives (2.5 → 3), unlike `round`."""
    return int(math.floor(value + 0.5))


def pct(part: float, whole: float) -> float:
    return (part / whole) * 100 if whole > 0 else 0.0


@dataclass
class Tally:
    wins: int = 0
    losses: int = 0
    draws: int = 0

    def add(self, game: Game) -> None:
        if game.result == "win":
            self.wins += 1
        elif game.result == "loss":
            self.losses += 1
        else:
            self.draws += 1

    @property
    def total(self) -> int:
        return self.wins + self.losses + self.draws

    @property
    def win_rate(self) -> float:
        return pct(self.wins, self.total)


def tally(games: Iterable[Game]) -> Tally:
    counts = Tally()
    for game in games:
        counts.add(game)
    return counts


def format_date(moment: datetime, tz: Optional[tzinfo] = None) -> str:
    """``Jan 5, 2025`` in the reporting timezone."""
    day = local(moment, tz)
    return f"{day:%b} {day.day}, {day.year}"


def format_date_short(moment: datetime, tz: Optional[tzinfo] = None) -> str:
    day = local(moment, tz)
    return f"{day:%b} {day.day}"
