# ==============================================================================
# game_filter.py  –  Immutable predicate set over canonical games
# ------------------------------------------------------------------------------
# A `GameFilter` is a frozen value. Every `with_*` call returns a new filter;
# `apply` returns a new newest-first list and never touches its input.
#
# Predicate order (first failing predicate rejects the game):
#   date → time class → colour → result → opening → opponent rating →
#   opponent name (case-insensitive) → termination → source → rated
# then the most-recent-first cap (`max_games`, 0 = unlimited).
# ==============================================================================

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from knightstats.errors import ValidationError
from knightstats.models.game import Game

_LIST_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("time_classes", "timeClasses"),
    ("colors", "colors"),
    ("results", "results"),
    ("sources", "sources"),
    ("openings", "openings"),
    ("opponents", "opponents"),
    ("terminations", "terminations"),
)


# ------------------------------------------------------------------------------
# Parsing helpers (query-string style input)
# ------------------------------------------------------------------------------


def _parse_list(value: Any) -> Tuple[str, ...]:
    """``"a,b"`` / ``["a", "b,c"]`` → ``("a", "b", "c")``; blanks dropped."""
    if value is None:
        return ()
    items = [value] if isinstance(value, str) else list(value)
    parsed: List[str] = []
    for item in items:
        parsed.extend(part.strip() for part in str(item).split(",") if part.strip())
    return tuple(parsed)


def _parse_bool(value: Any) -> Optional[bool]:
    if value is None or isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    return None


def _naive_as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo:
        return value
    return value.replace(tzinfo=timezone.utc)


def _parse_datetime(value: Any, field_name: str) -> Optional[datetime]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError as exc:
            raise ValidationError(f"Invalid date: {value}", field_name) from exc
    return _naive_as_utc(parsed)


def _parse_int(value: Any, field_name: str) -> Optional[int]:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid number: {value}", field_name) from exc


# ==============================================================================
# Filter value
# ==============================================================================


@dataclass(frozen=True)
class GameFilter:
    time_classes: Tuple[str, ...] = ()
    colors: Tuple[str, ...] = ()
    results: Tuple[str, ...] = ()
    sources: Tuple[str, ...] = ()
    rated: Optional[bool] = None
    date_range: Optional[Tuple[Optional[datetime], Optional[datetime]]] = None
    openings: Tuple[str, ...] = ()
    opponents: Tuple[str, ...] = ()
    opponent_rating_range: Optional[Tuple[Optional[int], Optional[int]]] = None
    terminations: Tuple[str, ...] = ()
    max_games: int = 0
    _opponents_folded: frozenset = field(
        default=frozenset(), init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        for name, _ in _LIST_FIELDS:
            object.__setattr__(self, name, tuple(getattr(self, name)))
        object.__setattr__(
            self, "_opponents_folded", frozenset(o.lower() for o in self.opponents)
        )
        if self.date_range:
            start, end = self.date_range
            object.__setattr__(
                self, "date_range", (_naive_as_utc(start), _naive_as_utc(end))
            )
        if self.max_games < 0:
            raise ValidationError("max_games must be >= 0", "maxGames")

    # -- factories -------------------------------------------------------------

    @classmethod
    def empty(cls) -> "GameFilter":
        return cls()

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> "GameFilter":
        """
        Build from query-string style params (camelCase keys as produced by
        `to_params`). Lists are comma separated; dates are ISO-8601.
        """
        start = _parse_datetime(params.get("startDate"), "startDate")
        end = _parse_datetime(params.get("endDate"), "endDate")
        min_rating = _parse_int(params.get("minRating"), "minRating")
        max_rating = _parse_int(params.get("maxRating"), "maxRating")

        kwargs: Dict[str, Any] = {
            name: _parse_list(params.get(key)) for name, key in _LIST_FIELDS
        }
        return cls(
            rated=_parse_bool(params.get("rated")),
            date_range=(start, end) if start or end else None,
            opponent_rating_range=(
                (min_rating, max_rating)
                if min_rating is not None or max_rating is not None
                else None
            ),
            max_games=_parse_int(params.get("maxGames"), "maxGames") or 0,
            **kwargs,
        )

    # -- builders --------------------------------------------------------------

    def with_time_classes(self, time_classes: Iterable[str]) -> "GameFilter":
        return replace(self, time_classes=tuple(time_classes))

    def with_colors(self, colors: Iterable[str]) -> "GameFilter":
        return replace(self, colors=tuple(colors))

    def with_results(self, results: Iterable[str]) -> "GameFilter":
        return replace(self, results=tuple(results))

    def with_sources(self, sources: Iterable[str]) -> "GameFilter":
        return replace(self, sources=tuple(sources))

    def with_rated(self, rated: Optional[bool]) -> "GameFilter":
        return replace(self, rated=rated)

    def with_date_range(
        self, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> "GameFilter":
        return replace(self, date_range=(start, end) if start or end else None)

    def with_openings(self, openings: Iterable[str]) -> "GameFilter":
        return replace(self, openings=tuple(openings))

    def with_opponents(self, opponents: Iterable[str]) -> "GameFilter":
        return replace(self, opponents=tuple(opponents))

    def with_opponent_rating_range(
        self, minimum: Optional[int] = None, maximum: Optional[int] = None
    ) -> "GameFilter":
        rating_range = (
            (minimum, maximum) if minimum is not None or maximum is not None else None
        )
        return replace(self, opponent_rating_range=rating_range)

    def with_terminations(self, terminations: Iterable[str]) -> "GameFilter":
        return replace(self, terminations=tuple(terminations))

    def with_max_games(self, max_games: int) -> "GameFilter":
        return replace(self, max_games=max_games)

    # -- introspection ---------------------------------------------------------

    def is_empty(self) -> bool:
        return self.active_count() == 0 and self.max_games == 0

    def active_count(self) -> int:
        """Number of predicate groups in use (the cap is not a predicate)."""
        count = sum(1 for name, _ in _LIST_FIELDS if getattr(self, name))
        count += self.rated is not None
        count += self.date_range is not None
        count += self.opponent_rating_range is not None
        return count

    def to_params(self) -> Dict[str, str]:
        params: Dict[str, str] = {}
        for name, key in _LIST_FIELDS:
            values: Sequence[str] = getattr(self, name)
            if values:
                params[key] = ",".join(values)
        if self.rated is not None:
            params["rated"] = "true" if self.rated else "false"
        if self.date_range:
            start, end = self.date_range
            if start:
                params["startDate"] = start.isoformat()
            if end:
                params["endDate"] = end.isoformat()
        if self.opponent_rating_range:
            low, high = self.opponent_rating_range
            if low is not None:
                params["minRating"] = str(low)
            if high is not None:
                params["maxRating"] = str(high)
        if self.max_games:
            params["maxGames"] = str(self.max_games)
        return params

    # -- evaluation ------------------------------------------------------------

    def matches(self, game: Game) -> bool:
        if self.date_range:
            start, end = self.date_range
            if start and game.played_at < start:
                return False
            if end and game.played_at > end:
                return False
        if self.time_classes and game.time_class not in self.time_classes:
            return False
        if self.colors and game.player_color not in self.colors:
            return False
        if self.results and game.result not in self.results:
            return False
        if self.openings and game.opening.eco not in self.openings:
            return False
        if self.opponent_rating_range:
            low, high = self.opponent_rating_range
            if low is not None and game.opponent.rating < low:
                return False
            if high is not None and game.opponent.rating > high:
                return False
        if self._opponents_folded and (
            game.opponent.username.lower() not in self._opponents_folded
        ):
            return False
        if self.terminations and game.termination not in self.terminations:
            return False
        if self.sources and game.source not in self.sources:
            return False
        if self.rated is not None and game.rated != self.rated:
            return False
        return True

    def apply(self, games: Iterable[Game]) -> List[Game]:
        """Matching games, newest first, capped at `max_games` when set."""
        ordered = sorted(games, key=lambda g: g.played_at, reverse=True)
        kept = [g for g in ordered if self.matches(g)]
        if self.max_games:
            kept = kept[: self.max_games]
        return kept
