# ==============================================================================
# chesscom_client.py  –  Chess.com archive-paged adapter
# ------------------------------------------------------------------------------
# Chess.com publishes one JSON archive per calendar month. Fetch flow:
#   1. List archive URLs for the player
#   2. Walk archives newest → oldest, skipping months after `until` and
#      stopping once a month ends before `since` or enough games are collected
#   3. Convert each game (PGN text → opening, move count, clocks)
#   4. Exact window filter, newest-first sort, cap
# ==============================================================================

from __future__ import annotations

import os
from calendar import monthrange
from datetime import datetime, timezone
from typing import Any, Dict, Final, FrozenSet, List, Optional, Tuple

import requests

from knightstats.errors import ExternalApiError, RateLimitError
from knightstats.ingestion.base_client import ChessClient, FetchOptions
from knightstats.ingestion.pgn_parser import (
    count_moves,
    extract_clocks,
    extract_opening,
    parse_time_control,
    player_move_times,
)
from knightstats.models.game import (
    CHESSCOM,
    ClockData,
    Game,
    Opening,
    Opponent,
    map_time_class,
)
from knightstats.utils.http_utils import (
    HTTP_TIMEOUT,
    get_with_retry,
    raise_for_platform,
)
from knightstats.utils.logging_utils import setup_logger

LOGGER = setup_logger("chesscom_client")

BASE_URL: Final[str] = os.getenv("CHESSCOM_BASE_URL", "https://api.chess.com/pub")

# ------------------------------------------------------------------------------
# Raw result code tables
# ------------------------------------------------------------------------------

WIN_CODES: Final[FrozenSet[str]] = frozenset({"win"})
LOSS_CODES: Final[FrozenSet[str]] = frozenset(
    {
        "checkmated",
        "timeout",
        "resigned",
        "lose",
        "abandoned",
        "kingofthehill",
        "threecheck",
        "bughousepartnerlose",
    }
)
DRAW_CODES: Final[FrozenSet[str]] = frozenset(
    {
        "agreed",
        "repetition",
        "stalemate",
        "insufficient",
        "50move",
        "timevsinsufficient",
    }
)

# First match wins; either player's code may carry the reason.
TERMINATION_PRIORITY: Final[Tuple[Tuple[FrozenSet[str], str], ...]] = (
    (frozenset({"checkmated"}), "checkmate"),
    (frozenset({"timeout"}), "timeout"),
    (frozenset({"resigned"}), "resignation"),
    (frozenset({"stalemate"}), "stalemate"),
    (frozenset({"insufficient"}), "insufficient"),
    (frozenset({"repetition"}), "repetition"),
    (frozenset({"agreed", "50move"}), "agreement"),
    (frozenset({"abandoned"}), "abandoned"),
    (frozenset({"timevsinsufficient"}), "timeout"),
)


def map_result(code: Optional[str]) -> str:
    """Player-perspective result from a raw Chess.com code; unknown → draw."""
    if code in WIN_CODES:
        return "win"
    if code in LOSS_CODES:
        return "loss"
    return "draw"


def determine_termination(white_code: Optional[str], black_code: Optional[str]) -> str:
    codes = {white_code, black_code}
    for raw, termination in TERMINATION_PRIORITY:
        if codes & raw:
            return termination
    return "other"


# ------------------------------------------------------------------------------
# Archive month helpers
# ------------------------------------------------------------------------------


def _archive_month(url: str) -> Optional[Tuple[int, int]]:
    """``.../games/2024/03`` → ``(2024, 3)``; None if the URL is unexpected."""
    parts = url.rstrip("/").split("/")
    try:
        return int(parts[-2]), int(parts[-1])
    except (IndexError, ValueError):
        return None


def _month_bounds(year: int, month: int) -> Tuple[datetime, datetime]:
    last_day = monthrange(year, month)[1]
    start = datetime(year, month, 1, tzinfo=timezone.utc)
    end = datetime(year, month, last_day, 23, 59, 59, 999999, tzinfo=timezone.utc)
    return start, end


# ==============================================================================
# Client
# ==============================================================================


class ChessComClient(ChessClient):
    source = CHESSCOM

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        base_url: str = BASE_URL,
        timeout: float = HTTP_TIMEOUT,
    ) -> None:
        super().__init__(session)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    # -- contract --------------------------------------------------------------

    def validate_user(self, username: str) -> bool:
        try:
            resp = self.session.get(
                f"{self.base_url}/player/{username.lower()}", timeout=self.timeout
            )
        except requests.RequestException as exc:
            LOGGER.warning("Chess.com user check failed for %s – %s", username, exc)
            return False
        return resp.ok

    def fetch_games(
        self, username: str, options: Optional[FetchOptions] = None
    ) -> List[Game]:
        options = options or FetchOptions()
        archives = self._fetch_archives(username)
        if not archives:
            LOGGER.info("No Chess.com archives for %s", username)
            return []

        games: List[Game] = []
        for archive_url in reversed(archives):
            if not options.fetch_all and len(games) >= options.max_games:
                break

            month = _archive_month(archive_url)
            if month and (options.since or options.until):
                start, end = _month_bounds(*month)
                if options.until and start > options.until:
                    continue
                if options.since and end < options.since:
                    break

            try:
                raw_games = self._fetch_archive_games(archive_url)
            except RateLimitError:
                raise
            except ExternalApiError as exc:
                LOGGER.error("Skipping archive %s – %s", archive_url, exc)
                continue

            for raw in reversed(raw_games):
                try:
                    game = convert_game(raw, username)
                except (KeyError, TypeError, ValueError) as exc:
                    LOGGER.warning(
                        "Unparseable Chess.com game %s – %s", raw.get("url"), exc
                    )
                    continue
                if not options.in_window(game.played_at):
                    continue
                games.append(game)
                if not options.fetch_all and len(games) >= options.max_games:
                    break

        LOGGER.info("Fetched %d Chess.com games for %s", len(games), username)
        return self._finalize(games, options)

    # -- HTTP ------------------------------------------------------------------

    def _fetch_archives(self, username: str) -> List[str]:
        url = f"{self.base_url}/player/{username.lower()}/games/archives"
        resp = get_with_retry(self.session, url, CHESSCOM, timeout=self.timeout)
        raise_for_platform(resp, CHESSCOM, username)
        return list(resp.json().get("archives") or [])

    def _fetch_archive_games(self, archive_url: str) -> List[Dict[str, Any]]:
        resp = get_with_retry(self.session, archive_url, CHESSCOM, timeout=self.timeout)
        raise_for_platform(resp, CHESSCOM)
        return list(resp.json().get("games") or [])


# ------------------------------------------------------------------------------
# Conversion
# ------------------------------------------------------------------------------


def _clock_for(raw: Dict[str, Any], pgn: str, is_white: bool) -> Optional[ClockData]:
    control = parse_time_control(raw.get("time_control"))
    if control is None:
        return None
    initial_time, increment = control

    readings = extract_clocks(pgn)
    own = readings[0::2] if is_white else readings[1::2]
    move_times = player_move_times(own, increment, initial_time)

    return ClockData(
        initial_time=initial_time,
        increment=increment,
        time_remaining=own[-1] if own else None,
        avg_move_time=round(sum(move_times) / len(move_times), 2) if move_times else None,
        move_times=tuple(move_times),
    )


def convert_game(raw: Dict[str, Any], username: str) -> Game:
    """Chess.com archive entry → canonical `Game` from ``username``'s side."""
    white, black = raw["white"], raw["black"]
    is_white = white.get("username", "").lower() == username.lower()
    player, opponent = (white, black) if is_white else (black, white)
    pgn = raw.get("pgn") or ""
    eco, name = extract_opening(pgn)
    url = raw.get("url", "")

    return Game(
        id=url.rstrip("/").split("/")[-1] or url,
        source=CHESSCOM,
        played_at=datetime.fromtimestamp(int(raw["end_time"]), tz=timezone.utc),
        time_class=map_time_class(raw.get("time_class"), default="classical"),
        player_color="white" if is_white else "black",
        result=map_result(player.get("result")),
        opening=Opening(eco=eco, name=name),
        opponent=Opponent(
            username=opponent.get("username") or "Unknown",
            rating=int(opponent.get("rating") or 0),
        ),
        player_rating=int(player.get("rating") or 0),
        termination=determine_termination(white.get("result"), black.get("result")),
        move_count=count_moves(pgn),
        rated=bool(raw.get("rated", False)),
        game_url=url,
        rating_change=None,
        clock=_clock_for(raw, pgn, is_white),
    )
