# ==============================================================================
# lichess_client.py  –  Lichess NDJSON streaming adapter
# ------------------------------------------------------------------------------
# Streams `/api/games/user/{name}` one JSON object per line and converts each
# into a canonical `Game`. Malformed lines are logged and skipped. The window
# is pushed to the server (`since` / `until` in epoch ms) and re-checked
# locally so both adapters honour the same inclusive range.
# ==============================================================================

from __future__ import annotations

import json
import math
import os
from datetime import datetime, timezone
from typing import Any, Dict, Final, Iterator, List, Optional

import requests

from knightstats.ingestion.base_client import ChessClient, FetchOptions
from knightstats.ingestion.pgn_parser import player_move_times
from knightstats.models.game import (
    LICHESS,
    UNKNOWN_ECO,
    UNKNOWN_OPENING,
    ClockData,
    Game,
    Opening,
    Opponent,
    map_time_class,
)
from knightstats.utils.db_utils import get_lichess_token
from knightstats.utils.http_utils import (
    HTTP_TIMEOUT,
    build_session,
    get_with_retry,
    raise_for_platform,
)
from knightstats.utils.logging_utils import setup_logger

LOGGER = setup_logger("lichess_client")

BASE_URL: Final[str] = os.getenv("LICHESS_BASE_URL", "https://lichess.org")

STATUS_TERMINATIONS: Final[Dict[str, str]] = {
    "mate": "checkmate",
    "resign": "resignation",
    "outoftime": "timeout",
    "timeout": "timeout",
    "stalemate": "stalemate",
    "draw": "agreement",
    "insufficientMaterialClaim": "insufficient",
    "threefoldRepetition": "repetition",
    "aborted": "abandoned",
    "noStart": "abandoned",
    "cheat": "other",
    "variantEnd": "other",
}


def _to_epoch_ms(value: datetime) -> int:
    return int(value.timestamp() * 1000)


def map_termination(status: Optional[str]) -> str:
    return STATUS_TERMINATIONS.get(status or "", "other")


# ==============================================================================
# Client
# ==============================================================================


class LichessClient(ChessClient):
    source = LICHESS

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        base_url: str = BASE_URL,
        timeout: float = HTTP_TIMEOUT,
    ) -> None:
        super().__init__(session or build_session(token=get_lichess_token()))
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    # -- contract --------------------------------------------------------------

    def validate_user(self, username: str) -> bool:
        try:
            resp = self.session.get(
                f"{self.base_url}/api/user/{username}", timeout=self.timeout
            )
        except requests.RequestException as exc:
            LOGGER.warning("Lichess user check failed for %s – %s", username, exc)
            return False
        return resp.ok

    def fetch_games(
        self, username: str, options: Optional[FetchOptions] = None
    ) -> List[Game]:
        options = options or FetchOptions()
        params: Dict[str, Any] = {
            "opening": "true",
            "moves": "true",
            "clocks": "true",
        }
        if not options.fetch_all:
            params["max"] = options.max_games
        if options.since:
            params["since"] = _to_epoch_ms(options.since)
        if options.until:
            params["until"] = _to_epoch_ms(options.until)

        resp = get_with_retry(
            self.session,
            f"{self.base_url}/api/games/user/{username}",
            LICHESS,
            params=params,
            headers={"Accept": "application/x-ndjson"},
            stream=True,
            timeout=self.timeout,
        )
        raise_for_platform(resp, LICHESS, username)

        games: List[Game] = []
        try:
            for raw in _iter_ndjson(resp):
                try:
                    games.append(convert_game(raw, username))
                except (KeyError, TypeError, ValueError) as exc:
                    LOGGER.warning("Unparseable Lichess game %s – %s", raw.get("id"), exc)
        finally:
            resp.close()

        LOGGER.info("Fetched %d Lichess games for %s", len(games), username)
        return self._finalize(games, options)


def _iter_ndjson(resp: requests.Response) -> Iterator[Dict[str, Any]]:
    """Yield one dict per non-blank line; malformed lines are skipped."""
    for line in resp.iter_lines():
        if not line:
            continue
        try:
            record = json.loads(line)
        except ValueError:
            LOGGER.debug("Skipping malformed NDJSON line %r", line[:80])
            continue
        if isinstance(record, dict):
            yield record
        else:
            LOGGER.debug("Skipping non-object NDJSON line %r", line[:80])


# ------------------------------------------------------------------------------
# Conversion
# ------------------------------------------------------------------------------


def _count_moves(moves: Optional[str]) -> int:
    if not moves or not moves.strip():
        return 0
    return math.ceil(len(moves.split()) / 2)


def _clock_for(raw: Dict[str, Any], is_white: bool) -> Optional[ClockData]:
    clock = raw.get("clock")
    if not clock or clock.get("initial") is None:
        return None
    initial_time = int(clock["initial"])
    increment = int(clock.get("increment") or 0)

    plies = [c / 100 for c in raw.get("clocks") or []]
    own = plies[0::2] if is_white else plies[1::2]
    move_times = player_move_times(own, increment, initial_time)

    return ClockData(
        initial_time=initial_time,
        increment=increment,
        time_remaining=own[-1] if own else None,
        avg_move_time=round(sum(move_times) / len(move_times), 2) if move_times else None,
        move_times=tuple(move_times),
    )


def _opponent_name(side: Dict[str, Any]) -> str:
    user = side.get("user") or {}
    if user.get("name"):
        return user["name"]
    if side.get("aiLevel"):
        return f"Stockfish level {side['aiLevel']}"
    return "Anonymous"


def convert_game(raw: Dict[str, Any], username: str) -> Game:
    """Lichess NDJSON record → canonical `Game` from ``username``'s side."""
    players = raw["players"]
    white_id = ((players["white"].get("user") or {}).get("id") or "").lower()
    is_white = white_id == username.lower()
    color = "white" if is_white else "black"
    player = players["white"] if is_white else players["black"]
    opponent = players["black"] if is_white else players["white"]

    winner = raw.get("winner")
    if winner:
        result = "win" if winner == color else "loss"
    else:
        result = "draw"

    opening = raw.get("opening") or {}

    return Game(
        id=raw["id"],
        source=LICHESS,
        played_at=datetime.fromtimestamp(raw["createdAt"] / 1000, tz=timezone.utc),
        time_class=map_time_class(raw.get("speed")),
        player_color=color,
        result=result,
        opening=Opening(
            eco=opening.get("eco") or UNKNOWN_ECO,
            name=opening.get("name") or UNKNOWN_OPENING,
        ),
        opponent=Opponent(
            username=_opponent_name(opponent),
            rating=int(opponent.get("rating") or 0),
        ),
        player_rating=int(player.get("rating") or 0),
        termination=map_termination(raw.get("status")),
        move_count=_count_moves(raw.get("moves")),
        rated=bool(raw.get("rated", False)),
        game_url=f"https://lichess.org/{raw['id']}",
        rating_change=player.get("ratingDiff"),
        clock=_clock_for(raw, is_white),
    )
