# ==============================================================================
# test_lichess_client.py  –  NDJSON streaming + raw game conversion
# ==============================================================================

import json
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
import requests

from knightstats.errors import InvalidUsernameError, RateLimitError
from knightstats.ingestion.base_client import FetchOptions
from knightstats.ingestion.lichess_client import LichessClient, convert_game, map_termination

BASE = "https://lichess.test"


def _ms(year, month, day):
    return int(datetime(year, month, day, tzinfo=timezone.utc).timestamp() * 1000)


def _raw(game_id, created, winner="white", status="mate", **extra):
    record = {
        "id": game_id,
        "rated": True,
        "speed": "blitz",
        "createdAt": created,
        "status": status,
        "players": {
            "white": {"user": {"name": "Hero", "id": "hero"}, "rating": 1600, "ratingDiff": 6},
            "black": {"user": {"name": "Villain", "id": "villain"}, "rating": 1580, "ratingDiff": -6},
        },
        "opening": {"eco": "C20", "name": "King's Pawn Game"},
        "moves": "e4 e5 Qh5 Nc6 Bc4 Nf6 Qxf7#",
        "clock": {"initial": 180, "increment": 0},
        "clocks": [18000, 18000, 17500, 17900],
    }
    if winner:
        record["winner"] = winner
    record.update(extra)
    return record


def _stream_response(lines, status=200):
    resp = MagicMock(spec=requests.Response)
    resp.status_code = status
    resp.ok = status < 400
    resp.headers = {}
    resp.iter_lines.return_value = [line.encode() if isinstance(line, str) else line for line in lines]
    return resp


def _client(resp):
    session = MagicMock()
    session.get.return_value = resp
    return LichessClient(session=session, base_url=BASE), session


def test_map_termination():
    assert map_termination("outoftime") == "timeout"
    assert map_termination("threefoldRepetition") == "repetition"
    assert map_termination("somethingNew") == "other"
    assert map_termination(None) == "other"


def test_convert_game_white_win():
    game = convert_game(_raw("abc", _ms(2024, 3, 5)), "HERO")
    assert game.player_color == "white"
    assert game.result == "win"
    assert game.termination == "checkmate"
    assert game.move_count == 4
    assert game.rating_change == 6
    assert game.game_url == "https://lichess.org/abc"
    assert game.clock.time_remaining == 175.0
    assert game.clock.move_times == (0.0, 5.0)


def test_convert_game_draw_and_anonymous_black():
    raw = _raw("d1", _ms(2024, 3, 5), winner=None, status="draw")
    raw["players"]["black"] = {"aiLevel": 3}
    game = convert_game(raw, "hero")
    assert game.result == "draw"
    assert game.termination == "agreement"
    assert game.opponent.username == "Stockfish level 3"
    assert game.opponent.rating == 0


def test_convert_game_black_side_loss():
    game = convert_game(_raw("x", _ms(2024, 3, 5)), "villain")
    assert game.player_color == "black"
    assert game.result == "loss"
    assert game.opponent.username == "Hero"


@pytest.mark.parametrize(
    "speed, expected",
    [("ultraBullet", "bullet"), ("classical", "classical"), ("correspondence", "blitz")],
)
def test_convert_game_speed(speed, expected):
    assert convert_game(_raw("s1", _ms(2024, 3, 5), speed=speed), "hero").time_class == expected


def test_fetch_skips_malformed_lines_and_sorts():
    lines = [
        json.dumps(_raw("old", _ms(2024, 3, 1))),
        "{not json",
        "",
        json.dumps(_raw("new", _ms(2024, 3, 3))),
        json.dumps({"id": "broken"}),
    ]
    client, session = _client(_stream_response(lines))
    since = datetime(2024, 2, 1, tzinfo=timezone.utc)
    games = client.fetch_games("hero", FetchOptions(since=since, max_games=50))

    assert [g.id for g in games] == ["new", "old"]
    _, kwargs = session.get.call_args
    assert kwargs["params"]["since"] == _ms(2024, 2, 1)
    assert kwargs["params"]["max"] == 50
    assert kwargs["headers"] == {"Accept": "application/x-ndjson"}
    assert kwargs["stream"] is True


def test_fetch_all_omits_max():
    client, session = _client(_stream_response([]))
    assert client.fetch_games("hero", FetchOptions(fetch_all=True)) == []
    _, kwargs = session.get.call_args
    assert "max" not in kwargs["params"]


def test_fetch_maps_errors():
    client, _ = _client(_stream_response([], status=404))
    with pytest.raises(InvalidUsernameError):
        client.fetch_games("ghost")
    client, _ = _client(_stream_response([], status=429))
    with pytest.raises(RateLimitError):
        client.fetch_games("hero")
