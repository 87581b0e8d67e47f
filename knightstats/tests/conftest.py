# ==============================================================================
# conftest.py  –  Shared fixtures: canonical game factory + in-memory stores
# ==============================================================================

from datetime import datetime, timedelta, timezone
from itertools import count

import pytest

from knightstats.db.game_store import GameStore, UserStore
from knightstats.models.game import Game, Opening, Opponent
from knightstats.utils.db_utils import build_engine

BASE_TIME = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

_ids = count(1)


def build_game(**overrides) -> Game:
    """A valid blitz Chess.com win; override any field by keyword."""
    n = next(_ids)
    fields = dict(
        id=f"g{n}",
        source="chesscom",
        played_at=BASE_TIME + timedelta(minutes=n),
        time_class="blitz",
        player_color="white",
        result="win",
        opening=Opening("C20", "King's Pawn Game"),
        opponent=Opponent("rival", 1500),
        player_rating=1500,
        termination="resignation",
        move_count=30,
        rated=True,
        game_url=f"https://example.test/game/{n}",
    )
    fields.update(overrides)
    return Game(**fields)


def games_from_results(results, start=BASE_TIME, step=timedelta(hours=1), **overrides):
    """One game per result letter (W / L / D), oldest first."""
    mapping = {"W": "win", "L": "loss", "D": "draw"}
    return [
        build_game(result=mapping[letter], played_at=start + step * idx, **overrides)
        for idx, letter in enumerate(results)
    ]


@pytest.fixture
def make_game():
    return build_game


@pytest.fixture
def engine():
    eng = build_engine("sqlite://")
    yield eng
    eng.dispose()


@pytest.fixture
def stores(engine):
    """(GameStore, UserStore) sharing one fresh in-memory database."""
    return GameStore(engine, create_tables=True), UserStore(engine)


@pytest.fixture
def from_results():
    return games_from_results
