# ==============================================================================
# test_game_store.py  –  SQLite-backed store behaviour
# ==============================================================================

from datetime import datetime, timedelta, timezone

import pytest

from knightstats.errors import GameNotFoundError, ValidationError
from knightstats.filtering.game_filter import GameFilter
from knightstats.models.game import AnalysisData, ClockData, Opponent

T0 = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def user(stores):
    _, users = stores
    return users.create("hikaru", "drnykterstein")


# ------------------------------------------------------------------------------
# Upserts
# ------------------------------------------------------------------------------


def test_save_many_counts_only_new_rows(stores, user, make_game):
    games, _ = stores
    batch = [make_game(id="a"), make_game(id="b")]

    assert games.save_many(batch, user.id) == 2
    assert games.save_many(batch, user.id) == 0
    assert games.count(user.id) == 2


def test_same_id_on_two_platforms_is_two_rows(stores, user, make_game):
    games, _ = stores
    games.save(make_game(id="x", source="chesscom"), user.id)
    games.save(make_game(id="x", source="lichess"), user.id)
    assert games.count(user.id) == 2


def test_save_without_owner_is_rejected(stores, make_game):
    games, _ = stores
    with pytest.raises(ValidationError):
        games.save(make_game())


def test_upsert_keeps_clock_and_prefers_new_analysis(stores, user, make_game):
    games, _ = stores
    first_clock = ClockData(initial_time=180, increment=2, time_remaining=12.5, move_times=(1.0, 2.5))
    games.save(make_game(id="g", clock=first_clock), user.id)

    analysis = AnalysisData(blunders=1, mistakes=2, inaccuracies=3, accuracy=87.5, acpl=31.0, analyzed_at=T0)
    later = make_game(
        id="g",
        result="loss",
        clock=ClockData(initial_time=600, increment=0),
        analysis=analysis,
    )
    assert games.save(later, user.id) is False

    stored = games.find_by_id("g", user.id)
    assert stored.result == "loss"
    assert stored.clock == first_clock
    assert stored.analysis.blunders == 1
    assert stored.analysis.accuracy == 87.5

    # a later save without analysis leaves the stored analysis alone
    games.save(make_game(id="g"), user.id)
    assert games.find_by_id("g", user.id).analysis.mistakes == 2


def test_round_trip_preserves_canonical_fields(stores, user, make_game):
    games, _ = stores
    game = make_game(id="rt", played_at=T0, rating_change=-7, opponent=Opponent("Carlsen", 2850))
    games.save(game, user.id)

    stored = games.find_by_id("rt")
    assert stored == game.with_user(user.id)
    assert stored.played_at.tzinfo is not None


# ------------------------------------------------------------------------------
# Queries
# ------------------------------------------------------------------------------


@pytest.fixture
def history(stores, user, make_game):
    games, _ = stores
    rows = [
        make_game(id="1", played_at=T0, result="win"),
        make_game(id="2", played_at=T0 + timedelta(hours=1), result="loss", player_color="black",
                  opponent=Opponent("Nemesis", 1900)),
        make_game(id="3", played_at=T0 + timedelta(hours=2), result="draw", source="lichess",
                  time_class="rapid", opponent=Opponent("nemesis", 1950)),
        make_game(id="4", played_at=T0 + timedelta(hours=3), result="win", rated=False),
    ]
    games.save_many(rows, user.id)
    return games


def test_find_all_newest_first_with_filter(history, user):
    assert [g.id for g in history.find_all(user.id)] == ["4", "3", "2", "1"]

    only_wins = GameFilter().with_results(["win"])
    assert [g.id for g in history.find_all(user.id, only_wins)] == ["4", "1"]

    rated_chesscom = GameFilter().with_sources(["chesscom"]).with_rated(True)
    assert [g.id for g in history.find_all(user.id, rated_chesscom)] == ["2", "1"]


def test_filter_clauses_match_in_memory_filter(history, user):
    game_filter = (
        GameFilter()
        .with_opponents(["NEMESIS"])
        .with_opponent_rating_range(1900, 1950)
        .with_date_range(T0 + timedelta(hours=1), T0 + timedelta(hours=2))
    )
    from_db = history.find_all(user.id, game_filter)
    in_memory = game_filter.apply(history.find_all(user.id))
    assert [g.id for g in from_db] == [g.id for g in in_memory] == ["3", "2"]


def test_naive_date_range_matches_in_memory_filter(history, user):
    game_filter = GameFilter().with_date_range(datetime(2024, 5, 1, 10, 0))
    from_db = history.find_all(user.id, game_filter)
    in_memory = game_filter.apply(history.find_all(user.id))
    assert [g.id for g in from_db] == [g.id for g in in_memory] == ["4", "3", "2"]


def test_max_games_caps_find_all_and_count(history, user):
    capped = GameFilter().with_max_games(2)
    assert [g.id for g in history.find_all(user.id, capped)] == ["4", "3"]
    assert history.count(user.id, capped) == 2
    assert history.count(user.id) == 4


def test_paging_respects_max_games(history, user):
    capped = GameFilter().with_max_games(3)
    assert [g.id for g in history.find_all(user.id, capped, limit=2, offset=2)] == ["2"]
    assert [g.id for g in history.find_all(user.id, limit=2, offset=1)] == ["3", "2"]


def test_latest_game_date_is_per_source(history, user):
    assert history.get_latest_game_date(user.id, "chesscom") == T0 + timedelta(hours=3)
    assert history.get_latest_game_date(user.id, "lichess") == T0 + timedelta(hours=2)
    assert history.get_latest_game_date(user.id + 1, "lichess") is None


def test_queries_are_scoped_to_user(history, stores, user):
    _, users = stores
    other = users.create(chesscom_username="someone")
    assert history.find_all(other.id) == []
    assert history.count(other.id) == 0
    assert history.find_by_id("1", other.id) is None
    assert history.exists_by_id("1", user.id)


def test_find_by_eco_and_colour(history, user):
    assert [g.id for g in history.find_by_eco(user.id, "C20")] == ["4", "3", "2", "1"]
    assert [g.id for g in history.find_by_eco(user.id, "C20", "black")] == ["2"]
    with pytest.raises(ValidationError):
        history.find_by_eco(user.id, "Z99")


def test_find_by_opponent_ignores_case(history, user):
    assert [g.id for g in history.find_by_opponent(user.id, "NEMESIS")] == ["3", "2"]


def test_find_by_ids(history, user):
    assert [g.id for g in history.find_by_ids(["1", "3"], user.id)] == ["3", "1"]
    assert history.find_by_ids([]) == []


# ------------------------------------------------------------------------------
# Analysis
# ------------------------------------------------------------------------------


def test_update_analysis_stamps_and_clears_backlog(history, user):
    assert len(history.find_games_needing_analysis(user.id)) == 4

    history.update_analysis("2", AnalysisData(blunders=2, mistakes=1, acpl=55.0), user.id)

    stored = history.find_by_id("2", user.id)
    assert stored.analysis.blunders == 2
    assert stored.analysis.analyzed_at is not None
    assert [g.id for g in history.find_games_needing_analysis(user.id)] == ["4", "3", "1"]


def test_update_analysis_unknown_game(history, user):
    with pytest.raises(GameNotFoundError):
        history.update_analysis("missing", AnalysisData(), user.id)


def test_update_analysis_rejects_bad_accuracy(history, user):
    with pytest.raises(ValidationError):
        history.update_analysis("1", AnalysisData(accuracy=120.0), user.id)


# ------------------------------------------------------------------------------
# Users
# ------------------------------------------------------------------------------


def test_create_user_requires_a_platform(stores):
    _, users = stores
    with pytest.raises(ValidationError):
        users.create()
    with pytest.raises(ValidationError):
        users.create(chesscom_username="bad name!")


def test_update_user_keeps_omitted_fields(stores, user):
    _, users = stores
    updated = users.update(user.id, lichess_username=None)
    assert updated.chesscom_username == "hikaru"
    assert updated.lichess_username is None

    assert users.update(user.id) == updated


def test_update_last_synced(stores, user):
    _, users = stores
    assert user.last_synced_at is None
    users.update_last_synced(user.id, T0)
    assert users.find_by_id(user.id).last_synced_at == T0


def test_delete_user_removes_games(history, stores, user):
    _, users = stores
    other = users.create(lichess_username="keeper")
    history.save(history.find_by_id("1").with_user(other.id))

    users.delete(user.id)

    assert users.find_by_id(user.id) is None
    assert history.count(user.id) == 0
    assert history.count(other.id) == 1
    assert [u.id for u in users.find_all()] == [other.id]


def test_delete_by_user_returns_row_count(history, user):
    assert history.delete_by_user(user.id) == 4
    assert history.count(user.id) == 0
