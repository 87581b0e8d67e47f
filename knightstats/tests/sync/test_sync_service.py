# ==============================================================================
# test_sync_service.py  –  Orchestration over fake platform adapters
# ==============================================================================

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from knightstats.errors import ExternalApiError, UserNotFoundError
from knightstats.ingestion.base_client import ChessClient
from knightstats.sync.sync_service import SyncService, _UserLocks, incremental_since

NOW = datetime(2024, 6, 1, 18, 0, tzinfo=timezone.utc)
T0 = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


class FakeClient(ChessClient):
    """Returns a fixed batch (or raises) and records every call."""

    def __init__(self, source, games=(), error=None):
        super().__init__(session=MagicMock())
        self.source = source
        self.games = list(games)
        self.error = error
        self.calls = []

    def validate_user(self, username):
        return True

    def fetch_games(self, username, options=None):
        self.calls.append((username, options))
        if self.error:
            raise self.error
        return [g for g in self.games if options is None or options.in_window(g.played_at)]


@pytest.fixture
def batches(make_game):
    chesscom = [
        make_game(id=f"c{i}", source="chesscom", played_at=T0 + timedelta(hours=i))
        for i in range(3)
    ]
    lichess = [
        make_game(id=f"l{i}", source="lichess", played_at=T0 + timedelta(hours=i))
        for i in range(2)
    ]
    return chesscom, lichess


def _service(stores, clients):
    games, users = stores
    return SyncService(games, users, clients=clients, clock=lambda: NOW)


def test_incremental_since_adds_one_second():
    assert incremental_since(None) is None
    assert incremental_since(T0) == T0 + timedelta(seconds=1)


def test_first_sync_stores_both_platforms(stores, batches):
    _, users = stores
    user = users.create("alice", "alice_li")
    chesscom, lichess = batches
    service = _service(stores, {
        "chesscom": FakeClient("chesscom", chesscom),
        "lichess": FakeClient("lichess", lichess),
    })

    result = service.sync_games(user.id)

    assert result.success
    assert result.new_games_count == 5
    assert result.total_games_count == 5
    assert [(s.source, s.new_games, s.error) for s in result.sources] == [
        ("chesscom", 3, None),
        ("lichess", 2, None),
    ]
    assert users.find_by_id(user.id).last_synced_at == NOW


def test_rerun_is_idempotent_and_incremental(stores, batches):
    _, users = stores
    user = users.create(chesscom_username="alice")
    client = FakeClient("chesscom", batches[0])
    service = _service(stores, {"chesscom": client})

    service.sync_games(user.id)
    second = service.sync_games(user.id)

    assert second.new_games_count == 0
    assert second.total_games_count == 3
    first_options, second_options = client.calls[0][1], client.calls[1][1]
    assert first_options.since is None
    assert second_options.since == T0 + timedelta(hours=2, seconds=1)
    assert not second_options.fetch_all


def test_one_platform_failing_keeps_the_other(stores, batches):
    games, users = stores
    user = users.create("alice", "alice_li")
    service = _service(stores, {
        "chesscom": FakeClient("chesscom", error=ExternalApiError("chesscom")),
        "lichess": FakeClient("lichess", batches[1]),
    })

    result = service.sync_games(user.id)

    assert not result.success
    chesscom, lichess = result.sources
    assert chesscom.error
    assert chesscom.new_games == 0
    assert lichess.error is None
    assert lichess.new_games == 2
    assert games.count(user.id) == 2
    assert users.find_by_id(user.id).last_synced_at is None


def test_missing_adapter_is_reported_as_error(stores, batches):
    _, users = stores
    user = users.create("alice", "alice_li")
    service = _service(stores, {"chesscom": FakeClient("chesscom", batches[0])})

    result = service.sync_games(user.id)

    assert not result.success
    assert result.sources[1].source == "lichess"
    assert "No client configured" in result.sources[1].error
    assert result.new_games_count == 3


def test_only_configured_platforms_are_synced(stores, batches):
    _, users = stores
    user = users.create(lichess_username="only_li")
    chesscom_client = FakeClient("chesscom", batches[0])
    service = _service(stores, {
        "chesscom": chesscom_client,
        "lichess": FakeClient("lichess", batches[1]),
    })

    result = service.sync_games(user.id)

    assert [s.source for s in result.sources] == ["lichess"]
    assert chesscom_client.calls == []


def test_full_resync_replaces_history(stores, batches, make_game):
    games, users = stores
    user = users.create(chesscom_username="alice")
    games.save(make_game(id="stale", source="chesscom", played_at=NOW), user.id)
    client = FakeClient("chesscom", batches[0])
    service = _service(stores, {"chesscom": client})

    result = service.full_resync(user.id)

    assert result.success
    assert result.total_games_count == 3
    assert games.find_by_id("stale", user.id) is None
    options = client.calls[0][1]
    assert options.since is None
    assert options.fetch_all


def test_unknown_user(stores):
    service = _service(stores, {})
    with pytest.raises(UserNotFoundError):
        service.sync_games(404)
    with pytest.raises(UserNotFoundError):
        service.full_resync(404)


def test_user_locks_are_released_after_each_run():
    locks = _UserLocks()
    with locks.hold(7):
        with locks.hold(7):
            assert len(locks) == 1
        with locks.hold(8):
            assert len(locks) == 2
        assert len(locks) == 1
    assert len(locks) == 0


def test_user_lock_is_released_when_the_run_raises():
    locks = _UserLocks()
    with pytest.raises(RuntimeError):
        with locks.hold(7):
            raise RuntimeError("boom")
    assert len(locks) == 0


def test_sync_leaves_no_lock_behind(stores, batches):
    _, users = stores
    user = users.create("alice")
    service = _service(stores, {"chesscom": FakeClient("chesscom", batches[0])})

    assert service.sync_games(user.id).success
    service.full_resync(user.id)

    assert len(service._locks) == 0
