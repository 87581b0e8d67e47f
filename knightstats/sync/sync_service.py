# ==============================================================================
# sync_service.py  –  Pull games from every configured platform into the store
# ------------------------------------------------------------------------------
# Execution flow for `sync_games(user_id)`:
#   1. Load the user (UserNotFoundError if missing)
#   2. For each configured platform, independently:
#        • since = newest stored game + 1 s   (unless full sync)
#        • fetch via the platform adapter
#        • upsert tagged games, new = count after − count before
#        • any failure → recorded on that source only
#   3. success = every source clean; only then advance last_synced_at
#
# Runs for the same user are serialized by an in-process keyed lock.
# ==============================================================================

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterator, Mapping, Optional

from knightstats.db.game_store import GameStore, UserStore
from knightstats.errors import UserNotFoundError
from knightstats.ingestion.base_client import ChessClient, FetchOptions
from knightstats.ingestion.chesscom_client import ChessComClient
from knightstats.ingestion.lichess_client import LichessClient
from knightstats.models.records import SourceSyncResult, SyncResult
from knightstats.models.user import User
from knightstats.utils import metrics
from knightstats.utils.logging_utils import setup_logger

LOGGER = setup_logger("sync_service")

INCREMENTAL_GAP = timedelta(seconds=1)


def incremental_since(latest: Optional[datetime]) -> Optional[datetime]:
    """Cutoff for the next incremental fetch: newest stored game + 1 s."""
    return latest + INCREMENTAL_GAP if latest else None


def default_clients() -> Dict[str, ChessClient]:
    """One adapter per supported platform, keyed by source."""
    clients = (ChessComClient(), LichessClient())
    return {client.source: client for client in clients}


class _UserLocks:
    """Keyed re-entrant locks: one per user id, dropped once no run holds it."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[int, threading.RLock] = {}
        self._holders: Dict[int, int] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, user_id: int) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(user_id, threading.RLock())
            self._holders[user_id] = self._holders.get(user_id, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._holders[user_id] -= 1
                if not self._holders[user_id]:
                    del self._holders[user_id]
                    del self._locks[user_id]


# ==============================================================================
# Service
# ==============================================================================


class SyncService:
    def __init__(
        self,
        game_store: GameStore,
        user_store: UserStore,
        clients: Optional[Mapping[str, ChessClient]] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.game_store = game_store
        self.user_store = user_store
        self.clients: Mapping[str, ChessClient] = (
            clients if clients is not None else default_clients()
        )
        self._now = clock
        self._locks = _UserLocks()

    # -- public API ------------------------------------------------------------

    def sync_games(self, user_id: int, full_sync: bool = False) -> SyncResult:
        with self._locks.hold(user_id):
            user = self._require_user(user_id)
            return self._sync(user, full_sync)

    def full_resync(self, user_id: int) -> SyncResult:
        """Drop every stored game for the user, then fetch full history."""
        with self._locks.hold(user_id):
            user = self._require_user(user_id)
            removed = self.game_store.delete_by_user(user_id)
            LOGGER.info("Full resync for user %s – removed %d games", user_id, removed)
            return self._sync(user, full_sync=True)

    # -- internals -------------------------------------------------------------

    def _require_user(self, user_id: int) -> User:
        user = self.user_store.find_by_id(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    def _sync(self, user: User, full_sync: bool) -> SyncResult:
        started = time.perf_counter()
        LOGGER.info(
            "Sync running for user %s (%s)", user.id, "full" if full_sync else "incremental"
        )

        sources = [
            self._sync_source(user.id, source, username, full_sync)
            for source, username in user.platform_usernames()
        ]
        success = all(s.error is None for s in sources)

        if success:
            self.user_store.update_last_synced(user.id, self._now())

        result = SyncResult(
            success=success,
            new_games_count=sum(s.new_games for s in sources),
            total_games_count=self.game_store.count(user.id),
            sources=sources,
        )
        metrics.record_run(success, time.perf_counter() - started)
        LOGGER.info(
            "Sync %s for user %s – %d new, %d total",
            "completed" if success else "partially failed",
            user.id,
            result.new_games_count,
            result.total_games_count,
        )
        return result

    def _sync_source(
        self, user_id: int, source: str, username: str, full_sync: bool
    ) -> SourceSyncResult:
        client = self.clients.get(source)
        if client is None:
            LOGGER.error("No adapter registered for %s", source)
            metrics.record_failure(source)
            return SourceSyncResult(source, 0, f"No client configured for {source}")

        try:
            since = None
            if not full_sync:
                since = incremental_since(
                    self.game_store.get_latest_game_date(user_id, source)
                )
            games = client.fetch_games(
                username, FetchOptions(since=since, fetch_all=full_sync)
            )

            new_games = 0
            if games:
                before = self.game_store.count(user_id)
                self.game_store.save_many([g.with_user(user_id) for g in games])
                new_games = self.game_store.count(user_id) - before
        except Exception as exc:
            LOGGER.exception("Sync error for %s (%s)", source, username)
            metrics.record_failure(source)
            return SourceSyncResult(source, 0, str(exc) or exc.__class__.__name__)

        metrics.record_source(source, len(games), new_games)
        LOGGER.info("%s: %d fetched, %d new", source, len(games), new_games)
        return SourceSyncResult(source, new_games)
