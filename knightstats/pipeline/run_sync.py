#!/usr/bin/env python3
# ==============================================================================
# run_sync.py  –  Entry point for game synchronisation
#   Calls: knightstats.sync.sync_service.SyncService
# ==============================================================================

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv(dotenv_path=Path(__file__).resolve().parents[2] / ".env")

from knightstats.db.game_store import GameStore, UserStore
from knightstats.models.records import SyncResult
from knightstats.sync.sync_service import SyncService
from knightstats.utils.db_utils import build_engine
from knightstats.utils.logging_utils import setup_logger

LOGGER = setup_logger("run_sync")


def build_service(url: Optional[str] = None) -> SyncService:
    """Wire stores and platform adapters against the configured database."""
    engine = build_engine(url)
    return SyncService(
        GameStore(engine, create_tables=True),
        UserStore(engine),
    )


def run_sync(
    user_id: Optional[int] = None,
    full: bool = False,
    service: Optional[SyncService] = None,
) -> List[SyncResult]:
    """
    Sync one user, or every user when ``user_id`` is None.

    ``full`` drops the user's stored games first and refetches all history.
    """
    service = service or build_service()
    if user_id is not None:
        user_ids = [user_id]
    else:
        user_ids = [u.id for u in service.user_store.find_all()]
    if not user_ids:
        LOGGER.warning("No users configured – nothing to sync")
        return []

    results = []
    for uid in user_ids:
        result = service.full_resync(uid) if full else service.sync_games(uid)
        results.append(result)
    return results


if __name__ == "__main__":
    run_sync(
        user_id=int(os.environ["SYNC_USER_ID"]) if os.getenv("SYNC_USER_ID") else None,
        full=os.getenv("SYNC_FULL", "false").lower() in {"1", "true", "yes"},
    )
